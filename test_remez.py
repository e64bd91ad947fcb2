#!/usr/bin/env python3
"""
Tests for the Remez exchange equiripple designer.
"""

import os
import sys

import numpy as np
import pytest
from scipy import signal

sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from firspec.exceptions import InvalidBandEdgesError, InvalidDesignRequestError, RemezPeakCountError
from firspec.remez import _find_extremals, design_equiripple

EDGES = [0, 0.2, 0.3, 0.5]


def lowpass(tap_count=31, **kw):
    return design_equiripple(EDGES,
                             weight_fn=lambda f: 1.0,
                             desired_fn=lambda f: 1.0 if f <= 0.2 else 0.0,
                             tap_count=tap_count, **kw)


def test_matches_scipy_remez():
    taps = lowpass()
    assert taps.kind == 'real'
    reference = signal.remez(31, EDGES, [1, 0], fs=1.0)
    np.testing.assert_allclose(taps.values, reference, atol=2e-3)


def test_highpass_matches_scipy_remez():
    taps = design_equiripple(EDGES,
                             weight_fn=lambda f: 1.0,
                             desired_fn=lambda f: 1.0 if f >= 0.3 else 0.0,
                             tap_count=31)
    reference = signal.remez(31, EDGES, [0, 1], fs=1.0)
    np.testing.assert_allclose(taps.values, reference, atol=2e-3)


@pytest.mark.parametrize("tap_count", [21, 31, 51])
def test_two_band_lowpass_lengths(tap_count):
    h = lowpass(tap_count).values
    assert len(h) == tap_count
    f, H = signal.freqz(h, worN=4096, fs=1.0)
    assert np.abs(H[f >= 0.3]).max() < 0.1


def test_taps_are_symmetric_and_odd():
    taps = lowpass(30)
    assert len(taps) == 31
    np.testing.assert_array_equal(taps.values, taps.values[::-1])


def test_error_is_equiripple():
    h = lowpass().values
    f, H = signal.freqz(h, worN=8192, fs=1.0)
    passband = np.abs(np.abs(H[f <= 0.2]) - 1).max()
    stopband = np.abs(H[f >= 0.3]).max()
    assert passband == pytest.approx(stopband, rel=0.05)
    assert stopband < 0.05


def test_weighting_trades_ripple():
    h = design_equiripple(EDGES,
                          weight_fn=lambda f: 1.0 if f <= 0.2 else 10.0,
                          desired_fn=lambda f: 1.0 if f <= 0.2 else 0.0,
                          tap_count=31).values
    f, H = signal.freqz(h, worN=8192, fs=1.0)
    passband = np.abs(np.abs(H[f <= 0.2]) - 1).max()
    stopband = np.abs(H[f >= 0.3]).max()
    assert passband / stopband == pytest.approx(10, rel=0.1)


def test_iteration_cap_warns():
    with pytest.warns(RuntimeWarning):
        taps = lowpass(max_iterations=1)
    assert len(taps) == 31


@pytest.mark.parametrize("edges", [
    [0, 0.2, 0.3],
    [0, 0.2, 0.3, 0.6],
    [0.3, 0.5, 0, 0.2],
    [],
])
def test_invalid_band_edges(edges):
    with pytest.raises(InvalidBandEdgesError):
        design_equiripple(edges, lambda f: 1.0, lambda f: 1.0, 31)


def test_too_few_taps():
    with pytest.raises(InvalidDesignRequestError):
        lowpass(2)


def test_extremals_keep_larger_of_equal_sign_neighbours():
    error = np.array([0.5, 0.1, 1.0, -0.1, -1.0])
    np.testing.assert_array_equal(_find_extremals(error, [(0, 5)], 2), [2, 4])


def test_extremals_drop_smaller_surplus_end():
    error = np.array([1.0, 0.1, -1.0, -0.1, 0.5])
    np.testing.assert_array_equal(_find_extremals(error, [(0, 5)], 2), [0, 2])


def test_extremals_count_sign_change_at_band_end():
    # |E| at the last point is below its neighbour but E has flipped sign
    error = np.array([1.0, -0.5, -1.0, 0.05])
    np.testing.assert_array_equal(_find_extremals(error, [(0, 4)], 3), [0, 2, 3])


def test_extremals_across_bands():
    error = np.array([1.0, 0.2, -0.8, 0.9, -0.3, -1.0])
    np.testing.assert_array_equal(_find_extremals(error, [(0, 3), (3, 6)], 4), [0, 2, 3, 5])


def test_extremals_wrong_count():
    error = np.array([1.0, 0.1, -1.0, -0.1, 1.0, 0.1, -1.0])
    with pytest.raises(RemezPeakCountError):
        _find_extremals(error, [(0, 7)], 2)
