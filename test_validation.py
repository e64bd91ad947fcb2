#!/usr/bin/env python3
"""
Tests for band-edge derivation and the closed-loop design refinement.
"""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from firspec.exceptions import InvalidDesignRequestError
from firspec.fir_design import design_raw
from firspec.precision import cast_to_precision
from firspec.response import check_against_spec
from firspec.types import DesignParameters, DesignRequest
from firspec.validation import (ATTENUATION_STEP_DB, RIPPLE_SHRINK_FACTOR, derive_band_edges,
                                design_and_validate, design_equiripple_validated,
                                equiripple_weights, refine_parameters)


def lowpass_request(bessel=10, kind='real', precision='double', taps=None):
    return DesignRequest('lowpass', kind, DesignParameters(0.25, 0.1, 60, 0.1, bessel, taps), precision)


# ───────────────────────── band edges ────────────────────────── #

@pytest.mark.parametrize("filter_type, kind, cutoff, passband, stopband", [
    ('lowpass', 'real', 0.25, [0, 0.2], [0.3, 0.5]),
    ('highpass', 'real', 0.25, [0.3, 0.5], [0, 0.2]),
    ('bandpass', 'real', (0.1, 0.3), [0.15, 0.25], [0, 0.05, 0.35, 0.5]),
    ('bandstop', 'real', (0.1, 0.3), [0, 0.05, 0.35, 0.5], [0.15, 0.25]),
    ('lowpass', 'complex', 0.25, [-0.2, 0.2], [-0.5, -0.3, 0.3, 0.5]),
    ('highpass', 'complex', 0.25, [-0.5, -0.3, 0.3, 0.5], [-0.2, 0.2]),
    ('bandpass', 'complex', (0.1, 0.3), [0.15, 0.25], [-0.5, 0.05, 0.35, 0.5]),
    ('bandstop', 'complex', (0.1, 0.3), [-0.5, -0.35, -0.05, 0.05, 0.35, 0.5],
     [-0.25, -0.15, 0.15, 0.25]),
])
def test_derive_band_edges(filter_type, kind, cutoff, passband, stopband):
    pb, sb = derive_band_edges(filter_type, kind, cutoff, 0.1)
    assert pb == pytest.approx(passband)
    assert sb == pytest.approx(stopband)


def test_transition_wider_than_band_is_rejected():
    with pytest.raises(InvalidDesignRequestError):
        derive_band_edges('lowpass', 'real', 0.02, 0.1)
    with pytest.raises(InvalidDesignRequestError):
        derive_band_edges('bandpass', 'real', (0.2, 0.25), 0.1)


# ─────────────────────── refinement ─────────────────────── #

def test_refine_parameters_rebuilds():
    p = DesignParameters(0.25, 0.1, 60, 0.1)
    q = refine_parameters(p, 'passband')
    assert q.max_passband_ripple_db == pytest.approx(0.1 * RIPPLE_SHRINK_FACTOR)
    assert q.min_stopband_attenuation_db == 60
    r = refine_parameters(p, 'stopband')
    assert r.min_stopband_attenuation_db == 60 + ATTENUATION_STEP_DB
    assert r.max_passband_ripple_db == 0.1
    assert p == DesignParameters(0.25, 0.1, 60, 0.1)


def test_raw_design_misses_stopband():
    request = lowpass_request()
    pb, sb = derive_band_edges('lowpass', 'real', 0.25, 0.1)
    taps = cast_to_precision(design_raw('lowpass', 'real', request.parameters), 'double')
    result = check_against_spec(taps, pb, sb, 0.1, -60)
    assert not result.spec_met
    assert result.failure_reason == 'stopband'
    band = result.passband_response[0]
    assert abs(band.min_value_db) <= 0.1 and abs(band.max_value_db) <= 0.1


def test_design_and_validate_meets_spec():
    result = design_and_validate(lowpass_request())
    assert result.spec_met
    assert result.iterations > 1
    assert len(result.taps) % 2 == 1
    assert result.taps.dtype == np.float64
    assert result.passband_edges == pytest.approx((0, 0.2))
    assert result.stopband_edges == pytest.approx((0.3, 0.5))
    assert all(b.max_value_db <= -60 for b in result.measured_stopband_response)


def test_attempts_record_each_refinement():
    request = lowpass_request()
    result = design_and_validate(request)
    assert result.attempts[0] == request.parameters
    assert len(result.attempts) == result.iterations
    for prev, cur in zip(result.attempts, result.attempts[1:]):
        ripple_step = (cur.max_passband_ripple_db == pytest.approx(prev.max_passband_ripple_db * 0.9)
                       and cur.min_stopband_attenuation_db == prev.min_stopband_attenuation_db)
        atten_step = (cur.min_stopband_attenuation_db == prev.min_stopband_attenuation_db + 0.5
                      and cur.max_passband_ripple_db == prev.max_passband_ripple_db)
        assert ripple_step or atten_step
    assert result.final_parameters == result.attempts[-1]


def test_exhausted_budget_returns_last_attempt():
    result = design_and_validate(lowpass_request(), max_iterations=1)
    assert not result.spec_met
    assert result.iterations == 1
    assert len(result.taps) == 39
    assert result.measured_stopband_response[0].max_value_db > -60


@pytest.mark.parametrize("filter_type, cutoff", [
    ('lowpass', 0.25),
    ('highpass', 0.25),
    ('bandpass', (0.15, 0.35)),
    ('bandstop', (0.15, 0.35)),
])
def test_all_real_shapes_validate(filter_type, cutoff):
    request = DesignRequest(filter_type, 'real', DesignParameters(cutoff, 0.1, 40, 0.5))
    result = design_and_validate(request)
    assert result.spec_met
    taps = result.taps
    np.testing.assert_allclose(taps, taps[::-1], atol=1e-15)


def test_complex_bandpass_validates():
    request = DesignRequest('bandpass', 'complex', DesignParameters((0.1, 0.3), 0.1, 50, 0.2))
    result = design_and_validate(request)
    assert result.spec_met
    assert np.iscomplexobj(result.taps)
    assert result.stopband_edges[0] == -0.5


def test_half_precision_complex_output():
    request = DesignRequest('bandpass', 'complex', DesignParameters((0.1, 0.3), 0.1, 40, 0.5),
                            'half')
    result = design_and_validate(request, max_iterations=3)
    assert result.taps.dtype == np.complex64
    np.testing.assert_array_equal(result.taps.real, result.taps.real.astype(np.float16))


def test_invalid_budget():
    with pytest.raises(ValueError):
        design_and_validate(lowpass_request(), max_iterations=0)


# ─────────────────────── equiripple path ─────────────────────── #

def test_equiripple_weights():
    w_pass, w_stop = equiripple_weights(0.1, 60)
    assert w_stop == 1.0
    assert w_pass == pytest.approx((10 ** -3) / (10 ** 0.005 - 1))
    # δp = 0.4125 exceeds δs = 0.3162, so the stopband weight is the larger
    w_pass, w_stop = equiripple_weights(3.0, 10)
    assert w_stop == 1.0
    assert w_pass == pytest.approx((10 ** -0.5) / (10 ** 0.15 - 1))
    w_pass, w_stop = equiripple_weights(0.1, 20)
    assert w_pass == 1.0
    assert w_stop < 1.0


def test_equiripple_validated_lowpass():
    result = design_equiripple_validated(lowpass_request(taps=39))
    assert result.iterations == 1
    assert len(result.taps) == 39
    np.testing.assert_array_equal(result.taps, result.taps[::-1])
    assert result.spec_met


def test_equiripple_validated_highpass_single_precision():
    request = DesignRequest('highpass', 'real', DesignParameters(0.25, 0.1, 40, 0.5, 1000, 31),
                            'single')
    result = design_equiripple_validated(request)
    assert result.taps.dtype == np.float32
    assert result.measured_stopband_response[0].max_value_db < -30


@pytest.mark.parametrize("request_", [
    lowpass_request(kind='complex'),
    DesignRequest('bandpass', 'real', DesignParameters((0.1, 0.3), 0.1, 60, 0.1)),
])
def test_equiripple_validated_rejects_unsupported(request_):
    with pytest.raises(InvalidDesignRequestError):
        design_equiripple_validated(request_)
