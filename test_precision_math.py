#!/usr/bin/env python3
"""
Tests for the arbitrary-precision sinc and I0 primitives.
"""

import os
import sys

import mpmath
import numpy as np
import pytest
from scipy import special

sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from firspec.precision_math import bessel_i0, precision_context, sinc


def test_sinc_zero_is_exactly_one():
    ctx = precision_context()
    assert sinc(0, ctx) == 1
    assert sinc(ctx.mpf(0), ctx) == ctx.mpf(1)


def test_sinc_reference_value():
    assert float(sinc(0.1)) == pytest.approx(0.983631643083466, abs=1e-14)


@pytest.mark.parametrize("x", [1, -1, 2, 3, -7, 10])
def test_sinc_vanishes_at_nonzero_integers(x):
    assert abs(sinc(x)) < 1e-50


def test_sinc_matches_numpy():
    for x in np.linspace(-3.3, 3.3, 23):
        assert float(sinc(x)) == pytest.approx(np.sinc(x), abs=1e-14)


def test_i0_at_zero_is_one():
    assert bessel_i0(0) == 1


@pytest.mark.parametrize("z, expected", [
    (1, 1.2660658777520082),
    (2, 2.279585302336067),
    (3, 4.880792585865024),
    (10, 2815.716628466254),
    (20, 43558282.559553534),
    (30, 781672297823.9775),
])
def test_i0_reference_values(z, expected):
    assert float(bessel_i0(z)) == pytest.approx(expected, rel=1e-14)


def test_i0_matches_scipy():
    for z in np.linspace(0, 25, 26):
        assert float(bessel_i0(z)) == pytest.approx(special.i0(z), rel=1e-13)


def test_i0_stops_at_kmax():
    # terms 1, 25, 156.25 for z = 10
    assert bessel_i0(10, kmax=3) == 182.25


def test_i0_stops_before_first_term_below_tolerance():
    # z = 1: terms 1, 0.25, ...; 0.25 is below 0.5 and is not added
    assert bessel_i0(1, tolerance=0.5) == 1


def test_contexts_are_independent():
    global_dps = mpmath.mp.dps
    coarse = precision_context(15)
    fine = precision_context(80)

    a = bessel_i0(3, ctx=coarse)
    b = bessel_i0(3, ctx=fine)

    assert coarse.dps == 15
    assert fine.dps == 80
    assert mpmath.mp.dps == global_dps
    assert float(a) == pytest.approx(float(b), rel=1e-14)
    assert a.context is coarse
    assert b.context is fine


def test_sinc_evaluates_in_callers_context():
    ctx = precision_context(40)
    assert sinc(0.3, ctx).context is ctx
