"""
Kaiser window generation and the Kaiser design formulas.
"""

import logging
import math
from typing import Optional

import numpy as np
from mpmath import MPContext

from .precision_math import (
    DEFAULT_BESSEL_MAX_ITERATIONS,
    DEFAULT_BESSEL_TOLERANCE,
    bessel_i0,
    precision_context,
)

log = logging.getLogger(__name__)


def kaiser_beta(A: float) -> float:
    """Kaiser shape parameter β for a stopband attenuation of ``A`` dB."""
    if A > 50:
        return 0.1102 * (A - 8.7)
    elif A >= 21:
        return 0.5842 * (A - 21) ** 0.4 + 0.07886 * (A - 21)
    else:
        return 0.0


def estimate_kaiser_tap_count(A: float, transition_bandwidth: float) -> int:
    """
    Kaiser's length estimate, rounded up to the next odd integer.

    An odd length gives the filter a center tap, and with it exact linear
    phase for the real, symmetric case.
    """
    N = math.ceil(abs((A - 8) / (2.285 * 2 * math.pi * transition_bandwidth))) + 1
    if N % 2 == 0:
        N += 1
    return N


def design_attenuation(min_stopband_attenuation_db: float,
                       max_passband_ripple_db: float) -> float:
    """
    Attenuation the window must deliver for both band requirements.

    The passband ripple δp = 10^(ripple/20) - 1 is expressed as an
    attenuation |20·log10(δp)|; the larger of the two drives the design.
    """
    dp = 10 ** (max_passband_ripple_db / 20) - 1
    return max(min_stopband_attenuation_db, abs(20 * math.log10(dp)))


def kaiser_window(beta: float, length: int,
                  bessel_max_iterations: int = DEFAULT_BESSEL_MAX_ITERATIONS,
                  bessel_tolerance=DEFAULT_BESSEL_TOLERANCE,
                  ctx: Optional[MPContext] = None) -> np.ndarray:
    """
    Return a ``length``-point symmetric Kaiser window as an mpf object array.

        w[n] = I0(β·sqrt(1 - (2n/(N-1) - 1)²)) / I0(β)

    I0(β) is evaluated once per call; nothing is cached across calls.
    """
    if ctx is None:
        ctx = precision_context()
    if length < 1:
        raise ValueError(f"Window length must be >= 1, got {length}")
    if length == 1:
        return np.array([ctx.mpf(1)], dtype=object)

    beta = ctx.mpf(beta)
    denominator = bessel_i0(beta, bessel_max_iterations, bessel_tolerance, ctx)
    span = length - 1

    w = np.empty(length, dtype=object)
    for n in range(length):
        # (2n - (N-1)) / (N-1) is exact in sign, so w[n] == w[N-1-n]
        t = ctx.mpf(2 * n - span) / span
        arg = beta * ctx.sqrt(1 - t * t)
        w[n] = bessel_i0(arg, bessel_max_iterations, bessel_tolerance, ctx) / denominator

    log.debug("Kaiser window: N=%d, beta=%.6f, I0(beta)=%s", length, float(beta),
              ctx.nstr(denominator, 12))
    return w
