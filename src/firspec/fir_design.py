#!/usr/bin/env python3
"""
Windowed-sinc FIR tap synthesizer – Kaiser window
=================================================

Builds a windowed-sinc lowpass prototype in arbitrary precision and derives
the other band shapes from it:

- highpass:  spectral inversion of a lowpass at 0.5 - cutoff
- bandpass:  heterodyne of a lowpass of half the passband width up to the
             passband center (twice the real part for real taps)
- bandstop:  lowpass at the lower edge plus a spectrally inverted lowpass
             at the complement of the upper edge

Taps come back as a :class:`~firspec.types.TapSequence` of mpf/mpc values;
cast them with :func:`firspec.precision.cast_to_precision` before use.
"""

from __future__ import annotations
import logging
import time
from typing import Optional

import numpy as np
from mpmath import MPContext

from .kaiser import design_attenuation, estimate_kaiser_tap_count, kaiser_beta, kaiser_window
from .precision_math import DEFAULT_BESSEL_TOLERANCE, precision_context, sinc
from .types import DesignParameters, DesignRequest, TapSequence

log = logging.getLogger(__name__)


# ───────────────────────── helpers ────────────────────────── #

def fmt_time(sec: float) -> str:
    return f"{sec/60:.1f} min" if sec >= 60 else f"{sec:.2f} s"


def force_odd(n: int) -> int:
    return n + 1 if n % 2 == 0 else n


def tap_count_for(params: DesignParameters) -> int:
    """Tap count for ``params``: explicit if given, Kaiser estimate otherwise."""
    if params.explicit_tap_count is not None:
        return force_odd(params.explicit_tap_count)
    A = design_attenuation(params.min_stopband_attenuation_db,
                           params.max_passband_ripple_db)
    return estimate_kaiser_tap_count(A, params.transition_bandwidth)


# ─────────────────────── band transformations ─────────────────────── #

def design_lowpass(cutoff: float, N: int, window: np.ndarray,
                   ctx: MPContext) -> np.ndarray:
    """
    Windowed ideal lowpass, normalized to unity DC gain.

        h[n] = sinc(2·cutoff·(n - (N-1)/2)) · w[n] / Σ h

    ``N`` is odd so (N-1)/2 is the integer index of the center tap.
    """
    center = (N - 1) // 2
    two_fc = 2 * ctx.mpf(cutoff)

    h = np.empty(N, dtype=object)
    for n in range(N):
        h[n] = sinc(two_fc * (n - center), ctx) * window[n]

    h_sum = ctx.fsum(h)
    return h / h_sum


def spectral_invert(taps: np.ndarray) -> np.ndarray:
    """Negate every odd-indexed tap (modulation by Nyquist)."""
    inverted = taps.copy()
    inverted[1::2] = -inverted[1::2]
    return inverted


def heterodyne(taps: np.ndarray, shift: float, tap_kind: str,
               ctx: MPContext) -> np.ndarray:
    """
    Shift ``taps`` up by ``shift`` (normalized frequency).

    The complex exponential is referenced to the center tap, so a symmetric
    prototype stays symmetric and real output keeps linear phase. Real
    output is twice the real part of the modulated sequence.
    """
    N = len(taps)
    center = (N - 1) // 2
    two_shift = 2 * ctx.mpf(shift)

    shifted = np.empty(N, dtype=object)
    for n in range(N):
        # exp(j·2π·shift·(n - center)) == expjpi(2·shift·(n - center))
        shifted[n] = taps[n] * ctx.expjpi(two_shift * (n - center))

    if tap_kind == 'real':
        return np.array([2 * v.real for v in shifted], dtype=object)
    return shifted


# ─────────────────────── design routine ─────────────────────── #

def design_raw(filter_type: str, tap_kind: str, params: DesignParameters,
               ctx: Optional[MPContext] = None,
               log: logging.Logger = log) -> TapSequence:
    """
    Synthesize taps for one filter shape without validating the response.

    Parameters
    ----------
    filter_type : str
        'lowpass', 'highpass', 'bandpass' or 'bandstop'
    tap_kind : str
        'real' or 'complex'. Shapes that are real by construction are
        promoted to complex values with zero imaginary part when
        'complex' is requested.
    params : DesignParameters
        Cutoff(s), transition bandwidth and the dB requirements that drive
        the window shape and length.
    ctx : MPContext, optional
        Precision context for the whole design; a fresh one is created
        when omitted.

    Returns
    -------
    TapSequence
        Odd-length high-precision taps.
    """
    DesignRequest(filter_type, tap_kind, params).validate()
    if ctx is None:
        ctx = precision_context()

    A = design_attenuation(params.min_stopband_attenuation_db,
                           params.max_passband_ripple_db)
    beta = kaiser_beta(A)
    N = tap_count_for(params)

    log.info("Designing %d-tap %s %s filter: A=%.2f dB, β=%.4f",
             N, tap_kind, filter_type, A, beta)
    t0 = time.perf_counter()

    window = kaiser_window(beta, N, params.bessel_max_iterations,
                           DEFAULT_BESSEL_TOLERANCE, ctx)

    if filter_type == 'lowpass':
        values = design_lowpass(params.cutoff, N, window, ctx)
    elif filter_type == 'highpass':
        values = spectral_invert(design_lowpass(0.5 - params.cutoff, N, window, ctx))
    elif filter_type == 'bandpass':
        low, high = params.cutoff
        half_width = (high - low) / 2
        values = heterodyne(design_lowpass(half_width, N, window, ctx),
                            low + half_width, tap_kind, ctx)
    else:  # bandstop
        low, high = params.cutoff
        lowpass = design_lowpass(low, N, window, ctx)
        highpass = spectral_invert(design_lowpass(0.5 - high, N, window, ctx))
        values = lowpass + highpass

    if tap_kind == 'complex' and filter_type != 'bandpass':
        values = np.array([ctx.mpc(v) for v in values], dtype=object)

    log.info("FIR generated in %s", fmt_time(time.perf_counter() - t0))
    return TapSequence(tap_kind, values)
