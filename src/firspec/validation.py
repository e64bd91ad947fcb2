#!/usr/bin/env python3
"""
Closed-loop design validation
=============================

Designs a Kaiser-window FIR filter, measures its true response and keeps
adjusting the design parameters until the measurement meets the request
or the iteration budget runs out:

- passband failure: shrink the design ripple by 10 %
- stopband failure: raise the design attenuation by 0.5 dB

The measurement is always taken against the *requested* ripple and
attenuation; only the design inputs move. Each attempt's parameters are a
new frozen :class:`~firspec.types.DesignParameters` kept in the result.
"""

from __future__ import annotations
import logging
import time
from dataclasses import replace
from typing import List, Tuple

from .exceptions import InvalidDesignRequestError
from .fir_design import design_raw, fmt_time, tap_count_for
from .precision import cast_to_precision
from .precision_math import DEFAULT_DPS, precision_context
from .remez import DEFAULT_GRID_DENSITY, design_equiripple
from .response import DEFAULT_FFT_LENGTH_SCALAR, check_against_spec
from .types import DesignParameters, DesignRequest, ValidatedFilterResult

log = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 50
RIPPLE_SHRINK_FACTOR = 0.9
ATTENUATION_STEP_DB = 0.5


# ───────────────────────── band edges ────────────────────────── #

def _mirror_to_negative(edges: List[float]) -> List[float]:
    """
    Extend a [0, 0.5] band union to its mirror image on [-0.5, 0].

    Used for real-valued responses measured over the full complex spectrum.
    Intervals meeting at 0 are merged.
    """
    pairs = [(edges[i], edges[i + 1]) for i in range(0, len(edges), 2)]
    mirrored = [(-end, -start) for start, end in reversed(pairs)]

    merged: List[Tuple[float, float]] = []
    for start, end in mirrored + pairs:
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return [f for pair in merged for f in pair]


def derive_band_edges(filter_type: str, tap_kind: str, cutoff,
                      transition_bandwidth: float) -> Tuple[List[float], List[float]]:
    """
    Passband and stopband edge sets implied by the cutoff(s).

    Each cutoff sits in the middle of its transition band. For the complex
    tap kind the negative half of the spectrum is measured as well: a
    complex bandpass is one-sided, so everything below its passband is
    stopband; the other shapes are real-valued and mirror onto [-0.5, 0].
    """
    half_bw = transition_bandwidth / 2

    if filter_type in ('lowpass', 'highpass'):
        below = [0.0, cutoff - half_bw]
        above = [cutoff + half_bw, 0.5]
        passband, stopband = (below, above) if filter_type == 'lowpass' else (above, below)
    else:
        low, high = cutoff
        outer = [0.0, low - half_bw, high + half_bw, 0.5]
        inner = [low + half_bw, high - half_bw]
        passband, stopband = (inner, outer) if filter_type == 'bandpass' else (outer, inner)

    for edges in (passband, stopband):
        for i in range(0, len(edges), 2):
            if not 0 <= edges[i] <= edges[i + 1] <= 0.5:
                raise InvalidDesignRequestError(
                    f"Transition bandwidth {transition_bandwidth} is too wide for "
                    f"cutoff {cutoff}: band [{edges[i]}, {edges[i + 1]}] is empty "
                    f"or outside [0, 0.5]")

    if tap_kind == 'complex':
        if filter_type == 'bandpass':
            stopband = [-0.5] + stopband[1:]
        else:
            passband = _mirror_to_negative(passband)
            stopband = _mirror_to_negative(stopband)
    return passband, stopband


# ─────────────────────── refinement loop ─────────────────────── #

def refine_parameters(params: DesignParameters, failure_reason: str) -> DesignParameters:
    """Next attempt's parameters after a failure."""
    if failure_reason == 'passband':
        return replace(params, max_passband_ripple_db=params.max_passband_ripple_db * RIPPLE_SHRINK_FACTOR)
    return replace(params, min_stopband_attenuation_db=params.min_stopband_attenuation_db + ATTENUATION_STEP_DB)


def design_and_validate(request: DesignRequest,
                        max_iterations: int = DEFAULT_MAX_ITERATIONS,
                        fft_length_scalar: float = DEFAULT_FFT_LENGTH_SCALAR,
                        dps: int = DEFAULT_DPS,
                        log: logging.Logger = log) -> ValidatedFilterResult:
    """
    Design taps for ``request`` and refine until the measured response fits.

    Parameters
    ----------
    request : DesignRequest
        Filter shape, tap kind, design parameters and output precision.
    max_iterations : int
        Attempt budget. Running out is not an error: the result then has
        ``spec_met=False`` and carries the last attempt's taps and
        measurements.
    fft_length_scalar : float
        Oversampling of the measurement FFT relative to the tap count.
    dps : int
        Decimal digits of the precision context used for synthesis.

    Returns
    -------
    ValidatedFilterResult
        Taps cast to ``request.output_precision``.
    """
    request.validate()
    if max_iterations < 1:
        raise ValueError("max_iterations must be >= 1")

    spec = request.parameters
    passband_edges, stopband_edges = derive_band_edges(
        request.filter_type, request.tap_kind, spec.cutoff, spec.transition_bandwidth)
    log.info("Passband edges %s, stopband edges %s", passband_edges, stopband_edges)

    ctx = precision_context(dps)
    params = spec
    attempts: List[DesignParameters] = []
    t0 = time.perf_counter()

    for iteration in range(1, max_iterations + 1):
        attempts.append(params)
        taps = design_raw(request.filter_type, request.tap_kind, params, ctx, log)
        cast = cast_to_precision(taps, request.output_precision)
        result = check_against_spec(
            cast, passband_edges, stopband_edges,
            spec.max_passband_ripple_db, -spec.min_stopband_attenuation_db,
            fft_length_scalar)

        if result.spec_met:
            log.info("Spec PASS after %d iteration(s) in %s (%d taps)",
                     iteration, fmt_time(time.perf_counter() - t0), len(cast))
            break

        log.info("Iteration %d: %s requirement missed (ripple %.5f dB, atten %.2f dB)",
                 iteration, result.failure_reason,
                 params.max_passband_ripple_db, params.min_stopband_attenuation_db)
        if iteration < max_iterations:
            params = refine_parameters(params, result.failure_reason)
    else:
        log.warning("Spec FAIL: %d iterations exhausted; returning last attempt",
                    max_iterations)

    return ValidatedFilterResult(
        taps=cast,
        spec_met=result.spec_met,
        measured_passband_response=result.passband_response,
        measured_stopband_response=result.stopband_response,
        iterations=len(attempts),
        attempts=tuple(attempts),
        passband_edges=tuple(passband_edges),
        stopband_edges=tuple(stopband_edges),
    )


# ─────────────────────── equiripple path ─────────────────────── #

def equiripple_weights(max_passband_ripple_db: float,
                       min_stopband_attenuation_db: float) -> Tuple[float, float]:
    """
    Passband and stopband Remez weights for the dB requirements.

    Weights are inversely proportional to the allowed deviations δp and δs
    and scaled so the larger one is 1; only their ratio matters.
    """
    dp = 10 ** (max_passband_ripple_db / 20) - 1
    ds = 10 ** (-min_stopband_attenuation_db / 20)
    w_pass, w_stop = 1.0 / dp, 1.0 / ds
    scale = max(w_pass, w_stop)
    return w_pass / scale, w_stop / scale


def design_equiripple_validated(request: DesignRequest,
                                grid_density: int = DEFAULT_GRID_DENSITY,
                                fft_length_scalar: float = DEFAULT_FFT_LENGTH_SCALAR,
                                log: logging.Logger = log) -> ValidatedFilterResult:
    """
    One Parks-McClellan design for a real lowpass/highpass request, measured
    against the requested ripple and attenuation.

    The tap count is ``explicit_tap_count`` or the Kaiser estimate. There is
    no refinement loop: ``iterations`` is always 1 and ``spec_met`` reports
    the single attempt.
    """
    request.validate()
    if request.tap_kind != 'real' or request.filter_type not in ('lowpass', 'highpass'):
        raise InvalidDesignRequestError(
            f"Parks-McClellan design supports real lowpass/highpass filters, "
            f"got {request.tap_kind} {request.filter_type}")

    spec = request.parameters
    passband_edges, stopband_edges = derive_band_edges(
        request.filter_type, request.tap_kind, spec.cutoff, spec.transition_bandwidth)
    band_edges = sorted(passband_edges + stopband_edges)
    w_pass, w_stop = equiripple_weights(spec.max_passband_ripple_db,
                                        spec.min_stopband_attenuation_db)
    log.info("Parks-McClellan weights: pass %.3e, stop %.3e", w_pass, w_stop)

    def in_passband(f: float) -> bool:
        return any(passband_edges[i] <= f <= passband_edges[i + 1]
                   for i in range(0, len(passband_edges), 2))

    taps = design_equiripple(
        band_edges,
        weight_fn=lambda f: w_pass if in_passband(f) else w_stop,
        desired_fn=lambda f: 1.0 if in_passband(f) else 0.0,
        tap_count=tap_count_for(spec),
        grid_density=grid_density,
        log=log,
    )
    cast = cast_to_precision(taps, request.output_precision)
    result = check_against_spec(
        cast, passband_edges, stopband_edges,
        spec.max_passband_ripple_db, -spec.min_stopband_attenuation_db,
        fft_length_scalar)
    log.info("Parks-McClellan spec %s (%d taps)", "PASS" if result.spec_met else "FAIL", len(cast))

    return ValidatedFilterResult(
        taps=cast,
        spec_met=result.spec_met,
        measured_passband_response=result.passband_response,
        measured_stopband_response=result.stopband_response,
        iterations=1,
        attempts=(spec,),
        passband_edges=tuple(passband_edges),
        stopband_edges=tuple(stopband_edges),
    )
