#!/usr/bin/env python3
"""
FFT-based frequency response measurement
========================================

Measures a tap sequence's magnitude response over arbitrary unions of
frequency bands and checks it against passband ripple / stopband
attenuation requirements.

Frequencies are normalized to the sample rate: [-0.5, 0.5) covers the whole
spectrum, and index ``len/2`` of a measured response is 0.

A band edge set is an even-length sequence read as (start, end) pairs:

    [0, 0.2, 0.3, 0.4]  ->  [0, 0.2] ∪ [0.3, 0.4]
"""

from __future__ import annotations
import logging
import math
from typing import List, Optional, Sequence, Union

import numpy as np

from .exceptions import InvalidBandEdgesError
from .types import FilterBandResponse, SpecTestResult, TapSequence

log = logging.getLogger(__name__)

DEFAULT_FFT_LENGTH_SCALAR = 256


# ───────────────────────── helpers ────────────────────────── #

def next_pow2(n: int) -> int:
    return 1 << (n - 1).bit_length()


def as_numeric_array(taps: Union[TapSequence, Sequence, np.ndarray]) -> np.ndarray:
    """Plain float64/complex128 view of taps for FFT work."""
    if isinstance(taps, TapSequence):
        if taps.is_complex:
            return np.array([complex(v) for v in taps.values], dtype=np.complex128)
        return np.array([float(v) for v in taps.values], dtype=np.float64)
    arr = np.asarray(taps)
    if np.iscomplexobj(arr):
        return arr.astype(np.complex128)
    if arr.dtype == object:
        return np.array([float(v) for v in arr], dtype=np.float64)
    return arr.astype(np.float64)


def band_pairs(band_edges: Sequence[float]):
    """Validate ``band_edges`` and yield its (start, end) pairs."""
    if len(band_edges) % 2 != 0:
        raise InvalidBandEdgesError("Invalid number of band edges!")
    edges = [float(f) for f in band_edges]
    for i in range(1, len(edges)):
        if edges[i] < edges[i - 1]:
            raise InvalidBandEdgesError(
                f"Band edges must be non-decreasing; got {edges[i]} after "
                f"{edges[i - 1]} at index {i}")
    return [(edges[i], edges[i + 1]) for i in range(0, len(edges), 2)]


# ─────────────────────── response computation ─────────────────────── #

def compute_frequency_response_db(taps, fft_length_scalar: float = DEFAULT_FFT_LENGTH_SCALAR) -> np.ndarray:
    """
    Magnitude response in dB on an FFT grid centered on 0.

    The taps are zero-padded symmetrically to 2^ceil(log2(N·scalar)) points,
    transformed, shifted so index ``len/2`` is normalized frequency 0, and
    converted with 20·log10|H|. Exact nulls come out as -inf.
    """
    h = as_numeric_array(taps)
    N = len(h)
    M = next_pow2(max(int(math.ceil(N * fft_length_scalar)), N, 1))

    pad_left = (M - N) // 2
    padded = np.zeros(M, dtype=h.dtype)
    padded[pad_left:pad_left + N] = h

    H = np.fft.fftshift(np.fft.fft(padded))
    with np.errstate(divide='ignore'):
        return 20 * np.log10(np.abs(H))


def interpolate_response(freq_normalized: float, response_db: np.ndarray) -> float:
    """
    Linearly interpolate ``response_db`` at a normalized frequency.

    The fractional bin is ``freq·len + len/2``; frequencies beyond either
    end of the array take the end value.
    """
    n = len(response_db)
    index = freq_normalized * n + n / 2
    if index <= 0:
        return float(response_db[0])
    if index >= n - 1:
        return float(response_db[n - 1])

    lo = math.floor(index)
    hi = math.ceil(index)
    if lo == hi:
        return float(response_db[lo])
    t = index - lo
    # weights are strictly inside (0, 1), so a -inf bin yields -inf, never nan
    return float((1 - t) * response_db[lo] + t * response_db[hi])


def compute_evenly_spaced_samples(count: int, band_edges: Sequence[float]) -> List[float]:
    """
    ``count`` frequencies spread evenly over the total measure of a band union.

    Samples step linearly inside a band and jump across a gap the moment the
    remaining step would pass a band's end, so no sample lands in a gap. The
    first and last samples are exactly the first and last edges.

    >>> compute_evenly_spaced_samples(5, [0, 1, 2, 3])
    [0.0, 0.5, 1.0, 2.5, 3.0]
    """
    bands = band_pairs(band_edges)
    if count < 1 or not bands:
        return []
    if count == 1:
        return [bands[0][0]]

    total = sum(end - start for start, end in bands)
    step = total / (count - 1)

    samples = [bands[0][0]]
    band = 0
    position = bands[0][0]
    for _ in range(count - 2):
        remaining = step
        while position + remaining > bands[band][1] and band < len(bands) - 1:
            remaining -= bands[band][1] - position
            band += 1
            position = bands[band][0]
        position += remaining
        samples.append(position)
    samples.append(bands[-1][1])
    return samples


# ─────────────────────── band measurement ─────────────────────── #

def measure_band_response(taps, band_edges: Sequence[float],
                          fft_length_scalar: float = DEFAULT_FFT_LENGTH_SCALAR,
                          response_db: Optional[np.ndarray] = None) -> List[FilterBandResponse]:
    """
    Min/max response (dB) of ``taps`` within each band of ``band_edges``.

    Each band is seeded with the interpolated values exactly at its edges,
    then every FFT bin between the edges is scanned.

    Raises
    ------
    InvalidBandEdgesError
        If ``band_edges`` has odd length. Checked before any measurement.
    """
    bands = band_pairs(band_edges)
    if response_db is None:
        response_db = compute_frequency_response_db(taps, fft_length_scalar)
    n = len(response_db)

    results = []
    for start, end in bands:
        v_start = interpolate_response(start, response_db)
        v_end = interpolate_response(end, response_db)
        lo_val = min(v_start, v_end)
        hi_val = max(v_start, v_end)

        first = max(math.ceil(start * n + n / 2), 0)
        last = min(math.floor(end * n + n / 2), n - 1)
        if first <= last:
            segment = response_db[first:last + 1]
            lo_val = min(lo_val, float(segment.min()))
            hi_val = max(hi_val, float(segment.max()))

        results.append(FilterBandResponse(min_value_db=lo_val, max_value_db=hi_val))
        log.debug("Band [%.5f, %.5f]: min %.4f dB, max %.4f dB", start, end, lo_val, hi_val)
    return results


def measure_response(taps, band_edges: Sequence[float],
                     fft_length_scalar: float = DEFAULT_FFT_LENGTH_SCALAR) -> List[FilterBandResponse]:
    """Ad-hoc inspection entry point; same as :func:`measure_band_response`."""
    return measure_band_response(taps, band_edges, fft_length_scalar)


def _per_band(values, n_bands: int, what: str) -> List[float]:
    values = [float(v) for v in np.atleast_1d(values)]
    if len(values) == 1:
        return values * n_bands
    if len(values) != n_bands:
        raise ValueError(f"{what}: got {len(values)} values for {n_bands} bands")
    return values


def check_against_spec(taps, passband_edges: Sequence[float], stopband_edges: Sequence[float],
                       allowed_ripple_db, desired_stopband_db,
                       fft_length_scalar: float = DEFAULT_FFT_LENGTH_SCALAR) -> SpecTestResult:
    """
    Measure ``taps`` and compare each band with its requirement.

    Parameters
    ----------
    allowed_ripple_db : float or sequence of float
        Largest |response| (dB) tolerated in each passband.
    desired_stopband_db : float or sequence of float
        Highest response (dB, normally negative) tolerated in each stopband.
        A single value applies to every band.

    Returns
    -------
    SpecTestResult
        Fails with reason 'passband' at the first passband out of range;
        otherwise 'stopband' at the first stopband above its limit. Bands
        are checked in ascending order and the first failure wins.
    """
    response_db = compute_frequency_response_db(taps, fft_length_scalar)
    passband = measure_band_response(taps, passband_edges, response_db=response_db)
    stopband = measure_band_response(taps, stopband_edges, response_db=response_db)

    ripple = _per_band(allowed_ripple_db, len(passband), "allowed ripple")
    desired = _per_band(desired_stopband_db, len(stopband), "desired stopband")

    for band, allowed in zip(passband, ripple):
        if abs(band.max_value_db) > allowed or abs(band.min_value_db) > allowed:
            return SpecTestResult(False, passband, stopband, 'passband')
    for band, limit in zip(stopband, desired):
        if band.max_value_db > limit:
            return SpecTestResult(False, passband, stopband, 'stopband')
    return SpecTestResult(True, passband, stopband)
