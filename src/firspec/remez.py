#!/usr/bin/env python3
"""
Parks-McClellan (Remez exchange) equiripple FIR design
======================================================

Designs an odd-length, symmetric (type I) FIR filter whose weighted error
against a desired response is minimax-optimal over a union of bands.

The amplitude response of a type I filter with T = 2L + 1 taps is a
degree-L polynomial in x = cos(2πF), so the exchange runs on L + 2
extremal frequencies:

1. seed the extremal set evenly over the band union
2. solve for the ripple ρ and interpolate H(F) barycentrically
3. locate the alternating peaks of E(F) = W(F)·(D(F) - H(F))
4. stop when the peaks coincide with the extremal set, otherwise swap and
   repeat

Taps come from sampling the converged H(F) at F = m/T and inverting the
DFT of the zero-phase response.
"""

from __future__ import annotations
import logging
import time
import warnings
from typing import Callable, List, Sequence, Tuple

import numpy as np

from .exceptions import InvalidBandEdgesError, InvalidDesignRequestError, RemezPeakCountError
from .fir_design import fmt_time, force_odd
from .response import band_pairs, compute_evenly_spaced_samples
from .types import TapSequence

log = logging.getLogger(__name__)

DEFAULT_GRID_DENSITY = 16
DEFAULT_REMEZ_MAX_ITERATIONS = 100


# ───────────────────────── grid ────────────────────────── #

def _band_segments(grid: np.ndarray, bands: List[Tuple[float, float]]) -> List[Tuple[int, int]]:
    """[start, stop) grid index ranges falling inside each band."""
    segments = []
    i = 0
    for b, (_, end) in enumerate(bands):
        start = i
        last_band = b == len(bands) - 1
        while i < len(grid) and (last_band or grid[i] <= end):
            i += 1
        if i > start:
            segments.append((start, i))
    return segments


def _seed_extremals(grid: np.ndarray, band_edges: Sequence[float], count: int) -> np.ndarray:
    seed = np.asarray(compute_evenly_spaced_samples(count, band_edges))
    idx = np.abs(grid[:, None] - seed[None, :]).argmin(axis=0)
    if len(np.unique(idx)) != count:
        raise ValueError(
            f"Frequency grid of {len(grid)} points is too coarse for "
            f"{count} extremal frequencies; raise grid_density")
    return idx


# ─────────────────────── barycentric interpolation ─────────────────────── #

def _barycentric_weights(x: np.ndarray) -> np.ndarray:
    """1 / Π 2(x_k - x_j); the factor 2 keeps the products near unity."""
    w = np.empty(len(x))
    for k in range(len(x)):
        w[k] = 1.0 / np.prod(2.0 * (x[k] - np.delete(x, k)))
    return w


def _evaluate(x: np.ndarray, x_ref: np.ndarray, weights: np.ndarray,
              values: np.ndarray) -> np.ndarray:
    """Barycentric form of the polynomial through (x_ref, values)."""
    diff = x[:, None] - x_ref[None, :]
    with np.errstate(divide='ignore', invalid='ignore'):
        t = weights / diff
        H = (t @ values) / t.sum(axis=1)
    rows, cols = np.nonzero(diff == 0)
    H[rows] = values[cols]
    return H


# ─────────────────────── extremal selection ─────────────────────── #

def _find_extremals(error: np.ndarray, segments: List[Tuple[int, int]], count: int) -> np.ndarray:
    """
    Alternating peaks of ``error`` to serve as the next extremal set.

    Candidates are taken band by band on the signed error: a positive
    point no smaller than its neighbours, a negative point no larger than
    its neighbours, and both ends of every band. A band end where E has
    just changed sign is a lobe of its own even when |E| is still small
    there. Consecutive candidates of equal sign keep the larger one. One
    surplus peak is resolved by dropping the smaller of the two outermost
    peaks.

    Raises
    ------
    RemezPeakCountError
        If the peak count cannot be brought to ``count``.
    """
    peaks = []
    for start, stop in segments:
        e = error[start:stop]
        candidate = np.zeros(len(e), dtype=bool)
        if len(e) > 2:
            mid, prev, nxt = e[1:-1], e[:-2], e[2:]
            candidate[1:-1] = (((mid > 0) & (mid >= prev) & (mid >= nxt)) |
                               ((mid < 0) & (mid <= prev) & (mid <= nxt)))
        candidate[0] = candidate[-1] = True
        candidate &= e != 0
        peaks.extend(np.nonzero(candidate)[0] + start)

    alternating: List[int] = []
    for p in peaks:
        if alternating and np.sign(error[p]) == np.sign(error[alternating[-1]]):
            if abs(error[p]) > abs(error[alternating[-1]]):
                alternating[-1] = p
        else:
            alternating.append(p)

    if len(alternating) == count + 1:
        if abs(error[alternating[0]]) < abs(error[alternating[-1]]):
            alternating.pop(0)
        else:
            alternating.pop()
    if len(alternating) != count:
        raise RemezPeakCountError(
            f"Invalid number of error peaks: found {len(alternating)}, expected {count}")
    return np.array(alternating, dtype=int)


# ─────────────────────── design routine ─────────────────────── #

def design_equiripple(band_edges: Sequence[float],
                      weight_fn: Callable[[float], float],
                      desired_fn: Callable[[float], float],
                      tap_count: int,
                      grid_density: int = DEFAULT_GRID_DENSITY,
                      max_iterations: int = DEFAULT_REMEZ_MAX_ITERATIONS,
                      log: logging.Logger = log) -> TapSequence:
    """
    Equiripple FIR design by Remez exchange.

    Parameters
    ----------
    band_edges : sequence of float
        Band union over [0, 0.5] as (start, end) pairs; transition bands
        are the gaps between pairs.
    weight_fn, desired_fn : callable
        W(F) and D(F), called with a normalized frequency.
    tap_count : int
        Filter length; forced odd, at least 3.
    grid_density : int
        The dense error grid holds ``grid_density * tap_count`` points.
    max_iterations : int
        Exchange cap. Reaching it issues a ``RuntimeWarning`` and returns
        the current solution.

    Returns
    -------
    TapSequence
        Real, symmetric taps as float64.

    Raises
    ------
    InvalidBandEdgesError
        Odd-length edges, decreasing edges or edges outside [0, 0.5].
    RemezPeakCountError
        When the error peaks cannot form a new extremal set. Designs with
        more than two bands can hit this.
    """
    bands = band_pairs(band_edges)
    if not bands:
        raise InvalidBandEdgesError("At least one band is required")
    for start, end in bands:
        if start < 0 or end > 0.5:
            raise InvalidBandEdgesError(
                f"Band [{start}, {end}] must lie within [0, 0.5]")
    if tap_count < 3:
        raise InvalidDesignRequestError(f"tap_count must be at least 3, got {tap_count}")
    if max_iterations < 1:
        raise ValueError("max_iterations must be >= 1")

    T = force_odd(tap_count)
    L = (T - 1) // 2
    r = L + 2

    grid = np.array(compute_evenly_spaced_samples(grid_density * T, band_edges))
    segments = _band_segments(grid, bands)
    x = np.cos(2 * np.pi * grid)
    D = np.array([desired_fn(float(f)) for f in grid], dtype=np.float64)
    W = np.array([weight_fn(float(f)) for f in grid], dtype=np.float64)
    signs = (-1.0) ** np.arange(r)

    ext = _seed_extremals(grid, band_edges, r)
    log.info("Remez exchange: %d taps, %d extremal frequencies, %d grid points",
             T, r, len(grid))
    t0 = time.perf_counter()

    for iteration in range(1, max_iterations + 1):
        x_ext = x[ext]
        a = _barycentric_weights(x_ext)
        rho = np.dot(a, D[ext]) / np.dot(signs * a, 1.0 / W[ext])
        C = D[ext] - signs * rho / W[ext]

        x_ref = x_ext[:-1]
        b = _barycentric_weights(x_ref)
        H = _evaluate(x, x_ref, b, C[:-1])
        error = W * (D - H)

        new_ext = _find_extremals(error, segments, r)
        log.debug("Iteration %d: rho=%.3e, max |E|=%.3e", iteration, rho, np.abs(error).max())
        if np.array_equal(new_ext, ext):
            log.info("Remez converged after %d iteration(s) in %s, ripple %.3e",
                     iteration, fmt_time(time.perf_counter() - t0), abs(rho))
            break
        ext = new_ext
    else:
        warnings.warn(
            f"Remez exchange did not converge after {max_iterations} iterations; "
            "returning the current solution",
            RuntimeWarning)

    # zero-phase response sampled at F = m/T, m = 0..L
    m = np.arange(L + 1)
    A = _evaluate(np.cos(2 * np.pi * m / T), x_ref, b, C[:-1])
    half = (A[0] + 2 * (A[1:, None] * np.cos(2 * np.pi * np.outer(m[1:], m) / T)).sum(axis=0)) / T
    h = np.concatenate((half[:0:-1], half))

    return TapSequence('real', h)
