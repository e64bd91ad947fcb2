#!/usr/bin/env python3
"""
Analysis report for designed filter taps.
"""

import logging
from typing import Any, Dict, Optional, Sequence

import numpy as np
from scipy import signal
import matplotlib.pyplot as plt

from .kaiser import design_attenuation, kaiser_beta
from .precision import cast_to_precision
from .response import as_numeric_array
from .types import DesignRequest, ValidatedFilterResult

log = logging.getLogger(__name__)

# amplitude-domain floors relative to the largest tap
IDEAL_FLOOR_DB = {
    'float32': -149.0,
    'float16': -66.2,
}


def _response(taps: np.ndarray, n_points: int = 4096):
    """freqz over [0, 0.5] for real taps, [-0.5, 0.5) for complex taps."""
    whole = np.iscomplexobj(taps)
    f, H = signal.freqz(taps, worN=n_points * (2 if whole else 1), whole=whole, fs=1.0)
    if whole:
        f = np.where(f >= 0.5, f - 1.0, f)
        order = np.argsort(f)
        f, H = f[order], H[order]
    return f, 20 * np.log10(np.abs(H) + 1e-300)


def _band_mask(f: np.ndarray, edges: Sequence[float]) -> np.ndarray:
    mask = np.zeros(len(f), dtype=bool)
    for i in range(0, len(edges), 2):
        mask |= (f >= edges[i]) & (f <= edges[i + 1])
    return mask


def analyze_quantization_effects(taps, passband_edges: Sequence[float],
                                 stopband_edges: Sequence[float],
                                 log: logging.Logger = log) -> Dict[str, Dict[str, float]]:
    """
    Compare single and half precision copies of ``taps`` with double.

    Parameters
    ----------
    taps : TapSequence or array_like
        Taps at any precision; the double-precision copy is the reference.
    passband_edges, stopband_edges : sequence of float
        Band edge sets used to locate the regions to compare.

    Returns
    -------
    dict
        Per width: RMS noise, noise in dB relative to the largest tap,
        max passband deviation from double (dB), stopband floor (dB) and
        effective bits.
    """
    output_lines = []

    def output(msg=""):
        print(msg)
        output_lines.append(msg)

    output("\nQuantization Analysis")
    output("-" * 25)

    taps_f64 = cast_to_precision(taps, 'double')
    max_tap = np.abs(taps_f64).max()
    f, mag_f64 = _response(taps_f64)
    pb = _band_mask(f, passband_edges)
    sb = _band_mask(f, stopband_edges)

    results = {}
    for width in ('float32', 'float16'):
        quantized = cast_to_precision(taps_f64, width)
        noise = taps_f64 - quantized.astype(taps_f64.dtype)
        rms = float(np.sqrt(np.mean(np.abs(noise) ** 2)))
        _, mag = _response(quantized.astype(taps_f64.dtype))

        if rms > 0 and max_tap > 0:
            noise_db = 20 * np.log10(rms / max_tap)
            eff_bits = min(42.0, max(0.0, -noise_db / 6.02))
        else:
            noise_db, eff_bits = -np.inf, np.inf

        results[width] = {
            'rms_noise': rms,
            'noise_db': noise_db,
            'passband_error_db': float(np.abs(mag_f64[pb] - mag[pb]).max()) if pb.any() else 0.0,
            'stopband_floor_db': float(mag[sb].max()) if sb.any() else -np.inf,
            'effective_bits': eff_bits,
        }

    output("Quantization noise (RMS):")
    for width, r in results.items():
        output(f"  {width}: {r['rms_noise']:.2e} ({r['noise_db']:.1f} dB)")

    if pb.any():
        output("\n  Max passband error (vs float64):")
        for width, r in results.items():
            output(f"    {width}: {r['passband_error_db']:.6f} dB")

    if sb.any():
        output("\n  Stopband floor (absolute):")
        for width, r in results.items():
            excess = r['stopband_floor_db'] - IDEAL_FLOOR_DB[width]
            output(f"    {width}: {r['stopband_floor_db']:.1f} dB "
                   f"({excess:+.1f} dB above ideal floor {IDEAL_FLOOR_DB[width]:.1f} dB)")

    output("\nEffective resolution:")
    for width, r in results.items():
        if np.isfinite(r['effective_bits']):
            output(f"  {width}: ~{r['effective_bits']:.1f} bits")
        else:
            output(f"  {width}: ∞ bits (below measurement floor)")

    for line in output_lines:
        log.debug(line.rstrip())
    return results


def print_filter_stats(result: ValidatedFilterResult, request: DesignRequest,
                       log: logging.Logger = log) -> None:
    """Print the design configuration, Kaiser theory, DC gain and response probes."""
    p = request.parameters
    taps = as_numeric_array(result.taps)
    N = len(taps)
    A = design_attenuation(p.min_stopband_attenuation_db, p.max_passband_ripple_db)

    print("\n" + "=" * 60)
    print("FILTER ANALYSIS REPORT")
    print("=" * 60)

    print("\nFilter Configuration")
    print("-" * 20)
    print(f"Type           : {request.tap_kind} {request.filter_type}")
    print(f"Cutoff         : {p.cutoff}")
    print(f"Transition     : {p.transition_bandwidth}")
    print(f"PB ripple spec : ±{p.max_passband_ripple_db} dB")
    print(f"SB atten spec  : {p.min_stopband_attenuation_db} dB")
    print(f"Output         : {request.output_precision}")

    print("\nFilter Design Theory")
    print("-" * 20)
    print(f"Taps           : {N:,}")
    print(f"Design atten   : {A:.2f} dB")
    print(f"Kaiser β       : {kaiser_beta(A):.4f}")
    final = result.final_parameters
    if final is not None and final != p:
        print(f"Refined to     : ripple {final.max_passband_ripple_db:.5f} dB, "
              f"atten {final.min_stopband_attenuation_db:.2f} dB")
    print(f"Iterations     : {result.iterations}")
    print(f"Spec met       : {'yes' if result.spec_met else 'NO'}")

    dc_gain = np.sum(taps)
    dc_gain_db = 20 * np.log10(abs(dc_gain) + 1e-300)
    print(f"DC gain: {dc_gain:.12f} ({dc_gain_db:.9f} dB)")

    print("\nMeasured Band Response")
    print("-" * 25)
    for label, edges, bands in (
            ("pass", result.passband_edges, result.measured_passband_response),
            ("stop", result.stopband_edges, result.measured_stopband_response)):
        for i, band in enumerate(bands):
            print(f"  {label} [{edges[2 * i]:+.4f}, {edges[2 * i + 1]:+.4f}]: "
                  f"min {band.min_value_db:9.4f} dB, max {band.max_value_db:9.4f} dB")

    print("\nFrequency Response Probes")
    print("-" * 25)
    probes = sorted(set(result.passband_edges) | set(result.stopband_edges))
    _, H = signal.freqz(taps, worN=2 * np.pi * np.array(probes))
    mag_db = 20 * np.log10(np.abs(H) + 1e-300)
    for f, m in zip(probes, mag_db):
        label = " (DC)" if f == 0 else ""
        print(f"  {f:+.5f}: {m:9.4f} dB{label}")

    print("\n" + "=" * 60)
    log.debug("Report printed for %d taps", N)


def plot_response(taps, passband_edges: Sequence[float] = (),
                  stopband_edges: Sequence[float] = (),
                  title: Optional[str] = None, show: bool = True) -> Any:
    """Magnitude response with the band edges marked; returns the figure."""
    h = as_numeric_array(taps)
    f, mag_db = _response(h, 8192)

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.plot(f, mag_db)
    for edge in passband_edges:
        ax.axvline(edge, color='g', linestyle='--', alpha=0.6)
    for edge in stopband_edges:
        ax.axvline(edge, color='r', linestyle='--', alpha=0.6)
    ax.set_xlabel("Normalized frequency (cycles/sample)")
    ax.set_ylabel("Magnitude (dB)")
    ax.set_title(title or f"FIR magnitude response ({len(h)} taps)")
    ax.grid(True, which="both", ls=":")
    ax.set_ylim(max(mag_db.min(), -200) - 10, 5)
    fig.tight_layout()
    if show:
        plt.show()
    return fig
