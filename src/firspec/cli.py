#!/usr/bin/env python3
"""
Spec-validated FIR designer – Kaiser window & Parks-McClellan
=============================================================

Designs lowpass, highpass, bandpass and bandstop FIR filters in
arbitrary precision, measures the true response and refines the design
until it meets the requested passband ripple and stopband attenuation.

CLI examples
------------
# Lowpass, cutoff 0.25, 0.1 transition, 60 dB stopband, ±0.1 dB ripple:
firspec lowpass --cutoff 0.25 --transition 0.1 --sb-atten 60 --pb-ripple 0.1

# Complex bandpass from 0.1 to 0.2, single-precision output:
firspec bandpass --cutoff 0.1 0.2 --transition 0.05 --kind complex \
    --precision single

# Parks-McClellan lowpass with 41 taps:
firspec lowpass --cutoff 0.2 --transition 0.1 --method parks-mcclellan --taps 41

# Replay a saved "filter design request" message:
firspec --request request.json --plot
"""

from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path

import numpy as np

from .precision import PRECISION_DTYPES
from .remez import DEFAULT_GRID_DENSITY
from .response import DEFAULT_FFT_LENGTH_SCALAR
from .serialization import decode_value, dumps, handle_message, parse_design_request, result_to_dict
from .types import FILTER_TYPES, TAP_KINDS, DesignParameters, DesignRequest
from .validation import DEFAULT_MAX_ITERATIONS, design_and_validate, design_equiripple_validated
from .verification import analyze_quantization_effects, plot_response, print_filter_stats


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="firspec",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        description=(
            "Spec-validated Kaiser / Parks-McClellan FIR designer.\n"
            "Frequencies are normalized to the sample rate (0.5 = Nyquist)."
        ),
    )
    p.add_argument("filter_type", nargs="?", choices=FILTER_TYPES,
                   help="Filter shape. Required unless --request is given.")
    p.add_argument("--request", type=Path,
                   help="JSON file holding a 'filter design request' message. "
                        "Overrides the shape and spec options.")

    # ─── Spec ───
    g = p.add_argument_group("Spec")
    g.add_argument("--cutoff", type=float, nargs="+",
                   help="Cutoff frequency; two values (low high) for bandpass/bandstop.")
    g.add_argument("--transition", type=float, default=0.05,
                   help="Transition bandwidth, centered on each cutoff.")
    g.add_argument("--pb-ripple", type=float, default=0.1,
                   help="Maximum passband ripple (dB, ±).")
    g.add_argument("--sb-atten", type=float, default=60,
                   help="Minimum stopband attenuation (dB).")

    # ─── Design ───
    g = p.add_argument_group("Design")
    g.add_argument("--method", choices=["window", "parks-mcclellan"], default="window",
                   help="Kaiser window with closed-loop refinement, or a single "
                        "Parks-McClellan design (real lowpass/highpass only).")
    g.add_argument("--kind", choices=TAP_KINDS, default="real",
                   help="Tap numeric type.")
    g.add_argument("--precision", choices=sorted(PRECISION_DTYPES), default="double",
                   help="Output tap precision.")
    g.add_argument("--taps", type=int,
                   help="Explicit tap count (forced odd). Default: Kaiser estimate.")
    g.add_argument("--bessel-iterations", type=int, default=1000,
                   help="Maximum I0 power-series terms.")
    g.add_argument("--max-iterations", type=int, default=DEFAULT_MAX_ITERATIONS,
                   help="Refinement attempt budget.")
    g.add_argument("--fft-scalar", type=float, default=DEFAULT_FFT_LENGTH_SCALAR,
                   help="Measurement FFT length relative to the tap count.")
    g.add_argument("--grid-density", type=int, default=DEFAULT_GRID_DENSITY,
                   help="Parks-McClellan grid density.")

    # ─── Output/Analysis ───
    g = p.add_argument_group("Output/Analysis")
    g.add_argument("--basename",
                   help="Filename stem for outputs. Default is descriptive, e.g. "
                        "'lowpass_real_39tap'.")
    g.add_argument("--plot", action="store_true",
                   help="Show the magnitude response with band edges marked.")
    g.add_argument("--no-analysis", action="store_true",
                   help="Skip the analysis report after design.")

    # ─── Misc ───
    g = p.add_argument_group("Misc")
    g.add_argument("--debug", action="store_true",
                   help="Enable DEBUG-level logging for extra detail.")
    g.add_argument("--log-file", type=str,
                   help="Write all log output to this file in addition to the console.")
    return p


def _request_from_args(p: argparse.ArgumentParser, a: argparse.Namespace) -> DesignRequest:
    if a.filter_type is None:
        p.error("filter_type is required unless --request is given")
    if not a.cutoff:
        p.error("--cutoff is required for filter design")

    band_shaped = a.filter_type in ("bandpass", "bandstop")
    if band_shaped and len(a.cutoff) != 2:
        p.error(f"{a.filter_type} needs two cutoff values (low high)")
    if not band_shaped and len(a.cutoff) != 1:
        p.error(f"{a.filter_type} needs a single cutoff value")

    params = DesignParameters(
        cutoff=tuple(a.cutoff) if band_shaped else a.cutoff[0],
        transition_bandwidth=a.transition,
        min_stopband_attenuation_db=a.sb_atten,
        max_passband_ripple_db=a.pb_ripple,
        bessel_max_iterations=a.bessel_iterations,
        explicit_tap_count=a.taps,
    )
    return DesignRequest(a.filter_type, a.kind, params, a.precision).validate()


def main(argv=None) -> None:
    p = build_parser()
    a = p.parse_args(argv)

    log_handlers = [logging.StreamHandler(sys.stderr)]
    if a.log_file:
        log_format = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
        log_handlers.append(logging.FileHandler(a.log_file, mode='w'))
    else:
        log_format = "%(levelname)s %(message)s"
    logging.basicConfig(
        handlers=log_handlers,
        level=logging.DEBUG if a.debug else logging.INFO,
        format=log_format,
    )
    log = logging.getLogger("firspec")

    # ── design ──
    if a.request:
        message = json.loads(a.request.read_text())
        method, request, _ = parse_design_request(message["payload"])
        reply = handle_message(message)
        payload = reply["payload"]
        log.info("Served request from %s", a.request)
        result = None
    else:
        request = _request_from_args(p, a)
        if a.method == "window":
            method = "window"
            result = design_and_validate(request, max_iterations=a.max_iterations,
                                         fft_length_scalar=a.fft_scalar, log=log)
        else:
            method = "parksMcClellan"
            result = design_equiripple_validated(request, grid_density=a.grid_density,
                                                 fft_length_scalar=a.fft_scalar, log=log)
        payload = result_to_dict(result, request, method)

    if not payload["specMet"]:
        log.warning("Design does NOT meet the requested spec; saving last attempt anyway")

    taps = result.taps if result is not None else np.asarray(decode_value(payload["taps"]))

    # ── analysis ──
    if result is not None and not a.no_analysis:
        print_filter_stats(result, request, log)
        analyze_quantization_effects(result.taps, result.passband_edges,
                                     result.stopband_edges, log)

    # ── save outputs ──
    stem = a.basename or f"{request.filter_type}_{request.tap_kind}_{len(taps)}tap"
    if np.iscomplexobj(taps):
        np.savetxt(stem + ".txt", np.column_stack((taps.real, taps.imag)), fmt="%.18e")
    else:
        np.savetxt(stem + ".txt", taps, fmt="%.18e")
    np.save(stem + ".npy", taps)
    np.savez(stem + ".npz", taps=taps, request=request.to_dict(),
             spec_met=payload["specMet"], design_method=method)
    Path(stem + ".json").write_text(dumps({"messageType": "filter object", "payload": payload},
                                          indent=2))
    log.info("Saved %s.txt, %s.npy, %s.npz and %s.json", stem, stem, stem, stem)

    if a.plot:
        plot_response(taps, payload["passbandEdges"], payload["stopbandEdges"],
                      title=f"{request.tap_kind} {request.filter_type}, {len(taps)} taps")

    sys.exit(0 if payload["specMet"] else 1)


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        logging.error("Fatal: %s", e)
        logging.debug("Traceback:", exc_info=True)
        sys.exit(1)
