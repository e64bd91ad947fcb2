"""
JSON transport for design requests and results.

High-precision numbers cross the boundary as tagged objects so nothing is
lost to float rounding:

    {"kind": "BigNumber", "value": "0.50002425914042070..."}
    {"kind": "Complex", "re": ..., "im": ...}

``re``/``im`` are decimal strings for mpmath complex values and plain JSON
numbers for numpy/Python complex values. A tap sequence keeps its kind:
``{"tapKind": "real", "values": [...]}``.

:func:`handle_message` implements the request-in/result-out exchange:
a ``"filter design request"`` message comes in, one ``"filter object"``
message goes back.
"""

from __future__ import annotations
import json
import logging
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np
from mpmath import MPContext
from mpmath.libmp import prec_to_dps, to_str

from .exceptions import InvalidDesignRequestError
from .precision_math import DEFAULT_BESSEL_MAX_ITERATIONS, precision_context
from .remez import DEFAULT_GRID_DENSITY
from .types import DesignParameters, DesignRequest, FilterBandResponse, TapSequence, ValidatedFilterResult
from .validation import design_and_validate, design_equiripple_validated

log = logging.getLogger(__name__)

BIGNUMBER_KIND = "BigNumber"
COMPLEX_KIND = "Complex"

REQUEST_MESSAGE = "filter design request"
RESULT_MESSAGE = "filter object"


# ───────────────────────── tagged numbers ────────────────────────── #

def _exact_str(x) -> str:
    """Decimal string with enough digits to parse back to the same mpf."""
    return to_str(x._mpf_, prec_to_dps(x.context.prec) + 3)


def encode_value(value: Any) -> Any:
    """Recursively turn ``value`` into JSON-ready data with tagged numbers."""
    # every MPContext has its own mpf/mpc classes, so match on the value protocol
    if hasattr(value, "_mpf_"):
        return {"kind": BIGNUMBER_KIND, "value": _exact_str(value)}
    if hasattr(value, "_mpc_"):
        return {"kind": COMPLEX_KIND, "re": _exact_str(value.real), "im": _exact_str(value.imag)}
    if isinstance(value, TapSequence):
        return {"tapKind": value.kind, "values": encode_value(value.values)}
    if isinstance(value, (complex, np.complexfloating)):
        return {"kind": COMPLEX_KIND, "re": float(value.real), "im": float(value.imag)}
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.ndarray):
        return [encode_value(v) for v in value]
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def decode_value(data: Any, ctx: Optional[MPContext] = None) -> Any:
    """Inverse of :func:`encode_value`; BigNumbers become mpf values in ``ctx``."""
    if isinstance(data, dict):
        kind = data.get("kind")
        if kind == BIGNUMBER_KIND:
            ctx = ctx or precision_context()
            return ctx.mpf(data["value"])
        if kind == COMPLEX_KIND:
            re, im = data["re"], data["im"]
            if isinstance(re, str) or isinstance(im, str):
                ctx = ctx or precision_context()
                return ctx.mpc(ctx.mpf(re), ctx.mpf(im))
            return complex(re, im)
        if set(data) == {"tapKind", "values"}:
            values = np.empty(len(data["values"]), dtype=object)
            values[:] = decode_value(data["values"], ctx)
            return TapSequence(data["tapKind"], values)
        return {k: decode_value(v, ctx) for k, v in data.items()}
    if isinstance(data, list):
        return [decode_value(v, ctx) for v in data]
    return data


def dumps(value: Any, **kwargs) -> str:
    return json.dumps(encode_value(value), **kwargs)


def loads(text: str, ctx: Optional[MPContext] = None) -> Any:
    return decode_value(json.loads(text), ctx)


# ───────────────────────── message shapes ────────────────────────── #

def _band_to_dict(band: FilterBandResponse) -> Dict[str, float]:
    return {"minValueDb": band.min_value_db, "maxValueDb": band.max_value_db}


def _parameters_to_message(params: DesignParameters) -> Dict[str, Any]:
    cutoff = list(params.cutoff) if isinstance(params.cutoff, tuple) else params.cutoff
    d = {
        "cutoffFreq": cutoff,
        "transitionBandwidth": params.transition_bandwidth,
        "minStopbandAttenuation": params.min_stopband_attenuation_db,
        "maxPassbandRipple": params.max_passband_ripple_db,
        "besselMaxIterations": params.bessel_max_iterations,
    }
    if params.explicit_tap_count is not None:
        d["explicitTapCount"] = params.explicit_tap_count
    return d


def _parameters_from_message(p: Dict[str, Any], attenuation_key: str) -> DesignParameters:
    cutoff = p["cutoffFreq"]
    if isinstance(cutoff, list):
        cutoff = tuple(cutoff)
    return DesignParameters(
        cutoff=cutoff,
        transition_bandwidth=p["transitionBandwidth"],
        min_stopband_attenuation_db=p[attenuation_key],
        max_passband_ripple_db=p["maxPassbandRipple"],
        bessel_max_iterations=p.get("besselMaxIterations", DEFAULT_BESSEL_MAX_ITERATIONS),
        explicit_tap_count=p.get("explicitTapCount", p.get("tapCount")),
    )


def parse_design_request(payload: Dict[str, Any]) -> Tuple[str, DesignRequest, Dict[str, Any]]:
    """
    Read a ``"filter design request"`` payload.

    Returns
    -------
    (design_method, request, options)
        ``options`` holds method-specific extras such as ``gridDensity``.
    """
    method = payload.get("designMethod", "window")
    parameters = payload.get("parameters", {})

    if method == "window":
        params = _parameters_from_message(parameters["windowParameters"], "minStopbandAttenuation")
        options = {}
    elif method == "parksMcClellan":
        params = _parameters_from_message(parameters, "stopbandAttenuation")
        options = {"gridDensity": parameters.get("gridDensity", DEFAULT_GRID_DENSITY)}
    else:
        raise InvalidDesignRequestError(f"Unknown filter design method: {method!r}")

    request = DesignRequest(
        filter_type=payload["filterType"],
        tap_kind=payload.get("tapNumericType", "real"),
        parameters=params,
        output_precision=payload.get("outputDatatype", "double"),
    )
    return method, request, options


def result_to_dict(result: ValidatedFilterResult, request: DesignRequest,
                   design_method: str = "window") -> Dict[str, Any]:
    """``"filter object"`` payload for a finished design."""
    final = result.final_parameters or request.parameters
    return {
        "designMethod": design_method,
        "filterType": request.filter_type,
        "tapNumericType": request.tap_kind,
        "outputDatatype": request.output_precision,
        "taps": encode_value(result.taps),
        "specMet": result.spec_met,
        "measuredPassbandResponse": [_band_to_dict(b) for b in result.measured_passband_response],
        "measuredStopbandResponse": [_band_to_dict(b) for b in result.measured_stopband_response],
        "passbandEdges": list(result.passband_edges),
        "stopbandEdges": list(result.stopband_edges),
        "iterations": result.iterations,
        "requestedParameters": _parameters_to_message(request.parameters),
        "finalParameters": _parameters_to_message(final),
    }


def handle_message(message: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Serve one design message.

    ``message`` is the decoded JSON object (or its text). The reply is a
    ``{"messageType": "filter object", "payload": ...}`` dict that
    ``json.dumps`` accepts directly.

    Raises
    ------
    InvalidDesignRequestError
        Unknown message type or design method, or an invalid request.
    """
    if isinstance(message, str):
        message = json.loads(message)

    message_type = message.get("messageType")
    if message_type != REQUEST_MESSAGE:
        raise InvalidDesignRequestError(
            f"Unknown message received by filter designer: {message_type!r}")

    method, request, options = parse_design_request(message["payload"])
    log.info("Design request: %s %s %s (%s precision)", method,
             request.tap_kind, request.filter_type, request.output_precision)

    if method == "window":
        result = design_and_validate(request)
    else:
        result = design_equiripple_validated(request, grid_density=options["gridDensity"])

    return {"messageType": RESULT_MESSAGE, "payload": result_to_dict(result, request, method)}
