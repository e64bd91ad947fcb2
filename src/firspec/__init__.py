"""
firspec - Spec-validated arbitrary-precision FIR filter design.
"""

from .exceptions import (
    FilterDesignError,
    InvalidBandEdgesError,
    InvalidDesignRequestError,
    RemezPeakCountError,
)
from .fir_design import design_raw
from .precision import cast_to_precision
from .remez import design_equiripple
from .response import check_against_spec, measure_response
from .types import (
    DesignParameters,
    DesignRequest,
    FilterBandResponse,
    SpecTestResult,
    TapSequence,
    ValidatedFilterResult,
)
from .validation import design_and_validate, design_equiripple_validated

__version__ = "0.1.0"
__all__ = [
    "design_and_validate",
    "design_equiripple_validated",
    "design_raw",
    "design_equiripple",
    "measure_response",
    "check_against_spec",
    "cast_to_precision",
    "DesignParameters",
    "DesignRequest",
    "TapSequence",
    "FilterBandResponse",
    "SpecTestResult",
    "ValidatedFilterResult",
    "FilterDesignError",
    "InvalidBandEdgesError",
    "InvalidDesignRequestError",
    "RemezPeakCountError",
]
