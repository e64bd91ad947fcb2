"""
Plain data shapes exchanged with the design core.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict, field
from typing import Optional, Tuple, Union, Dict, Any, List

import numpy as np

from .exceptions import InvalidDesignRequestError


FILTER_TYPES = ("lowpass", "highpass", "bandpass", "bandstop")
TAP_KINDS = ("real", "complex")

Cutoff = Union[float, Tuple[float, float]]


# ───────────────────────── Design inputs ────────────────────────── #

@dataclass(frozen=True)
class DesignParameters:
    """Window-method design knobs; rebuilt (never mutated) per refinement."""
    cutoff: Cutoff
    transition_bandwidth: float
    min_stopband_attenuation_db: float
    max_passband_ripple_db: float
    bessel_max_iterations: int = 1000
    explicit_tap_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        if isinstance(self.cutoff, tuple):
            d['cutoff'] = list(self.cutoff)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'DesignParameters':
        d = dict(d)
        if isinstance(d.get('cutoff'), (list, tuple)):
            d['cutoff'] = tuple(float(f) for f in d['cutoff'])
        return cls(**d)


@dataclass(frozen=True)
class DesignRequest:
    """Complete description of one filter design request."""
    filter_type: str
    tap_kind: str
    parameters: DesignParameters
    output_precision: str = 'double'

    def validate(self) -> 'DesignRequest':
        """Check the request invariants, returning ``self`` when they hold."""
        # precision.py imports this module
        from .precision import resolve_precision

        if self.filter_type not in FILTER_TYPES:
            raise InvalidDesignRequestError(f"Unknown filter type: {self.filter_type!r}")
        if self.tap_kind not in TAP_KINDS:
            raise InvalidDesignRequestError(f"Unknown tap kind: {self.tap_kind!r}")
        resolve_precision(self.output_precision)

        p = self.parameters
        band_shaped = self.filter_type in ('bandpass', 'bandstop')
        if band_shaped:
            if not isinstance(p.cutoff, tuple) or len(p.cutoff) != 2:
                raise InvalidDesignRequestError(
                    f"{self.filter_type} needs a (low, high) cutoff pair, got {p.cutoff!r}")
            low, high = p.cutoff
            if not low < high:
                raise InvalidDesignRequestError(
                    f"Low cutoff {low} must be below high cutoff {high}")
            freqs = [low, high]
        else:
            if isinstance(p.cutoff, tuple):
                raise InvalidDesignRequestError(
                    f"{self.filter_type} needs a single cutoff, got {p.cutoff!r}")
            freqs = [p.cutoff]
        freqs.append(p.transition_bandwidth)

        for f in freqs:
            if not 0 <= f <= 0.5:
                raise InvalidDesignRequestError(
                    f"Normalized frequency {f} must lie in [0, 0.5]")
        if p.transition_bandwidth <= 0:
            raise InvalidDesignRequestError("Transition bandwidth must be positive")
        if p.max_passband_ripple_db <= 0:
            raise InvalidDesignRequestError("Passband ripple must be positive")
        if p.bessel_max_iterations < 1:
            raise InvalidDesignRequestError("besselMaxIterations must be >= 1")
        if p.explicit_tap_count is not None and p.explicit_tap_count < 1:
            raise InvalidDesignRequestError("Explicit tap count must be positive")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            'filter_type': self.filter_type,
            'tap_kind': self.tap_kind,
            'parameters': self.parameters.to_dict(),
            'output_precision': self.output_precision,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'DesignRequest':
        return cls(
            filter_type=d['filter_type'],
            tap_kind=d['tap_kind'],
            parameters=DesignParameters.from_dict(d['parameters']),
            output_precision=d.get('output_precision', 'double'),
        )


# ───────────────────────── Design outputs ────────────────────────── #

@dataclass(frozen=True)
class TapSequence:
    """Real or complex tap sequence; ``kind`` is decided once per request."""
    kind: str
    values: np.ndarray

    def __post_init__(self):
        if self.kind not in TAP_KINDS:
            raise InvalidDesignRequestError(f"Unknown tap kind: {self.kind!r}")

    def __len__(self) -> int:
        return len(self.values)

    @property
    def is_complex(self) -> bool:
        return self.kind == 'complex'


@dataclass(frozen=True)
class FilterBandResponse:
    """Measured extremes (dB) within one band, edges included."""
    min_value_db: float
    max_value_db: float


@dataclass(frozen=True)
class SpecTestResult:
    spec_met: bool
    passband_response: List[FilterBandResponse]
    stopband_response: List[FilterBandResponse]
    failure_reason: Optional[str] = None  # 'passband' or 'stopband'


@dataclass(frozen=True)
class ValidatedFilterResult:
    """Terminal artifact of the refinement loop."""
    taps: np.ndarray
    spec_met: bool
    measured_passband_response: List[FilterBandResponse]
    measured_stopband_response: List[FilterBandResponse]
    iterations: int = 0
    attempts: Tuple[DesignParameters, ...] = field(default_factory=tuple)
    passband_edges: Tuple[float, ...] = field(default_factory=tuple)
    stopband_edges: Tuple[float, ...] = field(default_factory=tuple)

    @property
    def final_parameters(self) -> Optional[DesignParameters]:
        return self.attempts[-1] if self.attempts else None
