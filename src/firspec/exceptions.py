"""Exceptions raised by the filter design core."""


class FilterDesignError(ValueError):
    """Base exception for filter design errors."""

    pass


class InvalidBandEdgesError(FilterDesignError):
    """Raised when a band edge set cannot be read as (start, end) pairs.

    This occurs when:
    - The edge sequence has an odd number of elements
    - Edges decrease across band-pair boundaries
    """

    pass


class InvalidDesignRequestError(FilterDesignError):
    """Raised when a design request violates its invariants.

    This occurs when:
    - A normalized frequency lies outside [0, 0.5]
    - For bandpass/bandstop, the low cutoff is not below the high cutoff
    - The filter type, tap kind or output precision is unknown
    """

    pass


class RemezPeakCountError(FilterDesignError):
    """Raised when the Remez exchange finds the wrong number of error peaks.

    The band configuration or grid density cannot be resolved; no
    automatic grid-density escalation is attempted.
    """

    pass
