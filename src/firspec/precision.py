"""
Cast high-precision taps to a plain output numeric width.
"""

from typing import Union

import numpy as np

from .exceptions import InvalidDesignRequestError
from .types import TapSequence


PRECISION_DTYPES = {
    'double': np.float64,
    'single': np.float32,
    'half': np.float16,
    'float64': np.float64,
    'float32': np.float32,
    'float16': np.float16,
}

# numpy has no complex type with float16 parts; half-rounded components are
# exactly representable in complex64
COMPLEX_DTYPES = {
    np.float64: np.complex128,
    np.float32: np.complex64,
    np.float16: np.complex64,
}


def resolve_precision(width: str):
    """Map a precision name to its numpy real dtype."""
    try:
        return PRECISION_DTYPES[width]
    except KeyError:
        raise InvalidDesignRequestError(
            f"Unknown output precision {width!r}; "
            f"choose from {sorted(PRECISION_DTYPES)}") from None


def _is_complex(taps) -> bool:
    if isinstance(taps, TapSequence):
        return taps.is_complex
    arr = np.asarray(taps)
    if arr.dtype == object:
        return any(hasattr(v, 'imag') and v.imag != 0 for v in arr.ravel())
    return np.iscomplexobj(arr)


def cast_to_precision(taps: Union[TapSequence, np.ndarray], width: str = 'double') -> np.ndarray:
    """
    Round every tap to the nearest value representable at ``width``.

    Complex taps are rounded component-wise and recombined. The input is
    never modified; a new plain numpy array is returned.

    Parameters
    ----------
    taps : TapSequence or array_like
        High-precision taps (mpf/mpc objects) or an already cast array.
    width : str
        'double', 'single' or 'half' (or 'float64', 'float32', 'float16').
    """
    dtype = resolve_precision(width)
    values = taps.values if isinstance(taps, TapSequence) else taps

    if _is_complex(taps):
        re = np.array([float(v.real) for v in values], dtype=np.float64).astype(dtype)
        im = np.array([float(v.imag) for v in values], dtype=np.float64).astype(dtype)
        out = np.empty(len(re), dtype=COMPLEX_DTYPES[dtype])
        out.real = re
        out.imag = im
        return out

    return np.array([float(v) for v in values], dtype=np.float64).astype(dtype)
