"""
Arbitrary-precision math primitives
===================================

Normalized sinc and the order-0 modified Bessel function of the first kind,
evaluated with mpmath so rounding error does not compound across hundreds
of filter taps.

Every routine takes the ``MPContext`` it should compute in. A context is
created per design request by :func:`precision_context`; the global
``mpmath.mp`` context is never touched, so concurrent requests cannot
change each other's working precision.
"""

from typing import Optional

from mpmath import MPContext


DEFAULT_DPS = 64
DEFAULT_BESSEL_MAX_ITERATIONS = 1000
DEFAULT_BESSEL_TOLERANCE = '1.0e-14'


def precision_context(dps: int = DEFAULT_DPS) -> MPContext:
    """Return a fresh mpmath context working at ``dps`` decimal digits."""
    ctx = MPContext()
    ctx.dps = dps
    return ctx


def sinc(x, ctx: Optional[MPContext] = None):
    """
    Normalized sinc, sin(πx)/(πx), with sinc(0) == 1 exactly.

    Parameters
    ----------
    x : number or mpf
        Argument; converted into ``ctx``.
    ctx : MPContext
        Precision regime shared with the caller. pi, the product and the
        sine are all evaluated in it.
    """
    if ctx is None:
        ctx = precision_context()
    x = ctx.mpf(x)
    if x == 0:
        return ctx.mpf(1)
    pix = ctx.pi * x
    return ctx.sin(pix) / pix


def bessel_i0(z, kmax: int = DEFAULT_BESSEL_MAX_ITERATIONS,
              tolerance=DEFAULT_BESSEL_TOLERANCE,
              ctx: Optional[MPContext] = None):
    """
    Modified Bessel function of the first kind, order 0, by power series.

        I0(z) = Σ_{k=0}^{kmax-1} (z²/4)^k / (k!)²

    The sum stops at the first term smaller than ``tolerance`` (that term is
    not added). If no term drops below it, all ``kmax`` terms are used,
    which gives a defined but less precise result.
    """
    if ctx is None:
        ctx = precision_context()
    z = ctx.mpf(z)
    tolerance = ctx.mpf(tolerance)
    quarter_z2 = z * z / 4

    acc = ctx.mpf(0)
    term = ctx.mpf(1)  # k = 0
    for k in range(kmax):
        if k > 0:
            # (z²/4)^k / (k!)² from the previous term
            term = term * quarter_z2 / (k * k)
        if abs(term) < tolerance:
            break
        acc += term
    return acc

