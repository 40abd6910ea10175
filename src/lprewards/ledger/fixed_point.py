# src/lprewards/ledger/fixed_point.py
from __future__ import annotations

"""Checked fixed-point helpers (scale 1e18).

Values are plain Python ints holding a mantissa; "1.0" is SCALE. Every helper
validates its inputs and result against [0, U256_MAX] and raises a
RewardsError(arithmetic_error) instead of saturating or wrapping. Silent
clamping would corrupt accumulator and debt bookkeeping.
"""

from typing import Any

from lprewards.ledger.constants import BASIS_POINTS, SCALE, U256_MAX
from lprewards.runtime.errors import ARITHMETIC_ERROR, RewardsError


def _fail(reason: str, **details: Any) -> RewardsError:
    return RewardsError(ARITHMETIC_ERROR, reason, dict(details))


def require_uint(*xs: int) -> None:
    for x in xs:
        if isinstance(x, bool) or not isinstance(x, int):
            raise _fail("not_an_int", value=repr(x))
        if x < 0 or x > U256_MAX:
            raise _fail("out_of_bounds", value=int(x))


def _bounded(x: int, reason: str) -> int:
    if x > U256_MAX:
        raise _fail(reason)
    return x


def checked_add(x: int, y: int) -> int:
    require_uint(x, y)
    return _bounded(x + y, "overflow")


def checked_sub(x: int, y: int) -> int:
    require_uint(x, y)
    if y > x:
        raise _fail("underflow", x=x, y=y)
    return x - y


def checked_mul(x: int, y: int) -> int:
    require_uint(x, y)
    return _bounded(x * y, "overflow")


def mul_div(x: int, y: int, d: int) -> int:
    """floor(x * y / d) with a full-width intermediate product.

    The intermediate product is allowed to exceed U256 (it never leaves this
    function); the result is still bounded.
    """
    require_uint(x, y, d)
    if d == 0:
        raise _fail("division_by_zero")
    return _bounded((x * y) // d, "overflow")


def scale_mul(x: int, y: int) -> int:
    """x * y / SCALE, both operands scaled."""
    return mul_div(x, y, SCALE)


def scale_div(x: int, y: int) -> int:
    """x * SCALE / y."""
    return mul_div(x, SCALE, y)


def apply_bps(x: int, bps: int) -> int:
    if bps > BASIS_POINTS:
        raise _fail("bps_out_of_range", bps=bps)
    return mul_div(x, bps, BASIS_POINTS)
