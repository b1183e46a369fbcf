"""Decimal <-> base unit conversion for 6-decimal tokens (USDC)."""

from decimal import Decimal, Inexact, InvalidOperation, localcontext

from .errors import InvalidAmountError

TOKEN_DECIMALS = 6
MAX_UINT256 = 2**256 - 1


def _to_decimal(amount) -> Decimal:
    if isinstance(amount, bool):
        raise InvalidAmountError(f"Invalid amount: {amount!r}")
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, (int, float, str)):
        try:
            # floats go through str() so 0.1 stays 0.1
            return Decimal(str(amount).strip())
        except InvalidOperation:
            raise InvalidAmountError(f"Invalid amount: {amount!r}") from None
    raise InvalidAmountError(f"Unsupported amount type: {type(amount).__name__}")


def to_base_units(amount: Decimal | int | float | str) -> int:
    """
    Convert a decimal token amount to integer base units.

    Args:
        amount: Amount in whole tokens (e.g. "5", 0.25, Decimal("10"))

    Returns:
        Amount in base units (5 -> 5_000_000)

    Raises:
        InvalidAmountError: non-numeric, non-finite, zero, negative, more
            than 6 fractional digits, or above uint256
    """
    value = _to_decimal(amount)
    if not value.is_finite():
        raise InvalidAmountError(f"Amount must be finite, got {amount!r}")
    if value <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {amount!r}")

    with localcontext() as ctx:
        ctx.prec = 100
        ctx.traps[Inexact] = True
        try:
            scaled = value.scaleb(TOKEN_DECIMALS)
        except Inexact:
            raise InvalidAmountError(f"Amount {amount!r} is out of range") from None

    if scaled != scaled.to_integral_value():
        raise InvalidAmountError(
            f"Amount {amount!r} has more than {TOKEN_DECIMALS} decimal places"
        )
    base_units = int(scaled)
    if base_units > MAX_UINT256:
        raise InvalidAmountError(f"Amount {amount!r} is out of range")
    return base_units


def from_base_units(value: int) -> Decimal:
    """Convert integer base units back to a decimal token amount."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmountError(f"Base units must be an integer, got {value!r}")
    if value < 0:
        raise InvalidAmountError(f"Base units must not be negative, got {value}")
    # string construction is exact at any size
    return Decimal(f"{value}E-{TOKEN_DECIMALS}")
