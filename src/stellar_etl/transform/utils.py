"""Numeric and string rendering helpers shared by the transformers."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from stellar_etl.ledger.types import ASSET_TYPE_NAMES, Asset, Price

STROOPS_PER_UNIT = 10_000_000
AMOUNT_PRECISION = 7
_SEVEN_PLACES = Decimal(1).scaleb(-AMOUNT_PRECISION)

# Account flags, ascending bit order
ACCOUNT_FLAGS: dict[int, str] = {
    1: "auth_required",
    2: "auth_revocable",
    4: "auth_immutable",
    8: "auth_clawback_enabled",
}


def convert_stroop_value_to_real(value: int) -> float:
    """Scale a stroop amount to units of the asset.

    True division of two ints is correctly rounded, so the result is the float
    nearest to the exact quotient.
    """
    return value / STROOPS_PER_UNIT


def format_stroop_amount(value: int) -> str:
    """Render a stroop amount as an exact decimal string with seven places."""
    return f"{Decimal(value).scaleb(-AMOUNT_PRECISION).quantize(_SEVEN_PLACES):f}"


def convert_price_to_float(price: Price) -> float:
    """Approximate a rational price, rounded to seven decimal places.

    Lossy. The exact numerator and denominator are emitted alongside.
    """
    quotient = Decimal(price.n) / Decimal(price.d)
    return float(quotient.quantize(_SEVEN_PLACES, rounding=ROUND_HALF_UP))


def decode_flags(mask: int, table: dict[int, str] = ACCOUNT_FLAGS) -> tuple[list[int], list[str]]:
    """Split a flag bitmask into the set flag values and their names.

    Both lists follow the table's ascending bit order and always line up.
    Bits missing from the table are ignored.
    """
    values: list[int] = []
    names: list[str] = []
    for bit, name in sorted(table.items()):
        if mask & bit:
            values.append(bit)
            names.append(name)
    return values, names


def format_asset(asset: Asset) -> tuple[str, str | None, str | None]:
    """Return the (type, code, issuer) triple for an asset."""
    if asset.is_native:
        return ASSET_TYPE_NAMES[asset.type], None, None
    issuer = asset.issuer.address if asset.issuer is not None else None
    return ASSET_TYPE_NAMES[asset.type], asset.code, issuer
