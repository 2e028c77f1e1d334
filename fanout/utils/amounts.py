from decimal import Decimal, ROUND_DOWN, InvalidOperation
from typing import Union

from fanout.config import LAMPORTS_PER_SOL, SOL_DECIMALS

LAMPORT = Decimal(1).scaleb(-SOL_DECIMALS)


def to_decimal(value: Union[str, int, float, Decimal]) -> Decimal:
    """Parse a user or RPC supplied amount without float rounding noise."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).replace(",", "").strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")


def sol_to_lamports(amount: Union[str, int, float, Decimal]) -> int:
    """Convert SOL to lamports, truncating anything below one lamport."""
    return int(to_decimal(amount) * LAMPORTS_PER_SOL)


def lamports_to_sol(lamports: int) -> Decimal:
    return Decimal(lamports) / LAMPORTS_PER_SOL


def truncate_to_lamports(amount: Decimal) -> Decimal:
    return amount.quantize(LAMPORT, rounding=ROUND_DOWN)
