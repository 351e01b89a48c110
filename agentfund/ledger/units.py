"""
HBAR unit conversions.

Contracts see tinybars (8 decimals). The JSON-RPC relay takes transaction
value in weibars (18 decimals) and divides by 10**10 before execution.
"""

from decimal import ROUND_HALF_UP, Decimal

TINYBARS_PER_HBAR = 100_000_000
WEIBARS_PER_TINYBAR = 10**10


def hbar_to_tinybars(amount_hbar: float) -> int:
    return int(Decimal(amount_hbar * TINYBARS_PER_HBAR).to_integral_value(rounding=ROUND_HALF_UP))


def tinybars_to_hbar(amount_tinybars: int) -> float:
    return amount_tinybars / TINYBARS_PER_HBAR


def tinybars_to_weibars(amount_tinybars: int) -> int:
    return int(amount_tinybars) * WEIBARS_PER_TINYBAR
