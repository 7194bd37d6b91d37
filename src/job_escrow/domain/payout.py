"""Fee arithmetic for escrow payouts.

Fee rates are expressed in thousandths of the payment. Splitting uses integer
floor division and derives the remainder by subtraction, so a split never
creates or destroys value: ``fee + remainder == amount`` for every input.
"""

from __future__ import annotations

from dataclasses import dataclass

FEE_RATE_DENOMINATOR = 1000
DEFAULT_FEE_RATE = 25
MAX_FEE_RATE = 100


@dataclass(frozen=True)
class PayoutSplit:
    """Result of splitting an escrowed amount.

    Attributes:
        fee: Platform's cut, floor(amount * fee_rate / 1000).
        remainder: What the payee receives (amount - fee).
    """

    fee: int
    remainder: int


def split(amount: int, fee_rate: int) -> PayoutSplit:
    """Split ``amount`` into (fee, remainder) at ``fee_rate`` thousandths.

    Raises:
        ValueError: If the amount is negative or the rate is outside [0, MAX_FEE_RATE].
    """
    if amount < 0:
        raise ValueError(f"Cannot split a negative amount: {amount}")
    if not 0 <= fee_rate <= MAX_FEE_RATE:
        raise ValueError(f"Fee rate {fee_rate} outside [0, {MAX_FEE_RATE}]")
    fee = amount * fee_rate // FEE_RATE_DENOMINATOR
    return PayoutSplit(fee=fee, remainder=amount - fee)
