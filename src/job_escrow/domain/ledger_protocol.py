"""Ledger Store Protocol.

The ledger store is the external durable mapping from identities to balances.
The core only needs to read a balance and move an amount from one identity to
another; the store raises InsufficientFundsError when the source cannot cover
it. This is a Protocol (structural subtyping) so any store with the right
shape can back the escrow engine.

The domain layer has ZERO imports from SQLAlchemy or any storage engine.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class LedgerStore(Protocol):
    """Protocol that ledger store implementations must satisfy.

    Concrete implementations:
        - infrastructure/database/repositories.py  (AccountRepository)
    """

    async def balance_of(self, identity: str) -> int:
        """Return the balance held by ``identity`` (0 for unknown identities)."""
        ...

    async def credit(self, identity: str, amount: int) -> int:
        """Add ``amount`` to ``identity`` and return the new balance."""
        ...

    async def transfer(self, source: str, destination: str, amount: int) -> None:
        """Debit ``source`` and credit ``destination`` by ``amount``.

        Raises:
            InsufficientFundsError: If ``source`` holds less than ``amount``.
        """
        ...
