"""
ledger.py

AssetLedger: FIFO queue of AcquisitionLots for one (asset, wallet) pair.

Queue Behavior:
- add_lot() appends to the back (acquisitions arrive in chronological order)
- consume() takes from the front, oldest lot first, splitting the front lot
  when only part of it is needed
- exhausted lots (remaining <= EPSILON) are dropped from the queue
- the queue is never re-sorted; FIFO correctness relies on append order

The cached total_quantity always equals the sum of remaining lot quantities.
"""

import logging
from collections import deque
from decimal import Decimal
from typing import Deque, List, Optional, Tuple

from cryptotax.constants import DEFAULT_WALLET, EPSILON, ZERO
from cryptotax.exceptions import InsufficientBalanceError, TypeMismatchError
from cryptotax.models.lot import AcquisitionLot
from cryptotax.schemas.breakdown import ConsumptionRecord, LedgerSnapshot

logger = logging.getLogger(__name__)

LedgerKey = Tuple[str, str]


def ledger_key(asset: str, wallet: Optional[str]) -> LedgerKey:
    """Key under which the engine stores the ledger for an asset/wallet pair."""
    return asset.upper(), wallet or DEFAULT_WALLET


class AssetLedger:

    def __init__(self, asset: str, wallet: Optional[str] = None):
        self.asset = asset.upper()
        self.wallet = wallet or DEFAULT_WALLET
        self._lots: Deque[AcquisitionLot] = deque()
        self._total = ZERO

    def __repr__(self):
        return (
            f"<AssetLedger(asset={self.asset}, wallet={self.wallet}, "
            f"total={self._total}, lots={len(self._lots)})>"
        )

    @property
    def key(self) -> LedgerKey:
        return self.asset, self.wallet

    @property
    def total_quantity(self) -> Decimal:
        return self._total

    @property
    def lots(self) -> Tuple[AcquisitionLot, ...]:
        """Read-only view of the queue, oldest first."""
        return tuple(self._lots)

    @property
    def lot_count(self) -> int:
        return len(self._lots)

    @property
    def is_empty(self) -> bool:
        return not self._lots

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add_lot(self, lot: AcquisitionLot) -> None:
        """
        Append a lot to the back of the queue.

        Raises:
            TypeMismatchError: the lot belongs to a different asset or wallet.
        """
        if lot.asset != self.asset:
            raise TypeMismatchError(
                f"Cannot add {lot.asset} lot to {self.asset} ledger"
            )
        if (lot.wallet or DEFAULT_WALLET) != self.wallet:
            raise TypeMismatchError(
                f"Cannot add lot from wallet '{lot.wallet}' to wallet '{self.wallet}' ledger"
            )

        self._lots.append(lot)
        self._total += lot.quantity

    def consume(self, amount: Decimal) -> List[ConsumptionRecord]:
        """
        Remove `amount` units from the front of the queue.

        Returns one ConsumptionRecord per lot touched, oldest first.

        Raises:
            InsufficientBalanceError: `amount` exceeds the balance by more than
                EPSILON. Nothing is mutated in that case.
        """
        if amount <= ZERO:
            return []

        if amount > self._total + EPSILON:
            raise InsufficientBalanceError(self.asset, self.wallet, amount, self._total)

        records: List[ConsumptionRecord] = []
        remaining = amount

        while remaining > EPSILON and self._lots:
            lot = self._lots[0]
            consumed = lot.consume(remaining)
            records.append(ConsumptionRecord(
                amount_consumed=consumed,
                cost_base=consumed * lot.unit_cost,
                unit_cost=lot.unit_cost,
                acquisition_date=lot.acquisition_date,
                line_number=lot.line_number,
            ))
            remaining -= consumed
            self._total -= consumed

            if lot.is_fully_consumed():
                # Dust below EPSILON leaves with the lot
                self._total -= lot.quantity
                self._lots.popleft()
                logger.debug(f"{self.asset}/{self.wallet}: lot from line {lot.line_number} exhausted")

        if not self._lots:
            self._total = ZERO

        return records

    # ------------------------------------------------------------------
    # Derived views (recomputed, not cached)
    # ------------------------------------------------------------------
    def total_cost_base(self) -> Decimal:
        total = ZERO
        for lot in self._lots:
            total += lot.total_cost_base
        return total

    def average_unit_cost(self) -> Decimal:
        if self._total <= ZERO:
            return ZERO
        return self.total_cost_base() / self._total

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            currency=self.asset,
            wallet=self.wallet,
            total_balance=self._total,
            total_cost_base=self.total_cost_base(),
            average_cost_per_unit=self.average_unit_cost(),
            lot_count=len(self._lots),
            lots=[lot.snapshot() for lot in self._lots],
        )
