"""
lot.py

AcquisitionLot: one parcel of an asset acquired at a specific time and unit cost.

A lot is created once per BUY (and once per BUY leg of a TRADE). Afterwards
the only mutation is consume(), which lowers the remaining quantity. The
owning AssetLedger drops the lot once is_fully_consumed() is true.

Example:
    BUY 0.5 BTC @ R40,000 -> Lot A (0.5 BTC remaining)
    SELL 0.3 BTC          -> Lot A consumes 0.3 (0.2 remaining)
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from cryptotax.constants import EPSILON, ZERO
from cryptotax.schemas.breakdown import LotSnapshot


class AcquisitionLot:
    """
    Remaining quantity and fee-inclusive unit cost for one acquisition event.
    """

    def __init__(
        self,
        quantity: Decimal,
        unit_cost: Decimal,
        acquisition_date: datetime,
        asset: str,
        wallet: Optional[str] = None,
        line_number: int = 0,
    ):
        self.quantity = quantity
        self.original_quantity = quantity
        self.unit_cost = unit_cost
        self.acquisition_date = acquisition_date
        self.asset = asset.upper()
        self.wallet = wallet
        self.line_number = line_number

    def __repr__(self):
        return (
            f"<AcquisitionLot(asset={self.asset}, "
            f"remaining={self.quantity}, "
            f"unit_cost={self.unit_cost}, "
            f"line={self.line_number})>"
        )

    @property
    def total_cost_base(self) -> Decimal:
        """Cost base of what is still held in this lot."""
        return self.quantity * self.unit_cost

    def consume(self, amount: Decimal) -> Decimal:
        """
        Take up to `amount` units from this lot.

        Returns:
            The amount actually consumed (less than `amount` when the lot runs out).
        """
        if amount <= ZERO:
            return ZERO
        consumed = min(amount, max(self.quantity, ZERO))
        self.quantity -= consumed
        return consumed

    def is_fully_consumed(self) -> bool:
        return self.quantity <= EPSILON

    def snapshot(self) -> LotSnapshot:
        return LotSnapshot(
            amount=self.quantity,
            cost_per_unit=self.unit_cost,
            total_cost_base=self.total_cost_base,
            acquisition_date=self.acquisition_date,
            currency=self.asset,
            wallet=self.wallet,
            line_number=self.line_number,
        )
