"""
cryptotax/schemas/breakdown.py

Output records produced by the FIFO engine. Each one carries enough detail
to render an audit report without re-running the engine.

- ConsumptionRecord: one lot touched by a disposal (the audit trail)
- BalanceShortfall: deficit metadata attached in tolerant balance mode
- TransactionBreakdown: one per processed transaction
- LotSnapshot, LedgerSnapshot: point-in-time view of a ledger
- ProcessingSummary: running totals across the stream
- ProcessingResult: what process_transactions() returns
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from cryptotax.schemas.transaction import TxKind

# -------------------------------------------------
# LOT CONSUMPTION
# -------------------------------------------------

class ConsumptionRecord(BaseModel):
    """
    Portion of a single lot used by a disposal.
    """
    amount_consumed: Decimal
    cost_base: Decimal = Field(
        ...,
        description="amount_consumed x unit_cost"
    )
    unit_cost: Decimal
    acquisition_date: datetime
    line_number: int = Field(
        ...,
        description="Source line of the transaction that created the lot."
    )
    tax_year: Optional[str] = Field(
        default=None,
        description="Tax year of the disposal that consumed this portion."
    )


class BalanceShortfall(BaseModel):
    """
    Recorded instead of an error when a disposal exceeds the held balance
    and the engine runs with BalancePolicy.TOLERANT.
    """
    asset: str
    wallet: str
    requested: Decimal
    available: Decimal
    deficit: Decimal

# -------------------------------------------------
# TRANSACTION BREAKDOWN
# -------------------------------------------------

class TransactionBreakdown(BaseModel):
    """
    Per-transaction result. Disposal fields (proceeds, cost_base,
    capital_gain, tax_year, lots_consumed) stay None for a BUY.
    """
    date: datetime
    type: TxKind
    line_number: int
    wallet: Optional[str] = None
    fee: Decimal = Decimal("0")

    # BUY and SELL: the single asset involved
    currency: Optional[str] = None
    amount: Optional[Decimal] = None

    # BUY only
    total_cost: Optional[Decimal] = None
    cost_per_unit: Optional[Decimal] = None

    # TRADE only
    from_currency: Optional[str] = None
    from_amount: Optional[Decimal] = None
    to_currency: Optional[str] = None
    to_amount: Optional[Decimal] = None
    new_lot_cost_per_unit: Optional[Decimal] = None

    # Disposals (SELL and the sell leg of TRADE)
    proceeds: Optional[Decimal] = None
    cost_base: Optional[Decimal] = None
    capital_gain: Optional[Decimal] = None
    tax_year: Optional[str] = None
    lots_consumed: Optional[List[ConsumptionRecord]] = None
    shortfall: Optional[BalanceShortfall] = None

    @property
    def is_disposal(self) -> bool:
        return self.type in (TxKind.SELL, TxKind.TRADE)

    @property
    def disposed_currency(self) -> Optional[str]:
        """Asset given up by this transaction, None for a BUY."""
        if self.type == TxKind.SELL:
            return self.currency
        if self.type == TxKind.TRADE:
            return self.from_currency
        return None

# -------------------------------------------------
# LEDGER SNAPSHOTS
# -------------------------------------------------

class LotSnapshot(BaseModel):
    amount: Decimal
    cost_per_unit: Decimal
    total_cost_base: Decimal
    acquisition_date: datetime
    currency: str
    wallet: Optional[str] = None
    line_number: int


class LedgerSnapshot(BaseModel):
    """
    Copy of one AssetLedger. Holds no references to live lots, so later
    processing never changes a snapshot already taken.
    """
    currency: str
    wallet: str
    total_balance: Decimal
    total_cost_base: Decimal
    average_cost_per_unit: Decimal
    lot_count: int
    lots: List[LotSnapshot] = Field(default_factory=list)

# -------------------------------------------------
# SUMMARY & RESULT
# -------------------------------------------------

class ProcessingSummary(BaseModel):
    total_proceeds: Decimal = Decimal("0")
    total_cost_base: Decimal = Decimal("0")
    total_capital_gain: Decimal = Decimal("0")
    total_capital_loss: Decimal = Decimal("0")
    net_capital_gain: Decimal = Decimal("0")
    transactions_processed: int = 0
    buys: int = 0
    sells: int = 0
    trades: int = 0


class ProcessingResult(BaseModel):
    breakdowns: List[TransactionBreakdown]
    summary: ProcessingSummary
    balances: List[LedgerSnapshot]
