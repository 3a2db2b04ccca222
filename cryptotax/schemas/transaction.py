"""
cryptotax/schemas/transaction.py

Normalized transaction record handed to the FIFO engine by the ingestion
layer (parsing, alias mapping and validation happen upstream).

- TxKind: BUY, SELL, TRADE
- Transaction: immutable input row. A TRADE carries both legs: the
  from_asset/from_amount being disposed of and the to_asset/to_amount
  being acquired, priced per unit of the to_asset.

Amounts are not range-checked here. Well-formedness is the caller's
concern; the engine tolerates zero or negative quantities without crashing.
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime, timezone
from decimal import Decimal

# -------------------------------------------------
# TRANSACTION KIND ENUM
# -------------------------------------------------

class TxKind(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    TRADE = "TRADE"

# -------------------------------------------------
# TRANSACTION SCHEMA
# -------------------------------------------------

class Transaction(BaseModel):
    """
    One normalized transaction. Prices are in the reporting currency.

    BUY:   from = fiat spent, to = asset acquired, price per unit of to_asset
    SELL:  from = asset disposed, to = fiat received, price per unit of from_asset
    TRADE: from = asset disposed, to = asset acquired, price per unit of to_asset
    """
    model_config = ConfigDict(frozen=True)

    date: datetime
    kind: TxKind

    from_asset: str
    from_amount: Decimal = Field(default=Decimal("0"))
    to_asset: str
    to_amount: Decimal = Field(default=Decimal("0"))

    price: Decimal = Field(
        default=Decimal("0"),
        description="Unit price in the reporting currency."
    )
    fee: Decimal = Field(
        default=Decimal("0"),
        description="Fee in the reporting currency."
    )

    wallet: Optional[str] = None
    line_number: int = Field(
        default=0,
        description="Row in the source file, used for traceability and tie-breaking."
    )

    @field_validator("date")
    def assume_utc_if_naive(cls, v: datetime) -> datetime:
        """
        Naive dates are taken as UTC. An explicit offset is kept as given:
        the tax year follows the caller's wall-clock date, while ordering
        compares aware datetimes by instant.
        """
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("from_asset", "to_asset")
    def upper_asset(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("wallet")
    def blank_wallet_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None
