"""
Errors raised by the lot ledger and the FIFO engine.

Nothing here is retried: the engine is a deterministic reduction, so the
caller decides whether to abort the batch or skip the offending transaction.
"""

from decimal import Decimal
from typing import Optional


class CryptoTaxError(Exception):
    """Base class for every error raised by the capital-gains core."""


class TypeMismatchError(CryptoTaxError, ValueError):
    """A lot was added to a ledger keyed by a different asset or wallet."""


class NoBalanceError(CryptoTaxError):
    """A disposal referenced an asset/wallet that has never been acquired."""

    def __init__(self, asset: str, wallet: str, amount: Decimal):
        self.asset = asset
        self.wallet = wallet
        self.amount = amount
        super().__init__(
            f"Cannot dispose of {amount} {asset}: no balance found for wallet '{wallet}'"
        )


class InsufficientBalanceError(CryptoTaxError):
    """A disposal asked for more units than the ledger holds."""

    def __init__(self, asset: str, wallet: str, requested: Decimal, available: Decimal):
        self.asset = asset
        self.wallet = wallet
        self.requested = requested
        self.available = available
        self.deficit = requested - available
        super().__init__(
            f"Insufficient balance: trying to consume {requested} {asset} "
            f"from wallet '{wallet}', but only {available} available"
        )


class UnsupportedTransactionKindError(CryptoTaxError):
    """The transaction kind has no handler in the engine."""

    def __init__(self, kind, line_number: Optional[int] = None):
        self.kind = kind
        self.line_number = line_number
        super().__init__(f"Unknown transaction type: {kind} (line {line_number})")


class OutOfOrderTransactionError(CryptoTaxError):
    """Transactions were not supplied in ascending date order."""

    def __init__(self, previous_date, date, line_number: Optional[int] = None):
        self.previous_date = previous_date
        self.date = date
        self.line_number = line_number
        super().__init__(
            f"Transaction on line {line_number} dated {date.isoformat()} "
            f"precedes previously processed {previous_date.isoformat()}"
        )
