"""
cryptotax/services/fifo_engine.py

FIFO capital-gains engine. Walks a chronologically ordered stream of
normalized transactions once, keeping one AssetLedger per (asset, wallet).

Data flow (order is mandatory):
 1) Read ordered Transaction records
 2) Maintain FIFO queues per asset (and wallet)
 3) Consume lots on SELL / TRADE
 4) Calculate proceeds, cost base and gain/loss
 5) Produce a per-transaction breakdown, tagged with its tax year

Transaction handling:
 - BUY:   creates a lot; unit cost = (price x amount + fee) / amount
 - SELL:  consumes lots; proceeds = price x amount - fee
 - TRADE: a SELL of the from_asset valued at what is received
          (price x to_amount), then a BUY of the to_asset whose cost is
          those proceeds plus the fee. One breakdown covers both legs.

Implementation Notes:
 - Ledgers belong to the engine instance. Independent portfolios each get
   their own engine; nothing is shared between instances.
 - Disposing of more than is held either raises (BalancePolicy.STRICT, the
   default) or consumes what is available and records a BalanceShortfall
   on the breakdown (BalancePolicy.TOLERANT).
 - The caller must supply transactions in ascending date order
   (see services/sorting.py). A transaction dated before its predecessor
   raises OutOfOrderTransactionError before anything is mutated.
 - Replaying is the only undo: lot consumption cannot be reversed.
"""

import logging
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from cryptotax import config
from cryptotax.constants import EPSILON, ZERO
from cryptotax.exceptions import (
    InsufficientBalanceError,
    NoBalanceError,
    OutOfOrderTransactionError,
    UnsupportedTransactionKindError,
)
from cryptotax.models import AcquisitionLot, AssetLedger, LedgerKey, ledger_key
from cryptotax.schemas.breakdown import (
    BalanceShortfall,
    ConsumptionRecord,
    LedgerSnapshot,
    ProcessingResult,
    ProcessingSummary,
    TransactionBreakdown,
)
from cryptotax.schemas.report import TaxYearGainReport
from cryptotax.schemas.transaction import Transaction, TxKind
from cryptotax.services import allocation
from cryptotax.services.tax_year import tax_year_label

logger = logging.getLogger(__name__)


class BalancePolicy(str, Enum):
    STRICT = "strict"
    TOLERANT = "tolerant"


class _Disposal:
    """Result of the sell side of a SELL or TRADE."""

    def __init__(self, proceeds, cost_base, records, tax_year, shortfall):
        self.proceeds: Decimal = proceeds
        self.cost_base: Decimal = cost_base
        self.capital_gain: Decimal = proceeds - cost_base
        self.records: List[ConsumptionRecord] = records
        self.tax_year: str = tax_year
        self.shortfall: Optional[BalanceShortfall] = shortfall


class FIFOEngine:
    """
    Processes ordered transactions and calculates capital gains using FIFO.

    Constructed empty, mutated transaction by transaction, and readable at any
    point through breakdowns / summary / tax_year_snapshots / balances().
    """

    def __init__(
        self,
        balance_policy: Optional[BalancePolicy] = None,
        snapshot_tax_year_boundaries: Optional[bool] = None,
        enforce_ordering: bool = True,
    ):
        self.balance_policy = BalancePolicy(balance_policy or config.BALANCE_POLICY)
        if snapshot_tax_year_boundaries is None:
            snapshot_tax_year_boundaries = config.SNAPSHOT_TAX_YEAR_BOUNDARIES
        self.snapshot_tax_year_boundaries = snapshot_tax_year_boundaries
        self.enforce_ordering = enforce_ordering

        self._ledgers: Dict[LedgerKey, AssetLedger] = {}
        self._breakdowns: List[TransactionBreakdown] = []
        self._summary = ProcessingSummary()
        self._tax_year_snapshots: Dict[str, List[LedgerSnapshot]] = {}
        self._current_tax_year: Optional[str] = None
        self._last_date = None

        self._handlers: Dict[TxKind, Callable[[Transaction], TransactionBreakdown]] = {
            TxKind.BUY: self._handle_buy,
            TxKind.SELL: self._handle_sell,
            TxKind.TRADE: self._handle_trade,
        }

    # --------------------------------------------------------------------------
    # Public processing API
    # --------------------------------------------------------------------------
    def process_transactions(
        self,
        transactions: Iterable[Transaction],
        snapshot_tax_year_boundaries: Optional[bool] = None,
    ) -> ProcessingResult:
        """
        Process a chronologically sorted sequence of transactions.

        When snapshots are enabled, the ledgers are captured each time the
        stream crosses into a new tax year (under the year being left) and
        once more after the last transaction (under the current year).
        """
        if snapshot_tax_year_boundaries is None:
            snapshot_tax_year_boundaries = self.snapshot_tax_year_boundaries

        transactions = list(transactions)
        logger.info(
            f"Processing {len(transactions)} transactions "
            f"(policy={self.balance_policy.value}, snapshots={snapshot_tax_year_boundaries})"
        )

        for tx in transactions:
            self.process_transaction(tx, snapshot_tax_year_boundaries=snapshot_tax_year_boundaries)

        if snapshot_tax_year_boundaries and self._current_tax_year is not None:
            self.snapshot_tax_year()

        logger.info(
            f"Processed {self._summary.transactions_processed} transactions; "
            f"net capital gain {self._summary.net_capital_gain}"
        )
        return ProcessingResult(
            breakdowns=self.breakdowns,
            summary=self.summary,
            balances=self.balances(),
        )

    def process_transaction(
        self,
        tx: Transaction,
        snapshot_tax_year_boundaries: Optional[bool] = None,
    ) -> TransactionBreakdown:
        """
        Process a single transaction and return its breakdown.

        Raises:
            UnsupportedTransactionKindError, OutOfOrderTransactionError,
            NoBalanceError, InsufficientBalanceError
        """
        if snapshot_tax_year_boundaries is None:
            snapshot_tax_year_boundaries = self.snapshot_tax_year_boundaries

        handler = self._handlers.get(tx.kind)
        if handler is None:
            logger.error(f"Unsupported transaction kind {tx.kind!r} on line {tx.line_number}")
            raise UnsupportedTransactionKindError(tx.kind, tx.line_number)

        self._check_order(tx)
        label = tax_year_label(tx.date)
        closing = self._closing_balances(label, snapshot_tax_year_boundaries)

        breakdown = handler(tx)
        self._advance_tax_year(label, closing)
        self._breakdowns.append(breakdown)
        self._summary.transactions_processed += 1
        self._last_date = tx.date

        logger.debug(f"Line {tx.line_number}: {tx.kind.value} processed")
        return breakdown

    def snapshot_tax_year(self, label: Optional[str] = None) -> None:
        """Capture every ledger under `label` (defaults to the current tax year)."""
        label = label or self._current_tax_year
        if label is None:
            return
        self._tax_year_snapshots[label] = self.balances()
        logger.info(f"Snapshot taken for tax year {label} ({len(self._ledgers)} ledgers)")

    # --------------------------------------------------------------------------
    # Read API
    # --------------------------------------------------------------------------
    @property
    def breakdowns(self) -> List[TransactionBreakdown]:
        return list(self._breakdowns)

    @property
    def summary(self) -> ProcessingSummary:
        return self._summary.model_copy()

    @property
    def tax_year_snapshots(self) -> Dict[str, List[LedgerSnapshot]]:
        return dict(self._tax_year_snapshots)

    @property
    def ledgers(self) -> Dict[LedgerKey, AssetLedger]:
        return dict(self._ledgers)

    @property
    def current_tax_year(self) -> Optional[str]:
        return self._current_tax_year

    def get_ledger(self, asset: str, wallet: Optional[str] = None) -> Optional[AssetLedger]:
        return self._ledgers.get(ledger_key(asset, wallet))

    def balances(self) -> List[LedgerSnapshot]:
        return [ledger.snapshot() for ledger in self._ledgers.values()]

    def allocate_disposals_by_tax_year(self):
        return allocation.allocate_disposals_by_tax_year(self._breakdowns)

    def calculate_gains_per_asset_per_tax_year(
        self,
        annual_exclusion: Optional[Decimal] = None,
        inclusion_rate: Optional[Decimal] = None,
    ) -> Dict[str, TaxYearGainReport]:
        """
        Tax-year x asset report over everything processed so far.
        Missing parameters fall back to CGT_ANNUAL_EXCLUSION / CGT_INCLUSION_RATE.
        """
        if annual_exclusion is None:
            annual_exclusion = config.ANNUAL_EXCLUSION
        if inclusion_rate is None:
            inclusion_rate = config.INCLUSION_RATE
        return allocation.calculate_gains_per_asset_per_tax_year(
            self._breakdowns, annual_exclusion, inclusion_rate
        )

    # --------------------------------------------------------------------------
    # Handlers (one per TxKind)
    # --------------------------------------------------------------------------
    def _handle_buy(self, tx: Transaction) -> TransactionBreakdown:
        asset = tx.to_asset
        amount = tx.to_amount
        total_cost = tx.price * amount + tx.fee
        unit_cost = self._acquire(tx, asset, amount, total_cost)

        self._summary.buys += 1
        return TransactionBreakdown(
            date=tx.date,
            type=TxKind.BUY,
            line_number=tx.line_number,
            wallet=tx.wallet,
            fee=tx.fee,
            currency=asset,
            amount=amount,
            total_cost=total_cost,
            cost_per_unit=unit_cost,
        )

    def _handle_sell(self, tx: Transaction) -> TransactionBreakdown:
        asset = tx.from_asset
        amount = tx.from_amount
        proceeds = tx.price * amount - tx.fee
        disposal = self._dispose(tx, asset, amount, proceeds)

        self._summary.sells += 1
        return TransactionBreakdown(
            date=tx.date,
            type=TxKind.SELL,
            line_number=tx.line_number,
            wallet=tx.wallet,
            fee=tx.fee,
            currency=asset,
            amount=amount,
            proceeds=disposal.proceeds,
            cost_base=disposal.cost_base,
            capital_gain=disposal.capital_gain,
            tax_year=disposal.tax_year,
            lots_consumed=disposal.records,
            shortfall=disposal.shortfall,
        )

    def _handle_trade(self, tx: Transaction) -> TransactionBreakdown:
        # Sell leg: valued at what is received, not at what is given up
        proceeds = tx.price * tx.to_amount
        disposal = self._dispose(tx, tx.from_asset, tx.from_amount, proceeds)

        # Buy leg: the new lot carries the sell proceeds plus the fee
        new_lot_cost = proceeds + tx.fee
        unit_cost = self._acquire(tx, tx.to_asset, tx.to_amount, new_lot_cost)

        self._summary.trades += 1
        return TransactionBreakdown(
            date=tx.date,
            type=TxKind.TRADE,
            line_number=tx.line_number,
            wallet=tx.wallet,
            fee=tx.fee,
            from_currency=tx.from_asset,
            from_amount=tx.from_amount,
            to_currency=tx.to_asset,
            to_amount=tx.to_amount,
            new_lot_cost_per_unit=unit_cost,
            proceeds=disposal.proceeds,
            cost_base=disposal.cost_base,
            capital_gain=disposal.capital_gain,
            tax_year=disposal.tax_year,
            lots_consumed=disposal.records,
            shortfall=disposal.shortfall,
        )

    # --------------------------------------------------------------------------
    # Ledger helpers
    # --------------------------------------------------------------------------
    def _acquire(self, tx: Transaction, asset: str, amount: Decimal, total_cost: Decimal) -> Decimal:
        """
        Append a lot for `amount` units costing `total_cost` in total.
        Returns the unit cost, or 0 when there is nothing to acquire.
        """
        if amount <= ZERO:
            logger.warning(
                f"Line {tx.line_number}: {tx.kind.value} acquires {amount} {asset}; no lot created"
            )
            return ZERO

        unit_cost = total_cost / amount
        ledger = self._get_or_create_ledger(asset, tx.wallet)
        ledger.add_lot(AcquisitionLot(
            quantity=amount,
            unit_cost=unit_cost,
            acquisition_date=tx.date,
            asset=asset,
            wallet=tx.wallet,
            line_number=tx.line_number,
        ))
        return unit_cost

    def _dispose(self, tx: Transaction, asset: str, amount: Decimal, proceeds: Decimal) -> _Disposal:
        """
        Consume `amount` of `asset` FIFO and fold the result into the summary.
        Nothing is mutated if this raises.
        """
        ledger = self._ledgers.get(ledger_key(asset, tx.wallet))
        if ledger is None:
            error = NoBalanceError(asset, ledger_key(asset, tx.wallet)[1], amount)
            logger.error(f"Line {tx.line_number}: {error}")
            raise error

        to_consume = amount
        shortfall = None
        available = ledger.total_quantity
        if amount > available + EPSILON and self.balance_policy == BalancePolicy.TOLERANT:
            shortfall = BalanceShortfall(
                asset=ledger.asset,
                wallet=ledger.wallet,
                requested=amount,
                available=available,
                deficit=amount - available,
            )
            logger.warning(
                f"Line {tx.line_number}: disposing {amount} {asset} with only {available} held; "
                f"deficit {shortfall.deficit} recorded"
            )
            to_consume = available

        try:
            records = ledger.consume(to_consume)
        except InsufficientBalanceError as e:
            logger.error(f"Line {tx.line_number}: {e}")
            raise

        label = tax_year_label(tx.date)
        records = [r.model_copy(update={"tax_year": label}) for r in records]

        cost_base = ZERO
        for record in records:
            cost_base += record.cost_base

        disposal = _Disposal(proceeds, cost_base, records, label, shortfall)
        self._accumulate(disposal)
        return disposal

    def _accumulate(self, disposal: _Disposal) -> None:
        self._summary.total_proceeds += disposal.proceeds
        self._summary.total_cost_base += disposal.cost_base
        if disposal.capital_gain >= ZERO:
            self._summary.total_capital_gain += disposal.capital_gain
        else:
            self._summary.total_capital_loss += abs(disposal.capital_gain)
        self._summary.net_capital_gain += disposal.capital_gain

    def _get_or_create_ledger(self, asset: str, wallet: Optional[str]) -> AssetLedger:
        key = ledger_key(asset, wallet)
        if key not in self._ledgers:
            self._ledgers[key] = AssetLedger(asset, wallet)
            logger.debug(f"Created ledger {key}")
        return self._ledgers[key]

    # --------------------------------------------------------------------------
    # Ordering & tax-year boundaries
    # --------------------------------------------------------------------------
    def _check_order(self, tx: Transaction) -> None:
        if not self.enforce_ordering or self._last_date is None:
            return
        if tx.date < self._last_date:
            error = OutOfOrderTransactionError(self._last_date, tx.date, tx.line_number)
            logger.error(str(error))
            raise error

    def _closing_balances(self, label: str, snapshot: bool) -> Optional[List[LedgerSnapshot]]:
        """
        Ledger state to file under the year being left, captured before the
        transaction that crosses the boundary touches anything.
        """
        if not snapshot or self._current_tax_year in (None, label):
            return None
        return self.balances()

    def _advance_tax_year(self, label: str, closing: Optional[List[LedgerSnapshot]]) -> None:
        """Called only once the transaction dated in `label` has been applied."""
        if self._current_tax_year is None:
            self._current_tax_year = label
            return
        if label != self._current_tax_year:
            if closing is not None:
                self._tax_year_snapshots[self._current_tax_year] = closing
                logger.info(f"Snapshot taken for tax year {self._current_tax_year} ({len(closing)} ledgers)")
            self._current_tax_year = label
