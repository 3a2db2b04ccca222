"""
cryptotax/tests/test_ledger.py

Unit tests for AcquisitionLot and AssetLedger. No engine involved.

These tests verify:
1. Lots are consumed front-to-back and split when partially needed
2. Exhausted lots leave the queue
3. The cached total always equals the sum of remaining lots
4. Over-consumption is rejected without mutating anything
5. Asset/wallet mismatches are refused
"""

import pytest
from datetime import datetime
from decimal import Decimal

from cryptotax.constants import DEFAULT_WALLET
from cryptotax.exceptions import InsufficientBalanceError, TypeMismatchError
from cryptotax.models import AcquisitionLot, AssetLedger, ledger_key
from cryptotax.tests.factories import D


def lot(quantity, unit_cost, day=1, asset="BTC", wallet=None, line=0):
    return AcquisitionLot(
        quantity=D(quantity),
        unit_cost=D(unit_cost),
        acquisition_date=datetime(2024, 3, day),
        asset=asset,
        wallet=wallet,
        line_number=line,
    )


def ledger_sum(ledger: AssetLedger) -> Decimal:
    return sum((l.quantity for l in ledger.lots), Decimal("0"))


# =============================================================================
# AcquisitionLot
# =============================================================================

class TestAcquisitionLot:

    def test_consume_partial(self):
        l = lot("1.0", "20000")
        assert l.consume(D("0.3")) == D("0.3")
        assert l.quantity == D("0.7")
        assert l.original_quantity == D("1.0")
        assert not l.is_fully_consumed()

    def test_consume_caps_at_remaining(self):
        l = lot("0.5", "20000")
        assert l.consume(D("2")) == D("0.5")
        assert l.quantity == D("0")
        assert l.is_fully_consumed()

    def test_non_positive_consume_is_noop(self):
        l = lot("0.5", "20000")
        assert l.consume(D("0")) == D("0")
        assert l.consume(D("-1")) == D("0")
        assert l.quantity == D("0.5")

    def test_dust_counts_as_consumed(self):
        l = lot("0.000000005", "20000")
        assert l.is_fully_consumed()

    def test_total_cost_base_tracks_remaining(self):
        l = lot("1.0", "20000")
        l.consume(D("0.25"))
        assert l.total_cost_base == D("15000")

    def test_asset_is_upper_cased(self):
        assert lot("1", "1", asset="eth").asset == "ETH"


# =============================================================================
# AssetLedger
# =============================================================================

class TestLedgerKey:

    def test_missing_wallet_uses_default(self):
        assert ledger_key("btc", None) == ("BTC", DEFAULT_WALLET)
        assert AssetLedger("btc").key == ("BTC", DEFAULT_WALLET)

    def test_named_wallet(self):
        assert ledger_key("BTC", "cold") == ("BTC", "cold")


class TestAddLot:

    def test_append_updates_total(self):
        ledger = AssetLedger("BTC")
        ledger.add_lot(lot("0.5", "20000", line=1))
        ledger.add_lot(lot("0.25", "30000", line=2))
        assert ledger.total_quantity == D("0.75")
        assert ledger.lot_count == 2
        assert [l.line_number for l in ledger.lots] == [1, 2]

    def test_rejects_other_asset(self):
        ledger = AssetLedger("BTC")
        with pytest.raises(TypeMismatchError, match="ETH lot to BTC"):
            ledger.add_lot(lot("1", "2000", asset="ETH"))
        assert ledger.is_empty

    def test_rejects_other_wallet(self):
        ledger = AssetLedger("BTC", "cold")
        with pytest.raises(TypeMismatchError):
            ledger.add_lot(lot("1", "2000", wallet="hot"))

    def test_rejects_walletless_lot_on_named_wallet(self):
        ledger = AssetLedger("BTC", "cold")
        with pytest.raises(TypeMismatchError):
            ledger.add_lot(lot("1", "2000"))

    def test_type_mismatch_is_a_value_error(self):
        ledger = AssetLedger("BTC")
        with pytest.raises(ValueError):
            ledger.add_lot(lot("1", "2000", asset="ETH"))


class TestConsume:

    @pytest.fixture
    def ledger(self):
        ledger = AssetLedger("BTC")
        ledger.add_lot(lot("0.5", "20000", day=1, line=1))
        ledger.add_lot(lot("0.5", "30000", day=2, line=2))
        ledger.add_lot(lot("0.5", "40000", day=3, line=3))
        return ledger

    def test_smaller_than_first_lot_touches_only_first(self, ledger):
        records = ledger.consume(D("0.2"))
        assert len(records) == 1
        assert records[0].amount_consumed == D("0.2")
        assert records[0].unit_cost == D("20000")
        assert records[0].cost_base == D("4000")
        assert records[0].line_number == 1
        assert ledger.lots[0].quantity == D("0.3")
        assert ledger.lot_count == 3

    def test_spanning_two_lots_in_order(self, ledger):
        records = ledger.consume(D("0.7"))
        assert [r.line_number for r in records] == [1, 2]
        assert [r.amount_consumed for r in records] == [D("0.5"), D("0.2")]
        assert [r.unit_cost for r in records] == [D("20000"), D("30000")]
        assert records[0].acquisition_date == datetime(2024, 3, 1)
        assert ledger.lot_count == 2
        assert ledger.lots[0].quantity == D("0.3")

    def test_exact_lot_boundary_removes_lot(self, ledger):
        records = ledger.consume(D("0.5"))
        assert len(records) == 1
        assert ledger.lot_count == 2
        assert ledger.lots[0].unit_cost == D("30000")

    def test_consume_everything(self, ledger):
        records = ledger.consume(D("1.5"))
        assert len(records) == 3
        assert ledger.is_empty
        assert ledger.total_quantity == D("0")

    def test_total_matches_lots_after_each_step(self, ledger):
        for amount in ("0.1", "0.45", "0.3", "0.05"):
            ledger.consume(D(amount))
            assert ledger.total_quantity == ledger_sum(ledger)

    def test_insufficient_balance_is_atomic(self, ledger):
        with pytest.raises(InsufficientBalanceError) as exc:
            ledger.consume(D("2"))
        assert exc.value.requested == D("2")
        assert exc.value.available == D("1.5")
        assert exc.value.deficit == D("0.5")
        assert ledger.total_quantity == D("1.5")
        assert ledger.lot_count == 3
        assert ledger.lots[0].quantity == D("0.5")

    def test_overshoot_within_epsilon_is_tolerated(self, ledger):
        records = ledger.consume(D("1.500000005"))
        assert sum(r.amount_consumed for r in records) == D("1.5")
        assert ledger.is_empty
        assert ledger.total_quantity == D("0")

    def test_dust_leaves_with_lot(self):
        ledger = AssetLedger("BTC")
        ledger.add_lot(lot("0.500000005", "20000", line=1))
        ledger.add_lot(lot("1", "30000", line=2))
        ledger.consume(D("0.5"))
        assert ledger.lot_count == 1
        assert ledger.total_quantity == ledger_sum(ledger) == D("1")

    def test_non_positive_amount_returns_nothing(self, ledger):
        assert ledger.consume(D("0")) == []
        assert ledger.consume(D("-1")) == []
        assert ledger.total_quantity == D("1.5")


class TestDerivedViews:

    def test_cost_base_and_average(self):
        ledger = AssetLedger("BTC")
        ledger.add_lot(lot("0.5", "20000"))
        ledger.add_lot(lot("0.5", "30000"))
        assert ledger.total_cost_base() == D("25000")
        assert ledger.average_unit_cost() == D("25000")

        ledger.consume(D("0.7"))
        assert ledger.total_cost_base() == D("9000")
        assert ledger.average_unit_cost() == D("30000")

    def test_empty_ledger_average_is_zero(self):
        assert AssetLedger("BTC").average_unit_cost() == D("0")

    def test_snapshot_is_detached(self):
        ledger = AssetLedger("BTC", "cold")
        ledger.add_lot(lot("1", "20000", wallet="cold", line=7))
        snap = ledger.snapshot()
        ledger.consume(D("0.4"))

        assert snap.currency == "BTC"
        assert snap.wallet == "cold"
        assert snap.total_balance == D("1")
        assert snap.total_cost_base == D("20000")
        assert snap.lot_count == 1
        assert snap.lots[0].amount == D("1")
        assert snap.lots[0].line_number == 7
