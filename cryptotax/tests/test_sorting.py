"""
cryptotax/tests/test_sorting.py

sort_transactions puts a stream into the order the engine expects.
"""

from datetime import datetime, timedelta, timezone

from cryptotax.services.fifo_engine import FIFOEngine
from cryptotax.services.sorting import sort_transactions
from cryptotax.tests.factories import make_buy, make_sell


class TestSortTransactions:

    def test_sorts_by_date(self):
        txs = [
            make_buy(datetime(2024, 3, 3), "BTC", "1", "30000", line=1),
            make_buy(datetime(2024, 3, 1), "BTC", "1", "10000", line=2),
            make_buy(datetime(2024, 3, 2), "BTC", "1", "20000", line=3),
        ]
        assert [tx.line_number for tx in sort_transactions(txs)] == [2, 3, 1]

    def test_same_date_breaks_ties_on_line_number(self):
        when = datetime(2024, 3, 1, 9, 30)
        txs = [
            make_sell(when, "BTC", "1", "30000", line=7),
            make_buy(when, "BTC", "1", "20000", line=3),
        ]
        assert [tx.line_number for tx in sort_transactions(txs)] == [3, 7]

    def test_input_is_not_modified(self):
        txs = [
            make_buy(datetime(2024, 3, 2), "BTC", "1", "20000", line=1),
            make_buy(datetime(2024, 3, 1), "BTC", "1", "10000", line=2),
        ]
        sort_transactions(txs)
        assert [tx.line_number for tx in txs] == [1, 2]

    def test_offsets_are_compared_in_utc(self):
        sast = timezone(timedelta(hours=2))
        txs = [
            make_buy(datetime(2024, 3, 1, 1, 0, tzinfo=sast), "BTC", "1", "20000", line=1),
            make_buy(datetime(2024, 2, 29, 23, 30), "BTC", "1", "10000", line=2),
        ]
        # 01:00 SAST is 23:00 UTC the previous day
        assert [tx.line_number for tx in sort_transactions(txs)] == [1, 2]

    def test_sorted_stream_satisfies_engine_ordering(self):
        txs = [
            make_sell(datetime(2024, 3, 5), "BTC", "0.5", "50000", line=2),
            make_buy(datetime(2024, 3, 1), "BTC", "1", "20000", line=1),
        ]
        result = FIFOEngine(balance_policy="strict").process_transactions(sort_transactions(txs))
        assert result.summary.sells == 1
