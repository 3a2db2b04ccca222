"""
cryptotax/services/sorting.py

Puts transactions into the order the FIFO engine requires: ascending date,
with the original source line as a deterministic tie-breaker.
"""

from typing import Iterable, List

from cryptotax.schemas.transaction import Transaction


def sort_transactions(transactions: Iterable[Transaction]) -> List[Transaction]:
    """
    Return a new list sorted by (date, line_number). The input is not modified.
    """
    return sorted(transactions, key=lambda tx: (tx.date, tx.line_number))
