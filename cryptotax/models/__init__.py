# cryptotax/models/__init__.py

"""
In-memory FIFO inventory: acquisition lots and the per-asset ledger that
owns them. Re-exported here so services can import from one place.
"""

from .lot import AcquisitionLot

from .ledger import AssetLedger, LedgerKey, ledger_key
