"""
Fixed values shared by the lot ledger and the FIFO engine.
These never come from the environment; policy values live in cryptotax/config.py.
"""

from decimal import Decimal

# Quantities at or below this are treated as zero (dust left by unit-cost division).
EPSILON = Decimal("0.00000001")

ZERO = Decimal("0")

# Ledger key used when a transaction carries no wallet identifier
DEFAULT_WALLET = "default"

# Tax year runs 1 March -> end of February
TAX_YEAR_START_MONTH = 3

# Statutory defaults (overridable through .env, see config.py)
DEFAULT_ANNUAL_EXCLUSION = "40000"
DEFAULT_INCLUSION_RATE = "0.4"
