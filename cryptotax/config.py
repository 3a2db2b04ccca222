"""
cryptotax/config.py

Loads environment variables from .env at the project root and exposes the
policy knobs used by the FIFO engine and the tax-year gain report.

Key Settings:
- CGT_ANNUAL_EXCLUSION: gain excluded once per tax year (default 40000)
- CGT_INCLUSION_RATE: fraction of the post-exclusion gain that is taxable (default 0.4)
- FIFO_SNAPSHOT_TAX_YEARS: capture ledger snapshots at tax-year boundaries (default true)
- FIFO_BALANCE_POLICY: "strict" rejects over-disposals, "tolerant" records a shortfall
- LOG_LEVEL: root logging level (default WARNING)
"""

import os
import logging
from decimal import Decimal, InvalidOperation
from dotenv import load_dotenv

from cryptotax.constants import DEFAULT_ANNUAL_EXCLUSION, DEFAULT_INCLUSION_RATE

# ------------------------------------------------------------------
# 1) Environment Setup
# ------------------------------------------------------------------
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(BASE_DIR)

dotenv_path = os.path.join(PROJECT_ROOT, ".env")
load_dotenv(dotenv_path=dotenv_path)

# ------------------------------------------------------------------
# 2) Logging Setup
# ------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING").upper()
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.debug(f"Loaded .env from: {dotenv_path}")


def _env_decimal(name: str, default: str) -> Decimal:
    """
    Read a Decimal from the environment. A malformed value is a deployment
    error, so it is raised rather than silently replaced by the default.
    """
    raw = os.getenv(name, default)
    try:
        return Decimal(raw.strip())
    except InvalidOperation:
        raise ValueError(f"{name} must be a decimal number, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ------------------------------------------------------------------
# 3) Tax Policy
# ------------------------------------------------------------------
ANNUAL_EXCLUSION = _env_decimal("CGT_ANNUAL_EXCLUSION", DEFAULT_ANNUAL_EXCLUSION)
INCLUSION_RATE = _env_decimal("CGT_INCLUSION_RATE", DEFAULT_INCLUSION_RATE)

# ------------------------------------------------------------------
# 4) Engine Behaviour
# ------------------------------------------------------------------
SNAPSHOT_TAX_YEAR_BOUNDARIES = _env_bool("FIFO_SNAPSHOT_TAX_YEARS", True)
BALANCE_POLICY = os.getenv("FIFO_BALANCE_POLICY", "strict").strip().lower()

logger.debug(
    f"Config: exclusion={ANNUAL_EXCLUSION} inclusion={INCLUSION_RATE} "
    f"snapshots={SNAPSHOT_TAX_YEAR_BOUNDARIES} policy={BALANCE_POLICY}"
)
