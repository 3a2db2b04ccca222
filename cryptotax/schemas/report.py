"""
cryptotax/schemas/report.py

Tax-year x asset gain allocation report.
"""

from pydantic import BaseModel, Field
from typing import Dict, List
from decimal import Decimal

from cryptotax.schemas.breakdown import TransactionBreakdown


class AssetGain(BaseModel):
    """Gross gain for one asset inside one tax year."""
    gross_gain: Decimal
    breakdowns: List[TransactionBreakdown] = Field(default_factory=list)


class TaxYearGainReport(BaseModel):
    """
    Aggregated result for a single tax year.

    net_after_exclusion is negative when the year closed at a loss;
    the exclusion is never used to enlarge a loss.
    """
    tax_year: str
    coins: Dict[str, AssetGain] = Field(default_factory=dict)
    net_gross_gain: Decimal = Decimal("0")
    annual_exclusion_applied: Decimal = Decimal("0")
    net_after_exclusion: Decimal = Decimal("0")
    taxable_after_inclusion: Decimal = Decimal("0")


class BreakdownTotals(BaseModel):
    """Totals recomputed from stored breakdowns."""
    total_proceeds: Decimal = Decimal("0")
    total_cost_base: Decimal = Decimal("0")
    total_capital_gain: Decimal = Decimal("0")
    total_capital_loss: Decimal = Decimal("0")
    net_capital_gain: Decimal = Decimal("0")
