"""
cryptotax/services/allocation.py

Tax-year gain allocation. Works purely on stored TransactionBreakdown records,
so a report can be rebuilt at any time without replaying the FIFO engine.

Pipeline:
  1) allocate_disposals_by_tax_year: group SELL and TRADE breakdowns by
     (tax year, disposed asset)
  2) calculate_gains_per_asset_per_tax_year: sum gains per asset and per year,
     apply the annual exclusion once per year, then the inclusion rate

The exclusion and inclusion rate are always supplied by the caller.
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, List

from cryptotax.constants import ZERO
from cryptotax.schemas.breakdown import TransactionBreakdown
from cryptotax.schemas.report import AssetGain, BreakdownTotals, TaxYearGainReport
from cryptotax.services.tax_year import tax_year_label

logger = logging.getLogger(__name__)

DisposalGroups = Dict[str, Dict[str, List[TransactionBreakdown]]]


def allocate_disposals_by_tax_year(breakdowns: Iterable[TransactionBreakdown]) -> DisposalGroups:
    """
    Group disposal breakdowns as {tax_year: {asset: [breakdown, ...]}}.
    Insertion order follows the breakdown order.
    """
    groups: DisposalGroups = {}
    for bd in breakdowns:
        if not bd.is_disposal:
            continue

        coin = bd.disposed_currency
        if coin is None:
            logger.warning(f"Disposal on line {bd.line_number} has no asset; skipped in allocation")
            continue

        tax_year = bd.tax_year or tax_year_label(bd.date)
        groups.setdefault(tax_year, {}).setdefault(coin, []).append(bd)

    return groups


def apply_exclusion(net_gross_gain: Decimal, annual_exclusion: Decimal):
    """
    Returns (after_exclusion, exclusion_applied).

    Only a positive gain is reduced, and never below zero. A loss or zero
    passes through unchanged with nothing applied.
    """
    if net_gross_gain > ZERO:
        after_exclusion = max(ZERO, net_gross_gain - annual_exclusion)
        applied = min(annual_exclusion, net_gross_gain)
        return after_exclusion, applied
    return net_gross_gain, ZERO


def calculate_gains_per_asset_per_tax_year(
    breakdowns: Iterable[TransactionBreakdown],
    annual_exclusion: Decimal,
    inclusion_rate: Decimal,
) -> Dict[str, TaxYearGainReport]:
    """
    Build the tax-year x asset report.

    Args:
        breakdowns: breakdowns produced by FIFOEngine (non-disposals are ignored)
        annual_exclusion: amount excluded once per tax year with a positive gain
        inclusion_rate: fraction of the post-exclusion amount that is taxable

    Returns:
        {tax_year_label: TaxYearGainReport}, in order of first disposal
    """
    annual_exclusion = Decimal(str(annual_exclusion))
    inclusion_rate = Decimal(str(inclusion_rate))

    report: Dict[str, TaxYearGainReport] = {}
    for tax_year, coins in allocate_disposals_by_tax_year(breakdowns).items():
        year_report = TaxYearGainReport(tax_year=tax_year)

        for coin, coin_breakdowns in coins.items():
            gross = ZERO
            for bd in coin_breakdowns:
                gross += bd.capital_gain or ZERO
            year_report.coins[coin] = AssetGain(gross_gain=gross, breakdowns=coin_breakdowns)
            year_report.net_gross_gain += gross

        after_exclusion, applied = apply_exclusion(year_report.net_gross_gain, annual_exclusion)
        year_report.annual_exclusion_applied = applied
        year_report.net_after_exclusion = after_exclusion
        year_report.taxable_after_inclusion = after_exclusion * inclusion_rate

        logger.debug(
            f"[{tax_year}] gross={year_report.net_gross_gain} excluded={applied} "
            f"taxable={year_report.taxable_after_inclusion}"
        )
        report[tax_year] = year_report

    return report


def summarize_breakdowns(breakdowns: Iterable[TransactionBreakdown]) -> BreakdownTotals:
    """
    Recompute proceeds, cost base and gain/loss totals from stored breakdowns.
    Matches the engine's running summary for the same stream.
    """
    totals = BreakdownTotals()
    for bd in breakdowns:
        if not bd.is_disposal:
            continue
        gain = bd.capital_gain or ZERO
        totals.total_proceeds += bd.proceeds or ZERO
        totals.total_cost_base += bd.cost_base or ZERO
        if gain >= ZERO:
            totals.total_capital_gain += gain
        else:
            totals.total_capital_loss += abs(gain)
        totals.net_capital_gain += gain
    return totals
