"""
Tax and depreciation calculation module.
Handles schedule-weighted depreciation with bonus depreciation, taxable
income by jurisdiction, and the resulting state and federal tax savings.
"""

import pandas as pd
import numpy as np
from typing import Dict, Any

from .depreciation import (
    DepreciationClass, class_allocations, class_capabilities, class_from_index,
    schedule_factors,
)


class TaxModel:
    """Calculates depreciation, taxable income, and tax savings."""

    def __init__(self, inputs: Dict[str, Any]):
        self.inputs = inputs

        self.federal_rate = inputs['federal_tax_rate'] / 100.0
        self.state_rate = inputs['state_tax_rate'] / 100.0

    def allocate_basis(self, depreciable_basis: float) -> Dict[DepreciationClass, float]:
        """Split a jurisdiction's depreciable basis across schedule classes."""
        return {
            depr_class: depreciable_basis * share
            for depr_class, share in class_allocations(self.inputs).items()
        }

    def calculate_depreciation(self, jurisdiction: str,
                               class_basis: Dict[DepreciationClass, float],
                               itc_reductions: Dict[DepreciationClass, float],
                               replacements: np.ndarray,
                               years: pd.Index) -> pd.DataFrame:
        """
        Calculate depreciation for one jurisdiction.

        Bonus depreciation is taken in year 1 on eligible classes; the rest of
        each class's basis (after ITC reduction and bonus) follows its schedule.
        Equipment replacements are depreciated from the year they are placed
        in service on the jurisdiction's replacement schedule.

        Args:
            jurisdiction: 'sta' or 'fed'
            class_basis: Allocated basis per class before ITC reduction
            itc_reductions: Basis reduction per class from claimed ITCs
            replacements: Equipment replacement spend by year
            years: Ledger index (0..N)

        Returns:
            DataFrame with {j}_bonus_depreciation, {j}_depreciation, {j}_depr_sched
        """
        n = len(years)
        n_years = n - 1
        bonus_pct = self.inputs.get(f'depr_bonus_{jurisdiction}', 0.0) / 100.0
        capabilities = class_capabilities(self.inputs, jurisdiction)

        bonus = np.zeros(n)
        depreciation = np.zeros(n)

        for depr_class, basis in class_basis.items():
            net_basis = basis - itc_reductions.get(depr_class, 0.0)
            if net_basis <= 0:
                continue

            class_bonus = net_basis * bonus_pct if capabilities[depr_class].bonus_eligible else 0.0
            if n > 1:
                bonus[1] += class_bonus

            depreciation[1:] += (net_basis - class_bonus) * schedule_factors(depr_class, n_years)

        # Major equipment replacements
        replacement_class = class_from_index(self.inputs.get(f'equip_reserve_depr_{jurisdiction}', 0))
        for year in np.flatnonzero(replacements):
            remaining = n - year
            depreciation[year:] += replacements[year] * schedule_factors(replacement_class, remaining)

        depreciation += bonus

        total_basis = sum(class_basis.values()) - sum(itc_reductions.values())
        if total_basis > 0:
            depr_sched = depreciation / total_basis
        else:
            depr_sched = np.zeros(n)

        return pd.DataFrame({
            f'{jurisdiction}_bonus_depreciation': bonus,
            f'{jurisdiction}_depreciation': depreciation,
            f'{jurisdiction}_depr_sched': depr_sched,
        }, index=years)

    def calculate_taxes(self, cf: pd.DataFrame) -> pd.DataFrame:
        """
        Calculate taxable income and tax savings by jurisdiction.

        Tax savings are negative when tax is owed. Losses are assumed to be
        used against the partners' other income in the year they arise.
        State income tax is deductible for federal purposes.

        Args:
            cf: Ledger with revenue, expense, incentive, debt and depreciation rows

        Returns:
            DataFrame with income, taxable income and tax savings rows
        """
        operating = cf.index > 0

        deductible_expenses = cf['operating_expenses']
        common_income = cf['reserve_interest'] - deductible_expenses - cf['debt_payment_interest']

        # State
        sta_incentive_income = (cf['sta_taxable_incentives'] + common_income -
                                cf['sta_depreciation'])
        sta_taxable_income = sta_incentive_income + cf['energy_value']
        sta_income_tax = sta_taxable_income * self.state_rate
        sta_tax_savings = -sta_income_tax + cf['ptc_sta'] + cf['itc_sta_total']

        # Federal
        fed_incentive_income = (cf['fed_taxable_incentives'] + common_income -
                                cf['fed_depreciation'] - sta_income_tax)
        fed_taxable_income = fed_incentive_income + cf['energy_value']
        fed_tax_savings = (-fed_taxable_income * self.federal_rate +
                           cf['ptc_fed'] + cf['itc_fed_total'])

        df = pd.DataFrame({
            'deductible_expenses': deductible_expenses,
            'sta_incentive_income_less_deductions': sta_incentive_income,
            'sta_taxable_income_less_deductions': sta_taxable_income,
            'sta_tax_savings': sta_tax_savings,
            'fed_incentive_income_less_deductions': fed_incentive_income,
            'fed_taxable_income_less_deductions': fed_taxable_income,
            'fed_tax_savings': fed_tax_savings,
        }, index=cf.index)

        df.loc[~operating, :] = 0.0
        df['sta_and_fed_tax_savings'] = df['sta_tax_savings'] + df['fed_tax_savings']

        return df
