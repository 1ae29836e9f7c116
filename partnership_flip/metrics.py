"""
Financial metrics calculation module.
Calculates discount rates, NPV, IRR, payback, levelized PPA price, and DSCR.
"""

import pandas as pd
import numpy as np
from typing import Dict, Any, Sequence
from scipy.optimize import brentq

# IRR search bracket (decimal rates)
IRR_LOWER = -0.99
IRR_UPPER = 10.0


class MetricsCalculator:
    """Calculates financial metrics from the cash-flow ledger."""

    def __init__(self, inputs: Dict[str, Any]):
        self.inputs = inputs
        self.inflation_rate = inputs['inflation'] / 100.0
        self.real_discount_rate = inputs['discount_real'] / 100.0
        self.discount_rate = self.nominal_discount_rate()

    def nominal_discount_rate(self) -> float:
        """Nominal discount rate (decimal) from real rate and inflation."""
        return (1 + self.inflation_rate) * (1 + self.real_discount_rate) - 1

    @staticmethod
    def calculate_npv(rate: float, cashflows: Sequence[float]) -> float:
        """
        Net present value of annual cashflows; the first value is year 0.

        Args:
            rate: Discount rate (decimal)
            cashflows: Cashflows for years 0..N

        Returns:
            NPV
        """
        values = np.asarray(cashflows, dtype=float)
        years = np.arange(len(values))
        return float(np.sum(values / (1 + rate) ** years))

    @classmethod
    def calculate_irr(cls, cashflows: Sequence[float]) -> float:
        """
        Internal rate of return of annual cashflows.

        Returns:
            IRR as decimal (e.g., 0.12 for 12%), or NaN when the NPV does not
            change sign over the search bracket
        """
        values = np.asarray(cashflows, dtype=float)
        if len(values) < 2 or not np.any(values != 0):
            return np.nan

        def npv(rate):
            return cls.calculate_npv(rate, values)

        low, high = npv(IRR_LOWER), npv(IRR_UPPER)
        if np.sign(low) == np.sign(high):
            return np.nan

        return float(brentq(npv, IRR_LOWER, IRR_UPPER, xtol=1e-12, maxiter=200))

    @staticmethod
    def calculate_payback(cumulative: Sequence[float]) -> float:
        """
        Payback period (years) from a cumulative cashflow starting at year 0.

        The year is interpolated within the first year the cumulative value
        turns non-negative.

        Returns:
            Payback period in years, NaN if it never pays back
        """
        values = np.asarray(cumulative, dtype=float)

        if len(values) == 0:
            return np.nan
        if values[0] >= 0:
            return 0.0

        for year in range(1, len(values)):
            if values[year] >= 0:
                flow = values[year] - values[year - 1]
                return (year - 1) + (-values[year - 1] / flow)

        return np.nan  # Never pays back

    def calculate_levelized_price(self, cf: pd.DataFrame) -> Dict[str, float]:
        """
        Calculate levelized PPA price (nominal and real).

        Args:
            cf: Ledger with energy_net and energy_value

        Returns:
            Dict with ppa_levelized_nom and ppa_levelized_real (cents/kWh)
        """
        energy = cf['energy_net']
        revenue = cf['energy_value']

        npv_energy_nominal = self.calculate_npv(self.discount_rate, energy)
        npv_revenue_nominal = self.calculate_npv(self.discount_rate, revenue)

        nominal = (npv_revenue_nominal / npv_energy_nominal * 100.0
                   if npv_energy_nominal > 0 else np.nan)

        # Real: discount energy at the real rate, revenue at nominal
        npv_energy_real = self.calculate_npv(self.real_discount_rate, energy)

        real = (npv_revenue_nominal / npv_energy_real * 100.0
                if npv_energy_real > 0 else np.nan)

        return {
            'ppa_levelized_nom': nominal,
            'ppa_levelized_real': real,
        }

    def calculate_dscr_metrics(self, cf: pd.DataFrame) -> Dict[str, float]:
        """
        Calculate DSCR metrics (min, avg).

        Args:
            cf: Ledger with dscr row

        Returns:
            Dict with min_dscr, avg_dscr
        """
        dscr = cf['dscr'].dropna()

        if len(dscr) == 0:
            return {
                'min_dscr': np.nan,
                'avg_dscr': np.nan,
            }

        return {
            'min_dscr': float(dscr.min()),
            'avg_dscr': float(dscr.mean()),
        }

    def calculate_all_metrics(self, cf: pd.DataFrame, summary: Dict[str, float]) -> Dict[str, Any]:
        """
        Calculate all financial metrics.

        Args:
            cf: Complete ledger, including flip allocation rows
            summary: Cost and financing scalars of the run

        Returns:
            Dictionary of all metrics
        """
        metrics = {}

        metrics['discount_nominal'] = self.discount_rate * 100.0

        # Equity returns
        after_tax = cf['after_tax_cash_flow']
        metrics['npv'] = self.calculate_npv(self.discount_rate, after_tax)
        metrics['irr'] = self.calculate_irr(after_tax)

        metrics['tax_investor_irr'] = self.calculate_irr(cf['tax_investor_aftertax_cash_flow'])
        metrics['tax_investor_npv'] = self.calculate_npv(
            self.discount_rate, cf['tax_investor_aftertax_cash_flow'])
        metrics['sponsor_irr'] = self.calculate_irr(cf['sponsor_aftertax_cash_flow'])
        metrics['sponsor_npv'] = self.calculate_npv(
            self.discount_rate, cf['sponsor_aftertax_cash_flow'])

        # Payback
        metrics['payback_years'] = self.calculate_payback(cf['cumulative_payback_with_expenses'])
        metrics['discounted_payback_years'] = self.calculate_payback(
            cf['cumulative_discounted_payback_with_expenses'])

        metrics.update(self.calculate_levelized_price(cf))
        metrics.update(self.calculate_dscr_metrics(cf))

        total_cost = summary.get('cost_total', 0.0)
        metrics['debt_fraction'] = (summary.get('debt_amount', 0.0) / total_cost * 100.0
                                    if total_cost > 0 else np.nan)

        metrics['lifetime_energy'] = float(cf['energy_net'].sum())
        metrics['lifetime_revenue'] = float(cf['energy_value'].sum())

        return metrics
