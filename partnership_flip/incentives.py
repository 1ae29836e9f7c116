"""
Incentive and tax credit calculation module.
Handles investment-, capacity- and production-based incentives, production
tax credits, and investment tax credits with their basis reduction.
"""

import logging

import pandas as pd
import numpy as np
from typing import Dict, Any, Tuple

from .depreciation import DepreciationClass, JURISDICTIONS, class_capabilities
from .inputs import INCENTIVE_SOURCES

logger = logging.getLogger(__name__)

# Depreciable basis is reduced by half of a claimed ITC
ITC_BASIS_REDUCTION = 0.5


class IncentiveModel:
    """Calculates payment incentives and tax credits."""

    def __init__(self, inputs: Dict[str, Any], nameplate_kw: float):
        self.inputs = inputs
        self.nameplate_kw = nameplate_kw

    def calculate_upfront_incentives(self, total_cost: float) -> Dict[str, float]:
        """
        Investment-based (fixed and percent of cost) and capacity-based incentives.

        Args:
            total_cost: Installed cost including financing costs

        Returns:
            Dict keyed ibi_{source}_amt, ibi_{source}_per, cbi_{source}
        """
        incentives = {}

        for source in INCENTIVE_SOURCES:
            incentives[f'ibi_{source}_amt'] = self.inputs.get(f'ibi_{source}_amount', 0.0)

            percent = self.inputs.get(f'ibi_{source}_percent', 0.0) / 100.0
            cap = self.inputs.get(f'ibi_{source}_percent_maxvalue', np.inf)
            incentives[f'ibi_{source}_per'] = min(total_cost * percent, cap)

            # $/W on nameplate
            cbi = self.inputs.get(f'cbi_{source}_amount', 0.0) * self.nameplate_kw * 1000.0
            incentives[f'cbi_{source}'] = min(cbi, self.inputs.get(f'cbi_{source}_maxvalue', np.inf))

        return incentives

    @staticmethod
    def _input_prefix(line: str) -> str:
        """Map an incentive line name to its input-flag prefix."""
        if line.endswith('_amt'):
            return line[:-len('_amt')] + '_amount'
        if line.endswith('_per'):
            return line[:-len('_per')] + '_percent'
        return line

    def basis_reducing_incentives(self, upfront: Dict[str, float], jurisdiction: str) -> float:
        """Upfront incentives flagged as reducing one jurisdiction's depreciable basis."""
        total = 0.0
        for line, amount in upfront.items():
            if self.inputs.get(f'{self._input_prefix(line)}_deprbas_{jurisdiction}', 0):
                total += amount
        return total

    def _escalated_production_payment(self, energy_net: np.ndarray, years: pd.Index,
                                      rate: float, term: int, escal_pct: float) -> np.ndarray:
        """$/kWh payment on energy, escalating, for the first `term` operating years."""
        year_numbers = np.asarray(years, dtype=int)
        in_term = (year_numbers > 0) & (year_numbers <= term)
        factor = (1 + escal_pct / 100.0) ** np.maximum(year_numbers - 1, 0)
        return np.where(in_term, energy_net * rate * factor, 0.0)

    def calculate_payment_incentives(self, upfront: Dict[str, float], energy_net: np.ndarray,
                                     years: pd.Index) -> pd.DataFrame:
        """
        Calculate incentive cash rows.

        Upfront incentives are received in year 1; production-based incentives
        are paid on each year's energy for their term.

        Returns:
            DataFrame with per-source and total IBI, CBI and PBI rows and the
            taxable incentive income of each jurisdiction
        """
        n = len(years)
        rows = {}

        for line, amount in upfront.items():
            row = np.zeros(n)
            if n > 1:
                row[1] = amount
            rows[line] = row

        for source in INCENTIVE_SOURCES:
            rows[f'pbi_{source}'] = self._escalated_production_payment(
                energy_net, years,
                self.inputs.get(f'pbi_{source}_amount', 0.0),
                int(self.inputs.get(f'pbi_{source}_term', 0)),
                self.inputs.get(f'pbi_{source}_escal', 0.0),
            )

        df = pd.DataFrame(rows, index=years)

        df['ibi_total'] = df[[f'ibi_{s}_{kind}' for s in INCENTIVE_SOURCES for kind in ('amt', 'per')]].sum(axis=1)
        df['cbi_total'] = df[[f'cbi_{s}' for s in INCENTIVE_SOURCES]].sum(axis=1)
        df['pbi_total'] = df[[f'pbi_{s}' for s in INCENTIVE_SOURCES]].sum(axis=1)

        for jurisdiction in JURISDICTIONS:
            taxable = np.zeros(n)
            for line in list(upfront) + [f'pbi_{s}' for s in INCENTIVE_SOURCES]:
                if self.inputs.get(f'{self._input_prefix(line)}_tax_{jurisdiction}', 1):
                    taxable += df[line].to_numpy()
            df[f'{jurisdiction}_taxable_incentives'] = taxable

        return df

    def calculate_ptc(self, energy_net: np.ndarray, years: pd.Index) -> pd.DataFrame:
        """Calculate federal and state production tax credits by year."""
        rows = {}
        for jurisdiction in ('fed', 'sta'):
            rows[f'ptc_{jurisdiction}'] = self._escalated_production_payment(
                energy_net, years,
                self.inputs.get(f'ptc_{jurisdiction}_amount', 0.0),
                int(self.inputs.get(f'ptc_{jurisdiction}_term', 0)),
                self.inputs.get(f'ptc_{jurisdiction}_escal', 0.0),
            )
        return pd.DataFrame(rows, index=years)

    def calculate_itc(self, class_basis: Dict[str, Dict[DepreciationClass, float]],
                      years: pd.Index) -> Tuple[pd.DataFrame, Dict[str, Dict[DepreciationClass, float]]]:
        """
        Calculate investment tax credits and the depreciable basis they reduce.

        Each credit is a fixed amount plus a percentage of the basis in the
        classes flagged ITC-eligible for that credit's jurisdiction. Half of a
        credit flagged against jurisdiction j's basis is removed from j's
        classes, in proportion to the basis the credit was claimed on.

        Args:
            class_basis: {jurisdiction: {class: allocated basis}} before reduction
            years: Ledger index (0..N)

        Returns:
            (itc_rows, {jurisdiction: {class: basis reduction}})
        """
        n = len(years)
        rows = {}
        reductions = {j: {c: 0.0 for c in class_basis[j]} for j in JURISDICTIONS}

        for credit in ('fed', 'sta'):
            capabilities = class_capabilities(self.inputs, credit)
            eligible = [c for c, cap in capabilities.items() if cap.itc_eligible]
            eligible_basis = sum(class_basis[credit][c] for c in eligible)

            amount = self.inputs.get(f'itc_{credit}_amount', 0.0)
            percent = min(eligible_basis * self.inputs.get(f'itc_{credit}_percent', 0.0) / 100.0,
                          self.inputs.get(f'itc_{credit}_percent_maxvalue', np.inf))
            total = amount + percent

            for line, value in ((f'itc_{credit}_amt', amount), (f'itc_{credit}_per', percent),
                                (f'itc_{credit}_total', total)):
                row = np.zeros(n)
                if n > 1:
                    row[1] = value
                rows[line] = row

            if total <= 0:
                continue

            for jurisdiction in JURISDICTIONS:
                if not self.inputs.get(f'itc_{credit}_deprbas_{jurisdiction}', 1):
                    continue

                basis = class_basis[jurisdiction]
                weights = {c: basis[c] for c in eligible if basis[c] > 0}
                if not weights:
                    weights = {c: b for c, b in basis.items() if b > 0}
                weight_total = sum(weights.values())
                if weight_total <= 0:
                    continue

                reduction = ITC_BASIS_REDUCTION * total
                for depr_class, weight in weights.items():
                    reductions[jurisdiction][depr_class] += reduction * weight / weight_total

            logger.debug("%s ITC %.2f on eligible basis %.2f", credit, total, eligible_basis)

        # A class cannot lose more basis than it has
        for jurisdiction in JURISDICTIONS:
            for depr_class, reduction in reductions[jurisdiction].items():
                reductions[jurisdiction][depr_class] = min(reduction, class_basis[jurisdiction][depr_class])

        return pd.DataFrame(rows, index=years), reductions
