"""
Debt financing calculation module.
Handles DSCR-constrained debt sizing, level-payment amortization,
coverage ratios, and reserve accounts (DSRA, working capital).
"""

import logging

import pandas as pd
import numpy as np
from typing import Dict, Any

from .exceptions import DebtSizingError

logger = logging.getLogger(__name__)


def capital_recovery_factor(rate: float, n_years: int) -> float:
    """Level annual payment per unit of principal."""
    if n_years <= 0:
        raise ValueError("n_years must be positive")
    if rate == 0:
        return 1.0 / n_years
    growth = (1 + rate) ** n_years
    return rate * growth / (growth - 1)


class DebtModel:
    """Calculates term debt sizing, service, and coverage ratios."""

    def __init__(self, inputs: Dict[str, Any]):
        self.inputs = inputs

        self.tenor = int(inputs.get('term_tenor', 0))
        self.interest_rate = inputs.get('term_int_rate', 0.0) / 100.0
        self.target_dscr = inputs.get('dscr', 0.0)
        self.use_debt = self.tenor > 0

    def calculate_cash_available(self, cf: pd.DataFrame) -> np.ndarray:
        """
        Cash available for debt service by year.

        Energy value less operating expenses and equipment reserve funding;
        zero in the closing year.
        """
        cash = (cf['energy_value'] - cf['operating_expenses'] -
                cf['equip_reserve_funding']).to_numpy(dtype=float, copy=True)
        cash[0] = 0.0
        return cash

    def size_debt(self, cash_available: np.ndarray) -> float:
        """
        Size debt so the weakest year of the term exactly meets the target DSCR.

        With a level payment, DSCR in year t is cash_t / (principal * crf), so the
        largest feasible principal is the minimum over the term of
        cash_t / target / crf.

        Args:
            cash_available: Cash available for debt service by year (index 0..N)

        Returns:
            Sized debt principal
        """
        if not self.use_debt:
            return 0.0

        if self.target_dscr <= 0:
            raise DebtSizingError(f"Target DSCR must be positive, got {self.target_dscr}")

        cash = np.asarray(cash_available[1:self.tenor + 1], dtype=float)
        if len(cash) < self.tenor:
            raise DebtSizingError(
                f"Debt tenor of {self.tenor} years exceeds the {len(cash)} operating years"
            )

        crf = capital_recovery_factor(self.interest_rate, self.tenor)
        feasible_principal = cash / self.target_dscr / crf

        binding_year = int(np.argmin(feasible_principal)) + 1
        principal = float(feasible_principal.min())

        if principal <= 0:
            raise DebtSizingError(
                f"Target DSCR {self.target_dscr} is unachievable: cash available for "
                f"debt service is {cash[binding_year - 1]:,.0f} in year {binding_year}"
            )

        logger.debug("Debt sized at %.2f, binding year %d", principal, binding_year)

        return principal

    def calculate_debt_service(self, debt_principal: float, years: pd.Index) -> pd.DataFrame:
        """
        Calculate level-payment debt service schedule.

        Args:
            debt_principal: Total debt amount, drawn at closing (year 0)
            years: Ledger index (0..N)

        Returns:
            DataFrame with debt service schedule
        """
        n = len(years)
        debt_balance = np.zeros(n)
        interest_payment = np.zeros(n)
        principal_payment = np.zeros(n)

        if not self.use_debt or debt_principal <= 0:
            return pd.DataFrame({
                'debt_balance': debt_balance,
                'debt_payment_interest': interest_payment,
                'debt_payment_principal': principal_payment,
                'debt_payment_total': np.zeros(n),
            }, index=years)

        payment = debt_principal * capital_recovery_factor(self.interest_rate, self.tenor)

        current_balance = debt_principal
        debt_balance[0] = current_balance

        for year in range(1, min(self.tenor, n - 1) + 1):
            interest = current_balance * self.interest_rate

            if year == self.tenor:
                # Retire the remaining balance exactly
                principal = current_balance
            else:
                principal = payment - interest

            current_balance -= principal

            debt_balance[year] = current_balance
            interest_payment[year] = interest
            principal_payment[year] = principal

        return pd.DataFrame({
            'debt_balance': debt_balance,
            'debt_payment_interest': interest_payment,
            'debt_payment_principal': principal_payment,
            'debt_payment_total': interest_payment + principal_payment,
        }, index=years)

    def calculate_dsra_funding(self, debt_principal: float) -> float:
        """Debt service reserve: the configured months of annual P&I."""
        if not self.use_debt or debt_principal <= 0:
            return 0.0

        payment = debt_principal * capital_recovery_factor(self.interest_rate, self.tenor)
        return payment * self.inputs.get('dscr_reserve', 0) / 12.0

    def calculate_reserves(self, dsra_funding: float, years: pd.Index) -> pd.DataFrame:
        """
        Calculate reserve account balances, interest earned, and releases.

        The DSRA is held through the debt term and released with the final
        payment; the working capital reserve is released in the last year.

        Args:
            dsra_funding: DSRA balance funded at closing
            years: Ledger index (0..N)

        Returns:
            DataFrame with reserve balances and cash effects
        """
        n = len(years)
        last_year = n - 1
        working_reserve = self.inputs.get('cost_working_reserve', 0.0)
        reserve_rate = self.inputs.get('reserves_interest', 0.0) / 100.0

        dsra_balance = np.zeros(n)
        working_balance = np.zeros(n)
        release = np.zeros(n)

        if dsra_funding > 0:
            release_year = min(self.tenor, last_year)
            dsra_balance[:release_year] = dsra_funding
            release[release_year] += dsra_funding

        if working_reserve > 0 and last_year > 0:
            working_balance[:last_year] = working_reserve
            release[last_year] += working_reserve

        # Interest earned on opening balances
        interest = np.zeros(n)
        interest[1:] = (dsra_balance[:-1] + working_balance[:-1]) * reserve_rate

        return pd.DataFrame({
            'dsra_balance': dsra_balance,
            'working_reserve_balance': working_balance,
            'reserve_interest': interest,
            'reserve_release': release,
        }, index=years)

    def calculate_dscr(self, cash_available: np.ndarray,
                       debt_payment_total: np.ndarray) -> np.ndarray:
        """
        Calculate Debt Service Coverage Ratio.

        Years without debt service have no DSCR (NaN).
        """
        cash = np.asarray(cash_available, dtype=float)
        payment = np.asarray(debt_payment_total, dtype=float)

        dscr = np.full(len(payment), np.nan)
        has_payment = payment > 0
        dscr[has_payment] = cash[has_payment] / payment[has_payment]

        return dscr
