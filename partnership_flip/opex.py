"""
Operating expenditure calculation module.
Handles O&M, property tax on a declining assessed value, insurance,
and major equipment replacement reserves.
"""

import pandas as pd
import numpy as np
from typing import Dict, Any

EQUIPMENT_RESERVES = (1, 2, 3)


class OpExModel:
    """Calculates operating expenses, property taxes, and equipment reserves."""

    def __init__(self, inputs: Dict[str, Any], nameplate_kw: float):
        self.inputs = inputs
        self.nameplate_kw = nameplate_kw
        self.inflation = inputs['inflation'] / 100.0

    def _escalation_factor(self, year_numbers: np.ndarray, escal_pct: float) -> np.ndarray:
        """Inflation plus item-specific escalation, 1.0 in year 1."""
        rate = self.inflation + escal_pct / 100.0
        return np.where(year_numbers > 0, (1 + rate) ** (year_numbers - 1), 0.0)

    def calculate_om(self, energy_net: np.ndarray, years: pd.Index) -> pd.DataFrame:
        """
        Calculate annual O&M expenses.

        Args:
            energy_net: Net energy by year (kWh)
            years: Ledger index (0..N)

        Returns:
            DataFrame with fixed, production, capacity and fuel O&M
        """
        year_numbers = np.asarray(years, dtype=int)
        opex = self.inputs

        # Fixed O&M ($/year)
        fixed = opex.get('om_fixed', 0.0) * self._escalation_factor(
            year_numbers, opex.get('om_fixed_escal', 0.0))

        # Production O&M ($/MWh)
        production = (opex.get('om_production', 0.0) * energy_net / 1000.0 *
                      self._escalation_factor(year_numbers, opex.get('om_production_escal', 0.0)))

        # Capacity O&M ($/kW-year)
        capacity = (opex.get('om_capacity', 0.0) * self.nameplate_kw *
                    self._escalation_factor(year_numbers, opex.get('om_capacity_escal', 0.0)))

        # Fuel ($/MMBtu)
        fuel = (opex.get('om_fuel_cost', 0.0) * opex.get('annual_fuel_usage', 0.0) *
                self._escalation_factor(year_numbers, opex.get('om_fuel_cost_escal', 0.0)))

        return pd.DataFrame({
            'om_fixed_expense': fixed,
            'om_production_expense': production,
            'om_capacity_expense': capacity,
            'om_fuel_expense': fuel,
        }, index=years)

    def calculate_assessed_value(self, installed_cost: float, years: pd.Index) -> np.ndarray:
        """Assessed property value by operating year, declining from the year 1 value."""
        year_numbers = np.asarray(years, dtype=int)
        initial = installed_cost * self.inputs.get('prop_tax_cost_assessed', 0.0) / 100.0
        decline = self.inputs.get('prop_tax_assessed_decline', 0.0) / 100.0

        assessed = np.where(year_numbers > 0,
                            initial * (1 - decline) ** (year_numbers - 1),
                            0.0)
        return np.maximum(assessed, 0.0)

    def calculate_property_tax(self, installed_cost: float, years: pd.Index) -> pd.DataFrame:
        """Calculate property tax and insurance."""
        assessed = self.calculate_assessed_value(installed_cost, years)
        property_tax = assessed * self.inputs.get('property_tax_rate', 0.0) / 100.0

        year_numbers = np.asarray(years, dtype=int)
        insurance = (installed_cost * self.inputs.get('insurance_rate', 0.0) / 100.0 *
                     self._escalation_factor(year_numbers, 0.0))

        return pd.DataFrame({
            'property_tax_assessed_value': assessed,
            'property_tax_expense': property_tax,
            'insurance_expense': insurance,
        }, index=years)

    def calculate_equipment_reserves(self, years: pd.Index) -> pd.DataFrame:
        """
        Calculate major equipment reserve funding and replacement spend.

        Each reserve is funded evenly between replacements and pays for the
        replacement when it falls due, so only the funding is a cash outflow.
        """
        n_years = len(years) - 1
        funding = np.zeros(len(years))
        replacement = np.zeros(len(years))

        for i in EQUIPMENT_RESERVES:
            cost_per_watt = self.inputs.get(f'equip_reserve{i}_cost', 0.0)
            freq = int(self.inputs.get(f'equip_reserve{i}_freq', 0))

            if cost_per_watt <= 0 or freq <= 0 or freq > n_years:
                continue

            replacement_cost = cost_per_watt * self.nameplate_kw * 1000.0
            last_replacement = (n_years // freq) * freq

            funding[1:last_replacement + 1] += replacement_cost / freq
            replacement[freq:last_replacement + 1:freq] += replacement_cost

        return pd.DataFrame({
            'equip_reserve_funding': funding,
            'equip_replacement': replacement,
        }, index=years)

    def calculate_total_opex(self, opex_df: pd.DataFrame) -> pd.DataFrame:
        """
        Calculate total operating expenses.

        Args:
            opex_df: DataFrame with the individual expense columns

        Returns:
            Updated DataFrame with operating_expenses column
        """
        opex_columns = [
            'om_fixed_expense', 'om_production_expense', 'om_capacity_expense',
            'om_fuel_expense', 'property_tax_expense', 'insurance_expense',
        ]

        opex_df['operating_expenses'] = opex_df[opex_columns].sum(axis=1)

        return opex_df
