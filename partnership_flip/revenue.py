"""
Revenue calculation module.
Handles net energy delivered and PPA energy value by year.
"""

import pandas as pd
import numpy as np
from typing import Dict, Any, Sequence


class RevenueModel:
    """Calculates energy sales under the power purchase agreement."""

    def __init__(self, inputs: Dict[str, Any], energy: Sequence[float]):
        self.inputs = inputs
        self.energy = np.asarray(energy, dtype=float)

    def operating_years(self, years: pd.Index) -> np.ndarray:
        """Year numbers as an array; year 0 is the closing year."""
        return np.asarray(years, dtype=int)

    def calculate_energy(self, years: pd.Index) -> np.ndarray:
        """Net energy by year (kWh), zero in the closing year."""
        energy_net = np.zeros(len(years))
        energy_net[1:] = self.energy[:len(years) - 1]
        return energy_net

    def calculate_revenue(self, years: pd.Index, ppa_price: float,
                          ppa_escalation: float) -> pd.DataFrame:
        """
        Calculate PPA revenue.

        Args:
            years: Ledger index (0..N)
            ppa_price: Year 1 price (cents/kWh)
            ppa_escalation: Annual escalation (%)

        Returns:
            DataFrame with energy_net, ppa_price, energy_value
        """
        year_numbers = self.operating_years(years)
        escalation = ppa_escalation / 100.0

        energy_net = self.calculate_energy(years)

        price = np.where(year_numbers > 0,
                         ppa_price * (1 + escalation) ** (year_numbers - 1),
                         0.0)

        # cents/kWh -> $/kWh
        energy_value = energy_net * price / 100.0

        return pd.DataFrame({
            'energy_net': energy_net,
            'ppa_price': price,
            'energy_value': energy_value,
        }, index=years)
