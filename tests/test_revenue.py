"""Unit tests for revenue module."""

import unittest
import sys
import os
import pandas as pd

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from partnership_flip.revenue import RevenueModel


class TestRevenueModel(unittest.TestCase):
    """Test PPA revenue calculations."""

    def setUp(self):
        """Set up test inputs."""
        self.years = pd.RangeIndex(0, 6, name='year')
        self.model = RevenueModel({}, [1000000, 990000, 980000, 970000, 960000])

    def test_closing_year_has_no_energy(self):
        """Energy starts in year 1."""
        revenue = self.model.calculate_revenue(self.years, 10.0, 0.0)

        self.assertEqual(revenue['energy_net'].iloc[0], 0.0)
        self.assertEqual(revenue['energy_net'].iloc[1], 1000000)
        self.assertEqual(revenue['energy_value'].iloc[0], 0.0)

    def test_energy_value_in_dollars(self):
        """cents/kWh times kWh, converted to dollars."""
        revenue = self.model.calculate_revenue(self.years, 10.0, 0.0)

        self.assertAlmostEqual(revenue['energy_value'].iloc[1], 100000)
        self.assertAlmostEqual(revenue['energy_value'].iloc[5], 96000)

    def test_price_escalation(self):
        """Price escalates from year 2."""
        revenue = self.model.calculate_revenue(self.years, 10.0, 2.0)

        self.assertAlmostEqual(revenue['ppa_price'].iloc[1], 10.0)
        self.assertAlmostEqual(revenue['ppa_price'].iloc[3], 10.0 * 1.02 ** 2)
        self.assertAlmostEqual(revenue['energy_value'].iloc[3], 980000 * 10.0 * 1.02 ** 2 / 100)


if __name__ == '__main__':
    unittest.main()
