"""Unit tests for opex module."""

import unittest
import sys
import os
import pandas as pd
import numpy as np

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from partnership_flip.opex import OpExModel


class TestOpExModel(unittest.TestCase):
    """Test operating expense calculations."""

    def setUp(self):
        """Set up test inputs."""
        self.inputs = {
            'inflation': 2.0,
            'om_fixed': 100000,
            'om_fixed_escal': 1.0,
            'om_production': 3.0,
            'om_capacity': 20.0,
            'property_tax_rate': 1.0,
            'prop_tax_cost_assessed': 90.0,
            'prop_tax_assessed_decline': 5.0,
            'insurance_rate': 0.5,
            'equip_reserve1_cost': 0.1,
            'equip_reserve1_freq': 10,
        }
        self.years = pd.RangeIndex(0, 26, name='year')
        self.energy = np.array([0.0] + [2000000.0] * 25)
        self.model = OpExModel(self.inputs, nameplate_kw=1000)

    def test_om_escalation(self):
        """Each O&M item escalates at inflation plus its own rate."""
        om = self.model.calculate_om(self.energy, self.years)

        self.assertEqual(om['om_fixed_expense'].iloc[0], 0.0)
        self.assertAlmostEqual(om['om_fixed_expense'].iloc[1], 100000)
        self.assertAlmostEqual(om['om_fixed_expense'].iloc[3], 100000 * 1.03 ** 2)
        self.assertAlmostEqual(om['om_production_expense'].iloc[1], 6000)
        self.assertAlmostEqual(om['om_capacity_expense'].iloc[2], 20000 * 1.02)

    def test_property_tax_on_declining_value(self):
        """Assessed value declines each year from its year 1 value."""
        taxes = self.model.calculate_property_tax(10000000, self.years)

        self.assertAlmostEqual(taxes['property_tax_assessed_value'].iloc[1], 9000000)
        self.assertAlmostEqual(taxes['property_tax_assessed_value'].iloc[2], 9000000 * 0.95)
        self.assertAlmostEqual(taxes['property_tax_expense'].iloc[1], 90000)
        self.assertAlmostEqual(taxes['insurance_expense'].iloc[2], 50000 * 1.02)
        self.assertEqual(taxes['property_tax_expense'].iloc[0], 0.0)

    def test_equipment_reserves(self):
        """Reserves fund evenly and pay out every replacement cycle."""
        reserves = self.model.calculate_equipment_reserves(self.years)

        self.assertAlmostEqual(reserves['equip_reserve_funding'].iloc[1], 10000)
        self.assertAlmostEqual(reserves['equip_reserve_funding'].sum(), 200000)
        self.assertEqual(reserves['equip_reserve_funding'].iloc[21], 0.0)
        self.assertEqual(reserves['equip_replacement'].iloc[10], 100000)
        self.assertEqual(reserves['equip_replacement'].iloc[20], 100000)
        self.assertEqual(reserves['equip_replacement'].sum(), 200000)

    def test_total_opex(self):
        """Total excludes reserve funding."""
        opex = self.model.calculate_om(self.energy, self.years)
        opex = opex.join(self.model.calculate_property_tax(10000000, self.years))
        opex = self.model.calculate_total_opex(opex)

        expected = 100000 + 6000 + 20000 + 90000 + 50000
        self.assertAlmostEqual(opex['operating_expenses'].iloc[1], expected)


if __name__ == '__main__':
    unittest.main()
