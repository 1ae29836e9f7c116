"""Unit tests for capex module."""

import unittest
import sys
import os
import math

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from partnership_flip.capex import CapExModel


class TestCapExModel(unittest.TestCase):
    """Test cost roll-up and financing costs."""

    def setUp(self):
        """Set up test inputs."""
        self.inputs = {
            'system_nameplate': 10000,
            'cost_gen_equip': 24000000,
            'cost_bop': 8000000,
            'cost_network': 3500000,
            'percent_contingency': 1.0,
            'cost_developer': 2000000,
            'cost_land_improve': 200000,
            'cost_other': 75000,
            'percent_taxable': 100.0,
            'sales_tax_rate': 5.0,
            'constr_period': 0,
        }

    def test_installed_cost_example(self):
        """10 MW example project."""
        installed, breakdown = CapExModel(self.inputs).calculate_installed_cost()

        self.assertAlmostEqual(breakdown['cost_contingency'], 355000, places=2)
        self.assertAlmostEqual(breakdown['cost_hard'], 35500000 + 355000, places=2)
        self.assertAlmostEqual(breakdown['cost_salestax'], 1906500, places=2)
        self.assertAlmostEqual(breakdown['cost_soft'], 2275000 + 1906500, places=2)
        self.assertAlmostEqual(installed, 40036500, places=2)
        self.assertAlmostEqual(breakdown['cost_installedperwatt'], 4.00365, places=5)

    def test_installed_equals_hard_plus_soft(self):
        """Installed cost is exactly hard plus soft."""
        for taxable, rate in [(100.0, 5.0), (40.0, 8.25), (0.0, 6.0)]:
            self.inputs['percent_taxable'] = taxable
            self.inputs['sales_tax_rate'] = rate

            installed, breakdown = CapExModel(self.inputs).calculate_installed_cost()

            self.assertEqual(installed, breakdown['cost_hard'] + breakdown['cost_soft'])

    def test_per_watt_scales_inversely_with_capacity(self):
        """Doubling nameplate halves $/W."""
        _, small = CapExModel(self.inputs).calculate_installed_cost()

        self.inputs['system_nameplate'] = 20000
        _, large = CapExModel(self.inputs).calculate_installed_cost()

        self.assertAlmostEqual(large['cost_installedperwatt'],
                               small['cost_installedperwatt'] / 2, places=10)

    def test_zero_nameplate_per_watt_not_finite(self):
        """Zero capacity gives a non-finite $/W for the caller to reject."""
        self.inputs['system_nameplate'] = 0

        _, breakdown = CapExModel(self.inputs).calculate_installed_cost()

        self.assertFalse(math.isfinite(breakdown['cost_installedperwatt']))

    def test_construction_interest(self):
        """Interest accrues monthly on the cumulative draw."""
        self.inputs['constr_period'] = 12
        self.inputs['constr_int_rate'] = 12.0

        interest = CapExModel(self.inputs).calculate_construction_interest(1200000)

        # Draws of 100k; balances 100k..1.2M at 1%/month
        self.assertAlmostEqual(interest, 78000, places=2)

    def test_financing_costs_total(self):
        """Total cost is installed cost plus every financing component."""
        self.inputs.update({
            'constr_period': 0,
            'constr_upfront_fee': 1.0,
            'cost_debt_closing': 250000,
            'cost_equity_closing': 100000,
            'cost_working_reserve': 150000,
        })

        costs = CapExModel(self.inputs).calculate_financing_costs(40000000, 500000)

        self.assertAlmostEqual(costs['cost_constr_upfront_fee'], 400000)
        self.assertAlmostEqual(costs['cost_financing'], 400000 + 250000 + 100000 + 150000 + 500000)
        self.assertAlmostEqual(costs['cost_total'], 41400000)

    def test_depreciable_basis_excludes_reserves(self):
        """Reserve balances and basis-reducing incentives are not depreciable."""
        model = CapExModel(self.inputs)
        costs = {'cost_working_reserve': 150000, 'dsra_funding': 500000}

        basis = model.get_depreciable_basis(41000000, costs, basis_reducing_incentives=1000000)

        self.assertAlmostEqual(basis, 41000000 - 150000 - 500000 - 1000000)
        self.assertEqual(model.get_depreciable_basis(100, costs), 0.0)


if __name__ == '__main__':
    unittest.main()
