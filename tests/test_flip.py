"""Unit tests for flip module."""

import unittest
import sys
import os
import pandas as pd
import numpy as np

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from partnership_flip.exceptions import PpaSolveError
from partnership_flip.flip import (
    FlipSolver, PpaSolved, PpaSpecified, ppa_mode_from_inputs,
)


class TestFlipSolver(unittest.TestCase):
    """Test flip allocation and PPA price solve."""

    def setUp(self):
        """Set up test inputs."""
        self.inputs = {
            'equity_tax_investor': 100.0,
            'preflip_sharing_tax_investor': 100.0,
            'postflip_sharing_tax_investor': 10.0,
            'return_target': 10.0,
            'return_target_year': 4,
            'ppa_soln_min': 0.0,
            'ppa_soln_max': 20.0,
            'ppa_soln_tolerance': 1e-6,
            'ppa_soln_max_iterations': 100,
        }
        self.years = pd.RangeIndex(0, 11, name='year')

    def _ledger(self, tax_per_year):
        pretax = np.zeros(len(self.years))
        pretax[0] = -1000.0
        tax = np.full(len(self.years), float(tax_per_year))
        tax[0] = 0.0
        return pd.DataFrame({
            'pretax_cash_flow': pretax,
            'sta_and_fed_tax_savings': tax,
        }, index=self.years)

    def test_ppa_mode_from_inputs(self):
        """Mode 0 carries the price, mode 1 the target."""
        self.inputs.update({'ppa_soln_mode': 0, 'ppa_price': 9.5, 'ppa_escalation': 1.0})
        self.assertEqual(ppa_mode_from_inputs(self.inputs), PpaSpecified(price=9.5, escalation=1.0))

        self.inputs['ppa_soln_mode'] = 1
        self.assertEqual(ppa_mode_from_inputs(self.inputs),
                         PpaSolved(target_year=4, target_return=10.0, escalation=1.0))

    def test_flip_year(self):
        """Investor NPV at 10% turns positive in year 4."""
        rows, state = FlipSolver(self.inputs).allocate(self._ledger(400), 1000.0)

        self.assertTrue(state.flip_reached)
        self.assertEqual(state.flip_year, 4)
        self.assertLess(rows['tax_investor_cumulative_npv'].iloc[3], 0)
        self.assertGreaterEqual(rows['tax_investor_cumulative_npv'].iloc[4], 0)
        self.assertGreater(state.irr_at_flip_year, 0.10)

        npv = rows['tax_investor_cumulative_npv'].to_numpy()
        self.assertTrue(np.all(np.diff(npv[:state.flip_year + 1]) >= 0))

    def test_postflip_shares_after_flip_year(self):
        """Pre-flip shares through the flip year, post-flip after."""
        rows, state = FlipSolver(self.inputs).allocate(self._ledger(400), 1000.0)

        self.assertTrue((rows['tax_investor_tax_share'].iloc[1:5] == 1.0).all())
        self.assertTrue((rows['tax_investor_tax_share'].iloc[5:] == 0.1).all())
        self.assertAlmostEqual(rows['tax_investor_tax_benefit'].iloc[5], 40.0)
        self.assertAlmostEqual(rows['sponsor_tax_benefit'].iloc[5], 360.0)

    def test_investor_and_sponsor_add_up(self):
        """Allocation splits every year's project flows exactly."""
        self.inputs['equity_tax_investor'] = 90.0
        cf = self._ledger(400)
        cf['pretax_cash_flow'] = np.r_[-1000.0, np.full(10, 50.0)]

        rows, _ = FlipSolver(self.inputs).allocate(cf, 1000.0)

        total = rows['tax_investor_aftertax_cash_flow'] + rows['sponsor_aftertax_cash_flow']
        expected = cf['pretax_cash_flow'] + cf['sta_and_fed_tax_savings']
        np.testing.assert_allclose(total.to_numpy(), expected.to_numpy())
        self.assertAlmostEqual(rows['tax_investor_pretax_cash'].iloc[0], -900.0)
        self.assertAlmostEqual(rows['sponsor_pretax_cash'].iloc[0], -100.0)

    def test_flip_never_reached(self):
        """A return never achieved is reported, not an error."""
        solver = FlipSolver(self.inputs)

        with self.assertLogs('partnership_flip.flip', level='WARNING'):
            rows, state = solver.allocate(self._ledger(10), 1000.0)

        self.assertFalse(state.flip_reached)
        self.assertIsNone(state.flip_year)
        self.assertTrue(np.isnan(state.irr_at_flip_year))
        self.assertTrue((rows['tax_investor_tax_share'].iloc[1:] == 1.0).all())

    def test_target_year_gap(self):
        """Gap changes sign between years 3 and 4."""
        solver = FlipSolver(self.inputs)
        cf = self._ledger(400)
        year_3 = PpaSolved(target_year=3, target_return=10.0)
        year_4 = PpaSolved(target_year=4, target_return=10.0)

        self.assertLess(solver.target_year_gap(cf, 1000.0, year_3), 0)
        self.assertGreater(solver.target_year_gap(cf, 1000.0, year_4), 0)

    def test_solve_uses_mode_target_return(self):
        """A higher target return needs a higher price."""
        solver = FlipSolver(self.inputs)

        def evaluate(price, mode):
            return solver.target_year_gap(self._ledger(100.0 * price), 1000.0, mode)

        prices = {}
        for target in (10.0, 20.0):
            mode = PpaSolved(target_year=4, target_return=target)
            prices[target], _ = solver.solve_ppa_price(evaluate, mode)

            annuity = sum(1 / (1 + target / 100.0) ** t for t in range(1, 5))
            self.assertAlmostEqual(prices[target], 10.0 / annuity, places=6)

        self.assertGreater(prices[20.0], prices[10.0])

    def test_solve_uses_mode_target_year(self):
        """A later flip year needs a lower price."""
        solver = FlipSolver(self.inputs)

        def evaluate(price, mode):
            return solver.target_year_gap(self._ledger(100.0 * price), 1000.0, mode)

        early, _ = solver.solve_ppa_price(evaluate, PpaSolved(target_year=4, target_return=10.0))
        late, _ = solver.solve_ppa_price(evaluate, PpaSolved(target_year=8, target_return=10.0))

        self.assertLess(late, early)

    def test_solve_ppa_price(self):
        """Root of a monotone gap function."""
        solver = FlipSolver(self.inputs)
        mode = PpaSolved(target_year=4, target_return=10.0)

        price, evaluations = solver.solve_ppa_price(lambda p, m: (p / 10.0) ** 3 - 0.4, mode)

        self.assertAlmostEqual(price, 10.0 * 0.4 ** (1 / 3), places=9)
        self.assertGreater(evaluations, 2)

    def test_solve_moves_past_infeasible_prices(self):
        """Prices where debt cannot be sized are skipped at both ends."""
        solver = FlipSolver(self.inputs)
        mode = PpaSolved(target_year=4, target_return=10.0)

        def gap(price, _):
            if price < 3.0 or price > 15.0:
                return None
            return price - 7.25

        price, _ = solver.solve_ppa_price(gap, mode)

        self.assertAlmostEqual(price, 7.25, places=9)

    def test_unreachable_target(self):
        """Target not met at the maximum price."""
        solver = FlipSolver(self.inputs)
        mode = PpaSolved(target_year=4, target_return=10.0)

        with self.assertRaises(PpaSolveError):
            solver.solve_ppa_price(lambda p, m: -1.0, mode)

    def test_target_exceeded_at_minimum(self):
        """Target already beaten at the minimum price."""
        solver = FlipSolver(self.inputs)
        mode = PpaSolved(target_year=4, target_return=10.0)

        with self.assertRaises(PpaSolveError):
            solver.solve_ppa_price(lambda p, m: 1.0, mode)

    def test_non_convergence(self):
        """Iteration limit reached is an error, not an inaccurate price."""
        self.inputs['ppa_soln_max_iterations'] = 1
        solver = FlipSolver(self.inputs)
        mode = PpaSolved(target_year=4, target_return=10.0)

        with self.assertRaises(PpaSolveError):
            solver.solve_ppa_price(lambda p, m: (p / 10.0) ** 3 - 0.4, mode)


if __name__ == '__main__':
    unittest.main()
