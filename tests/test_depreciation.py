"""Unit tests for depreciation schedule library."""

import unittest
import sys
import os
import numpy as np

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from partnership_flip.depreciation import (
    DepreciationClass, SCHEDULES, class_capabilities, class_from_index, schedule_factors,
)


class TestDepreciationSchedules(unittest.TestCase):
    """Test fixed schedule tables."""

    def test_schedules_sum_to_one(self):
        """Every schedule recognizes the full basis."""
        for depr_class, table in SCHEDULES.items():
            self.assertAlmostEqual(sum(table), 1.0, delta=1e-4, msg=depr_class.name)

    def test_schedule_lengths(self):
        """Half-year convention adds one year to the recovery period."""
        expected = {
            DepreciationClass.MACRS_5: 6,
            DepreciationClass.MACRS_15: 16,
            DepreciationClass.SL_5: 6,
            DepreciationClass.SL_15: 16,
            DepreciationClass.SL_20: 21,
            DepreciationClass.SL_39: 40,
        }
        for depr_class, length in expected.items():
            self.assertEqual(len(SCHEDULES[depr_class]), length)

    def test_years_beyond_schedule_are_zero(self):
        """Padding past the natural length is zero."""
        factors = schedule_factors(DepreciationClass.MACRS_5, 30)

        self.assertEqual(len(factors), 30)
        self.assertAlmostEqual(factors[0], 0.20)
        self.assertAlmostEqual(factors[1], 0.32)
        self.assertTrue(np.all(factors[6:] == 0))

    def test_truncated_schedule(self):
        """Short horizons take the first years of the schedule."""
        factors = schedule_factors(DepreciationClass.SL_39, 10)

        self.assertEqual(len(factors), 10)
        self.assertAlmostEqual(factors[0], 0.012821)
        self.assertAlmostEqual(factors[9], 0.025641)

    def test_class_from_index(self):
        """Host index order runs 5yr MACRS to 39yr SL."""
        self.assertEqual(class_from_index(0), DepreciationClass.MACRS_5)
        self.assertEqual(class_from_index(1), DepreciationClass.MACRS_15)
        self.assertEqual(class_from_index(5), DepreciationClass.SL_39)

    def test_class_capabilities(self):
        """Flags map to per-class capability records."""
        inputs = {
            'depr_bonus_fed_macrs_5': 1,
            'depr_itc_fed_macrs_5': 1,
            'depr_itc_fed_sl_15': 1,
        }

        caps = class_capabilities(inputs, 'fed')

        self.assertTrue(caps[DepreciationClass.MACRS_5].bonus_eligible)
        self.assertTrue(caps[DepreciationClass.MACRS_5].itc_eligible)
        self.assertFalse(caps[DepreciationClass.SL_15].bonus_eligible)
        self.assertTrue(caps[DepreciationClass.SL_15].itc_eligible)
        self.assertFalse(caps[DepreciationClass.SL_39].itc_eligible)

    def test_unknown_jurisdiction(self):
        """Only state and federal jurisdictions exist."""
        with self.assertRaises(ValueError):
            class_capabilities({}, 'local')


if __name__ == '__main__':
    unittest.main()
