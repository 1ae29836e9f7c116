"""
Depreciation schedule library.
Fixed half-year convention tables and per-class bonus/ITC capabilities.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any

import numpy as np


class DepreciationClass(Enum):
    """Schedule classes, in the host's index order (0..5)."""

    MACRS_5 = 'macrs_5'
    MACRS_15 = 'macrs_15'
    SL_5 = 'sl_5'
    SL_15 = 'sl_15'
    SL_20 = 'sl_20'
    SL_39 = 'sl_39'


# MACRS 5-year schedule (half-year convention)
MACRS_5YR = (0.2000, 0.3200, 0.1920, 0.1152, 0.1152, 0.0576)

# MACRS 15-year schedule (half-year convention)
MACRS_15YR = (
    0.0500, 0.0950, 0.0855, 0.0770, 0.0693, 0.0623, 0.0590, 0.0590,
    0.0591, 0.0590, 0.0591, 0.0590, 0.0591, 0.0590, 0.0591, 0.0295,
)

SL_5YR = (0.1000, 0.2000, 0.2000, 0.2000, 0.2000, 0.1000)

SL_15YR = (
    0.0333, 0.0667, 0.0667, 0.0667, 0.0667, 0.0667, 0.0667, 0.0666,
    0.0667, 0.0666, 0.0667, 0.0666, 0.0667, 0.0666, 0.0667, 0.0333,
)

SL_20YR = (0.0250,) + (0.0500,) * 19 + (0.0250,)

# 1/78 and 1/39 to six places; four-place rounding leaves 0.16% undepreciated
SL_39YR = (0.012821,) + (0.025641,) * 38 + (0.012821,)

SCHEDULES = {
    DepreciationClass.MACRS_5: MACRS_5YR,
    DepreciationClass.MACRS_15: MACRS_15YR,
    DepreciationClass.SL_5: SL_5YR,
    DepreciationClass.SL_15: SL_15YR,
    DepreciationClass.SL_20: SL_20YR,
    DepreciationClass.SL_39: SL_39YR,
}

CLASS_ORDER = tuple(DepreciationClass)

JURISDICTIONS = ('sta', 'fed')


@dataclass(frozen=True)
class ClassCapability:
    """What a schedule class may claim in one jurisdiction."""

    bonus_eligible: bool
    itc_eligible: bool


def class_from_index(index: int) -> DepreciationClass:
    """Map the host's integer class code (0=5yr MACRS ... 5=39yr SL)."""
    return CLASS_ORDER[int(index)]


def schedule_factors(depr_class: DepreciationClass, nyears: int) -> np.ndarray:
    """
    Fraction of depreciable basis recognized in each year.

    Args:
        depr_class: Schedule class
        nyears: Number of years to return

    Returns:
        Array of length nyears; element i is the fraction for year i + 1.
        Years past the natural schedule length are zero.
    """
    table = SCHEDULES[DepreciationClass(depr_class)]
    factors = np.zeros(nyears)
    n = min(nyears, len(table))
    factors[:n] = table[:n]
    return factors


def class_allocations(inputs: Dict[str, Any]) -> Dict[DepreciationClass, float]:
    """Share of depreciable basis assigned to each class (decimal)."""
    return {
        depr_class: inputs.get(f'depr_alloc_{depr_class.value}', 0.0) / 100.0
        for depr_class in CLASS_ORDER
    }


def class_capabilities(inputs: Dict[str, Any],
                       jurisdiction: str) -> Dict[DepreciationClass, ClassCapability]:
    """
    Build the bonus/ITC capability record of every class for one jurisdiction.

    Args:
        inputs: Parameter mapping with depr_bonus_{j}_{class} and
            depr_itc_{j}_{class} flags
        jurisdiction: 'sta' or 'fed'
    """
    if jurisdiction not in JURISDICTIONS:
        raise ValueError(f"Unknown jurisdiction: {jurisdiction}")

    return {
        depr_class: ClassCapability(
            bonus_eligible=bool(inputs.get(f'depr_bonus_{jurisdiction}_{depr_class.value}', 0)),
            itc_eligible=bool(inputs.get(f'depr_itc_{jurisdiction}_{depr_class.value}', 0)),
        )
        for depr_class in CLASS_ORDER
    }
