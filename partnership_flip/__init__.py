"""
Partnership Flip Model Package
Cash-flow, debt sizing, and flip-point modeling for leveraged partnership
flip tax equity structures.
"""

__version__ = "1.0.0"
__author__ = "Partnership Flip Model Team"

from .exceptions import (
    FlipModelError, InputError, DegenerateInputError, DebtSizingError, PpaSolveError,
)
from .runner import PartnershipFlipModel, run_model

__all__ = [
    "run_model", "PartnershipFlipModel",
    "FlipModelError", "InputError", "DegenerateInputError", "DebtSizingError", "PpaSolveError",
]
