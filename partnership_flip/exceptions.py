"""
Error types raised by the partnership flip model.
"""


class FlipModelError(Exception):
    """Base class for all model failures reported to the caller."""


class InputError(FlipModelError, ValueError):
    """Input mapping failed validation."""


class DegenerateInputError(FlipModelError, ValueError):
    """Inputs that pass validation but make the arithmetic meaningless."""


class DebtSizingError(FlipModelError):
    """Term debt cannot be sized to the target coverage ratio."""


class PpaSolveError(FlipModelError):
    """PPA price search could not bracket or converge on the target return."""
