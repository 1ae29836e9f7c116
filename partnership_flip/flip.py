"""
Flip-point solver module.
Allocates project cash and tax benefits between the tax investor and the
sponsor, locates the flip year, and solves for the PPA price that makes the
flip land on a target year.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Any, Callable, Optional, Tuple, Union

import pandas as pd
import numpy as np
from scipy.optimize import brentq

from .exceptions import PpaSolveError
from .metrics import MetricsCalculator

logger = logging.getLogger(__name__)

# Cumulative investor NPV at the target rate, relative to investor equity,
# that counts as having reached the target return
FLIP_TOLERANCE = 1e-6


@dataclass(frozen=True)
class PpaSpecified:
    """PPA price is an input; the flip year is found."""

    price: float
    escalation: float = 0.0


@dataclass(frozen=True)
class PpaSolved:
    """Flip year and return are inputs; the PPA price is found."""

    target_year: int
    target_return: float
    escalation: float = 0.0


PpaMode = Union[PpaSpecified, PpaSolved]


def ppa_mode_from_inputs(inputs: Dict[str, Any]) -> PpaMode:
    """Build the PPA mode from ppa_soln_mode (0 = specify price, 1 = solve for price)."""
    if int(inputs.get('ppa_soln_mode', 0)) == 1:
        return PpaSolved(
            target_year=int(inputs['return_target_year']),
            target_return=inputs['return_target'],
            escalation=inputs.get('ppa_escalation', 0.0),
        )
    return PpaSpecified(price=inputs['ppa_price'], escalation=inputs.get('ppa_escalation', 0.0))


@dataclass
class FlipState:
    """Outcome of the flip allocation for one run."""

    flip_year: Optional[int]
    flip_reached: bool
    preflip_cash_share: float
    postflip_cash_share: float
    preflip_tax_share: float
    postflip_tax_share: float
    irr_at_target_year: float
    irr_at_flip_year: float
    irr_end: float


class FlipSolver:
    """Locates the flip year and solves for the PPA price that achieves it."""

    def __init__(self, inputs: Dict[str, Any]):
        self.inputs = inputs

        self.equity_share = inputs['equity_tax_investor'] / 100.0
        self.preflip_cash_share = inputs['preflip_sharing_tax_investor'] / 100.0
        self.postflip_cash_share = inputs['postflip_sharing_tax_investor'] / 100.0
        self.preflip_tax_share = inputs.get(
            'preflip_tax_sharing_tax_investor', inputs['preflip_sharing_tax_investor']) / 100.0
        self.postflip_tax_share = inputs.get(
            'postflip_tax_sharing_tax_investor', inputs['postflip_sharing_tax_investor']) / 100.0

        self.target_return = inputs['return_target'] / 100.0
        self.target_year = int(inputs.get('return_target_year', 0))

        self.tolerance = inputs.get('ppa_soln_tolerance', 1e-6)
        self.max_iterations = int(inputs.get('ppa_soln_max_iterations', 100))

    def investor_equity(self, equity: float) -> float:
        """Tax investor's share of the equity contributed at closing."""
        return equity * self.equity_share

    def _scale(self, equity: float) -> float:
        return max(self.investor_equity(equity), 1.0)

    def allocate(self, cf: pd.DataFrame, equity: float) -> Tuple[pd.DataFrame, FlipState]:
        """
        Allocate cash and tax benefits and find the flip year.

        Scans forward from year 1, accumulating the tax investor's after-tax
        cash flows discounted at the target return. The first year the
        cumulative NPV reaches zero is the flip year; pre-flip shares apply
        through that year and post-flip shares after it.

        Args:
            cf: Ledger with pretax_cash_flow and sta_and_fed_tax_savings
            equity: Total equity contributed at closing

        Returns:
            (allocation_rows, flip_state)
        """
        n = len(cf.index)
        pretax = cf['pretax_cash_flow'].to_numpy(dtype=float)
        tax = cf['sta_and_fed_tax_savings'].to_numpy(dtype=float)

        cash_share = np.zeros(n)
        tax_share = np.zeros(n)
        cumulative_npv = np.zeros(n)

        investor_equity = self.investor_equity(equity)
        threshold = -FLIP_TOLERANCE * self._scale(equity)

        flip_year = None
        npv = -investor_equity
        cumulative_npv[0] = npv

        for year in range(1, n):
            flipped = flip_year is not None
            cash_share[year] = self.postflip_cash_share if flipped else self.preflip_cash_share
            tax_share[year] = self.postflip_tax_share if flipped else self.preflip_tax_share

            flow = cash_share[year] * pretax[year] + tax_share[year] * tax[year]
            npv += flow / (1 + self.target_return) ** year
            cumulative_npv[year] = npv

            if not flipped and npv >= threshold:
                flip_year = year

        investor_pretax = cash_share * pretax
        investor_tax = tax_share * tax
        investor_pretax[0] = -investor_equity

        sponsor_pretax = pretax - cash_share * pretax
        sponsor_tax = tax - investor_tax
        sponsor_pretax[0] = -(equity - investor_equity)

        investor_aftertax = investor_pretax + investor_tax

        cumulative_irr = np.full(n, np.nan)
        for year in range(1, n):
            cumulative_irr[year] = MetricsCalculator.calculate_irr(investor_aftertax[:year + 1])

        rows = pd.DataFrame({
            'tax_investor_cash_share': cash_share,
            'tax_investor_tax_share': tax_share,
            'tax_investor_pretax_cash': investor_pretax,
            'tax_investor_tax_benefit': investor_tax,
            'tax_investor_aftertax_cash_flow': investor_aftertax,
            'tax_investor_cumulative_npv': cumulative_npv,
            'tax_investor_cumulative_irr': cumulative_irr,
            'sponsor_pretax_cash': sponsor_pretax,
            'sponsor_tax_benefit': sponsor_tax,
            'sponsor_aftertax_cash_flow': sponsor_pretax + sponsor_tax,
        }, index=cf.index)

        def irr_at(year):
            if year is None or not 1 <= year < n:
                return np.nan
            return cumulative_irr[year]

        state = FlipState(
            flip_year=flip_year,
            flip_reached=flip_year is not None,
            preflip_cash_share=self.preflip_cash_share,
            postflip_cash_share=self.postflip_cash_share,
            preflip_tax_share=self.preflip_tax_share,
            postflip_tax_share=self.postflip_tax_share,
            irr_at_target_year=irr_at(self.target_year),
            irr_at_flip_year=irr_at(flip_year),
            irr_end=cumulative_irr[-1] if n > 1 else np.nan,
        )

        if flip_year is None:
            logger.warning("Tax investor never reaches the %.2f%% target return within %d years",
                           self.target_return * 100.0, n - 1)

        return rows, state

    def target_year_gap(self, cf: pd.DataFrame, equity: float, mode: PpaSolved) -> float:
        """
        Tax investor NPV at mode's target return through mode's target year,
        with pre-flip shares throughout, relative to investor equity.

        Zero means the target return is met exactly in the target year.
        """
        target_year = mode.target_year
        rate = mode.target_return / 100.0

        years = np.arange(target_year + 1)
        pretax = cf['pretax_cash_flow'].to_numpy(dtype=float)[:target_year + 1]
        tax = cf['sta_and_fed_tax_savings'].to_numpy(dtype=float)[:target_year + 1]

        flows = self.preflip_cash_share * pretax + self.preflip_tax_share * tax
        flows[0] = -self.investor_equity(equity)

        npv = np.sum(flows / (1 + rate) ** years)
        return float(npv / self._scale(equity))

    def solve_ppa_price(self, evaluate: Callable[[float, PpaSolved], Optional[float]],
                        mode: PpaSolved) -> Tuple[float, int]:
        """
        Find the year 1 PPA price that makes the flip happen in the target year.

        Args:
            evaluate: Maps a trial price (cents/kWh) and mode to target_year_gap
                for a ledger built at that price, or None when term debt cannot
                be sized at that price
            mode: Target year, return and escalation

        Returns:
            (price, evaluations)
        """
        low = self.inputs.get('ppa_soln_min', 0.0)
        high = self.inputs.get('ppa_soln_max', 100.0)
        evaluations = 0

        def gap(price):
            nonlocal evaluations
            evaluations += 1
            value = evaluate(price, mode)
            logger.debug("PPA %.6f cents/kWh -> target year gap %s", price, value)
            return value

        # Debt can outgrow the project cost at high prices; move the high end down
        gap_high = gap(high)
        for _ in range(self.max_iterations):
            if gap_high is not None:
                break
            high = (low + high) / 2.0
            gap_high = gap(high)

        if gap_high is None or gap_high < 0:
            raise PpaSolveError(
                f"Target return of {mode.target_return}% in year {mode.target_year} "
                f"is not reached at the maximum PPA price of {high} cents/kWh"
            )

        # Move the low end up until the bracket is feasible and below target
        infeasible_below = None
        for _ in range(self.max_iterations):
            gap_low = gap(low)
            if gap_low is None:
                infeasible_below = low
                low = (low + high) / 2.0
            elif gap_low < 0:
                break
            elif infeasible_below is None:
                raise PpaSolveError(
                    f"Target return is already exceeded at the minimum PPA price of {low} cents/kWh"
                )
            else:
                high = low
                low = (infeasible_below + high) / 2.0
        else:
            raise PpaSolveError(f"Could not bracket the PPA price in {self.max_iterations} iterations")

        def objective(price):
            value = gap(price)
            if value is None:
                raise PpaSolveError(f"Term debt cannot be sized at {price} cents/kWh inside the bracket")
            return value

        price, result = brentq(objective, low, high, xtol=1e-12, rtol=1e-12,
                               maxiter=self.max_iterations, full_output=True, disp=False)

        if not result.converged:
            raise PpaSolveError(
                f"PPA price did not converge in {self.max_iterations} iterations: {result.flag}"
            )

        residual = objective(price)
        if abs(residual) > min(self.tolerance, FLIP_TOLERANCE):
            raise PpaSolveError(f"PPA price {price} misses the target return (residual {residual:.3e})")

        logger.info("Solved PPA price %.6f cents/kWh in %d evaluations", price, evaluations)

        return float(price), evaluations
