"""
Main runner module.
Orchestrates all model components and generates outputs.
"""

import logging
import math

import pandas as pd
import numpy as np
from dataclasses import asdict
from typing import Dict, Any, List, Optional, Sequence, Tuple

from .cashflow import CashflowModel
from .exceptions import DebtSizingError, DegenerateInputError
from .flip import FlipSolver, PpaSolved, ppa_mode_from_inputs
from .inputs import InputValidator, load_inputs
from .writer_excel import ExcelWriter

logger = logging.getLogger(__name__)


class PartnershipFlipModel:
    """Leveraged partnership flip model orchestrator."""

    def __init__(self, inputs: Dict[str, Any], energy: Optional[Sequence[float]] = None,
                 defaults_used: Optional[List[str]] = None,
                 warnings: Optional[List[str]] = None):
        """
        Initialize model with validated inputs.

        Args:
            inputs: Validated parameter mapping (see inputs.InputValidator)
            energy: Annual net energy (kWh); defaults to inputs['system_enet']
            defaults_used: Audit trail of defaults applied during validation
            warnings: Validation warnings
        """
        self.inputs = inputs
        self.energy = np.asarray(inputs['system_enet'] if energy is None else energy, dtype=float)
        self.defaults_used = list(defaults_used or [])
        self.warnings = list(warnings or [])

        self.ppa_mode = ppa_mode_from_inputs(inputs)
        self.flip_solver = FlipSolver(inputs)

        # Results storage
        self.cashflow_model = None
        self.cashflow_df = None
        self.summary = None
        self.flip_state = None
        self.metrics = None
        self.ppa_price = None
        self.ppa_evaluations = 0

    @classmethod
    def from_json(cls, inputs_path: str) -> 'PartnershipFlipModel':
        """Build a model from a JSON inputs file."""
        inputs, defaults_used, warnings = load_inputs(inputs_path)
        return cls(inputs, defaults_used=defaults_used, warnings=warnings)

    def run(self) -> Tuple[pd.DataFrame, Dict[str, Any]]:
        """
        Run complete financial model.

        Returns:
            (cashflow_dataframe, results_dict)
        """
        logger.info("Running partnership flip model...")

        if len(self.energy) == 0:
            raise DegenerateInputError("Annual energy series is empty")

        self.cashflow_model = CashflowModel(self.inputs, self.energy)

        _, breakdown = self.cashflow_model.capex_model.calculate_installed_cost()
        if not math.isfinite(breakdown['cost_installedperwatt']):
            raise DegenerateInputError(
                f"Installed cost per watt is undefined for a nameplate of "
                f"{self.inputs['system_nameplate']} kW"
            )

        # Step 1: PPA price
        escalation = self.ppa_mode.escalation
        if isinstance(self.ppa_mode, PpaSolved):
            logger.info("  1. Solving PPA price for a flip in year %d...", self.ppa_mode.target_year)
            self.ppa_price, self.ppa_evaluations = self.flip_solver.solve_ppa_price(
                self._target_year_gap, self.ppa_mode)
        else:
            logger.info("  1. Using specified PPA price of %.4f cents/kWh", self.ppa_mode.price)
            self.ppa_price = self.ppa_mode.price

        # Step 2: Project ledger
        logger.info("  2. Building cash-flow ledger...")
        self.cashflow_df, self.summary = self.cashflow_model.build(self.ppa_price, escalation)

        # Step 3: Flip allocation
        logger.info("  3. Allocating between tax investor and sponsor...")
        equity = self.summary['equity_amount']
        rows, self.flip_state = self.flip_solver.allocate(self.cashflow_df, equity)
        self.cashflow_model.apply_stage(self.cashflow_df, 'flip_allocation', rows)

        self.summary['tax_investor_equity'] = self.flip_solver.investor_equity(equity)
        self.summary['sponsor_equity'] = equity - self.summary['tax_investor_equity']

        if not self.flip_state.flip_reached:
            self.warnings.append(
                f"Tax investor does not reach the {self.inputs['return_target']}% target "
                f"return within {self.inputs['analysis_years']} years"
            )

        # Step 4: Metrics
        logger.info("  4. Calculating financial metrics...")
        self.metrics = self.cashflow_model.metrics_calc.calculate_all_metrics(self.cashflow_df, self.summary)

        logger.info("Model run complete!")
        logger.info("  PPA price: %.4f cents/kWh", self.ppa_price)
        logger.info("  Flip year: %s", self.flip_state.flip_year)
        logger.info("  Debt: $%s", f"{self.summary['debt_amount']:,.0f}")
        logger.info("  Tax investor IRR: %.2f%%", self.metrics['tax_investor_irr'] * 100)

        return self.cashflow_df, self.to_results()

    def _target_year_gap(self, price: float, mode: PpaSolved) -> Optional[float]:
        """Target year gap at a trial price; None when term debt cannot be sized."""
        try:
            cf, summary = self.cashflow_model.build(price, mode.escalation)
        except DebtSizingError as e:
            logger.debug("PPA %.6f cents/kWh is infeasible: %s", price, e)
            return None
        return self.flip_solver.target_year_gap(cf, summary['equity_amount'], mode)

    def to_results(self) -> Dict[str, Any]:
        """
        Flatten a completed run into the host result mapping.

        Returns:
            Dict of named scalars, flip state, warnings, and one read-only
            array per ledger line keyed cf_<line>
        """
        if self.cashflow_df is None:
            raise RuntimeError("Model has not been run")

        results = {}
        results.update(self.summary)
        results.update(self.metrics)
        results.update(asdict(self.flip_state))

        results['ppa_price'] = self.ppa_price
        results['ppa_escalation'] = self.ppa_mode.escalation
        results['ppa_solve_evaluations'] = self.ppa_evaluations
        results['warnings'] = list(self.warnings)
        results['defaults_used'] = list(self.defaults_used)

        results.update(self.cashflow_model.format_output(self.cashflow_df))

        return results

    def export_to_excel(self, output_path: str):
        """
        Export model to Excel workbook.

        Args:
            output_path: Path for output Excel file
        """
        if self.cashflow_df is None:
            raise RuntimeError("Model has not been run")

        logger.info("Exporting to Excel: %s", output_path)

        writer = ExcelWriter(
            self.inputs, self.cashflow_df, self.to_results(),
            self.defaults_used, self.warnings
        )

        writer.write_workbook(output_path)

        logger.info("Export complete!")


def run_model(inputs: Dict[str, Any], energy: Optional[Sequence[float]] = None) -> Dict[str, Any]:
    """
    Validate a parameter mapping and run the model once.

    Args:
        inputs: Flat parameter mapping; missing optional keys take defaults
        energy: Annual net energy (kWh); overrides inputs['system_enet']

    Returns:
        Results mapping (see PartnershipFlipModel.to_results)
    """
    data = dict(inputs)
    if energy is not None:
        data['system_enet'] = list(energy)

    validator = InputValidator()
    validated = validator.validate(data)

    model = PartnershipFlipModel(validated, defaults_used=validator.defaults_used,
                                 warnings=validator.warnings)
    _, results = model.run()

    return results
