"""
Cash-flow ledger module.
Defines the ledger lines and builds them through an ordered pipeline of
named stages, each producing a fixed set of lines from the ones before it.
"""

import logging

import pandas as pd
import numpy as np
from typing import Dict, Any, Sequence, Tuple

from .capex import CapExModel
from .debt import DebtModel
from .depreciation import JURISDICTIONS
from .exceptions import DebtSizingError, DegenerateInputError
from .incentives import IncentiveModel
from .inputs import INCENTIVE_SOURCES
from .metrics import MetricsCalculator
from .opex import OpExModel
from .revenue import RevenueModel
from .tax import TaxModel

logger = logging.getLogger(__name__)

_UPFRONT_INCENTIVE_LINES = tuple(
    [f'ibi_{s}_{kind}' for kind in ('amt', 'per') for s in INCENTIVE_SOURCES] +
    [f'cbi_{s}' for s in INCENTIVE_SOURCES]
)

# (stage name, lines it needs, lines it produces), in build order
BUILD_STAGES = (
    ('energy_and_revenue', (), (
        'energy_net', 'ppa_price', 'energy_value',
    )),
    ('operating_expenses', ('energy_net',), (
        'om_fixed_expense', 'om_production_expense', 'om_capacity_expense', 'om_fuel_expense',
        'property_tax_assessed_value', 'property_tax_expense', 'insurance_expense',
        'operating_expenses', 'equip_reserve_funding', 'equip_replacement',
    )),
    ('debt_service', ('energy_value', 'operating_expenses', 'equip_reserve_funding'), (
        'cash_for_debt_service', 'debt_balance', 'debt_payment_interest',
        'debt_payment_principal', 'debt_payment_total', 'dscr',
        'dsra_balance', 'working_reserve_balance', 'reserve_interest', 'reserve_release',
    )),
    # Incentives read the financing costs set while sizing debt
    ('incentives', ('energy_net', 'debt_balance'), _UPFRONT_INCENTIVE_LINES + (
        'ibi_total', 'cbi_total',
        'pbi_fed', 'pbi_sta', 'pbi_uti', 'pbi_oth', 'pbi_total',
        'sta_taxable_incentives', 'fed_taxable_incentives',
        'ptc_fed', 'ptc_sta',
        'itc_fed_amt', 'itc_fed_per', 'itc_fed_total',
        'itc_sta_amt', 'itc_sta_per', 'itc_sta_total',
    )),
    ('depreciation', ('equip_replacement',), (
        'sta_bonus_depreciation', 'sta_depreciation', 'sta_depr_sched',
        'fed_bonus_depreciation', 'fed_depreciation', 'fed_depr_sched',
    )),
    ('taxes', ('energy_value', 'operating_expenses', 'debt_payment_interest', 'reserve_interest',
               'sta_taxable_incentives', 'fed_taxable_incentives', 'sta_depreciation',
               'fed_depreciation', 'ptc_fed', 'ptc_sta', 'itc_fed_total', 'itc_sta_total'), (
        'deductible_expenses',
        'sta_incentive_income_less_deductions', 'sta_taxable_income_less_deductions',
        'sta_tax_savings',
        'fed_incentive_income_less_deductions', 'fed_taxable_income_less_deductions',
        'fed_tax_savings',
        'sta_and_fed_tax_savings',
    )),
    ('after_tax_cash_flow', ('energy_value', 'ibi_total', 'cbi_total', 'pbi_total',
                             'operating_expenses', 'equip_reserve_funding', 'debt_payment_total',
                             'reserve_interest', 'reserve_release', 'sta_and_fed_tax_savings'), (
        'pretax_cash_flow', 'after_tax_net_equity_cost_flow', 'after_tax_cash_flow',
    )),
    ('payback', ('energy_value', 'ibi_total', 'cbi_total', 'pbi_total', 'operating_expenses',
                 'equip_reserve_funding', 'sta_and_fed_tax_savings'), (
        'payback_with_expenses', 'cumulative_payback_with_expenses',
        'payback_without_expenses', 'cumulative_payback_without_expenses',
        'discounted_payback_with_expenses', 'cumulative_discounted_payback_with_expenses',
    )),
    ('flip_allocation', ('pretax_cash_flow', 'sta_and_fed_tax_savings'), (
        'tax_investor_cash_share', 'tax_investor_tax_share',
        'tax_investor_pretax_cash', 'tax_investor_tax_benefit',
        'tax_investor_aftertax_cash_flow', 'tax_investor_cumulative_npv',
        'tax_investor_cumulative_irr',
        'sponsor_pretax_cash', 'sponsor_tax_benefit', 'sponsor_aftertax_cash_flow',
    )),
)

LEDGER_LINES = tuple(line for _, _, produces in BUILD_STAGES for line in produces)

# Stages run by CashflowModel.build; flip allocation is applied by FlipSolver
PROJECT_STAGES = tuple(name for name, _, _ in BUILD_STAGES if name != 'flip_allocation')


def new_ledger(analysis_years: int) -> pd.DataFrame:
    """Empty ledger for years 0..analysis_years; unbuilt lines hold NaN."""
    index = pd.RangeIndex(0, analysis_years + 1, name='year')
    return pd.DataFrame(np.nan, index=index, columns=list(LEDGER_LINES))


class CashflowModel:
    """Builds the cash-flow ledger stage by stage."""

    def __init__(self, inputs: Dict[str, Any], energy: Sequence[float]):
        self.inputs = inputs
        self.energy = np.asarray(energy, dtype=float)
        self.analysis_years = int(inputs['analysis_years'])

        if len(self.energy) == 0:
            raise DegenerateInputError("Annual energy series is empty")
        if len(self.energy) != self.analysis_years:
            raise DegenerateInputError(
                f"Annual energy series has {len(self.energy)} values for "
                f"{self.analysis_years} analysis years"
            )

        self.nameplate_kw = inputs['system_nameplate']

        self.capex_model = CapExModel(inputs)
        self.revenue_model = RevenueModel(inputs, self.energy)
        self.opex_model = OpExModel(inputs, self.nameplate_kw)
        self.debt_model = DebtModel(inputs)
        self.incentive_model = IncentiveModel(inputs, self.nameplate_kw)
        self.tax_model = TaxModel(inputs)
        self.metrics_calc = MetricsCalculator(inputs)

        # Per-build state
        self.summary = {}
        self._built = set()
        self._ppa = (0.0, 0.0)
        self._upfront = {}
        self._financing = {}
        self._class_basis = {}
        self._itc_reductions = {}

    def build(self, ppa_price: float, ppa_escalation: float = 0.0) -> Tuple[pd.DataFrame, Dict[str, float]]:
        """
        Build the project ledger (every stage except the flip allocation).

        Args:
            ppa_price: Year 1 PPA price (cents/kWh)
            ppa_escalation: Annual PPA escalation (%)

        Returns:
            (ledger, summary) where summary holds the cost and financing scalars
        """
        cf = new_ledger(self.analysis_years)

        self.summary = {}
        self._built = set()
        self._ppa = (ppa_price, ppa_escalation)

        _, breakdown = self.capex_model.calculate_installed_cost()
        self.summary.update(breakdown)

        for name, requires, produces in BUILD_STAGES:
            if name not in PROJECT_STAGES:
                continue
            self._run_stage(cf, name, requires, produces)

        return cf, self.summary

    def apply_stage(self, cf: pd.DataFrame, name: str, rows: pd.DataFrame):
        """Write an externally computed stage (the flip allocation) into the ledger."""
        stage = {s[0]: s for s in BUILD_STAGES}[name]
        self._check_requires(name, stage[1])
        self._write(cf, name, stage[2], rows)

    def _check_requires(self, name: str, requires: Tuple[str, ...]):
        missing = [line for line in requires if line not in self._built]
        if missing:
            raise RuntimeError(f"Stage '{name}' needs lines not yet built: {missing}")

    def _run_stage(self, cf: pd.DataFrame, name: str, requires: Tuple[str, ...],
                   produces: Tuple[str, ...]):
        self._check_requires(name, requires)
        rows = getattr(self, f'_stage_{name}')(cf)
        self._write(cf, name, produces, rows)
        logger.debug("Built stage %s (%d lines)", name, len(produces))

    def _write(self, cf: pd.DataFrame, name: str, produces: Tuple[str, ...], rows: pd.DataFrame):
        extra = set(rows.columns) - set(produces)
        missing = set(produces) - set(rows.columns)
        if extra or missing:
            raise RuntimeError(
                f"Stage '{name}' produced {sorted(extra)} unexpectedly and missed {sorted(missing)}"
            )
        for line in produces:
            cf[line] = rows[line].to_numpy(dtype=float)
        self._built.update(produces)

    # Stages

    def _stage_energy_and_revenue(self, cf: pd.DataFrame) -> pd.DataFrame:
        price, escalation = self._ppa
        return self.revenue_model.calculate_revenue(cf.index, price, escalation)

    def _stage_operating_expenses(self, cf: pd.DataFrame) -> pd.DataFrame:
        installed_cost = self.summary['cost_installed']

        opex = self.opex_model.calculate_om(cf['energy_net'].to_numpy(), cf.index)
        opex = opex.join(self.opex_model.calculate_property_tax(installed_cost, cf.index))
        opex = self.opex_model.calculate_total_opex(opex)
        opex = opex.join(self.opex_model.calculate_equipment_reserves(cf.index))

        self.summary['prop_tax_assessed_value'] = float(opex['property_tax_assessed_value'].iloc[1]) \
            if len(opex) > 1 else 0.0

        return opex

    def _stage_debt_service(self, cf: pd.DataFrame) -> pd.DataFrame:
        cash = self.debt_model.calculate_cash_available(cf)
        principal = self.debt_model.size_debt(cash)

        debt = self.debt_model.calculate_debt_service(principal, cf.index)
        debt['cash_for_debt_service'] = cash
        debt['dscr'] = self.debt_model.calculate_dscr(cash, debt['debt_payment_total'])

        dsra_funding = self.debt_model.calculate_dsra_funding(principal)
        debt = debt.join(self.debt_model.calculate_reserves(dsra_funding, cf.index))

        self._financing = self.capex_model.calculate_financing_costs(
            self.summary['cost_installed'], dsra_funding)
        self.summary.update(self._financing)

        equity = self._financing['cost_total'] - principal
        if equity <= 0:
            raise DebtSizingError(
                f"Sized debt of {principal:,.0f} covers the total cost of "
                f"{self._financing['cost_total']:,.0f}; equity would be {equity:,.0f}"
            )

        self.summary['debt_amount'] = principal
        self.summary['equity_amount'] = equity

        return debt

    def _stage_incentives(self, cf: pd.DataFrame) -> pd.DataFrame:
        energy_net = cf['energy_net'].to_numpy()
        total_cost = self._financing['cost_total']

        self._upfront = self.incentive_model.calculate_upfront_incentives(total_cost)
        incentives = self.incentive_model.calculate_payment_incentives(self._upfront, energy_net, cf.index)
        incentives = incentives.join(self.incentive_model.calculate_ptc(energy_net, cf.index))

        # Basis per jurisdiction before ITC
        for jurisdiction in JURISDICTIONS:
            reducing = self.incentive_model.basis_reducing_incentives(self._upfront, jurisdiction)
            basis = self.capex_model.get_depreciable_basis(total_cost, self._financing, reducing)
            self.summary[f'{jurisdiction}_depr_basis'] = basis
            self._class_basis[jurisdiction] = self.tax_model.allocate_basis(basis)

        itc_rows, self._itc_reductions = self.incentive_model.calculate_itc(self._class_basis, cf.index)
        for jurisdiction in JURISDICTIONS:
            self.summary[f'{jurisdiction}_itc_basis_reduction'] = sum(self._itc_reductions[jurisdiction].values())

        return incentives.join(itc_rows)

    def _stage_depreciation(self, cf: pd.DataFrame) -> pd.DataFrame:
        replacements = cf['equip_replacement'].to_numpy()

        frames = [
            self.tax_model.calculate_depreciation(
                jurisdiction, self._class_basis[jurisdiction],
                self._itc_reductions[jurisdiction], replacements, cf.index)
            for jurisdiction in JURISDICTIONS
        ]
        return pd.concat(frames, axis=1)

    def _stage_taxes(self, cf: pd.DataFrame) -> pd.DataFrame:
        return self.tax_model.calculate_taxes(cf)

    def _stage_after_tax_cash_flow(self, cf: pd.DataFrame) -> pd.DataFrame:
        equity = self.summary['equity_amount']

        pretax = (cf['energy_value'] + cf['ibi_total'] + cf['cbi_total'] + cf['pbi_total'] -
                  cf['operating_expenses'] - cf['equip_reserve_funding'] -
                  cf['debt_payment_total'] + cf['reserve_interest'] +
                  cf['reserve_release']).to_numpy(dtype=float, copy=True)
        pretax[0] = -equity

        equity_cost = np.zeros(len(cf.index))
        equity_cost[0] = -equity

        after_tax = pretax + cf['sta_and_fed_tax_savings'].to_numpy(dtype=float)

        return pd.DataFrame({
            'pretax_cash_flow': pretax,
            'after_tax_net_equity_cost_flow': equity_cost,
            'after_tax_cash_flow': after_tax,
        }, index=cf.index)

    def _stage_payback(self, cf: pd.DataFrame) -> pd.DataFrame:
        """Unlevered payback on the pre-financing installed cost."""
        installed_cost = self.summary['cost_installed']

        incentives = cf['ibi_total'] + cf['cbi_total'] + cf['pbi_total']
        with_expenses = (cf['energy_value'] + incentives + cf['sta_and_fed_tax_savings'] -
                         cf['operating_expenses'] - cf['equip_reserve_funding']).to_numpy(dtype=float, copy=True)
        without_expenses = (cf['energy_value'] + incentives +
                            cf['sta_and_fed_tax_savings']).to_numpy(dtype=float, copy=True)

        with_expenses[0] = -installed_cost
        without_expenses[0] = -installed_cost

        discount = (1 + self.metrics_calc.discount_rate) ** np.arange(len(cf.index))
        discounted = with_expenses / discount

        return pd.DataFrame({
            'payback_with_expenses': with_expenses,
            'cumulative_payback_with_expenses': np.cumsum(with_expenses),
            'payback_without_expenses': without_expenses,
            'cumulative_payback_without_expenses': np.cumsum(without_expenses),
            'discounted_payback_with_expenses': discounted,
            'cumulative_discounted_payback_with_expenses': np.cumsum(discounted),
        }, index=cf.index)

    def format_output(self, cf: pd.DataFrame) -> Dict[str, np.ndarray]:
        """One read-only array per ledger line, keyed cf_<line>."""
        arrays = {}
        for line in LEDGER_LINES:
            values = cf[line].to_numpy(dtype=float, copy=True)
            values.setflags(write=False)
            arrays[f'cf_{line}'] = values
        return arrays
