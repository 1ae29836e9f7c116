"""
Capital cost calculation module.
Handles the pre-financing cost roll-up, financing costs, and depreciable basis.
"""

import math
from typing import Dict, Any, Tuple


class CapExModel:
    """Calculates installed cost and the costs of financing it."""

    def __init__(self, inputs: Dict[str, Any]):
        self.inputs = inputs
        self.nameplate_kw = inputs['system_nameplate']
        self.construction_months = int(inputs.get('constr_period', 0))

    def calculate_installed_cost(self) -> Tuple[float, Dict[str, float]]:
        """
        Roll hard and soft costs up to the pre-financing installed cost.

        Returns:
            (installed_cost, breakdown_dict)
        """
        equipment = (self.inputs['cost_gen_equip'] + self.inputs['cost_bop'] +
                     self.inputs['cost_network'])

        contingency = equipment * self.inputs['percent_contingency'] / 100.0
        hard = equipment + contingency

        soft_pre_tax = (self.inputs['cost_developer'] + self.inputs['cost_land_improve'] +
                        self.inputs['cost_other'])

        # Sales tax applies to the taxable share of everything above
        sales_tax = ((hard + soft_pre_tax) * self.inputs['percent_taxable'] / 100.0 *
                     self.inputs['sales_tax_rate'] / 100.0)
        soft = soft_pre_tax + sales_tax

        installed = hard + soft

        breakdown = {
            'cost_contingency': contingency,
            'cost_hard': hard,
            'cost_salestax': sales_tax,
            'cost_soft': soft,
            'cost_installed': installed,
            'cost_installedperwatt': self.cost_per_watt(installed),
        }

        return installed, breakdown

    def cost_per_watt(self, installed_cost: float) -> float:
        """Installed cost per watt; inf for a zero nameplate so the caller can reject it."""
        watts = self.nameplate_kw * 1000.0
        if watts == 0:
            return math.inf if installed_cost != 0 else math.nan
        return installed_cost / watts

    def calculate_construction_interest(self, installed_cost: float) -> float:
        """
        Calculate interest during construction.

        Cost is drawn evenly over the construction months and interest
        accrues monthly on the cumulative drawn balance.
        """
        months = self.construction_months
        if months <= 0 or installed_cost <= 0:
            return 0.0

        monthly_rate = self.inputs.get('constr_int_rate', 0.0) / 100.0 / 12.0
        monthly_draw = installed_cost / months

        cumulative_draw = 0.0
        total_interest = 0.0

        for _ in range(months):
            cumulative_draw += monthly_draw
            total_interest += cumulative_draw * monthly_rate

        return total_interest

    def calculate_financing_costs(self, installed_cost: float,
                                  dsra_funding: float) -> Dict[str, float]:
        """
        Costs added on top of the installed cost to close the financing.

        Args:
            installed_cost: Pre-financing installed cost
            dsra_funding: Debt service reserve funded at closing

        Returns:
            Dict of financing cost components and their total
        """
        costs = {
            'cost_construction_interest': self.calculate_construction_interest(installed_cost),
            'cost_constr_upfront_fee': installed_cost * self.inputs.get('constr_upfront_fee', 0.0) / 100.0,
            'cost_debt_closing': self.inputs.get('cost_debt_closing', 0.0),
            'cost_equity_closing': self.inputs.get('cost_equity_closing', 0.0),
            'cost_working_reserve': self.inputs.get('cost_working_reserve', 0.0),
            'dsra_funding': dsra_funding,
        }
        costs['cost_financing'] = sum(costs.values())
        costs['cost_total'] = installed_cost + costs['cost_financing']

        return costs

    def get_depreciable_basis(self, total_cost: float, financing_costs: Dict[str, float],
                              basis_reducing_incentives: float = 0.0) -> float:
        """
        Calculate depreciable basis for one jurisdiction (before ITC reduction).

        Reserve accounts are cash balances and are not depreciated.
        """
        depreciable = total_cost
        depreciable -= financing_costs.get('cost_working_reserve', 0.0)
        depreciable -= financing_costs.get('dsra_funding', 0.0)
        depreciable -= basis_reducing_incentives

        return max(depreciable, 0.0)
