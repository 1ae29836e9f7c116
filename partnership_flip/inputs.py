"""
Input validation and loading module.
Handles the flat parameter mapping: defaults, range checks, and audit trail.
"""

import json
import logging
from typing import Dict, Any, List, Tuple
from copy import deepcopy

from .depreciation import CLASS_ORDER, JURISDICTIONS
from .exceptions import InputError

logger = logging.getLogger(__name__)

INCENTIVE_SOURCES = ('fed', 'sta', 'uti', 'oth')

NO_CAP = float('inf')


def _general_defaults() -> List[Tuple[str, Any]]:
    return [
        ('analysis_years', 30),
        ('federal_tax_rate', 35.0),
        ('state_tax_rate', 7.0),
        ('property_tax_rate', 0.0),
        ('insurance_rate', 0.0),
        ('sales_tax_rate', 0.0),
        ('reserves_interest', 1.75),
        ('prop_tax_cost_assessed', 95.0),
        ('prop_tax_assessed_decline', 5.0),

        # Capital cost
        ('cost_gen_equip', 24000000.0),
        ('cost_bop', 8000000.0),
        ('cost_network', 3500000.0),
        ('percent_contingency', 1.0),
        ('cost_developer', 2000000.0),
        ('cost_land_improve', 200000.0),
        ('cost_other', 75000.0),
        ('percent_taxable', 100.0),

        # O&M
        ('om_fixed', 0.0),
        ('om_fixed_escal', 0.0),
        ('om_production', 0.0),
        ('om_production_escal', 0.0),
        ('om_capacity', 0.0),
        ('om_capacity_escal', 0.0),
        ('om_fuel_cost', 0.0),
        ('om_fuel_cost_escal', 0.0),
        ('annual_fuel_usage', 0.0),

        # Major equipment replacement reserves
        ('equip_reserve1_cost', 0.25),
        ('equip_reserve1_freq', 12),
        ('equip_reserve2_cost', 0.0),
        ('equip_reserve2_freq', 15),
        ('equip_reserve3_cost', 0.0),
        ('equip_reserve3_freq', 20),
        ('equip_reserve_depr_sta', 0),
        ('equip_reserve_depr_fed', 0),

        # PPA
        ('ppa_soln_mode', 0),
        ('ppa_escalation', 0.0),
        ('ppa_soln_min', 0.0),
        ('ppa_soln_max', 100.0),
        ('ppa_soln_tolerance', 1e-6),
        ('ppa_soln_max_iterations', 100),

        # Construction financing
        ('constr_period', 10),
        ('constr_int_rate', 4.0),
        ('constr_upfront_fee', 1.0),

        # Term financing
        ('term_tenor', 10),
        ('term_int_rate', 8.5),
        ('dscr', 1.5),
        ('dscr_reserve', 6),

        # Closing costs
        ('cost_debt_closing', 250000.0),
        ('cost_equity_closing', 100000.0),
        ('cost_working_reserve', 150000.0),

        # Equity structure
        ('equity_tax_investor', 98.0),
        ('preflip_sharing_tax_investor', 98.0),
        ('postflip_sharing_tax_investor', 15.0),
        ('return_target', 11.0),
        ('return_target_year', 11),

        # Depreciation allocation
        ('depr_alloc_macrs_5', 89.0),
        ('depr_alloc_macrs_15', 1.5),
        ('depr_alloc_sl_5', 0.0),
        ('depr_alloc_sl_15', 3.0),
        ('depr_alloc_sl_20', 3.0),
        ('depr_alloc_sl_39', 0.5),
        ('depr_bonus_sta', 0.0),
        ('depr_bonus_fed', 0.0),
    ]


def _flag_defaults() -> List[Tuple[str, Any]]:
    defaults = []
    for jurisdiction in JURISDICTIONS:
        for depr_class in CLASS_ORDER:
            on = 1 if depr_class.value == 'macrs_5' else 0
            defaults.append((f'depr_bonus_{jurisdiction}_{depr_class.value}', on))
            defaults.append((f'depr_itc_{jurisdiction}_{depr_class.value}', on))
    return defaults


def _credit_defaults() -> List[Tuple[str, Any]]:
    defaults = []
    for jurisdiction in JURISDICTIONS:
        prefix = f'itc_{jurisdiction}'
        defaults += [
            (f'{prefix}_amount', 0.0),
            (f'{prefix}_percent', 0.0),
            (f'{prefix}_percent_maxvalue', NO_CAP),
            (f'{prefix}_deprbas_fed', 1),
            (f'{prefix}_deprbas_sta', 1),
            (f'ptc_{jurisdiction}_amount', 0.0),
            (f'ptc_{jurisdiction}_term', 10),
            (f'ptc_{jurisdiction}_escal', 0.0),
        ]
    return defaults


def _incentive_defaults() -> List[Tuple[str, Any]]:
    defaults = []
    for source in INCENTIVE_SOURCES:
        defaults += [
            (f'ibi_{source}_amount', 0.0),
            (f'ibi_{source}_percent', 0.0),
            (f'ibi_{source}_percent_maxvalue', NO_CAP),
            (f'cbi_{source}_amount', 0.0),
            (f'cbi_{source}_maxvalue', NO_CAP),
            (f'pbi_{source}_amount', 0.0),
            (f'pbi_{source}_term', 0),
            (f'pbi_{source}_escal', 0.0),
        ]
        for item in (f'ibi_{source}_amount', f'ibi_{source}_percent', f'cbi_{source}', f'pbi_{source}'):
            for jurisdiction in JURISDICTIONS:
                defaults.append((f'{item}_tax_{jurisdiction}', 1))
        for item in (f'ibi_{source}_amount', f'ibi_{source}_percent', f'cbi_{source}'):
            for jurisdiction in JURISDICTIONS:
                defaults.append((f'{item}_deprbas_{jurisdiction}', 0))
    return defaults


DEFAULTS = _general_defaults() + _flag_defaults() + _credit_defaults() + _incentive_defaults()

REQUIRED = ['system_enet', 'system_nameplate', 'inflation', 'discount_real']

PERCENT_KEYS = [
    'inflation', 'discount_real', 'sales_tax_rate', 'federal_tax_rate', 'state_tax_rate',
    'property_tax_rate', 'insurance_rate', 'reserves_interest', 'prop_tax_cost_assessed',
    'prop_tax_assessed_decline', 'percent_contingency', 'percent_taxable', 'ppa_escalation',
    'constr_int_rate', 'constr_upfront_fee', 'term_int_rate', 'equity_tax_investor',
    'preflip_sharing_tax_investor', 'postflip_sharing_tax_investor',
    'preflip_tax_sharing_tax_investor', 'postflip_tax_sharing_tax_investor',
    'return_target', 'depr_bonus_sta', 'depr_bonus_fed',
] + [f'depr_alloc_{c.value}' for c in CLASS_ORDER]

NON_NEGATIVE_KEYS = [
    'cost_gen_equip', 'cost_bop', 'cost_network', 'cost_developer', 'cost_land_improve',
    'cost_other', 'cost_debt_closing', 'cost_equity_closing', 'cost_working_reserve',
    'equip_reserve1_cost', 'equip_reserve2_cost', 'equip_reserve3_cost', 'dscr',
]

INTEGER_KEYS = [
    'analysis_years', 'constr_period', 'term_tenor', 'dscr_reserve', 'return_target_year',
    'equip_reserve1_freq', 'equip_reserve2_freq', 'equip_reserve3_freq',
    'ppa_soln_mode', 'ppa_soln_max_iterations',
]


class InputValidator:
    """Validates and processes the flat input mapping with defaults and audit tracking."""

    def __init__(self):
        self.defaults_used = []
        self.validation_errors = []
        self.warnings = []

    def load_and_validate(self, json_path: str) -> Dict[str, Any]:
        """Load JSON and validate with defaults."""
        with open(json_path, 'r') as f:
            data = json.load(f)

        return self.validate(data)

    def validate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply defaults to an in-memory mapping and validate it."""
        validated = self._apply_defaults(data)
        self._validate_inputs(validated)

        if self.validation_errors:
            raise InputError(f"Input validation failed: {self.validation_errors}")

        return validated

    def _apply_defaults(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply defaults for missing values."""
        result = deepcopy(data)

        for key, default in DEFAULTS:
            self._set_default(result, key, default)

        # Tax benefits follow the cash split unless given separately
        self._set_default(result, 'preflip_tax_sharing_tax_investor',
                          result['preflip_sharing_tax_investor'])
        self._set_default(result, 'postflip_tax_sharing_tax_investor',
                          result['postflip_sharing_tax_investor'])

        if self.defaults_used:
            logger.info("Applied %d input defaults", len(self.defaults_used))

        return result

    def _set_default(self, section: Dict, key: str, default: Any):
        """Set a default value and track it."""
        if key not in section or section[key] is None:
            section[key] = default
            self.defaults_used.append(f"{key} = {default}")

    def _validate_inputs(self, data: Dict[str, Any]):
        """Validate input constraints."""
        for key in REQUIRED:
            if data.get(key) is None:
                self.validation_errors.append(f"{key} is required")

        if self.validation_errors:
            return

        for key in INTEGER_KEYS:
            value = data[key]
            if float(value) != int(value):
                self.validation_errors.append(f"{key} must be an integer, got {value}")

        for key in PERCENT_KEYS:
            value = data[key]
            if not 0.0 <= value <= 100.0:
                self.validation_errors.append(f"{key} must be within 0-100%, got {value}")

        for key in NON_NEGATIVE_KEYS:
            if data[key] < 0:
                self.validation_errors.append(f"{key} must be >= 0")

        # Sizing validation
        if data['system_nameplate'] < 0:
            self.validation_errors.append("system_nameplate must be >= 0 kW")

        years = data['analysis_years']
        if not 1 <= years <= 40:
            self.validation_errors.append(f"analysis_years must be within 1-40, got {years}")

        # An empty series is reported by the model as degenerate
        if len(data['system_enet']) and len(data['system_enet']) != years:
            self.validation_errors.append(
                f"system_enet has {len(data['system_enet'])} values, expected {years}"
            )

        # Financing validation
        tenor = data['term_tenor']
        if tenor < 0 or tenor > years:
            self.validation_errors.append(f"term_tenor must be within 0-{years}, got {tenor}")
        if tenor > 0 and data['dscr'] <= 0:
            self.validation_errors.append("dscr must be > 0 when term debt is used")

        alloc_total = sum(data[f'depr_alloc_{c.value}'] for c in CLASS_ORDER)
        if alloc_total > 100.0 + 1e-9:
            self.validation_errors.append(f"depreciation allocations sum to {alloc_total}% (> 100%)")
        elif alloc_total < 100.0:
            self.warnings.append(f"{100.0 - alloc_total:.2f}% of depreciable basis is not depreciated")

        for key in ('equip_reserve_depr_sta', 'equip_reserve_depr_fed'):
            if data[key] not in range(len(CLASS_ORDER)):
                self.validation_errors.append(f"{key} must be a schedule index 0-5")

        # PPA mode validation
        mode = data['ppa_soln_mode']
        if mode not in (0, 1):
            self.validation_errors.append(f"Invalid ppa_soln_mode: {mode}")
        elif mode == 0 and data.get('ppa_price') is None:
            self.validation_errors.append("ppa_price required when ppa_soln_mode=0")
        elif mode == 1:
            if not 1 <= data['return_target_year'] <= years:
                self.validation_errors.append("return_target_year must fall within the analysis period")
            if data['ppa_soln_min'] >= data['ppa_soln_max']:
                self.validation_errors.append("ppa_soln_min must be below ppa_soln_max")


def load_inputs(json_path: str) -> Tuple[Dict[str, Any], List[str], List[str]]:
    """
    Load and validate inputs from JSON file.

    Returns:
        (validated_data, defaults_used, warnings)
    """
    validator = InputValidator()
    data = validator.load_and_validate(json_path)
    return data, validator.defaults_used, validator.warnings
