"""
Excel workbook writer module.
Writes a model run to a workbook: key assumptions, ledger tabs by section,
returns and flip summary, and the audit trail.
"""

import pandas as pd
import numpy as np
from typing import Dict, Any, List
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment
from openpyxl.utils.dataframe import dataframe_to_rows

from .cashflow import BUILD_STAGES

# Ledger tabs: sheet name -> build stages whose lines it shows
LEDGER_TABS = (
    ('Revenue_OpEx', ('energy_and_revenue', 'operating_expenses')),
    ('Debt_Finance', ('debt_service',)),
    ('Incentives', ('incentives',)),
    ('Taxes_Depreciation', ('depreciation', 'taxes')),
    ('Cashflow', ('after_tax_cash_flow', 'payback')),
    ('Flip_Allocation', ('flip_allocation',)),
)


class ExcelWriter:
    """Writes a partnership flip run to an Excel workbook with multiple tabs."""

    def __init__(self, inputs: Dict[str, Any], cashflow: pd.DataFrame,
                 results: Dict[str, Any], defaults_used: List[str],
                 warnings: List[str]):
        self.inputs = inputs
        self.cashflow = cashflow
        self.results = results
        self.defaults_used = defaults_used
        self.warnings = warnings

        # Styling
        self.header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        self.header_font = Font(color="FFFFFF", bold=True)
        self.section_fill = PatternFill(start_color="D9E1F2", end_color="D9E1F2", fill_type="solid")
        self.section_font = Font(bold=True)

    def write_workbook(self, output_path: str):
        """Write complete workbook to file."""
        wb = Workbook()

        # Remove default sheet
        if 'Sheet' in wb.sheetnames:
            wb.remove(wb['Sheet'])

        self._create_summary_tab(wb)
        self._create_inputs_data_tab(wb)

        stage_lines = {name: produces for name, _, produces in BUILD_STAGES}
        for sheet_name, stages in LEDGER_TABS:
            lines = [line for stage in stages for line in stage_lines[stage]]
            ws = wb.create_sheet(sheet_name)
            self._write_dataframe_to_sheet(ws, self.cashflow[lines].reset_index(), start_row=1)

        self._create_audit_trace_tab(wb)

        wb.save(output_path)

    def _create_summary_tab(self, wb: Workbook):
        """Create Summary tab with costs, financing, flip outcome, and returns."""
        ws = wb.create_sheet("Summary")

        ws['A1'] = "Partnership Flip Model - Summary"
        ws['A1'].font = Font(size=14, bold=True)

        sections = [
            ("COST", [
                ("Hard Cost", 'cost_hard', '$#,##0'),
                ("Contingency", 'cost_contingency', '$#,##0'),
                ("Sales Tax", 'cost_salestax', '$#,##0'),
                ("Soft Cost", 'cost_soft', '$#,##0'),
                ("Installed Cost", 'cost_installed', '$#,##0'),
                ("Installed Cost ($/W)", 'cost_installedperwatt', '$0.000'),
                ("Financing Costs", 'cost_financing', '$#,##0'),
                ("Total Cost", 'cost_total', '$#,##0'),
            ]),
            ("FINANCING", [
                ("Debt", 'debt_amount', '$#,##0'),
                ("Debt Fraction (%)", 'debt_fraction', '0.00'),
                ("Equity", 'equity_amount', '$#,##0'),
                ("Tax Investor Equity", 'tax_investor_equity', '$#,##0'),
                ("Sponsor Equity", 'sponsor_equity', '$#,##0'),
                ("Min DSCR", 'min_dscr', '0.00'),
                ("Avg DSCR", 'avg_dscr', '0.00'),
            ]),
            ("PPA AND FLIP", [
                ("PPA Price (cents/kWh)", 'ppa_price', '0.0000'),
                ("PPA Escalation (%)", 'ppa_escalation', '0.00'),
                ("Levelized PPA Nominal (cents/kWh)", 'ppa_levelized_nom', '0.0000'),
                ("Levelized PPA Real (cents/kWh)", 'ppa_levelized_real', '0.0000'),
                ("Flip Year", 'flip_year', '0'),
                ("Tax Investor IRR at Target Year", 'irr_at_target_year', '0.00%'),
                ("Tax Investor IRR at Flip Year", 'irr_at_flip_year', '0.00%'),
                ("Tax Investor IRR at End", 'irr_end', '0.00%'),
            ]),
            ("RETURNS", [
                ("Nominal Discount Rate (%)", 'discount_nominal', '0.000'),
                ("After-Tax NPV", 'npv', '$#,##0'),
                ("After-Tax IRR", 'irr', '0.00%'),
                ("Tax Investor NPV", 'tax_investor_npv', '$#,##0'),
                ("Sponsor NPV", 'sponsor_npv', '$#,##0'),
                ("Sponsor IRR", 'sponsor_irr', '0.00%'),
                ("Payback (years)", 'payback_years', '0.0'),
                ("Discounted Payback (years)", 'discounted_payback_years', '0.0'),
            ]),
        ]

        row = 3
        for title, items in sections:
            ws[f'A{row}'] = title
            self._apply_section_style(ws[f'A{row}'])
            row += 1

            for label, key, fmt in items:
                value = self.results.get(key)
                ws[f'A{row}'] = label
                if value is None or pd.isna(value):
                    ws[f'B{row}'] = "N/A"
                else:
                    ws[f'B{row}'] = float(value)
                    ws[f'B{row}'].number_format = fmt
                row += 1

            row += 1

        ws.column_dimensions['A'].width = 36
        ws.column_dimensions['B'].width = 20

    def _create_inputs_data_tab(self, wb: Workbook):
        """Create Inputs_Data tab with all scalar parameters and the energy series."""
        ws = wb.create_sheet("Inputs_Data")

        ws['A1'] = "Complete Input Parameters"
        ws['A1'].font = Font(size=14, bold=True)

        row = 3
        for key in sorted(self.inputs):
            if key == 'system_enet':
                continue
            value = self.inputs[key]
            ws[f'A{row}'] = key
            ws[f'B{row}'] = "no cap" if value == np.inf else value
            row += 1

        ws.cell(row=3, column=4, value="Year")
        ws.cell(row=3, column=5, value="Net Energy (kWh)")
        self._apply_header_style(ws.cell(row=3, column=4))
        self._apply_header_style(ws.cell(row=3, column=5))
        for year, kwh in enumerate(self.inputs['system_enet'], start=1):
            ws.cell(row=3 + year, column=4, value=year)
            ws.cell(row=3 + year, column=5, value=float(kwh)).number_format = '#,##0'

        ws.column_dimensions['A'].width = 40
        ws.column_dimensions['B'].width = 16
        ws.column_dimensions['E'].width = 18

    def _create_audit_trace_tab(self, wb: Workbook):
        """Create Audit_Trace tab."""
        ws = wb.create_sheet("Audit_Trace")

        ws['A1'] = "Audit Trail and Assumptions Log"
        ws['A1'].font = Font(size=14, bold=True)

        row = 3

        # Defaults used
        ws[f'A{row}'] = "DEFAULTS APPLIED"
        self._apply_section_style(ws[f'A{row}'])
        row += 1

        if self.defaults_used:
            for default in self.defaults_used:
                ws[f'A{row}'] = default
                row += 1
        else:
            ws[f'A{row}'] = "No defaults applied - all inputs provided"
            row += 1

        row += 1

        # Warnings
        ws[f'A{row}'] = "WARNINGS"
        self._apply_section_style(ws[f'A{row}'])
        row += 1

        if self.warnings:
            for warning in self.warnings:
                ws[f'A{row}'] = warning
                row += 1
        else:
            ws[f'A{row}'] = "No warnings"
            row += 1

        ws.column_dimensions['A'].width = 80

    def _write_dataframe_to_sheet(self, ws, df: pd.DataFrame, start_row: int = 1):
        """Helper to write DataFrame to sheet with formatting."""
        for col_idx, col_name in enumerate(df.columns, start=1):
            cell = ws.cell(row=start_row, column=col_idx, value=col_name)
            self._apply_header_style(cell)

        for row_idx, row in enumerate(dataframe_to_rows(df, index=False, header=False), start=start_row + 1):
            for col_idx, value in enumerate(row, start=1):
                if isinstance(value, float) and np.isnan(value):
                    value = None
                cell = ws.cell(row=row_idx, column=col_idx, value=value)

                if col_idx > 1:  # Skip year column
                    cell.number_format = self._number_format(df.columns[col_idx - 1])

        for column in ws.columns:
            column_letter = column[0].column_letter
            header_length = len(str(column[0].value))
            ws.column_dimensions[column_letter].width = min(max(header_length + 2, 12), 50)

    @staticmethod
    def _number_format(col_name: str) -> str:
        """Number format for a ledger line."""
        name = col_name.lower()
        if 'irr' in name or 'share' in name or 'sched' in name:
            return '0.00%'
        if 'dscr' in name:
            return '0.00'
        if 'ppa_price' in name:
            return '0.0000'
        return '#,##0'

    def _apply_header_style(self, cell):
        """Apply header style to cell."""
        cell.fill = self.header_fill
        cell.font = self.header_font
        cell.alignment = Alignment(horizontal='center', vertical='center')

    def _apply_section_style(self, cell):
        """Apply section header style to cell."""
        cell.fill = self.section_fill
        cell.font = self.section_font
