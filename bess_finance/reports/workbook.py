"""Excel export of a finance run using xlsxwriter.

Creates a workbook with:
- Inputs: every AssumptionSet field, grouped by section
- Cash_Flows: one row per operating year
- Summary: headline metrics and capital structure

Values are written from ProjectFinancials as computed; the workbook holds
no formulas of its own.
"""

import logging
import math
from pathlib import Path

import xlsxwriter

from bess_finance.models.project import AssumptionSet, ProjectFinancials

logger = logging.getLogger(__name__)

_CASH_FLOW_COLUMNS = [
    ("Year", "year", "int"),
    ("Op. Year", "year_index", "int"),
    ("Eff. MW", "effective_capacity_mw", "number"),
    ("Revenue £m", "revenue", "currency"),
    ("Opex £m", "opex", "currency"),
    ("EBITDA £m", "ebitda", "currency"),
    ("Interest £m", "interest", "currency"),
    ("Principal £m", "principal", "currency"),
    ("Debt Service £m", "debt_service", "currency"),
    ("Augmentation £m", "augmentation", "currency"),
    ("EBT £m", "ebt", "currency"),
    ("Tax £m", "tax", "currency"),
    ("Net Income £m", "net_income", "currency"),
    ("FCF £m", "free_cash_flow", "currency"),
    ("Cumulative FCF £m", "cumulative_fcf", "currency"),
    ("DSCR", "dscr", "multiple"),
    ("Debt Outstanding £m", "debt_outstanding", "currency"),
]

_SECTION_TITLES = {
    "basics": "PROJECT BASICS",
    "technology": "TECHNOLOGY",
    "revenue": "REVENUE (£k/MW/yr)",
    "costs": "COSTS",
    "financing": "FINANCING",
}


def export_workbook(assumptions: AssumptionSet, financials: ProjectFinancials, output_path: str) -> str:
    """Write inputs and results of a run to an .xlsx workbook.

    Args:
        assumptions: Inputs the run used.
        financials: Engine result for those inputs.
        output_path: Destination path; the suffix is forced to .xlsx.

    Returns:
        The path actually written.
    """
    path = Path(output_path)
    if path.suffix.lower() != ".xlsx":
        path = path.with_suffix(".xlsx")
    path.parent.mkdir(parents=True, exist_ok=True)

    workbook = xlsxwriter.Workbook(str(path))
    fmt = _create_formats(workbook)

    _create_inputs_sheet(workbook.add_worksheet("Inputs"), fmt, assumptions)
    _create_cashflows_sheet(workbook.add_worksheet("Cash_Flows"), fmt, financials)
    _create_summary_sheet(workbook.add_worksheet("Summary"), fmt, assumptions, financials)

    workbook.close()
    logger.info("Workbook created: %s", path)
    return str(path)


def _create_formats(wb) -> dict:
    f = {}
    blue = '#1565C0'
    lblue = '#E3F2FD'

    f['title'] = wb.add_format({'bold': True, 'font_size': 16, 'font_color': blue})
    f['section'] = wb.add_format({'bold': True, 'font_size': 11, 'font_color': blue,
                                  'bg_color': lblue, 'border': 1, 'valign': 'vcenter'})
    f['header'] = wb.add_format({'bold': True, 'font_color': 'white', 'bg_color': blue,
                                 'align': 'center', 'border': 1, 'valign': 'vcenter'})
    f['text'] = wb.add_format({'border': 1})
    f['int'] = wb.add_format({'num_format': '0', 'border': 1})
    f['number'] = wb.add_format({'num_format': '#,##0.00', 'border': 1})
    f['currency'] = wb.add_format({'num_format': '£#,##0.000', 'border': 1})
    f['multiple'] = wb.add_format({'num_format': '0.00"x"', 'border': 1})
    f['percent'] = wb.add_format({'num_format': '0.0"%"', 'border': 1})
    f['pass_fmt'] = wb.add_format({'bold': True, 'font_color': '#1B5E20', 'bg_color': '#C8E6C9', 'border': 1})
    f['fail_fmt'] = wb.add_format({'bold': True, 'font_color': '#B71C1C', 'bg_color': '#FFCDD2', 'border': 1})
    return f


def _write_value(ws, row: int, col: int, value, cell_format) -> None:
    """Write a scalar; infinite and NaN numbers become text."""
    if isinstance(value, bool):
        ws.write_boolean(row, col, value, cell_format)
    elif isinstance(value, (int, float)):
        if math.isnan(value):
            ws.write_string(row, col, "N/A", cell_format)
        elif math.isinf(value):
            ws.write_string(row, col, "∞" if value > 0 else "-∞", cell_format)
        else:
            ws.write_number(row, col, value, cell_format)
    elif value is None:
        ws.write_blank(row, col, None, cell_format)
    else:
        ws.write_string(row, col, str(value), cell_format)


def _create_inputs_sheet(ws, f, assumptions: AssumptionSet) -> None:
    ws.set_column('A:A', 34)
    ws.set_column('B:B', 16)
    ws.write(0, 0, "BESS Project Finance Inputs", f['title'])

    row = 2
    for section, values in assumptions.to_dict().items():
        ws.merge_range(row, 0, row, 1, _SECTION_TITLES.get(section, section.upper()), f['section'])
        row += 1
        for name, value in values.items():
            ws.write_string(row, 0, name, f['text'])
            _write_value(ws, row, 1, value, f['text'])
            row += 1
        row += 1


def _create_cashflows_sheet(ws, f, financials: ProjectFinancials) -> None:
    ws.set_column(0, len(_CASH_FLOW_COLUMNS) - 1, 14)
    ws.freeze_panes(1, 2)
    for col, (label, _, _) in enumerate(_CASH_FLOW_COLUMNS):
        ws.write_string(0, col, label, f['header'])

    for row, year in enumerate(financials.years, start=1):
        for col, (_, attr, kind) in enumerate(_CASH_FLOW_COLUMNS):
            _write_value(ws, row, col, getattr(year, attr), f[kind])


def _create_summary_sheet(ws, f, assumptions: AssumptionSet, financials: ProjectFinancials) -> None:
    ws.set_column('A:A', 30)
    ws.set_column('B:B', 16)
    ws.write(0, 0, f"{assumptions.basics.name} - Summary", f['title'])

    rows = [
        ("Total Capex (£m)", financials.total_capex, 'currency'),
        ("Debt (£m)", financials.debt_amount, 'currency'),
        ("Equity (£m)", financials.equity_amount, 'currency'),
        ("Annual Debt Service (£m)", financials.annual_debt_service, 'currency'),
        ("EV per MW (£k)", financials.ev_per_mw, 'number'),
        ("Equity NPV (£m)", financials.npv, 'currency'),
        ("Equity IRR", financials.irr, 'percent'),
        ("Average DSCR", financials.average_dscr, 'multiple'),
        ("Minimum DSCR", financials.min_dscr, 'multiple'),
        ("Total Cash Flows (£m)", financials.total_cash_flows, 'currency'),
        ("Simple Payback (years)", financials.simple_payback, 'int'),
        ("Discounted Payback (years)", financials.discounted_payback, 'int'),
        ("MOIC", financials.moic, 'multiple'),
    ]
    ws.write_string(2, 0, "Metric", f['header'])
    ws.write_string(2, 1, "Value", f['header'])
    for i, (label, value, kind) in enumerate(rows, start=3):
        ws.write_string(i, 0, label, f['text'])
        _write_value(ws, i, 1, value, f[kind])

    check_row = 3 + len(rows) + 1
    target = assumptions.financing.target_equity_irr_pct
    meets_target = financials.irr >= target
    ws.write_string(check_row, 0, f"IRR vs target {target:g}%", f['text'])
    ws.write_string(check_row, 1, "PASS" if meets_target else "BELOW",
                    f['pass_fmt'] if meets_target else f['fail_fmt'])

    covenant = assumptions.financing.dscr_covenant
    meets_covenant = financials.min_dscr >= covenant
    ws.write_string(check_row + 1, 0, f"Min DSCR vs covenant {covenant:.2f}x", f['text'])
    ws.write_string(check_row + 1, 1, "PASS" if meets_covenant else "BREACH",
                    f['pass_fmt'] if meets_covenant else f['fail_fmt'])
