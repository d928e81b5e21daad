"""
BESS Finance CLI - Battery storage project finance screening tool

Runs the cash-flow engine from the command line:
- Start from defaults, a scenario preset, or a saved assumption file
- Override sizing, gearing and project life
- Print the capital structure, key equity metrics and annual cash flows
- One-way and two-way sensitivity tables on IRR/NPV
- Debt percentage optimisation under a minimum DSCR
- Export to Excel workbook, PDF executive summary, or JSON

Usage:
    bess-finance                               # Base case
    bess-finance --preset conservative         # Apply scenario preset
    bess-finance --load case.json --report     # Load and generate report
    bess-finance --help                        # Show all options
"""

import argparse
import logging
import math
from typing import List, Optional

from bess_finance.analysis.optimizer import optimize_debt
from bess_finance.analysis.sensitivity import run_sensitivity, run_two_way_sensitivity
from bess_finance.data.presets import ScenarioPresetLibrary
from bess_finance.data.storage import load_assumptions, save_assumptions, save_financials
from bess_finance.data.validators import validate_assumptions
from bess_finance.models.calculations import IRR_METHODS, compute_financials
from bess_finance.models.project import AssumptionSet, ProjectFinancials
from bess_finance.reports.executive import generate_executive_summary
from bess_finance.reports.workbook import export_workbook
from bess_finance.utils.formatters import (
    format_currency,
    format_multiple,
    format_payback,
    format_percent,
)

logger = logging.getLogger(__name__)


# ============================================================================
# FORMATTING UTILITIES
# ============================================================================

def print_header(text: str, char: str = "=") -> None:
    """Print a formatted section header."""
    width = 70
    print(f"\n{char * width}")
    print(f" {text}")
    print(f"{char * width}")


def print_subheader(text: str) -> None:
    """Print a formatted subsection header."""
    print(f"\n--- {text} ---")


def print_table(headers: List[str], rows: List[List[str]],
                col_widths: Optional[List[int]] = None) -> None:
    """Print a formatted ASCII table."""
    if col_widths is None:
        col_widths = [max(len(str(row[i])) for row in [headers] + rows) + 2
                      for i in range(len(headers))]

    header_line = "|".join(h.center(w) for h, w in zip(headers, col_widths))
    separator = "+".join("-" * w for w in col_widths)
    print(f"+{separator}+")
    print(f"|{header_line}|")
    print(f"+{separator}+")

    for row in rows:
        row_line = "|".join(str(cell).rjust(w - 1) + " " for cell, w in zip(row, col_widths))
        print(f"|{row_line}|")
    print(f"+{separator}+")


def _step_label(step: float) -> str:
    return f"{step:+.0f}%" if step else "Base"


# ============================================================================
# OUTPUT SECTIONS
# ============================================================================

def print_project_summary(assumptions: AssumptionSet) -> None:
    """Print the key inputs of a run."""
    basics = assumptions.basics
    fin = assumptions.financing
    print_header(f"PROJECT: {basics.name}")
    print(f"  Capacity:        {basics.capacity_mw:,.1f} MW / {basics.capacity_mwh:,.1f} MWh")
    print(f"  COD:             {basics.cod_date.isoformat()}")
    print(f"  Project life:    {basics.project_life_years} years")
    print(f"  Year-1 revenue:  £{assumptions.revenue.year1_revenue_per_mw_k:,.1f}k/MW/yr")
    print(f"  Capex:           £{assumptions.costs.capex_per_mw_k:,.1f}k/MW "
          f"+ {assumptions.costs.contingency_pct:g}% contingency")
    print(f"  Debt:            {fin.debt_percentage:g}% over {fin.debt_tenor_years} years "
          f"at {format_percent(fin.all_in_rate_pct, 2)}")


def print_results(assumptions: AssumptionSet, financials: ProjectFinancials) -> None:
    """Print capital structure, metrics and the annual cash-flow table."""
    print_subheader("CAPITAL STRUCTURE")
    print(f"  Total capex:          {format_currency(financials.total_capex, 2)}")
    print(f"  Debt:                 {format_currency(financials.debt_amount, 2)}")
    print(f"  Equity:               {format_currency(financials.equity_amount, 2)}")
    print(f"  Annual debt service:  {format_currency(financials.annual_debt_service, 2)}")
    print(f"  EV per MW:            £{financials.ev_per_mw:,.0f}k")

    print_subheader("EQUITY RETURNS")
    print(f"  IRR:                  {format_percent(financials.irr)}")
    print(f"  NPV @ {assumptions.financing.discount_rate_pct:g}%:           "
          f"{format_currency(financials.npv, 2)}")
    print(f"  Average DSCR:         {format_multiple(financials.average_dscr)}")
    print(f"  Minimum DSCR:         {format_multiple(financials.min_dscr)}")
    print(f"  Simple payback:       {format_payback(financials.simple_payback)}")
    print(f"  Discounted payback:   {format_payback(financials.discounted_payback)}")
    print(f"  MOIC:                 {format_multiple(financials.moic)}")
    print(f"  Total cash flows:     {format_currency(financials.total_cash_flows, 2)}")

    print_subheader("ANNUAL CASH FLOWS (£m)")
    headers = ["Year", "Revenue", "Opex", "EBITDA", "Interest", "Principal",
               "Tax", "FCF", "Cumulative", "DSCR"]
    rows = [
        [str(y.year), f"{y.revenue:,.2f}", f"{y.opex:,.2f}", f"{y.ebitda:,.2f}",
         f"{y.interest:,.2f}", f"{y.principal:,.2f}", f"{y.tax:,.2f}",
         f"{y.free_cash_flow:,.2f}", f"{y.cumulative_fcf:,.2f}", format_multiple(y.dscr)]
        for y in financials.years
    ]
    print_table(headers, rows)


def print_sensitivity_tables(assumptions: AssumptionSet, irr_method: str,
                             max_workers: Optional[int]) -> None:
    """Print one-way IRR and NPV sensitivity tables."""
    print_header("SENSITIVITY ANALYSIS")
    result = run_sensitivity(assumptions, max_workers=max_workers, irr_method=irr_method)
    headers = ["Variable"] + [_step_label(s) for s in result.steps]

    print_subheader("EQUITY IRR")
    print_table(headers, [
        [var] + [format_percent(v) for v in result.irr[i]]
        for i, var in enumerate(result.variables)
    ])
    print_subheader("EQUITY NPV")
    print_table(headers, [
        [var] + [format_currency(v, 2) for v in result.npv[i]]
        for i, var in enumerate(result.variables)
    ])


def print_two_way_table(assumptions: AssumptionSet, irr_method: str,
                        max_workers: Optional[int]) -> None:
    """Print the capex x revenue IRR grid."""
    result = run_two_way_sensitivity(assumptions, max_workers=max_workers, irr_method=irr_method)
    print_subheader(f"IRR: {result.row_variable.upper()} (rows) x {result.col_variable.upper()} (columns)")
    headers = [f"{result.row_variable}"] + [_step_label(s) for s in result.steps]
    print_table(headers, [
        [_step_label(r)] + [format_percent(v) for v in result.irr[i]]
        for i, r in enumerate(result.steps)
    ])


def print_debt_optimisation(assumptions: AssumptionSet, irr_method: str,
                            max_workers: Optional[int]) -> None:
    """Print the debt sizing scan and the selected gearing."""
    print_header("DEBT OPTIMISATION")
    result = optimize_debt(assumptions, max_workers=max_workers, irr_method=irr_method)
    rows = [
        [f"{c.debt_percentage:g}%", format_percent(c.irr), format_currency(c.npv, 2),
         format_multiple(c.min_dscr), "yes" if c.feasible else "no"]
        for c in result.candidates
    ]
    print_table(["Debt", "IRR", "NPV", "Min DSCR", "Feasible"], rows)
    if result.best is None:
        print(f"\n  No gearing meets min DSCR {result.min_dscr_constraint:.2f}x")
    else:
        print(f"\n  Optimal debt: {result.best.debt_percentage:g}% "
              f"(IRR {format_percent(result.best.irr)}, "
              f"min DSCR {format_multiple(result.best.min_dscr)})")


# ============================================================================
# ENTRY POINT
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bess-finance",
        description="BESS Finance CLI - Battery storage project finance screening",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bess-finance                                # Base case
  bess-finance --preset optimistic            # Scenario preset
  bess-finance --capacity 200 --duration 4    # 200 MW / 4-hour system
  bess-finance --load case.json               # Load saved assumptions
  bess-finance --sensitivity --two-way        # Sensitivity tables
  bess-finance --optimize-debt                # Debt sizing scan
  bess-finance --report out.pdf --excel       # PDF and Excel exports
        """
    )

    # Assumption sources
    parser.add_argument("--preset", "-p", type=str,
                        help="Scenario preset: conservative, base, or optimistic")
    parser.add_argument("--load", type=str,
                        help="Load assumptions from JSON file")
    parser.add_argument("--save", type=str,
                        help="Save assumptions to JSON file")

    # Overrides
    parser.add_argument("--name", "-n", type=str, help="Project name")
    parser.add_argument("--capacity", "-c", type=float, help="Capacity in MW")
    parser.add_argument("--duration", "-d", type=float, help="Duration in hours")
    parser.add_argument("--debt-pct", type=float, help="Debt as %% of capex")
    parser.add_argument("--years", type=int, help="Project life in years")

    # Analyses
    parser.add_argument("--sensitivity", "-s", action="store_true",
                        help="Show one-way IRR/NPV sensitivity tables")
    parser.add_argument("--two-way", action="store_true",
                        help="Show capex x revenue IRR grid")
    parser.add_argument("--optimize-debt", action="store_true",
                        help="Scan debt percentage for the best feasible IRR")
    parser.add_argument("--irr-method", choices=sorted(IRR_METHODS), default="scan",
                        help="IRR strategy (default: scan)")
    parser.add_argument("--workers", type=int,
                        help="Worker processes for sweeps (default: run in-process)")

    # Exports
    parser.add_argument("--excel", type=str, nargs="?", const="BESS_Finance.xlsx",
                        help="Export to Excel workbook")
    parser.add_argument("--report", type=str, nargs="?", const="BESS_Finance_Report.pdf",
                        help="Generate PDF executive summary")
    parser.add_argument("--json", type=str, nargs="?", const="BESS_Finance_Results.json",
                        help="Write results to JSON")

    # Display options
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Suppress detailed output")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable informational logging")
    return parser


def resolve_assumptions(args: argparse.Namespace) -> AssumptionSet:
    """Build the AssumptionSet from file, preset and command-line overrides."""
    assumptions = load_assumptions(args.load) if args.load else AssumptionSet()
    if args.preset:
        assumptions = ScenarioPresetLibrary().apply_preset(assumptions, args.preset)

    overrides = {}
    if args.name is not None:
        overrides["basics.name"] = args.name
    if args.capacity is not None:
        overrides["basics.capacity_mw"] = args.capacity
    if args.duration is not None:
        overrides["basics.duration_hours"] = args.duration
    if args.years is not None:
        overrides["basics.project_life_years"] = args.years
    if args.debt_pct is not None:
        overrides["financing.debt_percentage"] = args.debt_pct
    return assumptions.with_overrides(overrides) if overrides else assumptions


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        assumptions = resolve_assumptions(args)
    except KeyError as e:
        parser.error(str(e))

    warnings = validate_assumptions(assumptions)
    financials = compute_financials(assumptions, irr_method=args.irr_method)

    if not args.quiet:
        print_project_summary(assumptions)
        print_results(assumptions, financials)

    if warnings:
        print_subheader("INPUT WARNINGS")
        for w in warnings:
            print(f"  [!] {w.field}: {w.message}")

    if args.sensitivity:
        print_sensitivity_tables(assumptions, args.irr_method, args.workers)
    if args.two_way:
        print_two_way_table(assumptions, args.irr_method, args.workers)
    if args.optimize_debt:
        print_debt_optimisation(assumptions, args.irr_method, args.workers)

    if args.save:
        save_assumptions(assumptions, args.save)
        print(f"\nAssumptions saved to {args.save}")

    if args.json:
        save_financials(financials, args.json)
        print(f"\nResults written to {args.json}")

    if args.report:
        try:
            generate_executive_summary(assumptions, financials, args.report, warnings)
            print(f"\nPDF report generated: {args.report}")
        except OSError as e:
            logger.error("Error generating PDF: %s", e)

    if args.excel:
        try:
            written = export_workbook(assumptions, financials, args.excel)
            print(f"\nExcel workbook generated: {written}")
        except OSError as e:
            logger.error("Error generating Excel: %s", e)

    if not args.quiet:
        target = assumptions.financing.target_equity_irr_pct
        print_header("ANALYSIS COMPLETE")
        print(f"\n  IRR: {format_percent(financials.irr)}  |  "
              f"NPV: {format_currency(financials.npv, 1)}  |  "
              f"Min DSCR: {format_multiple(financials.min_dscr)}")
        if math.isfinite(financials.irr) and financials.irr >= target:
            print(f"\n  [✓] Equity IRR meets {format_percent(target)} target")
        else:
            print(f"\n  [✗] Equity IRR below {format_percent(target)} target")
        print()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
