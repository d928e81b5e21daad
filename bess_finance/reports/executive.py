"""Executive summary PDF report generation using ReportLab.

Generates a short PDF containing the project overview, key equity
metrics with an investment recommendation, any advisory warnings, the
annual cash-flow table and a methodology note.
"""

from typing import Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from bess_finance.data.validators import ValidationWarning
from bess_finance.models.project import AssumptionSet, ProjectFinancials
from bess_finance.utils.formatters import (
    format_currency,
    format_multiple,
    format_payback,
    format_percent,
)

# Margin above target IRR for an unqualified recommendation, in points
_HEADROOM_PCT = 2.0


def _get_recommendation(irr: float, target_irr: float) -> tuple:
    """Return recommendation text and color based on IRR versus target."""
    if irr >= target_irr + _HEADROOM_PCT:
        return "PROCEED - Equity IRR comfortably above target", colors.green
    elif irr >= target_irr:
        return "PROCEED WITH CAUTION - Equity IRR marginal to target", colors.orange
    else:
        return "REVIEW - Equity IRR below target", colors.red


def _methodology_text(assumptions: AssumptionSet) -> str:
    """Methodology paragraph with the input summary and key formulas."""
    basics = assumptions.basics
    rev = assumptions.revenue
    tech = assumptions.technology
    return (
        f"Annual cash flows are simulated for {basics.project_life_years} operating years. "
        f"Revenue starts at £{rev.year1_revenue_per_mw_k:,.0f}k/MW/yr escalating at "
        f"{format_percent(rev.revenue_escalation_pct)}, with a "
        f"{rev.contract_length_years}-year contract window and a floor of "
        f"£{rev.floor_revenue_k:,.0f}k/MW/yr. Capacity degrades at "
        f"{format_percent(tech.degradation_rate_pct)} per year with augmentation in "
        f"year {tech.augmentation_year}.<br/><br/>"
        f"<b>Key Formulas:</b><br/>"
        f"&bull; Annuity = D &times; r(1+r)^n / ((1+r)^n - 1), sized at the initial rate<br/>"
        f"&bull; EBT = EBITDA - Interest - Augmentation<br/>"
        f"&bull; FCF = EBT - max(0, EBT &times; tax) + Principal<br/>"
        f"&bull; DSCR = EBITDA / Debt Service<br/>"
        f"&bull; NPV = Sum of FCF_t / (1+r)^t for t = 1 to N, less equity<br/>"
        f"&bull; IRR = first rate on a 0.1% grid where NPV &lt;= 0<br/>"
    )


def generate_executive_summary(
    assumptions: AssumptionSet,
    financials: ProjectFinancials,
    output_path: str,
    warnings: Sequence[ValidationWarning] = (),
) -> None:
    """Generate an executive summary PDF report.

    Creates a PDF with:
    - Page 1: Project overview, key metrics, recommendation, warnings
    - Page 2: Annual cash flows (landscape table)
    - Final section: Methodology notes

    Args:
        assumptions: Inputs the run used.
        financials: Engine result for those inputs.
        output_path: File path for the output PDF.
        warnings: Advisory validation warnings to list.
    """
    doc = SimpleDocTemplate(
        output_path,
        pagesize=landscape(A4),
        topMargin=0.6 * inch,
        bottomMargin=0.6 * inch,
        leftMargin=0.6 * inch,
        rightMargin=0.6 * inch,
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "CustomTitle", parent=styles["Title"], fontSize=18, spaceAfter=6
    )
    heading_style = ParagraphStyle(
        "CustomHeading", parent=styles["Heading2"], fontSize=14,
        spaceAfter=8, spaceBefore=12, textColor=colors.HexColor("#1565c0"),
    )
    body_style = styles["Normal"]
    small_style = ParagraphStyle(
        "Small", parent=body_style, fontSize=8, textColor=colors.grey,
    )

    basics = assumptions.basics
    fin = assumptions.financing
    elements = []

    # --- PAGE 1: Overview & Key Metrics ---
    elements.append(Paragraph("BESS Project Finance", title_style))
    elements.append(Paragraph("Executive Summary", styles["Heading3"]))
    elements.append(Spacer(1, 12))

    info_data = [
        ["Project Name", basics.name or "Unnamed"],
        ["Capacity", f"{basics.capacity_mw:,.1f} MW / {basics.capacity_mwh:,.1f} MWh"],
        ["Commercial Operation", basics.cod_date.strftime("%d %b %Y")],
        ["Project Life", f"{basics.project_life_years} years"],
        ["Total Capex", format_currency(financials.total_capex)],
        ["Debt / Equity", f"{format_currency(financials.debt_amount)} / "
                          f"{format_currency(financials.equity_amount)} "
                          f"({fin.debt_percentage:g}% gearing)"],
        ["Debt Terms", f"{fin.debt_tenor_years} years at {format_percent(fin.all_in_rate_pct, 2)}"
                       + (f", refinanced to {format_percent(fin.refinance_rate_pct, 2)}"
                          if fin.refinancing and fin.refinance_year is not None else "")],
        ["Discount Rate", format_percent(fin.discount_rate_pct)],
    ]
    info_table = Table(info_data, colWidths=[2.5 * inch, 5 * inch])
    info_table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("LINEBELOW", (0, -1), (-1, -1), 1, colors.grey),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 16))

    elements.append(Paragraph("Key Financial Metrics", heading_style))

    rec_text, rec_color = _get_recommendation(financials.irr, fin.target_equity_irr_pct)
    metrics_data = [
        ["Metric", "Value", "Assessment"],
        ["Equity IRR", format_percent(financials.irr),
         f"{'>=' if financials.irr >= fin.target_equity_irr_pct else '<'} "
         f"target {format_percent(fin.target_equity_irr_pct)}"],
        ["Equity NPV", format_currency(financials.npv),
         "Positive" if financials.npv > 0 else "Negative"],
        ["Average DSCR", format_multiple(financials.average_dscr), ""],
        ["Minimum DSCR", format_multiple(financials.min_dscr),
         "Meets covenant" if financials.min_dscr >= fin.dscr_covenant
         else f"Below covenant {fin.dscr_covenant:.2f}x"],
        ["Simple Payback", format_payback(financials.simple_payback), ""],
        ["Discounted Payback", format_payback(financials.discounted_payback), ""],
        ["MOIC", format_multiple(financials.moic), ""],
        ["EV per MW", f"£{financials.ev_per_mw:,.0f}k", ""],
    ]
    metrics_table = Table(metrics_data, colWidths=[2.5 * inch, 2 * inch, 3 * inch])
    metrics_table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1565c0")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
        ("TOPPADDING", (0, 0), (-1, -1), 6),
        ("ALIGN", (1, 1), (1, -1), "RIGHT"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f5f5f5")]),
    ]))
    elements.append(metrics_table)
    elements.append(Spacer(1, 12))

    rec_style = ParagraphStyle("Recommendation", parent=body_style, textColor=rec_color)
    elements.append(Paragraph(f"<b>Recommendation:</b> {rec_text}", rec_style))

    if warnings:
        elements.append(Paragraph("Input Warnings", heading_style))
        for w in warnings:
            elements.append(Paragraph(
                f"&bull; <b>{escape(w.field)}</b>: {escape(w.message)}", body_style
            ))

    # --- PAGE 2: Cash Flows ---
    elements.append(PageBreak())
    elements.append(Paragraph("Annual Cash Flows (£m)", heading_style))

    cf_data = [["Year", "Revenue", "Opex", "EBITDA", "Interest", "Principal",
                "Tax", "FCF", "Cumulative", "DSCR", "Debt O/S"]]
    for y in financials.years:
        cf_data.append([
            str(y.year),
            f"{y.revenue:,.2f}",
            f"{y.opex:,.2f}",
            f"{y.ebitda:,.2f}",
            f"{y.interest:,.2f}",
            f"{y.principal:,.2f}",
            f"{y.tax:,.2f}",
            f"{y.free_cash_flow:,.2f}",
            f"{y.cumulative_fcf:,.2f}",
            format_multiple(y.dscr),
            f"{y.debt_outstanding:,.2f}",
        ])
    cf_table = Table(cf_data, repeatRows=1)
    cf_table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#e0e0e0")),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
        ("TOPPADDING", (0, 0), (-1, -1), 2),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
    ]))
    elements.append(cf_table)
    elements.append(Spacer(1, 12))

    # --- Methodology ---
    elements.append(Paragraph("Methodology & Assumptions", heading_style))
    elements.append(Paragraph(_methodology_text(assumptions), body_style))
    elements.append(Spacer(1, 20))
    elements.append(Paragraph(
        "<i>Screening-level model. All figures are reproducible from the documented "
        "inputs and methodology above.</i>",
        small_style,
    ))

    doc.build(elements)
