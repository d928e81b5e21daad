"""BESS project finance model.

Cash-flow projection and equity return metrics for grid-scale battery
storage projects: capex and debt sizing, annuity amortisation with
optional refinancing, degradation and revenue escalation, tax, and
NPV / IRR / DSCR / payback / MOIC.
"""

from bess_finance.models.calculations import compute_financials
from bess_finance.models.project import AssumptionSet, CashFlowYear, ProjectFinancials

__version__ = "1.0.0"

__all__ = [
    "AssumptionSet",
    "CashFlowYear",
    "ProjectFinancials",
    "compute_financials",
]
