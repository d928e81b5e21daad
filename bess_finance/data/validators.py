"""Advisory input validation for project finance runs.

Each validator returns a tuple of (is_valid: bool, message: str).
Validation never blocks a run: validate_assumptions() collects the
failing checks as warnings for display alongside the results.
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple

from bess_finance.models.project import AssumptionSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationWarning:
    """A single advisory warning tied to an input field."""

    field: str
    message: str


def validate_capacity(capacity_mw: float) -> Tuple[bool, str]:
    """Validate nameplate power capacity in MW."""
    if capacity_mw <= 0:
        return False, "Capacity must be > 0"
    return True, ""


def validate_efficiency(efficiency_pct: float) -> Tuple[bool, str]:
    """Validate round-trip efficiency.

    Args:
        efficiency_pct: RTE in whole percent (e.g., 85).

    Returns:
        (is_valid, message) tuple.
    """
    if efficiency_pct < 50 or efficiency_pct > 100:
        return False, "Efficiency should be 50–100%"
    return True, ""


def validate_degradation(degradation_pct: float) -> Tuple[bool, str]:
    """Validate annual degradation in %/yr."""
    if degradation_pct < 0 or degradation_pct > 8:
        return False, "Degradation typically 0–8%/yr"
    return True, ""


def validate_dscr_covenant(covenant: float) -> Tuple[bool, str]:
    """Validate the lender DSCR covenant multiple."""
    if covenant < 1.0:
        return False, "DSCR covenant rarely < 1.00x"
    return True, ""


def validate_gearing(debt_percentage: float, max_gearing_pct: float) -> Tuple[bool, str]:
    """Validate debt percentage against the maximum gearing.

    Args:
        debt_percentage: Debt as % of capex.
        max_gearing_pct: Configured maximum gearing (%).

    Returns:
        (is_valid, message) tuple.
    """
    if debt_percentage > max_gearing_pct:
        return False, f"Debt exceeds max gearing {max_gearing_pct:g}%"
    return True, ""


def validate_tenor(debt_tenor_years: int, project_life_years: int) -> Tuple[bool, str]:
    """Validate that the debt tenor fits within the project life."""
    if debt_tenor_years > project_life_years:
        return False, (f"Debt tenor ({debt_tenor_years}y) exceeds project life "
                       f"({project_life_years}y); amortisation is truncated")
    return True, ""


def validate_refinancing(refinancing: bool, refinance_year, debt_tenor_years: int) -> Tuple[bool, str]:
    """Warn when a refinance year falls at or beyond the end of the tenor."""
    if refinancing and refinance_year is not None and refinance_year >= debt_tenor_years:
        return False, (f"Refinance after year {refinance_year} never applies within "
                       f"a {debt_tenor_years}-year tenor")
    return True, ""


def validate_assumptions(assumptions: AssumptionSet) -> List[ValidationWarning]:
    """Run all advisory checks on an assumption set.

    Args:
        assumptions: Inputs to check.

    Returns:
        Warnings for every failing check, in a stable order. An empty list
        means all checks passed.
    """
    basics = assumptions.basics
    tech = assumptions.technology
    fin = assumptions.financing

    checks = [
        ("technology.round_trip_efficiency_pct", validate_efficiency(tech.round_trip_efficiency_pct)),
        ("technology.degradation_rate_pct", validate_degradation(tech.degradation_rate_pct)),
        ("financing.dscr_covenant", validate_dscr_covenant(fin.dscr_covenant)),
        ("financing.debt_percentage", validate_gearing(fin.debt_percentage, fin.max_gearing_pct)),
        ("basics.capacity_mw", validate_capacity(basics.capacity_mw)),
        ("financing.debt_tenor_years", validate_tenor(fin.debt_tenor_years, basics.project_life_years)),
        ("financing.refinance_year",
         validate_refinancing(fin.refinancing, fin.refinance_year, fin.debt_tenor_years)),
    ]

    warnings = []
    for field_name, (valid, msg) in checks:
        if not valid:
            warnings.append(ValidationWarning(field_name, msg))
            logger.warning("%s: %s", field_name, msg)
    return warnings
