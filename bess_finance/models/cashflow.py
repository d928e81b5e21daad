"""Year-by-year operating cash flow for the project life.

A sequential fold over operating years 1..N. The only state carried
between years is the outstanding debt balance; every other line is a
function of the year index and the assumptions.
"""

import logging
from dataclasses import replace
from typing import List

from bess_finance.models.capital import CapitalStructure
from bess_finance.models.debt import DebtSchedule
from bess_finance.models.project import AssumptionSet, CashFlowYear

logger = logging.getLogger(__name__)

_MILLION = 1e6


def degradation_factor(degradation_rate_pct: float, year_index: int) -> float:
    """Compounded capacity retention after ``year_index`` years."""
    return (1 - degradation_rate_pct / 100) ** year_index


def revenue_per_mw_k(assumptions: AssumptionSet, year_index: int) -> float:
    r"""Revenue per MW (£k) for an operating year.

    Inside the contract window the escalator is frozen at the contract
    boundary and the floor applies:

        R_y = \max(floor, R_1 (1+e)^{\min(y-1, L-1)})

    After the contract the floor no longer applies and revenue escalates
    from the year-1 stack for y-1 periods, not from the contract-end value:

        R_y = R_1 (1+e)^{y-1}
    """
    rev = assumptions.revenue
    base = rev.year1_revenue_per_mw_k
    growth = 1 + rev.revenue_escalation_pct / 100
    if year_index <= rev.contract_length_years:
        exponent = min(year_index - 1, max(0, rev.contract_length_years - 1))
        return max(rev.floor_revenue_k, base * growth ** exponent)
    return base * growth ** (year_index - 1)


def build_cash_flow_years(
    assumptions: AssumptionSet,
    capital: CapitalStructure,
    debt: DebtSchedule,
) -> List[CashFlowYear]:
    """Simulate every operating year and return the ordered records.

    Args:
        assumptions: Input snapshot for the run.
        capital: Sized capital structure (absolute £).
        debt: Annuity schedule; its principal is the opening balance.

    Returns:
        One CashFlowYear per operating year, currency in £m, with
        cumulative free cash flow filled in.
    """
    basics = assumptions.basics
    tech = assumptions.technology
    costs = assumptions.costs
    fin = assumptions.financing

    mw = basics.capacity_mw
    mwh = basics.capacity_mwh
    cod_year = basics.cod_date.year

    # Annual lines that do not vary by year, absolute £
    fixed_om = costs.fixed_om_k * 1000 * mw
    grid_om = costs.grid_om_k * 1000 * mw
    ltsa = costs.bess_ltsa_k * 1000 * mw
    land_lease = costs.land_lease_k * 1000 * mw
    insurance = capital.total_capex * costs.insurance_pct_capex / 100
    rates = capital.total_capex * costs.business_rates_pct_capex / 100
    asset_mgmt = capital.total_capex * costs.asset_mgmt_pct_capex / 100
    cycles_per_year = tech.cycles_per_day * 365
    roundtrip = tech.round_trip_efficiency_pct / 100
    availability = tech.availability_pct / 100
    tax_rate = fin.corp_tax_rate_pct / 100

    outstanding = debt.principal
    records = []
    for y in range(1, basics.project_life_years + 1):
        degr = degradation_factor(tech.degradation_rate_pct, y)
        effective_mw = mw * degr * availability

        revenue = revenue_per_mw_k(assumptions, y) * 1000 * mw

        cycled_mwh = max(0.0, mwh * cycles_per_year * roundtrip * degr)
        variable_om = cycled_mwh * costs.variable_om_per_mwh
        ltsa_cost = ltsa if y >= costs.ltsa_start_year else 0.0
        opex = (fixed_om + grid_om + ltsa_cost + variable_om
                + insurance + rates + land_lease + asset_mgmt)

        if y == tech.augmentation_year:
            augmentation = capital.initial_battery_capex * tech.augmentation_cost_pct_of_battery / 100
        else:
            augmentation = 0.0

        ebitda = revenue - opex

        service = debt.service_year(y, outstanding)
        outstanding = service.closing_balance

        # Augmentation is expensed before tax for screening purposes
        ebt = ebitda - service.interest - augmentation
        tax = max(0.0, ebt * tax_rate)
        net_income = ebt - tax
        fcf = net_income + service.principal

        dscr = ebitda / service.debt_service if service.debt_service > 0 else float("inf")

        records.append(CashFlowYear(
            year=cod_year + y,
            year_index=y,
            effective_capacity_mw=effective_mw,
            revenue=revenue / _MILLION,
            opex=opex / _MILLION,
            ebitda=ebitda / _MILLION,
            interest=service.interest / _MILLION,
            principal=service.principal / _MILLION,
            augmentation=augmentation / _MILLION,
            debt_service=service.debt_service / _MILLION,
            ebt=ebt / _MILLION,
            tax=tax / _MILLION,
            net_income=net_income / _MILLION,
            free_cash_flow=fcf / _MILLION,
            cumulative_fcf=0.0,
            dscr=dscr,
            debt_outstanding=outstanding / _MILLION,
        ))

    return _with_cumulative_fcf(records)


def _with_cumulative_fcf(records: List[CashFlowYear]) -> List[CashFlowYear]:
    """Fill cumulative free cash flow as a running sum over the sequence."""
    out = []
    running = 0.0
    for rec in records:
        running += rec.free_cash_flow
        out.append(replace(rec, cumulative_fcf=running))
    logger.debug("Built %d cash-flow years, cumulative FCF %.3fm", len(out), running)
    return out
