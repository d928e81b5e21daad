"""Capex build-up and debt/equity split.

Capex inputs are £k per MW; results here are absolute £. Conversion to
£m happens when the ProjectFinancials record is assembled.
"""

import logging
from dataclasses import dataclass

from bess_finance.models.project import AssumptionSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapitalStructure:
    """Sized capital structure in absolute £.

    Attributes:
        base_capex: Sum of capex components before contingency.
        total_capex: Base capex including contingency.
        debt_amount: total_capex x debt fraction.
        equity_amount: total_capex - debt_amount.
        initial_battery_capex: Battery supply cost, the augmentation base.
    """

    base_capex: float
    total_capex: float
    debt_amount: float
    equity_amount: float
    initial_battery_capex: float


def size_capital_structure(assumptions: AssumptionSet) -> CapitalStructure:
    r"""Derive total capex and split it into debt and equity.

    Formula:
        Capex_{total} = \sum_i c_i \times 1000 \times MW \times (1 + contingency)

        Debt = Capex_{total} \times gearing,  Equity = Capex_{total} - Debt

    Non-positive capacity is not rejected; it simply sizes to zero (or
    negative) capex. Validation is advisory and lives in data.validators.

    Args:
        assumptions: Input snapshot for the run.

    Returns:
        CapitalStructure in absolute £.
    """
    mw = assumptions.basics.capacity_mw
    costs = assumptions.costs

    base_capex = costs.capex_per_mw_k * 1000 * mw
    total_capex = base_capex * (1 + costs.contingency_pct / 100)
    debt_amount = total_capex * assumptions.financing.debt_percentage / 100
    equity_amount = total_capex - debt_amount

    logger.debug(
        "Sized capex %.0f (base %.0f): debt %.0f, equity %.0f",
        total_capex, base_capex, debt_amount, equity_amount,
    )
    return CapitalStructure(
        base_capex=base_capex,
        total_capex=total_capex,
        debt_amount=debt_amount,
        equity_amount=equity_amount,
        initial_battery_capex=costs.bess_supply_k * 1000 * mw,
    )
