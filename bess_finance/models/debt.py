"""Senior debt annuity and year-by-year amortisation.

The annuity is sized once from the initial all-in rate. Refinancing
changes the rate used for interest after the refinance year but leaves
the payment amount untouched, so amortisation speeds up at the
refinance boundary. That discontinuity is part of the model.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from bess_finance.models.project import AssumptionSet

logger = logging.getLogger(__name__)


def calculate_annuity(principal: float, rate: float, periods: int) -> float:
    r"""Fixed payment that amortises ``principal`` over ``periods`` years.

    Formula:
        A = P \frac{r (1+r)^n}{(1+r)^n - 1}

    A zero rate falls back to straight-line repayment, A = P / n.

    Args:
        principal: Initial loan amount.
        rate: Annual rate as a decimal (0.10 for 10%).
        periods: Number of annual payments, at least 1.

    Returns:
        Annual payment in the same currency as principal.
    """
    if rate == 0:
        return principal / periods
    growth = (1 + rate) ** periods
    return principal * (rate * growth) / (growth - 1)


@dataclass(frozen=True)
class DebtYear:
    """Debt service split for one year."""

    debt_service: float
    interest: float
    principal: float
    closing_balance: float


@dataclass(frozen=True)
class DebtSchedule:
    """Fixed-rate annuity with an optional one-time rate step.

    Attributes:
        principal: Initial outstanding balance.
        annuity: Fixed annual payment, computed from initial_rate.
        tenor_years: Effective tenor, max(1, min(tenor, project life)).
        initial_rate: Base + margin as a decimal.
        refinance_rate: Rate after refinancing as a decimal, or None.
        refinance_year: Refinanced rate applies for years strictly
            greater than this; None means never.
    """

    principal: float
    annuity: float
    tenor_years: int
    initial_rate: float
    refinance_rate: Optional[float] = None
    refinance_year: Optional[int] = None

    def rate_for_year(self, year_index: int) -> float:
        if (self.refinance_rate is not None and self.refinance_year is not None
                and year_index > self.refinance_year):
            return self.refinance_rate
        return self.initial_rate

    def service_year(self, year_index: int, opening_balance: float) -> DebtYear:
        """Split this year's payment into interest and principal.

        Once year_index passes the tenor, debt service is permanently zero
        regardless of any remaining balance or refinancing. The loan matures
        at the tenor, so the closing balance from the tenor year on is 0.
        """
        if year_index > self.tenor_years:
            return DebtYear(0.0, 0.0, 0.0, 0.0)
        interest = opening_balance * self.rate_for_year(year_index)
        principal = max(0.0, self.annuity - interest)
        if year_index == self.tenor_years:
            closing = 0.0
        else:
            closing = max(0.0, opening_balance - principal)
        return DebtYear(self.annuity, interest, principal, closing)


def build_debt_schedule(assumptions: AssumptionSet, debt_amount: float) -> DebtSchedule:
    """Size the annuity for a run.

    Args:
        assumptions: Input snapshot (financing terms and project life).
        debt_amount: Initial principal in absolute £.

    Returns:
        DebtSchedule whose principal is the opening outstanding balance.
    """
    fin = assumptions.financing
    tenor = max(1, min(fin.debt_tenor_years, assumptions.basics.project_life_years))
    rate = fin.all_in_rate_pct / 100
    annuity = calculate_annuity(debt_amount, rate, tenor)

    refinance_rate = fin.refinance_rate_pct / 100 if fin.refinancing else None
    logger.debug(
        "Debt %.0f over %d years at %.4f: annuity %.0f (refinance %s after year %s)",
        debt_amount, tenor, rate, annuity, refinance_rate, fin.refinance_year,
    )
    return DebtSchedule(
        principal=debt_amount,
        annuity=annuity,
        tenor_years=tenor,
        initial_rate=rate,
        refinance_rate=refinance_rate,
        refinance_year=fin.refinance_year if fin.refinancing else None,
    )
