"""Project finance engine for BESS projects.

Implements equity return metrics over the yearly cash-flow sequence:
NPV, IRR, DSCR statistics, simple and discounted payback, and MOIC.
``compute_financials`` is the single entry point used by every caller;
it is a pure function of its AssumptionSet.

All metrics work on £m free cash flows indexed from operating year 1,
with the equity outflow at time 0 left undiscounted.
"""

import logging
import math
from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np
import numpy_financial as npf

from bess_finance.models.capital import size_capital_structure
from bess_finance.models.cashflow import build_cash_flow_years
from bess_finance.models.debt import build_debt_schedule
from bess_finance.models.project import AssumptionSet, CashFlowYear, ProjectFinancials

logger = logging.getLogger(__name__)

_MILLION = 1e6


def _divide(numerator: float, denominator: float) -> float:
    """Divide with IEEE semantics: x/0 gives +/-inf, 0/0 gives nan."""
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.divide(numerator, denominator))


def _present_value(free_cash_flows: Sequence[float], rate: float) -> float:
    return sum(cf / (1 + rate) ** t for t, cf in enumerate(free_cash_flows, start=1))


def calculate_npv(free_cash_flows: Sequence[float], equity: float, discount_rate: float) -> float:
    r"""Equity net present value.

    Formula:
        NPV = \sum_{y=1}^{N} \frac{FCF_y}{(1+r)^y} - E_0

    Args:
        free_cash_flows: Equity free cash flow for years 1..N.
        equity: Equity invested at time 0 (not discounted).
        discount_rate: Annual discount rate as decimal (0.08 for 8%).

    Returns:
        NPV in the currency of the inputs.

    Example:
        >>> calculate_npv([60, 60], 100, 0.0)
        20.0
    """
    return _present_value(free_cash_flows, discount_rate) - equity


def calculate_irr_scan(
    free_cash_flows: Sequence[float],
    equity: float,
    max_rate_pct: float = 50.0,
    step_pct: float = 0.1,
) -> float:
    """IRR by linear scan over candidate rates.

    Walks rates 0%, 0.1%, ... up to ``max_rate_pct`` and returns the first
    rate at which the discounted cash flow less equity is <= 0. This is a
    first-crossing search, not an interpolated root, so the result is
    biased up to one step above the true IRR.

    Args:
        free_cash_flows: Equity free cash flow for years 1..N.
        equity: Equity invested at time 0.
        max_rate_pct: Upper bound of the scan in percent.
        step_pct: Scan resolution in percentage points.

    Returns:
        IRR in percent, or 0.0 when no crossing is found in range.
    """
    steps = int(round(max_rate_pct / step_pct))
    for i in range(steps + 1):
        # Integer counter keeps each candidate an exact multiple of the step
        rate_pct = round(i * step_pct, 6)
        if _present_value(free_cash_flows, rate_pct / 100) - equity <= 0:
            return rate_pct
    return 0.0


def calculate_irr_numpy(free_cash_flows: Sequence[float], equity: float) -> float:
    r"""IRR as the exact root of the equity cash-flow series.

    Solves 0 = -E_0 + \sum FCF_y / (1+IRR)^y with numpy_financial.

    Returns:
        IRR in percent, or NaN when no real solution exists.
    """
    result = npf.irr([-equity] + list(free_cash_flows))
    if result is None or np.isnan(result) or np.isinf(result):
        return float("nan")
    return float(result) * 100


IRR_METHODS: Dict[str, Callable[[Sequence[float], float], float]] = {
    "scan": calculate_irr_scan,
    "numpy": calculate_irr_numpy,
}


def calculate_irr(free_cash_flows: Sequence[float], equity: float, method: str = "scan") -> float:
    """Equity IRR in percent using the named strategy.

    Args:
        free_cash_flows: Equity free cash flow for years 1..N.
        equity: Equity invested at time 0.
        method: ``"scan"`` (default, 0.1-point first crossing) or
            ``"numpy"`` (exact root via numpy_financial).

    Raises:
        ValueError: If method is not a known strategy.
    """
    try:
        strategy = IRR_METHODS[method]
    except KeyError:
        raise ValueError(
            f"Unknown IRR method {method!r}; expected one of {sorted(IRR_METHODS)}"
        ) from None
    return strategy(free_cash_flows, equity)


def calculate_dscr_stats(years: Sequence[CashFlowYear], tenor_years: int) -> Tuple[float, float]:
    """Average and minimum DSCR over the first ``tenor_years`` years.

    Infinite DSCR values (no debt service due) count as 0 in the average
    and never bind the minimum. The average divides by the full window
    length, so zero-service years inside the tenor pull it down.

    Returns:
        (average, minimum). An empty window gives (nan, inf).
    """
    window = min(len(years), tenor_years)
    if window <= 0:
        return float("nan"), float("inf")
    selected = years[:window]
    total = sum(y.dscr if math.isfinite(y.dscr) else 0.0 for y in selected)
    minimum = min([float("inf")] + [y.dscr for y in selected])
    return total / window, minimum


def calculate_payback(
    free_cash_flows: Sequence[float],
    equity: float,
    discount_rate: Optional[float] = None,
) -> int:
    """First year index at which cumulative equity cash turns non-negative.

    Accumulation starts from -equity. When ``discount_rate`` is given each
    year's cash flow is discounted first.

    Returns:
        Year index (1-based), or 0 if payback is never reached.
    """
    cumulative = -equity
    for t, cf in enumerate(free_cash_flows, start=1):
        if discount_rate is not None:
            cf = cf / (1 + discount_rate) ** t
        cumulative += cf
        if cumulative >= 0:
            return t
    return 0


def calculate_moic(free_cash_flows: Sequence[float], equity: float) -> float:
    """Multiple on invested capital: total free cash flow over equity."""
    return _divide(sum(free_cash_flows), equity)


def compute_financials(assumptions: AssumptionSet, irr_method: str = "scan") -> ProjectFinancials:
    """Run the complete project finance model.

    Sizes capex and debt, builds the annuity, simulates each operating
    year, and derives the equity return metrics. The function holds no
    state between calls; identical inputs give identical outputs.

    Args:
        assumptions: Complete input snapshot.
        irr_method: IRR strategy name, see calculate_irr().

    Returns:
        A new ProjectFinancials with currency in £m.
    """
    capital = size_capital_structure(assumptions)
    debt = build_debt_schedule(assumptions, capital.debt_amount)
    years = build_cash_flow_years(assumptions, capital, debt)

    fcfs = [y.free_cash_flow for y in years]
    equity_m = capital.equity_amount / _MILLION
    discount_rate = assumptions.financing.discount_rate_pct / 100

    npv = calculate_npv(fcfs, equity_m, discount_rate)
    irr = calculate_irr(fcfs, equity_m, irr_method)
    average_dscr, min_dscr = calculate_dscr_stats(years, assumptions.financing.debt_tenor_years)

    total_capex_m = capital.total_capex / _MILLION
    financials = ProjectFinancials(
        total_capex=total_capex_m,
        debt_amount=capital.debt_amount / _MILLION,
        equity_amount=equity_m,
        annual_debt_service=debt.annuity / _MILLION,
        years=tuple(years),
        npv=npv,
        irr=irr,
        average_dscr=average_dscr,
        min_dscr=min_dscr,
        total_cash_flows=sum(fcfs),
        simple_payback=calculate_payback(fcfs, equity_m),
        discounted_payback=calculate_payback(fcfs, equity_m, discount_rate),
        moic=calculate_moic(fcfs, equity_m),
        ev_per_mw=_divide(capital.total_capex, assumptions.basics.capacity_mw) / 1000,
    )
    logger.debug(
        "%s: IRR %.1f%%, NPV %.2fm, min DSCR %.2fx",
        assumptions.basics.name, financials.irr, financials.npv, financials.min_dscr,
    )
    return financials
