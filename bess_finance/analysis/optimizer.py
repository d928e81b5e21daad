"""Debt sizing search.

Scans the debt percentage over a range, runs the engine for each
candidate and picks the gearing that maximises equity IRR while the
minimum DSCR stays at or above a constraint.
"""

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import List, Optional, Tuple

import numpy as np

from bess_finance.models.calculations import compute_financials
from bess_finance.models.project import AssumptionSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DebtCandidate:
    """Engine outcome for one debt percentage."""

    debt_percentage: float
    irr: float
    npv: float
    min_dscr: float
    average_dscr: float
    feasible: bool


@dataclass(frozen=True)
class DebtOptimizationResult:
    """Result of optimize_debt().

    Attributes:
        candidates: Every evaluated gearing, ascending.
        best: Feasible candidate with the highest IRR, or None.
        min_dscr_constraint: The DSCR floor used for feasibility.
    """

    candidates: Tuple[DebtCandidate, ...]
    best: Optional[DebtCandidate]
    min_dscr_constraint: float


def debt_percentages(min_pct: float, max_pct: float, step: float) -> List[float]:
    """Inclusive grid of debt percentages.

    Raises:
        ValueError: If step is not positive or min_pct > max_pct.
    """
    if step <= 0:
        raise ValueError("step must be positive")
    if min_pct > max_pct:
        raise ValueError("min_pct must not exceed max_pct")
    count = int(np.floor((max_pct - min_pct) / step + 1e-9)) + 1
    return [round(min_pct + i * step, 6) for i in range(count)]


def _evaluate(debt_pct: float, assumptions: AssumptionSet, irr_method: str) -> Tuple[float, float, float, float]:
    case = assumptions.with_overrides({"financing.debt_percentage": debt_pct})
    f = compute_financials(case, irr_method=irr_method)
    return f.irr, f.npv, f.min_dscr, f.average_dscr


def optimize_debt(
    assumptions: AssumptionSet,
    min_pct: float = 50,
    max_pct: float = 90,
    step: float = 1,
    min_dscr: Optional[float] = None,
    max_workers: Optional[int] = None,
    irr_method: str = "scan",
) -> DebtOptimizationResult:
    """Find the debt percentage that maximises equity IRR under a DSCR floor.

    Args:
        assumptions: Base case; only financing.debt_percentage varies.
        min_pct: Lowest debt percentage to test.
        max_pct: Highest debt percentage to test (inclusive).
        step: Grid spacing in percentage points.
        min_dscr: DSCR floor; defaults to financing.min_dscr.
        max_workers: Evaluate on a ProcessPoolExecutor when set.
        irr_method: IRR strategy passed to compute_financials().

    Returns:
        DebtOptimizationResult. Ties on IRR go to the lower gearing.
    """
    constraint = assumptions.financing.min_dscr if min_dscr is None else min_dscr
    grid = debt_percentages(min_pct, max_pct, step)
    evaluate = partial(_evaluate, assumptions=assumptions, irr_method=irr_method)

    if max_workers is None:
        outcomes = [evaluate(pct) for pct in grid]
    else:
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            outcomes = list(executor.map(evaluate, grid))

    candidates = tuple(
        DebtCandidate(pct, irr, npv, run_min, run_avg, bool(run_min >= constraint))
        for pct, (irr, npv, run_min, run_avg) in zip(grid, outcomes)
    )

    best = None
    for cand in candidates:
        # Strict comparison keeps the lower gearing on ties
        if cand.feasible and (best is None or cand.irr > best.irr):
            best = cand

    if best is None:
        logger.warning(
            "No debt percentage in %g-%g%% meets min DSCR %.2fx", min_pct, max_pct, constraint
        )
    else:
        logger.info(
            "Optimal debt %.1f%%: IRR %.1f%%, min DSCR %.2fx",
            best.debt_percentage, best.irr, best.min_dscr,
        )
    return DebtOptimizationResult(candidates, best, constraint)
