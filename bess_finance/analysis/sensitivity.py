"""Sensitivity sweeps over revenue, opex and capex assumptions.

Each cell of a sweep is an independent engine run on a perturbed copy of
the assumptions, so cells can be evaluated in any order and in parallel.
Results are collected into numpy arrays indexed [variable, step].
"""

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from bess_finance.models.calculations import compute_financials
from bess_finance.models.project import AssumptionSet

logger = logging.getLogger(__name__)

DEFAULT_STEPS: Tuple[float, ...] = (-20.0, -10.0, 0.0, 10.0, 20.0)

SENSITIVITY_VARIABLES: Dict[str, Tuple[str, ...]] = {
    "revenue": (
        "revenue.energy_trading_k",
        "revenue.frequency_response_k",
        "revenue.capacity_market_k",
        "revenue.ancillary_services_k",
        "revenue.floor_revenue_k",
    ),
    "opex": (
        "costs.fixed_om_k",
        "costs.grid_om_k",
        "costs.bess_ltsa_k",
        "costs.variable_om_per_mwh",
        "costs.insurance_pct_capex",
        "costs.business_rates_pct_capex",
        "costs.asset_mgmt_pct_capex",
        "costs.land_lease_k",
    ),
    "capex": (
        "costs.epc_k",
        "costs.bess_supply_k",
        "costs.bop_k",
        "costs.grid_contestable_k",
        "costs.grid_non_contestable_k",
        "costs.development_k",
    ),
}


@dataclass(frozen=True)
class SensitivityResult:
    """One-way sweep output.

    Attributes:
        variables: Variable group names, one per row.
        steps: Percentage changes, one per column.
        irr: Equity IRR (%) with shape (len(variables), len(steps)).
        npv: Equity NPV (£m) with the same shape.
    """

    variables: Tuple[str, ...]
    steps: Tuple[float, ...]
    irr: np.ndarray
    npv: np.ndarray

    def to_rows(self) -> List[dict]:
        """Flatten to one dict per (variable, step) cell."""
        rows = []
        for i, var in enumerate(self.variables):
            for j, step in enumerate(self.steps):
                rows.append({
                    "variable": var,
                    "step_pct": step,
                    "irr": float(self.irr[i, j]),
                    "npv": float(self.npv[i, j]),
                })
        return rows


@dataclass(frozen=True)
class TwoWaySensitivityResult:
    """Two-way grid output; rows follow row_variable, columns col_variable."""

    row_variable: str
    col_variable: str
    steps: Tuple[float, ...]
    irr: np.ndarray
    npv: np.ndarray


def scale_variable(assumptions: AssumptionSet, variable: str, step_pct: float) -> AssumptionSet:
    """Return a copy with every field of a variable group scaled by 1 + step/100.

    Raises:
        ValueError: If variable is not a known group.
    """
    keys = _variable_keys(variable)
    factor = 1 + step_pct / 100
    return assumptions.with_overrides({k: assumptions.get_value(k) * factor for k in keys})


def _variable_keys(variable: str) -> Tuple[str, ...]:
    try:
        return SENSITIVITY_VARIABLES[variable]
    except KeyError:
        raise ValueError(
            f"Unknown sensitivity variable {variable!r}; "
            f"expected one of {sorted(SENSITIVITY_VARIABLES)}"
        ) from None


def _evaluate(assumptions: AssumptionSet, irr_method: str = "scan") -> Tuple[float, float]:
    financials = compute_financials(assumptions, irr_method=irr_method)
    return financials.irr, financials.npv


def _map_runs(
    fn: Callable[[AssumptionSet], Tuple[float, float]],
    cases: Sequence[AssumptionSet],
    max_workers: Optional[int],
) -> List[Tuple[float, float]]:
    """Evaluate cases in input order, on a process pool when max_workers is set."""
    if max_workers is None:
        return [fn(case) for case in cases]
    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(fn, cases))


def run_sensitivity(
    assumptions: AssumptionSet,
    variables: Optional[Iterable[str]] = None,
    steps: Sequence[float] = DEFAULT_STEPS,
    max_workers: Optional[int] = None,
    irr_method: str = "scan",
) -> SensitivityResult:
    """One-way sensitivity of equity IRR and NPV.

    Args:
        assumptions: Base case.
        variables: Variable group names; defaults to all groups in
            SENSITIVITY_VARIABLES order.
        steps: Percentage changes applied to each group.
        max_workers: Evaluate on a ProcessPoolExecutor with this many
            workers; None runs in-process.
        irr_method: IRR strategy passed to compute_financials().

    Returns:
        SensitivityResult with arrays shaped (variables, steps).

    Raises:
        ValueError: If a variable name is unknown.
    """
    names = tuple(variables) if variables is not None else tuple(SENSITIVITY_VARIABLES)
    steps = tuple(float(s) for s in steps)
    for name in names:
        _variable_keys(name)

    cases = [scale_variable(assumptions, name, step) for name in names for step in steps]
    logger.info("Running %d sensitivity cases over %s", len(cases), ", ".join(names))
    results = _map_runs(partial(_evaluate, irr_method=irr_method), cases, max_workers)

    shape = (len(names), len(steps))
    irr = np.array([r[0] for r in results], dtype=float).reshape(shape)
    npv = np.array([r[1] for r in results], dtype=float).reshape(shape)
    return SensitivityResult(names, steps, irr, npv)


def run_two_way_sensitivity(
    assumptions: AssumptionSet,
    row_variable: str = "capex",
    col_variable: str = "revenue",
    steps: Sequence[float] = DEFAULT_STEPS,
    max_workers: Optional[int] = None,
    irr_method: str = "scan",
) -> TwoWaySensitivityResult:
    """Two-way grid of equity IRR and NPV.

    Both variable groups are scaled together in each cell: row i applies
    steps[i] to row_variable and column j applies steps[j] to col_variable.

    Raises:
        ValueError: If a variable name is unknown or both axes name the
            same group.
    """
    _variable_keys(row_variable)
    _variable_keys(col_variable)
    if row_variable == col_variable:
        raise ValueError("Two-way sensitivity needs two different variables")
    steps = tuple(float(s) for s in steps)

    cases = [
        scale_variable(scale_variable(assumptions, row_variable, r), col_variable, c)
        for r in steps
        for c in steps
    ]
    logger.info("Running %dx%d %s/%s grid", len(steps), len(steps), row_variable, col_variable)
    results = _map_runs(partial(_evaluate, irr_method=irr_method), cases, max_workers)

    shape = (len(steps), len(steps))
    irr = np.array([r[0] for r in results], dtype=float).reshape(shape)
    npv = np.array([r[1] for r in results], dtype=float).reshape(shape)
    return TwoWaySensitivityResult(row_variable, col_variable, steps, irr, npv)
