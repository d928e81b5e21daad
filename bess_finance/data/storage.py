"""Assumption save/load and result export using JSON serialization."""

import json
import logging
import math
from pathlib import Path

from bess_finance.models.project import AssumptionSet, ProjectFinancials

logger = logging.getLogger(__name__)


def save_assumptions(assumptions: AssumptionSet, filepath: str) -> None:
    """Save an assumption set to a JSON file.

    Args:
        assumptions: AssumptionSet to save.
        filepath: Output file path (should end in .json).

    Raises:
        OSError: If file cannot be written.
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(assumptions.to_dict(), f, indent=2, default=str)
    logger.info("Saved assumptions to %s", path)


def load_assumptions(filepath: str) -> AssumptionSet:
    """Load an assumption set from a JSON file.

    Missing sections and fields take their defaults; unknown keys are
    ignored.

    Args:
        filepath: Path to the JSON assumptions file.

    Returns:
        Reconstructed AssumptionSet.

    Raises:
        FileNotFoundError: If file does not exist.
        json.JSONDecodeError: If file is not valid JSON.
    """
    with open(filepath, "r", encoding="utf-8") as f:
        data = json.load(f)
    return AssumptionSet.from_dict(data)


def _json_safe(value):
    """Replace non-finite floats with None so the output is strict JSON."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_safe(v) for v in value]
    return value


def save_financials(financials: ProjectFinancials, filepath: str) -> None:
    """Write the results of a run to a JSON file.

    Infinite or NaN metrics (e.g. DSCR with no debt service) are written
    as null.

    Raises:
        OSError: If file cannot be written.
    """
    data = financials.to_dict()
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(_json_safe(data), f, indent=2, default=str, allow_nan=False)
    logger.info("Saved results to %s", path)
