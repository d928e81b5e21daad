"""Data models for BESS project finance runs.

Defines the input sections that make up an AssumptionSet and the result
records produced by the cash-flow engine. Input sections are frozen
dataclasses; a run never mutates its assumptions. All models support
dict serialization via to_dict()/from_dict() methods.

Percentage fields hold whole-number percent (``2.0`` means 2%). Currency
inputs are in the units named by the field suffix: ``_k`` fields are
£ thousands per MW (per year for revenue/opex), ``_per_mwh`` fields are
£ per MWh. Result records report currency in £ millions.
"""

import math
from dataclasses import dataclass, field, fields, replace
from datetime import date
from typing import Any, Dict, Mapping, Optional, Tuple


def number_or(value: Any, default: float) -> float:
    """Coerce a user-supplied value to float, falling back to ``default``.

    Empty strings, None, and anything that does not parse as a finite or
    infinite number (including NaN) are replaced by the default.
    """
    if value is None or value == "":
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result):
        return default
    return result


def _coerce(value: Any, default: Any) -> Any:
    """Coerce a raw value to the type of the field default."""
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "y", "on")
        return bool(value)
    if isinstance(default, date):
        if isinstance(value, date):
            return value
        try:
            return date.fromisoformat(str(value))
        except ValueError:
            return default
    if isinstance(default, int):
        number = number_or(value, default)
        return int(number) if math.isfinite(number) else default
    if isinstance(default, float):
        return number_or(value, default)
    return value


# Fields where None is meaningful ("never") rather than a missing value.
_OPTIONAL_INT_FIELDS = {"refinance_year"}


def _coerce_optional_int(value: Any, default: Optional[int]) -> Optional[int]:
    """Coerce an optional year field; None, "" and +inf all mean never."""
    if value is None or value == "":
        return None
    number = number_or(value, math.inf if default is None else default)
    if number == math.inf:
        return None
    if not math.isfinite(number):
        return default
    return int(number)


def _section_from_dict(cls, data: Mapping[str, Any]):
    """Build a section dataclass from a dict, ignoring unknown keys."""
    kwargs = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        raw = data[f.name]
        if f.name in _OPTIONAL_INT_FIELDS:
            kwargs[f.name] = _coerce_optional_int(raw, f.default)
        else:
            kwargs[f.name] = _coerce(raw, f.default)
    return cls(**kwargs)


def _section_to_dict(section) -> dict:
    out = {}
    for f in fields(section):
        value = getattr(section, f.name)
        out[f.name] = value.isoformat() if isinstance(value, date) else value
    return out


@dataclass(frozen=True)
class ProjectBasics:
    """Project identification and sizing.

    Attributes:
        name: Project name (e.g., "Staythorpe").
        capacity_mw: Nameplate power capacity in megawatts.
        duration_hours: Storage duration in hours.
        cod_date: Commercial operation date, used for year labels.
        project_life_years: Number of operating years simulated.
    """

    name: str = "Staythorpe"
    capacity_mw: float = 360.0
    duration_hours: float = 2.0
    cod_date: date = date(2027, 8, 1)
    project_life_years: int = 40

    @property
    def capacity_mwh(self) -> float:
        return self.capacity_mw * self.duration_hours

    def to_dict(self) -> dict:
        return _section_to_dict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectBasics":
        return _section_from_dict(cls, data)


@dataclass(frozen=True)
class TechnologySpecs:
    """Battery technical assumptions.

    Attributes:
        round_trip_efficiency_pct: AC-AC round-trip efficiency (%).
        degradation_rate_pct: Annual capacity degradation (%/yr), compounding.
        availability_pct: Average plant availability (%).
        cycles_per_day: Average full cycles per day.
        augmentation_year: Operating year of the one-off augmentation spend.
        augmentation_cost_pct_of_battery: Augmentation cost as % of the
            initial battery supply capex.
    """

    round_trip_efficiency_pct: float = 85.0
    degradation_rate_pct: float = 2.0
    availability_pct: float = 95.0
    cycles_per_day: float = 1.5
    augmentation_year: int = 20
    augmentation_cost_pct_of_battery: float = 40.0

    def to_dict(self) -> dict:
        return _section_to_dict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TechnologySpecs":
        return _section_from_dict(cls, data)


@dataclass(frozen=True)
class RevenueInputs:
    """Revenue stack in £k per MW per year.

    The floor only applies inside the contract window. Escalation is
    applied from the year-1 stack.
    """

    energy_trading_k: float = 35.0
    frequency_response_k: float = 25.0
    capacity_market_k: float = 45.0
    ancillary_services_k: float = 25.0
    floor_revenue_k: float = 0.0
    contract_length_years: int = 12
    revenue_escalation_pct: float = 2.0

    @property
    def year1_revenue_per_mw_k(self) -> float:
        return (self.energy_trading_k + self.frequency_response_k
                + self.capacity_market_k + self.ancillary_services_k)

    def to_dict(self) -> dict:
        return _section_to_dict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "RevenueInputs":
        return _section_from_dict(cls, data)


@dataclass(frozen=True)
class CostInputs:
    """Capital and operating cost assumptions.

    Capex components are £k per MW of nameplate capacity. Fixed opex
    lines are £k per MW per year, variable O&M is £ per MWh cycled, and
    the ``_pct_capex`` lines are annual percentages of total capex
    (including contingency).

    Attributes:
        epc_k: EPC contract.
        bess_supply_k: Battery supply; also the base for augmentation.
        bop_k: Balance of plant.
        grid_contestable_k: Contestable grid connection works.
        grid_non_contestable_k: Non-contestable grid connection works.
        development_k: Development costs.
        contingency_pct: Contingency applied to the capex sum (%).
        fixed_om_k: Fixed O&M.
        grid_om_k: Grid O&M.
        bess_ltsa_k: Long-term service agreement.
        ltsa_start_year: First operating year the LTSA is charged.
        variable_om_per_mwh: Variable O&M per MWh cycled.
        insurance_pct_capex: Insurance (% of capex per year).
        business_rates_pct_capex: Business rates (% of capex per year).
        asset_mgmt_pct_capex: Asset management (% of capex per year).
        land_lease_k: Land lease.
    """

    epc_k: float = 201.0
    bess_supply_k: float = 196.0
    bop_k: float = 50.0
    grid_contestable_k: float = 85.0
    grid_non_contestable_k: float = 45.0
    development_k: float = 14.0
    contingency_pct: float = 10.0

    fixed_om_k: float = 15.0
    grid_om_k: float = 1.6
    bess_ltsa_k: float = 7.0
    ltsa_start_year: int = 1
    variable_om_per_mwh: float = 0.5
    insurance_pct_capex: float = 0.5
    business_rates_pct_capex: float = 0.8
    asset_mgmt_pct_capex: float = 0.8
    land_lease_k: float = 2.0

    @property
    def capex_per_mw_k(self) -> float:
        return (self.epc_k + self.bess_supply_k + self.bop_k
                + self.grid_contestable_k + self.grid_non_contestable_k
                + self.development_k)

    def to_dict(self) -> dict:
        return _section_to_dict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CostInputs":
        return _section_from_dict(cls, data)


@dataclass(frozen=True)
class FinancingInputs:
    """Debt, tax, and return-target assumptions.

    Attributes:
        debt_percentage: Senior debt as % of total capex.
        base_rate_pct: Base interest rate (% p.a.).
        interest_margin_pct: Margin over base (% p.a.).
        debt_tenor_years: Amortisation tenor in years.
        refinancing: Whether the refinance rate applies after refinance_year.
        refinance_year: Last operating year at the original rate; None
            means refinancing never takes effect.
        refinance_rate_pct: All-in rate after refinancing (% p.a.).
        corp_tax_rate_pct: Flat corporate tax rate (%).
        discount_rate_pct: Equity discount rate for NPV (%).
        dscr_covenant: Lender DSCR covenant (x), advisory only.
        min_dscr: Minimum DSCR used by the debt optimiser (x).
        max_gearing_pct: Maximum debt percentage, advisory only.
        target_equity_irr_pct: Target equity IRR for reporting (%).
    """

    debt_percentage: float = 65.0
    base_rate_pct: float = 4.5
    interest_margin_pct: float = 5.5
    debt_tenor_years: int = 15
    refinancing: bool = True
    refinance_year: Optional[int] = 1
    refinance_rate_pct: float = 2.25
    corp_tax_rate_pct: float = 25.0
    discount_rate_pct: float = 8.0
    dscr_covenant: float = 1.40
    min_dscr: float = 1.15
    max_gearing_pct: float = 85.0
    target_equity_irr_pct: float = 12.0

    @property
    def all_in_rate_pct(self) -> float:
        return self.base_rate_pct + self.interest_margin_pct

    def to_dict(self) -> dict:
        return _section_to_dict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "FinancingInputs":
        return _section_from_dict(cls, data)


_SECTIONS = {
    "basics": ProjectBasics,
    "technology": TechnologySpecs,
    "revenue": RevenueInputs,
    "costs": CostInputs,
    "financing": FinancingInputs,
}


@dataclass(frozen=True)
class AssumptionSet:
    """Complete, read-only input snapshot for one simulation run.

    Attributes:
        basics: Identification, sizing, and project life.
        technology: Efficiency, degradation, availability, augmentation.
        revenue: Per-MW revenue stack, contract, escalation.
        costs: Capex build-up and operating costs.
        financing: Debt terms, tax, discount rate, covenant targets.
    """

    basics: ProjectBasics = field(default_factory=ProjectBasics)
    technology: TechnologySpecs = field(default_factory=TechnologySpecs)
    revenue: RevenueInputs = field(default_factory=RevenueInputs)
    costs: CostInputs = field(default_factory=CostInputs)
    financing: FinancingInputs = field(default_factory=FinancingInputs)

    def get_value(self, key: str) -> Any:
        """Return a field by dotted key, e.g. ``'costs.epc_k'``."""
        section, name = _split_key(key)
        return getattr(getattr(self, section), name)

    def with_overrides(self, overrides: Mapping[str, Any]) -> "AssumptionSet":
        """Return a new AssumptionSet with dotted-key overrides applied.

        Args:
            overrides: Mapping of ``'section.field'`` to raw value. Values
                are coerced the same way as in from_dict().

        Raises:
            ValueError: If a key is not of the form ``section.field`` or
                names an unknown section or field.
        """
        grouped: Dict[str, Dict[str, Any]] = {}
        for key, value in overrides.items():
            section, name = _split_key(key)
            grouped.setdefault(section, {})[name] = value
        updates = {}
        for section, values in grouped.items():
            current = getattr(self, section)
            merged = current.to_dict()
            merged.update(values)
            updates[section] = type(current).from_dict(merged)
        return replace(self, **updates)

    def to_dict(self) -> dict:
        return {name: getattr(self, name).to_dict() for name in _SECTIONS}

    @classmethod
    def from_dict(cls, data: dict) -> "AssumptionSet":
        kwargs = {}
        for name, section_cls in _SECTIONS.items():
            section_data = data.get(name)
            if section_data:
                kwargs[name] = section_cls.from_dict(section_data)
        return cls(**kwargs)


def _split_key(key: str) -> Tuple[str, str]:
    section, _, name = key.partition(".")
    if not name or section not in _SECTIONS:
        raise ValueError(f"Override key must be 'section.field', got {key!r}")
    valid_fields = {f.name for f in fields(_SECTIONS[section])}
    if name not in valid_fields:
        raise ValueError(f"Unknown field {name!r} in section {section!r}")
    return section, name


@dataclass(frozen=True)
class CashFlowYear:
    """One simulated operating year. Currency values in £m.

    Attributes:
        year: Calendar label (COD year + year_index).
        year_index: 1-based operating year.
        effective_capacity_mw: Nameplate MW after degradation and availability.
        revenue: Total revenue.
        opex: Total operating cost.
        ebitda: Revenue less opex.
        interest: Interest paid on the opening balance.
        principal: Principal repaid.
        augmentation: One-off augmentation spend (zero outside its year).
        debt_service: Annuity payment due this year.
        ebt: EBITDA less interest and augmentation.
        tax: Corporate tax, floored at zero.
        net_income: EBT less tax.
        free_cash_flow: Equity free cash flow (net income plus principal).
        cumulative_fcf: Running sum of free_cash_flow.
        dscr: EBITDA / debt_service, or +inf when no debt service is due.
        debt_outstanding: Closing debt balance after this year's repayment.
    """

    year: int
    year_index: int
    effective_capacity_mw: float
    revenue: float
    opex: float
    ebitda: float
    interest: float
    principal: float
    augmentation: float
    debt_service: float
    ebt: float
    tax: float
    net_income: float
    free_cash_flow: float
    cumulative_fcf: float
    dscr: float
    debt_outstanding: float

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class ProjectFinancials:
    """Result of one engine run. Currency values in £m.

    Attributes:
        total_capex: Capex including contingency.
        debt_amount: Initial senior debt.
        equity_amount: Equity invested at time 0.
        annual_debt_service: Fixed annuity payment.
        years: Ordered cash-flow records, one per operating year.
        npv: Equity NPV at the discount rate.
        irr: Equity IRR in percent (0.1-point resolution by default).
        average_dscr: Mean DSCR over the tenor window.
        min_dscr: Minimum DSCR over the tenor window.
        total_cash_flows: Undiscounted sum of free cash flow.
        simple_payback: First year index with non-negative cumulative
            equity cash, 0 if never.
        discounted_payback: As simple_payback using discounted cash flow.
        moic: Total free cash flow divided by equity.
        ev_per_mw: Total capex per MW of nameplate, in £k/MW.
    """

    total_capex: float
    debt_amount: float
    equity_amount: float
    annual_debt_service: float
    years: Tuple[CashFlowYear, ...]
    npv: float
    irr: float
    average_dscr: float
    min_dscr: float
    total_cash_flows: float
    simple_payback: int
    discounted_payback: int
    moic: float
    ev_per_mw: float

    def to_dict(self) -> dict:
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "years"}
        data["years"] = [y.to_dict() for y in self.years]
        return data
