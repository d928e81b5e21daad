"""Shared fixtures for the BESS finance tests."""

import pytest

from bess_finance.models.project import AssumptionSet

# 100 MW / 2h, £300k/MW capex, £100k/MW/yr revenue, no opex, 20-year life.
SCENARIO_OVERRIDES = {
    "basics.capacity_mw": 100,
    "basics.duration_hours": 2,
    "basics.project_life_years": 20,
    "costs.epc_k": 300,
    "costs.bess_supply_k": 0,
    "costs.bop_k": 0,
    "costs.grid_contestable_k": 0,
    "costs.grid_non_contestable_k": 0,
    "costs.development_k": 0,
    "costs.contingency_pct": 10,
    "costs.fixed_om_k": 0,
    "costs.grid_om_k": 0,
    "costs.bess_ltsa_k": 0,
    "costs.variable_om_per_mwh": 0,
    "costs.insurance_pct_capex": 0,
    "costs.business_rates_pct_capex": 0,
    "costs.asset_mgmt_pct_capex": 0,
    "costs.land_lease_k": 0,
    "revenue.energy_trading_k": 100,
    "revenue.frequency_response_k": 0,
    "revenue.capacity_market_k": 0,
    "revenue.ancillary_services_k": 0,
    "revenue.floor_revenue_k": 0,
    "revenue.contract_length_years": 10,
    "revenue.revenue_escalation_pct": 2,
    "financing.debt_percentage": 60,
    "financing.base_rate_pct": 4,
    "financing.interest_margin_pct": 5,
    "financing.debt_tenor_years": 15,
    "financing.corp_tax_rate_pct": 25,
    "financing.discount_rate_pct": 8,
}


@pytest.fixture
def scenario() -> AssumptionSet:
    """Simple project with round-number inputs for hand calculation."""
    return AssumptionSet().with_overrides(SCENARIO_OVERRIDES)
