"""Unit tests for the BESS project finance engine.

Tests cover capital sizing, the debt annuity, the yearly cash-flow fold,
and the NPV / IRR / DSCR / payback / MOIC metrics. Expected values are
hand-computed in the docstrings.
"""

import math

import pytest

from bess_finance.models.calculations import (
    calculate_dscr_stats,
    calculate_irr,
    calculate_irr_numpy,
    calculate_irr_scan,
    calculate_moic,
    calculate_npv,
    calculate_payback,
    compute_financials,
)
from bess_finance.models.capital import size_capital_structure
from bess_finance.models.cashflow import degradation_factor, revenue_per_mw_k
from bess_finance.models.debt import DebtSchedule, build_debt_schedule, calculate_annuity
from bess_finance.models.project import AssumptionSet, CashFlowYear


def _year(dscr: float, index: int = 1) -> CashFlowYear:
    return CashFlowYear(
        year=2027 + index, year_index=index, effective_capacity_mw=0.0,
        revenue=0.0, opex=0.0, ebitda=0.0, interest=0.0, principal=0.0,
        augmentation=0.0, debt_service=0.0, ebt=0.0, tax=0.0, net_income=0.0,
        free_cash_flow=0.0, cumulative_fcf=0.0, dscr=dscr, debt_outstanding=0.0,
    )


# ---- Capital structure ----

class TestCapitalStructure:
    def test_scenario_sizing(self, scenario):
        """100 MW x £300k x 1.10 = £33.0m; 60% debt = £19.8m; equity £13.2m."""
        cap = size_capital_structure(scenario)
        assert abs(cap.total_capex - 33.0e6) < 1
        assert abs(cap.debt_amount - 19.8e6) < 1
        assert abs(cap.equity_amount - 13.2e6) < 1

    def test_debt_plus_equity_equals_capex(self):
        cap = size_capital_structure(AssumptionSet())
        assert cap.debt_amount + cap.equity_amount == pytest.approx(cap.total_capex)

    def test_battery_capex_excludes_contingency(self):
        """Default: £196k/MW x 360 MW = £70.56m."""
        cap = size_capital_structure(AssumptionSet())
        assert abs(cap.initial_battery_capex - 70.56e6) < 1


# ---- Debt annuity ----

class TestAnnuity:
    def test_annuity_standard(self):
        """£19.8m at 9% over 15 years: A = 19.8 x 0.09 x 1.09^15 / (1.09^15 - 1) ~ £2.4564m."""
        result = calculate_annuity(19.8e6, 0.09, 15)
        assert abs(result - 2.456365e6) < 1e3

    def test_annuity_zero_rate(self):
        """Zero rate falls back to straight line: 100 / 4 = 25."""
        assert calculate_annuity(100.0, 0.0, 4) == 25.0

    def test_annuity_single_period(self):
        """One period repays principal plus one year of interest."""
        assert calculate_annuity(100.0, 0.10, 1) == pytest.approx(110.0)


class TestDebtSchedule:
    def test_balance_reaches_zero_at_tenor(self):
        """Without refinancing the annuity fully amortises by the tenor."""
        annuity = calculate_annuity(1000.0, 0.08, 10)
        sched = DebtSchedule(principal=1000.0, annuity=annuity, tenor_years=10, initial_rate=0.08)
        balance = 1000.0
        for y in range(1, 11):
            balance = sched.service_year(y, balance).closing_balance
        assert balance == pytest.approx(0.0, abs=1e-6)

    def test_balance_non_increasing_and_non_negative(self, scenario):
        f = compute_financials(scenario)
        balances = [y.debt_outstanding for y in f.years]
        assert all(b >= 0 for b in balances)
        assert all(b2 <= b1 + 1e-12 for b1, b2 in zip(balances, balances[1:]))

    def test_no_service_after_tenor(self):
        sched = DebtSchedule(principal=1000.0, annuity=150.0, tenor_years=10, initial_rate=0.08)
        result = sched.service_year(11, 500.0)
        assert result.debt_service == 0.0
        assert result.interest == 0.0
        assert result.principal == 0.0
        assert result.closing_balance == 0.0

    def test_balance_zero_after_tenor(self, scenario):
        """Tenor 15 in a 20-year life: nothing outstanding in years 15..20."""
        f = compute_financials(scenario.with_overrides({"financing.refinancing": False}))
        assert all(y.debt_outstanding == 0.0 for y in f.years[14:])
        assert f.years[13].debt_outstanding > 0

    def test_balance_zero_after_tenor_with_rate_step_up(self, scenario):
        """A refinance rate above 9% leaves the annuity short, but the loan still matures."""
        a = scenario.with_overrides({
            "financing.refinancing": True,
            "financing.refinance_year": 1,
            "financing.refinance_rate_pct": 12,
        })
        f = compute_financials(a)
        assert f.years[13].debt_outstanding > f.annual_debt_service
        assert f.years[14].debt_service == f.annual_debt_service
        assert all(y.debt_outstanding == 0.0 for y in f.years[14:])
        assert all(y.debt_service == 0.0 for y in f.years[15:])

    def test_refinance_rate_applies_after_refinance_year(self):
        sched = DebtSchedule(principal=1000.0, annuity=150.0, tenor_years=10,
                             initial_rate=0.10, refinance_rate=0.05, refinance_year=2)
        assert sched.rate_for_year(2) == 0.10
        assert sched.rate_for_year(3) == 0.05

    def test_refinance_accelerates_principal(self):
        """Annuity stays fixed, so a lower rate shifts the split toward principal."""
        sched = DebtSchedule(principal=1000.0, annuity=150.0, tenor_years=10,
                             initial_rate=0.10, refinance_rate=0.05, refinance_year=2)
        y2 = sched.service_year(2, 900.0)
        y3 = sched.service_year(3, 900.0)
        assert y2.debt_service == y3.debt_service == 150.0
        assert y2.principal == pytest.approx(60.0)
        assert y3.principal == pytest.approx(105.0)

    def test_refinance_year_none_never_refinances(self):
        sched = DebtSchedule(principal=1000.0, annuity=150.0, tenor_years=10,
                             initial_rate=0.10, refinance_rate=0.05, refinance_year=None)
        assert sched.rate_for_year(10) == 0.10

    def test_tenor_clamped_to_project_life(self, scenario):
        a = scenario.with_overrides({"financing.debt_tenor_years": 30})
        sched = build_debt_schedule(a, 1e6)
        assert sched.tenor_years == 20

    def test_tenor_at_least_one(self, scenario):
        a = scenario.with_overrides({"financing.debt_tenor_years": 0})
        assert build_debt_schedule(a, 1e6).tenor_years == 1

    def test_refinancing_disabled(self, scenario):
        a = scenario.with_overrides({"financing.refinancing": False})
        sched = build_debt_schedule(a, 1e6)
        assert sched.refinance_rate is None
        assert sched.rate_for_year(5) == pytest.approx(0.09)


# ---- Revenue and degradation ----

class TestRevenue:
    def test_degradation_factor(self):
        """2%/yr after 2 years: 0.98^2 = 0.9604."""
        assert degradation_factor(2.0, 2) == pytest.approx(0.9604)

    def test_escalation_within_contract(self, scenario):
        """Year 3 inside contract: 100 x 1.02^2 = 104.04."""
        assert revenue_per_mw_k(scenario, 3) == pytest.approx(104.04)

    def test_post_contract_escalates_from_year_one(self, scenario):
        """Year 11 after a 10-year contract: 100 x 1.02^10."""
        assert revenue_per_mw_k(scenario, 11) == pytest.approx(100 * 1.02 ** 10)

    def test_floor_applies_only_in_contract(self, scenario):
        a = scenario.with_overrides({"revenue.floor_revenue_k": 150})
        assert revenue_per_mw_k(a, 1) == 150
        assert revenue_per_mw_k(a, 10) == 150
        assert revenue_per_mw_k(a, 11) == pytest.approx(100 * 1.02 ** 10)

    def test_zero_contract_length(self, scenario):
        """No contract window: every year escalates from year 1, floor ignored."""
        a = scenario.with_overrides({"revenue.contract_length_years": 0,
                                     "revenue.floor_revenue_k": 500})
        assert revenue_per_mw_k(a, 1) == pytest.approx(100.0)
        assert revenue_per_mw_k(a, 2) == pytest.approx(102.0)


# ---- Yearly cash flow ----

class TestCashFlow:
    def test_scenario_year_one(self, scenario):
        """Year 1: revenue £10.0m, EBITDA £10.0m, interest 19.8 x 9% = £1.782m.

        EBT = 8.218, tax = 2.0545, principal = 2.456365 - 1.782 = 0.674365,
        FCF = 6.1635 + 0.674365 = 6.837865.
        """
        f = compute_financials(scenario)
        y1 = f.years[0]
        assert abs(y1.revenue - 10.0) < 1e-9
        assert abs(y1.ebitda - 10.0) < 1e-9
        assert abs(y1.interest - 1.782) < 1e-6
        assert abs(y1.tax - 2.0545) < 1e-6
        assert abs(y1.free_cash_flow - 6.837865) < 1e-3
        assert math.isfinite(y1.dscr) and y1.dscr > 1.0
        assert y1.dscr == pytest.approx(y1.ebitda / y1.debt_service)

    def test_year_two_uses_refinance_rate(self, scenario):
        """Opening balance 19.8 - 0.674365 at 2.25% = ~£0.4303m interest."""
        f = compute_financials(scenario)
        assert abs(f.years[1].interest - 0.4303) < 1e-3

    def test_year_labels_from_cod(self, scenario):
        f = compute_financials(scenario)
        assert f.years[0].year == 2028
        assert f.years[-1].year == 2047
        assert [y.year_index for y in f.years] == list(range(1, 21))

    def test_constant_when_no_escalation_or_degradation(self, scenario):
        a = scenario.with_overrides({
            "revenue.revenue_escalation_pct": 0,
            "technology.degradation_rate_pct": 0,
            "technology.availability_pct": 100,
        })
        f = compute_financials(a)
        assert {y.effective_capacity_mw for y in f.years} == {100.0}
        assert {y.revenue for y in f.years} == {10.0}

    def test_effective_capacity_not_rounded(self, scenario):
        """100 x 0.98 x 0.95 = 93.1 exactly, no rounding applied."""
        f = compute_financials(scenario)
        assert f.years[0].effective_capacity_mw == pytest.approx(93.1)

    def test_augmentation_in_year(self):
        """Default: 40% of £196k x 360 MW in year 20 = £28.224m."""
        f = compute_financials(AssumptionSet())
        assert abs(f.years[19].augmentation - 28.224) < 1e-9
        assert sum(y.augmentation for y in f.years) == pytest.approx(28.224)

    def test_augmentation_beyond_life_never_applied(self):
        a = AssumptionSet().with_overrides({"technology.augmentation_year": 50})
        f = compute_financials(a)
        assert all(y.augmentation == 0 for y in f.years)

    def test_ltsa_start_zero_matches_one(self):
        base = compute_financials(AssumptionSet().with_overrides({"costs.ltsa_start_year": 1}))
        zero = compute_financials(AssumptionSet().with_overrides({"costs.ltsa_start_year": 0}))
        assert [y.opex for y in base.years] == [y.opex for y in zero.years]

    def test_ltsa_start_delays_cost(self):
        late = compute_financials(AssumptionSet().with_overrides({"costs.ltsa_start_year": 3}))
        early = compute_financials(AssumptionSet())
        ltsa_m = 7 * 1000 * 360 / 1e6
        assert early.years[0].opex - late.years[0].opex == pytest.approx(ltsa_m)
        assert early.years[2].opex == pytest.approx(late.years[2].opex)

    def test_tax_floored_at_zero(self, scenario):
        a = scenario.with_overrides({"revenue.energy_trading_k": 1})
        f = compute_financials(a)
        assert all(y.tax >= 0 for y in f.years)

    def test_cumulative_fcf_is_running_sum(self, scenario):
        f = compute_financials(scenario)
        running = 0.0
        for y in f.years:
            running += y.free_cash_flow
            assert y.cumulative_fcf == pytest.approx(running)

    def test_zero_debt_gives_infinite_dscr(self, scenario):
        f = compute_financials(scenario.with_overrides({"financing.debt_percentage": 0}))
        assert all(math.isinf(y.dscr) for y in f.years)
        assert f.annual_debt_service == 0.0
        assert all(y.interest == 0.0 for y in f.years)
        assert all(y.principal == 0.0 for y in f.years)
        assert all(y.debt_service == 0.0 for y in f.years)
        assert f.min_dscr == math.inf
        assert f.average_dscr == 0.0


# ---- NPV ----

class TestNPV:
    def test_npv_zero_rate(self):
        """At 0%, NPV = 60 + 60 - 100 = 20."""
        assert calculate_npv([60, 60], 100, 0.0) == 20.0

    def test_npv_discounts_from_year_one(self):
        """60/1.1 + 60/1.21 - 100 = 4.132."""
        assert abs(calculate_npv([60, 60], 100, 0.10) - 4.132) < 1e-3


# ---- IRR ----

class TestIRR:
    def test_scan_first_crossing(self):
        """True IRR of 15.05% is reported as the next grid point, 15.1%."""
        assert calculate_irr_scan([115.05], 100) == pytest.approx(15.1)

    def test_scan_no_crossing_returns_zero(self):
        """IRR above 50% cannot be found by the scan."""
        assert calculate_irr_scan([1000], 100) == 0.0

    def test_scan_negative_flows(self):
        """Already non-positive at 0%: returns 0.0."""
        assert calculate_irr_scan([-10], 100) == 0.0

    def test_numpy_exact(self):
        assert calculate_irr_numpy([115.05], 100) == pytest.approx(15.05, abs=1e-6)

    def test_dispatch(self):
        assert calculate_irr([115.05], 100, "scan") == pytest.approx(15.1)
        assert calculate_irr([115.05], 100, "numpy") == pytest.approx(15.05, abs=1e-6)

    def test_unknown_method_raises(self):
        with pytest.raises(ValueError):
            calculate_irr([110], 100, "bisect")

    def test_irr_increases_with_revenue(self, scenario):
        """£50k vs £60k/MW keeps both IRRs inside the 0-50% scan range."""
        low = compute_financials(scenario.with_overrides({"revenue.energy_trading_k": 50}))
        high = compute_financials(scenario.with_overrides({"revenue.energy_trading_k": 60}))
        assert 0 < low.irr < high.irr < 50
        assert high.npv > low.npv

    def test_irr_above_scan_range_reports_zero(self, scenario):
        """The £100k/MW scenario returns ~52% on £13.2m equity, beyond the scan."""
        assert compute_financials(scenario).irr == 0.0
        assert compute_financials(scenario, irr_method="numpy").irr > 50


# ---- DSCR statistics ----

class TestDSCRStats:
    def test_infinite_counts_as_zero_in_average(self):
        """(2.0 + 0 + 1.5) / 3 = 1.1667; min ignores inf -> 1.5."""
        years = [_year(2.0, 1), _year(math.inf, 2), _year(1.5, 3)]
        avg, minimum = calculate_dscr_stats(years, 3)
        assert abs(avg - 3.5 / 3) < 1e-12
        assert minimum == 1.5

    def test_window_limited_by_tenor(self):
        years = [_year(2.0, 1), _year(1.0, 2)]
        avg, minimum = calculate_dscr_stats(years, 1)
        assert avg == 2.0
        assert minimum == 2.0

    def test_window_limited_by_years(self):
        years = [_year(2.0, 1), _year(4.0, 2)]
        avg, _ = calculate_dscr_stats(years, 15)
        assert avg == 3.0

    def test_empty_window(self):
        avg, minimum = calculate_dscr_stats([_year(2.0)], 0)
        assert math.isnan(avg)
        assert minimum == math.inf

    def test_tenor_beyond_life_averages_zero_service_years(self, scenario):
        """Tenor 15 over a 10-year life: window is the 10 simulated years."""
        a = scenario.with_overrides({"basics.project_life_years": 10})
        f = compute_financials(a)
        expected = sum(y.dscr for y in f.years) / 10
        assert f.average_dscr == pytest.approx(expected)


# ---- Payback and MOIC ----

class TestPayback:
    def test_simple_payback(self):
        """Cumulative: -60, -20, +20 -> year 3."""
        assert calculate_payback([40, 40, 40], 100) == 3

    def test_never_paid_back(self):
        assert calculate_payback([10, 10], 100) == 0

    def test_discounted_payback_later(self):
        """At 10%: 36.36 + 33.06 + 30.05 = 99.47 < 100 -> never."""
        assert calculate_payback([40, 40, 40], 100, 0.10) == 0

    def test_zero_equity_pays_back_immediately(self):
        assert calculate_payback([0.0, 1.0], 0.0) == 1


class TestMOIC:
    def test_moic(self):
        """(60 + 60) / 100 = 1.2."""
        assert calculate_moic([60, 60], 100) == pytest.approx(1.2)

    def test_zero_equity_is_infinite(self):
        assert calculate_moic([60], 0) == math.inf

    def test_zero_over_zero_is_nan(self):
        assert math.isnan(calculate_moic([0.0], 0))


# ---- Full pipeline ----

class TestComputeFinancials:
    def test_scenario_headline(self, scenario):
        f = compute_financials(scenario)
        assert abs(f.total_capex - 33.0) < 1e-9
        assert abs(f.debt_amount - 19.8) < 1e-9
        assert abs(f.equity_amount - 13.2) < 1e-9
        assert abs(f.annual_debt_service - 2.456365) < 1e-3
        assert abs(f.ev_per_mw - 330.0) < 1e-9
        assert len(f.years) == 20

    def test_totals_consistent(self, scenario):
        f = compute_financials(scenario)
        fcfs = [y.free_cash_flow for y in f.years]
        assert f.total_cash_flows == pytest.approx(sum(fcfs))
        assert f.moic == pytest.approx(sum(fcfs) / f.equity_amount)
        assert f.npv == pytest.approx(calculate_npv(fcfs, f.equity_amount, 0.08))

    def test_default_run(self):
        f = compute_financials(AssumptionSet())
        assert len(f.years) == 40
        assert f.years[0].year == 2028
        assert math.isfinite(f.npv)

    def test_repeat_runs_identical(self):
        a = AssumptionSet()
        assert compute_financials(a) == compute_financials(a)

    def test_irr_method_numpy(self, scenario):
        a = scenario.with_overrides({"revenue.energy_trading_k": 60})
        scan = compute_financials(a)
        exact = compute_financials(a, irr_method="numpy")
        assert exact.irr <= scan.irr
        assert scan.irr - exact.irr < 0.1 + 1e-9

    def test_zero_capacity_non_finite(self):
        f = compute_financials(AssumptionSet().with_overrides({"basics.capacity_mw": 0}))
        assert not math.isfinite(f.ev_per_mw)
        assert not math.isfinite(f.moic)

    def test_zero_equity_non_finite_moic(self, scenario):
        f = compute_financials(scenario.with_overrides({"financing.debt_percentage": 100}))
        assert f.equity_amount == 0
        assert math.isinf(f.moic)

    def test_to_dict_includes_years(self, scenario):
        data = compute_financials(scenario).to_dict()
        assert len(data["years"]) == 20
        assert data["years"][0]["year_index"] == 1
