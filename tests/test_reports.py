"""Tests for exports, the CLI and output formatting."""

import json
import math
import zipfile

import pytest

from bess_finance.cli import main
from bess_finance.data.validators import ValidationWarning
from bess_finance.models.calculations import compute_financials
from bess_finance.models.project import AssumptionSet
from bess_finance.reports.executive import (
    _get_recommendation,
    _methodology_text,
    generate_executive_summary,
)
from bess_finance.reports.workbook import export_workbook
from bess_finance.utils.formatters import (
    format_currency,
    format_multiple,
    format_number,
    format_payback,
    format_percent,
)


# ---- Formatters ----

class TestFormatters:
    def test_currency(self):
        assert format_currency(12.345) == "£12.3m"
        assert format_currency(-1.5) == "-£1.5m"
        assert format_currency(1234.4, 0) == "£1,234m"

    def test_currency_non_finite(self):
        assert format_currency(math.inf) == "N/A"
        assert format_currency(math.nan) == "N/A"

    def test_percent(self):
        assert format_percent(12.34) == "12.3%"
        assert format_percent(math.nan) == "N/A"

    def test_multiple(self):
        assert format_multiple(1.456) == "1.46x"
        assert format_multiple(math.inf) == "∞"
        assert format_multiple(math.nan) == "N/A"

    def test_number(self):
        assert format_number(1234.56) == "1,234.6"

    def test_payback(self):
        assert format_payback(0) == "Not reached"
        assert format_payback(1) == "1 year"
        assert format_payback(7) == "7 years"


# ---- Workbook ----

class TestWorkbook:
    def test_export_creates_sheets(self, tmp_path):
        a = AssumptionSet()
        path = export_workbook(a, compute_financials(a), str(tmp_path / "model.xlsx"))
        with zipfile.ZipFile(path) as zf:
            workbook_xml = zf.read("xl/workbook.xml").decode("utf-8")
        for sheet in ("Inputs", "Cash_Flows", "Summary"):
            assert f'name="{sheet}"' in workbook_xml

    def test_suffix_forced(self, tmp_path):
        a = AssumptionSet()
        path = export_workbook(a, compute_financials(a), str(tmp_path / "model.txt"))
        assert path.endswith(".xlsx")

    def test_infinite_dscr_written(self, tmp_path, scenario):
        a = scenario.with_overrides({"financing.debt_percentage": 0})
        path = export_workbook(a, compute_financials(a), str(tmp_path / "nodebt.xlsx"))
        assert zipfile.is_zipfile(path)


# ---- PDF ----

class TestExecutiveSummary:
    def test_recommendation_thresholds(self):
        assert _get_recommendation(15.0, 12.0)[0].startswith("PROCEED -")
        assert _get_recommendation(12.5, 12.0)[0].startswith("PROCEED WITH CAUTION")
        assert _get_recommendation(8.0, 12.0)[0].startswith("REVIEW")

    def test_methodology_floors_tax(self):
        """Tax is floored at zero, so the FCF formula carries the max()."""
        text = _methodology_text(AssumptionSet())
        assert "FCF = EBT - max(0, EBT &times; tax) + Principal" in text
        assert "(1 - tax)" not in text

    def test_generates_pdf(self, tmp_path):
        a = AssumptionSet()
        path = tmp_path / "summary.pdf"
        warnings = [ValidationWarning("financing.debt_percentage", "Debt exceeds max gearing 85%")]
        generate_executive_summary(a, compute_financials(a), str(path), warnings)
        assert path.read_bytes().startswith(b"%PDF")

    def test_generates_pdf_without_debt(self, tmp_path, scenario):
        a = scenario.with_overrides({"financing.debt_percentage": 0})
        path = tmp_path / "nodebt.pdf"
        generate_executive_summary(a, compute_financials(a), str(path))
        assert path.exists()


# ---- CLI ----

class TestCLI:
    def test_default_run(self, capsys):
        assert main([]) == 0
        out = capsys.readouterr().out
        assert "PROJECT: Staythorpe" in out
        assert "EQUITY RETURNS" in out
        assert "ANALYSIS COMPLETE" in out

    def test_quiet_json_export(self, tmp_path):
        path = tmp_path / "results.json"
        assert main(["--quiet", "--json", str(path), "--capacity", "100", "--years", "20"]) == 0
        data = json.loads(path.read_text())
        assert len(data["years"]) == 20

    def test_preset_and_save(self, tmp_path):
        path = tmp_path / "case.json"
        assert main(["--quiet", "--preset", "conservative", "--save", str(path)]) == 0
        data = json.loads(path.read_text())
        assert data["revenue"]["energy_trading_k"] == 25.0

    def test_load(self, tmp_path, capsys):
        path = tmp_path / "case.json"
        path.write_text(json.dumps({"basics": {"name": "Loaded Site"}}))
        assert main(["--load", str(path)]) == 0
        assert "PROJECT: Loaded Site" in capsys.readouterr().out

    def test_unknown_preset_exits(self):
        with pytest.raises(SystemExit):
            main(["--preset", "aggressive"])

    def test_warnings_do_not_fail(self, capsys):
        assert main(["--quiet", "--debt-pct", "95"]) == 0
        assert "financing.debt_percentage" in capsys.readouterr().out

    def test_sensitivity_tables(self, capsys):
        assert main(["--quiet", "--sensitivity", "--two-way"]) == 0
        out = capsys.readouterr().out
        assert "EQUITY IRR" in out
        assert "CAPEX (rows) x REVENUE (columns)" in out

    def test_optimize_debt(self, capsys):
        assert main(["--quiet", "--optimize-debt"]) == 0
        assert "DEBT OPTIMISATION" in capsys.readouterr().out

    def test_exports(self, tmp_path):
        pdf = tmp_path / "r.pdf"
        xlsx = tmp_path / "m.xlsx"
        assert main(["--quiet", "--report", str(pdf), "--excel", str(xlsx)]) == 0
        assert pdf.exists()
        assert xlsx.exists()
