import builtins

import pytest

import cli
import config as cfg
import rates
import summary
from tax import SalaryInputs, TaxRates, compute


def feed(monkeypatch, answers):
    answers = iter(answers)
    monkeypatch.setattr(builtins, "input", lambda prompt="": next(answers))


def test_collect_inputs_defaults(monkeypatch):
    feed(monkeypatch, [""] * 11)
    assert cli.collect_inputs() == SalaryInputs()


def test_collect_inputs_retries_bad_values(monkeypatch):
    feed(monkeypatch, [
        "2023/24",      # tax year
        "s1257l",       # tax code
        "abc",          # gross (invalid)
        "£60,000",      # gross
        "yes",          # auto-enrolment
        "",             # ISA
        "£800",         # Gift Aid
        "-5",           # EIS (below minimum)
        "1000",         # EIS
        "",             # SEIS
        "plan7",        # loan (invalid)
        "plan2",        # loan
    ])
    inputs = cli.collect_inputs()
    assert inputs.tax_year == "2023/24"
    assert inputs.tax_code == "S1257L"
    assert inputs.gross_salary == 60_000
    assert inputs.use_auto_enrolment
    assert inputs.gift_aid == 800
    assert inputs.eis_relief == 1_000
    assert inputs.student_loan_plan == "plan2"


@pytest.mark.parametrize("gross, band", [
    (10_000, "Personal Allowance"),
    (40_000, "Basic"),
    (90_000, "Higher"),
    (200_000, "Additional"),
])
def test_tax_band_name(gross, band):
    b = compute(SalaryInputs(gross_salary=gross, pension_contribution=0), TaxRates())
    assert cli.tax_band_name(b) == band


def test_compute_display_data():
    inputs = SalaryInputs(student_loan_plan="plan2", gift_aid=400)
    rates = TaxRates(last_updated="01/04/2024")
    b = compute(inputs, rates)
    d = cli.compute_display_data(inputs, rates, b)
    assert d["net_pay"] == b.net_pay
    assert d["plan_label"] == "Plan 2"
    assert d["pension_label"] == "Pension (5%)"
    assert d["rates_updated"] == "01/04/2024"
    assert "source_urls" not in d
    assert d["total_deductions"] == pytest.approx(b.tax_paid + b.ni_paid + b.pension + b.student_loan_paid)
    assert d["has_reliefs"]
    assert d["band"] == "Higher"
    assert set(d["marginal"]) == {"income_tax_pct", "ni_pct", "sl_pct", "total_marginal_pct", "effective_pct"}


def test_formatting_helpers():
    assert cli.fmt(40807.4) == "£40,807"
    assert cli.fmt(1234.5, 2) == "£1,234.50"
    assert cli.pct(12.345) == "12.3%"


def test_wrap_keeps_line_breaks():
    lines = cli._wrap("• first point\n• second point that is long", width=20)
    assert lines[0] == "• first point"
    assert all(len(line) <= 20 for line in lines)
    assert len(lines) == 3


@pytest.fixture
def quick_summary(monkeypatch):
    monkeypatch.setattr(cfg, "SUMMARY_DEBOUNCE_SECONDS", 0.01)


def test_prompt_float_rejects_non_finite(monkeypatch, capsys):
    feed(monkeypatch, ["inf", "nan", "1e400", "£42,000"])
    assert cli._prompt_float("Gross", "£0", 0, currency=True) == 42_000
    assert capsys.readouterr().out.count("Invalid number") == 3


def test_prompt_changes(monkeypatch):
    inputs = SalaryInputs()
    feed(monkeypatch, ["salary", "30000"])
    assert cli.prompt_changes(inputs) == {"gross_salary": 30_000}
    feed(monkeypatch, ["pension", "8", ""])
    assert cli.prompt_changes(inputs) == {
        "pension_contribution": 8, "employer_pension_contribution": 3,
    }
    feed(monkeypatch, ["giftaid", "£800"])
    assert cli.prompt_changes(inputs) == {"gift_aid": 800}
    feed(monkeypatch, [""])
    assert cli.prompt_changes(inputs) == {}


def test_run_cli_prints_breakdown(monkeypatch, capsys, quick_summary):
    feed(monkeypatch, [""] * 12)
    cli.run_cli(pdf_path=None)
    out = capsys.readouterr().out
    assert "YOUR SALARY" in out
    assert "£40,807" in out
    assert "Calculation breakdown complete." in out
    assert "APPLIED RELIEFS" not in out


def test_run_cli_writes_pdf(monkeypatch, tmp_path, quick_summary):
    feed(monkeypatch, [""] * 12)
    path = tmp_path / "report.pdf"
    cli.run_cli(pdf_path=str(path))
    assert path.read_bytes().startswith(b"%PDF")


def test_run_cli_edit_loop_recomputes(monkeypatch, capsys, quick_summary):
    feed(monkeypatch, [""] * 11 + ["salary", "£30,000", "year", "2023/24", ""])
    cli.run_cli(pdf_path=None)
    out = capsys.readouterr().out
    assert "£40,807" in out
    assert "£23,920" in out
    assert "Fetching 2023/24 tax rates" in out
    assert out.count("AI SNAPSHOT") == 3


def test_run_cli_asks_advisor_when_configured(monkeypatch, capsys, quick_summary):
    monkeypatch.setenv("GROQ_API_KEY", "test-key")
    monkeypatch.setattr(rates, "fetch_live_rates", lambda tax_year, client=None: None)
    monkeypatch.setattr(summary, "fast_summary", lambda inputs, breakdown: "• settled")
    questions = []

    def fake_advisor(history, message):
        questions.append((list(history), message))
        return "I am an AI. NI is 8% here."

    monkeypatch.setattr(summary, "ask_advisor", fake_advisor)
    feed(monkeypatch, [""] * 12 + ["What is NI?", "And tax?", ""])
    cli.run_cli(pdf_path=None)

    out = capsys.readouterr().out
    assert "• settled" in out
    assert "Advisor: I am an AI. NI is 8% here." in out
    assert questions[0] == ([], "What is NI?")
    assert [turn["role"] for turn in questions[1][0]] == ["user", "model"]
