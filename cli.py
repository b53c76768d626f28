"""
CLI interface and shared display-data computation for the
UK take-home pay calculator.
"""

from __future__ import annotations

import logging
import math
import sys
from typing import Any, Dict, List

import config as cfg
import llm
import rates as rates_provider
import report
import summary
import tax
from session import CalculatorSession
from tax import SalaryInputs, TaxBreakdown, TaxRates

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
# Formatting helpers
# ═══════════════════════════════════════════════════════════════════

def fmt(val: float, decimals: int = 0) -> str:
    """Format number as £X,XXX."""
    if decimals > 0:
        return f"£{val:,.{decimals}f}"
    return f"£{val:,.0f}"


def pct(val: float, decimals: int = 1) -> str:
    return f"{val:.{decimals}f}%"


PLAN_LABELS = {
    "none": "No loan",
    "plan1": "Plan 1",
    "plan2": "Plan 2",
    "plan4": "Plan 4 (Scottish)",
    "plan5": "Plan 5",
    "postgrad": "Postgrad",
}


# ═══════════════════════════════════════════════════════════════════
# Input collection (CLI)
# ═══════════════════════════════════════════════════════════════════

def _strip_currency(s: str) -> str:
    """Remove currency symbols, commas, spaces."""
    return s.replace("£", "").replace(",", "").replace(" ", "")


def _prompt_float(
    label: str,
    default: Any,
    min_val: float | None = None,
    max_val: float | None = None,
    currency: bool = False,
) -> float:
    while True:
        raw = input(f"  {label} [{default}]: ").strip()
        if not raw:
            return float(_strip_currency(str(default))) if currency else float(default)
        try:
            val = float(_strip_currency(raw) if currency else raw.replace("%", ""))
            if not math.isfinite(val):
                raise ValueError(raw)
            if min_val is not None and val < min_val:
                print(f"    Must be at least {min_val}")
                continue
            if max_val is not None and val > max_val:
                print(f"    Must be at most {max_val}")
                continue
            return val
        except ValueError:
            print("    Invalid number, try again.")


def _prompt_text(label: str, default: str) -> str:
    raw = input(f"  {label} [{default}]: ").strip()
    return raw.upper() if raw else default


def _prompt_choice(label: str, options: list[str], default: str) -> str:
    opts = "/".join(options)
    while True:
        raw = input(f"  {label} ({opts}) [{default}]: ").strip().lower()
        if not raw:
            return default
        if raw in options:
            return raw
        print(f"    Choose from: {opts}")


def collect_inputs() -> SalaryInputs:
    """Prompt the user for every calculation input."""
    print("\n  Enter your details (press Enter for defaults):\n")

    tax_year = _prompt_choice("Tax year", list(cfg.TAX_YEARS), cfg.DEFAULT_TAX_YEAR)
    tax_code = _prompt_text("Tax code", cfg.DEFAULT_TAX_CODE)
    gross = _prompt_float("Annual gross salary", "£55,000", 0, currency=True)

    auto = _prompt_choice("Use pension auto-enrolment minimums?", ["yes", "no"], "no") == "yes"
    if auto:
        employee, employer = cfg.DEFAULT_PENSION_PCT, cfg.DEFAULT_EMPLOYER_PENSION_PCT
    else:
        employee = _prompt_float("Employee pension %", cfg.DEFAULT_PENSION_PCT, 0, 100)
        employer = _prompt_float("Employer pension %", cfg.DEFAULT_EMPLOYER_PENSION_PCT, 0, 100)

    isa = _prompt_float("ISA contribution (annual)", "£0", 0, currency=True)
    gift_aid = _prompt_float("Gift Aid donations (annual)", "£0", 0, currency=True)
    eis = _prompt_float("EIS investment", "£0", 0, currency=True)
    seis = _prompt_float("SEIS investment", "£0", 0, currency=True)
    plan = _prompt_choice("Student loan", list(cfg.STUDENT_LOAN_PLANS), "none")

    return SalaryInputs(
        gross_salary=gross,
        pension_contribution=employee,
        employer_pension_contribution=employer,
        use_auto_enrolment=auto,
        student_loan_plan=plan,
        tax_year=tax_year,
        tax_code=tax_code,
        gift_aid=gift_aid,
        eis_relief=eis,
        seis_relief=seis,
        isa_contribution=isa,
    )


# ═══════════════════════════════════════════════════════════════════
# Shared display-data computation (used by CLI, web app and report)
# ═══════════════════════════════════════════════════════════════════

def tax_band_name(b: TaxBreakdown) -> str:
    """Name of the band the taxable income reaches."""
    income = b.taxable_income
    if income <= b.applied_personal_allowance:
        return "Personal Allowance"
    if income <= b.basic_band_limit:
        return "Basic"
    if income <= b.higher_band_limit:
        return "Higher"
    return "Additional"


def compute_display_data(
    inputs: SalaryInputs,
    rates: TaxRates,
    b: TaxBreakdown,
) -> Dict[str, Any]:
    """Extract every metric needed for the output sections."""
    marginal = tax.marginal_rate_breakdown(inputs, rates)
    total_deductions = b.tax_paid + b.ni_paid + b.pension + b.student_loan_paid

    return {
        # Inputs echo
        "tax_year": inputs.tax_year,
        "tax_code": inputs.tax_code,
        "gross": b.gross,
        "plan": inputs.student_loan_plan,
        "plan_label": PLAN_LABELS.get(inputs.student_loan_plan, inputs.student_loan_plan),
        "pension_label": (
            "Pension (auto-enrolment)" if b.is_auto_enrolment
            else f"Pension ({inputs.pension_contribution:g}%)"
        ),
        "rates_updated": rates.last_updated,
        # Take home
        "net_pay": b.net_pay,
        "monthly": b.take_home_monthly,
        "retention_pct": b.retention_pct,
        "marginal": marginal,
        # Deductions
        "tax_paid": b.tax_paid,
        "ni_paid": b.ni_paid,
        "pension": b.pension,
        "student_loan": b.student_loan_paid,
        "total_deductions": total_deductions,
        # Bands
        "taxable_income": b.taxable_income,
        "personal_allowance": b.applied_personal_allowance,
        "basic_limit": b.basic_band_limit,
        "higher_limit": b.higher_band_limit,
        "band": tax_band_name(b),
        # Reliefs
        "has_reliefs": b.has_reliefs,
        "isa": b.isa_contribution,
        "gift_aid_extension": b.gift_aid_extension,
        "investment_credit": b.investment_credit,
        "tax_savings": b.total_tax_savings,
        # Employer
        "employer_pension": b.employer_pension,
        "employer_cost": b.total_cost_to_employer,
        "employer_label": "Auto-enrolment cost" if b.is_auto_enrolment else "Employer total cost",
    }


# ═══════════════════════════════════════════════════════════════════
# Box-drawing CLI output
# ═══════════════════════════════════════════════════════════════════

W = 78  # box width (characters)
H = "═"


def _box_top(title: str) -> str:
    inner = W - 2
    return (
        f"╔{H * inner}╗\n"
        f"║  {title:<{inner - 2}}║\n"
        f"╠{H * inner}╣"
    )


def _box_line(text: str = "") -> str:
    inner = W - 4
    if len(text) > inner:
        text = text[:inner]
    return f"║  {text:<{inner}}║"


def _box_row(label: str, value: str, lw: int = 38) -> str:
    return _box_line(f"{label:<{lw}}{value}")


def _box_bottom() -> str:
    return f"╚{H * (W - 2)}╝"


def _wrap(text: str, width: int = W - 6) -> List[str]:
    """Greedy word wrap, keeping explicit line breaks."""
    lines: List[str] = []
    for paragraph in text.splitlines():
        line = ""
        for word in paragraph.split():
            if len(line) + len(word) + 1 <= width:
                line = f"{line} {word}" if line else word
            else:
                lines.append(line)
                line = word
        if line:
            lines.append(line)
    return lines


def _print_section(title: str, rows: List[str]) -> None:
    """Print a titled box with content rows."""
    print(_box_top(title))
    for r in rows:
        print(r)
    print(_box_bottom())
    print()


# ═══════════════════════════════════════════════════════════════════
# CLI Section Printers
# ═══════════════════════════════════════════════════════════════════

def _print_salary(d: Dict[str, Any]) -> None:
    m = d["marginal"]
    marginal_breakdown = (
        f"{pct(m['income_tax_pct'])} IT + "
        f"{pct(m['ni_pct'])} NI + "
        f"{pct(m['sl_pct'])} SL"
    )
    rows = [
        _box_row("Tax year", d["tax_year"]),
        _box_row("Tax code", d["tax_code"]),
        _box_row("Gross salary", fmt(d["gross"])),
        _box_line(),
        _box_row("Take-home pay (annual)", fmt(d["net_pay"])),
        _box_row("Take-home pay (monthly)", fmt(d["monthly"])),
        _box_row("Retention", pct(d["retention_pct"])),
        _box_line(),
        _box_row("Marginal rate", pct(m["total_marginal_pct"])),
        _box_row("  Breakdown", marginal_breakdown),
        _box_row("Effective rate", pct(m["effective_pct"])),
    ]
    _print_section("YOUR SALARY", rows)


def _print_deductions(d: Dict[str, Any]) -> None:
    rows = [
        _box_row("Income tax", fmt(d["tax_paid"])),
        _box_row("National Insurance", fmt(d["ni_paid"])),
        _box_row(d["pension_label"], fmt(d["pension"])),
    ]
    if d["plan"] != "none":
        rows.append(_box_row(f"Student loan ({d['plan_label']})", fmt(d["student_loan"])))
    rows.append(_box_line())
    rows.append(_box_row("Total deductions", fmt(d["total_deductions"])))
    if d["isa"] > 0:
        rows.append(_box_row("ISA allocation (from take-home)", fmt(d["isa"])))
    _print_section("DEDUCTIONS", rows)


def _print_bands(d: Dict[str, Any]) -> None:
    rows = [
        _box_row("Taxable income", fmt(d["taxable_income"])),
        _box_row("Personal allowance applied", fmt(d["personal_allowance"])),
        _box_row("Basic band up to", fmt(d["basic_limit"])),
        _box_row("Higher band up to", fmt(d["higher_limit"])),
        _box_line(),
        _box_row("Your top band", d["band"]),
    ]
    if d["taxable_income"] > cfg.PA_TAPER_THRESHOLD:
        rows.append(_box_line())
        rows.append(_box_line("NOTE: Income above £100,000 tapers your personal"))
        rows.append(_box_line("allowance by £1 for every £2 earned."))
    _print_section("TAX BANDS", rows)


def _print_reliefs(d: Dict[str, Any]) -> None:
    rows = []
    if d["isa"] > 0:
        rows.append(_box_row("ISA excluded from taxable income", fmt(d["isa"])))
    if d["gift_aid_extension"] > 0:
        rows.append(_box_row("Gift Aid band extension", fmt(d["gift_aid_extension"])))
    if d["investment_credit"] > 0:
        rows.append(_box_row("EIS/SEIS tax credit", fmt(d["investment_credit"])))
    rows.append(_box_line())
    rows.append(_box_row("Total tax saved by reliefs", fmt(d["tax_savings"])))
    _print_section("APPLIED RELIEFS", rows)


def _print_employer(d: Dict[str, Any]) -> None:
    rows = [
        _box_row("Employer pension", fmt(d["employer_pension"])),
        _box_row(d["employer_label"], fmt(d["employer_cost"])),
    ]
    _print_section("EMPLOYER", rows)


def _print_snapshot(text: str, d: Dict[str, Any]) -> None:
    rows = [_box_line(line) for line in _wrap(text)]
    rows.append(_box_line())
    rows.append(_box_line(f"Rates synced: {d['rates_updated']}"))
    _print_section("AI SNAPSHOT", rows)


def _print_report(pdf_path: str | None) -> None:
    rows = []
    if pdf_path:
        rows.append(_box_line(f"PDF report saved to: {pdf_path}"))
    else:
        rows.append(_box_line("Charts available in the web app:"))
        rows.append(_box_line("  python main.py  (opens localhost:5000)"))
    _print_section("CHARTS", rows)


def print_breakdown(d: Dict[str, Any]) -> None:
    _print_salary(d)
    _print_deductions(d)
    _print_bands(d)
    if d["has_reliefs"]:
        _print_reliefs(d)
    _print_employer(d)


# ═══════════════════════════════════════════════════════════════════
# Edit loop and advisor
# ═══════════════════════════════════════════════════════════════════

EDITABLE = ("salary", "pension", "auto", "year", "code", "isa", "giftaid", "eis", "seis", "loan")


def prompt_changes(inputs: SalaryInputs) -> Dict[str, Any]:
    """Ask for one field to change. An empty dict means the user is done."""
    choice = _prompt_choice("Change a value", list(EDITABLE) + ["done"], "done")
    if choice == "salary":
        return {"gross_salary": _prompt_float(
            "Annual gross salary", fmt(inputs.gross_salary), 0, currency=True)}
    if choice == "pension":
        return {
            "pension_contribution": _prompt_float(
                "Employee pension %", f"{inputs.pension_contribution:g}", 0, 100),
            "employer_pension_contribution": _prompt_float(
                "Employer pension %", f"{inputs.employer_pension_contribution:g}", 0, 100),
        }
    if choice == "auto":
        current = "yes" if inputs.use_auto_enrolment else "no"
        answer = _prompt_choice("Use pension auto-enrolment minimums?", ["yes", "no"], current)
        return {"use_auto_enrolment": answer == "yes"}
    if choice == "year":
        return {"tax_year": _prompt_choice("Tax year", list(cfg.TAX_YEARS), inputs.tax_year)}
    if choice == "code":
        return {"tax_code": _prompt_text("Tax code", inputs.tax_code)}
    if choice == "loan":
        return {"student_loan_plan": _prompt_choice(
            "Student loan", list(cfg.STUDENT_LOAN_PLANS), inputs.student_loan_plan)}
    amounts = {
        "isa": ("isa_contribution", "ISA contribution (annual)"),
        "giftaid": ("gift_aid", "Gift Aid donations (annual)"),
        "eis": ("eis_relief", "EIS investment"),
        "seis": ("seis_relief", "SEIS investment"),
    }
    if choice in amounts:
        field, label = amounts[choice]
        return {field: _prompt_float(label, fmt(getattr(inputs, field)), 0, currency=True)}
    return {}


def run_advisor() -> None:
    """Question-and-answer loop with the tax advisor until an empty line."""
    history: List[Dict[str, str]] = []
    print("  Ask the UK tax advisor (press Enter to finish).\n")
    while True:
        question = input("  You: ").strip()
        if not question:
            return
        try:
            reply = summary.ask_advisor(history, question)
        except Exception as e:
            logger.error("Advisor request failed: %s", e)
            print(f"  Advisor: {cfg.ADVISOR_ERROR}\n")
            continue
        history.append({"role": "user", "content": question})
        history.append({"role": "model", "content": reply})
        for i, line in enumerate(_wrap(reply)):
            prefix = "Advisor:" if i == 0 else " " * 8
            print(f"  {prefix} {line}")
        print()


# ═══════════════════════════════════════════════════════════════════
# Main CLI entry point
# ═══════════════════════════════════════════════════════════════════

def _show(session: CalculatorSession) -> tuple[Dict[str, Any], str]:
    """Print the current breakdown and its summary once both have settled."""
    session.wait_for_rates()
    inputs, rates = session.inputs, session.rates
    d = compute_display_data(inputs, rates, session.breakdown)

    print()
    print_breakdown(d)

    session.wait_for_summary(cfg.SUMMARY_WAIT_SECONDS)
    summary_text = session.summary or cfg.SUMMARY_FALLBACK
    _print_snapshot(summary_text, d)
    return d, summary_text


def run_cli(pdf_path: str | None = "take_home_report.pdf") -> None:
    """Run the full CLI workflow."""
    # Ensure box-drawing characters render on Windows
    try:
        sys.stdout.reconfigure(encoding="utf-8")
    except (AttributeError, OSError):
        pass
    print()
    print("=" * W)
    print("  UK Take-Home Pay Calculator")
    print("=" * W)

    session = CalculatorSession(
        inputs=collect_inputs(),
        fetcher=rates_provider.get_rates,
        summarizer=summary.fast_summary,
        summary_delay=cfg.SUMMARY_DEBOUNCE_SECONDS,
    )
    print(f"\n  Fetching {session.inputs.tax_year} tax rates...")
    session.start()
    try:
        d, summary_text = _show(session)
        while True:
            changes = prompt_changes(session.inputs)
            if not changes:
                break
            if changes.get("tax_year", session.inputs.tax_year) != session.inputs.tax_year:
                print(f"\n  Fetching {changes['tax_year']} tax rates...")
            session.update(**changes)
            d, summary_text = _show(session)

        if llm.is_configured():
            run_advisor()

        if pdf_path:
            print("  Generating PDF report...")
            pdf_path = report.generate_pdf(
                session.inputs, session.rates, session.breakdown, d, summary_text, pdf_path,
            )
            print(f"  Saved to {pdf_path}\n")
    finally:
        session.close()

    _print_report(pdf_path)


if __name__ == "__main__":
    run_cli()
