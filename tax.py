"""
UK take-home pay engine.

``compute`` maps a :class:`SalaryInputs` scenario and a :class:`TaxRates`
parameter set to a :class:`TaxBreakdown`. It is a pure function: no state
is kept between calls and nothing is raised for odd inputs; negative
intermediates clamp to zero and unknown enum values fall back to safe
defaults.

The salary sweep and marginal-rate helpers at the bottom evaluate the
same engine across many salaries for charts and the CLI.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Tuple

import numpy as np

import config as cfg


# ─── Data Classes ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class TaxRates:
    """Tax-year parameter set, normally supplied by the rates provider."""

    personal_allowance: float = cfg.PERSONAL_ALLOWANCE
    basic_rate_threshold: float = cfg.BASIC_RATE_THRESHOLD
    higher_rate_threshold: float = cfg.HIGHER_RATE_THRESHOLD
    additional_rate_threshold: float = cfg.ADDITIONAL_RATE_THRESHOLD  # informational
    basic_rate: float = cfg.BASIC_RATE
    higher_rate: float = cfg.HIGHER_RATE
    additional_rate: float = cfg.ADDITIONAL_RATE
    ni_threshold: float = cfg.NI_THRESHOLD
    ni_rate: float = cfg.NI_RATE
    ni_upper_limit: float = cfg.NI_UPPER_LIMIT
    ni_upper_rate: float = cfg.NI_UPPER_RATE
    last_updated: str = ""


@dataclass(frozen=True)
class SalaryInputs:
    """One user scenario. Replace it wholesale on every edit."""

    gross_salary: float = cfg.DEFAULT_GROSS_SALARY
    pension_contribution: float = cfg.DEFAULT_PENSION_PCT            # % of gross
    employer_pension_contribution: float = cfg.DEFAULT_EMPLOYER_PENSION_PCT
    use_auto_enrolment: bool = False
    student_loan_plan: str = "none"
    is_scottish: bool = False        # accepted but not used by the engine
    tax_year: str = cfg.DEFAULT_TAX_YEAR
    tax_code: str = cfg.DEFAULT_TAX_CODE
    gift_aid: float = 0.0            # annual net donation
    eis_relief: float = 0.0          # amount invested under EIS
    seis_relief: float = 0.0         # amount invested under SEIS
    isa_contribution: float = 0.0


@dataclass(frozen=True)
class TaxBreakdown:
    """Result of one ``compute`` call. All amounts are annual GBP."""

    gross: float
    pension: float
    employer_pension: float
    taxable_income: float
    tax_paid: float
    ni_paid: float
    student_loan_paid: float
    net_pay: float
    take_home_monthly: float
    total_cost_to_employer: float
    applied_personal_allowance: float
    basic_band_limit: float
    higher_band_limit: float
    gift_aid_extension: float
    investment_credit: float
    total_tax_savings: float
    isa_contribution: float
    is_auto_enrolment: bool

    @property
    def retention_pct(self) -> float:
        return self.net_pay / self.gross * 100 if self.gross > 0 else 0.0

    @property
    def has_reliefs(self) -> bool:
        return (
            self.gift_aid_extension > 0
            or self.investment_credit > 0
            or self.isa_contribution > 0
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ─── Pension ─────────────────────────────────────────────────────────

def pension_contributions(inputs: SalaryInputs) -> Tuple[float, float]:
    """Return ``(employee, employer)`` annual pension contributions.

    With auto-enrolment both shares are fixed percentages of qualifying
    earnings (gross between £6,240 and £50,270). Otherwise the user's own
    percentages apply to the whole gross salary.
    """
    gross = inputs.gross_salary
    if inputs.use_auto_enrolment:
        qualifying = max(0.0, min(gross, cfg.AE_UPPER_LIMIT) - cfg.AE_LOWER_LIMIT)
        return qualifying * cfg.AE_EMPLOYEE_RATE, qualifying * cfg.AE_EMPLOYER_RATE
    return (
        gross * (inputs.pension_contribution / 100),
        gross * (inputs.employer_pension_contribution / 100),
    )


# ─── Personal Allowance ─────────────────────────────────────────────

_DIGITS = re.compile(r"\d+")


def parse_tax_code_allowance(tax_code: str) -> float | None:
    """Allowance implied by the first run of digits in a tax code.

    ``"1257L"`` gives 12,570. Codes without digits (``"BR"``, ``"NT"``)
    return ``None`` so the caller keeps the rate set's allowance. A digit
    run too long for a float gives an infinite allowance, so no tax.
    """
    match = _DIGITS.search(tax_code or "")
    if match is None:
        return None
    return float(match.group(0)) * 10


def personal_allowance(taxable_income: float, base_allowance: float) -> float:
    """Apply the £100k taper: £1 of allowance lost per £2 above the threshold."""
    if taxable_income > cfg.PA_TAPER_THRESHOLD:
        return max(0.0, base_allowance - (taxable_income - cfg.PA_TAPER_THRESHOLD) / 2)
    return base_allowance


# ─── Income Tax ──────────────────────────────────────────────────────

def band_tax(
    income_for_tax: float,
    taxable_income: float,
    allowance: float,
    basic_limit: float,
    higher_limit: float,
    rates: TaxRates,
) -> float:
    """Income tax across the basic, higher and additional bands.

    Which branch applies is decided on ``taxable_income`` (before the
    allowance) against the absolute band limits, while the basic band's
    size is measured net of the allowance.

    Parameters
    ----------
    income_for_tax : float
        Taxable income less the applied personal allowance.
    taxable_income : float
        Income after pension and ISA exclusions, before the allowance.
    allowance : float
        Personal allowance after taper.
    basic_limit, higher_limit : float
        Upper limits of the basic and higher bands, possibly extended by
        Gift Aid.
    rates : TaxRates
        Supplies the three marginal rates.
    """
    if income_for_tax <= 0:
        return 0.0
    if taxable_income <= basic_limit:
        return income_for_tax * rates.basic_rate

    basic_band = max(0.0, basic_limit - allowance) * rates.basic_rate
    if taxable_income <= higher_limit:
        return basic_band + (taxable_income - basic_limit) * rates.higher_rate

    higher_band = max(0.0, higher_limit - basic_limit) * rates.higher_rate
    return basic_band + higher_band + (taxable_income - higher_limit) * rates.additional_rate


# ─── National Insurance ─────────────────────────────────────────────

def national_insurance(gross: float, tax_year: str, rates: TaxRates) -> float:
    """Employee Class 1 NI on annual gross pay.

    2023/24 is charged at a flat 10% main rate regardless of
    ``rates.ni_rate``.
    """
    applicable = max(0.0, gross - rates.ni_threshold)
    if applicable <= 0:
        return 0.0
    main_rate = cfg.NI_OVERRIDE_RATE if tax_year == cfg.NI_OVERRIDE_YEAR else rates.ni_rate
    main_range = min(applicable, rates.ni_upper_limit - rates.ni_threshold)
    upper_range = max(0.0, gross - rates.ni_upper_limit)
    return main_range * main_rate + upper_range * rates.ni_upper_rate


# ─── Student Loan ───────────────────────────────────────────────────

def student_loan_repayment(gross: float, plan: str) -> float:
    """Annual repayment for ``plan``. Unknown plans use the Plan 2 threshold."""
    if plan == "none":
        return 0.0
    threshold = cfg.SL_THRESHOLDS.get(plan, cfg.SL_DEFAULT_THRESHOLD)
    rate = cfg.SL_POSTGRAD_RATE if plan == "postgrad" else cfg.SL_REPAYMENT_RATE
    return max(0.0, (gross - threshold) * rate)


# ─── Take-Home Pay ──────────────────────────────────────────────────

def compute(inputs: SalaryInputs, rates: TaxRates) -> TaxBreakdown:
    """Compute the full take-home breakdown for one scenario."""
    gross = inputs.gross_salary
    pension, employer_pension = pension_contributions(inputs)

    # ISA money is treated as a full pre-tax exclusion (a simplification)
    taxable_income = max(0.0, gross - pension - inputs.isa_contribution)

    base_pa = parse_tax_code_allowance(inputs.tax_code)
    if base_pa is None:
        base_pa = rates.personal_allowance
    pa = personal_allowance(taxable_income, base_pa)
    income_for_tax = max(0.0, taxable_income - pa)

    gift_aid_gross_up = inputs.gift_aid / cfg.GIFT_AID_NET_FRACTION
    basic_limit = rates.basic_rate_threshold + gift_aid_gross_up
    higher_limit = rates.higher_rate_threshold + gift_aid_gross_up

    tax_without_reliefs = band_tax(
        income_for_tax, taxable_income, pa,
        rates.basic_rate_threshold, rates.higher_rate_threshold, rates,
    )
    tax_with_reliefs = band_tax(
        income_for_tax, taxable_income, pa, basic_limit, higher_limit, rates,
    )

    investment_credit = (
        inputs.eis_relief * cfg.EIS_RELIEF_RATE
        + inputs.seis_relief * cfg.SEIS_RELIEF_RATE
    )
    tax_with_reliefs = max(0.0, tax_with_reliefs - investment_credit)

    ni_paid = national_insurance(gross, inputs.tax_year, rates)
    student_loan_paid = student_loan_repayment(gross, inputs.student_loan_plan)

    net_pay = gross - pension - tax_with_reliefs - ni_paid - student_loan_paid

    return TaxBreakdown(
        gross=gross,
        pension=pension,
        employer_pension=employer_pension,
        taxable_income=taxable_income,
        tax_paid=tax_with_reliefs,
        ni_paid=ni_paid,
        student_loan_paid=student_loan_paid,
        net_pay=net_pay,
        take_home_monthly=net_pay / 12,
        total_cost_to_employer=gross + employer_pension,
        applied_personal_allowance=pa,
        basic_band_limit=basic_limit,
        higher_band_limit=higher_limit,
        gift_aid_extension=gift_aid_gross_up,
        investment_credit=investment_credit,
        total_tax_savings=tax_without_reliefs - tax_with_reliefs,
        isa_contribution=inputs.isa_contribution,
        is_auto_enrolment=inputs.use_auto_enrolment,
    )


# ─── Salary Sweep ───────────────────────────────────────────────────

def salary_sweep(
    inputs: SalaryInputs,
    rates: TaxRates,
    salaries: np.ndarray | None = None,
) -> Dict[str, np.ndarray]:
    """Evaluate ``compute`` across a range of gross salaries.

    Every other input is held fixed.

    Parameters
    ----------
    inputs : SalaryInputs
        Base scenario; only ``gross_salary`` varies.
    rates : TaxRates
        Rate set used for every point.
    salaries : array_like, optional
        Gross salaries to evaluate. Defaults to £10k-£200k in £1k steps.

    Returns
    -------
    dict
        Keys: ``'gross'``, ``'pension'``, ``'tax'``, ``'ni'``, ``'sl'``,
        ``'net'``, each an array the same length as ``salaries``.
    """
    if salaries is None:
        salaries = np.arange(cfg.SWEEP_MIN_SALARY, cfg.SWEEP_MAX_SALARY + 1, cfg.SWEEP_STEP)
    salaries = np.asarray(salaries, dtype=float)

    rows = [compute(replace(inputs, gross_salary=float(s)), rates) for s in salaries]
    return {
        "gross": salaries,
        "pension": np.array([r.pension for r in rows]),
        "tax": np.array([r.tax_paid for r in rows]),
        "ni": np.array([r.ni_paid for r in rows]),
        "sl": np.array([r.student_loan_paid for r in rows]),
        "net": np.array([r.net_pay for r in rows]),
    }


# ─── Marginal Rate Breakdown ────────────────────────────────────────

def marginal_rate_breakdown(inputs: SalaryInputs, rates: TaxRates) -> Dict[str, float]:
    """Marginal and effective rate breakdown for a single scenario.

    Uses a £1 delta on gross salary to compute the marginal rate of each
    component.

    Returns
    -------
    dict
        Keys: ``'income_tax_pct'``, ``'ni_pct'``, ``'sl_pct'``,
        ``'total_marginal_pct'``, ``'effective_pct'``.
    """
    sweep = salary_sweep(inputs, rates, np.array([inputs.gross_salary, inputs.gross_salary + 1.0]))

    it_marginal = float(sweep["tax"][1] - sweep["tax"][0])
    ni_marginal = float(sweep["ni"][1] - sweep["ni"][0])
    sl_marginal = float(sweep["sl"][1] - sweep["sl"][0])
    total_marginal = it_marginal + ni_marginal + sl_marginal

    salary = inputs.gross_salary
    total_deductions = float(sweep["tax"][0] + sweep["ni"][0] + sweep["sl"][0])
    effective = total_deductions / salary if salary > 0 else 0.0

    return {
        "income_tax_pct": round(it_marginal * 100, 2),
        "ni_pct": round(ni_marginal * 100, 2),
        "sl_pct": round(sl_marginal * 100, 2),
        "total_marginal_pct": round(total_marginal * 100, 2),
        "effective_pct": round(effective * 100, 2),
    }
