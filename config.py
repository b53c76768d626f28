"""
UK Tax Constants for the take-home pay calculator.

All monetary values in GBP. Default parameters are the 2024/25 tax year
(England, Wales & Northern Ireland). Policy constants that do not vary
with the supplied rate set (auto-enrolment, student loans, investment
reliefs) live here too.
"""

# ── Tax years ────────────────────────────────────────────────────────
TAX_YEARS = ("2024/25", "2023/24", "2025/26")
DEFAULT_TAX_YEAR = "2024/25"
NI_OVERRIDE_YEAR = "2023/24"       # blended main rate after the Jan 2024 cut
NI_OVERRIDE_RATE = 0.10

# ── Income Tax (England & Wales) ─────────────────────────────────────
PERSONAL_ALLOWANCE = 12_570
PA_TAPER_THRESHOLD = 100_000       # PA reduces £1 per £2 above this
BASIC_RATE_THRESHOLD = 50_270
HIGHER_RATE_THRESHOLD = 125_140
ADDITIONAL_RATE_THRESHOLD = 125_140

BASIC_RATE = 0.20
HIGHER_RATE = 0.40
ADDITIONAL_RATE = 0.45

# ── National Insurance (Employee Class 1) ────────────────────────────
NI_THRESHOLD = 12_570
NI_UPPER_LIMIT = 50_270
NI_RATE = 0.08
NI_RATE_2023 = 0.12                # fallback default for 2023/24 lookups
NI_UPPER_RATE = 0.02

# ── Pension auto-enrolment (qualifying earnings) ─────────────────────
AE_LOWER_LIMIT = 6_240
AE_UPPER_LIMIT = 50_270
AE_EMPLOYEE_RATE = 0.05
AE_EMPLOYER_RATE = 0.03

DEFAULT_PENSION_PCT = 5.0
DEFAULT_EMPLOYER_PENSION_PCT = 3.0

# ── Student Loans ────────────────────────────────────────────────────
STUDENT_LOAN_PLANS = ("none", "plan1", "plan2", "plan4", "plan5", "postgrad")
SL_THRESHOLDS = {
    "plan1": 24_990,
    "plan2": 27_295,
    "plan4": 31_395,
    "plan5": 25_000,
    "postgrad": 21_000,
}
SL_DEFAULT_THRESHOLD = 27_295      # plan 2, used for unrecognised plans
SL_REPAYMENT_RATE = 0.09
SL_POSTGRAD_RATE = 0.06

# ── Reliefs ──────────────────────────────────────────────────────────
GIFT_AID_NET_FRACTION = 0.80       # donations arrive net of 20% basic rate
EIS_RELIEF_RATE = 0.30
SEIS_RELIEF_RATE = 0.50

# ── Defaults for a fresh calculation ─────────────────────────────────
DEFAULT_GROSS_SALARY = 55_000
DEFAULT_TAX_CODE = "1257L"

# ── Narrative summary / LLM ──────────────────────────────────────────
SUMMARY_DEBOUNCE_SECONDS = 1.0
SUMMARY_WAIT_SECONDS = 30.0       # CLI stops waiting for the summary after this
SUMMARY_FALLBACK = "Calculation breakdown complete."
SUMMARY_UNAVAILABLE = "Summary unavailable."
ADVISOR_ERROR = "Sorry, I encountered an error. Please try again."
RATES_MODEL = "llama-3.3-70b-versatile"
SUMMARY_MODEL = "llama-3.1-8b-instant"
ADVISOR_MODEL = "llama-3.3-70b-versatile"

# ── Salary sweep (charts) ────────────────────────────────────────────
SWEEP_MIN_SALARY = 10_000
SWEEP_MAX_SALARY = 200_000
SWEEP_STEP = 1_000
