"""
Tax-rate provider for the take-home pay calculator.

Looks up a tax year's income tax bands, personal allowance and employee
National Insurance rates through the LLM, then merges whatever comes back
over the documented 2024/25 defaults one field at a time. Any failure
along the way degrades to the defaults; callers always get a usable
:class:`~tax.TaxRates`.
"""

from __future__ import annotations

import json
import logging
import math
import re
import threading
from dataclasses import fields, replace
from datetime import date
from typing import Any, Dict, Mapping, Optional

import config as cfg
import llm
from tax import TaxRates

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

RATE_FIELDS = (
    "basic_rate",
    "higher_rate",
    "additional_rate",
    "ni_rate",
    "ni_upper_rate",
)
AMOUNT_FIELDS = (
    "personal_allowance",
    "basic_rate_threshold",
    "higher_rate_threshold",
    "additional_rate_threshold",
    "ni_threshold",
    "ni_upper_limit",
)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


# ─── Defaults ────────────────────────────────────────────────────────

def default_rates(tax_year: str = cfg.DEFAULT_TAX_YEAR) -> TaxRates:
    """Baseline 2024/25 parameters, with the 12% NI main rate for 2023/24."""
    ni_rate = cfg.NI_RATE_2023 if tax_year == cfg.NI_OVERRIDE_YEAR else cfg.NI_RATE
    return TaxRates(ni_rate=ni_rate, last_updated=_today())


def _today() -> str:
    return date.today().strftime("%d/%m/%Y")


# ─── Merging upstream data ───────────────────────────────────────────

def _coerce(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.replace("£", "").replace(",", "").strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def merge_rates(raw: Mapping[str, Any], tax_year: str = cfg.DEFAULT_TAX_YEAR) -> TaxRates:
    """Overlay ``raw`` on the defaults field by field.

    Keys may be camelCase (``personalAllowance``) or snake_case. A value
    that is missing, non-numeric, negative or (for rates) above 1 keeps
    the default. Threshold pairs that come back out of order revert to
    their defaults together.
    """
    base = default_rates(tax_year)
    updates: Dict[str, float] = {}

    for name in RATE_FIELDS + AMOUNT_FIELDS:
        value = raw.get(name, raw.get(_camel(name)))
        if value is None:
            continue
        number = _coerce(value)
        if number is None or (name in RATE_FIELDS and number > 1):
            logger.warning("Ignoring malformed %s=%r for %s", name, value, tax_year)
            continue
        updates[name] = number

    merged = replace(base, **updates)

    if merged.basic_rate_threshold > merged.higher_rate_threshold:
        logger.warning("Income tax thresholds out of order for %s; using defaults", tax_year)
        merged = replace(
            merged,
            basic_rate_threshold=base.basic_rate_threshold,
            higher_rate_threshold=base.higher_rate_threshold,
        )
    if merged.ni_upper_limit < merged.ni_threshold:
        logger.warning("NI thresholds out of order for %s; using defaults", tax_year)
        merged = replace(
            merged,
            ni_threshold=base.ni_threshold,
            ni_upper_limit=base.ni_upper_limit,
        )
    return merged


def extract_json(text: str) -> Dict[str, Any]:
    """Return the first ``{...}`` object found in ``text``, or ``{}``."""
    match = _JSON_BLOCK.search(text or "")
    if match is None:
        return {}
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse rates JSON, using defaults: %s", e)
        return {}
    return data if isinstance(data, dict) else {}


# ─── Live lookup ─────────────────────────────────────────────────────

def _rates_prompt(tax_year: str) -> str:
    keys = ", ".join(_camel(f.name) for f in fields(TaxRates)
                     if f.name in RATE_FIELDS + AMOUNT_FIELDS)
    return (
        "Fetch the official UK income tax bands, personal allowance, and "
        f"National Insurance (Employee Class 1) rates for the {tax_year} tax "
        "year. Return only a valid JSON object with these numeric keys "
        f"(rates as decimals, e.g. 0.2): {keys}."
    )


def fetch_live_rates(tax_year: str, client: Optional[Any] = None) -> Optional[TaxRates]:
    """Live rates for ``tax_year``, or ``None`` when the lookup failed.

    A lookup fails when no key is configured, the request raises, or the
    reply carries no JSON object.
    """
    if client is None and not llm.is_configured():
        logger.info("No GROQ_API_KEY configured; using default rates for %s", tax_year)
        return None

    try:
        text = llm.chat(
            [{"role": "user", "content": _rates_prompt(tax_year)}],
            model=llm.DEFAULT_MODEL,
            temperature=0.0,
            client=client,
        )
    except Exception as e:
        logger.error("Failed to fetch live rates for %s: %s", tax_year, e)
        return None

    raw = extract_json(text)
    if not raw:
        logger.warning("No rates found in reply for %s; using defaults", tax_year)
        return None
    return merge_rates(raw, tax_year)


def fetch_rates(tax_year: str, client: Optional[Any] = None) -> TaxRates:
    """Best-effort live rates for ``tax_year``; defaults on any failure."""
    return fetch_live_rates(tax_year, client=client) or default_rates(tax_year)


# ─── Cache ───────────────────────────────────────────────────────────

_cache: Dict[str, TaxRates] = {}
_cache_lock = threading.Lock()


def get_rates(tax_year: str) -> TaxRates:
    """Cached :func:`fetch_rates`.

    Only successful live lookups are cached, so a year that fell back to
    the defaults is looked up again on the next call.
    """
    with _cache_lock:
        cached = _cache.get(tax_year)
    if cached is not None:
        return cached
    rates = fetch_live_rates(tax_year)
    if rates is None:
        return default_rates(tax_year)
    with _cache_lock:
        return _cache.setdefault(tax_year, rates)


def clear_cache() -> None:
    with _cache_lock:
        _cache.clear()
