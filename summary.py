"""
Narrative summary and tax advisor chat.

Both are advisory: the breakdown is always correct without them, and
``fast_summary`` never raises, so a missing key or an API outage only
costs the user the prose.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import config as cfg
import llm
from tax import SalaryInputs, TaxBreakdown

logger = logging.getLogger(__name__)

ADVISOR_SYSTEM_PROMPT = (
    "You are an expert UK Tax advisor. Provide helpful, accurate information "
    "about UK taxes, National Insurance, pensions, and student loans. Always "
    "clarify that you are an AI."
)


def pension_strategy(inputs: SalaryInputs) -> str:
    if inputs.use_auto_enrolment:
        return "Auto-enrolment"
    return f"Custom {inputs.pension_contribution:g}%"


def build_summary_prompt(inputs: SalaryInputs, breakdown: TaxBreakdown) -> str:
    """Prompt asking for a 3-bullet summary of one salary profile."""
    return (
        "Provide a 3-bullet point financial summary for this UK salary profile.\n"
        f"Profile: £{inputs.gross_salary:.0f} ({inputs.tax_year}), "
        f"Net: £{breakdown.net_pay:.0f}, "
        f"Monthly: £{breakdown.take_home_monthly:.0f}.\n"
        f"Pension Strategy: {pension_strategy(inputs)}.\n"
        f"ISA: £{inputs.isa_contribution:.0f} tax-free allocation.\n"
        "Format: Return ONLY the 3 bullet points. No markdown bolding, no "
        "headers. Use simple bullet symbols."
    )


def summarize(prompt: str, client: Optional[Any] = None) -> str:
    """Send ``prompt`` to the fast summary model. Errors propagate."""
    text = llm.chat(
        [{"role": "user", "content": prompt}],
        model=llm.SUMMARY_MODEL,
        max_tokens=300,
        client=client,
    )
    return text or cfg.SUMMARY_UNAVAILABLE


def fast_summary(
    inputs: SalaryInputs,
    breakdown: TaxBreakdown,
    client: Optional[Any] = None,
) -> str:
    """Summary text for the dashboard, or a static message on failure."""
    if client is None and not llm.is_configured():
        return cfg.SUMMARY_FALLBACK
    try:
        return summarize(build_summary_prompt(inputs, breakdown), client=client)
    except Exception as e:
        logger.warning("Summary request failed: %s", e)
        return cfg.SUMMARY_FALLBACK


def ask_advisor(
    history: List[Dict[str, str]],
    message: str,
    client: Optional[Any] = None,
) -> str:
    """One turn of the advisor chat.

    ``history`` holds prior ``{"role": "user"|"model", "content": ...}``
    turns, oldest first. ``"assistant"`` is accepted as well as ``"model"``.
    """
    messages = [{"role": "system", "content": ADVISOR_SYSTEM_PROMPT}]
    for turn in history:
        if not isinstance(turn, dict):
            continue
        role = turn.get("role")
        if role not in ("user", "model", "assistant") or not turn.get("content"):
            continue
        messages.append({
            "role": "user" if role == "user" else "assistant",
            "content": turn["content"],
        })
    messages.append({"role": "user", "content": message})
    return llm.chat(messages, model=cfg.ADVISOR_MODEL, temperature=0.4, client=client)
