"""
Groq API client for the take-home pay calculator.
Used for live tax-rate lookups, the narrative summary and the tax advisor chat.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from groq import Groq

import config as cfg

load_dotenv(Path(__file__).resolve().parent / ".env")

DEFAULT_MODEL = os.getenv("TAKEHOME_MODEL", cfg.RATES_MODEL).strip()
SUMMARY_MODEL = os.getenv("TAKEHOME_SUMMARY_MODEL", cfg.SUMMARY_MODEL).strip()


def _api_key() -> str:
    return os.getenv("GROQ_API_KEY", "").strip()


def get_client() -> Groq:
    key = _api_key()
    if not key:
        raise ValueError("GROQ_API_KEY is not set. Add it to .env or environment.")
    return Groq(api_key=key)


def chat(
    messages: List[Dict[str, str]],
    model: str = DEFAULT_MODEL,
    temperature: float = 0.3,
    max_tokens: int = 1024,
    client: Optional[Any] = None,
) -> str:
    """Send messages to Groq and return assistant reply text."""
    client = client or get_client()
    resp = client.chat.completions.create(
        model=model,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    if not resp.choices:
        return ""
    return (resp.choices[0].message.content or "").strip()


def is_configured() -> bool:
    return bool(_api_key())
