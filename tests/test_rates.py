import json
import re

import pytest

import rates
from rates import default_rates, extract_json, fetch_rates, get_rates, merge_rates
from tax import TaxRates


def test_default_rates_2024():
    r = default_rates("2024/25")
    assert r.personal_allowance == 12_570
    assert r.basic_rate_threshold == 50_270
    assert r.higher_rate_threshold == 125_140
    assert r.ni_rate == pytest.approx(0.08)
    assert re.fullmatch(r"\d{2}/\d{2}/\d{4}", r.last_updated)


def test_default_rates_2023_use_twelve_percent_ni():
    assert default_rates("2023/24").ni_rate == pytest.approx(0.12)


# ─── merge_rates ────────────────────────────────────────────────────

def test_merge_accepts_camel_and_snake_case():
    r = merge_rates({"personalAllowance": 13_000, "basic_rate": 0.21})
    assert r.personal_allowance == 13_000
    assert r.basic_rate == pytest.approx(0.21)
    assert r.higher_rate == pytest.approx(0.40)


def test_merge_coerces_currency_strings():
    assert merge_rates({"niThreshold": "£12,000"}).ni_threshold == 12_000


@pytest.mark.parametrize("value", ["abc", True, -5, float("nan"), None, [1]])
def test_merge_ignores_malformed_amounts(value):
    assert merge_rates({"personalAllowance": value}).personal_allowance == 12_570


def test_merge_rejects_rates_above_one():
    assert merge_rates({"higherRate": 40}).higher_rate == pytest.approx(0.40)


def test_merge_reverts_out_of_order_thresholds():
    r = merge_rates({"basicRateThreshold": 200_000, "higherRateThreshold": 100_000})
    assert r.basic_rate_threshold == 50_270
    assert r.higher_rate_threshold == 125_140


def test_merge_reverts_out_of_order_ni_limits():
    r = merge_rates({"niThreshold": 60_000})
    assert r.ni_threshold == 12_570
    assert r.ni_upper_limit == 50_270


def test_merge_empty_is_defaults():
    assert merge_rates({}, "2023/24") == default_rates("2023/24")


# ─── extract_json ───────────────────────────────────────────────────

def test_extract_json_from_prose():
    text = 'Here are the rates:\n```json\n{"personalAllowance": 12570}\n```\nHope that helps.'
    assert extract_json(text) == {"personalAllowance": 12570}


@pytest.mark.parametrize("text", ["", "no json here", "{not valid json}", None])
def test_extract_json_failures_return_empty(text):
    assert extract_json(text) == {}


# ─── fetch_rates ────────────────────────────────────────────────────

def test_fetch_without_key_returns_defaults():
    assert fetch_rates("2025/26") == default_rates("2025/26")


def test_fetch_merges_model_reply(fake_groq):
    client = fake_groq(reply=json.dumps({"personalAllowance": 12_570, "niRate": 0.08, "basicRate": 0.2}))
    r = fetch_rates("2024/25", client=client)
    assert r == default_rates("2024/25")
    assert "2024/25" in client.calls[0]["messages"][0]["content"]


def test_fetch_partial_reply_keeps_other_defaults(fake_groq):
    client = fake_groq(reply='{"personalAllowance": 11000}')
    r = fetch_rates("2024/25", client=client)
    assert r.personal_allowance == 11_000
    assert r.higher_rate_threshold == 125_140


def test_fetch_upstream_error_returns_defaults(fake_groq):
    client = fake_groq(error=RuntimeError("boom"))
    assert fetch_rates("2023/24", client=client) == default_rates("2023/24")


def test_fetch_garbage_reply_returns_defaults(fake_groq):
    assert fetch_rates("2024/25", client=fake_groq(reply="sorry")) == default_rates("2024/25")


# ─── cache ──────────────────────────────────────────────────────────

def test_get_rates_caches_per_year(monkeypatch):
    calls = []

    def fake_fetch(tax_year, client=None):
        calls.append(tax_year)
        return TaxRates(personal_allowance=len(calls))

    monkeypatch.setattr(rates, "fetch_live_rates", fake_fetch)
    first = get_rates("2024/25")
    assert get_rates("2024/25") is first
    get_rates("2023/24")
    assert calls == ["2024/25", "2023/24"]

    rates.clear_cache()
    get_rates("2024/25")
    assert len(calls) == 3


def test_get_rates_retries_after_fallback(monkeypatch):
    replies = [None, TaxRates(personal_allowance=11_000)]
    calls = []

    def flaky_fetch(tax_year, client=None):
        calls.append(tax_year)
        return replies[len(calls) - 1]

    monkeypatch.setattr(rates, "fetch_live_rates", flaky_fetch)
    assert get_rates("2025/26") == default_rates("2025/26")
    assert get_rates("2025/26").personal_allowance == 11_000
    assert get_rates("2025/26").personal_allowance == 11_000
    assert len(calls) == 2


def test_fetch_live_rates_reports_failures(fake_groq):
    assert rates.fetch_live_rates("2024/25") is None
    assert rates.fetch_live_rates("2024/25", client=fake_groq(error=RuntimeError("x"))) is None
    assert rates.fetch_live_rates("2024/25", client=fake_groq(reply="no data")) is None
    live = rates.fetch_live_rates("2024/25", client=fake_groq(reply='{"basicRate": 0.2}'))
    assert live == default_rates("2024/25")
