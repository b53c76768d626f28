import threading
import time

import pytest

from rates import default_rates
from session import CalculatorSession, DebouncedTask
from tax import SalaryInputs, TaxRates


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class Recorder:
    def __init__(self, result=None):
        self.calls = []
        self.result = result

    def __call__(self, *args):
        self.calls.append(args)
        return self.result


# ─── DebouncedTask ──────────────────────────────────────────────────

def test_debounce_fires_once_with_latest_args():
    fn = Recorder()
    task = DebouncedTask(0.05, fn)
    for i in range(5):
        task.schedule(i)
    assert task.pending
    assert wait_until(lambda: fn.calls)
    time.sleep(0.1)
    assert fn.calls == [(4,)]
    assert not task.pending


def test_debounce_cancel():
    fn = Recorder()
    task = DebouncedTask(0.05, fn)
    task.schedule("x")
    task.cancel()
    time.sleep(0.15)
    assert fn.calls == []


# ─── CalculatorSession ──────────────────────────────────────────────

def make_session(fetcher=None, summarizer=None, **kwargs):
    return CalculatorSession(
        fetcher=fetcher or (lambda year: default_rates(year)),
        summarizer=summarizer or Recorder("summary"),
        summary_delay=0.05,
        **kwargs,
    )


def test_update_recomputes_synchronously():
    s = make_session()
    b = s.update(gross_salary=30_000)
    assert b.gross == 30_000
    assert s.inputs.gross_salary == 30_000
    assert s.breakdown == b
    s.close()


def test_burst_of_edits_produces_one_summary():
    summarizer = Recorder("• done")
    s = make_session(summarizer=summarizer)
    for gross in (40_000, 41_000, 42_000):
        s.update(gross_salary=gross)
    assert wait_until(lambda: s.summary == "• done")
    time.sleep(0.1)
    assert len(summarizer.calls) == 1
    inputs, breakdown = summarizer.calls[0]
    assert inputs.gross_salary == 42_000
    assert breakdown.gross == 42_000
    s.close()


def test_year_change_fetches_rates():
    fetcher = Recorder(TaxRates(personal_allowance=11_000))
    s = make_session(fetcher=fetcher)
    s.update(tax_year="2025/26")
    assert s.wait_for_rates(timeout=2)
    assert fetcher.calls == [("2025/26",)]
    assert s.rates.personal_allowance == 11_000
    assert not s.loading
    s.close()


def test_same_year_edit_does_not_fetch():
    fetcher = Recorder(TaxRates())
    s = make_session(fetcher=fetcher)
    s.update(gross_salary=70_000)
    assert fetcher.calls == []
    s.close()


def test_newer_lookup_supersedes_older():
    release = threading.Event()

    def fetcher(year):
        if year == "2023/24":
            release.wait(2)
            return TaxRates(personal_allowance=1)
        return TaxRates(personal_allowance=2)

    s = make_session(fetcher=fetcher)
    s.update(tax_year="2023/24")
    s.update(tax_year="2025/26")
    assert wait_until(lambda: s.rates.personal_allowance == 2)
    release.set()
    assert s.wait_for_rates(timeout=2)
    assert s.rates.personal_allowance == 2
    s.close()


def test_failed_lookup_falls_back_to_defaults():
    def fetcher(year):
        raise RuntimeError("offline")

    s = make_session(fetcher=fetcher, rates=TaxRates(personal_allowance=5))
    s.update(tax_year="2023/24")
    assert s.wait_for_rates(timeout=2)
    assert s.rates == default_rates("2023/24")
    assert not s.loading
    s.close()


def test_summary_waits_for_rates():
    release = threading.Event()
    summarizer = Recorder("ok")

    def fetcher(year):
        release.wait(2)
        return default_rates(year)

    s = make_session(fetcher=fetcher, summarizer=summarizer)
    s.update(tax_year="2023/24")
    time.sleep(0.15)
    assert summarizer.calls == []

    release.set()
    assert wait_until(lambda: s.summary == "ok")
    inputs, breakdown = summarizer.calls[-1]
    assert inputs.tax_year == "2023/24"
    assert breakdown.ni_paid == pytest.approx((55_000 - 50_270) * 0.02 + (50_270 - 12_570) * 0.10)
    s.close()


def test_start_loads_initial_year():
    fetcher = Recorder(TaxRates())
    s = make_session(fetcher=fetcher, inputs=SalaryInputs(tax_year="2025/26"))
    s.start()
    assert s.wait_for_rates(timeout=2)
    assert fetcher.calls == [("2025/26",)]
    s.close()


def test_wait_for_summary_tracks_latest_snapshot():
    s = make_session(summarizer=lambda inputs, breakdown: f"net {breakdown.net_pay:.0f}")
    s.update(gross_salary=30_000)
    assert s.wait_for_summary(timeout=2)
    assert s.summary == "net 23920"

    s.update(gross_salary=55_000)
    assert s.wait_for_summary(timeout=2)
    assert s.summary == "net 40807"
    s.close()
