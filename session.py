"""
Interactive calculation session.

Holds the latest immutable :class:`~tax.SalaryInputs` snapshot and the
rates in force, and coordinates the two slow collaborators around the
engine:

  - rate lookups run in a background thread whenever the tax year
    changes; a newer lookup supersedes any still in flight
  - the narrative summary is debounced, so a burst of edits produces one
    request once the inputs have settled

The breakdown itself is recomputed on every read; the engine is cheap and
pure, so nothing is cached.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any, Callable, List, Optional

import config as cfg
import rates as rates_provider
import summary
from tax import SalaryInputs, TaxBreakdown, TaxRates, compute

logger = logging.getLogger(__name__)


class DebouncedTask:
    """Call ``fn`` once ``delay`` seconds pass without a new ``schedule``.

    Each ``schedule`` cancels the pending call and re-arms the timer with
    the latest arguments.
    """

    def __init__(self, delay: float, fn: Callable[..., Any]) -> None:
        self.delay = delay
        self._fn = fn
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def schedule(self, *args: Any) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._fire, args)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def _fire(self, *args: Any) -> None:
        with self._lock:
            # a timer that was replaced just as it expired must not run
            if self._timer is not threading.current_thread():
                return
            self._timer = None
        self._fn(*args)


class CalculatorSession:
    """State holder for one interactive user (CLI loop or UI)."""

    def __init__(
        self,
        inputs: Optional[SalaryInputs] = None,
        rates: Optional[TaxRates] = None,
        fetcher: Callable[[str], TaxRates] = rates_provider.fetch_rates,
        summarizer: Callable[[SalaryInputs, TaxBreakdown], str] = summary.fast_summary,
        summary_delay: float = cfg.SUMMARY_DEBOUNCE_SECONDS,
    ) -> None:
        self._lock = threading.Lock()
        self._inputs = inputs or SalaryInputs()
        self._rates = rates or rates_provider.default_rates(self._inputs.tax_year)
        self._fetcher = fetcher
        self._summarizer = summarizer
        self._generation = 0
        self._fetch_threads: List[threading.Thread] = []
        self._summary_task = DebouncedTask(summary_delay, self._refresh_summary)
        self._summary_ready = threading.Event()
        self.loading = False
        self.summary = ""

    # ── Snapshots ───────────────────────────────────────────────

    @property
    def inputs(self) -> SalaryInputs:
        with self._lock:
            return self._inputs

    @property
    def rates(self) -> TaxRates:
        with self._lock:
            return self._rates

    @property
    def breakdown(self) -> TaxBreakdown:
        with self._lock:
            inputs, rates = self._inputs, self._rates
        return compute(inputs, rates)

    # ── Edits ───────────────────────────────────────────────────

    def start(self) -> None:
        """Fetch rates for the initial tax year."""
        self.refresh_rates()

    def update(self, **changes: Any) -> TaxBreakdown:
        """Replace the input snapshot with ``changes`` applied."""
        with self._lock:
            previous = self._inputs
            self._inputs = replace(previous, **changes)
            year_changed = self._inputs.tax_year != previous.tax_year
        if year_changed:
            self.refresh_rates()
        self._schedule_summary()
        return self.breakdown

    def refresh_rates(self) -> None:
        """Start a rate lookup for the current tax year, superseding any other."""
        with self._lock:
            self._generation += 1
            generation = self._generation
            tax_year = self._inputs.tax_year
            self.loading = True
            self._fetch_threads = [t for t in self._fetch_threads if t.is_alive()]
            thread = threading.Thread(
                target=self._load_rates, args=(generation, tax_year), daemon=True,
            )
            self._fetch_threads.append(thread)
        thread.start()

    def wait_for_rates(self, timeout: Optional[float] = None) -> bool:
        """Block until every lookup started so far has finished."""
        with self._lock:
            threads = list(self._fetch_threads)
        for thread in threads:
            thread.join(timeout)
        return not any(t.is_alive() for t in threads)

    def wait_for_summary(self, timeout: Optional[float] = None) -> bool:
        """Block until the summary for the current snapshot is stored."""
        return self._summary_ready.wait(timeout)

    def close(self) -> None:
        self._summary_task.cancel()

    # ── Background work ─────────────────────────────────────────

    def _load_rates(self, generation: int, tax_year: str) -> None:
        try:
            fetched = self._fetcher(tax_year)
        except Exception as e:
            logger.error("Failed to fetch live rates for %s: %s", tax_year, e)
            fetched = rates_provider.default_rates(tax_year)

        with self._lock:
            if generation != self._generation:
                logger.info("Discarding superseded rates for %s", tax_year)
                return
            self._rates = fetched
            self.loading = False
        self._schedule_summary()

    def _schedule_summary(self) -> None:
        with self._lock:
            inputs = self._inputs
            self._summary_ready.clear()
        self._summary_task.schedule(inputs)

    def _refresh_summary(self, inputs: SalaryInputs) -> None:
        with self._lock:
            if self.loading or inputs is not self._inputs:
                return
            rates = self._rates
        text = self._summarizer(inputs, compute(inputs, rates))
        with self._lock:
            if inputs is self._inputs:
                self.summary = text
                self._summary_ready.set()
