"""
PDF report generation and reusable chart rendering for the
UK take-home pay calculator.

Provides:
  - Two-page PDF report (generate_pdf)
  - Base64-encoded chart images for web embedding (get_web_charts)
  - Individual chart renderers reusable by both CLI and web
"""

from __future__ import annotations

import base64
import io
from typing import Any, Dict, List

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages
from matplotlib.ticker import FuncFormatter
import numpy as np

import config as cfg
import tax
from tax import SalaryInputs, TaxBreakdown, TaxRates

# ═══════════════════════════════════════════════════════════════════
# Style constants
# ═══════════════════════════════════════════════════════════════════

BG = "#0a101f"
CARD = "#131b2e"
TEXT = "#f1f5f9"
TEXT2 = "#cbd5e1"
BLUE = "#3b82f6"
RED = "#ef4444"
AMBER = "#f59e0b"
INDIGO = "#6366f1"
EMERALD = "#10b981"
TEAL = "#14b8a6"
SLATE = "#94a3b8"
BORDER = "#1e293b"

A4W, A4H = 8.27, 11.69
WEB_W, WEB_H = 10, 7

BAND_SCALE_MAX = 160_000   # right edge of the band ladder


# ═══════════════════════════════════════════════════════════════════
# Axis formatters
# ═══════════════════════════════════════════════════════════════════

def _gbp_fmt(x, _):
    if abs(x) >= 1e6:
        return f"£{x / 1e6:.1f}M"
    if abs(x) >= 1e3:
        return f"£{x / 1e3:.0f}k"
    return f"£{x:.0f}"


def _pct_fmt(x, _):
    return f"{x:.0f}%"


GBP_FMT = FuncFormatter(_gbp_fmt)
PCT_FMT = FuncFormatter(_pct_fmt)


# ═══════════════════════════════════════════════════════════════════
# Style helpers
# ═══════════════════════════════════════════════════════════════════

def _style(fig, *axes):
    """Apply dark theme to figure and all axes."""
    fig.patch.set_facecolor(BG)
    for ax in axes:
        ax.set_facecolor(CARD)
        ax.tick_params(colors=TEXT, labelsize=8)
        ax.xaxis.label.set_color(TEXT)
        ax.yaxis.label.set_color(TEXT)
        ax.title.set_color(TEXT)
        for spine in ax.spines.values():
            spine.set_color(BORDER)
        ax.grid(True, alpha=0.15, color=SLATE)


def _legend(ax, loc="upper left"):
    ax.legend(loc=loc, fontsize=8, facecolor=CARD, edgecolor=BORDER, labelcolor=TEXT)


def allocation_slices(b: TaxBreakdown) -> List[tuple[str, float, str]]:
    """Where the gross salary goes, as ``(label, amount, colour)``.

    Zero slices are dropped. ISA savings come out of take-home pay and
    are shown alongside it rather than deducted from it.
    """
    slices = [
        ("Take Home", b.net_pay, BLUE),
        ("Income Tax", b.tax_paid, RED),
        ("National Insurance", b.ni_paid, AMBER),
        ("Pension (Emp)", b.pension, INDIGO),
        ("Student Loan", b.student_loan_paid, EMERALD),
        ("ISA Savings", b.isa_contribution, TEAL),
    ]
    return [s for s in slices if s[1] > 0]


def band_edges(b: TaxBreakdown) -> List[float]:
    """Band boundaries for the ladder charts, clipped to the visible scale."""
    right = max(BAND_SCALE_MAX, b.taxable_income * 1.1)
    edges = [0.0, b.applied_personal_allowance, b.basic_band_limit, b.higher_band_limit]
    return [min(edge, right) for edge in edges] + [right]


# ═══════════════════════════════════════════════════════════════════
# Chart 1: Salary allocation donut
# ═══════════════════════════════════════════════════════════════════

def _chart_allocation(b: TaxBreakdown, figsize=(WEB_W, WEB_H)) -> plt.Figure:
    fig, ax = plt.subplots(figsize=figsize)
    _style(fig, ax)
    ax.grid(False)

    slices = allocation_slices(b)
    if not slices:
        ax.text(0.5, 0.5, "No income to allocate", ha="center", va="center",
                color=TEXT2, fontsize=12, transform=ax.transAxes)
        ax.set_axis_off()
        return fig

    labels = [s[0] for s in slices]
    values = [s[1] for s in slices]
    colors = [s[2] for s in slices]

    wedges, _ = ax.pie(
        values, colors=colors, startangle=90, counterclock=False,
        wedgeprops={"width": 0.32, "edgecolor": BG, "linewidth": 3},
    )
    ax.text(0, 0.08, f"£{b.take_home_monthly:,.0f}", ha="center",
            fontsize=20, color=TEXT, fontweight="bold")
    ax.text(0, -0.12, "per month", ha="center", fontsize=9, color=TEXT2)
    ax.legend(
        wedges,
        [f"{label}  £{value:,.0f}" for label, value in zip(labels, values)],
        loc="center left", bbox_to_anchor=(1.0, 0.5), fontsize=9,
        facecolor=CARD, edgecolor=BORDER, labelcolor=TEXT,
    )
    ax.set_title("Where Your Salary Goes", fontsize=12, pad=12)
    ax.set_aspect("equal")
    return fig


# ═══════════════════════════════════════════════════════════════════
# Chart 2: Tax band ladder
# ═══════════════════════════════════════════════════════════════════

def _chart_bands(b: TaxBreakdown, rates: TaxRates,
                 figsize=(WEB_W, WEB_H - 4)) -> plt.Figure:
    fig, ax = plt.subplots(figsize=figsize)
    _style(fig, ax)

    _, pa, basic, higher, right = band_edges(b)
    bands = [
        ("Allowance", 0.0, pa, EMERALD, "0%"),
        ("Basic", pa, basic, BLUE, f"{rates.basic_rate * 100:.0f}%"),
        ("Higher", basic, higher, AMBER, f"{rates.higher_rate * 100:.0f}%"),
        ("Additional", higher, right, RED, f"{rates.additional_rate * 100:.0f}%"),
    ]
    for name, lo, hi, color, rate in bands:
        width = max(0.0, hi - lo)
        if width <= 0:
            continue
        ax.barh(0, width, left=lo, height=0.5, color=color, alpha=0.75,
                edgecolor=BG, linewidth=2)
        ax.text(lo + width / 2, 0, f"{name}\n{rate}", ha="center", va="center",
                fontsize=8, color=TEXT, fontweight="bold")

    ax.axvline(b.taxable_income, color=TEXT, linewidth=2, linestyle="--")
    ax.annotate(f"Taxable income £{b.taxable_income:,.0f}",
                xy=(b.taxable_income, 0.3), fontsize=8, color=TEXT,
                xytext=(5, 5), textcoords="offset points")

    ax.set_xlim(0, bands[-1][2])
    ax.set_ylim(-0.5, 0.6)
    ax.set_yticks([])
    ax.xaxis.set_major_formatter(GBP_FMT)
    ax.set_title("Your Tax Bands", fontsize=11, pad=10)
    return fig


# ═══════════════════════════════════════════════════════════════════
# Chart 3: Salary sweep (deductions and rates across salaries)
# ═══════════════════════════════════════════════════════════════════

def _chart_salary_sweep(inputs: SalaryInputs, rates: TaxRates,
                        figsize=(WEB_W, WEB_H + 2)) -> plt.Figure:
    sweep = tax.salary_sweep(inputs, rates)
    gross = sweep["gross"]

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=figsize, constrained_layout=True)
    _style(fig, ax1, ax2)

    # ── Top: stacked allocation of each salary ──
    ax1.stackplot(
        gross,
        sweep["net"], sweep["tax"], sweep["ni"], sweep["pension"], sweep["sl"],
        colors=[BLUE, RED, AMBER, INDIGO, EMERALD],
        labels=["Take Home", "Income Tax", "National Insurance", "Pension", "Student Loan"],
        alpha=0.8,
    )
    ax1.axvline(inputs.gross_salary, color=TEXT, linewidth=1, linestyle=":")
    ax1.xaxis.set_major_formatter(GBP_FMT)
    ax1.yaxis.set_major_formatter(GBP_FMT)
    ax1.set_ylabel("Annual amount")
    ax1.set_title("Salary Allocation Across Incomes", fontsize=11, pad=10)
    _legend(ax1)

    # ── Bottom: effective and marginal deduction rates ──
    deductions = sweep["tax"] + sweep["ni"] + sweep["sl"]
    effective = np.divide(deductions, gross, out=np.zeros_like(gross), where=gross > 0) * 100
    marginal = np.gradient(deductions, gross) * 100

    ax2.plot(gross, marginal, color=RED, linewidth=1.5, label="Marginal rate")
    ax2.plot(gross, effective, color=AMBER, linewidth=2, label="Effective rate")
    ax2.axvline(inputs.gross_salary, color=TEXT, linewidth=1, linestyle=":")

    taper_end = cfg.PA_TAPER_THRESHOLD + 2 * rates.personal_allowance
    ax2.axvspan(cfg.PA_TAPER_THRESHOLD, taper_end, alpha=0.08, color=RED)
    ax2.annotate("PA taper", xy=(cfg.PA_TAPER_THRESHOLD, 5), fontsize=7,
                 color=RED, alpha=0.8)

    ax2.set_ylim(0, 80)
    ax2.xaxis.set_major_formatter(GBP_FMT)
    ax2.yaxis.set_major_formatter(PCT_FMT)
    ax2.set_xlabel("Gross salary")
    ax2.set_ylabel("Deduction rate")
    ax2.set_title("Marginal vs Effective Deduction Rate", fontsize=11, pad=10)
    _legend(ax2, loc="lower right")
    return fig


# ═══════════════════════════════════════════════════════════════════
# Page 1: Summary (text only, dark background)
# ═══════════════════════════════════════════════════════════════════

def _page1_summary(inputs: SalaryInputs, d: Dict[str, Any],
                   summary_text: str) -> plt.Figure:
    fig = plt.figure(figsize=(A4W, A4H))
    fig.patch.set_facecolor(BG)

    fig.text(0.50, 0.93, "UK Take-Home Pay Breakdown",
             ha="center", fontsize=18, color=TEXT, fontweight="bold")
    fig.text(0.50, 0.91, f"Tax year {inputs.tax_year}  |  Tax code {inputs.tax_code}",
             ha="center", fontsize=11, color=TEXT2)

    sections = [
        ("Take Home", BLUE, [
            f"Gross salary: £{d['gross']:,.0f}",
            f"Net pay: £{d['net_pay']:,.0f}  (£{d['monthly']:,.0f}/month)",
            f"Retention: {d['retention_pct']:.1f}%  |  "
            f"Marginal rate: {d['marginal']['total_marginal_pct']:.1f}%",
        ]),
        ("Deductions", RED, [
            f"Income tax: £{d['tax_paid']:,.0f}",
            f"National Insurance: £{d['ni_paid']:,.0f}",
            f"{d['pension_label']}: £{d['pension']:,.0f}",
            f"Student loan ({d['plan_label']}): £{d['student_loan']:,.0f}",
        ]),
        ("Tax Bands", AMBER, [
            f"Taxable income: £{d['taxable_income']:,.0f}  ({d['band']} band)",
            f"Personal allowance applied: £{d['personal_allowance']:,.0f}",
            f"Basic band to £{d['basic_limit']:,.0f}  |  "
            f"Higher band to £{d['higher_limit']:,.0f}",
        ]),
        ("Employer", INDIGO, [
            f"Employer pension: £{d['employer_pension']:,.0f}",
            f"{d['employer_label']}: £{d['employer_cost']:,.0f}",
        ]),
    ]
    if d["has_reliefs"]:
        sections.insert(3, ("Applied Reliefs", EMERALD, [
            f"ISA excluded: £{d['isa']:,.0f}",
            f"Gift Aid band extension: £{d['gift_aid_extension']:,.0f}",
            f"EIS/SEIS credit: £{d['investment_credit']:,.0f}",
            f"Total tax saved: £{d['tax_savings']:,.0f}",
        ]))

    y = 0.85
    for title, color, lines in sections:
        fig.text(0.08, y, title, fontsize=13, color=color, fontweight="bold")
        y -= 0.028
        for line in lines:
            fig.text(0.10, y, line, fontsize=9.5, color=TEXT2)
            y -= 0.024
        y -= 0.02

    fig.text(0.08, y, "AI Financial Snapshot", fontsize=13, color=TEXT, fontweight="bold")
    y -= 0.03
    for paragraph in summary_text.splitlines():
        line = ""
        for word in paragraph.split():
            if len(line) + len(word) + 1 <= 85:
                line = f"{line} {word}" if line else word
            else:
                fig.text(0.10, y, line, fontsize=9, color=TEXT2)
                y -= 0.022
                line = word
        if line:
            fig.text(0.10, y, line, fontsize=9, color=TEXT2)
            y -= 0.022

    fig.text(0.50, 0.03,
             f"Rates synced {d['rates_updated']}. This is not financial advice.",
             ha="center", fontsize=8, color=SLATE, style="italic")
    return fig


def _page2_charts(inputs: SalaryInputs, rates: TaxRates,
                  b: TaxBreakdown) -> plt.Figure:
    fig = plt.figure(figsize=(A4W, A4H), constrained_layout=True)
    grid = fig.add_gridspec(3, 1, height_ratios=[3, 1.2, 4])
    ax_pie = fig.add_subplot(grid[0])
    ax_band = fig.add_subplot(grid[1])
    ax_sweep = fig.add_subplot(grid[2])
    _style(fig, ax_pie, ax_band, ax_sweep)
    ax_pie.grid(False)

    slices = allocation_slices(b)
    if slices:
        ax_pie.pie([s[1] for s in slices], colors=[s[2] for s in slices],
                   labels=[s[0] for s in slices], startangle=90, counterclock=False,
                   textprops={"color": TEXT, "fontsize": 8},
                   wedgeprops={"width": 0.32, "edgecolor": BG, "linewidth": 2})
    ax_pie.set_title("Where Your Salary Goes", fontsize=11)
    ax_pie.set_aspect("equal")

    edges = band_edges(b)
    for lo, hi, color in zip(edges, edges[1:], [EMERALD, BLUE, AMBER, RED]):
        if hi > lo:
            ax_band.barh(0, hi - lo, left=lo, color=color, alpha=0.75, edgecolor=BG)
    ax_band.axvline(b.taxable_income, color=TEXT, linestyle="--")
    ax_band.set_yticks([])
    ax_band.set_xlim(0, edges[-1])
    ax_band.xaxis.set_major_formatter(GBP_FMT)
    ax_band.set_title("Tax Bands", fontsize=11)

    sweep = tax.salary_sweep(inputs, rates)
    ax_sweep.stackplot(sweep["gross"], sweep["net"], sweep["tax"], sweep["ni"],
                       sweep["pension"], sweep["sl"],
                       colors=[BLUE, RED, AMBER, INDIGO, EMERALD], alpha=0.8,
                       labels=["Take Home", "Income Tax", "NI", "Pension", "Student Loan"])
    ax_sweep.axvline(inputs.gross_salary, color=TEXT, linewidth=1, linestyle=":")
    ax_sweep.xaxis.set_major_formatter(GBP_FMT)
    ax_sweep.yaxis.set_major_formatter(GBP_FMT)
    ax_sweep.set_xlabel("Gross salary")
    ax_sweep.set_title("Salary Allocation Across Incomes", fontsize=11)
    _legend(ax_sweep)
    return fig


# ═══════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════

def figure_to_base64(fig: plt.Figure) -> str:
    """Convert a matplotlib figure to a base64-encoded PNG string."""
    buf = io.BytesIO()
    fig.savefig(buf, format="png", facecolor=fig.get_facecolor(),
                dpi=150, bbox_inches="tight")
    buf.seek(0)
    b64 = base64.b64encode(buf.read()).decode()
    buf.close()
    return b64


def generate_pdf(
    inputs: SalaryInputs,
    rates: TaxRates,
    b: TaxBreakdown,
    d: Dict[str, Any],
    summary_text: str,
    path: str = "take_home_report.pdf",
) -> str:
    """Generate the PDF report. Returns the file path."""
    pages = [
        _page1_summary(inputs, d, summary_text),
        _page2_charts(inputs, rates, b),
    ]
    with PdfPages(path) as pdf:
        for fig in pages:
            pdf.savefig(fig, facecolor=fig.get_facecolor())
    for fig in pages:
        plt.close(fig)
    return path


def get_web_charts(
    inputs: SalaryInputs,
    rates: TaxRates,
    b: TaxBreakdown,
) -> List[str]:
    """Return base64-encoded PNG chart images for web embedding.

    Returns 3 charts:
      [0] Salary allocation donut
      [1] Tax band ladder
      [2] Salary sweep (allocation + marginal/effective rates)
    """
    chart_figs = [
        _chart_allocation(b),
        _chart_bands(b, rates),
        _chart_salary_sweep(inputs, rates),
    ]

    images = [figure_to_base64(f) for f in chart_figs]
    for f in chart_figs:
        plt.close(f)
    return images
