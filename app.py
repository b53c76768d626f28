"""
Flask web application for the UK take-home pay calculator.

Single-file app using render_template_string.  Run via ``python main.py``
which starts the dev server on localhost:5000.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import asdict
from typing import Any, Dict, List, Mapping, Tuple

from flask import Flask, jsonify, render_template_string, request, send_file

import config as cfg
import llm
import rates as rates_provider
import report
import summary
import tax
from cli import compute_display_data, fmt, pct, PLAN_LABELS
from tax import SalaryInputs

logger = logging.getLogger(__name__)

app = Flask(__name__)

PDF_PATH = "take_home_report.pdf"

# ═══════════════════════════════════════════════════════════════════
# Form parsing
# ═══════════════════════════════════════════════════════════════════

AMOUNT_FIELDS = ("gross_salary", "gift_aid", "eis_relief", "seis_relief", "isa_contribution")
PERCENT_FIELDS = ("pension_contribution", "employer_pension_contribution")


def _parse_currency(s: Any) -> float:
    return float(str(s).replace("£", "").replace(",", "").replace(" ", ""))


def _parse_bool(value: Any) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def parse_form(form: Mapping[str, Any]) -> Tuple[SalaryInputs, List[str]]:
    """Parse the HTML form (or a JSON body) into SalaryInputs.

    Negative amounts clamp to 0 and unknown choices fall back to their
    defaults; each adjustment adds a warning. Non-numeric or non-finite
    amounts raise ``ValueError``.
    """
    warnings: List[str] = []
    defaults = SalaryInputs()
    values: Dict[str, Any] = {}

    for name in AMOUNT_FIELDS + PERCENT_FIELDS:
        raw = form.get(name)
        if raw is None or str(raw).strip() == "":
            continue
        label = name.replace("_", " ").capitalize()
        try:
            number = _parse_currency(raw)
        except ValueError:
            number = math.nan
        if not math.isfinite(number):
            raise ValueError(f"{label} must be a number")
        if number < 0:
            warnings.append(f"{label} was negative; treated as 0.")
            number = 0.0
        if name in PERCENT_FIELDS and number > 100:
            warnings.append(f"{label} capped at 100%.")
            number = 100.0
        values[name] = number

    tax_year = str(form.get("tax_year", defaults.tax_year))
    if tax_year not in cfg.TAX_YEARS:
        warnings.append(f"Unknown tax year {tax_year!r}; using {defaults.tax_year}.")
        tax_year = defaults.tax_year

    plan = str(form.get("student_loan_plan", defaults.student_loan_plan))
    if plan not in cfg.STUDENT_LOAN_PLANS:
        warnings.append(f"Unknown student loan plan {plan!r}; using no loan.")
        plan = defaults.student_loan_plan

    tax_code = str(form.get("tax_code") or "").strip().upper() or defaults.tax_code
    allowance = tax.parse_tax_code_allowance(tax_code)
    if allowance is not None and not math.isfinite(allowance):
        warnings.append(f"Tax code allowance too large; using {defaults.tax_code}.")
        tax_code = defaults.tax_code

    inputs = SalaryInputs(
        use_auto_enrolment=_parse_bool(form.get("use_auto_enrolment", False)),
        is_scottish=_parse_bool(form.get("is_scottish", False)),
        student_loan_plan=plan,
        tax_year=tax_year,
        tax_code=tax_code,
        **values,
    )
    return inputs, warnings


# ═══════════════════════════════════════════════════════════════════
# HTML Template
# ═══════════════════════════════════════════════════════════════════

HTML_TEMPLATE = r"""
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>UK Take-Home Pay Calculator</title>
<style>
  *{margin:0;padding:0;box-sizing:border-box}
  :root{
    --bg-deep:#050816;
    --bg-surface:rgba(15,23,42,0.55);
    --bg-input:rgba(8,11,22,0.85);
    --border-subtle:rgba(99,102,241,0.1);
    --text-primary:#f1f5f9;
    --text-secondary:#94a3b8;
    --text-muted:#64748b;
    --blue:#60a5fa;
    --indigo:#818cf8;
    --emerald:#34d399;
    --amber:#fbbf24;
    --red:#f87171;
    --radius-lg:16px;
    --radius-md:10px;
  }
  body{
    background:var(--bg-deep);color:var(--text-primary);
    font-family:'Inter',system-ui,-apple-system,sans-serif;line-height:1.6;
  }
  .container{max-width:1140px;margin:0 auto;padding:2rem 1.5rem}
  .hero{text-align:center;padding:1.5rem 0 2.5rem}
  .hero h1{
    font-size:clamp(1.5rem,4vw,2.5rem);font-weight:800;letter-spacing:-.035em;
    background:linear-gradient(135deg,#e2e8f0 0%,#60a5fa 45%,#34d399 100%);
    -webkit-background-clip:text;-webkit-text-fill-color:transparent;background-clip:text;
  }
  .hero-sub{color:var(--text-secondary);margin-top:.6rem;font-size:.92rem}
  .card{
    background:var(--bg-surface);border:1px solid var(--border-subtle);
    border-radius:var(--radius-lg);padding:1.8rem;margin-bottom:1.4rem;
  }
  h2{font-size:1.1rem;font-weight:700;margin-bottom:1rem}
  .form-grid{display:grid;grid-template-columns:repeat(auto-fill,minmax(240px,1fr));gap:1rem 1.5rem}
  .form-group{display:flex;flex-direction:column}
  .form-group label{font-size:.78rem;color:var(--text-secondary);margin-bottom:.3rem;font-weight:500}
  .form-group input,.form-group select{
    background:var(--bg-input);border:1px solid rgba(71,85,105,.35);
    border-radius:var(--radius-md);color:var(--text-primary);padding:.6rem .85rem;font-size:.88rem;
  }
  .btn{
    display:inline-block;margin-top:1.4rem;padding:.75rem 1.8rem;border:none;border-radius:var(--radius-md);
    background:linear-gradient(135deg,#3b82f6,#6366f1);color:#fff;font-weight:700;cursor:pointer;text-decoration:none;
  }
  .grid-2{display:grid;grid-template-columns:repeat(auto-fit,minmax(320px,1fr));gap:1.4rem}
  .stat-row{display:flex;justify-content:space-between;padding:.45rem 0;border-bottom:1px solid rgba(51,65,85,.25)}
  .stat-label{color:var(--text-secondary);font-size:.86rem}
  .stat-value{font-weight:600;font-variant-numeric:tabular-nums}
  .big{font-size:2.2rem;font-weight:800;color:var(--blue)}
  .warn{color:var(--amber);font-size:.85rem;margin-bottom:.4rem}
  .error{color:var(--red);font-weight:600;margin-bottom:1rem}
  .snapshot{white-space:pre-line;color:var(--text-secondary);font-size:.9rem}
  .chart-img{width:100%;border-radius:var(--radius-md);margin-top:.6rem}
  .footer{text-align:center;color:var(--text-muted);font-size:.78rem;padding:2rem 0}
  .chat-log{max-height:320px;overflow-y:auto;margin-bottom:1rem;font-size:.88rem}
  .msg{padding:.55rem .8rem;border-radius:var(--radius-md);margin-bottom:.5rem;white-space:pre-line}
  .msg.user{background:rgba(59,130,246,.18);margin-left:15%}
  .msg.model{background:var(--bg-input);margin-right:15%;color:var(--text-secondary)}
  .chat-row{display:flex;gap:.6rem}
  .chat-row input{flex:1;background:var(--bg-input);border:1px solid rgba(71,85,105,.35);border-radius:var(--radius-md);color:var(--text-primary);padding:.6rem .85rem}
  .chat-row .btn{margin-top:0}
  .checkbox{flex-direction:row;align-items:center;gap:.5rem;margin-top:1.4rem}
</style>
</head>
<body>
<div class="container">

<div class="hero">
  <h1>Income Intelligence UK</h1>
  <div class="hero-sub">Salary to take-home: income tax, National Insurance, pension, student loan and reliefs.</div>
</div>

<div class="card">
  <h2>Your Setup</h2>
  {% if error %}<div class="error">{{ error }}</div>{% endif %}
  {% for w in warnings %}<div class="warn">{{ w }}</div>{% endfor %}
  <form method="POST">
    <div class="form-grid">
      <div class="form-group">
        <label>Tax year</label>
        <select name="tax_year">
          {% for y in tax_years %}
          <option value="{{ y }}" {{ 'selected' if (form.tax_year or default_year) == y }}>{{ y }}</option>
          {% endfor %}
        </select>
      </div>
      <div class="form-group">
        <label>Tax code</label>
        <input type="text" name="tax_code" value="{{ form.tax_code or '1257L' }}">
      </div>
      <div class="form-group">
        <label>Annual gross salary (£)</label>
        <input type="text" name="gross_salary" value="{{ form.gross_salary or '55000' }}">
      </div>
      <div class="form-group">
        <label>Pension scheme</label>
        <select name="use_auto_enrolment">
          <option value="no" {{ 'selected' if form.use_auto_enrolment != 'yes' }}>Custom %</option>
          <option value="yes" {{ 'selected' if form.use_auto_enrolment == 'yes' }}>Auto-enrolment minimum</option>
        </select>
      </div>
      <div class="form-group">
        <label>Employee pension (%)</label>
        <input type="number" step="0.5" name="pension_contribution" value="{{ form.pension_contribution or '5' }}">
      </div>
      <div class="form-group">
        <label>Employer pension (%)</label>
        <input type="number" step="0.5" name="employer_pension_contribution" value="{{ form.employer_pension_contribution or '3' }}">
      </div>
      <div class="form-group">
        <label>ISA contribution (£/yr)</label>
        <input type="text" name="isa_contribution" value="{{ form.isa_contribution or '0' }}">
      </div>
      <div class="form-group">
        <label>Gift Aid donations (£/yr)</label>
        <input type="text" name="gift_aid" value="{{ form.gift_aid or '0' }}">
      </div>
      <div class="form-group">
        <label>EIS investment (£)</label>
        <input type="text" name="eis_relief" value="{{ form.eis_relief or '0' }}">
      </div>
      <div class="form-group">
        <label>SEIS investment (£)</label>
        <input type="text" name="seis_relief" value="{{ form.seis_relief or '0' }}">
      </div>
      <div class="form-group">
        <label>Student loan</label>
        <select name="student_loan_plan">
          {% for key, label in plans.items() %}
          <option value="{{ key }}" {{ 'selected' if (form.student_loan_plan or 'none') == key }}>{{ label }}</option>
          {% endfor %}
        </select>
      </div>
      <div class="form-group checkbox">
        <input type="checkbox" id="is_scottish" name="is_scottish" value="yes" {{ 'checked' if form.is_scottish }}>
        <label for="is_scottish">Scottish taxpayer (rates not yet modelled)</label>
      </div>
    </div>
    <button type="submit" class="btn">Calculate</button>
  </form>
</div>

{% if d %}
<div class="grid-2">
  <div class="card">
    <h2>Take Home</h2>
    <div class="big">{{ fmt(d.monthly) }}<span style="font-size:.9rem;color:var(--text-secondary)"> / month</span></div>
    <div class="stat-row"><span class="stat-label">Annual net pay</span><span class="stat-value">{{ fmt(d.net_pay) }}</span></div>
    <div class="stat-row"><span class="stat-label">Retention</span><span class="stat-value">{{ pct(d.retention_pct) }}</span></div>
    <div class="stat-row"><span class="stat-label">Marginal rate</span><span class="stat-value">{{ pct(d.marginal.total_marginal_pct) }}</span></div>
    <div class="stat-row"><span class="stat-label">Effective rate</span><span class="stat-value">{{ pct(d.marginal.effective_pct) }}</span></div>
  </div>
  <div class="card">
    <h2>Deductions</h2>
    <div class="stat-row"><span class="stat-label">Income tax</span><span class="stat-value">{{ fmt(d.tax_paid) }}</span></div>
    <div class="stat-row"><span class="stat-label">National Insurance</span><span class="stat-value">{{ fmt(d.ni_paid) }}</span></div>
    <div class="stat-row"><span class="stat-label">{{ d.pension_label }}</span><span class="stat-value">{{ fmt(d.pension) }}</span></div>
    {% if d.plan != 'none' %}
    <div class="stat-row"><span class="stat-label">Student loan ({{ d.plan_label }})</span><span class="stat-value">{{ fmt(d.student_loan) }}</span></div>
    {% endif %}
    <div class="stat-row"><span class="stat-label">{{ d.employer_label }}</span><span class="stat-value">{{ fmt(d.employer_cost) }}</span></div>
  </div>
  <div class="card">
    <h2>Tax Bands</h2>
    <div class="stat-row"><span class="stat-label">Taxable income</span><span class="stat-value">{{ fmt(d.taxable_income) }}</span></div>
    <div class="stat-row"><span class="stat-label">Personal allowance</span><span class="stat-value">{{ fmt(d.personal_allowance) }}</span></div>
    <div class="stat-row"><span class="stat-label">Basic band to</span><span class="stat-value">{{ fmt(d.basic_limit) }}</span></div>
    <div class="stat-row"><span class="stat-label">Higher band to</span><span class="stat-value">{{ fmt(d.higher_limit) }}</span></div>
    <div class="stat-row"><span class="stat-label">Your top band</span><span class="stat-value">{{ d.band }}</span></div>
  </div>
  {% if d.has_reliefs %}
  <div class="card">
    <h2>Applied Tax Reliefs</h2>
    {% if d.isa > 0 %}<div class="stat-row"><span class="stat-label">ISA excluded</span><span class="stat-value">{{ fmt(d.isa) }}</span></div>{% endif %}
    {% if d.gift_aid_extension > 0 %}<div class="stat-row"><span class="stat-label">Gift Aid band extension</span><span class="stat-value">{{ fmt(d.gift_aid_extension) }}</span></div>{% endif %}
    {% if d.investment_credit > 0 %}<div class="stat-row"><span class="stat-label">EIS/SEIS credit</span><span class="stat-value">{{ fmt(d.investment_credit) }}</span></div>{% endif %}
    <div class="stat-row"><span class="stat-label">Total tax saved</span><span class="stat-value">{{ fmt(d.tax_savings) }}</span></div>
  </div>
  {% endif %}
</div>

<div class="card">
  <h2>AI Financial Snapshot</h2>
  <div class="snapshot">{{ summary_text }}</div>
  <div class="footer" style="padding:.8rem 0 0;text-align:left">Rates synced: {{ d.rates_updated }}</div>
</div>

{% for img in charts %}
<div class="card"><img class="chart-img" src="data:image/png;base64,{{ img }}" alt="Chart {{ loop.index }}"></div>
{% endfor %}

<div style="text-align:center"><a href="/download-pdf" class="btn">Download PDF Report</a></div>
{% endif %}

<div class="card" id="advisor">
  <h2>UK Tax Advisor</h2>
  {% if not advisor_ready %}<div class="warn">Set GROQ_API_KEY in .env to use the tax advisor.</div>{% endif %}
  <div class="chat-log" id="chat-log">
    <div class="msg model">Hi! I am an AI assistant. Ask me about UK income tax, National Insurance, pensions or student loans.</div>
  </div>
  <form class="chat-row" id="chat-form">
    <input type="text" id="chat-input" placeholder="Ask a question..." autocomplete="off">
    <button type="submit" class="btn">Send</button>
  </form>
</div>

<div class="footer">Estimates only. Not financial advice.</div>
</div>
<script>
  const chatHistory = [];
  const chatLog = document.getElementById("chat-log");
  const chatInput = document.getElementById("chat-input");

  function addMessage(role, text) {
    const el = document.createElement("div");
    el.className = "msg " + role;
    el.textContent = text;
    chatLog.appendChild(el);
    chatLog.scrollTop = chatLog.scrollHeight;
  }

  document.getElementById("chat-form").addEventListener("submit", async (event) => {
    event.preventDefault();
    const message = chatInput.value.trim();
    if (!message) return;
    chatInput.value = "";
    addMessage("user", message);
    try {
      const resp = await fetch("/api/chat", {
        method: "POST",
        headers: {"Content-Type": "application/json"},
        body: JSON.stringify({history: chatHistory, message: message}),
      });
      const body = await resp.json();
      if (!resp.ok) {
        addMessage("model", body.error);
        return;
      }
      chatHistory.push({role: "user", content: message});
      chatHistory.push({role: "model", content: body.reply});
      addMessage("model", body.reply);
    } catch (err) {
      addMessage("model", "Sorry, I encountered an error. Please try again.");
    }
  });
</script>
</body>
</html>
"""


def _render(**context: Any) -> str:
    defaults = dict(
        form={}, d=None, charts=[], summary_text="", warnings=[], error=None,
        tax_years=cfg.TAX_YEARS, default_year=cfg.DEFAULT_TAX_YEAR, plans=PLAN_LABELS,
        fmt=fmt, pct=pct, advisor_ready=llm.is_configured(),
    )
    defaults.update(context)
    return render_template_string(HTML_TEMPLATE, **defaults)


# ═══════════════════════════════════════════════════════════════════
# Routes
# ═══════════════════════════════════════════════════════════════════

@app.route("/", methods=["GET", "POST"])
def index():
    if request.method == "GET":
        return _render()

    # POST: compute breakdown
    form = request.form.to_dict()
    try:
        inputs, warnings = parse_form(form)
    except ValueError as e:
        return _render(form=form, error=str(e)), 400

    rates = rates_provider.get_rates(inputs.tax_year)
    breakdown = tax.compute(inputs, rates)
    d = compute_display_data(inputs, rates, breakdown)
    summary_text = summary.fast_summary(inputs, breakdown)

    chart_images = report.get_web_charts(inputs, rates, breakdown)

    # Save PDF for download
    report.generate_pdf(inputs, rates, breakdown, d, summary_text, PDF_PATH)

    return _render(
        form=form,
        d=d,
        charts=chart_images,
        summary_text=summary_text,
        warnings=warnings,
    )


@app.route("/api/breakdown", methods=["POST"])
def api_breakdown():
    body = request.get_json(silent=True) or {}
    try:
        inputs, warnings = parse_form(body)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    rates = rates_provider.get_rates(inputs.tax_year)
    breakdown = tax.compute(inputs, rates)
    return jsonify({
        "inputs": asdict(inputs),
        "rates": asdict(rates),
        "breakdown": breakdown.to_dict(),
        "warnings": warnings,
    })


@app.route("/api/rates")
def api_rates():
    year = request.args.get("year", cfg.DEFAULT_TAX_YEAR)
    if year not in cfg.TAX_YEARS:
        return jsonify({"error": f"Unsupported tax year {year!r}"}), 400
    return jsonify(asdict(rates_provider.get_rates(year)))


@app.route("/api/chat", methods=["POST"])
def api_chat():
    body = request.get_json(silent=True) or {}
    message = str(body.get("message", "")).strip()
    if not message:
        return jsonify({"error": "Message is required"}), 400
    if not llm.is_configured():
        return jsonify({"error": "Set GROQ_API_KEY in .env to use the tax advisor."}), 503
    try:
        reply = summary.ask_advisor(body.get("history") or [], message)
    except Exception as e:
        logger.error("Advisor request failed: %s", e)
        return jsonify({"error": cfg.ADVISOR_ERROR}), 502
    return jsonify({"reply": reply})


@app.route("/download-pdf")
def download_pdf():
    if os.path.exists(PDF_PATH):
        return send_file(PDF_PATH, as_attachment=True, download_name="take_home_report.pdf")
    return "No report generated yet. Run a calculation first.", 404


# ═══════════════════════════════════════════════════════════════════
# Entry point
# ═══════════════════════════════════════════════════════════════════

def run_web(debug: bool = True) -> None:
    """Start the Flask development server and open browser."""
    import webbrowser
    import threading

    print("Starting web app at http://localhost:5000")
    threading.Timer(1.0, lambda: webbrowser.open("http://localhost:5000")).start()
    app.run(host="127.0.0.1", port=5000, debug=debug)


if __name__ == "__main__":
    run_web()
