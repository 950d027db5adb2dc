"""Audit report formatter -- JSON + text output."""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from itertools import groupby
from pathlib import Path

from engine.currency import format_money
from audit.checks import classify_check

RULE = "=" * 72

CATEGORY_TITLES = {
    "arithmetic": "ARITHMETIC CHECKS (statement identities)",
    "model_design": "STRUCTURAL CHECKS (balance sheet + solver fixed point)",
}


def _num(value):
    return str(value) if isinstance(value, Decimal) else value


def verdict(summary: dict) -> str:
    if summary["arithmetic_fail"]:
        return "ARITHMETIC_ERRORS"
    if summary["design_fail"]:
        return "STRUCTURAL_GAPS"
    return "BALANCED"


def write_json_report(audit_data: dict, output_path: str | Path) -> Path:
    """Write audit results to JSON file (Decimals as strings)."""
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    summary = audit_data["summary"]
    checks = []
    for section, name, expected, actual, delta, ok in audit_data["results"]:
        checks.append({
            "section": section,
            "name": name,
            "expected": _num(expected),
            "actual": _num(actual),
            "delta": _num(delta),
            "passed": ok,
            "category": classify_check(section, name),
        })

    report = {
        "timestamp": datetime.now().isoformat(),
        "scenario": audit_data["projection"].scenario_name,
        "summary": summary,
        "verdict": verdict(summary),
        "checks": checks,
    }
    with open(path, "w") as f:
        json.dump(report, f, indent=2)
    return path


# ── Text blocks ─────────────────────────────────────────────────


def _metrics_block(projection) -> list[str]:
    s = projection.summary
    h = projection.horizon
    pairs = [
        ("Scenario", projection.scenario_name),
        ("Horizon", f"{h.start_year}-{h.end_year}"),
        ("Metrics window", f"{s.metrics_start_year}-{s.metrics_end_year}"),
        ("NPV rent", format_money(s.npv_rent)),
        ("NPV cash flow", format_money(s.npv_cash_flow)),
        ("Avg EBITDA margin (%)", format_money(s.average_ebitda_margin)),
        ("Avg rent load (%)", format_money(s.average_rent_load)),
    ]
    return [f"  {label + ':':<23}{value:>20}" for label, value in pairs]


def _year_table(projection) -> list[str]:
    """Compact per-year figures in millions."""
    header = (f"  {'Year':>4} {'Revenue':>9} {'Rent':>8} {'EBITDA':>9} "
              f"{'NI':>9} {'Cash':>9} {'Debt':>8} {'It':>3}")
    rows = [header, "  " + "-" * (len(header) - 2)]
    for y in projection.years:
        m = [v / 1_000_000 for v in (y.revenue, y.rent, y.ebitda,
                                     y.net_income, y.closing_cash, y.debt)]
        rows.append(f"  {y.year:>4} {m[0]:>9.2f} {m[1]:>8.2f} {m[2]:>9.2f} "
                    f"{m[3]:>9.2f} {m[4]:>9.2f} {m[5]:>8.2f} "
                    f"{y.solver_iterations:>3}")
    return rows


def _category_block(results: list[tuple], category: str) -> list[str]:
    """Per-section pass counts; failures listed with their deltas."""
    lines = [CATEGORY_TITLES[category], "-" * 72]
    picked = [r for r in results if classify_check(r[0], r[1]) == category]
    for section, checks in groupby(picked, key=lambda r: r[0]):
        checks = list(checks)
        fails = [r for r in checks if not r[5]]
        status = f"{len(fails)} FAIL" if fails else "ALL PASS"
        lines.append(f"  {section} ({len(checks)} checks, {status})")
        for _, name, expected, actual, delta, _ in fails:
            lines.append(f"    FAIL  {name}")
            lines.append(f"          expected {expected:>16,.2f}  "
                         f"actual {actual:>16,.2f}  delta {delta:,.2f}")
        if not fails:
            lines.append(f"    (max delta: {max(r[4] for r in checks):,.6f})")
    lines.append("")
    return lines


def format_text_report(audit_data: dict) -> str:
    """Format audit results as human-readable text."""
    summary = audit_data["summary"]
    projection = audit_data["projection"]

    lines = [RULE, "SCHOOL PROJECTION - AUDIT REPORT", RULE]
    lines.extend(_metrics_block(projection))
    lines.append("")
    lines.extend(_year_table(projection))
    lines.append("")
    for category in CATEGORY_TITLES:
        lines.extend(_category_block(audit_data["results"], category))

    n_arith = summary["arithmetic_pass"] + summary["arithmetic_fail"]
    n_design = summary["design_pass"] + summary["design_fail"]
    lines += [
        RULE,
        f"  Total checks:     {summary['total']}",
        f"  Arithmetic:       {n_arith:>4} ({summary['arithmetic_pass']} pass, "
        f"{summary['arithmetic_fail']} fail)",
        f"  Structural:       {n_design:>4} ({summary['design_pass']} pass, "
        f"{summary['design_fail']} fail)",
        "",
    ]
    v = verdict(summary)
    if v == "BALANCED":
        lines.append("  VERDICT: MODEL IS BALANCED")
    elif v == "STRUCTURAL_GAPS":
        lines.append("  VERDICT: ARITHMETIC OK, STRUCTURAL CHECKS FAILED")
    else:
        lines.append("  VERDICT: MODEL HAS ARITHMETIC ERRORS")
    lines.append(RULE)
    return "\n".join(lines)
