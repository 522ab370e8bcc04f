"""
Engine configuration — single source of truth for health weights, banding
thresholds, plan-status sets, settings defaults and dashboard registries.

Import from here in all services rather than hardcoding values.
"""
from __future__ import annotations

import os

# ── Process-level knobs ────────────────────────────────────────────────────────
DEFAULT_LOCALE: str = os.getenv("PLANTPULSE_LOCALE", "ar-EG")
DEFAULT_CURRENCY: str = os.getenv("PLANTPULSE_CURRENCY", "EGP")

# Placeholder shown when a lookup (line name, product name, ...) misses
MISSING_LABEL: str = "—"

# Category shown for products without a model label
UNCATEGORIZED_LABEL: str = "Uncategorized"


# ── Health score ───────────────────────────────────────────────────────────────
HEALTH_WEIGHTS: dict[str, float] = {
    "efficiency": 0.30,
    "cost_variance": 0.20,
    "waste": 0.25,
    "plan": 0.25,
}

# (upper bound inclusive, score), checked top to bottom; past the last bound the floor applies
COST_VARIANCE_BANDS: list[tuple[float, int]] = [
    (5.0, 100),
    (15.0, 70),
    (30.0, 40),
]
COST_VARIANCE_FLOOR_SCORE: int = 10

WASTE_BANDS: list[tuple[float, int]] = [
    (2.0, 100),
    (5.0, 75),
    (10.0, 40),
]
WASTE_FLOOR_SCORE: int = 10


# ── Plan health ────────────────────────────────────────────────────────────────
# completion >= expected * factor  →  state
PLAN_HEALTH_BANDS: list[tuple[float, str]] = [
    (0.9, "on_track"),
    (0.7, "at_risk"),
    (0.4, "delayed"),
]
PLAN_HEALTH_FLOOR_STATE: str = "critical"

# A plan counts as "achieved" for the roll-up once actual >= planned * this
PLAN_ACHIEVED_FACTOR: float = 0.9

# The dashboard roll-up and the line views disagree on what "active" means;
# both sets are kept and callers pick one.
DASHBOARD_ACTIVE_STATUSES: frozenset[str] = frozenset({"in_progress", "completed"})
LINE_ACTIVE_STATUSES: frozenset[str] = frozenset({"in_progress", "planned"})


# ── Alerts ─────────────────────────────────────────────────────────────────────
# Waste between threshold*factor and threshold raises a warning instead of danger
WASTE_NEAR_THRESHOLD_FACTOR: float = 0.6


# ── Settings defaults ──────────────────────────────────────────────────────────
DEFAULT_ALERT_SETTINGS: dict[str, float] = {
    "waste_threshold": 5.0,
    "cost_variance_threshold": 10.0,
    "efficiency_threshold": 75.0,
    "plan_delay_days": 3,
}

DEFAULT_KPI_THRESHOLDS: dict[str, dict[str, float]] = {
    "efficiency": {"good": 90, "warning": 75},
    "wasteRatio": {"good": 2, "warning": 5},
    "costVariance": {"good": 5, "warning": 10},
    "planAchievement": {"good": 90, "warning": 70},
    "costAllocation": {"good": 80, "warning": 50},
}

# Used when neither the persisted blob nor the defaults know a KPI key
FALLBACK_KPI_THRESHOLD: dict[str, float] = {"good": 90, "warning": 70}


# ── Registries ─────────────────────────────────────────────────────────────────
# key, label, unit, inverted_scale (lower is better)
KPI_DEFINITIONS: list[tuple[str, str, str, bool]] = [
    ("efficiency", "Efficiency", "%", False),
    ("wasteRatio", "Waste ratio", "%", True),
    ("costVariance", "Cost variance", "%", True),
    ("planAchievement", "Plan achievement", "%", False),
    ("costAllocation", "Allocation completion", "%", False),
]

DASHBOARD_WIDGETS: dict[str, list[str]] = {
    "dashboard": [
        "kpi_row",
        "product_cost_analysis",
        "daily_cost_chart",
        "production_lines",
        "smart_planning",
    ],
    "adminDashboard": [
        "operational_kpis",
        "system_kpis",
        "alerts",
        "health_score",
        "cost_breakdown",
        "roles_distribution",
        "production_cost_chart",
        "activity_log",
        "cost_centers_summary",
        "top_lines",
        "top_products",
        "product_performance",
    ],
    "factoryDashboard": [
        "kpis",
        "alerts",
        "production_cost_chart",
        "cost_breakdown",
        "top_lines",
        "top_products",
        "product_performance",
    ],
}


# ── Aggregates ─────────────────────────────────────────────────────────────────
TOP_N: int = 5
COST_CENTERS_SUMMARY_LIMIT: int = 6

# Stock balance above this is "available", above zero "low", otherwise "out"
STOCK_AVAILABLE_ABOVE: int = 100

# Line statuses that count toward smart-planning capacity
PLANNING_LINE_STATUSES: frozenset[str] = frozenset({"active", "idle"})

# Only this employee level carries a supervisor hourly rate
SUPERVISOR_LEVEL: int = 2
