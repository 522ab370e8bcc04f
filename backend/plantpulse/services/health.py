"""
health.py — production health score, KPI banding, plan health and alerts.

Covers:
  - Weighted 0–100 health score from efficiency, cost variance, waste and
    plan achievement
  - good / warning / danger banding of a KPI against its {good, warning} pair
  - Plan health classification (on_track / at_risk / delayed / critical)
    from elapsed time vs completion, with delay in days
  - Ordered alert feed: cost → plan delay → waste → efficiency → system info

Plan health is a stateless classification recomputed each pass; it is never
computed for plans outside the active predicate.
"""

import logging
import math
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from plantpulse.config import (
    COST_VARIANCE_BANDS,
    COST_VARIANCE_FLOOR_SCORE,
    HEALTH_WEIGHTS,
    PLAN_HEALTH_BANDS,
    PLAN_HEALTH_FLOOR_STATE,
    WASTE_BANDS,
    WASTE_FLOOR_SCORE,
    WASTE_NEAR_THRESHOLD_FACTOR,
)
from plantpulse.models.outputs import Alert, KPISnapshot, PlanHealth
from plantpulse.models.records import (
    LineProductConfig,
    ProductionLine,
    ProductionPlan,
    ProductionReport,
)
from plantpulse.models.settings import AlertSettings, AlertToggleSettings, KPIThreshold
from plantpulse.services import ratios
from plantpulse.services.aggregates import (
    PlanPredicate,
    PlanReports,
    find_line_product_config,
    line_active_plan,
    plan_key,
)
from plantpulse.services.formatting import DateLike, parse_day, round_half_up

logger = logging.getLogger("plantpulse-health")

_SECONDS_PER_DAY = 86400


# ---------------------------------------------------------------------------
# 1. Health score
# ---------------------------------------------------------------------------

def _band_score(value: float, bands: Sequence[Tuple[float, int]], floor: int) -> int:
    for upper, score in bands:
        if value <= upper:
            return score
    return floor


def health_score(
    efficiency: float,
    cost_variance: float,
    waste_percent: float,
    plan_achievement_rate: float,
) -> int:
    """
    score = round(0.30 × min(efficiency, 100)
                + 0.20 × band(|cost variance|)
                + 0.25 × band(waste %)
                + 0.25 × plan achievement), clamped to [0, 100]
    """
    components = {
        "efficiency": min(efficiency, 100),
        "cost_variance": _band_score(abs(cost_variance), COST_VARIANCE_BANDS, COST_VARIANCE_FLOOR_SCORE),
        "waste": _band_score(waste_percent, WASTE_BANDS, WASTE_FLOOR_SCORE),
        "plan": plan_achievement_rate,
    }
    score = round_half_up(sum(value * HEALTH_WEIGHTS[key] for key, value in components.items()))
    return max(0, min(100, score))


def kpi_health_score(kpis: KPISnapshot) -> int:
    return health_score(
        kpis.efficiency,
        kpis.cost_variance,
        kpis.waste_percent,
        kpis.plan_achievement_rate,
    )


def kpi_color(value: float, threshold: KPIThreshold, inverted: bool = False) -> str:
    """Band a KPI; ``inverted`` KPIs (waste, variance) are better when lower."""
    if inverted:
        if value <= threshold.good:
            return "good"
        if value <= threshold.warning:
            return "warning"
        return "danger"
    if value >= threshold.good:
        return "good"
    if value >= threshold.warning:
        return "warning"
    return "danger"


# ---------------------------------------------------------------------------
# 2. Plan health
# ---------------------------------------------------------------------------

def _as_datetime(value: Optional[DateLike]) -> datetime:
    if value is None:
        return datetime.now()
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value
    return datetime(value.year, value.month, value.day)


def elapsed_days(start_date: str, now: Optional[DateLike] = None) -> int:
    """Whole days since the plan start, rounded up, never below 1."""
    start = parse_day(start_date)
    if start is None:
        return 1
    delta = _as_datetime(now) - datetime(start.year, start.month, start.day)
    return max(1, math.ceil(delta.total_seconds() / _SECONDS_PER_DAY))


def classify_plan(completion_ratio: float, expected_completion: float) -> str:
    for factor, state in PLAN_HEALTH_BANDS:
        if completion_ratio >= expected_completion * factor:
            return state
    return PLAN_HEALTH_FLOOR_STATE


def plan_health(
    plan: ProductionPlan,
    actual_produced: int,
    daily_capacity: int,
    now: Optional[DateLike] = None,
) -> PlanHealth:
    """
    Progress of ``plan`` against the time it should have taken:

        elapsed ratio   = elapsed days / ceil(planned / capacity) × 100   (≤ 100)
        completion      = actual / planned × 100                          (≤ 100)
        delay days      = ceil(remaining / capacity) − days left on schedule
    """
    planned = plan.planned_quantity
    elapsed = elapsed_days(plan.start_date, now)
    total_days = math.ceil(planned / daily_capacity) if daily_capacity > 0 else 0

    elapsed_ratio = min(elapsed / total_days * 100, 100.0) if total_days > 0 else 0.0
    completion_ratio = min(actual_produced / planned * 100, 100.0) if planned > 0 else 0.0
    expected = elapsed_ratio

    delay = 0
    if daily_capacity > 0:
        days_needed = math.ceil((planned - actual_produced) / daily_capacity)
        delay = max(0, days_needed - max(0, total_days - elapsed))

    state = classify_plan(completion_ratio, expected)
    logger.debug(
        f"Plan {plan.id}: elapsed={elapsed}/{total_days}d completion={completion_ratio:.1f}% "
        f"expected={expected:.1f}% → {state} (delay {delay}d)"
    )

    return PlanHealth(
        plan_id=plan.id,
        line_id=plan.line_id,
        product_id=plan.product_id,
        state=state,
        elapsed_days=elapsed,
        estimated_total_days=total_days,
        elapsed_ratio=elapsed_ratio,
        completion_ratio=completion_ratio,
        expected_completion=expected,
        delay_days=delay,
        actual_produced=actual_produced,
        planned_quantity=planned,
        daily_capacity=daily_capacity,
    )


def plan_health_for_line(
    line: ProductionLine,
    plans: Iterable[ProductionPlan],
    plan_reports: Optional[PlanReports],
    configs: Iterable[LineProductConfig] = (),
    now: Optional[DateLike] = None,
    is_active_plan: PlanPredicate = line_active_plan,
) -> Optional[PlanHealth]:
    """
    Health of the line's first active plan, or None when it has none.

    Daily capacity uses the (line, product) standard time, falling back to the
    average assembly time observed on the plan's reports.
    """
    plan = next((p for p in plans if p.line_id == line.id and is_active_plan(p)), None)
    if plan is None:
        return None
    return _line_plan_health(line, plan, plan_reports, configs, now)


def _line_plan_health(
    line: ProductionLine,
    plan: ProductionPlan,
    plan_reports: Optional[PlanReports],
    configs: Iterable[LineProductConfig],
    now: Optional[DateLike],
) -> PlanHealth:
    reports: Sequence[ProductionReport] = (plan_reports or {}).get(
        plan_key(plan.line_id, plan.product_id), ()
    )
    config = find_line_product_config(configs, plan.line_id, plan.product_id)
    assembly_time = (
        config.standard_assembly_time
        if config is not None and config.standard_assembly_time > 0
        else ratios.avg_assembly_time(reports)
    )
    capacity = ratios.daily_capacity(line.max_workers, line.daily_working_hours, assembly_time)
    actual = sum(r.quantity_produced for r in reports)
    return plan_health(plan, actual, capacity, now)


def build_plan_healths(
    plans: Iterable[ProductionPlan],
    lines: Iterable[ProductionLine],
    plan_reports: Optional[PlanReports],
    configs: Sequence[LineProductConfig] = (),
    now: Optional[DateLike] = None,
    is_active_plan: PlanPredicate = line_active_plan,
) -> List[PlanHealth]:
    """Health of every active plan whose line is known, in plan order."""
    by_id = {}
    for line in lines:
        if line.id:
            by_id.setdefault(line.id, line)

    healths = []
    for plan in plans:
        line = by_id.get(plan.line_id)
        if line is None or not is_active_plan(plan):
            continue
        healths.append(_line_plan_health(line, plan, plan_reports, configs, now))
    return healths


# ---------------------------------------------------------------------------
# 3. Alerts
# ---------------------------------------------------------------------------

def _pct(value: float) -> str:
    return f"{value:.10g}"


def generate_alerts(
    kpis: KPISnapshot,
    plan_healths: Iterable[PlanHealth] = (),
    disabled_accounts: int = 0,
    alert_settings: Optional[AlertSettings] = None,
    toggles: Optional[AlertToggleSettings] = None,
) -> List[Alert]:
    """
    Evaluate the alert rules in their fixed order; when none fires a single
    "all normal" info alert is returned.
    """
    limits = alert_settings or AlertSettings()
    switches = toggles or AlertToggleSettings()
    alerts: List[Alert] = []

    if switches.enable_cost_variance_alert and kpis.cost_variance > limits.cost_variance_threshold:
        alerts.append(Alert(
            type="danger",
            icon="trending_up",
            message=(
                f"Cost is {_pct(kpis.cost_variance)}% above standard "
                f"(limit {_pct(limits.cost_variance_threshold)}%)"
            ),
        ))

    if switches.enable_plan_delay_alert:
        delayed = [h for h in plan_healths if h.delay_days > limits.plan_delay_days]
        if delayed:
            alerts.append(Alert(
                type="warning",
                icon="schedule",
                message=f"{len(delayed)} production plan(s) behind schedule",
            ))

    if kpis.waste_percent > limits.waste_threshold:
        alerts.append(Alert(
            type="danger",
            icon="delete_sweep",
            message=(
                f"Waste ratio is high: {_pct(kpis.waste_percent)}% "
                f"(accepted limit {_pct(limits.waste_threshold)}%)"
            ),
        ))
    elif kpis.waste_percent > limits.waste_threshold * WASTE_NEAR_THRESHOLD_FACTOR:
        alerts.append(Alert(
            type="warning",
            icon="warning",
            message=f"Waste ratio is approaching the limit: {_pct(kpis.waste_percent)}%",
        ))

    if 0 < kpis.efficiency < limits.efficiency_threshold:
        alerts.append(Alert(
            type="warning",
            icon="speed",
            message=(
                f"Efficiency is below target: {_pct(kpis.efficiency)}% "
                f"(target {_pct(limits.efficiency_threshold)}%)"
            ),
        ))

    if disabled_accounts > 0:
        alerts.append(Alert(
            type="info",
            icon="person_off",
            message=f"{disabled_accounts} disabled account(s) in the system",
        ))

    if not alerts:
        alerts.append(Alert(
            type="info",
            icon="check_circle",
            message="No alerts: performance is within accepted limits",
        ))

    logger.debug(f"Generated {len(alerts)} alert(s): {[a.icon for a in alerts]}")
    return alerts
