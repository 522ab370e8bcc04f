"""
dashboard.py — one full recomputation pass over an immutable input snapshot.

Covers:
  - DashboardInputs: every record set the engine reads, validated and frozen
  - compute_dashboard(): settings resolve → cost engine → KPIs → charts →
    rankings → plan health → health score → alerts
  - DashboardMemo: explicit memo keyed by a SHA-256 fingerprint of the input
    slice and settings, so an unchanged snapshot is not recomputed

Each pass builds its own CostAllocationEngine; nothing computed in one pass
is visible to the next except through DashboardMemo.
"""

import hashlib
import json
import logging
import uuid
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from plantpulse.models.outputs import DashboardSnapshot
from plantpulse.models.records import (
    CostAllocation,
    CostCenter,
    CostCenterValue,
    Employee,
    LaborSettings,
    LineProductConfig,
    Product,
    ProductionLine,
    ProductionPlan,
    ProductionReport,
)
from plantpulse.services.aggregates import (
    PlanPredicate,
    build_cost_breakdown,
    build_daily_chart,
    build_kpi_snapshot,
    build_product_summary,
    dashboard_active_plan,
    line_active_plan,
    top_lines,
    top_products,
)
from plantpulse.services.cost_allocation import CostAllocationEngine, build_supervisor_hourly_rates
from plantpulse.services.formatting import DateLike, today_string
from plantpulse.services.health import build_plan_healths, generate_alerts, kpi_health_score
from plantpulse.services.perf_monitor import timed
from plantpulse.services.settings_resolver import resolve_system_settings

logger = logging.getLogger("plantpulse-dashboard")


class DashboardInputs(BaseModel):
    """Snapshot of every upstream record set for one pass."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    reports: Tuple[ProductionReport, ...] = ()
    lines: Tuple[ProductionLine, ...] = ()
    products: Tuple[Product, ...] = ()
    employees: Tuple[Employee, ...] = ()
    line_product_configs: Tuple[LineProductConfig, ...] = ()
    plans: Tuple[ProductionPlan, ...] = ()
    # Actual reports per plan, keyed "<lineId>_<productId>"
    plan_reports: Dict[str, Tuple[ProductionReport, ...]] = Field(default_factory=dict)
    cost_centers: Tuple[CostCenter, ...] = ()
    cost_center_values: Tuple[CostCenterValue, ...] = ()
    cost_allocations: Tuple[CostAllocation, ...] = ()
    labor_settings: LaborSettings = Field(default_factory=LaborSettings)
    disabled_accounts: int = Field(0, ge=0)
    # "YYYY-MM" for allocation completeness; current month when unset
    month: Optional[str] = None

    def fingerprint(self, raw_settings: Any = None, now: Optional[DateLike] = None) -> str:
        """SHA-256 over the serialized snapshot, the settings blob and the day."""
        payload = {
            "inputs": self.model_dump(mode="json"),
            "settings": raw_settings,
            "today": today_string(now),
        }
        encoded = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()


@timed
def compute_dashboard(
    inputs: DashboardInputs,
    raw_settings: Any = None,
    now: Optional[DateLike] = None,
    is_active_plan: PlanPredicate = dashboard_active_plan,
    is_health_plan: PlanPredicate = line_active_plan,
) -> DashboardSnapshot:
    """
    Recompute every dashboard figure from ``inputs``.

    ``is_active_plan`` selects the plans counted by the achievement roll-up;
    ``is_health_plan`` selects the plans that get a health classification.
    """
    pass_id = uuid.uuid4().hex[:8]
    settings = resolve_system_settings(raw_settings)

    engine = CostAllocationEngine(
        cost_centers=inputs.cost_centers,
        cost_center_values=inputs.cost_center_values,
        cost_allocations=inputs.cost_allocations,
        hourly_rate=inputs.labor_settings.hourly_rate,
        supervisor_hourly_rates=build_supervisor_hourly_rates(inputs.employees),
        now=now,
    )

    kpis = build_kpi_snapshot(
        inputs.reports,
        engine,
        inputs.line_product_configs,
        inputs.plans,
        inputs.plan_reports,
        is_active_plan,
    )
    plan_healths = build_plan_healths(
        inputs.plans,
        inputs.lines,
        inputs.plan_reports,
        inputs.line_product_configs,
        now,
        is_health_plan,
    )
    alerts = generate_alerts(
        kpis,
        plan_healths,
        inputs.disabled_accounts,
        settings.alert_settings,
        settings.alert_toggles,
    )

    snapshot = DashboardSnapshot(
        kpis=kpis,
        health_score=kpi_health_score(kpis),
        cost_allocation_completion=engine.cost_allocation_completion(inputs.month),
        daily_chart=build_daily_chart(inputs.reports, engine),
        cost_breakdown=build_cost_breakdown(kpis),
        top_lines=top_lines(inputs.reports, inputs.lines),
        top_products=top_products(inputs.reports, inputs.products),
        product_summary=build_product_summary(inputs.reports, inputs.products, engine),
        plan_healths=plan_healths,
        alerts=alerts,
    )

    cache = engine.cache_info()
    logger.info(
        f"Dashboard pass {pass_id}: {len(inputs.reports)} reports, "
        f"production={kpis.total_production}, health={snapshot.health_score}, "
        f"alerts={len(alerts)}, indirect cache {cache['entries']} entries / {cache['hits']} hits",
        extra={"pass_id": pass_id},
    )
    return snapshot


class DashboardMemo:
    """
    Holds the last snapshot and the fingerprint it was computed from.

    ``get`` recomputes only when the fingerprint of (inputs, settings, day)
    differs from the stored one.
    """

    def __init__(
        self,
        is_active_plan: PlanPredicate = dashboard_active_plan,
        is_health_plan: PlanPredicate = line_active_plan,
    ) -> None:
        self.is_active_plan = is_active_plan
        self.is_health_plan = is_health_plan
        self._fingerprint: Optional[str] = None
        self._snapshot: Optional[DashboardSnapshot] = None
        self.hits = 0
        self.misses = 0

    def get(
        self,
        inputs: DashboardInputs,
        raw_settings: Any = None,
        now: Optional[DateLike] = None,
    ) -> DashboardSnapshot:
        fingerprint = inputs.fingerprint(raw_settings, now)
        if self._snapshot is not None and fingerprint == self._fingerprint:
            self.hits += 1
            return self._snapshot

        self.misses += 1
        logger.debug(f"Dashboard memo miss ({fingerprint[:12]}), recomputing")
        self._snapshot = compute_dashboard(
            inputs,
            raw_settings,
            now,
            self.is_active_plan,
            self.is_health_plan,
        )
        self._fingerprint = fingerprint
        return self._snapshot

    def clear(self) -> None:
        self._fingerprint = None
        self._snapshot = None
