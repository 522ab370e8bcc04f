"""
aggregates.py — per-product / per-line / per-day / per-supervisor projections
of a report stream.

Covers:
  - KPI snapshot: production, waste, efficiency, labor + indirect cost,
    standard cost baseline, cost variance, plan achievement rate
  - Chart series (daily production vs cost per unit, labor vs indirect split)
  - Rankings (top lines, top products) and the per-product cost summary
  - Grouped summaries and the line / supervisor detail views
  - Product cards, production-line cards, today's KPI row, smart planning

Every builder is a pure function of its arguments.  Lookups that can match
more than one record (line/product configs, plans) take the first match in
input order.
"""

from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from plantpulse.config import (
    DASHBOARD_ACTIVE_STATUSES,
    LINE_ACTIVE_STATUSES,
    MISSING_LABEL,
    PLAN_ACHIEVED_FACTOR,
    PLANNING_LINE_STATUSES,
    STOCK_AVAILABLE_ABOVE,
    TOP_N,
    UNCATEGORIZED_LABEL,
)
from plantpulse.models.outputs import (
    ChartPoint,
    DashboardKPIs,
    GroupSummary,
    KPISnapshot,
    LineCard,
    LineDetail,
    PiePoint,
    PlanningEstimate,
    ProductCard,
    ProductSummaryRow,
    RankedItem,
    SupervisorDetail,
)
from plantpulse.models.records import (
    LineProductConfig,
    LineStatus,
    Product,
    ProductionLine,
    ProductionPlan,
    ProductionReport,
    Supervisor,
)
from plantpulse.services.cost_allocation import CostAllocationEngine
from plantpulse.services.formatting import (
    DateLike,
    current_month,
    round_half_up,
    round_to,
    today_string,
)
from plantpulse.services import ratios

PlanPredicate = Callable[[ProductionPlan], bool]
PlanReports = Mapping[str, Sequence[ProductionReport]]


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def status_in(*statuses: str) -> PlanPredicate:
    """Build an "active plan" predicate from a set of plan statuses."""
    allowed = frozenset(statuses)
    return lambda plan: plan.status in allowed


dashboard_active_plan = status_in(*DASHBOARD_ACTIVE_STATUSES)
line_active_plan = status_in(*LINE_ACTIVE_STATUSES)


def plan_key(line_id: str, product_id: str) -> str:
    """Key of the per-plan actual-report lookup."""
    return f"{line_id}_{product_id}"


def plan_actual(plan: ProductionPlan, plan_reports: Optional[PlanReports]) -> int:
    reports = (plan_reports or {}).get(plan_key(plan.line_id, plan.product_id), ())
    return sum(r.quantity_produced for r in reports)


def find_line_product_config(
    configs: Iterable[LineProductConfig],
    line_id: str,
    product_id: str,
) -> Optional[LineProductConfig]:
    """First (line, product) config in input order; later duplicates are ignored."""
    for config in configs:
        if config.line_id == line_id and config.product_id == product_id:
            return config
    return None


def _names(records: Iterable) -> Dict[str, str]:
    names: Dict[str, str] = {}
    for record in records:
        if record.id:
            names.setdefault(record.id, record.name)
    return names


def _sum_produced(reports: Iterable[ProductionReport]) -> int:
    return sum(r.quantity_produced for r in reports)


def _sum_waste(reports: Iterable[ProductionReport]) -> int:
    return sum(r.quantity_waste for r in reports)


def _sum_hours(reports: Iterable[ProductionReport]) -> float:
    return sum(r.work_hours for r in reports)


def _output_efficiency(produced: int, waste: int) -> float:
    """Good units as a share of everything made (1dp)."""
    made = produced + waste
    if made <= 0:
        return 0.0
    return round_to(produced / made * 100, 1)


# ---------------------------------------------------------------------------
# 1. Standard cost baseline & KPI snapshot
# ---------------------------------------------------------------------------

def standard_cost_baseline(
    reports: Iterable[ProductionReport],
    configs: Sequence[LineProductConfig],
    hourly_rate: float,
) -> float:
    """
    Quantity-weighted standard unit cost over reports whose (line, product)
    has a standard time:

        standard_unit_cost = (standard_minutes / 60) × hourly_rate

    Returns 0 when no report has a standard.
    """
    total_cost = 0.0
    total_qty = 0
    for r in reports:
        config = find_line_product_config(configs, r.line_id, r.product_id)
        if config is None or config.standard_assembly_time <= 0 or r.quantity_produced <= 0:
            continue
        total_cost += (config.standard_assembly_time / 60) * hourly_rate * r.quantity_produced
        total_qty += r.quantity_produced
    return total_cost / total_qty if total_qty > 0 else 0.0


def cost_variance(actual_avg_cost: float, standard_avg_cost: float) -> float:
    """% over (+) or under (−) the standard, 1dp; 0 without a baseline."""
    if standard_avg_cost <= 0:
        return 0.0
    return round_to((actual_avg_cost - standard_avg_cost) / standard_avg_cost * 100, 1)


def plan_achievement_rate(
    plans: Iterable[ProductionPlan],
    plan_reports: Optional[PlanReports],
    is_active_plan: PlanPredicate = dashboard_active_plan,
) -> int:
    """% of active plans whose actual output reached 90% of the planned quantity."""
    active = [p for p in plans if is_active_plan(p)]
    if not active:
        return 0
    achieved = sum(
        1 for p in active
        if plan_actual(p, plan_reports) >= p.planned_quantity * PLAN_ACHIEVED_FACTOR
    )
    return round_half_up(achieved / len(active) * 100)


def build_kpi_snapshot(
    reports: Sequence[ProductionReport],
    cost_engine: CostAllocationEngine,
    line_product_configs: Sequence[LineProductConfig] = (),
    plans: Sequence[ProductionPlan] = (),
    plan_reports: Optional[PlanReports] = None,
    is_active_plan: PlanPredicate = dashboard_active_plan,
) -> KPISnapshot:
    total_production = _sum_produced(reports)
    total_waste = _sum_waste(reports)

    labor = cost_engine.labor_cost(reports)
    indirect = cost_engine.total_indirect_cost(reports)
    total_cost = labor + indirect
    avg_cost = total_cost / total_production if total_production > 0 else 0.0
    standard_avg = standard_cost_baseline(reports, line_product_configs, cost_engine.hourly_rate)

    return KPISnapshot(
        total_production=total_production,
        total_waste=total_waste,
        waste_percent=ratios.waste_ratio(total_waste, total_production + total_waste),
        efficiency=_output_efficiency(total_production, total_waste),
        total_labor_cost=labor,
        total_indirect_cost=indirect,
        total_cost=total_cost,
        avg_cost_per_unit=avg_cost,
        standard_avg_cost=standard_avg,
        cost_variance=cost_variance(avg_cost, standard_avg),
        plan_achievement_rate=plan_achievement_rate(plans, plan_reports, is_active_plan),
    )


# ---------------------------------------------------------------------------
# 2. Chart series & rankings
# ---------------------------------------------------------------------------

def build_daily_chart(reports: Sequence[ProductionReport], cost_engine: CostAllocationEngine) -> List[ChartPoint]:
    """Production vs cost per unit for each date in the stream."""
    by_date: Dict[str, List[float]] = {}
    for r in reports:
        acc = by_date.setdefault(r.date, [0, 0.0])
        acc[0] += r.quantity_produced
        acc[1] += cost_engine.report_labor_cost(r)
    indirect = cost_engine.indirect_by_date(reports)

    points: List[ChartPoint] = []
    for day, (production, labor) in sorted(by_date.items()):
        total = labor + indirect.get(day, 0.0)
        points.append(ChartPoint(
            date=day[5:],
            production=int(production),
            cost_per_unit=round_to(total / production, 2) if production > 0 else 0.0,
        ))
    return points


def build_cost_breakdown(kpis: KPISnapshot) -> List[PiePoint]:
    if kpis.total_labor_cost == 0 and kpis.total_indirect_cost == 0:
        return []
    return [
        PiePoint(name="Labor cost", value=round_to(kpis.total_labor_cost, 2)),
        PiePoint(name="Indirect cost", value=round_to(kpis.total_indirect_cost, 2)),
    ]


def _ranked(totals: Dict[str, int], names: Mapping[str, str], limit: int) -> List[RankedItem]:
    items = [
        RankedItem(id=key, name=names.get(key) or key, production=qty)
        for key, qty in totals.items()
    ]
    items.sort(key=lambda item: item.production, reverse=True)
    return items[:limit]


def top_lines(
    reports: Iterable[ProductionReport],
    lines: Iterable[ProductionLine],
    limit: int = TOP_N,
) -> List[RankedItem]:
    totals: Dict[str, int] = {}
    for r in reports:
        totals[r.line_id] = totals.get(r.line_id, 0) + r.quantity_produced
    return _ranked(totals, _names(lines), limit)


def top_products(
    reports: Iterable[ProductionReport],
    products: Iterable[Product],
    limit: int = TOP_N,
) -> List[RankedItem]:
    totals: Dict[str, int] = {}
    for r in reports:
        totals[r.product_id] = totals.get(r.product_id, 0) + r.quantity_produced
    return _ranked(totals, _names(products), limit)


def build_product_summary(
    reports: Sequence[ProductionReport],
    products: Iterable[Product],
    cost_engine: CostAllocationEngine,
) -> List[ProductSummaryRow]:
    """Products worked on in the period with quantity and average unit cost."""
    by_id: Dict[str, Product] = {}
    for p in products:
        if p.id:
            by_id.setdefault(p.id, p)

    totals = cost_engine.line_date_totals(reports)
    acc: Dict[str, List[float]] = {}
    for r in reports:
        if r.quantity_produced <= 0:
            continue
        row = acc.setdefault(r.product_id, [0, 0.0])
        row[0] += r.quantity_produced
        row[1] += cost_engine.report_labor_cost(r) + cost_engine.indirect_share(r, totals)

    rows = []
    for product_id, (qty, cost) in acc.items():
        product = by_id.get(product_id)
        rows.append(ProductSummaryRow(
            id=product_id,
            name=(product.name if product else "") or product_id,
            code=product.code if product else "",
            category=(product.model if product else "") or UNCATEGORIZED_LABEL,
            qty=int(qty),
            avg_cost=cost / qty if qty > 0 else 0.0,
        ))
    rows.sort(key=lambda row: row.qty, reverse=True)
    return rows


# ---------------------------------------------------------------------------
# 3. Grouped summaries
# ---------------------------------------------------------------------------

def _group_summaries(
    reports: Sequence[ProductionReport],
    key_of: Callable[[ProductionReport], str],
    names: Mapping[str, str],
    cost_engine: Optional[CostAllocationEngine],
) -> List[GroupSummary]:
    groups: Dict[str, List[ProductionReport]] = {}
    for r in reports:
        groups.setdefault(key_of(r), []).append(r)

    # Share denominators come from the whole stream, not the group
    totals = cost_engine.line_date_totals(reports) if cost_engine is not None else {}

    summaries = []
    for key, group in groups.items():
        produced = _sum_produced(group)
        waste = _sum_waste(group)
        unit_cost: Optional[float] = None
        if cost_engine is not None:
            cost = sum(
                cost_engine.report_labor_cost(r) + cost_engine.indirect_share(r, totals)
                for r in group
            )
            unit_cost = cost / produced if produced > 0 else 0.0
        summaries.append(GroupSummary(
            key=key,
            name=names.get(key, MISSING_LABEL),
            produced=produced,
            waste=waste,
            hours=_sum_hours(group),
            report_count=len(group),
            waste_ratio=ratios.waste_ratio(waste, produced + waste),
            avg_assembly_time=ratios.avg_assembly_time(group),
            cost_per_unit=unit_cost,
        ))
    return summaries


def build_line_summaries(
    reports: Sequence[ProductionReport],
    lines: Iterable[ProductionLine],
    cost_engine: Optional[CostAllocationEngine] = None,
) -> List[GroupSummary]:
    """Per-line roll-up; pass ``cost_engine`` only when the cost view is permitted."""
    return _group_summaries(reports, lambda r: r.line_id, _names(lines), cost_engine)


def build_product_summaries(
    reports: Sequence[ProductionReport],
    products: Iterable[Product],
    cost_engine: Optional[CostAllocationEngine] = None,
) -> List[GroupSummary]:
    return _group_summaries(reports, lambda r: r.product_id, _names(products), cost_engine)


def build_supervisor_summaries(
    reports: Sequence[ProductionReport],
    supervisors: Iterable[Supervisor],
    cost_engine: Optional[CostAllocationEngine] = None,
) -> List[GroupSummary]:
    return _group_summaries(reports, lambda r: r.supervisor_id, _names(supervisors), cost_engine)


# ---------------------------------------------------------------------------
# 4. Detail views
# ---------------------------------------------------------------------------

def build_line_detail(
    line: ProductionLine,
    reports: Iterable[ProductionReport],
    configs: Iterable[LineProductConfig] = (),
) -> LineDetail:
    """
    Line performance over a report window.

    time efficiency = standard time / actual avg assembly time (uncapped),
    against the first config registered for the line;
    utilization = hours worked / (working days × line daily hours).
    """
    line_reports = [r for r in reports if r.line_id == line.id]
    produced = _sum_produced(line_reports)
    waste = _sum_waste(line_reports)
    hours = _sum_hours(line_reports)
    avg_time = ratios.avg_assembly_time(line_reports)

    standard_time = next(
        (c.standard_assembly_time for c in configs if c.line_id == line.id),
        0.0,
    )
    unique_days = ratios.count_unique_days(line_reports)
    line_utilization = (
        ratios.utilization(hours, unique_days * line.daily_working_hours)
        if unique_days > 0 else 0.0
    )

    return LineDetail(
        line_id=line.id or "",
        total_produced=produced,
        total_waste=waste,
        total_hours=hours,
        avg_assembly_time=avg_time,
        waste_ratio=ratios.waste_ratio(waste, produced + waste),
        standard_time=standard_time,
        time_efficiency=ratios.time_efficiency(standard_time, avg_time),
        unique_days=unique_days,
        utilization=line_utilization,
        chart=ratios.group_reports_by_date(line_reports),
    )


def build_supervisor_detail(
    reports: Sequence[ProductionReport],
    now: Optional[DateLike] = None,
) -> SupervisorDetail:
    today = today_string(now)
    month = current_month(now)
    produced = _sum_produced(reports)
    waste = _sum_waste(reports)
    today_reports = [r for r in reports if r.date == today]
    month_reports = [r for r in reports if r.date.startswith(month)]

    return SupervisorDetail(
        total_produced=produced,
        total_waste=waste,
        total_hours=_sum_hours(reports),
        unique_days=ratios.count_unique_days(reports),
        avg_daily_production=ratios.avg_daily_production(reports),
        avg_assembly_time=ratios.avg_assembly_time(reports),
        waste_ratio=ratios.waste_ratio(waste, produced + waste),
        today_produced=_sum_produced(today_reports),
        today_waste=_sum_waste(today_reports),
        month_produced=_sum_produced(month_reports),
        month_waste=_sum_waste(month_reports),
        chart=ratios.group_reports_by_date(reports),
    )


# ---------------------------------------------------------------------------
# 5. Cards
# ---------------------------------------------------------------------------

def _stock_status(balance: int) -> str:
    if balance > STOCK_AVAILABLE_ABOVE:
        return "available"
    if balance > 0:
        return "low"
    return "out"


def build_products(
    products: Iterable[Product],
    reports: Sequence[ProductionReport],
    configs: Sequence[LineProductConfig] = (),
) -> List[ProductCard]:
    """Stock cards: balance = opening + produced − waste."""
    cards = []
    for p in products:
        product_reports = [r for r in reports if r.product_id == p.id]
        produced = _sum_produced(product_reports)
        waste = _sum_waste(product_reports)
        balance = p.opening_balance + produced - waste
        config = next((c for c in configs if c.product_id == p.id), None)
        cards.append(ProductCard(
            id=p.id or "",
            name=p.name,
            code=p.code,
            category=p.model,
            stock_level=balance,
            stock_status=_stock_status(balance),
            opening_stock=p.opening_balance,
            total_production=produced,
            waste_units=waste,
            avg_assembly_time=config.standard_assembly_time if config else 0.0,
        ))
    return cards


def _plan_line_card(
    line: ProductionLine,
    plan: ProductionPlan,
    product_names: Mapping[str, str],
    supervisor_names: Mapping[str, str],
    today_reports: Sequence[ProductionReport],
    plan_reports: Optional[PlanReports],
) -> LineCard:
    historical = list((plan_reports or {}).get(plan_key(line.id or "", plan.product_id), ()))
    seen = {r.id for r in historical}
    merged = historical + [
        r for r in today_reports
        if r.line_id == line.id and r.product_id == plan.product_id and r.id not in seen
    ]
    actual = _sum_produced(merged)
    latest = sorted(merged, key=lambda r: r.date, reverse=True)[0] if merged else None

    return LineCard(
        id=line.id or "",
        name=line.name,
        supervisor_name=supervisor_names.get(latest.supervisor_id, MISSING_LABEL) if latest else MISSING_LABEL,
        status=line.status,
        current_product=product_names.get(plan.product_id, MISSING_LABEL),
        achievement=actual,
        target=plan.planned_quantity,
        workers_count=latest.workers_count if latest else 0,
        efficiency=ratios.plan_progress(actual, plan.planned_quantity),
        hours_used=_sum_hours(merged),
        plan_id=plan.id,
    )


def build_production_lines(
    lines: Iterable[ProductionLine],
    products: Iterable[Product],
    supervisors: Iterable[Supervisor],
    today_reports: Sequence[ProductionReport],
    line_statuses: Sequence[LineStatus] = (),
    plans: Sequence[ProductionPlan] = (),
    plan_reports: Optional[PlanReports] = None,
    is_active_plan: PlanPredicate = line_active_plan,
) -> List[LineCard]:
    """
    One card per line.  An active plan drives achievement, target and progress
    (plan history merged with today's reports); otherwise today's reports are
    measured against the line status target.
    """
    product_names = _names(products)
    supervisor_names = _names(supervisors)

    cards = []
    for line in lines:
        plan = next((p for p in plans if p.line_id == line.id and is_active_plan(p)), None)
        if plan is not None:
            cards.append(_plan_line_card(
                line, plan, product_names, supervisor_names, today_reports, plan_reports,
            ))
            continue

        status = next((s for s in line_statuses if s.line_id == line.id), None)
        line_reports = [r for r in today_reports if r.line_id == line.id]
        achievement = _sum_produced(line_reports)
        target = status.target_today_qty if status else 0

        cards.append(LineCard(
            id=line.id or "",
            name=line.name,
            supervisor_name=(
                supervisor_names.get(line_reports[0].supervisor_id, MISSING_LABEL)
                if line_reports else MISSING_LABEL
            ),
            status=line.status,
            current_product=(
                product_names.get(status.current_product_id, MISSING_LABEL)
                if status else MISSING_LABEL
            ),
            achievement=achievement,
            target=target,
            workers_count=line_reports[-1].workers_count if line_reports else 0,
            efficiency=ratios.efficiency(achievement, target),
            hours_used=_sum_hours(line_reports),
        ))
    return cards


def build_dashboard_kpis(
    today_reports: Sequence[ProductionReport],
    monthly_reports: Optional[Sequence[ProductionReport]] = None,
) -> DashboardKPIs:
    today_production = _sum_produced(today_reports)
    waste = _sum_waste(today_reports)
    monthly = today_reports if monthly_reports is None else monthly_reports

    return DashboardKPIs(
        today_production=today_production,
        monthly_production=_sum_produced(monthly),
        total_production=today_production,
        efficiency=_output_efficiency(today_production, waste),
        waste_ratio=ratios.waste_ratio(waste, today_production + waste),
    )


# ---------------------------------------------------------------------------
# 6. Smart planning
# ---------------------------------------------------------------------------

def smart_planning(
    product_id: str,
    quantity: int,
    today_reports: Sequence[ProductionReport],
    lines: Iterable[ProductionLine],
    configs: Iterable[LineProductConfig] = (),
) -> Optional[PlanningEstimate]:
    """
    How long ``quantity`` units of ``product_id`` take on every available line.

    Assembly time is the product's standard time when configured and positive,
    otherwise today's average for the product (or for all of today's work when
    the product was not made today).
    """
    if not product_id or quantity <= 0:
        return None

    product_reports = [r for r in today_reports if r.product_id == product_id]
    avg_time = ratios.avg_assembly_time(product_reports or today_reports)
    config = next((c for c in configs if c.product_id == product_id), None)
    standard_time = config.standard_assembly_time if config else avg_time
    effective_time = standard_time if standard_time > 0 else avg_time

    available: List[Tuple[int, float]] = [
        (line.max_workers, line.daily_working_hours)
        for line in lines
        if line.status in PLANNING_LINE_STATUSES
    ]
    total_capacity = sum(
        ratios.daily_capacity(workers, hours, effective_time) for workers, hours in available
    )

    return PlanningEstimate(
        avg_assembly_time=effective_time,
        daily_capacity_per_line=round_half_up(total_capacity / len(available)) if available else 0,
        total_daily_capacity=total_capacity,
        estimated_days=ratios.estimated_days(quantity, total_capacity),
        active_lines_count=len(available),
    )
