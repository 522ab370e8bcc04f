"""Computed output records — rebuilt on every pass, never persisted."""
from dataclasses import dataclass, field
from typing import List, Optional


# ---------------------------------------------------------------------------
# Costs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CostData:
    labor_cost: float = 0.0
    indirect_cost: float = 0.0
    total_cost: float = 0.0
    quantity_produced: int = 0
    cost_per_unit: float = 0.0


@dataclass(frozen=True)
class AllocatedCenterCost:
    cost_center_id: str
    cost_center_name: str
    monthly_allocated: float
    daily_allocated: float
    percentage: float


@dataclass(frozen=True)
class LineAllocatedCostSummary:
    month: str
    days_in_month: int
    total_monthly_allocated: float
    total_daily_allocated: float
    centers: List[AllocatedCenterCost] = field(default_factory=list)


@dataclass(frozen=True)
class ProductLineCost:
    line_id: str
    line_name: str
    total_produced: int
    total_cost: float
    cost_per_unit: float


@dataclass(frozen=True)
class DailyCostPoint:
    date: str
    cost_per_unit: float
    quantity: int


@dataclass(frozen=True)
class DailyProductionCostPoint:
    date: str
    day: str
    production: int
    labor_cost: float
    indirect_cost: float
    total_cost: float
    cost_per_unit: float


@dataclass(frozen=True)
class CostCenterSummary:
    name: str
    type: str
    amount: float
    allocated: bool


@dataclass(frozen=True)
class ProductCostBreakdown:
    imported_unit_cost: float
    raw_material_cost: float
    inner_box_cost: float
    outer_carton_cost: float
    units_per_carton: int
    carton_share: float
    production_overhead_share: float
    total_calculated_cost: float


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class KPISnapshot:
    total_production: int = 0
    total_waste: int = 0
    waste_percent: float = 0.0
    efficiency: float = 0.0
    total_labor_cost: float = 0.0
    total_indirect_cost: float = 0.0
    total_cost: float = 0.0
    avg_cost_per_unit: float = 0.0
    standard_avg_cost: float = 0.0
    cost_variance: float = 0.0
    plan_achievement_rate: int = 0


@dataclass(frozen=True)
class DateTotals:
    date: str
    produced: int
    waste: int


@dataclass(frozen=True)
class ChartPoint:
    """Production vs cost-per-unit for one date (date shown as MM-DD)."""

    date: str
    production: int
    cost_per_unit: float


@dataclass(frozen=True)
class PiePoint:
    name: str
    value: float


@dataclass(frozen=True)
class RankedItem:
    id: str
    name: str
    production: int


@dataclass(frozen=True)
class ProductSummaryRow:
    id: str
    name: str
    code: str
    category: str
    qty: int
    avg_cost: float


@dataclass(frozen=True)
class GroupSummary:
    """Per-line / per-product / per-supervisor roll-up of a report stream."""

    key: str
    name: str
    produced: int
    waste: int
    hours: float
    report_count: int
    waste_ratio: float
    avg_assembly_time: float
    cost_per_unit: Optional[float] = None


@dataclass(frozen=True)
class LineDetail:
    line_id: str
    total_produced: int
    total_waste: int
    total_hours: float
    avg_assembly_time: float
    waste_ratio: float
    standard_time: float
    time_efficiency: float
    unique_days: int
    utilization: float
    chart: List[DateTotals] = field(default_factory=list)


@dataclass(frozen=True)
class SupervisorDetail:
    total_produced: int
    total_waste: int
    total_hours: float
    unique_days: int
    avg_daily_production: int
    avg_assembly_time: float
    waste_ratio: float
    today_produced: int
    today_waste: int
    month_produced: int
    month_waste: int
    chart: List[DateTotals] = field(default_factory=list)


@dataclass(frozen=True)
class ProductCard:
    id: str
    name: str
    code: str
    category: str
    stock_level: int
    stock_status: str                    # available | low | out
    opening_stock: int
    total_production: int
    waste_units: int
    avg_assembly_time: float


@dataclass(frozen=True)
class LineCard:
    id: str
    name: str
    supervisor_name: str
    status: str
    current_product: str
    achievement: int
    target: int
    workers_count: int
    efficiency: int
    hours_used: float
    plan_id: Optional[str] = None


@dataclass(frozen=True)
class DashboardKPIs:
    today_production: int
    monthly_production: int
    total_production: int
    efficiency: float
    waste_ratio: float


@dataclass(frozen=True)
class PlanningEstimate:
    avg_assembly_time: float
    daily_capacity_per_line: int
    total_daily_capacity: int
    estimated_days: float
    active_lines_count: int


# ---------------------------------------------------------------------------
# Health & alerts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlanHealth:
    plan_id: Optional[str]
    line_id: str
    product_id: str
    state: str                           # on_track | at_risk | delayed | critical
    elapsed_days: int
    estimated_total_days: int
    elapsed_ratio: float
    completion_ratio: float
    expected_completion: float
    delay_days: int
    actual_produced: int
    planned_quantity: int
    daily_capacity: int


@dataclass(frozen=True)
class Alert:
    type: str                            # danger | warning | info
    icon: str
    message: str


@dataclass(frozen=True)
class DashboardSnapshot:
    kpis: KPISnapshot
    health_score: int
    cost_allocation_completion: int
    daily_chart: List[ChartPoint]
    cost_breakdown: List[PiePoint]
    top_lines: List[RankedItem]
    top_products: List[RankedItem]
    product_summary: List[ProductSummaryRow]
    plan_healths: List[PlanHealth]
    alerts: List[Alert]
