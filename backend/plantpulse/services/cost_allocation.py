"""
cost_allocation.py — indirect (overhead) cost attribution to lines, dates,
products and individual reports.

Covers:
  - Monthly indirect cost per line from active indirect cost centers, their
    monthly ledger values and their line allocation percentages
  - Daily indirect rate (monthly / days in month)
  - Redistribution of a line's daily rate across the reports of each date in
    proportion to each report's share of the line's output on that date
  - Labor cost (workers × hours × hourly rate), supervisor cost per report
  - Cost-per-unit roll-ups per line, product, report, date and product history
  - Allocation completeness and cost-center summaries for the month

One CostAllocationEngine is built per recomputation pass; its (line, month)
memo lives on the instance and is dropped with it, so a changed ledger is
always picked up by the next pass.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from plantpulse.config import COST_CENTERS_SUMMARY_LIMIT, MISSING_LABEL, SUPERVISOR_LEVEL
from plantpulse.models.outputs import (
    AllocatedCenterCost,
    CostCenterSummary,
    CostData,
    DailyCostPoint,
    DailyProductionCostPoint,
    LineAllocatedCostSummary,
    ProductCostBreakdown,
    ProductLineCost,
)
from plantpulse.models.records import (
    CostAllocation,
    CostCenter,
    CostCenterValue,
    Employee,
    LineAllocationShare,
    Product,
    ProductionReport,
    ProductMaterial,
)
from plantpulse.services.formatting import (
    DateLike,
    current_month,
    days_in_month,
    month_key,
    round_half_up,
)

logger = logging.getLogger("plantpulse-cost")

LineDateKey = Tuple[str, str]


def _cost_data(labor: float, indirect: float, produced: int) -> CostData:
    total = labor + indirect
    return CostData(
        labor_cost=labor,
        indirect_cost=indirect,
        total_cost=total,
        quantity_produced=produced,
        cost_per_unit=total / produced if produced > 0 else 0.0,
    )


class CostAllocationEngine:
    """
    Cost attribution over one snapshot of the cost ledgers.

    All monetary values are in the factory currency; nothing is rounded here,
    rounding is left to the aggregate/presentation layer.
    """

    def __init__(
        self,
        cost_centers: Iterable[CostCenter] = (),
        cost_center_values: Iterable[CostCenterValue] = (),
        cost_allocations: Iterable[CostAllocation] = (),
        hourly_rate: float = 0.0,
        supervisor_hourly_rates: Optional[Mapping[str, float]] = None,
        now: Optional[DateLike] = None,
    ) -> None:
        self.cost_centers: Tuple[CostCenter, ...] = tuple(cost_centers)
        self.hourly_rate: float = max(0.0, float(hourly_rate or 0.0))
        self.supervisor_hourly_rates: Dict[str, float] = dict(supervisor_hourly_rates or {})
        self.now = now

        # First record per (center, month) wins, as in the ledger screens
        self._values: Dict[LineDateKey, CostCenterValue] = {}
        for value in cost_center_values:
            self._values.setdefault((value.cost_center_id, value.month), value)
        self._allocations: Dict[LineDateKey, CostAllocation] = {}
        for allocation in cost_allocations:
            self._allocations.setdefault((allocation.cost_center_id, allocation.month), allocation)

        self._monthly_cache: Dict[LineDateKey, float] = {}
        self._cache_hits = 0
        self._cache_misses = 0

        logger.debug(
            f"Cost engine ready: {len(self.cost_centers)} centers, "
            f"{len(self._values)} ledger values, {len(self._allocations)} allocations, "
            f"hourly_rate={self.hourly_rate}"
        )

    # -----------------------------------------------------------------------
    # 1. Monthly / daily indirect cost per line
    # -----------------------------------------------------------------------

    def _line_share(self, center_id: str, month: str, line_id: str) -> Optional[LineAllocationShare]:
        allocation = self._allocations.get((center_id, month))
        if allocation is None:
            return None
        for share in allocation.allocations:
            if share.line_id == line_id:
                return share
        return None

    def _allocated_centers(self, line_id: str, month: str) -> Iterator[Tuple[CostCenter, float, float]]:
        """Yield (center, percentage, monthly amount allocated to the line)."""
        for center in self.cost_centers:
            if center.type != "indirect" or not center.is_active or not center.id:
                continue
            value = self._values.get((center.id, month))
            if value is None or value.amount <= 0:
                continue
            share = self._line_share(center.id, month, line_id)
            if share is None or share.percentage <= 0:
                continue
            yield center, share.percentage, value.amount * (share.percentage / 100)

    def monthly_indirect_cost(self, line_id: str, month: str) -> float:
        """Indirect cost allocated to ``line_id`` for "YYYY-MM", memoized per pass."""
        key = (line_id, month)
        cached = self._monthly_cache.get(key)
        if cached is not None:
            self._cache_hits += 1
            return cached
        self._cache_misses += 1
        total = sum(monthly for _, _, monthly in self._allocated_centers(line_id, month))
        self._monthly_cache[key] = total
        logger.debug(f"Indirect cost line={line_id} month={month}: {total:.2f}")
        return total

    def daily_indirect_cost(self, line_id: str, month: str) -> float:
        days = days_in_month(month)
        if days <= 0:
            return 0.0
        return self.monthly_indirect_cost(line_id, month) / days

    def cache_info(self) -> Dict[str, int]:
        return {
            "entries": len(self._monthly_cache),
            "hits": self._cache_hits,
            "misses": self._cache_misses,
        }

    def line_allocated_cost_summary(self, line_id: str, month: str) -> LineAllocatedCostSummary:
        """Per-center breakdown of what ``line_id`` carries for the month."""
        days = days_in_month(month)
        if not line_id or days <= 0:
            return LineAllocatedCostSummary(
                month=month,
                days_in_month=max(days, 0),
                total_monthly_allocated=0.0,
                total_daily_allocated=0.0,
            )

        centers = [
            AllocatedCenterCost(
                cost_center_id=center.id or "",
                cost_center_name=center.name,
                monthly_allocated=monthly,
                daily_allocated=monthly / days,
                percentage=percentage,
            )
            for center, percentage, monthly in self._allocated_centers(line_id, month)
        ]
        centers.sort(key=lambda c: c.monthly_allocated, reverse=True)
        total_monthly = sum(c.monthly_allocated for c in centers)

        return LineAllocatedCostSummary(
            month=month,
            days_in_month=days,
            total_monthly_allocated=total_monthly,
            total_daily_allocated=total_monthly / days,
            centers=centers,
        )

    # -----------------------------------------------------------------------
    # 2. Labor & supervisor cost
    # -----------------------------------------------------------------------

    def report_labor_cost(self, report: ProductionReport) -> float:
        return report.workers_count * report.work_hours * self.hourly_rate

    def labor_cost(self, reports: Iterable[ProductionReport]) -> float:
        return sum(self.report_labor_cost(r) for r in reports)

    def supervisor_hourly_rate(self, report: ProductionReport) -> float:
        if not report.employee_id:
            return self.hourly_rate
        specific = self.supervisor_hourly_rates.get(report.employee_id, 0.0)
        return specific if specific > 0 else self.hourly_rate

    def supervisor_cost(self, report: ProductionReport) -> float:
        """Saved snapshot when present, otherwise rate × hours."""
        if report.supervisor_indirect_cost > 0:
            return report.supervisor_indirect_cost
        return self.supervisor_hourly_rate(report) * report.work_hours

    # -----------------------------------------------------------------------
    # 3. Redistribution by production share
    # -----------------------------------------------------------------------

    @staticmethod
    def line_date_totals(reports: Iterable[ProductionReport]) -> Dict[LineDateKey, int]:
        """Produced quantity per (line, date); zero-output reports add nothing."""
        totals: Dict[LineDateKey, int] = {}
        for r in reports:
            if r.quantity_produced <= 0:
                continue
            key = (r.line_id, r.date)
            totals[key] = totals.get(key, 0) + r.quantity_produced
        return totals

    def indirect_share(self, report: ProductionReport, line_date_totals: Mapping[LineDateKey, int]) -> float:
        """
        This report's slice of its line's indirect cost for the report date:

            daily_indirect_cost(line, month) × produced / line output on that date

        Summed over every report of a line on a date this gives back the line's
        daily rate, so a full month of dates gives back the monthly figure.
        """
        if report.quantity_produced <= 0:
            return 0.0
        line_total = line_date_totals.get((report.line_id, report.date), 0)
        if line_total <= 0:
            return 0.0
        daily = self.daily_indirect_cost(report.line_id, month_key(report.date, self.now))
        return daily * (report.quantity_produced / line_total)

    def indirect_by_date(self, reports: Sequence[ProductionReport]) -> Dict[str, float]:
        """Accumulated indirect contributions keyed by report date."""
        totals = self.line_date_totals(reports)
        by_date: Dict[str, float] = {}
        for r in reports:
            share = self.indirect_share(r, totals)
            if share:
                by_date[r.date] = by_date.get(r.date, 0.0) + share
        return by_date

    def total_indirect_cost(self, reports: Sequence[ProductionReport]) -> float:
        return sum(self.indirect_by_date(reports).values())

    def scope_cost(self, reports: Sequence[ProductionReport]) -> CostData:
        """Labor + redistributed indirect cost for any report scope."""
        produced = sum(r.quantity_produced for r in reports)
        return _cost_data(self.labor_cost(reports), self.total_indirect_cost(reports), produced)

    # -----------------------------------------------------------------------
    # 4. Roll-ups
    # -----------------------------------------------------------------------

    def build_line_costs(
        self,
        line_ids: Iterable[str],
        day_reports: Sequence[ProductionReport],
        month: Optional[str] = None,
    ) -> Dict[str, CostData]:
        """Cost of one day's work per line; each line carries its full daily rate."""
        month = month or current_month(self.now)
        result: Dict[str, CostData] = {}
        for line_id in line_ids:
            line_reports = [r for r in day_reports if r.line_id == line_id]
            produced = sum(r.quantity_produced for r in line_reports)
            result[line_id] = _cost_data(
                self.labor_cost(line_reports),
                self.daily_indirect_cost(line_id, month),
                produced,
            )
        return result

    def build_product_costs(
        self,
        product_ids: Iterable[str],
        day_reports: Sequence[ProductionReport],
        month: Optional[str] = None,
    ) -> Dict[str, CostData]:
        """Cost of one day's work per product, line rates split by product share."""
        month = month or current_month(self.now)
        line_totals: Dict[str, int] = {}
        for r in day_reports:
            line_totals[r.line_id] = line_totals.get(r.line_id, 0) + r.quantity_produced

        result: Dict[str, CostData] = {}
        for product_id in product_ids:
            product_reports = [r for r in day_reports if r.product_id == product_id]
            if not product_reports:
                result[product_id] = CostData()
                continue

            by_line: Dict[str, int] = {}
            for r in product_reports:
                by_line[r.line_id] = by_line.get(r.line_id, 0) + r.quantity_produced

            indirect = 0.0
            for line_id, qty in by_line.items():
                line_total = line_totals.get(line_id, 0)
                if line_total <= 0:
                    continue
                indirect += self.daily_indirect_cost(line_id, month) * (qty / line_total)

            result[product_id] = _cost_data(
                self.labor_cost(product_reports),
                indirect,
                sum(r.quantity_produced for r in product_reports),
            )
        return result

    def build_reports_costs(self, reports: Sequence[ProductionReport]) -> Dict[str, float]:
        """Cost per unit for every identified report with output."""
        result: Dict[str, float] = {}
        if self.hourly_rate <= 0 and not self.cost_centers:
            return result

        totals = self.line_date_totals(reports)
        for r in reports:
            if not r.id or r.quantity_produced <= 0:
                continue
            cost = self.report_labor_cost(r) + self.indirect_share(r, totals) + self.supervisor_cost(r)
            result[r.id] = cost / r.quantity_produced
        return result

    def product_avg_cost(self, product_id: str, reports: Sequence[ProductionReport]) -> CostData:
        """Weighted (total cost / total qty) unit cost of a product."""
        totals = self.line_date_totals(reports)
        labor = indirect = 0.0
        qty = 0
        for r in reports:
            if r.product_id != product_id or r.quantity_produced <= 0:
                continue
            labor += self.report_labor_cost(r)
            indirect += self.indirect_share(r, totals)
            qty += r.quantity_produced
        return _cost_data(labor, indirect, qty)

    def product_cost_by_line(
        self,
        product_id: str,
        reports: Sequence[ProductionReport],
        line_names: Optional[Mapping[str, str]] = None,
    ) -> List[ProductLineCost]:
        names = line_names or {}
        totals = self.line_date_totals(reports)
        per_line: Dict[str, List[float]] = {}
        for r in reports:
            if r.product_id != product_id or r.quantity_produced <= 0:
                continue
            acc = per_line.setdefault(r.line_id, [0, 0.0])
            acc[0] += r.quantity_produced
            acc[1] += self.report_labor_cost(r) + self.indirect_share(r, totals)

        return [
            ProductLineCost(
                line_id=line_id,
                line_name=names.get(line_id, MISSING_LABEL),
                total_produced=int(produced),
                total_cost=cost,
                cost_per_unit=cost / produced if produced > 0 else 0.0,
            )
            for line_id, (produced, cost) in per_line.items()
        ]

    def product_cost_history(self, product_id: str, reports: Sequence[ProductionReport]) -> List[DailyCostPoint]:
        """Unit cost trend of a product, one point per date."""
        totals = self.line_date_totals(reports)
        daily: Dict[str, List[float]] = {}
        for r in reports:
            if r.product_id != product_id or r.quantity_produced <= 0:
                continue
            acc = daily.setdefault(r.date, [0.0, 0])
            acc[0] += self.report_labor_cost(r) + self.indirect_share(r, totals)
            acc[1] += r.quantity_produced

        return [
            DailyCostPoint(
                date=day,
                cost_per_unit=cost / qty if qty > 0 else 0.0,
                quantity=int(qty),
            )
            for day, (cost, qty) in sorted(daily.items())
        ]

    def daily_production_cost_chart(
        self,
        reports: Sequence[ProductionReport],
        product_id: str = "",
        line_id: str = "",
    ) -> List[DailyProductionCostPoint]:
        """
        Per-date production and cost for an optional product/line filter.

        The share denominator always comes from the unfiltered report set so a
        filtered product only carries its own slice of each line's cost.
        """
        filtered = [
            r for r in reports
            if (not product_id or r.product_id == product_id)
            and (not line_id or r.line_id == line_id)
        ]
        if not filtered:
            return []

        totals = self.line_date_totals(reports)
        by_date: Dict[str, List[ProductionReport]] = {}
        for r in filtered:
            by_date.setdefault(r.date, []).append(r)

        points: List[DailyProductionCostPoint] = []
        for day, day_reports in sorted(by_date.items()):
            production = sum(r.quantity_produced for r in day_reports)
            labor = self.labor_cost(day_reports)
            indirect = sum(self.indirect_share(r, totals) for r in day_reports)
            total = labor + indirect
            points.append(DailyProductionCostPoint(
                date=day,
                day=day[8:],
                production=production,
                labor_cost=labor,
                indirect_cost=indirect,
                total_cost=total,
                cost_per_unit=total / production if production > 0 else 0.0,
            ))
        return points

    def estimate_report_cost(
        self,
        workers_count: float,
        work_hours: float,
        quantity_produced: int,
        supervisor_hourly_rate: float,
        line_id: str,
        report_date: Optional[str] = None,
    ) -> CostData:
        """Live preview for a report being entered: the line carries its full daily rate."""
        if quantity_produced <= 0:
            return CostData()
        labor = workers_count * work_hours * self.hourly_rate
        supervisor = max(0.0, supervisor_hourly_rate or 0.0) * work_hours
        shared = self.daily_indirect_cost(line_id, month_key(report_date, self.now)) if line_id else 0.0
        return _cost_data(labor, shared + supervisor, quantity_produced)

    # -----------------------------------------------------------------------
    # 5. Ledger status
    # -----------------------------------------------------------------------

    def cost_allocation_completion(self, month: Optional[str] = None) -> int:
        """% of active centers that have both a value and an allocation for the month."""
        month = month or current_month(self.now)
        active = [c for c in self.cost_centers if c.is_active]
        if not active:
            return 0
        complete = sum(
            1 for c in active
            if (c.id, month) in self._values and (c.id, month) in self._allocations
        )
        return round_half_up(complete / len(active) * 100)

    def cost_centers_summary(
        self,
        month: Optional[str] = None,
        limit: int = COST_CENTERS_SUMMARY_LIMIT,
    ) -> List[CostCenterSummary]:
        month = month or current_month(self.now)
        rows: List[CostCenterSummary] = []
        for center in self.cost_centers:
            if not center.is_active:
                continue
            value = self._values.get((center.id, month))
            rows.append(CostCenterSummary(
                name=center.name,
                type=center.type,
                amount=value.amount if value else 0.0,
                allocated=(center.id, month) in self._allocations,
            ))
        return rows[:limit]


# ---------------------------------------------------------------------------
# Helpers outside a pass
# ---------------------------------------------------------------------------

def build_supervisor_hourly_rates(employees: Iterable[Employee]) -> Dict[str, float]:
    """Hourly rates of active supervisor-level employees keyed by employee id."""
    return {
        e.id: max(0.0, e.hourly_rate)
        for e in employees
        if e.id and e.level == SUPERVISOR_LEVEL and e.is_active
    }


def product_cost_breakdown(
    product: Product,
    materials: Iterable[ProductMaterial],
    monthly_avg_unit_cost: float = 0.0,
) -> ProductCostBreakdown:
    """
    Landed unit cost of a product:

        imported unit cost + Σ(material qty × unit cost) + inner box
        + outer carton / units per carton + production overhead share
    """
    raw_material = sum(m.quantity_used * m.unit_cost for m in materials)
    carton_share = (
        product.outer_carton_cost / product.units_per_carton
        if product.units_per_carton > 0 else 0.0
    )
    total = (
        product.imported_unit_cost
        + raw_material
        + product.inner_box_cost
        + carton_share
        + monthly_avg_unit_cost
    )
    return ProductCostBreakdown(
        imported_unit_cost=product.imported_unit_cost,
        raw_material_cost=raw_material,
        inner_box_cost=product.inner_box_cost,
        outer_carton_cost=product.outer_carton_cost,
        units_per_carton=product.units_per_carton,
        carton_share=carton_share,
        production_overhead_share=monthly_avg_unit_cost,
        total_calculated_cost=total,
    )
