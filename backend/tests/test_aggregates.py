"""
test_aggregates.py — Unit tests for the aggregate builders.

Tests cover:
  - Standard cost baseline, cost variance, plan achievement (with both
    "active plan" predicates)
  - KPI snapshot on the reference example (100 produced, 5 waste, 4×8 h, 10/h)
  - Daily chart, cost breakdown, rankings, product summary
  - Grouped summaries, line / supervisor detail views
  - Product cards, production-line cards, dashboard KPI row, smart planning
  - Purity: same input → identical output, inputs untouched
"""

import copy

import pytest

from plantpulse.models.records import (
    LineProductConfig,
    LineStatus,
    ProductionPlan,
)
from plantpulse.services import aggregates


@pytest.fixture(scope="module")
def configs():
    return [
        LineProductConfig(line_id="L1", product_id="P1", standard_assembly_time=12),
        # Duplicate for the same pair: ignored
        LineProductConfig(line_id="L1", product_id="P1", standard_assembly_time=99),
        LineProductConfig(line_id="L2", product_id="P2", standard_assembly_time=6),
    ]


def _plan(**overrides):
    data = {
        "id": "PL1",
        "lineId": "L1",
        "productId": "P1",
        "plannedQuantity": 1000,
        "startDate": "2024-01-10",
        "status": "in_progress",
    }
    data.update(overrides)
    return ProductionPlan.model_validate(data)


# ===========================================================================
# Class 1: Baseline, variance, plan achievement
# ===========================================================================

class TestStandardBaseline:

    def test_first_config_wins(self, configs):
        found = aggregates.find_line_product_config(configs, "L1", "P1")
        assert found.standard_assembly_time == 12
        assert aggregates.find_line_product_config(configs, "L3", "P1") is None

    def test_weighted_baseline(self, make_report, configs):
        """
        L1/P1: 12 min → 12/60 × 10 = 2.0 per unit × 100 units
        L2/P2:  6 min →  6/60 × 10 = 1.0 per unit × 300 units
        L3/P1: no config → excluded
        standard avg = (200 + 300) / 400 = 1.25
        """
        reports = [
            make_report(id="a", lineId="L1", productId="P1", quantityProduced=100),
            make_report(id="b", lineId="L2", productId="P2", quantityProduced=300),
            make_report(id="c", lineId="L3", productId="P1", quantityProduced=500),
        ]
        assert aggregates.standard_cost_baseline(reports, configs, 10) == pytest.approx(1.25)

    def test_no_baseline(self, make_report):
        assert aggregates.standard_cost_baseline([make_report()], [], 10) == 0

    def test_cost_variance(self):
        """(2.3 − 2.0) / 2.0 × 100 = 15.0."""
        assert aggregates.cost_variance(2.3, 2.0) == 15.0
        assert aggregates.cost_variance(1.5, 2.0) == -25.0
        assert aggregates.cost_variance(5.0, 0) == 0


class TestPlanAchievement:

    def test_dashboard_predicate(self, make_report):
        """
        in_progress 1000 planned, 950 actual  → achieved (≥ 900)
        completed    500 planned, 100 actual  → not achieved
        planned      200 planned, 200 actual  → not active for the dashboard
        → 1 of 2 = 50%
        """
        plans = [
            _plan(id="A", lineId="L1", productId="P1"),
            _plan(id="B", lineId="L2", productId="P1", plannedQuantity=500, status="completed"),
            _plan(id="C", lineId="L3", productId="P1", plannedQuantity=200, status="planned"),
        ]
        plan_reports = {
            "L1_P1": [make_report(quantityProduced=950)],
            "L2_P1": [make_report(lineId="L2", quantityProduced=100)],
            "L3_P1": [make_report(lineId="L3", quantityProduced=200)],
        }
        assert aggregates.plan_achievement_rate(plans, plan_reports) == 50

    def test_line_predicate(self, make_report):
        plans = [
            _plan(id="B", lineId="L2", plannedQuantity=500, status="completed"),
            _plan(id="C", lineId="L3", plannedQuantity=200, status="planned"),
        ]
        plan_reports = {"L3_P1": [make_report(lineId="L3", quantityProduced=200)]}
        rate = aggregates.plan_achievement_rate(plans, plan_reports, aggregates.line_active_plan)
        assert rate == 100

    def test_status_in_predicate(self):
        paused_only = aggregates.status_in("paused")
        assert paused_only(_plan(status="paused"))
        assert not paused_only(_plan(status="in_progress"))

    def test_no_active_plans(self):
        assert aggregates.plan_achievement_rate([_plan(status="cancelled")], {}) == 0


# ===========================================================================
# Class 2: KPI snapshot & charts
# ===========================================================================

class TestKPISnapshot:

    def test_reference_example(self, make_report, labor_only_engine):
        """
        100 produced, 5 waste, 4 workers × 8 h at 10/h:
          waste % = 5/105 = 4.8, efficiency = 100/105 = 95.2, labor = 320
        """
        report = make_report(quantityProduced=100, quantityWaste=5)
        kpis = aggregates.build_kpi_snapshot([report], labor_only_engine)
        assert kpis.total_production == 100
        assert kpis.total_waste == 5
        assert kpis.waste_percent == 4.8
        assert kpis.efficiency == 95.2
        assert kpis.total_labor_cost == pytest.approx(320)
        assert kpis.total_indirect_cost == 0
        assert kpis.avg_cost_per_unit == pytest.approx(3.2)
        assert kpis.cost_variance == 0

    def test_variance_against_standard(self, make_report, labor_only_engine, configs):
        """Actual 3.2/unit vs standard 12/60 × 10 = 2.0/unit → +60.0%."""
        kpis = aggregates.build_kpi_snapshot([make_report()], labor_only_engine, configs)
        assert kpis.standard_avg_cost == pytest.approx(2.0)
        assert kpis.cost_variance == 60.0

    def test_includes_indirect(self, make_report, cost_engine):
        kpis = aggregates.build_kpi_snapshot([make_report()], cost_engine)
        assert kpis.total_indirect_cost == pytest.approx(80)
        assert kpis.total_cost == pytest.approx(400)

    def test_empty_stream(self, labor_only_engine):
        kpis = aggregates.build_kpi_snapshot([], labor_only_engine)
        assert kpis.total_production == 0
        assert kpis.efficiency == 0
        assert kpis.waste_percent == 0
        assert kpis.avg_cost_per_unit == 0


class TestCharts:

    def test_daily_chart(self, make_report, labor_only_engine):
        reports = [
            make_report(id="a", date="2024-01-11", quantityProduced=64, workersCount=2, workHours=8),
            make_report(id="b", date="2024-01-10", quantityProduced=100),
        ]
        chart = aggregates.build_daily_chart(reports, labor_only_engine)
        assert [p.date for p in chart] == ["01-10", "01-11"]
        assert chart[0].cost_per_unit == 3.2
        assert chart[1].cost_per_unit == 2.5

    def test_daily_chart_zero_production(self, make_report, labor_only_engine):
        chart = aggregates.build_daily_chart([make_report(quantityProduced=0)], labor_only_engine)
        assert chart[0].cost_per_unit == 0

    def test_cost_breakdown(self, make_report, cost_engine, labor_only_engine):
        kpis = aggregates.build_kpi_snapshot([make_report()], cost_engine)
        pie = aggregates.build_cost_breakdown(kpis)
        assert [p.value for p in pie] == [320.0, 80.0]

        empty = aggregates.build_kpi_snapshot([], labor_only_engine)
        assert aggregates.build_cost_breakdown(empty) == []


class TestRankings:

    def test_top_lines(self, make_report, lines):
        reports = [
            make_report(id="a", lineId="L1", quantityProduced=10),
            make_report(id="b", lineId="L2", quantityProduced=30),
            make_report(id="c", lineId="L9", quantityProduced=20),
        ]
        ranked = aggregates.top_lines(reports, lines)
        assert [(r.name, r.production) for r in ranked] == [("Line B", 30), ("L9", 20), ("Line A", 10)]

    def test_top_products_limit(self, make_report, products):
        reports = [make_report(id=str(i), productId=f"X{i}", quantityProduced=i) for i in range(1, 8)]
        ranked = aggregates.top_products(reports, products)
        assert len(ranked) == 5
        assert ranked[0].id == "X7"

    def test_product_summary(self, make_report, products, labor_only_engine):
        reports = [
            make_report(id="a", productId="P1", quantityProduced=100),
            make_report(id="b", productId="P2", quantityProduced=160),
            make_report(id="c", productId="P2", quantityProduced=0),
        ]
        rows = aggregates.build_product_summary(reports, products, labor_only_engine)
        assert [r.id for r in rows] == ["P2", "P1"]
        assert rows[0].category == "Uncategorized"
        assert rows[0].avg_cost == pytest.approx(2.0)
        assert rows[1].category == "Kitchen"


# ===========================================================================
# Class 3: Grouped summaries & detail views
# ===========================================================================

class TestSummaries:

    def test_line_summaries_without_cost(self, make_report, lines):
        reports = [
            make_report(id="a", lineId="L1", quantityProduced=90, quantityWaste=10),
            make_report(id="b", lineId="L1", quantityProduced=110, quantityWaste=0),
            make_report(id="c", lineId="L2", quantityProduced=50),
        ]
        summaries = {s.key: s for s in aggregates.build_line_summaries(reports, lines)}
        assert summaries["L1"].produced == 200
        assert summaries["L1"].report_count == 2
        assert summaries["L1"].waste_ratio == 4.8
        assert summaries["L1"].cost_per_unit is None
        assert summaries["L2"].name == "Line B"

    def test_supervisor_summaries_with_cost(self, make_report, supervisors, labor_only_engine):
        reports = [make_report(supervisorId="S2")]
        summary = aggregates.build_supervisor_summaries(reports, supervisors, labor_only_engine)[0]
        assert summary.name == "Karim"
        assert summary.cost_per_unit == pytest.approx(3.2)

    def test_product_summaries_unknown_name(self, make_report, products):
        summary = aggregates.build_product_summaries([make_report(productId="P9")], products)[0]
        assert summary.name == "—"


class TestLineDetail:

    def test_detail(self, make_report, lines, configs):
        """
        L1 over two days, 4 workers × 8 h each, 160 + 160 units:
          avg time = 64 × 60 / 320 = 12.0; standard 12 → time efficiency 100.0
          utilization = 16 h / (2 days × 8 h) = 100.0
        """
        reports = [
            make_report(id="a", date="2024-01-10", quantityProduced=160),
            make_report(id="b", date="2024-01-11", quantityProduced=160),
            make_report(id="c", lineId="L2", quantityProduced=999),
        ]
        detail = aggregates.build_line_detail(lines[0], reports, configs)
        assert detail.total_produced == 320
        assert detail.avg_assembly_time == 12.0
        assert detail.standard_time == 12
        assert detail.time_efficiency == 100.0
        assert detail.unique_days == 2
        assert detail.utilization == 100.0
        assert len(detail.chart) == 2

    def test_detail_without_reports(self, lines):
        detail = aggregates.build_line_detail(lines[2], [], [])
        assert detail.utilization == 0
        assert detail.time_efficiency == 0


class TestSupervisorDetail:

    def test_today_and_month_totals(self, make_report, today):
        reports = [
            make_report(id="a", date="2024-01-20", quantityProduced=40, quantityWaste=2),
            make_report(id="b", date="2024-01-05", quantityProduced=60, quantityWaste=3),
            make_report(id="c", date="2023-12-30", quantityProduced=100, quantityWaste=5),
        ]
        detail = aggregates.build_supervisor_detail(reports, now=today)
        assert detail.total_produced == 200
        assert detail.today_produced == 40
        assert detail.today_waste == 2
        assert detail.month_produced == 100
        assert detail.month_waste == 5
        assert detail.unique_days == 3
        assert detail.avg_daily_production == 67


# ===========================================================================
# Class 4: Cards, KPI row, smart planning
# ===========================================================================

class TestProductCards:

    def test_stock_balance_and_status(self, make_report, products, configs):
        reports = [
            make_report(id="a", productId="P1", quantityProduced=80, quantityWaste=5),
            make_report(id="b", productId="P2", quantityProduced=3, quantityWaste=3),
        ]
        cards = {c.id: c for c in aggregates.build_products(products, reports, configs)}
        assert cards["P1"].stock_level == 125
        assert cards["P1"].stock_status == "available"
        assert cards["P1"].avg_assembly_time == 12
        assert cards["P2"].stock_level == 0
        assert cards["P2"].stock_status == "out"

    def test_low_stock(self, products):
        cards = aggregates.build_products(products[:1], [], [])
        assert cards[0].stock_status == "low"


class TestProductionLineCards:

    def test_plan_drives_card(self, make_report, lines, products, supervisors):
        plan = _plan(plannedQuantity=1000)
        history = [make_report(id="h1", date="2024-01-15", quantityProduced=300, supervisorId="S1")]
        today_reports = [
            make_report(id="h1", date="2024-01-15", quantityProduced=300),
            make_report(id="t1", date="2024-01-20", quantityProduced=100, workersCount=6, supervisorId="S2"),
        ]
        cards = aggregates.build_production_lines(
            lines[:1], products, supervisors, today_reports,
            plans=[plan], plan_reports={"L1_P1": history},
        )
        card = cards[0]
        assert card.plan_id == "PL1"
        assert card.achievement == 400
        assert card.target == 1000
        assert card.efficiency == 40
        assert card.current_product == "Kettle"
        assert card.supervisor_name == "Karim"
        assert card.workers_count == 6

    def test_fallback_to_line_status(self, make_report, lines, products, supervisors):
        statuses = [LineStatus(line_id="L2", current_product_id="P2", target_today_qty=200)]
        today_reports = [
            make_report(id="a", lineId="L2", quantityProduced=100, workersCount=3),
            make_report(id="b", lineId="L2", quantityProduced=50, workersCount=5, supervisorId="S2"),
        ]
        cards = aggregates.build_production_lines(lines[1:2], products, supervisors, today_reports, statuses)
        card = cards[0]
        assert card.plan_id is None
        assert card.achievement == 150
        assert card.efficiency == 75
        assert card.current_product == "Toaster"
        assert card.supervisor_name == "Mona"
        assert card.workers_count == 5
        assert card.hours_used == 16

    def test_completed_plan_ignored_by_line_view(self, lines, products, supervisors):
        cards = aggregates.build_production_lines(
            lines[:1], products, supervisors, [], plans=[_plan(status="completed")],
        )
        assert cards[0].plan_id is None
        assert cards[0].target == 0
        assert cards[0].supervisor_name == "—"


class TestDashboardKPIs:

    def test_today_only(self, make_report):
        kpis = aggregates.build_dashboard_kpis([make_report(quantityProduced=95, quantityWaste=5)])
        assert kpis.today_production == 95
        assert kpis.monthly_production == 95
        assert kpis.efficiency == 95.0
        assert kpis.waste_ratio == 5.0

    def test_with_monthly(self, make_report):
        kpis = aggregates.build_dashboard_kpis([make_report()], [make_report(), make_report(id="R2")])
        assert kpis.monthly_production == 200


class TestSmartPlanning:

    def test_standard_time_used(self, make_report, lines):
        """
        Standard 6 min on active/idle lines only (L1 10×8, L2 5×8):
          L1 = 800, L2 = 400 → total 1200, per line 600, 3000 units → 2.5 days
        """
        configs = [LineProductConfig(line_id="L2", product_id="P2", standard_assembly_time=6)]
        estimate = aggregates.smart_planning("P2", 3000, [], lines, configs)
        assert estimate.avg_assembly_time == 6
        assert estimate.total_daily_capacity == 1200
        assert estimate.daily_capacity_per_line == 600
        assert estimate.estimated_days == 2.5
        assert estimate.active_lines_count == 2

    def test_falls_back_to_today_average(self, make_report, lines):
        """No config: today's P1 average = 4×8×60/100 = 19.2 min."""
        estimate = aggregates.smart_planning("P1", 100, [make_report()], lines, [])
        assert estimate.avg_assembly_time == 19.2
        assert estimate.total_daily_capacity == 250 + 125

    def test_invalid_request(self, lines):
        assert aggregates.smart_planning("", 100, [], lines) is None
        assert aggregates.smart_planning("P1", 0, [], lines) is None


# ===========================================================================
# Class 5: Purity
# ===========================================================================

class TestPurity:

    def test_repeatable_and_non_mutating(self, make_report, cost_ledger, today, lines, products):
        from plantpulse.services.cost_allocation import CostAllocationEngine

        centers, values, allocations = cost_ledger
        reports = [
            make_report(id="a", quantityProduced=100, quantityWaste=4),
            make_report(id="b", date="2024-01-11", lineId="L2", productId="P2", quantityProduced=70),
        ]
        before = copy.deepcopy(reports)

        def run():
            engine = CostAllocationEngine(centers, values, allocations, hourly_rate=10, now=today)
            return (
                aggregates.build_kpi_snapshot(list(reports), engine),
                aggregates.build_daily_chart(list(reports), engine),
                aggregates.build_product_summary(list(reports), products, engine),
                aggregates.top_lines(list(reports), lines),
            )

        assert run() == run()
        assert reports == before
