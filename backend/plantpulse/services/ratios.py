"""
ratios.py — closed-form production ratios over raw counts.

Every function returns 0 when its denominator is 0 (or not positive);
nothing here raises or yields NaN.

Two efficiency notions:
  - efficiency()       achievement vs target, capped at 100
  - time_efficiency()  standard vs actual time, uncapped (>100 = beating standard)
"""

import math
from typing import Dict, Iterable, List, Sequence

from plantpulse.config import MISSING_LABEL
from plantpulse.models.outputs import DateTotals
from plantpulse.models.records import ProductionLine, ProductionReport
from plantpulse.services.formatting import round_half_up, round_to


def efficiency(current: float, target: float) -> int:
    if target == 0:
        return 0
    return min(round_half_up(current / target * 100), 100)


def waste_ratio(waste: float, total: float) -> float:
    if total == 0:
        return 0.0
    return round_to(waste / total * 100, 1)


def avg_assembly_time(reports: Iterable[ProductionReport]) -> float:
    """Minutes per unit: sum(workers × hours) × 60 / sum(produced)."""
    worker_hours = 0.0
    produced = 0
    for r in reports:
        worker_hours += r.workers_count * r.work_hours
        produced += r.quantity_produced
    if produced == 0:
        return 0.0
    return round_to(worker_hours * 60 / produced, 2)


def daily_capacity(max_workers: float, daily_hours: float, avg_assembly_time_minutes: float) -> int:
    if avg_assembly_time_minutes <= 0:
        return 0
    return int(math.floor(max_workers * daily_hours * 60 / avg_assembly_time_minutes))


def estimated_days(quantity: float, capacity: float) -> float:
    if capacity <= 0:
        return 0.0
    return round_to(quantity / capacity, 1)


def time_efficiency(standard_time: float, actual_time: float) -> float:
    if actual_time <= 0:
        return 0.0
    return round_to(standard_time / actual_time * 100, 1)


def utilization(actual_hours: float, available_hours: float) -> float:
    if available_hours <= 0:
        return 0.0
    return round_to(actual_hours / available_hours * 100, 1)


def plan_progress(actual: float, planned: float) -> int:
    if planned <= 0:
        return 0
    return min(round_half_up(actual / planned * 100), 100)


# ---------------------------------------------------------------------------
# Report-stream helpers
# ---------------------------------------------------------------------------

def count_unique_days(reports: Iterable[ProductionReport]) -> int:
    return len({r.date for r in reports})


def avg_daily_production(reports: Sequence[ProductionReport]) -> int:
    days = count_unique_days(reports)
    if days == 0:
        return 0
    return round_half_up(sum(r.quantity_produced for r in reports) / days)


def group_reports_by_date(reports: Iterable[ProductionReport]) -> List[DateTotals]:
    totals: Dict[str, List[int]] = {}
    for r in reports:
        acc = totals.setdefault(r.date, [0, 0])
        acc[0] += r.quantity_produced
        acc[1] += r.quantity_waste
    return [
        DateTotals(date=day, produced=acc[0], waste=acc[1])
        for day, acc in sorted(totals.items())
    ]


def find_best_line(reports: Iterable[ProductionReport], lines: Sequence[ProductionLine]) -> str:
    """Name of the line with the highest produced total; first seen wins ties."""
    by_line: Dict[str, int] = {}
    for r in reports:
        by_line[r.line_id] = by_line.get(r.line_id, 0) + r.quantity_produced
    best_id, best_qty = "", 0
    for line_id, qty in by_line.items():
        if qty > best_qty:
            best_id, best_qty = line_id, qty
    for line in lines:
        if line.id == best_id:
            return line.name
    return MISSING_LABEL
