"""
Operational input records consumed by the metrics engine.

Records arrive from the report store as loosely-structured documents with
camelCase keys.  Every model here validates those documents directly and is
frozen, so the engine can never mutate source data.  Missing, empty or
unparseable numeric fields are read as 0 (``value or 0`` semantics) and count
fields are never negative.  A null flag or list falls back to the field's
default, and numeric ids or dates are read as their text.
"""
import math
from typing import Any, Mapping, Optional, Tuple, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def _to_number(value: Any, integral: bool = False) -> float:
    """Best-effort numeric coercion; anything unusable becomes 0."""
    if value is None or value == "" or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return int(number) if integral else number


def _to_text(value: Any) -> Any:
    """Numbers become their text (7.0 → "7"); everything else passes through."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _accepts_str(annotation: Any) -> bool:
    if annotation is str:
        return True
    return get_origin(annotation) is Union and str in get_args(annotation)


class SourceRecord(BaseModel):
    """Base for every record read from the store."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def _coerce_loose_fields(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        for name, field in cls.model_fields.items():
            keys = [k for k in (field.alias, name) if k and k in data]
            if not keys:
                continue
            key = keys[0]
            annotation, value = field.annotation, data[key]
            if annotation in (int, float):
                number = _to_number(value, integral=annotation is int)
                data[key] = max(0, number)
            elif annotation is bool:
                if value is None:
                    data[key] = field.default
            elif get_origin(annotation) is tuple:
                if value is None:
                    data[key] = ()
            elif _accepts_str(annotation):
                if value is None and annotation is str:
                    data[key] = field.default if isinstance(field.default, str) else ""
                else:
                    data[key] = _to_text(value)
        return data


# ---------------------------------------------------------------------------
# Production
# ---------------------------------------------------------------------------

class ProductionReport(SourceRecord):
    """One shift's output for a (line, product, supervisor, date) tuple."""

    id: Optional[str] = None
    date: str = ""                       # "YYYY-MM-DD"
    line_id: str = ""
    product_id: str = ""
    supervisor_id: str = ""
    employee_id: Optional[str] = None
    quantity_produced: int = 0
    quantity_waste: int = 0
    workers_count: int = 0
    work_hours: float = 0.0
    # Snapshot of the supervisor's cost saved with the report (0 = not saved)
    supervisor_indirect_cost: float = 0.0


class LineProductConfig(SourceRecord):
    """Standard assembly time (minutes/unit) for a (line, product) pair."""

    id: Optional[str] = None
    line_id: str = ""
    product_id: str = ""
    standard_assembly_time: float = 0.0


class ProductionPlan(SourceRecord):
    id: Optional[str] = None
    line_id: str = ""
    product_id: str = ""
    planned_quantity: int = 0
    produced_quantity: int = 0
    start_date: str = ""
    status: str = "planned"
    priority: str = "medium"


class ProductionLine(SourceRecord):
    id: Optional[str] = None
    name: str = ""
    status: str = "idle"
    max_workers: int = 0
    daily_working_hours: float = 0.0


class LineStatus(SourceRecord):
    """Today's target for a line when no production plan drives it."""

    id: Optional[str] = None
    line_id: str = ""
    current_product_id: str = ""
    target_today_qty: int = 0


class Product(SourceRecord):
    id: Optional[str] = None
    name: str = ""
    code: str = ""
    model: str = ""                      # category label
    opening_balance: int = 0
    imported_unit_cost: float = Field(0.0, alias="chineseUnitCost")
    inner_box_cost: float = 0.0
    outer_carton_cost: float = 0.0
    units_per_carton: int = 0


class ProductMaterial(SourceRecord):
    id: Optional[str] = None
    product_id: str = ""
    material_name: str = ""
    quantity_used: float = 0.0
    unit_cost: float = 0.0


class Supervisor(SourceRecord):
    id: Optional[str] = None
    name: str = ""


class Employee(SourceRecord):
    id: Optional[str] = None
    name: str = ""
    level: int = 0
    is_active: bool = True
    hourly_rate: float = 0.0


# ---------------------------------------------------------------------------
# Costs
# ---------------------------------------------------------------------------

class CostCenter(SourceRecord):
    id: Optional[str] = None
    name: str = ""
    type: str = "indirect"               # "direct" | "indirect"
    is_active: bool = True


class CostCenterValue(SourceRecord):
    """A month's monetary amount for a cost center."""

    id: Optional[str] = None
    cost_center_id: str = ""
    month: str = ""                      # "YYYY-MM"
    amount: float = 0.0


class LineAllocationShare(SourceRecord):
    line_id: str = ""
    percentage: float = 0.0


class CostAllocation(SourceRecord):
    """Distribution of one cost center's monthly amount across lines."""

    id: Optional[str] = None
    cost_center_id: str = ""
    month: str = ""
    allocations: Tuple[LineAllocationShare, ...] = ()


class LaborSettings(SourceRecord):
    """Process-wide rate used to cost worker-hours."""

    hourly_rate: float = 0.0
