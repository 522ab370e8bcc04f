"""
conftest.py — Shared pytest fixtures for the plantpulse test suite.

No database or external service fixtures are defined here.  All tests in this
suite are pure unit tests that exercise the computation layer in isolation.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``plantpulse.*`` imports resolve correctly regardless of where pytest is
    invoked.
"""

import sys
import os
from datetime import date

import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any plantpulse imports.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# Fixed "today" for every date-sensitive test
TODAY = date(2024, 1, 20)


@pytest.fixture(scope="session")
def today():
    return TODAY


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def make_report():
    """
    Factory for ProductionReport with sensible defaults:
    line L1, product P1, supervisor S1, 2024-01-10, 100 produced, 4 workers × 8 h.
    """
    from plantpulse.models.records import ProductionReport

    def _make(**overrides):
        data = {
            "id": "R1",
            "date": "2024-01-10",
            "lineId": "L1",
            "productId": "P1",
            "supervisorId": "S1",
            "quantityProduced": 100,
            "quantityWaste": 0,
            "workersCount": 4,
            "workHours": 8,
        }
        data.update(overrides)
        return ProductionReport.model_validate(data)

    return _make


@pytest.fixture(scope="session")
def cost_ledger():
    """
    One month (2024-01, 31 days) of cost-center data:

      C1 indirect, active, 3100 → L1 60%, L2 40%
      C2 indirect, active,  620 → L1 100%
      C3 direct,   active, 9999 → L1 100%   (direct centers never allocate)
      C4 indirect, inactive, 5000 → L1 100%

    Monthly indirect for L1 = 3100×0.6 + 620 = 2480  (daily 80.0)
    Monthly indirect for L2 = 3100×0.4       = 1240  (daily 40.0)
    """
    from plantpulse.models.records import CostAllocation, CostCenter, CostCenterValue

    centers = [
        CostCenter(id="C1", name="Rent", type="indirect", is_active=True),
        CostCenter(id="C2", name="Electricity", type="indirect", is_active=True),
        CostCenter(id="C3", name="Materials", type="direct", is_active=True),
        CostCenter(id="C4", name="Old lease", type="indirect", is_active=False),
    ]
    values = [
        CostCenterValue(cost_center_id="C1", month="2024-01", amount=3100),
        CostCenterValue(cost_center_id="C2", month="2024-01", amount=620),
        CostCenterValue(cost_center_id="C3", month="2024-01", amount=9999),
        CostCenterValue(cost_center_id="C4", month="2024-01", amount=5000),
    ]
    allocations = [
        CostAllocation.model_validate({
            "costCenterId": "C1",
            "month": "2024-01",
            "allocations": [
                {"lineId": "L1", "percentage": 60},
                {"lineId": "L2", "percentage": 40},
            ],
        }),
        CostAllocation.model_validate({
            "costCenterId": "C2",
            "month": "2024-01",
            "allocations": [{"lineId": "L1", "percentage": 100}],
        }),
        CostAllocation.model_validate({
            "costCenterId": "C3",
            "month": "2024-01",
            "allocations": [{"lineId": "L1", "percentage": 100}],
        }),
        CostAllocation.model_validate({
            "costCenterId": "C4",
            "month": "2024-01",
            "allocations": [{"lineId": "L1", "percentage": 100}],
        }),
    ]
    return centers, values, allocations


@pytest.fixture
def cost_engine(cost_ledger, today):
    """Fresh CostAllocationEngine over ``cost_ledger`` at 10/hour."""
    from plantpulse.services.cost_allocation import CostAllocationEngine

    centers, values, allocations = cost_ledger
    return CostAllocationEngine(centers, values, allocations, hourly_rate=10, now=today)


@pytest.fixture
def labor_only_engine(today):
    """Engine with a 10/hour labor rate and no cost centers."""
    from plantpulse.services.cost_allocation import CostAllocationEngine

    return CostAllocationEngine(hourly_rate=10, now=today)


@pytest.fixture(scope="session")
def lines():
    from plantpulse.models.records import ProductionLine

    return [
        ProductionLine(id="L1", name="Line A", status="active", max_workers=10, daily_working_hours=8),
        ProductionLine(id="L2", name="Line B", status="idle", max_workers=5, daily_working_hours=8),
        ProductionLine(id="L3", name="Line C", status="maintenance", max_workers=8, daily_working_hours=8),
    ]


@pytest.fixture(scope="session")
def products():
    from plantpulse.models.records import Product

    return [
        Product(id="P1", name="Kettle", code="K-1", model="Kitchen", opening_balance=50),
        Product(id="P2", name="Toaster", code="T-1", model="", opening_balance=0),
    ]


@pytest.fixture(scope="session")
def supervisors():
    from plantpulse.models.records import Supervisor

    return [
        Supervisor(id="S1", name="Mona"),
        Supervisor(id="S2", name="Karim"),
    ]
