"""
Tests for settlement figures, status transitions and the flattened
settlement view.
"""
import pytest
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

from busdesk.src import exceptions, validators
from busdesk.src.db import TripSettlement
from busdesk.src.enums import SettlementStatus
from busdesk.src.settlement import (
    SETTLEMENT_TRANSITIONS,
    formatSettlement,
    routeCode,
    settlementTotals,
    toNumber,
)


def fullSettlement():
    origin = SimpleNamespace(name="Bogota")
    destination = SimpleNamespace(name="Medellin")
    route = SimpleNamespace(id=4, origin=origin, destination=destination)
    bus = SimpleNamespace(
        plate_number="ABC-123",
        company_id=5,
        company=SimpleNamespace(name="Expreso Andino"),
        template=SimpleNamespace(name="Coach 40"),
    )
    schedule = SimpleNamespace(
        route_schedule=SimpleNamespace(route=route),
        bus=bus,
        primary_driver=SimpleNamespace(full_name="Carlos Rojas"),
        departure_date=datetime(2030, 5, 10, 21, 0),
    )
    return SimpleNamespace(
        id=1,
        schedule_id=9,
        schedule=schedule,
        total_income=Decimal("1000.00"),
        total_expenses=Decimal("250.50"),
        net_amount=Decimal("749.50"),
        status=SettlementStatus.PENDING,
        expenses=[
            SimpleNamespace(
                id=1,
                category_id=2,
                category=SimpleNamespace(name="Fuel"),
                amount=Decimal("200.50"),
                description="Full tank",
            ),
            SimpleNamespace(id=2, amount=Decimal("50"), description="Tolls"),
        ],
    )


# ============================================================
# FIGURES
# ============================================================

@pytest.mark.parametrize(
    "value, expected",
    [
        (Decimal("12.50"), 12.5),
        ("7", 7),
        (None, 0),
        ("abc", 0),
        (float("nan"), 0),
    ],
)
def test_to_number(value, expected):
    assert toNumber(value) == expected


def test_totals_are_recomputed_from_expenses():
    income, expenses, net = settlementTotals("1000", [Decimal("200.50"), 50, None])
    assert income == Decimal("1000")
    assert expenses == Decimal("250.50")
    assert net == Decimal("749.50")


def test_totals_without_expenses():
    assert settlementTotals(None, []) == (Decimal(0), Decimal(0), Decimal(0))


def test_route_code():
    assert routeCode("Bogota", "Medellin") == "BOG-MED"
    assert routeCode("Ica", "Lima") == "ICA-LIM"


# ============================================================
# TRANSITIONS
# ============================================================

@pytest.mark.parametrize(
    "old, new",
    [
        (SettlementStatus.PENDING, SettlementStatus.APPROVED),
        (SettlementStatus.PENDING, SettlementStatus.CANCELLED),
        (SettlementStatus.APPROVED, SettlementStatus.FINALIZED),
    ],
)
def test_allowed_transitions(old, new):
    assert validators.stateTransition(
        SETTLEMENT_TRANSITIONS, old, new, TripSettlement.status
    )


@pytest.mark.parametrize(
    "old, new",
    [
        (SettlementStatus.PENDING, SettlementStatus.FINALIZED),
        (SettlementStatus.APPROVED, SettlementStatus.PENDING),
        (SettlementStatus.FINALIZED, SettlementStatus.CANCELLED),
        (SettlementStatus.CANCELLED, SettlementStatus.PENDING),
    ],
)
def test_refused_transitions(old, new):
    with pytest.raises(exceptions.InvalidStateTransition):
        validators.stateTransition(
            SETTLEMENT_TRANSITIONS, old, new, TripSettlement.status
        )


def test_locked_settlements():
    for status in (SettlementStatus.APPROVED, SettlementStatus.FINALIZED):
        with pytest.raises(exceptions.SettlementLocked):
            validators.settlementUnlocked(SimpleNamespace(status=status))
    assert validators.settlementUnlocked(
        SimpleNamespace(status=SettlementStatus.PENDING)
    )


# ============================================================
# VIEW MODEL
# ============================================================

def test_format_full_settlement():
    view = formatSettlement(fullSettlement())

    assert view["route"] == "BOG-MED"
    assert view["route_name"] == "Bogota - Medellin"
    assert view["plate_number"] == "ABC-123"
    assert view["bus_type"] == "Coach 40"
    assert view["owner_name"] == "Expreso Andino"
    assert view["driver_name"] == "Carlos Rojas"
    assert view["departure_time"] == datetime(2030, 5, 10, 21, 0)
    assert view["total_income"] == 1000
    assert view["net_amount"] == 749.5
    assert [e["category"] for e in view["expenses"]] == ["Fuel", "Expense"]
    assert view["expenses"][0]["amount"] == 200.5


def test_format_without_schedule():
    view = formatSettlement(SimpleNamespace(id=3, schedule=None))

    assert view["route"] == "N/A"
    assert view["route_name"] == "N/A"
    assert view["plate_number"] == "N/A"
    assert view["bus_type"] == "Unknown"
    assert view["owner_name"] == "Unknown"
    assert view["driver_name"] is None
    assert view["total_income"] == 0
    assert view["total_expenses"] == 0
    assert view["expenses"] == []


def test_format_with_partial_chain():
    settlement = fullSettlement()
    settlement.schedule.route_schedule.route.destination = None
    settlement.schedule.bus.company = None
    settlement.schedule.bus.template = None
    settlement.schedule.primary_driver = None

    view = formatSettlement(settlement)

    assert view["route"] == "N/A"
    assert view["owner_name"] == "Company ID: 5"
    assert view["bus_type"] == "Unknown"
    assert view["driver_name"] is None
    assert view["plate_number"] == "ABC-123"
