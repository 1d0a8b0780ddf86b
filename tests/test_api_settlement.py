"""
Tests for trip settlements and their expenses through the dashboard API.
"""
import pytest
from datetime import timedelta

from busdesk.src.db import ExpenseCategory, Schedule, TripExpense, TripSettlement
from busdesk.src.enums import ScheduleStatus, SettlementStatus
from busdesk.src.urls import (
    URL_EXPENSE_CATEGORY,
    URL_SETTLEMENT,
    URL_SETTLEMENT_EXPENSE,
)

BASE_URL = "/dashboard"


@pytest.fixture
def trip(session, fleet, departure) -> int:
    schedule = Schedule(
        route_id=fleet["route_id"],
        route_schedule_id=fleet["route_schedule_id"],
        bus_id=fleet["bus_id"],
        primary_driver_id=fleet["driver_ids"][0],
        departure_date=departure,
        estimated_arrival_time=departure + timedelta(hours=9),
        status=ScheduleStatus.COMPLETED,
    )
    session.add(schedule)
    session.commit()
    return schedule.id


@pytest.fixture
def fuel(session) -> int:
    category = ExpenseCategory(name="Fuel")
    session.add(category)
    session.commit()
    return category.id


@pytest.fixture
def settle(client, trip, fuel):
    def settle(**extra):
        data = {
            "schedule_id": trip,
            "total_income": "1000.00",
            "details": "Night trip",
            "expenses": [
                {"category_id": fuel, "amount": "200.50", "description": "Full tank"},
                {"amount": "50.00", "description": "Tolls"},
            ],
        }
        data.update(extra)
        return client.post(BASE_URL + URL_SETTLEMENT, json=data)

    return settle


def setStatus(client, settlementId, status):
    return client.patch(
        BASE_URL + URL_SETTLEMENT, json={"id": settlementId, "status": status}
    )


def test_create_settlement_computes_totals(settle, events):
    response = settle()

    assert response.status_code == 201, response.text
    settlement = response.json()
    assert settlement["status"] == SettlementStatus.PENDING
    assert settlement["total_income"] == 1000
    assert settlement["total_expenses"] == 250.5
    assert settlement["net_amount"] == 749.5
    assert [e["category"] for e in settlement["expenses"]] == ["Fuel", "Expense"]
    assert events[-1]["id"] == settlement["id"]


def test_settlement_view_walks_the_trip(settle):
    settlement = settle().json()

    assert settlement["route"] == "BOG-MED"
    assert settlement["route_name"] == "Bogota - Medellin"
    assert settlement["plate_number"] == "ABC-123"
    assert settlement["bus_type"] == "Coach 40"
    assert settlement["owner_name"] == "Expreso Andino"
    assert settlement["driver_name"] == "Carlos Rojas"


def test_trip_is_settled_once(settle):
    assert settle().status_code == 201
    response = settle()
    assert response.status_code == 409
    assert response.headers["X-Error"] == "SettlementExists"


def test_unknown_trip(settle):
    assert settle(schedule_id=999).status_code == 404


def test_unknown_expense_category(settle):
    response = settle(expenses=[{"category_id": 999, "amount": "10.00"}])
    assert response.status_code == 404


def test_income_change_recomputes_net(settle, client):
    settlementId = settle().json()["id"]

    response = client.patch(
        BASE_URL + URL_SETTLEMENT, json={"id": settlementId, "total_income": "1500.00"}
    )

    assert response.status_code == 200, response.text
    assert response.json()["net_amount"] == 1249.5


def test_adding_expense_recomputes_totals(settle, client, fuel):
    settlementId = settle().json()["id"]

    response = client.post(
        BASE_URL + URL_SETTLEMENT_EXPENSE,
        json={"settlement_id": settlementId, "category_id": fuel, "amount": "49.50"},
    )

    assert response.status_code == 201, response.text
    assert response.json()["total_expenses"] == 300
    assert response.json()["net_amount"] == 700
    assert len(response.json()["expenses"]) == 3


def test_removing_expense_recomputes_totals(settle, client, session):
    settlement = settle().json()
    expenseId = settlement["expenses"][0]["id"]

    response = client.request(
        "DELETE", BASE_URL + URL_SETTLEMENT_EXPENSE, json={"id": expenseId}
    )

    assert response.status_code == 204
    session.expire_all()
    stored = session.query(TripSettlement).filter(TripSettlement.id == settlement["id"]).first()
    assert float(stored.total_expenses) == 50
    assert float(stored.net_amount) == 950


def test_approved_settlement_is_locked(settle, client, fuel):
    settlement = settle().json()
    assert setStatus(client, settlement["id"], SettlementStatus.APPROVED).status_code == 200

    response = client.post(
        BASE_URL + URL_SETTLEMENT_EXPENSE,
        json={"settlement_id": settlement["id"], "category_id": fuel, "amount": "1.00"},
    )
    assert response.status_code == 409
    assert response.headers["X-Error"] == "SettlementLocked"

    response = client.request(
        "DELETE",
        BASE_URL + URL_SETTLEMENT_EXPENSE,
        json={"id": settlement["expenses"][0]["id"]},
    )
    assert response.status_code == 409

    response = client.patch(
        BASE_URL + URL_SETTLEMENT,
        json={"id": settlement["id"], "total_income": "1.00"},
    )
    assert response.status_code == 409

    response = client.patch(
        BASE_URL + URL_SETTLEMENT,
        json={"id": settlement["id"], "details": "Checked by accounting"},
    )
    assert response.status_code == 200
    assert response.json()["details"] == "Checked by accounting"

    response = client.request(
        "DELETE", BASE_URL + URL_SETTLEMENT, json={"id": settlement["id"]}
    )
    assert response.status_code == 409


def test_pending_cannot_be_finalized(settle, client):
    settlementId = settle().json()["id"]

    response = setStatus(client, settlementId, SettlementStatus.FINALIZED)

    assert response.status_code == 406
    assert setStatus(client, settlementId, SettlementStatus.APPROVED).status_code == 200
    assert setStatus(client, settlementId, SettlementStatus.FINALIZED).status_code == 200


def test_delete_pending_settlement_with_expenses(settle, client, session):
    settlementId = settle().json()["id"]

    response = client.request("DELETE", BASE_URL + URL_SETTLEMENT, json={"id": settlementId})

    assert response.status_code == 204
    session.expire_all()
    assert session.query(TripSettlement).count() == 0
    assert session.query(TripExpense).count() == 0


def test_fetch_settlements(settle, client):
    settlementId = settle().json()["id"]

    response = client.get(
        BASE_URL + URL_SETTLEMENT, params={"status": SettlementStatus.PENDING}
    )

    assert response.status_code == 200
    assert [s["id"] for s in response.json()] == [settlementId]


def test_expense_categories(client):
    response = client.post(
        BASE_URL + URL_EXPENSE_CATEGORY,
        data={"name": "Parking", "description": "Terminal parking fees"},
    )
    assert response.status_code == 201, response.text

    response = client.get(BASE_URL + URL_EXPENSE_CATEGORY)
    assert [c["name"] for c in response.json()] == ["Parking"]
