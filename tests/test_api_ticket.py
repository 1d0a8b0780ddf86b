"""
Tests for ticket sales, schedule seats and passenger lists through the dashboard API.
"""
import pytest
from datetime import timedelta
from decimal import Decimal

from busdesk.src.db import Bus, BusSeat, Customer, Schedule, Ticket
from busdesk.src.enums import (
    MaintenanceStatus,
    ScheduleStatus,
    SeatStatus,
    TicketStatus,
)
from busdesk.src.urls import (
    URL_CUSTOMER,
    URL_SCHEDULE,
    URL_SCHEDULE_PASSENGER,
    URL_SCHEDULE_SEAT,
    URL_TICKET,
    URL_TICKET_BULK,
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
        status=ScheduleStatus.SCHEDULED,
    )
    session.add(schedule)
    session.commit()
    return schedule.id


@pytest.fixture
def seat(session, fleet):
    """Bus seat id of a seat label on the fleet bus."""

    def seat(seatNumber, busId=None):
        record = (
            session.query(BusSeat)
            .filter(BusSeat.bus_id == (busId or fleet["bus_id"]))
            .filter(BusSeat.seat_number == seatNumber)
            .first()
        )
        return record.id

    return seat


@pytest.fixture
def sell(client, trip, seat):
    def sell(seatNumber, scheduleId=None, **extra):
        data = {"schedule_id": scheduleId or trip, "bus_seat_id": seat(seatNumber)}
        data.update(extra)
        return client.post(BASE_URL + URL_TICKET, json=data)

    return sell


def test_sell_seat_at_tier_price(sell, events):
    response = sell("3A")

    assert response.status_code == 201, response.text
    ticket = response.json()
    assert ticket["seat_number"] == "3A"
    assert ticket["status"] == TicketStatus.ACTIVE
    assert Decimal(ticket["price"]) == Decimal("40000")
    assert ticket["customer_id"] is None
    assert events[-1]["id"] == ticket["id"]
    assert "bus_seat" not in events[-1]


def test_given_price_is_kept(sell):
    response = sell("3A", price="35500.50")

    assert Decimal(response.json()["price"]) == Decimal("35500.50")


def test_seat_sold_once_per_trip(sell, session):
    assert sell("3A").status_code == 201

    response = sell("3A")

    assert response.status_code == 409
    assert response.headers["X-Error"] == "SeatAlreadySold"
    assert "3A" in response.json()["detail"]
    assert session.query(Ticket).count() == 1


def test_sale_takes_the_schedule_lock(sell, trip, fake_redis):
    sell("3A")

    assert fake_redis.acquired == [f"lock:schedule:{trip}"]
    assert fake_redis.released == fake_redis.acquired


def test_unknown_seat(client, trip):
    response = client.post(
        BASE_URL + URL_TICKET, json={"schedule_id": trip, "bus_seat_id": 99999}
    )

    assert response.status_code == 404
    assert response.headers["X-Error"] == "UnknownValue"


def test_unknown_trip(client, seat):
    response = client.post(
        BASE_URL + URL_TICKET, json={"schedule_id": 99999, "bus_seat_id": seat("3A")}
    )

    assert response.status_code == 404


def test_seat_of_another_bus(client, session, fleet, trip, seat):
    bus = session.query(Bus).filter(Bus.id == fleet["bus_id"]).first()
    other = Bus(
        company_id=fleet["company_id"],
        template_id=fleet["template_id"],
        plate_number="DEF-456",
        maintenance_status=MaintenanceStatus.ACTIVE,
        seat_matrix=bus.seat_matrix,
    )
    session.add(other)
    session.flush()
    session.add(BusSeat(bus_id=other.id, seat_number="3A", tier_id=fleet["tier_id"]))
    session.commit()

    response = client.post(
        BASE_URL + URL_TICKET,
        json={"schedule_id": trip, "bus_seat_id": seat("3A", busId=other.id)},
    )

    assert response.status_code == 406
    assert response.headers["X-Error"] == "InvalidAssociation"


def test_seat_in_maintenance_cannot_be_sold(sell, session, seat):
    record = session.query(BusSeat).filter(BusSeat.id == seat("3A")).first()
    record.status = SeatStatus.MAINTENANCE
    session.commit()

    response = sell("3A")

    assert response.status_code == 412
    assert response.headers["X-Error"] == "InactiveResource"


@pytest.mark.parametrize(
    "status", [ScheduleStatus.CANCELLED, ScheduleStatus.COMPLETED, ScheduleStatus.IN_PROGRESS]
)
def test_trip_that_left_cannot_be_sold(sell, session, trip, status):
    schedule = session.query(Schedule).filter(Schedule.id == trip).first()
    schedule.status = status
    session.commit()

    assert sell("3A").status_code == 412


def test_delayed_trip_can_be_sold(sell, session, trip):
    schedule = session.query(Schedule).filter(Schedule.id == trip).first()
    schedule.status = ScheduleStatus.DELAYED
    session.commit()

    assert sell("3A").status_code == 201


def test_cancel_needs_a_reason(sell, client):
    ticketId = sell("3A").json()["id"]

    response = client.patch(
        BASE_URL + URL_TICKET, json={"id": ticketId, "status": TicketStatus.CANCELLED}
    )

    assert response.status_code == 406
    assert response.headers["X-Error"] == "MissingParameter"


def test_cancelled_seat_can_be_sold_again(sell, client, session):
    ticketId = sell("3A").json()["id"]

    response = client.patch(
        BASE_URL + URL_TICKET,
        json={
            "id": ticketId,
            "status": TicketStatus.CANCELLED,
            "cancel_reason": "Passenger changed plans",
        },
    )
    assert response.status_code == 200, response.text
    cancelled = response.json()
    assert cancelled["status"] == TicketStatus.CANCELLED
    assert cancelled["cancelled_on"] is not None

    assert sell("3A").status_code == 201
    assert session.query(Ticket).count() == 2


def test_cancelled_ticket_stays_cancelled(sell, client):
    ticketId = sell("3A").json()["id"]
    client.patch(
        BASE_URL + URL_TICKET,
        json={"id": ticketId, "status": TicketStatus.CANCELLED, "cancel_reason": "No show"},
    )

    response = client.patch(
        BASE_URL + URL_TICKET, json={"id": ticketId, "status": TicketStatus.ACTIVE}
    )

    assert response.status_code == 406
    assert response.headers["X-Error"] == "InvalidStateTransition"


def test_notes_update_keeps_ticket_active(sell, client):
    ticketId = sell("3A").json()["id"]

    response = client.patch(
        BASE_URL + URL_TICKET, json={"id": ticketId, "notes": "Window please"}
    )

    assert response.status_code == 200
    assert response.json()["notes"] == "Window please"
    assert response.json()["status"] == TicketStatus.ACTIVE


def test_bulk_sale(client, trip, seat, session):
    response = client.post(
        BASE_URL + URL_TICKET_BULK,
        json={
            "schedule_id": trip,
            "tickets": [
                {"bus_seat_id": seat("2A"), "price": "30000.00"},
                {"bus_seat_id": seat("2B")},
            ],
        },
    )

    assert response.status_code == 201, response.text
    tickets = response.json()
    assert [ticket["seat_number"] for ticket in tickets] == ["2A", "2B"]
    assert Decimal(tickets[1]["price"]) == Decimal("40000")
    assert session.query(Ticket).count() == 2


def test_bulk_sale_is_all_or_nothing(client, sell, trip, seat, session):
    sell("2B")

    response = client.post(
        BASE_URL + URL_TICKET_BULK,
        json={
            "schedule_id": trip,
            "tickets": [{"bus_seat_id": seat("2A")}, {"bus_seat_id": seat("2B")}],
        },
    )

    assert response.status_code == 409
    assert "2B" in response.json()["detail"]
    assert session.query(Ticket).count() == 1


def test_bulk_sale_repeats_a_seat(client, trip, seat):
    response = client.post(
        BASE_URL + URL_TICKET_BULK,
        json={
            "schedule_id": trip,
            "tickets": [{"bus_seat_id": seat("2A")}, {"bus_seat_id": seat("2A")}],
        },
    )

    assert response.status_code == 406
    assert response.headers["X-Error"] == "InvalidValue"


def test_returning_passenger_is_found_by_document(sell, session):
    first = sell("3A", passenger_name="Maria Lopez", passenger_document="52000111")
    second = sell("3B", passenger_document="52000111")

    assert first.status_code == 201, first.text
    assert second.status_code == 201, second.text
    assert first.json()["customer_id"] == second.json()["customer_id"]
    assert second.json()["passenger_name"] == "Maria Lopez"
    assert session.query(Customer).count() == 1


def test_new_passenger_needs_a_name(sell, session):
    response = sell("3A", passenger_document="52000111")

    assert response.status_code == 406
    assert session.query(Ticket).count() == 0


def test_unknown_customer(sell):
    assert sell("3A", customer_id=99999).status_code == 404


def test_schedule_seats_show_sales(sell, client, trip):
    ticketId = sell("2A").json()["id"]

    response = client.get(BASE_URL + URL_SCHEDULE_SEAT, params={"schedule_id": trip})

    assert response.status_code == 200
    seats = response.json()
    assert len(seats) == 38
    assert [seat["seat_number"] for seat in seats[:4]] == ["1A", "1C", "1D", "2A"]
    sold = [seat for seat in seats if seat["sold"]]
    assert len(sold) == 1
    assert sold[0]["seat_number"] == "2A"
    assert sold[0]["ticket_id"] == ticketId


def test_passenger_list_in_seat_order(sell, client, trip):
    sell("10A", passenger_name="Maria Lopez", passenger_document="52000111")
    sell("2C")
    cancelled = sell("3A", passenger_name="Jorge Diaz", passenger_document="79000222")
    client.patch(
        BASE_URL + URL_TICKET,
        json={
            "id": cancelled.json()["id"],
            "status": TicketStatus.CANCELLED,
            "cancel_reason": "Refund",
        },
    )

    response = client.get(
        BASE_URL + URL_SCHEDULE_PASSENGER, params={"schedule_id": trip}
    )

    assert response.status_code == 200
    passengers = response.json()
    assert [p["seat_number"] for p in passengers] == ["2C", "10A"]
    assert passengers[0]["full_name"] == "Unknown"
    assert passengers[1]["full_name"] == "Maria Lopez"
    assert passengers[1]["document_id"] == "52000111"


def test_passenger_list_of_unknown_trip(client):
    response = client.get(
        BASE_URL + URL_SCHEDULE_PASSENGER, params={"schedule_id": 99999}
    )

    assert response.status_code == 404


def test_fetch_tickets_by_status(sell, client, trip):
    sell("2A")
    ticketId = sell("2B").json()["id"]
    client.patch(
        BASE_URL + URL_TICKET,
        json={"id": ticketId, "status": TicketStatus.CANCELLED, "cancel_reason": "Refund"},
    )

    response = client.get(
        BASE_URL + URL_TICKET,
        params={"schedule_id": trip, "status": TicketStatus.ACTIVE},
    )

    assert response.status_code == 200
    assert [ticket["seat_number"] for ticket in response.json()] == ["2A"]


def test_bus_of_a_sold_trip_cannot_change(sell, client, session, fleet, trip):
    sell("3A")
    other = Bus(
        company_id=fleet["company_id"],
        template_id=fleet["template_id"],
        plate_number="DEF-456",
        maintenance_status=MaintenanceStatus.ACTIVE,
    )
    session.add(other)
    session.commit()

    response = client.patch(
        BASE_URL + URL_SCHEDULE, data={"id": trip, "bus_id": other.id}
    )

    assert response.status_code == 409
    assert response.headers["X-Error"] == "DataInUse"
    session.expire_all()
    kept = session.query(Schedule).filter(Schedule.id == trip).first()
    assert kept.bus_id == fleet["bus_id"]


def test_customer_register_and_update(client, events):
    response = client.post(
        BASE_URL + URL_CUSTOMER,
        data={"full_name": "Maria Lopez", "document_id": "52000111"},
    )
    assert response.status_code == 201, response.text
    customerId = response.json()["id"]

    duplicate = client.post(
        BASE_URL + URL_CUSTOMER,
        data={"full_name": "Maria L.", "document_id": "52000111"},
    )
    assert duplicate.status_code == 409

    response = client.patch(
        BASE_URL + URL_CUSTOMER, data={"id": customerId, "phone_number": "3001234567"}
    )
    assert response.status_code == 200
    assert response.json()["phone_number"] == "3001234567"
    assert events[-1]["phone_number"] == "3001234567"

    found = client.get(BASE_URL + URL_CUSTOMER, params={"document_id": "52000111"})
    assert [customer["id"] for customer in found.json()] == [customerId]
