"""
Tests for seat ordering, schedule seat state and passenger lists.
"""
import pytest
from types import SimpleNamespace

from busdesk.src import exceptions, validators
from busdesk.src.db import Ticket
from busdesk.src.enums import SeatStatus, TicketStatus
from busdesk.src.tickets import (
    TICKET_TRANSITIONS,
    passengerList,
    seatAvailability,
    seatSortKey,
)


def busSeat(id, seatNumber, status=SeatStatus.AVAILABLE, isActive=True):
    return SimpleNamespace(
        id=id, seat_number=seatNumber, tier_id=1, status=status, is_active=isActive
    )


def ticket(id, seat, customer=None, status=TicketStatus.ACTIVE):
    return SimpleNamespace(
        id=id, bus_seat_id=seat.id, bus_seat=seat, customer=customer, status=status
    )


def test_seat_labels_sort_naturally():
    labels = ["10A", "2B", "2A", "1D"]

    assert sorted(labels, key=seatSortKey) == ["1D", "2A", "2B", "10A"]


def test_seat_availability_skips_inactive_seats():
    seats = [
        busSeat(1, "10A"),
        busSeat(2, "2A", status=SeatStatus.MAINTENANCE),
        busSeat(3, "3A", isActive=False),
        busSeat(4, "2B"),
    ]
    tickets = [
        ticket(7, seats[3]),
        ticket(8, seats[0], status=TicketStatus.CANCELLED),
    ]

    availability = seatAvailability(seats, tickets)

    assert [seat.seat_number for seat in availability] == ["2A", "2B", "10A"]
    assert [seat.sold for seat in availability] == [False, True, False]
    assert availability[1].ticket_id == 7
    assert availability[0].status == SeatStatus.MAINTENANCE


def test_passenger_list():
    maria = SimpleNamespace(
        full_name="Maria Lopez", document_id="52000111", phone_number=None
    )
    tickets = [
        ticket(1, busSeat(1, "12C"), customer=maria),
        ticket(2, busSeat(2, "4A")),
        ticket(3, busSeat(3, "1A"), status=TicketStatus.CANCELLED),
    ]

    passengers = passengerList(tickets)

    assert [p.seat_number for p in passengers] == ["4A", "12C"]
    assert passengers[0].full_name == "Unknown"
    assert passengers[0].document_id is None
    assert passengers[1].full_name == "Maria Lopez"


def test_cancelled_ticket_cannot_come_back():
    with pytest.raises(exceptions.InvalidStateTransition):
        validators.stateTransition(
            TICKET_TRANSITIONS, TicketStatus.CANCELLED, TicketStatus.ACTIVE, Ticket.status
        )
