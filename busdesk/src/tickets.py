"""
Ticket sales on scheduled trips.

A sale is checked and written while the schedule is locked in Redis, so
two clerks selling the same seat never both succeed. The partial unique
index on `ticket` backs the rule in the database.
"""

import re
from decimal import Decimal
from typing import Iterable, Optional
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from busdesk.src import exceptions
from busdesk.src.constants import PLACEHOLDER_UNKNOWN
from busdesk.src.db import BusSeat, Customer, Schedule, SeatTier, Ticket
from busdesk.src.enums import ScheduleStatus, SeatStatus, TicketStatus
from busdesk.src.redis import acquireLock, releaseLock

TICKET_TRANSITIONS = {
    TicketStatus.ACTIVE: [TicketStatus.CANCELLED],
    TicketStatus.CANCELLED: [],
}

# Trips that have not left yet
SELLABLE_SCHEDULE_STATUSES = [ScheduleStatus.SCHEDULED, ScheduleStatus.DELAYED]


class SeatSale(BaseModel):
    """One seat of a sale and who travels in it."""

    bus_seat_id: int
    customer_id: Optional[int] = None
    passenger_name: Optional[str] = Field(default=None, min_length=3, max_length=64)
    passenger_document: Optional[str] = Field(default=None, max_length=32)
    phone_number: Optional[str] = Field(default=None, max_length=32)
    email: Optional[str] = Field(default=None, max_length=256)
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    notes: Optional[str] = Field(default=None, max_length=512)


class SeatAvailability(BaseModel):
    bus_seat_id: int
    seat_number: str
    tier_id: int
    status: SeatStatus
    sold: bool
    ticket_id: Optional[int] = None


class Passenger(BaseModel):
    ticket_id: int
    seat_number: str
    full_name: str
    document_id: Optional[str] = None
    phone_number: Optional[str] = None


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------
def seatSortKey(seatNumber: str) -> tuple[int, str]:
    """
    Natural order of seat labels.

    Example:
        >>> sorted(["10A", "2B", "2A"], key=seatSortKey)
        ['2A', '2B', '10A']
    """
    match = re.match(r"(\d+)(.*)", seatNumber)
    if match is None:
        return (0, seatNumber)
    return (int(match.group(1)), match.group(2))


def soldTickets(tickets: Iterable) -> dict[int, object]:
    """Active tickets keyed by the bus seat they hold."""
    return {
        ticket.bus_seat_id: ticket
        for ticket in tickets
        if ticket.status == TicketStatus.ACTIVE
    }


def seatAvailability(busSeats: Iterable, tickets: Iterable) -> list[SeatAvailability]:
    """
    Sale state of every active seat of the bus for one trip.

    Seats in maintenance are listed but can not be sold.
    """
    sold = soldTickets(tickets)
    seats = []
    for seat in busSeats:
        if not seat.is_active:
            continue
        ticket = sold.get(seat.id)
        seats.append(
            SeatAvailability(
                bus_seat_id=seat.id,
                seat_number=seat.seat_number,
                tier_id=seat.tier_id,
                status=seat.status,
                sold=ticket is not None,
                ticket_id=ticket.id if ticket is not None else None,
            )
        )
    seats.sort(key=lambda seat: seatSortKey(seat.seat_number))
    return seats


def passengerList(tickets: Iterable) -> list[Passenger]:
    """Passengers of the active tickets, in seat order."""
    passengers = []
    for ticket in soldTickets(tickets).values():
        customer = ticket.customer
        passengers.append(
            Passenger(
                ticket_id=ticket.id,
                seat_number=ticket.bus_seat.seat_number,
                full_name=customer.full_name if customer else PLACEHOLDER_UNKNOWN,
                document_id=customer.document_id if customer else None,
                phone_number=customer.phone_number if customer else None,
            )
        )
    passengers.sort(key=lambda passenger: seatSortKey(passenger.seat_number))
    return passengers


def formatTicket(ticket) -> dict:
    customer = ticket.customer
    return {
        "id": ticket.id,
        "schedule_id": ticket.schedule_id,
        "bus_seat_id": ticket.bus_seat_id,
        "seat_number": ticket.bus_seat.seat_number,
        "customer_id": ticket.customer_id,
        "passenger_name": customer.full_name if customer else None,
        "price": ticket.price,
        "status": ticket.status,
        "notes": ticket.notes,
        "cancel_reason": ticket.cancel_reason,
        "cancelled_on": ticket.cancelled_on,
        "updated_on": ticket.updated_on,
        "created_on": ticket.created_on,
    }


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------
def scheduleTickets(session: Session, scheduleId: int) -> list[Ticket]:
    return session.query(Ticket).filter(Ticket.schedule_id == scheduleId).all()


def resolveCustomer(session: Session, sale: SeatSale) -> Optional[Customer]:
    """
    Customer of a sold seat.

    An explicit `customer_id` must exist. Otherwise the passenger document
    finds a returning customer, or registers a new one with the given name.
    Without either the ticket is anonymous.
    """
    if sale.customer_id is not None:
        customer = (
            session.query(Customer).filter(Customer.id == sale.customer_id).first()
        )
        if customer is None:
            raise exceptions.UnknownValue(Ticket.customer_id)
        return customer
    if sale.passenger_document is None:
        return None

    customer = (
        session.query(Customer)
        .filter(Customer.document_id == sale.passenger_document)
        .first()
    )
    if customer is None:
        if not sale.passenger_name:
            raise exceptions.MissingParameter(Customer.full_name)
        customer = Customer(
            full_name=sale.passenger_name,
            document_id=sale.passenger_document,
            phone_number=sale.phone_number,
            email=sale.email,
        )
        session.add(customer)
        session.flush()
    return customer


def sellSeats(session: Session, scheduleId: int, sales: list[SeatSale]) -> list[Ticket]:
    """
    Sell one or more seats of a trip, all of them or none.

    Checked in this order, the first failure decides the reported reason:

    1. Every seat appears once in the sale.
    2. The trip exists and has not left, is SCHEDULED or DELAYED.
    3. Every seat exists, belongs to the bus of the trip, is active and
       AVAILABLE.
    4. No seat has an active ticket on the trip.

    A seat without a price is charged the base price of its tier.

    Raises:
        exceptions.InvalidValue: If a seat is repeated in the sale.
        exceptions.UnknownValue: If the trip, a seat or a customer is absent.
        exceptions.InactiveResource: If the trip or a seat can not be sold.
        exceptions.InvalidAssociation: If a seat is not on the bus of the trip.
        exceptions.SeatAlreadySold: If a seat is already sold for the trip.
    """
    if not sales:
        raise exceptions.MissingParameter(Ticket.bus_seat_id)
    seatIds = [sale.bus_seat_id for sale in sales]
    if len(set(seatIds)) != len(seatIds):
        raise exceptions.InvalidValue(Ticket.bus_seat_id)

    scheduleLock = None
    try:
        scheduleLock = acquireLock(Schedule.__tablename__, scheduleId)
        schedule = session.query(Schedule).filter(Schedule.id == scheduleId).first()
        if schedule is None:
            raise exceptions.UnknownValue(Ticket.schedule_id)
        if schedule.status not in SELLABLE_SCHEDULE_STATUSES:
            raise exceptions.InactiveResource(Schedule)

        seats = {
            seat.id: seat
            for seat in session.query(BusSeat).filter(BusSeat.id.in_(seatIds)).all()
        }
        for seatId in seatIds:
            seat = seats.get(seatId)
            if seat is None:
                raise exceptions.UnknownValue(Ticket.bus_seat_id)
            if seat.bus_id != schedule.bus_id:
                raise exceptions.InvalidAssociation(Ticket.bus_seat_id, Ticket.schedule_id)
            if not seat.is_active or seat.status != SeatStatus.AVAILABLE:
                raise exceptions.InactiveResource(BusSeat)

        sold = soldTickets(scheduleTickets(session, schedule.id))
        taken = [seats[seatId].seat_number for seatId in seatIds if seatId in sold]
        if taken:
            raise exceptions.SeatAlreadySold(taken)

        tierIds = {seat.tier_id for seat in seats.values()}
        basePrices = dict(
            session.query(SeatTier.id, SeatTier.base_price)
            .filter(SeatTier.id.in_(tierIds))
            .all()
        )
        tickets = []
        for sale in sales:
            seat = seats[sale.bus_seat_id]
            customer = resolveCustomer(session, sale)
            price = sale.price
            if price is None:
                price = basePrices.get(seat.tier_id, 0)
            ticket = Ticket(
                schedule_id=schedule.id,
                bus_seat_id=seat.id,
                customer_id=customer.id if customer else None,
                price=price,
                status=TicketStatus.ACTIVE,
                notes=sale.notes,
            )
            session.add(ticket)
            tickets.append(ticket)
        session.commit()
        for ticket in tickets:
            session.refresh(ticket)
        return tickets
    finally:
        releaseLock(scheduleLock)
