from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Body
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busdesk.src.db import BusSeat, Schedule, Ticket, sessionMaker
from busdesk.src import exceptions, validators, getters
from busdesk.src.constants import TMZ_PRIMARY
from busdesk.src.enums import OrderIn, TicketStatus
from busdesk.src.loggers import logEvent
from busdesk.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from busdesk.src.tickets import (
    TICKET_TRANSITIONS,
    Passenger,
    SeatAvailability,
    SeatSale,
    formatTicket,
    passengerList,
    scheduleTickets,
    seatAvailability,
    sellSeats,
)
from busdesk.src.urls import (
    URL_SCHEDULE_PASSENGER,
    URL_SCHEDULE_SEAT,
    URL_TICKET,
    URL_TICKET_BULK,
)

route_dashboard = APIRouter()

# Relations left out of logged events
EXCLUDED_RELATIONS = {"bus_seat", "customer"}


## Output Schema
class TicketSchema(BaseModel):
    id: int
    schedule_id: int
    bus_seat_id: int
    seat_number: str
    customer_id: Optional[int]
    passenger_name: Optional[str]
    price: Decimal
    status: int
    notes: Optional[str]
    cancel_reason: Optional[str]
    cancelled_on: Optional[datetime]
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    schedule_id: int = Field(Body())
    bus_seat_id: int = Field(Body())
    customer_id: int | None = Field(Body(default=None))
    passenger_name: str | None = Field(Body(min_length=3, max_length=64, default=None))
    passenger_document: str | None = Field(Body(max_length=32, default=None))
    phone_number: str | None = Field(Body(max_length=32, default=None))
    email: str | None = Field(Body(max_length=256, default=None))
    price: Decimal | None = Field(
        Body(
            ge=0,
            max_digits=10,
            decimal_places=2,
            default=None,
            description="Base price of the seat tier if not given",
        )
    )
    notes: str | None = Field(Body(max_length=512, default=None))


class BulkForm(BaseModel):
    schedule_id: int = Field(Body())
    tickets: List[SeatSale] = Field(Body(min_length=1))


class UpdateForm(BaseModel):
    id: int = Field(Body())
    status: TicketStatus | None = Field(
        Body(description=enumStr(TicketStatus), default=None)
    )
    cancel_reason: str | None = Field(
        Body(max_length=512, default=None, description="Required to cancel")
    )
    notes: str | None = Field(Body(max_length=512, default=None))


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    price = 2
    created_on = 3


class QueryParams(BaseModel):
    # filters
    schedule_id: int | None = Field(Query(default=None))
    bus_seat_id: int | None = Field(Query(default=None))
    customer_id: int | None = Field(Query(default=None))
    status: TicketStatus | None = Field(
        Query(default=None, description=enumStr(TicketStatus))
    )
    # id based
    id: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # created_on based
    created_on_ge: datetime | None = Field(Query(default=None))
    created_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


class ScheduleQueryParams(BaseModel):
    schedule_id: int = Field(Query())


## Function
def searchTicket(session: Session, qParam: QueryParams) -> List[Ticket]:
    query = session.query(Ticket)

    # Filters
    if qParam.schedule_id is not None:
        query = query.filter(Ticket.schedule_id == qParam.schedule_id)
    if qParam.bus_seat_id is not None:
        query = query.filter(Ticket.bus_seat_id == qParam.bus_seat_id)
    if qParam.customer_id is not None:
        query = query.filter(Ticket.customer_id == qParam.customer_id)
    if qParam.status is not None:
        query = query.filter(Ticket.status == qParam.status)
    # id based
    if qParam.id is not None:
        query = query.filter(Ticket.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(Ticket.id.in_(qParam.id_list))
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(Ticket.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Ticket.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Ticket, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


def fetchSchedule(session: Session, scheduleId: int) -> Schedule:
    schedule = session.query(Schedule).filter(Schedule.id == scheduleId).first()
    if schedule is None:
        raise exceptions.UnknownValue(Ticket.schedule_id)
    return schedule


## API endpoints
SALE_EXCEPTIONS = [
    exceptions.UnknownValue(Ticket.schedule_id),
    exceptions.UnknownValue(Ticket.bus_seat_id),
    exceptions.InvalidValue(Ticket.bus_seat_id),
    exceptions.InvalidAssociation(Ticket.bus_seat_id, Ticket.schedule_id),
    exceptions.InactiveResource(Schedule),
    exceptions.SeatAlreadySold(),
    exceptions.LockAcquireTimeout,
]


@route_dashboard.post(
    URL_TICKET,
    tags=["Ticket"],
    response_model=TicketSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(SALE_EXCEPTIONS),
    description="""
    Sells one seat of a trip.
    The trip must be SCHEDULED or DELAYED, the seat an active, available
    seat of the bus of the trip and not sold yet for the trip.
    The passenger is found by document number, or registered with the given
    name on the first purchase.
    """,
)
async def create_ticket(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        sale = SeatSale(**fParam.model_dump(exclude={"schedule_id"}))
        ticket = sellSeats(session, fParam.schedule_id, [sale])[0]

        logEvent(request_info, jsonable_encoder(ticket, exclude=EXCLUDED_RELATIONS))
        return formatTicket(ticket)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.post(
    URL_TICKET_BULK,
    tags=["Ticket"],
    response_model=List[TicketSchema],
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(SALE_EXCEPTIONS),
    description="""
    Sells several seats of one trip together, all of them or none.
    A seat may appear only once in the sale.
    """,
)
async def create_tickets(
    fParam: BulkForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        tickets = sellSeats(session, fParam.schedule_id, fParam.tickets)

        for ticket in tickets:
            logEvent(request_info, jsonable_encoder(ticket, exclude=EXCLUDED_RELATIONS))
        return [formatTicket(ticket) for ticket in tickets]
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.patch(
    URL_TICKET,
    tags=["Ticket"],
    response_model=TicketSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidIdentifier,
            exceptions.InvalidStateTransition(Ticket.status),
            exceptions.MissingParameter(Ticket.cancel_reason),
        ]
    ),
    description="""
    Updates the notes of a ticket or cancels it.
    Cancelling needs a reason and frees the seat for a new sale.
    A cancelled ticket stays cancelled.
    """,
)
async def update_ticket(
    fParam: UpdateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        ticket = session.query(Ticket).filter(Ticket.id == fParam.id).first()
        if ticket is None:
            raise exceptions.InvalidIdentifier()

        updateIfChanged(ticket, fParam, [Ticket.notes.key])
        if fParam.status is not None and fParam.status != ticket.status:
            validators.stateTransition(
                TICKET_TRANSITIONS, ticket.status, fParam.status, Ticket.status
            )
            if not fParam.cancel_reason:
                raise exceptions.MissingParameter(Ticket.cancel_reason)
            ticket.status = fParam.status
            ticket.cancel_reason = fParam.cancel_reason
            ticket.cancelled_on = datetime.now(TMZ_PRIMARY)

        haveUpdates = session.is_modified(ticket)
        if haveUpdates:
            session.commit()
            session.refresh(ticket)
            logEvent(request_info, jsonable_encoder(ticket, exclude=EXCLUDED_RELATIONS))
        return formatTicket(ticket)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_TICKET,
    tags=["Ticket"],
    response_model=List[TicketSchema],
    description="""
    Fetches the tickets, filtered by trip, seat, customer, status or sale date.
    """,
)
async def fetch_ticket(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return [formatTicket(ticket) for ticket in searchTicket(session, qParam)]
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_SCHEDULE_SEAT,
    tags=["Ticket"],
    response_model=List[SeatAvailability],
    responses=makeExceptionResponses([exceptions.UnknownValue(Ticket.schedule_id)]),
    description="""
    Lists the active seats of the bus of a trip and whether each one is sold.
    """,
)
async def fetch_schedule_seat(qParam: ScheduleQueryParams = Depends()):
    try:
        session = sessionMaker()
        schedule = fetchSchedule(session, qParam.schedule_id)
        seats = session.query(BusSeat).filter(BusSeat.bus_id == schedule.bus_id).all()
        return seatAvailability(seats, scheduleTickets(session, schedule.id))
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_SCHEDULE_PASSENGER,
    tags=["Ticket"],
    response_model=List[Passenger],
    responses=makeExceptionResponses([exceptions.UnknownValue(Ticket.schedule_id)]),
    description="""
    Passenger list of a trip: one line per active ticket, in seat order.
    Tickets sold without a passenger are listed as Unknown.
    """,
)
async def fetch_schedule_passenger(qParam: ScheduleQueryParams = Depends()):
    try:
        session = sessionMaker()
        schedule = fetchSchedule(session, qParam.schedule_id)
        return passengerList(scheduleTickets(session, schedule.id))
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
