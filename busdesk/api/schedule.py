from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from sqlalchemy import or_
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busdesk.src.db import (
    Bus,
    Driver,
    Route,
    RouteSchedule,
    Schedule,
    Ticket,
    sessionMaker,
)
from busdesk.src import exceptions, validators, getters
from busdesk.src.conflicts import (
    ACTIVE_SCHEDULE_STATUSES,
    ScheduleConflict,
    ScheduleProposal,
    findConflict,
    reserveSchedule,
)
from busdesk.src.constants import TMZ_PRIMARY
from busdesk.src.enums import OrderIn, ScheduleStatus, TicketStatus
from busdesk.src.loggers import logEvent
from busdesk.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from busdesk.src.urls import URL_SCHEDULE, URL_SCHEDULE_AVAILABILITY

route_dashboard = APIRouter()

# Relations left out of logged events
EXCLUDED_RELATIONS = {"bus", "route_schedule", "primary_driver", "secondary_driver"}

# Columns whose change needs the bus and drivers to be reserved again
RESERVATION_COLUMNS = [
    Schedule.bus_id.key,
    Schedule.primary_driver_id.key,
    Schedule.secondary_driver_id.key,
    Schedule.departure_date.key,
    Schedule.estimated_arrival_time.key,
]


## Output Schema
class ScheduleSchema(BaseModel):
    id: int
    route_id: int
    route_schedule_id: int
    bus_id: int
    primary_driver_id: int
    secondary_driver_id: Optional[int]
    departure_date: datetime
    estimated_arrival_time: datetime
    actual_departure_time: Optional[datetime]
    actual_arrival_time: Optional[datetime]
    price: Decimal
    status: int
    updated_on: Optional[datetime]
    created_on: datetime


class AvailabilitySchema(BaseModel):
    available: bool
    conflict: Optional[ScheduleConflict]


## Input Forms
class CreateForm(BaseModel):
    route_id: int = Field(Form())
    route_schedule_id: int = Field(Form())
    bus_id: int = Field(Form())
    primary_driver_id: int = Field(Form())
    secondary_driver_id: int | None = Field(Form(default=None))
    departure_date: datetime = Field(Form())
    estimated_arrival_time: datetime = Field(Form())
    price: Decimal = Field(Form(ge=0, max_digits=10, decimal_places=2, default=0))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    bus_id: int | None = Field(Form(default=None))
    primary_driver_id: int | None = Field(Form(default=None))
    secondary_driver_id: int | None = Field(Form(default=None))
    remove_secondary_driver: bool = Field(Form(default=False))
    departure_date: datetime | None = Field(Form(default=None))
    estimated_arrival_time: datetime | None = Field(Form(default=None))
    price: Decimal | None = Field(
        Form(ge=0, max_digits=10, decimal_places=2, default=None)
    )
    status: ScheduleStatus | None = Field(
        Form(description=enumStr(ScheduleStatus), default=None)
    )


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    departure_date = 2
    estimated_arrival_time = 3
    created_on = 4


class QueryParams(BaseModel):
    # filters
    route_id: int | None = Field(Query(default=None))
    route_schedule_id: int | None = Field(Query(default=None))
    bus_id: int | None = Field(Query(default=None))
    driver_id: int | None = Field(
        Query(default=None, description="Primary or secondary driver")
    )
    status: ScheduleStatus | None = Field(
        Query(default=None, description=enumStr(ScheduleStatus))
    )
    status_list: List[ScheduleStatus] | None = Field(Query(default=None))
    # id based
    id: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # departure_date based
    departure_date_ge: datetime | None = Field(Query(default=None))
    departure_date_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(
        Query(default=OrderBy.departure_date, description=enumStr(OrderBy))
    )
    order_in: OrderIn = Field(Query(default=OrderIn.ASC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


class AvailabilityQueryParams(BaseModel):
    bus_id: int = Field(Query())
    primary_driver_id: int = Field(Query())
    secondary_driver_id: int | None = Field(Query(default=None))
    departure_date: datetime = Field(Query())
    estimated_arrival_time: datetime = Field(Query())
    schedule_id: int | None = Field(
        Query(default=None, description="Schedule being edited, ignored in the check")
    )


## Function
def applyStatus(schedule: Schedule, newStatus: ScheduleStatus) -> None:
    """
    Move a schedule to a new status and stamp the actual times.

    Any status change is accepted except cancelling a completed trip.
    """
    if newStatus == schedule.status:
        return
    if (
        newStatus == ScheduleStatus.CANCELLED
        and schedule.status == ScheduleStatus.COMPLETED
    ):
        raise exceptions.InvalidStateTransition(Schedule.status)
    if newStatus == ScheduleStatus.IN_PROGRESS:
        schedule.actual_departure_time = datetime.now(TMZ_PRIMARY)
    elif newStatus == ScheduleStatus.COMPLETED:
        schedule.actual_arrival_time = datetime.now(TMZ_PRIMARY)
    schedule.status = newStatus


def hasSoldSeats(session: Session, schedule: Schedule) -> bool:
    sold = (
        session.query(Ticket.id)
        .filter(Ticket.schedule_id == schedule.id)
        .filter(Ticket.status == TicketStatus.ACTIVE)
        .first()
    )
    return sold is not None


def needsReservation(schedule: Schedule, before: dict, oldStatus: int) -> bool:
    if schedule.status not in ACTIVE_SCHEDULE_STATUSES:
        return False
    if oldStatus not in ACTIVE_SCHEDULE_STATUSES:
        return True
    return any(getattr(schedule, key) != value for key, value in before.items())


def searchSchedule(session: Session, qParam: QueryParams) -> List[Schedule]:
    query = session.query(Schedule)

    # Filters
    if qParam.route_id is not None:
        query = query.filter(Schedule.route_id == qParam.route_id)
    if qParam.route_schedule_id is not None:
        query = query.filter(Schedule.route_schedule_id == qParam.route_schedule_id)
    if qParam.bus_id is not None:
        query = query.filter(Schedule.bus_id == qParam.bus_id)
    if qParam.driver_id is not None:
        query = query.filter(
            or_(
                Schedule.primary_driver_id == qParam.driver_id,
                Schedule.secondary_driver_id == qParam.driver_id,
            )
        )
    if qParam.status is not None:
        query = query.filter(Schedule.status == qParam.status)
    if qParam.status_list is not None:
        query = query.filter(Schedule.status.in_(qParam.status_list))
    # id based
    if qParam.id is not None:
        query = query.filter(Schedule.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(Schedule.id.in_(qParam.id_list))
    # departure_date based
    if qParam.departure_date_ge is not None:
        query = query.filter(Schedule.departure_date >= qParam.departure_date_ge)
    if qParam.departure_date_le is not None:
        query = query.filter(Schedule.departure_date <= qParam.departure_date_le)

    # Ordering
    orderingAttribute = getattr(Schedule, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints
@route_dashboard.post(
    URL_SCHEDULE,
    tags=["Schedule"],
    response_model=ScheduleSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.UnknownValue(Schedule.bus_id),
            exceptions.InvalidValue(Schedule.estimated_arrival_time),
            exceptions.InvalidAssociation(Schedule.route_schedule_id, Schedule.route_id),
            exceptions.InactiveResource(Bus),
            exceptions.InactiveResource(Driver),
            exceptions.InactiveResource(Route),
            exceptions.InactiveResource(RouteSchedule),
            exceptions.BusAlreadyAssigned,
            exceptions.DriverAlreadyAssigned(),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Schedules a trip of a bus on a route.
    - The bus must be active and in ACTIVE maintenance status, the drivers active.
    - The estimated arrival must be after the departure.
    - The bus and each driver must be free over the whole trip, bounds included,
      whatever role the driver has on the other trips.
    Checking and saving happen under locks on the bus and the drivers, so two
    requests can never book the same resource twice.
    """,
)
async def create_schedule(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        validators.scheduleRoute(session, fParam.route_id, fParam.route_schedule_id)

        schedule = Schedule(
            route_id=fParam.route_id,
            route_schedule_id=fParam.route_schedule_id,
            bus_id=fParam.bus_id,
            primary_driver_id=fParam.primary_driver_id,
            secondary_driver_id=fParam.secondary_driver_id,
            departure_date=fParam.departure_date,
            estimated_arrival_time=fParam.estimated_arrival_time,
            price=fParam.price,
            status=ScheduleStatus.SCHEDULED,
        )
        schedule = reserveSchedule(session, schedule)

        scheduleData = jsonable_encoder(schedule, exclude=EXCLUDED_RELATIONS)
        logEvent(request_info, scheduleData)
        return scheduleData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.patch(
    URL_SCHEDULE,
    tags=["Schedule"],
    response_model=ScheduleSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidIdentifier,
            exceptions.InvalidValue(Schedule.estimated_arrival_time),
            exceptions.InvalidStateTransition(Schedule.status),
            exceptions.InactiveResource(Bus),
            exceptions.DataInUse(Ticket),
            exceptions.BusAlreadyAssigned,
            exceptions.DriverAlreadyAssigned(),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Updates a trip.
    - The bus of a trip with sold seats can not be changed.
    - Changing the bus, the drivers or the times books the resources again,
      the trip itself is left out of the overlap check.
    - Bringing a cancelled or finished trip back to SCHEDULED or IN_PROGRESS
      books the resources again as well.
    - IN_PROGRESS records the actual departure, COMPLETED the actual arrival.
    - A completed trip cannot be cancelled.
    """,
)
async def update_schedule(
    fParam: UpdateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        schedule = session.query(Schedule).filter(Schedule.id == fParam.id).first()
        if schedule is None:
            raise exceptions.InvalidIdentifier()

        before = {key: getattr(schedule, key) for key in RESERVATION_COLUMNS}
        oldStatus = schedule.status
        updateIfChanged(schedule, fParam, RESERVATION_COLUMNS + [Schedule.price.key])
        if schedule.bus_id != before[Schedule.bus_id.key] and hasSoldSeats(
            session, schedule
        ):
            raise exceptions.DataInUse(Ticket)
        if fParam.remove_secondary_driver:
            schedule.secondary_driver_id = None
        if fParam.status is not None:
            applyStatus(schedule, fParam.status)

        haveUpdates = session.is_modified(schedule)
        if haveUpdates:
            if needsReservation(schedule, before, oldStatus):
                schedule = reserveSchedule(session, schedule)
            else:
                session.commit()
                session.refresh(schedule)

        scheduleData = jsonable_encoder(schedule, exclude=EXCLUDED_RELATIONS)
        if haveUpdates:
            logEvent(request_info, scheduleData)
        return scheduleData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.delete(
    URL_SCHEDULE,
    tags=["Schedule"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses(
        [exceptions.InvalidStateTransition(Schedule.status)]
    ),
    description="""
    Cancels a trip, freeing its bus and drivers.
    The trip is kept for the records. A completed trip cannot be cancelled.
    """,
)
async def delete_schedule(
    fParam: DeleteForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        schedule = session.query(Schedule).filter(Schedule.id == fParam.id).first()
        if schedule is not None and schedule.status != ScheduleStatus.CANCELLED:
            applyStatus(schedule, ScheduleStatus.CANCELLED)
            session.commit()
            session.refresh(schedule)
            logEvent(request_info, jsonable_encoder(schedule, exclude=EXCLUDED_RELATIONS))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_SCHEDULE,
    tags=["Schedule"],
    response_model=List[ScheduleSchema],
    description="""
    Fetches the trips, filtered by route, bus, driver, status or departure.
    The driver filter matches both roles.
    """,
)
async def fetch_schedule(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return searchSchedule(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_SCHEDULE_AVAILABILITY,
    tags=["Schedule"],
    response_model=AvailabilitySchema,
    responses=makeExceptionResponses(
        [
            exceptions.UnknownValue(Schedule.bus_id),
            exceptions.InvalidValue(Schedule.estimated_arrival_time),
            exceptions.InactiveResource(Bus),
            exceptions.InactiveResource(Driver),
        ]
    ),
    description="""
    Checks whether a bus and its drivers are free over a time window, without
    booking anything. The first clash found is returned, the bus being
    checked before the primary driver, and the primary before the secondary.
    """,
)
async def fetch_schedule_availability(qParam: AvailabilityQueryParams = Depends()):
    try:
        session = sessionMaker()
        proposal = ScheduleProposal(
            id=qParam.schedule_id,
            bus_id=qParam.bus_id,
            primary_driver_id=qParam.primary_driver_id,
            secondary_driver_id=qParam.secondary_driver_id,
            departure_date=qParam.departure_date,
            estimated_arrival_time=qParam.estimated_arrival_time,
        )
        conflict = findConflict(session, proposal)
        return {"available": conflict is None, "conflict": conflict}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
