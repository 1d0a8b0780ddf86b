from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Body, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busdesk.src.db import Bus, BusSeat, SeatTier, sessionMaker
from busdesk.src import exceptions, validators, getters, seat_matrix
from busdesk.src.enums import SeatStatus
from busdesk.src.loggers import logEvent
from busdesk.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from busdesk.src.redis import acquireLock, releaseLock
from busdesk.src.seat_matrix import BusSeatRecord, SeatMatrix
from busdesk.src.urls import (
    URL_BUS_SEAT,
    URL_BUS_SEAT_LAYOUT,
    URL_BUS_SEAT_MATRIX,
    URL_BUS_SEAT_STATUS,
    URL_BUS_SEAT_TIER,
)

route_dashboard = APIRouter()


## Output Schema
class BusSeatSchema(BaseModel):
    id: int
    bus_id: int
    seat_number: str
    tier_id: int
    status: int
    is_active: bool
    updated_on: Optional[datetime]
    created_on: datetime


class SeatLayoutSchema(BaseModel):
    bus_id: int
    seat_matrix: SeatMatrix
    seats: List[BusSeatSchema]


## Input Forms
class UpdateForm(BaseModel):
    id: int = Field(Form())
    tier_id: int | None = Field(Form(default=None))
    status: SeatStatus | None = Field(Form(description=enumStr(SeatStatus), default=None))


class LayoutForm(BaseModel):
    bus_id: int = Field(Body())
    seat_ids: List[str] = Field(Body(min_length=1))
    is_empty: bool = Field(Body(description="Turn the seats into empty slots or back"))


class TierForm(BaseModel):
    bus_id: int = Field(Body())
    seat_ids: List[str] = Field(Body(min_length=1))
    tier_id: int = Field(Body())


class StatusForm(BaseModel):
    bus_id: int = Field(Body())
    seat_ids: List[str] = Field(Body(min_length=1))
    status: SeatStatus = Field(Body(description=enumStr(SeatStatus)))


## Query Parameters
class QueryParams(BaseModel):
    bus_id: int = Field(Query())
    tier_id: int | None = Field(Query(default=None))
    status: SeatStatus | None = Field(Query(default=None, description=enumStr(SeatStatus)))
    is_active: bool | None = Field(Query(default=None))
    seat_number: str | None = Field(Query(default=None))


class MatrixQueryParams(BaseModel):
    bus_id: int = Field(Query())


## Function
def busSeats(session: Session, busId: int) -> List[BusSeat]:
    return (
        session.query(BusSeat)
        .filter(BusSeat.bus_id == busId)
        .order_by(BusSeat.id.asc())
        .all()
    )


def seatRecords(seats: List[BusSeat]) -> List[BusSeatRecord]:
    return [BusSeatRecord.model_validate(seat, from_attributes=True) for seat in seats]


def busLayout(bus: Bus) -> SeatMatrix:
    if bus.seat_matrix is None:
        raise exceptions.InvalidSeatMatrix("the bus has no layout")
    return seat_matrix.parseMatrix(bus.seat_matrix)


def saveLayout(
    session: Session,
    bus: Bus,
    matrix: SeatMatrix,
    records: List[BusSeatRecord],
    seats: List[BusSeat],
) -> List[BusSeat]:
    """
    Write an edited layout and its bus seat records back.

    Records with an id update their row, the others become new rows.
    The changes are flushed, committing is left to the caller.
    """
    bus.seat_matrix = matrix.model_dump(mode="json")
    byId = {seat.id: seat for seat in seats}
    for record in records:
        seat = byId.get(record.id)
        if seat is None:
            seat = BusSeat(bus_id=bus.id, seat_number=record.seat_number)
            session.add(seat)
        updateIfChanged(
            seat,
            record,
            [BusSeat.tier_id.key, BusSeat.status.key, BusSeat.is_active.key],
        )
    session.flush()
    return busSeats(session, bus.id)


def layoutResponse(bus: Bus, seats: List[BusSeat]) -> dict:
    matrix = seat_matrix.overlayMatrix(busLayout(bus), seatRecords(seats))
    return {
        "bus_id": bus.id,
        "seat_matrix": matrix.model_dump(mode="json"),
        "seats": jsonable_encoder(seats),
    }


def editLayout(session: Session, busId: int, edit) -> dict:
    """
    Apply `edit(matrix, records)` to the layout of a bus under its lock.

    `edit` returns the new (matrix, records) pair. The bus row stays
    locked from the read to the commit.
    """
    busLock = None
    try:
        busLock = acquireLock(Bus.__tablename__, busId)
        bus = session.query(Bus).filter(Bus.id == busId).first()
        if bus is None:
            raise exceptions.UnknownValue(BusSeat.bus_id)
        seats = busSeats(session, bus.id)
        matrix, records = edit(busLayout(bus), seatRecords(seats))
        seats = saveLayout(session, bus, matrix, records, seats)
        session.commit()
        session.refresh(bus)
        return layoutResponse(bus, seats)
    finally:
        releaseLock(busLock)


## API endpoints
@route_dashboard.get(
    URL_BUS_SEAT,
    tags=["Bus Seat"],
    response_model=List[BusSeatSchema],
    description="""
    Fetches the seats of a bus, filtered by tier, status, activation or number.
    """,
)
async def fetch_bus_seat(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        query = session.query(BusSeat).filter(BusSeat.bus_id == qParam.bus_id)
        if qParam.tier_id is not None:
            query = query.filter(BusSeat.tier_id == qParam.tier_id)
        if qParam.status is not None:
            query = query.filter(BusSeat.status == qParam.status)
        if qParam.is_active is not None:
            query = query.filter(BusSeat.is_active == qParam.is_active)
        if qParam.seat_number is not None:
            query = query.filter(BusSeat.seat_number == qParam.seat_number)
        return query.order_by(BusSeat.id.asc()).all()
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.patch(
    URL_BUS_SEAT,
    tags=["Bus Seat"],
    response_model=BusSeatSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidIdentifier,
            exceptions.UnknownValue(BusSeat.tier_id),
            exceptions.InvalidAssociation(BusSeat.tier_id, Bus.company_id),
            exceptions.InactiveResource(SeatTier),
        ]
    ),
    description="""
    Changes the tier or the status of one seat.
    The tier must be an active tier of the company owning the bus.
    """,
)
async def update_bus_seat(
    fParam: UpdateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        seat = session.query(BusSeat).filter(BusSeat.id == fParam.id).first()
        if seat is None:
            raise exceptions.InvalidIdentifier()
        if fParam.tier_id is not None:
            bus = session.query(Bus).filter(Bus.id == seat.bus_id).first()
            validators.seatTiers(session, {fParam.tier_id}, bus.company_id)

        updateIfChanged(seat, fParam, [BusSeat.tier_id.key, BusSeat.status.key])
        haveUpdates = session.is_modified(seat)
        if haveUpdates:
            session.commit()
            session.refresh(seat)

        seatData = jsonable_encoder(seat)
        if haveUpdates:
            logEvent(request_info, seatData)
        return seatData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_BUS_SEAT_MATRIX,
    tags=["Bus Seat"],
    response_model=SeatLayoutSchema,
    responses=makeExceptionResponses([exceptions.UnknownValue(BusSeat.bus_id)]),
    description="""
    Fetches the seat layout of a bus.
    Tier and status of every seat are taken from its bus seat.
    """,
)
async def fetch_bus_seat_matrix(qParam: MatrixQueryParams = Depends()):
    try:
        session = sessionMaker()
        bus = session.query(Bus).filter(Bus.id == qParam.bus_id).first()
        if bus is None:
            raise exceptions.UnknownValue(BusSeat.bus_id)
        return layoutResponse(bus, busSeats(session, bus.id))
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.patch(
    URL_BUS_SEAT_LAYOUT,
    tags=["Bus Seat"],
    response_model=SeatLayoutSchema,
    responses=makeExceptionResponses(
        [
            exceptions.UnknownValue(BusSeat.bus_id),
            exceptions.InvalidValue(BusSeat.seat_number),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Turns seats of a bus into empty slots, or empty slots back into seats.
    The bus seat of an emptied seat is deactivated, never deleted.
    A restored seat gets its bus seat back once it has a tier.
    """,
)
async def update_bus_seat_layout(
    fParam: LayoutForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    def edit(matrix: SeatMatrix, records: List[BusSeatRecord]):
        validators.seatSelection(matrix, fParam.seat_ids)
        matrix = seat_matrix.setEmptyFlag(matrix, fParam.seat_ids, fParam.is_empty)
        return matrix, seat_matrix.reconcileBusSeats(matrix, records)

    try:
        session = sessionMaker()
        layoutData = editLayout(session, fParam.bus_id, edit)
        logEvent(request_info, layoutData)
        return layoutData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.patch(
    URL_BUS_SEAT_TIER,
    tags=["Bus Seat"],
    response_model=SeatLayoutSchema,
    responses=makeExceptionResponses(
        [
            exceptions.UnknownValue(BusSeat.bus_id),
            exceptions.InvalidValue(BusSeat.seat_number),
            exceptions.UnknownValue(BusSeat.tier_id),
            exceptions.InvalidAssociation(BusSeat.tier_id, Bus.company_id),
            exceptions.InactiveResource(SeatTier),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Assigns a tier to several seats of a bus at once.
    Empty slots in the selection are skipped.
    Seats without a bus seat yet get one, available and active.
    """,
)
async def update_bus_seat_tier(
    fParam: TierForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        bus = session.query(Bus).filter(Bus.id == fParam.bus_id).first()
        if bus is None:
            raise exceptions.UnknownValue(BusSeat.bus_id)
        validators.seatTiers(session, {fParam.tier_id}, bus.company_id)

        def edit(matrix: SeatMatrix, records: List[BusSeatRecord]):
            validators.seatSelection(matrix, fParam.seat_ids)
            return seat_matrix.applyTier(matrix, records, fParam.seat_ids, fParam.tier_id)

        layoutData = editLayout(session, bus.id, edit)
        logEvent(request_info, layoutData)
        return layoutData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.patch(
    URL_BUS_SEAT_STATUS,
    tags=["Bus Seat"],
    response_model=SeatLayoutSchema,
    status_code=status.HTTP_200_OK,
    responses=makeExceptionResponses(
        [
            exceptions.UnknownValue(BusSeat.bus_id),
            exceptions.InvalidValue(BusSeat.seat_number),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Sets the status of several seats of a bus at once.
    Empty slots and seats without a tier are skipped.
    """,
)
async def update_bus_seat_status(
    fParam: StatusForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    def edit(matrix: SeatMatrix, records: List[BusSeatRecord]):
        validators.seatSelection(matrix, fParam.seat_ids)
        return seat_matrix.applyStatus(matrix, records, fParam.seat_ids, fParam.status)

    try:
        session = sessionMaker()
        layoutData = editLayout(session, fParam.bus_id, edit)
        logEvent(request_info, layoutData)
        return layoutData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
