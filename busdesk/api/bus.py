from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busdesk.src.db import Bus, BusSeat, BusTemplate, Company, Schedule, sessionMaker
from busdesk.src import exceptions, getters, seat_matrix
from busdesk.src.loggers import logEvent
from busdesk.src.enums import MaintenanceStatus, OrderIn
from busdesk.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from busdesk.src.seat_matrix import SeatMatrix
from busdesk.src.urls import URL_BUS

route_dashboard = APIRouter()

# Relations left out of logged events
EXCLUDED_RELATIONS = {"company", "template"}


## Output Schema
class BusSchema(BaseModel):
    id: int
    company_id: int
    template_id: Optional[int]
    plate_number: str
    is_active: bool
    maintenance_status: int
    seat_matrix: Optional[SeatMatrix]
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    company_id: int = Field(Form())
    template_id: int = Field(Form())
    plate_number: str = Field(Form(min_length=3, max_length=16))
    maintenance_status: MaintenanceStatus = Field(
        Form(description=enumStr(MaintenanceStatus), default=MaintenanceStatus.ACTIVE)
    )


class UpdateForm(BaseModel):
    id: int = Field(Form())
    plate_number: str | None = Field(Form(min_length=3, max_length=16, default=None))
    is_active: bool | None = Field(Form(default=None))
    maintenance_status: MaintenanceStatus | None = Field(
        Form(description=enumStr(MaintenanceStatus), default=None)
    )


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    plate_number = 2
    updated_on = 3
    created_on = 4


class QueryParams(BaseModel):
    # filters
    company_id: int | None = Field(Query(default=None))
    template_id: int | None = Field(Query(default=None))
    plate_number: str | None = Field(Query(default=None))
    is_active: bool | None = Field(Query(default=None))
    maintenance_status: MaintenanceStatus | None = Field(
        Query(default=None, description=enumStr(MaintenanceStatus))
    )
    # id based
    id: int | None = Field(Query(default=None))
    id_ge: int | None = Field(Query(default=None))
    id_le: int | None = Field(Query(default=None))
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


## Function
def plateNumberTaken(session: Session, plateNumber: str, busId: int | None = None):
    query = session.query(Bus.id).filter(Bus.plate_number == plateNumber)
    if busId is not None:
        query = query.filter(Bus.id != busId)
    return query.first() is not None


def updateBus(session: Session, bus: Bus, fParam: UpdateForm):
    if fParam.plate_number is not None and fParam.plate_number != bus.plate_number:
        if plateNumberTaken(session, fParam.plate_number, bus.id):
            raise exceptions.DuplicatePlateNumber()
    updateIfChanged(
        bus,
        fParam,
        [Bus.plate_number.key, Bus.is_active.key, Bus.maintenance_status.key],
    )
    if bus.maintenance_status == MaintenanceStatus.RETIRED:
        if fParam.is_active:
            raise exceptions.InvalidValue(Bus.is_active)
        bus.is_active = False


def searchBus(session: Session, qParam: QueryParams) -> List[Bus]:
    query = session.query(Bus)

    # Filters
    if qParam.company_id is not None:
        query = query.filter(Bus.company_id == qParam.company_id)
    if qParam.template_id is not None:
        query = query.filter(Bus.template_id == qParam.template_id)
    if qParam.plate_number is not None:
        query = query.filter(Bus.plate_number.ilike(f"%{qParam.plate_number}%"))
    if qParam.is_active is not None:
        query = query.filter(Bus.is_active == qParam.is_active)
    if qParam.maintenance_status is not None:
        query = query.filter(Bus.maintenance_status == qParam.maintenance_status)
    # id based
    if qParam.id is not None:
        query = query.filter(Bus.id == qParam.id)
    if qParam.id_ge is not None:
        query = query.filter(Bus.id >= qParam.id_ge)
    if qParam.id_le is not None:
        query = query.filter(Bus.id <= qParam.id_le)
    if qParam.id_list is not None:
        query = query.filter(Bus.id.in_(qParam.id_list))
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(Bus.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Bus.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Bus, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints
@route_dashboard.post(
    URL_BUS,
    tags=["Bus"],
    response_model=BusSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.UnknownValue(Bus.company_id),
            exceptions.UnknownValue(Bus.template_id),
            exceptions.InvalidAssociation(Bus.template_id, Bus.company_id),
            exceptions.InactiveResource(BusTemplate),
            exceptions.InvalidSeatMatrix,
            exceptions.DuplicatePlateNumber,
        ]
    ),
    description="""
    Adds a bus to the fleet of a company.
    The seat layout is copied from the bus template, every seat starting as available.
    One bus seat is created per seat that is not an empty slot.
    The bus and its seats are saved together or not at all.
    A retired bus is never active.
    """,
)
async def create_bus(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        company = session.query(Company).filter(Company.id == fParam.company_id).first()
        if company is None:
            raise exceptions.UnknownValue(Bus.company_id)
        template = (
            session.query(BusTemplate)
            .filter(BusTemplate.id == fParam.template_id)
            .first()
        )
        if template is None:
            raise exceptions.UnknownValue(Bus.template_id)
        if template.company_id != company.id:
            raise exceptions.InvalidAssociation(Bus.template_id, Bus.company_id)
        if not template.is_active:
            raise exceptions.InactiveResource(BusTemplate)
        if plateNumberTaken(session, fParam.plate_number):
            raise exceptions.DuplicatePlateNumber()
        matrix, busSeats = seat_matrix.instantiateFromTemplate(template, None)

        bus = Bus(
            company_id=company.id,
            template_id=template.id,
            plate_number=fParam.plate_number,
            maintenance_status=fParam.maintenance_status,
            is_active=fParam.maintenance_status != MaintenanceStatus.RETIRED,
            seat_matrix=matrix.model_dump(mode="json"),
        )
        session.add(bus)
        session.flush()
        for record in busSeats:
            record["bus_id"] = bus.id
            session.add(BusSeat(**record))
        session.commit()
        session.refresh(bus)

        busData = jsonable_encoder(bus, exclude=EXCLUDED_RELATIONS)
        logEvent(request_info, busData)
        return busData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.patch(
    URL_BUS,
    tags=["Bus"],
    response_model=BusSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidIdentifier,
            exceptions.DuplicatePlateNumber,
            exceptions.InvalidValue(Bus.is_active),
        ]
    ),
    description="""
    Updates the plate number, activation or maintenance status of a bus.
    Retiring a bus deactivates it, a retired bus cannot be activated.
    Only active buses in ACTIVE maintenance status can be scheduled.
    """,
)
async def update_bus(
    fParam: UpdateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        bus = session.query(Bus).filter(Bus.id == fParam.id).first()
        if bus is None:
            raise exceptions.InvalidIdentifier()

        updateBus(session, bus, fParam)
        haveUpdates = session.is_modified(bus)
        if haveUpdates:
            session.commit()
            session.refresh(bus)

        busData = jsonable_encoder(bus, exclude=EXCLUDED_RELATIONS)
        if haveUpdates:
            logEvent(request_info, busData)
        return busData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.delete(
    URL_BUS,
    tags=["Bus"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.DataInUse(Bus)]),
    description="""
    Deletes a bus never assigned to a schedule, together with its seats.
    Buses with schedules should be retired instead.
    """,
)
async def delete_bus(
    fParam: DeleteForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        bus = session.query(Bus).filter(Bus.id == fParam.id).first()
        if bus is not None:
            assigned = session.query(Schedule.id).filter(Schedule.bus_id == bus.id).first()
            if assigned is not None:
                raise exceptions.DataInUse(Bus)
            session.query(BusSeat).filter(BusSeat.bus_id == bus.id).delete()
            session.delete(bus)
            session.commit()
            logEvent(request_info, jsonable_encoder(bus, exclude=EXCLUDED_RELATIONS))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_BUS,
    tags=["Bus"],
    response_model=List[BusSchema],
    description="""
    Fetches the buses, filtered by company, template, plate number, status or ID.
    """,
)
async def fetch_bus(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return searchBus(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
