from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Body
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busdesk.src.db import Bus, BusTemplate, Company, sessionMaker
from busdesk.src import exceptions, validators, getters, seat_matrix
from busdesk.src.enums import OrderIn
from busdesk.src.loggers import logEvent
from busdesk.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from busdesk.src.seat_matrix import Dimensions, SeatMatrix
from busdesk.src.urls import URL_BUS_TEMPLATE

route_dashboard = APIRouter()


## Output Schema
class BusTemplateSchema(BaseModel):
    id: int
    company_id: int
    name: str
    description: Optional[str]
    total_capacity: int
    seat_template_matrix: SeatMatrix
    is_active: bool
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    company_id: int = Field(Body())
    name: str = Field(Body(max_length=64))
    description: str | None = Field(Body(max_length=2048, default=None))
    seat_template_matrix: SeatMatrix | None = Field(
        Body(default=None, description="Full layout, takes precedence over the dimensions")
    )
    first_floor: Dimensions | None = Field(
        Body(default=None, description="Generate a full grid of this size")
    )
    second_floor: Dimensions | None = Field(Body(default=None))
    default_tier_id: int | None = Field(
        Body(default=None, description="Tier of every generated seat")
    )
    is_active: bool = Field(Body(default=True))


class UpdateForm(BaseModel):
    id: int = Field(Body())
    name: str | None = Field(Body(max_length=64, default=None))
    description: str | None = Field(Body(max_length=2048, default=None))
    seat_template_matrix: SeatMatrix | None = Field(Body(default=None))
    first_floor: Dimensions | None = Field(Body(default=None))
    second_floor: Dimensions | None = Field(Body(default=None))
    remove_second_floor: bool = Field(Body(default=False))
    is_active: bool | None = Field(Body(default=None))


class DeleteForm(BaseModel):
    id: int = Field(Body(embed=True))


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    name = 2
    total_capacity = 3
    created_on = 4


class QueryParams(BaseModel):
    company_id: int | None = Field(Query(default=None))
    name: str | None = Field(Query(default=None))
    is_active: bool | None = Field(Query(default=None))
    # id based
    id: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # capacity based
    total_capacity_ge: int | None = Field(Query(default=None))
    total_capacity_le: int | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def applyLayout(session: Session, template: BusTemplate, matrix: SeatMatrix):
    """Validate a template layout and store it with its capacity."""
    matrix = validators.seatTemplate(matrix)
    tierIds = {seat.tier_id for seat in matrix.seats() if not seat.is_empty}
    validators.seatTiers(session, tierIds, template.company_id)
    template.seat_template_matrix = matrix.model_dump(mode="json")
    template.total_capacity = seat_matrix.sellableSeatCount(matrix)


def searchBusTemplate(session: Session, qParam: QueryParams) -> List[BusTemplate]:
    query = session.query(BusTemplate)

    # Filters
    if qParam.company_id is not None:
        query = query.filter(BusTemplate.company_id == qParam.company_id)
    if qParam.name is not None:
        query = query.filter(BusTemplate.name.ilike(f"%{qParam.name}%"))
    if qParam.is_active is not None:
        query = query.filter(BusTemplate.is_active == qParam.is_active)
    # id based
    if qParam.id is not None:
        query = query.filter(BusTemplate.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(BusTemplate.id.in_(qParam.id_list))
    # capacity based
    if qParam.total_capacity_ge is not None:
        query = query.filter(BusTemplate.total_capacity >= qParam.total_capacity_ge)
    if qParam.total_capacity_le is not None:
        query = query.filter(BusTemplate.total_capacity <= qParam.total_capacity_le)

    # Ordering
    orderingAttribute = getattr(BusTemplate, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints
@route_dashboard.post(
    URL_BUS_TEMPLATE,
    tags=["Bus Template"],
    response_model=BusTemplateSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.UnknownValue(BusTemplate.company_id),
            exceptions.MissingParameter(BusTemplate.seat_template_matrix),
            exceptions.InvalidSeatMatrix,
            exceptions.UnassignedSeatTier([]),
            exceptions.InvalidAssociation(Bus.template_id, Bus.company_id),
            exceptions.UniqueViolation(""),
        ]
    ),
    description="""
    Creates a bus type with its seat layout.
    The layout is either given in full or generated from the floor dimensions,
    every generated seat then gets `default_tier_id`.
    Every seat that is not an empty slot must have a tier of the same company.
    The capacity is the number of seats that are not empty slots.
    """,
)
async def create_bus_template(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        company = session.query(Company).filter(Company.id == fParam.company_id).first()
        if company is None:
            raise exceptions.UnknownValue(BusTemplate.company_id)

        if fParam.seat_template_matrix is not None:
            matrix = fParam.seat_template_matrix
        elif fParam.first_floor is not None:
            matrix = seat_matrix.generateMatrix(
                fParam.first_floor, fParam.second_floor, fParam.default_tier_id
            )
        else:
            raise exceptions.MissingParameter(BusTemplate.seat_template_matrix)

        template = BusTemplate(
            company_id=fParam.company_id,
            name=fParam.name,
            description=fParam.description,
            is_active=fParam.is_active,
        )
        applyLayout(session, template, matrix)
        session.add(template)
        session.commit()
        session.refresh(template)

        templateData = jsonable_encoder(template)
        logEvent(request_info, templateData)
        return templateData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.patch(
    URL_BUS_TEMPLATE,
    tags=["Bus Template"],
    response_model=BusTemplateSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidIdentifier,
            exceptions.InvalidSeatMatrix,
            exceptions.UnassignedSeatTier([]),
        ]
    ),
    description="""
    Updates a bus type.
    The layout can be replaced as a whole, or the floors resized, seats that
    still fit the new size are kept.
    Buses created earlier keep their own layout.
    """,
)
async def update_bus_template(
    fParam: UpdateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        template = (
            session.query(BusTemplate).filter(BusTemplate.id == fParam.id).first()
        )
        if template is None:
            raise exceptions.InvalidIdentifier()

        updateIfChanged(
            template,
            fParam,
            [
                BusTemplate.name.key,
                BusTemplate.description.key,
                BusTemplate.is_active.key,
            ],
        )
        if fParam.seat_template_matrix is not None:
            applyLayout(session, template, fParam.seat_template_matrix)
        elif (
            fParam.first_floor is not None
            or fParam.second_floor is not None
            or fParam.remove_second_floor
        ):
            matrix = seat_matrix.resizeMatrix(
                seat_matrix.parseMatrix(template.seat_template_matrix),
                fParam.first_floor,
                fParam.second_floor,
                fParam.remove_second_floor,
            )
            applyLayout(session, template, matrix)

        haveUpdates = session.is_modified(template)
        if haveUpdates:
            session.commit()
            session.refresh(template)

        templateData = jsonable_encoder(template)
        if haveUpdates:
            logEvent(request_info, templateData)
        return templateData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.delete(
    URL_BUS_TEMPLATE,
    tags=["Bus Template"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.DataInUse(BusTemplate)]),
    description="""
    Deletes a bus type no bus was created from.
    """,
)
async def delete_bus_template(
    fParam: DeleteForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        template = (
            session.query(BusTemplate).filter(BusTemplate.id == fParam.id).first()
        )
        if template is not None:
            inUse = session.query(Bus.id).filter(Bus.template_id == template.id).first()
            if inUse is not None:
                raise exceptions.DataInUse(BusTemplate)
            session.delete(template)
            session.commit()
            logEvent(request_info, jsonable_encoder(template))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_BUS_TEMPLATE,
    tags=["Bus Template"],
    response_model=List[BusTemplateSchema],
    description="""
    Fetches the bus types, filtered by company, name, capacity or ID.
    """,
)
async def fetch_bus_template(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return searchBusTemplate(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
