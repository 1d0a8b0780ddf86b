from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from sqlalchemy import or_
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busdesk.src.db import Company, Driver, Schedule, sessionMaker
from busdesk.src import exceptions, getters
from busdesk.src.enums import OrderIn
from busdesk.src.loggers import logEvent
from busdesk.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from busdesk.src.urls import URL_DRIVER

route_dashboard = APIRouter()


## Output Schema
class DriverSchema(BaseModel):
    id: int
    company_id: int
    full_name: str
    document_id: str
    license_number: str
    license_category: str
    phone_number: Optional[str]
    active: bool
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    company_id: int = Field(Form())
    full_name: str = Field(Form(min_length=3, max_length=64))
    document_id: str = Field(Form(max_length=32))
    license_number: str = Field(Form(max_length=32))
    license_category: str = Field(Form(max_length=8))
    phone_number: str | None = Field(Form(max_length=32, default=None))
    active: bool = Field(Form(default=True))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    full_name: str | None = Field(Form(min_length=3, max_length=64, default=None))
    license_number: str | None = Field(Form(max_length=32, default=None))
    license_category: str | None = Field(Form(max_length=8, default=None))
    phone_number: str | None = Field(Form(max_length=32, default=None))
    active: bool | None = Field(Form(default=None))


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    full_name = 2
    created_on = 3


class QueryParams(BaseModel):
    company_id: int | None = Field(Query(default=None))
    full_name: str | None = Field(Query(default=None))
    document_id: str | None = Field(Query(default=None))
    active: bool | None = Field(Query(default=None))
    # id based
    id: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def searchDriver(session: Session, qParam: QueryParams) -> List[Driver]:
    query = session.query(Driver)

    # Filters
    if qParam.company_id is not None:
        query = query.filter(Driver.company_id == qParam.company_id)
    if qParam.full_name is not None:
        query = query.filter(Driver.full_name.ilike(f"%{qParam.full_name}%"))
    if qParam.document_id is not None:
        query = query.filter(Driver.document_id == qParam.document_id)
    if qParam.active is not None:
        query = query.filter(Driver.active == qParam.active)
    # id based
    if qParam.id is not None:
        query = query.filter(Driver.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(Driver.id.in_(qParam.id_list))

    # Ordering
    orderingAttribute = getattr(Driver, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints
@route_dashboard.post(
    URL_DRIVER,
    tags=["Driver"],
    response_model=DriverSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.UnknownValue(Driver.company_id), exceptions.UniqueViolation("")]
    ),
    description="""
    Registers a driver for a company.
    The identity document number must be unique.
    """,
)
async def create_driver(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        company = session.query(Company).filter(Company.id == fParam.company_id).first()
        if company is None:
            raise exceptions.UnknownValue(Driver.company_id)

        driver = Driver(
            company_id=fParam.company_id,
            full_name=fParam.full_name,
            document_id=fParam.document_id,
            license_number=fParam.license_number,
            license_category=fParam.license_category,
            phone_number=fParam.phone_number,
            active=fParam.active,
        )
        session.add(driver)
        session.commit()
        session.refresh(driver)

        driverData = jsonable_encoder(driver)
        logEvent(request_info, driverData)
        return driverData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.patch(
    URL_DRIVER,
    tags=["Driver"],
    response_model=DriverSchema,
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Updates a driver.
    An inactive driver keeps the schedules already assigned but cannot be
    assigned to new ones.
    """,
)
async def update_driver(
    fParam: UpdateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        driver = session.query(Driver).filter(Driver.id == fParam.id).first()
        if driver is None:
            raise exceptions.InvalidIdentifier()

        updateIfChanged(
            driver,
            fParam,
            [
                Driver.full_name.key,
                Driver.license_number.key,
                Driver.license_category.key,
                Driver.phone_number.key,
                Driver.active.key,
            ],
        )
        haveUpdates = session.is_modified(driver)
        if haveUpdates:
            session.commit()
            session.refresh(driver)

        driverData = jsonable_encoder(driver)
        if haveUpdates:
            logEvent(request_info, driverData)
        return driverData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.delete(
    URL_DRIVER,
    tags=["Driver"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.DataInUse(Driver)]),
    description="""
    Deletes a driver that was never assigned to a schedule.
    Drivers with schedules should be deactivated instead.
    """,
)
async def delete_driver(
    fParam: DeleteForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        driver = session.query(Driver).filter(Driver.id == fParam.id).first()
        if driver is not None:
            assigned = (
                session.query(Schedule.id)
                .filter(
                    or_(
                        Schedule.primary_driver_id == driver.id,
                        Schedule.secondary_driver_id == driver.id,
                    )
                )
                .first()
            )
            if assigned is not None:
                raise exceptions.DataInUse(Driver)
            session.delete(driver)
            session.commit()
            logEvent(request_info, jsonable_encoder(driver))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_DRIVER,
    tags=["Driver"],
    response_model=List[DriverSchema],
    description="""
    Fetches the drivers, filtered by company, name, document or activation.
    """,
)
async def fetch_driver(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return searchDriver(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
