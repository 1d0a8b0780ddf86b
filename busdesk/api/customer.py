from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busdesk.src.db import Customer, sessionMaker
from busdesk.src import exceptions, getters
from busdesk.src.enums import OrderIn
from busdesk.src.loggers import logEvent
from busdesk.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from busdesk.src.urls import URL_CUSTOMER

route_dashboard = APIRouter()


## Output Schema
class CustomerSchema(BaseModel):
    id: int
    full_name: str
    document_id: str
    phone_number: Optional[str]
    email: Optional[str]
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    full_name: str = Field(Form(min_length=3, max_length=64))
    document_id: str = Field(Form(max_length=32))
    phone_number: str | None = Field(Form(max_length=32, default=None))
    email: str | None = Field(Form(max_length=256, default=None))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    full_name: str | None = Field(Form(min_length=3, max_length=64, default=None))
    phone_number: str | None = Field(Form(max_length=32, default=None))
    email: str | None = Field(Form(max_length=256, default=None))


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    full_name = 2
    created_on = 3


class QueryParams(BaseModel):
    full_name: str | None = Field(Query(default=None))
    document_id: str | None = Field(Query(default=None))
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
def searchCustomer(session: Session, qParam: QueryParams) -> List[Customer]:
    query = session.query(Customer)

    # Filters
    if qParam.full_name is not None:
        query = query.filter(Customer.full_name.ilike(f"%{qParam.full_name}%"))
    if qParam.document_id is not None:
        query = query.filter(Customer.document_id == qParam.document_id)
    # id based
    if qParam.id is not None:
        query = query.filter(Customer.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(Customer.id.in_(qParam.id_list))

    # Ordering
    orderingAttribute = getattr(Customer, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints
@route_dashboard.post(
    URL_CUSTOMER,
    tags=["Customer"],
    response_model=CustomerSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.UniqueViolation("")]),
    description="""
    Registers a passenger ahead of a sale.
    The identity document number must be unique.
    """,
)
async def create_customer(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        customer = Customer(
            full_name=fParam.full_name,
            document_id=fParam.document_id,
            phone_number=fParam.phone_number,
            email=fParam.email,
        )
        session.add(customer)
        session.commit()
        session.refresh(customer)

        customerData = jsonable_encoder(customer)
        logEvent(request_info, customerData)
        return customerData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.patch(
    URL_CUSTOMER,
    tags=["Customer"],
    response_model=CustomerSchema,
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Updates the name or the contact details of a passenger.
    """,
)
async def update_customer(
    fParam: UpdateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        customer = session.query(Customer).filter(Customer.id == fParam.id).first()
        if customer is None:
            raise exceptions.InvalidIdentifier()

        updateIfChanged(
            customer,
            fParam,
            [
                Customer.full_name.key,
                Customer.phone_number.key,
                Customer.email.key,
            ],
        )
        haveUpdates = session.is_modified(customer)
        if haveUpdates:
            session.commit()
            session.refresh(customer)

        customerData = jsonable_encoder(customer)
        if haveUpdates:
            logEvent(request_info, customerData)
        return customerData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_CUSTOMER,
    tags=["Customer"],
    response_model=List[CustomerSchema],
    description="""
    Fetches the passengers, filtered by name or document.
    """,
)
async def fetch_customer(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return searchCustomer(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
