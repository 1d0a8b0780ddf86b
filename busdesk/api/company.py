from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busdesk.src.db import Company, sessionMaker
from busdesk.src import exceptions, getters
from busdesk.src.enums import OrderIn
from busdesk.src.loggers import logEvent
from busdesk.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from busdesk.src.urls import URL_COMPANY

route_dashboard = APIRouter()


## Output Schema
class CompanySchema(BaseModel):
    id: int
    name: str
    active: bool
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    name: str = Field(Form(max_length=64))
    active: bool = Field(Form(default=True))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    name: str | None = Field(Form(max_length=64, default=None))
    active: bool | None = Field(Form(default=None))


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    name = 2
    created_on = 3


class QueryParams(BaseModel):
    name: str | None = Field(Query(default=None))
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
def searchCompany(session: Session, qParam: QueryParams) -> List[Company]:
    query = session.query(Company)

    # Filters
    if qParam.name is not None:
        query = query.filter(Company.name.ilike(f"%{qParam.name}%"))
    if qParam.active is not None:
        query = query.filter(Company.active == qParam.active)
    # id based
    if qParam.id is not None:
        query = query.filter(Company.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(Company.id.in_(qParam.id_list))

    # Ordering
    orderingAttribute = getattr(Company, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints
@route_dashboard.post(
    URL_COMPANY,
    tags=["Company"],
    response_model=CompanySchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.UniqueViolation("")]),
    description="""
    Registers a new transport company.
    The company name must be unique.
    """,
)
async def create_company(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        company = Company(name=fParam.name, active=fParam.active)
        session.add(company)
        session.commit()
        session.refresh(company)

        companyData = jsonable_encoder(company)
        logEvent(request_info, companyData)
        return companyData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.patch(
    URL_COMPANY,
    tags=["Company"],
    response_model=CompanySchema,
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Renames or (de)activates a company.
    Changes are saved only if the company data has been modified.
    """,
)
async def update_company(
    fParam: UpdateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        company = session.query(Company).filter(Company.id == fParam.id).first()
        if company is None:
            raise exceptions.InvalidIdentifier()

        updateIfChanged(company, fParam, [Company.name.key, Company.active.key])
        haveUpdates = session.is_modified(company)
        if haveUpdates:
            session.commit()
            session.refresh(company)

        companyData = jsonable_encoder(company)
        if haveUpdates:
            logEvent(request_info, companyData)
        return companyData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_COMPANY,
    tags=["Company"],
    response_model=List[CompanySchema],
    description="""
    Fetches the companies, filtered by name, activation or ID.
    """,
)
async def fetch_company(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return searchCompany(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
