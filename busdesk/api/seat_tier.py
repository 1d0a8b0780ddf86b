from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busdesk.src.db import Company, SeatTier, sessionMaker
from busdesk.src import exceptions, getters
from busdesk.src.loggers import logEvent
from busdesk.src.functions import makeExceptionResponses, updateIfChanged
from busdesk.src.urls import URL_SEAT_TIER

route_dashboard = APIRouter()


## Output Schema
class SeatTierSchema(BaseModel):
    id: int
    company_id: int
    name: str
    description: Optional[str]
    base_price: Decimal
    is_active: bool
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    company_id: int = Field(Form())
    name: str = Field(Form(max_length=32))
    description: str | None = Field(Form(max_length=512, default=None))
    base_price: Decimal = Field(Form(ge=0, max_digits=10, decimal_places=2))
    is_active: bool = Field(Form(default=True))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    name: str | None = Field(Form(max_length=32, default=None))
    description: str | None = Field(Form(max_length=512, default=None))
    base_price: Decimal | None = Field(
        Form(ge=0, max_digits=10, decimal_places=2, default=None)
    )
    is_active: bool | None = Field(Form(default=None))


## Query Parameters
class QueryParams(BaseModel):
    company_id: int | None = Field(Query(default=None))
    name: str | None = Field(Query(default=None))
    is_active: bool | None = Field(Query(default=None))
    id: int | None = Field(Query(default=None))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## API endpoints
@route_dashboard.post(
    URL_SEAT_TIER,
    tags=["Seat Tier"],
    response_model=SeatTierSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.UnknownValue(SeatTier.company_id), exceptions.UniqueViolation("")]
    ),
    description="""
    Creates a pricing tier for the seats of a company.
    The name must be unique within the company.
    """,
)
async def create_seat_tier(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        company = session.query(Company).filter(Company.id == fParam.company_id).first()
        if company is None:
            raise exceptions.UnknownValue(SeatTier.company_id)

        tier = SeatTier(
            company_id=fParam.company_id,
            name=fParam.name,
            description=fParam.description,
            base_price=fParam.base_price,
            is_active=fParam.is_active,
        )
        session.add(tier)
        session.commit()
        session.refresh(tier)

        tierData = jsonable_encoder(tier)
        logEvent(request_info, tierData)
        return tierData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.patch(
    URL_SEAT_TIER,
    tags=["Seat Tier"],
    response_model=SeatTierSchema,
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Updates a seat tier.
    A deactivated tier stays on the seats already using it but cannot be
    applied to new seats.
    """,
)
async def update_seat_tier(
    fParam: UpdateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        tier = session.query(SeatTier).filter(SeatTier.id == fParam.id).first()
        if tier is None:
            raise exceptions.InvalidIdentifier()

        updateIfChanged(
            tier,
            fParam,
            [
                SeatTier.name.key,
                SeatTier.description.key,
                SeatTier.base_price.key,
                SeatTier.is_active.key,
            ],
        )
        haveUpdates = session.is_modified(tier)
        if haveUpdates:
            session.commit()
            session.refresh(tier)

        tierData = jsonable_encoder(tier)
        if haveUpdates:
            logEvent(request_info, tierData)
        return tierData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_SEAT_TIER,
    tags=["Seat Tier"],
    response_model=List[SeatTierSchema],
    description="""
    Fetches the seat tiers, optionally of one company.
    """,
)
async def fetch_seat_tier(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        query = session.query(SeatTier)
        if qParam.company_id is not None:
            query = query.filter(SeatTier.company_id == qParam.company_id)
        if qParam.name is not None:
            query = query.filter(SeatTier.name.ilike(f"%{qParam.name}%"))
        if qParam.is_active is not None:
            query = query.filter(SeatTier.is_active == qParam.is_active)
        if qParam.id is not None:
            query = query.filter(SeatTier.id == qParam.id)
        query = query.order_by(SeatTier.base_price.asc(), SeatTier.id.asc())
        return query.offset(qParam.offset).limit(qParam.limit).all()
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
