from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busdesk.src.db import Location, sessionMaker
from busdesk.src import exceptions, getters
from busdesk.src.loggers import logEvent
from busdesk.src.functions import makeExceptionResponses
from busdesk.src.urls import URL_LOCATION

route_dashboard = APIRouter()


## Output Schema
class LocationSchema(BaseModel):
    id: int
    name: str
    active: bool
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    name: str = Field(Form(min_length=3, max_length=64))
    active: bool = Field(Form(default=True))


## Query Parameters
class QueryParams(BaseModel):
    name: str | None = Field(Query(default=None))
    active: bool | None = Field(Query(default=None))
    id: int | None = Field(Query(default=None))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## API endpoints
@route_dashboard.post(
    URL_LOCATION,
    tags=["Location"],
    response_model=LocationSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.UniqueViolation("")]),
    description="""
    Registers a city or terminal.
    The first three letters of the name are used in route codes.
    """,
)
async def create_location(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        location = Location(name=fParam.name, active=fParam.active)
        session.add(location)
        session.commit()
        session.refresh(location)

        locationData = jsonable_encoder(location)
        logEvent(request_info, locationData)
        return locationData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_LOCATION,
    tags=["Location"],
    response_model=List[LocationSchema],
    description="""
    Fetches the locations ordered by name.
    """,
)
async def fetch_location(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        query = session.query(Location)
        if qParam.name is not None:
            query = query.filter(Location.name.ilike(f"%{qParam.name}%"))
        if qParam.active is not None:
            query = query.filter(Location.active == qParam.active)
        if qParam.id is not None:
            query = query.filter(Location.id == qParam.id)
        query = query.order_by(Location.name.asc())
        return query.offset(qParam.offset).limit(qParam.limit).all()
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
