from datetime import datetime, time
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Body, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busdesk.src.db import Location, Route, RouteSchedule, sessionMaker
from busdesk.src import exceptions, getters
from busdesk.src.enums import Day, OrderIn
from busdesk.src.loggers import logEvent
from busdesk.src.functions import enumStr, makeExceptionResponses
from busdesk.src.urls import URL_ROUTE, URL_ROUTE_SCHEDULE

route_dashboard = APIRouter()


## Output Schema
class RouteSchema(BaseModel):
    id: int
    name: str
    origin_id: int
    destination_id: int
    estimated_duration: int
    departure_lane: Optional[str]
    active: bool
    updated_on: Optional[datetime]
    created_on: datetime


class RouteScheduleSchema(BaseModel):
    id: int
    route_id: int
    departure_time: time
    estimated_arrival_time: time
    operating_days: List[int]
    season_start: Optional[datetime]
    season_end: Optional[datetime]
    active: bool
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateRouteForm(BaseModel):
    name: str = Field(Form(max_length=128))
    origin_id: int = Field(Form())
    destination_id: int = Field(Form())
    estimated_duration: int = Field(Form(gt=0, description="Travel time in minutes"))
    departure_lane: str | None = Field(Form(max_length=32, default=None))
    active: bool = Field(Form(default=True))


class CreateRouteScheduleForm(BaseModel):
    route_id: int = Field(Body())
    departure_time: time = Field(Body())
    estimated_arrival_time: time = Field(Body())
    operating_days: List[Day] = Field(Body(min_length=1, description=enumStr(Day)))
    season_start: datetime | None = Field(Body(default=None))
    season_end: datetime | None = Field(Body(default=None))
    active: bool = Field(Body(default=True))


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    name = 2
    created_on = 3


class QueryParams(BaseModel):
    name: str | None = Field(Query(default=None))
    origin_id: int | None = Field(Query(default=None))
    destination_id: int | None = Field(Query(default=None))
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


class RouteScheduleQueryParams(BaseModel):
    route_id: int | None = Field(Query(default=None))
    active: bool | None = Field(Query(default=None))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def searchRoute(session: Session, qParam: QueryParams) -> List[Route]:
    query = session.query(Route)

    # Filters
    if qParam.name is not None:
        query = query.filter(Route.name.ilike(f"%{qParam.name}%"))
    if qParam.origin_id is not None:
        query = query.filter(Route.origin_id == qParam.origin_id)
    if qParam.destination_id is not None:
        query = query.filter(Route.destination_id == qParam.destination_id)
    if qParam.active is not None:
        query = query.filter(Route.active == qParam.active)
    # id based
    if qParam.id is not None:
        query = query.filter(Route.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(Route.id.in_(qParam.id_list))

    # Ordering
    orderingAttribute = getattr(Route, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints
@route_dashboard.post(
    URL_ROUTE,
    tags=["Route"],
    response_model=RouteSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.UnknownValue(Route.origin_id),
            exceptions.InvalidValue(Route.destination_id),
            exceptions.InactiveResource(Location),
        ]
    ),
    description="""
    Creates a route between two distinct, active locations.
    """,
)
async def create_route(
    fParam: CreateRouteForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        if fParam.origin_id == fParam.destination_id:
            raise exceptions.InvalidValue(Route.destination_id)
        for column, locationId in (
            (Route.origin_id, fParam.origin_id),
            (Route.destination_id, fParam.destination_id),
        ):
            location = session.query(Location).filter(Location.id == locationId).first()
            if location is None:
                raise exceptions.UnknownValue(column)
            if not location.active:
                raise exceptions.InactiveResource(Location)

        route = Route(
            name=fParam.name,
            origin_id=fParam.origin_id,
            destination_id=fParam.destination_id,
            estimated_duration=fParam.estimated_duration,
            departure_lane=fParam.departure_lane,
            active=fParam.active,
        )
        session.add(route)
        session.commit()
        session.refresh(route)

        logEvent(request_info, jsonable_encoder(route, exclude={"origin", "destination"}))
        return route
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_ROUTE,
    tags=["Route"],
    response_model=List[RouteSchema],
    description="""
    Fetches the routes, filtered by name, locations, activation or ID.
    """,
)
async def fetch_route(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return searchRoute(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.post(
    URL_ROUTE_SCHEDULE,
    tags=["Route"],
    response_model=RouteScheduleSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.UnknownValue(RouteSchedule.route_id),
            exceptions.InvalidValue(RouteSchedule.season_end),
        ]
    ),
    description="""
    Adds a timetable entry to a route.
    The operating days are given as a list of day numbers, Monday being 1.
    """,
)
async def create_route_schedule(
    fParam: CreateRouteScheduleForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        route = session.query(Route).filter(Route.id == fParam.route_id).first()
        if route is None:
            raise exceptions.UnknownValue(RouteSchedule.route_id)
        if (
            fParam.season_start is not None
            and fParam.season_end is not None
            and fParam.season_end < fParam.season_start
        ):
            raise exceptions.InvalidValue(RouteSchedule.season_end)

        routeSchedule = RouteSchedule(
            route_id=fParam.route_id,
            departure_time=fParam.departure_time,
            estimated_arrival_time=fParam.estimated_arrival_time,
            operating_days=sorted({int(day) for day in fParam.operating_days}),
            season_start=fParam.season_start,
            season_end=fParam.season_end,
            active=fParam.active,
        )
        session.add(routeSchedule)
        session.commit()
        session.refresh(routeSchedule)

        logEvent(request_info, jsonable_encoder(routeSchedule, exclude={"route"}))
        return routeSchedule
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_ROUTE_SCHEDULE,
    tags=["Route"],
    response_model=List[RouteScheduleSchema],
    description="""
    Fetches the timetable entries, optionally of one route.
    """,
)
async def fetch_route_schedule(qParam: RouteScheduleQueryParams = Depends()):
    try:
        session = sessionMaker()
        query = session.query(RouteSchedule)
        if qParam.route_id is not None:
            query = query.filter(RouteSchedule.route_id == qParam.route_id)
        if qParam.active is not None:
            query = query.filter(RouteSchedule.active == qParam.active)
        query = query.order_by(RouteSchedule.departure_time.asc())
        return query.offset(qParam.offset).limit(qParam.limit).all()
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
