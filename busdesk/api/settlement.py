from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Body
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busdesk.src.db import (
    ExpenseCategory,
    Schedule,
    TripExpense,
    TripSettlement,
    sessionMaker,
)
from busdesk.src import exceptions, validators, getters
from busdesk.src.enums import OrderIn, SettlementStatus
from busdesk.src.loggers import logEvent
from busdesk.src.functions import enumStr, makeExceptionResponses
from busdesk.src.settlement import (
    SETTLEMENT_TRANSITIONS,
    formatSettlement,
    settlementTotals,
)
from busdesk.src.urls import URL_SETTLEMENT, URL_SETTLEMENT_EXPENSE

route_dashboard = APIRouter()


## Output Schema
class ExpenseSchema(BaseModel):
    id: int
    category_id: Optional[int]
    category: str
    amount: float
    description: Optional[str]


class SettlementSchema(BaseModel):
    id: int
    schedule_id: Optional[int]
    total_income: float
    total_expenses: float
    net_amount: float
    status: Optional[int]
    details: Optional[str]
    settled_at: Optional[datetime]
    route: str
    route_name: str
    plate_number: str
    bus_type: str
    owner_name: str
    driver_name: Optional[str]
    departure_time: Optional[datetime]
    expenses: List[ExpenseSchema]
    updated_on: Optional[datetime]
    created_on: Optional[datetime]


## Input Forms
class ExpenseItem(BaseModel):
    category_id: int | None = None
    amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    description: str | None = Field(max_length=512, default=None)


class CreateForm(BaseModel):
    schedule_id: int = Field(Body())
    total_income: Decimal = Field(Body(ge=0, max_digits=12, decimal_places=2))
    details: str | None = Field(Body(max_length=2048, default=None))
    expenses: List[ExpenseItem] = Field(Body(default=[]))


class UpdateForm(BaseModel):
    id: int = Field(Body())
    total_income: Decimal | None = Field(
        Body(ge=0, max_digits=12, decimal_places=2, default=None)
    )
    details: str | None = Field(Body(max_length=2048, default=None))
    status: SettlementStatus | None = Field(
        Body(description=enumStr(SettlementStatus), default=None)
    )


class DeleteForm(BaseModel):
    id: int = Field(Body(embed=True))


class CreateExpenseForm(BaseModel):
    settlement_id: int = Field(Body())
    category_id: int | None = Field(Body(default=None))
    amount: Decimal = Field(Body(ge=0, max_digits=12, decimal_places=2))
    description: str | None = Field(Body(max_length=512, default=None))


class DeleteExpenseForm(BaseModel):
    id: int = Field(Body(embed=True))


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    settled_at = 2
    net_amount = 3
    created_on = 4


class QueryParams(BaseModel):
    # filters
    schedule_id: int | None = Field(Query(default=None))
    status: SettlementStatus | None = Field(
        Query(default=None, description=enumStr(SettlementStatus))
    )
    # id based
    id: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # settled_at based
    settled_at_ge: datetime | None = Field(Query(default=None))
    settled_at_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def checkCategories(session: Session, categoryIds: set[int]) -> None:
    categoryIds = {categoryId for categoryId in categoryIds if categoryId is not None}
    if not categoryIds:
        return
    found = (
        session.query(ExpenseCategory.id)
        .filter(ExpenseCategory.id.in_(categoryIds))
        .count()
    )
    if found != len(categoryIds):
        raise exceptions.UnknownValue(TripExpense.category_id)


def updateTotals(settlement: TripSettlement) -> None:
    income, expenses, net = settlementTotals(
        settlement.total_income, [expense.amount for expense in settlement.expenses]
    )
    settlement.total_income = income
    settlement.total_expenses = expenses
    settlement.net_amount = net


def searchSettlement(session: Session, qParam: QueryParams) -> List[TripSettlement]:
    query = session.query(TripSettlement)

    # Filters
    if qParam.schedule_id is not None:
        query = query.filter(TripSettlement.schedule_id == qParam.schedule_id)
    if qParam.status is not None:
        query = query.filter(TripSettlement.status == qParam.status)
    # id based
    if qParam.id is not None:
        query = query.filter(TripSettlement.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(TripSettlement.id.in_(qParam.id_list))
    # settled_at based
    if qParam.settled_at_ge is not None:
        query = query.filter(TripSettlement.settled_at >= qParam.settled_at_ge)
    if qParam.settled_at_le is not None:
        query = query.filter(TripSettlement.settled_at <= qParam.settled_at_le)

    # Ordering
    orderingAttribute = getattr(TripSettlement, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints
@route_dashboard.post(
    URL_SETTLEMENT,
    tags=["Settlement"],
    response_model=SettlementSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.UnknownValue(TripSettlement.schedule_id),
            exceptions.UnknownValue(TripExpense.category_id),
            exceptions.SettlementExists,
        ]
    ),
    description="""
    Settles a trip, with its income and optionally its first expenses.
    A trip is settled at most once.
    Total expenses and net amount are computed by the server.
    """,
)
async def create_settlement(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        schedule = session.query(Schedule).filter(Schedule.id == fParam.schedule_id).first()
        if schedule is None:
            raise exceptions.UnknownValue(TripSettlement.schedule_id)
        existing = (
            session.query(TripSettlement.id)
            .filter(TripSettlement.schedule_id == schedule.id)
            .first()
        )
        if existing is not None:
            raise exceptions.SettlementExists()
        checkCategories(session, {expense.category_id for expense in fParam.expenses})

        settlement = TripSettlement(
            schedule_id=schedule.id,
            total_income=fParam.total_income,
            details=fParam.details,
            status=SettlementStatus.PENDING,
        )
        for expense in fParam.expenses:
            settlement.expenses.append(
                TripExpense(
                    category_id=expense.category_id,
                    amount=expense.amount,
                    description=expense.description,
                )
            )
        updateTotals(settlement)
        session.add(settlement)
        session.commit()
        session.refresh(settlement)

        settlementData = jsonable_encoder(formatSettlement(settlement))
        logEvent(request_info, settlementData)
        return settlementData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.patch(
    URL_SETTLEMENT,
    tags=["Settlement"],
    response_model=SettlementSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidIdentifier,
            exceptions.InvalidStateTransition(TripSettlement.status),
            exceptions.SettlementLocked,
        ]
    ),
    description="""
    Updates the income, the notes or the status of a settlement.
    - PENDING moves to APPROVED or CANCELLED, APPROVED moves to FINALIZED.
    - The income of an APPROVED or FINALIZED settlement cannot change.
    """,
)
async def update_settlement(
    fParam: UpdateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        settlement = (
            session.query(TripSettlement).filter(TripSettlement.id == fParam.id).first()
        )
        if settlement is None:
            raise exceptions.InvalidIdentifier()

        if (
            fParam.total_income is not None
            and fParam.total_income != settlement.total_income
        ):
            validators.settlementUnlocked(settlement)
            settlement.total_income = fParam.total_income
            updateTotals(settlement)
        if fParam.details is not None and fParam.details != settlement.details:
            settlement.details = fParam.details
        if fParam.status is not None and fParam.status != settlement.status:
            validators.stateTransition(
                SETTLEMENT_TRANSITIONS,
                settlement.status,
                fParam.status,
                TripSettlement.status,
            )
            settlement.status = fParam.status

        haveUpdates = session.is_modified(settlement)
        if haveUpdates:
            session.commit()
            session.refresh(settlement)

        settlementData = jsonable_encoder(formatSettlement(settlement))
        if haveUpdates:
            logEvent(request_info, settlementData)
        return settlementData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.delete(
    URL_SETTLEMENT,
    tags=["Settlement"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.SettlementLocked]),
    description="""
    Deletes a settlement with its expenses.
    APPROVED and FINALIZED settlements cannot be deleted.
    """,
)
async def delete_settlement(
    fParam: DeleteForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        settlement = (
            session.query(TripSettlement).filter(TripSettlement.id == fParam.id).first()
        )
        if settlement is not None:
            validators.settlementUnlocked(settlement)
            settlementData = jsonable_encoder(formatSettlement(settlement))
            session.delete(settlement)
            session.commit()
            logEvent(request_info, settlementData)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_SETTLEMENT,
    tags=["Settlement"],
    response_model=List[SettlementSchema],
    description="""
    Fetches the settlements with their trip, bus and driver details.
    Missing details are reported as "N/A" or "Unknown", never as an error.
    """,
)
async def fetch_settlement(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return [formatSettlement(s) for s in searchSettlement(session, qParam)]
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.post(
    URL_SETTLEMENT_EXPENSE,
    tags=["Settlement"],
    response_model=SettlementSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.UnknownValue(TripExpense.settlement_id),
            exceptions.UnknownValue(TripExpense.category_id),
            exceptions.SettlementLocked,
        ]
    ),
    description="""
    Books an expense against a settlement and recomputes its totals.
    Expenses of APPROVED or FINALIZED settlements cannot change.
    """,
)
async def create_settlement_expense(
    fParam: CreateExpenseForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        settlement = (
            session.query(TripSettlement)
            .filter(TripSettlement.id == fParam.settlement_id)
            .first()
        )
        if settlement is None:
            raise exceptions.UnknownValue(TripExpense.settlement_id)
        validators.settlementUnlocked(settlement)
        checkCategories(session, {fParam.category_id})

        settlement.expenses.append(
            TripExpense(
                category_id=fParam.category_id,
                amount=fParam.amount,
                description=fParam.description,
            )
        )
        updateTotals(settlement)
        session.commit()
        session.refresh(settlement)

        settlementData = jsonable_encoder(formatSettlement(settlement))
        logEvent(request_info, settlementData)
        return settlementData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.delete(
    URL_SETTLEMENT_EXPENSE,
    tags=["Settlement"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.SettlementLocked]),
    description="""
    Removes an expense from a settlement and recomputes its totals.
    Expenses of APPROVED or FINALIZED settlements cannot change.
    """,
)
async def delete_settlement_expense(
    fParam: DeleteExpenseForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        expense = session.query(TripExpense).filter(TripExpense.id == fParam.id).first()
        if expense is not None:
            settlement = (
                session.query(TripSettlement)
                .filter(TripSettlement.id == expense.settlement_id)
                .first()
            )
            validators.settlementUnlocked(settlement)
            settlement.expenses.remove(expense)
            updateTotals(settlement)
            session.commit()
            session.refresh(settlement)
            logEvent(request_info, jsonable_encoder(formatSettlement(settlement)))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
