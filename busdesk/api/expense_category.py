from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busdesk.src.db import ExpenseCategory, sessionMaker
from busdesk.src import exceptions, getters
from busdesk.src.loggers import logEvent
from busdesk.src.functions import makeExceptionResponses
from busdesk.src.urls import URL_EXPENSE_CATEGORY

route_dashboard = APIRouter()


## Output Schema
class ExpenseCategorySchema(BaseModel):
    id: int
    name: str
    description: Optional[str]
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    name: str = Field(Form(max_length=64))
    description: str | None = Field(Form(max_length=512, default=None))


## Query Parameters
class QueryParams(BaseModel):
    name: str | None = Field(Query(default=None))
    id: int | None = Field(Query(default=None))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## API endpoints
@route_dashboard.post(
    URL_EXPENSE_CATEGORY,
    tags=["Expense Category"],
    response_model=ExpenseCategorySchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.UniqueViolation("")]),
    description="""
    Creates an expense category, names are unique.
    """,
)
async def create_expense_category(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        category = ExpenseCategory(name=fParam.name, description=fParam.description)
        session.add(category)
        session.commit()
        session.refresh(category)

        categoryData = jsonable_encoder(category)
        logEvent(request_info, categoryData)
        return categoryData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_dashboard.get(
    URL_EXPENSE_CATEGORY,
    tags=["Expense Category"],
    response_model=List[ExpenseCategorySchema],
    description="""
    Fetches the expense categories in alphabetical order.
    """,
)
async def fetch_expense_category(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        query = session.query(ExpenseCategory)
        if qParam.name is not None:
            query = query.filter(ExpenseCategory.name.ilike(f"%{qParam.name}%"))
        if qParam.id is not None:
            query = query.filter(ExpenseCategory.id == qParam.id)
        query = query.order_by(ExpenseCategory.name.asc())
        return query.offset(qParam.offset).limit(qParam.limit).all()
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
