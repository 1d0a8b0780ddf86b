"""
Trip settlement figures and their flattened presentation.

The presentation walks the optional relation chain of a settlement
(schedule, timetable entry, route, locations, bus, template, company,
driver) and substitutes a placeholder at every missing link instead of
failing, so a half populated settlement can still be listed.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from busdesk.src.constants import (
    DEFAULT_EXPENSE_CATEGORY,
    PLACEHOLDER_UNAVAILABLE,
    PLACEHOLDER_UNKNOWN,
    ROUTE_CODE_LENGTH,
)
from busdesk.src.enums import SettlementStatus

SETTLEMENT_TRANSITIONS = {
    SettlementStatus.PENDING: [SettlementStatus.APPROVED, SettlementStatus.CANCELLED],
    SettlementStatus.APPROVED: [SettlementStatus.FINALIZED],
    SettlementStatus.FINALIZED: [],
    SettlementStatus.CANCELLED: [],
}


def toNumber(value: Any) -> float:
    """
    Plain number from a decimal-like value, 0 when absent or not numeric.

    Example:
        >>> toNumber(Decimal("12.50"))
        12.5
        >>> toNumber("abc")
        0
    """
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        return 0
    if number != number:  # NaN
        return 0
    return number


def toDecimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value is not None else Decimal(0)
    except InvalidOperation:
        return Decimal(0)


def settlementTotals(
    totalIncome: Any, expenseAmounts: Iterable[Any]
) -> tuple[Decimal, Decimal, Decimal]:
    """
    Recompute (total_income, total_expenses, net_amount) of a settlement.
    """
    income = toDecimal(totalIncome)
    expenses = sum((toDecimal(amount) for amount in expenseAmounts), Decimal(0))
    return income, expenses, income - expenses


def routeCode(originName: str, destinationName: str) -> str:
    """
    Example:
        >>> routeCode("Bogota", "Medellin")
        'BOG-MED'
    """
    origin = originName[:ROUTE_CODE_LENGTH].upper()
    destination = destinationName[:ROUTE_CODE_LENGTH].upper()
    return f"{origin}-{destination}"


def _routeInfo(schedule) -> Optional[dict]:
    routeSchedule = getattr(schedule, "route_schedule", None)
    route = getattr(routeSchedule, "route", None)
    origin = getattr(route, "origin", None)
    destination = getattr(route, "destination", None)
    if origin is None or destination is None:
        return None
    return {
        "id": route.id,
        "code": routeCode(origin.name, destination.name),
        "name": f"{origin.name} - {destination.name}",
    }


def _ownerName(bus) -> str:
    company = getattr(bus, "company", None)
    if company is not None:
        return company.name
    companyId = getattr(bus, "company_id", None)
    if companyId is not None:
        return f"Company ID: {companyId}"
    return PLACEHOLDER_UNKNOWN


def formatExpense(expense) -> dict:
    category = getattr(expense, "category", None)
    return {
        "id": expense.id,
        "category_id": getattr(expense, "category_id", None),
        "category": getattr(category, "name", None) or DEFAULT_EXPENSE_CATEGORY,
        "amount": toNumber(getattr(expense, "amount", None)),
        "description": getattr(expense, "description", None),
    }


def formatSettlement(settlement) -> dict:
    """
    Flatten a settlement into its view model.

    Never fails on missing relations:
        - route / route_name: "N/A" without a route and both locations.
        - plate_number: "N/A" without a bus.
        - bus_type: the template name, "Unknown" without a template.
        - owner_name: the company name, "Company ID: <id>" when only the
          identifier is known, otherwise "Unknown".
        - driver_name: None without a primary driver.
        - amounts: plain numbers, 0 when absent.

    Args:
        settlement: A `TripSettlement` row, or any object exposing its
            columns and relations. Must not be None, a missing settlement
            is reported by the caller.
    """
    schedule = getattr(settlement, "schedule", None)
    bus = getattr(schedule, "bus", None)
    driver = getattr(schedule, "primary_driver", None)
    routeInfo = _routeInfo(schedule)

    if bus is not None:
        template = getattr(bus, "template", None)
        plateNumber = bus.plate_number or PLACEHOLDER_UNAVAILABLE
        busType = getattr(template, "name", None) or PLACEHOLDER_UNKNOWN
        ownerName = _ownerName(bus)
    else:
        plateNumber = PLACEHOLDER_UNAVAILABLE
        busType = PLACEHOLDER_UNKNOWN
        ownerName = PLACEHOLDER_UNKNOWN

    return {
        "id": settlement.id,
        "schedule_id": getattr(settlement, "schedule_id", None),
        "total_income": toNumber(getattr(settlement, "total_income", None)),
        "total_expenses": toNumber(getattr(settlement, "total_expenses", None)),
        "net_amount": toNumber(getattr(settlement, "net_amount", None)),
        "status": getattr(settlement, "status", None),
        "details": getattr(settlement, "details", None),
        "settled_at": getattr(settlement, "settled_at", None),
        "created_on": getattr(settlement, "created_on", None),
        "updated_on": getattr(settlement, "updated_on", None),
        "route": routeInfo["code"] if routeInfo else PLACEHOLDER_UNAVAILABLE,
        "route_name": routeInfo["name"] if routeInfo else PLACEHOLDER_UNAVAILABLE,
        "plate_number": plateNumber,
        "bus_type": busType,
        "owner_name": ownerName,
        "driver_name": getattr(driver, "full_name", None),
        "departure_time": getattr(schedule, "departure_date", None),
        "expenses": [
            formatExpense(expense)
            for expense in getattr(settlement, "expenses", None) or []
        ],
    }
