"""
Validation checks for BusDesk API.

This module centralizes guard logic such as:
- State transition enforcement
- Seat layout validation
- Pre-conditions of schedule reservations
- Settlement locking

All functions raise appropriate exceptions from `busdesk.src.exceptions`
when validation fails, ensuring consistent error handling.
"""

from datetime import datetime
from typing import Any, Optional
from sqlalchemy import Column
from sqlalchemy.orm import Session, lazyload

from busdesk.src.db import (
    Bus,
    Driver,
    Route,
    RouteSchedule,
    Schedule,
    SeatTier,
    BusSeat,
    TripSettlement,
)
from busdesk.src import exceptions, seat_matrix
from busdesk.src.enums import MaintenanceStatus, SettlementStatus
from busdesk.src.functions import isValidTransition


# ---------------------------------------------------------------------------
# State transitions
# ---------------------------------------------------------------------------
def stateTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any, state: Column
) -> bool:
    """
    Validate whether a state transition is allowed.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.
        state (Column): SQLAlchemy column representing the state
            (used to format error messages).

    Raises:
        exceptions.InvalidStateTransition: If the transition is not permitted.
    """
    if not isValidTransition(transitions, old_state, new_state):
        raise exceptions.InvalidStateTransition(state)
    return True


# ---------------------------------------------------------------------------
# Seat layouts
# ---------------------------------------------------------------------------
def seatTemplate(data: Any) -> seat_matrix.SeatMatrix:
    """
    Parse a template layout, every non-empty seat must carry a tier.
    """
    matrix = seat_matrix.parseMatrix(data)
    missingTier = seat_matrix.unassignedSeats(matrix)
    if missingTier:
        raise exceptions.UnassignedSeatTier([seat.name for seat in missingTier])
    return matrix


def seatTiers(session: Session, tierIds: set[int], companyId: int) -> None:
    """
    Check that every tier exists, is active and belongs to the company.
    """
    if not tierIds:
        return
    tiers = session.query(SeatTier).filter(SeatTier.id.in_(tierIds)).all()
    if len(tiers) != len(tierIds):
        raise exceptions.UnknownValue(BusSeat.tier_id)
    for tier in tiers:
        if tier.company_id != companyId:
            raise exceptions.InvalidAssociation(BusSeat.tier_id, Bus.company_id)
        if not tier.is_active:
            raise exceptions.InactiveResource(SeatTier)


def seatSelection(matrix: seat_matrix.SeatMatrix, seatIds: list[str]) -> None:
    if not seatIds:
        raise exceptions.MissingParameter(BusSeat.seat_number)
    if seat_matrix.unknownSeatIds(matrix, seatIds):
        raise exceptions.InvalidValue(BusSeat.seat_number)


# ---------------------------------------------------------------------------
# Schedule reservations
# ---------------------------------------------------------------------------
def scheduleWindow(departure: datetime, arrival: datetime) -> None:
    """The occupancy window must be non-empty, arrival after departure."""
    if arrival <= departure:
        raise exceptions.InvalidValue(Schedule.estimated_arrival_time)


def scheduleDrivers(primaryDriverId: int, secondaryDriverId: Optional[int]) -> None:
    if secondaryDriverId is not None and secondaryDriverId == primaryDriverId:
        raise exceptions.InvalidValue(Schedule.secondary_driver_id)


def scheduleRoute(
    session: Session, routeId: int, routeScheduleId: int
) -> tuple[Route, RouteSchedule]:
    """
    Check the route and its timetable entry.

    Raises:
        exceptions.UnknownValue: If either is absent.
        exceptions.InactiveResource: If either is deactivated.
        exceptions.InvalidAssociation: If the entry belongs to another route.
    """
    route = session.query(Route).filter(Route.id == routeId).first()
    if route is None:
        raise exceptions.UnknownValue(Schedule.route_id)
    if not route.active:
        raise exceptions.InactiveResource(Route)
    routeSchedule = (
        session.query(RouteSchedule)
        .filter(RouteSchedule.id == routeScheduleId)
        .first()
    )
    if routeSchedule is None:
        raise exceptions.UnknownValue(Schedule.route_schedule_id)
    if routeSchedule.route_id != route.id:
        raise exceptions.InvalidAssociation(
            Schedule.route_schedule_id, Schedule.route_id
        )
    if not routeSchedule.active:
        raise exceptions.InactiveResource(RouteSchedule)
    return route, routeSchedule


def _fetchForReservation(session: Session, ormClass, pk: int, forUpdate: bool):
    query = (
        session.query(ormClass).options(lazyload("*")).filter(ormClass.id == pk)
    )
    if forUpdate:
        query = query.with_for_update()
    return query.first()


def scheduleResources(
    session: Session,
    busId: int,
    primaryDriverId: int,
    secondaryDriverId: Optional[int] = None,
    forUpdate: bool = False,
) -> tuple[Bus, Driver, Optional[Driver]]:
    """
    Pre-conditions of a reservation, checked in a fixed order so the first
    failure decides the reported reason:

    1. The bus exists.
    2. The bus is active and its maintenance status is ACTIVE.
    3. The primary driver exists and is active.
    4. The secondary driver, if any, exists and is active.

    With `forUpdate`, the rows are locked until the transaction ends.

    Raises:
        exceptions.UnknownValue: If a referenced resource is absent.
        exceptions.InactiveResource: If a resource cannot be scheduled.
    """
    bus = _fetchForReservation(session, Bus, busId, forUpdate)
    if bus is None:
        raise exceptions.UnknownValue(Schedule.bus_id)
    if not bus.is_active or bus.maintenance_status != MaintenanceStatus.ACTIVE:
        raise exceptions.InactiveResource(Bus)

    drivers = []
    for column, driverId in (
        (Schedule.primary_driver_id, primaryDriverId),
        (Schedule.secondary_driver_id, secondaryDriverId),
    ):
        if driverId is None:
            drivers.append(None)
            continue
        driver = _fetchForReservation(session, Driver, driverId, forUpdate)
        if driver is None:
            raise exceptions.UnknownValue(column)
        if not driver.active:
            raise exceptions.InactiveResource(Driver)
        drivers.append(driver)
    return bus, drivers[0], drivers[1]


# ---------------------------------------------------------------------------
# Settlements
# ---------------------------------------------------------------------------
LOCKED_SETTLEMENT_STATUSES = [SettlementStatus.APPROVED, SettlementStatus.FINALIZED]


def settlementUnlocked(settlement: TripSettlement) -> bool:
    """
    Approved and finalized settlements cannot be deleted, nor can their
    expenses change.

    Raises:
        exceptions.SettlementLocked: If the settlement is locked.
    """
    if settlement.status in LOCKED_SETTLEMENT_STATUSES:
        raise exceptions.SettlementLocked()
    return True
