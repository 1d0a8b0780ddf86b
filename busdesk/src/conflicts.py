"""
Double-booking protection of buses and drivers.

A bus, and independently a driver, cannot be assigned to two active
schedules whose occupancy windows [departure_date, estimated_arrival_time]
intersect. Boundaries are inclusive: a trip arriving at 12:00 conflicts
with a trip of the same bus departing at 12:00. A driver is busy whether
primary or secondary on the other schedule.

`detectConflict` is the pure check. `reserveSchedule` runs the check and
the write as one unit, under mutex locks on every resource involved, so
two concurrent reservations can not both pass the check.
"""

from datetime import datetime
from typing import Iterable, Optional
from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.orm import Session, lazyload

from busdesk.src import exceptions, validators
from busdesk.src.constants import TMZ_PRIMARY
from busdesk.src.db import Bus, Driver, Schedule
from busdesk.src.enums import ScheduleStatus
from busdesk.src.redis import acquireLocks, releaseLocks

ACTIVE_SCHEDULE_STATUSES = [ScheduleStatus.SCHEDULED, ScheduleStatus.IN_PROGRESS]


class ScheduleProposal(BaseModel):
    """The fields of a schedule that decide whether it can be reserved."""

    id: Optional[int] = None
    bus_id: int
    primary_driver_id: int
    secondary_driver_id: Optional[int] = None
    departure_date: datetime
    estimated_arrival_time: datetime

    def driverIds(self) -> list[int]:
        return [
            driverId
            for driverId in (self.primary_driver_id, self.secondary_driver_id)
            if driverId is not None
        ]


class ScheduleConflict(BaseModel):
    resource: str  # bus, primary_driver or secondary_driver
    resource_id: int
    schedule_id: int
    departure_date: datetime
    estimated_arrival_time: datetime

    def toException(self) -> exceptions.APIException:
        if self.resource == "bus":
            return exceptions.BusAlreadyAssigned()
        return exceptions.DriverAlreadyAssigned(self.resource.replace("_", " "))


def toUTC(value: datetime) -> datetime:
    """Aware datetime in UTC, naive values are taken as UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=TMZ_PRIMARY)
    return value.astimezone(TMZ_PRIMARY)


def overlaps(
    start1: datetime, end1: datetime, start2: datetime, end2: datetime
) -> bool:
    """
    Inclusive interval intersection.

    Example:
        >>> overlaps(ten, twelve, twelve, fourteen)
        True
    """
    return toUTC(start1) <= toUTC(end2) and toUTC(start2) <= toUTC(end1)


def _driversOf(schedule) -> set[int]:
    return {
        driverId
        for driverId in (schedule.primary_driver_id, schedule.secondary_driver_id)
        if driverId is not None
    }


def detectConflict(
    proposal: ScheduleProposal, schedules: Iterable
) -> Optional[ScheduleConflict]:
    """
    Find the first active schedule clashing with the proposal.

    The bus is checked first, then the primary driver, then the secondary
    driver. Schedules that are not SCHEDULED or IN_PROGRESS, and the
    proposal itself when it is an update, are ignored.

    Args:
        proposal (ScheduleProposal): The schedule being created or updated.
        schedules (Iterable): Existing schedules, any objects exposing the
            `Schedule` columns.

    Returns:
        Optional[ScheduleConflict]: The first clash found, None if free.
    """
    overlapping = [
        schedule
        for schedule in schedules
        if schedule.status in ACTIVE_SCHEDULE_STATUSES
        and (proposal.id is None or schedule.id != proposal.id)
        and overlaps(
            proposal.departure_date,
            proposal.estimated_arrival_time,
            schedule.departure_date,
            schedule.estimated_arrival_time,
        )
    ]

    checks = [("bus", proposal.bus_id, lambda s: s.bus_id == proposal.bus_id)]
    for resource, driverId in (
        ("primary_driver", proposal.primary_driver_id),
        ("secondary_driver", proposal.secondary_driver_id),
    ):
        if driverId is not None:
            checks.append((resource, driverId, lambda s, d=driverId: d in _driversOf(s)))

    for resource, resourceId, isUsing in checks:
        for schedule in overlapping:
            if isUsing(schedule):
                return ScheduleConflict(
                    resource=resource,
                    resource_id=resourceId,
                    schedule_id=schedule.id,
                    departure_date=schedule.departure_date,
                    estimated_arrival_time=schedule.estimated_arrival_time,
                )
    return None


def loadCandidates(session: Session, proposal: ScheduleProposal) -> list[Schedule]:
    """
    Active schedules sharing the bus or a driver of the proposal whose
    window intersects the proposal window.
    """
    driverIds = proposal.driverIds()
    query = (
        session.query(Schedule)
        .options(lazyload("*"))
        .filter(
            Schedule.status.in_(ACTIVE_SCHEDULE_STATUSES),
            Schedule.departure_date <= toUTC(proposal.estimated_arrival_time),
            Schedule.estimated_arrival_time >= toUTC(proposal.departure_date),
            or_(
                Schedule.bus_id == proposal.bus_id,
                Schedule.primary_driver_id.in_(driverIds),
                Schedule.secondary_driver_id.in_(driverIds),
            ),
        )
    )
    if proposal.id is not None:
        query = query.filter(Schedule.id != proposal.id)
    return query.order_by(Schedule.departure_date.asc(), Schedule.id.asc()).all()


def findConflict(
    session: Session, proposal: ScheduleProposal, forUpdate: bool = False
) -> Optional[ScheduleConflict]:
    """Run the pre-conditions and the overlap check against the database."""
    validators.scheduleWindow(
        toUTC(proposal.departure_date), toUTC(proposal.estimated_arrival_time)
    )
    validators.scheduleDrivers(proposal.primary_driver_id, proposal.secondary_driver_id)
    validators.scheduleResources(
        session,
        proposal.bus_id,
        proposal.primary_driver_id,
        proposal.secondary_driver_id,
        forUpdate,
    )
    return detectConflict(proposal, loadCandidates(session, proposal))


def reserveSchedule(session: Session, schedule: Schedule) -> Schedule:
    """
    Insert or update a schedule only if its bus and drivers are free.

    Mutex locks are taken on the bus and each driver in a stable order,
    the rows are locked for the transaction, pre-conditions and overlaps
    are checked, and the schedule is committed before any lock is
    released. Nothing is written when a check fails.

    Args:
        session (Session): Active SQLAlchemy session.
        schedule (Schedule): New or modified schedule, in or out of the session.

    Returns:
        Schedule: The committed schedule.

    Raises:
        exceptions.BusAlreadyAssigned: If the bus is busy in the window.
        exceptions.DriverAlreadyAssigned: If a driver is busy in the window.
        Any pre-condition error of `validators.scheduleResources`.
    """
    schedule.departure_date = toUTC(schedule.departure_date)
    schedule.estimated_arrival_time = toUTC(schedule.estimated_arrival_time)
    proposal = ScheduleProposal(
        id=schedule.id,
        bus_id=schedule.bus_id,
        primary_driver_id=schedule.primary_driver_id,
        secondary_driver_id=schedule.secondary_driver_id,
        departure_date=schedule.departure_date,
        estimated_arrival_time=schedule.estimated_arrival_time,
    )

    resources = [(Bus.__tablename__, proposal.bus_id)]
    resources += [(Driver.__tablename__, driverId) for driverId in proposal.driverIds()]
    locks = acquireLocks(resources)
    try:
        with session.no_autoflush:
            conflict = findConflict(session, proposal, forUpdate=True)
        if conflict is not None:
            session.rollback()
            raise conflict.toException()
        session.add(schedule)
        session.commit()
        session.refresh(schedule)
        return schedule
    finally:
        releaseLocks(locks)
