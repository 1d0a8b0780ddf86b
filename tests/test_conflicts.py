"""
Tests for the bus and driver double-booking detector and the
transactional reservation.
"""
import pytest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from busdesk.src import exceptions
from busdesk.src.conflicts import (
    ScheduleProposal,
    detectConflict,
    overlaps,
    reserveSchedule,
)
from busdesk.src.db import Bus, Schedule
from busdesk.src.enums import MaintenanceStatus, ScheduleStatus


def existing(id=100, bus=1, primary=10, secondary=None, start=None, hours=2,
             status=ScheduleStatus.SCHEDULED):
    start = start or datetime(2030, 5, 10, 10, 0)
    return SimpleNamespace(
        id=id,
        bus_id=bus,
        primary_driver_id=primary,
        secondary_driver_id=secondary,
        departure_date=start,
        estimated_arrival_time=start + timedelta(hours=hours),
        status=status,
    )


def proposal(bus=1, primary=20, secondary=None, start=None, hours=2, id=None):
    start = start or datetime(2030, 5, 10, 12, 0)
    return ScheduleProposal(
        id=id,
        bus_id=bus,
        primary_driver_id=primary,
        secondary_driver_id=secondary,
        departure_date=start,
        estimated_arrival_time=start + timedelta(hours=hours),
    )


# ============================================================
# OVERLAP
# ============================================================

def test_overlap_bounds_are_inclusive():
    ten, twelve, fourteen = (datetime(2030, 1, 1, h) for h in (10, 12, 14))
    assert overlaps(ten, twelve, twelve, fourteen)
    assert not overlaps(ten, twelve, twelve + timedelta(minutes=1), fourteen)


def at(hour, minute=0):
    return datetime(2030, 1, 1, hour, minute)


@pytest.mark.parametrize(
    "first, second, expected",
    [
        ((at(8), at(9)), (at(10), at(11)), False),
        ((at(8), at(10)), (at(10), at(11)), True),
        ((at(8), at(12)), (at(9), at(10)), True),
        ((at(8), at(10)), (at(9), at(11)), True),
        ((at(8), at(10)), (at(10, 1), at(11)), False),
        ((at(8), at(10)), (at(8), at(10)), True),
    ],
    ids=["disjoint", "touching", "nested", "partial", "minute-apart", "identical"],
)
def test_overlap_is_symmetric(first, second, expected):
    assert overlaps(*first, *second) is expected
    assert overlaps(*second, *first) is expected


def test_overlap_reads_naive_values_as_utc():
    naive = datetime(2030, 1, 1, 10)
    aware = datetime(2030, 1, 1, 5, tzinfo=timezone(timedelta(hours=-5)))
    assert overlaps(naive, naive + timedelta(hours=1), aware, aware)


# ============================================================
# DETECTION
# ============================================================

def test_touching_windows_conflict_on_bus():
    conflict = detectConflict(proposal(), [existing()])
    assert conflict.resource == "bus"
    assert conflict.schedule_id == 100
    assert isinstance(conflict.toException(), exceptions.BusAlreadyAssigned)


def test_minute_after_arrival_is_free():
    later = proposal(start=datetime(2030, 5, 10, 12, 1))
    assert detectConflict(later, [existing()]) is None


def test_driver_busy_in_other_role():
    schedules = [existing(bus=2, primary=10, secondary=11)]
    conflict = detectConflict(proposal(bus=1, primary=11), schedules)

    assert conflict.resource == "primary_driver"
    assert conflict.resource_id == 11
    error = conflict.toException()
    assert isinstance(error, exceptions.DriverAlreadyAssigned)
    assert "primary driver" in error.detail


def test_secondary_driver_checked_last():
    schedules = [existing(bus=2, primary=30)]
    conflict = detectConflict(proposal(bus=1, primary=20, secondary=30), schedules)
    assert conflict.resource == "secondary_driver"


def test_bus_reported_before_driver():
    schedules = [existing(id=1, bus=5, primary=20), existing(id=2, bus=1, primary=99)]
    conflict = detectConflict(proposal(bus=1, primary=20), schedules)
    assert conflict.resource == "bus"
    assert conflict.schedule_id == 2


def test_inactive_schedules_are_ignored():
    schedules = [
        existing(status=ScheduleStatus.CANCELLED),
        existing(status=ScheduleStatus.COMPLETED),
        existing(status=ScheduleStatus.DELAYED),
    ]
    assert detectConflict(proposal(), schedules) is None
    assert detectConflict(proposal(), [existing(status=ScheduleStatus.IN_PROGRESS)])


def test_update_ignores_itself():
    assert detectConflict(proposal(id=100), [existing(id=100)]) is None


# ============================================================
# RESERVATION
# ============================================================

def newSchedule(fleet, departure, bus=None, drivers=(0, None), hours=2):
    primary, secondary = drivers
    driverIds = fleet["driver_ids"]
    return Schedule(
        route_id=fleet["route_id"],
        route_schedule_id=fleet["route_schedule_id"],
        bus_id=bus or fleet["bus_id"],
        primary_driver_id=driverIds[primary],
        secondary_driver_id=driverIds[secondary] if secondary is not None else None,
        departure_date=departure,
        estimated_arrival_time=departure + timedelta(hours=hours),
        status=ScheduleStatus.SCHEDULED,
    )


def test_reserve_locks_resources_in_stable_order(session, fleet, departure, fake_redis):
    schedule = reserveSchedule(session, newSchedule(fleet, departure, drivers=(2, 0)))

    driverIds = fleet["driver_ids"]
    resources = [("bus", fleet["bus_id"]), ("driver", driverIds[2]), ("driver", driverIds[0])]
    expected = [f"lock:{table}:{pk}" for table, pk in sorted(resources)]
    assert schedule.id is not None
    assert fake_redis.acquired == expected
    assert fake_redis.released == list(reversed(expected))


def test_reserve_refuses_overlap_and_writes_nothing(session, fleet, departure, fake_redis):
    reserveSchedule(session, newSchedule(fleet, departure))

    clash = newSchedule(fleet, departure + timedelta(hours=2), drivers=(1, None))
    with pytest.raises(exceptions.BusAlreadyAssigned):
        reserveSchedule(session, clash)

    assert session.query(Schedule).count() == 1
    assert len(fake_redis.released) == len(fake_redis.acquired)


def test_reserve_checks_bus_before_drivers(session, fleet, departure):
    bus = session.query(Bus).filter(Bus.id == fleet["bus_id"]).first()
    bus.maintenance_status = MaintenanceStatus.IN_MAINTENANCE
    session.commit()

    schedule = newSchedule(fleet, departure)
    schedule.primary_driver_id = 999
    with pytest.raises(exceptions.InactiveResource) as error:
        reserveSchedule(session, schedule)
    assert "Bus" in error.value.detail


def test_reserve_rejects_unknown_driver(session, fleet, departure):
    schedule = newSchedule(fleet, departure)
    schedule.secondary_driver_id = 999
    with pytest.raises(exceptions.UnknownValue):
        reserveSchedule(session, schedule)


def test_reserve_rejects_empty_window(session, fleet, departure):
    schedule = newSchedule(fleet, departure, hours=0)
    with pytest.raises(exceptions.InvalidValue):
        reserveSchedule(session, schedule)


def test_reserve_rejects_same_driver_twice(session, fleet, departure):
    with pytest.raises(exceptions.InvalidValue):
        reserveSchedule(session, newSchedule(fleet, departure, drivers=(0, 0)))
