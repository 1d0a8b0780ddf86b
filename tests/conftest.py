"""
Pytest configuration and shared fixtures for BusDesk tests.

The database is an in-memory SQLite engine bound to the application
session factory, Redis locks are replaced by an in-process fake and
OpenObserve events are collected in a list instead of being shipped.
"""
import pytest
from datetime import datetime, time
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

from busdesk.src import db, openobserve, seat_matrix
from busdesk.src import redis as redisLocks
from busdesk.src.db import (
    Bus,
    BusSeat,
    BusTemplate,
    Company,
    Driver,
    Location,
    ORMbase,
    Route,
    RouteSchedule,
    SeatTier,
    sessionMaker,
)
from busdesk.src.enums import MaintenanceStatus

from factories import makeLayout


# ============================================================
# FAKE REDIS
# ============================================================

class FakeLock:
    def __init__(self, name, client):
        self.name = name
        self.client = client
        self.held = False

    def acquire(self, blocking=True, blocking_timeout=None):
        self.held = True
        self.client.acquired.append(self.name)
        return True

    def locked(self):
        return self.held

    def owned(self):
        return self.held

    def release(self):
        self.held = False
        self.client.released.append(self.name)


class FakeRedis:
    """Records the order locks are taken and given back."""

    def __init__(self):
        self.acquired = []
        self.released = []

    def lock(self, name, timeout=None):
        return FakeLock(name, self)


@pytest.fixture
def fake_redis(monkeypatch) -> FakeRedis:
    client = FakeRedis()
    monkeypatch.setattr(redisLocks, "redisClient", client)
    return client


@pytest.fixture
def events(monkeypatch) -> list:
    """Audit events sent to OpenObserve during the test."""
    shipped = []
    monkeypatch.setattr(openobserve, "logEvent", shipped.append)
    return shipped


# ============================================================
# DATABASE
# ============================================================

def enableForeignKeys(dbapiConnection, connectionRecord):
    cursor = dbapiConnection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
def engine(fake_redis, events):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", enableForeignKeys)
    ORMbase.metadata.create_all(engine)
    sessionMaker.configure(bind=engine)
    yield engine
    sessionMaker.configure(bind=db.engine)
    ORMbase.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    session = sessionMaker()
    yield session
    session.close()


@pytest.fixture
def client(engine):
    from busdesk.main import app

    with TestClient(app) as client:
        yield client


# ============================================================
# FIXTURES FOR FLEET DATA
# ============================================================

@pytest.fixture
def fleet(session) -> dict:
    """
    A company with one tier, one template of 40 seats (1B and 5C empty),
    one bus built from it, two locations, a route with one timetable
    entry and three drivers.
    """
    company = Company(name="Expreso Andino")
    bogota = Location(name="Bogota")
    medellin = Location(name="Medellin")
    session.add_all([company, bogota, medellin])
    session.flush()

    tier = SeatTier(company_id=company.id, name="Standard", base_price=Decimal("40000"))
    session.add(tier)
    session.flush()

    layout = makeLayout(tier.id, emptySeats=["1B", "5C"])
    template = BusTemplate(
        company_id=company.id,
        name="Coach 40",
        total_capacity=seat_matrix.sellableSeatCount(layout),
        seat_template_matrix=layout.model_dump(mode="json"),
    )
    session.add(template)
    session.flush()

    matrix, records = seat_matrix.instantiateFromTemplate(template, None)
    bus = Bus(
        company_id=company.id,
        template_id=template.id,
        plate_number="ABC-123",
        maintenance_status=MaintenanceStatus.ACTIVE,
        seat_matrix=matrix.model_dump(mode="json"),
    )
    session.add(bus)
    session.flush()
    for record in records:
        record["bus_id"] = bus.id
        session.add(BusSeat(**record))

    route = Route(
        name="Bogota -> Medellin",
        origin_id=bogota.id,
        destination_id=medellin.id,
        estimated_duration=540,
    )
    session.add(route)
    session.flush()
    routeSchedule = RouteSchedule(
        route_id=route.id,
        departure_time=time(21, 0),
        estimated_arrival_time=time(6, 0),
        operating_days=[1, 3, 5],
    )
    drivers = [
        Driver(
            company_id=company.id,
            full_name=name,
            document_id=f"10203040{i}",
            license_number=f"LIC-{i}",
            license_category="C2",
        )
        for i, name in enumerate(["Carlos Rojas", "Andres Gomez", "Luis Pardo"])
    ]
    session.add(routeSchedule)
    session.add_all(drivers)
    session.commit()

    return {
        "company_id": company.id,
        "tier_id": tier.id,
        "template_id": template.id,
        "bus_id": bus.id,
        "route_id": route.id,
        "route_schedule_id": routeSchedule.id,
        "driver_ids": [driver.id for driver in drivers],
    }


@pytest.fixture
def departure() -> datetime:
    return datetime(2030, 5, 10, 10, 0)
