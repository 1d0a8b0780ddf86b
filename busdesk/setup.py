import argparse
from http import HTTPStatus
from requests import get, post
from datetime import datetime, timedelta

from busdesk.src.enums import Day, MaintenanceStatus
from busdesk.src.constants import DEFAULT_EXPENSE_CATEGORIES, TMZ_PRIMARY
from busdesk.src.urls import (
    URL_LOCATION,
    URL_ROUTE,
    URL_ROUTE_SCHEDULE,
    URL_BUS_TEMPLATE,
    URL_BUS,
    URL_DRIVER,
    URL_SCHEDULE,
    URL_SETTLEMENT,
    URL_BUS_SEAT,
    URL_TICKET_BULK,
)
from busdesk.src.db import (
    Company,
    ExpenseCategory,
    SeatTier,
    sessionMaker,
    engine,
    ORMbase,
)


# ----------------------------------- Project Setup -------------------------------------------#
def removeTables():
    session = sessionMaker()
    ORMbase.metadata.drop_all(engine)
    session.commit()
    print("* All tables deleted")
    session.close()


def createTables():
    session = sessionMaker()
    ORMbase.metadata.create_all(engine)
    session.commit()
    print("* All tables created")
    session.close()


def initDB():
    session = sessionMaker()
    existing = {name for (name,) in session.query(ExpenseCategory.name).all()}
    for name, description in DEFAULT_EXPENSE_CATEGORIES:
        if name not in existing:
            session.add(ExpenseCategory(name=name, description=description))
    session.flush()
    print("* Expense categories added")

    company = Company(name="BusDesk company")
    session.add(company)
    session.flush()

    standard = SeatTier(
        company_id=company.id,
        name="Standard",
        description="Regular reclining seat",
        base_price=40000,
    )
    premium = SeatTier(
        company_id=company.id,
        name="Premium",
        description="Wide seat with extra leg room",
        base_price=55000,
    )
    session.add_all([standard, premium])
    session.flush()

    session.commit()
    print("* Initialization completed")
    session.close()


def POST(URL: str, status_code: int = HTTPStatus.CREATED, **kwargs):
    response = post(URL, **kwargs)
    if response.status_code != status_code:
        assert response.status_code == status_code, response.text
    else:
        return response


def testDB():
    # Base URL
    BASE_URL = "http://127.0.0.1:8080/dashboard"
    session = sessionMaker()
    company = session.query(Company).filter(Company.name == "BusDesk company").first()
    tier = (
        session.query(SeatTier)
        .filter(SeatTier.company_id == company.id, SeatTier.name == "Standard")
        .first()
    )
    session.close()

    # Create Locations
    origin = POST((BASE_URL + URL_LOCATION), data={"name": "Bogota"})
    destination = POST((BASE_URL + URL_LOCATION), data={"name": "Medellin"})
    print("* Created locations")

    # Create Route
    routeData = {
        "name": "Bogota -> Medellin",
        "origin_id": origin.json()["id"],
        "destination_id": destination.json()["id"],
        "estimated_duration": 540,
        "departure_lane": "12",
    }
    route = POST((BASE_URL + URL_ROUTE), data=routeData)
    routeScheduleData = {
        "route_id": route.json()["id"],
        "departure_time": "21:00:00",
        "estimated_arrival_time": "06:00:00",
        "operating_days": [
            Day.MONDAY,
            Day.WEDNESDAY,
            Day.FRIDAY,
            Day.SUNDAY,
        ],
    }
    routeSchedule = POST((BASE_URL + URL_ROUTE_SCHEDULE), json=routeScheduleData)
    print("* Created route")

    # Create Bus Template, 10 rows of 4 seats
    templateData = {
        "company_id": company.id,
        "name": "Coach 40",
        "first_floor": {"rows": 10, "seats_per_row": 4},
        "default_tier_id": tier.id,
    }
    template = POST((BASE_URL + URL_BUS_TEMPLATE), json=templateData)
    print("* Created bus template")

    # Create Bus
    busData = {
        "company_id": company.id,
        "template_id": template.json()["id"],
        "plate_number": "TST-101",
        "maintenance_status": MaintenanceStatus.ACTIVE,
    }
    bus = POST((BASE_URL + URL_BUS), data=busData)
    print("* Created bus")

    # Create Drivers
    driver1Data = {
        "company_id": company.id,
        "full_name": "Carlos Rojas",
        "document_id": "1020304050",
        "license_number": "LIC-0001",
        "license_category": "C2",
    }
    driver2Data = {
        "company_id": company.id,
        "full_name": "Andres Gomez",
        "document_id": "1020304051",
        "license_number": "LIC-0002",
        "license_category": "C2",
    }
    driver1 = POST((BASE_URL + URL_DRIVER), data=driver1Data)
    driver2 = POST((BASE_URL + URL_DRIVER), data=driver2Data)
    print("* Created drivers")

    # Create Schedule
    departure = datetime.now(TMZ_PRIMARY) + timedelta(days=1)
    scheduleData = {
        "route_id": route.json()["id"],
        "route_schedule_id": routeSchedule.json()["id"],
        "bus_id": bus.json()["id"],
        "primary_driver_id": driver1.json()["id"],
        "secondary_driver_id": driver2.json()["id"],
        "departure_date": departure.isoformat(),
        "estimated_arrival_time": (departure + timedelta(hours=9)).isoformat(),
        "price": "45000.00",
    }
    schedule = POST((BASE_URL + URL_SCHEDULE), data=scheduleData)
    print("* Created schedule")

    # Sell Tickets
    seats = get(BASE_URL + URL_BUS_SEAT, params={"bus_id": bus.json()["id"]}).json()
    seatIds = {seat["seat_number"]: seat["id"] for seat in seats}
    ticketData = {
        "schedule_id": schedule.json()["id"],
        "tickets": [
            {
                "bus_seat_id": seatIds["1A"],
                "passenger_name": "Maria Lopez",
                "passenger_document": "52000111",
            },
            {"bus_seat_id": seatIds["1C"]},
        ],
    }
    POST((BASE_URL + URL_TICKET_BULK), json=ticketData)
    print("* Sold tickets")

    # Create Settlement
    settlementData = {
        "schedule_id": schedule.json()["id"],
        "total_income": "1350000.00",
        "details": "Demo settlement",
        "expenses": [
            {"amount": "320000.00", "description": "Fuel"},
            {"amount": "48000.00", "description": "Tolls"},
        ],
    }
    POST((BASE_URL + URL_SETTLEMENT), json=settlementData)
    print("* Created settlement")


# Setup database
if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    # remove tables
    parser.add_argument("-rm", action="store_true", help="remove tables")
    parser.add_argument("-cr", action="store_true", help="create tables")
    parser.add_argument("-init", action="store_true", help="initialize DB")
    parser.add_argument("-test", action="store_true", help="add test data")
    args = parser.parse_args()

    if args.rm:
        removeTables()
    if args.cr:
        createTables()
    if args.init:
        initDB()
    if args.test:
        testDB()
