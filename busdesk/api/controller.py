from fastapi import FastAPI
from busdesk.api import (
    company,
    location,
    seat_tier,
    route,
    driver,
    bus_template,
    bus,
    bus_seat,
    schedule,
    customer,
    ticket,
    expense_category,
    settlement,
)
from busdesk.src.enums import AppID


# ------------------------------------------------------
# Dashboard app of the company staff
# ------------------------------------------------------
app_dashboard = FastAPI(title="Dashboard APP")
app_dashboard.state.id = AppID.DASHBOARD


# ------------------------------------------------------
# Company and network
# ------------------------------------------------------
app_dashboard.include_router(company.route_dashboard)
app_dashboard.include_router(location.route_dashboard)
app_dashboard.include_router(seat_tier.route_dashboard)
app_dashboard.include_router(route.route_dashboard)
app_dashboard.include_router(driver.route_dashboard)

# ------------------------------------------------------
# Fleet
# ------------------------------------------------------
app_dashboard.include_router(bus_template.route_dashboard)
app_dashboard.include_router(bus_seat.route_dashboard)
app_dashboard.include_router(bus.route_dashboard)

# ------------------------------------------------------
# Operations, sales and finance
# ------------------------------------------------------
app_dashboard.include_router(schedule.route_dashboard)
app_dashboard.include_router(customer.route_dashboard)
app_dashboard.include_router(ticket.route_dashboard)
app_dashboard.include_router(expense_category.route_dashboard)
app_dashboard.include_router(settlement.route_dashboard)
