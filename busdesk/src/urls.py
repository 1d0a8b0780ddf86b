"""
API Endpoint URL Constants

This module defines the URL paths used throughout the application
for accessing the fleet, scheduling, sales and finance resources.

These URLs are relative paths and are prefixed by the mount point of
the dashboard application.
"""

# -------------------------------
# Common Entities
# -------------------------------
URL_LOCATION = "/location"

# -------------------------------
# Company
# -------------------------------
URL_COMPANY = "/company"
URL_SEAT_TIER = "/company/seat_tier"
URL_ROUTE = "/company/route"
URL_ROUTE_SCHEDULE = "/company/route/schedule"
URL_DRIVER = "/company/driver"

# -------------------------------
# Fleet
# -------------------------------
URL_BUS_TEMPLATE = "/company/bus/template"
URL_BUS = "/company/bus"
URL_BUS_SEAT = "/company/bus/seat"
URL_BUS_SEAT_MATRIX = "/company/bus/seat/matrix"
URL_BUS_SEAT_LAYOUT = "/company/bus/seat/layout"
URL_BUS_SEAT_TIER = "/company/bus/seat/tier"
URL_BUS_SEAT_STATUS = "/company/bus/seat/status"

# -------------------------------
# Scheduling
# -------------------------------
URL_SCHEDULE = "/company/schedule"
URL_SCHEDULE_AVAILABILITY = "/company/schedule/availability"
URL_SCHEDULE_SEAT = "/company/schedule/seat"
URL_SCHEDULE_PASSENGER = "/company/schedule/passenger"

# -------------------------------
# Sales
# -------------------------------
URL_CUSTOMER = "/customer"
URL_TICKET = "/company/schedule/ticket"
URL_TICKET_BULK = "/company/schedule/ticket/bulk"

# -------------------------------
# Finance
# -------------------------------
URL_EXPENSE_CATEGORY = "/finance/expense/category"
URL_SETTLEMENT = "/finance/settlement"
URL_SETTLEMENT_EXPENSE = "/finance/settlement/expense"
