"""
Application configuration and constants for BusDesk API Server.

This module centralizes environment-based configuration, resource limits,
timezones, seat layout limits and other constants.

Configuration values can be overridden via environment variables.
"""

from os import environ
from zoneinfo import ZoneInfo


# ---------------------------------------------------------------------------
# Application metadata
# ---------------------------------------------------------------------------
API_TITLE = "BusDesk API Server"
API_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# PostgreSQL configuration
# ---------------------------------------------------------------------------
PSQL_DB_DRIVER = environ.get("PSQL_DB_DRIVER", "postgresql")
PSQL_DB_USERNAME = environ.get("PSQL_DB_USERNAME", "postgres")
PSQL_DB_PORT = environ.get("PSQL_DB_PORT", "5432")
PSQL_DB_PASSWORD = environ.get("PSQL_DB_PASSWORD", "password")
PSQL_DB_HOST = environ.get("PSQL_DB_HOST", "localhost")
PSQL_DB_NAME = environ.get("PSQL_DB_NAME", "postgres")


# ---------------------------------------------------------------------------
# OpenObserve configuration
# ---------------------------------------------------------------------------
OPENOBSERVE_PROTOCOL = environ.get("OPENOBSERVE_PROTOCOL", "http")
OPENOBSERVE_HOST = environ.get("OPENOBSERVE_HOST", "localhost")
OPENOBSERVE_PORT = environ.get("OPENOBSERVE_PORT", "5080")
OPENOBSERVE_USERNAME = environ.get("OPENOBSERVE_USERNAME", "admin@busdesk.com")
OPENOBSERVE_PASSWORD = environ.get("OPENOBSERVE_PASSWORD", "password")
OPENOBSERVE_ORG = environ.get("OPENOBSERVE_ORG", "busdesk")
OPENOBSERVE_STREAM = environ.get("OPENOBSERVE_STREAM", "busdesk-core-server")


# ---------------------------------------------------------------------------
# Redis configuration
# ---------------------------------------------------------------------------
REDIS_HOST = environ.get("REDIS_HOST", "localhost")
REDIS_PORT = environ.get("REDIS_PORT", "6379")
REDIS_PASSWORD = environ.get("REDIS_PASSWORD", "password")


# ---------------------------------------------------------------------------
# Seat layout constraints
# ---------------------------------------------------------------------------
MAX_SEAT_ROWS = 30  # Max rows per floor
MAX_SEATS_PER_ROW = 10  # Max seats per row
SECOND_FLOOR_PREFIX = "2"  # Prefix of second floor seat ids and names
MAX_ROWS_UNDER_SECOND_FLOOR = 20  # First floor rows past 20 clash with second floor labels


# ---------------------------------------------------------------------------
# Settlement display defaults
# ---------------------------------------------------------------------------
PLACEHOLDER_UNAVAILABLE = "N/A"
PLACEHOLDER_UNKNOWN = "Unknown"
DEFAULT_EXPENSE_CATEGORY = "Expense"
ROUTE_CODE_LENGTH = 3  # Letters taken from each location name

# Seeded by the setup script
DEFAULT_EXPENSE_CATEGORIES = [
    ("Fuel", "Diesel and other fuel costs"),
    ("Tolls", "Highway and bridge tolls"),
    ("Driver allowance", "Per trip allowance for the crew"),
    ("Maintenance", "Repairs done during the trip"),
    ("Cleaning", "Bus cleaning before or after the trip"),
    ("Other", "Uncategorized expenses"),
]


# ---------------------------------------------------------------------------
# Timezone constants
# ---------------------------------------------------------------------------
TMZ_PRIMARY = ZoneInfo("UTC")


# ---------------------------------------------------------------------------
# Redis mutex lock constants
# ---------------------------------------------------------------------------
MUTEX_LOCK_TIMEOUT = 10  # Lock timeout (in seconds)
MUTEX_LOCK_MAX_WAIT_TIME = 60  # Max blocking wait time (in seconds)
