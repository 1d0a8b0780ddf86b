from enum import IntEnum


class AppID(IntEnum):
    DASHBOARD = 1


class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class MaintenanceStatus(IntEnum):
    ACTIVE = 1
    IN_MAINTENANCE = 2
    RETIRED = 3


class SeatStatus(IntEnum):
    AVAILABLE = 1
    MAINTENANCE = 2


class ScheduleStatus(IntEnum):
    SCHEDULED = 1
    IN_PROGRESS = 2
    COMPLETED = 3
    CANCELLED = 4
    DELAYED = 5


class SettlementStatus(IntEnum):
    PENDING = 1
    APPROVED = 2
    FINALIZED = 3
    CANCELLED = 4


class FloorLevel(IntEnum):
    FIRST = 1
    SECOND = 2


class Day(IntEnum):
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
    SUNDAY = 7


class TicketStatus(IntEnum):
    ACTIVE = 1
    CANCELLED = 2
