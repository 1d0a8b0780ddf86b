from sqlalchemy import (
    JSON,
    TEXT,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Time,
    text,
    UniqueConstraint,
    create_engine,
    func,
)
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import relationship, sessionmaker
from sqlalchemy.dialects.postgresql import JSONB

from busdesk.src.constants import (
    PSQL_DB_DRIVER,
    PSQL_DB_HOST,
    PSQL_DB_PASSWORD,
    PSQL_DB_NAME,
    PSQL_DB_PORT,
    PSQL_DB_USERNAME,
)
from busdesk.src.enums import (
    MaintenanceStatus,
    SeatStatus,
    ScheduleStatus,
    SettlementStatus,
    TicketStatus,
)


# Global DBMS variables
dbURL = f"{PSQL_DB_DRIVER}://{PSQL_DB_USERNAME}:{PSQL_DB_PASSWORD}@{PSQL_DB_HOST}:{PSQL_DB_PORT}/{PSQL_DB_NAME}"
engine = create_engine(url=dbURL, echo=False)
sessionMaker = sessionmaker(bind=engine, expire_on_commit=False)
ORMbase = declarative_base()

# JSONB on PostgreSQL, plain JSON on other dialects
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ----------------------------------- General DB Models ---------------------------------------#
class Company(ORMbase):
    """
    Represents a transport company that owns buses, employs drivers and
    defines its own seat tiers and bus templates.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the company.

        name (String(64)):
            Name of the company.
            Must be unique and is required.

        active (Boolean):
            Whether the company is operating.
            Defaults to True.

        updated_on (DateTime):
            Timestamp automatically updated whenever the company record is modified.

        created_on (DateTime):
            Timestamp indicating when the company record was created.
            Automatically set to the current timestamp at insertion.
    """

    __tablename__ = "company"

    id = Column(Integer, primary_key=True)
    name = Column(String(64), nullable=False, unique=True)
    active = Column(Boolean, nullable=False, default=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Location(ORMbase):
    """
    Represents a city or terminal that a route can start from or end at.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the location.

        name (String(64)):
            Display name of the location, used to build route codes.
            Must be unique and non-null.

        active (Boolean):
            Whether the location can be used by new routes.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the record was created.
    """

    __tablename__ = "location"

    id = Column(Integer, primary_key=True)
    name = Column(String(64), nullable=False, unique=True)
    active = Column(Boolean, nullable=False, default=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class SeatTier(ORMbase):
    """
    Represents a pricing category applied to seats (economy, premium, ...).

    Columns:
        id (Integer):
            Primary key. Unique identifier for the tier.

        company_id (Integer):
            Foreign key referencing the company that defines the tier.
            Deletion of the company cascades to its tiers.

        name (String(32)):
            Name of the tier, unique within the company.

        description (TEXT):
            Optional description of the tier.

        base_price (Numeric(10, 2)):
            Reference price of a seat in this tier.

        is_active (Boolean):
            Whether the tier can be applied to seats.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the record was created.
    """

    __tablename__ = "seat_tier"
    __table_args__ = (UniqueConstraint("company_id", "name"),)

    id = Column(Integer, primary_key=True)
    company_id = Column(
        Integer,
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(32), nullable=False)
    description = Column(TEXT)
    base_price = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class BusTemplate(ORMbase):
    """
    Represents a reusable bus type with its seat layout.

    A new bus copies the template seat layout at creation time, after
    which the bus layout evolves independently.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the template.

        company_id (Integer):
            Foreign key referencing the company owning the template.

        name (String(64)):
            Name of the bus type, unique within the company.
            Displayed as the bus type in settlement reports.

        description (TEXT):
            Optional free text description.

        total_capacity (Integer):
            Number of sellable seats in the layout, i.e. seats that are not
            empty slots. Maintained by the server from the layout.

        seat_template_matrix (JSON):
            Seat layout, serialized `SeatMatrix`.
            Every non-empty seat carries a tier.

        is_active (Boolean):
            Whether new buses may be created from this template.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the record was created.
    """

    __tablename__ = "bus_template"
    __table_args__ = (UniqueConstraint("company_id", "name"),)

    id = Column(Integer, primary_key=True)
    company_id = Column(
        Integer,
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(64), nullable=False)
    description = Column(TEXT)
    total_capacity = Column(Integer, nullable=False, default=0)
    seat_template_matrix = Column(JSONType, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Bus(ORMbase):
    """
    Represents a physical bus of a company's fleet.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the bus.

        company_id (Integer):
            Foreign key referencing the company that owns the bus.
            Deletion of the company cascades to its buses.
            Indexed for optimized grouping and filtering.

        template_id (Integer):
            Foreign key referencing the template the bus was created from.
            Set to NULL if the template is removed.

        plate_number (String(16)):
            Vehicle plate number.
            Must be unique across the system.

        is_active (Boolean):
            Whether the bus can be assigned to schedules.
            Forced to False when the bus is retired.

        maintenance_status (Integer):
            Operational status of the bus (ACTIVE, IN_MAINTENANCE, RETIRED).
            Only ACTIVE buses can be scheduled.
            Defaults to `MaintenanceStatus.ACTIVE`.

        seat_matrix (JSON):
            Seat layout of this bus, serialized `SeatMatrix`.
            Geometry and empty slots only are authoritative, the tier and
            status of each seat live on `bus_seat`.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the bus record was initially created.
    """

    __tablename__ = "bus"

    id = Column(Integer, primary_key=True)
    company_id = Column(
        Integer,
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    template_id = Column(Integer, ForeignKey("bus_template.id", ondelete="SET NULL"))
    plate_number = Column(String(16), nullable=False, unique=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    maintenance_status = Column(
        Integer, nullable=False, default=MaintenanceStatus.ACTIVE
    )
    seat_matrix = Column(JSONType)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())

    company = relationship("Company", lazy="joined")
    template = relationship("BusTemplate", lazy="joined")


class BusSeat(ORMbase):
    """
    Represents one sellable seat of a bus.

    Exists only for seats of the bus layout that are not empty slots and
    is matched to the layout by `seat_number`.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the seat.

        bus_id (Integer):
            Foreign key referencing the bus.
            Deletion of the bus cascades to its seats.

        seat_number (String(8)):
            Seat label, equal to the layout seat name (ex:- "1A", "21C").
            Unique within the bus.

        tier_id (Integer):
            Foreign key referencing the pricing tier of the seat.

        status (Integer):
            Seat status (AVAILABLE, MAINTENANCE).
            Defaults to `SeatStatus.AVAILABLE`.

        is_active (Boolean):
            False when the layout no longer has a sellable seat at this
            position. Kept instead of deleted to preserve history.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the record was created.
    """

    __tablename__ = "bus_seat"
    __table_args__ = (UniqueConstraint("bus_id", "seat_number"),)

    id = Column(Integer, primary_key=True)
    bus_id = Column(
        Integer,
        ForeignKey("bus.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    seat_number = Column(String(8), nullable=False)
    tier_id = Column(
        Integer, ForeignKey("seat_tier.id", ondelete="RESTRICT"), nullable=False
    )
    status = Column(Integer, nullable=False, default=SeatStatus.AVAILABLE)
    is_active = Column(Boolean, nullable=False, default=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Driver(ORMbase):
    """
    Represents a bus driver employed by a company.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the driver.

        company_id (Integer):
            Foreign key referencing the employing company.

        full_name (String(64)):
            Full name of the driver, displayed on settlements.

        document_id (String(32)):
            National identity document number.
            Must be unique across the system.

        license_number (String(32)):
            Driving license number.

        license_category (String(8)):
            Driving license category.

        phone_number (String(32)):
            Optional contact number.

        active (Boolean):
            Whether the driver can be assigned to schedules.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the record was created.
    """

    __tablename__ = "driver"

    id = Column(Integer, primary_key=True)
    company_id = Column(
        Integer,
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    full_name = Column(String(64), nullable=False)
    document_id = Column(String(32), nullable=False, unique=True)
    license_number = Column(String(32), nullable=False)
    license_category = Column(String(8), nullable=False)
    phone_number = Column(String(32))
    active = Column(Boolean, nullable=False, default=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Route(ORMbase):
    """
    Represents a route between two locations.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the route.

        name (String(128)):
            Descriptive name of the route.
            ex:- Bogota -> Medellin

        origin_id (Integer):
            Foreign key referencing the starting location.

        destination_id (Integer):
            Foreign key referencing the final location.
            Must differ from the origin.

        estimated_duration (Integer):
            Expected travel time in minutes.

        departure_lane (String(32)):
            Terminal lane or platform the route departs from.

        active (Boolean):
            Whether new trips can be scheduled on the route.

        updated_on (DateTime):
            Timestamp automatically updated when the route record is modified.

        created_on (DateTime):
            Timestamp indicating when the route was initially created.
    """

    __tablename__ = "route"
    __table_args__ = (UniqueConstraint("origin_id", "destination_id", "name"),)

    id = Column(Integer, primary_key=True)
    name = Column(String(128), nullable=False)
    origin_id = Column(
        Integer, ForeignKey("location.id", ondelete="RESTRICT"), nullable=False
    )
    destination_id = Column(
        Integer, ForeignKey("location.id", ondelete="RESTRICT"), nullable=False
    )
    estimated_duration = Column(Integer, nullable=False)
    departure_lane = Column(String(32))
    active = Column(Boolean, nullable=False, default=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())

    origin = relationship("Location", foreign_keys=[origin_id], lazy="joined")
    destination = relationship("Location", foreign_keys=[destination_id], lazy="joined")


class RouteSchedule(ORMbase):
    """
    Represents the recurring timetable of a route.

    A schedule (trip instance) always points at the timetable entry it
    was created from.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the timetable entry.

        route_id (Integer):
            Foreign key referencing the route.
            Deletion of the route cascades to its timetable.

        departure_time (Time):
            Time of day when the trip leaves.

        estimated_arrival_time (Time):
            Time of day when the trip is expected to arrive.

        operating_days (JSON):
            List of `Day`-style integers (1 for Monday through 7 for Sunday).

        season_start (DateTime):
            Optional first date the entry is valid.

        season_end (DateTime):
            Optional last date the entry is valid.

        active (Boolean):
            Whether new trips can be created from this entry.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the record was created.
    """

    __tablename__ = "route_schedule"

    id = Column(Integer, primary_key=True)
    route_id = Column(
        Integer,
        ForeignKey("route.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    departure_time = Column(Time, nullable=False)
    estimated_arrival_time = Column(Time, nullable=False)
    operating_days = Column(JSONType, nullable=False)
    season_start = Column(DateTime(timezone=True))
    season_end = Column(DateTime(timezone=True))
    active = Column(Boolean, nullable=False, default=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())

    route = relationship("Route", lazy="joined")


class Schedule(ORMbase):
    """
    Represents one concrete trip: a bus with its drivers travelling a route
    inside a time window.

    For a given bus, and independently for a given driver in any role, no
    two schedules in SCHEDULED or IN_PROGRESS status may have intersecting
    [departure_date, estimated_arrival_time] windows. The rule is enforced
    by the reservation logic in `busdesk.src.conflicts`.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the schedule.

        route_id (Integer):
            Foreign key referencing the route travelled.

        route_schedule_id (Integer):
            Foreign key referencing the timetable entry the trip belongs to.
            Must belong to `route_id`.

        bus_id (Integer):
            Foreign key referencing the assigned bus.
            Indexed for the conflict lookup.

        primary_driver_id (Integer):
            Foreign key referencing the driver in charge.

        secondary_driver_id (Integer):
            Optional foreign key referencing the relief driver.
            Must differ from the primary driver.

        departure_date (DateTime):
            Planned departure timestamp, start of the occupancy window.

        estimated_arrival_time (DateTime):
            Planned arrival timestamp, end of the occupancy window.
            Must be after the departure.

        actual_departure_time (DateTime):
            Stamped when the trip moves to IN_PROGRESS.

        actual_arrival_time (DateTime):
            Stamped when the trip moves to COMPLETED.

        price (Numeric(10, 2)):
            Base ticket price of the trip.

        status (Integer):
            Trip status, mapped from `ScheduleStatus`.
            Defaults to `SCHEDULED`.

        updated_on (DateTime):
            Timestamp automatically updated whenever the schedule is modified.

        created_on (DateTime):
            Timestamp when the schedule was created.
    """

    __tablename__ = "schedule"

    id = Column(Integer, primary_key=True)
    route_id = Column(
        Integer, ForeignKey("route.id", ondelete="RESTRICT"), nullable=False
    )
    route_schedule_id = Column(
        Integer, ForeignKey("route_schedule.id", ondelete="RESTRICT"), nullable=False
    )
    bus_id = Column(
        Integer,
        ForeignKey("bus.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    primary_driver_id = Column(
        Integer,
        ForeignKey("driver.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    secondary_driver_id = Column(
        Integer, ForeignKey("driver.id", ondelete="RESTRICT"), index=True
    )
    departure_date = Column(DateTime(timezone=True), nullable=False)
    estimated_arrival_time = Column(DateTime(timezone=True), nullable=False)
    actual_departure_time = Column(DateTime(timezone=True))
    actual_arrival_time = Column(DateTime(timezone=True))
    price = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(Integer, nullable=False, default=ScheduleStatus.SCHEDULED)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())

    bus = relationship("Bus", lazy="joined")
    route_schedule = relationship("RouteSchedule", lazy="joined")
    primary_driver = relationship(
        "Driver", foreign_keys=[primary_driver_id], lazy="joined"
    )
    secondary_driver = relationship(
        "Driver", foreign_keys=[secondary_driver_id], lazy="joined"
    )


class ExpenseCategory(ORMbase):
    """
    Represents a kind of trip expense (fuel, tolls, ...).

    Columns:
        id (Integer):
            Primary key. Unique identifier for the category.

        name (String(64)):
            Name of the category, unique.

        description (TEXT):
            Optional description.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the record was created.
    """

    __tablename__ = "expense_category"

    id = Column(Integer, primary_key=True)
    name = Column(String(64), nullable=False, unique=True)
    description = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class TripSettlement(ORMbase):
    """
    Represents the financial reconciliation of one trip.

    `net_amount` always equals `total_income - total_expenses`, and
    `total_expenses` is the sum of the settlement expenses. Both are
    recomputed by the server, never accepted from clients.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the settlement.

        schedule_id (Integer):
            Foreign key referencing the settled trip.
            At most one settlement exists per schedule.

        total_income (Numeric(12, 2)):
            Income collected for the trip.

        total_expenses (Numeric(12, 2)):
            Sum of the trip expenses.

        net_amount (Numeric(12, 2)):
            Income minus expenses.

        status (Integer):
            Settlement status, mapped from `SettlementStatus`.
            APPROVED and FINALIZED settlements are locked.

        details (TEXT):
            Optional notes.

        settled_at (DateTime):
            Timestamp the settlement was drawn up.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the record was created.
    """

    __tablename__ = "trip_settlement"

    id = Column(Integer, primary_key=True)
    schedule_id = Column(
        Integer,
        ForeignKey("schedule.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    total_income = Column(Numeric(12, 2), nullable=False, default=0)
    total_expenses = Column(Numeric(12, 2), nullable=False, default=0)
    net_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(Integer, nullable=False, default=SettlementStatus.PENDING)
    details = Column(TEXT)
    settled_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())

    schedule = relationship("Schedule", lazy="joined")
    expenses = relationship(
        "TripExpense",
        order_by="TripExpense.id",
        cascade="all, delete-orphan",
    )


class TripExpense(ORMbase):
    """
    Represents one expense booked against a trip settlement.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the expense.

        settlement_id (Integer):
            Foreign key referencing the settlement.
            Deletion of the settlement cascades to its expenses.

        category_id (Integer):
            Optional foreign key referencing the expense category.

        amount (Numeric(12, 2)):
            Expense amount, not negative.

        description (TEXT):
            Optional free text.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the record was created.
    """

    __tablename__ = "trip_expense"

    id = Column(Integer, primary_key=True)
    settlement_id = Column(
        Integer,
        ForeignKey("trip_settlement.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category_id = Column(
        Integer, ForeignKey("expense_category.id", ondelete="SET NULL")
    )
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())

    category = relationship("ExpenseCategory", lazy="joined")


class Customer(ORMbase):
    """
    Represents a passenger that bought at least one ticket.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the customer.

        full_name (String(64)):
            Name printed on the passenger list.

        document_id (String(32)):
            Identity document number.
            Unique, used to find returning passengers.

        phone_number (String(32)):
            Optional contact phone.

        email (String(256)):
            Optional contact email.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the record was created.
    """

    __tablename__ = "customer"

    id = Column(Integer, primary_key=True)
    full_name = Column(String(64), nullable=False)
    document_id = Column(String(32), nullable=False, unique=True)
    phone_number = Column(String(32))
    email = Column(String(256))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Ticket(ORMbase):
    """
    Represents one seat sold on one trip.

    A bus seat is sold at most once per schedule: only one ACTIVE ticket
    may exist for a (schedule_id, bus_seat_id) pair. Cancelled tickets are
    kept and free the seat again.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the ticket.

        schedule_id (Integer):
            Foreign key referencing the trip.
            Indexed for the seat availability lookup.

        bus_seat_id (Integer):
            Foreign key referencing the seat sold.
            Must be a seat of the bus of the trip.

        customer_id (Integer):
            Optional foreign key referencing the passenger.

        price (Numeric(10, 2)):
            Amount charged, the seat tier base price unless given.

        status (Integer):
            Ticket status, mapped from `TicketStatus`.
            Defaults to `ACTIVE`.

        notes (TEXT):
            Optional free text.

        cancel_reason (TEXT):
            Reason given when the ticket was cancelled.

        cancelled_on (DateTime):
            Timestamp the ticket was cancelled.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp of the sale.
    """

    __tablename__ = "ticket"
    __table_args__ = (
        Index(
            "ix_ticket_sold_seat",
            "schedule_id",
            "bus_seat_id",
            unique=True,
            postgresql_where=text(f"status = {TicketStatus.ACTIVE.value}"),
            sqlite_where=text(f"status = {TicketStatus.ACTIVE.value}"),
        ),
    )

    id = Column(Integer, primary_key=True)
    schedule_id = Column(
        Integer,
        ForeignKey("schedule.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    bus_seat_id = Column(
        Integer, ForeignKey("bus_seat.id", ondelete="RESTRICT"), nullable=False
    )
    customer_id = Column(
        Integer, ForeignKey("customer.id", ondelete="SET NULL"), index=True
    )
    price = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(Integer, nullable=False, default=TicketStatus.ACTIVE)
    notes = Column(TEXT)
    cancel_reason = Column(TEXT)
    cancelled_on = Column(DateTime(timezone=True))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())

    bus_seat = relationship("BusSeat", lazy="joined")
    customer = relationship("Customer", lazy="joined")
