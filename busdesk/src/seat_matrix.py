"""
Seat layout model of bus templates and buses.

A seat matrix describes one or two floors, each a grid of rows by seats
per row. Every cell is either an empty slot (aisle, stairs, toilet) or a
seat bound to a pricing tier. The matrix is stored as a JSON blob on
`bus_template.seat_template_matrix` and `bus.seat_matrix`, while the
sellable seats of a bus are also persisted one row each in `bus_seat`.

The bus seat rows are canonical for tier, status and activation, the
matrix for geometry and empty slots. Every function here is pure and
returns new values, persistence is left to the caller.
"""

from typing import Any, Iterator, Optional
from pydantic import BaseModel, Field, ValidationError

from busdesk.src import exceptions
from busdesk.src.constants import (
    MAX_ROWS_UNDER_SECOND_FLOOR,
    MAX_SEAT_ROWS,
    MAX_SEATS_PER_ROW,
    SECOND_FLOOR_PREFIX,
)
from busdesk.src.db import Bus
from busdesk.src.enums import FloorLevel, SeatStatus


# ---------------------------------------------------------------------------
# Layout models
# ---------------------------------------------------------------------------
class Dimensions(BaseModel):
    rows: int = Field(gt=0, le=MAX_SEAT_ROWS)
    seats_per_row: int = Field(gt=0, le=MAX_SEATS_PER_ROW)


class Seat(BaseModel):
    id: str = Field(min_length=1, max_length=8)
    name: str = Field(min_length=1, max_length=8)
    row: int = Field(ge=0)
    column: int = Field(ge=0)
    tier_id: Optional[int] = None
    is_empty: bool = False
    status: SeatStatus = SeatStatus.AVAILABLE
    floor: Optional[FloorLevel] = None


class Floor(BaseModel):
    dimensions: Dimensions
    seats: list[Seat] = Field(default_factory=list)


class SeatMatrix(BaseModel):
    first_floor: Floor
    second_floor: Optional[Floor] = None

    def floors(self) -> list[tuple[FloorLevel, Floor]]:
        floors = [(FloorLevel.FIRST, self.first_floor)]
        if self.second_floor is not None:
            floors.append((FloorLevel.SECOND, self.second_floor))
        return floors

    def seats(self) -> Iterator[Seat]:
        """Iterate every seat, first floor before second floor."""
        for _, floor in self.floors():
            yield from floor.seats


class BusSeatRecord(BaseModel):
    """Plain projection of a `bus_seat` row used by the editor functions."""

    id: Optional[int] = None
    seat_number: str
    tier_id: Optional[int] = None
    status: SeatStatus = SeatStatus.AVAILABLE
    is_active: bool = True


# ---------------------------------------------------------------------------
# Parsing and validation
# ---------------------------------------------------------------------------
def parseMatrix(data: Any) -> SeatMatrix:
    """
    Build a validated `SeatMatrix` from a raw JSON value or another matrix.

    The result is always a fresh deep copy. Empty seats lose their tier.

    Raises:
        exceptions.InvalidSeatMatrix: If the structure is malformed, a seat
            lies outside its floor grid, a seat id differs from its name,
            or seat ids or names repeat.
    """
    if data is None:
        raise exceptions.InvalidSeatMatrix("the layout is missing")
    if isinstance(data, SeatMatrix):
        data = data.model_dump()
    try:
        matrix = SeatMatrix.model_validate(data)
    except ValidationError as e:
        location = ".".join(str(x) for x in e.errors()[0]["loc"])
        raise exceptions.InvalidSeatMatrix(f"check {location}")

    seatIds, seatNames = set(), set()
    for floorLevel, floor in matrix.floors():
        for seat in floor.seats:
            if seat.row >= floor.dimensions.rows:
                raise exceptions.InvalidSeatMatrix(f"seat {seat.id} is outside the rows")
            if seat.column >= floor.dimensions.seats_per_row:
                raise exceptions.InvalidSeatMatrix(f"seat {seat.id} is outside the row")
            # bus seats are numbered by id and matched by name
            if seat.id != seat.name:
                raise exceptions.InvalidSeatMatrix(f"seat {seat.id} is named {seat.name}")
            if seat.id in seatIds:
                raise exceptions.InvalidSeatMatrix(f"seat id {seat.id} is repeated")
            if seat.name in seatNames:
                raise exceptions.InvalidSeatMatrix(f"seat name {seat.name} is repeated")
            seatIds.add(seat.id)
            seatNames.add(seat.name)
            if seat.is_empty:
                seat.tier_id = None
    return matrix


def unassignedSeats(matrix: SeatMatrix) -> list[Seat]:
    """Non-empty seats that have no tier yet."""
    return [s for s in matrix.seats() if not s.is_empty and s.tier_id is None]


def unknownSeatIds(matrix: SeatMatrix, seatIds: list[str]) -> list[str]:
    knownIds = {seat.id for seat in matrix.seats()}
    return [seatId for seatId in seatIds if seatId not in knownIds]


def sellableSeatCount(matrix: SeatMatrix) -> int:
    return sum(1 for seat in matrix.seats() if not seat.is_empty)


# ---------------------------------------------------------------------------
# Layout generation
# ---------------------------------------------------------------------------
def seatLabel(row: int, column: int, floorLevel: FloorLevel = FloorLevel.FIRST) -> str:
    """
    Label of the seat at a grid position, row number then column letter.

    Example:
        >>> seatLabel(0, 0)
        '1A'
        >>> seatLabel(4, 2, FloorLevel.SECOND)
        '25C'
    """
    label = f"{row + 1}{chr(ord('A') + column)}"
    if floorLevel == FloorLevel.SECOND:
        label = SECOND_FLOOR_PREFIX + label
    return label


def checkFloorRows(
    firstDimensions: Dimensions, secondDimensions: Optional[Dimensions]
) -> None:
    """
    Generated labels of a first floor row past the limit would repeat
    the labels of the second floor, "21A" on both.
    """
    if secondDimensions is None:
        return
    if firstDimensions.rows > MAX_ROWS_UNDER_SECOND_FLOOR:
        raise exceptions.InvalidSeatMatrix(
            f"a first floor under a second floor has at most {MAX_ROWS_UNDER_SECOND_FLOOR} rows"
        )


def generateFloor(
    dimensions: Dimensions,
    tierId: Optional[int] = None,
    floorLevel: FloorLevel = FloorLevel.FIRST,
    existingSeats: Optional[list[Seat]] = None,
) -> Floor:
    """
    Build a full grid for one floor.

    Seats already present in `existingSeats` at a position that still fits
    the new dimensions are kept as they are, so resizing a floor never
    loses tier or empty flags of the surviving seats.
    """
    existing = {seat.id: seat for seat in existingSeats or []}
    seats = []
    for row in range(dimensions.rows):
        for column in range(dimensions.seats_per_row):
            label = seatLabel(row, column, floorLevel)
            if label in existing:
                seats.append(existing[label].model_copy(deep=True))
                continue
            seats.append(
                Seat(
                    id=label,
                    name=label,
                    row=row,
                    column=column,
                    tier_id=tierId,
                    floor=floorLevel,
                )
            )
    return Floor(dimensions=dimensions.model_copy(), seats=seats)


def generateMatrix(
    firstDimensions: Dimensions,
    secondDimensions: Optional[Dimensions] = None,
    tierId: Optional[int] = None,
) -> SeatMatrix:
    """Build a new matrix where every cell is a seat of the given tier."""
    checkFloorRows(firstDimensions, secondDimensions)
    secondFloor = None
    if secondDimensions is not None:
        secondFloor = generateFloor(secondDimensions, tierId, FloorLevel.SECOND)
    return SeatMatrix(
        first_floor=generateFloor(firstDimensions, tierId, FloorLevel.FIRST),
        second_floor=secondFloor,
    )


def resizeMatrix(
    matrix: SeatMatrix,
    firstDimensions: Optional[Dimensions] = None,
    secondDimensions: Optional[Dimensions] = None,
    removeSecondFloor: bool = False,
) -> SeatMatrix:
    """Change the grid size of one or both floors, keeping surviving seats."""
    matrix = parseMatrix(matrix)
    if firstDimensions is not None:
        matrix.first_floor = generateFloor(
            firstDimensions, None, FloorLevel.FIRST, matrix.first_floor.seats
        )
    if removeSecondFloor:
        matrix.second_floor = None
    elif secondDimensions is not None:
        currentSeats = matrix.second_floor.seats if matrix.second_floor else []
        matrix.second_floor = generateFloor(
            secondDimensions, None, FloorLevel.SECOND, currentSeats
        )
    checkFloorRows(
        matrix.first_floor.dimensions,
        matrix.second_floor.dimensions if matrix.second_floor else None,
    )
    return matrix


# ---------------------------------------------------------------------------
# Building a bus layout from a template
# ---------------------------------------------------------------------------
def instantiateFromTemplate(template: Any, busId: Optional[int]) -> tuple[SeatMatrix, list[dict]]:
    """
    Produce the initial seat layout and seat rows of a new bus.

    Every floor of the template layout is copied, each seat is tagged with
    its floor and set AVAILABLE whatever its template status was. One
    `bus_seat` creation record is returned per non-empty seat, numbered by
    the seat id and carrying the seat tier.

    Args:
        template: A `BusTemplate` row, or a raw/parsed layout. None when
            the referenced template does not exist.
        busId (Optional[int]): Identifier of the bus the records belong to.
            May be None if the bus is not flushed yet, the caller then
            fills it in.

    Returns:
        tuple[SeatMatrix, list[dict]]: The bus layout and the keyword
        arguments of each `BusSeat` row to create.

    Raises:
        exceptions.UnknownValue: If the template is absent.
        exceptions.InvalidSeatMatrix: If the layout or its dimensions are invalid.
        exceptions.UnassignedSeatTier: If a non-empty seat has no tier.
    """
    if template is None:
        raise exceptions.UnknownValue(Bus.template_id)
    matrix = parseMatrix(getattr(template, "seat_template_matrix", template))

    missingTier = unassignedSeats(matrix)
    if missingTier:
        raise exceptions.UnassignedSeatTier([seat.name for seat in missingTier])

    busSeats = []
    for floorLevel, floor in matrix.floors():
        for seat in floor.seats:
            seat.floor = floorLevel
            seat.status = SeatStatus.AVAILABLE
            if seat.is_empty:
                continue
            busSeats.append(
                {
                    "bus_id": busId,
                    "seat_number": seat.id,
                    "tier_id": seat.tier_id,
                    "status": SeatStatus.AVAILABLE,
                    "is_active": True,
                }
            )
    return matrix, busSeats


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def findSeat(matrix: SeatMatrix, seatId: str) -> Optional[Seat]:
    """Locate a seat by id, first floor first. The first match wins."""
    for seat in matrix.seats():
        if seat.id == seatId:
            return seat
    return None


def seatAt(
    matrix: SeatMatrix, floorLevel: FloorLevel, row: int, column: int
) -> Optional[Seat]:
    for level, floor in matrix.floors():
        if level != floorLevel:
            continue
        for seat in floor.seats:
            if seat.row == row and seat.column == column:
                return seat
    return None


def seatsByRow(floor: Floor) -> list[list[Seat]]:
    """Partition the seats of a floor by row, each row ordered by column."""
    rows = [[] for _ in range(floor.dimensions.rows)]
    for seat in floor.seats:
        rows[seat.row].append(seat)
    for row in rows:
        row.sort(key=lambda seat: seat.column)
    return rows


# ---------------------------------------------------------------------------
# Editing
# ---------------------------------------------------------------------------
def _copySeats(busSeats: list[BusSeatRecord]) -> list[BusSeatRecord]:
    return [record.model_copy() for record in busSeats]


def _selectedSeats(matrix: SeatMatrix, seatIds: list[str]) -> Iterator[Seat]:
    """Yield the distinct non-empty seats among the selection."""
    seen = set()
    for seatId in seatIds:
        seat = findSeat(matrix, seatId)
        if seat is None or seat.is_empty or seat.id in seen:
            continue
        seen.add(seat.id)
        yield seat


def setEmptyFlag(matrix: SeatMatrix, seatIds: list[str], isEmpty: bool) -> SeatMatrix:
    """
    Mark the selected seats as empty slots or as seats.

    An emptied seat loses its tier. The bus seat rows are untouched, run
    `reconcileBusSeats` afterwards to bring them in line.
    """
    matrix = matrix.model_copy(deep=True)
    for seatId in seatIds:
        seat = findSeat(matrix, seatId)
        if seat is None:
            continue
        seat.is_empty = isEmpty
        if isEmpty:
            seat.tier_id = None
    return matrix


def applyTier(
    matrix: SeatMatrix,
    busSeats: list[BusSeatRecord],
    seatIds: list[str],
    tierId: int,
) -> tuple[SeatMatrix, list[BusSeatRecord]]:
    """
    Assign a tier to the selected seats.

    The bus seat matching each seat by name gets the tier. A seat without
    a bus seat yet gets a new AVAILABLE, active one. Empty seats are
    skipped.
    """
    matrix = matrix.model_copy(deep=True)
    busSeats = _copySeats(busSeats)
    bySeatNumber = {record.seat_number: record for record in busSeats}
    for seat in _selectedSeats(matrix, seatIds):
        seat.tier_id = tierId
        record = bySeatNumber.get(seat.name)
        if record is not None:
            record.tier_id = tierId
            continue
        record = BusSeatRecord(
            seat_number=seat.name,
            tier_id=tierId,
            status=SeatStatus.AVAILABLE,
            is_active=True,
        )
        busSeats.append(record)
        bySeatNumber[seat.name] = record
    return matrix, busSeats


def applyStatus(
    matrix: SeatMatrix,
    busSeats: list[BusSeatRecord],
    seatIds: list[str],
    status: SeatStatus,
) -> tuple[SeatMatrix, list[BusSeatRecord]]:
    """
    Set the status of the selected seats.

    A seat without a bus seat gets one only if the layout already gives
    it a tier, otherwise it is skipped. Empty seats are skipped.
    """
    matrix = matrix.model_copy(deep=True)
    busSeats = _copySeats(busSeats)
    bySeatNumber = {record.seat_number: record for record in busSeats}
    for seat in _selectedSeats(matrix, seatIds):
        record = bySeatNumber.get(seat.name)
        if record is None:
            if seat.tier_id is None:
                continue
            record = BusSeatRecord(
                seat_number=seat.name,
                tier_id=seat.tier_id,
                status=status,
                is_active=True,
            )
            busSeats.append(record)
            bySeatNumber[seat.name] = record
        record.status = status
        seat.status = status
    return matrix, busSeats


# ---------------------------------------------------------------------------
# Keeping the layout and the bus seats in line
# ---------------------------------------------------------------------------
def reconcileBusSeats(
    matrix: SeatMatrix, busSeats: list[BusSeatRecord]
) -> list[BusSeatRecord]:
    """
    Align the bus seats with the layout.

    - A bus seat whose layout seat is empty or gone is deactivated.
    - A deactivated bus seat whose layout seat is a seat again is reactivated.
    - A non-empty layout seat with a tier and no bus seat gets a new one.

    Layout seats without a tier and without a bus seat are left alone,
    they become sellable once a tier is applied.
    """
    busSeats = _copySeats(busSeats)
    bySeatNumber = {record.seat_number: record for record in busSeats}
    sellable = set()
    for seat in matrix.seats():
        if seat.is_empty:
            continue
        sellable.add(seat.name)
        if seat.name not in bySeatNumber and seat.tier_id is not None:
            record = BusSeatRecord(seat_number=seat.name, tier_id=seat.tier_id)
            busSeats.append(record)
            bySeatNumber[seat.name] = record

    for record in busSeats:
        record.is_active = record.seat_number in sellable
    return busSeats


def overlayMatrix(matrix: SeatMatrix, busSeats: list[BusSeatRecord]) -> SeatMatrix:
    """
    Layout as presented to clients: geometry from the matrix, tier and
    status of every sellable seat from its active bus seat.
    """
    matrix = matrix.model_copy(deep=True)
    bySeatNumber = {r.seat_number: r for r in busSeats if r.is_active}
    for floorLevel, floor in matrix.floors():
        for seat in floor.seats:
            seat.floor = floorLevel
            record = bySeatNumber.get(seat.name)
            if seat.is_empty or record is None:
                continue
            seat.tier_id = record.tier_id
            seat.status = record.status
    return matrix
