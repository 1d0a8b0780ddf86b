"""
Tests for the seat layout model: parsing, generation, building a bus
from a template and the seat editors.
"""
import pytest
from types import SimpleNamespace

from busdesk.src import exceptions, seat_matrix
from busdesk.src.enums import FloorLevel, SeatStatus
from busdesk.src.seat_matrix import BusSeatRecord, Dimensions

from factories import makeLayout


TIER = 7


def recordsOf(matrix):
    """Bus seat records as they would be right after building the bus."""
    _, records = seat_matrix.instantiateFromTemplate(matrix, 1)
    return [BusSeatRecord(id=i + 1, **record) for i, record in enumerate(records)]


# ============================================================
# PARSING
# ============================================================

def test_parse_accepts_generated_layout():
    matrix = seat_matrix.parseMatrix(makeLayout(TIER).model_dump(mode="json"))
    assert len(list(matrix.seats())) == 40
    assert matrix.second_floor is None


def test_parse_rejects_seat_outside_grid():
    data = makeLayout(TIER, rows=2, seatsPerRow=2).model_dump(mode="json")
    data["first_floor"]["seats"][0]["row"] = 5
    with pytest.raises(exceptions.InvalidSeatMatrix):
        seat_matrix.parseMatrix(data)


def test_parse_rejects_repeated_seat_id():
    data = makeLayout(TIER, rows=2, seatsPerRow=2).model_dump(mode="json")
    first, second = data["first_floor"]["seats"][:2]
    second["id"] = second["name"] = first["id"]
    with pytest.raises(exceptions.InvalidSeatMatrix):
        seat_matrix.parseMatrix(data)


def test_parse_rejects_seat_named_apart_from_its_id():
    data = makeLayout(TIER, rows=1, seatsPerRow=2).model_dump(mode="json")
    data["first_floor"]["seats"][0]["id"] = "s1"
    with pytest.raises(exceptions.InvalidSeatMatrix):
        seat_matrix.parseMatrix(data)


def test_parse_rejects_malformed_structure():
    with pytest.raises(exceptions.InvalidSeatMatrix):
        seat_matrix.parseMatrix({"first_floor": {"seats": []}})
    with pytest.raises(exceptions.InvalidSeatMatrix):
        seat_matrix.parseMatrix(None)


def test_parse_clears_tier_of_empty_seats():
    data = makeLayout(TIER, rows=1, seatsPerRow=2).model_dump(mode="json")
    data["first_floor"]["seats"][0]["is_empty"] = True
    matrix = seat_matrix.parseMatrix(data)
    assert matrix.first_floor.seats[0].tier_id is None


# ============================================================
# GENERATION
# ============================================================

def test_seat_labels():
    assert seat_matrix.seatLabel(0, 0) == "1A"
    assert seat_matrix.seatLabel(9, 3) == "10D"
    assert seat_matrix.seatLabel(4, 2, FloorLevel.SECOND) == "25C"


def test_generate_two_floors():
    matrix = seat_matrix.generateMatrix(
        Dimensions(rows=10, seats_per_row=4), Dimensions(rows=3, seats_per_row=3), TIER
    )
    assert seat_matrix.sellableSeatCount(matrix) == 49
    assert {s.floor for s in matrix.second_floor.seats} == {FloorLevel.SECOND}
    assert all(s.tier_id == TIER for s in matrix.seats())


def test_resize_keeps_surviving_seats():
    matrix = makeLayout(TIER, rows=3, seatsPerRow=3, emptySeats=["1B"])
    resized = seat_matrix.resizeMatrix(matrix, Dimensions(rows=2, seats_per_row=4))

    assert len(resized.first_floor.seats) == 8
    assert seat_matrix.findSeat(resized, "1B").is_empty
    assert seat_matrix.findSeat(resized, "1A").tier_id == TIER
    assert seat_matrix.findSeat(resized, "1D").tier_id is None
    assert seat_matrix.findSeat(resized, "3A") is None


@pytest.mark.parametrize("rows", [21, 30])
def test_long_first_floor_under_second_floor(rows):
    with pytest.raises(exceptions.InvalidSeatMatrix):
        seat_matrix.generateMatrix(
            Dimensions(rows=rows, seats_per_row=4), Dimensions(rows=2, seats_per_row=4), TIER
        )

    matrix = seat_matrix.generateMatrix(
        Dimensions(rows=20, seats_per_row=4), Dimensions(rows=2, seats_per_row=4), TIER
    )
    assert seat_matrix.sellableSeatCount(seat_matrix.parseMatrix(matrix)) == 88
    with pytest.raises(exceptions.InvalidSeatMatrix):
        seat_matrix.resizeMatrix(matrix, Dimensions(rows=rows, seats_per_row=4))


def test_long_single_floor():
    matrix = seat_matrix.generateMatrix(Dimensions(rows=30, seats_per_row=4), tierId=TIER)
    assert seat_matrix.sellableSeatCount(seat_matrix.parseMatrix(matrix)) == 120


def test_resize_removes_second_floor():
    matrix = seat_matrix.generateMatrix(
        Dimensions(rows=2, seats_per_row=2), Dimensions(rows=2, seats_per_row=2), TIER
    )
    resized = seat_matrix.resizeMatrix(matrix, removeSecondFloor=True)
    assert resized.second_floor is None
    assert matrix.second_floor is not None


# ============================================================
# BUILDING A BUS FROM A TEMPLATE
# ============================================================

def test_instantiate_creates_one_seat_per_non_empty_cell():
    layout = makeLayout(TIER, emptySeats=["1B", "5C"])
    matrix, records = seat_matrix.instantiateFromTemplate(layout, 3)

    assert len(records) == 38
    numbers = {record["seat_number"] for record in records}
    assert "1B" not in numbers and "5C" not in numbers
    assert all(record["bus_id"] == 3 for record in records)
    assert all(record["status"] == SeatStatus.AVAILABLE for record in records)
    assert all(record["is_active"] for record in records)
    assert all(record["tier_id"] == TIER for record in records)
    assert len(list(matrix.seats())) == 40


def test_instantiate_resets_status_and_tags_floor():
    layout = seat_matrix.generateMatrix(
        Dimensions(rows=1, seats_per_row=2), Dimensions(rows=1, seats_per_row=2), TIER
    )
    layout.first_floor.seats[0].status = SeatStatus.MAINTENANCE
    layout.second_floor.seats[0].floor = None

    matrix, _ = seat_matrix.instantiateFromTemplate(layout, 1)

    assert matrix.first_floor.seats[0].status == SeatStatus.AVAILABLE
    assert matrix.second_floor.seats[0].floor == FloorLevel.SECOND


def test_instantiate_reads_template_rows():
    layout = makeLayout(TIER, rows=2, seatsPerRow=2)
    template = SimpleNamespace(seat_template_matrix=layout.model_dump(mode="json"))
    _, records = seat_matrix.instantiateFromTemplate(template, 1)
    assert len(records) == 4


def test_instantiate_without_template():
    with pytest.raises(exceptions.UnknownValue):
        seat_matrix.instantiateFromTemplate(None, 1)


def test_instantiate_with_seat_missing_tier():
    layout = makeLayout(TIER, rows=1, seatsPerRow=2)
    layout.first_floor.seats[1].tier_id = None
    with pytest.raises(exceptions.UnassignedSeatTier) as error:
        seat_matrix.instantiateFromTemplate(layout, 1)
    assert "1B" in error.value.detail


# ============================================================
# EDITORS
# ============================================================

def test_apply_tier_on_empty_seat_changes_nothing():
    matrix = makeLayout(TIER, rows=2, seatsPerRow=2, emptySeats=["1B"])
    records = recordsOf(matrix)

    newMatrix, newRecords = seat_matrix.applyTier(matrix, records, ["1B"], 99)

    assert newRecords == records
    assert seat_matrix.findSeat(newMatrix, "1B").tier_id is None


def test_apply_tier_updates_and_creates_records():
    matrix = makeLayout(TIER, rows=1, seatsPerRow=3)
    records = [r for r in recordsOf(matrix) if r.seat_number != "1C"]

    newMatrix, newRecords = seat_matrix.applyTier(matrix, records, ["1A", "1C"], 99)

    byNumber = {r.seat_number: r for r in newRecords}
    assert byNumber["1A"].tier_id == 99
    assert byNumber["1B"].tier_id == TIER
    assert byNumber["1C"].id is None
    assert byNumber["1C"].tier_id == 99
    assert byNumber["1C"].status == SeatStatus.AVAILABLE
    assert seat_matrix.findSeat(newMatrix, "1C").tier_id == 99
    # inputs are left untouched
    assert records[0].tier_id == TIER


def test_apply_status_skips_seats_without_tier():
    matrix = makeLayout(TIER, rows=1, seatsPerRow=2)
    matrix.first_floor.seats[1].tier_id = None
    records = [BusSeatRecord(id=1, seat_number="1A", tier_id=TIER)]

    newMatrix, newRecords = seat_matrix.applyStatus(
        matrix, records, ["1A", "1B"], SeatStatus.MAINTENANCE
    )

    assert len(newRecords) == 1
    assert newRecords[0].status == SeatStatus.MAINTENANCE
    assert seat_matrix.findSeat(newMatrix, "1B").status == SeatStatus.AVAILABLE


def test_reconcile_deactivates_emptied_seats():
    matrix = makeLayout(TIER, rows=2, seatsPerRow=2)
    records = recordsOf(matrix)

    emptied = seat_matrix.setEmptyFlag(matrix, ["2A"], True)
    reconciled = seat_matrix.reconcileBusSeats(emptied, records)

    byNumber = {r.seat_number: r for r in reconciled}
    assert len(reconciled) == 4
    assert byNumber["2A"].is_active is False
    assert byNumber["2A"].id is not None
    assert all(byNumber[n].is_active for n in ("1A", "1B", "2B"))


def test_fresh_bus_seats_match_their_layout():
    matrix = seat_matrix.generateMatrix(
        Dimensions(rows=2, seats_per_row=2), Dimensions(rows=1, seats_per_row=2), TIER
    )
    busMatrix, _ = seat_matrix.instantiateFromTemplate(matrix, 1)
    records = recordsOf(matrix)

    reconciled = seat_matrix.reconcileBusSeats(busMatrix, records)
    assert len(reconciled) == 6
    assert all(record.is_active for record in reconciled)

    _, retiered = seat_matrix.applyTier(busMatrix, records, ["21A"], 99)
    assert len(retiered) == 6
    assert {r.seat_number for r in retiered if r.tier_id == 99} == {"21A"}


def test_reconcile_reactivates_restored_seats():
    matrix = makeLayout(TIER, rows=1, seatsPerRow=2, emptySeats=["1B"])
    records = recordsOf(makeLayout(TIER, rows=1, seatsPerRow=2))
    records[1].is_active = False

    restored = seat_matrix.setEmptyFlag(matrix, ["1B"], False)
    reconciled = seat_matrix.reconcileBusSeats(restored, records)

    assert all(record.is_active for record in reconciled)


def test_overlay_takes_tier_and_status_from_bus_seats():
    matrix = makeLayout(TIER, rows=1, seatsPerRow=2)
    records = recordsOf(matrix)
    records[0].tier_id = 99
    records[1].status = SeatStatus.MAINTENANCE

    overlaid = seat_matrix.overlayMatrix(matrix, records)

    assert seat_matrix.findSeat(overlaid, "1A").tier_id == 99
    assert seat_matrix.findSeat(overlaid, "1B").status == SeatStatus.MAINTENANCE
    assert seat_matrix.findSeat(matrix, "1A").tier_id == TIER


def test_seats_by_row_orders_columns():
    floor = makeLayout(TIER, rows=2, seatsPerRow=3).first_floor
    floor.seats.reverse()
    rows = seat_matrix.seatsByRow(floor)
    assert [seat.name for seat in rows[0]] == ["1A", "1B", "1C"]
    assert seat_matrix.seatAt(
        seat_matrix.SeatMatrix(first_floor=floor), FloorLevel.FIRST, 1, 2
    ).name == "2C"
