# tests/test_bins.py
import pytest

from exceptions import BinCapacityError, BinNotFoundError, ConflictError, LocationNotFoundError, ValidationFailed
from models import AssemblyJourney, Bin, BinMovementHistory, BinZone, UserProfile
from services import bins, workflow


def inward(db, actor, location, barcode, bin_id=None):
    return workflow.inward_bike(db, actor=actor, barcode=barcode, model_sku="CITY-1",
                                location_id=location.id, bin_location_id=bin_id)


def occupancy(db, b):
    db.expire_all()
    return db.get(Bin, b.id).current_occupancy


# ---------- moving ----------
def test_move_updates_both_counters_and_logs(db, warehouse, location, inward_bin, make_bin):
    dest = make_bin(location, "B0002", BinZone.ASSEMBLY)
    inward(db, warehouse, location, "M1", inward_bin.id)

    res = workflow.move_bike_to_bin(db, barcode="M1", bin_id=dest.id, actor=warehouse, reason="to bench")

    assert res["from_bin_id"] == inward_bin.id
    assert res["to_bin_id"] == dest.id
    assert occupancy(db, inward_bin) == 0
    assert occupancy(db, dest) == 1
    moves = bins.movement_history(db, db.query(AssemblyJourney).filter_by(barcode="M1").one().id)
    assert [(m.from_bin_id, m.to_bin_id) for m in moves] == [(inward_bin.id, dest.id), (None, inward_bin.id)]
    assert moves[0].reason == "to bench"


def test_move_to_full_bin_changes_nothing(db, warehouse, location, inward_bin, make_bin):
    full = make_bin(location, "B0003", capacity=1)
    inward(db, warehouse, location, "F1", full.id)
    inward(db, warehouse, location, "F2", inward_bin.id)

    with pytest.raises(BinCapacityError):
        workflow.move_bike_to_bin(db, barcode="F2", bin_id=full.id, actor=warehouse)
    db.rollback()

    assert occupancy(db, full) == 1
    assert occupancy(db, inward_bin) == 1
    assert db.query(AssemblyJourney).filter_by(barcode="F2").one().bin_location_id == inward_bin.id


def test_move_to_same_bin_is_rejected(db, warehouse, location, inward_bin):
    inward(db, warehouse, location, "S1", inward_bin.id)
    with pytest.raises(ValidationFailed):
        workflow.move_bike_to_bin(db, barcode="S1", bin_id=inward_bin.id, actor=warehouse)


def test_move_to_inactive_or_missing_bin(db, warehouse, location, inward_bin, make_bin):
    closed = make_bin(location, "B0004")
    bins.deactivate_bin(db, closed.id)
    inward(db, warehouse, location, "I1", inward_bin.id)

    with pytest.raises(ValidationFailed):
        workflow.move_bike_to_bin(db, barcode="I1", bin_id=closed.id, actor=warehouse)
    db.rollback()
    with pytest.raises(BinNotFoundError):
        workflow.move_bike_to_bin(db, barcode="I1", bin_id=4242, actor=warehouse)


def test_move_across_locations_updates_current_location(db, warehouse, location, other_location, inward_bin, make_bin):
    away = make_bin(other_location, "B0001")
    inward(db, warehouse, location, "X1", inward_bin.id)

    res = workflow.move_bike_to_bin(db, barcode="X1", bin_id=away.id, actor=warehouse)

    assert res["current_location_id"] == other_location.id
    assert workflow.get_journey(db, "X1").current_location_id == other_location.id


# ---------- reconcile ----------
def test_reconcile_fixes_drifted_counters(db, warehouse, location, inward_bin, make_bin):
    empty = make_bin(location, "B0005", capacity=3)
    inward(db, warehouse, location, "R1", inward_bin.id)
    inward(db, warehouse, location, "R2", inward_bin.id)

    # simulate drift
    db.get(Bin, inward_bin.id).current_occupancy = 1
    db.get(Bin, empty.id).current_occupancy = 2
    db.commit()

    fixed = bins.reconcile_occupancy(db)

    assert {(f["bin_code"], f["was"], f["now"]) for f in fixed} == {("B0001", 1, 2), ("B0005", 2, 0)}
    assert occupancy(db, inward_bin) == 2
    assert occupancy(db, empty) == 0
    assert bins.reconcile_occupancy(db) == []


def test_reconcile_counts_a_move_committed_before_it_locks(db, session_factory, warehouse, location, inward_bin,
                                                           make_bin, monkeypatch):
    dest = make_bin(location, "B0006", BinZone.ASSEMBLY)
    inward(db, warehouse, location, "C1", inward_bin.id)
    mover_id, dest_id = warehouse.id, dest.id

    real_execute = db.execute
    pending = [True]

    def execute(stmt, *args, **kw):
        # another clerk's move lands right as reconcile starts
        if pending:
            pending.clear()
            other = session_factory()
            try:
                workflow.move_bike_to_bin(other, barcode="C1", bin_id=dest_id,
                                          actor=other.get(UserProfile, mover_id))
            finally:
                other.close()
        return real_execute(stmt, *args, **kw)

    monkeypatch.setattr(db, "execute", execute)
    fixed = bins.reconcile_occupancy(db)
    monkeypatch.undo()

    assert fixed == []
    assert (occupancy(db, inward_bin), occupancy(db, dest)) == (0, 1)


def test_reconcile_flags_over_full_bin_without_touching_capacity(db, warehouse, location, make_bin):
    tiny = make_bin(location, "B0007", capacity=1)
    inward(db, warehouse, location, "O1", tiny.id)
    stray = inward(db, warehouse, location, "O2")
    stray.bin_location_id = tiny.id
    db.commit()

    fixed = bins.reconcile_occupancy(db)

    assert fixed == [{"bin_id": tiny.id, "bin_code": "B0007", "was": 1, "now": 1,
                      "actual": 2, "capacity": 1, "over_capacity": True}]
    db.expire_all()
    b = db.get(Bin, tiny.id)
    assert (b.capacity, b.current_occupancy) == (1, 1)


def test_release_never_goes_negative(location):
    b = Bin(location_id=location.id, bin_code="B0099", capacity=1, current_occupancy=0, is_active=True)
    bins.release(b)
    assert b.current_occupancy == 0


# ---------- queries ----------
def test_available_and_zone_queries(db, warehouse, location, other_location, make_bin):
    a = make_bin(location, "B0001", BinZone.INWARD, capacity=1)
    make_bin(location, "B0002", BinZone.READY, capacity=2)
    make_bin(other_location, "B0001", BinZone.QC, capacity=1)
    inward(db, warehouse, location, "Q1", a.id)

    assert [b.bin_code for b in bins.available_bins(db, location.id)] == ["B0002"]
    assert len(bins.available_bins(db)) == 2
    assert bins.bin_zones(db) == ["inward_zone", "qc_zone", "ready_zone"]
    assert bins.bin_zones(db, location.id) == ["inward_zone", "ready_zone"]
    assert [b.bin_code for b in bins.bins_by_zone(db, location.id, "ready_zone")] == ["B0002"]
    assert [b.bin_code for b in bins.bins_by_location(db, other_location.id)] == ["B0001"]

    stats = {(s["location_id"], s["status_zone"]): s for s in bins.zone_statistics(db, location.id)}
    inward_stats = stats[(location.id, "inward_zone")]
    assert inward_stats["zone_label"] == "Inward Zone"
    assert inward_stats["total_bins"] == 1
    assert inward_stats["total_occupancy"] == 1
    assert inward_stats["available_slots"] == 0
    assert inward_stats["occupancy_percentage"] == 100.0
    assert stats[(location.id, "ready_zone")]["occupancy_percentage"] == 0.0


# ---------- management ----------
def test_create_bin_autogenerates_code_per_location(db, location, other_location):
    b1 = bins.create_bin(db, location_id=location.id, bin_code="", bin_name="Rack 1",
                         status_zone=BinZone.INWARD, capacity=4)
    b2 = bins.create_bin(db, location_id=location.id, bin_code="AUTO", bin_name=None,
                         status_zone=BinZone.READY, capacity=1)
    b3 = bins.create_bin(db, location_id=other_location.id, bin_code=None, bin_name=None,
                         status_zone=BinZone.QC, capacity=1)
    assert (b1.bin_code, b2.bin_code, b3.bin_code) == ("B0001", "B0002", "B0001")

    with pytest.raises(ConflictError):
        bins.create_bin(db, location_id=location.id, bin_code="b0001", bin_name=None,
                        status_zone=BinZone.INWARD, capacity=1)
    with pytest.raises(LocationNotFoundError):
        bins.create_bin(db, location_id=999, bin_code=None, bin_name=None,
                        status_zone=BinZone.INWARD, capacity=1)


def test_update_bin_guards_capacity_and_deactivation(db, warehouse, location, inward_bin):
    inward(db, warehouse, location, "U1", inward_bin.id)
    inward(db, warehouse, location, "U2", inward_bin.id)

    with pytest.raises(ValidationFailed):
        bins.update_bin(db, inward_bin.id, {"capacity": 1})
    with pytest.raises(ConflictError):
        bins.deactivate_bin(db, inward_bin.id)

    b = bins.update_bin(db, inward_bin.id, {"capacity": 5, "status_zone": "assembly_zone", "bin_name": None})
    assert b.capacity == 5
    assert b.status_zone == "assembly_zone"
    assert b.is_active is True


def test_movement_history_is_newest_first(db, warehouse, location, inward_bin, make_bin):
    b2 = make_bin(location, "B0002")
    j = inward(db, warehouse, location, "H1", inward_bin.id)
    workflow.move_bike_to_bin(db, barcode="H1", bin_id=b2.id, actor=warehouse)
    workflow.move_bike_to_bin(db, barcode="H1", bin_id=inward_bin.id, actor=warehouse)

    moves = bins.movement_history(db, j.id)
    assert [m.to_bin_id for m in moves] == [inward_bin.id, b2.id, inward_bin.id]
    assert db.query(BinMovementHistory).count() == 3
