# tests/test_reports.py
from datetime import timedelta

import pytest

from exceptions import JourneyNotFoundError
from models import AssemblyJourney
from services import reports, workflow
from utils.timeutil import utcnow

FULL = {"tyres": True, "brakes": True, "gears": True}


@pytest.fixture()
def floor(db, warehouse, supervisor, tech, tech2, location, inward_bin):
    """Five bikes spread over the workflow."""
    for bc in ("K1", "K2", "K3", "K4", "K5"):
        workflow.inward_bike(db, actor=warehouse, barcode=bc, model_sku="MTB" if bc != "K5" else "ROAD",
                             location_id=location.id)
    workflow.move_bike_to_bin(db, barcode="K1", bin_id=inward_bin.id, actor=warehouse)

    workflow.assign_bike(db, barcode="K2", technician_id=tech.id, actor=supervisor)

    workflow.assign_bike(db, barcode="K3", technician_id=tech.id, actor=supervisor)
    workflow.start_assembly(db, barcode="K3", actor=tech)

    workflow.assign_bike(db, barcode="K4", technician_id=tech2.id, actor=supervisor)
    workflow.start_assembly(db, barcode="K4", actor=tech2)
    workflow.complete_assembly(db, barcode="K4", actor=tech2, checklist=FULL)
    workflow.submit_qc(db, barcode="K4", passed=False, actor=supervisor, failure_reason="Loose headset")
    workflow.complete_assembly(db, barcode="K4", actor=tech2)
    workflow.submit_qc(db, barcode="K4", passed=True, actor=supervisor)

    workflow.set_priority(db, barcode="K5", priority=True, actor=supervisor)
    return db


def age(db, barcode, hours):
    j = db.query(AssemblyJourney).filter_by(barcode=barcode).one()
    j.status_changed_at = utcnow() - timedelta(hours=hours)
    db.commit()


def test_kanban_orders_priority_first_and_filters(floor, tech, location):
    rows = reports.kanban_board(floor)
    assert rows[0]["barcode"] == "K5"
    assert {r["barcode"] for r in rows} == {"K1", "K2", "K3", "K4", "K5"}

    k1 = next(r for r in rows if r["barcode"] == "K1")
    assert k1["bin_code"] == "B0001"
    assert k1["location_name"] == "Main Warehouse"
    assert k1["status_label"] == "Inwarded"
    assert k1["hours_in_status"] >= 0

    mine = reports.kanban_board(floor, technician_id=tech.id)
    assert sorted(r["barcode"] for r in mine) == ["K2", "K3"]
    assert all(r["technician_name"] == "Tara Tech" for r in mine)

    assert [r["barcode"] for r in reports.kanban_board(floor, status="in_progress")] == ["K3"]
    assert [r["barcode"] for r in reports.kanban_board(floor, priority=True)] == ["K5"]
    assert len(reports.kanban_board(floor, priority=False)) == 5
    assert len(reports.kanban_board(floor, location_id=location.id)) == 5


def test_daily_dashboard_counts(floor, supervisor):
    age(floor, "K1", 30)
    workflow.report_damage(floor, barcode="K2", damage_notes="bent rim", actor=supervisor)

    d = reports.daily_dashboard(floor)
    assert d["inwarded_today"] == 5
    assert d["assembled_today"] == 1
    assert d["qc_passed_today"] == 1
    assert d["pending_assignment"] == 2
    assert d["pending_start"] == 1
    assert d["currently_assembling"] == 1
    assert d["pending_qc"] == 0
    assert d["ready_for_sale"] == 1
    assert d["paused"] == 1
    assert d["stuck_over_24h"] == 1


def test_ready_bikes_never_count_as_stuck(floor):
    age(floor, "K4", 100)
    assert reports.daily_dashboard(floor)["stuck_over_24h"] == 0
    ready = next(r for r in reports.bottleneck_report(floor) if r["status"] == "ready_for_sale")
    assert ready["stuck_count"] == 0
    assert ready["avg_hours_in_status"] >= 99


def test_bottleneck_report_covers_every_status(floor):
    age(floor, "K1", 48)
    rows = reports.bottleneck_report(floor)
    assert [r["status"] for r in rows] == ["inwarded", "assigned", "in_progress", "qc_review", "ready_for_sale"]
    by = {r["status"]: r for r in rows}
    assert by["inwarded"]["count"] == 2
    assert by["inwarded"]["stuck_count"] == 1
    assert by["qc_review"]["count"] == 0
    assert by["qc_review"]["avg_hours_in_status"] == 0.0


def test_technician_workload(floor, tech, tech2):
    rows = {r["technician_id"]: r for r in reports.technician_workload(floor)}
    assert rows[tech.id]["assigned_count"] == 1
    assert rows[tech.id]["in_progress_count"] == 1
    assert rows[tech.id]["completed_today"] == 0
    assert rows[tech.id]["qc_pass_rate_percent"] is None
    assert rows[tech.id]["avg_assembly_hours"] is None

    assert rows[tech2.id]["completed_today"] == 1
    assert rows[tech2.id]["qc_pass_rate_percent"] == 50.0
    assert rows[tech2.id]["avg_assembly_hours"] is not None


def test_qc_failure_analysis_groups_by_reason_and_model(floor, supervisor, tech):
    workflow.start_assembly(floor, barcode="K2", actor=tech)
    workflow.complete_assembly(floor, barcode="K2", actor=tech, checklist=FULL)
    workflow.submit_qc(floor, barcode="K2", passed=False, actor=supervisor, failure_reason="Loose headset")

    rows = reports.qc_failure_analysis(floor)
    assert rows == [{"qc_failure_reason": "Loose headset", "model_sku": "MTB", "failure_count": 2}]


def test_technician_queue(floor, tech, supervisor):
    workflow.set_priority(floor, barcode="K3", priority=True, actor=supervisor)
    assert [j.barcode for j in reports.technician_queue(floor, tech.id)] == ["K3", "K2"]


def test_bike_details_timeline_and_history(floor):
    d = reports.bike_details(floor, "K4")
    assert d["journey"].barcode == "K4"
    assert d["technician_name"] == "Theo Tech"
    assert [t["status"] for t in d["timeline"]][:2] == ["ready_for_sale", "qc_review"]
    assert len(d["timeline"]) == 7

    with pytest.raises(JourneyNotFoundError):
        reports.bike_details(floor, "NOPE")
    with pytest.raises(JourneyNotFoundError):
        reports.status_history(floor, 9999)
