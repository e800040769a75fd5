# services/reports.py
"""
Read-only views over the assembly floor. Everything is recomputed per request
from the journey, history and inspection tables; nothing is cached.
"""
from collections import defaultdict
from datetime import timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from config import STUCK_AFTER_HOURS
from exceptions import JourneyNotFoundError
from models import (
    AssemblyJourney,
    JourneyStatus,
    QCInspection,
    QCStatus,
    Role,
    StatusHistory,
    UserProfile,
    status_label,
)
from services.workflow import get_journey
from utils.timeutil import hours_between, start_of_day, utcnow

S = JourneyStatus
WORKFLOW_ORDER = [S.INWARDED, S.ASSIGNED, S.IN_PROGRESS, S.QC_REVIEW, S.READY_FOR_SALE]


def _stuck_cutoff(now):
    return now - timedelta(hours=STUCK_AFTER_HOURS)


# ----------------------------
# Kanban
# ----------------------------
def kanban_board(
    db: Session,
    *,
    status: Optional[str] = None,
    location_id: Optional[int] = None,
    technician_id: Optional[int] = None,
    priority: Optional[bool] = None,
) -> list[dict]:
    q = db.query(AssemblyJourney).options(
        joinedload(AssemblyJourney.technician),
        joinedload(AssemblyJourney.current_location),
        joinedload(AssemblyJourney.bin_location),
    )
    if status:
        q = q.filter(AssemblyJourney.current_status == status)
    if location_id is not None:
        q = q.filter(AssemblyJourney.current_location_id == location_id)
    if technician_id is not None:
        q = q.filter(AssemblyJourney.technician_id == technician_id)
    if priority:
        q = q.filter(AssemblyJourney.priority.is_(True))
    rows = q.order_by(AssemblyJourney.priority.desc(), AssemblyJourney.inwarded_at.asc()).all()

    now = utcnow()
    out = []
    for j in rows:
        out.append({
            "id": j.id,
            "barcode": j.barcode,
            "model_sku": j.model_sku,
            "current_status": j.current_status,
            "status_label": status_label(j.current_status),
            "priority": j.priority,
            "assembly_paused": j.assembly_paused,
            "pause_reason": j.pause_reason,
            "rework_count": j.rework_count,
            "technician_id": j.technician_id,
            "technician_name": j.technician.full_name if j.technician else None,
            "location_id": j.current_location_id,
            "location_name": j.current_location.name if j.current_location else None,
            "bin_code": j.bin_location.bin_code if j.bin_location else None,
            "bin_name": j.bin_location.bin_name if j.bin_location else None,
            "inwarded_at": j.inwarded_at,
            "status_changed_at": j.status_changed_at,
            "hours_in_status": hours_between(j.status_changed_at, now),
        })
    return out


# ----------------------------
# Dashboard
# ----------------------------
def daily_dashboard(db: Session) -> dict:
    now = utcnow()
    today = start_of_day(now)
    J = AssemblyJourney

    def count(*filters) -> int:
        return db.query(func.count(J.id)).filter(*filters).scalar() or 0

    by_status = dict(db.query(J.current_status, func.count(J.id)).group_by(J.current_status).all())

    return {
        "inwarded_today": count(J.inwarded_at >= today),
        "assembled_today": count(J.assembly_completed_at >= today),
        "qc_passed_today": count(J.qc_status == QCStatus.PASSED.value, J.qc_completed_at >= today),
        "pending_assignment": by_status.get(S.INWARDED.value, 0),
        "pending_start": by_status.get(S.ASSIGNED.value, 0),
        "currently_assembling": by_status.get(S.IN_PROGRESS.value, 0),
        "pending_qc": by_status.get(S.QC_REVIEW.value, 0),
        "ready_for_sale": by_status.get(S.READY_FOR_SALE.value, 0),
        "paused": count(J.assembly_paused.is_(True)),
        "stuck_over_24h": count(
            J.current_status != S.READY_FOR_SALE.value,
            J.status_changed_at < _stuck_cutoff(now),
        ),
    }


# ----------------------------
# Bottlenecks
# ----------------------------
def bottleneck_report(db: Session) -> list[dict]:
    """Per status: how many bikes sit there, for how long on average, and how many are stuck."""
    now = utcnow()
    cutoff = _stuck_cutoff(now)
    buckets: dict[str, list] = defaultdict(list)
    for status, changed_at in db.query(AssemblyJourney.current_status, AssemblyJourney.status_changed_at):
        buckets[status].append(changed_at)

    out = []
    for st in WORKFLOW_ORDER:
        stamps = buckets.get(st.value, [])
        hours = [hours_between(t, now) for t in stamps]
        out.append({
            "status": st.value,
            "status_label": status_label(st.value),
            "count": len(stamps),
            "avg_hours_in_status": round(sum(hours) / len(hours), 2) if hours else 0.0,
            # ready_for_sale is final, nothing there is stuck
            "stuck_count": 0 if st is S.READY_FOR_SALE else sum(1 for t in stamps if t < cutoff),
        })
    return out


# ----------------------------
# Technicians
# ----------------------------
def technician_workload(db: Session) -> list[dict]:
    today = start_of_day(utcnow())
    J = AssemblyJourney
    techs = (
        db.query(UserProfile)
        .filter(UserProfile.role == Role.TECHNICIAN.value, UserProfile.is_active.is_(True))
        .order_by(UserProfile.full_name)
        .all()
    )

    status_counts = defaultdict(int)
    for tech_id, status, n in (
        db.query(J.technician_id, J.current_status, func.count(J.id))
        .filter(J.technician_id.isnot(None))
        .group_by(J.technician_id, J.current_status)
    ):
        status_counts[(tech_id, status)] = n

    completed_today = dict(
        db.query(J.technician_id, func.count(J.id))
        .filter(J.technician_id.isnot(None), J.assembly_completed_at >= today)
        .group_by(J.technician_id)
        .all()
    )

    qc_totals = defaultdict(lambda: [0, 0])  # tech -> [passed, total]
    for tech_id, result, n in (
        db.query(QCInspection.technician_id, QCInspection.result, func.count(QCInspection.id))
        .filter(QCInspection.technician_id.isnot(None))
        .group_by(QCInspection.technician_id, QCInspection.result)
    ):
        qc_totals[tech_id][1] += n
        if result == QCStatus.PASSED.value:
            qc_totals[tech_id][0] += n

    durations = defaultdict(list)
    for tech_id, started, finished in (
        db.query(J.technician_id, J.assembly_started_at, J.assembly_completed_at)
        .filter(J.technician_id.isnot(None), J.assembly_started_at.isnot(None),
                J.assembly_completed_at.isnot(None))
    ):
        durations[tech_id].append(hours_between(started, finished))

    out = []
    for t in techs:
        passed, total = qc_totals[t.id]
        hrs = durations[t.id]
        out.append({
            "technician_id": t.id,
            "technician_name": t.full_name,
            "assigned_count": status_counts[(t.id, S.ASSIGNED.value)],
            "in_progress_count": status_counts[(t.id, S.IN_PROGRESS.value)],
            "completed_today": completed_today.get(t.id, 0),
            "qc_pass_rate_percent": round(passed * 100.0 / total, 2) if total else None,
            "avg_assembly_hours": round(sum(hrs) / len(hrs), 2) if hrs else None,
        })
    return out


def technician_queue(db: Session, technician_id: int) -> list[AssemblyJourney]:
    return (
        db.query(AssemblyJourney)
        .options(joinedload(AssemblyJourney.current_location), joinedload(AssemblyJourney.bin_location))
        .filter(
            AssemblyJourney.technician_id == technician_id,
            AssemblyJourney.current_status.in_([S.ASSIGNED.value, S.IN_PROGRESS.value]),
        )
        .order_by(AssemblyJourney.priority.desc(), AssemblyJourney.assigned_at.asc())
        .all()
    )


# ----------------------------
# QC
# ----------------------------
def qc_failure_analysis(db: Session) -> list[dict]:
    n = func.count(QCInspection.id).label("failure_count")
    rows = (
        db.query(QCInspection.failure_reason, AssemblyJourney.model_sku, n)
        .join(AssemblyJourney, AssemblyJourney.id == QCInspection.journey_id)
        .filter(QCInspection.result == QCStatus.FAILED.value)
        .group_by(QCInspection.failure_reason, AssemblyJourney.model_sku)
        .order_by(n.desc(), AssemblyJourney.model_sku)
        .all()
    )
    return [
        {"qc_failure_reason": reason, "model_sku": sku, "failure_count": cnt}
        for reason, sku, cnt in rows
    ]


# ----------------------------
# Per bike
# ----------------------------
def status_history(db: Session, journey_id: int) -> list[StatusHistory]:
    if not db.get(AssemblyJourney, journey_id):
        raise JourneyNotFoundError(str(journey_id))
    return (
        db.query(StatusHistory)
        .options(joinedload(StatusHistory.changed_by_user))
        .filter(StatusHistory.journey_id == journey_id)
        .order_by(StatusHistory.created_at.desc(), StatusHistory.id.desc())
        .all()
    )


def bike_details(db: Session, barcode: str) -> dict:
    j = get_journey(db, barcode)
    timeline = [
        {
            "status": h.to_status,
            "status_label": status_label(h.to_status),
            "timestamp": h.created_at,
            "changed_by": h.changed_by_user.full_name if h.changed_by_user else None,
            "notes": h.notes,
        }
        for h in status_history(db, j.id)
    ]
    return {
        "journey": j,
        "status_label": status_label(j.current_status),
        "technician_name": j.technician.full_name if j.technician else None,
        "location_name": j.current_location.name if j.current_location else None,
        "bin_code": j.bin_location.bin_code if j.bin_location else None,
        "timeline": timeline,
    }
