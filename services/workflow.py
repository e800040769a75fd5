# services/workflow.py
"""
Assembly workflow engine.

A journey moves along

    inwarded -> assigned -> in_progress -> qc_review -> ready_for_sale
                                 ^              |
                                 +---- QC fail -+   (rework_count += 1)

Pausing (parts missing / damage) is orthogonal to the status: it leaves
``current_status`` alone and blocks forward moves until a supervisor resumes
the journey.

Every operation takes the session and the acting profile explicitly, locks the
journey row for the duration of its transaction and commits once. The
``version`` column on the journey turns a lost update into
``ConcurrentUpdateError``. Bulk operations commit item by item so an early
success is never rolled back by a later failure.
"""
import logging
from typing import Any, Iterable, Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.orm.exc import StaleDataError

from exceptions import (
    AlreadyAssignedError,
    BinCapacityError,
    BuildlineError,
    ChecklistIncompleteError,
    ConcurrentUpdateError,
    ConflictError,
    DuplicateBarcodeError,
    InvalidTransitionError,
    JourneyNotFoundError,
    JourneyPausedError,
    LocationNotFoundError,
    NotAssignedTechnicianError,
    ProfileNotFoundError,
    ValidationFailed,
)
from models import (
    CHECKLIST_ITEMS,
    STATUS_TO_ZONE,
    AssemblyJourney,
    JourneyStatus,
    Location,
    PauseReason,
    QCInspection,
    QCStatus,
    Role,
    StatusHistory,
    UserProfile,
    empty_checklist,
    status_label,
)
from schemas import InwardIn
from services import bins as bin_tracker
from utils.timeutil import utcnow

logger = logging.getLogger(__name__)

S = JourneyStatus

ALLOWED_TRANSITIONS: dict[JourneyStatus, frozenset[JourneyStatus]] = {
    S.INWARDED: frozenset({S.ASSIGNED}),
    S.ASSIGNED: frozenset({S.IN_PROGRESS}),
    S.IN_PROGRESS: frozenset({S.QC_REVIEW}),
    S.QC_REVIEW: frozenset({S.READY_FOR_SALE, S.IN_PROGRESS}),
    S.READY_FOR_SALE: frozenset(),
}


# ----------------------------
# Lookups
# ----------------------------
def _detail_options():
    return (
        joinedload(AssemblyJourney.current_location),
        joinedload(AssemblyJourney.bin_location),
        joinedload(AssemblyJourney.technician),
        joinedload(AssemblyJourney.supervisor),
        joinedload(AssemblyJourney.qc_person),
    )


def get_journey(db: Session, barcode: str) -> AssemblyJourney:
    j = (
        db.query(AssemblyJourney)
        .options(*_detail_options())
        .filter(AssemblyJourney.barcode == barcode)
        .first()
    )
    if not j:
        raise JourneyNotFoundError(barcode)
    return j


def lock_journey(db: Session, barcode: str) -> AssemblyJourney:
    j = db.execute(
        select(AssemblyJourney)
        .where(AssemblyJourney.barcode == barcode)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if j is None:
        raise JourneyNotFoundError(barcode)
    return j


# ----------------------------
# Guards / helpers
# ----------------------------
def _transition(db: Session, j: AssemblyJourney, to: JourneyStatus, actor: UserProfile,
                notes: Optional[str] = None, action: Optional[str] = None) -> None:
    current = S(j.current_status)
    if to not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(j.barcode, current.value, action or f"move to {to.value}")
    j.current_status = to.value
    j.status_changed_at = utcnow()
    db.add(StatusHistory(
        journey_id=j.id,
        from_status=current.value,
        to_status=to.value,
        changed_by=actor.id,
        notes=notes,
    ))
    logger.info("bike %s %s -> %s by %s", j.barcode, current.value, to.value, actor.id)


def _require_status(j: AssemblyJourney, expected: JourneyStatus, action: str) -> None:
    if j.current_status != expected.value:
        raise InvalidTransitionError(j.barcode, j.current_status, action)


def _require_owner(j: AssemblyJourney, actor: UserProfile) -> None:
    if j.technician_id is None or j.technician_id != actor.id:
        raise NotAssignedTechnicianError(j.barcode)


def _require_not_paused(j: AssemblyJourney) -> None:
    if j.assembly_paused:
        raise JourneyPausedError(j.barcode, j.pause_reason)


def commit_journey(db: Session, j: AssemblyJourney) -> AssemblyJourney:
    barcode = j.barcode
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConcurrentUpdateError("Bike", barcode)
    db.refresh(j)
    return j


def missing_checklist_items(checklist: dict) -> list[str]:
    return [item for item in CHECKLIST_ITEMS if checklist.get(item) is not True]


# ----------------------------
# Inward
# ----------------------------
def inward_bike(
    db: Session,
    *,
    actor: UserProfile,
    barcode: str,
    model_sku: str,
    location_id: int,
    frame_number: Optional[str] = None,
    bin_location_id: Optional[int] = None,
    grn_reference: Optional[str] = None,
) -> AssemblyJourney:
    barcode = barcode.strip()
    if db.query(AssemblyJourney.id).filter(AssemblyJourney.barcode == barcode).first():
        raise DuplicateBarcodeError(barcode)
    if not db.get(Location, location_id):
        raise LocationNotFoundError(location_id)

    now = utcnow()
    j = AssemblyJourney(
        barcode=barcode,
        model_sku=model_sku.strip(),
        frame_number=frame_number,
        grn_reference=grn_reference,
        current_status=S.INWARDED.value,
        status_changed_at=now,
        inwarded_at=now,
        current_location_id=location_id,
        checklist=empty_checklist(),
    )
    db.add(j)
    try:
        db.flush()
    except IntegrityError:
        # lost a race on the unique barcode
        db.rollback()
        raise DuplicateBarcodeError(barcode)

    db.add(StatusHistory(journey_id=j.id, from_status=None, to_status=S.INWARDED.value,
                         changed_by=actor.id, notes="Inwarded"))

    if bin_location_id is not None:
        b = bin_tracker.lock_bin(db, bin_location_id)
        if b.location_id != location_id:
            raise ValidationFailed(f"Bin {b.bin_code} does not belong to location {location_id}")
        bin_tracker.relocate(db, j, b.id, moved_by=actor.id, reason="Inward")

    db.commit()
    db.refresh(j)
    logger.info("bike %s inwarded at location %s by %s", barcode, location_id, actor.id)
    return j


def bulk_inward(db: Session, *, actor: UserProfile, bikes: Iterable[Any]) -> dict:
    """Each record is validated and committed on its own; returns successes and failures."""
    successful, failed = [], []
    total = 0
    for raw in bikes:
        total += 1
        barcode = raw.get("barcode") if isinstance(raw, dict) else None
        try:
            data = InwardIn.model_validate(raw)
        except ValidationError as e:
            msg = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
            failed.append({"barcode": barcode, "error": msg})
            continue
        try:
            j = inward_bike(db, actor=actor, **data.model_dump())
            successful.append({"barcode": j.barcode, "journey": j})
        except (BuildlineError, SQLAlchemyError) as e:
            db.rollback()
            logger.warning("bulk inward: %s failed: %s", data.barcode, e)
            failed.append({"barcode": data.barcode, "error": getattr(e, "message", str(e))})
    return {"successful": successful, "failed": failed, "total": total}


# ----------------------------
# Assignment
# ----------------------------
def _get_technician(db: Session, technician_id: int) -> UserProfile:
    tech = db.get(UserProfile, technician_id)
    if not tech:
        raise ProfileNotFoundError(technician_id)
    if tech.role != Role.TECHNICIAN.value:
        raise ValidationFailed(f"User {technician_id} is not a technician")
    if not tech.is_active:
        raise ValidationFailed(f"Technician {tech.full_name} is inactive")
    return tech


def assign_bike(db: Session, *, barcode: str, technician_id: int, actor: UserProfile) -> AssemblyJourney:
    j = lock_journey(db, barcode)
    if j.current_status != S.INWARDED.value:
        raise AlreadyAssignedError(barcode, j.current_status)
    _require_not_paused(j)
    tech = _get_technician(db, technician_id)

    _transition(db, j, S.ASSIGNED, actor, notes=f"Assigned to {tech.full_name}", action="assign")
    j.technician_id = tech.id
    j.supervisor_id = actor.id
    j.assigned_at = utcnow()
    commit_journey(db, j)
    return j


def bulk_assign(db: Session, *, barcodes: Iterable[str], technician_id: int, actor: UserProfile) -> list[dict]:
    results = []
    for barcode in barcodes:
        try:
            j = assign_bike(db, barcode=barcode, technician_id=technician_id, actor=actor)
            results.append({"barcode": barcode, "success": True, "message": "Bike assigned", "journey": j})
        except (BuildlineError, SQLAlchemyError) as e:
            db.rollback()
            logger.warning("bulk assign: %s failed: %s", barcode, e)
            results.append({"barcode": barcode, "success": False, "message": getattr(e, "message", str(e))})
    return results


# ----------------------------
# Technician actions
# ----------------------------
def start_assembly(db: Session, *, barcode: str, actor: UserProfile) -> AssemblyJourney:
    j = lock_journey(db, barcode)
    _require_owner(j, actor)
    _require_status(j, S.ASSIGNED, "start assembly on")
    _require_not_paused(j)

    _transition(db, j, S.IN_PROGRESS, actor, notes="Assembly started", action="start assembly on")
    j.assembly_started_at = utcnow()
    commit_journey(db, j)
    return j


def update_checklist(db: Session, *, barcode: str, updates: dict, actor: UserProfile) -> AssemblyJourney:
    unknown = set(updates) - set(CHECKLIST_ITEMS)
    if unknown:
        raise ValidationFailed(f"Unknown checklist items: {', '.join(sorted(unknown))}")

    j = lock_journey(db, barcode)
    _require_owner(j, actor)
    _require_status(j, S.IN_PROGRESS, "update the checklist of")

    # reassign so the JSON column is flagged dirty
    j.checklist = {**empty_checklist(), **(j.checklist or {}), **updates}
    return commit_journey(db, j)


def complete_assembly(db: Session, *, barcode: str, actor: UserProfile,
                      checklist: Optional[dict] = None) -> AssemblyJourney:
    j = lock_journey(db, barcode)
    _require_owner(j, actor)
    _require_status(j, S.IN_PROGRESS, "complete")
    _require_not_paused(j)

    merged = {**empty_checklist(), **(j.checklist or {}), **(checklist or {})}
    missing = missing_checklist_items(merged)
    if missing:
        raise ChecklistIncompleteError(barcode, missing)

    j.checklist = merged
    _transition(db, j, S.QC_REVIEW, actor, notes="Assembly completed", action="complete")
    j.assembly_completed_at = utcnow()
    j.qc_status = QCStatus.PENDING.value
    commit_journey(db, j)
    return j


# ----------------------------
# Quality check
# ----------------------------
def start_qc(db: Session, *, barcode: str, actor: UserProfile) -> AssemblyJourney:
    j = lock_journey(db, barcode)
    _require_status(j, S.QC_REVIEW, "start QC on")
    j.qc_person_id = actor.id
    j.qc_status = QCStatus.IN_REVIEW.value
    j.qc_started_at = utcnow()
    return commit_journey(db, j)


def _move_to_ready_zone(db: Session, j: AssemblyJourney, actor: UserProfile) -> None:
    zone = STATUS_TO_ZONE[S.READY_FOR_SALE]
    if j.bin_location is not None and j.bin_location.status_zone == zone.value:
        return
    target = bin_tracker.first_free_bin(db, j.current_location_id, zone)
    if target is None:
        logger.warning("no free %s bin at location %s for %s; bin unchanged",
                       zone.value, j.current_location_id, j.barcode)
        return
    try:
        bin_tracker.relocate(db, j, target.id, moved_by=actor.id, reason="QC passed")
    except BinCapacityError:
        # filled up between the lookup and the lock
        logger.warning("ready_zone bin %s filled up; %s stays in its bin", target.bin_code, j.barcode)


def submit_qc(
    db: Session,
    *,
    barcode: str,
    passed: bool,
    actor: UserProfile,
    failure_reason: Optional[str] = None,
    photos: Optional[list] = None,
) -> AssemblyJourney:
    j = lock_journey(db, barcode)
    _require_status(j, S.QC_REVIEW, "submit QC for")
    now = utcnow()

    if passed:
        _require_not_paused(j)
        _transition(db, j, S.READY_FOR_SALE, actor, notes="QC passed", action="pass QC for")
        j.qc_status = QCStatus.PASSED.value
        _move_to_ready_zone(db, j, actor)
    else:
        reason = (failure_reason or "").strip()
        if not reason:
            raise ValidationFailed("failure_reason is required when QC fails")
        _transition(db, j, S.IN_PROGRESS, actor, notes=f"QC failed: {reason}", action="fail QC for")
        j.qc_status = QCStatus.FAILED.value
        j.qc_failure_reason = reason
        j.qc_failure_photos = list(photos or [])
        j.rework_count = (j.rework_count or 0) + 1

    j.qc_person_id = actor.id
    j.qc_completed_at = now
    db.add(QCInspection(
        journey_id=j.id,
        inspector_id=actor.id,
        technician_id=j.technician_id,
        result=QCStatus.PASSED.value if passed else QCStatus.FAILED.value,
        failure_reason=None if passed else j.qc_failure_reason,
        photos=[] if passed else list(photos or []),
        created_at=now,
    ))
    commit_journey(db, j)
    return j


def pending_qc(db: Session) -> list[AssemblyJourney]:
    return (
        db.query(AssemblyJourney)
        .options(*_detail_options())
        .filter(AssemblyJourney.current_status == S.QC_REVIEW.value)
        .order_by(AssemblyJourney.priority.desc(), AssemblyJourney.assembly_completed_at.asc())
        .all()
    )


# ----------------------------
# Issues / flags
# ----------------------------
def flag_parts_missing(db: Session, *, barcode: str, parts_list: list[str], actor: UserProfile,
                       notes: Optional[str] = None) -> AssemblyJourney:
    j = lock_journey(db, barcode)
    j.parts_missing = True
    j.parts_missing_list = list(parts_list)
    if notes is not None:
        j.notes = notes
    j.assembly_paused = True
    j.pause_reason = PauseReason.PARTS_MISSING.value
    commit_journey(db, j)
    logger.info("bike %s paused: parts missing (%d) by %s", barcode, len(parts_list), actor.id)
    return j


def report_damage(db: Session, *, barcode: str, damage_notes: str, actor: UserProfile,
                  photos: Optional[list] = None) -> AssemblyJourney:
    j = lock_journey(db, barcode)
    j.damage_reported = True
    j.damage_notes = damage_notes
    j.damage_photos = list(photos or [])
    j.assembly_paused = True
    j.pause_reason = PauseReason.DAMAGE_REPORTED.value
    commit_journey(db, j)
    logger.info("bike %s paused: damage reported by %s", barcode, actor.id)
    return j


def resume_assembly(db: Session, *, barcode: str, actor: UserProfile) -> AssemblyJourney:
    j = lock_journey(db, barcode)
    if not j.assembly_paused:
        raise ConflictError(f"Bike {barcode} is not paused")
    # notes, lists and photos stay as a record of the issue
    j.assembly_paused = False
    j.pause_reason = None
    j.parts_missing = False
    j.damage_reported = False
    commit_journey(db, j)
    logger.info("bike %s resumed by %s", barcode, actor.id)
    return j


def set_priority(db: Session, *, barcode: str, priority: bool, actor: UserProfile) -> AssemblyJourney:
    j = lock_journey(db, barcode)
    j.priority = bool(priority)
    return commit_journey(db, j)


# ----------------------------
# Bins
# ----------------------------
def move_bike_to_bin(db: Session, *, barcode: str, bin_id: int, actor: UserProfile,
                     reason: Optional[str] = None) -> dict:
    j = lock_journey(db, barcode)
    from_bin_id = j.bin_location_id
    bin_tracker.relocate(db, j, bin_id, moved_by=actor.id, reason=reason)
    commit_journey(db, j)
    logger.info("bike %s moved bin %s -> %s by %s", barcode, from_bin_id, bin_id, actor.id)
    return {
        "barcode": barcode,
        "from_bin_id": from_bin_id,
        "to_bin_id": bin_id,
        "current_location_id": j.current_location_id,
        "message": "Bike moved successfully",
    }


# ----------------------------
# Sales lock
# ----------------------------
def can_invoice(db: Session, barcode: str) -> dict:
    j = db.query(AssemblyJourney).filter(AssemblyJourney.barcode == barcode).first()
    if j is None:
        return {"can_invoice": False, "message": "Bike not found", "barcode": barcode, "sku": None, "status": None}

    ok = j.current_status == S.READY_FOR_SALE.value
    if ok:
        message = "Bike is ready for sale and can be invoiced"
    else:
        message = f"Bike cannot be invoiced. Current status: {status_label(j.current_status)}"
    return {
        "can_invoice": ok,
        "message": message,
        "barcode": j.barcode,
        "sku": j.model_sku,
        "status": j.current_status,
    }
