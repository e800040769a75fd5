# services/bins.py
"""
Bin occupancy tracker.

``Bin.current_occupancy`` is a counter of the journeys whose
``bin_location_id`` points at the bin. Only the helpers in this module touch
it, always inside the caller's transaction, and always with the bin rows
locked (``SELECT ... FOR UPDATE`` where the database supports it). The table
also carries a CHECK constraint ``0 <= current_occupancy <= capacity``.
"""
import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from exceptions import (
    BinCapacityError,
    BinNotFoundError,
    ConflictError,
    LocationNotFoundError,
    ValidationFailed,
)
from models import ZONE_LABELS, AssemblyJourney, Bin, BinMovementHistory, BinZone, Location
from utils.code_generator import is_autogen, next_code

logger = logging.getLogger(__name__)


# ----------------------------
# Locking / counter primitives
# ----------------------------
def lock_bin(db: Session, bin_id: int) -> Bin:
    b = db.execute(
        select(Bin).where(Bin.id == bin_id).with_for_update().execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if b is None:
        raise BinNotFoundError(bin_id)
    return b


def lock_bins(db: Session, *bin_ids: Optional[int]) -> dict[int, Bin]:
    """Lock several bins in id order so two movers never deadlock."""
    ids = sorted({i for i in bin_ids if i is not None})
    if not ids:
        return {}
    rows = db.execute(select(Bin).where(Bin.id.in_(ids)).order_by(Bin.id).with_for_update()
                      .execution_options(populate_existing=True)).scalars().all()
    found = {b.id: b for b in rows}
    for i in ids:
        if i not in found:
            raise BinNotFoundError(i)
    return found


def occupy(b: Bin) -> None:
    if not b.is_active:
        raise ValidationFailed(f"Bin {b.bin_code} is inactive")
    if b.is_full:
        raise BinCapacityError(b.bin_code, b.capacity)
    b.current_occupancy += 1


def release(b: Bin) -> None:
    # never go negative even if the counter drifted
    if b.current_occupancy > 0:
        b.current_occupancy -= 1
    else:
        logger.warning("release on empty bin %s; counter left at 0", b.bin_code)


def log_movement(
    db: Session,
    journey: AssemblyJourney,
    from_bin_id: Optional[int],
    to_bin_id: Optional[int],
    moved_by: Optional[int],
    reason: Optional[str],
) -> BinMovementHistory:
    mv = BinMovementHistory(
        journey_id=journey.id,
        from_bin_id=from_bin_id,
        to_bin_id=to_bin_id,
        moved_by=moved_by,
        reason=reason,
    )
    db.add(mv)
    return mv


def relocate(
    db: Session,
    journey: AssemblyJourney,
    to_bin_id: Optional[int],
    *,
    moved_by: Optional[int],
    reason: Optional[str],
) -> Optional[Bin]:
    """
    Move a (locked) journey from its current bin to ``to_bin_id``.
    Source -1, destination +1, journey pointer and movement log all land in the
    caller's transaction; a full destination raises before anything changes.
    """
    from_bin_id = journey.bin_location_id
    if from_bin_id == to_bin_id:
        raise ValidationFailed(f"Bike {journey.barcode} is already in this bin")

    locked = lock_bins(db, from_bin_id, to_bin_id)
    dest = locked.get(to_bin_id) if to_bin_id is not None else None

    if dest is not None:
        occupy(dest)  # raises first, source untouched
    if from_bin_id is not None:
        release(locked[from_bin_id])

    journey.bin_location_id = to_bin_id
    if dest is not None and dest.location_id != journey.current_location_id:
        journey.current_location_id = dest.location_id

    log_movement(db, journey, from_bin_id, to_bin_id, moved_by, reason)
    return dest


def first_free_bin(db: Session, location_id: int, zone: BinZone) -> Optional[Bin]:
    return db.execute(
        select(Bin)
        .where(
            Bin.location_id == location_id,
            Bin.status_zone == zone.value,
            Bin.is_active.is_(True),
            Bin.current_occupancy < Bin.capacity,
        )
        .order_by(Bin.bin_code)
        .limit(1)
    ).scalar_one_or_none()


def reconcile_occupancy(db: Session) -> list[dict]:
    """
    Recount every bin from the journeys sitting in it; returns the corrections.

    The bins are locked before counting, so a move committed meanwhile is
    either fully counted or waits for us. A bin holding more bikes than its
    capacity keeps its capacity: the counter is clamped and the entry comes
    back with ``over_capacity`` set for someone to sort out.
    """
    locked = db.execute(
        select(Bin).order_by(Bin.id).with_for_update().execution_options(populate_existing=True)
    ).scalars().all()
    counts = dict(
        db.query(AssemblyJourney.bin_location_id, func.count(AssemblyJourney.id))
        .filter(AssemblyJourney.bin_location_id.isnot(None))
        .group_by(AssemblyJourney.bin_location_id)
        .all()
    )
    fixed = []
    for b in locked:
        actual = counts.get(b.id, 0)
        now = min(actual, b.capacity)
        over = actual > b.capacity
        if b.current_occupancy == now and not over:
            continue
        entry = {"bin_id": b.id, "bin_code": b.bin_code, "was": b.current_occupancy, "now": now}
        if over:
            logger.error("bin %s holds %d bikes but capacity is %d", b.bin_code, actual, b.capacity)
            entry.update(actual=actual, capacity=b.capacity, over_capacity=True)
        fixed.append(entry)
        b.current_occupancy = now
    db.commit()
    if fixed:
        logger.warning("reconciled %d bin counters", len(fixed))
    return fixed


# ----------------------------
# Queries
# ----------------------------
def list_bins(db: Session) -> list[Bin]:
    return (
        db.query(Bin)
        .options(joinedload(Bin.location))
        .filter(Bin.is_active.is_(True))
        .order_by(Bin.bin_code)
        .all()
    )


def bins_by_location(db: Session, location_id: int) -> list[Bin]:
    return (
        db.query(Bin)
        .filter(Bin.location_id == location_id, Bin.is_active.is_(True))
        .order_by(Bin.bin_code)
        .all()
    )


def available_bins(db: Session, location_id: Optional[int] = None) -> list[Bin]:
    q = (
        db.query(Bin)
        .options(joinedload(Bin.location))
        .filter(Bin.is_active.is_(True), Bin.current_occupancy < Bin.capacity)
    )
    if location_id is not None:
        q = q.filter(Bin.location_id == location_id)
    return q.order_by(Bin.bin_code).all()


def bins_by_zone(db: Session, location_id: int, zone: str) -> list[Bin]:
    return (
        db.query(Bin)
        .filter(Bin.location_id == location_id, Bin.status_zone == zone, Bin.is_active.is_(True))
        .order_by(Bin.bin_code)
        .all()
    )


def bin_zones(db: Session, location_id: Optional[int] = None) -> list[str]:
    q = db.query(Bin.status_zone).filter(Bin.is_active.is_(True))
    if location_id is not None:
        q = q.filter(Bin.location_id == location_id)
    return sorted({z for (z,) in q.distinct().all()})


def zone_statistics(db: Session, location_id: Optional[int] = None) -> list[dict]:
    q = db.query(
        Bin.location_id,
        Bin.status_zone,
        func.count(Bin.id),
        func.coalesce(func.sum(Bin.capacity), 0),
        func.coalesce(func.sum(Bin.current_occupancy), 0),
    ).filter(Bin.is_active.is_(True))
    if location_id is not None:
        q = q.filter(Bin.location_id == location_id)
    rows = q.group_by(Bin.location_id, Bin.status_zone).order_by(Bin.location_id, Bin.status_zone).all()

    out = []
    for loc_id, zone, total_bins, capacity, occupancy in rows:
        capacity = int(capacity)
        occupancy = int(occupancy)
        out.append({
            "location_id": loc_id,
            "status_zone": zone,
            "zone_label": ZONE_LABELS[BinZone(zone)],
            "total_bins": total_bins,
            "total_capacity": capacity,
            "total_occupancy": occupancy,
            "available_slots": capacity - occupancy,
            "occupancy_percentage": round(occupancy * 100.0 / capacity, 2) if capacity else 0.0,
        })
    return out


def movement_history(db: Session, journey_id: int) -> list[BinMovementHistory]:
    return (
        db.query(BinMovementHistory)
        .options(
            joinedload(BinMovementHistory.from_bin),
            joinedload(BinMovementHistory.to_bin),
            joinedload(BinMovementHistory.moved_by_user),
        )
        .filter(BinMovementHistory.journey_id == journey_id)
        .order_by(BinMovementHistory.created_at.desc(), BinMovementHistory.id.desc())
        .all()
    )


# ----------------------------
# Bin management
# ----------------------------
def create_bin(db: Session, *, location_id: int, bin_code: Optional[str], bin_name: Optional[str],
               status_zone: BinZone, capacity: int) -> Bin:
    if not db.get(Location, location_id):
        raise LocationNotFoundError(location_id)

    if is_autogen(bin_code):
        code = next_code(db, Bin, "bin_code", "B", 4, Bin.location_id == location_id)
    else:
        code = bin_code.strip().upper()
    dup = db.query(Bin).filter(Bin.location_id == location_id, Bin.bin_code == code).first()
    if dup:
        raise ConflictError(f"Bin code already exists in this location: {code}")

    b = Bin(
        location_id=location_id,
        bin_code=code,
        bin_name=bin_name,
        status_zone=status_zone.value,
        capacity=capacity,
        current_occupancy=0,
    )
    db.add(b)
    db.commit()
    db.refresh(b)
    return b


def update_bin(db: Session, bin_id: int, data: dict) -> Bin:
    b = lock_bin(db, bin_id)
    if "capacity" in data and data["capacity"] is not None and data["capacity"] < b.current_occupancy:
        raise ValidationFailed(
            f"Capacity {data['capacity']} is below current occupancy {b.current_occupancy}"
        )
    if data.get("is_active") is False and b.current_occupancy > 0:
        raise ConflictError(f"Bin {b.bin_code} still holds {b.current_occupancy} bike(s)")
    for k, v in data.items():
        if v is None and k in ("capacity", "status_zone", "is_active"):
            continue
        if k == "status_zone":
            v = BinZone(v).value
        setattr(b, k, v)
    db.commit()
    db.refresh(b)
    return b


def deactivate_bin(db: Session, bin_id: int) -> Bin:
    return update_bin(db, bin_id, {"is_active": False})
