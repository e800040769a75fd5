# services/locations.py
import logging

from sqlalchemy.orm import Session

from exceptions import ConflictError, LocationNotFoundError
from models import AssemblyJourney, Bin, Location
from utils.code_generator import is_autogen, next_code

logger = logging.getLogger(__name__)


def get_location(db: Session, location_id: int) -> Location:
    loc = db.get(Location, location_id)
    if not loc:
        raise LocationNotFoundError(location_id)
    return loc


def list_locations(db: Session, *, include_inactive: bool = False) -> list[Location]:
    q = db.query(Location)
    if not include_inactive:
        q = q.filter(Location.is_active.is_(True))
    return q.order_by(Location.name).all()


def _code_taken(db: Session, code: str, exclude_id: int | None = None) -> bool:
    q = db.query(Location.id).filter(Location.code == code)
    if exclude_id is not None:
        q = q.filter(Location.id != exclude_id)
    return q.first() is not None


def create_location(db: Session, *, name: str, code: str | None, type: str = "warehouse",
                    address: str | None = None) -> Location:
    if is_autogen(code):
        code = next_code(db, Location, "code", "LOC", 4)
    else:
        code = code.strip().upper()
    if _code_taken(db, code):
        raise ConflictError(f"Location code already exists: {code}")

    loc = Location(name=name.strip(), code=code, type=type, address=address, is_active=True)
    db.add(loc)
    db.commit()
    db.refresh(loc)
    return loc


def update_location(db: Session, location_id: int, data: dict) -> Location:
    loc = get_location(db, location_id)
    if "code" in data:
        if is_autogen(data["code"]):
            # keep the existing code rather than re-numbering
            data.pop("code")
        else:
            data["code"] = data["code"].strip().upper()
            if _code_taken(db, data["code"], exclude_id=loc.id):
                raise ConflictError(f"Location code already exists: {data['code']}")
    for k, v in data.items():
        if v is None and k in ("name", "type", "is_active"):
            continue
        setattr(loc, k, v)
    db.commit()
    db.refresh(loc)
    return loc


def delete_location(db: Session, location_id: int) -> None:
    loc = get_location(db, location_id)
    in_use = (
        db.query(Bin.id).filter(Bin.location_id == loc.id).first()
        or db.query(AssemblyJourney.id).filter(AssemblyJourney.current_location_id == loc.id).first()
    )
    if in_use:
        raise ConflictError(f"Location {loc.code} still has bins or bikes; deactivate it instead")
    db.delete(loc)
    db.commit()
    logger.info("location %s deleted", loc.code)
