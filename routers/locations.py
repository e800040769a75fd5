# routers/locations.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from deps.authz import require_perm
from models import UserProfile
from routers.common import ok
from schemas import LocationCreate, LocationOut, LocationUpdate
from services import locations

router = APIRouter(prefix="/assembly/locations", tags=["locations"])


@router.get("")
def list_locations(include_inactive: bool = False, db: Session = Depends(get_db),
                   me: UserProfile = Depends(require_perm("locations.view"))):
    rows = locations.list_locations(db, include_inactive=include_inactive)
    return ok([LocationOut.model_validate(x) for x in rows])


@router.post("")
def create_location(payload: LocationCreate, db: Session = Depends(get_db),
                    me: UserProfile = Depends(require_perm("locations.manage"))):
    loc = locations.create_location(db, **payload.model_dump())
    return ok(LocationOut.model_validate(loc), "Location created")


@router.put("/{location_id}")
def update_location(location_id: int, payload: LocationUpdate, db: Session = Depends(get_db),
                    me: UserProfile = Depends(require_perm("locations.manage"))):
    loc = locations.update_location(db, location_id, payload.model_dump(exclude_unset=True))
    return ok(LocationOut.model_validate(loc), "Location updated")


@router.delete("/{location_id}")
def delete_location(location_id: int, db: Session = Depends(get_db),
                    me: UserProfile = Depends(require_perm("locations.manage"))):
    locations.delete_location(db, location_id)
    return ok(None, "Location deleted")
