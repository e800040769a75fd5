# routers/bins.py
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from deps.authz import require_perm
from models import BinZone, UserProfile
from routers.common import ok
from schemas import BinCreate, BinMovementOut, BinOut, BinUpdate, BinWithLocationOut, MoveBinIn
from services import bins, workflow

router = APIRouter(prefix="/assembly/bins", tags=["bins"])


@router.get("")
def list_bins(db: Session = Depends(get_db), me: UserProfile = Depends(require_perm("bins.view"))):
    return ok([BinWithLocationOut.model_validate(b) for b in bins.list_bins(db)])


@router.post("")
def create_bin(payload: BinCreate, db: Session = Depends(get_db),
               me: UserProfile = Depends(require_perm("bins.manage"))):
    b = bins.create_bin(db, **payload.model_dump())
    return ok(BinOut.model_validate(b), "Bin created")


@router.put("/{bin_id}")
def update_bin(bin_id: int, payload: BinUpdate, db: Session = Depends(get_db),
               me: UserProfile = Depends(require_perm("bins.manage"))):
    b = bins.update_bin(db, bin_id, payload.model_dump(exclude_unset=True))
    return ok(BinOut.model_validate(b), "Bin updated")


@router.delete("/{bin_id}")
def deactivate_bin(bin_id: int, db: Session = Depends(get_db),
                   me: UserProfile = Depends(require_perm("bins.manage"))):
    b = bins.deactivate_bin(db, bin_id)
    return ok(BinOut.model_validate(b), "Bin deactivated")


@router.get("/location/{location_id}")
def by_location(location_id: int, db: Session = Depends(get_db),
                me: UserProfile = Depends(require_perm("bins.view"))):
    return ok([BinOut.model_validate(b) for b in bins.bins_by_location(db, location_id)])


@router.get("/available")
def available(location_id: Optional[int] = None, db: Session = Depends(get_db),
              me: UserProfile = Depends(require_perm("bins.view"))):
    return ok([BinWithLocationOut.model_validate(b) for b in bins.available_bins(db, location_id)])


@router.get("/zones")
def zones(location_id: Optional[int] = None, db: Session = Depends(get_db),
          me: UserProfile = Depends(require_perm("bins.view"))):
    return ok(bins.bin_zones(db, location_id))


@router.get("/zone/{location_id}/{zone}")
def by_zone(location_id: int, zone: BinZone, db: Session = Depends(get_db),
            me: UserProfile = Depends(require_perm("bins.view"))):
    return ok([BinOut.model_validate(b) for b in bins.bins_by_zone(db, location_id, zone.value)])


@router.get("/zone-statistics")
def zone_statistics(location_id: Optional[int] = None, db: Session = Depends(get_db),
                    me: UserProfile = Depends(require_perm("bins.view"))):
    return ok(bins.zone_statistics(db, location_id))


@router.post("/move")
def move(payload: MoveBinIn, db: Session = Depends(get_db),
         me: UserProfile = Depends(require_perm("bins.move"))):
    res = workflow.move_bike_to_bin(db, barcode=payload.barcode, bin_id=payload.bin_id,
                                    reason=payload.reason, actor=me)
    return ok(res, res["message"])


@router.post("/reconcile")
def reconcile(db: Session = Depends(get_db), me: UserProfile = Depends(require_perm("bins.reconcile"))):
    fixed = bins.reconcile_occupancy(db)
    return ok(fixed, f"{len(fixed)} bin(s) corrected")


@router.get("/movement-history/{journey_id}")
def movement_history(journey_id: int, db: Session = Depends(get_db),
                     me: UserProfile = Depends(require_perm("bins.view"))):
    return ok([BinMovementOut.model_validate(m) for m in bins.movement_history(db, journey_id)])
