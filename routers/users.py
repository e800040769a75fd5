# routers/users.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from deps.authz import require_perm
from models import UserProfile
from routers.common import ok
from schemas import ProfileOut, TechnicianCreate
from services import users

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/technician", status_code=status.HTTP_201_CREATED)
def create_technician(payload: TechnicianCreate, db: Session = Depends(get_db),
                      me: UserProfile = Depends(require_perm("users.manage_technicians"))):
    u = users.create_technician(db, **payload.model_dump())
    return ok(ProfileOut.model_validate(u), "Technician created")


@router.get("/technicians")
def list_technicians(db: Session = Depends(get_db),
                     me: UserProfile = Depends(require_perm("users.manage_technicians"))):
    return ok([ProfileOut.model_validate(u) for u in users.list_technicians(db)])
