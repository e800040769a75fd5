# routers/qc.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from deps.authz import require_perm
from models import UserProfile
from routers.common import ok
from schemas import BarcodeIn, JourneyDetailOut, JourneyOut, QCSubmitIn
from services import workflow

router = APIRouter(prefix="/assembly/qc", tags=["qc"])


@router.get("/pending")
def pending(db: Session = Depends(get_db), me: UserProfile = Depends(require_perm("qc.review"))):
    return ok([JourneyDetailOut.model_validate(j) for j in workflow.pending_qc(db)])


@router.post("/start")
def start(payload: BarcodeIn, db: Session = Depends(get_db),
          me: UserProfile = Depends(require_perm("qc.review"))):
    j = workflow.start_qc(db, barcode=payload.barcode, actor=me)
    return ok(JourneyOut.model_validate(j), "QC started")


@router.post("/submit")
def submit(payload: QCSubmitIn, db: Session = Depends(get_db),
           me: UserProfile = Depends(require_perm("qc.review"))):
    passed = payload.result == "pass"
    j = workflow.submit_qc(db, barcode=payload.barcode, passed=passed, actor=me,
                           failure_reason=payload.failure_reason, photos=payload.photos)
    msg = "QC passed, bike ready for sale" if passed else "QC failed, bike returned for rework"
    return ok(JourneyOut.model_validate(j), msg)
