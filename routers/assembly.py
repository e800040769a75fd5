# routers/assembly.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from deps.authz import require_perm
from models import UserProfile
from routers.common import ok
from schemas import (
    AssignIn,
    BarcodeIn,
    BulkAssignIn,
    BulkInwardIn,
    CanInvoiceOut,
    ChecklistIn,
    CompleteIn,
    DamageIn,
    InwardIn,
    JourneyDetailOut,
    JourneyOut,
    PartsMissingIn,
    PriorityIn,
    StatusHistoryOut,
)
from services import reports, workflow

router = APIRouter(prefix="/assembly", tags=["assembly"])


def _journey(j) -> JourneyOut:
    return JourneyOut.model_validate(j)


# ---------- Inward ----------
@router.post("/inward", status_code=status.HTTP_201_CREATED)
def inward(payload: InwardIn, db: Session = Depends(get_db),
           me: UserProfile = Depends(require_perm("journey.inward"))):
    j = workflow.inward_bike(db, actor=me, **payload.model_dump())
    return ok(_journey(j), "Bike inwarded successfully")


@router.post("/inward/bulk")
def inward_bulk(payload: BulkInwardIn, db: Session = Depends(get_db),
                me: UserProfile = Depends(require_perm("journey.inward"))):
    res = workflow.bulk_inward(db, actor=me, bikes=payload.bikes)
    data = {
        "successful": [{"barcode": r["barcode"], "journey": _journey(r["journey"])} for r in res["successful"]],
        "failed": res["failed"],
        "total": res["total"],
    }
    return ok(data, f"{len(res['successful'])} of {res['total']} bikes inwarded")


# ---------- Assignment ----------
@router.post("/assign")
def assign(payload: AssignIn, db: Session = Depends(get_db),
           me: UserProfile = Depends(require_perm("journey.assign"))):
    j = workflow.assign_bike(db, barcode=payload.barcode, technician_id=payload.technician_id, actor=me)
    return ok(_journey(j), "Bike assigned successfully")


@router.post("/assign-bulk")
def assign_bulk(payload: BulkAssignIn, db: Session = Depends(get_db),
                me: UserProfile = Depends(require_perm("journey.assign"))):
    results = workflow.bulk_assign(db, barcodes=payload.barcodes, technician_id=payload.technician_id, actor=me)
    data = []
    for r in results:
        row = {"barcode": r["barcode"], "success": r["success"], "message": r["message"]}
        if r.get("journey") is not None:
            row["data"] = _journey(r["journey"])
        data.append(row)
    n_ok = sum(1 for r in results if r["success"])
    return ok(data, f"{n_ok} of {len(results)} bikes assigned")


# ---------- Lookups ----------
@router.get("/scan/{barcode}")
def scan(barcode: str, db: Session = Depends(get_db),
         me: UserProfile = Depends(require_perm("journey.scan"))):
    return ok(JourneyDetailOut.model_validate(workflow.get_journey(db, barcode)))


@router.get("/bike/{barcode}")
def bike_details(barcode: str, db: Session = Depends(get_db),
                 me: UserProfile = Depends(require_perm("journey.scan"))):
    d = reports.bike_details(db, barcode)
    d["journey"] = JourneyDetailOut.model_validate(d["journey"])
    return ok(d)


@router.get("/history/{journey_id}")
def history(journey_id: int, db: Session = Depends(get_db),
            me: UserProfile = Depends(require_perm("journey.scan"))):
    rows = reports.status_history(db, journey_id)
    return ok([StatusHistoryOut.model_validate(h) for h in rows])


@router.get("/can-invoice/{barcode}")
def can_invoice(barcode: str, db: Session = Depends(get_db),
                me: UserProfile = Depends(require_perm("sales.can_invoice"))):
    return ok(CanInvoiceOut(**workflow.can_invoice(db, barcode)))


# ---------- Technician ----------
@router.get("/technician/queue")
def technician_queue(db: Session = Depends(get_db),
                     me: UserProfile = Depends(require_perm("journey.queue"))):
    return ok([JourneyDetailOut.model_validate(j) for j in reports.technician_queue(db, me.id)])


@router.post("/start")
def start(payload: BarcodeIn, db: Session = Depends(get_db),
          me: UserProfile = Depends(require_perm("journey.start"))):
    j = workflow.start_assembly(db, barcode=payload.barcode, actor=me)
    return ok(_journey(j), "Assembly started")


@router.put("/checklist")
def checklist(payload: ChecklistIn, db: Session = Depends(get_db),
              me: UserProfile = Depends(require_perm("journey.checklist"))):
    j = workflow.update_checklist(db, barcode=payload.barcode, updates=payload.checklist.as_updates(), actor=me)
    return ok(_journey(j), "Checklist updated")


@router.post("/complete")
def complete(payload: CompleteIn, db: Session = Depends(get_db),
             me: UserProfile = Depends(require_perm("journey.complete"))):
    updates = payload.checklist.as_updates() if payload.checklist else None
    j = workflow.complete_assembly(db, barcode=payload.barcode, checklist=updates, actor=me)
    return ok(_journey(j), "Assembly completed, sent to QC")


# ---------- Issues ----------
@router.post("/flag-parts-missing")
def flag_parts_missing(payload: PartsMissingIn, db: Session = Depends(get_db),
                       me: UserProfile = Depends(require_perm("journey.flag_issue"))):
    j = workflow.flag_parts_missing(db, barcode=payload.barcode, parts_list=payload.parts_list,
                                    notes=payload.notes, actor=me)
    return ok(_journey(j), "Parts missing flagged, assembly paused")


@router.post("/report-damage")
def report_damage(payload: DamageIn, db: Session = Depends(get_db),
                  me: UserProfile = Depends(require_perm("journey.flag_issue"))):
    j = workflow.report_damage(db, barcode=payload.barcode, damage_notes=payload.damage_notes,
                               photos=payload.photos, actor=me)
    return ok(_journey(j), "Damage reported, assembly paused")


@router.post("/resume")
def resume(payload: BarcodeIn, db: Session = Depends(get_db),
           me: UserProfile = Depends(require_perm("journey.resume"))):
    j = workflow.resume_assembly(db, barcode=payload.barcode, actor=me)
    return ok(_journey(j), "Assembly resumed")


@router.post("/set-priority")
def set_priority(payload: PriorityIn, db: Session = Depends(get_db),
                 me: UserProfile = Depends(require_perm("journey.set_priority"))):
    j = workflow.set_priority(db, barcode=payload.barcode, priority=payload.priority, actor=me)
    return ok(_journey(j), "Priority updated")


# ---------- Reports ----------
@router.get("/kanban")
def kanban(
    status_filter: Optional[str] = Query(None, alias="status"),
    location_id: Optional[int] = None,
    technician_id: Optional[int] = None,
    priority: Optional[bool] = None,
    db: Session = Depends(get_db),
    me: UserProfile = Depends(require_perm("reports.view")),
):
    return ok(reports.kanban_board(db, status=status_filter, location_id=location_id,
                                   technician_id=technician_id, priority=priority))


@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db), me: UserProfile = Depends(require_perm("reports.view"))):
    return ok(reports.daily_dashboard(db))


@router.get("/reports/bottlenecks")
def bottlenecks(db: Session = Depends(get_db), me: UserProfile = Depends(require_perm("reports.view"))):
    return ok(reports.bottleneck_report(db))


@router.get("/reports/technician-workload")
def technician_workload(db: Session = Depends(get_db),
                        me: UserProfile = Depends(require_perm("reports.view"))):
    return ok(reports.technician_workload(db))


@router.get("/reports/qc-failures")
def qc_failures(db: Session = Depends(get_db), me: UserProfile = Depends(require_perm("reports.view"))):
    return ok(reports.qc_failure_analysis(db))
