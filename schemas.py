# schemas.py
from __future__ import annotations

from typing import Optional, Literal, List, Any
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from models import BinZone


# =========================
# ===== Base (Pydantic v2)
# =========================
class APIBase(BaseModel):
    """
    Base for every schema:
    - from_attributes=True: build straight from SQLAlchemy rows
    """
    model_config = ConfigDict(from_attributes=True)


def _strip_required(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("must not be empty")
    return v


# =========================================
# =============== Locations ===============
# =========================================
class LocationCreate(BaseModel):
    name: str
    code: Optional[str] = None  # blank / AUTO -> generated
    type: Literal["warehouse", "store"] = "warehouse"
    address: Optional[str] = None

    strip_name = field_validator("name")(_strip_required)


class LocationUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    type: Optional[Literal["warehouse", "store"]] = None
    address: Optional[str] = None
    is_active: Optional[bool] = None


class LocationOut(APIBase):
    id: int
    name: str
    code: str
    type: str
    address: Optional[str] = None
    is_active: bool


class LocationBrief(APIBase):
    id: int
    name: str
    code: str


# =========================================
# ================= Bins ==================
# =========================================
class BinCreate(BaseModel):
    location_id: int
    bin_code: Optional[str] = None  # blank / AUTO -> generated
    bin_name: Optional[str] = None
    status_zone: BinZone = BinZone.INWARD
    capacity: int = Field(1, ge=1)


class BinUpdate(BaseModel):
    bin_name: Optional[str] = None
    status_zone: Optional[BinZone] = None
    capacity: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class BinOut(APIBase):
    id: int
    location_id: int
    bin_code: str
    bin_name: Optional[str] = None
    status_zone: str
    capacity: int
    current_occupancy: int
    is_active: bool


class BinWithLocationOut(BinOut):
    location: Optional[LocationBrief] = None


class BinBrief(APIBase):
    id: int
    bin_code: str
    bin_name: Optional[str] = None
    status_zone: str


class MoveBinIn(BaseModel):
    barcode: str
    bin_id: int
    reason: Optional[str] = None

    strip_barcode = field_validator("barcode")(_strip_required)


class BinMovementOut(APIBase):
    id: int
    journey_id: int
    from_bin_id: Optional[int] = None
    to_bin_id: Optional[int] = None
    reason: Optional[str] = None
    created_at: datetime
    from_bin: Optional[BinBrief] = None
    to_bin: Optional[BinBrief] = None
    moved_by_user: Optional[ProfileBrief] = None


# =========================================
# ================= Users =================
# =========================================
class ProfileBrief(APIBase):
    id: int
    full_name: str
    email: str


class ProfileOut(APIBase):
    id: int
    email: str
    full_name: str
    phone: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime


class TechnicianCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: str
    phone: Optional[str] = None

    strip_full_name = field_validator("full_name")(_strip_required)


# =========================================
# =============== Journeys ================
# =========================================
class InwardIn(BaseModel):
    barcode: str
    model_sku: str
    location_id: int
    frame_number: Optional[str] = None
    bin_location_id: Optional[int] = None
    grn_reference: Optional[str] = None

    strip_required = field_validator("barcode", "model_sku")(_strip_required)

    @field_validator("bin_location_id", mode="before")
    @classmethod
    def blank_bin_is_none(cls, v):
        if isinstance(v, str) and v.strip() == "":
            return None
        return v


class BulkInwardIn(BaseModel):
    # validated one record at a time so a bad row only fails itself
    bikes: List[Any] = Field(..., min_length=1)


class AssignIn(BaseModel):
    barcode: str
    technician_id: int

    strip_barcode = field_validator("barcode")(_strip_required)


class BulkAssignIn(BaseModel):
    barcodes: List[str] = Field(..., min_length=1)
    technician_id: int


class BarcodeIn(BaseModel):
    barcode: str

    strip_barcode = field_validator("barcode")(_strip_required)


class ChecklistPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tyres: Optional[bool] = None
    brakes: Optional[bool] = None
    gears: Optional[bool] = None

    def as_updates(self) -> dict:
        return self.model_dump(exclude_none=True)


class ChecklistIn(BarcodeIn):
    checklist: ChecklistPatch


class CompleteIn(BarcodeIn):
    checklist: Optional[ChecklistPatch] = None


class PartsMissingIn(BarcodeIn):
    parts_list: List[str]
    notes: Optional[str] = None


class DamageIn(BarcodeIn):
    damage_notes: str
    photos: List[str] = Field(default_factory=list)

    strip_notes = field_validator("damage_notes")(_strip_required)


class PriorityIn(BarcodeIn):
    priority: bool = True


class QCSubmitIn(BarcodeIn):
    result: Literal["pass", "fail"]
    failure_reason: Optional[str] = None
    photos: List[str] = Field(default_factory=list)


class JourneyOut(APIBase):
    id: int
    barcode: str
    model_sku: str
    frame_number: Optional[str] = None
    grn_reference: Optional[str] = None
    current_status: str
    status_changed_at: datetime
    current_location_id: int
    bin_location_id: Optional[int] = None
    technician_id: Optional[int] = None
    supervisor_id: Optional[int] = None
    qc_person_id: Optional[int] = None
    checklist: dict
    priority: bool
    rework_count: int
    notes: Optional[str] = None
    parts_missing: bool
    parts_missing_list: list
    damage_reported: bool
    damage_notes: Optional[str] = None
    damage_photos: list
    assembly_paused: bool
    pause_reason: Optional[str] = None
    qc_status: Optional[str] = None
    qc_failure_reason: Optional[str] = None
    qc_failure_photos: list
    inwarded_at: datetime
    assigned_at: Optional[datetime] = None
    assembly_started_at: Optional[datetime] = None
    assembly_completed_at: Optional[datetime] = None
    qc_started_at: Optional[datetime] = None
    qc_completed_at: Optional[datetime] = None


class JourneyDetailOut(JourneyOut):
    current_location: Optional[LocationBrief] = None
    bin_location: Optional[BinBrief] = None
    technician: Optional[ProfileBrief] = None
    supervisor: Optional[ProfileBrief] = None
    qc_person: Optional[ProfileBrief] = None


class StatusHistoryOut(APIBase):
    id: int
    journey_id: int
    from_status: Optional[str] = None
    to_status: str
    notes: Optional[str] = None
    created_at: datetime
    changed_by_user: Optional[ProfileBrief] = None


class CanInvoiceOut(BaseModel):
    can_invoice: bool
    message: str
    barcode: str
    sku: Optional[str] = None
    status: Optional[str] = None


BinMovementOut.model_rebuild()
