# models.py
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base
from utils.timeutil import utcnow


# =========================================
# ================ Enums ==================
# =========================================

class Role(str, Enum):
    TECHNICIAN = "technician"
    SUPERVISOR = "supervisor"
    ADMIN = "admin"
    WAREHOUSE_STAFF = "warehouse_staff"


class JourneyStatus(str, Enum):
    INWARDED = "inwarded"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    QC_REVIEW = "qc_review"
    READY_FOR_SALE = "ready_for_sale"


class BinZone(str, Enum):
    INWARD = "inward_zone"
    ASSEMBLY = "assembly_zone"
    QC = "qc_zone"
    READY = "ready_zone"


class PauseReason(str, Enum):
    PARTS_MISSING = "parts_missing"
    DAMAGE_REPORTED = "damage_reported"


class QCStatus(str, Enum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    PASSED = "passed"
    FAILED = "failed"


STATUS_LABELS = {
    JourneyStatus.INWARDED: "Inwarded",
    JourneyStatus.ASSIGNED: "Assigned for Assembly",
    JourneyStatus.IN_PROGRESS: "Assembly in Progress",
    JourneyStatus.QC_REVIEW: "Quality Check (QC)",
    JourneyStatus.READY_FOR_SALE: "Ready for Sale (100%)",
}

ZONE_LABELS = {
    BinZone.INWARD: "Inward Zone",
    BinZone.ASSEMBLY: "Assembly Zone",
    BinZone.QC: "QC Zone",
    BinZone.READY: "Ready for Sale Zone",
}

STATUS_TO_ZONE = {
    JourneyStatus.INWARDED: BinZone.INWARD,
    JourneyStatus.ASSIGNED: BinZone.ASSEMBLY,
    JourneyStatus.IN_PROGRESS: BinZone.ASSEMBLY,
    JourneyStatus.QC_REVIEW: BinZone.QC,
    JourneyStatus.READY_FOR_SALE: BinZone.READY,
}

CHECKLIST_ITEMS = ("tyres", "brakes", "gears")


def status_label(status: str) -> str:
    try:
        return STATUS_LABELS[JourneyStatus(status)]
    except ValueError:
        return status


def empty_checklist() -> dict:
    return {item: False for item in CHECKLIST_ITEMS}


# =========================================
# =============== Master ==================
# =========================================

class Location(Base):
    __tablename__ = "locations"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    code = Column(String, unique=True, index=True, nullable=False)
    type = Column(String, nullable=False, default="warehouse")  # warehouse | store
    address = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    bins = relationship("Bin", back_populates="location", order_by="Bin.bin_code")

    def __repr__(self):
        return f"<Location(code={self.code}, name={self.name})>"


class Bin(Base):
    __tablename__ = "bins"
    id = Column(Integer, primary_key=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)
    bin_code = Column(String, nullable=False)
    bin_name = Column(String, nullable=True)
    status_zone = Column(String, nullable=False, default=BinZone.INWARD.value)
    capacity = Column(Integer, nullable=False, default=1)
    current_occupancy = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    location = relationship("Location", back_populates="bins")

    __table_args__ = (
        UniqueConstraint("location_id", "bin_code", name="uq_bins_location_code"),
        CheckConstraint("capacity >= 1", name="ck_bins_capacity_positive"),
        CheckConstraint(
            "current_occupancy >= 0 AND current_occupancy <= capacity",
            name="ck_bins_occupancy_range",
        ),
        Index("ix_bins_zone", "location_id", "status_zone"),
    )

    @property
    def available_slots(self) -> int:
        return self.capacity - self.current_occupancy

    @property
    def is_full(self) -> bool:
        return self.current_occupancy >= self.capacity

    def __repr__(self):
        return f"<Bin(code={self.bin_code}, {self.current_occupancy}/{self.capacity})>"


class UserProfile(Base):
    __tablename__ = "user_profiles"
    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    role = Column(String, nullable=False, default=Role.TECHNICIAN.value)
    is_active = Column(Boolean, nullable=False, default=True)
    password_hash = Column(String, nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_login_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_user_profiles_role", "role"),
        Index("ix_user_profiles_active", "is_active"),
    )

    def __repr__(self):
        return f"<UserProfile(email={self.email}, role={self.role})>"


# =========================================
# ============ Assembly Journey ===========
# =========================================

class AssemblyJourney(Base):
    __tablename__ = "assembly_journeys"
    id = Column(Integer, primary_key=True)
    barcode = Column(String, unique=True, index=True, nullable=False)
    model_sku = Column(String, nullable=False, index=True)
    frame_number = Column(String, nullable=True)
    grn_reference = Column(String, nullable=True)

    current_status = Column(String, nullable=False, default=JourneyStatus.INWARDED.value)
    status_changed_at = Column(DateTime, nullable=False, default=utcnow)

    current_location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)
    bin_location_id = Column(Integer, ForeignKey("bins.id"), nullable=True, index=True)

    technician_id = Column(Integer, ForeignKey("user_profiles.id"), nullable=True, index=True)
    supervisor_id = Column(Integer, ForeignKey("user_profiles.id"), nullable=True)
    qc_person_id = Column(Integer, ForeignKey("user_profiles.id"), nullable=True)

    checklist = Column(JSON, nullable=False, default=empty_checklist)
    priority = Column(Boolean, nullable=False, default=False)
    rework_count = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)

    parts_missing = Column(Boolean, nullable=False, default=False)
    parts_missing_list = Column(JSON, nullable=False, default=list)
    damage_reported = Column(Boolean, nullable=False, default=False)
    damage_notes = Column(Text, nullable=True)
    damage_photos = Column(JSON, nullable=False, default=list)
    assembly_paused = Column(Boolean, nullable=False, default=False)
    pause_reason = Column(String, nullable=True)

    qc_status = Column(String, nullable=True)
    qc_failure_reason = Column(Text, nullable=True)
    qc_failure_photos = Column(JSON, nullable=False, default=list)

    inwarded_at = Column(DateTime, nullable=False, default=utcnow)
    assigned_at = Column(DateTime, nullable=True)
    assembly_started_at = Column(DateTime, nullable=True)
    assembly_completed_at = Column(DateTime, nullable=True)
    qc_started_at = Column(DateTime, nullable=True)
    qc_completed_at = Column(DateTime, nullable=True)

    # optimistic lock, bumped by SQLAlchemy on every UPDATE
    version = Column(Integer, nullable=False)

    current_location = relationship("Location")
    bin_location = relationship("Bin")
    technician = relationship("UserProfile", foreign_keys=[technician_id])
    supervisor = relationship("UserProfile", foreign_keys=[supervisor_id])
    qc_person = relationship("UserProfile", foreign_keys=[qc_person_id])

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("rework_count >= 0", name="ck_journeys_rework_nonneg"),
        Index("ix_journeys_status", "current_status"),
        Index("ix_journeys_tech_status", "technician_id", "current_status"),
    )

    @property
    def is_checklist_complete(self) -> bool:
        cl = self.checklist or {}
        return all(cl.get(item) is True for item in CHECKLIST_ITEMS)

    def __repr__(self):
        return f"<AssemblyJourney(barcode={self.barcode}, status={self.current_status})>"


class StatusHistory(Base):
    __tablename__ = "status_history"
    id = Column(Integer, primary_key=True)
    journey_id = Column(Integer, ForeignKey("assembly_journeys.id"), nullable=False, index=True)
    from_status = Column(String, nullable=True)
    to_status = Column(String, nullable=False)
    changed_by = Column(Integer, ForeignKey("user_profiles.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    changed_by_user = relationship("UserProfile")


class BinMovementHistory(Base):
    __tablename__ = "bin_movement_history"
    id = Column(Integer, primary_key=True)
    journey_id = Column(Integer, ForeignKey("assembly_journeys.id"), nullable=False, index=True)
    from_bin_id = Column(Integer, ForeignKey("bins.id"), nullable=True)
    to_bin_id = Column(Integer, ForeignKey("bins.id"), nullable=True)
    moved_by = Column(Integer, ForeignKey("user_profiles.id"), nullable=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    from_bin = relationship("Bin", foreign_keys=[from_bin_id])
    to_bin = relationship("Bin", foreign_keys=[to_bin_id])
    moved_by_user = relationship("UserProfile")


class QCInspection(Base):
    __tablename__ = "qc_inspections"
    id = Column(Integer, primary_key=True)
    journey_id = Column(Integer, ForeignKey("assembly_journeys.id"), nullable=False, index=True)
    inspector_id = Column(Integer, ForeignKey("user_profiles.id"), nullable=True)
    # technician responsible for the build at inspection time
    technician_id = Column(Integer, ForeignKey("user_profiles.id"), nullable=True, index=True)
    result = Column(String, nullable=False)  # passed | failed
    failure_reason = Column(Text, nullable=True)
    photos = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    journey = relationship("AssemblyJourney")
    inspector = relationship("UserProfile", foreign_keys=[inspector_id])
