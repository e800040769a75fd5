"""initial buildline schema

Revision ID: 0001
Revises:
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False, server_default="warehouse"),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.sql.expression.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(op.f("ix_locations_code"), "locations", ["code"], unique=True)

    op.create_table(
        "user_profiles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="technician"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.sql.expression.true()),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
    )
    op.create_index(op.f("ix_user_profiles_email"), "user_profiles", ["email"], unique=True)
    op.create_index("ix_user_profiles_role", "user_profiles", ["role"])
    op.create_index("ix_user_profiles_active", "user_profiles", ["is_active"])

    op.create_table(
        "bins",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("bin_code", sa.String(), nullable=False),
        sa.Column("bin_name", sa.String(), nullable=True),
        sa.Column("status_zone", sa.String(), nullable=False, server_default="inward_zone"),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("current_occupancy", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.sql.expression.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("location_id", "bin_code", name="uq_bins_location_code"),
        sa.CheckConstraint("capacity >= 1", name="ck_bins_capacity_positive"),
        sa.CheckConstraint(
            "current_occupancy >= 0 AND current_occupancy <= capacity",
            name="ck_bins_occupancy_range",
        ),
    )
    op.create_index(op.f("ix_bins_location_id"), "bins", ["location_id"])
    op.create_index("ix_bins_zone", "bins", ["location_id", "status_zone"])

    op.create_table(
        "assembly_journeys",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("barcode", sa.String(), nullable=False),
        sa.Column("model_sku", sa.String(), nullable=False),
        sa.Column("frame_number", sa.String(), nullable=True),
        sa.Column("grn_reference", sa.String(), nullable=True),
        sa.Column("current_status", sa.String(), nullable=False, server_default="inwarded"),
        sa.Column("status_changed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("current_location_id", sa.Integer(), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("bin_location_id", sa.Integer(), sa.ForeignKey("bins.id"), nullable=True),
        sa.Column("technician_id", sa.Integer(), sa.ForeignKey("user_profiles.id"), nullable=True),
        sa.Column("supervisor_id", sa.Integer(), sa.ForeignKey("user_profiles.id"), nullable=True),
        sa.Column("qc_person_id", sa.Integer(), sa.ForeignKey("user_profiles.id"), nullable=True),
        sa.Column("checklist", sa.JSON(), nullable=False),
        sa.Column("priority", sa.Boolean(), nullable=False, server_default=sa.sql.expression.false()),
        sa.Column("rework_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("parts_missing", sa.Boolean(), nullable=False, server_default=sa.sql.expression.false()),
        sa.Column("parts_missing_list", sa.JSON(), nullable=False),
        sa.Column("damage_reported", sa.Boolean(), nullable=False, server_default=sa.sql.expression.false()),
        sa.Column("damage_notes", sa.Text(), nullable=True),
        sa.Column("damage_photos", sa.JSON(), nullable=False),
        sa.Column("assembly_paused", sa.Boolean(), nullable=False, server_default=sa.sql.expression.false()),
        sa.Column("pause_reason", sa.String(), nullable=True),
        sa.Column("qc_status", sa.String(), nullable=True),
        sa.Column("qc_failure_reason", sa.Text(), nullable=True),
        sa.Column("qc_failure_photos", sa.JSON(), nullable=False),
        sa.Column("inwarded_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("assigned_at", sa.DateTime(), nullable=True),
        sa.Column("assembly_started_at", sa.DateTime(), nullable=True),
        sa.Column("assembly_completed_at", sa.DateTime(), nullable=True),
        sa.Column("qc_started_at", sa.DateTime(), nullable=True),
        sa.Column("qc_completed_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint("rework_count >= 0", name="ck_journeys_rework_nonneg"),
    )
    op.create_index(op.f("ix_assembly_journeys_barcode"), "assembly_journeys", ["barcode"], unique=True)
    op.create_index(op.f("ix_assembly_journeys_model_sku"), "assembly_journeys", ["model_sku"])
    op.create_index(op.f("ix_assembly_journeys_current_location_id"), "assembly_journeys", ["current_location_id"])
    op.create_index(op.f("ix_assembly_journeys_bin_location_id"), "assembly_journeys", ["bin_location_id"])
    op.create_index(op.f("ix_assembly_journeys_technician_id"), "assembly_journeys", ["technician_id"])
    op.create_index("ix_journeys_status", "assembly_journeys", ["current_status"])
    op.create_index("ix_journeys_tech_status", "assembly_journeys", ["technician_id", "current_status"])

    op.create_table(
        "status_history",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("journey_id", sa.Integer(), sa.ForeignKey("assembly_journeys.id"), nullable=False),
        sa.Column("from_status", sa.String(), nullable=True),
        sa.Column("to_status", sa.String(), nullable=False),
        sa.Column("changed_by", sa.Integer(), sa.ForeignKey("user_profiles.id"), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(op.f("ix_status_history_journey_id"), "status_history", ["journey_id"])
    op.create_index(op.f("ix_status_history_created_at"), "status_history", ["created_at"])

    op.create_table(
        "bin_movement_history",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("journey_id", sa.Integer(), sa.ForeignKey("assembly_journeys.id"), nullable=False),
        sa.Column("from_bin_id", sa.Integer(), sa.ForeignKey("bins.id"), nullable=True),
        sa.Column("to_bin_id", sa.Integer(), sa.ForeignKey("bins.id"), nullable=True),
        sa.Column("moved_by", sa.Integer(), sa.ForeignKey("user_profiles.id"), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(op.f("ix_bin_movement_history_journey_id"), "bin_movement_history", ["journey_id"])
    op.create_index(op.f("ix_bin_movement_history_created_at"), "bin_movement_history", ["created_at"])

    op.create_table(
        "qc_inspections",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("journey_id", sa.Integer(), sa.ForeignKey("assembly_journeys.id"), nullable=False),
        sa.Column("inspector_id", sa.Integer(), sa.ForeignKey("user_profiles.id"), nullable=True),
        sa.Column("technician_id", sa.Integer(), sa.ForeignKey("user_profiles.id"), nullable=True),
        sa.Column("result", sa.String(), nullable=False),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("photos", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(op.f("ix_qc_inspections_journey_id"), "qc_inspections", ["journey_id"])
    op.create_index(op.f("ix_qc_inspections_technician_id"), "qc_inspections", ["technician_id"])
    op.create_index(op.f("ix_qc_inspections_created_at"), "qc_inspections", ["created_at"])


def downgrade() -> None:
    op.drop_table("qc_inspections")
    op.drop_table("bin_movement_history")
    op.drop_table("status_history")
    op.drop_table("assembly_journeys")
    op.drop_table("bins")
    op.drop_table("user_profiles")
    op.drop_table("locations")
