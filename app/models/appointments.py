"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    Index,
    MetaData,
    Table,
    Text,
    Time,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

# Metadata for all tables
metadata = MetaData()

# Appointments table
#
# Overlapping bookings for one provider are rejected by the
# ``appointments_no_overlap`` exclusion constraint created in migration 002;
# it needs btree_gist and is not expressible on this Table object.
appointments = Table(
    "appointments",
    metadata,
    Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    # References
    Column("patient_id", UUID(as_uuid=True), nullable=False),
    Column("provider_id", UUID(as_uuid=True), nullable=True),
    Column("vaccine_id", UUID(as_uuid=True), nullable=True),
    # Calendar slot, clinic-local
    Column("appointment_date", Date, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    # Status management
    Column(
        "status",
        Text,
        nullable=False,
        server_default="scheduled",
    ),
    # Details
    Column("reason", Text, nullable=True),
    Column("notes", Text, nullable=True),
    Column("created_by", UUID(as_uuid=True), nullable=True),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    # Constraints
    CheckConstraint(
        "status IN ('scheduled', 'completed', 'cancelled', 'no_show')",
        name="appointments_status_check",
    ),
    CheckConstraint("start_time < end_time", name="appointments_time_range_check"),
    Index("idx_appointments_provider_date", "provider_id", "appointment_date"),
    Index("idx_appointments_patient_id", "patient_id"),
    Index("idx_appointments_date_start", "appointment_date", "start_time"),
)
