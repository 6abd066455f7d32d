"""create appointments table

Revision ID: 002
Revises: 001
Create Date: 2026-10-17 09:10:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create appointments table with the per-provider overlap guard."""
    # btree_gist lets the exclusion constraint mix = on uuid with && on ranges
    op.execute('CREATE EXTENSION IF NOT EXISTS "btree_gist"')

    op.create_table(
        "appointments",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("patient_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("provider_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("vaccine_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("status", sa.Text(), server_default="scheduled", nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "status IN ('scheduled', 'completed', 'cancelled', 'no_show')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint("start_time < end_time", name="appointments_time_range_check"),
        sa.ForeignKeyConstraint(
            ["patient_id"],
            ["users.id"],
            name="fk_appointments_patient_id",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["provider_id"],
            ["users.id"],
            name="fk_appointments_provider_id",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["created_by"],
            ["users.id"],
            name="fk_appointments_created_by",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index(
        "idx_appointments_provider_date",
        "appointments",
        ["provider_id", "appointment_date"],
    )
    op.create_index("idx_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index(
        "idx_appointments_date_start",
        "appointments",
        ["appointment_date", "start_time"],
    )

    # Two blocking bookings of one provider may never overlap. Cancelled and
    # no-show rows free their interval.
    op.execute(
        """
        ALTER TABLE appointments
        ADD CONSTRAINT appointments_no_overlap
        EXCLUDE USING gist (
            provider_id WITH =,
            tsrange(
                appointment_date + start_time,
                appointment_date + end_time,
                '[)'
            ) WITH &&
        )
        WHERE (status IN ('scheduled', 'completed') AND provider_id IS NOT NULL)
        """
    )


def downgrade() -> None:
    """Drop appointments table."""
    op.execute("ALTER TABLE appointments DROP CONSTRAINT IF EXISTS appointments_no_overlap")
    op.drop_index("idx_appointments_date_start", table_name="appointments")
    op.drop_index("idx_appointments_patient_id", table_name="appointments")
    op.drop_index("idx_appointments_provider_date", table_name="appointments")
    op.drop_table("appointments")
