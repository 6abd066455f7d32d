"""Postgres-backed appointment store."""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ConstraintViolationException,
    UpstreamException,
    ValidationException,
)
from app.database import execute_statement
from app.models.appointments import appointments
from app.schemas.appointments import AppointmentResponse, AppointmentStatus
from app.services.ports import AppointmentQuery

logger = structlog.get_logger(__name__)

# SQLSTATE raised by the appointments_no_overlap exclusion constraint
EXCLUSION_VIOLATION = "23P01"


def _sqlstate(error: IntegrityError) -> str | None:
    """Extract the SQLSTATE code from a wrapped driver error."""
    orig = error.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


class PostgresAppointmentStore:
    """AppointmentStore implementation using SQLAlchemy Core."""

    def __init__(self, db: AsyncSession):
        """Initialize store with database session."""
        self.db = db

    async def query_appointments(self, query: AppointmentQuery) -> list[AppointmentResponse]:
        """
        List appointments matching a query.

        Args:
            query: Filter fields, combined with AND

        Returns:
            Appointments ordered by date, then start time
        """
        conditions = []

        if query.provider_id:
            conditions.append(appointments.c.provider_id == query.provider_id)

        if query.patient_id:
            conditions.append(appointments.c.patient_id == query.patient_id)

        if query.date_exact:
            conditions.append(appointments.c.appointment_date == query.date_exact)

        if query.date_from:
            conditions.append(appointments.c.appointment_date >= query.date_from)

        if query.date_to:
            conditions.append(appointments.c.appointment_date <= query.date_to)

        if query.statuses:
            conditions.append(appointments.c.status.in_([s.value for s in query.statuses]))

        stmt = (
            select(appointments)
            .where(*conditions)
            .order_by(
                appointments.c.appointment_date.asc(),
                appointments.c.start_time.asc(),
            )
        )

        result = await execute_statement(self.db, stmt, "query_appointments")
        return [AppointmentResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def get_appointment(self, appointment_id: UUID) -> AppointmentResponse | None:
        """Get appointment by ID, or None if it does not exist."""
        stmt = select(appointments).where(appointments.c.id == appointment_id)

        result = await execute_statement(self.db, stmt, "get_appointment")
        row = result.fetchone()

        if not row:
            return None

        return AppointmentResponse.model_validate(dict(row._mapping))

    async def insert_appointment(self, values: dict[str, Any]) -> AppointmentResponse:
        """
        Insert a new appointment.

        Args:
            values: Column values

        Returns:
            Created appointment

        Raises:
            ConstraintViolationException: If it overlaps a blocking booking
            ValidationException: If another integrity constraint fails
            UpstreamException: If the database failed
        """
        stmt = insert(appointments).values(**values).returning(appointments)

        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if _sqlstate(e) == EXCLUSION_VIOLATION:
                logger.info("appointment_overlap_rejected_by_store", error=str(e.orig))
                raise ConstraintViolationException(
                    "Appointment overlaps an existing booking"
                ) from e
            raise ValidationException("Appointment violates a data constraint") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("database_operation_failed", operation="insert_appointment", error=str(e))
            raise UpstreamException("Database unavailable") from e

        row = result.fetchone()
        return AppointmentResponse.model_validate(dict(row._mapping))

    async def update_appointment_status(
        self,
        appointment_id: UUID,
        status: AppointmentStatus,
        expected_status: AppointmentStatus | None = None,
    ) -> AppointmentResponse | None:
        """
        Update appointment status.

        With ``expected_status`` the update is a compare-and-set: it only
        applies while the row still has that status.

        Returns:
            Updated appointment, or None if no row matched
        """
        conditions = [appointments.c.id == appointment_id]
        if expected_status is not None:
            conditions.append(appointments.c.status == expected_status.value)

        stmt = (
            update(appointments)
            .where(*conditions)
            .values(status=status.value, updated_at=func.now())
            .returning(appointments)
        )

        result = await execute_statement(
            self.db, stmt, "update_appointment_status", commit=True
        )
        row = result.fetchone()

        if not row:
            return None

        return AppointmentResponse.model_validate(dict(row._mapping))
