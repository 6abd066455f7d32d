"""User model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID

metadata = MetaData()

users = Table(
    "users",
    metadata,
    # Same ID as the identity provider's subject claim
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("email", Text, nullable=False, unique=True, index=True),
    # Profile info
    Column("first_name", Text),
    Column("last_name", Text),
    Column("phone", String(20)),
    Column("role", Text, nullable=False, server_default=text("'patient'")),
    # Account state
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint(
        "role IN ('patient', 'provider', 'admin')",
        name="users_role_check",
    ),
)
