"""Database models."""

from app.models.appointments import appointments
from app.models.notifications import notifications
from app.models.users import users

__all__ = [
    "appointments",
    "notifications",
    "users",
]
