"""User endpoints."""

from fastapi import APIRouter

from app.dependencies import CurrentUser, Users
from app.schemas.users import ProviderSummary, UserResponse

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(current_user: CurrentUser):
    """Get current user's profile."""
    return UserResponse.model_validate(current_user)


@router.get("/providers", response_model=list[ProviderSummary])
async def list_providers(current_user: CurrentUser, users: Users):
    """List active providers that appointments can be booked with."""
    providers = await users.list_providers()
    return [ProviderSummary.model_validate(provider) for provider in providers]
