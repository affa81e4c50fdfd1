"""
Own profile endpoints.

Endpoints:
- GET /api/me - Current profile with entitlements
- POST /api/me/profile - Register the caller's profile
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.api.deps import get_current_profile, get_current_user_id, get_profile_repo
from src.api.errors import enrollment_http_error
from src.api.schemas import ErrorResponse, ProfileResponse
from src.components.enrollment import EnrollmentError, register
from src.core.ports.db import UserProfileRepoPort
from src.domain.entities import UserProfile

router = APIRouter()


class RegisterRequest(BaseModel):
    role: str = Field(default="student", description="student or teacher")
    display_name: str = Field(default="", max_length=120)


class RegisterResponse(BaseModel):
    created: bool
    profile: ProfileResponse


@router.get("", response_model=ProfileResponse, responses={404: {"model": ErrorResponse}})
def get_me(profile: UserProfile = Depends(get_current_profile)) -> ProfileResponse:
    return ProfileResponse.from_profile(profile)


@router.post("/profile", response_model=RegisterResponse, responses={403: {"model": ErrorResponse}})
def register_profile(
    body: RegisterRequest,
    user_id: str = Depends(get_current_user_id),
    profiles: UserProfileRepoPort = Depends(get_profile_repo),
) -> RegisterResponse:
    """Create the caller's profile. Existing profiles are returned unchanged."""
    try:
        result = register(user_id, body.role, body.display_name, profiles=profiles)  # type: ignore[arg-type]
    except EnrollmentError as e:
        raise enrollment_http_error(e) from e
    return RegisterResponse(created=result.created, profile=ProfileResponse.from_profile(result.profile))
