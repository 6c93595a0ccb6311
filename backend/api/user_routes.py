"""User provisioning, profile edits, the borrower directory, device tokens, and password reset codes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from models.enums import UserRole
from models.exceptions import AccessDeniedError
from services.password_reset_service import PasswordResetService
from services.user_service import UserService

from .dependencies import Principal, get_principal, require_roles
from .responses import respond


logger = logging.getLogger(__name__)


class RegisterUserRequest(BaseModel):
    """Profile details for the authenticated principal."""

    email: str = Field(..., min_length=5)
    user_name: str = Field(..., min_length=2)
    mobile_number: Optional[str] = Field(default=None, pattern=r"^\d{10}$")
    address: Optional[str] = None
    id_number: Optional[str] = Field(default=None, pattern=r"^\d{12}$")


class UpdateProfileRequest(BaseModel):
    """Any subset of the editable profile fields."""

    user_name: Optional[str] = Field(default=None, min_length=2)
    email: Optional[str] = Field(default=None, min_length=5)
    mobile_number: Optional[str] = Field(default=None, pattern=r"^\d{10}$")
    address: Optional[str] = None


class DeviceTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class ResetCodeRequest(BaseModel):
    email: str = Field(..., min_length=5)


class ResetCodeVerifyRequest(BaseModel):
    email: str = Field(..., min_length=5)
    code: str = Field(..., pattern=r"^\d{6}$")


def build_user_router(users: UserService, password_resets: PasswordResetService) -> APIRouter:
    """Build user profile and password reset routes."""
    router = APIRouter(tags=["users"])
    directory_roles = require_roles(UserRole.LENDER, UserRole.ADMIN)

    @router.post("/users", summary="Register own profile")
    def register_user(payload: RegisterUserRequest, principal: Principal = Depends(get_principal)) -> JSONResponse:
        return respond(
            lambda: users.register_user(
                user_id=principal.user_id,
                email=payload.email,
                user_name=payload.user_name,
                role=principal.role,
                mobile_number=payload.mobile_number,
                address=payload.address,
                id_number=payload.id_number,
            ),
            "User registered successfully",
            status_code=status.HTTP_201_CREATED,
            context="register_user",
        )

    @router.get("/users/me", summary="Own profile")
    def get_me(principal: Principal = Depends(get_principal)) -> JSONResponse:
        return respond(lambda: users.get_user(principal.user_id), "User fetched successfully", context="get_me")

    @router.patch("/users/me", summary="Edit own profile")
    def update_me(payload: UpdateProfileRequest, principal: Principal = Depends(get_principal)) -> JSONResponse:
        return respond(
            lambda: users.update_profile(principal.user_id, payload.model_dump(exclude_none=True)),
            "Profile updated successfully",
            context="update_profile",
        )

    @router.get("/borrowers", summary="Borrower directory")
    def list_borrowers(
        page: int = Query(default=1),
        limit: int = Query(default=10),
        principal: Principal = Depends(directory_roles),
    ) -> JSONResponse:
        return respond(
            lambda: users.list_borrowers(page, limit),
            "Borrowers fetched successfully",
            context="list_borrowers",
        )

    @router.get("/borrowers/search", summary="Search borrowers by name, ID number, or mobile")
    def search_borrowers(
        search: str = Query(default=""),
        page: int = Query(default=1),
        limit: int = Query(default=10),
        principal: Principal = Depends(directory_roles),
    ) -> JSONResponse:
        return respond(
            lambda: users.search_borrowers(search, page, limit),
            "Borrowers fetched successfully",
            context="search_borrowers",
        )

    @router.get("/borrowers/{user_id}", summary="Borrower by id")
    def get_borrower(user_id: str, principal: Principal = Depends(directory_roles)) -> JSONResponse:
        return respond(lambda: users.get_borrower(user_id), "Borrower fetched successfully", context="get_borrower")

    @router.get("/users/{user_id}", summary="Profile by id")
    def get_user(user_id: str, principal: Principal = Depends(get_principal)) -> JSONResponse:
        def _load() -> dict:
            if principal.user_id != user_id and principal.role != UserRole.ADMIN:
                raise AccessDeniedError("You can only view your own profile")
            return users.get_user(user_id)

        return respond(_load, "User fetched successfully", context="get_user")

    @router.post("/users/me/device-tokens", summary="Register a device token")
    def add_device_token(payload: DeviceTokenRequest, principal: Principal = Depends(get_principal)) -> JSONResponse:
        return respond(
            lambda: users.add_device_token(principal.user_id, payload.token),
            "Device token registered",
            context="add_device_token",
        )

    @router.delete("/users/me/device-tokens/{token}", summary="Remove a device token")
    def remove_device_token(token: str, principal: Principal = Depends(get_principal)) -> JSONResponse:
        return respond(
            lambda: users.remove_device_token(principal.user_id, token),
            "Device token removed",
            context="remove_device_token",
        )

    @router.post("/auth/password-reset/request", summary="Email a password reset code")
    def request_reset_code(payload: ResetCodeRequest) -> JSONResponse:
        return respond(
            lambda: password_resets.request_code(payload.email),
            "Reset code sent to your email",
            context="request_reset_code",
        )

    @router.post("/auth/password-reset/verify", summary="Verify a password reset code")
    def verify_reset_code(payload: ResetCodeVerifyRequest) -> JSONResponse:
        return respond(
            lambda: password_resets.verify_code(payload.email, payload.code),
            "Reset code verified",
            context="verify_reset_code",
        )

    return router
