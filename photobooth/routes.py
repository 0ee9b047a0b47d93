"""
HTTP routes for the photobooth API.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from photobooth.accounts import AccountService, Requester
from photobooth.dependencies import (
    get_account_service,
    get_admin,
    get_requester,
    get_strip_service,
    get_sweeper,
)
from photobooth.schemas import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    SaveStripRequest,
    SaveStripResponse,
    SignupRequest,
    StripListResponse,
    StripResponse,
    SweepResponse,
    UpdateStripRequest,
    UpdateStripResponse,
    UserSummary,
)
from photobooth.strips import StripService, StripUpload
from photobooth.sweeper import ExpirationSweeper

logger = logging.getLogger(__name__)

router = APIRouter()


def _upload_from(payload: SaveStripRequest) -> StripUpload:
    return StripUpload(
        image=payload.image,
        id=payload.id or "",
        title=payload.title or "",
        caption=payload.caption or "",
    )


@router.post("/auth/signup", response_model=MessageResponse, status_code=201)
def signup(
    payload: SignupRequest,
    accounts: AccountService = Depends(get_account_service),
):
    accounts.signup(payload.username, payload.email, payload.password)
    return MessageResponse(message="User created")


@router.post("/auth/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
):
    token, user = accounts.login(payload.identifier, payload.password)
    return LoginResponse(
        access_token=token,
        user=UserSummary(id=user.id, username=user.username, email=user.email),
    )


@router.post("/strips/guest-save", response_model=SaveStripResponse)
def guest_save_strip(
    payload: SaveStripRequest,
    strips: StripService = Depends(get_strip_service),
):
    record = strips.create_guest_strip(_upload_from(payload))
    return SaveStripResponse(
        message="Guest strip saved successfully",
        id=record.id,
        file_url=record.file_url,
        expires_at=record.expires_at,
    )


@router.get("/strips/public/{strip_id}", response_model=StripResponse)
def get_public_strip(
    strip_id: str,
    strips: StripService = Depends(get_strip_service),
):
    return StripResponse.from_record(strips.read_public_strip(strip_id))


@router.post("/strips/save", response_model=SaveStripResponse)
def save_strip(
    payload: SaveStripRequest,
    requester: Requester = Depends(get_requester),
    strips: StripService = Depends(get_strip_service),
):
    record = strips.create_strip(requester.user_id, _upload_from(payload))
    return SaveStripResponse(
        message="Strip saved successfully",
        id=record.id,
        file_url=record.file_url,
    )


@router.get("/strips/my-strips", response_model=StripListResponse)
def get_my_strips(
    requester: Requester = Depends(get_requester),
    strips: StripService = Depends(get_strip_service),
):
    records = strips.list_owned_strips(requester.user_id)
    return StripListResponse(strips=[StripResponse.from_record(r) for r in records])


@router.patch("/strips/{strip_id}", response_model=UpdateStripResponse)
def update_strip(
    strip_id: str,
    payload: UpdateStripRequest,
    requester: Requester = Depends(get_requester),
    strips: StripService = Depends(get_strip_service),
):
    record = strips.update_strip(
        requester.user_id,
        strip_id,
        title=payload.title or "",
        caption=payload.caption or "",
    )
    return UpdateStripResponse(
        message="Strip updated", strip=StripResponse.from_record(record)
    )


@router.delete("/strips/{strip_id}", response_model=MessageResponse)
def delete_strip(
    strip_id: str,
    requester: Requester = Depends(get_requester),
    strips: StripService = Depends(get_strip_service),
):
    strips.delete_strip(requester.user_id, strip_id)
    return MessageResponse(message="Strip deleted")


@router.delete("/admin/strips/{strip_id}", response_model=MessageResponse)
def admin_delete_strip(
    strip_id: str,
    admin: Requester = Depends(get_admin),
    strips: StripService = Depends(get_strip_service),
):
    logger.info("Admin %s deleting strip %s", admin.user_id, strip_id)
    strips.admin_delete_strip(strip_id)
    return MessageResponse(message="Strip deleted")


@router.post("/admin/sweep", response_model=SweepResponse)
def run_sweep(
    admin: Requester = Depends(get_admin),
    sweeper: ExpirationSweeper = Depends(get_sweeper),
):
    logger.info("Admin %s triggered a sweep", admin.user_id)
    return SweepResponse(deleted=sweeper.sweep_once())
