"""
Dependency wiring for the FastAPI app.

Clients are built once per app in ``create_app`` and handed to both the
request path and the sweeper; the request dependencies below only read them
back off ``app.state``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from photobooth.accounts import AccountService, Requester
from photobooth.config import Settings
from photobooth.db import DbClient, InMemoryDbClient, PostgresDbClient
from photobooth.errors import Unauthorized
from photobooth.storage import InMemoryObjectStore, ObjectStore, SpacesObjectStore
from photobooth.strips import StripService
from photobooth.sweeper import ExpirationSweeper

logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    db: DbClient
    storage: ObjectStore
    strip_service: StripService
    account_service: AccountService
    sweeper: ExpirationSweeper


def build_db_client(settings: Settings) -> DbClient:
    if settings.use_in_memory_backends or not settings.database_url:
        logger.warning("Using in-memory database; data will not persist")
        return InMemoryDbClient()
    return PostgresDbClient(settings.database_url)


def build_storage_client(settings: Settings) -> ObjectStore:
    if settings.use_in_memory_backends or not settings.do_spaces_bucket:
        logger.warning("Using in-memory object store; uploads will not persist")
        return InMemoryObjectStore()
    return SpacesObjectStore(
        bucket=settings.do_spaces_bucket,
        region=settings.do_spaces_region or "",
        endpoint=settings.do_spaces_endpoint or "",
        access_key_id=settings.do_spaces_key or "",
        secret_access_key=settings.do_spaces_secret or "",
        cdn_host=settings.cdn_host,
    )


def build_container(
    settings: Settings,
    *,
    db: Optional[DbClient] = None,
    storage: Optional[ObjectStore] = None,
    strip_service: Optional[StripService] = None,
) -> AppContainer:
    if strip_service is None:
        db = db or build_db_client(settings)
        storage = storage or build_storage_client(settings)
        strip_service = StripService(
            db,
            storage,
            guest_expiration_days=settings.guest_expiration_days,
        )
    account_service = AccountService(
        db=strip_service.db,
        jwt_secret=settings.jwt_secret,
        token_lifetime=timedelta(hours=settings.jwt_expire_hours),
    )
    sweeper = ExpirationSweeper(
        strip_service, interval_seconds=settings.sweep_interval_seconds
    )
    return AppContainer(
        settings=settings,
        db=strip_service.db,
        storage=strip_service.storage,
        strip_service=strip_service,
        account_service=account_service,
        sweeper=sweeper,
    )


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


def get_strip_service(
    container: AppContainer = Depends(get_container),
) -> StripService:
    return container.strip_service


def get_account_service(
    container: AppContainer = Depends(get_container),
) -> AccountService:
    return container.account_service


def get_sweeper(container: AppContainer = Depends(get_container)) -> ExpirationSweeper:
    return container.sweeper


def get_requester(
    authorization: Optional[str] = Header(default=None),
    accounts: AccountService = Depends(get_account_service),
) -> Requester:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    token = authorization.removeprefix("Bearer ").strip()
    try:
        return accounts.resolve_requester(token)
    except Unauthorized as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_admin(requester: Requester = Depends(get_requester)) -> Requester:
    if not requester.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required"
        )
    return requester
