"""
Strip lifecycle: identity, ownership, expiration and claiming.

The service coordinates two stores that share no transaction. On create the
object is written before the row, so a row never points at a missing object.
On delete the object delete is best effort and the row delete always follows,
which can leave orphaned objects behind.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from photobooth.db import DbClient, DbError, Guest, Owned, StripRecord, utcnow
from photobooth.errors import (
    Expired,
    Forbidden,
    NotFound,
    PersistFailed,
    StorageUploadFailed,
    ValidationError,
)
from photobooth.storage import (
    ObjectStore,
    StorageError,
    guest_strip_key,
    object_key_from_url,
    owned_strip_key,
)

logger = logging.getLogger(__name__)

STRIP_CONTENT_TYPE = "image/png"
STRIP_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


@dataclass
class StripUpload:
    image: str
    id: str = ""
    title: str = ""
    caption: str = ""


def decode_image(data_url: str) -> bytes:
    """Decode a base64 image, dropping any ``data:...;base64,`` header."""
    payload = data_url or ""
    _, sep, rest = payload.partition(",")
    if sep:
        payload = rest
    try:
        image = base64.b64decode(payload.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Failed to decode image") from exc
    if not image:
        raise ValidationError("Image is empty")
    return image


def resolve_strip_id(client_id: Optional[str]) -> str:
    if not client_id:
        return uuid.uuid4().hex
    if not STRIP_ID_PATTERN.match(client_id):
        raise ValidationError("Invalid strip id")
    return client_id


class StripService:
    """Application service for the strip lifecycle."""

    def __init__(
        self,
        db: DbClient,
        storage: ObjectStore,
        *,
        guest_expiration_days: int = 7,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.storage = storage
        self.guest_expiration = timedelta(days=guest_expiration_days)
        self.clock = clock

    def create_strip(self, requester_id: str, upload: StripUpload) -> StripRecord:
        image = decode_image(upload.image)
        strip_id = resolve_strip_id(upload.id)
        key = owned_strip_key(requester_id, strip_id)
        return self._store(
            "create_strip", strip_id, key, image, Owned(owner_id=requester_id), upload
        )

    def create_guest_strip(self, upload: StripUpload) -> StripRecord:
        image = decode_image(upload.image)
        strip_id = resolve_strip_id(upload.id)
        if not upload.id:
            logger.info("No strip id provided, generated %s", strip_id)
        key = guest_strip_key(strip_id)
        expires_at = self.clock() + self.guest_expiration
        return self._store(
            "create_guest_strip", strip_id, key, image, Guest(expires_at), upload
        )

    def _store(
        self,
        operation: str,
        strip_id: str,
        key: str,
        image: bytes,
        ownership,
        upload: StripUpload,
    ) -> StripRecord:
        try:
            file_url = self.storage.put(key, image, STRIP_CONTENT_TYPE)
        except StorageError:
            logger.exception("%s: upload failed id=%s key=%s", operation, strip_id, key)
            raise StorageUploadFailed()

        record = StripRecord(
            id=strip_id,
            ownership=ownership,
            file_url=file_url,
            title=upload.title or "",
            caption=upload.caption or "",
            created_at=self.clock(),
        )
        try:
            self.db.create_strip(record)
        except DbError:
            # The uploaded object stays behind; no rollback across stores.
            logger.exception(
                "%s: db write failed id=%s owner=%s", operation, strip_id, record.owner_id
            )
            raise PersistFailed()

        logger.info(
            "%s: id=%s owner=%s url=%s", operation, strip_id, record.owner_id, file_url
        )
        return record

    def _get(self, operation: str, strip_id: str) -> Optional[StripRecord]:
        try:
            return self.db.get_strip(strip_id)
        except DbError:
            logger.exception("%s: lookup failed id=%s", operation, strip_id)
            raise PersistFailed("Failed to fetch strip")

    def read_public_strip(self, strip_id: str) -> StripRecord:
        strip = self._get("read_public_strip", strip_id)
        if strip is None:
            raise NotFound("Memory not found")
        if strip.is_expired(self.clock()):
            raise Expired()
        return strip

    def list_owned_strips(self, requester_id: str) -> list[StripRecord]:
        try:
            return self.db.list_strips_by_owner(requester_id)
        except DbError:
            logger.exception("list_owned_strips: failed owner=%s", requester_id)
            raise PersistFailed("Failed to fetch strips")

    def update_strip(
        self,
        requester_id: str,
        strip_id: str,
        *,
        title: str = "",
        caption: str = "",
    ) -> StripRecord:
        """
        Update title/caption, claiming the strip first if it is a guest strip.

        Empty values leave the stored field unchanged. Two users claiming the
        same guest strip at once are not coordinated; the last write wins.
        """
        strip = self._get("update_strip", strip_id)
        if strip is None:
            raise NotFound()

        if strip.is_guest:
            logger.info("Claiming guest strip %s for user %s", strip_id, requester_id)
            strip.ownership = Owned(owner_id=requester_id)
        elif strip.owner_id != requester_id:
            logger.warning(
                "update_strip forbidden: id=%s requester=%s owner=%s",
                strip_id,
                requester_id,
                strip.owner_id,
            )
            raise Forbidden()

        if title:
            strip.title = title
        if caption:
            strip.caption = caption

        try:
            self.db.update_strip(strip)
        except DbError:
            logger.exception(
                "update_strip: db write failed id=%s requester=%s", strip_id, requester_id
            )
            raise PersistFailed("Failed to update strip")
        return strip

    def delete_strip(self, requester_id: str, strip_id: str) -> None:
        strip = self._get("delete_strip", strip_id)
        if strip is None or strip.owner_id != requester_id:
            raise NotFound()
        self._purge_or_fail("delete_strip", strip)

    def admin_delete_strip(self, strip_id: str) -> None:
        strip = self._get("admin_delete_strip", strip_id)
        if strip is None:
            raise NotFound()
        self._purge_or_fail("admin_delete_strip", strip)

    def _purge_or_fail(self, operation: str, strip: StripRecord) -> None:
        try:
            self.purge(strip, operation=operation)
        except DbError:
            logger.exception("%s: db delete failed id=%s", operation, strip.id)
            raise PersistFailed("Failed to delete strip")

    def purge(self, strip: StripRecord, *, operation: str = "purge") -> None:
        """
        Remove the strip's object, then its row.

        Object-store failures are logged and ignored. DbError from the row
        delete propagates.
        """
        key = object_key_from_url(strip.file_url)
        if key is None:
            logger.warning(
                "%s: could not derive object key id=%s url=%s",
                operation,
                strip.id,
                strip.file_url,
            )
        else:
            try:
                self.storage.delete(key)
                logger.info("%s: deleted object %s", operation, key)
            except StorageError as exc:
                logger.warning(
                    "%s: failed to delete object id=%s key=%s: %s",
                    operation,
                    strip.id,
                    key,
                    exc,
                )
        self.db.delete_strip(strip.id)
