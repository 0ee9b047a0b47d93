import base64
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from photobooth.db import DbError, Guest, InMemoryDbClient, Owned, StripRecord
from photobooth.errors import (
    Expired,
    Forbidden,
    NotFound,
    PersistFailed,
    StorageUploadFailed,
    ValidationError,
)
from photobooth.storage import InMemoryObjectStore, StorageError
from photobooth.strips import StripService, StripUpload, decode_image

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-strip"
PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()
T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FailingStore(InMemoryObjectStore):
    def put(self, key, data, content_type):
        raise StorageError("spaces unavailable")

    def delete(self, key):
        raise StorageError("spaces unavailable")


class DecodeImageTests(unittest.TestCase):
    def test_strips_data_url_header(self):
        self.assertEqual(decode_image(PNG_DATA_URL), PNG_BYTES)

    def test_accepts_bare_base64(self):
        self.assertEqual(decode_image(base64.b64encode(PNG_BYTES).decode()), PNG_BYTES)

    def test_rejects_bad_base64(self):
        with self.assertRaises(ValidationError):
            decode_image("data:image/png;base64,@@not-base64@@")

    def test_rejects_empty_image(self):
        with self.assertRaises(ValidationError):
            decode_image("data:image/png;base64,")


class StripServiceTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.storage = InMemoryObjectStore()
        self.clock = FakeClock()
        self.service = StripService(
            self.db, self.storage, guest_expiration_days=7, clock=self.clock
        )

    def _guest(self, strip_id="g1", **kwargs):
        return self.service.create_guest_strip(
            StripUpload(image=PNG_DATA_URL, id=strip_id, **kwargs)
        )

    def test_create_owned_strip(self):
        record = self.service.create_strip(
            "u1", StripUpload(image=PNG_DATA_URL, id="s1", title="Hi")
        )
        self.assertEqual(record.ownership, Owned("u1"))
        self.assertFalse(record.is_guest)
        self.assertEqual(record.owner_id, "u1")
        self.assertIsNone(record.expires_at)
        self.assertEqual(
            record.file_url, "https://photobooth.example.test/strips/u1/s1.png"
        )
        self.assertEqual(self.storage.stored_objects["strips/u1/s1.png"], PNG_BYTES)
        self.assertEqual(self.storage.content_types["strips/u1/s1.png"], "image/png")
        self.assertEqual(self.db.get_strip("s1").title, "Hi")

    def test_create_mints_id_when_missing(self):
        record = self.service.create_strip("u1", StripUpload(image=PNG_DATA_URL))
        self.assertTrue(record.id)
        self.assertIn(f"strips/u1/{record.id}.png", self.storage.stored_objects)

    def test_create_rejects_unsafe_client_id(self):
        with self.assertRaises(ValidationError):
            self.service.create_strip(
                "u1", StripUpload(image=PNG_DATA_URL, id="../escape")
            )
        self.assertEqual(self.storage.stored_objects, {})

    def test_create_guest_strip_sets_expiry(self):
        record = self._guest("abc")
        self.assertTrue(record.is_guest)
        self.assertIsNone(record.owner_id)
        self.assertEqual(record.expires_at, record.created_at + timedelta(days=7))
        self.assertIn("strips/guest/abc.png", self.storage.stored_objects)

    def test_upload_failure_writes_no_row(self):
        service = StripService(self.db, FailingStore(), clock=self.clock)
        with self.assertRaises(StorageUploadFailed):
            service.create_guest_strip(StripUpload(image=PNG_DATA_URL, id="x"))
        self.assertIsNone(self.db.get_strip("x"))

    def test_persist_failure_keeps_uploaded_object(self):
        db = MagicMock()
        db.create_strip.side_effect = DbError("boom")
        service = StripService(db, self.storage, clock=self.clock)
        with self.assertRaises(PersistFailed) as ctx:
            service.create_strip("u1", StripUpload(image=PNG_DATA_URL, id="s1"))
        self.assertNotIn("boom", ctx.exception.message)
        self.assertIn("strips/u1/s1.png", self.storage.stored_objects)

    def test_duplicate_id_is_persist_failure(self):
        self._guest("dup")
        with self.assertRaises(PersistFailed):
            self._guest("dup")

    def test_read_public_strip(self):
        self._guest("abc")
        self.assertEqual(self.service.read_public_strip("abc").id, "abc")

    def test_read_missing_strip(self):
        with self.assertRaises(NotFound):
            self.service.read_public_strip("nope")

    def test_expired_guest_strip_reads_as_expired(self):
        self._guest("abc")
        self.clock.advance(days=8)
        with self.assertRaises(Expired):
            self.service.read_public_strip("abc")
        # Row still exists until the next sweep.
        self.assertIsNotNone(self.db.get_strip("abc"))

    def test_owned_strip_never_expires(self):
        self.service.create_strip("u1", StripUpload(image=PNG_DATA_URL, id="s1"))
        self.clock.advance(days=365)
        self.assertEqual(self.service.read_public_strip("s1").id, "s1")

    def test_list_owned_strips_newest_first(self):
        self.service.create_strip("u1", StripUpload(image=PNG_DATA_URL, id="old"))
        self.clock.advance(minutes=5)
        self.service.create_strip("u1", StripUpload(image=PNG_DATA_URL, id="new"))
        self.service.create_strip("u2", StripUpload(image=PNG_DATA_URL, id="other"))
        self._guest("guest")
        ids = [s.id for s in self.service.list_owned_strips("u1")]
        self.assertEqual(ids, ["new", "old"])

    def test_claim_guest_strip(self):
        self._guest("g1")
        record = self.service.update_strip("u1", "g1", title="Beach Day")
        self.assertEqual(record.owner_id, "u1")
        self.assertFalse(record.is_guest)
        self.assertIsNone(record.expires_at)
        self.assertEqual(record.title, "Beach Day")
        stored = self.db.get_strip("g1")
        self.assertEqual(stored.ownership, Owned("u1"))
        self.assertEqual(stored.title, "Beach Day")

    def test_claim_is_idempotent_for_claimant(self):
        self._guest("g1")
        self.service.update_strip("u1", "g1", title="Beach Day")
        again = self.service.update_strip("u1", "g1")
        self.assertEqual(again.owner_id, "u1")
        self.assertEqual(again.title, "Beach Day")

    def test_second_claimant_is_forbidden(self):
        self._guest("g1")
        self.service.update_strip("u1", "g1")
        with self.assertRaises(Forbidden):
            self.service.update_strip("u2", "g1", title="Mine now")
        self.assertEqual(self.db.get_strip("g1").owner_id, "u1")

    def test_partial_update_ignores_empty_values(self):
        self.service.create_strip(
            "u1",
            StripUpload(image=PNG_DATA_URL, id="s1", title="Old", caption="Old cap"),
        )
        record = self.service.update_strip("u1", "s1", title="", caption="New")
        self.assertEqual(record.title, "Old")
        self.assertEqual(record.caption, "New")

    def test_update_missing_strip(self):
        with self.assertRaises(NotFound):
            self.service.update_strip("u1", "nope", title="x")

    def test_delete_own_strip_removes_object_and_row(self):
        self.service.create_strip("u1", StripUpload(image=PNG_DATA_URL, id="s1"))
        self.service.delete_strip("u1", "s1")
        self.assertIsNone(self.db.get_strip("s1"))
        self.assertNotIn("strips/u1/s1.png", self.storage.stored_objects)

    def test_delete_requires_ownership(self):
        self.service.create_strip("u1", StripUpload(image=PNG_DATA_URL, id="s1"))
        self._guest("g1")
        with self.assertRaises(NotFound):
            self.service.delete_strip("u2", "s1")
        with self.assertRaises(NotFound):
            self.service.delete_strip("u2", "g1")
        self.assertIsNotNone(self.db.get_strip("s1"))

    def test_delete_proceeds_when_object_delete_fails(self):
        self.db.create_strip(
            StripRecord(
                id="s1",
                ownership=Owned("u1"),
                file_url="https://bucket.cdn.example/strips/u1/s1.png",
            )
        )
        service = StripService(self.db, FailingStore(), clock=self.clock)
        service.delete_strip("u1", "s1")
        self.assertIsNone(self.db.get_strip("s1"))

    def test_admin_delete_ignores_ownership(self):
        self._guest("g1")
        self.service.admin_delete_strip("g1")
        self.assertIsNone(self.db.get_strip("g1"))
        with self.assertRaises(NotFound):
            self.service.admin_delete_strip("g1")

    def test_row_delete_failure_is_persist_failure(self):
        db = MagicMock()
        db.get_strip.return_value = StripRecord(
            id="s1", ownership=Owned("u1"), file_url="https://h/strips/u1/s1.png"
        )
        db.delete_strip.side_effect = DbError("locked")
        service = StripService(db, self.storage, clock=self.clock)
        with self.assertRaises(PersistFailed):
            service.delete_strip("u1", "s1")

    def test_guest_ownership_variant(self):
        record = self._guest("g2")
        self.assertEqual(record.ownership, Guest(T0 + timedelta(days=7)))


if __name__ == "__main__":
    unittest.main()
