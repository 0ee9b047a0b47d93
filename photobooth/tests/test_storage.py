import unittest
from unittest.mock import patch

from botocore.exceptions import ClientError

from photobooth.storage import (
    InMemoryObjectStore,
    SpacesObjectStore,
    StorageError,
    guest_strip_key,
    object_key_from_url,
    owned_strip_key,
)


class KeyLayoutTests(unittest.TestCase):
    def test_owned_and_guest_keys(self):
        self.assertEqual(owned_strip_key("u1", "s1"), "strips/u1/s1.png")
        self.assertEqual(guest_strip_key("abc"), "strips/guest/abc.png")

    def test_key_from_cdn_url(self):
        url = "https://photos.sgp1.cdn.digitaloceanspaces.com/strips/guest/abc.png"
        self.assertEqual(object_key_from_url(url), "strips/guest/abc.png")

    def test_key_from_url_without_path(self):
        self.assertIsNone(object_key_from_url("https://photos.example.com/"))
        self.assertIsNone(object_key_from_url(""))


class InMemoryObjectStoreTests(unittest.TestCase):
    def test_put_then_delete_is_idempotent(self):
        store = InMemoryObjectStore(base_url="https://cdn.test")
        url = store.put("strips/u1/s1.png", b"png", "image/png")
        self.assertEqual(url, "https://cdn.test/strips/u1/s1.png")
        self.assertEqual(object_key_from_url(url), "strips/u1/s1.png")
        store.delete("strips/u1/s1.png")
        store.delete("strips/u1/s1.png")
        self.assertEqual(store.stored_objects, {})


class SpacesObjectStoreTests(unittest.TestCase):
    def setUp(self):
        patcher = patch("photobooth.storage.boto3.client")
        self.mock_client_factory = patcher.start()
        self.addCleanup(patcher.stop)
        self.client = self.mock_client_factory.return_value
        self.store = SpacesObjectStore(
            bucket="photos",
            region="sgp1",
            endpoint="https://sgp1.digitaloceanspaces.com",
            access_key_id="key",
            secret_access_key="secret",
        )

    def test_client_uses_custom_endpoint(self):
        kwargs = self.mock_client_factory.call_args.kwargs
        self.assertEqual(kwargs["endpoint_url"], "https://sgp1.digitaloceanspaces.com")
        self.assertEqual(kwargs["region_name"], "sgp1")
        self.assertEqual(kwargs["aws_access_key_id"], "key")

    def test_put_uploads_public_png(self):
        url = self.store.put("strips/guest/abc.png", b"png", "image/png")
        self.client.put_object.assert_called_once_with(
            Bucket="photos",
            Key="strips/guest/abc.png",
            Body=b"png",
            ContentType="image/png",
            ACL="public-read",
        )
        self.assertEqual(
            url, "https://photos.sgp1.cdn.digitaloceanspaces.com/strips/guest/abc.png"
        )

    def test_put_failure_raises_storage_error(self):
        self.client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        with self.assertRaises(StorageError):
            self.store.put("strips/guest/abc.png", b"png", "image/png")

    def test_delete(self):
        self.store.delete("strips/u1/s1.png")
        self.client.delete_object.assert_called_once_with(
            Bucket="photos", Key="strips/u1/s1.png"
        )

    def test_delete_failure_raises_storage_error(self):
        self.client.delete_object.side_effect = ClientError(
            {"Error": {"Code": "InternalError", "Message": "oops"}}, "DeleteObject"
        )
        with self.assertRaises(StorageError):
            self.store.delete("strips/u1/s1.png")


if __name__ == "__main__":
    unittest.main()
