"""
Storage abstraction for DigitalOcean Spaces (S3-compatible) and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol
from urllib.parse import urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

GUEST_PREFIX = "strips/guest"


class StorageError(Exception):
    """Raised when the object store rejects or fails an operation."""


class ObjectStore(Protocol):
    """Defines the operations the strip service needs from object storage."""

    def put(self, key: str, data: bytes, content_type: str) -> str:
        ...

    def delete(self, key: str) -> None:
        ...

    def public_url(self, key: str) -> str:
        ...


def owned_strip_key(owner_id: str, strip_id: str) -> str:
    return f"strips/{owner_id}/{strip_id}.png"


def guest_strip_key(strip_id: str) -> str:
    return f"{GUEST_PREFIX}/{strip_id}.png"


def object_key_from_url(url: str) -> Optional[str]:
    """
    Recover the object key from a public URL by dropping scheme and host.

    Returns None when the URL has no usable path.
    """
    if not url:
        return None
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    key = parsed.path.lstrip("/")
    return key or None


@dataclass
class InMemoryObjectStore:
    """Test double for storage interactions."""

    base_url: str = "https://photobooth.example.test"
    stored_objects: dict = field(default_factory=dict)
    content_types: dict = field(default_factory=dict)

    def put(self, key: str, data: bytes, content_type: str) -> str:
        self.stored_objects[key] = bytes(data)
        self.content_types[key] = content_type
        return self.public_url(key)

    def delete(self, key: str) -> None:
        # Missing keys are fine, like S3.
        self.stored_objects.pop(key, None)
        self.content_types.pop(key, None)

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    def reset(self) -> None:
        self.stored_objects.clear()
        self.content_types.clear()


@dataclass
class SpacesObjectStore:
    """
    S3-compatible storage client for DigitalOcean Spaces.

    Objects are written public-read and served from the bucket's CDN host.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    cdn_host: str = "sgp1.cdn.digitaloceanspaces.com"

    def __post_init__(self):
        config = Config(signature_version="s3v4")
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                ACL="public-read",
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"put_object failed for {key}: {exc}") from exc
        return self.public_url(key)

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"delete_object failed for {key}: {exc}") from exc

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.{self.cdn_host}/{key}"
