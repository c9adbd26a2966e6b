"""Shared fixtures for filestore tests.

Provides a recording in-memory ObjectStoreClient so the service can be
exercised without any storage provider.
"""

from __future__ import annotations

import io
import threading
from datetime import timedelta
from typing import Any

import pytest

from src.filestore.storage.base import ObjectStoreClient
from src.filestore.storage.models import Acl, BucketConfig, ProviderUpload, Visibility

PUBLIC_CONFIG = BucketConfig(
    project_id="test-project",
    bucket_name="public-assets",
    credential_email="public@test-project.iam.gserviceaccount.com",
    credential_private_key="public-secret",
)

PRIVATE_CONFIG = BucketConfig(
    project_id="test-project",
    bucket_name="private-assets",
    credential_email="private@test-project.iam.gserviceaccount.com",
    credential_private_key="private-secret",
)


class FakeProvider:
    """In-memory buckets plus a log of every call the clients make."""

    def __init__(self) -> None:
        self.buckets: dict[str, dict[str, bytes]] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.clients_built: list[BucketConfig] = []
        self.failing_deletes: dict[str, Exception] = {}
        self.delete_barrier: threading.Barrier | None = None
        self.failing_write: Exception | None = None
        self._lock = threading.Lock()

    def record(self, *call: Any) -> None:
        with self._lock:
            self.calls.append(call)

    def calls_named(self, name: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == name]

    def client(self, config: BucketConfig) -> "FakeClient":
        self.clients_built.append(config)
        return FakeClient(config, self)


class _FakeWriteChannel(io.BytesIO):
    def __init__(self, provider: FakeProvider, bucket: str, key: str) -> None:
        super().__init__()
        self._provider = provider
        self._bucket = bucket
        self._key = key

    def close(self) -> None:
        if not self.closed:
            self._provider.buckets.setdefault(self._bucket, {})[self._key] = self.getvalue()
            self._provider.record("write_closed", self._bucket, self._key)
        super().close()


class FakeClient(ObjectStoreClient):
    def __init__(self, config: BucketConfig, provider: FakeProvider) -> None:
        super().__init__(config)
        self.provider = provider

    def upload_local_file(
        self, bucket: str, local_path: str, destination_key: str, acl: Acl
    ) -> ProviderUpload:
        self.provider.record("upload_local_file", bucket, local_path, destination_key, acl)
        with open(local_path, "rb") as fh:
            self.provider.buckets.setdefault(bucket, {})[destination_key] = fh.read()
        return ProviderUpload(url=f"{self.base_url(bucket)}{destination_key}")

    def delete_object(self, bucket: str, key: str) -> None:
        self.provider.record("delete_object", bucket, key)
        if self.provider.delete_barrier is not None:
            # Only passes when both bucket deletes are in flight together
            self.provider.delete_barrier.wait()
        if bucket in self.provider.failing_deletes:
            raise self.provider.failing_deletes[bucket]
        self.provider.buckets.get(bucket, {}).pop(key, None)

    def open_write_channel(self, bucket: str, key: str, content_type: str | None = None):
        self.provider.record("open_write_channel", bucket, key, content_type)
        if self.provider.failing_write is not None:
            raise self.provider.failing_write
        return _FakeWriteChannel(self.provider, bucket, key)

    def open_read_channel(self, bucket: str, key: str):
        self.provider.record("open_read_channel", bucket, key)
        return io.BytesIO(self.provider.buckets[bucket][key])

    def sign_url(
        self, bucket: str, key: str, expiration: timedelta, action: str = "read"
    ) -> str:
        self.provider.record("sign_url", bucket, key, expiration, action)
        return f"https://signed.example/{bucket}/{key}?ttl={int(expiration.total_seconds())}"

    def base_url(self, bucket: str) -> str:
        return f"https://storage.example/{bucket}/"


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def bucket_configs() -> dict[Visibility, BucketConfig]:
    return {Visibility.PUBLIC: PUBLIC_CONFIG, Visibility.PRIVATE: PRIVATE_CONFIG}


@pytest.fixture
def service(provider: FakeProvider, bucket_configs: dict[Visibility, BucketConfig]) -> Any:
    from src.filestore.storage.service import BucketFileStorageService

    return BucketFileStorageService(bucket_configs, provider.client)


@pytest.fixture
def unconfigured_service(provider: FakeProvider) -> Any:
    """Service whose private bucket has no credentials."""
    from src.filestore.storage.service import BucketFileStorageService

    configs = {
        Visibility.PUBLIC: PUBLIC_CONFIG,
        Visibility.PRIVATE: BucketConfig(project_id="test-project", bucket_name="private-assets"),
    }
    return BucketFileStorageService(configs, provider.client)


@pytest.fixture
def temp_upload(tmp_path) -> Any:
    """A temporary file as a multipart parser would leave it on disk."""
    path = tmp_path / "upload.tmp"
    path.write_bytes(b"\x89PNG\r\n\x1a\nfake image bytes")
    return path
