"""Tests for the filesystem backend, end to end through the service."""

from __future__ import annotations

import hmac
from datetime import timedelta
from functools import partial
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlsplit

import pytest

from src.filestore.storage.errors import PartialDeleteFailure
from src.filestore.storage.local import LocalClient
from src.filestore.storage.models import Acl, DeleteRequest, UploadRequest
FIXED_NOW = 1718000000.25


@pytest.fixture
def local_service(tmp_path: Path, bucket_configs: Any) -> Any:
    from src.filestore.storage.service import BucketFileStorageService

    constructor = partial(
        LocalClient,
        base_path=str(tmp_path / "objects"),
        base_url="http://files.test/",
        clock=lambda: FIXED_NOW,
    )
    return BucketFileStorageService(bucket_configs, constructor)


@pytest.fixture
def client(tmp_path: Path, bucket_configs: Any) -> LocalClient:
    from src.filestore.storage.models import Visibility

    return LocalClient(
        bucket_configs[Visibility.PRIVATE],
        base_path=str(tmp_path / "objects"),
        base_url="http://files.test",
        clock=lambda: FIXED_NOW,
    )


class TestLocalRoundtrip:
    """Uploads are stored per bucket and can be read back independently."""

    @pytest.mark.asyncio
    async def test_two_uploads_of_same_name_are_independent_objects(
        self, local_service: Any, tmp_path: Path, temp_upload: Path
    ) -> None:
        request = UploadRequest(local_file_path=str(temp_upload), original_file_name="cat.png")

        first = await local_service.upload(request)
        temp_upload.write_bytes(b"second version")
        second = await local_service.upload(request)

        assert first.object_key != second.object_key
        first_stream = await local_service.get_download_stream(first.object_key, is_private=False)
        second_stream = await local_service.get_download_stream(second.object_key, is_private=False)
        assert b"".join([c async for c in first_stream]).endswith(b"fake image bytes")
        assert b"".join([c async for c in second_stream]) == b"second version"
        assert first.url == f"http://files.test/public-assets/{first.object_key}"

    @pytest.mark.asyncio
    async def test_protected_upload_lands_in_private_bucket(
        self, local_service: Any, tmp_path: Path, temp_upload: Path
    ) -> None:
        request = UploadRequest(local_file_path=str(temp_upload), original_file_name="id.pdf")

        result = await local_service.upload_protected(request)

        stored = tmp_path / "objects" / "private-assets" / result.object_key
        assert stored.read_bytes() == temp_upload.read_bytes()

    @pytest.mark.asyncio
    async def test_stream_upload_then_download(self, local_service: Any) -> None:
        descriptor = await local_service.get_upload_stream_descriptor("notes", "txt")
        async with descriptor.write_stream as sink:
            await sink.write(b"hello ")
            await sink.write(b"world")
        await descriptor.completion

        stream = await local_service.get_download_stream("notes.txt")

        assert b"".join([c async for c in stream]) == b"hello world"

    @pytest.mark.asyncio
    async def test_delete_of_object_in_one_bucket_is_partial_failure(
        self, local_service: Any, tmp_path: Path, temp_upload: Path
    ) -> None:
        """The object only lives in the public bucket, so the private delete fails."""
        request = UploadRequest(local_file_path=str(temp_upload), original_file_name="cat.png")
        result = await local_service.upload(request)

        with pytest.raises(PartialDeleteFailure) as exc_info:
            await local_service.delete(DeleteRequest(object_key=result.object_key))

        assert isinstance(exc_info.value.cause, FileNotFoundError)
        assert not (tmp_path / "objects" / "public-assets" / result.object_key).exists()


class TestLocalSignedUrl:
    """Signed URLs carry an absolute expiry and a verifiable signature."""

    @pytest.mark.asyncio
    async def test_presigned_url_expires_fifteen_minutes_after_issuance(
        self, local_service: Any
    ) -> None:
        url = await local_service.get_presigned_download_url("id.pdf")

        parts = urlsplit(url)
        query = parse_qs(parts.query)
        assert parts.path == "/private-assets/id.pdf"
        assert int(query["expires"][0]) == int(FIXED_NOW) + 900
        assert query["action"] == ["read"]

    def test_signature_is_keyed_with_bucket_secret(self, client: LocalClient) -> None:
        url = client.sign_url("private-assets", "id.pdf", timedelta(minutes=15))
        query = parse_qs(urlsplit(url).query)
        expires = int(query["expires"][0])

        expected = client.signature("private-assets", "id.pdf", expires, "read")

        assert hmac.compare_digest(query["signature"][0], expected)
        assert query["signature"][0] != client.signature("private-assets", "other.pdf", expires, "read")


class TestLocalClient:
    def test_key_escaping_bucket_rejected(self, client: LocalClient, temp_upload: Path) -> None:
        with pytest.raises(ValueError):
            client.upload_local_file("private-assets", str(temp_upload), "../public-assets/x", Acl.PRIVATE)

    def test_delete_missing_object_raises(self, client: LocalClient) -> None:
        with pytest.raises(FileNotFoundError):
            client.delete_object("private-assets", "nope.txt")

    def test_discarded_write_leaves_nothing(self, client: LocalClient, tmp_path: Path) -> None:
        channel = client.open_write_channel("private-assets", "partial.bin")
        channel.write(b"half")
        channel.discard()

        assert list((tmp_path / "objects" / "private-assets").iterdir()) == []

    def test_base_url_per_bucket(self, client: LocalClient) -> None:
        assert client.base_url("private-assets") == "http://files.test/private-assets/"
