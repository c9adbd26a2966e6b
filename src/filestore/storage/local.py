# filestore/storage/local.py
import hashlib
import hmac
import os
import shutil
import time
from datetime import timedelta
from pathlib import Path
from typing import BinaryIO, Optional
from urllib.parse import quote, urlencode

from .base import ObjectStoreClient
from .models import Acl, BucketConfig, ProviderUpload


class _LocalWriteChannel:
    """Writes to ``<path>.part`` and moves it into place on close()."""

    def __init__(self, dst: Path):
        self._dst = dst
        self._part = dst.with_name(dst.name + ".part")
        self._fh = open(self._part, "wb")

    def write(self, data: bytes) -> int:
        return self._fh.write(data)

    def close(self) -> None:
        self._fh.close()
        os.replace(self._part, self._dst)

    def discard(self) -> None:
        self._fh.close()
        self._part.unlink(missing_ok=True)


class LocalClient(ObjectStoreClient):
    """
    Stores objects under <base_path>/<bucket>/<object_key> for development
    and tests. ACLs are accepted but not enforced. Signed URLs carry an
    absolute ``expires`` timestamp and an HMAC-SHA256 signature keyed with
    the bucket's private key.
    """

    def __init__(
        self,
        config: BucketConfig,
        base_path: str = "/var/_uploads",
        base_url: str = "/files/",
        clock=time.time,
    ):
        super().__init__(config)
        self.root = Path(base_path).expanduser().resolve()
        self._base_url = base_url.rstrip("/") + "/"
        self._clock = clock

    # ---------- helpers ---------- #
    def _full(self, bucket: str, key: str) -> Path:
        bucket_root = self.root.joinpath(bucket).resolve()
        path = bucket_root.joinpath(key).resolve()
        if bucket_root not in path.parents:
            raise ValueError(f"Object key escapes bucket: {key}")
        return path

    def signature(self, bucket: str, key: str, expires: int, action: str) -> str:
        message = f"{action}\n{bucket}\n{key}\n{expires}".encode()
        secret = self.config.credential_private_key.encode()
        return hmac.new(secret, message, hashlib.sha256).hexdigest()

    # ---------- API ---------- #
    def upload_local_file(
        self, bucket: str, local_path: str, destination_key: str, acl: Acl
    ) -> ProviderUpload:
        dst = self._full(bucket, destination_key)
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(local_path, dst)
        return ProviderUpload(url=f"{self.base_url(bucket)}{quote(destination_key)}")

    def delete_object(self, bucket: str, key: str) -> None:
        self._full(bucket, key).unlink()

    def open_write_channel(
        self, bucket: str, key: str, content_type: Optional[str] = None
    ) -> BinaryIO:
        dst = self._full(bucket, key)
        dst.parent.mkdir(parents=True, exist_ok=True)
        return _LocalWriteChannel(dst)

    def open_read_channel(self, bucket: str, key: str) -> BinaryIO:
        return open(self._full(bucket, key), "rb")

    def sign_url(
        self, bucket: str, key: str, expiration: timedelta, action: str = "read"
    ) -> str:
        expires = int(self._clock() + expiration.total_seconds())
        query = urlencode(
            {
                "action": action,
                "expires": expires,
                "signature": self.signature(bucket, key, expires, action),
            }
        )
        return f"{self.base_url(bucket)}{quote(key)}?{query}"

    def base_url(self, bucket: str) -> str:
        return f"{self._base_url}{bucket}/"
