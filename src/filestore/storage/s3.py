import tempfile
from datetime import timedelta
from typing import BinaryIO, Optional
from urllib.parse import quote

import boto3
from botocore.config import Config

from .base import ObjectStoreClient
from .models import Acl, BucketConfig, ProviderUpload

_CANNED_ACLS = {
    Acl.PUBLIC_READ: "public-read",
    Acl.PRIVATE: "private",
}

_PRESIGN_METHODS = {
    "read": "get_object",
    "write": "put_object",
    "delete": "delete_object",
}

SPOOL_MAX_BYTES = 8 * 1024 * 1024  # spill streamed uploads to disk past this size


class _S3WriteChannel:
    """
    S3 has no append-style writes; bytes are spooled locally and sent
    as one object on close().
    """

    def __init__(self, s3, bucket: str, key: str, content_type: Optional[str]):
        self._s3 = s3
        self._bucket = bucket
        self._key = key
        self._extra = {"ContentType": content_type} if content_type else {}
        self._spool = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_BYTES)

    def write(self, data: bytes) -> int:
        return self._spool.write(data)

    def close(self) -> None:
        try:
            self._spool.seek(0)
            self._s3.upload_fileobj(self._spool, self._bucket, self._key, ExtraArgs=self._extra)
        finally:
            self._spool.close()

    def discard(self) -> None:
        self._spool.close()


class S3Client(ObjectStoreClient):
    """
    Wraps any S3-compatible service (AWS works out of the box; MinIO needs
    endpoint_url). The bucket configuration's email/private-key pair is used
    as access key id/secret access key.
    """

    def __init__(
        self,
        config: BucketConfig,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ):
        super().__init__(config)
        self.region = region
        self.endpoint_url = endpoint_url
        cfg = Config(signature_version="s3v4", region_name=region)
        self.s3 = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=config.credential_email or None,
            aws_secret_access_key=config.credential_private_key or None,
            config=cfg,
        )

    # ---------- API ---------- #
    def upload_local_file(
        self, bucket: str, local_path: str, destination_key: str, acl: Acl
    ) -> ProviderUpload:
        self.s3.upload_file(
            local_path, bucket, destination_key, ExtraArgs={"ACL": _CANNED_ACLS[acl]}
        )
        return ProviderUpload(url=f"{self.base_url(bucket)}{quote(destination_key)}")

    def delete_object(self, bucket: str, key: str) -> None:
        self.s3.delete_object(Bucket=bucket, Key=key)

    def open_write_channel(
        self, bucket: str, key: str, content_type: Optional[str] = None
    ) -> BinaryIO:
        return _S3WriteChannel(self.s3, bucket, key, content_type)

    def open_read_channel(self, bucket: str, key: str) -> BinaryIO:
        return self.s3.get_object(Bucket=bucket, Key=key)["Body"]

    def sign_url(
        self, bucket: str, key: str, expiration: timedelta, action: str = "read"
    ) -> str:
        # Pre-signed, time-limited URL
        return self.s3.generate_presigned_url(
            _PRESIGN_METHODS[action],
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=int(expiration.total_seconds()),
        )

    def base_url(self, bucket: str) -> str:
        # Works if bucket policy allows public read
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{bucket}/"
        return f"https://{bucket}.s3.amazonaws.com/"
