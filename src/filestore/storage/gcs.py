# filestore/storage/gcs.py
from datetime import timedelta
from typing import BinaryIO, Optional

from google.cloud import storage
from google.oauth2 import service_account

from .base import ObjectStoreClient
from .models import Acl, BucketConfig, ProviderUpload

GCS_BASE_URL = "https://storage.googleapis.com"
GCS_TOKEN_URI = "https://oauth2.googleapis.com/token"

# Signed URL actions mapped to the HTTP method they allow
_SIGNED_URL_METHODS = {
    "read": "GET",
    "write": "PUT",
    "delete": "DELETE",
}


class _GCSWriteChannel:
    """BlobWriter that can be dropped without committing a partial object."""

    def __init__(self, writer):
        self._writer = writer

    def write(self, data: bytes) -> int:
        return self._writer.write(data)

    def close(self) -> None:
        self._writer.close()

    def discard(self) -> None:
        # An unfinished resumable session expires on the GCS side
        self._writer = None


class GCSClient(ObjectStoreClient):
    """
    Wraps Google Cloud Storage with service-account credentials taken from
    the bucket configuration (client email + PEM private key).
    Constructing it opens no connection.
    """

    def __init__(self, config: BucketConfig):
        super().__init__(config)
        credentials = service_account.Credentials.from_service_account_info(
            {
                "type": "service_account",
                "project_id": config.project_id,
                "client_email": config.credential_email,
                "private_key": config.credential_private_key,
                "token_uri": GCS_TOKEN_URI,
            }
        )
        self.client = storage.Client(
            project=config.project_id or None, credentials=credentials
        )

    # ---------- helpers ---------- #
    def _blob(self, bucket: str, key: str) -> storage.Blob:
        return self.client.bucket(bucket).blob(key)

    # ---------- API ---------- #
    def upload_local_file(
        self, bucket: str, local_path: str, destination_key: str, acl: Acl
    ) -> ProviderUpload:
        blob = self._blob(bucket, destination_key)
        blob.upload_from_filename(local_path, predefined_acl=acl.value)
        return ProviderUpload(url=blob.public_url, provider_key_id=blob.kms_key_name or "")

    def delete_object(self, bucket: str, key: str) -> None:
        self._blob(bucket, key).delete()

    def open_write_channel(
        self, bucket: str, key: str, content_type: Optional[str] = None
    ) -> BinaryIO:
        kwargs = {"content_type": content_type} if content_type else {}
        return _GCSWriteChannel(self._blob(bucket, key).open("wb", **kwargs))

    def open_read_channel(self, bucket: str, key: str) -> BinaryIO:
        return self._blob(bucket, key).open("rb")

    def sign_url(
        self, bucket: str, key: str, expiration: timedelta, action: str = "read"
    ) -> str:
        return self._blob(bucket, key).generate_signed_url(
            version="v4",
            expiration=expiration,
            method=_SIGNED_URL_METHODS[action],
        )

    def base_url(self, bucket: str) -> str:
        return f"{GCS_BASE_URL}/{bucket}/"
