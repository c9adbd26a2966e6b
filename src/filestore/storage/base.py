# filestore/storage/base.py
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import AsyncIterator, BinaryIO, Optional

from .models import (
    Acl,
    BucketConfig,
    DeleteRequest,
    ProviderUpload,
    StreamDescriptor,
    UploadRequest,
    UploadResult,
)


class ObjectStoreClient(ABC):
    """
    Minimal contract every storage back-end must fulfil.
    Methods are synchronous like the vendor SDKs they wrap; the
    service layer moves them off the event loop.
    """

    def __init__(self, config: BucketConfig):
        self.config = config

    @abstractmethod
    def upload_local_file(
        self, bucket: str, local_path: str, destination_key: str, acl: Acl
    ) -> ProviderUpload:
        """Ingest the file at *local_path* into *bucket* under *destination_key*."""
        ...

    @abstractmethod
    def delete_object(self, bucket: str, key: str) -> None:
        """Remove the object. Raises if it does not exist."""
        ...

    @abstractmethod
    def open_write_channel(
        self, bucket: str, key: str, content_type: Optional[str] = None
    ) -> BinaryIO:
        """Return a writable binary file object; the object is stored on close()."""
        ...

    @abstractmethod
    def open_read_channel(self, bucket: str, key: str) -> BinaryIO:
        """Return a readable binary file object streaming the object's bytes."""
        ...

    @abstractmethod
    def sign_url(
        self, bucket: str, key: str, expiration: timedelta, action: str = "read"
    ) -> str:
        """Return a V4-signed URL granting *action* for *expiration*."""
        ...

    @abstractmethod
    def base_url(self, bucket: str) -> str:
        """Public base URL of *bucket*, ending with a slash."""
        ...


class FileStorageService(ABC):
    """Capability interface the host application talks to."""

    @abstractmethod
    async def upload(self, request: UploadRequest) -> UploadResult:
        ...

    @abstractmethod
    async def upload_protected(self, request: UploadRequest) -> UploadResult:
        ...

    @abstractmethod
    async def delete(self, request: DeleteRequest) -> None:
        ...

    @abstractmethod
    async def get_upload_stream_descriptor(
        self,
        name: str,
        ext: str,
        is_private: bool = True,
        content_type: Optional[str] = None,
    ) -> StreamDescriptor:
        ...

    @abstractmethod
    async def get_download_stream(
        self, object_key: str, is_private: bool = True
    ) -> AsyncIterator[bytes]:
        ...

    @abstractmethod
    async def get_presigned_download_url(
        self, object_key: str, is_private: bool = True
    ) -> str:
        ...
