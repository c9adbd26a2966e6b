# filestore/storage/models.py
import asyncio
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from .streams import UploadSink


class Visibility(StrEnum):
    PUBLIC = "public"  # Objects reachable through an unauthenticated URL
    PRIVATE = "private"  # Objects reachable only through signed URLs

    @classmethod
    def from_private_flag(cls, is_private: bool) -> "Visibility":
        return cls.PRIVATE if is_private else cls.PUBLIC


class Acl(StrEnum):
    PUBLIC_READ = "publicRead"
    PRIVATE = "private"


class BucketConfig(BaseModel):
    """Credentials and bucket name for one visibility tier."""
    model_config = ConfigDict(frozen=True)

    project_id: str = ""
    bucket_name: str = ""
    credential_email: str = ""
    credential_private_key: str = Field(default="", repr=False)

    def missing_fields(self) -> list[str]:
        """Names of the fields a client cannot work without."""
        required = ("credential_email", "credential_private_key", "bucket_name")
        return [name for name in required if not getattr(self, name)]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()


class UploadRequest(BaseModel):
    """A local temporary file to be stored under a name derived from *original_file_name*."""
    local_file_path: str
    original_file_name: str


class UploadResult(BaseModel):
    url: str
    provider_key_id: str = ""  # e.g. KMS key name; empty if the provider issues none
    object_key: str


class DeleteRequest(BaseModel):
    object_key: str


class ProviderUpload(BaseModel):
    """What a backend reports back after ingesting a local file."""
    url: str
    provider_key_id: str = ""


@dataclass
class StreamDescriptor:
    """
    Handed out for streaming uploads. The caller writes into *write_stream*
    and closes it; *completion* resolves to the object key once the provider
    has acknowledged the object, or raises the provider error.
    """
    write_stream: "UploadSink"
    completion: "asyncio.Task[str]"
    url: str
    object_key: str
