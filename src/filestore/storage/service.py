# filestore/storage/service.py
import asyncio
import logging
from datetime import timedelta
from typing import AsyncIterator, Mapping, Optional

from .base import FileStorageService
from .errors import PartialDeleteFailure, ProviderError
from .factory import BucketClientFactory, ClientConstructor, ConfigValidator
from .keys import KeyGenerator, stream_key
from .models import (
    Acl,
    BucketConfig,
    DeleteRequest,
    StreamDescriptor,
    UploadRequest,
    UploadResult,
    Visibility,
)
from .streams import UploadSink, forward_to_channel, iter_channel

logger = logging.getLogger("filestore.storage")

PRESIGNED_URL_TTL = timedelta(minutes=15)


class BucketFileStorageService(FileStorageService):
    """
    Stores files in one of two buckets: a public one whose objects are
    world-readable, and a private one only reachable through signed URLs.

    Operations on the private bucket check its configuration first and fail
    with ConfigurationError without touching the network. Provider errors
    are not retried and surface unchanged, except for delete (see there).
    """

    def __init__(
        self,
        bucket_configs: Mapping[Visibility, BucketConfig],
        client_constructor: ClientConstructor,
        key_generator: Optional[KeyGenerator] = None,
    ):
        self.validator = ConfigValidator(bucket_configs)
        self.factory = BucketClientFactory(bucket_configs, client_constructor)
        self.keys = key_generator or KeyGenerator()

    # ---------- uploads ---------- #
    async def upload(self, request: UploadRequest) -> UploadResult:
        return await self._upload_file(request, is_protected=False)

    async def upload_protected(self, request: UploadRequest) -> UploadResult:
        self.validator.validate(True)
        return await self._upload_file(request, is_protected=True)

    async def _upload_file(self, request: UploadRequest, is_protected: bool) -> UploadResult:
        object_key = self.keys.generate_key(request.original_file_name)
        handle = self.factory.get_bucket_handle(Visibility.from_private_flag(is_protected))
        acl = Acl.PRIVATE if is_protected else Acl.PUBLIC_READ

        # The temporary file belongs to the caller; it is read, never removed
        uploaded = await asyncio.to_thread(
            handle.client.upload_local_file,
            handle.bucket_name,
            request.local_file_path,
            object_key,
            acl,
        )
        logger.info(f"Uploaded '{request.original_file_name}' to {handle.visibility} bucket as '{object_key}'")
        return UploadResult(
            url=uploaded.url,
            provider_key_id=uploaded.provider_key_id or "",
            object_key=object_key,
        )

    # ---------- delete ---------- #
    async def delete(self, request: DeleteRequest) -> None:
        """
        Delete *request.object_key* from both buckets at once, since callers
        do not track where an object lives. Fails if either delete fails;
        a delete that already went through in the other bucket stays done.
        """
        visibilities = (Visibility.PUBLIC, Visibility.PRIVATE)
        results = await asyncio.gather(
            *(
                asyncio.to_thread(self._delete_from, v, request.object_key)
                for v in visibilities
            ),
            return_exceptions=True,
        )

        failures = {}
        for visibility, result in zip(visibilities, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failures[visibility] = result
        if not failures:
            logger.info(f"Deleted '{request.object_key}' from both buckets")
            return

        cause = next(iter(failures.values()))
        succeeded = [v for v in visibilities if v not in failures]
        if succeeded:
            logger.warning(
                f"Delete of '{request.object_key}' failed in {', '.join(failures)} bucket, "
                f"already deleted from {', '.join(succeeded)}: {cause}"
            )
            raise PartialDeleteFailure(
                key=request.object_key, failures=failures, succeeded=succeeded
            ) from cause
        raise ProviderError(
            "Delete failed in both buckets", key=request.object_key, failures=failures
        ) from cause

    def _delete_from(self, visibility: Visibility, object_key: str) -> None:
        # Client construction counts as part of this bucket's delete
        handle = self.factory.get_bucket_handle(visibility)
        handle.client.delete_object(handle.bucket_name, object_key)

    # ---------- streaming ---------- #
    async def get_upload_stream_descriptor(
        self,
        name: str,
        ext: str,
        is_private: bool = True,
        content_type: Optional[str] = None,
    ) -> StreamDescriptor:
        self.validator.validate(is_private)
        handle = self.factory.get_bucket_handle(Visibility.from_private_flag(is_private))
        object_key = stream_key(name, ext)

        sink = UploadSink()
        completion = asyncio.create_task(
            forward_to_channel(
                sink,
                lambda: handle.client.open_write_channel(
                    handle.bucket_name, object_key, content_type
                ),
                object_key,
            )
        )
        completion.add_done_callback(_retrieve_exception)
        return StreamDescriptor(
            write_stream=sink,
            completion=completion,
            # Points at the object before the provider has stored it
            url=f"{handle.client.base_url(handle.bucket_name)}{object_key}",
            object_key=object_key,
        )

    async def get_download_stream(
        self, object_key: str, is_private: bool = True
    ) -> AsyncIterator[bytes]:
        self.validator.validate(is_private)
        handle = self.factory.get_bucket_handle(Visibility.from_private_flag(is_private))
        channel = await asyncio.to_thread(
            handle.client.open_read_channel, handle.bucket_name, object_key
        )
        return iter_channel(channel)

    # ---------- signed URLs ---------- #
    async def get_presigned_download_url(
        self, object_key: str, is_private: bool = True
    ) -> str:
        self.validator.validate(is_private)
        handle = self.factory.get_bucket_handle(Visibility.from_private_flag(is_private))
        return await asyncio.to_thread(
            handle.client.sign_url,
            handle.bucket_name,
            object_key,
            PRESIGNED_URL_TTL,
            "read",
        )


def _retrieve_exception(task: "asyncio.Task[str]") -> None:
    # forward_to_channel has logged the failure; callers may never await the task
    if not task.cancelled():
        task.exception()
