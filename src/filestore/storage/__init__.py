from functools import lru_cache, partial
import logging

from .base import FileStorageService, ObjectStoreClient
from .errors import ConfigurationError, FileStorageError, PartialDeleteFailure, ProviderError
from .factory import BucketClientFactory, BucketHandle, ClientConstructor, ConfigValidator
from .keys import KeyGenerator
from .models import (
    Acl,
    BucketConfig,
    DeleteRequest,
    StreamDescriptor,
    UploadRequest,
    UploadResult,
    Visibility,
)
from .service import BucketFileStorageService


def get_client_constructor(backend: str) -> ClientConstructor:
    from src.filestore.configs.config import get_config

    config = get_config()
    if backend == "gcs":
        from .gcs import GCSClient

        return GCSClient
    elif backend == "s3":
        from .s3 import S3Client

        return partial(
            S3Client,
            region=config.s3_region or None,
            endpoint_url=config.s3_endpoint or None,  # leave empty for AWS
        )
    elif backend == "local":
        from .local import LocalClient

        return partial(
            LocalClient,
            base_path=config.local_path,
            base_url=config.local_base_url,
        )
    else:
        raise ValueError(f"Unknown storage backend: {backend}")


@lru_cache
def get_storage_service() -> FileStorageService:
    from src.filestore.configs.config import get_config

    config = get_config()
    logging.getLogger("filestore").setLevel(config.filestore_log_level.value.upper())
    return BucketFileStorageService(
        bucket_configs=config.bucket_configs(),
        client_constructor=get_client_constructor(config.storage_backend),
    )


__all__ = [
    "Acl",
    "BucketClientFactory",
    "BucketConfig",
    "BucketFileStorageService",
    "BucketHandle",
    "ConfigValidator",
    "ConfigurationError",
    "DeleteRequest",
    "FileStorageError",
    "FileStorageService",
    "KeyGenerator",
    "ObjectStoreClient",
    "PartialDeleteFailure",
    "ProviderError",
    "StreamDescriptor",
    "UploadRequest",
    "UploadResult",
    "Visibility",
    "get_client_constructor",
    "get_storage_service",
]
