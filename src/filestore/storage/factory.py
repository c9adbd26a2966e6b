# filestore/storage/factory.py
import logging
from dataclasses import dataclass
from typing import Callable, Mapping

from .base import ObjectStoreClient
from .errors import ConfigurationError
from .models import BucketConfig, Visibility

logger = logging.getLogger("filestore.storage.factory")

ClientConstructor = Callable[[BucketConfig], ObjectStoreClient]


@dataclass(frozen=True)
class BucketHandle:
    """A client bound to the single bucket it should talk to."""
    visibility: Visibility
    bucket_name: str
    client: ObjectStoreClient


class ConfigValidator:
    """Checks the private bucket is usable before any network call is made."""

    def __init__(self, bucket_configs: Mapping[Visibility, BucketConfig]):
        self._private = bucket_configs.get(Visibility.PRIVATE, BucketConfig())

    def validate(self, use_private_bucket: bool) -> None:
        if not use_private_bucket:
            return
        missing = self._private.missing_fields()
        if missing:
            raise ConfigurationError(missing)


class BucketClientFactory:
    """
    Picks credentials and bucket name by visibility and builds a client
    for them. Every call returns a new client; nothing is cached.
    """

    def __init__(
        self,
        bucket_configs: Mapping[Visibility, BucketConfig],
        client_constructor: ClientConstructor,
    ):
        self._configs = dict(bucket_configs)
        self._client_constructor = client_constructor

    def config_for(self, visibility: Visibility) -> BucketConfig:
        return self._configs.get(visibility, BucketConfig())

    def get_bucket_handle(self, visibility: Visibility) -> BucketHandle:
        config = self.config_for(visibility)
        logger.debug(f"Building {visibility} storage client for bucket '{config.bucket_name}'")
        return BucketHandle(
            visibility=visibility,
            bucket_name=config.bucket_name,
            client=self._client_constructor(config),
        )
