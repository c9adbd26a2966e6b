"""Storage error types.

Configuration problems are raised before any network call. Provider
failures of single-bucket operations propagate untouched from the backend
SDK; only delete, which combines two outcomes, wraps them.
"""

from typing import Iterable, Mapping, Optional

from .models import Visibility


class FileStorageError(Exception):
    """Base exception for file storage operations."""

    def __init__(self, message: str, *, key: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.key = key

    def __str__(self) -> str:
        if self.key:
            return f"{self.message} key={self.key}"
        return self.message


class ConfigurationError(FileStorageError):
    """The private bucket is not usable: credentials or bucket name are unset."""

    def __init__(self, missing: Iterable[str] = ()):
        self.missing = list(missing)
        message = "Private bucket is not configured"
        if self.missing:
            message = f"{message} (missing: {', '.join(self.missing)})"
        super().__init__(message)


class ProviderError(FileStorageError):
    """
    The storage backend failed an operation.

    *failures* maps each bucket visibility to the exception its backend
    raised; *cause* is the first of them.
    """

    def __init__(
        self,
        message: str,
        *,
        key: Optional[str] = None,
        failures: Optional[Mapping[Visibility, BaseException]] = None,
    ):
        super().__init__(message, key=key)
        self.failures = dict(failures or {})
        self.cause = next(iter(self.failures.values()), None)


class PartialDeleteFailure(ProviderError):
    """
    One of the two per-bucket deletes failed while the other went through.
    The successful delete is not rolled back.
    """

    def __init__(
        self,
        *,
        key: str,
        failures: Mapping[Visibility, BaseException],
        succeeded: Iterable[Visibility],
    ):
        self.succeeded = list(succeeded)
        failed = ", ".join(str(v) for v in failures)
        deleted = ", ".join(str(v) for v in self.succeeded) or "none"
        super().__init__(
            f"Delete failed in {failed} bucket (deleted from: {deleted})",
            key=key,
            failures=failures,
        )

    @property
    def failed(self) -> list[Visibility]:
        return list(self.failures)
