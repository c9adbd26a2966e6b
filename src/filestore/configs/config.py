import functools
import sys
from enum import StrEnum

from dotenv import load_dotenv
from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings

from src.filestore.storage.models import BucketConfig, Visibility

load_dotenv(
    override=True,  # Override existing environment variables
)


class LogLevel(StrEnum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class Config(BaseSettings):
    # General configuration
    storage_backend: str = "gcs"  # Options: "gcs", "s3", "local"
    filestore_log_level: LogLevel = LogLevel.INFO

    # Public bucket (Google Cloud Storage naming, reused by the other backends)
    gcs_project_id: str = ""
    gcs_bucket_name: str = ""
    gcs_client_email: str = ""  # Service account email (S3: access key id)
    gcs_private_key: str = ""  # Service account PEM key (S3: secret access key)

    # Private (protected) bucket
    gcs_private_bucket_name: str = ""
    gcs_private_client_email: str = ""
    gcs_private_private_key: str = ""

    # S3 configuration
    s3_region: str = ""
    s3_endpoint: str = ""  # leave empty for AWS

    # Local configuration
    local_path: str = "/app/uploads"  # Root directory, one subdirectory per bucket
    local_base_url: str = "/files/"  # Base URL for local files

    @field_validator("filestore_log_level", mode="before")
    @classmethod
    def validate_filestore_log_level(cls, v) -> LogLevel:
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            # Try to find the enum by value (case-insensitive)
            v_lower = v.lower()
            for level in LogLevel:
                if level.value == v_lower:
                    return level
            valid_levels = [level.value for level in LogLevel]
            raise ValueError(
                f"filestore_log_level must be one of {valid_levels}, got '{v}'"
            )
        raise ValueError(
            f"filestore_log_level must be a string or LogLevel enum, got {type(v)}"
        )

    @field_validator("gcs_private_key", "gcs_private_private_key", mode="after")
    @classmethod
    def unescape_private_key(cls, v: str) -> str:
        # PEM keys exported into a single env line carry literal "\n"
        return v.replace("\\n", "\n")

    @field_validator("storage_backend", mode="after")
    @classmethod
    def normalize_storage_backend(cls, v: str) -> str:
        return v.strip().lower()

    def bucket_configs(self) -> dict[Visibility, BucketConfig]:
        """Credentials and bucket name for each visibility tier."""
        return {
            Visibility.PUBLIC: BucketConfig(
                project_id=self.gcs_project_id,
                bucket_name=self.gcs_bucket_name,
                credential_email=self.gcs_client_email,
                credential_private_key=self.gcs_private_key,
            ),
            Visibility.PRIVATE: BucketConfig(
                project_id=self.gcs_project_id,
                bucket_name=self.gcs_private_bucket_name,
                credential_email=self.gcs_private_client_email,
                credential_private_key=self.gcs_private_private_key,
            ),
        }

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


@functools.lru_cache(maxsize=1)
def get_config() -> Config:
    try:
        return Config()
    except ValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error while loading configuration: {e}", file=sys.stderr)
        sys.exit(1)
