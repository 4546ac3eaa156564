# config/settings.py
import os
import socket
import sys
from typing import Optional
from dotenv import load_dotenv
from pydantic import ValidationError, Field, model_validator
from pydantic_settings import BaseSettings
from util.enums import Environment, ServiceRole


if os.getenv("APP_ENV", Environment.DEV) == Environment.DEV:
    load_dotenv()


class Settings(BaseSettings):
    # App
    APP_ENV: str = Field(..., validation_alias="APP_ENV")
    SERVICE_ROLE: ServiceRole = Field(..., validation_alias="SERVICE_ROLE")
    PROJECT_ID: str = Field(..., validation_alias="PROJECT_ID")
    POD_NAME: str = Field(
        default_factory=socket.gethostname, validation_alias="POD_NAME"
    )
    HTTP_HOST: str = Field(default="0.0.0.0", validation_alias="HTTP_HOST")
    HTTP_PORT: int = Field(default=8080, validation_alias="HTTP_PORT")

    # Broker & local object store (credentials travel in the URL)
    BROKER_URL: str = Field(..., validation_alias="BROKER_URL")
    STORE_URL: Optional[str] = Field(default=None, validation_alias="STORE_URL")
    BUCKET: str = Field(default="uploads", validation_alias="BUCKET")

    # Topics & subscriptions
    IMAGE_TOPIC: str = Field(default="images", validation_alias="IMAGE_TOPIC")
    LABELED_TOPIC: str = Field(default="labeled", validation_alias="LABELED_TOPIC")
    PURGE_TOPIC: str = Field(default="purge", validation_alias="PURGE_TOPIC")
    SUBSCRIPTION: Optional[str] = Field(default=None, validation_alias="SUBSCRIPTION")
    STREAM_MAXLEN: int = Field(default=10_000, validation_alias="STREAM_MAXLEN")

    # Worker loop
    HANDLER_CONCURRENCY: int = Field(default=4, validation_alias="HANDLER_CONCURRENCY")
    PULL_BATCH_SIZE: int = Field(default=10, validation_alias="PULL_BATCH_SIZE")
    PULL_BLOCK_MS: int = Field(default=2000, validation_alias="PULL_BLOCK_MS")

    # Archiver
    TARGET_LABEL: str = Field(default="cat", min_length=1, validation_alias="TARGET_LABEL")
    PURGE_AFTER_ARCHIVE: bool = Field(default=False, validation_alias="PURGE_AFTER_ARCHIVE")
    ARCHIVE_ROOT: str = Field(default="archive", validation_alias="ARCHIVE_ROOT")
    ARCHIVE_BUCKET: str = Field(default="archive", validation_alias="ARCHIVE_BUCKET")

    # Annotation service
    ANNOTATION_API_URL: str = Field(
        default="https://vision.googleapis.com/v1/images:annotate",
        validation_alias="ANNOTATION_API_URL",
    )
    ANNOTATION_API_KEY: Optional[str] = Field(
        default=None, validation_alias="ANNOTATION_API_KEY"
    )
    ANNOTATION_ACCESS_TOKEN: Optional[str] = Field(
        default=None, validation_alias="ANNOTATION_ACCESS_TOKEN"
    )
    ANNOTATION_TIMEOUT_SECONDS: float = Field(
        default=30.0, validation_alias="ANNOTATION_TIMEOUT_SECONDS"
    )

    # Logging knobs
    LOGGER_NAME: str = "fileup"
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    LOG_DIR: str = Field(default="logs", validation_alias="LOG_DIR")
    LOG_FILE_NAME: str = Field(default="fileup.log", validation_alias="LOG_FILE_NAME")
    LOG_MAX_BYTES: int = Field(
        default=50 * 1024 * 1024, validation_alias="LOG_MAX_BYTES"
    )
    LOG_BACKUP_COUNT: int = Field(default=5, validation_alias="LOG_BACKUP_COUNT")

    @model_validator(mode="after")
    def _validate_names(self) -> "Settings":
        # Bucket names become the first segment of "<bucket>/<key>" locations
        for name in ("BUCKET", "ARCHIVE_BUCKET"):
            value = getattr(self, name)
            if not value or "/" in value:
                raise ValueError(f"{name} must be non-empty and contain no '/'")
        return self

    @property
    def store_url(self) -> str:
        return self.STORE_URL or self.BROKER_URL

    def subscription_for(self, role: ServiceRole) -> str:
        """
        Default subscription naming per stage:
          - labeler:  the image topic name
          - archiver: "<pod>+<target label>", one per archiver instance
          - purger:   "<project>%<purge topic>"
        """
        if self.SUBSCRIPTION:
            return self.SUBSCRIPTION
        if role == ServiceRole.LABELER:
            return self.IMAGE_TOPIC
        if role == ServiceRole.ARCHIVER:
            return f"{self.POD_NAME}+{self.TARGET_LABEL}"
        if role == ServiceRole.PURGER:
            return f"{self.PROJECT_ID}%{self.PURGE_TOPIC}"
        raise ValueError(f"role {role.value} does not consume a subscription")


try:
    settings = Settings()
except ValidationError as e:
    print("❌ Missing/invalid environment variables:", file=sys.stderr)
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", []))
        msg = err.get("msg", "")
        print(f" - {loc}: {msg}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    print(f"❌ Settings initialization failed: {e}", file=sys.stderr)
    sys.exit(1)
