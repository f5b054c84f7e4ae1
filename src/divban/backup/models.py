"""Backup data models: options, collected files, archive metadata.

Usage:
    from divban.backup.models import BackupOptions

    options = BackupOptions(
        service_name="immich",
        data_dir="/srv/immich",
        user="immich",
        uid=1100,
    )
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from divban.backup.compat import CURRENT_BACKUP_SCHEMA_VERSION, PRODUCER_NAME
from divban.config.models import TimeoutSettings
from divban.types import (
    AbsolutePathField,
    ServiceNameField,
    UserIdField,
    UsernameField,
)
from divban.version import DIVBAN_VERSION

Compression = Literal["gzip", "zstd"]


# ============================================================================
# Invocation Options
# ============================================================================


class RestoreOptions(BaseModel):
    """Per-invocation restore parameters."""

    service_name: ServiceNameField
    data_dir: AbsolutePathField
    user: UsernameField
    uid: UserIdField
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)


class BackupOptions(RestoreOptions):
    """Per-invocation backup parameters.  ``force`` gates cold strategies."""

    force: bool = False


class RestoreStrategyOptions(RestoreOptions):
    """Restore options plus the extracted archive entries."""

    files: dict[str, bytes]


# ============================================================================
# Collected Files
# ============================================================================


class CollectedFiles(BaseModel):
    """Archive payload produced by a strategy's ``collect``.

    Every name in ``file_list`` has an entry in ``files`` and vice versa.
    """

    files: dict[str, str | bytes]
    file_list: list[str]

    @model_validator(mode="after")
    def _names_match(self) -> "CollectedFiles":
        if len(set(self.file_list)) != len(self.file_list):
            raise ValueError("file_list contains duplicate names")
        if set(self.file_list) != set(self.files):
            missing = sorted(set(self.file_list) ^ set(self.files))
            raise ValueError(f"file_list and files disagree on: {', '.join(missing)}")
        return self


# ============================================================================
# Archive Metadata
# ============================================================================


class ArchiveMetadata(BaseModel):
    """Reserved metadata entry embedded in every backup archive."""

    model_config = ConfigDict(populate_by_name=True)

    producer: str = PRODUCER_NAME
    service: str
    schema_version: str = Field(default=CURRENT_BACKUP_SCHEMA_VERSION, alias="schemaVersion")
    producer_version: str = Field(default=DIVBAN_VERSION, alias="producerVersion")
    file_list: list[str] = Field(default_factory=list, alias="fileList")
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)


def create_backup_metadata(service: str, file_list: list[str]) -> ArchiveMetadata:
    return ArchiveMetadata(service=service, file_list=list(file_list))
