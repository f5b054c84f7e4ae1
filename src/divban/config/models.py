"""Pydantic models for service and backup configuration."""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from divban.types import (
    AbsolutePathField,
    ContainerNameField,
    ServiceNameField,
    UserIdField,
    UsernameField,
)


# ============================================================================
# Container Location
# ============================================================================


class ServiceContainer(BaseModel):
    """Container shares the service's own name."""

    kind: Literal["service"] = "service"


class SeparateContainer(BaseModel):
    """Container has an explicit name distinct from the service."""

    kind: Literal["separate"] = "separate"
    name: ContainerNameField


ContainerLocation = Annotated[
    ServiceContainer | SeparateContainer, Field(discriminator="kind")
]


# ============================================================================
# Backup Configuration (discriminated by ``type``)
# ============================================================================


class PostgresBackupConfig(BaseModel):
    """PostgreSQL backup via pg_dumpall -- hot backup safe."""

    type: Literal["postgres"] = "postgres"
    container: ContainerLocation = Field(default_factory=ServiceContainer)
    database: str = Field(min_length=1)
    user: str = Field(min_length=1)


class SqliteStopBackupConfig(BaseModel):
    """SQLite backup that stops the container first -- requires force."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["sqlite-stop"] = "sqlite-stop"
    container: ContainerNameField                   # unit is "<container>.service"
    sqlite_path: str = Field(alias="sqlitePath")    # relative to data_dir
    include_files: list[str] = Field(default_factory=list, alias="includeFiles")
    exclude: list[str] = Field(default_factory=list)


class FreshRssCliBackupConfig(BaseModel):
    """FreshRSS backup via its in-container PHP CLI -- hot backup safe."""

    type: Literal["freshrss-cli"] = "freshrss-cli"
    container: ContainerNameField
    exclude: list[str] = Field(default_factory=list)


BackupConfig = Annotated[
    PostgresBackupConfig | SqliteStopBackupConfig | FreshRssCliBackupConfig,
    Field(discriminator="type"),
]


# ============================================================================
# Service Profiles
# ============================================================================


class TimeoutSettings(BaseModel):
    """Per-call timeouts (seconds) for remote commands."""

    backup: float = Field(default=600.0, gt=0)
    restore: float = Field(default=1800.0, gt=0)


class ServiceProfile(BaseModel):
    """A managed service as declared in divban.toml."""

    data_dir: AbsolutePathField
    user: UsernameField
    uid: UserIdField
    backup: BackupConfig


class DivbanConfig(BaseModel):
    """Complete configuration from divban.toml."""

    services: dict[ServiceNameField, ServiceProfile] = Field(default_factory=dict)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
