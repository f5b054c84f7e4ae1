"""Tests for config models and the TOML loader."""

import textwrap

import pytest
from pydantic import TypeAdapter, ValidationError

from divban.config.loader import (
    CONFIG_ENV_VAR,
    default_config_path,
    get_service_profile,
    load_divban_config,
)
from divban.config.models import (
    BackupConfig,
    FreshRssCliBackupConfig,
    PostgresBackupConfig,
    SeparateContainer,
    ServiceContainer,
    SqliteStopBackupConfig,
)
from divban.errors import ConfigError, ErrorCode

SAMPLE_TOML = textwrap.dedent(
    """
    [timeouts]
    backup = 120

    [services.immich]
    data_dir = "/srv/immich"
    user = "immich"
    uid = 1100
    backup = { type = "postgres", container = { kind = "separate", name = "immich-postgres" }, database = "immich", user = "immich" }

    [services.actual]
    data_dir = "/srv/actual"
    user = "actual"
    uid = 1101
    backup = { type = "sqlite-stop", container = "actual", sqlitePath = "server-files/account.sqlite", includeFiles = ["user-files/"] }

    [services.freshrss]
    data_dir = "/srv/freshrss"
    user = "freshrss"
    uid = 1102
    backup = { type = "freshrss-cli", container = "freshrss", exclude = ["cache/"] }
    """
)

backup_config_adapter = TypeAdapter(BackupConfig)


# ------------------------------------------------------------------
# Models
# ------------------------------------------------------------------


class TestBackupConfigModels:
    """Discriminated unions pick the right variant."""

    def test_postgres_default_container(self):
        config = backup_config_adapter.validate_python(
            {"type": "postgres", "database": "immich", "user": "immich"}
        )
        assert isinstance(config, PostgresBackupConfig)
        assert isinstance(config.container, ServiceContainer)

    def test_postgres_separate_container(self):
        config = backup_config_adapter.validate_python(
            {
                "type": "postgres",
                "container": {"kind": "separate", "name": "immich-postgres"},
                "database": "immich",
                "user": "immich",
            }
        )
        assert config.container == SeparateContainer(name="immich-postgres")

    def test_postgres_empty_database_rejected(self):
        with pytest.raises(ValidationError):
            backup_config_adapter.validate_python(
                {"type": "postgres", "database": "", "user": "immich"}
            )

    def test_sqlite_aliases_and_snake_case(self):
        by_alias = backup_config_adapter.validate_python(
            {"type": "sqlite-stop", "container": "actual", "sqlitePath": "db.sqlite"}
        )
        by_name = SqliteStopBackupConfig(container="actual", sqlite_path="db.sqlite")
        assert isinstance(by_alias, SqliteStopBackupConfig)
        assert by_alias.sqlite_path == by_name.sqlite_path == "db.sqlite"
        assert by_alias.include_files == []

    def test_freshrss(self):
        config = backup_config_adapter.validate_python(
            {"type": "freshrss-cli", "container": "freshrss"}
        )
        assert isinstance(config, FreshRssCliBackupConfig)
        assert config.exclude == []

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            backup_config_adapter.validate_python({"type": "mysql", "container": "x"})


# ------------------------------------------------------------------
# Loader
# ------------------------------------------------------------------


class TestLoadDivbanConfig:
    """load_divban_config maps every failure to a ConfigError code."""

    def test_loads_services(self, tmp_path):
        path = tmp_path / "divban.toml"
        path.write_text(SAMPLE_TOML)

        config = load_divban_config(path)

        assert set(config.services) == {"immich", "actual", "freshrss"}
        assert config.timeouts.backup == 120
        assert config.timeouts.restore == 1800
        assert config.services["actual"].backup.include_files == ["user-files/"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError) as exc_info:
            load_divban_config(tmp_path / "nope.toml")
        assert exc_info.value.code == ErrorCode.CONFIG_NOT_FOUND

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "divban.toml"
        path.write_text("[services\n")
        with pytest.raises(ConfigError) as exc_info:
            load_divban_config(path)
        assert exc_info.value.code == ErrorCode.CONFIG_PARSE_ERROR

    def test_invalid_model(self, tmp_path):
        path = tmp_path / "divban.toml"
        path.write_text(
            '[services.immich]\ndata_dir = "relative"\nuser = "immich"\nuid = 1100\n'
            'backup = { type = "postgres", database = "immich", user = "immich" }\n'
        )
        with pytest.raises(ConfigError) as exc_info:
            load_divban_config(path)
        assert exc_info.value.code == ErrorCode.CONFIG_VALIDATION_ERROR

    def test_env_var_path(self, monkeypatch, tmp_path):
        path = tmp_path / "divban.toml"
        path.write_text(SAMPLE_TOML)
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert default_config_path() == path
        assert "immich" in load_divban_config().services


class TestGetServiceProfile:
    def test_unknown_service(self, tmp_path):
        path = tmp_path / "divban.toml"
        path.write_text(SAMPLE_TOML)
        config = load_divban_config(path)

        with pytest.raises(ConfigError, match="Service 'nextcloud' not found"):
            get_service_profile(config, "nextcloud")

    def test_known_service(self, tmp_path):
        path = tmp_path / "divban.toml"
        path.write_text(SAMPLE_TOML)
        config = load_divban_config(path)

        assert get_service_profile(config, "immich").uid == 1100
