"""Tests for backup file helpers and backup models."""

import os
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from divban.backup.files import (
    collect_files_with_content,
    create_backup_timestamp,
    is_unsafe_filename,
    list_backup_files,
    validate_filename,
    write_validated_file,
    write_validated_files,
)
from divban.backup.models import ArchiveMetadata, CollectedFiles, create_backup_metadata
from divban.errors import BackupError, ErrorCode


class TestBackupTimestamp:
    def test_format(self):
        ts = create_backup_timestamp(datetime(2026, 1, 5, 10, 11, 12, 123456, tzinfo=timezone.utc))
        assert ts == "2026-01-05T10-11-12-123Z"

    def test_filename_safe(self):
        ts = create_backup_timestamp()
        assert ":" not in ts
        assert "." not in ts
        assert ts.endswith("Z")


# ------------------------------------------------------------------
# Collecting
# ------------------------------------------------------------------


class TestCollectFilesWithContent:
    @pytest.fixture
    def data_dir(self, tmp_path):
        (tmp_path / "config.yml").write_text("a: 1")
        (tmp_path / "user-files").mkdir()
        (tmp_path / "user-files" / "f1.bin").write_bytes(b"\x00\xff")
        (tmp_path / "backups").mkdir()
        (tmp_path / "backups" / "old.tar.gz").write_bytes(b"old")
        (tmp_path / "cache").mkdir()
        (tmp_path / "cache" / "x").write_text("x")
        return tmp_path

    async def test_collects_relative_sorted(self, data_dir):
        collected = await collect_files_with_content(str(data_dir))
        assert collected.file_list == [
            "backups/old.tar.gz",
            "cache/x",
            "config.yml",
            "user-files/f1.bin",
        ]
        assert collected.files["user-files/f1.bin"] == b"\x00\xff"

    async def test_exclusions_are_prefixes(self, data_dir):
        collected = await collect_files_with_content(
            str(data_dir), ["backups/", "backups", "cache/"]
        )
        assert collected.file_list == ["config.yml", "user-files/f1.bin"]


class TestCollectedFiles:
    def test_names_must_match(self):
        with pytest.raises(ValidationError):
            CollectedFiles(files={"a": "1"}, file_list=["a", "b"])

    def test_no_duplicates(self):
        with pytest.raises(ValidationError):
            CollectedFiles(files={"a": "1"}, file_list=["a", "a"])


class TestArchiveMetadata:
    def test_json_aliases(self):
        meta = create_backup_metadata("immich", ["database.sql"]).to_json_dict()
        assert meta["producer"] == "divban"
        assert meta["service"] == "immich"
        assert meta["schemaVersion"] == "1.0.0"
        assert meta["fileList"] == ["database.sql"]
        assert "producerVersion" in meta
        assert "timestamp" in meta

    def test_parse_from_aliases(self):
        meta = ArchiveMetadata.model_validate(
            {"producer": "divban", "service": "actual", "schemaVersion": "1.0.0", "fileList": []}
        )
        assert meta.schema_version == "1.0.0"


# ------------------------------------------------------------------
# Validation and writing
# ------------------------------------------------------------------


class TestFilenameValidation:
    @pytest.mark.parametrize(
        "name",
        [
            "../../etc/passwd",
            "/etc/passwd",
            "a/../../b",
            "..",
            "a\x00b",
            "",
            "dir\\..\\x",
        ],
    )
    def test_unsafe(self, name):
        assert is_unsafe_filename(name)
        with pytest.raises(BackupError) as exc_info:
            validate_filename(name)
        assert exc_info.value.code == ErrorCode.RESTORE_FAILED
        assert "Potential path traversal detected" in str(exc_info.value)

    @pytest.mark.parametrize(
        "name", ["database.sql", "user-files/a.txt", "notes..txt", "a/..b/c", ".hidden"]
    )
    def test_safe(self, name):
        assert not is_unsafe_filename(name)
        validate_filename(name)


class TestWriteValidatedFiles:
    async def test_writes_nested(self, tmp_path):
        await write_validated_file(str(tmp_path), "user-files/deep/a.txt", b"hi")
        assert (tmp_path / "user-files" / "deep" / "a.txt").read_bytes() == b"hi"

    async def test_writes_top_level(self, tmp_path):
        await write_validated_file(str(tmp_path), "a.txt", b"hi")
        assert (tmp_path / "a.txt").read_bytes() == b"hi"

    async def test_skip_and_order(self, tmp_path):
        written = await write_validated_files(
            str(tmp_path),
            {"meta.json": b"{}", "b.txt": b"b", "a.txt": b"a"},
            skip={"meta.json"},
        )
        assert written == ["b.txt", "a.txt"]
        assert not (tmp_path / "meta.json").exists()

    async def test_one_unsafe_name_writes_nothing(self, tmp_path):
        data_dir = tmp_path / "data"
        data_dir.mkdir()
        with pytest.raises(BackupError):
            await write_validated_files(
                str(data_dir), {"ok.txt": b"ok", "../../etc/passwd": b"root"}
            )
        assert list(data_dir.iterdir()) == []
        assert not (tmp_path / "etc").exists()


class TestListBackupFiles:
    def test_newest_first(self, tmp_path):
        for i, name in enumerate(["a.tar.gz", "b.tar.zst", "c.tar.gz"]):
            path = tmp_path / name
            path.write_bytes(b"x")
            os.utime(path, (1000 + i, 1000 + i))
        (tmp_path / "notes.txt").write_text("skip")

        assert list_backup_files(str(tmp_path)) == ["c.tar.gz", "b.tar.zst", "a.tar.gz"]

    def test_missing_directory(self, tmp_path):
        assert list_backup_files(str(tmp_path / "backups")) == []
