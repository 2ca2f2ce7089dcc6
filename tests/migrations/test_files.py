"""Tests for YAML migration artifacts."""

from __future__ import annotations

from pathlib import Path

import pytest

from ormsync.core.errors import InvalidConfigError
from ormsync.migrations.files import (
    MigrationFile,
    existing_versions,
    load_migrations,
    migration_filename,
    slugify,
    write_migration,
)
from ormsync.migrations.models import Migration


def artifact(directory: Path, name: str, body: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(body)
    return path


class TestNaming:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("add email to users", "add_email_to_users"),
            ("Sync users, teams!", "sync_users_teams"),
            ("", "migration"),
            ("--", "migration"),
        ],
    )
    def test_slugify(self, text, expected):
        assert slugify(text) == expected

    def test_filename(self):
        assert migration_filename("20240101120000", "add email") == "V20240101120000__add_email.yaml"


class TestMigrationFile:
    def test_unquoted_version_coerced(self):
        parsed = MigrationFile.from_yaml("version: 20240101120000\nup: [SELECT 1]\n")
        assert parsed.version == "20240101120000"
        assert parsed.down == []

    def test_non_numeric_version_rejected(self):
        with pytest.raises(InvalidConfigError, match="version must be digits"):
            MigrationFile.from_yaml("version: v1\n")

    def test_unknown_keys_rejected(self):
        with pytest.raises(InvalidConfigError):
            MigrationFile.from_yaml("version: '1'\nsteps: []\n")

    def test_not_a_mapping(self):
        with pytest.raises(InvalidConfigError, match="must be a mapping"):
            MigrationFile.from_yaml("- a\n- b\n")

    def test_invalid_yaml(self):
        with pytest.raises(InvalidConfigError, match="Invalid YAML"):
            MigrationFile.from_yaml("version: [unclosed\n")

    def test_file_error_carries_path(self, tmp_path):
        path = artifact(tmp_path, "V1__x.yaml", "nope: 1\n")
        with pytest.raises(InvalidConfigError) as exc_info:
            MigrationFile.from_yaml_file(path)
        assert exc_info.value.context.metadata["path"] == str(path)

    def test_yaml_keeps_field_order(self):
        text = MigrationFile(version="1", description="d", up=["A"], down=["B"]).to_yaml()
        assert [line.split(":")[0] for line in text.splitlines() if not line.startswith("-")] == [
            "version",
            "description",
            "dialect",
            "generated_at",
            "up",
            "down",
        ]


class TestWriteAndLoad:
    def test_written_file_loads_back(self, tmp_path):
        migration = Migration(
            "20240101120000",
            up=["ALTER TABLE users ADD COLUMN email VARCHAR(255)"],
            down=["ALTER TABLE users DROP COLUMN email"],
            description="add email",
        )
        path = write_migration(migration, tmp_path / "migrations", dialect="mysql")

        assert path.name == "V20240101120000__add_email.yaml"
        (loaded,) = load_migrations(tmp_path / "migrations")
        assert loaded.version == migration.version
        assert loaded.description == "add email"
        assert loaded.up_statements == migration.up_statements
        assert loaded.down_statements == migration.down_statements
        assert MigrationFile.from_yaml_file(path).dialect == "mysql"

    def test_refuses_to_overwrite(self, tmp_path):
        migration = Migration("1", up=["SELECT 1"], description="x")
        write_migration(migration, tmp_path)
        with pytest.raises(InvalidConfigError, match="already exists") as exc_info:
            write_migration(migration, tmp_path)
        assert exc_info.value.key == "version"

    def test_refuses_same_version_under_another_name(self, tmp_path):
        write_migration(Migration("1", up=["SELECT 1"], description="first"), tmp_path)
        with pytest.raises(InvalidConfigError, match="already exists"):
            write_migration(Migration("1", up=["SELECT 2"], description="second"), tmp_path)
        assert [p.name for p in tmp_path.iterdir()] == ["V1__first.yaml"]

    def test_loaded_in_numeric_order(self, tmp_path):
        artifact(tmp_path, "V10__ten.yaml", "version: '10'\n")
        artifact(tmp_path, "V9__nine.yml", "version: '9'\n")
        artifact(tmp_path, "README.md", "not a migration")
        assert [m.version for m in load_migrations(tmp_path)] == ["9", "10"]
        assert existing_versions(tmp_path) == {"9", "10"}

    def test_missing_directory(self, tmp_path):
        assert load_migrations(tmp_path / "absent") == []
        assert existing_versions(tmp_path / "absent") == set()

    def test_name_and_content_disagree(self, tmp_path):
        artifact(tmp_path, "V1__one.yaml", "version: '2'\n")
        with pytest.raises(InvalidConfigError, match="declares version 2"):
            load_migrations(tmp_path)

    def test_duplicate_versions(self, tmp_path):
        artifact(tmp_path, "V1__one.yaml", "version: '1'\n")
        artifact(tmp_path, "V1__again.yaml", "version: '1'\n")
        with pytest.raises(InvalidConfigError, match="Duplicate"):
            load_migrations(tmp_path)
