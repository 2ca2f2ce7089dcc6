"""YAML migration artifacts.

A generated migration is written as ``V<version>__<slug>.yaml``::

    version: '20240101120000'
    description: add email to users
    dialect: mysql
    generated_at: '2024-01-01T12:00:00'
    up:
    - ALTER TABLE users ADD COLUMN email VARCHAR(255)
    down:
    - ALTER TABLE users DROP COLUMN email

Files are validated with the ``MigrationFile`` pydantic model on load.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ormsync.core.errors import InvalidConfigError
from ormsync.core.logging import get_logger
from ormsync.migrations.models import Migration

logger = get_logger(__name__)

FILE_PATTERN = re.compile(r"^V(?P<version>\d+)__(?P<slug>[\w-]*)\.ya?ml$")
_VERSION = re.compile(r"^\d+$")


class MigrationFile(BaseModel):
    """On-disk form of a migration."""

    model_config = ConfigDict(extra="forbid")

    version: str
    description: str = ""
    dialect: str | None = None
    generated_at: datetime | None = None
    up: list[str] = Field(default_factory=list)
    down: list[str] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: Any) -> str:
        # unquoted versions load as int
        value = str(v)
        if not _VERSION.match(value):
            raise ValueError(f"version must be digits, got {value!r}")
        return value

    @classmethod
    def from_migration(cls, migration: Migration, *, dialect: str | None = None) -> MigrationFile:
        return cls(
            version=migration.version,
            description=migration.description,
            dialect=dialect,
            generated_at=datetime.now().replace(microsecond=0),
            up=list(migration.up_statements),
            down=list(migration.down_statements),
        )

    def to_migration(self) -> Migration:
        return Migration(self.version, up=self.up, down=self.down, description=self.description)

    def to_yaml(self) -> str:
        data = self.model_dump(mode="json")
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, width=1000)

    @classmethod
    def from_yaml(cls, content: str) -> MigrationFile:
        """Parse and validate YAML content.

        Raises:
            InvalidConfigError: Not YAML, or not a migration document.
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise InvalidConfigError("migration", None, f"Invalid YAML: {e}") from e
        if not isinstance(data, dict):
            raise InvalidConfigError("migration", None, "Migration file must be a mapping")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidConfigError("migration", None, f"Invalid migration: {e}") from e

    @classmethod
    def from_yaml_file(cls, path: str | Path) -> MigrationFile:
        path = Path(path)
        try:
            return cls.from_yaml(path.read_text(encoding="utf-8"))
        except InvalidConfigError as e:
            raise e.with_context(path=str(path))


def slugify(text: str) -> str:
    slug = re.sub(r"[^0-9a-zA-Z]+", "_", text).strip("_").lower()
    return slug[:60] or "migration"


def migration_filename(version: str, description: str) -> str:
    return f"V{version}__{slugify(description)}.yaml"


def existing_versions(directory: str | Path) -> set[str]:
    directory = Path(directory)
    if not directory.is_dir():
        return set()
    versions = set()
    for path in directory.iterdir():
        match = FILE_PATTERN.match(path.name)
        if match:
            versions.add(match.group("version"))
    return versions


def write_migration(migration: Migration, directory: str | Path, *, dialect: str | None = None) -> Path:
    """Write ``migration`` into ``directory`` (created if needed) and return the path.

    Raises:
        InvalidConfigError: A file for the same version already exists.
    """
    directory = Path(directory)
    path = directory / migration_filename(migration.version, migration.description)
    if path.exists() or migration.version in existing_versions(directory):
        raise InvalidConfigError(
            "version", migration.version, f"Migration file already exists for version {migration.version}: {path}"
        ).with_context(path=str(path))
    directory.mkdir(parents=True, exist_ok=True)
    path.write_text(MigrationFile.from_migration(migration, dialect=dialect).to_yaml(), encoding="utf-8")
    logger.info("migration.written", version=migration.version, path=str(path))
    return path


def load_migrations(directory: str | Path) -> list[Migration]:
    """Load every ``V*.yaml`` artifact in ``directory``, sorted by version.

    Raises:
        InvalidConfigError: A file is malformed, its name and content
            disagree on the version, or two files share a version.
    """
    directory = Path(directory)
    if not directory.is_dir():
        return []

    migrations: dict[str, Migration] = {}
    for path in sorted(directory.iterdir()):
        match = FILE_PATTERN.match(path.name)
        if not match:
            continue
        document = MigrationFile.from_yaml_file(path)
        if document.version != match.group("version"):
            raise InvalidConfigError(
                "version", document.version, f"{path.name} declares version {document.version}"
            )
        if document.version in migrations:
            raise InvalidConfigError("version", document.version, f"Duplicate migration version in {path.name}")
        migrations[document.version] = document.to_migration()

    ordered = [migrations[v] for v in sorted(migrations, key=int)]
    logger.debug("migration.loaded", directory=str(directory), count=len(ordered))
    return ordered


__all__ = [
    "MigrationFile",
    "FILE_PATTERN",
    "slugify",
    "migration_filename",
    "existing_versions",
    "write_migration",
    "load_migrations",
]
