"""
Entity descriptor model.

Callers declare entity shapes through ``EntityBuilder`` and register them
in an ``EntityRegistry``. Descriptors are frozen once built and are the
only input the ordering, diff and DDL layers read.

Manifesto:
    Declarations are validated once, at registration, so every later
    stage can assume exactly one identity field, complete relationship
    metadata and safe identifiers. A missing join column is a
    ``DescriptorError`` at startup, never a half-applied migration.

Architecture:
    ::

        EntityBuilder("Post")
            .identity()
            .column("title", FieldType.STRING, length=200, nullable=False)
            .many_to_one("author_id", "User")
            .many_to_many("Tag")
            .timestamps()
            .build()  ──► EntityDescriptor (frozen)
                              │
                              ▼
                       EntityRegistry.register()
                         (validation, insertion order)

Examples:
    >>> registry = EntityRegistry()
    >>> user = registry.register(
    ...     EntityBuilder("User", table="users")
    ...     .identity()
    ...     .column("username", FieldType.STRING, length=20, nullable=False, unique=True)
    ... )
    >>> [c.name for c in user.columns]
    ['id', 'username']
    >>> snake_case("BlogPost")
    'blog_post'

Tags:
    entity, descriptor, builder, registry, validation, ormsync

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Union

from ormsync.core.errors import DescriptorError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")

DEFAULT_STRING_LENGTH = 255


class FieldType(str, Enum):
    """Semantic column types, mapped per dialect by the type mapper."""

    STRING = "string"
    TEXT = "text"
    TINYINT = "tinyint"
    SMALLINT = "smallint"
    INTEGER = "integer"
    BIGINT = "bigint"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    TIMESTAMP = "timestamp"
    YEAR = "year"
    BINARY = "binary"
    JSON = "json"
    UUID = "uuid"
    ENUM = "enum"


def snake_case(name: str) -> str:
    """``BlogPost`` -> ``blog_post``."""
    return _CAMEL_BOUNDARY.sub(r"\1_\2", name).lower()


# ── Field kinds ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Identity:
    """Primary key column. Exactly one per entity."""

    name: str = "id"
    field_type: FieldType = FieldType.BIGINT
    auto_increment: bool = True


@dataclass(frozen=True)
class Column:
    """Plain persisted attribute.

    ``raw_type`` replaces the mapped type verbatim (an explicit column
    definition); such columns are created and dropped but never altered.
    """

    name: str
    field_type: FieldType = FieldType.STRING
    length: int = DEFAULT_STRING_LENGTH
    precision: int = 0
    scale: int = 0
    nullable: bool = True
    unique: bool = False
    raw_type: str | None = None


@dataclass(frozen=True)
class ManyToOneRef:
    """Foreign key column ``join_column`` referencing ``target``."""

    join_column: str
    target: str
    referenced_column: str = "id"
    nullable: bool = True


@dataclass(frozen=True)
class OneToManyRef:
    """Inverse side of a ``ManyToOneRef``; owns no column."""

    mapped_by: str
    target: str


@dataclass(frozen=True)
class ManyToManyRef:
    """Relation through a join table; names default from both tables."""

    target: str
    join_table: str | None = None
    join_column: str | None = None
    inverse_join_column: str | None = None


@dataclass(frozen=True)
class CreatedTimestamp:
    name: str = "created_at"


@dataclass(frozen=True)
class UpdatedTimestamp:
    name: str = "updated_at"


FieldDescriptor = Union[
    Identity,
    Column,
    ManyToOneRef,
    OneToManyRef,
    ManyToManyRef,
    CreatedTimestamp,
    UpdatedTimestamp,
]


@dataclass(frozen=True)
class JoinTable:
    """A resolved many-to-many join table."""

    name: str
    owner_table: str
    owner_column: str
    owner_key: str
    target_table: str
    target_column: str
    target_key: str
    target_registered: bool
    owner_type: FieldType = FieldType.BIGINT
    target_type: FieldType = FieldType.BIGINT


# ── Entity descriptor ────────────────────────────────────────────────────


@dataclass(frozen=True)
class EntityDescriptor:
    """Immutable declared shape of one entity."""

    name: str
    table_name: str
    fields: tuple[FieldDescriptor, ...]

    @property
    def identity(self) -> Identity:
        for f in self.fields:
            if isinstance(f, Identity):
                return f
        raise DescriptorError(self.name, "no identity field")

    @property
    def columns(self) -> list[Column | Identity | ManyToOneRef]:
        """Fields that materialize as columns, in declaration order.

        Timestamps are returned as ``Column(DATETIME)``.
        """
        result: list[Column | Identity | ManyToOneRef] = []
        for f in self.fields:
            if isinstance(f, (Identity, Column, ManyToOneRef)):
                result.append(f)
            elif isinstance(f, (CreatedTimestamp, UpdatedTimestamp)):
                result.append(Column(f.name, FieldType.DATETIME))
        return result

    @property
    def many_to_one(self) -> list[ManyToOneRef]:
        return [f for f in self.fields if isinstance(f, ManyToOneRef)]

    @property
    def one_to_many(self) -> list[OneToManyRef]:
        return [f for f in self.fields if isinstance(f, OneToManyRef)]

    @property
    def many_to_many(self) -> list[ManyToManyRef]:
        return [f for f in self.fields if isinstance(f, ManyToManyRef)]

    def column_names(self) -> list[str]:
        return [_column_name(c) for c in self.columns]


def _column_name(field: Column | Identity | ManyToOneRef) -> str:
    return field.join_column if isinstance(field, ManyToOneRef) else field.name


# ── Builder ──────────────────────────────────────────────────────────────


class EntityBuilder:
    """Fluent builder for :class:`EntityDescriptor`.

    Validation happens in :meth:`build`.
    """

    def __init__(self, name: str, table: str | None = None):
        self._name = name
        self._table = table
        self._fields: list[FieldDescriptor] = []

    def identity(
        self,
        name: str = "id",
        field_type: FieldType = FieldType.BIGINT,
        *,
        auto_increment: bool = True,
    ) -> EntityBuilder:
        self._fields.append(Identity(name, field_type, auto_increment))
        return self

    def column(
        self,
        name: str,
        field_type: FieldType = FieldType.STRING,
        *,
        length: int = DEFAULT_STRING_LENGTH,
        precision: int = 0,
        scale: int = 0,
        nullable: bool = True,
        unique: bool = False,
        raw_type: str | None = None,
    ) -> EntityBuilder:
        self._fields.append(
            Column(name, field_type, length, precision, scale, nullable, unique, raw_type)
        )
        return self

    def many_to_one(
        self,
        join_column: str,
        target: str,
        *,
        referenced_column: str = "id",
        nullable: bool = True,
    ) -> EntityBuilder:
        self._fields.append(ManyToOneRef(join_column, target, referenced_column, nullable))
        return self

    def one_to_many(self, target: str, mapped_by: str) -> EntityBuilder:
        self._fields.append(OneToManyRef(mapped_by, target))
        return self

    def many_to_many(
        self,
        target: str,
        *,
        join_table: str | None = None,
        join_column: str | None = None,
        inverse_join_column: str | None = None,
    ) -> EntityBuilder:
        self._fields.append(ManyToManyRef(target, join_table, join_column, inverse_join_column))
        return self

    def timestamps(self, created: str = "created_at", updated: str = "updated_at") -> EntityBuilder:
        self._fields.append(CreatedTimestamp(created))
        self._fields.append(UpdatedTimestamp(updated))
        return self

    def build(self) -> EntityDescriptor:
        descriptor = EntityDescriptor(
            name=self._name,
            table_name=self._table or snake_case(self._name),
            fields=tuple(self._fields),
        )
        validate_descriptor(descriptor)
        return descriptor


def _check_identifier(entity: str, what: str, value: str | None) -> None:
    if not value or not _IDENTIFIER.match(value):
        raise DescriptorError(entity, f"invalid {what} {value!r}", field=what, value=value)


def validate_descriptor(descriptor: EntityDescriptor) -> None:
    """Raise :class:`DescriptorError` unless ``descriptor`` is complete and safe."""
    entity = descriptor.name
    _check_identifier(entity, "entity name", entity)
    _check_identifier(entity, "table name", descriptor.table_name)

    identities = [f for f in descriptor.fields if isinstance(f, Identity)]
    if len(identities) != 1:
        raise DescriptorError(
            entity,
            f"expected exactly one identity field, found {len(identities)}",
            constraint="single_identity",
        )

    for f in descriptor.fields:
        if isinstance(f, (Identity, Column, CreatedTimestamp, UpdatedTimestamp)):
            _check_identifier(entity, "column name", f.name)
        if isinstance(f, Column):
            if f.length <= 0:
                raise DescriptorError(entity, f"column {f.name!r} has non-positive length", field=f.name)
            if f.scale > f.precision > 0:
                raise DescriptorError(entity, f"column {f.name!r} has scale greater than precision", field=f.name)
        elif isinstance(f, ManyToOneRef):
            if not f.join_column:
                raise DescriptorError(
                    entity, f"many-to-one reference to {f.target!r} has no join column",
                    constraint="join_column_required",
                )
            _check_identifier(entity, "join column", f.join_column)
            _check_identifier(entity, "reference target", f.target)
            _check_identifier(entity, "referenced column", f.referenced_column)
        elif isinstance(f, OneToManyRef):
            _check_identifier(entity, "reference target", f.target)
            if not f.mapped_by:
                raise DescriptorError(
                    entity, f"one-to-many reference to {f.target!r} has no mapped_by",
                    constraint="mapped_by_required",
                )
        elif isinstance(f, ManyToManyRef):
            _check_identifier(entity, "reference target", f.target)
            for what, value in (
                ("join table", f.join_table),
                ("join column", f.join_column),
                ("inverse join column", f.inverse_join_column),
            ):
                if value is not None:
                    _check_identifier(entity, what, value)

    seen: set[str] = set()
    for name in descriptor.column_names():
        key = name.lower()
        if key in seen:
            raise DescriptorError(entity, f"duplicate column {name!r}", field=name)
        seen.add(key)


# ── Registry ─────────────────────────────────────────────────────────────


class EntityRegistry:
    """Insertion-ordered set of validated entity descriptors."""

    def __init__(self) -> None:
        self._entities: dict[str, EntityDescriptor] = {}

    def register(self, entity: EntityDescriptor | EntityBuilder) -> EntityDescriptor:
        descriptor = entity.build() if isinstance(entity, EntityBuilder) else entity
        validate_descriptor(descriptor)
        if descriptor.name in self._entities:
            raise DescriptorError(descriptor.name, "already registered")
        for other in self._entities.values():
            if other.table_name.lower() == descriptor.table_name.lower():
                raise DescriptorError(
                    descriptor.name, f"table {descriptor.table_name!r} already mapped by {other.name!r}"
                )
        self._entities[descriptor.name] = descriptor
        return descriptor

    def get(self, name: str) -> EntityDescriptor | None:
        return self._entities.get(name)

    def __getitem__(self, name: str) -> EntityDescriptor:
        return self._entities[name]

    def __contains__(self, name: object) -> bool:
        return name in self._entities

    def __iter__(self) -> Iterator[EntityDescriptor]:
        return iter(list(self._entities.values()))

    def __len__(self) -> int:
        return len(self._entities)

    def table_for(self, entity_name: str) -> str:
        """Table name of a registered entity, or its snake_case form."""
        target = self._entities.get(entity_name)
        return target.table_name if target else snake_case(entity_name)

    def key_for(self, entity_name: str) -> str:
        target = self._entities.get(entity_name)
        return target.identity.name if target else "id"

    def key_type_for(self, entity_name: str) -> FieldType:
        target = self._entities.get(entity_name)
        return target.identity.field_type if target else FieldType.BIGINT

    def join_table(self, owner: EntityDescriptor, ref: ManyToManyRef) -> JoinTable:
        """Resolve join-table naming for ``ref`` declared on ``owner``."""
        target_table = self.table_for(ref.target)
        owner_column = ref.join_column or f"{snake_case(owner.name)}_id"
        target_column = ref.inverse_join_column or f"{snake_case(ref.target)}_id"
        if owner_column.lower() == target_column.lower():
            target_column = f"{target_column}_inverse" if ref.inverse_join_column is None else target_column
        return JoinTable(
            name=ref.join_table or f"{owner.table_name}_{target_table}",
            owner_table=owner.table_name,
            owner_column=owner_column,
            owner_key=owner.identity.name,
            target_table=target_table,
            target_column=target_column,
            target_key=self.key_for(ref.target),
            target_registered=ref.target in self._entities,
            owner_type=owner.identity.field_type,
            target_type=self.key_type_for(ref.target),
        )


__all__ = [
    "FieldType",
    "DEFAULT_STRING_LENGTH",
    "snake_case",
    "Identity",
    "Column",
    "ManyToOneRef",
    "OneToManyRef",
    "ManyToManyRef",
    "CreatedTimestamp",
    "UpdatedTimestamp",
    "FieldDescriptor",
    "JoinTable",
    "EntityDescriptor",
    "EntityBuilder",
    "EntityRegistry",
    "validate_descriptor",
]
