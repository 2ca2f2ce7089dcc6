"""ormsync schema -- entity descriptors, ordering, type mapping, diffing and DDL.

Architecture::

    descriptors.py     EntityBuilder, EntityDescriptor, EntityRegistry
    graph.py           dependency_order (many-to-one DFS, cycle reporting)
    types.py           FieldType -> dialect column type, type comparison
    operations.py      ColumnInfo + AddColumn/ModifyColumn/DropColumn/...
    introspect.py      CatalogReader per backend
    diff.py            SchemaDiffEngine + SchemaWarning
    ddl.py             DdlBuilder
    sync.py            SchemaSynchronizer (apply-now / generate-only)
"""

from ormsync.schema.ddl import DdlBuilder
from ormsync.schema.descriptors import EntityBuilder, EntityDescriptor, EntityRegistry, FieldType
from ormsync.schema.diff import DiffResult, SchemaDiffEngine, SchemaWarning, WarningKind
from ormsync.schema.graph import OrderResult, dependency_order
from ormsync.schema.operations import (
    AddColumn,
    ColumnInfo,
    CreateJoinTable,
    CreateTable,
    DropColumn,
    DropTable,
    ModifyColumn,
)
from ormsync.schema.sync import SchemaSynchronizer, SyncPlan, SyncResult
from ormsync.schema.types import DialectTypeMapper, map_column_type

__all__ = [
    "AddColumn",
    "ColumnInfo",
    "CreateJoinTable",
    "CreateTable",
    "DdlBuilder",
    "DialectTypeMapper",
    "DiffResult",
    "DropColumn",
    "DropTable",
    "EntityBuilder",
    "EntityDescriptor",
    "EntityRegistry",
    "FieldType",
    "ModifyColumn",
    "OrderResult",
    "SchemaDiffEngine",
    "SchemaSynchronizer",
    "SchemaWarning",
    "SyncPlan",
    "SyncResult",
    "WarningKind",
    "dependency_order",
    "map_column_type",
]
