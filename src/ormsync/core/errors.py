"""
Structured error types for ormsync.

Provides a typed hierarchy of errors carrying the metadata needed to decide
whether a failure is retryable, which subsystem raised it, and which table,
column, statement or migration version was involved.

Schema synchronization crosses three failure domains: the caller's entity
declarations, the connection pool, and the live database. A bare driver
exception loses which of those went wrong. OrmSyncError and its subclasses
carry:
- **Category:** Which domain failed (pool, schema, migration, config, ...)
- **Retryable:** Whether the same call may succeed later (pool exhaustion)
- **Context:** Dialect, table, column, statement and migration version
- **Cause:** The underlying driver exception, chained for tracebacks

Manifesto:
    - **Typed Error Hierarchy:** One error type per failure domain
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** The failing statement travels with the error
    - **Error Chaining:** Driver errors are preserved as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      OrmSyncError                                │
        │  (category, retryable, retry_after, context, cause)             │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  TransientError          ValidationError      ConfigError       │
        │  (retryable=True)        (VALIDATION)         (CONFIG)          │
        │       │                       │                   │              │
        │  PoolExhaustedError      DescriptorError      InvalidConfig     │
        │  DatabaseConnectionError                                        │
        │  ConnectionInvalidError                                         │
        │                                                                  │
        │  PoolError               SchemaError          DatabaseError     │
        │  (POOL)                  (SCHEMA)             (DATABASE)        │
        │       │                       │                   │              │
        │  PoolClosedError         DependencyCycleError StatementError    │
        │                          UnsupportedOperation                   │
        │                                                                  │
        │  MigrationError (MIGRATION)                                     │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    Wrapping a driver failure with the statement that caused it:

    >>> try:
    ...     raise RuntimeError("syntax error near ADD")
    ... except RuntimeError as e:
    ...     err = StatementError("ALTER TABLE users ADD COLUMN email", cause=e)
    >>> err.context.statement
    'ALTER TABLE users ADD COLUMN email'

    Pool exhaustion is retryable:

    >>> PoolExhaustedError(timeout=30.0).retryable
    True

Guardrails:
    ❌ DON'T: Raise bare Exception from pool, diff or migration code
    ✅ DO: Use the subclass for the failing domain

    ❌ DON'T: Swallow the driver exception
    ✅ DO: Pass it as cause= so tracebacks show the root error

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context,
    ormsync, schema-sync, migrations

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Error categories for classification and routing.

    Categories are grouped by their typical retry behavior:
    - **Infrastructure (sometimes transient):** DATABASE, POOL
    - **Declarations (never retryable):** VALIDATION, SCHEMA, CONFIG
    - **Execution:** MIGRATION
    - **Internal errors:** INTERNAL, UNKNOWN

    Examples:
        >>> ErrorCategory.POOL.value
        'POOL'
    """

    # Infrastructure
    DATABASE = "DATABASE"         # Driver, statement execution
    POOL = "POOL"                 # Acquisition, validation, lifecycle

    # Declarations
    VALIDATION = "VALIDATION"     # Entity descriptor metadata
    SCHEMA = "SCHEMA"             # Ordering, dialect capability
    CONFIG = "CONFIG"             # Missing or invalid settings

    # Execution
    MIGRATION = "MIGRATION"       # Ledger apply/rollback

    # Internal
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Typed fields cover what schema and migration failures usually need;
    anything else goes in ``metadata``. ``to_dict()`` drops unset fields
    so log lines stay short.

    Examples:
        >>> ctx = ErrorContext(dialect="sqlite", table="users", column="email")
        >>> ctx.to_dict()
        {'dialect': 'sqlite', 'table': 'users', 'column': 'email'}

    Attributes:
        dialect: Dialect name the statement was rendered for
        entity: Entity name from the registry
        table: Table being created or altered
        column: Column being added, modified or dropped
        statement: SQL statement that failed
        version: Migration version
        metadata: Additional key-value pairs
    """

    dialect: str | None = None
    entity: str | None = None
    table: str | None = None
    column: str | None = None
    statement: str | None = None
    version: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["dialect", "entity", "table", "column", "statement", "version"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class OrmSyncError(Exception):
    """
    Base exception for all ormsync errors.

    Every error raised by the pool, the schema layer and the migration
    runner extends OrmSyncError so callers can catch one type and still
    read category, retry semantics and context.

    Subclasses set ``default_category`` and ``default_retryable`` class
    attributes to provide sensible defaults for their domain.

    Examples:
        >>> error = OrmSyncError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(table="users").context.table
        'users'
        >>> error.to_dict()["category"]
        'INTERNAL'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> OrmSyncError:
        """
        Add context to this error (fluent API).

        Usage:
            raise SchemaError("Cannot alter").with_context(
                table="users", column="email"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (Usually Retryable)
# =============================================================================


class TransientError(OrmSyncError):
    """
    Temporary error that may succeed on retry.

    Used for pool exhaustion and failures to open a connection; the same
    call made later has a reasonable chance of succeeding.
    """

    default_category = ErrorCategory.DATABASE
    default_retryable = True


class DatabaseConnectionError(TransientError):
    """Opening a new database connection failed."""

    default_category = ErrorCategory.DATABASE


class ConnectionInvalidError(DatabaseConnectionError):
    """A pooled connection failed validation and could not be replaced."""

    default_category = ErrorCategory.POOL


class PoolExhaustedError(TransientError):
    """No idle connection and no free slot within the acquisition timeout."""

    default_category = ErrorCategory.POOL

    def __init__(
        self,
        message: str | None = None,
        *,
        timeout: float,
        max_size: int | None = None,
        **kwargs: Any,
    ):
        self.timeout = timeout
        self.max_size = max_size
        super().__init__(
            message or f"Connection pool exhausted: no connection available within {timeout}s",
            **kwargs,
        )


# =============================================================================
# POOL ERRORS
# =============================================================================


class PoolError(OrmSyncError):
    """Connection pool misuse or lifecycle error."""

    default_category = ErrorCategory.POOL
    default_retryable = False


class PoolClosedError(PoolError):
    """The pool (or a handed-out connection) was already closed."""

    pass


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(OrmSyncError):
    """
    Declaration validation error.

    Never retryable - the declaration must be fixed.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.constraint = constraint

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        if self.constraint:
            result["constraint"] = self.constraint
        return result


class DescriptorError(ValidationError):
    """An entity descriptor is missing required metadata or is malformed."""

    def __init__(self, entity: str, message: str, **kwargs: Any):
        self.entity = entity
        super().__init__(f"Entity {entity!r}: {message}", **kwargs)
        self.context.entity = entity


# =============================================================================
# SCHEMA ERRORS
# =============================================================================


class SchemaError(OrmSyncError):
    """Schema planning error."""

    default_category = ErrorCategory.SCHEMA
    default_retryable = False


class DependencyCycleError(SchemaError):
    """Entity references form a cycle and strict ordering was requested."""

    def __init__(self, cycles: list[list[str]]):
        self.cycles = cycles
        rendered = "; ".join(" -> ".join(cycle) for cycle in cycles)
        super().__init__(f"Circular entity dependency: {rendered}")


class UnsupportedOperationError(SchemaError):
    """The dialect cannot express the requested change."""

    def __init__(self, operation: str, dialect: str, message: str | None = None):
        self.operation = operation
        self.dialect = dialect
        super().__init__(message or f"{dialect} does not support {operation}")
        self.context.dialect = dialect


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(OrmSyncError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# DATABASE / MIGRATION ERRORS
# =============================================================================


class DatabaseError(OrmSyncError):
    """Database query or transaction error."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class StatementError(DatabaseError):
    """A single DDL/DML statement failed; carries the statement text."""

    def __init__(self, statement: str, *, cause: Exception | None = None, **kwargs: Any):
        self.statement = statement
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Statement failed{detail}", cause=cause, **kwargs)
        self.context.statement = statement


class MigrationError(OrmSyncError):
    """Applying or rolling back a migration failed.

    The migration's transaction has been rolled back and the ledger left
    unchanged for ``version``. ``result`` holds what completed before it.
    """

    default_category = ErrorCategory.MIGRATION
    default_retryable = False

    def __init__(
        self,
        version: str,
        message: str,
        *,
        statement: str | None = None,
        result: Any = None,
        **kwargs: Any,
    ):
        self.version = version
        self.statement = statement
        self.result = result
        super().__init__(message, **kwargs)
        self.context.version = version
        if statement is not None:
            self.context.statement = statement


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "OrmSyncError",
    # Transient
    "TransientError",
    "DatabaseConnectionError",
    "ConnectionInvalidError",
    "PoolExhaustedError",
    # Pool
    "PoolError",
    "PoolClosedError",
    # Validation
    "ValidationError",
    "DescriptorError",
    # Schema
    "SchemaError",
    "DependencyCycleError",
    "UnsupportedOperationError",
    # Config
    "ConfigError",
    "InvalidConfigError",
    # Database / migrations
    "DatabaseError",
    "StatementError",
    "MigrationError",
]
