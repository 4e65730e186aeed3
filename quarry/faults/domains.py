"""
Quarry faults - Domain-specific fault types.

Provides concrete fault classes for each domain:
- CONFIG faults
- MODEL faults (entities, queries, drivers)
"""

from typing import Any, Optional
from .core import Fault, FaultDomain, Severity


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigFault(Fault):
    """Base class for configuration faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.FATAL,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.CONFIG,
            severity=severity,
            retryable=False,
            public=False,
            metadata=metadata,
        )


class ConfigMissingFault(ConfigFault):
    """Required configuration is missing."""

    def __init__(self, key: str, **kwargs):
        super().__init__(
            code="CONFIG_MISSING",
            message=f"Required configuration key '{key}' is missing",
            metadata={"key": key, **kwargs.get("metadata", {})},
        )


class ConfigInvalidFault(ConfigFault):
    """Configuration value is invalid."""

    def __init__(self, key: str, reason: str, **kwargs):
        super().__init__(
            code="CONFIG_INVALID",
            message=f"Configuration key '{key}' is invalid: {reason}",
            metadata={"key": key, "reason": reason, **kwargs.get("metadata", {})},
        )


class DatabaseNotConfiguredFault(ConfigFault):
    """A database instance was requested before it was configured."""

    def __init__(self, name: str, **kwargs):
        super().__init__(
            code="DATABASE_NOT_CONFIGURED",
            message=f"Database configuration not found for instance '{name}'",
            metadata={"database": name, **kwargs.get("metadata", {})},
        )


# ============================================================================
# MODEL Faults
# ============================================================================

class ModelFault(Fault):
    """Base class for model and database faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.ERROR,
        retryable: bool = False,
        public: bool = False,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.MODEL,
            severity=severity,
            retryable=retryable,
            public=public,
            metadata=metadata,
        )


class MissingPropertyFault(ModelFault, AttributeError):
    """Entity has no column, relationship alias or attribute with this name."""

    def __init__(self, model: str, name: str, **kwargs):
        super().__init__(
            code="MISSING_PROPERTY",
            message=f"The {name} property does not exist in the {model} class",
            metadata={"model": model, "property": name, **kwargs.get("metadata", {})},
        )


class RelationNotFoundFault(ModelFault):
    """Relationship alias is not declared, or is the wrong kind for the operation."""

    def __init__(self, model: str, alias: str, reason: str = "not declared", **kwargs):
        super().__init__(
            code="RELATION_NOT_FOUND",
            message=f"Relationship '{alias}' on '{model}' is unusable: {reason}",
            metadata={"model": model, "alias": alias, "reason": reason, **kwargs.get("metadata", {})},
        )


class IllegalDeleteFault(ModelFault):
    """Delete refused: no WHERE clause, or an empty/zero primary key."""

    def __init__(self, target: str, reason: str, **kwargs):
        super().__init__(
            code="ILLEGAL_DELETE",
            message=f"Refusing to delete from '{target}': {reason}",
            severity=Severity.WARN,
            metadata={"target": target, "reason": reason, **kwargs.get("metadata", {})},
        )


class QueryFault(ModelFault):
    """Query could not be built or bound."""

    def __init__(self, target: str, operation: str, reason: str, **kwargs):
        super().__init__(
            code="QUERY_FAILED",
            message=f"Query on '{target}' ({operation}) failed: {reason}",
            metadata={"target": target, "operation": operation, "reason": reason, **kwargs.get("metadata", {})},
        )


class DriverExecutionFault(ModelFault):
    """The underlying driver rejected a statement. Always raised from the driver error."""

    def __init__(self, operation: str, reason: str, *, sql: Optional[str] = None, **kwargs):
        metadata = {"operation": operation, "reason": reason, **kwargs.get("metadata", {})}
        if sql is not None:
            metadata["sql"] = sql[:200]
        super().__init__(
            code="DRIVER_EXECUTION_FAILED",
            message=f"Driver error during {operation}: {reason}",
            retryable=False,
            metadata=metadata,
        )


class DatabaseConnectionFault(ModelFault):
    """Database connection failed or is not open."""

    def __init__(self, url: str, reason: str, **kwargs):
        super().__init__(
            code="DB_CONNECTION_FAILED",
            message=f"Database connection failed ({url}): {reason}",
            severity=Severity.FATAL,
            retryable=True,
            metadata={"url": url, "reason": reason, **kwargs.get("metadata", {})},
        )


# Names used throughout the documentation
ConfigurationError = ConfigFault
MissingPropertyError = MissingPropertyFault
IllegalDeleteError = IllegalDeleteFault
DriverExecutionError = DriverExecutionFault
