"""
Quarry - synchronous relational database access layer

Complete integration of:
- Query: fluent clause accumulator compiled to parameterized SQL
- DB: connection wrapper with statement reuse, query log and result cache
- Models: lazy-loading active-record entities with belongs_to / has_one /
  has_many relationships, through tables and emulated cascade delete
- Cache: memory, database-table and redis result cache backends
- Faults: structured error handling with fault domains
"""

__version__ = "0.1.0"

# ============================================================================
# Configuration
# ============================================================================

from .config import ConfigLoader, DatabaseConfig

# ============================================================================
# Faults
# ============================================================================

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    ConfigFault,
    ConfigMissingFault,
    ConfigInvalidFault,
    DatabaseNotConfiguredFault,
    ModelFault,
    MissingPropertyFault,
    RelationNotFoundFault,
    IllegalDeleteFault,
    QueryFault,
    DriverExecutionFault,
    DatabaseConnectionFault,
    ConfigurationError,
    MissingPropertyError,
    IllegalDeleteError,
    DriverExecutionError,
)

# ============================================================================
# Query building
# ============================================================================

from .query import (
    Dialect,
    get_dialect,
    Column,
    Raw,
    condition,
    QueryBuilder,
    Query,
)

# ============================================================================
# Database
# ============================================================================

from .db import (
    Database,
    Statement,
    get_database,
    configure_database,
    configure_from,
    set_database,
    get_all_databases,
    reset_databases,
)

# ============================================================================
# Models
# ============================================================================

from .models import (
    Model,
    RelatedQuery,
    RelationshipRegistry,
    default_registry,
)

# ============================================================================
# Cache
# ============================================================================

from .cache import CacheBackend, MemoryBackend, NullBackend, DatabaseCacheBackend, create_backend

__all__ = [
    "__version__",
    # Configuration
    "ConfigLoader",
    "DatabaseConfig",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigFault",
    "ConfigMissingFault",
    "ConfigInvalidFault",
    "DatabaseNotConfiguredFault",
    "ModelFault",
    "MissingPropertyFault",
    "RelationNotFoundFault",
    "IllegalDeleteFault",
    "QueryFault",
    "DriverExecutionFault",
    "DatabaseConnectionFault",
    "ConfigurationError",
    "MissingPropertyError",
    "IllegalDeleteError",
    "DriverExecutionError",
    # Query building
    "Dialect",
    "get_dialect",
    "Column",
    "Raw",
    "condition",
    "QueryBuilder",
    "Query",
    # Database
    "Database",
    "Statement",
    "get_database",
    "configure_database",
    "configure_from",
    "set_database",
    "get_all_databases",
    "reset_databases",
    # Models
    "Model",
    "RelatedQuery",
    "RelationshipRegistry",
    "default_registry",
    # Cache
    "CacheBackend",
    "MemoryBackend",
    "NullBackend",
    "DatabaseCacheBackend",
    "create_backend",
]
