"""
Quarry faults - structured fault taxonomy shared by every subsystem.
"""

from .core import Fault, FaultDomain, Severity, DOMAIN_DEFAULTS
from .domains import (
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

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
    "DOMAIN_DEFAULTS",
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
]
