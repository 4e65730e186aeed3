"""
Quarry cache — Fault domain integration.

Typed cache faults sharing the structured Fault taxonomy.
"""

from __future__ import annotations

from typing import Any, Optional

from ..faults.core import DOMAIN_DEFAULTS, Fault, FaultDomain, Severity


# Register cache fault domain
FaultDomain.CACHE = FaultDomain("cache", "Result cache faults")
DOMAIN_DEFAULTS[FaultDomain.CACHE] = {"severity": Severity.WARN, "retryable": True}


class CacheFault(Fault):
    """Base class for all cache faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.WARN,
        retryable: bool = True,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.CACHE,
            severity=severity,
            retryable=retryable,
            public=False,
            metadata=metadata,
        )


class CacheConnectionFault(CacheFault):
    """Failed to connect to cache backend."""

    def __init__(self, backend: str, reason: str, **kwargs):
        super().__init__(
            code="CACHE_CONNECTION_FAILED",
            message=f"Cache backend '{backend}' connection failed: {reason}",
            severity=Severity.ERROR,
            retryable=True,
            metadata={"backend": backend, "reason": reason},
        )


class CacheSerializationFault(CacheFault):
    """Failed to serialize/deserialize cache value."""

    def __init__(self, key: str, operation: str, reason: str, **kwargs):
        super().__init__(
            code="CACHE_SERIALIZATION_FAILED",
            message=f"Cache {operation} failed for key '{key}': {reason}",
            severity=Severity.WARN,
            retryable=False,
            metadata={"key": key, "operation": operation, "reason": reason},
        )


class CacheConfigFault(CacheFault):
    """Unknown backend name or bad backend options."""

    def __init__(self, reason: str, **kwargs):
        super().__init__(
            code="CACHE_CONFIG_INVALID",
            message=f"Invalid cache configuration: {reason}",
            severity=Severity.ERROR,
            retryable=False,
            metadata={"reason": reason, **kwargs.get("metadata", {})},
        )
