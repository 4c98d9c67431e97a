"""
QueryCache — Fault taxonomy.

Structured faults raised by the cache layer. Each fault carries a stable
``code`` callers can branch on, plus domain, severity, retry hint and
free-form metadata for logs.

Faults are raised only for misconfiguration and programming errors.
Capability mismatches (a store without tag support) degrade silently
and never raise.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Severity(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain(str, Enum):
    """Area of the cache layer a fault belongs to."""
    CACHE = "cache"     # store access, serialization, tag operations
    CONFIG = "config"   # loading and validating configuration


# Severity / retry defaults when a fault does not set them explicitly
DOMAIN_DEFAULTS: Dict[FaultDomain, Tuple[Severity, bool]] = {
    FaultDomain.CACHE: (Severity.WARN, True),
    FaultDomain.CONFIG: (Severity.FATAL, False),
}


class Fault(Exception):
    """
    Base for every querycache fault.

    Attributes:
        code: Stable identifier such as ``CACHE_STORE_UNKNOWN``
        message: Text shown to humans
        domain: ``FaultDomain`` of the fault
        severity: ``Severity``; falls back to the domain default
        retryable: Retry hint; falls back to the domain default
        metadata: Structured context for logs
    """

    def __init__(
        self,
        code: str,
        message: str,
        *,
        domain: FaultDomain,
        severity: Optional[Severity] = None,
        retryable: Optional[bool] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        default_severity, default_retryable = DOMAIN_DEFAULTS.get(domain, (Severity.ERROR, False))
        self.code = code
        self.message = message
        self.domain = domain
        self.severity = severity if severity is not None else default_severity
        self.retryable = default_retryable if retryable is None else retryable
        self.metadata = dict(metadata or {})

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"<{type(self).__name__} code={self.code!r} severity={self.severity.value}>"

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict form for structured logging."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "metadata": self.metadata,
        }


# ============================================================================
# Cache faults
# ============================================================================

class CacheFault(Fault):
    """Fault raised by the query cache."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.WARN,
        retryable: bool = True,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code,
            message,
            domain=FaultDomain.CACHE,
            severity=severity,
            retryable=retryable,
            metadata=metadata,
        )


class CacheConnectionFault(CacheFault):
    """A remote store could not be reached."""

    def __init__(self, store: str, reason: str):
        super().__init__(
            "CACHE_CONNECTION_FAILED",
            f"Could not connect to cache store '{store}': {reason}",
            severity=Severity.ERROR,
            metadata={"store": store, "reason": reason},
        )


class CacheSerializationFault(CacheFault):
    """A binding or stored value could not be encoded or decoded."""

    def __init__(self, key: str, operation: str, reason: str):
        super().__init__(
            "CACHE_SERIALIZATION_FAILED",
            f"Could not {operation} '{key}': {reason}",
            retryable=False,
            metadata={"key": key, "operation": operation, "reason": reason},
        )


class CacheConfigFault(CacheFault):
    """Invalid query cache configuration."""

    def __init__(self, reason: str):
        super().__init__(
            "CACHE_CONFIG_INVALID",
            f"Bad query cache configuration: {reason}",
            severity=Severity.FATAL,
            retryable=False,
            metadata={"reason": reason},
        )


class UnknownStoreFault(CacheFault):
    """A store name was requested that the manager does not know."""

    def __init__(self, name: str, available: tuple = ()):
        super().__init__(
            "CACHE_STORE_UNKNOWN",
            f"No cache store named '{name}' (configured: {', '.join(available) or 'none'})",
            severity=Severity.ERROR,
            retryable=False,
            metadata={"store": name, "available": list(available)},
        )


class UnsupportedOperationFault(CacheFault):
    """The store does not implement the requested operation."""

    def __init__(self, store: str, operation: str):
        super().__init__(
            "CACHE_OPERATION_UNSUPPORTED",
            f"Cache store '{store}' does not support {operation}",
            severity=Severity.INFO,
            retryable=False,
            metadata={"store": store, "operation": operation},
        )
