"""
Base error types for Bulwark.

Provides the closed ErrorKind taxonomy and NormalizedError, the canonical
representation of every fault that crosses a public entry point.
"""

import uuid
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from .templates import ErrorMessageTemplates


class ErrorKind(str, Enum):
    """Closed set of fault classifications."""

    NETWORK = "network"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    SERVER_FAULT = "server_fault"
    BACKEND_FAULT = "backend_fault"
    UNKNOWN = "unknown"

    @property
    def default_user_message(self) -> str:
        return ErrorMessageTemplates.defaults()[self.value]


class NormalizedError(Exception):
    """Immutable, classified fault.

    Attributes:
        kind: Classification, fixed at construction
        developer_message: Diagnostic text, never shown to end users
        user_message: Human-readable text, defaults from ``kind``
        code: Origin-specific machine code (e.g. a backend error code)
        status_like: HTTP-style status used for classification and UI branching
        context: Read-only structured payload (call site, correlation id, ...)
        cause: Original raised fault, kept for diagnostics only
        correlation_id: Short id for tracking this error across logs
    """

    def __init__(
        self,
        kind: ErrorKind,
        developer_message: str,
        user_message: Optional[str] = None,
        code: Optional[str] = None,
        status_like: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
        correlation_id: Optional[str] = None,
    ):
        kind = ErrorKind(kind)
        context = dict(context or {})
        values = {
            "kind": kind,
            "developer_message": developer_message,
            "user_message": user_message or kind.default_user_message,
            "code": code,
            "status_like": status_like,
            "context": MappingProxyType(context),
            "cause": cause,
            "correlation_id": correlation_id
            or context.get("correlation_id")
            or str(uuid.uuid4())[:8],
            "timestamp": datetime.now(),
        }
        for name, value in values.items():
            object.__setattr__(self, name, value)
        super().__init__(developer_message)
        object.__setattr__(self, "_frozen", True)

    def __setattr__(self, name: str, value: Any) -> None:
        # Interpreter-managed dunders (__traceback__, __notes__, ...) stay writable.
        if getattr(self, "_frozen", False) and not name.startswith("__"):
            raise AttributeError(
                f"NormalizedError is immutable; cannot set '{name}'"
            )
        object.__setattr__(self, name, value)

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"NormalizedError is immutable; cannot delete '{name}'")

    @property
    def message(self) -> str:
        return self.developer_message

    def __str__(self) -> str:
        result = self.developer_message
        if self.code:
            result += f" (code: {self.code})"
        return result

    def __repr__(self) -> str:
        return (
            f"NormalizedError(kind={self.kind.value!r}, "
            f"code={self.code!r}, status_like={self.status_like!r}, "
            f"developer_message={self.developer_message!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary for logging; the original cause is excluded."""
        return {
            "kind": self.kind.value,
            "developer_message": self.developer_message,
            "user_message": self.user_message,
            "code": self.code,
            "status_like": self.status_like,
            "context": dict(self.context),
            "correlation_id": self.correlation_id,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_notification(self) -> Dict[str, Any]:
        """Payload broadcast to UI notification subscribers."""
        return {
            "kind": self.kind.value,
            "user_message": self.user_message,
            "code": self.code,
            "context": dict(self.context),
        }


class BackendFault(Exception):
    """Fault raised by the remote document store or its auth service.

    The ``code`` is namespace-prefixed (``auth/wrong-password``,
    ``firestore/unavailable``) and is matched against static tables by the
    normalizer.
    """

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        self.message = message or code
        super().__init__(self.message)

    @property
    def namespace(self) -> str:
        return self.code.split("/", 1)[0] if "/" in self.code else ""

    @property
    def reason(self) -> str:
        return self.code.split("/", 1)[1] if "/" in self.code else self.code
