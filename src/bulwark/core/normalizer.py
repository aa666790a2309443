"""
Fault normalization.

Classifies any raised fault into the closed ErrorKind taxonomy. Backend faults
are matched by their namespace-prefixed code against static tables; everything
else goes through network heuristics and finally falls back to UNKNOWN.

The functions in this module are pure: the only inputs are the fault, the
caller-supplied context and the optional connectivity hint.
"""

import asyncio
import socket
from typing import Any, Dict, Mapping, NamedTuple, Optional, Tuple

from bulwark.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_INTERNAL_ERROR,
    HTTP_STATUS_NOT_FOUND,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    HTTP_STATUS_UNAUTHORIZED,
    STATUS_NETWORK,
)
from bulwark.exceptions import (
    ErrorFactory,
    ErrorKind,
    ErrorMessageTemplates,
    NormalizedError,
)

BACKEND_NAMESPACES: Tuple[str, ...] = ("auth", "firestore", "storage", "functions")


class BackendMapping(NamedTuple):
    """Static classification for one backend code or code family."""

    kind: ErrorKind
    status_like: int
    user_message: Optional[str] = None


_INVALID_CREDENTIALS = BackendMapping(
    ErrorKind.AUTHENTICATION,
    HTTP_STATUS_UNAUTHORIZED,
    ErrorMessageTemplates.INVALID_CREDENTIALS,
)

# auth/ codes; every credential sub-code maps to the same generic message
AUTH_CODE_TABLE: Dict[str, BackendMapping] = {
    "invalid-credential": _INVALID_CREDENTIALS,
    "wrong-password": _INVALID_CREDENTIALS,
    "user-not-found": _INVALID_CREDENTIALS,
    "invalid-email": _INVALID_CREDENTIALS,
    "invalid-login-credentials": _INVALID_CREDENTIALS,
    "email-already-in-use": BackendMapping(
        ErrorKind.VALIDATION, HTTP_STATUS_BAD_REQUEST, ErrorMessageTemplates.EMAIL_IN_USE
    ),
    "weak-password": BackendMapping(
        ErrorKind.VALIDATION, HTTP_STATUS_BAD_REQUEST, ErrorMessageTemplates.WEAK_PASSWORD
    ),
    "too-many-requests": BackendMapping(
        ErrorKind.AUTHENTICATION,
        HTTP_STATUS_TOO_MANY_REQUESTS,
        ErrorMessageTemplates.TOO_MANY_ATTEMPTS,
    ),
    "user-disabled": BackendMapping(
        ErrorKind.AUTHORIZATION, HTTP_STATUS_FORBIDDEN, ErrorMessageTemplates.ACCOUNT_DISABLED
    ),
}

AUTH_DEFAULT = BackendMapping(ErrorKind.AUTHENTICATION, HTTP_STATUS_UNAUTHORIZED)

# Code families shared by every namespace
SHARED_CODE_TABLE: Dict[str, BackendMapping] = {
    "permission-denied": BackendMapping(ErrorKind.AUTHORIZATION, HTTP_STATUS_FORBIDDEN),
    "unauthorized": BackendMapping(ErrorKind.AUTHORIZATION, HTTP_STATUS_FORBIDDEN),
    "unauthenticated": BackendMapping(ErrorKind.AUTHENTICATION, HTTP_STATUS_UNAUTHORIZED),
    "not-found": BackendMapping(ErrorKind.NOT_FOUND, HTTP_STATUS_NOT_FOUND),
    "object-not-found": BackendMapping(ErrorKind.NOT_FOUND, HTTP_STATUS_NOT_FOUND),
    "already-exists": BackendMapping(
        ErrorKind.VALIDATION, HTTP_STATUS_BAD_REQUEST, ErrorMessageTemplates.ALREADY_EXISTS
    ),
    "invalid-argument": BackendMapping(ErrorKind.VALIDATION, HTTP_STATUS_BAD_REQUEST),
    "failed-precondition": BackendMapping(ErrorKind.VALIDATION, HTTP_STATUS_BAD_REQUEST),
    "unavailable": BackendMapping(
        ErrorKind.NETWORK, STATUS_NETWORK, ErrorMessageTemplates.SERVICE_UNAVAILABLE
    ),
    "deadline-exceeded": BackendMapping(ErrorKind.NETWORK, STATUS_NETWORK),
    "retry-limit-exceeded": BackendMapping(ErrorKind.NETWORK, STATUS_NETWORK),
}

BACKEND_DEFAULT = BackendMapping(ErrorKind.BACKEND_FAULT, HTTP_STATUS_INTERNAL_ERROR)

NETWORK_MESSAGE_MARKERS: Tuple[str, ...] = (
    "network",
    "fetch failed",
    "connection refused",
    "connection reset",
    "connection aborted",
    "timed out",
    "timeout",
)

TRANSIENT_MESSAGE_MARKERS: Tuple[str, ...] = (
    "network",
    "timeout",
    "unavailable",
    "502",
    "503",
    "504",
)

NETWORK_EXCEPTION_TYPES: Tuple[type, ...] = (
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
    socket.gaierror,
)


def backend_code(raw: BaseException) -> Optional[str]:
    """Return the namespace-prefixed code of a backend fault, if any."""
    code = getattr(raw, "code", None)
    if not isinstance(code, str) or "/" not in code:
        return None
    namespace = code.split("/", 1)[0]
    return code if namespace in BACKEND_NAMESPACES else None


def lookup_backend_code(code: str) -> BackendMapping:
    """Resolve a backend code to its static classification."""
    namespace, _, reason = code.partition("/")
    if namespace == "auth":
        if reason in AUTH_CODE_TABLE:
            return AUTH_CODE_TABLE[reason]
        return SHARED_CODE_TABLE.get(reason, AUTH_DEFAULT)
    return SHARED_CODE_TABLE.get(reason, BACKEND_DEFAULT)


def is_network_fault(raw: BaseException, online: Optional[bool] = None) -> bool:
    """Heuristically decide whether a fault is a connectivity problem."""
    if online is False:
        return True
    if isinstance(raw, NETWORK_EXCEPTION_TYPES):
        return True
    if getattr(raw, "code", None) == "NETWORK_ERROR":
        return True
    message = str(raw).lower()
    return any(marker in message for marker in NETWORK_MESSAGE_MARKERS)


def _message_of(raw: BaseException) -> str:
    message = getattr(raw, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(raw) or type(raw).__name__


def normalize(
    raw: BaseException,
    context: Optional[Mapping[str, Any]] = None,
    *,
    online: Optional[bool] = None,
) -> NormalizedError:
    """Classify a raised fault into a NormalizedError.

    Args:
        raw: Any raised fault; a NormalizedError is returned unchanged
        context: Pre-redacted structured payload to attach
        online: Connectivity hint; ``False`` forces NETWORK classification

    Returns:
        The canonical NormalizedError for ``raw``
    """
    if isinstance(raw, NormalizedError):
        return raw

    message = _message_of(raw)
    code = backend_code(raw)
    if code is not None:
        mapping = lookup_backend_code(code)
        return NormalizedError(
            mapping.kind,
            message,
            user_message=mapping.user_message,
            code=code,
            status_like=mapping.status_like,
            context=context,
            cause=raw,
        )

    if is_network_fault(raw, online):
        return ErrorFactory.network(message, cause=raw, context=context)

    return ErrorFactory.unknown(message, cause=raw, context=context)


def is_transient(error: BaseException) -> bool:
    """Default retry predicate: network and transient server faults."""
    normalized = normalize(error)
    if normalized.kind in (
        ErrorKind.NETWORK,
        ErrorKind.SERVER_FAULT,
        ErrorKind.BACKEND_FAULT,
    ):
        return True
    if normalized.kind is not ErrorKind.UNKNOWN:
        return False
    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_MESSAGE_MARKERS)
