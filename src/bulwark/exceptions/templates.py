"""
Standardized user-facing messages and machine codes.

User messages are origin-agnostic: they never echo backend codes, stack
traces or which half of a credential pair was wrong.
"""

from typing import Dict


class ErrorMessageTemplates:
    """User-facing messages, keyed by error kind value."""

    NETWORK = "Network connection problem. Check your internet connection."
    AUTHENTICATION = "Authentication failed. Please sign in again."
    AUTHORIZATION = "You do not have permission to perform this action."
    VALIDATION = "The submitted data is not valid."
    NOT_FOUND = "The requested resource was not found."
    SERVER_FAULT = "Server error. Please try again later."
    BACKEND_FAULT = "Service error. Please try again."
    UNKNOWN = "An unexpected error occurred."

    # Backend-specific overrides
    INVALID_CREDENTIALS = "Incorrect email or password."
    EMAIL_IN_USE = "This email address is already in use."
    WEAK_PASSWORD = "The password must contain at least 6 characters."
    TOO_MANY_ATTEMPTS = "Too many attempts. Please try again later."
    ACCOUNT_DISABLED = "This account has been disabled."
    ALREADY_EXISTS = "This record already exists."
    SERVICE_UNAVAILABLE = "The service is temporarily unavailable."
    CIRCUIT_OPEN = "This service is temporarily unavailable. Please try again in a moment."
    NOT_FOUND_RESOURCE = "{resource} not found."

    # Recovery signals
    OFFLINE = "Internet connection lost."
    SESSION_EXPIRED = "Your session has ended. Please sign in again."

    @classmethod
    def defaults(cls) -> Dict[str, str]:
        """Default user message per error kind value."""
        return {
            "network": cls.NETWORK,
            "authentication": cls.AUTHENTICATION,
            "authorization": cls.AUTHORIZATION,
            "validation": cls.VALIDATION,
            "not_found": cls.NOT_FOUND,
            "server_fault": cls.SERVER_FAULT,
            "backend_fault": cls.BACKEND_FAULT,
            "unknown": cls.UNKNOWN,
        }


class ErrorCodes:
    """Machine-readable codes assigned by the factory helpers."""

    NETWORK = "NETWORK"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    SERVER = "SERVER"
    UNKNOWN = "UNKNOWN"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
