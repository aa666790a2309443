"""
Factory helpers for building typed NormalizedError instances.

Each helper sets the conventional machine code and HTTP-like status for its
kind so call sites stay short.
"""

from typing import Any, Mapping, Optional

from bulwark.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_INTERNAL_ERROR,
    HTTP_STATUS_NOT_FOUND,
    HTTP_STATUS_UNAUTHORIZED,
    STATUS_NETWORK,
)

from .base import ErrorKind, NormalizedError
from .templates import ErrorCodes, ErrorMessageTemplates


class ErrorFactory:
    """Constructors for each error kind."""

    @staticmethod
    def network(
        message: str,
        cause: Optional[BaseException] = None,
        context: Optional[Mapping[str, Any]] = None,
        user_message: Optional[str] = None,
    ) -> NormalizedError:
        return NormalizedError(
            ErrorKind.NETWORK,
            message,
            user_message=user_message,
            code=ErrorCodes.NETWORK,
            status_like=STATUS_NETWORK,
            context=context,
            cause=cause,
        )

    @staticmethod
    def authentication(
        message: str,
        code: Optional[str] = None,
        cause: Optional[BaseException] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> NormalizedError:
        return NormalizedError(
            ErrorKind.AUTHENTICATION,
            message,
            code=code,
            status_like=HTTP_STATUS_UNAUTHORIZED,
            context=context,
            cause=cause,
        )

    @staticmethod
    def authorization(
        message: str,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> NormalizedError:
        return NormalizedError(
            ErrorKind.AUTHORIZATION,
            message,
            code=ErrorCodes.FORBIDDEN,
            status_like=HTTP_STATUS_FORBIDDEN,
            context=context,
            cause=cause,
        )

    @staticmethod
    def validation(
        message: str,
        user_message: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> NormalizedError:
        return NormalizedError(
            ErrorKind.VALIDATION,
            message,
            user_message=user_message,
            code=ErrorCodes.VALIDATION,
            status_like=HTTP_STATUS_BAD_REQUEST,
            context=context,
        )

    @staticmethod
    def not_found(
        resource: str,
        identifier: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> NormalizedError:
        message = f"{resource} not found"
        if identifier:
            message += f" (ID: {identifier})"
        return NormalizedError(
            ErrorKind.NOT_FOUND,
            message,
            user_message=ErrorMessageTemplates.NOT_FOUND_RESOURCE.format(resource=resource),
            code=ErrorCodes.NOT_FOUND,
            status_like=HTTP_STATUS_NOT_FOUND,
            context=context,
            cause=cause,
        )

    @staticmethod
    def server(
        message: str,
        cause: Optional[BaseException] = None,
        context: Optional[Mapping[str, Any]] = None,
        code: str = ErrorCodes.SERVER,
        status_like: int = HTTP_STATUS_INTERNAL_ERROR,
        user_message: Optional[str] = None,
    ) -> NormalizedError:
        return NormalizedError(
            ErrorKind.SERVER_FAULT,
            message,
            user_message=user_message,
            code=code,
            status_like=status_like,
            context=context,
            cause=cause,
        )

    @staticmethod
    def backend(
        code: str,
        message: str,
        cause: Optional[BaseException] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> NormalizedError:
        return NormalizedError(
            ErrorKind.BACKEND_FAULT,
            message,
            code=code,
            status_like=HTTP_STATUS_INTERNAL_ERROR,
            context=context,
            cause=cause,
        )

    @staticmethod
    def unknown(
        message: str,
        cause: Optional[BaseException] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> NormalizedError:
        return NormalizedError(
            ErrorKind.UNKNOWN,
            message,
            code=ErrorCodes.UNKNOWN,
            status_like=HTTP_STATUS_INTERNAL_ERROR,
            context=context,
            cause=cause,
        )
