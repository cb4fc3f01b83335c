"""
Custom exception hierarchy for the Polylang sync API.

This module defines a standardized exception hierarchy for consistent
error handling across the application.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status


class BaseAppException(HTTPException):
    """Base exception for all application errors."""

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        headers: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code or self.__class__.__name__
        self.details = details


# Authentication Exceptions


class AuthenticationError(BaseAppException):
    """Raised when no identity could be resolved for the request."""

    def __init__(
        self,
        detail: str = "Authentication required.",
        error_code: Optional[str] = None,
    ):
        super().__init__(
            detail,
            status.HTTP_401_UNAUTHORIZED,
            error_code=error_code or "rest_forbidden",
        )


class PermissionDeniedError(BaseAppException):
    """Raised when the caller lacks the capability a route requires."""

    def __init__(self, detail: str = "Insufficient permissions."):
        super().__init__(
            detail, status.HTTP_403_FORBIDDEN, error_code="rest_forbidden"
        )


class InvalidNonceError(PermissionDeniedError):
    """Raised when the origin token (nonce) is missing or does not verify."""

    def __init__(self):
        super().__init__("Invalid nonce.")


# Request Validation Exceptions


class ValidationError(BaseAppException):
    """Raised when request data fails validation."""

    def __init__(
        self,
        detail: str,
        error_code: str = "validation_error",
        reasons: Optional[List[str]] = None,
    ):
        super().__init__(
            detail,
            status.HTTP_400_BAD_REQUEST,
            error_code=error_code,
            details={"reasons": reasons} if reasons else None,
        )


class InvalidParamsError(BaseAppException):
    """Raised when route admission control rejects one or more parameters."""

    def __init__(self, params: Dict[str, str]):
        detail = f"Invalid parameter(s): {', '.join(sorted(params))}"
        super().__init__(
            detail,
            status.HTTP_400_BAD_REQUEST,
            error_code="rest_invalid_param",
            details={"params": params},
        )
        self.params = params


# Sync Outcome Exceptions


class NotFoundError(BaseAppException):
    """Raised when a referenced term or post does not exist."""

    def __init__(self, detail: str, error_code: str = "not_found"):
        super().__init__(detail, status.HTTP_400_BAD_REQUEST, error_code=error_code)


class ConflictError(BaseAppException):
    """Raised when the objects are already linked as translations."""

    def __init__(self, detail: str, error_code: str = "already_linked"):
        super().__init__(detail, status.HTTP_400_BAD_REQUEST, error_code=error_code)


class DelegateError(BaseAppException):
    """Raised when the host translation plugin rejected or failed an operation.

    The status code follows the origin of the failure: a host rejection keeps
    its 4xx status, anything else is reported as a server error.
    """

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "polylang_error",
    ):
        super().__init__(detail, status_code, error_code=error_code)


class UnexpectedError(BaseAppException):
    """Raised when a route hits an exception it did not expect.

    The exception message is passed through to the caller.
    """

    def __init__(self, detail: str, error_code: str = "sync_error"):
        super().__init__(
            detail, status.HTTP_500_INTERNAL_SERVER_ERROR, error_code=error_code
        )


# Service Exceptions


class ServiceUnavailableError(BaseAppException):
    """Raised when a service the route depends on is not initialized."""

    def __init__(self, service: str):
        super().__init__(
            f"{service} not available",
            status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="SERVICE_UNAVAILABLE",
        )
