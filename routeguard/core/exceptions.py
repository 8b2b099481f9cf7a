"""Custom exception classes for RouteGuard."""

from typing import Optional

from fastapi import status


class RouteGuardError(Exception):
    """Base exception for RouteGuard."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"success": False, "message": self.message}


class ExtractionShapeError(RouteGuardError):
    """Raised when the route registry declaration is missing or malformed.

    Fatal at build time: the extractor aborts without touching the artifact.
    """


class AuthenticationError(RouteGuardError):
    """Raised when there is no valid session for the caller."""

    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDeniedError(RouteGuardError):
    """Raised when a principal lacks the required action on a module.

    Only the required module is exposed to the caller, never the grant set.
    """

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, required_module: Optional[str], message: Optional[str] = None):
        self.required_module = required_module
        if message is None:
            if required_module:
                message = f"Access denied: permission on '{required_module}' is required"
            else:
                message = "Access denied: Insufficient permissions"
        super().__init__(message)

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["requiredModule"] = self.required_module
        return payload


class ResourceNotFoundError(RouteGuardError):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ResourceConflictError(RouteGuardError):
    """Raised when a resource already exists or cannot be removed."""

    status_code = status.HTTP_409_CONFLICT


class ValidationError(RouteGuardError):
    """Raised when input validation fails."""
    pass
