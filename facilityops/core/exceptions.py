"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries. Each one carries a message that
is safe to show to the initiating actor.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    retryable = False

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Malformed input, rejected before any mutation."""


class PermissionDeniedException(ApplicationException):
    """Actor lacks the role capability for the requested action."""

    def __init__(self, action: str, role: str, details: Optional[dict] = None):
        self.action = action
        self.role = role
        super().__init__(
            f"Role '{role}' is not allowed to {action}",
            details or {"action": action, "role": role}
        )


class TransitionDeniedException(DomainException):
    """State machine guard failed; the ticket is unchanged."""

    def __init__(
        self,
        from_status: str,
        to_status: str,
        role: str,
        reason: str,
        details: Optional[dict] = None
    ):
        self.from_status = from_status
        self.to_status = to_status
        self.role = role
        self.reason = reason
        super().__init__(
            f"Cannot move ticket from {from_status} to {to_status}: {reason}",
            details or {"from": from_status, "to": to_status, "role": role}
        )


class ConcurrentModificationException(RepositoryException):
    """A conditional update lost its race; refetch before retrying."""

    def __init__(self, resource_type: str, resource_id: str, details: Optional[dict] = None):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type} changed while you were editing it, please refresh",
            details or {"resource_type": resource_type, "resource_id": resource_id}
        )


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class UpstreamUnavailableException(ExternalServiceException):
    """Store or real-time channel unreachable or too slow; safe to retry."""

    retryable = True


class AlreadyCheckedInException(DomainException):
    """A shift is already open for this user at this property."""

    def __init__(self, user_id: str, property_id: str):
        super().__init__(
            "You are already checked in at this property",
            {"user_id": user_id, "property_id": property_id}
        )


class NotCheckedInException(DomainException):
    """No open shift exists for this user at this property."""

    def __init__(self, user_id: str, property_id: str):
        super().__init__(
            "You are not checked in at this property",
            {"user_id": user_id, "property_id": property_id}
        )
