"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from facilityops.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    PermissionDeniedException,
    TransitionDeniedException,
    ConcurrentModificationException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    UpstreamUnavailableException,
    AlreadyCheckedInException,
    NotCheckedInException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "PermissionDeniedException",
    "TransitionDeniedException",
    "ConcurrentModificationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "UpstreamUnavailableException",
    "AlreadyCheckedInException",
    "NotCheckedInException",
]
