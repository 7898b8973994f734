# Shared Infrastructure for the CalAIM Portal
"""
Shared infrastructure components for all portal handlers.

This package provides:
- State machine definitions (ClaimStatus, VisitStatus, ApplicationStatus)
- Claim billing math
- Pydantic models for DynamoDB items and request bodies
- Tool implementations for DynamoDB, SES, email templates and Caspio
- Bearer-token auth and the API Gateway envelope
- Configuration management
- Custom exceptions
"""

from portal.shared.config import Settings, get_settings
from portal.shared.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InvalidStateTransitionError,
    NotFoundError,
    PortalError,
    ValidationError,
)
from portal.shared.state_machine import ClaimStatus, VisitStatus, validate_transition

__all__ = [
    # State machine
    "ClaimStatus",
    "VisitStatus",
    "validate_transition",
    # Exceptions
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "PortalError",
    "ValidationError",
    # Config
    "Settings",
    "get_settings",
]
