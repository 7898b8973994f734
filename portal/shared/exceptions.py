"""
Custom Exceptions for the CalAIM Portal

Every exception carries the context needed for debugging and logging,
plus the HTTP status code the request handlers answer with.
"""

from dataclasses import dataclass
from typing import Any


class PortalError(Exception):
    """Base exception for the portal backend."""

    status_code: int = 500

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class ValidationError(PortalError):
    """Request body or query parameters are invalid."""

    status_code = 400


class AuthenticationError(PortalError):
    """Bearer token missing or not verifiable."""

    status_code = 401


class AuthorizationError(PortalError):
    """Caller is authenticated but lacks the required role."""

    status_code = 403


class ConflictError(PortalError):
    """Target document is in a state that forbids the operation."""

    status_code = 409


class ConfigurationError(PortalError):
    """A required setting is missing."""

    status_code = 500


@dataclass
class NotFoundError(PortalError):
    """Document not found in the portal table."""

    entity: str
    entity_id: str

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity.capitalize()} not found",
            entity=entity,
            entity_id=entity_id,
        )

    status_code = 404


@dataclass
class InvalidStateTransitionError(PortalError):
    """Attempted invalid state transition."""

    current_status: str
    new_status: str
    allowed_transitions: list[str]

    def __init__(
        self,
        current_status: str,
        new_status: str,
        allowed_transitions: list[str],
    ) -> None:
        self.current_status = current_status
        self.new_status = new_status
        self.allowed_transitions = allowed_transitions
        super().__init__(
            f"Cannot transition from '{current_status}' to '{new_status}'. "
            f"Allowed transitions: {allowed_transitions}",
            current_status=current_status,
            new_status=new_status,
            allowed_transitions=allowed_transitions,
        )

    status_code = 409


@dataclass
class InvalidEmailFormatError(PortalError):
    """Email address format is invalid."""

    email_address: str
    expected_pattern: str | None = None

    def __init__(
        self,
        email_address: str,
        expected_pattern: str | None = None,
    ) -> None:
        self.email_address = email_address
        self.expected_pattern = expected_pattern
        pattern_hint = f" Expected pattern: {expected_pattern}" if expected_pattern else ""
        super().__init__(
            f"Invalid email format: '{email_address}'.{pattern_hint}",
            email_address=email_address,
            expected_pattern=expected_pattern,
        )

    status_code = 400


@dataclass
class DynamoDBError(PortalError):
    """DynamoDB operation failed."""

    operation: str  # "get", "put", "update", "query", "transact"
    table_name: str

    def __init__(
        self,
        operation: str,
        table_name: str,
        error_message: str | None = None,
    ) -> None:
        self.operation = operation
        self.table_name = table_name
        super().__init__(
            f"DynamoDB {operation} failed on table '{table_name}': {error_message or 'Unknown error'}",
            operation=operation,
            table_name=table_name,
            error_message=error_message,
        )


@dataclass
class ConditionalWriteError(DynamoDBError):
    """Conditional write or transaction lost a race with a concurrent request."""

    expected_version: int | None = None
    reasons: list[str] | None = None

    def __init__(
        self,
        table_name: str,
        expected_version: int | None = None,
        reasons: list[str] | None = None,
    ) -> None:
        self.expected_version = expected_version
        self.reasons = reasons
        detail = f"expected version {expected_version}" if expected_version else "condition not met"
        super().__init__(
            operation="conditional_write",
            table_name=table_name,
            error_message=f"Concurrent modification: {detail}",
        )

    status_code = 409


@dataclass
class SESError(PortalError):
    """SES email operation failed."""

    operation: str  # "send"
    recipient: str | None = None

    def __init__(
        self,
        operation: str,
        recipient: str | None = None,
        error_message: str | None = None,
    ) -> None:
        self.operation = operation
        self.recipient = recipient
        super().__init__(
            f"SES {operation} failed{f' for {recipient}' if recipient else ''}: "
            f"{error_message or 'Unknown error'}",
            operation=operation,
            recipient=recipient,
            error_message=error_message,
        )

    status_code = 502


@dataclass
class CaspioError(PortalError):
    """Caspio REST call failed."""

    operation: str  # "token", "records"
    status: int | None = None

    def __init__(
        self,
        operation: str,
        status: int | None = None,
        error_message: str | None = None,
    ) -> None:
        self.operation = operation
        self.status = status
        super().__init__(
            f"Caspio {operation} failed"
            f"{f' with HTTP {status}' if status else ''}: {error_message or 'Unknown error'}",
            operation=operation,
            status=status,
            error_message=error_message,
        )

    status_code = 502


@dataclass
class RecordFormatError(PortalError):
    """A stored item no longer matches its record model."""

    record_type: str
    key: str

    def __init__(self, record_type: str, key: str, error_message: str | None = None) -> None:
        self.record_type = record_type
        self.key = key
        super().__init__(
            f"Stored {record_type} {key} is unreadable: {error_message or 'Unknown error'}",
            record_type=record_type,
            key=key,
        )

    status_code = 500
