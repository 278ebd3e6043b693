# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Error taxonomy for Edunexia domain services.

This module defines the exception hierarchy shared by the access guard,
the portal registry and the enrollment orchestrator:
- EdunexiaError: Base exception for all domain errors
- ValidationError: Bad input; never retried, names the offending field
- AuthorizationError: Role or portal mismatch
- NotFoundError: Referenced record does not exist in the tenant
- InvalidTransitionError: Status change outside the state machine
- GatewayError: Payment provider failure, carries the enrollment id
"""


class EdunexiaError(Exception):
    """Base exception for all Edunexia domain errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict | None = None):
        """Initialize domain error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ValidationError(EdunexiaError):
    """Input rejected before any side effect.

    Attributes:
        field: Name of the offending input field.
    """

    def __init__(self, field: str, message: str, details: dict | None = None):
        """Initialize validation error.

        Args:
            field: Name of the offending input field.
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        self.field = field
        super().__init__(f"{field}: {message}", details)


class AuthorizationError(EdunexiaError):
    """Raised when a user is not entitled to a portal or resource."""

    pass


class PortalNotAvailableError(AuthorizationError):
    """Raised when a user selects a portal outside their entitlement.

    Attributes:
        portal_id: The requested portal id.
    """

    def __init__(self, portal_id: str, role: str | None = None):
        """Initialize the error.

        Args:
            portal_id: The requested portal id.
            role: Role of the requesting user.
        """
        self.portal_id = portal_id
        super().__init__(
            f"Portal not available: {portal_id}",
            {"role": role} if role else None,
        )


class UnmappedRoleError(AuthorizationError):
    """Raised when a role has no portal in the catalog.

    Attributes:
        role: The role without a portal.
    """

    def __init__(self, role: str):
        """Initialize the error.

        Args:
            role: The role without a portal.
        """
        self.role = role
        super().__init__(f"No portal is configured for role: {role}")


class NotFoundError(EdunexiaError):
    """Raised when a referenced record does not exist in the tenant.

    Attributes:
        resource: Kind of record (enrollment, course, batch).
        resource_id: Identifier that was looked up.
    """

    def __init__(self, resource: str, resource_id: object):
        """Initialize the error.

        Args:
            resource: Kind of record.
            resource_id: Identifier that was looked up.
        """
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource.capitalize()} not found: {resource_id}")


class InvalidTransitionError(EdunexiaError):
    """Raised when a status change is not an edge of the state machine.

    Attributes:
        record_id: Enrollment or batch id.
        current_status: Status observed when the change was rejected.
        event: Requested event.
    """

    def __init__(self, record_id: object, current_status: str, event: str):
        """Initialize the error.

        Args:
            record_id: Enrollment or batch id.
            current_status: Status observed when the change was rejected.
            event: Requested event.
        """
        self.record_id = record_id
        self.current_status = current_status
        self.event = event
        super().__init__(
            f"Cannot apply '{event}' to {record_id} in status '{current_status}'"
        )


class GatewayError(EdunexiaError):
    """Payment gateway failure surfaced to the operator.

    The message is the provider's own text. The record stays `failed`
    when the provider rejected the charge, or `pending` when the outcome
    is unknown (retryable).

    Attributes:
        record_id: Enrollment or batch id the charge belongs to.
        retryable: Whether re-submitting may succeed without new input.
        resource: Kind of record the charge belongs to.
    """

    def __init__(
        self,
        message: str,
        record_id: object = None,
        retryable: bool = False,
        details: dict | None = None,
        resource: str = "enrollment",
    ):
        """Initialize gateway error.

        Args:
            message: Provider error message.
            record_id: Enrollment or batch id the charge belongs to.
            retryable: Whether re-submitting may succeed without new input.
            details: Optional dictionary with additional error context.
            resource: Kind of record ("enrollment" or "batch").
        """
        self.record_id = record_id
        self.retryable = retryable
        self.resource = resource
        super().__init__(message, details)
