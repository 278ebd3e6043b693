# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Custom exceptions for payment gateway clients.

This module defines the exception hierarchy for gateway operations:
- PaymentGatewayError: Base exception for all gateway errors
- GatewayRejectedError: The provider answered and refused the request
- GatewayUnavailableError: The outcome is unknown (timeout, transport, 5xx)
"""


class PaymentGatewayError(Exception):
    """Base exception for all payment gateway errors.

    Attributes:
        message: Provider or transport error description.
        status_code: HTTP status code from the provider, if any.
        response_body: Raw response body if available.
        details: Optional dictionary with additional error context.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        details: dict | None = None,
    ):
        """Initialize gateway error.

        Args:
            message: Provider or transport error description.
            status_code: HTTP status code from the provider.
            response_body: Raw response body if available.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with status code."""
        base = self.message
        if self.status_code:
            base = f"[{self.status_code}] {base}"
        if self.details:
            base = f"{base} - Details: {self.details}"
        return base


class GatewayRejectedError(PaymentGatewayError):
    """The provider definitively refused the request.

    Raised for 4xx answers. The message is the provider's own description
    so operators see exactly what to fix (for example an invalid CPF).
    """

    pass


class GatewayUnavailableError(PaymentGatewayError):
    """The provider could not be reached or failed internally.

    The request may or may not have taken effect, so callers must treat
    the outcome as unknown and reconcile later.
    """

    pass
