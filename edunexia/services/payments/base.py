# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment gateway interface.

The enrollment orchestrator talks to payment providers only through
PaymentGateway. Amounts cross this interface as integer cents.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any


class PaymentMethod(str, Enum):
    """How the payer settles a charge."""

    UNDEFINED = "UNDEFINED"
    BOLETO = "BOLETO"
    CREDIT_CARD = "CREDIT_CARD"
    PIX = "PIX"


class ChargeStatus(str, Enum):
    """Provider-independent charge status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class Payer:
    """Customer the charge is issued to.

    Attributes:
        name: Payer name.
        document: CPF or CNPJ digits.
        email: Optional e-mail for provider notifications.
        phone: Optional mobile phone.
    """

    name: str
    document: str
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class ChargeRequest:
    """Charge to create.

    Attributes:
        external_reference: Our reference for the charge. Providers are
            asked to deduplicate on it, so it is also the idempotency key.
        description: Text shown to the payer.
        payer: Customer data.
        amount: Total amount in cents.
        installments: Number of installments (1 means a single charge).
        payment_method: Payment method offered to the payer.
        due_date: Due date of the (first) charge.
    """

    external_reference: str
    description: str
    payer: Payer
    amount: int
    installments: int = 1
    payment_method: PaymentMethod = PaymentMethod.UNDEFINED
    due_date: date | None = None


@dataclass(frozen=True)
class ChargeResult:
    """Charge as known by the provider."""

    transaction_id: str
    status: ChargeStatus
    payment_url: str | None = None
    bank_slip_url: str | None = None
    customer_id: str | None = None
    external_reference: str | None = None


@dataclass(frozen=True)
class GatewayEvent:
    """Normalized payment notification.

    Attributes:
        name: Provider event name (for logging).
        status: Charge status the event reports.
        transaction_id: Provider charge id.
        external_reference: Our reference, when the provider echoes it.
        payment_url: Payment page, when the notification carries it.
        bank_slip_url: Boleto PDF, when the notification carries it.
    """

    name: str
    status: ChargeStatus
    transaction_id: str | None = None
    external_reference: str | None = None
    payment_url: str | None = None
    bank_slip_url: str | None = None

    @classmethod
    def from_charge(cls, charge: ChargeResult, name: str = "POLL") -> "GatewayEvent":
        """Build an event from a polled charge."""
        return cls(
            name=name,
            status=charge.status,
            transaction_id=charge.transaction_id,
            external_reference=charge.external_reference,
            payment_url=charge.payment_url,
            bank_slip_url=charge.bank_slip_url,
        )


class PaymentGateway(ABC):
    """Abstract payment provider."""

    @abstractmethod
    async def create_charge(self, request: ChargeRequest) -> ChargeResult:
        """Create a charge, or return the existing one for the same reference.

        Raises:
            GatewayRejectedError: If the provider refused the charge.
            GatewayUnavailableError: If the outcome is unknown.
        """

    @abstractmethod
    async def find_charge(self, external_reference: str) -> ChargeResult | None:
        """Look up a charge by our external reference."""

    @abstractmethod
    async def get_charge(self, transaction_id: str) -> ChargeResult:
        """Fetch a charge by provider id."""

    @abstractmethod
    async def cancel_charge(self, transaction_id: str) -> bool:
        """Cancel a charge.

        Returns:
            True if the provider cancelled it, False if it refused.

        Raises:
            GatewayUnavailableError: If the provider could not be reached.
        """

    @abstractmethod
    def parse_webhook(self, payload: dict[str, Any]) -> GatewayEvent | None:
        """Normalize a webhook body; None for events that carry no status."""
