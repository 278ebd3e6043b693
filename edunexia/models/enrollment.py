# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment API schemas.

Payment options are a discriminated union on "method": PIX carries no
installments field at all, so a PIX request with installments is rejected
at parse time. Installment bounds and every other business rule are
checked by EnrollmentService so they surface with the offending field.
"""

from datetime import date, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from edunexia.domains.enrollment import (
    BatchPayer,
    BoletoPayment,
    CreditCardPayment,
    EnrollmentEvent,
    EnrollmentInput,
    EnrollmentStatus,
    PayerChoice,
    PaymentOption,
    PixPayment,
)
from edunexia.services.payments import PaymentMethod

# =============================================================================
# Payment options
# =============================================================================


class PayerChoiceOption(BaseModel):
    """Let the payer pick the method on the gateway's payment page."""

    model_config = ConfigDict(extra="forbid")

    method: Literal["UNDEFINED"] = "UNDEFINED"
    installments: int = 1

    def to_domain(self) -> PaymentOption:
        return PayerChoice(self.installments)


class BoletoOption(BaseModel):
    model_config = ConfigDict(extra="forbid")

    method: Literal["BOLETO"]
    installments: int = 1

    def to_domain(self) -> PaymentOption:
        return BoletoPayment(self.installments)


class PixOption(BaseModel):
    model_config = ConfigDict(extra="forbid")

    method: Literal["PIX"]

    def to_domain(self) -> PaymentOption:
        return PixPayment()


class CreditCardOption(BaseModel):
    model_config = ConfigDict(extra="forbid")

    method: Literal["CREDIT_CARD"]
    installments: int = 1

    def to_domain(self) -> PaymentOption:
        return CreditCardPayment(self.installments)


PaymentOptionRequest = Annotated[
    PayerChoiceOption | BoletoOption | PixOption | CreditCardOption,
    Field(discriminator="method"),
]


# =============================================================================
# Simplified enrollment
# =============================================================================


class EnrollmentCreateRequest(BaseModel):
    """Operator-submitted simplified enrollment."""

    course_id: int
    student_name: str = Field(description="Learner's full name")
    student_email: str = Field(description="Learner's e-mail")
    student_cpf: str = Field(description="Learner's CPF, formatted or digits only")
    student_phone: str | None = None
    polo_id: int | None = Field(default=None, description="Hub the enrollment is attributed to")
    amount: int | None = Field(
        default=None,
        description="Price in cents; defaults to the course price or the configured individual price",
    )
    payment: PaymentOptionRequest = Field(default_factory=PayerChoiceOption)
    due_date: date | None = None

    def to_input(self) -> EnrollmentInput:
        return EnrollmentInput(
            course_id=self.course_id,
            student_name=self.student_name,
            student_email=self.student_email,
            student_cpf=self.student_cpf,
            payment=self.payment.to_domain(),
            amount=self.amount,
            student_phone=self.student_phone,
            polo_id=self.polo_id,
            due_date=self.due_date,
        )


class EnrollmentResponse(BaseModel):
    """Simplified enrollment."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: str
    course_id: int
    student_id: int | None
    student_name: str
    student_email: str
    student_cpf: str
    student_phone: str | None
    polo_id: int | None
    consultant_id: str
    amount: int = Field(description="Price in cents")
    installments: int
    payment_method: PaymentMethod
    status: EnrollmentStatus
    external_reference: str
    payment_url: str | None
    bank_slip_url: str | None
    gateway_transaction_id: str | None
    failure_reason: str | None
    due_date: date | None
    resubmitted_from_id: int | None
    created_at: datetime | None
    updated_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None


class EnrollmentListResponse(BaseModel):
    items: list[EnrollmentResponse]
    total: int


class TransitionRequest(BaseModel):
    """Operator-driven state machine event."""

    event: EnrollmentEvent
    student_id: int | None = Field(
        default=None,
        description="Learner account to link; only accepted with FINALIZE",
    )


class ExpireStaleRequest(BaseModel):
    older_than_days: int | None = Field(
        default=None,
        description="Age cutoff in days; defaults to the configured one",
    )


class ExpireStaleResponse(BaseModel):
    expired: list[EnrollmentResponse]
    count: int


# =============================================================================
# Batch enrollment
# =============================================================================


class BatchPayerRequest(BaseModel):
    name: str
    document: str = Field(description="CPF or CNPJ, formatted or digits only")
    email: str | None = None

    def to_domain(self) -> BatchPayer:
        return BatchPayer(name=self.name, document=self.document, email=self.email)


class BatchCreateRequest(BaseModel):
    """One invoice covering the certification of several students."""

    course_id: int
    student_ids: list[int] = Field(min_length=1)
    payer: BatchPayerRequest
    due_date: date | None = None
    payment_method: PaymentMethod = PaymentMethod.BOLETO


class BatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: str
    course_id: int
    consultant_id: str
    student_ids: list[int]
    number_of_certifications: int
    unit_price: int = Field(description="Per-student price in cents")
    total_value: int = Field(description="Invoice total in cents")
    payer_name: str
    payer_document: str
    payer_email: str | None
    payment_method: PaymentMethod
    status: EnrollmentStatus
    external_reference: str
    payment_url: str | None
    bank_slip_url: str | None
    gateway_transaction_id: str | None
    failure_reason: str | None
    due_date: date | None
    created_at: datetime | None
    updated_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None


class BatchListResponse(BaseModel):
    items: list[BatchResponse]
    total: int


class BatchTransitionRequest(BaseModel):
    event: EnrollmentEvent


# =============================================================================
# Webhooks
# =============================================================================


class WebhookAck(BaseModel):
    """Acknowledgement returned to the gateway."""

    received: bool = True
    processed: bool = Field(description="Whether the event matched a record")
    status: EnrollmentStatus | None = Field(
        default=None,
        description="Record status after reconciliation",
    )
