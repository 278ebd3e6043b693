# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain records for the enrollment orchestrator.

Monetary values are integer cents everywhere in the domain; conversion to
the gateway's decimal representation happens only at the wire boundary.

Payment options are a tagged variant: each payment method is its own
type carrying only the fields that make sense for it, and code that
needs the method matches on the variant instead of comparing strings.
"""

from dataclasses import dataclass, field
from datetime import date, datetime

from edunexia.domains.enrollment.state_machine import EnrollmentStatus
from edunexia.services.payments.base import PaymentMethod

MIN_INSTALLMENTS = 1
MAX_INSTALLMENTS = 12


# =============================================================================
# Payment options
# =============================================================================


@dataclass(frozen=True)
class PayerChoice:
    """Let the payer choose among boleto, PIX and card on the payment page."""

    installments: int = 1


@dataclass(frozen=True)
class BoletoPayment:
    """Bank slip, optionally split into monthly slips."""

    installments: int = 1


@dataclass(frozen=True)
class PixPayment:
    """Instant payment; PIX charges are never split."""

    @property
    def installments(self) -> int:
        return 1


@dataclass(frozen=True)
class CreditCardPayment:
    """Card payment, optionally in installments."""

    installments: int = 1


PaymentOption = PayerChoice | BoletoPayment | PixPayment | CreditCardPayment


def payment_method_of(option: PaymentOption) -> PaymentMethod:
    """Return the gateway payment method for a payment option."""
    match option:
        case PayerChoice():
            return PaymentMethod.UNDEFINED
        case BoletoPayment():
            return PaymentMethod.BOLETO
        case PixPayment():
            return PaymentMethod.PIX
        case CreditCardPayment():
            return PaymentMethod.CREDIT_CARD
    raise TypeError(f"Unknown payment option: {option!r}")


def payment_option_for(method: PaymentMethod | str, installments: int = 1) -> PaymentOption:
    """Build the payment option for a stored method and installment count."""
    match PaymentMethod(method):
        case PaymentMethod.UNDEFINED:
            return PayerChoice(installments)
        case PaymentMethod.BOLETO:
            return BoletoPayment(installments)
        case PaymentMethod.PIX:
            return PixPayment()
        case PaymentMethod.CREDIT_CARD:
            return CreditCardPayment(installments)
    raise ValueError(f"Unknown payment method: {method}")


# =============================================================================
# Catalog records (owned by the course and student modules)
# =============================================================================


@dataclass
class Course:
    """Course offered by a tenant.

    Attributes:
        id: Course identifier.
        tenant_id: Owning tenant.
        title: Course title, used in charge descriptions.
        price: Default enrollment price in cents, if the course has one.
    """

    id: int
    tenant_id: str
    title: str
    price: int | None = None


@dataclass
class Student:
    """Learner account already provisioned in a tenant."""

    id: int
    tenant_id: str
    name: str
    email: str | None = None
    cpf: str | None = None


# =============================================================================
# Enrollment inputs
# =============================================================================


@dataclass(frozen=True)
class EnrollmentInput:
    """Operator-submitted data for a simplified enrollment.

    Attributes:
        course_id: Course to enroll in.
        student_name: Learner's full name.
        student_email: Learner's e-mail.
        student_cpf: Learner's CPF, formatted or not.
        payment: Payment option; defaults to letting the payer choose.
        amount: Price in cents. None uses the configured individual price.
        student_phone: Optional phone number.
        polo_id: Optional hub/unit the enrollment is attributed to.
        due_date: Optional charge due date.
    """

    course_id: int
    student_name: str
    student_email: str
    student_cpf: str
    payment: PaymentOption = field(default_factory=PayerChoice)
    amount: int | None = None
    student_phone: str | None = None
    polo_id: int | None = None
    due_date: date | None = None


@dataclass(frozen=True)
class BatchPayer:
    """Organization (or person) paying a batch invoice.

    Attributes:
        name: Payer name.
        document: CPF or CNPJ, formatted or not.
        email: Optional e-mail for gateway notifications.
    """

    name: str
    document: str
    email: str | None = None


# =============================================================================
# Persisted records
# =============================================================================


@dataclass
class Enrollment:
    """Simplified enrollment.

    amount, course_id and student_cpf never change after the record leaves
    pending; status changes only through the state machine.
    """

    tenant_id: str
    course_id: int
    student_name: str
    student_email: str
    student_cpf: str
    consultant_id: str
    amount: int
    installments: int = 1
    payment_method: PaymentMethod = PaymentMethod.UNDEFINED
    status: EnrollmentStatus = EnrollmentStatus.PENDING
    id: int | None = None
    student_id: int | None = None
    student_phone: str | None = None
    polo_id: int | None = None
    payment_url: str | None = None
    bank_slip_url: str | None = None
    gateway_transaction_id: str | None = None
    gateway_customer_id: str | None = None
    idempotency_key: str | None = None
    failure_reason: str | None = None
    due_date: date | None = None
    resubmitted_from_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    @property
    def external_reference(self) -> str:
        """Reference sent to the gateway; doubles as its idempotency key."""
        return enrollment_reference(self.id)

    @property
    def payment_option(self) -> PaymentOption:
        return payment_option_for(self.payment_method, self.installments)


@dataclass
class BatchEnrollmentPayment:
    """Several certifications of one course paid with a single invoice.

    total_value is always unit_price times the number of members.
    """

    tenant_id: str
    course_id: int
    consultant_id: str
    student_ids: list[int]
    unit_price: int
    payer_name: str
    payer_document: str
    payer_email: str | None = None
    payment_method: PaymentMethod = PaymentMethod.BOLETO
    status: EnrollmentStatus = EnrollmentStatus.PENDING
    id: int | None = None
    payment_url: str | None = None
    bank_slip_url: str | None = None
    gateway_transaction_id: str | None = None
    gateway_customer_id: str | None = None
    failure_reason: str | None = None
    due_date: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    @property
    def number_of_certifications(self) -> int:
        return len(self.student_ids)

    @property
    def total_value(self) -> int:
        return self.unit_price * len(self.student_ids)

    @property
    def external_reference(self) -> str:
        return batch_reference(self.id)


ENROLLMENT_REFERENCE_PREFIX = "enrollment-"
BATCH_REFERENCE_PREFIX = "batch-"


def enrollment_reference(enrollment_id: int | None) -> str:
    if enrollment_id is None:
        raise ValueError("Enrollment has not been persisted yet")
    return f"{ENROLLMENT_REFERENCE_PREFIX}{enrollment_id}"


def batch_reference(batch_id: int | None) -> str:
    if batch_id is None:
        raise ValueError("Batch has not been persisted yet")
    return f"{BATCH_REFERENCE_PREFIX}{batch_id}"


def parse_reference(reference: str | None) -> tuple[str, int] | None:
    """Split an external reference into ("enrollment"|"batch", id).

    Returns:
        The record kind and id, or None for references this system did not
        issue.
    """
    if not reference:
        return None
    for kind, prefix in (("enrollment", ENROLLMENT_REFERENCE_PREFIX), ("batch", BATCH_REFERENCE_PREFIX)):
        if reference.startswith(prefix):
            suffix = reference[len(prefix):]
            if suffix.isdigit():
                return kind, int(suffix)
    return None
