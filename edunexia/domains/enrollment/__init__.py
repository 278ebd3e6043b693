# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment and batch payment orchestration.

This package contains:
- state_machine: Statuses, events and allowed transitions
- models: Enrollment records, inputs and payment options
- store: Persistence contract with compare-and-set status writes
- repository: SQLAlchemy implementation of the store
- service: EnrollmentService orchestrating validation, charges and reconciliation
"""

from edunexia.domains.enrollment.models import (
    BatchEnrollmentPayment,
    BatchPayer,
    BoletoPayment,
    Course,
    CreditCardPayment,
    Enrollment,
    EnrollmentInput,
    PayerChoice,
    PaymentOption,
    PixPayment,
    Student,
    parse_reference,
    payment_method_of,
)
from edunexia.domains.enrollment.service import EnrollmentService
from edunexia.domains.enrollment.state_machine import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    EnrollmentEvent,
    EnrollmentStatus,
    is_terminal,
    next_status,
)
from edunexia.domains.enrollment.store import EnrollmentStore

__all__ = [
    "EnrollmentService",
    "EnrollmentStore",
    "EnrollmentStatus",
    "EnrollmentEvent",
    "TERMINAL_STATUSES",
    "OPEN_STATUSES",
    "next_status",
    "is_terminal",
    "Enrollment",
    "EnrollmentInput",
    "BatchEnrollmentPayment",
    "BatchPayer",
    "Course",
    "Student",
    "PaymentOption",
    "PayerChoice",
    "BoletoPayment",
    "PixPayment",
    "CreditCardPayment",
    "payment_method_of",
    "parse_reference",
]
