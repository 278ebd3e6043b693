# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment payment state machine.

Shared by single enrollments and batch enrollment payments:

    pending           --gateway_accepted-->  waiting_payment
    pending           --gateway_rejected-->  failed
    waiting_payment   --payment_confirmed--> payment_confirmed
    waiting_payment   --payment_failed-->    failed
    payment_confirmed --finalize-->          completed
    pending|waiting_payment --cancel-->      cancelled

completed, cancelled and failed are terminal.
"""

from enum import Enum


class EnrollmentStatus(str, Enum):
    """Lifecycle status of an enrollment or batch payment."""

    PENDING = "pending"
    WAITING_PAYMENT = "waiting_payment"
    PAYMENT_CONFIRMED = "payment_confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class EnrollmentEvent(str, Enum):
    """Events that move an enrollment between statuses."""

    GATEWAY_ACCEPTED = "gateway_accepted"
    GATEWAY_REJECTED = "gateway_rejected"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_FAILED = "payment_failed"
    FINALIZE = "finalize"
    CANCEL = "cancel"


TERMINAL_STATUSES: frozenset[EnrollmentStatus] = frozenset({
    EnrollmentStatus.COMPLETED,
    EnrollmentStatus.CANCELLED,
    EnrollmentStatus.FAILED,
})

# Open statuses: the charge may still be paid or cancelled
OPEN_STATUSES: frozenset[EnrollmentStatus] = frozenset({
    EnrollmentStatus.PENDING,
    EnrollmentStatus.WAITING_PAYMENT,
    EnrollmentStatus.PAYMENT_CONFIRMED,
})

# event -> (allowed source statuses, target status)
TRANSITIONS: dict[EnrollmentEvent, tuple[frozenset[EnrollmentStatus], EnrollmentStatus]] = {
    EnrollmentEvent.GATEWAY_ACCEPTED: (
        frozenset({EnrollmentStatus.PENDING}),
        EnrollmentStatus.WAITING_PAYMENT,
    ),
    EnrollmentEvent.GATEWAY_REJECTED: (
        frozenset({EnrollmentStatus.PENDING}),
        EnrollmentStatus.FAILED,
    ),
    EnrollmentEvent.PAYMENT_CONFIRMED: (
        frozenset({EnrollmentStatus.WAITING_PAYMENT}),
        EnrollmentStatus.PAYMENT_CONFIRMED,
    ),
    EnrollmentEvent.PAYMENT_FAILED: (
        frozenset({EnrollmentStatus.WAITING_PAYMENT}),
        EnrollmentStatus.FAILED,
    ),
    EnrollmentEvent.FINALIZE: (
        frozenset({EnrollmentStatus.PAYMENT_CONFIRMED}),
        EnrollmentStatus.COMPLETED,
    ),
    EnrollmentEvent.CANCEL: (
        frozenset({EnrollmentStatus.PENDING, EnrollmentStatus.WAITING_PAYMENT}),
        EnrollmentStatus.CANCELLED,
    ),
}


def source_statuses(event: EnrollmentEvent) -> frozenset[EnrollmentStatus]:
    """Statuses from which an event may be applied."""
    return TRANSITIONS[event][0]


def target_status(event: EnrollmentEvent) -> EnrollmentStatus:
    """Status an event leads to."""
    return TRANSITIONS[event][1]


def next_status(
    current: EnrollmentStatus,
    event: EnrollmentEvent,
) -> EnrollmentStatus | None:
    """Apply an event to a status.

    Args:
        current: Current status.
        event: Requested event.

    Returns:
        The new status, or None if the event is not an edge from current.
    """
    sources, target = TRANSITIONS[event]
    if current not in sources:
        return None
    return target


def is_terminal(status: EnrollmentStatus) -> bool:
    """Check whether no event can leave a status."""
    return status in TERMINAL_STATUSES
