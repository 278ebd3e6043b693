# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the enrollment payment state machine."""

import pytest

from edunexia.domains.enrollment.state_machine import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    EnrollmentEvent,
    EnrollmentStatus,
    is_terminal,
    next_status,
)

S = EnrollmentStatus
E = EnrollmentEvent

EDGES = {
    (S.PENDING, E.GATEWAY_ACCEPTED): S.WAITING_PAYMENT,
    (S.PENDING, E.GATEWAY_REJECTED): S.FAILED,
    (S.WAITING_PAYMENT, E.PAYMENT_CONFIRMED): S.PAYMENT_CONFIRMED,
    (S.WAITING_PAYMENT, E.PAYMENT_FAILED): S.FAILED,
    (S.PAYMENT_CONFIRMED, E.FINALIZE): S.COMPLETED,
    (S.PENDING, E.CANCEL): S.CANCELLED,
    (S.WAITING_PAYMENT, E.CANCEL): S.CANCELLED,
}


class TestNextStatus:
    @pytest.mark.parametrize("status", list(S))
    @pytest.mark.parametrize("event", list(E))
    def test_only_listed_edges_exist(self, status: EnrollmentStatus, event: EnrollmentEvent) -> None:
        assert next_status(status, event) == EDGES.get((status, event))

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES))
    def test_terminal_statuses_have_no_exit(self, status: EnrollmentStatus) -> None:
        assert is_terminal(status)
        assert all(next_status(status, event) is None for event in E)

    def test_confirmed_payment_cannot_be_cancelled(self) -> None:
        assert next_status(S.PAYMENT_CONFIRMED, E.CANCEL) is None

    def test_every_event_has_a_transition(self) -> None:
        assert set(TRANSITIONS) == set(E)
