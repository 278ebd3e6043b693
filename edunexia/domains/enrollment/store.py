# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Persistence contract for the enrollment orchestrator.

Status writes are compare-and-set: update_*_status only touches the row
when its current status is one of the expected ones, and reports a lost
race by returning None. Only the fields listed in TRANSITION_FIELDS may
change alongside a status, and only GATEWAY_FIELDS may change without
one, so amount, course and CPF stay immutable.
"""

from abc import ABC, abstractmethod
from collections.abc import Collection, Mapping
from datetime import datetime
from typing import Any

from edunexia.domains.enrollment.models import (
    BatchEnrollmentPayment,
    Course,
    Enrollment,
    Student,
)
from edunexia.domains.enrollment.state_machine import EnrollmentStatus

GATEWAY_FIELDS: frozenset[str] = frozenset({
    "payment_url",
    "bank_slip_url",
    "gateway_transaction_id",
    "gateway_customer_id",
})

TRANSITION_FIELDS: frozenset[str] = GATEWAY_FIELDS | {
    "failure_reason",
    "student_id",
    "completed_at",
    "cancelled_at",
}


def check_changes(changes: Mapping[str, Any], allowed: frozenset[str]) -> None:
    """Reject writes to fields outside an allowed set.

    Raises:
        ValueError: If changes names a field that may not be written.
    """
    forbidden = set(changes) - allowed
    if forbidden:
        raise ValueError(f"Fields cannot be changed: {', '.join(sorted(forbidden))}")


class EnrollmentStore(ABC):
    """Async storage for enrollments, batches and the catalog reads they need.

    Every tenant-scoped method filters on tenant_id. The find_* methods
    without a tenant serve gateway reconciliation, where the tenant is only
    known from the record itself.
    """

    # -- catalog ------------------------------------------------------------

    @abstractmethod
    async def get_course(self, tenant_id: str, course_id: int) -> Course | None: ...

    @abstractmethod
    async def get_students(self, tenant_id: str, student_ids: Collection[int]) -> list[Student]: ...

    @abstractmethod
    async def certified_student_ids(
        self,
        tenant_id: str,
        course_id: int,
        student_ids: Collection[int],
    ) -> set[int]:
        """Students among student_ids already certified for the course."""

    @abstractmethod
    async def students_in_open_batches(
        self,
        tenant_id: str,
        course_id: int,
        student_ids: Collection[int],
    ) -> set[int]:
        """Students among student_ids in a non-terminal batch for the course."""

    @abstractmethod
    async def record_certifications(
        self,
        tenant_id: str,
        course_id: int,
        student_ids: Collection[int],
    ) -> None: ...

    # -- enrollments --------------------------------------------------------

    @abstractmethod
    async def add_enrollment(self, enrollment: Enrollment) -> Enrollment:
        """Persist a new enrollment and return it with id and timestamps."""

    @abstractmethod
    async def get_enrollment(self, tenant_id: str, enrollment_id: int) -> Enrollment | None: ...

    @abstractmethod
    async def find_enrollment(self, enrollment_id: int) -> Enrollment | None: ...

    @abstractmethod
    async def find_enrollment_by_idempotency_key(
        self,
        tenant_id: str,
        idempotency_key: str,
    ) -> Enrollment | None: ...

    @abstractmethod
    async def find_enrollment_by_transaction(self, transaction_id: str) -> Enrollment | None: ...

    @abstractmethod
    async def list_enrollments(
        self,
        tenant_id: str,
        status: EnrollmentStatus | None = None,
        consultant_id: str | None = None,
    ) -> list[Enrollment]:
        """List enrollments, newest first."""

    @abstractmethod
    async def list_stale_enrollments(
        self,
        tenant_id: str,
        status: EnrollmentStatus,
        updated_before: datetime,
    ) -> list[Enrollment]: ...

    @abstractmethod
    async def update_enrollment_status(
        self,
        tenant_id: str,
        enrollment_id: int,
        expected: Collection[EnrollmentStatus],
        status: EnrollmentStatus,
        changes: Mapping[str, Any] | None = None,
    ) -> Enrollment | None:
        """Compare-and-set an enrollment's status.

        Args:
            tenant_id: Owning tenant.
            enrollment_id: Enrollment to update.
            expected: Statuses the row must currently have.
            status: New status.
            changes: Extra fields from TRANSITION_FIELDS.

        Returns:
            The updated enrollment, or None if no row matched.
        """

    @abstractmethod
    async def update_enrollment_gateway_fields(
        self,
        tenant_id: str,
        enrollment_id: int,
        changes: Mapping[str, Any],
    ) -> Enrollment | None:
        """Store gateway references (GATEWAY_FIELDS) without a status change."""

    # -- batches ------------------------------------------------------------

    @abstractmethod
    async def add_batch(self, batch: BatchEnrollmentPayment) -> BatchEnrollmentPayment: ...

    @abstractmethod
    async def get_batch(self, tenant_id: str, batch_id: int) -> BatchEnrollmentPayment | None: ...

    @abstractmethod
    async def find_batch(self, batch_id: int) -> BatchEnrollmentPayment | None: ...

    @abstractmethod
    async def find_batch_by_transaction(self, transaction_id: str) -> BatchEnrollmentPayment | None: ...

    @abstractmethod
    async def list_batches(
        self,
        tenant_id: str,
        status: EnrollmentStatus | None = None,
        consultant_id: str | None = None,
    ) -> list[BatchEnrollmentPayment]: ...

    @abstractmethod
    async def update_batch_status(
        self,
        tenant_id: str,
        batch_id: int,
        expected: Collection[EnrollmentStatus],
        status: EnrollmentStatus,
        changes: Mapping[str, Any] | None = None,
    ) -> BatchEnrollmentPayment | None:
        """Compare-and-set a batch's status; see update_enrollment_status."""

    @abstractmethod
    async def update_batch_gateway_fields(
        self,
        tenant_id: str,
        batch_id: int,
        changes: Mapping[str, Any],
    ) -> BatchEnrollmentPayment | None: ...
