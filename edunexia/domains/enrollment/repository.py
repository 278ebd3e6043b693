# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy implementation of EnrollmentStore.

Each write commits immediately: the enrollment must survive a gateway
failure raised later in the same request, and status changes must be
visible to concurrent webhook deliveries as soon as they happen.
"""

import logging
from collections.abc import Collection, Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from edunexia.domains.enrollment.models import (
    BatchEnrollmentPayment,
    Course,
    Enrollment,
    Student,
)
from edunexia.domains.enrollment.state_machine import OPEN_STATUSES, EnrollmentStatus
from edunexia.domains.enrollment.store import (
    GATEWAY_FIELDS,
    TRANSITION_FIELDS,
    EnrollmentStore,
    check_changes,
)
from edunexia.infrastructure.database.models import (
    BatchEnrollmentItemModel,
    BatchEnrollmentPaymentModel,
    CertificationModel,
    CourseModel,
    SimplifiedEnrollmentModel,
    StudentModel,
)
from edunexia.services.payments.base import PaymentMethod
from edunexia.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)


def _to_enrollment(model: SimplifiedEnrollmentModel) -> Enrollment:
    return Enrollment(
        id=model.id,
        tenant_id=model.tenant_id,
        course_id=model.course_id,
        student_id=model.student_id,
        student_name=model.student_name,
        student_email=model.student_email,
        student_cpf=model.student_cpf,
        student_phone=model.student_phone,
        polo_id=model.polo_id,
        consultant_id=model.consultant_id,
        amount=model.amount,
        installments=model.installments,
        payment_method=PaymentMethod(model.payment_method),
        status=EnrollmentStatus(model.status),
        payment_url=model.payment_url,
        bank_slip_url=model.bank_slip_url,
        gateway_transaction_id=model.gateway_transaction_id,
        gateway_customer_id=model.gateway_customer_id,
        idempotency_key=model.idempotency_key,
        failure_reason=model.failure_reason,
        due_date=model.due_date,
        resubmitted_from_id=model.resubmitted_from_id,
        created_at=ensure_utc(model.created_at),
        updated_at=ensure_utc(model.updated_at),
        completed_at=ensure_utc(model.completed_at),
        cancelled_at=ensure_utc(model.cancelled_at),
    )


def _to_batch(model: BatchEnrollmentPaymentModel) -> BatchEnrollmentPayment:
    return BatchEnrollmentPayment(
        id=model.id,
        tenant_id=model.tenant_id,
        course_id=model.course_id,
        consultant_id=model.consultant_id,
        student_ids=[item.student_id for item in model.items],
        unit_price=model.unit_price,
        payer_name=model.payer_name,
        payer_document=model.payer_document,
        payer_email=model.payer_email,
        payment_method=PaymentMethod(model.payment_method),
        status=EnrollmentStatus(model.status),
        payment_url=model.payment_url,
        bank_slip_url=model.bank_slip_url,
        gateway_transaction_id=model.gateway_transaction_id,
        gateway_customer_id=model.gateway_customer_id,
        failure_reason=model.failure_reason,
        due_date=model.due_date,
        created_at=ensure_utc(model.created_at),
        updated_at=ensure_utc(model.updated_at),
        completed_at=ensure_utc(model.completed_at),
        cancelled_at=ensure_utc(model.cancelled_at),
    )


class SqlEnrollmentStore(EnrollmentStore):
    """EnrollmentStore backed by PostgreSQL.

    Attributes:
        _db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize the store.

        Args:
            db: Async database session.
        """
        self._db = db

    # =========================================================================
    # Catalog
    # =========================================================================

    async def get_course(self, tenant_id: str, course_id: int) -> Course | None:
        stmt = select(CourseModel).where(
            CourseModel.id == course_id,
            CourseModel.tenant_id == tenant_id,
        )
        result = await self._db.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return Course(id=model.id, tenant_id=model.tenant_id, title=model.title, price=model.price)

    async def get_students(self, tenant_id: str, student_ids: Collection[int]) -> list[Student]:
        if not student_ids:
            return []
        stmt = select(StudentModel).where(
            StudentModel.tenant_id == tenant_id,
            StudentModel.id.in_(list(student_ids)),
        )
        result = await self._db.execute(stmt)
        return [
            Student(id=m.id, tenant_id=m.tenant_id, name=m.name, email=m.email, cpf=m.cpf)
            for m in result.scalars().all()
        ]

    async def certified_student_ids(
        self,
        tenant_id: str,
        course_id: int,
        student_ids: Collection[int],
    ) -> set[int]:
        if not student_ids:
            return set()
        stmt = select(CertificationModel.student_id).where(
            CertificationModel.tenant_id == tenant_id,
            CertificationModel.course_id == course_id,
            CertificationModel.student_id.in_(list(student_ids)),
        )
        result = await self._db.execute(stmt)
        return set(result.scalars().all())

    async def students_in_open_batches(
        self,
        tenant_id: str,
        course_id: int,
        student_ids: Collection[int],
    ) -> set[int]:
        if not student_ids:
            return set()
        stmt = (
            select(BatchEnrollmentItemModel.student_id)
            .join(BatchEnrollmentPaymentModel, BatchEnrollmentItemModel.batch_id == BatchEnrollmentPaymentModel.id)
            .where(
                BatchEnrollmentPaymentModel.tenant_id == tenant_id,
                BatchEnrollmentPaymentModel.course_id == course_id,
                BatchEnrollmentPaymentModel.status.in_([s.value for s in OPEN_STATUSES]),
                BatchEnrollmentItemModel.student_id.in_(list(student_ids)),
            )
        )
        result = await self._db.execute(stmt)
        return set(result.scalars().all())

    async def record_certifications(
        self,
        tenant_id: str,
        course_id: int,
        student_ids: Collection[int],
    ) -> None:
        if not student_ids:
            return
        now = utc_now()
        stmt = (
            pg_insert(CertificationModel)
            .values([
                {"tenant_id": tenant_id, "course_id": course_id, "student_id": sid, "issued_at": now}
                for sid in student_ids
            ])
            .on_conflict_do_nothing(constraint="uq_certifications_tenant_course_student")
        )
        await self._db.execute(stmt)
        await self._db.commit()

    # =========================================================================
    # Enrollments
    # =========================================================================

    async def add_enrollment(self, enrollment: Enrollment) -> Enrollment:
        """Insert an enrollment.

        A concurrent insert with the same idempotency key returns the
        enrollment that won.
        """
        model = SimplifiedEnrollmentModel(
            tenant_id=enrollment.tenant_id,
            course_id=enrollment.course_id,
            student_id=enrollment.student_id,
            student_name=enrollment.student_name,
            student_email=enrollment.student_email,
            student_cpf=enrollment.student_cpf,
            student_phone=enrollment.student_phone,
            polo_id=enrollment.polo_id,
            consultant_id=enrollment.consultant_id,
            amount=enrollment.amount,
            installments=enrollment.installments,
            payment_method=PaymentMethod(enrollment.payment_method).value,
            status=EnrollmentStatus(enrollment.status).value,
            idempotency_key=enrollment.idempotency_key,
            due_date=enrollment.due_date,
            resubmitted_from_id=enrollment.resubmitted_from_id,
        )
        self._db.add(model)
        try:
            await self._db.commit()
        except IntegrityError:
            await self._db.rollback()
            if enrollment.idempotency_key:
                existing = await self.find_enrollment_by_idempotency_key(
                    enrollment.tenant_id,
                    enrollment.idempotency_key,
                )
                if existing is not None:
                    logger.info(
                        "Concurrent insert with same idempotency key: id=%s, key=%s",
                        existing.id,
                        enrollment.idempotency_key,
                    )
                    return existing
            raise
        return _to_enrollment(model)

    async def _select_enrollment(self, *conditions: Any) -> Enrollment | None:
        stmt = (
            select(SimplifiedEnrollmentModel)
            .where(*conditions)
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(stmt)
        model = result.scalars().first()
        return _to_enrollment(model) if model is not None else None

    async def get_enrollment(self, tenant_id: str, enrollment_id: int) -> Enrollment | None:
        return await self._select_enrollment(
            SimplifiedEnrollmentModel.id == enrollment_id,
            SimplifiedEnrollmentModel.tenant_id == tenant_id,
        )

    async def find_enrollment(self, enrollment_id: int) -> Enrollment | None:
        return await self._select_enrollment(SimplifiedEnrollmentModel.id == enrollment_id)

    async def find_enrollment_by_idempotency_key(
        self,
        tenant_id: str,
        idempotency_key: str,
    ) -> Enrollment | None:
        return await self._select_enrollment(
            SimplifiedEnrollmentModel.tenant_id == tenant_id,
            SimplifiedEnrollmentModel.idempotency_key == idempotency_key,
        )

    async def find_enrollment_by_transaction(self, transaction_id: str) -> Enrollment | None:
        return await self._select_enrollment(
            SimplifiedEnrollmentModel.gateway_transaction_id == transaction_id,
        )

    async def list_enrollments(
        self,
        tenant_id: str,
        status: EnrollmentStatus | None = None,
        consultant_id: str | None = None,
    ) -> list[Enrollment]:
        stmt = select(SimplifiedEnrollmentModel).where(SimplifiedEnrollmentModel.tenant_id == tenant_id)
        if status is not None:
            stmt = stmt.where(SimplifiedEnrollmentModel.status == EnrollmentStatus(status).value)
        if consultant_id is not None:
            stmt = stmt.where(SimplifiedEnrollmentModel.consultant_id == consultant_id)
        stmt = stmt.order_by(SimplifiedEnrollmentModel.created_at.desc(), SimplifiedEnrollmentModel.id.desc())

        result = await self._db.execute(stmt)
        return [_to_enrollment(model) for model in result.scalars().all()]

    async def list_stale_enrollments(
        self,
        tenant_id: str,
        status: EnrollmentStatus,
        updated_before: datetime,
    ) -> list[Enrollment]:
        stmt = (
            select(SimplifiedEnrollmentModel)
            .where(
                SimplifiedEnrollmentModel.tenant_id == tenant_id,
                SimplifiedEnrollmentModel.status == EnrollmentStatus(status).value,
                SimplifiedEnrollmentModel.updated_at < updated_before,
            )
            .order_by(SimplifiedEnrollmentModel.updated_at)
        )
        result = await self._db.execute(stmt)
        return [_to_enrollment(model) for model in result.scalars().all()]

    async def update_enrollment_status(
        self,
        tenant_id: str,
        enrollment_id: int,
        expected: Collection[EnrollmentStatus],
        status: EnrollmentStatus,
        changes: Mapping[str, Any] | None = None,
    ) -> Enrollment | None:
        values = dict(changes or {})
        check_changes(values, TRANSITION_FIELDS)

        stmt = (
            update(SimplifiedEnrollmentModel)
            .where(
                SimplifiedEnrollmentModel.id == enrollment_id,
                SimplifiedEnrollmentModel.tenant_id == tenant_id,
                SimplifiedEnrollmentModel.status.in_([EnrollmentStatus(s).value for s in expected]),
            )
            .values(status=EnrollmentStatus(status).value, updated_at=utc_now(), **values)
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(stmt)

        if result.rowcount == 0:
            await self._db.rollback()
            return None

        await self._db.commit()
        return await self.get_enrollment(tenant_id, enrollment_id)

    async def update_enrollment_gateway_fields(
        self,
        tenant_id: str,
        enrollment_id: int,
        changes: Mapping[str, Any],
    ) -> Enrollment | None:
        values = dict(changes)
        check_changes(values, GATEWAY_FIELDS)
        if not values:
            return await self.get_enrollment(tenant_id, enrollment_id)

        stmt = (
            update(SimplifiedEnrollmentModel)
            .where(
                SimplifiedEnrollmentModel.id == enrollment_id,
                SimplifiedEnrollmentModel.tenant_id == tenant_id,
            )
            .values(updated_at=utc_now(), **values)
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(stmt)
        if result.rowcount == 0:
            await self._db.rollback()
            return None

        await self._db.commit()
        return await self.get_enrollment(tenant_id, enrollment_id)

    # =========================================================================
    # Batches
    # =========================================================================

    async def add_batch(self, batch: BatchEnrollmentPayment) -> BatchEnrollmentPayment:
        model = BatchEnrollmentPaymentModel(
            tenant_id=batch.tenant_id,
            course_id=batch.course_id,
            consultant_id=batch.consultant_id,
            unit_price=batch.unit_price,
            total_value=batch.total_value,
            number_of_certifications=batch.number_of_certifications,
            payer_name=batch.payer_name,
            payer_document=batch.payer_document,
            payer_email=batch.payer_email,
            payment_method=PaymentMethod(batch.payment_method).value,
            status=EnrollmentStatus(batch.status).value,
            due_date=batch.due_date,
            items=[BatchEnrollmentItemModel(student_id=sid) for sid in batch.student_ids],
        )
        self._db.add(model)
        await self._db.commit()
        return _to_batch(model)

    async def _select_batch(self, *conditions: Any) -> BatchEnrollmentPayment | None:
        stmt = (
            select(BatchEnrollmentPaymentModel)
            .where(*conditions)
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(stmt)
        model = result.scalars().first()
        return _to_batch(model) if model is not None else None

    async def get_batch(self, tenant_id: str, batch_id: int) -> BatchEnrollmentPayment | None:
        return await self._select_batch(
            BatchEnrollmentPaymentModel.id == batch_id,
            BatchEnrollmentPaymentModel.tenant_id == tenant_id,
        )

    async def find_batch(self, batch_id: int) -> BatchEnrollmentPayment | None:
        return await self._select_batch(BatchEnrollmentPaymentModel.id == batch_id)

    async def find_batch_by_transaction(self, transaction_id: str) -> BatchEnrollmentPayment | None:
        return await self._select_batch(BatchEnrollmentPaymentModel.gateway_transaction_id == transaction_id)

    async def list_batches(
        self,
        tenant_id: str,
        status: EnrollmentStatus | None = None,
        consultant_id: str | None = None,
    ) -> list[BatchEnrollmentPayment]:
        stmt = select(BatchEnrollmentPaymentModel).where(BatchEnrollmentPaymentModel.tenant_id == tenant_id)
        if status is not None:
            stmt = stmt.where(BatchEnrollmentPaymentModel.status == EnrollmentStatus(status).value)
        if consultant_id is not None:
            stmt = stmt.where(BatchEnrollmentPaymentModel.consultant_id == consultant_id)
        stmt = stmt.order_by(BatchEnrollmentPaymentModel.created_at.desc(), BatchEnrollmentPaymentModel.id.desc())

        result = await self._db.execute(stmt)
        return [_to_batch(model) for model in result.scalars().all()]

    async def update_batch_status(
        self,
        tenant_id: str,
        batch_id: int,
        expected: Collection[EnrollmentStatus],
        status: EnrollmentStatus,
        changes: Mapping[str, Any] | None = None,
    ) -> BatchEnrollmentPayment | None:
        values = dict(changes or {})
        check_changes(values, TRANSITION_FIELDS - {"student_id"})

        stmt = (
            update(BatchEnrollmentPaymentModel)
            .where(
                BatchEnrollmentPaymentModel.id == batch_id,
                BatchEnrollmentPaymentModel.tenant_id == tenant_id,
                BatchEnrollmentPaymentModel.status.in_([EnrollmentStatus(s).value for s in expected]),
            )
            .values(status=EnrollmentStatus(status).value, updated_at=utc_now(), **values)
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(stmt)

        if result.rowcount == 0:
            await self._db.rollback()
            return None

        await self._db.commit()
        return await self.get_batch(tenant_id, batch_id)

    async def update_batch_gateway_fields(
        self,
        tenant_id: str,
        batch_id: int,
        changes: Mapping[str, Any],
    ) -> BatchEnrollmentPayment | None:
        values = dict(changes)
        check_changes(values, GATEWAY_FIELDS)
        if not values:
            return await self.get_batch(tenant_id, batch_id)

        stmt = (
            update(BatchEnrollmentPaymentModel)
            .where(
                BatchEnrollmentPaymentModel.id == batch_id,
                BatchEnrollmentPaymentModel.tenant_id == tenant_id,
            )
            .values(updated_at=utc_now(), **values)
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(stmt)
        if result.rowcount == 0:
            await self._db.rollback()
            return None

        await self._db.commit()
        return await self.get_batch(tenant_id, batch_id)
