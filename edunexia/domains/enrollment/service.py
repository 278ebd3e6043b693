# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment service for simplified and batch enrollments.

This module provides the EnrollmentService class for:
- Validating and creating single enrollments and batch certification payments
- Driving the payment gateway charge for each record
- Moving records through the payment state machine
- Reconciling gateway notifications, polls and stale charges

Every status write is a compare-and-set against the statuses the state
machine allows for the event, so concurrent webhooks, polls and operator
actions cannot overwrite each other.
"""

import logging
from collections.abc import Awaitable, Callable, Collection, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from email_validator import EmailNotValidError, validate_email

from edunexia.core.config.settings import PricingSettings
from edunexia.core.exceptions import (
    GatewayError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from edunexia.domains.documents import is_valid_cpf, is_valid_document, only_digits
from edunexia.domains.enrollment.models import (
    MAX_INSTALLMENTS,
    MIN_INSTALLMENTS,
    BatchEnrollmentPayment,
    BatchPayer,
    BoletoPayment,
    Course,
    CreditCardPayment,
    Enrollment,
    EnrollmentInput,
    PayerChoice,
    PixPayment,
    parse_reference,
    payment_method_of,
)
from edunexia.domains.enrollment.state_machine import (
    EnrollmentEvent,
    EnrollmentStatus,
    is_terminal,
    next_status,
    source_statuses,
)
from edunexia.domains.enrollment.store import EnrollmentStore
from edunexia.services.payments import (
    ChargeRequest,
    ChargeResult,
    ChargeStatus,
    GatewayEvent,
    GatewayRejectedError,
    GatewayUnavailableError,
    Payer,
    PaymentGateway,
    PaymentGatewayError,
    PaymentMethod,
)
from edunexia.utils.datetime import days_ago, due_date_in, utc_now

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 3
EXPIRED_REASON = "payment expired"

Record = Enrollment | BatchEnrollmentPayment


@dataclass(frozen=True)
class _RecordKind:
    """Store operations for one record type, so shared flows stay generic."""

    resource: str
    get: Callable[[str, int], Awaitable[Any]]
    update_status: Callable[..., Awaitable[Any]]
    update_gateway_fields: Callable[[str, int, Mapping[str, Any]], Awaitable[Any]]


def _gateway_fields(source: ChargeResult | GatewayEvent) -> dict[str, Any]:
    """Collect the non-empty gateway references of a charge or event."""
    fields = {
        "gateway_transaction_id": source.transaction_id,
        "payment_url": source.payment_url,
        "bank_slip_url": source.bank_slip_url,
    }
    if isinstance(source, ChargeResult):
        fields["gateway_customer_id"] = source.customer_id
    return {key: value for key, value in fields.items() if value is not None}


def _normalize_email(field: str, email: str) -> str:
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(field, str(e)) from e


def _check_name(field: str, name: str) -> str:
    cleaned = " ".join((name or "").split())
    if len(cleaned) < MIN_NAME_LENGTH:
        raise ValidationError(field, f"must have at least {MIN_NAME_LENGTH} characters")
    return cleaned


def _check_due_date(due_date: date | None) -> None:
    if due_date is not None and due_date < utc_now().date():
        raise ValidationError("due_date", "must not be in the past")


class EnrollmentService:
    """Orchestrates enrollments and their payment charges.

    Attributes:
        store: Enrollment persistence.
        gateway: Payment provider.
        pricing: Pricing configuration (cents).
    """

    def __init__(
        self,
        store: EnrollmentStore,
        gateway: PaymentGateway,
        pricing: PricingSettings,
    ) -> None:
        """Initialize enrollment service.

        Args:
            store: Enrollment persistence.
            gateway: Payment provider.
            pricing: Pricing configuration.
        """
        self.store = store
        self.gateway = gateway
        self.pricing = pricing
        self._enrollments = _RecordKind(
            resource="enrollment",
            get=store.get_enrollment,
            update_status=store.update_enrollment_status,
            update_gateway_fields=store.update_enrollment_gateway_fields,
        )
        self._batches = _RecordKind(
            resource="batch",
            get=store.get_batch,
            update_status=store.update_batch_status,
            update_gateway_fields=store.update_batch_gateway_fields,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_enrollment(self, tenant_id: str, enrollment_id: int) -> Enrollment:
        """Get an enrollment of the tenant.

        Raises:
            NotFoundError: If the enrollment does not exist in the tenant.
        """
        enrollment = await self.store.get_enrollment(tenant_id, enrollment_id)
        if enrollment is None:
            raise NotFoundError("enrollment", enrollment_id)
        return enrollment

    async def list_enrollments(
        self,
        tenant_id: str,
        status: EnrollmentStatus | None = None,
        consultant_id: str | None = None,
    ) -> list[Enrollment]:
        return await self.store.list_enrollments(tenant_id, status, consultant_id)

    async def get_batch(self, tenant_id: str, batch_id: int) -> BatchEnrollmentPayment:
        """Get a batch of the tenant.

        Raises:
            NotFoundError: If the batch does not exist in the tenant.
        """
        batch = await self.store.get_batch(tenant_id, batch_id)
        if batch is None:
            raise NotFoundError("batch", batch_id)
        return batch

    async def list_batches(
        self,
        tenant_id: str,
        status: EnrollmentStatus | None = None,
        consultant_id: str | None = None,
    ) -> list[BatchEnrollmentPayment]:
        return await self.store.list_batches(tenant_id, status, consultant_id)

    # =========================================================================
    # Creation
    # =========================================================================

    async def create_enrollment(
        self,
        tenant_id: str,
        consultant_id: str,
        data: EnrollmentInput,
        idempotency_key: str | None = None,
    ) -> Enrollment:
        """Create a simplified enrollment and its payment charge.

        Input is fully validated before anything is persisted or sent to
        the gateway. The enrollment is stored as pending, then the charge is
        created with the enrollment's external reference as idempotency key.

        Args:
            tenant_id: Operator's tenant.
            consultant_id: Operator creating the enrollment.
            data: Enrollment input.
            idempotency_key: Optional client request key; a repeated key
                returns the enrollment created by the first request.

        Returns:
            The enrollment, normally in waiting_payment with a payment URL.

        Raises:
            ValidationError: If any input field is invalid.
            GatewayError: If the gateway rejected the charge (the enrollment
                is failed) or its outcome is unknown (the enrollment stays
                pending and the error is retryable).
        """
        if idempotency_key:
            existing = await self.store.find_enrollment_by_idempotency_key(tenant_id, idempotency_key)
            if existing is not None:
                logger.info(
                    "Returning existing enrollment for idempotency key: id=%s, key=%s",
                    existing.id,
                    idempotency_key,
                )
                return existing

        course = await self._require_course(tenant_id, data.course_id)
        enrollment = self._build_enrollment(tenant_id, consultant_id, course, data)
        enrollment.idempotency_key = idempotency_key or None

        saved = await self.store.add_enrollment(enrollment)
        if saved.status != EnrollmentStatus.PENDING:
            # A concurrent request with the same idempotency key won
            return saved

        logger.info(
            "Created enrollment: id=%s, tenant=%s, course=%s, amount=%d, installments=%d, by=%s",
            saved.id,
            tenant_id,
            saved.course_id,
            saved.amount,
            saved.installments,
            consultant_id,
        )
        return await self._submit_charge(self._enrollments, saved, self._enrollment_charge(saved, course))

    async def resubmit_enrollment(self, tenant_id: str, enrollment_id: int) -> Enrollment:
        """Retry the charge of an enrollment.

        A pending enrollment (gateway outcome unknown) is re-driven with the
        same external reference, so the gateway returns the original charge
        if it was created. A failed enrollment is copied into a new one with
        its own reference, linked through resubmitted_from_id.

        Raises:
            NotFoundError: If the enrollment does not exist.
            InvalidTransitionError: If the enrollment is neither pending nor
                failed.
            GatewayError: As for create_enrollment.
        """
        record = await self.get_enrollment(tenant_id, enrollment_id)
        course = await self._require_course(tenant_id, record.course_id)

        if record.status == EnrollmentStatus.PENDING:
            logger.info("Re-driving pending enrollment charge: id=%s", record.id)
            return await self._submit_charge(self._enrollments, record, self._enrollment_charge(record, course))

        if record.status == EnrollmentStatus.FAILED:
            clone = Enrollment(
                tenant_id=record.tenant_id,
                course_id=record.course_id,
                student_name=record.student_name,
                student_email=record.student_email,
                student_cpf=record.student_cpf,
                consultant_id=record.consultant_id,
                amount=record.amount,
                installments=record.installments,
                payment_method=record.payment_method,
                student_phone=record.student_phone,
                polo_id=record.polo_id,
                resubmitted_from_id=record.id,
            )
            saved = await self.store.add_enrollment(clone)
            logger.info("Resubmitted failed enrollment: id=%s, new_id=%s", record.id, saved.id)
            return await self._submit_charge(self._enrollments, saved, self._enrollment_charge(saved, course))

        logger.warning(
            "Rejected resubmit: enrollment=%s, status=%s",
            record.id,
            record.status.value,
        )
        raise InvalidTransitionError(record.id, record.status.value, "resubmit")

    async def create_batch_enrollment(
        self,
        tenant_id: str,
        consultant_id: str,
        course_id: int,
        student_ids: Collection[int],
        payer: BatchPayer,
        due_date: date | None = None,
        payment_method: PaymentMethod = PaymentMethod.BOLETO,
    ) -> BatchEnrollmentPayment:
        """Create one invoice for the certification of several students.

        Every student must exist in the tenant, must not be certified for
        the course, and must not already belong to an open batch for it. A
        single ineligible student rejects the whole batch.

        Args:
            tenant_id: Operator's tenant.
            consultant_id: Operator creating the batch.
            course_id: Course to certify.
            student_ids: Students covered by the invoice.
            payer: Organization or person paying the invoice.
            due_date: Invoice due date; defaults to the configured offset.
            payment_method: Payment method offered to the payer.

        Returns:
            The batch, normally in waiting_payment with a payment URL.

        Raises:
            ValidationError: If the input or any student is invalid.
            GatewayError: As for create_enrollment.
        """
        ids = list(student_ids)
        if not ids:
            raise ValidationError("student_ids", "at least one student is required")
        duplicates = sorted({sid for sid in ids if ids.count(sid) > 1})
        if duplicates:
            raise ValidationError(
                "student_ids",
                "students are listed more than once",
                {"student_ids": duplicates},
            )

        payer_name = _check_name("payer_name", payer.name)
        if not is_valid_document(payer.document):
            raise ValidationError("payer_document", "invalid CPF or CNPJ")
        payer_email = _normalize_email("payer_email", payer.email) if payer.email else None
        _check_due_date(due_date)

        course = await self._require_course(tenant_id, course_id)

        found = {student.id for student in await self.store.get_students(tenant_id, ids)}
        missing = sorted(set(ids) - found)
        if missing:
            raise ValidationError("student_ids", "students not found", {"student_ids": missing})

        certified = sorted(await self.store.certified_student_ids(tenant_id, course_id, ids))
        if certified:
            raise ValidationError(
                "student_ids",
                "students already certified for this course",
                {"student_ids": certified},
            )

        in_open_batch = sorted(await self.store.students_in_open_batches(tenant_id, course_id, ids))
        if in_open_batch:
            raise ValidationError(
                "student_ids",
                "students already in an open batch for this course",
                {"student_ids": in_open_batch},
            )

        batch = BatchEnrollmentPayment(
            tenant_id=tenant_id,
            course_id=course_id,
            consultant_id=consultant_id,
            student_ids=ids,
            unit_price=self.pricing.batch_unit_price,
            payer_name=payer_name,
            payer_document=only_digits(payer.document),
            payer_email=payer_email,
            payment_method=PaymentMethod(payment_method),
            due_date=due_date or due_date_in(self.pricing.batch_due_days),
        )
        saved = await self.store.add_batch(batch)
        logger.info(
            "Created batch: id=%s, tenant=%s, course=%s, students=%d, total=%d, by=%s",
            saved.id,
            tenant_id,
            course_id,
            saved.number_of_certifications,
            saved.total_value,
            consultant_id,
        )
        return await self._submit_charge(self._batches, saved, self._batch_charge(saved, course))

    # =========================================================================
    # Transitions
    # =========================================================================

    async def transition(
        self,
        tenant_id: str,
        enrollment_id: int,
        event: EnrollmentEvent,
        student_id: int | None = None,
    ) -> Enrollment:
        """Apply a state machine event to an enrollment.

        Args:
            tenant_id: Operator's tenant.
            enrollment_id: Enrollment to move.
            event: Event to apply.
            student_id: Learner account to link, only when finalizing.

        Returns:
            The updated enrollment.

        Raises:
            NotFoundError: If the enrollment does not exist.
            ValidationError: If student_id is given for another event.
            InvalidTransitionError: If the event is not an edge from the
                enrollment's current status.
        """
        event = EnrollmentEvent(event)
        record = await self.get_enrollment(tenant_id, enrollment_id)

        changes: dict[str, Any] = {}
        if student_id is not None:
            if event != EnrollmentEvent.FINALIZE:
                raise ValidationError("student_id", "can only be set when finalizing")
            changes["student_id"] = student_id

        updated = await self._apply_event(self._enrollments, record, event, changes)
        if event == EnrollmentEvent.CANCEL:
            await self._cancel_charge(self._enrollments, updated)
        return updated

    async def transition_batch(
        self,
        tenant_id: str,
        batch_id: int,
        event: EnrollmentEvent,
    ) -> BatchEnrollmentPayment:
        """Apply a state machine event to a batch.

        Finalizing a batch records a certification for every member.

        Raises:
            NotFoundError: If the batch does not exist.
            InvalidTransitionError: If the event is not an edge from the
                batch's current status.
        """
        event = EnrollmentEvent(event)
        record = await self.get_batch(tenant_id, batch_id)
        updated = await self._apply_event(self._batches, record, event)

        if event == EnrollmentEvent.FINALIZE:
            await self.store.record_certifications(tenant_id, updated.course_id, updated.student_ids)
            logger.info(
                "Recorded certifications: batch=%s, course=%s, students=%d",
                updated.id,
                updated.course_id,
                updated.number_of_certifications,
            )
        elif event == EnrollmentEvent.CANCEL:
            await self._cancel_charge(self._batches, updated)
        return updated

    # =========================================================================
    # Reconciliation
    # =========================================================================

    async def apply_gateway_event(self, event: GatewayEvent) -> Record | None:
        """Reconcile a gateway notification with the stored record.

        The record is found by gateway transaction id, or by external
        reference when the creation response never arrived. Events that do
        not fit the record's current status (duplicates, out-of-order
        deliveries) are logged and ignored.

        Args:
            event: Normalized gateway event.

        Returns:
            The record after reconciliation, or None if no record matches.
        """
        located = await self._locate(event)
        if located is None:
            logger.warning(
                "Gateway event for unknown charge: event=%s, transaction=%s, reference=%s",
                event.name,
                event.transaction_id,
                event.external_reference,
            )
            return None

        kind, record = located
        return await self._reconcile(kind, record, event)

    async def refresh_payment_status(self, tenant_id: str, enrollment_id: int) -> Enrollment:
        """Poll the gateway for an enrollment's charge and reconcile.

        Raises:
            NotFoundError: If the enrollment does not exist.
            GatewayError: If the gateway could not be queried.
        """
        record = await self.get_enrollment(tenant_id, enrollment_id)
        return await self._refresh(self._enrollments, record)

    async def refresh_batch_status(self, tenant_id: str, batch_id: int) -> BatchEnrollmentPayment:
        """Poll the gateway for a batch's charge and reconcile."""
        record = await self.get_batch(tenant_id, batch_id)
        return await self._refresh(self._batches, record)

    async def expire_stale_payments(
        self,
        tenant_id: str,
        older_than_days: int | None = None,
    ) -> list[Enrollment]:
        """Fail enrollments whose charge has waited too long for payment.

        Each expired charge is also cancelled at the gateway so it can no
        longer be paid.

        Args:
            tenant_id: Tenant to sweep.
            older_than_days: Age cutoff; defaults to the configured one.

        Returns:
            The enrollments moved to failed.
        """
        days = self.pricing.stale_payment_days if older_than_days is None else older_than_days
        if days < 0:
            raise ValidationError("older_than_days", "must not be negative")

        stale = await self.store.list_stale_enrollments(
            tenant_id,
            EnrollmentStatus.WAITING_PAYMENT,
            days_ago(days),
        )
        expired: list[Enrollment] = []
        for record in stale:
            updated = await self._try_apply(
                self._enrollments,
                record,
                EnrollmentEvent.PAYMENT_FAILED,
                {"failure_reason": EXPIRED_REASON},
            )
            if updated is None:
                continue
            expired.append(updated)
            await self._cancel_charge(self._enrollments, updated)

        logger.info(
            "Expired stale payments: tenant=%s, checked=%d, expired=%d, days=%d",
            tenant_id,
            len(stale),
            len(expired),
            days,
        )
        return expired

    # =========================================================================
    # Private helpers
    # =========================================================================

    async def _require_course(self, tenant_id: str, course_id: int) -> Course:
        course = await self.store.get_course(tenant_id, course_id)
        if course is None:
            raise ValidationError("course_id", f"course {course_id} does not exist")
        return course

    def _build_enrollment(
        self,
        tenant_id: str,
        consultant_id: str,
        course: Course,
        data: EnrollmentInput,
    ) -> Enrollment:
        """Validate enrollment input into an unsaved pending enrollment."""
        name = _check_name("student_name", data.student_name)
        email = _normalize_email("student_email", data.student_email)
        if not is_valid_cpf(data.student_cpf):
            raise ValidationError("student_cpf", "invalid CPF")

        amount = data.amount
        if amount is None:
            amount = course.price or self.pricing.individual_unit_price
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("amount", "must be a positive amount in cents")

        match data.payment:
            case PayerChoice() | BoletoPayment() | PixPayment() | CreditCardPayment():
                installments = data.payment.installments
            case _:
                raise ValidationError("payment_method", f"unsupported payment option: {data.payment!r}")
        if not MIN_INSTALLMENTS <= installments <= MAX_INSTALLMENTS:
            raise ValidationError(
                "installments",
                f"must be between {MIN_INSTALLMENTS} and {MAX_INSTALLMENTS}",
            )
        _check_due_date(data.due_date)

        return Enrollment(
            tenant_id=tenant_id,
            course_id=course.id,
            student_name=name,
            student_email=email,
            student_cpf=only_digits(data.student_cpf),
            consultant_id=consultant_id,
            amount=amount,
            installments=installments,
            payment_method=payment_method_of(data.payment),
            student_phone=data.student_phone or None,
            polo_id=data.polo_id,
            due_date=data.due_date,
        )

    @staticmethod
    def _enrollment_charge(enrollment: Enrollment, course: Course) -> ChargeRequest:
        return ChargeRequest(
            external_reference=enrollment.external_reference,
            description=f"Matrícula no curso: {course.title}",
            payer=Payer(
                name=enrollment.student_name,
                document=enrollment.student_cpf,
                email=enrollment.student_email,
                phone=enrollment.student_phone,
            ),
            amount=enrollment.amount,
            installments=enrollment.installments,
            payment_method=enrollment.payment_method,
            due_date=enrollment.due_date,
        )

    @staticmethod
    def _batch_charge(batch: BatchEnrollmentPayment, course: Course) -> ChargeRequest:
        return ChargeRequest(
            external_reference=batch.external_reference,
            description=(
                f"Certificação em lote: {course.title} "
                f"({batch.number_of_certifications} alunos)"
            ),
            payer=Payer(
                name=batch.payer_name,
                document=batch.payer_document,
                email=batch.payer_email,
            ),
            amount=batch.total_value,
            payment_method=batch.payment_method,
            due_date=batch.due_date,
        )

    async def _submit_charge(self, kind: _RecordKind, record: Record, request: ChargeRequest) -> Record:
        """Create the gateway charge for a pending record and apply the outcome."""
        try:
            result = await self.gateway.create_charge(request)
        except GatewayRejectedError as e:
            await self._try_apply(
                kind,
                record,
                EnrollmentEvent.GATEWAY_REJECTED,
                {"failure_reason": e.message},
            )
            logger.warning(
                "Gateway rejected charge: %s=%s, message=%s",
                kind.resource,
                record.id,
                e.message,
            )
            raise GatewayError(
                e.message,
                record_id=record.id,
                details={"status_code": e.status_code} if e.status_code else None,
                resource=kind.resource,
            ) from e
        except GatewayUnavailableError as e:
            logger.warning(
                "Gateway outcome unknown, %s left pending: id=%s, error=%s",
                kind.resource,
                record.id,
                e.message,
            )
            raise GatewayError(e.message, record_id=record.id, retryable=True, resource=kind.resource) from e

        if result.status == ChargeStatus.FAILED:
            # The reference points at a charge that can no longer be paid
            message = f"Charge {result.transaction_id} is no longer payable"
            await self._try_apply(
                kind,
                record,
                EnrollmentEvent.GATEWAY_REJECTED,
                {**_gateway_fields(result), "failure_reason": message},
            )
            raise GatewayError(message, record_id=record.id, resource=kind.resource)

        accepted = await self._try_apply(kind, record, EnrollmentEvent.GATEWAY_ACCEPTED, _gateway_fields(result))
        if accepted is None:
            # A webhook or poll advanced the record first; keep its status
            accepted = await self._fill_gateway_fields(kind, record, _gateway_fields(result))
        else:
            logger.info(
                "Charge created: %s=%s, transaction=%s",
                kind.resource,
                record.id,
                result.transaction_id,
            )

        if result.status == ChargeStatus.CONFIRMED and accepted.status == EnrollmentStatus.WAITING_PAYMENT:
            confirmed = await self._try_apply(kind, accepted, EnrollmentEvent.PAYMENT_CONFIRMED)
            accepted = confirmed or await kind.get(record.tenant_id, record.id)
        return accepted

    async def _fill_gateway_fields(self, kind: _RecordKind, record: Record, fields: Mapping[str, Any]) -> Record:
        """Store gateway references the current record does not have yet."""
        current = await kind.get(record.tenant_id, record.id)
        missing = {key: value for key, value in fields.items() if getattr(current, key) is None}
        if not missing:
            return current
        updated = await kind.update_gateway_fields(record.tenant_id, record.id, missing)
        return updated or current

    def _transition_fields(self, target: EnrollmentStatus, changes: Mapping[str, Any] | None) -> dict[str, Any]:
        fields = dict(changes or {})
        if target == EnrollmentStatus.COMPLETED:
            fields.setdefault("completed_at", utc_now())
        elif target == EnrollmentStatus.CANCELLED:
            fields.setdefault("cancelled_at", utc_now())
        return fields

    async def _try_apply(
        self,
        kind: _RecordKind,
        record: Record,
        event: EnrollmentEvent,
        changes: Mapping[str, Any] | None = None,
    ) -> Record | None:
        """Apply an event if it is an edge from the record's status.

        Returns:
            The updated record, or None if the event does not apply or a
            concurrent writer changed the status first.
        """
        target = next_status(record.status, event)
        if target is None:
            return None
        return await kind.update_status(
            record.tenant_id,
            record.id,
            source_statuses(event),
            target,
            self._transition_fields(target, changes),
        )

    async def _apply_event(
        self,
        kind: _RecordKind,
        record: Record,
        event: EnrollmentEvent,
        changes: Mapping[str, Any] | None = None,
    ) -> Record:
        """Apply an operator-requested event or raise InvalidTransitionError."""
        previous = record.status
        updated = await self._try_apply(kind, record, event, changes)
        if updated is None:
            current = await kind.get(record.tenant_id, record.id)
            status = current.status if current is not None else record.status
            logger.warning(
                "Invalid transition: %s=%s, status=%s, event=%s",
                kind.resource,
                record.id,
                status.value,
                event.value,
            )
            raise InvalidTransitionError(record.id, status.value, event.value)

        logger.info(
            "Transition applied: %s=%s, %s -> %s (%s)",
            kind.resource,
            record.id,
            previous.value,
            updated.status.value,
            event.value,
        )
        return updated

    async def _cancel_charge(self, kind: _RecordKind, record: Record) -> None:
        """Ask the gateway to cancel a record's charge; refusals are logged."""
        if not record.gateway_transaction_id:
            return
        try:
            cancelled = await self.gateway.cancel_charge(record.gateway_transaction_id)
        except GatewayUnavailableError as e:
            logger.warning(
                "Could not reach gateway to cancel charge: %s=%s, transaction=%s, error=%s",
                kind.resource,
                record.id,
                record.gateway_transaction_id,
                e.message,
            )
            return
        if not cancelled:
            logger.warning(
                "Gateway kept charge open after local cancel: %s=%s, transaction=%s",
                kind.resource,
                record.id,
                record.gateway_transaction_id,
            )

    async def _locate(self, event: GatewayEvent) -> tuple[_RecordKind, Record] | None:
        if event.transaction_id:
            enrollment = await self.store.find_enrollment_by_transaction(event.transaction_id)
            if enrollment is not None:
                return self._enrollments, enrollment
            batch = await self.store.find_batch_by_transaction(event.transaction_id)
            if batch is not None:
                return self._batches, batch

        reference = parse_reference(event.external_reference)
        if reference is None:
            return None
        resource, record_id = reference
        if resource == "enrollment":
            enrollment = await self.store.find_enrollment(record_id)
            return (self._enrollments, enrollment) if enrollment is not None else None
        batch = await self.store.find_batch(record_id)
        return (self._batches, batch) if batch is not None else None

    async def _reconcile(self, kind: _RecordKind, record: Record, event: GatewayEvent) -> Record:
        """Drive a record towards the charge status an event reports."""
        fields = {
            key: value
            for key, value in _gateway_fields(event).items()
            if getattr(record, key) is None
        }
        updated: Record | None = None

        match event.status:
            case ChargeStatus.PENDING:
                updated = await self._try_apply(kind, record, EnrollmentEvent.GATEWAY_ACCEPTED, fields)
            case ChargeStatus.CONFIRMED:
                if record.status == EnrollmentStatus.PENDING:
                    record = (
                        await self._try_apply(kind, record, EnrollmentEvent.GATEWAY_ACCEPTED, fields)
                        or await kind.get(record.tenant_id, record.id)
                    )
                updated = await self._try_apply(kind, record, EnrollmentEvent.PAYMENT_CONFIRMED)
                if updated is None and is_terminal(record.status):
                    logger.warning(
                        "Payment confirmed for closed %s: id=%s, status=%s, transaction=%s",
                        kind.resource,
                        record.id,
                        record.status.value,
                        event.transaction_id,
                    )
            case ChargeStatus.FAILED:
                reason = {"failure_reason": f"gateway reported {event.name}"}
                if record.status == EnrollmentStatus.PENDING:
                    updated = await self._try_apply(
                        kind, record, EnrollmentEvent.GATEWAY_REJECTED, {**fields, **reason}
                    )
                else:
                    updated = await self._try_apply(kind, record, EnrollmentEvent.PAYMENT_FAILED, reason)

        if updated is not None:
            logger.info(
                "Reconciled %s: id=%s, status=%s, event=%s",
                kind.resource,
                record.id,
                updated.status.value,
                event.name,
            )
            return updated

        logger.info(
            "Ignoring gateway event: %s=%s, status=%s, event=%s",
            kind.resource,
            record.id,
            record.status.value,
            event.name,
        )
        return await kind.get(record.tenant_id, record.id) or record

    async def _refresh(self, kind: _RecordKind, record: Record) -> Record:
        if is_terminal(record.status) or record.status == EnrollmentStatus.PAYMENT_CONFIRMED:
            return record

        try:
            if record.gateway_transaction_id:
                charge = await self.gateway.get_charge(record.gateway_transaction_id)
            else:
                charge = await self.gateway.find_charge(record.external_reference)
        except PaymentGatewayError as e:
            raise GatewayError(
                e.message,
                record_id=record.id,
                retryable=isinstance(e, GatewayUnavailableError),
                resource=kind.resource,
            ) from e

        if charge is None:
            logger.info("No gateway charge yet: %s=%s", kind.resource, record.id)
            return record
        return await self._reconcile(kind, record, GatewayEvent.from_charge(charge))
