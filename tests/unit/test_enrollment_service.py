# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for EnrollmentService.

The service runs against the in-memory store and the scriptable gateway,
so every test observes exactly what was persisted and what was sent to
the gateway.
"""

from datetime import date, timedelta

import pytest

from edunexia.core.exceptions import (
    GatewayError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from edunexia.domains.enrollment import (
    BoletoPayment,
    Course,
    CreditCardPayment,
    Enrollment,
    EnrollmentEvent,
    EnrollmentInput,
    EnrollmentService,
    EnrollmentStatus,
    PixPayment,
)
from edunexia.services.payments import (
    AsaasGateway,
    ChargeStatus,
    GatewayEvent,
    GatewayRejectedError,
    GatewayUnavailableError,
    PaymentMethod,
)
from edunexia.utils.datetime import days_ago, due_date_in
from tests.fakes import FakePaymentGateway, InMemoryEnrollmentStore
from tests.fakes.catalog import COURSE_ID, OTHER_TENANT_ID, TENANT_ID, VALID_CPF


def _input(**overrides) -> EnrollmentInput:
    data = {
        "course_id": COURSE_ID,
        "student_name": "Maria da Silva",
        "student_email": "maria@escola.com.br",
        "student_cpf": "529.982.247-25",
    }
    data.update(overrides)
    return EnrollmentInput(**data)


async def _create(service: EnrollmentService, **overrides) -> Enrollment:
    return await service.create_enrollment(TENANT_ID, "u-partner", _input(**overrides))


def _event(status: ChargeStatus, transaction_id: str | None = None, reference: str | None = None) -> GatewayEvent:
    return GatewayEvent(
        name=f"TEST_{status.value.upper()}",
        status=status,
        transaction_id=transaction_id,
        external_reference=reference,
    )


class TestCreateEnrollment:
    """Tests for create_enrollment."""

    @pytest.mark.asyncio
    async def test_installment_enrollment_waits_for_payment(
        self,
        service: EnrollmentService,
        gateway: FakePaymentGateway,
    ) -> None:
        enrollment = await _create(service, amount=15000, payment=CreditCardPayment(installments=3))

        assert enrollment.status == EnrollmentStatus.WAITING_PAYMENT
        assert enrollment.payment_url
        assert enrollment.gateway_transaction_id == "pay_0001"
        assert enrollment.amount == 15000
        assert enrollment.installments == 3
        assert enrollment.payment_method == PaymentMethod.CREDIT_CARD

        [request] = gateway.requests
        assert request.amount == 15000
        assert request.installments == 3
        assert request.external_reference == f"enrollment-{enrollment.id}"
        assert request.payer.document == VALID_CPF
        assert request.description == "Matrícula no curso: Gestão Escolar"

    @pytest.mark.asyncio
    async def test_amount_defaults_to_individual_price(self, service: EnrollmentService) -> None:
        enrollment = await _create(service)

        assert enrollment.amount == 8990
        assert enrollment.payment_method == PaymentMethod.UNDEFINED

    @pytest.mark.asyncio
    async def test_amount_defaults_to_course_price(
        self,
        service: EnrollmentService,
        store: InMemoryEnrollmentStore,
    ) -> None:
        store.add_course(Course(id=11, tenant_id=TENANT_ID, title="MBA", price=129900))

        enrollment = await _create(service, course_id=11)

        assert enrollment.amount == 129900

    @pytest.mark.asyncio
    async def test_pix_is_single_installment(self, service: EnrollmentService) -> None:
        enrollment = await _create(service, payment=PixPayment())

        assert enrollment.installments == 1
        assert enrollment.payment_method == PaymentMethod.PIX

    @pytest.mark.asyncio
    async def test_input_is_normalized(self, service: EnrollmentService) -> None:
        enrollment = await _create(service, student_name="  Maria   da  Silva ", student_email="Maria@Escola.com.br")

        assert enrollment.student_name == "Maria da Silva"
        assert enrollment.student_cpf == VALID_CPF
        assert enrollment.student_email == "Maria@escola.com.br"

    @pytest.mark.asyncio
    async def test_invalid_cpf_is_rejected_before_any_side_effect(
        self,
        service: EnrollmentService,
        store: InMemoryEnrollmentStore,
        gateway: FakePaymentGateway,
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await _create(service, student_cpf="111.111.111-11")

        assert exc_info.value.field == "student_cpf"
        assert gateway.requests == []
        assert store.enrollments == {}

    @pytest.mark.parametrize(
        ("overrides", "field"),
        [
            ({"student_name": "Al"}, "student_name"),
            ({"student_email": "not-an-email"}, "student_email"),
            ({"amount": 0}, "amount"),
            ({"amount": -100}, "amount"),
            ({"payment": BoletoPayment(installments=13)}, "installments"),
            ({"payment": CreditCardPayment(installments=0)}, "installments"),
            ({"course_id": 999}, "course_id"),
            ({"due_date": date.today() - timedelta(days=2)}, "due_date"),
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_input_names_the_field(
        self,
        service: EnrollmentService,
        gateway: FakePaymentGateway,
        overrides: dict,
        field: str,
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await _create(service, **overrides)

        assert exc_info.value.field == field
        assert gateway.requests == []

    @pytest.mark.asyncio
    async def test_course_of_other_tenant_is_not_visible(
        self,
        service: EnrollmentService,
        store: InMemoryEnrollmentStore,
    ) -> None:
        store.add_course(Course(id=77, tenant_id=OTHER_TENANT_ID, title="Privado"))

        with pytest.raises(ValidationError) as exc_info:
            await _create(service, course_id=77)

        assert exc_info.value.field == "course_id"

    @pytest.mark.asyncio
    async def test_repeated_idempotency_key_returns_first_enrollment(
        self,
        service: EnrollmentService,
        gateway: FakePaymentGateway,
    ) -> None:
        first = await service.create_enrollment(TENANT_ID, "u-partner", _input(), idempotency_key="req-1")
        second = await service.create_enrollment(TENANT_ID, "u-partner", _input(), idempotency_key="req-1")

        assert second.id == first.id
        assert len(gateway.requests) == 1

    @pytest.mark.asyncio
    async def test_gateway_rejection_fails_the_enrollment(
        self,
        service: EnrollmentService,
        store: InMemoryEnrollmentStore,
        gateway: FakePaymentGateway,
    ) -> None:
        gateway.create_error = GatewayRejectedError(message="O CPF informado é inválido.", status_code=400)

        with pytest.raises(GatewayError) as exc_info:
            await _create(service)

        error = exc_info.value
        assert error.message == "O CPF informado é inválido."
        assert error.retryable is False
        assert error.record_id == 1
        stored = store.enrollments[1]
        assert stored.status == EnrollmentStatus.FAILED
        assert stored.failure_reason == "O CPF informado é inválido."

    @pytest.mark.asyncio
    async def test_gateway_timeout_leaves_enrollment_pending(
        self,
        service: EnrollmentService,
        store: InMemoryEnrollmentStore,
        gateway: FakePaymentGateway,
    ) -> None:
        gateway.create_error = GatewayUnavailableError(message="Payment gateway timed out")

        with pytest.raises(GatewayError) as exc_info:
            await _create(service)

        assert exc_info.value.retryable is True
        assert exc_info.value.resource == "enrollment"
        assert store.enrollments[1].status == EnrollmentStatus.PENDING


class TestResubmit:
    """Tests for resubmit_enrollment."""

    @pytest.mark.asyncio
    async def test_pending_enrollment_reuses_its_reference(
        self,
        service: EnrollmentService,
        gateway: FakePaymentGateway,
    ) -> None:
        gateway.create_error = GatewayUnavailableError(message="timeout")
        with pytest.raises(GatewayError):
            await _create(service)
        gateway.create_error = None

        enrollment = await service.resubmit_enrollment(TENANT_ID, 1)

        assert enrollment.id == 1
        assert enrollment.status == EnrollmentStatus.WAITING_PAYMENT
        assert [r.external_reference for r in gateway.requests] == ["enrollment-1", "enrollment-1"]

    @pytest.mark.asyncio
    async def test_failed_enrollment_is_copied(
        self,
        service: EnrollmentService,
        store: InMemoryEnrollmentStore,
        gateway: FakePaymentGateway,
    ) -> None:
        gateway.create_error = GatewayRejectedError(message="rejected", status_code=400)
        with pytest.raises(GatewayError):
            await _create(service, amount=12000)
        gateway.create_error = None

        clone = await service.resubmit_enrollment(TENANT_ID, 1)

        assert clone.id == 2
        assert clone.resubmitted_from_id == 1
        assert clone.amount == 12000
        assert clone.status == EnrollmentStatus.WAITING_PAYMENT
        assert store.enrollments[1].status == EnrollmentStatus.FAILED

    @pytest.mark.asyncio
    async def test_waiting_enrollment_cannot_be_resubmitted(self, service: EnrollmentService) -> None:
        await _create(service)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.resubmit_enrollment(TENANT_ID, 1)

        assert exc_info.value.current_status == "waiting_payment"


class TestTransitions:
    """Tests for operator-driven transitions."""

    @pytest.mark.asyncio
    async def test_cancel_cancels_the_charge(
        self,
        service: EnrollmentService,
        gateway: FakePaymentGateway,
    ) -> None:
        created = await _create(service)

        cancelled = await service.transition(TENANT_ID, created.id, EnrollmentEvent.CANCEL)

        assert cancelled.status == EnrollmentStatus.CANCELLED
        assert cancelled.cancelled_at is not None
        assert gateway.cancelled == [created.gateway_transaction_id]

    @pytest.mark.asyncio
    async def test_cancel_succeeds_locally_when_gateway_is_down(
        self,
        service: EnrollmentService,
        gateway: FakePaymentGateway,
    ) -> None:
        created = await _create(service)
        gateway.cancel_error = GatewayUnavailableError(message="down")

        cancelled = await service.transition(TENANT_ID, created.id, EnrollmentEvent.CANCEL)

        assert cancelled.status == EnrollmentStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_finalize_requires_confirmed_payment(self, service: EnrollmentService) -> None:
        created = await _create(service)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.transition(TENANT_ID, created.id, EnrollmentEvent.FINALIZE)

        assert exc_info.value.current_status == "waiting_payment"
        assert exc_info.value.event == "finalize"

    @pytest.mark.asyncio
    async def test_finalize_links_student(self, service: EnrollmentService) -> None:
        created = await _create(service)
        await service.apply_gateway_event(_event(ChargeStatus.CONFIRMED, created.gateway_transaction_id))

        completed = await service.transition(TENANT_ID, created.id, EnrollmentEvent.FINALIZE, student_id=42)

        assert completed.status == EnrollmentStatus.COMPLETED
        assert completed.student_id == 42
        assert completed.completed_at is not None

    @pytest.mark.asyncio
    async def test_student_id_only_with_finalize(self, service: EnrollmentService) -> None:
        created = await _create(service)

        with pytest.raises(ValidationError) as exc_info:
            await service.transition(TENANT_ID, created.id, EnrollmentEvent.CANCEL, student_id=42)

        assert exc_info.value.field == "student_id"

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_see_enrollment(self, service: EnrollmentService) -> None:
        created = await _create(service)

        with pytest.raises(NotFoundError):
            await service.get_enrollment(OTHER_TENANT_ID, created.id)
        with pytest.raises(NotFoundError):
            await service.transition(OTHER_TENANT_ID, created.id, EnrollmentEvent.CANCEL)


async def _closed_enrollment(service: EnrollmentService, status: EnrollmentStatus) -> Enrollment:
    created = await _create(service)
    match status:
        case EnrollmentStatus.COMPLETED:
            await service.apply_gateway_event(_event(ChargeStatus.CONFIRMED, created.gateway_transaction_id))
            return await service.transition(TENANT_ID, created.id, EnrollmentEvent.FINALIZE)
        case EnrollmentStatus.CANCELLED:
            return await service.transition(TENANT_ID, created.id, EnrollmentEvent.CANCEL)
        case _:
            return await service.apply_gateway_event(_event(ChargeStatus.FAILED, created.gateway_transaction_id))


class TestTerminalStatuses:
    """Closed enrollments reject every event and stay untouched."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [EnrollmentStatus.COMPLETED, EnrollmentStatus.CANCELLED, EnrollmentStatus.FAILED],
    )
    @pytest.mark.parametrize("event", list(EnrollmentEvent))
    async def test_every_event_is_rejected(
        self,
        service: EnrollmentService,
        store: InMemoryEnrollmentStore,
        status: EnrollmentStatus,
        event: EnrollmentEvent,
    ) -> None:
        closed = await _closed_enrollment(service, status)
        before = store.enrollments[closed.id]
        assert before.status == status

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.transition(TENANT_ID, closed.id, event)

        assert exc_info.value.current_status == status.value
        after = store.enrollments[closed.id]
        assert after == before
        assert after.updated_at == before.updated_at
        assert after.failure_reason == before.failure_reason


class TestGatewayReconciliation:
    """Tests for webhook and poll reconciliation."""

    @pytest.mark.asyncio
    async def test_confirmation_confirms_payment(self, service: EnrollmentService) -> None:
        created = await _create(service)

        updated = await service.apply_gateway_event(_event(ChargeStatus.CONFIRMED, created.gateway_transaction_id))

        assert updated.status == EnrollmentStatus.PAYMENT_CONFIRMED

    @pytest.mark.asyncio
    async def test_duplicate_and_late_events_are_ignored(self, service: EnrollmentService) -> None:
        created = await _create(service)
        transaction_id = created.gateway_transaction_id

        await service.apply_gateway_event(_event(ChargeStatus.CONFIRMED, transaction_id))
        again = await service.apply_gateway_event(_event(ChargeStatus.CONFIRMED, transaction_id))
        late_failure = await service.apply_gateway_event(_event(ChargeStatus.FAILED, transaction_id))
        late_pending = await service.apply_gateway_event(_event(ChargeStatus.PENDING, transaction_id))

        assert again.status == EnrollmentStatus.PAYMENT_CONFIRMED
        assert late_failure.status == EnrollmentStatus.PAYMENT_CONFIRMED
        assert late_pending.status == EnrollmentStatus.PAYMENT_CONFIRMED

    @pytest.mark.asyncio
    async def test_failure_fails_waiting_enrollment(self, service: EnrollmentService) -> None:
        created = await _create(service)

        updated = await service.apply_gateway_event(_event(ChargeStatus.FAILED, created.gateway_transaction_id))

        assert updated.status == EnrollmentStatus.FAILED
        assert updated.failure_reason == "gateway reported TEST_FAILED"

    @pytest.mark.asyncio
    async def test_overdue_boleto_paid_late_is_confirmed(self, service: EnrollmentService) -> None:
        created = await _create(service, payment=BoletoPayment())
        asaas = AsaasGateway(api_url="https://sandbox.asaas.com/api", api_key="test-key")
        payment = {"id": created.gateway_transaction_id, "externalReference": created.external_reference}

        overdue = await service.apply_gateway_event(asaas.parse_webhook({"event": "PAYMENT_OVERDUE", "payment": payment}))
        received = await service.apply_gateway_event(asaas.parse_webhook({"event": "PAYMENT_RECEIVED", "payment": payment}))

        assert overdue.status == EnrollmentStatus.WAITING_PAYMENT
        assert overdue.failure_reason is None
        assert received.status == EnrollmentStatus.PAYMENT_CONFIRMED

    @pytest.mark.asyncio
    async def test_confirmation_before_creation_response(
        self,
        service: EnrollmentService,
        store: InMemoryEnrollmentStore,
    ) -> None:
        pending = await store.add_enrollment(
            Enrollment(
                tenant_id=TENANT_ID,
                course_id=COURSE_ID,
                student_name="Maria da Silva",
                student_email="maria@escola.com.br",
                student_cpf=VALID_CPF,
                consultant_id="u-partner",
                amount=8990,
            )
        )

        updated = await service.apply_gateway_event(
            _event(ChargeStatus.CONFIRMED, "pay_9999", reference=pending.external_reference)
        )

        assert updated.status == EnrollmentStatus.PAYMENT_CONFIRMED
        assert updated.gateway_transaction_id == "pay_9999"

    @pytest.mark.asyncio
    async def test_confirmation_of_cancelled_enrollment_keeps_it_cancelled(
        self,
        service: EnrollmentService,
    ) -> None:
        created = await _create(service)
        await service.transition(TENANT_ID, created.id, EnrollmentEvent.CANCEL)

        updated = await service.apply_gateway_event(_event(ChargeStatus.CONFIRMED, created.gateway_transaction_id))

        assert updated.status == EnrollmentStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_unknown_charge_is_ignored(self, service: EnrollmentService) -> None:
        assert await service.apply_gateway_event(_event(ChargeStatus.CONFIRMED, "pay_unknown")) is None
        assert await service.apply_gateway_event(_event(ChargeStatus.CONFIRMED, reference="order-7")) is None

    @pytest.mark.asyncio
    async def test_refresh_polls_the_gateway(
        self,
        service: EnrollmentService,
        gateway: FakePaymentGateway,
    ) -> None:
        created = await _create(service)
        gateway.set_status(created.external_reference, ChargeStatus.CONFIRMED)

        refreshed = await service.refresh_payment_status(TENANT_ID, created.id)

        assert refreshed.status == EnrollmentStatus.PAYMENT_CONFIRMED

    @pytest.mark.asyncio
    async def test_refresh_without_charge_keeps_status(
        self,
        service: EnrollmentService,
        gateway: FakePaymentGateway,
    ) -> None:
        gateway.create_error = GatewayUnavailableError(message="timeout")
        with pytest.raises(GatewayError):
            await _create(service)

        refreshed = await service.refresh_payment_status(TENANT_ID, 1)

        assert refreshed.status == EnrollmentStatus.PENDING


class TestExpireStalePayments:
    """Tests for expire_stale_payments."""

    @pytest.mark.asyncio
    async def test_old_charges_are_expired_and_cancelled(
        self,
        service: EnrollmentService,
        store: InMemoryEnrollmentStore,
        gateway: FakePaymentGateway,
    ) -> None:
        old = await _create(service)
        recent = await _create(service)
        store.set_updated_at(old.id, days_ago(45))

        expired = await service.expire_stale_payments(TENANT_ID)

        assert [e.id for e in expired] == [old.id]
        assert expired[0].status == EnrollmentStatus.FAILED
        assert expired[0].failure_reason == "payment expired"
        assert gateway.cancelled == [old.gateway_transaction_id]
        assert store.enrollments[recent.id].status == EnrollmentStatus.WAITING_PAYMENT

    @pytest.mark.asyncio
    async def test_negative_cutoff_is_rejected(self, service: EnrollmentService) -> None:
        with pytest.raises(ValidationError):
            await service.expire_stale_payments(TENANT_ID, older_than_days=-1)
