# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for batch certification payments."""

import pytest

from edunexia.core.exceptions import GatewayError, InvalidTransitionError, ValidationError
from edunexia.domains.enrollment import (
    BatchPayer,
    EnrollmentEvent,
    EnrollmentService,
    EnrollmentStatus,
)
from edunexia.services.payments import (
    AsaasGateway,
    ChargeStatus,
    GatewayEvent,
    GatewayRejectedError,
    PaymentMethod,
)
from edunexia.utils.datetime import due_date_in
from tests.fakes import FakePaymentGateway, InMemoryEnrollmentStore
from tests.fakes.catalog import COURSE_ID, TENANT_ID, VALID_CNPJ

PAYER = BatchPayer(name="Escola Horizonte", document="11.222.333/0001-81", email="financeiro@horizonte.com.br")


async def _create_batch(service: EnrollmentService, student_ids: list[int], **kwargs):
    return await service.create_batch_enrollment(
        TENANT_ID,
        "u-hub",
        COURSE_ID,
        student_ids,
        kwargs.pop("payer", PAYER),
        **kwargs,
    )


class TestCreateBatch:
    """Tests for create_batch_enrollment."""

    @pytest.mark.asyncio
    async def test_batch_is_billed_with_one_invoice(
        self,
        service: EnrollmentService,
        gateway: FakePaymentGateway,
    ) -> None:
        batch = await _create_batch(service, [1, 2, 3])

        assert batch.status == EnrollmentStatus.WAITING_PAYMENT
        assert batch.unit_price == 7990
        assert batch.number_of_certifications == 3
        assert batch.total_value == 23970
        assert batch.payment_method == PaymentMethod.BOLETO
        assert batch.payer_document == VALID_CNPJ
        assert batch.due_date == due_date_in(10)
        assert batch.payment_url

        [request] = gateway.requests
        assert request.amount == 23970
        assert request.external_reference == f"batch-{batch.id}"
        assert request.description == "Certificação em lote: Gestão Escolar (3 alunos)"

    @pytest.mark.asyncio
    async def test_certified_student_rejects_whole_batch(
        self,
        service: EnrollmentService,
        store: InMemoryEnrollmentStore,
        gateway: FakePaymentGateway,
    ) -> None:
        store.certify(TENANT_ID, COURSE_ID, 2)

        with pytest.raises(ValidationError) as exc_info:
            await _create_batch(service, [1, 2, 3])

        assert exc_info.value.field == "student_ids"
        assert exc_info.value.details == {"student_ids": [2]}
        assert gateway.requests == []
        assert store.batches == {}

    @pytest.mark.asyncio
    async def test_student_in_open_batch_is_rejected(self, service: EnrollmentService) -> None:
        await _create_batch(service, [1])

        with pytest.raises(ValidationError) as exc_info:
            await _create_batch(service, [1, 2])

        assert exc_info.value.details == {"student_ids": [1]}

    @pytest.mark.asyncio
    async def test_cancelled_batch_frees_its_students(self, service: EnrollmentService) -> None:
        first = await _create_batch(service, [1])
        await service.transition_batch(TENANT_ID, first.id, EnrollmentEvent.CANCEL)

        second = await _create_batch(service, [1, 2])

        assert second.number_of_certifications == 2

    @pytest.mark.parametrize(
        ("student_ids", "field", "offenders"),
        [
            ([], "student_ids", None),
            ([1, 1, 2], "student_ids", [1]),
            ([1, 99], "student_ids", [99]),
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_student_lists(
        self,
        service: EnrollmentService,
        gateway: FakePaymentGateway,
        student_ids: list[int],
        field: str,
        offenders: list[int] | None,
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await _create_batch(service, student_ids)

        assert exc_info.value.field == field
        if offenders is not None:
            assert exc_info.value.details == {"student_ids": offenders}
        assert gateway.requests == []

    @pytest.mark.asyncio
    async def test_invalid_payer_document_is_rejected(self, service: EnrollmentService) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await _create_batch(service, [1], payer=BatchPayer(name="Escola", document="11222333000182"))

        assert exc_info.value.field == "payer_document"

    @pytest.mark.asyncio
    async def test_gateway_rejection_fails_the_batch(
        self,
        service: EnrollmentService,
        store: InMemoryEnrollmentStore,
        gateway: FakePaymentGateway,
    ) -> None:
        gateway.create_error = GatewayRejectedError(message="Cliente inválido", status_code=400)

        with pytest.raises(GatewayError) as exc_info:
            await _create_batch(service, [1])

        assert exc_info.value.resource == "batch"
        assert store.batches[1].status == EnrollmentStatus.FAILED


class TestBatchLifecycle:
    """Tests for batch reconciliation and finalization."""

    @pytest.mark.asyncio
    async def test_finalize_records_certifications(
        self,
        service: EnrollmentService,
        store: InMemoryEnrollmentStore,
    ) -> None:
        batch = await _create_batch(service, [1, 2])
        confirmed = await service.apply_gateway_event(
            GatewayEvent(name="PAYMENT_RECEIVED", status=ChargeStatus.CONFIRMED, transaction_id=batch.gateway_transaction_id)
        )
        assert confirmed.status == EnrollmentStatus.PAYMENT_CONFIRMED

        completed = await service.transition_batch(TENANT_ID, batch.id, EnrollmentEvent.FINALIZE)

        assert completed.status == EnrollmentStatus.COMPLETED
        assert await store.certified_student_ids(TENANT_ID, COURSE_ID, [1, 2, 3]) == {1, 2}

        with pytest.raises(ValidationError) as exc_info:
            await _create_batch(service, [2, 3])
        assert exc_info.value.details == {"student_ids": [2]}

    @pytest.mark.asyncio
    async def test_batch_event_by_reference(self, service: EnrollmentService) -> None:
        batch = await _create_batch(service, [1])

        updated = await service.apply_gateway_event(
            GatewayEvent(name="PAYMENT_DELETED", status=ChargeStatus.FAILED, external_reference=batch.external_reference)
        )

        assert updated.status == EnrollmentStatus.FAILED

    @pytest.mark.asyncio
    async def test_finalize_unpaid_batch_is_rejected(self, service: EnrollmentService) -> None:
        batch = await _create_batch(service, [1])

        with pytest.raises(InvalidTransitionError):
            await service.transition_batch(TENANT_ID, batch.id, EnrollmentEvent.FINALIZE)

    @pytest.mark.asyncio
    async def test_refresh_batch(
        self,
        service: EnrollmentService,
        gateway: FakePaymentGateway,
    ) -> None:
        batch = await _create_batch(service, [1, 3])
        gateway.set_status(batch.external_reference, ChargeStatus.CONFIRMED)

        refreshed = await service.refresh_batch_status(TENANT_ID, batch.id)

        assert refreshed.status == EnrollmentStatus.PAYMENT_CONFIRMED

    @pytest.mark.asyncio
    async def test_overdue_batch_stays_payable(self, service: EnrollmentService) -> None:
        batch = await _create_batch(service, [1])
        asaas = AsaasGateway(api_url="https://sandbox.asaas.com/api", api_key="test-key")
        payment = {"id": batch.gateway_transaction_id, "externalReference": batch.external_reference}

        overdue = await service.apply_gateway_event(asaas.parse_webhook({"event": "PAYMENT_OVERDUE", "payment": payment}))
        received = await service.apply_gateway_event(asaas.parse_webhook({"event": "PAYMENT_RECEIVED", "payment": payment}))

        assert overdue.status == EnrollmentStatus.WAITING_PAYMENT
        assert received.status == EnrollmentStatus.PAYMENT_CONFIRMED


async def _closed_batch(service: EnrollmentService, status: EnrollmentStatus):
    batch = await _create_batch(service, [1, 2])
    match status:
        case EnrollmentStatus.COMPLETED:
            await service.apply_gateway_event(
                GatewayEvent(name="PAYMENT_RECEIVED", status=ChargeStatus.CONFIRMED, transaction_id=batch.gateway_transaction_id)
            )
            return await service.transition_batch(TENANT_ID, batch.id, EnrollmentEvent.FINALIZE)
        case EnrollmentStatus.CANCELLED:
            return await service.transition_batch(TENANT_ID, batch.id, EnrollmentEvent.CANCEL)
        case _:
            return await service.apply_gateway_event(
                GatewayEvent(name="PAYMENT_DELETED", status=ChargeStatus.FAILED, transaction_id=batch.gateway_transaction_id)
            )


class TestClosedBatches:
    """Closed batches reject every event and stay untouched."""

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
        gateway: FakePaymentGateway,
        status: EnrollmentStatus,
        event: EnrollmentEvent,
    ) -> None:
        closed = await _closed_batch(service, status)
        before = store.batches[closed.id]
        cancelled_charges = list(gateway.cancelled)
        assert before.status == status

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.transition_batch(TENANT_ID, closed.id, event)

        assert exc_info.value.current_status == status.value
        assert store.batches[closed.id] == before
        assert store.batches[closed.id].updated_at == before.updated_at
        assert gateway.cancelled == cancelled_charges
