# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Asaas API client.

This module implements PaymentGateway on top of the Asaas v3 REST API.

The client handles:
- Customer get-or-create by formatted CPF/CNPJ
- Charge creation, deduplicated by externalReference
- Charge lookup, polling and cancellation
- Webhook payload normalization

Example:
    gateway = AsaasGateway(
        api_url="https://sandbox.asaas.com/api",
        api_key="your-api-key",
    )
    result = await gateway.create_charge(request)
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx

from edunexia.core.config.settings import AsaasSettings
from edunexia.domains.documents import format_document, only_digits
from edunexia.services.payments.base import (
    ChargeRequest,
    ChargeResult,
    ChargeStatus,
    GatewayEvent,
    Payer,
    PaymentGateway,
)
from edunexia.services.payments.exceptions import (
    GatewayRejectedError,
    GatewayUnavailableError,
)
from edunexia.utils.datetime import due_date_in

logger = logging.getLogger(__name__)

_STATUS_MAP: dict[str, ChargeStatus] = {
    "PENDING": ChargeStatus.PENDING,
    "AWAITING_RISK_ANALYSIS": ChargeStatus.PENDING,
    # Overdue charges stay payable until expire_stale_payments closes them.
    "OVERDUE": ChargeStatus.PENDING,
    "RECEIVED": ChargeStatus.CONFIRMED,
    "CONFIRMED": ChargeStatus.CONFIRMED,
    "RECEIVED_IN_CASH": ChargeStatus.CONFIRMED,
    "REFUNDED": ChargeStatus.FAILED,
    "REFUND_REQUESTED": ChargeStatus.FAILED,
    "CHARGEBACK_REQUESTED": ChargeStatus.FAILED,
    "CHARGEBACK_DISPUTE": ChargeStatus.FAILED,
    "AWAITING_CHARGEBACK_REVERSAL": ChargeStatus.FAILED,
    "DELETED": ChargeStatus.FAILED,
}

_EVENT_MAP: dict[str, ChargeStatus] = {
    "PAYMENT_RECEIVED": ChargeStatus.CONFIRMED,
    "PAYMENT_CONFIRMED": ChargeStatus.CONFIRMED,
    "PAYMENT_OVERDUE": ChargeStatus.PENDING,
    "PAYMENT_DELETED": ChargeStatus.FAILED,
    "PAYMENT_REFUNDED": ChargeStatus.FAILED,
    "PAYMENT_CHARGEBACK_REQUESTED": ChargeStatus.FAILED,
    "PAYMENT_REPROVED_BY_RISK_ANALYSIS": ChargeStatus.FAILED,
}


def map_status(asaas_status: str | None) -> ChargeStatus:
    """Map an Asaas payment status to a ChargeStatus.

    Unknown statuses are treated as pending so they never complete or
    fail an enrollment on their own.
    """
    return _STATUS_MAP.get((asaas_status or "").upper(), ChargeStatus.PENDING)


def cents_to_reais(cents: int) -> float:
    """Convert integer cents to the two-decimal value Asaas expects."""
    value = (Decimal(cents) / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(value)


class AsaasGateway(PaymentGateway):
    """Async HTTP client for the Asaas payments API.

    Attributes:
        api_url: Base URL of the Asaas API (without /v3).
        default_due_days: Days until due when a request has no due date.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: float = 30.0,
        default_due_days: int = 30,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Asaas client.

        Args:
            api_url: Base URL of the Asaas API.
            api_key: API key sent in the access_token header.
            timeout: Request timeout in seconds.
            default_due_days: Days until due when a request has no due date.
            client: Optional preconfigured HTTP client (used by tests).
        """
        self.api_url = api_url.rstrip("/")
        self.default_due_days = default_due_days
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    @classmethod
    def from_settings(
        cls,
        settings: AsaasSettings,
        client: httpx.AsyncClient | None = None,
    ) -> "AsaasGateway":
        """Build a gateway from Asaas settings."""
        return cls(
            api_url=settings.api_url,
            api_key=settings.api_key.get_secret_value(),
            timeout=settings.timeout,
            default_due_days=settings.default_due_days,
            client=client,
        )

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_headers(self) -> dict[str, str]:
        return {
            "access_token": self._api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "edunexia",
        }

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request and decode the JSON answer.

        Raises:
            GatewayRejectedError: On 4xx answers.
            GatewayUnavailableError: On 5xx answers, timeouts and transport
                errors.
        """
        url = f"{self.api_url}/v3{path}"
        try:
            response = await self._get_client().request(
                method,
                url,
                json=json,
                params=params,
                headers=self._get_headers(),
            )
        except httpx.TimeoutException as e:
            logger.warning("Asaas request timed out: %s %s", method, path)
            raise GatewayUnavailableError(
                message=f"Payment gateway timed out: {str(e) or type(e).__name__}",
                details={"error_type": type(e).__name__},
            ) from e
        except httpx.RequestError as e:
            logger.error("Asaas connection error: %s", str(e))
            raise GatewayUnavailableError(
                message=f"Failed to connect to payment gateway: {str(e)}",
                details={"error_type": type(e).__name__},
            ) from e

        return self._handle_response(response, method, path)

    def _handle_response(
        self,
        response: httpx.Response,
        method: str,
        path: str,
    ) -> dict[str, Any]:
        """Decode a response or raise the matching gateway error."""
        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_success:
            return data if isinstance(data, dict) else {"data": data}

        message = self._error_message(data) or f"Asaas returned HTTP {response.status_code}"
        if response.status_code >= 500:
            logger.error(
                "Asaas server error: %s %s status=%d",
                method,
                path,
                response.status_code,
            )
            raise GatewayUnavailableError(
                message=message,
                status_code=response.status_code,
                response_body=response.text,
            )

        logger.warning(
            "Asaas rejected request: %s %s status=%d message=%s",
            method,
            path,
            response.status_code,
            message,
        )
        raise GatewayRejectedError(
            message=message,
            status_code=response.status_code,
            response_body=response.text,
        )

    @staticmethod
    def _error_message(data: Any) -> str | None:
        """Extract the provider's first error description."""
        if not isinstance(data, dict):
            return None
        errors = data.get("errors") or []
        if errors and isinstance(errors[0], dict):
            return errors[0].get("description")
        return None

    @staticmethod
    def _to_result(payment: dict[str, Any]) -> ChargeResult:
        return ChargeResult(
            transaction_id=payment["id"],
            status=map_status(payment.get("status")),
            payment_url=payment.get("invoiceUrl"),
            bank_slip_url=payment.get("bankSlipUrl"),
            customer_id=payment.get("customer"),
            external_reference=payment.get("externalReference"),
        )

    async def get_or_create_customer(self, payer: Payer) -> str:
        """Find the Asaas customer for a document, creating it if needed.

        Args:
            payer: Payer data; the document may be formatted or not.

        Returns:
            Asaas customer id.
        """
        document = format_document(payer.document)
        found = await self._request("GET", "/customers", params={"cpfCnpj": document})
        customers = found.get("data") or []
        if customers:
            customer_id = customers[0]["id"]
            logger.debug("Reusing Asaas customer: id=%s", customer_id)
            return customer_id

        payload: dict[str, Any] = {"name": payer.name, "cpfCnpj": document}
        if payer.email:
            payload["email"] = payer.email
        if payer.phone:
            payload["mobilePhone"] = only_digits(payer.phone)

        created = await self._request("POST", "/customers", json=payload)
        logger.info("Created Asaas customer: id=%s", created.get("id"))
        return created["id"]

    async def find_charge(self, external_reference: str) -> ChargeResult | None:
        """Look up the live charge for an external reference."""
        found = await self._request(
            "GET",
            "/payments",
            params={"externalReference": external_reference},
        )
        for payment in found.get("data") or []:
            if not payment.get("deleted"):
                return self._to_result(payment)
        return None

    async def create_charge(self, request: ChargeRequest) -> ChargeResult:
        """Create a charge unless one already exists for the reference.

        Args:
            request: Charge to create.

        Returns:
            The new or pre-existing charge.

        Raises:
            GatewayRejectedError: If Asaas refused the customer or charge.
            GatewayUnavailableError: If the outcome is unknown.
        """
        existing = await self.find_charge(request.external_reference)
        if existing is not None:
            logger.info(
                "Charge already exists for reference: reference=%s, id=%s",
                request.external_reference,
                existing.transaction_id,
            )
            return existing

        customer_id = await self.get_or_create_customer(request.payer)
        due_date = request.due_date or due_date_in(self.default_due_days)

        payload: dict[str, Any] = {
            "customer": customer_id,
            "billingType": request.payment_method.value,
            "value": cents_to_reais(request.amount),
            "dueDate": due_date.isoformat(),
            "description": request.description,
            "externalReference": request.external_reference,
        }
        if request.installments > 1:
            payload["installmentCount"] = request.installments
            payload["totalValue"] = cents_to_reais(request.amount)
            del payload["value"]

        payment = await self._request("POST", "/payments", json=payload)
        result = self._to_result(payment)
        logger.info(
            "Created Asaas charge: id=%s, reference=%s, installments=%d",
            result.transaction_id,
            request.external_reference,
            request.installments,
        )
        return result

    async def get_charge(self, transaction_id: str) -> ChargeResult:
        """Fetch a charge by Asaas payment id."""
        payment = await self._request("GET", f"/payments/{transaction_id}")
        return self._to_result(payment)

    async def cancel_charge(self, transaction_id: str) -> bool:
        """Cancel a charge.

        Returns:
            True if Asaas cancelled it, False if it refused (for example
            because the charge was already paid).

        Raises:
            GatewayUnavailableError: If Asaas could not be reached.
        """
        try:
            await self._request("POST", f"/payments/{transaction_id}/cancel")
        except GatewayRejectedError as e:
            logger.warning(
                "Asaas refused to cancel charge: id=%s, message=%s",
                transaction_id,
                e.message,
            )
            return False
        logger.info("Cancelled Asaas charge: id=%s", transaction_id)
        return True

    def parse_webhook(self, payload: dict[str, Any]) -> GatewayEvent | None:
        """Normalize an Asaas webhook body.

        Args:
            payload: Decoded JSON body with "event" and "payment" keys.

        Returns:
            The event, or None for events that do not change a charge's
            outcome (creation, updates, views).
        """
        name = str(payload.get("event") or "")
        status = _EVENT_MAP.get(name)
        payment = payload.get("payment")
        if status is None or not isinstance(payment, dict):
            logger.debug("Ignoring Asaas webhook event: %s", name or "<missing>")
            return None

        return GatewayEvent(
            name=name,
            status=status,
            transaction_id=payment.get("id"),
            external_reference=payment.get("externalReference"),
            payment_url=payment.get("invoiceUrl"),
            bank_slip_url=payment.get("bankSlipUrl"),
        )
