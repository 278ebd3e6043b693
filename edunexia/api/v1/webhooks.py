# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment gateway webhook endpoint.

Asaas authenticates its notifications with a shared token in the
asaas-access-token header. Deliveries may repeat or arrive out of order;
the service ignores events that do not fit the record's current status,
so the endpoint always acknowledges a well-formed delivery.
"""

import hmac
from typing import Any

from fastapi import APIRouter, Body, Depends, Header, HTTPException, status

from edunexia.api.dependencies import get_enrollment_service
from edunexia.core.config import get_settings
from edunexia.domains.enrollment import EnrollmentService
from edunexia.models.enrollment import WebhookAck
from edunexia.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def verify_webhook_token(
    asaas_access_token: str | None = Header(default=None, alias="asaas-access-token"),
) -> None:
    """Check the gateway's shared token.

    Raises:
        HTTPException: 401 if the token is missing, unconfigured or wrong.
    """
    expected = get_settings().asaas.webhook_token.get_secret_value()
    if not expected:
        logger.warning("webhook_rejected", reason="webhook token not configured")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Webhook not configured")
    if not asaas_access_token or not hmac.compare_digest(asaas_access_token.encode(), expected.encode()):
        logger.warning("webhook_rejected", reason="invalid token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook token")


@router.post(
    "/payments",
    response_model=WebhookAck,
    summary="Payment gateway webhook",
    dependencies=[Depends(verify_webhook_token)],
)
async def receive_payment_webhook(
    payload: dict[str, Any] = Body(...),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> WebhookAck:
    event = service.gateway.parse_webhook(payload)
    if event is None:
        logger.debug("webhook_ignored", gateway_event=payload.get("event"))
        return WebhookAck(processed=False)

    record = await service.apply_gateway_event(event)
    logger.info(
        "webhook_processed",
        gateway_event=event.name,
        transaction_id=event.transaction_id,
        matched=record is not None,
        status=record.status.value if record is not None else None,
    )
    return WebhookAck(
        processed=record is not None,
        status=record.status if record is not None else None,
    )
