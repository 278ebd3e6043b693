# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment gateway integration.

This package provides the provider-independent PaymentGateway interface
and its Asaas implementation.

Usage:
    from edunexia.services.payments import AsaasGateway, ChargeRequest, Payer

    gateway = AsaasGateway(api_url="...", api_key="...")
    result = await gateway.create_charge(
        ChargeRequest(
            external_reference="enrollment-42",
            description="Matrícula no curso: Pedagogia",
            payer=Payer(name="Maria Silva", document="52998224725"),
            amount=8990,
        )
    )
"""

from edunexia.services.payments.asaas import AsaasGateway, cents_to_reais, map_status
from edunexia.services.payments.base import (
    ChargeRequest,
    ChargeResult,
    ChargeStatus,
    GatewayEvent,
    Payer,
    PaymentGateway,
    PaymentMethod,
)
from edunexia.services.payments.exceptions import (
    GatewayRejectedError,
    GatewayUnavailableError,
    PaymentGatewayError,
)

__all__ = [
    "PaymentGateway",
    "AsaasGateway",
    "ChargeRequest",
    "ChargeResult",
    "ChargeStatus",
    "GatewayEvent",
    "Payer",
    "PaymentMethod",
    "PaymentGatewayError",
    "GatewayRejectedError",
    "GatewayUnavailableError",
    "cents_to_reais",
    "map_status",
]
