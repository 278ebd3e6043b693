# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory fakes for deterministic tests without database or network."""

from tests.fakes.payment_gateway import FakePaymentGateway
from tests.fakes.enrollment_store import InMemoryEnrollmentStore

__all__ = ["FakePaymentGateway", "InMemoryEnrollmentStore"]
