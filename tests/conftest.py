# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests (domain services against in-memory fakes)
- Integration tests (API through TestClient with dependency overrides)
"""

from collections.abc import Callable, Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from edunexia.api import create_app
from edunexia.api.dependencies import get_enrollment_service
from edunexia.api.middleware.rate_limit import limiter
from edunexia.core.config import PricingSettings, clear_settings_cache, get_settings
from edunexia.domains.auth import JWTManager
from edunexia.domains.enrollment import Course, EnrollmentService, Student
from edunexia.domains.identity import SessionUser
from tests.fakes import FakePaymentGateway, InMemoryEnrollmentStore
from tests.fakes.catalog import COURSE_ID, OTHER_TENANT_ID, TENANT_ID


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture(autouse=True)
def _fresh_settings() -> Generator[None, None, None]:
    """Reload settings around every test so env overrides do not leak."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def pricing() -> PricingSettings:
    """Pricing with the default amounts, independent of the environment."""
    return PricingSettings(
        individual_unit_price=8990,
        batch_unit_price=7990,
        batch_due_days=10,
        stale_payment_days=30,
    )


# =============================================================================
# Enrollment fixtures
# =============================================================================


@pytest.fixture
def store() -> InMemoryEnrollmentStore:
    """In-memory store seeded with one course and three students."""
    store = InMemoryEnrollmentStore()
    store.add_course(Course(id=COURSE_ID, tenant_id=TENANT_ID, title="Gestão Escolar"))
    store.add_course(Course(id=COURSE_ID, tenant_id=OTHER_TENANT_ID, title="Outro Tenant"))
    for sid, name in ((1, "Ana Souza"), (2, "Bruno Lima"), (3, "Carla Dias")):
        store.add_student(Student(id=sid, tenant_id=TENANT_ID, name=name))
    return store


@pytest.fixture
def gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def service(
    store: InMemoryEnrollmentStore,
    gateway: FakePaymentGateway,
    pricing: PricingSettings,
) -> EnrollmentService:
    return EnrollmentService(store, gateway, pricing)


# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def admin_user() -> SessionUser:
    return SessionUser(id="u-admin", role="admin", tenant_id=TENANT_ID, name="Admin")


@pytest.fixture
def partner_user() -> SessionUser:
    return SessionUser(id="u-partner", role="partner", tenant_id=TENANT_ID, name="Parceiro")


@pytest.fixture
def student_user() -> SessionUser:
    return SessionUser(id="u-student", role="student", tenant_id=TENANT_ID, name="Aluno")


# =============================================================================
# API fixtures
# =============================================================================


@pytest.fixture
def app(service: EnrollmentService) -> Generator[FastAPI, None, None]:
    """Application wired to the in-memory service.

    The lifespan does not run (no database, no real gateway).
    """
    limiter.reset()
    application = create_app()
    application.dependency_overrides[get_enrollment_service] = lambda: service
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def auth_headers() -> Callable[[SessionUser], dict[str, str]]:
    """Build a Bearer header for a user, signed with the configured secret."""

    def build(user: SessionUser) -> dict[str, str]:
        jwt_manager = JWTManager(get_settings().jwt)
        token = jwt_manager.create_access_token(
            user.id,
            role=user.role,
            tenant_id=user.tenant_id,
            name=user.name,
        )
        return {"Authorization": f"Bearer {token}"}

    return build
