# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models."""

from edunexia.infrastructure.database.models.base import Base, TenantMixin, TimestampMixin
from edunexia.infrastructure.database.models.catalog import (
    CertificationModel,
    CourseModel,
    StudentModel,
)
from edunexia.infrastructure.database.models.enrollment import (
    BatchEnrollmentItemModel,
    BatchEnrollmentPaymentModel,
    SimplifiedEnrollmentModel,
)

__all__ = [
    "Base",
    "TenantMixin",
    "TimestampMixin",
    "CourseModel",
    "StudentModel",
    "CertificationModel",
    "SimplifiedEnrollmentModel",
    "BatchEnrollmentPaymentModel",
    "BatchEnrollmentItemModel",
]
