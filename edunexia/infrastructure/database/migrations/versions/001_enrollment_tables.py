# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Create catalog, enrollment and batch payment tables.

Revision ID: 001_enrollment_tables
Revises:
Create Date: 2025-06-02

This migration creates:
- courses, students, certifications: catalog rows read by enrollments
- simplified_enrollments: single enrollments and their charge
- batch_enrollment_payments, batch_enrollment_items: batch invoices
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_enrollment_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

STATUS_CHECK = (
    "status IN ('pending','waiting_payment','payment_confirmed','completed','cancelled','failed')"
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    """Create enrollment tables."""
    # ==========================================================================
    # 1. Catalog
    # ==========================================================================
    op.create_table(
        "courses",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("price", sa.Integer, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_courses_tenant_id", "courses", ["tenant_id"])

    op.create_table(
        "students",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("cpf", sa.String(11), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_students_tenant_id", "students", ["tenant_id"])

    op.create_table(
        "certifications",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("course_id", sa.Integer, sa.ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("student_id", sa.Integer, sa.ForeignKey("students.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint(
            "tenant_id", "course_id", "student_id",
            name="uq_certifications_tenant_course_student",
        ),
    )
    op.create_index("ix_certifications_tenant_id", "certifications", ["tenant_id"])

    # ==========================================================================
    # 2. Simplified enrollments
    # ==========================================================================
    op.create_table(
        "simplified_enrollments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("course_id", sa.Integer, sa.ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("student_id", sa.Integer, sa.ForeignKey("students.id", ondelete="SET NULL"), nullable=True),
        sa.Column("student_name", sa.String(255), nullable=False),
        sa.Column("student_email", sa.String(255), nullable=False),
        sa.Column("student_cpf", sa.String(11), nullable=False),
        sa.Column("student_phone", sa.String(32), nullable=True),
        sa.Column("polo_id", sa.Integer, nullable=True),
        sa.Column("consultant_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("installments", sa.Integer, nullable=False, server_default="1"),
        sa.Column("payment_method", sa.String(16), nullable=False, server_default="UNDEFINED"),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("payment_url", sa.Text, nullable=True),
        sa.Column("bank_slip_url", sa.Text, nullable=True),
        sa.Column("gateway_transaction_id", sa.String(64), nullable=True),
        sa.Column("gateway_customer_id", sa.String(64), nullable=True),
        sa.Column("idempotency_key", sa.String(128), nullable=True),
        sa.Column("failure_reason", sa.Text, nullable=True),
        sa.Column("due_date", sa.Date, nullable=True),
        sa.Column(
            "resubmitted_from_id",
            sa.Integer,
            sa.ForeignKey("simplified_enrollments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "tenant_id", "idempotency_key",
            name="uq_simplified_enrollments_tenant_idempotency_key",
        ),
        sa.CheckConstraint("amount > 0", name="chk_simplified_enrollments_amount_positive"),
        sa.CheckConstraint("installments BETWEEN 1 AND 12", name="chk_simplified_enrollments_installments"),
        sa.CheckConstraint(STATUS_CHECK, name="chk_simplified_enrollments_status"),
    )
    op.create_index("ix_simplified_enrollments_tenant_id", "simplified_enrollments", ["tenant_id"])
    op.create_index(
        "ix_simplified_enrollments_gateway_transaction_id",
        "simplified_enrollments",
        ["gateway_transaction_id"],
    )
    op.create_index(
        "ix_simplified_enrollments_tenant_status",
        "simplified_enrollments",
        ["tenant_id", "status", "updated_at"],
    )

    # ==========================================================================
    # 3. Batch enrollment payments
    # ==========================================================================
    op.create_table(
        "batch_enrollment_payments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("course_id", sa.Integer, sa.ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("consultant_id", sa.String(64), nullable=False),
        sa.Column("unit_price", sa.Integer, nullable=False),
        sa.Column("total_value", sa.Integer, nullable=False),
        sa.Column("number_of_certifications", sa.Integer, nullable=False),
        sa.Column("payer_name", sa.String(255), nullable=False),
        sa.Column("payer_document", sa.String(14), nullable=False),
        sa.Column("payer_email", sa.String(255), nullable=True),
        sa.Column("payment_method", sa.String(16), nullable=False, server_default="BOLETO"),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("payment_url", sa.Text, nullable=True),
        sa.Column("bank_slip_url", sa.Text, nullable=True),
        sa.Column("gateway_transaction_id", sa.String(64), nullable=True),
        sa.Column("gateway_customer_id", sa.String(64), nullable=True),
        sa.Column("failure_reason", sa.Text, nullable=True),
        sa.Column("due_date", sa.Date, nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "total_value = unit_price * number_of_certifications",
            name="chk_batch_enrollment_payments_total",
        ),
        sa.CheckConstraint(STATUS_CHECK, name="chk_batch_enrollment_payments_status"),
    )
    op.create_index("ix_batch_enrollment_payments_tenant_id", "batch_enrollment_payments", ["tenant_id"])
    op.create_index(
        "ix_batch_enrollment_payments_gateway_transaction_id",
        "batch_enrollment_payments",
        ["gateway_transaction_id"],
    )
    op.create_index(
        "ix_batch_enrollment_payments_tenant_course_status",
        "batch_enrollment_payments",
        ["tenant_id", "course_id", "status"],
    )

    op.create_table(
        "batch_enrollment_items",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "batch_id",
            sa.Integer,
            sa.ForeignKey("batch_enrollment_payments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("student_id", sa.Integer, sa.ForeignKey("students.id", ondelete="RESTRICT"), nullable=False),
        sa.UniqueConstraint("batch_id", "student_id", name="uq_batch_enrollment_items_batch_student"),
    )
    op.create_index("ix_batch_enrollment_items_batch_id", "batch_enrollment_items", ["batch_id"])


def downgrade() -> None:
    """Drop enrollment tables."""
    op.drop_table("batch_enrollment_items")
    op.drop_table("batch_enrollment_payments")
    op.drop_table("simplified_enrollments")
    op.drop_table("certifications")
    op.drop_table("students")
    op.drop_table("courses")
