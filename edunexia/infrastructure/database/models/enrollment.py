# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Simplified enrollment and batch payment tables.

Statuses are stored as their string values and only change through
conditional UPDATEs issued by the enrollment repository.
"""

from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from edunexia.infrastructure.database.models.base import Base, TenantMixin, TimestampMixin

STATUS_VALUES = "'pending','waiting_payment','payment_confirmed','completed','cancelled','failed'"


class SimplifiedEnrollmentModel(Base, TenantMixin, TimestampMixin):
    __tablename__ = "simplified_enrollments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False)
    student_id: Mapped[int | None] = mapped_column(ForeignKey("students.id", ondelete="SET NULL"), nullable=True)
    student_name: Mapped[str] = mapped_column(String(255), nullable=False)
    student_email: Mapped[str] = mapped_column(String(255), nullable=False)
    student_cpf: Mapped[str] = mapped_column(String(11), nullable=False)
    student_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    polo_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    consultant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    installments: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payment_method: Mapped[str] = mapped_column(String(16), nullable=False, default="UNDEFINED")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    payment_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    bank_slip_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    gateway_transaction_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    gateway_customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(String(128), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    resubmitted_from_id: Mapped[int | None] = mapped_column(
        ForeignKey("simplified_enrollments.id", ondelete="SET NULL"),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "idempotency_key", name="uq_simplified_enrollments_tenant_idempotency_key"),
        CheckConstraint("amount > 0", name="chk_simplified_enrollments_amount_positive"),
        CheckConstraint("installments BETWEEN 1 AND 12", name="chk_simplified_enrollments_installments"),
        CheckConstraint(f"status IN ({STATUS_VALUES})", name="chk_simplified_enrollments_status"),
        Index("ix_simplified_enrollments_tenant_status", "tenant_id", "status", "updated_at"),
    )


class BatchEnrollmentPaymentModel(Base, TenantMixin, TimestampMixin):
    __tablename__ = "batch_enrollment_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False)
    consultant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)
    total_value: Mapped[int] = mapped_column(Integer, nullable=False)
    number_of_certifications: Mapped[int] = mapped_column(Integer, nullable=False)
    payer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    payer_document: Mapped[str] = mapped_column(String(14), nullable=False)
    payer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_method: Mapped[str] = mapped_column(String(16), nullable=False, default="BOLETO")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    payment_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    bank_slip_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    gateway_transaction_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    gateway_customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[list["BatchEnrollmentItemModel"]] = relationship(
        back_populates="batch",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BatchEnrollmentItemModel.id",
    )

    __table_args__ = (
        CheckConstraint(
            "total_value = unit_price * number_of_certifications",
            name="chk_batch_enrollment_payments_total",
        ),
        CheckConstraint(f"status IN ({STATUS_VALUES})", name="chk_batch_enrollment_payments_status"),
        Index("ix_batch_enrollment_payments_tenant_course_status", "tenant_id", "course_id", "status"),
    )


class BatchEnrollmentItemModel(Base):
    __tablename__ = "batch_enrollment_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    batch_id: Mapped[int] = mapped_column(
        ForeignKey("batch_enrollment_payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="RESTRICT"), nullable=False)

    batch: Mapped[BatchEnrollmentPaymentModel] = relationship(back_populates="items")

    __table_args__ = (
        UniqueConstraint("batch_id", "student_id", name="uq_batch_enrollment_items_batch_student"),
    )
