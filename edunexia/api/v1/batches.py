# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Batch certification payment endpoints.

A batch bills the certification of several already-provisioned students
with a single invoice at the discounted batch unit price.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request, status

from edunexia.api.dependencies import get_enrollment_service, require_operator
from edunexia.api.middleware.rate_limit import RATE_LIMIT_CHARGES, limiter
from edunexia.domains.enrollment import EnrollmentService, EnrollmentStatus
from edunexia.domains.identity import SessionUser
from edunexia.models.common import ErrorResponse
from edunexia.models.enrollment import (
    BatchCreateRequest,
    BatchListResponse,
    BatchResponse,
    BatchTransitionRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=BatchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create batch",
    description=(
        "Create one invoice for several students. A single ineligible student "
        "rejects the whole batch and no invoice is created."
    ),
    responses={
        422: {"description": "Invalid or ineligible students", "model": ErrorResponse},
        502: {"description": "Payment gateway failure", "model": ErrorResponse},
    },
)
@limiter.limit(RATE_LIMIT_CHARGES)
async def create_batch(
    request: Request,
    data: BatchCreateRequest,
    current_user: SessionUser = Depends(require_operator),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> BatchResponse:
    logger.info(
        "Creating batch: course=%s, students=%d, by=%s",
        data.course_id,
        len(data.student_ids),
        current_user.id,
    )
    batch = await service.create_batch_enrollment(
        tenant_id=current_user.tenant_id,
        consultant_id=current_user.id,
        course_id=data.course_id,
        student_ids=data.student_ids,
        payer=data.payer.to_domain(),
        due_date=data.due_date,
        payment_method=data.payment_method,
    )
    return BatchResponse.model_validate(batch)


@router.get("", response_model=BatchListResponse, summary="List batches")
async def list_batches(
    status_filter: EnrollmentStatus | None = Query(default=None, alias="status"),
    consultant_id: str | None = Query(default=None),
    current_user: SessionUser = Depends(require_operator),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> BatchListResponse:
    batches = await service.list_batches(
        current_user.tenant_id,
        status=status_filter,
        consultant_id=consultant_id if current_user.is_admin else current_user.id,
    )
    return BatchListResponse(
        items=[BatchResponse.model_validate(b) for b in batches],
        total=len(batches),
    )


@router.get("/{batch_id}", response_model=BatchResponse, summary="Get batch")
async def get_batch(
    batch_id: int,
    current_user: SessionUser = Depends(require_operator),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> BatchResponse:
    batch = await service.get_batch(current_user.tenant_id, batch_id)
    return BatchResponse.model_validate(batch)


@router.post(
    "/{batch_id}/transitions",
    response_model=BatchResponse,
    summary="Apply batch event",
    description="Finalizing a batch records a certification for every member.",
)
async def transition_batch(
    batch_id: int,
    data: BatchTransitionRequest,
    current_user: SessionUser = Depends(require_operator),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> BatchResponse:
    logger.info(
        "Batch event requested: id=%s, event=%s, by=%s",
        batch_id,
        data.event.value,
        current_user.id,
    )
    batch = await service.transition_batch(current_user.tenant_id, batch_id, data.event)
    return BatchResponse.model_validate(batch)


@router.post(
    "/{batch_id}/refresh",
    response_model=BatchResponse,
    summary="Refresh batch payment status",
)
async def refresh_batch(
    batch_id: int,
    current_user: SessionUser = Depends(require_operator),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> BatchResponse:
    batch = await service.refresh_batch_status(current_user.tenant_id, batch_id)
    return BatchResponse.model_validate(batch)
