# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Simplified enrollment endpoints.

Operators (admin, partner, hub) submit enrollments on behalf of students
and follow them through payment. Records are always read and written in
the caller's tenant.

Endpoints:
    POST /enrollments - Create an enrollment and its charge
    GET /enrollments - List enrollments
    GET /enrollments/{id} - Get an enrollment
    POST /enrollments/{id}/transitions - Apply a state machine event
    POST /enrollments/{id}/resubmit - Retry the charge
    POST /enrollments/{id}/refresh - Poll the gateway for the charge status
    POST /enrollments/expire-stale - Fail charges that waited too long (admin)
"""

import logging

from fastapi import APIRouter, Depends, Header, Query, Request, status

from edunexia.api.dependencies import get_enrollment_service, require_admin, require_operator
from edunexia.api.middleware.rate_limit import RATE_LIMIT_CHARGES, limiter
from edunexia.domains.enrollment import EnrollmentService, EnrollmentStatus
from edunexia.domains.identity import SessionUser
from edunexia.models.common import ErrorResponse
from edunexia.models.enrollment import (
    EnrollmentCreateRequest,
    EnrollmentListResponse,
    EnrollmentResponse,
    ExpireStaleRequest,
    ExpireStaleResponse,
    TransitionRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _consultant_filter(user: SessionUser, consultant_id: str | None) -> str | None:
    """Admins may filter by any consultant; other operators see their own."""
    if user.is_admin:
        return consultant_id
    return user.id


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create enrollment",
    description=(
        "Validate the enrollment, store it and create its payment charge. "
        "A repeated Idempotency-Key returns the enrollment of the first request."
    ),
    responses={
        422: {"description": "Invalid enrollment data", "model": ErrorResponse},
        502: {"description": "Payment gateway failure", "model": ErrorResponse},
    },
)
@limiter.limit(RATE_LIMIT_CHARGES)
async def create_enrollment(
    request: Request,
    data: EnrollmentCreateRequest,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=128),
    current_user: SessionUser = Depends(require_operator),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentResponse:
    logger.info(
        "Creating enrollment: course=%s, by=%s, tenant=%s",
        data.course_id,
        current_user.id,
        current_user.tenant_id,
    )
    enrollment = await service.create_enrollment(
        tenant_id=current_user.tenant_id,
        consultant_id=current_user.id,
        data=data.to_input(),
        idempotency_key=idempotency_key,
    )
    return EnrollmentResponse.model_validate(enrollment)


@router.get(
    "",
    response_model=EnrollmentListResponse,
    summary="List enrollments",
)
async def list_enrollments(
    status_filter: EnrollmentStatus | None = Query(default=None, alias="status"),
    consultant_id: str | None = Query(default=None),
    current_user: SessionUser = Depends(require_operator),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentListResponse:
    enrollments = await service.list_enrollments(
        current_user.tenant_id,
        status=status_filter,
        consultant_id=_consultant_filter(current_user, consultant_id),
    )
    return EnrollmentListResponse(
        items=[EnrollmentResponse.model_validate(e) for e in enrollments],
        total=len(enrollments),
    )


@router.post(
    "/expire-stale",
    response_model=ExpireStaleResponse,
    summary="Expire stale payments",
    description="Move enrollments waiting for payment longer than the cutoff to failed.",
)
async def expire_stale_payments(
    data: ExpireStaleRequest | None = None,
    current_user: SessionUser = Depends(require_admin),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> ExpireStaleResponse:
    older_than_days = data.older_than_days if data else None
    logger.info(
        "Expiring stale payments: tenant=%s, older_than_days=%s, by=%s",
        current_user.tenant_id,
        older_than_days,
        current_user.id,
    )
    expired = await service.expire_stale_payments(current_user.tenant_id, older_than_days)
    return ExpireStaleResponse(
        expired=[EnrollmentResponse.model_validate(e) for e in expired],
        count=len(expired),
    )


@router.get(
    "/{enrollment_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment",
)
async def get_enrollment(
    enrollment_id: int,
    current_user: SessionUser = Depends(require_operator),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentResponse:
    enrollment = await service.get_enrollment(current_user.tenant_id, enrollment_id)
    return EnrollmentResponse.model_validate(enrollment)


@router.post(
    "/{enrollment_id}/transitions",
    response_model=EnrollmentResponse,
    summary="Apply enrollment event",
    description="Apply a state machine event; 409 if it is not allowed from the current status.",
)
async def transition_enrollment(
    enrollment_id: int,
    data: TransitionRequest,
    current_user: SessionUser = Depends(require_operator),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentResponse:
    logger.info(
        "Enrollment event requested: id=%s, event=%s, by=%s",
        enrollment_id,
        data.event.value,
        current_user.id,
    )
    enrollment = await service.transition(
        current_user.tenant_id,
        enrollment_id,
        data.event,
        student_id=data.student_id,
    )
    return EnrollmentResponse.model_validate(enrollment)


@router.post(
    "/{enrollment_id}/resubmit",
    response_model=EnrollmentResponse,
    summary="Resubmit enrollment charge",
    description=(
        "Re-drive a pending enrollment's charge, or copy a failed enrollment "
        "into a new one with a fresh charge."
    ),
)
@limiter.limit(RATE_LIMIT_CHARGES)
async def resubmit_enrollment(
    request: Request,
    enrollment_id: int,
    current_user: SessionUser = Depends(require_operator),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentResponse:
    enrollment = await service.resubmit_enrollment(current_user.tenant_id, enrollment_id)
    return EnrollmentResponse.model_validate(enrollment)


@router.post(
    "/{enrollment_id}/refresh",
    response_model=EnrollmentResponse,
    summary="Refresh payment status",
    description="Poll the gateway for the enrollment's charge and reconcile its status.",
)
async def refresh_enrollment(
    enrollment_id: int,
    current_user: SessionUser = Depends(require_operator),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentResponse:
    enrollment = await service.refresh_payment_status(current_user.tenant_id, enrollment_id)
    return EnrollmentResponse.model_validate(enrollment)
