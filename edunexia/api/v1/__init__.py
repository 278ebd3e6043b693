# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    auth: Current session user.
    portals: Portal switcher and access decisions.
    enrollments: Simplified enrollment endpoints.
    batches: Batch certification payment endpoints.
    webhooks: Payment gateway notifications.
"""

from fastapi import APIRouter

from edunexia.api.v1 import auth, batches, enrollments, portals, webhooks

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(portals.router, tags=["Portals"])
router.include_router(enrollments.router, prefix="/enrollments", tags=["Enrollments"])
router.include_router(batches.router, prefix="/enrollment-batches", tags=["Enrollment Batches"])
router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
