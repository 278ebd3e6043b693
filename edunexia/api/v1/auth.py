# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session endpoints.

Tokens are minted by the identity service; this API only reports who the
bearer of a valid token is.
"""

from fastapi import APIRouter, Depends

from edunexia.api.dependencies import require_auth
from edunexia.domains.identity import SessionUser
from edunexia.models.portal import CurrentUserResponse

router = APIRouter()


@router.get("/me", response_model=CurrentUserResponse, summary="Current user")
async def get_me(current_user: SessionUser = Depends(require_auth)) -> CurrentUserResponse:
    return CurrentUserResponse(
        id=current_user.id,
        role=current_user.role,
        tenant_id=current_user.tenant_id,
        name=current_user.name,
        email=current_user.email,
        is_operator=current_user.is_operator,
    )
