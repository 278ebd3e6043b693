# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Shared API schemas."""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body returned by the API exception handlers."""

    detail: str = Field(description="Human readable error message")
    error: str = Field(description="Error type")
    field: str | None = Field(default=None, description="Offending input field, for validation errors")
    details: dict[str, Any] | None = None
