# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for Edunexia.

Example:
    >>> from edunexia.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.pricing.batch_unit_price
    7990
"""

from edunexia.core.config.settings import (
    APISettings,
    AsaasSettings,
    CORSSettings,
    DatabaseSettings,
    JWTSettings,
    PortalSettings,
    PricingSettings,
    RateLimitSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "DatabaseSettings",
    "JWTSettings",
    "AsaasSettings",
    "PricingSettings",
    "PortalSettings",
    "RateLimitSettings",
    "CORSSettings",
    "APISettings",
]
