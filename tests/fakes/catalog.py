# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identifiers and documents shared by the test suites."""

TENANT_ID = "tenant-1"
OTHER_TENANT_ID = "tenant-2"
COURSE_ID = 10
VALID_CPF = "52998224725"
VALID_CNPJ = "11222333000181"
