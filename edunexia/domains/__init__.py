# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for Edunexia.

Domains:
    documents: CPF and CNPJ validation.
    identity: Session user and identity resolution state.
    portal: Portal catalog and role entitlement.
    access: Route authorization decisions.
    auth: JWT verification for tokens issued by the identity service.
    enrollment: Simplified and batch enrollment payment orchestration.
"""
