# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identity document validation (CPF and CNPJ)."""

from edunexia.domains.documents.cpf import (
    format_cnpj,
    format_cpf,
    format_document,
    is_valid_cnpj,
    is_valid_cpf,
    is_valid_document,
    only_digits,
)

__all__ = [
    "is_valid_cpf",
    "is_valid_cnpj",
    "is_valid_document",
    "only_digits",
    "format_cpf",
    "format_cnpj",
    "format_document",
]
