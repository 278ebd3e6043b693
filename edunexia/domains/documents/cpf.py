# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Brazilian taxpayer document validation.

CPF (individuals, 11 digits) and CNPJ (companies, 14 digits) both end in two
mod-11 check digits. Validation is formatting-insensitive: every non-digit
character is stripped first, so "529.982.247-25" and "52998224725" agree.

All functions are total: they return False (or an empty string) for any
input they cannot interpret instead of raising.
"""

import re

_NON_DIGITS = re.compile(r"[^0-9]")

CPF_LENGTH = 11
CNPJ_LENGTH = 14

# Weights for the two CNPJ check digits
_CNPJ_FIRST_WEIGHTS = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
_CNPJ_SECOND_WEIGHTS = (6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)


def only_digits(raw: object) -> str:
    """Strip every non-digit character.

    Args:
        raw: Any value; non-strings yield an empty string.

    Returns:
        The ASCII digits of raw, in order.
    """
    if not isinstance(raw, str):
        return ""
    return _NON_DIGITS.sub("", raw)


def _cpf_check_digit(digits: str, count: int) -> int:
    total = sum(int(d) * weight for d, weight in zip(digits[:count], range(count + 1, 1, -1)))
    remainder = (total * 10) % 11
    return 0 if remainder >= 10 else remainder


def is_valid_cpf(raw: object) -> bool:
    """Validate a CPF number.

    Args:
        raw: CPF with or without punctuation.

    Returns:
        True if raw has 11 digits, is not a repdigit, and both check
        digits match.

    Example:
        >>> is_valid_cpf("529.982.247-25")
        True
        >>> is_valid_cpf("111.111.111-11")
        False
    """
    digits = only_digits(raw)
    if len(digits) != CPF_LENGTH:
        return False
    if len(set(digits)) == 1:
        return False

    if _cpf_check_digit(digits, 9) != int(digits[9]):
        return False
    return _cpf_check_digit(digits, 10) == int(digits[10])


def _cnpj_check_digit(digits: str, weights: tuple[int, ...]) -> int:
    total = sum(int(d) * w for d, w in zip(digits, weights))
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def is_valid_cnpj(raw: object) -> bool:
    """Validate a CNPJ number.

    Args:
        raw: CNPJ with or without punctuation.

    Returns:
        True if raw has 14 digits, is not a repdigit, and both check
        digits match.
    """
    digits = only_digits(raw)
    if len(digits) != CNPJ_LENGTH or len(set(digits)) == 1:
        return False

    if _cnpj_check_digit(digits, _CNPJ_FIRST_WEIGHTS) != int(digits[12]):
        return False
    return _cnpj_check_digit(digits, _CNPJ_SECOND_WEIGHTS) == int(digits[13])


def is_valid_document(raw: object) -> bool:
    """Validate a payer document that may be either a CPF or a CNPJ."""
    digits = only_digits(raw)
    if len(digits) == CPF_LENGTH:
        return is_valid_cpf(digits)
    if len(digits) == CNPJ_LENGTH:
        return is_valid_cnpj(digits)
    return False


def format_cpf(raw: object) -> str:
    """Format a CPF as 000.000.000-00 (empty string if not 11 digits)."""
    d = only_digits(raw)
    if len(d) != CPF_LENGTH:
        return ""
    return f"{d[:3]}.{d[3:6]}.{d[6:9]}-{d[9:]}"


def format_cnpj(raw: object) -> str:
    """Format a CNPJ as 00.000.000/0000-00 (empty string if not 14 digits)."""
    d = only_digits(raw)
    if len(d) != CNPJ_LENGTH:
        return ""
    return f"{d[:2]}.{d[2:5]}.{d[5:8]}/{d[8:12]}-{d[12:]}"


def format_document(raw: object) -> str:
    """Format a CPF or CNPJ according to its length."""
    digits = only_digits(raw)
    if len(digits) == CNPJ_LENGTH:
        return format_cnpj(digits)
    return format_cpf(digits)
