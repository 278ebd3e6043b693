# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for CPF and CNPJ validation."""

import pytest

from edunexia.domains.documents import (
    format_cnpj,
    format_cpf,
    format_document,
    is_valid_cnpj,
    is_valid_cpf,
    is_valid_document,
    only_digits,
)


class TestCPF:
    """Tests for is_valid_cpf."""

    def test_valid_cpf(self) -> None:
        assert is_valid_cpf("52998224725") is True

    def test_formatting_is_ignored(self) -> None:
        assert is_valid_cpf("529.982.247-25") == is_valid_cpf("52998224725")

    @pytest.mark.parametrize("repdigit", [str(d) * 11 for d in range(10)])
    def test_repdigits_are_invalid(self, repdigit: str) -> None:
        assert is_valid_cpf(repdigit) is False

    @pytest.mark.parametrize("raw", ["123", "", "529982247250", "5299822472a"])
    def test_wrong_length_is_invalid(self, raw: str) -> None:
        assert is_valid_cpf(raw) is False

    def test_wrong_check_digit_is_invalid(self) -> None:
        assert is_valid_cpf("52998224724") is False
        assert is_valid_cpf("52998224735") is False

    def test_non_string_is_invalid(self) -> None:
        assert is_valid_cpf(None) is False
        assert is_valid_cpf(52998224725) is False


class TestCNPJ:
    """Tests for is_valid_cnpj and is_valid_document."""

    def test_valid_cnpj(self) -> None:
        assert is_valid_cnpj("11222333000181") is True
        assert is_valid_cnpj("11.222.333/0001-81") is True

    def test_invalid_cnpj(self) -> None:
        assert is_valid_cnpj("11222333000182") is False
        assert is_valid_cnpj("00000000000000") is False

    def test_document_accepts_cpf_or_cnpj(self) -> None:
        assert is_valid_document("529.982.247-25") is True
        assert is_valid_document("11.222.333/0001-81") is True
        assert is_valid_document("1122233300018") is False


class TestFormatting:
    """Tests for digit stripping and formatting helpers."""

    def test_only_digits(self) -> None:
        assert only_digits("529.982.247-25") == "52998224725"
        assert only_digits(None) == ""

    def test_format_cpf(self) -> None:
        assert format_cpf("52998224725") == "529.982.247-25"
        assert format_cpf("123") == ""

    def test_format_cnpj(self) -> None:
        assert format_cnpj("11222333000181") == "11.222.333/0001-81"

    def test_format_document_picks_by_length(self) -> None:
        assert format_document("52998224725") == "529.982.247-25"
        assert format_document("11222333000181") == "11.222.333/0001-81"
