# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the portal registry."""

import pytest

from edunexia.core.exceptions import PortalNotAvailableError, UnmappedRoleError
from edunexia.domains.identity import SessionUser
from edunexia.domains.portal import (
    PORTALS,
    STUDENT_PORTAL,
    get_portal,
    resolve_available_portals,
    select_portal,
)


def _user(role: str) -> SessionUser:
    return SessionUser(id="u1", role=role, tenant_id="t1")


class TestCatalog:
    def test_catalog_has_one_portal_per_role(self) -> None:
        assert [p.id for p in PORTALS] == ["admin", "student", "teacher", "hub", "partner"]
        assert {p.required_role for p in PORTALS} == {"admin", "student", "teacher", "hub", "partner"}

    def test_get_portal(self) -> None:
        assert get_portal("teacher").base_route == "/teacher"
        assert get_portal("unknown") is None

    def test_owns_path(self) -> None:
        hub = get_portal("hub")
        assert hub.owns_path("/hub")
        assert hub.owns_path("/hub/students")
        assert not hub.owns_path("/hubble")


class TestResolveAvailablePortals:
    def test_admin_gets_every_portal(self) -> None:
        assert resolve_available_portals(_user("admin")) == list(PORTALS)

    @pytest.mark.parametrize("role", ["student", "teacher", "hub", "partner"])
    def test_role_gets_exactly_its_portal(self, role: str) -> None:
        portals = resolve_available_portals(_user(role))

        assert len(portals) == 1
        assert portals[0].required_role == role

    def test_unmapped_role_is_rejected(self) -> None:
        with pytest.raises(UnmappedRoleError) as exc_info:
            resolve_available_portals(_user("auditor"))

        assert exc_info.value.role == "auditor"

    def test_unmapped_role_falls_back_when_enabled(self) -> None:
        portals = resolve_available_portals(_user("auditor"), fallback_to_student=True)

        assert portals == [STUDENT_PORTAL]


class TestSelectPortal:
    def test_admin_may_select_any_portal(self) -> None:
        for portal in PORTALS:
            assert select_portal(_user("admin"), portal.id) == portal

    def test_role_may_select_its_portal(self) -> None:
        assert select_portal(_user("hub"), "hub").id == "hub"

    def test_role_may_not_select_other_portal(self) -> None:
        with pytest.raises(PortalNotAvailableError) as exc_info:
            select_portal(_user("teacher"), "admin")

        assert exc_info.value.portal_id == "admin"

    def test_unknown_portal_is_rejected(self) -> None:
        with pytest.raises(PortalNotAvailableError):
            select_portal(_user("admin"), "nowhere")
