from __future__ import annotations
from datetime import timedelta

import pytest

from pos_session.domain.entities.identity import Identity
from pos_session.domain.entities.session import Session
from pos_session.domain.policies.extension_policy import (
    RESTRICTED_MESSAGE,
    UNKNOWN_ROLE_MESSAGE,
    ExtensionPolicy,
)
from pos_session.domain.value_objects.role import Role
from tests.unit._fakes_session import START


@pytest.mark.parametrize("role", ["normal", "admin", "manager", "super_admin", "superadmin", "user", " Normal "])
def test_eligible_roles_can_self_extend(role):
    assert ExtensionPolicy().can_self_extend(role)


@pytest.mark.parametrize("role", ["demo", "DEMO", None, "", "auditor"])
def test_restricted_and_unknown_roles_cannot(role):
    assert not ExtensionPolicy().can_self_extend(role)


def test_restricted_wins_over_eligible():
    policy = ExtensionPolicy(eligible=["normal", "demo"], restricted=["demo"])
    assert not policy.can_self_extend("demo")


def test_advisory_text():
    policy = ExtensionPolicy()
    assert policy.advisory_for("demo") == RESTRICTED_MESSAGE
    assert policy.advisory_for(None) == UNKNOWN_ROLE_MESSAGE


def test_role_and_identity_normalization():
    assert Role(None) == ""
    assert not Role(None).is_known
    ident = Identity("u1", "Manager")
    assert isinstance(ident.role, Role) and ident.role == "manager"


def test_session_extension_and_invalidation():
    s = Session.open("u1", "normal", now=START, lifetime=timedelta(minutes=15))
    later = START + timedelta(minutes=10)
    e = s.extended(now=later, lifetime=timedelta(minutes=15))
    assert e.id == s.id and e.extension_count == 1
    assert e.expires_at == later + timedelta(minutes=15)
    assert e.is_fresher_than(s) and not s.is_fresher_than(e)
    inv = e.invalidated(now=later)
    assert not inv.is_valid and inv.expires_at == later
