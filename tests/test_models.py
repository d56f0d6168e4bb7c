"""Tests for core Pydantic models."""

import pytest

from teambuilder_bot.core.models import (
    QUOTAS,
    Group,
    Participant,
    Role,
    Verdict,
    legacy_key_for,
)


def make(first: str, role: Role, group_id=None, leader=False) -> Participant:
    return Participant(
        first_name=first, last_name="Doe", role=role, group_id=group_id, is_leader=leader
    )


def test_participant_defaults() -> None:
    """Unspecified fields on ``Participant`` use sensible defaults."""
    p = Participant(first_name=" Alice ", last_name="Martin", role=Role.MIND)
    assert isinstance(p.id, str)
    assert p.group_id is None
    assert p.is_leader is False
    assert p.discord_id is None
    assert p.legacy_key == "alice-martin"
    assert p.display_name == "Alice Martin"


def test_generated_ids_are_unique() -> None:
    a = Participant(first_name="Alice", last_name="Martin", role=Role.MIND)
    b = Participant(first_name="Alice", last_name="Martin", role=Role.MIND)
    assert a.id != b.id
    assert a.legacy_key == b.legacy_key


def test_zero_group_means_no_group() -> None:
    """Older records use ``0`` for "no group"."""
    p = Participant(first_name="A", last_name="B", role="CLIC", group_id=0)
    assert p.group_id is None
    assert p.role is Role.CLIC


def test_legacy_key_normalizes() -> None:
    assert legacy_key_for("  Jean ", "DUPONT ") == "jean-dupont"


def test_role_parse() -> None:
    assert Role.parse("ingénieur") is Role.ENGINEER
    assert Role.parse("engineer") is Role.ENGINEER
    assert Role.parse(" mind ") is Role.MIND
    with pytest.raises(ValueError):
        Role.parse("designer")


def test_group_counts_and_missing_roles() -> None:
    group = Group(
        id=1,
        members=[
            make("a", Role.ENGINEER, 1),
            make("b", Role.MIND, 1),
            make("c", Role.CLIC, 1),
            make("d", Role.CLIC, 1),
        ],
    )
    assert group.name == "Groupe 1"
    assert group.size == 4
    assert group.counts() == {Role.ENGINEER: 1, Role.MIND: 1, Role.CLIC: 2}
    assert group.missing_roles() == {Role.MIND: 1, Role.CLIC: 1}
    assert not group.is_founder_complete()

    group.members.extend([make("e", Role.MIND, 1), make("f", Role.CLIC, 1)])
    assert group.missing_roles(QUOTAS) == {}
    assert group.is_founder_complete()


def test_leader_requires_exactly_one_flag() -> None:
    lead = make("a", Role.ENGINEER, 1, leader=True)
    group = Group(id=1, members=[lead, make("b", Role.MIND, 1)])
    assert group.leader is not None and group.leader.id == lead.id

    # two flagged members is an inconsistent state: no leader is reported
    group.members.append(make("c", Role.CLIC, 1, leader=True))
    assert group.leader is None

    assert Group(id=2).leader is None


def test_verdict_truthiness() -> None:
    assert Verdict.allow()
    denied = Verdict.deny("nope")
    assert not denied
    assert denied.reason == "nope"
