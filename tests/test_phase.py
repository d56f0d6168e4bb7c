"""Tests for the phase clock."""

import datetime
from datetime import UTC

import pytest
from pydantic import ValidationError

from teambuilder_bot.core.phase import (
    DEFAULT_CONSOLIDATION_DEADLINE,
    Phase,
    PhaseConfig,
    gates,
    phase_of,
    timeline,
)


def at(month: int, day: int, hour: int = 12) -> datetime.datetime:
    return datetime.datetime(2026, month, day, hour, tzinfo=UTC)


CONFIG = PhaseConfig(
    core_team_deadline=at(2, 1, 0),
    consolidation_deadline=at(3, 15, 0),
    leader_lock_date=at(3, 23, 0),
    challenge_start=at(3, 30, 0),
)


@pytest.mark.parametrize(
    "now, expected",
    [
        (at(1, 10), Phase.CONSTITUTION),
        (at(2, 1, 0), Phase.CONSOLIDATION),
        (at(3, 1), Phase.CONSOLIDATION),
        (at(3, 20), Phase.LEADER_SELECTION),
        (at(3, 25), Phase.AWAITING_CHALLENGE),
        (at(3, 30, 0), Phase.CHALLENGE),
        (at(5, 1), Phase.CHALLENGE),
    ],
)
def test_phase_of(now, expected) -> None:
    assert phase_of(now, CONFIG) is expected


def test_group_lock_is_strictly_after_deadline() -> None:
    deadline = CONFIG.consolidation_deadline
    assert gates(deadline, CONFIG).is_group_locked is False
    later = deadline + datetime.timedelta(seconds=1)
    assert gates(later, CONFIG).is_group_locked is True


def test_leader_selection_open_until_lock_date_inclusive() -> None:
    lock = CONFIG.leader_lock_date
    assert gates(lock, CONFIG).is_leader_selection_open is True
    after = lock + datetime.timedelta(seconds=1)
    assert gates(after, CONFIG).is_leader_selection_open is False


def test_naive_now_is_treated_as_utc() -> None:
    naive = datetime.datetime(2026, 3, 20, 12)
    assert phase_of(naive, CONFIG) is Phase.LEADER_SELECTION
    assert gates(naive, CONFIG).is_group_locked is True


def test_deadlines_must_be_ordered() -> None:
    with pytest.raises(ValidationError):
        PhaseConfig(core_team_deadline=at(4, 1), consolidation_deadline=at(3, 1))


def test_from_rows_reads_known_keys() -> None:
    rows = {
        "CORE_TEAM_DEADLINE": "2026-01-20T00:00:00+00:00",
        "CONSOLIDATION_DEADLINE": "2026-03-01T00:00:00Z",
        "LEADER_LOCK_DATE": "2026-03-10T00:00:00.000Z",
        "CHALLENGE_START": "2026-03-12T00:00:00",
        "GROUP_NAME_1": "Alpha",
    }
    config = PhaseConfig.from_rows(rows)
    assert config.core_team_deadline == at(1, 20, 0)
    assert config.consolidation_deadline == at(3, 1, 0)
    assert config.leader_lock_date == at(3, 10, 0)
    assert config.challenge_start == at(3, 12, 0)


def test_from_rows_legacy_key_and_defaults() -> None:
    config = PhaseConfig.from_rows([("LEADER_DEADLINE", "2026-03-10T00:00:00Z")])
    assert config.consolidation_deadline == at(3, 10, 0)
    # the other deadlines keep their defaults
    assert config.core_team_deadline == PhaseConfig().core_team_deadline


def test_from_rows_falls_back_on_bad_values() -> None:
    config = PhaseConfig.from_rows({"CONSOLIDATION_DEADLINE": "not a date"})
    assert config.consolidation_deadline == DEFAULT_CONSOLIDATION_DEADLINE

    # out of order: everything falls back to the defaults
    config = PhaseConfig.from_rows({"CORE_TEAM_DEADLINE": "2027-01-01T00:00:00Z"})
    assert config == PhaseConfig()


def test_timeline_marks_active_and_completed_steps() -> None:
    steps = timeline(at(3, 20), CONFIG)
    assert [s.phase for s in steps] == [
        Phase.CONSTITUTION,
        Phase.CONSOLIDATION,
        Phase.LEADER_SELECTION,
        Phase.CHALLENGE,
    ]
    assert [s.completed for s in steps] == [True, True, False, False]
    assert [s.active for s in steps] == [False, False, True, False]


@pytest.mark.parametrize(
    "deadline, before, after",
    [
        ("consolidation_deadline", Phase.CONSOLIDATION, Phase.LEADER_SELECTION),
        ("leader_lock_date", Phase.LEADER_SELECTION, Phase.AWAITING_CHALLENGE),
    ],
)
def test_phase_changes_strictly_after_deadline(deadline, before, after) -> None:
    moment = getattr(CONFIG, deadline)
    assert phase_of(moment, CONFIG) is before
    assert phase_of(moment + datetime.timedelta(seconds=1), CONFIG) is after


def test_phase_agrees_with_gates_at_consolidation_deadline() -> None:
    moment = CONFIG.consolidation_deadline
    assert gates(moment, CONFIG).is_group_locked is False
    assert phase_of(moment, CONFIG) is Phase.CONSOLIDATION
    steps = timeline(moment, CONFIG)
    assert steps[1].active is True
    assert steps[1].completed is False


def test_timeline_highlights_challenge_while_waiting() -> None:
    steps = timeline(at(3, 25), CONFIG)
    assert phase_of(at(3, 25), CONFIG) is Phase.AWAITING_CHALLENGE
    assert [s.completed for s in steps] == [True, True, True, False]
    assert [s.active for s in steps] == [False, False, False, True]
