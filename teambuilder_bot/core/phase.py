"""Phase clock: map a point in time onto the challenge calendar.

Every function here takes ``now`` explicitly.  Nothing in this module reads
the system clock, so phases can be evaluated for any instant.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC
from enum import Enum

from pydantic import BaseModel, ValidationError, field_validator, model_validator

log = logging.getLogger("teambuilder.phase")

DEFAULT_CORE_TEAM_DEADLINE = datetime.datetime(2026, 2, 1, tzinfo=UTC)
DEFAULT_CONSOLIDATION_DEADLINE = datetime.datetime(2026, 3, 15, tzinfo=UTC)
DEFAULT_LEADER_LOCK_DATE = datetime.datetime(2026, 3, 23, tzinfo=UTC)
DEFAULT_CHALLENGE_START = datetime.datetime(2026, 3, 23, tzinfo=UTC)

# config key -> PhaseConfig field
CONFIG_KEYS = {
    "CORE_TEAM_DEADLINE": "core_team_deadline",
    "CONSOLIDATION_DEADLINE": "consolidation_deadline",
    "LEADER_LOCK_DATE": "leader_lock_date",
    "CHALLENGE_START": "challenge_start",
}
# older deployments stored the consolidation deadline under this key
LEGACY_CONSOLIDATION_KEY = "LEADER_DEADLINE"


def as_utc(moment: datetime.datetime) -> datetime.datetime:
    """Return ``moment`` as an aware datetime; naive values are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(tz=UTC)


class Phase(str, Enum):
    CONSTITUTION = "constitution"
    CONSOLIDATION = "consolidation"
    LEADER_SELECTION = "leader_selection"
    AWAITING_CHALLENGE = "awaiting_challenge"
    CHALLENGE = "challenge"


class PhaseConfig(BaseModel):
    """The four deadlines of the challenge calendar."""

    core_team_deadline: datetime.datetime = DEFAULT_CORE_TEAM_DEADLINE
    consolidation_deadline: datetime.datetime = DEFAULT_CONSOLIDATION_DEADLINE
    leader_lock_date: datetime.datetime = DEFAULT_LEADER_LOCK_DATE
    challenge_start: datetime.datetime = DEFAULT_CHALLENGE_START

    @field_validator("*")
    @classmethod
    def _aware(cls, value: datetime.datetime) -> datetime.datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _ordered(self) -> PhaseConfig:
        deadlines = [
            self.core_team_deadline,
            self.consolidation_deadline,
            self.leader_lock_date,
            self.challenge_start,
        ]
        if deadlines != sorted(deadlines):
            raise ValueError(
                "Deadlines must satisfy core_team_deadline <= "
                "consolidation_deadline <= leader_lock_date <= challenge_start"
            )
        return self

    @classmethod
    def from_rows(cls, rows: Mapping[str, str] | Iterable[tuple[str, str]]) -> PhaseConfig:
        """Build a config from key/value rows of the configuration collection.

        Missing or unparsable keys keep their default.  If the resulting
        deadlines are out of order the defaults are used as a whole.
        """
        items = rows.items() if isinstance(rows, Mapping) else rows
        values: dict[str, datetime.datetime] = {}
        legacy: datetime.datetime | None = None
        for key, raw in items:
            if key not in CONFIG_KEYS and key != LEGACY_CONSOLIDATION_KEY:
                continue
            try:
                moment = as_utc(datetime.datetime.fromisoformat(raw.replace("Z", "+00:00")))
            except (TypeError, ValueError, AttributeError):
                log.warning("Ignoring unparsable date for %s: %r", key, raw)
                continue
            if key == LEGACY_CONSOLIDATION_KEY:
                legacy = moment
            else:
                values[CONFIG_KEYS[key]] = moment
        if legacy is not None:
            values.setdefault("consolidation_deadline", legacy)
        try:
            return cls(**values)
        except ValidationError:
            log.warning("Configured deadlines are out of order; using defaults")
            return cls()


@dataclass(frozen=True)
class PhaseGates:
    """Booleans consumed by the rule layer."""

    is_group_locked: bool
    is_leader_selection_open: bool
    has_challenge_started: bool


def gates(now: datetime.datetime, config: PhaseConfig) -> PhaseGates:
    now = as_utc(now)
    return PhaseGates(
        is_group_locked=now > config.consolidation_deadline,
        is_leader_selection_open=now <= config.leader_lock_date,
        has_challenge_started=now >= config.challenge_start,
    )


def phase_of(now: datetime.datetime, config: PhaseConfig) -> Phase:
    now = as_utc(now)
    if now < config.core_team_deadline:
        return Phase.CONSTITUTION
    # boundaries follow the gates: groups lock and leader selection closes
    # strictly after their deadline
    if now <= config.consolidation_deadline:
        return Phase.CONSOLIDATION
    if now <= config.leader_lock_date:
        return Phase.LEADER_SELECTION
    if now < config.challenge_start:
        return Phase.AWAITING_CHALLENGE
    return Phase.CHALLENGE


@dataclass(frozen=True)
class TimelineStep:
    phase: Phase
    title: str
    deadline: datetime.datetime
    active: bool
    completed: bool


def timeline(now: datetime.datetime, config: PhaseConfig) -> list[TimelineStep]:
    """Return the calendar steps for display.

    Not to be used for authorization; use :func:`gates` for that.
    """
    now = as_utc(now)
    current = phase_of(now, config)
    return [
        TimelineStep(
            Phase.CONSTITUTION,
            "Phase 1: Constitution",
            config.core_team_deadline,
            active=current is Phase.CONSTITUTION,
            completed=now >= config.core_team_deadline,
        ),
        TimelineStep(
            Phase.CONSOLIDATION,
            "Phase 2: Consolidation",
            config.consolidation_deadline,
            active=current is Phase.CONSOLIDATION,
            completed=now > config.consolidation_deadline,
        ),
        TimelineStep(
            Phase.LEADER_SELECTION,
            "Phase 3: Team leader",
            config.leader_lock_date,
            active=current is Phase.LEADER_SELECTION,
            completed=now > config.leader_lock_date,
        ),
        TimelineStep(
            Phase.CHALLENGE,
            "Phase 4: Challenge",
            config.challenge_start,
            # also highlighted while waiting for the start
            active=current in (Phase.AWAITING_CHALLENGE, Phase.CHALLENGE),
            completed=now >= config.challenge_start,
        ),
    ]
