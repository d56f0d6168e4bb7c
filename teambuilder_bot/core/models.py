"""Data models for the team-formation domain.

Participants and groups are implemented using :mod:`pydantic` so that records
coming back from a store are validated and can be dumped to plain
dictionaries.  Groups are never persisted as such; they are rebuilt from the
participant records on every read (see :mod:`teambuilder_bot.core.roster`).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class Role(str, Enum):
    """Closed set of participant categories.

    The values are the strings persisted in the ``class_type`` column.
    """

    ENGINEER = "Ingénieur"
    MIND = "MIND"
    CLIC = "CLIC"

    @classmethod
    def parse(cls, value: str) -> Role:
        """Resolve ``value`` by persisted value or by member name."""
        text = value.strip()
        for role in cls:
            if text.lower() in (role.value.lower(), role.name.lower()):
                return role
        raise ValueError(f"Unknown role: {value!r}")


QUOTAS: dict[Role, int] = {
    Role.ENGINEER: 1,
    Role.MIND: 2,
    Role.CLIC: 3,
}

TOTAL_GROUPS = 9


def legacy_key_for(first_name: str, last_name: str) -> str:
    """Return the normalized ``first-last`` key used by older records."""
    return f"{first_name.strip().lower()}-{last_name.strip().lower()}"


class Participant(BaseModel):
    """A member of the cohort.

    Attributes
    ----------
    id:
        Generated unique identifier. Defaults to a random UUID4 string.
    legacy_key:
        Normalized ``first-last`` name key. Older records used it as their
        primary key; it is now only a lookup used when migrating them.
    role:
        The participant's :class:`Role`.
    discord_id:
        The Discord user linked to this participant, if any.
    group_id:
        Identifier of the group the participant belongs to, ``None`` when the
        participant is in no group.
    is_leader:
        Whether the participant leads their group.

    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    legacy_key: str = ""
    first_name: str
    last_name: str
    role: Role
    discord_id: int | None = None
    group_id: int | None = None
    is_leader: bool = False

    @field_validator("group_id", mode="before")
    @classmethod
    def _zero_means_no_group(cls, value: Any) -> Any:
        # older records store 0 for "no group"
        if value in (0, "0", ""):
            return None
        return value

    @model_validator(mode="after")
    def _fill_legacy_key(self) -> Participant:
        if not self.legacy_key:
            self.legacy_key = legacy_key_for(self.first_name, self.last_name)
        return self

    @property
    def display_name(self) -> str:
        return f"{self.first_name.strip()} {self.last_name.strip()}"


class Group(BaseModel):
    """One of the pre-allocated groups with its current members."""

    id: int
    name: str = ""
    manifesto: str | None = None
    members: list[Participant] = Field(default_factory=list)

    @model_validator(mode="after")
    def _default_name(self) -> Group:
        if not self.name:
            self.name = f"Groupe {self.id}"
        return self

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def leader(self) -> Participant | None:
        """Return the group's leader, or ``None`` unless exactly one is flagged."""
        leaders = [m for m in self.members if m.is_leader]
        return leaders[0] if len(leaders) == 1 else None

    def count(self, role: Role) -> int:
        return sum(1 for m in self.members if m.role == role)

    def counts(self) -> dict[Role, int]:
        return {role: self.count(role) for role in Role}

    def has_member(self, participant_id: str) -> bool:
        return any(m.id == participant_id for m in self.members)

    def missing_roles(self, quotas: dict[Role, int] = QUOTAS) -> dict[Role, int]:
        """Return how many members of each role the group still needs."""
        missing = {}
        for role, required in quotas.items():
            gap = required - self.count(role)
            if gap > 0:
                missing[role] = gap
        return missing

    def is_founder_complete(self, quotas: dict[Role, int] = QUOTAS) -> bool:
        return not self.missing_roles(quotas)


@dataclass(frozen=True)
class Verdict:
    """Outcome of a rule check: allowed, or denied with a readable reason."""

    allowed: bool
    reason: str | None = None

    @classmethod
    def allow(cls) -> Verdict:
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> Verdict:
        return cls(False, reason)

    def __bool__(self) -> bool:
        return self.allowed
