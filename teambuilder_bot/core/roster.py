"""Rebuild the full group roster from participant records and config rows."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .models import TOTAL_GROUPS, Group, Participant
from .phase import PhaseConfig

log = logging.getLogger("teambuilder.roster")

GROUP_NAME_PREFIX = "GROUP_NAME_"
GROUP_MANIFESTO_PREFIX = "GROUP_MANIFESTO_"


def group_name_key(group_id: int) -> str:
    return f"{GROUP_NAME_PREFIX}{group_id}"


def group_manifesto_key(group_id: int) -> str:
    return f"{GROUP_MANIFESTO_PREFIX}{group_id}"


def _group_suffix(key: str, prefix: str) -> int | None:
    try:
        return int(key[len(prefix):])
    except ValueError:
        return None


def build_groups(
    participants: Iterable[Participant],
    config: Mapping[str, str] | None = None,
    total_groups: int = TOTAL_GROUPS,
) -> list[Group]:
    """Return ``total_groups`` groups populated from ``participants``.

    Participants whose group pointer is empty or outside ``1..total_groups``
    are left out.  Custom names and manifestos are read from ``config``.
    """
    groups = [Group(id=i + 1) for i in range(total_groups)]
    for participant in participants:
        gid = participant.group_id
        if gid is None:
            continue
        if not 1 <= gid <= total_groups:
            log.debug("Ignoring dangling group %s for %s", gid, participant.id)
            continue
        groups[gid - 1].members.append(participant)

    for key, value in (config or {}).items():
        if key.startswith(GROUP_NAME_PREFIX):
            gid = _group_suffix(key, GROUP_NAME_PREFIX)
            if gid is not None and 1 <= gid <= total_groups and value:
                groups[gid - 1].name = value
        elif key.startswith(GROUP_MANIFESTO_PREFIX):
            gid = _group_suffix(key, GROUP_MANIFESTO_PREFIX)
            if gid is not None and 1 <= gid <= total_groups:
                groups[gid - 1].manifesto = value or None
    return groups


@dataclass(frozen=True)
class Roster:
    """A consistent snapshot: groups plus the calendar they were read with."""

    groups: list[Group]
    participants: dict[str, Participant]
    phase_config: PhaseConfig

    def group(self, group_id: int) -> Group | None:
        return next((g for g in self.groups if g.id == group_id), None)

    def participant(self, participant_id: str) -> Participant | None:
        return self.participants.get(participant_id)

    def unassigned(self) -> list[Participant]:
        return [
            p
            for p in self.participants.values()
            if p.group_id is None or self.group(p.group_id) is None
        ]
