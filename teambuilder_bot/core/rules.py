"""Admission rules and mutation gates.

All checks are pure functions over an in-memory snapshot of the groups.  They
never raise for an expected denial; they return a :class:`Verdict` carrying a
human-readable reason instead.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from .models import QUOTAS, TOTAL_GROUPS, Group, Participant, Role, Verdict
from .phase import PhaseGates


@dataclass(frozen=True)
class GroupPolicy:
    """Tunable behaviour of the rule layer.

    ``soft_capacity_ceiling`` set to ``None`` disables the total-size ceiling
    altogether.  ``enforce_leave_lock`` decides whether leaving a group is
    still possible once groups are locked.
    """

    quotas: dict[Role, int] = field(default_factory=lambda: dict(QUOTAS))
    total_groups: int = TOTAL_GROUPS
    enforce_leave_lock: bool = True
    soft_capacity_ceiling: int | None = 9
    rename_requires_lock: bool = True
    leader_must_be_member: bool = True
    max_name_length: int = 30
    max_manifesto_length: int = 1000

    def quota(self, role: Role) -> int:
        return self.quotas.get(role, 0)


def find_group(groups: Sequence[Group], group_id: int) -> Group | None:
    return next((g for g in groups if g.id == group_id), None)


def group_of(groups: Sequence[Group], participant_id: str) -> Group | None:
    return next((g for g in groups if g.has_member(participant_id)), None)


def can_join(
    groups: Sequence[Group],
    group_id: int,
    role: Role,
    policy: GroupPolicy | None = None,
) -> Verdict:
    """Decide whether a participant with ``role`` may join ``group_id``.

    Rules are applied in order and the first decisive one wins:

    1. the group must exist;
    2. a member filling an unmet quota slot is always admitted;
    3. past its quota, the role may only be added once every group holds at
       least the quota for that role;
    4. with a soft capacity ceiling, a group at the ceiling only grows once
       every group has reached it.
    """
    policy = policy or GroupPolicy()
    group = find_group(groups, group_id)
    if group is None:
        return Verdict.deny("Group not found.")

    required = policy.quota(role)
    if group.count(role) < required:
        return Verdict.allow()

    if not all(g.count(role) >= required for g in groups):
        return Verdict.deny(
            f"Cannot join: every group needs {required} {role.value} "
            f"member(s) before any group goes over the quota."
        )

    ceiling = policy.soft_capacity_ceiling
    if ceiling is not None and group.size >= ceiling:
        if not all(g.size >= ceiling for g in groups):
            return Verdict.deny(
                f"This group already has {ceiling} members. "
                f"Please fill the other groups first."
            )

    return Verdict.allow()


def check_join(
    groups: Sequence[Group],
    participant: Participant,
    group_id: int,
    phase: PhaseGates,
    policy: GroupPolicy | None = None,
) -> Verdict:
    if phase.is_group_locked:
        return Verdict.deny("The consolidation phase is over; groups can no longer change.")
    if participant.group_id == group_id and find_group(groups, group_id) is not None:
        return Verdict.deny("You are already a member of this group.")
    return can_join(groups, group_id, participant.role, policy)


def check_leave(
    participant: Participant,
    phase: PhaseGates,
    policy: GroupPolicy | None = None,
) -> Verdict:
    policy = policy or GroupPolicy()
    if policy.enforce_leave_lock and phase.is_group_locked:
        return Verdict.deny("The consolidation phase is over; groups can no longer change.")
    if participant.group_id is None:
        return Verdict.deny("You are not in a group.")
    return Verdict.allow()


def check_assign_leader(
    groups: Sequence[Group],
    actor_id: str,
    group_id: int,
    member_id: str,
    phase: PhaseGates,
    policy: GroupPolicy | None = None,
) -> Verdict:
    policy = policy or GroupPolicy()
    if not phase.is_leader_selection_open:
        return Verdict.deny("The deadline for choosing a team leader has passed.")
    group = find_group(groups, group_id)
    if group is None:
        return Verdict.deny("Group not found.")
    if not group.has_member(actor_id):
        return Verdict.deny("Only members of this group can choose its leader.")
    if policy.leader_must_be_member and not group.has_member(member_id):
        return Verdict.deny("The new leader must be a member of this group.")
    return Verdict.allow()


def _check_member_edit(
    groups: Sequence[Group],
    actor_id: str,
    group_id: int,
    phase: PhaseGates,
    policy: GroupPolicy,
) -> Verdict:
    group = find_group(groups, group_id)
    if group is None:
        return Verdict.deny("Group not found.")
    if not group.has_member(actor_id):
        return Verdict.deny("Only members of this group can edit it.")
    if policy.rename_requires_lock and not phase.is_group_locked:
        return Verdict.deny("Groups can be edited once they are locked.")
    return Verdict.allow()


def check_rename(
    groups: Sequence[Group],
    actor_id: str,
    group_id: int,
    name: str,
    phase: PhaseGates,
    policy: GroupPolicy | None = None,
) -> Verdict:
    policy = policy or GroupPolicy()
    verdict = _check_member_edit(groups, actor_id, group_id, phase, policy)
    if not verdict:
        return verdict
    name = name.strip()
    if not name:
        return Verdict.deny("The group name cannot be empty.")
    if len(name) > policy.max_name_length:
        return Verdict.deny(
            f"The group name is limited to {policy.max_name_length} characters."
        )
    return Verdict.allow()


def check_manifesto(
    groups: Sequence[Group],
    actor_id: str,
    group_id: int,
    text: str,
    phase: PhaseGates,
    policy: GroupPolicy | None = None,
) -> Verdict:
    policy = policy or GroupPolicy()
    verdict = _check_member_edit(groups, actor_id, group_id, phase, policy)
    if not verdict:
        return verdict
    if len(text.strip()) > policy.max_manifesto_length:
        return Verdict.deny(
            f"The manifesto is limited to {policy.max_manifesto_length} characters."
        )
    return Verdict.allow()
