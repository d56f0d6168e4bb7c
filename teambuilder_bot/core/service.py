"""Group mutation surface: register, join, leave, lead, rename.

Every operation re-reads the full state from the store, checks the phase
gates and the admission rules against that snapshot, then applies a single
conditional write.  Expected denials are returned as a message string; store
failures propagate as :class:`~teambuilder_bot.adapters.base.StoreError`.
"""

from __future__ import annotations

import asyncio
import contextlib
import datetime
import logging
from collections.abc import AsyncIterator, Callable

from ..adapters.base import ConflictError, RecordStore
from .models import Group, Participant, Role, legacy_key_for
from .phase import Phase, PhaseConfig, PhaseGates, as_utc, gates, phase_of, utc_now
from .roster import Roster, build_groups, group_manifesto_key, group_name_key
from .rules import (
    GroupPolicy,
    check_assign_leader,
    check_join,
    check_leave,
    check_manifesto,
    check_rename,
    group_of,
)

log = logging.getLogger("teambuilder.service")

RETRY_MESSAGE = "Your membership changed in the meantime; please try again."


class TeamService:
    """Coordinates the phase clock, the rule engine and a record store."""

    def __init__(
        self,
        store: RecordStore,
        policy: GroupPolicy | None = None,
        phase_config: PhaseConfig | None = None,
        clock: Callable[[], datetime.datetime] = utc_now,
    ) -> None:
        self.store = store
        self.policy = policy or GroupPolicy()
        # when unset the deadlines are read from the store's config rows
        self.phase_config = phase_config
        self.clock = clock
        self._group_locks: dict[int, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def _now(self, now: datetime.datetime | None) -> datetime.datetime:
        return as_utc(now) if now is not None else self.clock()

    def _lock_for(self, group_id: int | None) -> asyncio.Lock | None:
        if group_id is None or not 1 <= group_id <= self.policy.total_groups:
            return None
        return self._group_locks.setdefault(group_id, asyncio.Lock())

    @contextlib.asynccontextmanager
    async def _locked(self, *group_ids: int | None) -> AsyncIterator[None]:
        """Hold the locks of every existing group in ``group_ids``.

        Locks are taken in ascending group order.
        """
        async with contextlib.AsyncExitStack() as stack:
            for group_id in sorted({g for g in group_ids if g is not None}):
                lock = self._lock_for(group_id)
                if lock is not None:
                    await stack.enter_async_context(lock)
            yield

    async def load_phase_config(self) -> PhaseConfig:
        if self.phase_config is not None:
            return self.phase_config
        return PhaseConfig.from_rows(await self.store.fetch_config())

    async def snapshot(self) -> Roster:
        """Re-read every participant and config row and rebuild the groups."""
        participants = await self.store.fetch_participants()
        config = await self.store.fetch_config()
        phase_config = self.phase_config or PhaseConfig.from_rows(config)
        return Roster(
            groups=build_groups(participants, config, self.policy.total_groups),
            participants={p.id: p for p in participants},
            phase_config=phase_config,
        )

    async def status(
        self, now: datetime.datetime | None = None
    ) -> tuple[Phase, PhaseGates]:
        now = self._now(now)
        config = await self.load_phase_config()
        return phase_of(now, config), gates(now, config)

    async def find_by_discord(self, discord_id: int) -> Participant | None:
        participants = await self.store.fetch_participants()
        return next((p for p in participants if p.discord_id == discord_id), None)

    async def group_of(self, participant_id: str) -> Group | None:
        roster = await self.snapshot()
        return group_of(roster.groups, participant_id)

    async def joinable_groups(
        self, participant_id: str, now: datetime.datetime | None = None
    ) -> list[Group]:
        """Return the groups ``participant_id`` could join right now."""
        now = self._now(now)
        roster = await self.snapshot()
        participant = roster.participant(participant_id)
        if participant is None:
            return []
        phase = gates(now, roster.phase_config)
        return [
            g
            for g in roster.groups
            if check_join(roster.groups, participant, g.id, phase, self.policy)
        ]

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    async def register(
        self,
        discord_id: int,
        first_name: str,
        last_name: str,
        role: Role,
        now: datetime.datetime | None = None,
    ) -> tuple[Participant | None, str | None]:
        """Return the participant for ``discord_id``, creating it if needed.

        A record created before Discord accounts were linked is claimed by
        matching its name key.  A name already linked to another account is
        refused rather than merged.
        """
        first_name, last_name = first_name.strip(), last_name.strip()
        if not first_name or not last_name:
            return None, "First and last name are required."

        now = self._now(now)
        participants = await self.store.fetch_participants()
        existing = next((p for p in participants if p.discord_id == discord_id), None)
        if existing is None:
            key = legacy_key_for(first_name, last_name)
            namesake = next((p for p in participants if p.legacy_key == key), None)
            if namesake is not None and namesake.discord_id is not None:
                return None, (
                    f"A participant named {first_name} {last_name} is already "
                    "registered with another account."
                )
            if namesake is not None:
                try:
                    namesake = await self.store.update_participant(
                        namesake.id,
                        {"discord_id": discord_id},
                        expected_group_id=namesake.group_id,
                    )
                except ConflictError:
                    log.warning("Claim of %s by %s lost a race", namesake.id, discord_id)
                    return None, RETRY_MESSAGE
                log.info("Linked %s to Discord user %s", namesake.id, discord_id)
                existing = namesake

        if existing is None:
            participant = Participant(
                first_name=first_name,
                last_name=last_name,
                role=role,
                discord_id=discord_id,
            )
            participant = await self.store.insert_participant(participant)
            log.info("Registered %s as %s", participant.id, role.value)
            return participant, None

        if existing.role == role:
            return existing, None
        if existing.group_id is not None:
            return existing, "Leave your group before changing your role."
        if gates(now, await self.load_phase_config()).is_group_locked:
            return existing, "Roles can no longer change; groups are locked."
        try:
            updated = await self.store.update_participant(
                existing.id, {"role": role}, expected_group_id=None
            )
        except ConflictError:
            log.warning("Role change of %s lost a race", existing.id)
            return existing, RETRY_MESSAGE
        log.info("Changed role of %s to %s", existing.id, role.value)
        return updated, None

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------
    async def join(
        self,
        participant_id: str,
        group_id: int,
        now: datetime.datetime | None = None,
    ) -> str | None:
        now = self._now(now)
        current = await self.store.get_participant(participant_id)
        if current is None:
            return "Participant not found."
        # admissions into one group are decided one at a time; the group being
        # left is held as well so its leader cannot change meanwhile
        async with self._locked(current.group_id, group_id):
            roster = await self.snapshot()
            participant = roster.participant(participant_id)
            if participant is None:
                return "Participant not found."
            if participant.group_id != current.group_id:
                log.warning("%s moved while joining %s", participant_id, group_id)
                return RETRY_MESSAGE
            verdict = check_join(
                roster.groups,
                participant,
                group_id,
                gates(now, roster.phase_config),
                self.policy,
            )
            if not verdict:
                log.debug("Join of %s to %s denied: %s", participant_id, group_id, verdict.reason)
                return verdict.reason
            try:
                await self.store.update_participant(
                    participant_id,
                    {"group_id": group_id, "is_leader": False},
                    expected_group_id=participant.group_id,
                )
            except ConflictError:
                log.warning("Join of %s to %s lost a race", participant_id, group_id)
                return RETRY_MESSAGE
        log.info("%s joined group %s", participant_id, group_id)
        return None

    async def leave(
        self, participant_id: str, now: datetime.datetime | None = None
    ) -> str | None:
        now = self._now(now)
        current = await self.store.get_participant(participant_id)
        if current is None:
            return "Participant not found."
        async with self._locked(current.group_id):
            participant = await self.store.get_participant(participant_id)
            if participant is None:
                return "Participant not found."
            if participant.group_id != current.group_id:
                log.warning("%s moved while leaving", participant_id)
                return RETRY_MESSAGE
            verdict = check_leave(
                participant, gates(now, await self.load_phase_config()), self.policy
            )
            if not verdict:
                log.debug("Leave of %s denied: %s", participant_id, verdict.reason)
                return verdict.reason
            try:
                await self.store.update_participant(
                    participant_id,
                    {"group_id": None, "is_leader": False},
                    expected_group_id=participant.group_id,
                )
            except ConflictError:
                log.warning("Leave of %s lost a race", participant_id)
                return RETRY_MESSAGE
        log.info("%s left group %s", participant_id, participant.group_id)
        return None

    async def assign_leader(
        self,
        actor_id: str,
        group_id: int,
        member_id: str,
        now: datetime.datetime | None = None,
    ) -> str | None:
        now = self._now(now)
        async with self._locked(group_id):
            roster = await self.snapshot()
            verdict = check_assign_leader(
                roster.groups,
                actor_id,
                group_id,
                member_id,
                gates(now, roster.phase_config),
                self.policy,
            )
            if not verdict:
                log.debug("Leader change in %s denied: %s", group_id, verdict.reason)
                return verdict.reason
            try:
                await self.store.assign_leader(group_id, member_id)
            except ConflictError:
                log.warning("Leader change in %s lost a race", group_id)
                return RETRY_MESSAGE
        log.info("%s made %s leader of group %s", actor_id, member_id, group_id)
        return None

    # ------------------------------------------------------------------
    # Group metadata
    # ------------------------------------------------------------------
    async def rename_group(
        self,
        actor_id: str,
        group_id: int,
        name: str,
        now: datetime.datetime | None = None,
    ) -> str | None:
        now = self._now(now)
        roster = await self.snapshot()
        verdict = check_rename(
            roster.groups,
            actor_id,
            group_id,
            name,
            gates(now, roster.phase_config),
            self.policy,
        )
        if not verdict:
            return verdict.reason
        await self.store.upsert_config(group_name_key(group_id), name.strip())
        log.info("%s renamed group %s to %r", actor_id, group_id, name.strip())
        return None

    async def set_manifesto(
        self,
        actor_id: str,
        group_id: int,
        text: str,
        now: datetime.datetime | None = None,
    ) -> str | None:
        now = self._now(now)
        roster = await self.snapshot()
        verdict = check_manifesto(
            roster.groups,
            actor_id,
            group_id,
            text,
            gates(now, roster.phase_config),
            self.policy,
        )
        if not verdict:
            return verdict.reason
        await self.store.upsert_config(group_manifesto_key(group_id), text.strip())
        log.info("%s updated the manifesto of group %s", actor_id, group_id)
        return None
