"""Base interface for participant/config record stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..core.models import Participant


class StoreError(Exception):
    """The store could not be reached or refused a write."""


class ConflictError(StoreError):
    """A conditional write found the record in an unexpected state."""


class RecordStore(ABC):
    """Abstract store for participant records and configuration rows."""

    @abstractmethod
    async def fetch_participants(self) -> list[Participant]:
        """Return every participant record."""

    @abstractmethod
    async def get_participant(self, participant_id: str) -> Participant | None:
        """Return the participant with ``participant_id`` if it exists."""

    @abstractmethod
    async def insert_participant(self, participant: Participant) -> Participant:
        """Persist a new ``participant``."""

    @abstractmethod
    async def update_participant(
        self,
        participant_id: str,
        changes: dict[str, Any],
        *,
        expected_group_id: int | None,
    ) -> Participant:
        """Apply ``changes`` if the record still points at ``expected_group_id``.

        Raises :class:`ConflictError` when the record is missing or its group
        pointer changed since it was read.
        """

    @abstractmethod
    async def assign_leader(self, group_id: int, participant_id: str) -> None:
        """Set ``is_leader = (id == participant_id)`` for every member of a group.

        Implementations must apply this as a single write, and raise
        :class:`ConflictError` without touching the group when
        ``participant_id`` is not a member of it at write time.
        """

    @abstractmethod
    async def fetch_config(self) -> dict[str, str]:
        """Return all configuration rows as a mapping."""

    @abstractmethod
    async def upsert_config(self, key: str, value: str) -> None:
        """Create or replace the configuration row ``key``."""
