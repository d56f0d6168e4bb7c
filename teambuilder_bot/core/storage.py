"""Simple JSON-backed record store."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any

from ..adapters.base import ConflictError, RecordStore, StoreError
from .models import Participant

log = logging.getLogger("teambuilder.storage")


class JSONStorage(RecordStore):
    """Persist participants and configuration rows to a single JSON file.

    Data is written on every mutation.  Each read-modify-write runs under an
    :class:`asyncio.Lock` so that concurrent coroutines in one process never
    interleave inside a write.
    """

    def __init__(self, path: Path | str) -> None:
        """Initialise storage using JSON file at ``path``."""
        self.path = Path(path)
        self._participants: dict[str, Participant] = {}
        self._config: dict[str, str] = {}
        self._lock = asyncio.Lock()
        if self.path.exists():
            self._load()
        else:
            self._save()

    # ------------------------------------------------------------------
    # Internal helpers
    def _load(self) -> None:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreError(f"Cannot read {self.path}: {exc}") from exc
        self._participants = {
            item["id"]: Participant(**item) for item in data.get("participants", [])
        }
        self._config = {str(k): str(v) for k, v in data.get("config", {}).items()}

    def _save(self) -> None:
        data = {
            "participants": [
                p.model_dump(mode="json") for p in self._participants.values()
            ],
            "config": self._config,
        }
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StoreError(f"Cannot write {self.path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Participant operations
    async def fetch_participants(self) -> list[Participant]:
        return [p.model_copy() for p in self._participants.values()]

    async def get_participant(self, participant_id: str) -> Participant | None:
        participant = self._participants.get(participant_id)
        return participant.model_copy() if participant else None

    async def insert_participant(self, participant: Participant) -> Participant:
        async with self._lock:
            if participant.id in self._participants:
                raise ConflictError(f"Participant {participant.id} already exists.")
            self._participants[participant.id] = participant.model_copy()
            self._save()
        return participant

    async def update_participant(
        self,
        participant_id: str,
        changes: dict[str, Any],
        *,
        expected_group_id: int | None,
    ) -> Participant:
        async with self._lock:
            current = self._participants.get(participant_id)
            if current is None:
                raise ConflictError(f"Participant {participant_id} not found.")
            if current.group_id != expected_group_id:
                raise ConflictError(
                    f"Participant {participant_id} moved from group "
                    f"{expected_group_id} to {current.group_id}."
                )
            updated = Participant(**{**current.model_dump(), **changes})
            self._participants[participant_id] = updated
            self._save()
        return updated.model_copy()

    async def assign_leader(self, group_id: int, participant_id: str) -> None:
        async with self._lock:
            target = self._participants.get(participant_id)
            if target is None or target.group_id != group_id:
                raise ConflictError(
                    f"Participant {participant_id} is no longer in group {group_id}."
                )
            for pid, participant in list(self._participants.items()):
                if participant.group_id != group_id:
                    continue
                is_leader = pid == participant_id
                if participant.is_leader != is_leader:
                    self._participants[pid] = participant.model_copy(
                        update={"is_leader": is_leader}
                    )
            self._save()

    # ------------------------------------------------------------------
    # Configuration operations
    async def fetch_config(self) -> dict[str, str]:
        return dict(self._config)

    async def upsert_config(self, key: str, value: str) -> None:
        async with self._lock:
            self._config[key] = value
            self._save()
