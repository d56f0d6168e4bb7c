"""Record store backed by a Supabase (PostgREST) database.

The adapter uses :mod:`httpx` to talk to the REST endpoint directly, which
keeps the implementation dependency light while remaining fully asynchronous.
Participants live in ``project_members`` and configuration rows in
``challenge_config``.  Leader assignment goes through the ``assign_leader``
database function so that it is applied as a single statement.  It only
touches the group while the designated member still belongs to it and returns
the number of members it flagged::

    create function assign_leader(p_group_id int, p_leader_id text)
    returns int language sql as $$
      with updated as (
        update project_members set is_leader = (id = p_leader_id)
        where group_id = p_group_id
          and exists (select 1 from project_members
                      where id = p_leader_id and group_id = p_group_id)
        returning is_leader
      )
      select count(*)::int from updated where is_leader;
    $$;
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.models import Participant
from .base import ConflictError, RecordStore, StoreError

log = logging.getLogger("teambuilder.supabase")

MEMBERS_TABLE = "project_members"
CONFIG_TABLE = "challenge_config"

# columns the bot is allowed to write
_COLUMNS = {
    "id": "id",
    "legacy_key": "legacy_key",
    "first_name": "first_name",
    "last_name": "last_name",
    "role": "class_type",
    "discord_id": "discord_id",
    "group_id": "group_id",
    "is_leader": "is_leader",
}


def participant_from_row(row: dict[str, Any]) -> Participant:
    """Build a :class:`Participant` from a ``project_members`` row."""
    return Participant(
        id=row["id"],
        legacy_key=row.get("legacy_key") or "",
        first_name=row["first_name"],
        last_name=row["last_name"],
        role=row["class_type"],
        discord_id=row.get("discord_id"),
        group_id=row.get("group_id"),
        is_leader=bool(row.get("is_leader") or False),
    )


def row_from_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """Translate model field names to column names.

    ``None`` group pointers are written as ``0``, which is what existing rows
    use for "no group".
    """
    row: dict[str, Any] = {}
    for name, value in changes.items():
        if name not in _COLUMNS:
            raise ValueError(f"Unknown participant field: {name}")
        if name == "group_id" and value is None:
            value = 0
        if name == "role":
            value = getattr(value, "value", value)
        row[_COLUMNS[name]] = value
    return row


class SupabaseStore(RecordStore):
    """Store that sends requests directly to the PostgREST API."""

    def __init__(
        self, url: str, key: str, client: httpx.AsyncClient | None = None
    ) -> None:
        """Store endpoint ``url``, API ``key`` and optional HTTP ``client``."""
        self.base_url = url.rstrip("/") + "/rest/v1"
        self.key = key
        self.client = client or httpx.AsyncClient(timeout=10.0)

    # ------------------------------------------------------------------
    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
        }
        headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        url = f"{self.base_url}/{path}"
        try:
            response = await self.client.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers or self._headers(),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 409:
                raise ConflictError(exc.response.text) from exc
            raise StoreError(
                f"{method} {path} failed with {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise StoreError(f"{method} {path} failed: {exc}") from exc
        if not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    async def fetch_participants(self) -> list[Participant]:
        rows = await self._request("GET", MEMBERS_TABLE, params={"select": "*"})
        return [participant_from_row(row) for row in rows or []]

    async def get_participant(self, participant_id: str) -> Participant | None:
        rows = await self._request(
            "GET",
            MEMBERS_TABLE,
            params={"select": "*", "id": f"eq.{participant_id}"},
        )
        return participant_from_row(rows[0]) if rows else None

    async def insert_participant(self, participant: Participant) -> Participant:
        row = row_from_changes(participant.model_dump())
        rows = await self._request(
            "POST",
            MEMBERS_TABLE,
            json=[row],
            headers=self._headers(Prefer="return=representation"),
        )
        return participant_from_row(rows[0]) if rows else participant

    async def update_participant(
        self,
        participant_id: str,
        changes: dict[str, Any],
        *,
        expected_group_id: int | None,
    ) -> Participant:
        params = {"id": f"eq.{participant_id}", "select": "*"}
        if expected_group_id is None:
            params["or"] = "(group_id.is.null,group_id.eq.0)"
        else:
            params["group_id"] = f"eq.{expected_group_id}"
        rows = await self._request(
            "PATCH",
            MEMBERS_TABLE,
            params=params,
            json=row_from_changes(changes),
            headers=self._headers(Prefer="return=representation"),
        )
        if not rows:
            raise ConflictError(
                f"Participant {participant_id} is no longer in group {expected_group_id}."
            )
        return participant_from_row(rows[0])

    async def assign_leader(self, group_id: int, participant_id: str) -> None:
        flagged = await self._request(
            "POST",
            "rpc/assign_leader",
            json={"p_group_id": group_id, "p_leader_id": participant_id},
        )
        if not flagged:
            raise ConflictError(
                f"Participant {participant_id} is no longer in group {group_id}."
            )

    async def fetch_config(self) -> dict[str, str]:
        rows = await self._request(
            "GET", CONFIG_TABLE, params={"select": "key,value"}
        )
        return {row["key"]: row["value"] for row in rows or [] if row.get("key")}

    async def upsert_config(self, key: str, value: str) -> None:
        await self._request(
            "POST",
            CONFIG_TABLE,
            params={"on_conflict": "key"},
            json=[{"key": key, "value": value}],
            headers=self._headers(Prefer="resolution=merge-duplicates"),
        )

    async def close(self) -> None:
        """Close the underlying :class:`httpx.AsyncClient`."""
        await self.client.aclose()
