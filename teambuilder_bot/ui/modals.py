from __future__ import annotations

import logging

import discord

from ..adapters.base import StoreError
from ..core.service import TeamService

log = logging.getLogger("teambuilder.ui")


class ManifestoModal(discord.ui.Modal, title="Group manifesto"):
    def __init__(
        self,
        service: TeamService,
        actor_id: str,
        group_id: int,
        current: str | None = None,
    ) -> None:
        super().__init__()
        self.service = service
        self.actor_id = actor_id
        self.group_id = group_id
        self.manifesto_input = discord.ui.TextInput(
            label="Manifesto",
            style=discord.TextStyle.long,
            placeholder="What does your team stand for?",
            default=current or "",
            required=False,
            max_length=service.policy.max_manifesto_length,
        )
        self.add_item(self.manifesto_input)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        try:
            err = await self.service.set_manifesto(
                self.actor_id, self.group_id, self.manifesto_input.value
            )
        except StoreError:
            log.exception("Failed to save manifesto of group %s", self.group_id)
            await interaction.response.send_message(
                "Storage is unavailable, please try again later.", ephemeral=True
            )
            return
        if err:
            await interaction.response.send_message(err, ephemeral=True)
            return
        await interaction.response.send_message("Manifesto saved.", ephemeral=True)
