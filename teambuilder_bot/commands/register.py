"""Registration of slash commands for the bot."""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import discord
from discord.ext import commands

from ..adapters.base import StoreError
from ..core.models import Participant, Role
from ..core.service import TeamService
from ..ui.modals import ManifestoModal
from ..ui.views import LeaderSelectView, group_embed, phase_embed, roster_embed

log = logging.getLogger("teambuilder.commands")

STORE_DOWN = "Storage is unavailable, please try again later."
NOT_REGISTERED = "You are not registered yet. Use `/register` first."


def guarded(
    func: Callable[..., Awaitable[None]],
) -> Callable[..., Awaitable[None]]:
    """Reply with a generic message when the store fails."""

    @functools.wraps(func)
    async def wrapper(interaction: discord.Interaction, *args: Any, **kwargs: Any) -> None:
        try:
            await func(interaction, *args, **kwargs)
        except StoreError:
            log.exception("Store failure while handling %s", func.__name__)
            await interaction.response.send_message(STORE_DOWN, ephemeral=True)

    return wrapper


def register_commands(bot: commands.Bot, service: TeamService) -> None:
    """Register bot commands with optional compatibility shims."""
    tree = bot.tree
    choices = getattr(
        discord.app_commands, "choices", lambda **_kwargs: (lambda func: func)
    )

    async def current_participant(
        interaction: discord.Interaction,
    ) -> Participant | None:
        participant = await service.find_by_discord(interaction.user.id)
        if participant is None:
            await interaction.response.send_message(NOT_REGISTERED, ephemeral=True)
        return participant

    async def reply(interaction: discord.Interaction, err: str | None, ok: str) -> None:
        await interaction.response.send_message(err or ok, ephemeral=True)

    @tree.command(name="register", description="Register for team formation")
    @discord.app_commands.describe(
        first_name="Your first name",
        last_name="Your last name",
        role="Your track",
    )
    @choices(
        role=[discord.app_commands.Choice(name=r.value, value=r.name) for r in Role]
    )
    @guarded
    async def register(
        interaction: discord.Interaction,
        first_name: str,
        last_name: str,
        role: discord.app_commands.Choice[str],
    ) -> None:
        participant, err = await service.register(
            interaction.user.id, first_name, last_name, Role.parse(role.value)
        )
        if err or participant is None:
            await interaction.response.send_message(err or STORE_DOWN, ephemeral=True)
            return
        await interaction.response.send_message(
            f"Registered as {participant.display_name} ({participant.role.value}).",
            ephemeral=True,
        )

    @tree.command(name="groups", description="Show every group and its quotas")
    @guarded
    async def groups(interaction: discord.Interaction) -> None:
        roster = await service.snapshot()
        await interaction.response.send_message(
            embed=roster_embed(roster, service.policy), ephemeral=True
        )

    @tree.command(name="group", description="Show one group (yours by default)")
    @discord.app_commands.describe(group_id="Group number")
    @guarded
    async def group(
        interaction: discord.Interaction, group_id: int | None = None
    ) -> None:
        roster = await service.snapshot()
        if group_id is None:
            me = next(
                (
                    p
                    for p in roster.participants.values()
                    if p.discord_id == interaction.user.id
                ),
                None,
            )
            group_id = me.group_id if me else None
        target = roster.group(group_id) if group_id is not None else None
        if target is None:
            await interaction.response.send_message("Group not found.", ephemeral=True)
            return
        await interaction.response.send_message(
            embed=group_embed(target, service.policy), ephemeral=True
        )

    @tree.command(name="join", description="Join a group")
    @discord.app_commands.describe(group_id="Group number")
    @guarded
    async def join(interaction: discord.Interaction, group_id: int) -> None:
        participant = await current_participant(interaction)
        if participant is None:
            return
        err = await service.join(participant.id, group_id)
        await reply(interaction, err, f"You joined group {group_id}.")

    if hasattr(join, "autocomplete"):
        @join.autocomplete("group_id")
        async def join_group_id_autocomplete(
            interaction: discord.Interaction, current: str
        ) -> list[discord.app_commands.Choice[int]]:
            participant = await service.find_by_discord(interaction.user.id)
            if participant is None:
                return []
            return [
                discord.app_commands.Choice(name=f"#{g.id} {g.name}", value=g.id)
                for g in await service.joinable_groups(participant.id)
                if current in str(g.id) or current.lower() in g.name.lower()
            ][:25]

    @tree.command(name="leave", description="Leave your group")
    @guarded
    async def leave(interaction: discord.Interaction) -> None:
        participant = await current_participant(interaction)
        if participant is None:
            return
        err = await service.leave(participant.id)
        await reply(interaction, err, "You left your group.")

    @tree.command(name="lead", description="Choose your group's team leader")
    @guarded
    async def lead(interaction: discord.Interaction) -> None:
        participant = await current_participant(interaction)
        if participant is None:
            return
        mine = await service.group_of(participant.id)
        if mine is None:
            await interaction.response.send_message("You are not in a group.", ephemeral=True)
            return
        await interaction.response.send_message(
            "Pick the new team leader:",
            view=LeaderSelectView(service, participant.id, mine),
            ephemeral=True,
        )

    @tree.command(name="rename", description="Rename your group")
    @discord.app_commands.describe(name="New group name")
    @guarded
    async def rename(interaction: discord.Interaction, name: str) -> None:
        participant = await current_participant(interaction)
        if participant is None:
            return
        if participant.group_id is None:
            await interaction.response.send_message("You are not in a group.", ephemeral=True)
            return
        err = await service.rename_group(participant.id, participant.group_id, name)
        await reply(interaction, err, f"Your group is now called `{name.strip()}`.")

    @tree.command(name="manifesto", description="Write your group's manifesto")
    @guarded
    async def manifesto(interaction: discord.Interaction) -> None:
        participant = await current_participant(interaction)
        if participant is None:
            return
        mine = await service.group_of(participant.id)
        if mine is None:
            await interaction.response.send_message("You are not in a group.", ephemeral=True)
            return
        await interaction.response.send_modal(
            ManifestoModal(service, participant.id, mine.id, mine.manifesto)
        )

    @tree.command(name="phase", description="Show the challenge calendar")
    @guarded
    async def phase(interaction: discord.Interaction) -> None:
        config = await service.load_phase_config()
        await interaction.response.send_message(
            embed=phase_embed(service.clock(), config), ephemeral=True
        )
