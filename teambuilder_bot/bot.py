"""Discord bot implementation for the team-formation workflow."""

from __future__ import annotations

from typing import Any

import discord
from discord.ext import commands, tasks

from .adapters.base import StoreError
from .core.phase import Phase
from .core.service import TeamService
from .logging_config import setup_logging

ANNOUNCEMENTS = {
    Phase.CONSOLIDATION: (
        "📣 Phase 2 has started: consolidate your teams. "
        "Groups lock on {deadline}."
    ),
    Phase.LEADER_SELECTION: (
        "🔒 Groups are now locked. Choose your team leader with `/lead` "
        "before {deadline}."
    ),
    Phase.AWAITING_CHALLENGE: "👑 Team leader selection is closed.",
    Phase.CHALLENGE: "🚀 The challenge has started. Good luck to every team!",
}


class TeamBuilderBot(commands.Bot):
    """Small ``discord.py`` based bot used for forming teams."""

    background_task: Any

    def __init__(self, **kwargs: Any) -> None:  # pragma: no cover - trivial
        """Initialize the bot with the minimal intents required."""
        intents = kwargs.pop("intents", None) or discord.Intents.default()
        # Slash commands only; message content intent not needed.
        intents.message_content = False
        super().__init__(
            command_prefix=kwargs.pop("command_prefix", "!"),
            intents=intents,
        )
        self.log = setup_logging()
        self.background_task = None
        self.last_phase: Phase | None = None

    async def setup_hook(self) -> None:
        """Register background tasks and sync slash commands."""
        self.background_task = tasks.loop(seconds=60.0, reconnect=True)(
            _announce_phase_changes
        )
        self.background_task.start(self)

        tree = getattr(self, "tree", None)
        if tree is not None:  # pragma: no cover - exercised in integration
            await tree.sync()

        from .commands.utils import ensure_channels

        for guild in self.guilds:
            try:  # pragma: no cover - best effort during startup
                await ensure_channels(guild)
            except discord.DiscordException:
                self.log.exception(
                    "Failed to ensure announcement channel for guild %s",
                    getattr(guild, "id", "?"),
                )

        await super().setup_hook()

    async def on_ready(self) -> None:  # pragma: no cover - requires discord
        """Log a short confirmation once the bot connected successfully."""
        await self.change_presence(activity=discord.Game(name="Team formation"))
        self.log.info(
            "Logged in as %s (%s)",
            self.user,
            self.user.id if self.user else "?",
        )


class _ServiceHolder:
    """Simple indirection so the service can be attached after creation."""

    service: TeamService | None = None


SERVICE_HOLDER = _ServiceHolder()


def attach_service(service: TeamService) -> None:
    """Attach a service so background tasks can access it."""
    SERVICE_HOLDER.service = service


async def _announce_phase_changes(bot: TeamBuilderBot) -> None:
    """Post a message in every guild when the calendar enters a new phase."""
    service = SERVICE_HOLDER.service
    if not service:
        return

    try:
        phase, _ = await service.status()
        config = await service.load_phase_config()
    except StoreError:
        # the next tick tries again
        bot.log.exception("Could not read the challenge calendar")
        return
    previous, bot.last_phase = bot.last_phase, phase
    # the first tick only records where we are
    if previous is None or previous == phase:
        return

    template = ANNOUNCEMENTS.get(phase)
    if template is None:
        return
    deadline = (
        config.consolidation_deadline
        if phase is Phase.CONSOLIDATION
        else config.leader_lock_date
    )
    text = template.format(deadline=deadline.strftime("%Y-%m-%d %H:%M UTC"))

    from .commands.utils import ensure_channels

    for guild in bot.guilds:
        try:
            channel = await ensure_channels(guild)
            await channel.send(text)
        except discord.DiscordException:
            bot.log.exception(
                "Failed to announce %s in guild %s",
                phase.value,
                getattr(guild, "id", "?"),
            )
    bot.log.info("Announced phase %s", phase.value)


__all__ = [
    "TeamBuilderBot",
    "attach_service",
    "_announce_phase_changes",
]
