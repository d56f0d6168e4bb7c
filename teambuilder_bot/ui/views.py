from __future__ import annotations

import datetime

import discord

from ..adapters.base import StoreError
from ..core.models import Group, Role
from ..core.phase import PhaseConfig, gates, phase_of, timeline
from ..core.roster import Roster
from ..core.rules import GroupPolicy
from ..core.service import TeamService


def quota_bar(count: int, required: int) -> str:
    # one block per required slot, extra members shown as +n
    filled = min(count, required)
    bar = "▮" * filled + "▯" * (required - filled)
    if count > required:
        bar += f" +{count - required}"
    return bar


def member_lines(group: Group) -> str:
    if not group.members:
        return "_No members yet._"
    leader = group.leader
    lines = []
    for m in sorted(group.members, key=lambda p: (p.role.name, p.last_name.lower())):
        crown = " 👑" if leader is not None and m.id == leader.id else ""
        lines.append(f"• {m.display_name} ({m.role.value}){crown}")
    return "\n".join(lines)


def group_embed(group: Group, policy: GroupPolicy | None = None) -> discord.Embed:
    policy = policy or GroupPolicy()
    complete = group.is_founder_complete(policy.quotas)
    e = discord.Embed(
        title=f"#{group.id} {group.name}",
        description=group.manifesto or None,
        color=discord.Color.green() if complete else discord.Color.blurple(),
    )
    for role in Role:
        required = policy.quota(role)
        count = group.count(role)
        e.add_field(
            name=role.value,
            value=f"{count}/{required}\n{quota_bar(count, required)}",
            inline=True,
        )
    e.add_field(name=f"Members ({group.size})", value=member_lines(group), inline=False)
    missing = group.missing_roles(policy.quotas)
    if missing:
        wanted = ", ".join(f"{n} {role.value}" for role, n in missing.items())
        e.set_footer(text=f"Looking for: {wanted}")
    else:
        e.set_footer(text="Founder-complete")
    return e


def roster_embed(roster: Roster, policy: GroupPolicy | None = None) -> discord.Embed:
    policy = policy or GroupPolicy()
    e = discord.Embed(title="Groups", color=discord.Color.blurple())
    for group in roster.groups:
        counts = " · ".join(
            f"{role.value} {group.count(role)}/{policy.quota(role)}" for role in Role
        )
        status = "✅" if group.is_founder_complete(policy.quotas) else "⏳"
        leader = group.leader
        value = f"{counts}\nMembers: {group.size}"
        if leader is not None:
            value += f"\nLeader: {leader.display_name}"
        e.add_field(name=f"{status} #{group.id} {group.name}", value=value, inline=True)
    e.set_footer(text=f"Without a group: {len(roster.unassigned())}")
    return e


def phase_embed(now: datetime.datetime, config: PhaseConfig) -> discord.Embed:
    current = phase_of(now, config)
    state = gates(now, config)
    lines = [
        "Groups are locked." if state.is_group_locked else "Groups are open.",
        "Leader selection is open."
        if state.is_leader_selection_open
        else "Leader selection is closed.",
        "The challenge has started."
        if state.has_challenge_started
        else "The challenge has not started yet.",
    ]
    e = discord.Embed(
        title="Challenge calendar",
        description="\n".join(lines),
        color=discord.Color.blurple(),
    )
    for step in timeline(now, config):
        mark = "✅" if step.completed else ("▶️" if step.active else "⬜")
        e.add_field(
            name=f"{mark} {step.title}",
            value=step.deadline.strftime("%Y-%m-%d %H:%M UTC"),
            inline=False,
        )
    e.set_footer(text=f"Current phase: {current.value.replace('_', ' ')}")
    return e


class LeaderSelectView(discord.ui.View):
    def __init__(self, service: TeamService, actor_id: str, group: Group) -> None:
        super().__init__(timeout=120)
        self.service = service
        self.actor_id = actor_id
        self.group_id = group.id
        options = [
            discord.SelectOption(label=m.display_name[:100], value=m.id)
            for m in group.members[:25]
        ]
        self.select = discord.ui.Select(placeholder="Choose the team leader", options=options)
        self.select.callback = self.on_select
        self.add_item(self.select)

    async def on_select(self, interaction: discord.Interaction) -> None:
        member_id = self.select.values[0]
        try:
            err = await self.service.assign_leader(self.actor_id, self.group_id, member_id)
        except StoreError:
            await interaction.response.send_message(
                "Storage is unavailable, please try again later.", ephemeral=True
            )
            return
        if err:
            await interaction.response.send_message(err, ephemeral=True)
        else:
            await interaction.response.send_message("Team leader updated.", ephemeral=True)
