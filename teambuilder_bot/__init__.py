"""Core package for the team-formation bot.

This module exposes the domain models, the rule engine and the storage layer
so that consumers of the package can simply import them from
``teambuilder_bot``.  The Discord front-end lives in :mod:`teambuilder_bot.bot`
and is only imported when the bot is started.
"""

from .core.models import QUOTAS, TOTAL_GROUPS, Group, Participant, Role, Verdict
from .core.phase import Phase, PhaseConfig, PhaseGates, gates, phase_of
from .core.rules import GroupPolicy, can_join
from .core.service import TeamService
from .core.storage import JSONStorage

__all__ = [
    "QUOTAS",
    "TOTAL_GROUPS",
    "Group",
    "GroupPolicy",
    "JSONStorage",
    "Participant",
    "Phase",
    "PhaseConfig",
    "PhaseGates",
    "Role",
    "TeamService",
    "Verdict",
    "can_join",
    "gates",
    "phase_of",
]
