import os
from dataclasses import dataclass

from .core.rules import GroupPolicy

_FALSE = {"0", "false", "no", "off"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw not in _FALSE


def _env_ceiling(name: str, default: int | None) -> int | None:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    if raw in ("0", "none", "off"):
        return None
    return int(raw)


@dataclass(frozen=True)
class Settings:
    token: str
    data_path: str = "teambuilder_data.json"
    supabase_url: str = ""
    supabase_key: str = ""
    enforce_leave_lock: bool = True
    soft_capacity_ceiling: int | None = 9
    rename_requires_lock: bool = True

    @property
    def use_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    def policy(self) -> GroupPolicy:
        return GroupPolicy(
            enforce_leave_lock=self.enforce_leave_lock,
            soft_capacity_ceiling=self.soft_capacity_ceiling,
            rename_requires_lock=self.rename_requires_lock,
        )


def load_settings() -> Settings:
    token = os.getenv("DISCORD_BOT_TOKEN", "").strip()
    return Settings(
        token=token or "",
        data_path=os.getenv("TEAMBUILDER_DATA_PATH", "").strip() or "teambuilder_data.json",
        supabase_url=os.getenv("SUPABASE_URL", "").strip(),
        supabase_key=os.getenv("SUPABASE_KEY", "").strip(),
        enforce_leave_lock=_env_bool("TEAMBUILDER_ENFORCE_LEAVE_LOCK", True),
        soft_capacity_ceiling=_env_ceiling("TEAMBUILDER_SOFT_CEILING", 9),
        rename_requires_lock=_env_bool("TEAMBUILDER_RENAME_REQUIRES_LOCK", True),
    )
