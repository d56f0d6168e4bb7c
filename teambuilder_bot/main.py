from __future__ import annotations

import asyncio

from .adapters.base import RecordStore
from .bot import TeamBuilderBot, attach_service
from .commands.register import register_commands
from .config import Settings, load_settings
from .core.service import TeamService
from .core.storage import JSONStorage
from .logging_config import setup_logging


def build_store(settings: Settings) -> RecordStore:
    if settings.use_supabase:
        from .adapters.supabase import SupabaseStore

        return SupabaseStore(settings.supabase_url, settings.supabase_key)
    return JSONStorage(settings.data_path)


def main() -> int:
    log = setup_logging()
    settings = load_settings()
    if not settings.token:
        log.error(
            "DISCORD_BOT_TOKEN is not set. "
            "Export it in your environment before running."
        )
        return 2
    store = build_store(settings)
    log.info("Using %s", type(store).__name__)
    service = TeamService(store, policy=settings.policy())
    bot = TeamBuilderBot()
    attach_service(service)
    register_commands(bot, service)

    async def runner():
        try:
            async with bot:
                await bot.start(settings.token)
        except KeyboardInterrupt:
            log.info("Shutting down...")
        finally:
            close = getattr(store, "close", None)
            if close is not None:
                await close()
        return 0

    return asyncio.run(runner())


if __name__ == "__main__":
    raise SystemExit(main())
