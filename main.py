from __future__ import annotations

import asyncio

import uvloop
from aiogram import Bot, Dispatcher
from aiogram.types import BotCommand, BotCommandScopeDefault
from loguru import logger

from roster_santa.bot import create_bot, create_dispatcher
from roster_santa.core.config import load_settings
from roster_santa.core.logging import setup_logging
from roster_santa.db import SqlBlobStore, create_schema, init_engine
from roster_santa.services.store import SantaStore


USERS_COMMANDS: dict[str, str] = {
    "start": "start",
    "help": "show commands",
    "add": "add an employee",
    "edit": "update an employee",
    "remove": "delete an employee",
    "list": "list or search employees",
    "samples": "add sample employees",
    "draw": "assign everyone at once",
    "drawfor": "draw for one employee",
    "santa": "show one assignment",
    "assignments": "show all assignments",
    "clear": "clear all assignments",
}


async def set_default_commands(bot: Bot) -> None:
    await bot.set_my_commands(
        [
            BotCommand(command=command, description=description)
            for command, description in USERS_COMMANDS.items()
        ],
        scope=BotCommandScopeDefault(),
    )


async def on_startup(bot: Bot) -> None:
    logger.info("bot starting...")

    await set_default_commands(bot)

    bot_info = await bot.get_me()

    logger.info("Name     - {name}", name=bot_info.full_name)
    logger.info("Username - @{username}", username=bot_info.username)
    logger.info("ID       - {id}", id=bot_info.id)

    logger.info("bot started")


async def on_shutdown(bot: Bot, dispatcher: Dispatcher, santa: SantaStore) -> None:
    logger.info("bot stopping...")

    santa.close()
    await dispatcher.storage.close()
    await bot.session.close()

    logger.info("bot stopped")


async def main() -> None:
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_path)
    engine = init_engine(settings.database_url)
    create_schema(engine)

    santa = SantaStore(SqlBlobStore())
    santa.load()

    bot = create_bot(settings)
    dp = create_dispatcher(settings, santa)
    dp.startup.register(on_startup)
    dp.shutdown.register(on_shutdown)

    await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())


if __name__ == "__main__":
    if not getattr(asyncio, "debug", False):
        uvloop.install()

    asyncio.run(main())
