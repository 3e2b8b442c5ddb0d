from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from roster_santa.bot.handlers import router as handlers_router
from roster_santa.core.config import Settings
from roster_santa.services.draw_flow import DrawCoordinator
from roster_santa.services.importer import PendingImports
from roster_santa.services.store import SantaStore


def create_bot(settings: Settings) -> Bot:
    return Bot(token=settings.bot_token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))


def create_dispatcher(settings: Settings, santa: SantaStore) -> Dispatcher:
    """Build the dispatcher with the store and draw state injected into handlers."""
    dp = Dispatcher()
    dp["settings"] = settings
    dp["santa"] = santa
    dp["draws"] = DrawCoordinator(santa)
    dp["imports"] = PendingImports()
    dp.include_router(handlers_router)
    return dp
