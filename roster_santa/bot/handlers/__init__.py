from aiogram import Router

from roster_santa.bot.handlers import draw, importing, roster, start

router = Router()
router.include_router(start.router)
router.include_router(roster.router)
router.include_router(importing.router)
router.include_router(draw.router)
