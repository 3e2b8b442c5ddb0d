from aiogram import Router, types
from aiogram.filters import Command, CommandStart

from roster_santa.bot.utils import check_rate_limit, log_handler_exception

router = Router()

HELP_TEXT = (
    "Hello! I keep the employee roster and run the Secret Santa draw.\n\n"
    "<b>Roster</b>\n"
    "/add CODE | Name | interests - add an employee\n"
    "/edit ID CODE | Name | interests - update an employee\n"
    "/remove ID - delete an employee\n"
    "/list [search] - show employees\n"
    "/samples [N] - add N sample employees (default 100)\n"
    "Send an .xlsx or .csv file with Employee_ID and Employee_Name columns to import.\n\n"
    "<b>Secret Santa</b>\n"
    "/draw - assign everyone at once\n"
    "/drawfor ID - let one employee pick a chit\n"
    "/santa ID - show who an employee is giving to\n"
    "/assignments - show all assignments\n"
    "/clear - clear all assignments"
)


@router.message(CommandStart())
@router.message(Command("help"))
async def command_start_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "start"):
        await message.answer("You're doing that too often. Please slow down.")
        return

    try:
        await message.answer(HELP_TEXT)
    except Exception as exc:
        log_handler_exception("start", message.from_user.id, message.chat.id, exc)
