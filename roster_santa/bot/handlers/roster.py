from __future__ import annotations

import html

from aiogram import F, Router, types
from aiogram.filters import Command

from roster_santa.bot.keyboards import confirm_remove_keyboard
from roster_santa.bot.utils import (
    chunk_lines,
    command_args,
    error_text,
    format_member,
    log_handler_exception,
    parse_member_fields,
    parse_member_id,
    reject_message,
    reject_query,
)
from roster_santa.core.config import Settings
from roster_santa.services.errors import RosterSantaError
from roster_santa.services.store import SantaStore

router = Router()

MAX_SAMPLES = 500


@router.message(Command("add"))
async def add_command_handler(message: types.Message, santa: SantaStore, settings: Settings) -> None:
    if await reject_message(message, settings, "add"):
        return

    args = command_args(message.text)
    if not args:
        await message.answer("Usage: /add CODE | Name | interests")
        return

    try:
        code, name, notes = parse_member_fields(args)
        member = santa.create_member(code, name, notes)
        await message.answer(f"Employee added:\n{format_member(member)}")
    except RosterSantaError as exc:
        await message.answer(error_text(exc))
    except Exception as exc:
        log_handler_exception("add", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.message(Command("edit"))
async def edit_command_handler(message: types.Message, santa: SantaStore, settings: Settings) -> None:
    if await reject_message(message, settings, "edit"):
        return

    parts = command_args(message.text).split(maxsplit=1)
    if len(parts) < 2:
        await message.answer("Usage: /edit ID CODE | Name | interests")
        return

    try:
        member_id = parse_member_id(parts[0])
        code, name, notes = parse_member_fields(parts[1])
        member = santa.update_member(member_id, code, name, notes)
        await message.answer(f"Employee updated:\n{format_member(member)}")
    except RosterSantaError as exc:
        await message.answer(error_text(exc))
    except Exception as exc:
        log_handler_exception("edit", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.message(Command("remove"))
async def remove_command_handler(message: types.Message, santa: SantaStore, settings: Settings) -> None:
    if await reject_message(message, settings, "remove"):
        return

    args = command_args(message.text)
    if not args:
        await message.answer("Usage: /remove ID")
        return

    try:
        member = santa.roster.require(parse_member_id(args))
        await message.answer(
            f"Are you sure you want to delete this employee?\n{format_member(member)}",
            reply_markup=confirm_remove_keyboard(member.id),
        )
    except RosterSantaError as exc:
        await message.answer(error_text(exc))
    except Exception as exc:
        log_handler_exception("remove", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.callback_query(F.data.startswith("remove:"))
async def confirm_remove_callback_handler(
    query: types.CallbackQuery, santa: SantaStore, settings: Settings
) -> None:
    if await reject_query(query, settings, "confirm_remove"):
        return

    try:
        member = santa.delete_member(int(query.data.split(":", 1)[1]))
        await query.answer("Employee deleted.")
        await query.message.edit_text(f"Deleted {format_member(member)}")
    except RosterSantaError as exc:
        await query.answer(str(exc), show_alert=True)
    except Exception as exc:
        log_handler_exception("confirm_remove", query.from_user.id, query.message.chat.id, exc)
        await query.answer("Something went wrong. Please try again later.", show_alert=True)


@router.callback_query(F.data == "dismiss")
async def dismiss_callback_handler(query: types.CallbackQuery) -> None:
    await query.answer()
    await query.message.edit_text("Cancelled.")


@router.message(Command("list"))
async def list_command_handler(message: types.Message, santa: SantaStore, settings: Settings) -> None:
    if await reject_message(message, settings, "list"):
        return

    try:
        query = command_args(message.text)
        members = santa.search(query)
        if not members:
            if query:
                await message.answer(f"No employees match \"{html.escape(query)}\".")
            else:
                await message.answer("No employees yet. Use /add or send a spreadsheet.")
            return

        header = f"Employees ({len(members)} of {len(santa.roster)}):"
        for chunk in chunk_lines([header] + [format_member(member) for member in members]):
            await message.answer(chunk)
    except Exception as exc:
        log_handler_exception("list", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.message(Command("samples"))
async def samples_command_handler(message: types.Message, santa: SantaStore, settings: Settings) -> None:
    if await reject_message(message, settings, "samples"):
        return

    args = command_args(message.text)
    if args and (not args.isdigit() or not 0 < int(args) <= MAX_SAMPLES):
        await message.answer(f"Usage: /samples N (1-{MAX_SAMPLES})")
        return

    try:
        added = santa.generate_samples(int(args) if args else 100)
        await message.answer(f"Added {len(added)} sample employees.")
    except RosterSantaError as exc:
        await message.answer(error_text(exc))
    except Exception as exc:
        log_handler_exception("samples", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")
