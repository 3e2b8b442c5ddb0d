from __future__ import annotations

import asyncio
import html
import random

from aiogram import F, Router, types
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command
from loguru import logger

from roster_santa.bot.keyboards import close_draw_keyboard, confirm_clear_keyboard, slot_keyboard
from roster_santa.bot.utils import (
    chunk_lines,
    command_args,
    error_text,
    format_pair,
    log_handler_exception,
    parse_member_id,
    reject_message,
    reject_query,
)
from roster_santa.core.config import Settings
from roster_santa.services.draw_flow import DrawCoordinator, IndividualDraw, SlotStatus
from roster_santa.services.errors import RosterSantaError
from roster_santa.services.store import SantaStore

router = Router()

ANIMATION_TEXTS = ["🎅 Drawing...", "🎄 Shuffling...", "🎁 Assigning...", "✨ Almost there..."]
ANIMATION_STEP_SECONDS = 0.5


async def _animate(status: types.Message, duration: float) -> None:
    steps = int(duration / ANIMATION_STEP_SECONDS)
    for index in range(1, steps + 1):
        await asyncio.sleep(ANIMATION_STEP_SECONDS)
        try:
            await status.edit_text(ANIMATION_TEXTS[index % len(ANIMATION_TEXTS)])
        except TelegramBadRequest as exc:
            logger.bind(step=index).debug("Animation frame skipped: {error}", error=str(exc))
    await asyncio.sleep(duration - steps * ANIMATION_STEP_SECONDS)


async def _replace_text(target: types.Message, text: str) -> None:
    try:
        await target.edit_text(text)
    except TelegramBadRequest as exc:
        logger.bind(message_id=target.message_id).debug("Message not updated: {error}", error=str(exc))


def _board_text(draw: IndividualDraw) -> str:
    assigned = sum(1 for slot in draw.slots if slot.status == SlotStatus.ASSIGNED)
    available = len(draw.pool)
    chits = "chit" if available == 1 else "chits"
    return (
        "🎲 <b>Pick Your Secret Santa</b>\n"
        f"<b>{html.escape(draw.drawer.display_name)}</b>, select a chit from the available slots below.\n\n"
        f"{available} {chits} available out of {len(draw.slots)} total - Pick one!\n"
        f"🔒 Already assigned: {assigned} · 👤 Your own: 1"
    )


@router.message(Command("draw"))
async def draw_command_handler(
    message: types.Message, santa: SantaStore, draws: DrawCoordinator, settings: Settings
) -> None:
    if await reject_message(message, settings, "draw"):
        return

    if len(santa.roster) < 2:
        await message.answer("Need at least 2 employees for Secret Santa!")
        return

    try:
        token = draws.request_bulk_draw()
    except RosterSantaError as exc:
        await message.answer(error_text(exc))
        return

    try:
        status = await message.answer(ANIMATION_TEXTS[0])
        await _animate(status, settings.draw_delay_seconds)
        pairs = draws.complete_bulk_draw(token)
        lines = ["🎅 <b>Secret Santa Assignments Complete!</b>"] + [
            format_pair(giver, target) for giver, target in pairs
        ]
        chunks = chunk_lines(lines)
        await status.edit_text(chunks[0])
        for chunk in chunks[1:]:
            await message.answer(chunk)
    except RosterSantaError as exc:
        await message.answer(error_text(exc))
    except Exception as exc:
        log_handler_exception("draw", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")
    finally:
        draws.cancel(token)


@router.message(Command("drawfor"))
async def draw_for_command_handler(
    message: types.Message, draws: DrawCoordinator, settings: Settings
) -> None:
    if await reject_message(message, settings, "drawfor"):
        return

    args = command_args(message.text)
    if not args:
        await message.answer("Usage: /drawfor ID")
        return

    try:
        draw = draws.request_individual_draw(parse_member_id(args))
    except RosterSantaError as exc:
        await message.answer(error_text(exc))
        return

    try:
        await asyncio.sleep(random.uniform(0, settings.pool_delay_max_seconds))
        await message.answer(_board_text(draw), reply_markup=slot_keyboard(draw))
    except Exception as exc:
        draws.cancel(draw.token)
        log_handler_exception("drawfor", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.callback_query(F.data.startswith("slot:"))
async def slot_callback_handler(
    query: types.CallbackQuery, draws: DrawCoordinator, settings: Settings
) -> None:
    if await reject_query(query, settings, "slot"):
        return

    try:
        _, token, raw_index = query.data.split(":", 2)
        draws.select_from_pool(token, int(raw_index))
    except ValueError:
        await query.answer("That slot is not available.", show_alert=True)
        return
    except RosterSantaError as exc:
        await query.answer(str(exc), show_alert=True)
        return

    try:
        await query.answer()
        await query.message.edit_text("Assigning your Secret Santa...", reply_markup=close_draw_keyboard(token))
        await asyncio.sleep(settings.reveal_delay_seconds)
        if not draws.is_current(token):
            # closed during the reveal; the close handler already replied
            return
        drawer, target = draws.commit(token)
        await query.message.edit_text(
            "🎁 <b>Secret Santa Assigned!</b>\n" + format_pair(drawer, target)
        )
    except RosterSantaError as exc:
        await _replace_text(query.message, error_text(exc))
    except Exception as exc:
        draws.cancel(token)
        log_handler_exception("slot", query.from_user.id, query.message.chat.id, exc)
        await query.message.answer("Something went wrong. Please try again later.")


@router.callback_query(F.data.startswith("slot_close:"))
async def slot_close_callback_handler(
    query: types.CallbackQuery, draws: DrawCoordinator, settings: Settings
) -> None:
    if await reject_query(query, settings, "slot_close"):
        return

    token = query.data.split(":", 1)[1]
    if draws.cancel(token):
        await query.answer("Draw cancelled.")
    else:
        await query.answer("This draw is already finished.")
        return
    await _replace_text(query.message, "Draw cancelled. No assignment was made.")


@router.message(Command("santa"))
async def santa_command_handler(message: types.Message, santa: SantaStore, settings: Settings) -> None:
    if await reject_message(message, settings, "santa"):
        return

    args = command_args(message.text)
    if not args:
        await message.answer("Usage: /santa ID")
        return

    try:
        member = santa.roster.require(parse_member_id(args))
        target = santa.assignment_for(member.id)
        if target is None:
            await message.answer(f"{html.escape(member.display_name)} has not been assigned yet.")
            return
        await message.answer(format_pair(member, target))
    except RosterSantaError as exc:
        await message.answer(error_text(exc))
    except Exception as exc:
        log_handler_exception("santa", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.message(Command("assignments"))
async def assignments_command_handler(message: types.Message, santa: SantaStore, settings: Settings) -> None:
    if await reject_message(message, settings, "assignments"):
        return

    try:
        pairs = santa.assignment_pairs()
        if not pairs:
            await message.answer("No Secret Santa assignments yet. Use /draw or /drawfor.")
            return
        lines = [f"Secret Santa assignments ({len(pairs)} of {len(santa.roster)}):"]
        lines.extend(format_pair(giver, target) for giver, target in pairs)
        for chunk in chunk_lines(lines):
            await message.answer(chunk)
    except Exception as exc:
        log_handler_exception("assignments", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.message(Command("clear"))
async def clear_command_handler(message: types.Message, settings: Settings) -> None:
    if await reject_message(message, settings, "clear"):
        return

    await message.answer(
        "Are you sure you want to clear all Secret Santa assignments?",
        reply_markup=confirm_clear_keyboard(),
    )


@router.callback_query(F.data == "confirm_clear")
async def confirm_clear_callback_handler(
    query: types.CallbackQuery, santa: SantaStore, draws: DrawCoordinator, settings: Settings
) -> None:
    if await reject_query(query, settings, "confirm_clear"):
        return

    if draws.busy:
        await query.answer("A draw is in progress. Try again when it finishes.", show_alert=True)
        return

    try:
        cleared = santa.clear_assignments()
        await query.answer()
        await query.message.edit_text(f"Cleared {cleared} Secret Santa assignment(s).")
    except Exception as exc:
        log_handler_exception("confirm_clear", query.from_user.id, query.message.chat.id, exc)
        await query.answer("Something went wrong. Please try again later.", show_alert=True)
