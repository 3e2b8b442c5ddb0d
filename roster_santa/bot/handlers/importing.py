from __future__ import annotations

import html

from aiogram import F, Router, types

from roster_santa.bot.keyboards import import_confirm_keyboard
from roster_santa.bot.utils import (
    chunk_lines,
    error_text,
    log_handler_exception,
    reject_message,
    reject_query,
)
from roster_santa.core.config import Settings
from roster_santa.services.errors import RosterSantaError
from roster_santa.services.importer import ImportResult, PendingImports, rows_from_table
from roster_santa.services.spreadsheet import is_supported, read_table
from roster_santa.services.store import SantaStore

router = Router()

MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def _duplicates_report(result: ImportResult) -> list[str]:
    lines = [
        f"Found {len(result.rejected)} duplicate Employee ID(s); "
        f"{len(result.accepted)} employee(s) can be imported.",
        "",
    ]
    for rejection in result.rejected:
        lines.append(
            f"Row {rejection.row}: {html.escape(rejection.external_code)} "
            f"({html.escape(rejection.display_name)}) - {rejection.label}"
        )
    return lines


@router.message(F.document)
async def document_handler(
    message: types.Message,
    santa: SantaStore,
    imports: PendingImports,
    settings: Settings,
) -> None:
    if await reject_message(message, settings, "import"):
        return

    document = message.document
    filename = document.file_name or ""
    if not is_supported(filename):
        await message.answer("Please upload an .xlsx or .csv file.")
        return
    if document.file_size and document.file_size > MAX_UPLOAD_BYTES:
        await message.answer("That file is too large to import.")
        return

    try:
        buffer = await message.bot.download(document)
        table = read_table(filename, buffer.read())
        if len(table) < 2:
            await message.answer("The file must have at least a header row and one data row.")
            return

        result = santa.reconcile_import(rows_from_table(table))
        if result.rejected:
            imports.put(message.chat.id, result)
            chunks = chunk_lines(_duplicates_report(result))
            for chunk in chunks[:-1]:
                await message.answer(chunk)
            await message.answer(chunks[-1], reply_markup=import_confirm_keyboard(len(result.accepted)))
            return

        if not result.accepted:
            await message.answer("No valid employees found in the file.")
            return

        added = santa.confirm_import(result.accepted)
        await message.answer(f"Successfully imported {len(added)} employee(s)!")
    except RosterSantaError as exc:
        await message.answer(error_text(exc))
    except Exception as exc:
        log_handler_exception("import", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.callback_query(F.data == "import_confirm")
async def import_confirm_callback_handler(
    query: types.CallbackQuery,
    santa: SantaStore,
    imports: PendingImports,
    settings: Settings,
) -> None:
    if await reject_query(query, settings, "import_confirm"):
        return

    result = imports.pop(query.message.chat.id)
    if result is None:
        await query.answer("Nothing to import. Please send the file again.", show_alert=True)
        return

    try:
        added = santa.confirm_import(result.accepted)
        await query.answer()
        await query.message.edit_text(f"Successfully imported {len(added)} employee(s)!")
    except RosterSantaError as exc:
        await query.answer(str(exc), show_alert=True)
    except Exception as exc:
        log_handler_exception("import_confirm", query.from_user.id, query.message.chat.id, exc)
        await query.answer("Something went wrong. Please try again later.", show_alert=True)


@router.callback_query(F.data == "import_cancel")
async def import_cancel_callback_handler(
    query: types.CallbackQuery, imports: PendingImports, settings: Settings
) -> None:
    if await reject_query(query, settings, "import_cancel"):
        return

    imports.pop(query.message.chat.id)
    await query.answer()
    await query.message.edit_text("Import cancelled. The roster was not changed.")
