from aiogram.types import InlineKeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder

from roster_santa.services.draw_flow import IndividualDraw, SlotStatus

# Telegram accepts at most 100 buttons per inline keyboard; one is kept for "Close".
MAX_SLOT_BUTTONS = 99


def confirm_remove_keyboard(member_id: int):
    keyboard = InlineKeyboardBuilder()
    keyboard.button(text="Yes, delete", callback_data=f"remove:{member_id}")
    keyboard.button(text="Cancel", callback_data="dismiss")
    return keyboard.as_markup()


def confirm_clear_keyboard():
    keyboard = InlineKeyboardBuilder()
    keyboard.button(text="Yes, clear all assignments", callback_data="confirm_clear")
    keyboard.button(text="Cancel", callback_data="dismiss")
    return keyboard.as_markup()


def import_confirm_keyboard(valid_count: int):
    keyboard = InlineKeyboardBuilder()
    if valid_count:
        keyboard.button(text=f"Import {valid_count} valid", callback_data="import_confirm")
    keyboard.button(text="Cancel", callback_data="import_cancel")
    return keyboard.as_markup()


def slot_keyboard(draw: IndividualDraw):
    keyboard = InlineKeyboardBuilder()
    available = [slot for slot in draw.slots if slot.status == SlotStatus.AVAILABLE]
    for number, slot in enumerate(available[:MAX_SLOT_BUTTONS], start=1):
        keyboard.button(text=f"🎲 {number}", callback_data=f"slot:{draw.token}:{slot.pool_index}")
    keyboard.adjust(5)
    keyboard.row(InlineKeyboardButton(text="Close", callback_data=f"slot_close:{draw.token}"))
    return keyboard.as_markup()


def close_draw_keyboard(token: str):
    keyboard = InlineKeyboardBuilder()
    keyboard.button(text="Cancel", callback_data=f"slot_close:{token}")
    return keyboard.as_markup()
