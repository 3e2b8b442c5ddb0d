from __future__ import annotations

import html
from typing import Iterable, List, Optional, Tuple

from loguru import logger

from roster_santa.core.config import Settings
from roster_santa.services.errors import InvalidMember
from roster_santa.services.rate_limit import rate_limiter
from roster_santa.services.roster import Member

MESSAGE_LIMIT = 3500


def is_operator(settings: Settings, user_id: int) -> bool:
    return not settings.admin_ids or user_id in settings.admin_ids


def check_rate_limit(user_id: int, action: str) -> bool:
    key = f"{user_id}:{action}"
    result = rate_limiter.allow(key)
    return result.allowed


def log_handler_exception(action: str, user_id: int | None, chat_id: int | None, error: Exception) -> None:
    logger.bind(action=action, user_id=user_id, chat_id=chat_id).exception(
        "Handler error: {error}", error=str(error)
    )


def command_args(text: Optional[str]) -> str:
    parts = (text or "").split(maxsplit=1)
    return parts[1].strip() if len(parts) > 1 else ""


def parse_member_id(raw: str) -> int:
    value = raw.strip().lstrip("#")
    if not value.isdigit() or int(value) <= 0:
        raise InvalidMember(f"'{raw}' is not a valid employee number.")
    return int(value)


def parse_member_fields(raw: str) -> Tuple[str, str, str]:
    """Split ``CODE | Name | notes`` into its three fields."""
    parts = [part.strip() for part in raw.split("|")]
    if len(parts) < 2 or len(parts) > 3:
        raise InvalidMember("Use the format: CODE | Name | interests (interests optional).")
    code, name = parts[0], parts[1]
    notes = parts[2] if len(parts) == 3 else ""
    return code, name, notes


def format_member(member: Member) -> str:
    line = f"#{member.id} <b>{html.escape(member.display_name)}</b> ({html.escape(member.external_code)})"
    if member.notes:
        line += f" - {html.escape(member.notes)}"
    return line


def format_pair(giver: Member, target: Member) -> str:
    return f"{html.escape(giver.display_name)} 🎁 → {html.escape(target.display_name)}"


def chunk_lines(lines: Iterable[str], limit: int = MESSAGE_LIMIT) -> List[str]:
    chunks: List[str] = []
    current: List[str] = []
    size = 0
    for line in lines:
        if current and size + len(line) + 1 > limit:
            chunks.append("\n".join(current))
            current, size = [], 0
        current.append(line)
        size += len(line) + 1
    if current:
        chunks.append("\n".join(current))
    return chunks


async def reject_message(message, settings: Settings, action: str) -> bool:
    """Answer and return True when the sender may not run ``action`` right now."""
    if not check_rate_limit(message.from_user.id, action):
        await message.answer("You're doing that too often. Please slow down.")
        return True
    if not is_operator(settings, message.from_user.id):
        await message.answer("Only roster operators can do that.")
        return True
    return False


async def reject_query(query, settings: Settings, action: str) -> bool:
    if not check_rate_limit(query.from_user.id, action):
        await query.answer("You're doing that too often. Please slow down.", show_alert=True)
        return True
    if not is_operator(settings, query.from_user.id):
        await query.answer("Only roster operators can do that.", show_alert=True)
        return True
    return False


def error_text(error: Exception) -> str:
    return html.escape(str(error))
