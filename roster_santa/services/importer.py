from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from roster_santa.services.errors import MissingRequiredColumns
from roster_santa.services.roster import Member, RosterStore

REASON_DUPLICATE_IN_BATCH = "duplicate-in-batch"
REASON_DUPLICATE_IN_ROSTER = "duplicate-in-roster"

REASON_LABELS = {
    REASON_DUPLICATE_IN_BATCH: "Duplicate Employee ID in file",
    REASON_DUPLICATE_IN_ROSTER: "Employee ID already exists in system",
}

SERIAL_FRAGMENTS = ("s.no", "sno", "serial")
IDENTIFIER_FRAGMENTS = ("employee_id", "employee id", "empnid", "emp id")
NAME_FRAGMENTS = ("employee_name", "employee name", "name")
INTERESTS_FRAGMENTS = ("interests", "hobbies", "interest")


@dataclass(frozen=True)
class CandidateRow:
    row: int
    external_code: str
    display_name: str
    notes: str = ""


@dataclass(frozen=True)
class Rejection:
    row: int
    external_code: str
    display_name: str
    reason: str

    @property
    def label(self) -> str:
        return REASON_LABELS.get(self.reason, self.reason)


@dataclass
class ImportResult:
    accepted: List[Member] = field(default_factory=list)
    rejected: List[Rejection] = field(default_factory=list)
    skipped: int = 0


@dataclass(frozen=True)
class ColumnMap:
    identifier: int
    name: int
    serial: Optional[int] = None
    interests: Optional[int] = None


def _find_column(headers: Sequence[str], fragments: Sequence[str]) -> Optional[int]:
    for index, header in enumerate(headers):
        if any(fragment in header for fragment in fragments):
            return index
    return None


def locate_columns(header: Sequence[Any]) -> ColumnMap:
    headers = [str(cell).strip().lower() if cell is not None else "" for cell in header]
    identifier = _find_column(headers, IDENTIFIER_FRAGMENTS)
    name = _find_column(headers, NAME_FRAGMENTS)

    missing = []
    if identifier is None:
        missing.append("Employee_ID")
    if name is None:
        missing.append("Employee_Name")
    if missing:
        raise MissingRequiredColumns(missing)

    return ColumnMap(
        identifier=identifier,
        name=name,
        serial=_find_column(headers, SERIAL_FRAGMENTS),
        interests=_find_column(headers, INTERESTS_FRAGMENTS),
    )


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _cell(row: Sequence[Any], index: Optional[int]) -> str:
    if index is None or index >= len(row):
        return ""
    return cell_text(row[index])


def rows_from_table(table: Sequence[Sequence[Any]]) -> List[CandidateRow]:
    """Turn a header-first table into candidate rows numbered like the sheet."""
    if not table:
        raise MissingRequiredColumns(["Employee_ID", "Employee_Name"])
    columns = locate_columns(table[0])

    rows = []
    for index, row in enumerate(table[1:], start=2):
        if not row or all(cell_text(cell) == "" for cell in row):
            continue
        rows.append(
            CandidateRow(
                row=index,
                external_code=_cell(row, columns.identifier),
                display_name=_cell(row, columns.name),
                notes=_cell(row, columns.interests),
            )
        )
    return rows


def reconcile(roster: RosterStore, rows: Sequence[CandidateRow]) -> ImportResult:
    """Split candidates into accepted and rejected without touching the roster."""
    existing = roster.code_keys()
    seen_in_batch: set[str] = set()
    result = ImportResult()
    next_id = roster.next_id

    for candidate in rows:
        code = candidate.external_code.strip()
        name = candidate.display_name.strip()
        if not code or not name:
            result.skipped += 1
            continue

        key = code.lower()
        reason = None
        if key in seen_in_batch:
            reason = REASON_DUPLICATE_IN_BATCH
        elif key in existing:
            reason = REASON_DUPLICATE_IN_ROSTER
        if reason:
            result.rejected.append(
                Rejection(row=candidate.row, external_code=code, display_name=name, reason=reason)
            )
            continue

        seen_in_batch.add(key)
        result.accepted.append(
            Member(id=next_id, external_code=code, display_name=name, notes=candidate.notes.strip())
        )
        next_id += 1

    logger.bind(
        accepted=len(result.accepted),
        rejected=len(result.rejected),
        skipped=result.skipped,
    ).info("Import reconciled")
    return result


def confirm(roster: RosterStore, accepted: Sequence[Member]) -> List[Member]:
    return roster.merge(accepted)


class PendingImports:
    """Reconciled batches waiting for the operator to confirm them, per chat."""

    def __init__(self) -> None:
        self._pending: Dict[int, ImportResult] = {}

    def put(self, chat_id: int, result: ImportResult) -> None:
        self._pending[chat_id] = result

    def pop(self, chat_id: int) -> Optional[ImportResult]:
        return self._pending.pop(chat_id, None)

    def __contains__(self, chat_id: object) -> bool:
        return chat_id in self._pending
