from __future__ import annotations

from typing import Iterable


class RosterSantaError(RuntimeError):
    code = "roster-santa-error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DuplicateIdentifier(RosterSantaError):
    code = "duplicate-identifier"

    def __init__(self, external_code: str) -> None:
        super().__init__("Employee ID already exists. Please use a unique ID.")
        self.external_code = external_code


class NotFound(RosterSantaError):
    code = "not-found"

    def __init__(self, member_id: int) -> None:
        super().__init__(f"Employee #{member_id} not found.")
        self.member_id = member_id


class InvalidMember(RosterSantaError):
    code = "invalid-member"


class InsufficientMembers(RosterSantaError):
    code = "insufficient-members"

    def __init__(self, count: int) -> None:
        super().__init__("Need at least 2 employees for Secret Santa!")
        self.count = count


class AssignmentInfeasible(RosterSantaError):
    code = "assignment-infeasible"

    def __init__(self, attempts: int) -> None:
        super().__init__(
            "Unable to create valid Secret Santa assignments. Please try again."
        )
        self.attempts = attempts


class InvalidAssignment(RosterSantaError):
    code = "invalid-assignment"


class NoAvailableCandidates(RosterSantaError):
    code = "no-available-candidates"

    def __init__(self, drawer_id: int) -> None:
        super().__init__(
            "No available employees to assign! All employees may already be assigned."
        )
        self.drawer_id = drawer_id


class StaleDraw(RosterSantaError):
    code = "stale-draw"


class DrawInProgress(RosterSantaError):
    code = "draw-in-progress"

    def __init__(self) -> None:
        super().__init__("Another draw is still in progress. Wait for it to finish.")


class MissingRequiredColumns(RosterSantaError):
    code = "missing-required-columns"

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = sorted(missing)
        super().__init__(
            'Spreadsheet must contain "Employee_ID" and "Employee_Name" columns '
            f"(missing: {', '.join(self.missing)})."
        )


class UnsupportedSpreadsheet(RosterSantaError):
    code = "unsupported-spreadsheet"


class MalformedPersistedState(RosterSantaError):
    code = "malformed-persisted-state"

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Stored value for {key!r} is unreadable: {reason}")
        self.key = key
