from __future__ import annotations

import random
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from roster_santa.services.errors import (
    AssignmentInfeasible,
    InsufficientMembers,
    InvalidAssignment,
    NoAvailableCandidates,
)

# Reshuffles allowed before a bulk draw gives up with AssignmentInfeasible.
MAX_DERANGEMENT_ATTEMPTS = 100


def _shuffle(items: List[int], rng: random.Random) -> None:
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]


def _pair_positions(original: Sequence[int], shuffled: List[int]) -> bool:
    size = len(original)
    for i in range(size):
        if original[i] != shuffled[i]:
            continue
        resolved = False
        for step in range(1, size):
            j = (i + step) % size
            if shuffled[j] != original[i]:
                shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
                resolved = True
                break
        if not resolved:
            return False
    return all(a != b for a, b in zip(original, shuffled))


def generate_derangement(
    member_ids: Sequence[int],
    seed: Optional[int] = None,
    max_attempts: int = MAX_DERANGEMENT_ATTEMPTS,
) -> Dict[int, int]:
    """Return a random giver -> giftee bijection with no fixed point."""
    if len(member_ids) < 2:
        raise InsufficientMembers(len(member_ids))
    if len(set(member_ids)) != len(member_ids):
        raise ValueError("Member ids must be unique.")

    rng = random.Random(seed)
    original = list(member_ids)
    shuffled = list(member_ids)

    for attempt in range(1, max_attempts + 1):
        _shuffle(shuffled, rng)
        if _pair_positions(original, shuffled):
            logger.bind(members=len(original), attempts=attempt).debug("Derangement found")
            return dict(zip(original, shuffled))

    raise AssignmentInfeasible(max_attempts)


def candidate_pool(
    member_ids: Sequence[int], assignments: Mapping[int, int], drawer_id: int
) -> List[int]:
    taken = set(assignments.values())
    return [member_id for member_id in member_ids if member_id != drawer_id and member_id not in taken]


def draw_target(pool: Sequence[int], drawer_id: int, rng: random.Random) -> int:
    if not pool:
        raise NoAvailableCandidates(drawer_id)
    return pool[rng.randrange(len(pool))]


def _coerce_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class AssignmentStore:
    """Giver -> giftee mapping kept free of self-assignments and reused targets."""

    def __init__(self, assignments: Optional[Mapping[int, int]] = None) -> None:
        self._assignments: Dict[int, int] = {}
        if assignments:
            self.replace_all(assignments)

    def __len__(self) -> int:
        return len(self._assignments)

    def get(self, member_id: int) -> Optional[int]:
        return self._assignments.get(member_id)

    def items(self) -> List[Tuple[int, int]]:
        return list(self._assignments.items())

    def as_dict(self) -> Dict[int, int]:
        return dict(self._assignments)

    def targets(self) -> set[int]:
        return set(self._assignments.values())

    def record(self, giver_id: int, target_id: int) -> None:
        if giver_id == target_id:
            raise InvalidAssignment("An employee cannot be their own Secret Santa.")
        if giver_id in self._assignments:
            raise InvalidAssignment("This employee already has a Secret Santa assignment.")
        if target_id in self.targets():
            raise InvalidAssignment("This employee is already someone's Secret Santa target.")
        self._assignments[giver_id] = target_id

    def replace_all(self, assignments: Mapping[int, int]) -> None:
        if any(giver == target for giver, target in assignments.items()):
            raise InvalidAssignment("Assignments cannot contain self-assignments.")
        if len(set(assignments.values())) != len(assignments):
            raise InvalidAssignment("Assignments cannot reuse a target.")
        self._assignments = dict(assignments)

    def restore(self, assignments: Mapping[int, int]) -> None:
        self._assignments = dict(assignments)

    def clear_all(self) -> int:
        cleared = len(self._assignments)
        self._assignments = {}
        return cleared

    def on_member_removed(self, member_id: int) -> None:
        self._assignments = {
            giver: target
            for giver, target in self._assignments.items()
            if giver != member_id and target != member_id
        }

    def load_snapshot(self, raw: Any, known_ids: Iterable[int]) -> int:
        """Load persisted pairs, keeping only entries that still make sense.

        Returns the number of entries that were dropped.
        """
        known = set(known_ids)
        loaded: Dict[int, int] = {}
        taken: set[int] = set()
        dropped = 0
        items = raw.items() if isinstance(raw, dict) else []
        for raw_giver, raw_target in items:
            giver, target = _coerce_id(raw_giver), _coerce_id(raw_target)
            if (
                giver is None
                or target is None
                or giver == target
                or giver not in known
                or target not in known
                or target in taken
            ):
                dropped += 1
                continue
            loaded[giver] = target
            taken.add(target)
        self._assignments = loaded
        return dropped

    def snapshot(self) -> Dict[str, int]:
        return {str(giver): target for giver, target in self._assignments.items()}
