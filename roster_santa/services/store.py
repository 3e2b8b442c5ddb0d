from __future__ import annotations

import json
import random
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Protocol, Sequence, Tuple

from loguru import logger

from roster_santa.services import importer
from roster_santa.services.assignment import AssignmentStore, candidate_pool, generate_derangement
from roster_santa.services.errors import MalformedPersistedState, StaleDraw
from roster_santa.services.importer import CandidateRow, ImportResult
from roster_santa.services.roster import Member, RosterStore

ROSTER_KEY = "employees_data"
COUNTER_KEY = "employees_next_id"
ASSIGNMENTS_KEY = "secret_santa_assignments"


class BlobStore(Protocol):
    def load(self, key: str) -> Optional[str]:
        ...

    def save(self, key: str, value: str) -> None:
        ...


def decode_blob(key: str, text: Optional[str], expected: type, default: Any) -> Any:
    if text is None:
        return default
    try:
        value = json.loads(text)
    except ValueError as exc:
        raise MalformedPersistedState(key, "not valid JSON") from exc
    if isinstance(value, bool) or not isinstance(value, expected):
        raise MalformedPersistedState(key, f"expected {expected.__name__}")
    return value


class SantaStore:
    """Roster, assignment map and their persistence, owned as one unit.

    Created once at start-up, filled by :meth:`load` and flushed by
    :meth:`close` on shutdown. Every mutating method writes the affected keys
    back to the blob store as soon as the in-memory change succeeded.
    """

    def __init__(self, blobs: BlobStore, seed: Optional[int] = None) -> None:
        self.blobs = blobs
        self.roster = RosterStore()
        self.assignments = AssignmentStore()
        self.roster.add_removal_listener(self.assignments.on_member_removed)
        self.rng = random.Random(seed)
        self._discarded: set[str] = set()

    # -- lifecycle -----------------------------------------------------------

    def _read(self, key: str, expected: type, default: Any) -> Any:
        try:
            return decode_blob(key, self.blobs.load(key), expected, default)
        except MalformedPersistedState as exc:
            logger.bind(key=key).warning("Discarding stored value: {error}", error=str(exc))
            self._discarded.add(key)
            return default

    def load(self) -> None:
        raw_members = self._read(ROSTER_KEY, list, [])
        raw_counter = self._read(COUNTER_KEY, int, 0)
        raw_assignments = self._read(ASSIGNMENTS_KEY, dict, {})

        self.roster.load_snapshot(raw_members, raw_counter)
        dropped = self.assignments.load_snapshot(raw_assignments, self.roster.ids())

        if ROSTER_KEY in self._discarded or self.roster.snapshot() != raw_members:
            self._save_roster()
        if self.roster.next_id != raw_counter:
            self._save_counter()
        if dropped:
            logger.bind(dropped=dropped).warning("Discarded stale assignments")
        if dropped or ASSIGNMENTS_KEY in self._discarded:
            self._save_assignments()

        logger.bind(
            members=len(self.roster),
            next_id=self.roster.next_id,
            assignments=len(self.assignments),
        ).info("State loaded")

    def close(self) -> None:
        self._save_roster()
        self._save_counter()
        self._save_assignments()
        logger.info("State flushed")

    def _save_roster(self) -> None:
        self.blobs.save(ROSTER_KEY, json.dumps(self.roster.snapshot()))

    def _save_counter(self) -> None:
        stored = self._read(COUNTER_KEY, int, 0)
        self.blobs.save(COUNTER_KEY, json.dumps(max(stored, self.roster.next_id)))

    def _save_assignments(self) -> None:
        self.blobs.save(ASSIGNMENTS_KEY, json.dumps(self.assignments.snapshot()))

    @contextmanager
    def _atomic(self, action: str) -> Iterator[None]:
        """Undo in-memory changes when the block, including its saves, fails.

        Roster and assignments are written back in their restored form. The
        counter is not: a stored value above ``next_id`` is valid.
        """
        roster_state = self.roster.checkpoint()
        assignments = self.assignments.as_dict()
        try:
            yield
        except Exception:
            changed = (
                self.roster.checkpoint() != roster_state or self.assignments.as_dict() != assignments
            )
            self.roster.restore(roster_state)
            self.assignments.restore(assignments)
            if changed:
                logger.bind(action=action).warning("Write failed, in-memory state rolled back")
                try:
                    self._save_roster()
                    self._save_assignments()
                except Exception as exc:
                    logger.bind(action=action).warning("Rollback not persisted: {error}", error=str(exc))
            raise

    # -- roster --------------------------------------------------------------

    def create_member(self, external_code: str, display_name: str, notes: Optional[str] = None) -> Member:
        with self._atomic("create_member"):
            member = self.roster.create(external_code, display_name, notes)
            self._save_roster()
            self._save_counter()
        return member

    def update_member(
        self,
        member_id: int,
        external_code: str,
        display_name: str,
        notes: Optional[str] = None,
    ) -> Member:
        with self._atomic("update_member"):
            member = self.roster.update(member_id, external_code, display_name, notes)
            self._save_roster()
        return member

    def delete_member(self, member_id: int) -> Member:
        with self._atomic("delete_member"):
            member = self.roster.delete(member_id)
            self._save_roster()
            self._save_assignments()
        logger.bind(member_id=member_id).info("Member removed")
        return member

    def search(self, query: Optional[str] = None) -> List[Member]:
        return self.roster.search(query)

    def generate_samples(self, count: int = 100) -> List[Member]:
        with self._atomic("generate_samples"):
            added = self.roster.generate_samples(count)
            self._save_roster()
            self._save_counter()
        logger.bind(count=len(added)).info("Sample employees generated")
        return added

    # -- import --------------------------------------------------------------

    def reconcile_import(self, rows: Sequence[CandidateRow]) -> ImportResult:
        return importer.reconcile(self.roster, rows)

    def confirm_import(self, accepted: Sequence[Member]) -> List[Member]:
        with self._atomic("confirm_import"):
            added = importer.confirm(self.roster, accepted)
            if added:
                self._save_roster()
                self._save_counter()
        logger.bind(count=len(added)).info("Import confirmed")
        return added

    # -- assignments ---------------------------------------------------------

    def bulk_draw(self, seed: Optional[int] = None) -> List[Tuple[Member, Member]]:
        if seed is None:
            seed = self.rng.randint(1, 2**31 - 1)
        with self._atomic("bulk_draw"):
            mapping = generate_derangement(self.roster.ids(), seed=seed)
            self.assignments.replace_all(mapping)
            self._save_assignments()
        logger.bind(members=len(mapping), seed=seed).info("Assignments generated")
        return self.assignment_pairs()

    def candidate_pool(self, drawer_id: int) -> List[Member]:
        self.roster.require(drawer_id)
        pool = candidate_pool(self.roster.ids(), self.assignments.as_dict(), drawer_id)
        return [self.roster.require(member_id) for member_id in pool]

    def record_individual_draw(self, drawer_id: int, target_id: int) -> Tuple[Member, Member]:
        drawer = self.roster.get(drawer_id)
        target = self.roster.get(target_id)
        if drawer is None or target is None:
            raise StaleDraw("The roster changed during the draw. Please start the draw again.")
        if self.assignments.get(drawer_id) is not None or target_id in self.assignments.targets():
            raise StaleDraw("Assignments changed during the draw. Please start the draw again.")

        with self._atomic("record_individual_draw"):
            self.assignments.record(drawer_id, target_id)
            self._save_assignments()
        logger.bind(drawer_id=drawer_id, target_id=target_id).info("Individual draw recorded")
        return drawer, target

    def assignment_for(self, member_id: int) -> Optional[Member]:
        target_id = self.assignments.get(member_id)
        return self.roster.get(target_id) if target_id is not None else None

    def assignment_pairs(self) -> List[Tuple[Member, Member]]:
        pairs = []
        for member in self.roster.members:
            target = self.assignment_for(member.id)
            if target is not None:
                pairs.append((member, target))
        return pairs

    def clear_assignments(self) -> int:
        with self._atomic("clear_assignments"):
            cleared = self.assignments.clear_all()
            self._save_assignments()
        logger.bind(cleared=cleared).info("Assignments cleared")
        return cleared
