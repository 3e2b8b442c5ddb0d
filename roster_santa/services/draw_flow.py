from __future__ import annotations

import enum
import random
import secrets
from dataclasses import dataclass
from typing import List, Optional, Tuple

from loguru import logger

from roster_santa.services.assignment import draw_target
from roster_santa.services.errors import (
    DrawInProgress,
    InvalidAssignment,
    NoAvailableCandidates,
    StaleDraw,
)
from roster_santa.services.roster import Member
from roster_santa.services.store import SantaStore


class SlotStatus(str, enum.Enum):
    OWN = "own"
    ASSIGNED = "assigned"
    AVAILABLE = "available"


@dataclass(frozen=True)
class Slot:
    member: Member
    status: SlotStatus
    pool_index: Optional[int] = None


@dataclass
class IndividualDraw:
    token: str
    drawer: Member
    pool: List[Member]
    slots: List[Slot]
    selected_index: Optional[int] = None
    target: Optional[Member] = None


@dataclass(frozen=True)
class BulkDraw:
    token: str


class DrawCoordinator:
    """Runs one draw at a time on behalf of the bot.

    The store computes and records atomically; the coordinator only keeps
    track of the draw that is waiting on the user (or on a cosmetic delay)
    so it can be committed or torn down later.
    """

    def __init__(self, store: SantaStore, seed: Optional[int] = None) -> None:
        self.store = store
        self.rng = random.Random(seed) if seed is not None else random.SystemRandom()
        self._current: Optional[object] = None

    @property
    def busy(self) -> bool:
        return self._current is not None

    def _claim(self) -> str:
        if self._current is not None:
            raise DrawInProgress()
        return secrets.token_hex(4)

    def is_current(self, token: str) -> bool:
        return getattr(self._current, "token", None) == token

    def cancel(self, token: Optional[str] = None) -> bool:
        current = self._current
        if current is None:
            return False
        if token is not None and getattr(current, "token", None) != token:
            return False
        self._current = None
        logger.bind(token=getattr(current, "token", None)).debug("Draw cancelled")
        return True

    def request_bulk_draw(self) -> str:
        token = self._claim()
        self._current = BulkDraw(token=token)
        return token

    def complete_bulk_draw(self, token: str) -> List[Tuple[Member, Member]]:
        current = self._current
        if not isinstance(current, BulkDraw) or current.token != token:
            raise StaleDraw("This draw was cancelled. Please start it again.")
        try:
            return self.store.bulk_draw(seed=self.rng.randint(1, 2**31 - 1))
        finally:
            self._current = None

    def request_individual_draw(self, member_id: int) -> IndividualDraw:
        token = self._claim()
        drawer = self.store.roster.require(member_id)
        if self.store.assignments.get(member_id) is not None:
            raise InvalidAssignment(f"{drawer.display_name} already has a Secret Santa assignment.")

        pool = self.store.candidate_pool(member_id)
        if not pool:
            raise NoAvailableCandidates(member_id)

        pool_positions = {member.id: index for index, member in enumerate(pool)}
        taken = self.store.assignments.targets()
        slots = []
        for member in self.store.roster.members:
            if member.id == member_id:
                slots.append(Slot(member=member, status=SlotStatus.OWN))
            elif member.id in taken:
                slots.append(Slot(member=member, status=SlotStatus.ASSIGNED))
            else:
                slots.append(
                    Slot(member=member, status=SlotStatus.AVAILABLE, pool_index=pool_positions[member.id])
                )

        draw = IndividualDraw(token=token, drawer=drawer, pool=pool, slots=slots)
        self._current = draw
        logger.bind(token=token, drawer_id=member_id, pool=len(pool)).info("Individual draw started")
        return draw

    def _individual(self, token: str) -> IndividualDraw:
        current = self._current
        if not isinstance(current, IndividualDraw) or current.token != token:
            raise StaleDraw("This draw is no longer active. Please start it again.")
        return current

    def select_from_pool(self, token: str, pool_index: int) -> Member:
        """Pick the drawer's target when a slot is chosen.

        ``pool_index`` only identifies the slot that was clicked; the target
        is drawn uniformly from the whole pool at this moment.
        """
        draw = self._individual(token)
        if draw.selected_index is not None:
            raise InvalidAssignment("A slot was already selected for this draw.")
        if not 0 <= pool_index < len(draw.pool):
            raise InvalidAssignment("That slot is not available.")

        target_id = draw_target([member.id for member in draw.pool], draw.drawer.id, self.rng)
        draw.selected_index = pool_index
        draw.target = next(member for member in draw.pool if member.id == target_id)
        return draw.target

    def commit(self, token: str) -> Tuple[Member, Member]:
        draw = self._individual(token)
        if draw.target is None:
            raise InvalidAssignment("Pick a slot before completing the draw.")
        try:
            return self.store.record_individual_draw(draw.drawer.id, draw.target.id)
        finally:
            self._current = None
