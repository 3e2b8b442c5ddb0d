import pytest

from roster_santa.services.draw_flow import DrawCoordinator, SlotStatus
from roster_santa.services.errors import (
    DrawInProgress,
    InvalidAssignment,
    NoAvailableCandidates,
    NotFound,
    StaleDraw,
)
from roster_santa.services.store import SantaStore


class MemoryBlobs:
    def __init__(self):
        self.values = {}

    def load(self, key):
        return self.values.get(key)

    def save(self, key, value):
        self.values[key] = value


def build_store(size=5):
    santa = SantaStore(MemoryBlobs(), seed=1)
    santa.load()
    for index in range(1, size + 1):
        santa.create_member(f"E{index}", f"Member {index}")
    return santa


def test_only_one_draw_at_a_time():
    draws = DrawCoordinator(build_store(), seed=3)
    draw = draws.request_individual_draw(1)
    with pytest.raises(DrawInProgress):
        draws.request_bulk_draw()
    with pytest.raises(DrawInProgress):
        draws.request_individual_draw(2)
    assert draws.cancel(draw.token)
    assert not draws.busy
    draws.request_bulk_draw()
    assert draws.busy


def test_failed_request_does_not_hold_the_lock():
    draws = DrawCoordinator(build_store(), seed=3)
    with pytest.raises(NotFound):
        draws.request_individual_draw(42)
    assert not draws.busy


def test_slots_cover_roster_with_statuses():
    santa = build_store(4)
    santa.record_individual_draw(2, 3)
    draws = DrawCoordinator(santa, seed=3)

    draw = draws.request_individual_draw(1)
    statuses = {slot.member.id: slot.status for slot in draw.slots}
    assert statuses == {
        1: SlotStatus.OWN,
        2: SlotStatus.AVAILABLE,
        3: SlotStatus.ASSIGNED,
        4: SlotStatus.AVAILABLE,
    }
    assert [member.id for member in draw.pool] == [2, 4]
    assert [slot.pool_index for slot in draw.slots if slot.status == SlotStatus.AVAILABLE] == [0, 1]


def test_selected_slot_does_not_influence_target():
    targets = set()
    for pool_index in range(4):
        draws = DrawCoordinator(build_store(), seed=17)
        draw = draws.request_individual_draw(1)
        targets.add(draws.select_from_pool(draw.token, pool_index).id)
    assert len(targets) == 1


def test_individual_draw_commits_assignment():
    santa = build_store()
    draws = DrawCoordinator(santa, seed=5)
    draw = draws.request_individual_draw(2)
    target = draws.select_from_pool(draw.token, 0)
    drawer, committed = draws.commit(draw.token)

    assert drawer.id == 2
    assert committed == target
    assert target.id != 2
    assert santa.assignment_for(2) == target
    assert not draws.busy


def test_selection_rules():
    draws = DrawCoordinator(build_store(3), seed=5)
    draw = draws.request_individual_draw(1)
    with pytest.raises(InvalidAssignment):
        draws.commit(draw.token)
    with pytest.raises(InvalidAssignment):
        draws.select_from_pool(draw.token, 2)
    draws.select_from_pool(draw.token, 1)
    with pytest.raises(InvalidAssignment):
        draws.select_from_pool(draw.token, 0)


def test_cancelled_draw_cannot_commit():
    santa = build_store()
    draws = DrawCoordinator(santa, seed=5)
    draw = draws.request_individual_draw(1)
    draws.select_from_pool(draw.token, 0)
    assert draws.cancel(draw.token)
    assert not draws.cancel(draw.token)

    with pytest.raises(StaleDraw):
        draws.commit(draw.token)
    assert santa.assignment_for(1) is None


def test_cancel_ignores_other_tokens():
    draws = DrawCoordinator(build_store(), seed=5)
    draw = draws.request_individual_draw(1)
    assert draws.is_current(draw.token)
    assert not draws.is_current("deadbeef")
    assert not draws.cancel("deadbeef")
    assert draws.busy
    assert draws.cancel(draw.token)
    assert not draws.is_current(draw.token)


def test_member_deleted_during_draw():
    santa = build_store()
    draws = DrawCoordinator(santa, seed=5)
    draw = draws.request_individual_draw(1)
    draws.select_from_pool(draw.token, 0)
    santa.delete_member(1)

    with pytest.raises(StaleDraw):
        draws.commit(draw.token)
    assert not draws.busy
    assert len(santa.assignments) == 0


def test_sequence_of_individual_draws_stays_valid():
    santa = build_store(8)
    draws = DrawCoordinator(santa, seed=21)
    for member in santa.roster.members:
        try:
            draw = draws.request_individual_draw(member.id)
        except NoAvailableCandidates:
            continue
        draws.select_from_pool(draw.token, len(draw.pool) - 1)
        draws.commit(draw.token)

    mapping = santa.assignments.as_dict()
    assert len(mapping) >= 7
    assert all(giver != target for giver, target in mapping.items())
    assert len(set(mapping.values())) == len(mapping)


def test_member_cannot_draw_twice():
    santa = build_store()
    draws = DrawCoordinator(santa, seed=5)
    draw = draws.request_individual_draw(3)
    draws.select_from_pool(draw.token, 0)
    draws.commit(draw.token)

    with pytest.raises(InvalidAssignment):
        draws.request_individual_draw(3)
    assert not draws.busy


def test_no_candidates_left():
    santa = build_store(3)
    santa.record_individual_draw(2, 3)
    santa.record_individual_draw(3, 2)
    draws = DrawCoordinator(santa, seed=5)
    with pytest.raises(NoAvailableCandidates):
        draws.request_individual_draw(1)


def test_bulk_draw_flow():
    santa = build_store(6)
    draws = DrawCoordinator(santa, seed=9)
    token = draws.request_bulk_draw()
    pairs = draws.complete_bulk_draw(token)
    assert len(pairs) == 6
    assert all(giver.id != target.id for giver, target in pairs)
    assert not draws.busy


def test_cancelled_bulk_draw_is_stale():
    santa = build_store(3)
    draws = DrawCoordinator(santa, seed=9)
    token = draws.request_bulk_draw()
    draws.cancel(token)
    with pytest.raises(StaleDraw):
        draws.complete_bulk_draw(token)
    assert santa.assignment_pairs() == []
