import json

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from roster_santa.db import SqlBlobStore, create_schema, session_scope
from roster_santa.services.errors import DuplicateIdentifier, InsufficientMembers, StaleDraw
from roster_santa.services.importer import CandidateRow
from roster_santa.services.store import (
    ASSIGNMENTS_KEY,
    COUNTER_KEY,
    ROSTER_KEY,
    SantaStore,
)


def create_blob_store():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_schema(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    return SqlBlobStore(lambda: session_scope(factory))


def load_store(blobs, seed=1):
    santa = SantaStore(blobs, seed=seed)
    santa.load()
    return santa


def test_state_survives_restart():
    blobs = create_blob_store()
    santa = load_store(blobs)
    santa.create_member("E1", "Alice", "books")
    santa.create_member("E2", "Bob")
    santa.create_member("E3", "Carol")
    santa.bulk_draw(seed=5)
    santa.close()

    reloaded = load_store(blobs)
    assert reloaded.roster.members == santa.roster.members
    assert reloaded.roster.next_id == 4
    assert reloaded.assignments.as_dict() == santa.assignments.as_dict()


def test_empty_database_starts_empty():
    santa = load_store(create_blob_store())
    assert len(santa.roster) == 0
    assert santa.roster.next_id == 1
    assert santa.assignment_pairs() == []


def test_malformed_blobs_are_discarded():
    blobs = create_blob_store()
    blobs.save(ROSTER_KEY, "{not json")
    blobs.save(COUNTER_KEY, json.dumps("seven"))
    blobs.save(ASSIGNMENTS_KEY, json.dumps([1, 2]))

    santa = load_store(blobs)
    assert len(santa.roster) == 0
    assert santa.roster.next_id == 1
    assert len(santa.assignments) == 0
    assert json.loads(blobs.load(ROSTER_KEY)) == []
    assert json.loads(blobs.load(COUNTER_KEY)) == 1
    assert json.loads(blobs.load(ASSIGNMENTS_KEY)) == {}


def test_load_cleans_stale_assignments():
    blobs = create_blob_store()
    blobs.save(
        ROSTER_KEY,
        json.dumps(
            [
                {"id": 1, "external_code": "E1", "display_name": "Alice"},
                {"id": 2, "external_code": "E2", "display_name": "Bob"},
            ]
        ),
    )
    blobs.save(ASSIGNMENTS_KEY, json.dumps({"1": 2, "2": 9, "3": 1}))

    santa = load_store(blobs)
    assert santa.assignments.as_dict() == {1: 2}
    assert json.loads(blobs.load(ASSIGNMENTS_KEY)) == {"1": 2}


def test_counter_is_never_persisted_lower():
    blobs = create_blob_store()
    blobs.save(COUNTER_KEY, json.dumps(50))
    santa = load_store(blobs)
    member = santa.create_member("E1", "Alice")
    assert member.id == 50
    assert json.loads(blobs.load(COUNTER_KEY)) == 51

    santa.delete_member(member.id)
    santa.close()
    assert json.loads(blobs.load(COUNTER_KEY)) == 51


def test_delete_cascades_to_persisted_assignments():
    blobs = create_blob_store()
    santa = load_store(blobs)
    for code, name in [("E1", "Alice"), ("E2", "Bob"), ("E3", "Carol")]:
        santa.create_member(code, name)
    santa.bulk_draw(seed=3)

    santa.delete_member(2)
    persisted = json.loads(blobs.load(ASSIGNMENTS_KEY))
    assert "2" not in persisted
    assert 2 not in persisted.values()
    assert len(persisted) == 1


def test_bulk_draw_two_members_swaps():
    santa = load_store(create_blob_store())
    alice = santa.create_member("E1", "Alice")
    bob = santa.create_member("E2", "Bob")
    pairs = santa.bulk_draw()
    assert pairs == [(alice, bob), (bob, alice)]


def test_bulk_draw_needs_two_members():
    santa = load_store(create_blob_store())
    santa.create_member("E1", "Alice")
    with pytest.raises(InsufficientMembers):
        santa.bulk_draw()
    assert santa.assignment_pairs() == []


def test_bulk_draw_replaces_previous_assignments():
    santa = load_store(create_blob_store())
    for code, name in [("E1", "Alice"), ("E2", "Bob"), ("E3", "Carol")]:
        santa.create_member(code, name)
    santa.record_individual_draw(1, 3)
    pairs = santa.bulk_draw(seed=11)
    assert len(pairs) == 3
    assert sorted(target.id for _, target in pairs) == [1, 2, 3]


def test_record_individual_draw_rejects_stale_state():
    santa = load_store(create_blob_store())
    for code, name in [("E1", "Alice"), ("E2", "Bob"), ("E3", "Carol")]:
        santa.create_member(code, name)

    santa.record_individual_draw(1, 2)
    with pytest.raises(StaleDraw):
        santa.record_individual_draw(3, 2)
    with pytest.raises(StaleDraw):
        santa.record_individual_draw(1, 3)

    santa.delete_member(3)
    with pytest.raises(StaleDraw):
        santa.record_individual_draw(2, 3)
    assert santa.assignments.as_dict() == {1: 2}


def test_candidate_pool_excludes_self_and_taken_targets():
    santa = load_store(create_blob_store())
    for code, name in [("E1", "Alice"), ("E2", "Bob"), ("E3", "Carol"), ("E4", "Dave")]:
        santa.create_member(code, name)
    santa.record_individual_draw(2, 3)
    assert [member.id for member in santa.candidate_pool(1)] == [2, 4]


def test_import_confirm_persists_members():
    blobs = create_blob_store()
    santa = load_store(blobs)
    santa.create_member("E1", "Alice")

    result = santa.reconcile_import(
        [
            CandidateRow(row=2, external_code="e1", display_name="Dup"),
            CandidateRow(row=3, external_code="E2", display_name="Bob"),
        ]
    )
    assert len(santa.roster) == 1
    santa.confirm_import(result.accepted)

    reloaded = load_store(blobs)
    assert [member.external_code for member in reloaded.roster.members] == ["E1", "E2"]
    assert reloaded.roster.next_id == 3


def test_clear_assignments_reports_count():
    santa = load_store(create_blob_store())
    santa.create_member("E1", "Alice")
    santa.create_member("E2", "Bob")
    santa.bulk_draw()
    assert santa.clear_assignments() == 2
    assert santa.clear_assignments() == 0
    assert santa.assignment_for(1) is None


class FailingBlobs:
    """In-memory blobs whose writes to ``failing_keys`` raise."""

    def __init__(self):
        self.values = {}
        self.failing_keys = set()
        self.writes = 0

    def load(self, key):
        return self.values.get(key)

    def save(self, key, value):
        if key in self.failing_keys:
            raise OSError(f"cannot write {key}")
        self.writes += 1
        self.values[key] = value


def test_failed_write_rolls_back_create():
    blobs = FailingBlobs()
    santa = load_store(blobs)
    blobs.failing_keys = {ROSTER_KEY}

    with pytest.raises(OSError):
        santa.create_member("E1", "Alice")
    assert len(santa.roster) == 0
    assert santa.roster.next_id == 1

    blobs.failing_keys = set()
    assert santa.create_member("E1", "Alice").id == 1


def test_partial_write_is_undone_in_storage():
    blobs = FailingBlobs()
    santa = load_store(blobs)
    blobs.failing_keys = {COUNTER_KEY}

    with pytest.raises(OSError):
        santa.create_member("E1", "Alice")
    assert json.loads(blobs.load(ROSTER_KEY)) == []

    blobs.failing_keys = set()
    assert len(load_store(blobs).roster) == 0


def test_failed_delete_keeps_member_and_assignments():
    blobs = FailingBlobs()
    santa = load_store(blobs)
    for code, name in [("E1", "Alice"), ("E2", "Bob"), ("E3", "Carol")]:
        santa.create_member(code, name)
    santa.bulk_draw(seed=4)
    before = santa.assignments.as_dict()
    blobs.failing_keys = {ASSIGNMENTS_KEY}

    with pytest.raises(OSError):
        santa.delete_member(2)
    assert 2 in santa.roster
    assert santa.assignments.as_dict() == before
    assert len(json.loads(blobs.load(ROSTER_KEY))) == 3


def test_failed_draw_and_clear_keep_assignments():
    blobs = FailingBlobs()
    santa = load_store(blobs)
    for code, name in [("E1", "Alice"), ("E2", "Bob"), ("E3", "Carol")]:
        santa.create_member(code, name)
    santa.record_individual_draw(1, 2)
    blobs.failing_keys = {ASSIGNMENTS_KEY}

    with pytest.raises(OSError):
        santa.bulk_draw(seed=8)
    with pytest.raises(OSError):
        santa.clear_assignments()
    with pytest.raises(OSError):
        santa.record_individual_draw(2, 3)
    assert santa.assignments.as_dict() == {1: 2}


def test_rejected_operation_writes_nothing():
    blobs = FailingBlobs()
    santa = load_store(blobs)
    santa.create_member("E1", "Alice")
    writes = blobs.writes

    with pytest.raises(DuplicateIdentifier):
        santa.create_member("e1", "Again")
    assert blobs.writes == writes
