from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from timeledger.core.errors import ConflictError, NotFoundError
from timeledger.core.roles import Caller, Role
from timeledger.database import SessionLocal
from timeledger.models.time_entry import TimeEntry
from timeledger.services.entities import TimeEntryRecord
from timeledger.services.project_directory import SqlProjectDirectory
from timeledger.services.sql_repository import SqlTimeEntryRepository
from timeledger.services.time_ledger import TimeEntryLedger

ALICE = Caller(user_id="alice", company_id=1)
MANAGER = Caller(user_id="mgr", company_id=1, role=Role.MANAGER)


def _ledger(db, clock):
    return TimeEntryLedger(SqlTimeEntryRepository(db), clock=clock, projects=SqlProjectDirectory(db))


def _run(clock, fn):
    db = SessionLocal()
    try:
        result = fn(_ledger(db, clock))
        db.commit()
        return result
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def test_timer_lifecycle_round_trips_through_database(clock):
    entry = _run(clock, lambda ledger: ledger.start(ALICE, tags=["b", "a"], rate="42.50", description="API work"))

    clock.advance(600)
    _run(clock, lambda ledger: ledger.pause(ALICE, entry.time_entry_id))
    clock.advance(120)
    _run(clock, lambda ledger: ledger.resume(ALICE, entry.time_entry_id))
    clock.advance(300)
    _run(clock, lambda ledger: ledger.pause(ALICE, entry.time_entry_id, break_type="lunch"))
    clock.advance(60)
    stopped = _run(clock, lambda ledger: ledger.stop(ALICE, entry.time_entry_id))

    assert stopped.status == "stopped"
    assert stopped.duration == 1080

    loaded = _run(clock, lambda ledger: ledger.get(ALICE, entry.time_entry_id))
    assert loaded.start_time == datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
    assert loaded.start_time.tzinfo is not None
    assert loaded.duration == 1080
    assert loaded.tags == ["a", "b"]
    assert loaded.rate == Decimal("42.50")
    assert loaded.description == "API work"
    assert [(b.type, b.duration) for b in loaded.breaks] == [("short", 120), ("lunch", 60)]
    assert loaded.version == stopped.version


def test_second_open_timer_blocked_through_database(clock):
    _run(clock, lambda ledger: ledger.start(ALICE))

    with pytest.raises(ConflictError):
        _run(clock, lambda ledger: ledger.start(ALICE))

    db = SessionLocal()
    try:
        count = db.query(TimeEntry).filter(TimeEntry.user_id == "alice").count()
    finally:
        db.close()
    assert count == 1


def _open_row(user_id="alice"):
    return TimeEntry(
        time_entry_id=str(uuid4()),
        company_id=1,
        user_id=user_id,
        start_time=datetime.utcnow(),
        status="running",
        tags=[],
    )


def test_unique_open_timer_index_prevents_duplicates():
    db1 = SessionLocal()
    db2 = SessionLocal()

    try:
        db1.add(_open_row())
        db2.add(_open_row())

        db1.commit()

        with pytest.raises(IntegrityError):
            db2.commit()
    finally:
        db1.rollback()
        db2.rollback()
        db1.close()
        db2.close()


def test_repository_maps_open_timer_race_to_conflict(clock):
    first = _run(clock, lambda ledger: ledger.start(ALICE))

    db = SessionLocal()
    try:
        repo = SqlTimeEntryRepository(db)
        racer = TimeEntryRecord(
            time_entry_id=str(uuid4()),
            user_id="alice",
            company_id=1,
            start_time=clock(),
            status="paused",
        )
        # plain add skips the pre-check, leaving the index to catch it
        with pytest.raises(ConflictError):
            repo.add(racer)
    finally:
        db.rollback()
        db.close()

    assert _run(clock, lambda ledger: ledger.current(ALICE)).time_entry_id == first.time_entry_id


def test_stale_write_is_a_conflict(clock):
    entry = _run(clock, lambda ledger: ledger.start(ALICE))

    db_stale = SessionLocal()
    try:
        stale = SqlTimeEntryRepository(db_stale).get(entry.time_entry_id)

        clock.advance(60)
        _run(clock, lambda ledger: ledger.stop(ALICE, entry.time_entry_id))

        stale.description = "late write"
        with pytest.raises(ConflictError):
            SqlTimeEntryRepository(db_stale).save(stale)
    finally:
        db_stale.rollback()
        db_stale.close()

    loaded = _run(clock, lambda ledger: ledger.get(ALICE, entry.time_entry_id))
    assert loaded.status == "stopped"
    assert loaded.description is None


def test_save_of_deleted_entry_is_not_found(clock):
    entry = _run(clock, lambda ledger: ledger.create_manual(
        ALICE,
        start_time=datetime(2024, 1, 1, 9, tzinfo=timezone.utc),
        end_time=datetime(2024, 1, 1, 10, tzinfo=timezone.utc),
    ))
    _run(clock, lambda ledger: ledger.delete(ALICE, entry.time_entry_id))

    db = SessionLocal()
    try:
        with pytest.raises(NotFoundError):
            SqlTimeEntryRepository(db).save(entry)
    finally:
        db.rollback()
        db.close()


def test_overlap_and_period_queries(clock):
    def _manual(start_hour, end_hour):
        return lambda ledger: ledger.create_manual(
            ALICE,
            start_time=datetime(2024, 1, 2, start_hour, tzinfo=timezone.utc),
            end_time=datetime(2024, 1, 2, end_hour, tzinfo=timezone.utc),
        )

    morning = _run(clock, _manual(9, 12))
    afternoon = _run(clock, _manual(13, 17))

    with pytest.raises(ConflictError):
        _run(clock, _manual(11, 14))
    _run(clock, _manual(12, 13))

    db = SessionLocal()
    try:
        repo = SqlTimeEntryRepository(db)
        hits = repo.find_overlapping(
            1,
            "alice",
            datetime(2024, 1, 2, 10, tzinfo=timezone.utc),
            datetime(2024, 1, 2, 14, tzinfo=timezone.utc),
            exclude_id=afternoon.time_entry_id,
        )
        in_period = repo.find_for_period(
            1,
            datetime(2024, 1, 2, 9, tzinfo=timezone.utc),
            datetime(2024, 1, 2, 13, tzinfo=timezone.utc),
        )
    finally:
        db.close()

    assert [h.time_entry_id for h in hits][0] == morning.time_entry_id
    assert len(hits) == 2
    assert len(in_period) == 2


def test_start_rejects_project_from_other_company(clock, project_factory, task_factory):
    foreign = project_factory(company_id=2)
    own = project_factory(company_id=1)
    own_task = task_factory(company_id=1, project_id=own.project_id)

    with pytest.raises(NotFoundError):
        _run(clock, lambda ledger: ledger.start(ALICE, project_id=foreign.project_id))

    entry = _run(clock, lambda ledger: ledger.start(ALICE, project_id=own.project_id, task_id=own_task.task_id))
    assert entry.task_id == own_task.task_id


def _manual_on(day, start_hour, end_hour):
    return lambda ledger: ledger.create_manual(
        ALICE,
        start_time=datetime(2024, 1, day, start_hour, tzinfo=timezone.utc),
        end_time=datetime(2024, 1, day, end_hour, tzinfo=timezone.utc),
    )


def test_overlap_committed_after_check_is_still_a_conflict(clock):
    db = SessionLocal()
    try:
        repo = SqlTimeEntryRepository(db)
        start = datetime(2024, 1, 3, 9, tzinfo=timezone.utc)
        end = datetime(2024, 1, 3, 17, tzinfo=timezone.utc)
        assert repo.find_overlapping(1, "alice", start, end) == []

        # another request lands an overlapping entry in between
        _run(clock, _manual_on(3, 12, 13))

        late = TimeEntryRecord(
            time_entry_id=str(uuid4()),
            user_id="alice",
            company_id=1,
            start_time=start,
            end_time=end,
            duration=8 * 3600,
            status="stopped",
            manual=True,
            source="manual",
        )
        with pytest.raises(ConflictError):
            repo.add_if_no_overlap(late)
    finally:
        db.rollback()
        db.close()

    db = SessionLocal()
    try:
        count = db.query(TimeEntry).filter(TimeEntry.user_id == "alice").count()
    finally:
        db.close()
    assert count == 1


def test_moved_entry_overlap_committed_after_check_is_a_conflict(clock):
    entry = _run(clock, _manual_on(4, 9, 10))

    db = SessionLocal()
    try:
        repo = SqlTimeEntryRepository(db)
        moved = repo.get(entry.time_entry_id)
        moved.start_time = datetime(2024, 1, 4, 11, tzinfo=timezone.utc)
        moved.end_time = datetime(2024, 1, 4, 12, tzinfo=timezone.utc)
        moved.duration = 3600
        assert repo.find_overlapping(
            1, "alice", moved.start_time, moved.end_time, exclude_id=moved.time_entry_id
        ) == []

        _run(clock, _manual_on(4, 11, 13))

        with pytest.raises(ConflictError):
            repo.save_if_no_overlap(moved)
    finally:
        db.rollback()
        db.close()

    loaded = _run(clock, lambda ledger: ledger.get(ALICE, entry.time_entry_id))
    assert loaded.start_time == datetime(2024, 1, 4, 9, tzinfo=timezone.utc)


def test_approve_many_keeps_going_after_a_stale_entry(clock):
    stale = _run(clock, _manual_on(5, 9, 10))
    fresh = _run(clock, _manual_on(5, 11, 12))

    db = SessionLocal()
    try:
        ledger = _ledger(db, clock)
        # loads the row into this session before another request edits it
        SqlTimeEntryRepository(db).get(stale.time_entry_id)
        _run(clock, lambda other: other.update(ALICE, stale.time_entry_id, {"description": "corrected"}))

        result = ledger.approve_many(MANAGER, [stale.time_entry_id, fresh.time_entry_id])
        db.commit()
    finally:
        db.close()

    assert result["approved"] == [fresh.time_entry_id]
    assert result["failed"] == [{"id": stale.time_entry_id, "reason": "Time entry was modified concurrently"}]

    reloaded_stale = _run(clock, lambda ledger: ledger.get(MANAGER, stale.time_entry_id))
    reloaded_fresh = _run(clock, lambda ledger: ledger.get(MANAGER, fresh.time_entry_id))
    assert reloaded_stale.approval.status == "pending"
    assert reloaded_stale.description == "corrected"
    assert reloaded_fresh.approval.status == "approved"
