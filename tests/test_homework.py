"""Tests for homework.py — ledger CRUD and completion."""

from __future__ import annotations

import threading
from datetime import datetime

import pytest

from gamification import GamificationEngine
from homework import HomeworkLedger, display_status
from models import HomeworkItem


@pytest.fixture
def engine(store, clock):
    return GamificationEngine(store, "student-1", clock=clock)


@pytest.fixture
def ledger(store, engine, clock):
    return HomeworkLedger(store, engine, "student-1", clock=clock)


def _new(ledger, **overrides):
    data = {
        "subject": "Mathematics",
        "title": "Quadratic Equations",
        "description": "Exercises 1-10",
        "due_date": "2026-03-12",
        "difficulty": "medium",
    }
    data.update(overrides)
    return ledger.create(data)


class TestCreate:
    def test_create_assigns_id_and_pending(self, ledger, clock):
        item = _new(ledger)
        assert item.id.startswith("hw-")
        assert item.status == "pending"
        assert item.created_at == clock.now.isoformat()
        assert item.completed_at is None

    def test_create_persists(self, ledger, store):
        item = _new(ledger)
        assert store.get("homework_student-1")[0]["id"] == item.id

    def test_list_reloads_from_storage(self, ledger, store, engine, clock):
        _new(ledger)
        other = HomeworkLedger(store, engine, "student-1", clock=clock)
        _new(other, title="Essay")
        assert [h.title for h in ledger.list()] == ["Quadratic Equations", "Essay"]

    def test_invalid_difficulty(self, ledger):
        with pytest.raises(ValueError):
            _new(ledger, difficulty="impossible")

    def test_demo_key_without_user(self, store, engine, clock):
        ledger = HomeworkLedger(store, engine, clock=clock)
        _new(ledger)
        assert len(store.get("demo_homework")) == 1


class TestUpdate:
    def test_update_merges(self, ledger):
        item = _new(ledger)
        updated = ledger.update(item.id, {"status": "in_progress", "title": "Renamed"})
        assert updated.status == "in_progress"
        assert ledger.get_by_id(item.id).title == "Renamed"

    def test_id_and_created_at_are_immutable(self, ledger):
        item = _new(ledger)
        updated = ledger.update(item.id, {"id": "hijack", "created_at": "1999-01-01"})
        assert updated.id == item.id
        assert updated.created_at == item.created_at

    def test_completed_item_cannot_be_reopened(self, ledger):
        item = _new(ledger)
        ledger.complete(item.id)
        assert ledger.update(item.id, {"status": "pending"}).status == "completed"

    def test_patch_cannot_complete(self, ledger, engine):
        item = _new(ledger)
        with pytest.raises(ValueError):
            ledger.update(item.id, {"status": "completed"})
        assert ledger.get_by_id(item.id).status == "pending"
        assert engine.total_points == 0

    def test_patch_rejects_unknown_statuses(self, ledger):
        item = _new(ledger)
        for status in ("overdue", "banana", ""):
            with pytest.raises(ValueError):
                ledger.update(item.id, {"status": status, "title": "Renamed"})
        stored = ledger.get_by_id(item.id)
        assert stored.status == "pending"
        assert stored.title == "Quadratic Equations"

    def test_status_change_on_completed_item_is_ignored(self, ledger):
        item = _new(ledger)
        ledger.complete(item.id)
        assert ledger.update(item.id, {"status": "banana"}).status == "completed"

    def test_update_unknown(self, ledger):
        assert ledger.update("hw-missing", {"title": "x"}) is None


class TestComplete:
    def test_first_completion(self, ledger, engine):
        item = _new(ledger)
        result = ledger.complete(item.id)
        assert result.homework.status == "completed"
        assert result.homework.completed_at is not None
        assert result.points == 20
        assert result.total_points == 20
        assert result.level == 1
        assert result.badge_unlocked is True
        assert "first-completion" in result.new_badges
        assert engine.counter_value("homework_completed") == 1

    def test_completion_is_idempotent(self, ledger, engine):
        item = _new(ledger)
        ledger.complete(item.id)
        again = ledger.complete(item.id)
        assert again.already_completed is True
        assert again.points == 0
        assert engine.total_points == 20
        assert engine.counter_value("homework_completed") == 1

    def test_badge_unlocked_only_at_milestones(self, ledger):
        flags = []
        for i in range(5):
            item = _new(ledger, title=f"hw {i}", due_date="2026-04-30")
            flags.append(ledger.complete(item.id).badge_unlocked)
            if i < 4:
                assert "five-completions" not in ledger.engine.earned_ids()
        assert flags == [True, False, False, False, True]
        assert "five-completions" in ledger.engine.earned_ids()

    def test_early_completion_counts(self, ledger, engine):
        item = _new(ledger, due_date="2026-03-20")
        ledger.complete(item.id)
        assert engine.counter_value("early_completions") == 1

    def test_late_completion_is_not_early(self, ledger, engine):
        item = _new(ledger, due_date="2026-03-01")
        ledger.complete(item.id)
        assert engine.counter_value("early_completions") == 0

    def test_perfect_week(self, ledger, engine):
        a = _new(ledger, due_date="2026-03-12")
        b = _new(ledger, due_date="2026-03-13")
        _new(ledger, due_date="2026-03-25")
        ledger.complete(a.id)
        assert "perfect-week" not in engine.earned_ids()
        result = ledger.complete(b.id)
        assert "perfect-week" in result.new_badges

    def test_complete_unknown(self, ledger):
        assert ledger.complete("hw-missing") is None


class TestDeleteAndSummary:
    def test_delete(self, ledger):
        item = _new(ledger)
        assert ledger.delete(item.id) is True
        assert ledger.get_by_id(item.id) is None
        assert ledger.delete(item.id) is False

    def test_summary(self, ledger, clock):
        done = _new(ledger)
        _new(ledger, due_date="2026-03-01")
        _new(ledger, due_date="2026-03-30")
        ledger.complete(done.id)
        summary = ledger.summary()
        assert summary == {"total": 3, "completed": 1, "due": 1, "overdue": 1, "completed_today": 1}


class TestMalformedStorage:
    def test_collection_of_wrong_type_reads_empty(self, ledger, store):
        store.set("homework_student-1", {"hw-1": {"title": "not a list"}})
        assert ledger.list() == []
        item = _new(ledger)
        assert [h.id for h in ledger.list()] == [item.id]

    def test_bad_entries_are_skipped(self, ledger, store):
        good = _new(ledger)
        raw = store.get("homework_student-1")
        store.set("homework_student-1", raw + ["garbage", 42, {"title": "no id"}])
        assert [h.id for h in ledger.list()] == [good.id]
        assert ledger.complete(good.id).points == 20


class TestConcurrency:
    def _run_together(self, *targets):
        threads = [threading.Thread(target=t) for t in targets]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

    def test_overlapping_completions_award_once(self, rendezvous_store, clock):
        store = rendezvous_store
        engine = GamificationEngine(store, "student-1", clock=clock)
        first = HomeworkLedger(store, engine, "student-1", clock=clock)
        second = HomeworkLedger(store, engine, "student-1", clock=clock)
        item = _new(first)
        store.medium.arm(store._key(first.storage_key))

        results = []
        self._run_together(
            lambda: results.append(first.complete(item.id)),
            lambda: results.append(second.complete(item.id)),
        )

        assert sorted(r.points for r in results) == [0, 20]
        assert engine.total_points == 20
        assert engine.counter_value("homework_completed") == 1

    def test_overlapping_creates_keep_both(self, rendezvous_store, engine, clock):
        store = rendezvous_store
        ledger = HomeworkLedger(store, engine, "student-1", clock=clock)
        store.medium.arm(store._key(ledger.storage_key))

        self._run_together(
            lambda: _new(ledger, title="A"),
            lambda: _new(ledger, title="B"),
        )

        assert sorted(h.title for h in ledger.list()) == ["A", "B"]


class TestDisplayStatus:
    def _item(self, status, due):
        return HomeworkItem(id="hw-1", subject="s", title="t", description="", due_date=due,
                            difficulty="easy", status=status, created_at="2026-03-01T00:00:00")

    def test_overdue_is_derived(self):
        now = datetime(2026, 3, 10, 12)
        assert display_status(self._item("pending", "2026-03-09"), now) == "overdue"
        assert display_status(self._item("in_progress", "2026-03-09"), now) == "overdue"

    def test_due_today_is_not_overdue(self):
        now = datetime(2026, 3, 10, 23, 0)
        assert display_status(self._item("pending", "2026-03-10"), now) == "pending"

    def test_completed_never_overdue(self):
        now = datetime(2026, 3, 10, 12)
        assert display_status(self._item("completed", "2026-01-01"), now) == "completed"
