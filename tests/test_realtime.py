"""
Tests for the Real-Time Streak Updater.
"""
from datetime import timedelta

from fastapi import BackgroundTasks

from app.core.clock import today
from app.models.writing_streak import WritingStreak
from app.services import realtime
from app.services.realtime import dispatch_streak_update, run_streak_update


class TestRunStreakUpdate:
    def test_updates_streak(self, db, make_user, add_entry):
        uid = make_user()
        add_entry(uid, today(), "happy", 0.7)
        add_entry(uid, today() - timedelta(days=1), "calm", 0.5)

        result = run_streak_update(uid)

        assert result.current_streak == 2
        db.expire_all()
        assert db.get(WritingStreak, uid).current_streak == 2

    def test_never_raises(self, make_user, monkeypatch):
        uid = make_user()

        def broken(db, user_id):
            raise RuntimeError("db gone")

        monkeypatch.setattr(realtime, "update_writing_streak", broken)
        assert run_streak_update(uid) is None


class TestDispatch:
    def test_queues_background_task(self):
        tasks = BackgroundTasks()
        dispatch_streak_update(tasks, 42)
        assert len(tasks.tasks) == 1
        assert tasks.tasks[0].func is run_streak_update
        assert tasks.tasks[0].args == (42,)
