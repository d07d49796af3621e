"""
Integration tests for API endpoints using a SQLite DB.
"""
from datetime import date, timedelta

import pytest

from app.core.clock import today
from app.models.daily_mood_aggregate import DailyMoodAggregate
from app.models.mood_insight import MoodInsight
from app.models.mood_trend_cache import MoodTrendCache
from app.models.writing_streak import WritingStreak
from app.services.daily_aggregates import compute_daily_aggregate
from app.services.insights import TemplateNarrator, generate_mood_insight
from app.services.tag_mood import compute_tag_mood_stats
from app.services.trends import build_trend_cache


def _base(uid):
    return f"/analytics/users/{uid}"


class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"


class TestUnknownUser:
    @pytest.mark.parametrize("path", ["today", "happiest-day", "lowest-day", "trend", "tags", "streaks", "mood-highlights", "insights"])
    def test_404_envelope(self, client, path):
        r = client.get(f"/analytics/users/999999/{path}")
        assert r.status_code == 404
        body = r.json()
        assert body["code"] == "USER_NOT_FOUND"
        assert body["details"]["user_id"] == 999999


class TestToday:
    def test_computed_when_missing(self, client, make_user, add_entry):
        uid = make_user()
        add_entry(uid, today(), "happy", 0.8)
        add_entry(uid, today(), None, 0.4)

        r = client.get(f"{_base(uid)}/today")
        assert r.status_code == 200
        body = r.json()
        assert body["date"] == str(today())
        assert body["entries_count"] == 2
        assert body["avg_mood_score"] == pytest.approx(0.6)
        assert body["mood_counts"] == {"happy": 1, "unknown": 1}

    def test_stored_row_used(self, client, db, make_user, add_entry):
        uid = make_user()
        add_entry(uid, today(), "sad", 0.2)
        compute_daily_aggregate(db, uid, today())

        body = client.get(f"{_base(uid)}/today").json()
        assert body["dominant_mood"] == "sad"
        assert body["mood_counts"] == {"sad": 1}

    def test_malformed_row_recomputed(self, client, db, make_user, add_entry):
        uid = make_user()
        add_entry(uid, today(), "calm", 0.5)
        compute_daily_aggregate(db, uid, today())
        row = db.query(DailyMoodAggregate).filter(DailyMoodAggregate.user_id == uid).one()
        row.mood_counts = "{oops"
        db.commit()

        r = client.get(f"{_base(uid)}/today")
        assert r.status_code == 200
        assert r.json()["mood_counts"] == {"calm": 1}

    def test_no_entries(self, client, make_user):
        body = client.get(f"{_base(make_user())}/today").json()
        assert body["entries_count"] == 0
        assert body["avg_mood_score"] is None
        assert body["mood_counts"] is None


class TestExtremeDays:
    def test_happiest_and_lowest(self, client, db, make_user, add_entry):
        uid = make_user()
        days = [date(2026, 2, 1), date(2026, 2, 2), date(2026, 2, 3)]
        for d, score in zip(days, (0.5, 0.9, 0.1)):
            add_entry(uid, d, "calm", score)
            compute_daily_aggregate(db, uid, d)

        happiest = client.get(f"{_base(uid)}/happiest-day").json()["data"]
        lowest = client.get(f"{_base(uid)}/lowest-day").json()["data"]
        assert happiest["date"] == "2026-02-02"
        assert lowest["date"] == "2026-02-03"

    def test_none_without_aggregates(self, client, make_user):
        assert client.get(f"{_base(make_user())}/happiest-day").json() == {"data": None}


class TestTrend:
    def test_from_to_computed(self, client, make_user, add_entry):
        uid = make_user()
        add_entry(uid, date(2026, 3, 2), "happy", 0.8)
        r = client.get(f"{_base(uid)}/trend", params={"from": "2026-03-01", "to": "2026-03-07"})
        assert r.status_code == 200
        body = r.json()
        assert body["cached"] is False
        assert body["data"] == [{"date": "2026-03-02", "avg": 0.8}]

    def test_range_served_from_cache(self, client, db, make_user, add_entry):
        uid = make_user()
        add_entry(uid, today(), "happy", 0.7)
        build_trend_cache(db, uid, today() - timedelta(days=6), today())

        body = client.get(f"{_base(uid)}/trend", params={"range": "7d"}).json()
        assert body["cached"] is True
        assert body["range_start"] == str(today() - timedelta(days=6))
        assert body["data"][0]["avg"] == 0.7

    def test_inverted_range(self, client, make_user):
        r = client.get(f"{_base(make_user())}/trend", params={"from": "2026-03-07", "to": "2026-03-01"})
        assert r.status_code == 422
        assert r.json()["code"] == "INVALID_DATE_RANGE"

    @pytest.mark.parametrize("value", ["abc", "0d", "7", "-3d"])
    def test_malformed_range_rejected(self, client, make_user, value):
        r = client.get(f"{_base(make_user())}/trend", params={"range": value})
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert any("range" in e["field"] for e in body["details"]["errors"])

    def test_unknown_granularity(self, client, make_user):
        r = client.get(f"{_base(make_user())}/trend", params={"granularity": "month"})
        assert r.status_code == 422
        assert r.json()["code"] == "UNSUPPORTED_GRANULARITY"

    def test_never_writes_cache(self, client, db, make_user):
        uid = make_user()
        client.get(f"{_base(uid)}/trend")
        assert db.query(MoodTrendCache).count() == 0


class TestTagsAndStreaks:
    def test_tags(self, client, db, make_user, add_entry):
        uid = make_user()
        add_entry(uid, date(2026, 4, 1), "happy", 0.9, ["work", "gym"])
        add_entry(uid, date(2026, 4, 2), "sad", 0.3, ["work"])
        compute_tag_mood_stats(db, uid)

        body = client.get(f"{_base(uid)}/tags").json()
        assert body["total"] == 2
        assert body["items"][0]["tag"] == "work"
        assert body["items"][0]["occurrences"] == 2
        assert body["items"][0]["last_seen"] == "2026-04-02"

    def test_streaks_zero_without_row(self, client, make_user):
        body = client.get(f"{_base(make_user())}/streaks").json()
        assert body == {"current_streak": 0, "longest_streak": 0, "last_written_date": None}


class TestMoodHighlights:
    def test_days_tags_and_note(self, client, db, make_user, add_entry):
        uid = make_user()
        scores = [0.2, 0.9, 0.5, 0.8, 0.6, 0.7, 0.4]
        for offset, score in enumerate(scores):
            d = today() - timedelta(days=offset)
            add_entry(uid, d, "calm", score, ["walk"] if score >= 0.7 else ["work"])
            compute_daily_aggregate(db, uid, d)
        # Outside the 30-day window.
        old = today() - timedelta(days=40)
        add_entry(uid, old, "happy", 1.0, ["once"])
        compute_daily_aggregate(db, uid, old)
        compute_tag_mood_stats(db, uid)

        r = client.get(f"{_base(uid)}/mood-highlights")
        assert r.status_code == 200
        body = r.json()
        assert body["date_to"] == str(today())
        assert body["date_from"] == str(today() - timedelta(days=29))
        assert [d["avg_mood_score"] for d in body["happiest_days"]] == [0.9, 0.8, 0.7, 0.6, 0.5]
        assert body["happiest_days"][0]["date"] == str(today() - timedelta(days=1))
        assert [t["tag"] for t in body["top_positive_tags"]] == ["walk", "work"]
        assert body["top_positive_tags"][0]["occurrences"] == 3
        assert body["note"].startswith('You feel best when writing about "walk" (80% average mood).')

    def test_single_use_tags_excluded(self, client, db, make_user, add_entry):
        uid = make_user()
        add_entry(uid, date(2025, 1, 1), "happy", 0.9, ["rare"])
        compute_tag_mood_stats(db, uid)

        body = client.get(f"{_base(uid)}/mood-highlights").json()
        assert body["top_positive_tags"] == []
        assert body["happiest_days"] == []
        assert body["note"].startswith("Keep writing")

    def test_days_only_note(self, client, db, make_user, add_entry):
        uid = make_user()
        add_entry(uid, today(), "happy", 0.75)
        compute_daily_aggregate(db, uid, today())

        body = client.get(f"{_base(uid)}/mood-highlights").json()
        assert body["note"].startswith("Your best day recently had a 75% mood score.")


class TestInsights:
    def test_generate_and_list(self, client, make_user, add_entry):
        uid = make_user()
        add_entry(uid, date(2026, 7, 2), "happy", 0.9)
        add_entry(uid, date(2026, 7, 4), "sad", 0.2)

        r = client.post(f"{_base(uid)}/insights", json={"date_from": "2026-07-01", "date_to": "2026-07-07"})
        assert r.status_code == 200
        body = r.json()
        assert body["generated_by"] == "template"
        assert "2026-07-02" in body["summary"]
        assert body["structured"]["happiest"]["date"] == "2026-07-02"

        items = client.get(f"{_base(uid)}/insights").json()["items"]
        assert len(items) == 1
        assert items[0]["summary"] == body["summary"]

    def test_inverted_body_rejected(self, client, make_user):
        r = client.post(
            f"{_base(make_user())}/insights",
            json={"date_from": "2026-07-07", "date_to": "2026-07-01"},
        )
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"

    def test_malformed_stored_insight_tolerated(self, client, db, make_user):
        uid = make_user()
        generate_mood_insight(db, uid, date(2026, 7, 1), date(2026, 7, 7), narrator=TemplateNarrator())
        db.query(MoodInsight).update({"insights": "not json"})
        db.commit()

        items = client.get(f"{_base(uid)}/insights").json()["items"]
        assert items[0]["summary"] == ""
        assert items[0]["structured"] is None


class TestPipeline:
    def test_run_now(self, client, db, make_user, add_entry):
        uid = make_user()
        add_entry(uid, today(), "happy", 0.8, ["work"])

        r = client.post("/pipeline/run")
        assert r.status_code == 202
        assert r.json()["end_date"] == str(today())

        # TestClient runs background tasks before returning.
        db.expire_all()
        assert db.get(WritingStreak, uid).current_streak == 1
        status = client.get("/pipeline/status").json()
        assert status["is_running"] is False
        assert status["last_status"] == "ok"

    def test_backfill_range(self, client, db, make_user, add_entry):
        uid = make_user()
        add_entry(uid, date(2026, 1, 5), "sad", 0.1)

        r = client.post("/pipeline/backfill", json={"start_date": "2026-01-01", "end_date": "2026-01-10"})
        assert r.status_code == 202
        assert "10 day(s)" in r.json()["message"]
        assert db.query(DailyMoodAggregate).filter(DailyMoodAggregate.user_id == uid).count() == 10

    def test_backfill_inverted(self, client):
        r = client.post("/pipeline/backfill", json={"start_date": "2026-01-10", "end_date": "2026-01-01"})
        assert r.status_code == 422
        assert r.json()["code"] == "INVALID_DATE_RANGE"

    def test_backfill_too_large(self, client):
        r = client.post("/pipeline/backfill", json={"days": 100000})
        assert r.status_code == 422
        assert r.json()["code"] == "BACKFILL_RANGE_TOO_LARGE"

    def test_backfill_half_range(self, client):
        r = client.post("/pipeline/backfill", json={"start_date": "2026-01-01"})
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"

    def test_status_before_any_run(self, client):
        body = client.get("/pipeline/status").json()
        assert body["name"] == "mood_aggregator"
        assert body["is_running"] is False
        assert body["last_status"] is None


class TestHooks:
    def test_entry_created_updates_streak(self, client, db, make_user, add_entry):
        uid = make_user()
        add_entry(uid, today(), "happy", 0.8)

        r = client.post("/hooks/entries", json={"user_id": uid, "event": "created", "entry_id": 1})
        assert r.status_code == 202
        assert r.json() == {"accepted": True, "user_id": uid, "event": "created"}

        db.expire_all()
        assert db.get(WritingStreak, uid).current_streak == 1

    def test_unknown_event_rejected(self, client):
        r = client.post("/hooks/entries", json={"user_id": 1, "event": "edited"})
        assert r.status_code == 422

    def test_update_failure_does_not_affect_response(self, client, monkeypatch):
        from app.services import realtime

        def broken(db, user_id):
            raise RuntimeError("db gone")

        monkeypatch.setattr(realtime, "update_writing_streak", broken)
        r = client.post("/hooks/entries", json={"user_id": 5, "event": "deleted"})
        assert r.status_code == 202
