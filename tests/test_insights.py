"""
Tests for the Insight Generator.

Covers:
- facts: overall average, happiest / lowest day, trend direction, top tags
- template fallback when the text-generation client fails or returns nothing
- model text used when available
- one row per (user, range, type), overwritten on regeneration
- NLPCloudClient degrades to None on transport / HTTP / shape errors
"""
import json
from datetime import date, timedelta

import pytest
import requests
from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import InvalidDateRangeError
from app.models.mood_insight import MoodInsight
from app.services import insights
from app.services.daily_aggregates import compute_daily_aggregate
from app.services.insights import (
    ModelNarrator,
    TemplateNarrator,
    gather_facts,
    generate_mood_insight,
    list_insights,
    template_summary,
)
from app.services.tag_mood import compute_tag_mood_stats
from app.services.text_generation import NLPCloudClient

FROM = date(2026, 7, 1)
TO = date(2026, 7, 7)


class FailingClient:
    model = "broken-model"

    def generate(self, prompt, max_length):
        raise requests.Timeout("timed out")


class EmptyClient:
    model = "empty-model"

    def generate(self, prompt, max_length):
        return None


class EchoClient:
    model = "echo-model"

    def __init__(self):
        self.prompts = []

    def generate(self, prompt, max_length):
        self.prompts.append(prompt)
        return "  You felt best mid-week.  "


@pytest.fixture()
def user_with_range(db, make_user, add_entry):
    uid = make_user()
    add_entry(uid, date(2026, 7, 1), "sad", 0.2, ["work"])
    add_entry(uid, date(2026, 7, 3), "happy", 0.9, ["friends", "work"])
    add_entry(uid, date(2026, 7, 5), "calm", 0.6, ["work"])
    return uid


class TestGatherFacts:
    def test_from_entries(self, db, user_with_range):
        facts = gather_facts(db, user_with_range, FROM, TO)
        assert facts.datapoints == 3
        assert facts.average_mood_score == pytest.approx(0.567, abs=1e-3)
        assert facts.happiest.date == date(2026, 7, 3)
        assert facts.lowest.date == date(2026, 7, 1)
        assert facts.trend.direction == "up"
        assert facts.trend.change == pytest.approx(0.4)

    def test_uses_daily_aggregates_when_present(self, db, user_with_range):
        for d in (date(2026, 7, 1), date(2026, 7, 3), date(2026, 7, 5)):
            compute_daily_aggregate(db, user_with_range, d)
        facts = gather_facts(db, user_with_range, FROM, TO)
        assert [p.entries_count for p in facts.daily] == [1, 1, 1]
        assert facts.happiest.avg_mood_score == 0.9

    def test_datapoints_skip_days_without_entries(self, db, user_with_range):
        d = FROM
        while d <= TO:
            compute_daily_aggregate(db, user_with_range, d)
            d += timedelta(days=1)
        facts = gather_facts(db, user_with_range, FROM, TO)
        assert len(facts.daily) == 7
        assert facts.datapoints == 3
        assert "over 3 days" in template_summary(facts)

    def test_top_tags_from_stats(self, db, user_with_range):
        compute_tag_mood_stats(db, user_with_range)
        facts = gather_facts(db, user_with_range, FROM, TO)
        assert [t["tag"] for t in facts.top_tags] == ["work", "friends"]

    def test_flat_trend_for_small_change(self, db, make_user, add_entry):
        uid = make_user()
        add_entry(uid, date(2026, 7, 1), "calm", 0.50)
        add_entry(uid, date(2026, 7, 2), "calm", 0.51)
        assert gather_facts(db, uid, FROM, TO).trend.direction == "flat"

    def test_no_data(self, db, make_user):
        facts = gather_facts(db, make_user(), FROM, TO)
        assert facts.datapoints == 0
        assert facts.average_mood_score is None
        assert facts.happiest is None
        assert facts.trend.direction == "flat"


class TestNarration:
    def test_template_mentions_extremes(self, db, user_with_range):
        narrative = TemplateNarrator().narrate(gather_facts(db, user_with_range, FROM, TO))
        assert narrative.generated_by == "template"
        assert "2026-07-03" in narrative.text
        assert "2026-07-01" in narrative.text
        assert "Suggestions:" in narrative.text

    def test_template_never_empty_without_data(self, db, make_user):
        narrative = TemplateNarrator().narrate(gather_facts(db, make_user(), FROM, TO))
        assert narrative.text.strip()

    def test_model_failure_falls_back(self, db, user_with_range):
        result = generate_mood_insight(db, user_with_range, FROM, TO, narrator=ModelNarrator(FailingClient()))
        assert result.generated_by == "template"
        assert "2026-07-03" in result.summary
        assert result.persisted is True

    def test_model_empty_falls_back(self, db, user_with_range):
        result = generate_mood_insight(db, user_with_range, FROM, TO, narrator=ModelNarrator(EmptyClient()))
        assert result.generated_by == "template"

    def test_model_text_used(self, db, user_with_range):
        client = EchoClient()
        result = generate_mood_insight(db, user_with_range, FROM, TO, narrator=ModelNarrator(client))
        assert result.generated_by == "echo-model"
        assert result.summary == "You felt best mid-week."
        assert "2026-07-01" in client.prompts[0]

    def test_prompt_truncated(self, db, user_with_range):
        client = EchoClient()
        ModelNarrator(client, prompt_max_chars=40).narrate(gather_facts(db, user_with_range, FROM, TO))
        assert len(client.prompts[0]) == 40


class TestGenerateMoodInsight:
    def test_persists_one_row_per_key(self, db, user_with_range):
        generate_mood_insight(db, user_with_range, FROM, TO, narrator=TemplateNarrator())
        generate_mood_insight(db, user_with_range, FROM, TO, narrator=ModelNarrator(EchoClient()))

        rows = db.query(MoodInsight).filter(MoodInsight.user_id == user_with_range).all()
        assert len(rows) == 1
        db.refresh(rows[0])
        assert rows[0].generated_by == "echo-model"
        assert rows[0].insight_type == "auto_generated"
        payload = json.loads(rows[0].insights)
        assert payload["summary"] == "You felt best mid-week."
        assert payload["structured"]["happiest"]["date"] == "2026-07-03"

    def test_write_failure_still_returns_insight(self, db, user_with_range, monkeypatch):
        def broken(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(insights, "upsert", broken)
        result = generate_mood_insight(db, user_with_range, FROM, TO, narrator=TemplateNarrator())

        assert result.persisted is False
        assert result.generated_by == "template"
        assert result.summary.strip()
        # Session was rolled back and stays usable.
        assert db.query(MoodInsight).count() == 0

    def test_inverted_range_rejected(self, db, user_with_range):
        with pytest.raises(InvalidDateRangeError):
            generate_mood_insight(db, user_with_range, TO, FROM, narrator=TemplateNarrator())

    def test_list_insights(self, db, user_with_range):
        generate_mood_insight(db, user_with_range, FROM, TO, narrator=TemplateNarrator())
        generate_mood_insight(db, user_with_range, FROM, date(2026, 7, 3), narrator=TemplateNarrator())
        assert len(list_insights(db, user_with_range)) == 2
        assert len(list_insights(db, user_with_range, limit=1)) == 1


class FakeResponse:
    def __init__(self, status_code=200, body=None, raises=False):
        self.status_code = status_code
        self._body = body
        self._raises = raises
        self.text = json.dumps(body) if body is not None else ""

    def json(self):
        if self._raises:
            raise ValueError("no json")
        return self._body


class TestNLPCloudClient:
    def _client(self, monkeypatch, response=None, exc=None):
        client = NLPCloudClient(api_key="k", model="flan-t5-base", timeout_s=1)
        calls = []

        def fake_post(url, json=None, timeout=None):
            calls.append((url, json, timeout))
            if exc is not None:
                raise exc
            return response

        monkeypatch.setattr(client.session, "post", fake_post)
        return client, calls

    def test_generated_text(self, monkeypatch):
        client, calls = self._client(monkeypatch, FakeResponse(body={"generated_text": " hi "}))
        assert client.generate("prompt", 256) == "hi"
        url, payload, timeout = calls[0]
        assert url == "https://api.nlpcloud.io/v1/flan-t5-base/generation"
        assert payload["max_length"] == 256
        assert timeout == 1
        assert client.session.headers["Authorization"] == "Token k"

    def test_timeout_returns_none(self, monkeypatch):
        client, _ = self._client(monkeypatch, exc=requests.Timeout("slow"))
        assert client.generate("prompt", 256) is None

    def test_http_error_returns_none(self, monkeypatch):
        client, _ = self._client(monkeypatch, FakeResponse(status_code=503, body={"detail": "down"}))
        assert client.generate("prompt", 256) is None

    def test_non_json_returns_none(self, monkeypatch):
        client, _ = self._client(monkeypatch, FakeResponse(raises=True))
        assert client.generate("prompt", 256) is None

    def test_unexpected_shape_returns_none(self, monkeypatch):
        client, _ = self._client(monkeypatch, FakeResponse(body=["x"]))
        assert client.generate("prompt", 256) is None
