"""Tests for the SQLite assessment store and the suggestion generators."""

import json
from unittest.mock import AsyncMock, call, patch

import httpx
import pytest

from quote_engine import collaborators
from quote_engine.collaborators import (
    HttpSuggestionClient,
    SQLiteAssessmentStore,
    TemplateSuggestionGenerator,
)
from quote_engine.errors import AssessmentNotFound, SuggestionServiceUnavailable
from quote_engine.pricing_calculator import compute_pricing

from tests.conftest import make_answers


@pytest.fixture
def store(tmp_path):
    """Fresh SQLite store in a temp directory."""
    return SQLiteAssessmentStore(str(tmp_path / "quotes.db"))


class TestSQLiteAssessmentStore:

    def test_create_and_load(self, store, webapp_answers):
        assessment_id = store.create_assessment(webapp_answers)
        stored = store.load_assessment(assessment_id)

        assert stored.answers.id == assessment_id
        assert stored.answers.version == 1
        assert stored.answers.project_name == "Client Portal"
        assert stored.answers.must_have_features == ["user-auth", "payments"]
        assert stored.answers.budget == "5-10k"
        assert stored.pricing is None
        assert stored.updated_at

    def test_missing_assessment(self, store):
        with pytest.raises(AssessmentNotFound):
            store.load_assessment(999)

    def test_save_pricing_round_trip(self, store, webapp_answers, webapp_pricing):
        assessment_id = store.create_assessment(webapp_answers)
        store.save_assessment(assessment_id, {"pricing": webapp_pricing})
        assert store.load_assessment(assessment_id).pricing == webapp_pricing

    def test_save_answers_replaces_version(self, store, webapp_answers):
        assessment_id = store.create_assessment(webapp_answers)
        updated = webapp_answers.with_features(["admin"])
        store.save_assessment(assessment_id, {"answers": updated})

        stored = store.load_assessment(assessment_id)
        assert stored.answers.version == 2
        assert stored.answers.must_have_features == ["admin"]

    def test_save_missing_assessment(self, store, webapp_pricing):
        with pytest.raises(AssessmentNotFound):
            store.save_assessment(404, {"pricing": webapp_pricing})

    def test_empty_patch_is_noop(self, store, webapp_answers):
        assessment_id = store.create_assessment(webapp_answers)
        before = store.load_assessment(assessment_id)
        store.save_assessment(assessment_id, {})
        assert store.load_assessment(assessment_id) == before


class TestTemplateSuggestionGenerator:

    def test_skips_chosen_features(self, catalog):
        generator = TemplateSuggestionGenerator(catalog)
        answers = make_answers(must_have_features=["search", "Admin Panel"])
        suggested = generator.suggest_features(answers)
        assert "Search functionality" not in suggested
        assert "Admin panel" not in suggested
        assert "User dashboard" in suggested

    def test_unknown_type_has_no_features(self, catalog):
        generator = TemplateSuggestionGenerator(catalog)
        assert generator.suggest_features(make_answers(project_type="zeppelin")) == []

    @pytest.mark.asyncio
    async def test_document(self, catalog):
        generator = TemplateSuggestionGenerator(catalog)
        text = await generator.generate_suggestions(make_answers(
            main_goals=["Cut support email"],
            integrations=["Stripe"],
        ))
        assert text.startswith("PROJECT SUGGESTIONS FOR: Client Portal")
        assert "RECOMMENDED FEATURES:" in text
        assert "* Integrations: Stripe" in text
        assert "* Goal: Cut support email" in text

    @pytest.mark.asyncio
    async def test_deterministic(self, catalog, webapp_answers):
        generator = TemplateSuggestionGenerator(catalog)
        first = await generator.generate_suggestions(webapp_answers)
        second = await generator.generate_suggestions(webapp_answers)
        assert first == second


class TestHttpSuggestionClient:
    """Retry and failure handling against an in-process mock transport."""

    @staticmethod
    def client(handler, **kwargs):
        return HttpSuggestionClient(
            base_url="https://suggest.test/v1/",
            api_key="secret",
            transport=httpx.MockTransport(handler),
            **kwargs,
        )

    @pytest.mark.asyncio
    async def test_success(self, webapp_answers):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"suggestions": "Add a help center."})

        text = await self.client(handler).generate_suggestions(webapp_answers)

        assert text == "Add a help center."
        assert str(seen[0].url) == "https://suggest.test/v1/suggestions"
        assert seen[0].headers["Authorization"] == "Bearer secret"
        assert json.loads(seen[0].content)["project_name"] == "Client Portal"

    @pytest.mark.asyncio
    async def test_retries_server_errors_with_backoff(self, webapp_answers):
        responses = iter([
            httpx.Response(503),
            httpx.Response(502),
            httpx.Response(200, json={"suggestions": "third time lucky"}),
        ])

        with patch("quote_engine.collaborators.asyncio.sleep", new_callable=AsyncMock) as sleep:
            text = await self.client(lambda request: next(responses)).generate_suggestions(webapp_answers)

        assert text == "third time lucky"
        assert sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    async def test_connection_errors_exhaust_retries(self, webapp_answers):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with patch("quote_engine.collaborators.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(SuggestionServiceUnavailable, match="after 3 attempt"):
                await self.client(handler).generate_suggestions(webapp_answers)
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, webapp_answers):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(401, json={"error": "bad key"})

        with pytest.raises(SuggestionServiceUnavailable, match="401"):
            await self.client(handler).generate_suggestions(webapp_answers)
        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_malformed_body(self, webapp_answers):
        client = self.client(lambda request: httpx.Response(200, json={"text": "wrong key"}))
        with pytest.raises(SuggestionServiceUnavailable):
            await client.generate_suggestions(webapp_answers)

    @pytest.mark.asyncio
    async def test_unconfigured(self, webapp_answers, monkeypatch):
        monkeypatch.setattr(collaborators, "SUGGESTIONS_API_URL", "")
        with pytest.raises(SuggestionServiceUnavailable, match="not configured"):
            await HttpSuggestionClient().generate_suggestions(webapp_answers)


class TestStoredPricingMatchesFreshPricing:

    def test_stored_answers_price_identically(self, store, webapp_answers, catalog):
        assessment_id = store.create_assessment(webapp_answers)
        stored = store.load_assessment(assessment_id).answers
        assert compute_pricing(stored, catalog=catalog) == compute_pricing(webapp_answers, catalog=catalog)
