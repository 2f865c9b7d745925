"""
collaborators.py — Assessment Store & Suggestion Services

The edges of the quote engine: where assessments are loaded and saved, and
where optional free-text project suggestions come from.

    AssessmentStore / SQLiteAssessmentStore
        load_assessment(id) → StoredAssessment, save_assessment(id, patch).
        Every save fully replaces the fields it names; last write wins.

    SuggestionGenerator
        async generate_suggestions(answers) → str
        TemplateSuggestionGenerator  deterministic, no network
        HttpSuggestionClient         POSTs to SUGGESTIONS_API_URL with retry + backoff

Usage:
    store = SQLiteAssessmentStore("quotes.db")
    assessment_id = store.create_assessment(answers)
    stored = store.load_assessment(assessment_id)
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, Optional, Protocol

import httpx
from dotenv import load_dotenv

from quote_engine.catalog import PricingCatalog, get_default_catalog
from quote_engine.errors import AssessmentNotFound, SuggestionServiceUnavailable
from quote_engine.models import AssessmentAnswers, PricingBreakdown

load_dotenv()

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DB_PATH = os.getenv("QUOTE_DB_PATH", str(Path.cwd() / "quote_engine.db"))

SUGGESTIONS_API_URL = os.getenv("SUGGESTIONS_API_URL", "")
SUGGESTIONS_API_KEY = os.getenv("SUGGESTIONS_API_KEY", "")
SUGGESTIONS_TIMEOUT = float(os.getenv("SUGGESTIONS_TIMEOUT", "30"))

# Retry configuration
MAX_RETRIES = 3
RETRY_BACKOFF_BASE = 2.0   # seconds; exponential backoff


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Assessment store
# ---------------------------------------------------------------------------

@dataclass
class StoredAssessment:
    answers: AssessmentAnswers
    pricing: Optional[PricingBreakdown] = None
    updated_at: str = ""


class AssessmentStore(Protocol):
    def load_assessment(self, assessment_id: int) -> StoredAssessment:
        ...

    def save_assessment(self, assessment_id: int, patch: dict) -> None:
        """patch may hold "answers" (AssessmentAnswers) and/or "pricing" (PricingBreakdown)."""
        ...


class SQLiteAssessmentStore:
    """
    Reference AssessmentStore on SQLite.

    Answers and pricing are stored as JSON columns. Each method opens and
    closes its own connection, in WAL mode, so concurrent requests for
    different assessments don't block each other.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or DB_PATH
        self._ensure_db()

    def _ensure_db(self) -> None:
        with self._conn() as conn:
            conn.executescript("""
                PRAGMA journal_mode = WAL;

                CREATE TABLE IF NOT EXISTS assessments (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    answers     TEXT NOT NULL,
                    pricing     TEXT,
                    version     INTEGER NOT NULL DEFAULT 1,
                    created_at  TEXT NOT NULL DEFAULT '',
                    updated_at  TEXT NOT NULL DEFAULT ''
                );
            """)

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager that yields an auto-committing SQLite connection."""
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def create_assessment(self, answers: AssessmentAnswers) -> int:
        """Insert a new assessment and return its ID."""
        now = _utcnow()
        with self._conn() as conn:
            cur = conn.execute(
                "INSERT INTO assessments (answers, version, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (json.dumps(answers.to_dict()), answers.version, now, now),
            )
            assessment_id = cur.lastrowid
        logger.info("Created assessment %d (%s)", assessment_id, answers.project_name)
        return assessment_id

    def load_assessment(self, assessment_id: int) -> StoredAssessment:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM assessments WHERE id = ?", (assessment_id,)
            ).fetchone()
        if row is None:
            raise AssessmentNotFound(f"Assessment {assessment_id} not found")

        data = json.loads(row["answers"])
        data["id"] = row["id"]
        data["version"] = row["version"]
        pricing = PricingBreakdown.from_dict(json.loads(row["pricing"])) if row["pricing"] else None
        return StoredAssessment(
            answers=AssessmentAnswers.from_dict(data),
            pricing=pricing,
            updated_at=row["updated_at"],
        )

    def save_assessment(self, assessment_id: int, patch: dict) -> None:
        assignments: list[str] = []
        params: list = []

        answers: Optional[AssessmentAnswers] = patch.get("answers")
        if answers is not None:
            assignments += ["answers = ?", "version = ?"]
            params += [json.dumps(answers.to_dict()), answers.version]
        if "pricing" in patch:
            pricing: Optional[PricingBreakdown] = patch["pricing"]
            assignments.append("pricing = ?")
            params.append(json.dumps(pricing.to_dict()) if pricing is not None else None)
        if not assignments:
            return

        assignments.append("updated_at = ?")
        params += [_utcnow(), assessment_id]
        with self._conn() as conn:
            cur = conn.execute(
                f"UPDATE assessments SET {', '.join(assignments)} WHERE id = ?", params
            )
            if cur.rowcount == 0:
                raise AssessmentNotFound(f"Assessment {assessment_id} not found")
        logger.debug("Saved assessment %d (%s)", assessment_id, ", ".join(sorted(patch)))


# ---------------------------------------------------------------------------
# Suggestion generators
# ---------------------------------------------------------------------------

class SuggestionGenerator(Protocol):
    async def generate_suggestions(self, answers: AssessmentAnswers) -> str:
        ...


FEATURE_SUGGESTIONS: dict[str, list[str]] = {
    "website": [
        "Contact form", "Blog/News section", "Image gallery", "SEO optimization",
        "Analytics integration", "Social media integration", "Newsletter signup", "Testimonials section",
    ],
    "webapp": [
        "User dashboard", "Data visualization", "File upload/download", "Search functionality",
        "Notifications", "Export/Import data", "Admin panel", "User roles & permissions",
    ],
    "mobile": [
        "Push notifications", "Offline mode", "Biometric authentication", "Location services",
        "Camera integration", "Social sharing", "In-app purchases", "Analytics tracking",
    ],
    "ecommerce": [
        "Product catalog", "Shopping cart", "Payment gateway", "Order management",
        "Inventory tracking", "Customer reviews", "Wishlist", "Shipping calculator",
    ],
    "custom": [
        "Subscription management", "Billing system", "User onboarding", "Usage analytics",
        "API access", "Team collaboration", "Data export", "Custom branding",
    ],
}


class TemplateSuggestionGenerator:
    """Deterministic suggestions document built from fixed per-type feature lists."""

    def __init__(self, catalog: Optional[PricingCatalog] = None):
        self.catalog = catalog or get_default_catalog()

    def suggest_features(self, answers: AssessmentAnswers) -> list[str]:
        project = self.catalog.find_project_type(answers.project_type)
        candidates = FEATURE_SUGGESTIONS.get(project.key if project else "", [])
        chosen = {self.catalog.feature_key(f) for f in answers.must_have_features}
        return [f for f in candidates if self.catalog.feature_key(f) not in chosen]

    async def generate_suggestions(self, answers: AssessmentAnswers) -> str:
        lines = [f"PROJECT SUGGESTIONS FOR: {answers.project_name}", "-" * 80, ""]
        lines.append(f"PROJECT TYPE: {answers.project_type.upper()}")
        if answers.project_description:
            lines += ["", "DESCRIPTION:", answers.project_description]

        features = self.suggest_features(answers)
        if features:
            lines += ["", "RECOMMENDED FEATURES:"]
            lines += [f"{i}. {f}" for i, f in enumerate(features, 1)]

        technical = []
        if answers.platform:
            technical.append(f"* Platforms: {', '.join(answers.platform)}")
        if answers.integrations:
            technical.append(f"* Integrations: {', '.join(answers.integrations)}")
        if technical:
            lines += ["", "TECHNICAL RECOMMENDATIONS:"] + technical

        if answers.main_goals:
            lines += ["", "BUSINESS RECOMMENDATIONS:"]
            lines += [f"* Goal: {goal}" for goal in answers.main_goals]

        return "\n".join(lines)


class HttpSuggestionClient:
    """
    Fetches suggestions from an external text-generation service.

    POST {base_url}/suggestions with the answers as JSON; the service replies
    {"suggestions": "<text>"}. Connection errors, timeouts and 5xx responses
    are retried with exponential backoff; 4xx responses fail immediately.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = SUGGESTIONS_TIMEOUT,
        retries: int = MAX_RETRIES,
        backoff_base: float = RETRY_BACKOFF_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or SUGGESTIONS_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else SUGGESTIONS_API_KEY
        self.timeout = timeout
        self.retries = retries
        self.backoff_base = backoff_base
        self._transport = transport

    async def generate_suggestions(self, answers: AssessmentAnswers) -> str:
        """
        Raises:
            SuggestionServiceUnavailable: If unconfigured, rejected, or unreachable after retries
        """
        if not self.base_url:
            raise SuggestionServiceUnavailable("SUGGESTIONS_API_URL is not configured")

        last_exception: Optional[Exception] = None
        for attempt in range(self.retries):
            try:
                return await self._post(answers)

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                logger.warning("Suggestions service unreachable (attempt %d): %s", attempt + 1, e)
                last_exception = e

            except httpx.HTTPStatusError as e:
                if e.response.status_code < 500:
                    raise SuggestionServiceUnavailable(
                        f"Suggestions service rejected the request: HTTP {e.response.status_code}"
                    ) from e
                logger.warning(
                    "Suggestions service error HTTP %d (attempt %d)",
                    e.response.status_code, attempt + 1,
                )
                last_exception = e

            if attempt < self.retries - 1:
                wait = self.backoff_base ** attempt
                logger.info("Retrying in %.1fs...", wait)
                await asyncio.sleep(wait)

        raise SuggestionServiceUnavailable(
            f"Suggestions service unavailable after {self.retries} attempt(s). Last error: {last_exception}"
        )

    async def _post(self, answers: AssessmentAnswers) -> str:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as http:
            resp = await http.post(
                f"{self.base_url}/suggestions",
                json=answers.to_dict(),
                headers=headers,
            )
            resp.raise_for_status()
            data = resp.json()

        suggestions = data.get("suggestions") if isinstance(data, dict) else None
        if not isinstance(suggestions, str):
            raise SuggestionServiceUnavailable("Suggestions service returned no 'suggestions' text")
        return suggestions
