"""Shared test fixtures for the quote engine test suite."""

from datetime import date

import pytest

from quote_engine.catalog import build_catalog, default_tables
from quote_engine.models import AssessmentAnswers
from quote_engine.pricing_calculator import compute_pricing


def make_answers(**overrides) -> AssessmentAnswers:
    """AssessmentAnswers with minimal boilerplate; keyword overrides win."""
    fields = dict(
        project_name="Client Portal",
        project_type="webapp",
        platform=["web"],
        must_have_features=[],
        design_level="standard",
        preferred_timeline="standard",
        budget="discuss",
    )
    fields.update(overrides)
    return AssessmentAnswers(**fields)


@pytest.fixture
def catalog():
    """Built-in catalog, built fresh so tests never share the cached instance."""
    return build_catalog(default_tables())


@pytest.fixture
def webapp_answers() -> AssessmentAnswers:
    """The reference scenario: web app, two features, web only, 5-10k budget.

    base 21,000 + user-auth 500 + payments 2,000 + design 2,000 = 25,500
    score 3 (2 features + 1 platform) → Simple ×0.8 → $20,400
    """
    return make_answers(
        must_have_features=["user-auth", "payments"],
        budget="5-10k",
    )


@pytest.fixture
def webapp_pricing(webapp_answers, catalog):
    return compute_pricing(webapp_answers, catalog=catalog)


@pytest.fixture
def issued_on() -> date:
    return date(2025, 1, 6)
