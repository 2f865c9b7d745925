"""Tests for the proposal and admin renderers."""

import logging
from datetime import date

import pytest

from quote_engine.budget_comparator import compare_to_budget
from quote_engine.pricing_calculator import compute_pricing
from quote_engine.proposal_assembler import assemble_proposal
from quote_engine.renderers import (
    HEAVY_RULE,
    format_date,
    render_comparison_text,
    render_pricing_text,
    render_proposal_print_html,
    render_proposal_text,
)

from tests.conftest import make_answers


def build_proposal(catalog, special_notes=None, **overrides):
    answers = make_answers(**overrides)
    pricing = compute_pricing(answers, catalog=catalog)
    return assemble_proposal(
        answers, pricing, special_notes=special_notes, catalog=catalog, issued_on=date(2025, 1, 6),
    )


@pytest.fixture
def proposal(catalog):
    return build_proposal(catalog, must_have_features=["user-auth", "payments"], budget="5-10k")


class TestFormatDate:

    def test_long_form(self):
        assert format_date(date(2025, 1, 6)) == "January 6, 2025"
        assert format_date(date(2024, 12, 31)) == "December 31, 2024"


class TestProposalText:

    def test_rendering_is_silent(self, proposal, caplog):
        with caplog.at_level(logging.DEBUG):
            render_proposal_text(proposal)
            render_proposal_print_html(proposal)
        assert caplog.records == []

    def test_layout(self, proposal):
        text = render_proposal_text(proposal)
        assert text.startswith(HEAVY_RULE + "\nPROFESSIONAL PROPOSAL: CLIENT PORTAL\n")
        assert text.endswith("\n")
        for heading in ("PROJECT OVERVIEW", "SCOPE OF WORK", "PROJECT TIMELINE", "INVESTMENT",
                        "DELIVERABLES", "EXPECTATIONS", "NEXT STEPS"):
            assert heading in text
        assert "Date: January 6, 2025" in text
        assert "Estimated Start Date: January 13, 2025" in text
        assert "$20,400" in text

    def test_payment_lines(self, proposal):
        text = render_proposal_text(proposal)
        assert "1. Project Kickoff (30%): $6,120 - Upon contract signing (January 13, 2025)" in text

    def test_absent_fields_omitted(self, proposal):
        text = render_proposal_text(proposal)
        assert "Main Goals" not in text
        assert "Description:" not in text
        assert "Target Audience:" not in text
        assert "Prepared for:" not in text
        assert "SPECIAL NOTES" not in text
        assert "Integrations:" not in text
        assert "N/A" not in text

    def test_goals_rendered_when_present(self, catalog):
        text = render_proposal_text(build_proposal(catalog, main_goals=["Cut support email"]))
        assert "Main Goals:\n  1. Cut support email" in text

    def test_special_notes_verbatim(self, catalog):
        notes = "Hosting setup included.\n  Indented line stays."
        text = render_proposal_text(build_proposal(catalog, special_notes=notes))
        assert "SPECIAL NOTES" in text
        assert notes in text

    def test_suggestions_section(self, proposal):
        text = render_proposal_text(proposal, suggestions="Add a help center.")
        assert "PROJECT SUGGESTIONS" in text
        assert "Add a help center." in text

    def test_low_budget_options(self, catalog):
        text = render_proposal_text(build_proposal(catalog, budget="under-5k", project_type="website"))
        assert "OPTIONS FOR YOUR BUDGET" in text
        assert "Phase 1: MVP (Minimum Viable Product)" in text

    def test_rendering_is_deterministic(self, proposal):
        assert render_proposal_text(proposal) == render_proposal_text(proposal)


class TestProposalHtml:

    def test_document_shape(self, proposal):
        page = render_proposal_print_html(proposal)
        assert page.startswith("<!DOCTYPE html>")
        assert page.rstrip().endswith("</html>")
        assert "<style" not in page
        assert "<link" not in page
        assert "<script" not in page
        assert "$20,400" in page

    def test_escapes_client_text(self, catalog):
        page = render_proposal_print_html(build_proposal(
            catalog,
            project_name="<script>alert('x')</script>",
            special_notes='Fish & "Chips" <b>',
        ))
        assert "<script>" not in page
        assert "&lt;script&gt;alert(&#x27;x&#x27;)&lt;/script&gt;" in page
        assert "Fish &amp; &quot;Chips&quot; &lt;b&gt;" in page

    def test_absent_fields_omitted(self, proposal):
        page = render_proposal_print_html(proposal)
        assert "Main Goals" not in page
        assert "Special Notes" not in page
        assert "N/A" not in page


class TestAdminViews:

    def test_pricing_text(self, catalog):
        pricing = compute_pricing(make_answers(must_have_features=["user-auth", "Hologram Mode"]), catalog=catalog)
        text = render_pricing_text(pricing)
        assert text.startswith("PRICING BREAKDOWN")
        assert "(custom)" in text
        assert "Integrations:     N/A" in text
        assert "Warnings:" in text

    def test_pricing_text_without_features(self, catalog):
        text = render_pricing_text(compute_pricing(make_answers(platform=[]), catalog=catalog))
        assert "Features:\n  N/A" in text
        assert "Platforms:        N/A" in text

    def test_comparison_text(self, webapp_pricing, catalog):
        text = render_comparison_text(compare_to_budget(webapp_pricing, "5-10k", catalog=catalog))
        assert text.startswith("BUDGET COMPARISON")
        assert "Status:           SIGNIFICANTLY-OVER (+172%)" in text
        assert "Included in Budget:\n  + N/A" in text
        assert "  - user-auth" in text
        assert "[HIGH] Phase the Project" in text

    def test_comparison_text_discuss(self, webapp_pricing, catalog):
        text = render_comparison_text(compare_to_budget(webapp_pricing, "discuss", catalog=catalog))
        assert "Status:           ALIGNED (+0%)" in text
        assert "avg N/A" in text
