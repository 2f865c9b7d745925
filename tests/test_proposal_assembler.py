"""Tests for ProposalAssembler: overview, timeline, payments, deliverables and budget options."""

import json
from datetime import date

import pytest

from quote_engine.pricing_calculator import compute_pricing
from quote_engine.proposal_assembler import assemble_proposal

from tests.conftest import make_answers


@pytest.fixture
def proposal(webapp_answers, webapp_pricing, catalog, issued_on):
    return assemble_proposal(webapp_answers, webapp_pricing, catalog=catalog, issued_on=issued_on)


def proposal_for(catalog, issued_on, special_notes=None, **overrides):
    answers = make_answers(**overrides)
    pricing = compute_pricing(answers, catalog=catalog)
    return assemble_proposal(answers, pricing, special_notes=special_notes, catalog=catalog, issued_on=issued_on)


class TestOverview:

    def test_title_and_date(self, proposal, issued_on):
        assert proposal.title == "Professional Proposal: Client Portal"
        assert proposal.date == issued_on

    def test_optional_fields_stay_absent(self, proposal):
        overview = proposal.project_overview
        assert overview.description is None
        assert overview.target_audience is None
        assert overview.main_goals == ()
        assert proposal.client_name is None
        assert proposal.client_email is None

    def test_fields_copied_verbatim(self, catalog, issued_on):
        proposal = proposal_for(
            catalog, issued_on,
            project_description="Portal for invoices",
            target_audience="Existing B2B clients",
            main_goals=["Cut support email", "Online payments"],
            client_name="Jordan Lee",
        )
        overview = proposal.project_overview
        assert overview.project_type_label == "Web Application"
        assert overview.description == "Portal for invoices"
        assert overview.target_audience == "Existing B2B clients"
        assert overview.main_goals == ("Cut support email", "Online payments")
        assert proposal.client_name == "Jordan Lee"

    def test_scope_lists_requested_features(self, proposal):
        scope = proposal.scope_of_work
        assert scope.features == ("user-auth", "payments")
        assert scope.platforms == ("web",)
        assert "Role-based access control" in scope.technical_requirements


class TestTimeline:

    def test_starts_one_week_after_issue(self, proposal):
        assert proposal.timeline.start_date == date(2025, 1, 13)
        assert proposal.timeline.phases[0].start_date == date(2025, 1, 13)

    def test_phase_weeks(self, proposal):
        timeline = proposal.timeline
        assert timeline.total_weeks == 12
        assert timeline.total_duration == "12 weeks (approximately 3 months)"
        assert [p.phase for p in timeline.phases] == [
            "Discovery & Planning",
            "Design & Prototyping",
            "Development",
            "Testing & QA",
            "Launch & Deployment",
        ]
        assert [p.weeks for p in timeline.phases] == [2, 3, 6, 2, 2]

    def test_phases_are_contiguous(self, proposal):
        phases = proposal.timeline.phases
        for prev, nxt in zip(phases, phases[1:]):
            assert nxt.start_date == prev.end_date
        assert phases[-1].end_date == date(2025, 4, 28)

    def test_rush_shortens_duration(self, catalog, issued_on):
        proposal = proposal_for(catalog, issued_on, preferred_timeline="asap")
        assert proposal.timeline.total_weeks == 9    # ceil(12 × 0.7)

    def test_type_specific_phase_deliverables(self, catalog, issued_on):
        proposal = proposal_for(catalog, issued_on, project_type="mobile", platform=["ios", "android"])
        launch = proposal.timeline.phases[-1]
        assert "App Store and Google Play submission" in launch.deliverables


class TestPaymentSchedule:

    def test_sums_to_final_total(self, proposal):
        schedule = proposal.pricing.payment_schedule
        assert sum(p.amount for p in schedule) == proposal.pricing.final_total == 2_040_000

    def test_due_dates_follow_phases(self, proposal):
        schedule = proposal.pricing.payment_schedule
        assert [p.milestone for p in schedule] == [
            "Project Kickoff", "Design Approval", "Development Milestone", "Final Delivery",
        ]
        assert [p.due_date for p in schedule] == [
            date(2025, 1, 13), date(2025, 2, 17), date(2025, 3, 31), date(2025, 4, 28),
        ]
        assert schedule[0].due_description == "Upon contract signing"
        assert schedule[1].due_description == "Upon completion of Design & Prototyping"

    @pytest.mark.parametrize("features", [[], ["user-auth"], ["admin", "search", "chat"], ["Hologram Mode"]])
    def test_sum_holds_for_any_total(self, catalog, issued_on, features):
        proposal = proposal_for(catalog, issued_on, must_have_features=features, preferred_timeline="1-3-months")
        schedule = proposal.pricing.payment_schedule
        assert sum(p.amount for p in schedule) == proposal.pricing.final_total


class TestDeliverablesAndExpectations:

    def test_feature_driven_deliverables(self, catalog, issued_on):
        proposal = proposal_for(catalog, issued_on, must_have_features=["admin", "cms"])
        assert "Admin panel" in proposal.deliverables
        assert "Content management system setup" in proposal.deliverables

    def test_premium_design(self, catalog, issued_on):
        proposal = proposal_for(catalog, issued_on, design_level="premium")
        assert "Post-launch support (60 days)" in proposal.deliverables
        assert "Run a brand discovery workshop before design begins" in proposal.expectations.our_commitments

    def test_standard_support_period(self, proposal):
        assert "Post-launch support (30 days)" in proposal.deliverables


class TestBudgetOptions:

    def test_low_budget_adds_phased_options(self, catalog, issued_on):
        proposal = proposal_for(catalog, issued_on, budget="under-5k", project_type="website")
        options = proposal.phased_options
        assert len(options) == 2
        assert sum(o.amount for o in options) == proposal.pricing.final_total
        assert options[0].amount == proposal.pricing.final_total * 60 // 100
        assert proposal.next_steps[0] == "Consider the realistic scope options provided for your budget"
        assert proposal.next_steps[-1] == "Discuss phased approach if needed to fit budget constraints"

    @pytest.mark.parametrize("budget", ["5-10k", "10k+", "discuss"])
    def test_no_options_otherwise(self, catalog, issued_on, budget):
        proposal = proposal_for(catalog, issued_on, budget=budget)
        assert proposal.phased_options == ()
        assert len(proposal.next_steps) == 5


class TestSpecialNotes:

    @pytest.mark.parametrize("notes", [
        "Includes hosting setup",
        "  Leading spaces\nand a second line\n",
        "Quotes \"like this\" & <angle> brackets",
    ])
    def test_passed_through_unchanged(self, catalog, issued_on, notes):
        proposal = proposal_for(catalog, issued_on, special_notes=notes)
        assert proposal.special_notes == notes

    def test_absent_notes_stay_none(self, proposal):
        assert proposal.special_notes is None


class TestToDict:

    def test_json_ready(self, proposal):
        data = proposal.to_dict()
        text = json.dumps(data)
        assert data["date"] == "2025-01-06"
        assert data["timeline"]["total_duration"] == "12 weeks (approximately 3 months)"
        assert data["pricing"]["breakdown"]["timeline"]["kind"] == "standard"
        assert data["pricing"]["payment_schedule"][0]["due_date"] == "2025-01-13"
        assert "Client Portal" in text
