"""Tests for PricingCalculator: line items, multipliers, fallbacks and payment splits."""

import json
from fractions import Fraction

import pytest

from quote_engine.models import PricingBreakdown, RushTimeline, StandardTimeline, round_half_up
from quote_engine.pricing_calculator import PricingCalculator, compute_pricing

from tests.conftest import make_answers


class TestReferenceScenario:
    """Web app, user-auth + payments, web only, standard design and timeline."""

    def test_line_items(self, webapp_pricing):
        assert webapp_pricing.project_type == "webapp"
        assert webapp_pricing.base_price == 2_100_000
        assert [f.key for f in webapp_pricing.features] == ["basic-auth", "payment-processing"]
        assert [f.price for f in webapp_pricing.features] == [50_000, 200_000]
        assert webapp_pricing.platform.platforms == ("web",)
        assert webapp_pricing.platform.price == 0
        assert webapp_pricing.design.price == 200_000
        assert webapp_pricing.integrations.count == 0

    def test_totals(self, webapp_pricing):
        assert webapp_pricing.subtotal == 2_550_000
        assert webapp_pricing.complexity.level == "Simple"
        assert webapp_pricing.complexity.score == 3
        assert isinstance(webapp_pricing.timeline, StandardTimeline)
        assert webapp_pricing.final_total == 2_040_000

    def test_estimated_range_is_market_band(self, webapp_pricing):
        band = webapp_pricing.estimated_range
        assert (band.min, band.max, band.average) == (1_000_000, 10_000_000, 3_500_000)

    def test_no_warnings(self, webapp_pricing):
        assert webapp_pricing.warnings == ()
        assert all(f.resolved for f in webapp_pricing.features)

    def test_records_catalog_version(self, webapp_pricing, catalog):
        assert webapp_pricing.catalog_version == catalog.version


class TestDeterminism:

    def test_same_answers_same_breakdown(self, webapp_answers, catalog):
        first = compute_pricing(webapp_answers, catalog=catalog)
        second = compute_pricing(webapp_answers, catalog=catalog)
        assert first == second
        assert json.dumps(first.to_dict(), sort_keys=True) == json.dumps(second.to_dict(), sort_keys=True)

    def test_to_dict_round_trip(self, webapp_pricing):
        data = json.loads(json.dumps(webapp_pricing.to_dict()))
        assert data["timeline"]["kind"] == "standard"
        assert PricingBreakdown.from_dict(data) == webapp_pricing


class TestTotalFormula:
    """final_total is always the subtotal times both multipliers, rounded half-up."""

    @pytest.mark.parametrize("overrides", [
        {},
        {"must_have_features": ["admin", "search", "chat", "cms"], "platform": ["web", "ios", "android"]},
        {"project_type": "mobile", "preferred_timeline": "asap", "design_level": "premium"},
        {"project_type": "website", "design_level": "basic", "platform": []},
        {"integrations": ["Stripe", "Salesforce", "Slack"], "preferred_timeline": "1-3-months"},
        {"must_have_features": ["public-api", "sso", "custom-cms", "i18n", "analytics",
                                "orders", "cart", "inventory"],
         "platform": ["web", "ios", "android", "desktop"], "preferred_timeline": "rush-2x"},
    ])
    def test_total_matches_multipliers(self, catalog, overrides):
        pricing = compute_pricing(make_answers(**overrides), catalog=catalog)

        parts = (
            pricing.base_price
            + pricing.feature_total
            + pricing.platform.price
            + pricing.design.price
            + pricing.integrations.price
        )
        assert pricing.subtotal == parts

        expected = round_half_up(
            Fraction(pricing.subtotal)
            * Fraction(str(pricing.complexity.multiplier))
            * Fraction(str(pricing.timeline.multiplier))
        )
        assert pricing.final_total == expected
        assert pricing.final_total >= 0


class TestFeatures:

    def test_unknown_feature_kept_with_warning(self, catalog):
        pricing = compute_pricing(make_answers(must_have_features=["user-auth", "Hologram Mode"]), catalog=catalog)

        custom = pricing.features[1]
        assert custom.resolved is False
        assert custom.requested == "Hologram Mode"
        assert custom.name == "Hologram Mode"
        assert custom.category == "Custom"
        assert custom.price == 0
        assert len(pricing.warnings) == 1
        assert "Hologram Mode" in pricing.warnings[0]

    def test_duplicates_collapse_by_catalog_key(self, catalog):
        pricing = compute_pricing(
            make_answers(must_have_features=["user-auth", "Basic Auth", "login", "payments"]),
            catalog=catalog,
        )
        assert [f.key for f in pricing.features] == ["basic-auth", "payment-processing"]
        assert pricing.features[0].requested == "user-auth"
        assert pricing.features[0].requested_as == ("user-auth", "Basic Auth", "login")
        assert pricing.features[1].requested_as == ("payments",)

    def test_aliased_spellings_survive_json(self, catalog):
        pricing = compute_pricing(make_answers(must_have_features=["user-auth", "basic auth"]), catalog=catalog)
        data = json.loads(json.dumps(pricing.to_dict()))
        assert data["features"][0]["requested_as"] == ["user-auth", "basic auth"]
        assert PricingBreakdown.from_dict(data) == pricing

    @pytest.mark.parametrize("name", ["__", "/", "--"])
    def test_separator_only_name_kept_as_custom(self, catalog, name):
        pricing = compute_pricing(make_answers(must_have_features=[name, "payments"]), catalog=catalog)

        assert [f.requested for f in pricing.features] == [name, "payments"]
        custom = pricing.features[0]
        assert custom.key == name
        assert custom.resolved is False
        assert custom.price == 0
        assert any(name in w for w in pricing.warnings)

    def test_input_order_preserved(self, catalog):
        names = ["search", "admin", "user-auth", "notifications"]
        pricing = compute_pricing(make_answers(must_have_features=names), catalog=catalog)
        assert [f.requested for f in pricing.features] == names

    def test_empty_features(self, catalog):
        pricing = compute_pricing(make_answers(must_have_features=[]), catalog=catalog)
        assert pricing.features == ()
        assert pricing.feature_total == 0


class TestPlatformsDesignIntegrations:

    def test_platform_prices(self, catalog):
        pricing = compute_pricing(make_answers(platform=["web", "iOS", "android"]), catalog=catalog)
        assert pricing.platform.platforms == ("web", "ios", "android")
        assert pricing.platform.price == 1_600_000

    def test_unknown_platform_uses_default_price(self, catalog):
        pricing = compute_pricing(make_answers(platform=["smartwatch"]), catalog=catalog)
        assert pricing.platform.price == 400_000
        assert any("smartwatch" in w for w in pricing.warnings)

    def test_design_levels(self, catalog):
        basic = compute_pricing(make_answers(design_level="basic"), catalog=catalog)
        premium = compute_pricing(make_answers(design_level="Creative"), catalog=catalog)
        assert basic.design.price == 100_000
        assert premium.design.level == "premium"
        assert premium.design.price == 500_000

    def test_unknown_design_warns(self, catalog):
        pricing = compute_pricing(make_answers(design_level="baroque"), catalog=catalog)
        assert pricing.design.level == "standard"
        assert any("baroque" in w for w in pricing.warnings)

    def test_integrations_deduplicated(self, catalog):
        pricing = compute_pricing(
            make_answers(integrations=["Stripe", "stripe", "Slack"]),
            catalog=catalog,
        )
        assert pricing.integrations.names == ("Stripe", "Slack")
        assert pricing.integrations.count == 2
        assert pricing.integrations.price == 150_000 + 100_000


class TestComplexityAndTimeline:

    def test_complexity_counts_scope(self, catalog):
        pricing = compute_pricing(
            make_answers(
                must_have_features=["admin", "search"],
                platform=["web", "ios"],
                integrations=["Slack"],
            ),
            catalog=catalog,
        )
        assert pricing.complexity.score == 5
        assert pricing.complexity.level == "Moderate"
        assert pricing.scope_count == 5

    def test_rush_timeline(self, catalog):
        pricing = compute_pricing(make_answers(preferred_timeline="asap"), catalog=catalog)

        assert isinstance(pricing.timeline, RushTimeline)
        assert pricing.timeline.multiplier == 1.5
        # 2,100,000 base + 200,000 design, Simple ×0.8, rush ×1.5
        assert pricing.subtotal == 2_300_000
        assert pricing.final_total == 2_760_000
        assert pricing.to_dict()["timeline"]["kind"] == "rush"

    def test_unknown_timeline_is_standard(self, catalog):
        pricing = compute_pricing(make_answers(preferred_timeline="whenever"), catalog=catalog)
        assert isinstance(pricing.timeline, StandardTimeline)
        assert pricing.timeline.multiplier == 1.0
        assert any("whenever" in w for w in pricing.warnings)

    def test_unknown_project_type_priced_as_other(self, catalog):
        pricing = compute_pricing(make_answers(project_type="time machine"), catalog=catalog)
        assert pricing.project_type == "other"
        assert pricing.base_price == 1_800_000
        assert any("time machine" in w for w in pricing.warnings)


class TestPaymentSchedule:

    @pytest.mark.parametrize("total", [0, 1, 7, 99, 101, 333_333, 1_234_567, 2_040_000])
    def test_installments_sum_to_total(self, catalog, total):
        schedule = PricingCalculator(catalog=catalog).payment_schedule(total)
        assert sum(p.amount for p in schedule) == total
        assert all(p.amount >= 0 for p in schedule)

    def test_standard_split(self, catalog):
        schedule = PricingCalculator(catalog=catalog).payment_schedule(2_040_000)
        assert [p.percentage for p in schedule] == [30, 30, 30, 10]
        assert [p.amount for p in schedule] == [612_000, 612_000, 612_000, 204_000]
        assert schedule[0].due == "start"

    def test_last_installment_absorbs_rounding(self, catalog):
        schedule = PricingCalculator(catalog=catalog).payment_schedule(1_001)
        assert [p.amount for p in schedule] == [300, 300, 300, 101]

    def test_three_payment_schedule(self, catalog):
        calc = PricingCalculator(catalog=catalog, payment_schedule_key="small_project_3_payment")
        assert [p.percentage for p in calc.payment_schedule(100_000)] == [30, 40, 30]

    def test_unknown_schedule_rejected(self, catalog):
        with pytest.raises(ValueError):
            PricingCalculator(catalog=catalog, payment_schedule_key="pay_whenever")
