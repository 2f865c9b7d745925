"""Tests for the pricing catalog: lookups, fallbacks and YAML overlays."""

import pytest

from quote_engine.catalog import build_catalog, default_tables, load_catalog, normalize_key
from quote_engine.errors import CatalogError


class TestNormalizeKey:

    @pytest.mark.parametrize("raw,expected", [
        ("Payment Processing", "payment-processing"),
        ("  user_auth ", "user-auth"),
        ("Real-time  Chat", "real-time-chat"),
        ("iOS", "ios"),
        ("API / Only", "api-only"),
    ])
    def test_normalizes(self, raw, expected):
        assert normalize_key(raw) == expected


class TestLookups:

    def test_money_is_in_cents(self, catalog):
        assert catalog.find_project_type("webapp").base_price == 2_100_000
        assert catalog.find_feature("basic-auth").price == 50_000

    def test_feature_aliases(self, catalog):
        assert catalog.find_feature("user-auth").key == "basic-auth"
        assert catalog.find_feature("Payments").key == "payment-processing"
        assert catalog.find_feature("Payment Processing").key == "payment-processing"

    def test_unknown_feature_falls_back_to_custom_line(self, catalog):
        entry, resolved = catalog.resolve_feature("Blockchain Widget")
        assert resolved is False
        assert entry.key == "blockchain-widget"
        assert entry.name == "Blockchain Widget"
        assert entry.category == "Custom"
        assert entry.price == 0

    def test_project_type_aliases_and_fallback(self, catalog):
        assert catalog.resolve_project_type("web-app").key == "webapp"
        assert catalog.resolve_project_type("mobile-app").key == "mobile"
        assert catalog.find_project_type("spaceship") is None
        assert catalog.resolve_project_type("spaceship").key == "other"

    def test_design_fallback(self, catalog):
        assert catalog.resolve_design_level("Creative") == "premium"
        assert catalog.resolve_design_level("mystery") == "standard"

    def test_timeline_fallback(self, catalog):
        assert catalog.resolve_timeline("ASAP").rush is True
        assert catalog.resolve_timeline("someday").key == "standard"

    def test_budget_ranges(self, catalog):
        budget = catalog.resolve_budget("5-10k")
        assert (budget.min, budget.max, budget.average) == (500_000, 1_000_000, 750_000)
        assert catalog.resolve_budget("5k-10k") == budget
        assert catalog.resolve_budget("10k+").unbounded
        assert catalog.resolve_budget(None).name == "discuss"
        assert catalog.resolve_budget("bags of gold").name == "discuss"

    def test_complexity_bands(self, catalog):
        assert catalog.complexity_for(0).level == "Simple"
        assert catalog.complexity_for(3).level == "Simple"
        assert catalog.complexity_for(4).level == "Moderate"
        assert catalog.complexity_for(8).level == "Complex"
        assert catalog.complexity_for(12).level == "Enterprise"
        assert catalog.complexity_for(40).level == "Enterprise"

    def test_integration_overrides(self, catalog):
        assert catalog.integration_cost("Salesforce") == 300_000
        assert catalog.integration_cost("Some CRM") == 100_000

    def test_tables_are_read_only(self, catalog):
        with pytest.raises(TypeError):
            catalog.features["free-lunch"] = None


class TestLoadCatalog:

    def test_overlay_merges_tables(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text(
            "version: '2025.2-test'\n"
            "unknown_feature_price: 750\n"
            "features:\n"
            "  basic-auth: {name: Basic Authentication, category: Security, price: 650}\n"
            "  sms-alerts: {name: SMS Alerts, category: Advanced, price: 1200}\n"
        )
        catalog = load_catalog(path)

        assert catalog.version == "2025.2-test"
        assert catalog.unknown_feature_price == 75_000
        assert catalog.find_feature("basic-auth").price == 65_000
        assert catalog.find_feature("SMS Alerts").price == 120_000
        # untouched tables keep their defaults
        assert catalog.find_feature("admin-panel").price == 250_000
        assert catalog.find_project_type("webapp").base_price == 2_100_000

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogError):
            load_catalog(tmp_path / "nope.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("features: [unclosed\n")
        with pytest.raises(CatalogError):
            load_catalog(path)

    def test_unknown_section(self, tmp_path):
        path = tmp_path / "extra.yaml"
        path.write_text("discounts:\n  summer: 10\n")
        with pytest.raises(CatalogError, match="discounts"):
            load_catalog(path)

    def test_non_mapping_top_level(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n")
        with pytest.raises(CatalogError):
            load_catalog(path)


class TestBuildCatalogValidation:

    def test_rush_timeline_needs_multiplier_above_one(self):
        tables = default_tables()
        tables["timelines"]["asap"]["multiplier"] = 1.0
        with pytest.raises(CatalogError, match="asap"):
            build_catalog(tables)

    def test_standard_timeline_must_be_one(self):
        tables = default_tables()
        tables["timelines"]["flexible"]["multiplier"] = 1.1
        with pytest.raises(CatalogError, match="flexible"):
            build_catalog(tables)

    def test_missing_field(self):
        tables = default_tables()
        del tables["features"]["basic-auth"]["price"]
        with pytest.raises(CatalogError):
            build_catalog(tables)

    def test_default_tables_are_copies(self):
        tables = default_tables()
        tables["features"]["basic-auth"]["price"] = 1
        assert default_tables()["features"]["basic-auth"]["price"] == 500
