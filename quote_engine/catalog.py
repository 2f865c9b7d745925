"""
catalog.py — Feature & Pricing Catalog

The single source of every number the quote engine uses: project-type base
prices and market bands, the feature price list, platform, design,
integration, complexity and timeline tables, and the budget ranges a client
can select.

Tables below are written in whole dollars for readability; the built
PricingCatalog holds cents. A YAML file can overlay any table (set
QUOTE_CATALOG_PATH or call load_catalog()); the overlay carries its own
version string so every PricingBreakdown records which catalog priced it.

Usage:
    from quote_engine.catalog import get_default_catalog
    catalog = get_default_catalog()
    entry = catalog.find_feature("Payment Processing")
"""

from __future__ import annotations

import copy
import logging
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

import yaml
from dotenv import load_dotenv

from quote_engine.errors import CatalogError
from quote_engine.models import BudgetRange, MarketRange, dollars

load_dotenv()

logger = logging.getLogger(__name__)

CATALOG_PATH = os.getenv("QUOTE_CATALOG_PATH", "")


# ---------------------------------------------------------------------------
# Default tables (whole dollars)
# ---------------------------------------------------------------------------

DEFAULT_VERSION = "2025.1"

# base_price is 60% of the market average for the project type
PROJECT_TYPES: dict[str, dict] = {
    "website":   {"label": "Website",                 "base_price": 3_600,  "market": (2_000, 15_000, 6_000),    "base_weeks": 4},
    "webapp":    {"label": "Web Application",         "base_price": 21_000, "market": (10_000, 100_000, 35_000), "base_weeks": 12},
    "ecommerce": {"label": "E-commerce Store",        "base_price": 12_000, "market": (5_000, 50_000, 20_000),   "base_weeks": 10},
    "mobile":    {"label": "Mobile Application",      "base_price": 30_000, "market": (15_000, 150_000, 50_000), "base_weeks": 16},
    "custom":    {"label": "Custom Software",         "base_price": 45_000, "market": (20_000, 200_000, 75_000), "base_weeks": 20},
    "other":     {"label": "Other",                   "base_price": 18_000, "market": (5_000, 100_000, 30_000),  "base_weeks": 10},
}

PROJECT_TYPE_ALIASES: dict[str, str] = {
    "web-app": "webapp",
    "web-application": "webapp",
    "mobile-app": "mobile",
    "saas": "custom",
    "api": "custom",
    "e-commerce": "ecommerce",
}

FEATURES: dict[str, dict] = {
    # Authentication
    "basic-auth":           {"name": "Basic Authentication",     "category": "Security",   "price": 500},
    "social-login":         {"name": "Social Login Integration", "category": "Security",   "price": 1_000},
    "enterprise-sso":       {"name": "Enterprise SSO",           "category": "Security",   "price": 3_000},
    "custom-auth":          {"name": "Custom Authentication",    "category": "Security",   "price": 2_000},
    # E-commerce
    "payment-processing":   {"name": "Payment Processing",       "category": "E-commerce", "price": 2_000},
    "shopping-cart":        {"name": "Shopping Cart",            "category": "E-commerce", "price": 1_500},
    "inventory-management": {"name": "Inventory Management",     "category": "E-commerce", "price": 2_500},
    "order-management":     {"name": "Order Management",         "category": "E-commerce", "price": 1_500},
    # Real-time
    "real-time-chat":       {"name": "Real-time Chat",           "category": "Real-time",  "price": 2_000},
    "real-time-updates":    {"name": "Real-time Updates",        "category": "Real-time",  "price": 1_500},
    "live-collaboration":   {"name": "Live Collaboration",       "category": "Real-time",  "price": 3_000},
    # Content management
    "basic-cms":            {"name": "Basic CMS",                "category": "Content",    "price": 2_000},
    "headless-cms":         {"name": "Headless CMS Integration", "category": "Content",    "price": 3_000},
    "custom-cms":           {"name": "Custom CMS",               "category": "Content",    "price": 5_000},
    # API
    "internal-api":         {"name": "Internal API",             "category": "API",        "price": 2_000},
    "public-api":           {"name": "Public API",               "category": "API",        "price": 4_000},
    "api-documentation":    {"name": "API Documentation",        "category": "API",        "price": 1_500},
    # Advanced
    "search-functionality": {"name": "Search Functionality",     "category": "Advanced",   "price": 1_500},
    "analytics-dashboard":  {"name": "Analytics Dashboard",      "category": "Advanced",   "price": 2_000},
    "admin-panel":          {"name": "Admin Panel",              "category": "Advanced",   "price": 2_500},
    "multi-language":       {"name": "Multi-language Support",   "category": "Advanced",   "price": 2_000},
    "notifications":        {"name": "Notifications",            "category": "Advanced",   "price": 1_000},
}

FEATURE_ALIASES: dict[str, str] = {
    "user-auth": "basic-auth",
    "authentication": "basic-auth",
    "login": "basic-auth",
    "user-accounts": "basic-auth",
    "sso": "enterprise-sso",
    "payments": "payment-processing",
    "checkout": "payment-processing",
    "cart": "shopping-cart",
    "inventory": "inventory-management",
    "orders": "order-management",
    "chat": "real-time-chat",
    "messaging": "real-time-chat",
    "cms": "basic-cms",
    "api": "internal-api",
    "search": "search-functionality",
    "analytics": "analytics-dashboard",
    "admin": "admin-panel",
    "admin-dashboard": "admin-panel",
    "i18n": "multi-language",
    "push-notifications": "notifications",
}

UNKNOWN_FEATURE_PRICE = 0
UNKNOWN_FEATURE_CATEGORY = "Custom"

PLATFORMS: dict[str, int] = {
    "web":      0,        # included in base
    "ios":      8_000,
    "android":  8_000,
    "desktop":  10_000,
    "api-only": 0,
}
DEFAULT_PLATFORM_PRICE = 4_000   # platforms not listed above

DESIGN_BASE_COST = 2_000
DESIGN_MULTIPLIERS: dict[str, float] = {
    "basic":    0.5,
    "standard": 1.0,
    "premium":  2.5,
}
DESIGN_ALIASES: dict[str, str] = {
    "minimalist": "basic",
    "simple": "basic",
    "modern": "standard",
    "corporate": "standard",
    "not-sure": "standard",
    "creative": "premium",
    "custom": "premium",
}

INTEGRATION_PRICE = 1_000
INTEGRATION_OVERRIDES: dict[str, int] = {
    "salesforce":       3_000,
    "hubspot":          2_000,
    "quickbooks":       2_000,
    "stripe":           1_500,
    "paypal":           1_500,
    "mailchimp":        750,
    "google-analytics": 500,
    "zapier":           500,
}

# Scope signal = features + integrations + platforms; bands are lower bounds
COMPLEXITY_LEVELS: list[dict] = [
    {"level": "Simple",     "min_score": 0,  "multiplier": 0.8, "description": "Focused scope with few features and platforms"},
    {"level": "Moderate",   "min_score": 4,  "multiplier": 1.0, "description": "Standard application scope"},
    {"level": "Complex",    "min_score": 8,  "multiplier": 1.5, "description": "Broad feature set across several platforms or integrations"},
    {"level": "Enterprise", "min_score": 12, "multiplier": 2.5, "description": "Enterprise-grade scope"},
]

TIMELINES: dict[str, dict] = {
    "standard":    {"rush": False, "multiplier": 1.0, "duration_factor": 1.0, "description": "Standard timeline"},
    "3-6-months":  {"rush": False, "multiplier": 1.0, "duration_factor": 1.0, "description": "3-6 months"},
    "6-12-months": {"rush": False, "multiplier": 1.0, "duration_factor": 1.3, "description": "6-12 months"},
    "flexible":    {"rush": False, "multiplier": 1.0, "duration_factor": 1.2, "description": "Flexible timeline"},
    "1-3-months":  {"rush": True,  "multiplier": 1.2, "duration_factor": 0.8, "description": "Accelerated delivery (1-3 months)"},
    "asap":        {"rush": True,  "multiplier": 1.5, "duration_factor": 0.7, "description": "Rush delivery (ASAP)"},
    "rush":        {"rush": True,  "multiplier": 1.5, "duration_factor": 0.7, "description": "Rush delivery"},
    "rush-2x":     {"rush": True,  "multiplier": 2.0, "duration_factor": 0.5, "description": "Double-speed rush delivery"},
}

# max None = unbounded; average is the reference point for every comparison
BUDGET_RANGES: dict[str, dict] = {
    "under-5k": {"min": 0,       "max": 5_000,   "average": 2_500},
    "1-2k":     {"min": 1_000,   "max": 2_000,   "average": 1_500},
    "2-5k":     {"min": 2_000,   "max": 5_000,   "average": 3_500},
    "5-10k":    {"min": 5_000,   "max": 10_000,  "average": 7_500},
    "10-25k":   {"min": 10_000,  "max": 25_000,  "average": 17_500},
    "25-50k":   {"min": 25_000,  "max": 50_000,  "average": 37_500},
    "50-100k":  {"min": 50_000,  "max": 100_000, "average": 75_000},
    "10k+":     {"min": 10_000,  "max": None,    "average": 15_000},
    "100k+":    {"min": 100_000, "max": None,    "average": 150_000},
    "discuss":  {"min": 0,       "max": None,    "average": 0},
}

BUDGET_ALIASES: dict[str, str] = {
    "5k-10k": "5-10k",
    "10k-25k": "10-25k",
    "25k-50k": "25-50k",
    "50k-100k": "50-100k",
}

FEATURE_ALTERNATIVES: dict[str, dict] = {
    "custom-cms":           {"alternative": "Headless CMS (Contentful/Strapi)",                   "cost_savings": 3_000},
    "enterprise-sso":       {"alternative": "Social Login (Google/Facebook)",                     "cost_savings": 2_500},
    "custom-auth":          {"alternative": "Basic authentication with a hosted identity provider", "cost_savings": 1_500},
    "live-collaboration":   {"alternative": "Real-time updates without co-editing",               "cost_savings": 1_500},
    "public-api":           {"alternative": "Internal API",                                        "cost_savings": 2_000},
    "inventory-management": {"alternative": "Hosted commerce inventory (Shopify/WooCommerce)",    "cost_savings": 1_500},
    "analytics-dashboard":  {"alternative": "Embedded third-party analytics (Google Analytics)",  "cost_savings": 1_500},
}


# ---------------------------------------------------------------------------
# Catalog entries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProjectTypeEntry:
    key: str
    label: str
    base_price: int
    market: MarketRange
    base_weeks: int


@dataclass(frozen=True)
class FeatureEntry:
    key: str
    name: str
    category: str
    price: int


@dataclass(frozen=True)
class ComplexityBand:
    level: str
    min_score: int
    multiplier: float
    description: str


@dataclass(frozen=True)
class TimelineEntry:
    key: str
    rush: bool
    multiplier: float
    duration_factor: float
    description: str


@dataclass(frozen=True)
class FeatureAlternative:
    feature: str
    alternative: str
    cost_savings: int


def normalize_key(text: str) -> str:
    """Lowercase, trim, and hyphenate a free-text name: "Payment Processing" → "payment-processing"."""
    key = re.sub(r"[\s_/]+", "-", str(text).strip().lower())
    return re.sub(r"-{2,}", "-", key).strip("-")


# ---------------------------------------------------------------------------
# Pricing Catalog
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PricingCatalog:
    """
    Immutable, versioned pricing configuration.

    find_* methods return None for unknown keys; resolve_* methods fall back
    to a documented default and log a warning. Neither raises.
    """

    version: str
    project_types: Mapping[str, ProjectTypeEntry]
    project_type_aliases: Mapping[str, str]
    features: Mapping[str, FeatureEntry]
    feature_aliases: Mapping[str, str]
    unknown_feature_price: int
    unknown_feature_category: str
    platforms: Mapping[str, int]
    default_platform_price: int
    design_base_cost: int
    design_multipliers: Mapping[str, float]
    design_aliases: Mapping[str, str]
    integration_price: int
    integration_overrides: Mapping[str, int]
    complexity_levels: tuple[ComplexityBand, ...]
    timelines: Mapping[str, TimelineEntry]
    budget_ranges: Mapping[str, BudgetRange]
    budget_aliases: Mapping[str, str]
    feature_alternatives: Mapping[str, FeatureAlternative]

    # -- project types ------------------------------------------------------

    def find_project_type(self, name: str) -> Optional[ProjectTypeEntry]:
        key = normalize_key(name)
        key = self.project_type_aliases.get(key, key)
        return self.project_types.get(key)

    def resolve_project_type(self, name: str) -> ProjectTypeEntry:
        entry = self.find_project_type(name)
        if entry is None:
            logger.warning("Unknown project type %r — using 'other'", name)
            return self.project_types["other"]
        return entry

    # -- features -----------------------------------------------------------

    def find_feature(self, name: str) -> Optional[FeatureEntry]:
        key = normalize_key(name)
        key = self.feature_aliases.get(key, key)
        return self.features.get(key)

    def feature_key(self, name: str) -> str:
        """
        Canonical key for a feature name, whether or not the catalog knows it.

        Names made only of separators ("__", "/") keep their trimmed text as key.
        """
        key = normalize_key(name)
        if not key:
            return str(name).strip()
        return self.feature_aliases.get(key, key)

    def resolve_feature(self, name: str) -> tuple[FeatureEntry, bool]:
        """
        Look up a feature, falling back to a custom line for unknown names.

        Returns:
            (entry, resolved) — resolved is False when the fallback was used
        """
        entry = self.find_feature(name)
        if entry is not None:
            return entry, True
        logger.warning(
            "Unknown feature %r — priced as custom work at %d cents",
            name, self.unknown_feature_price,
        )
        return FeatureEntry(
            key=self.feature_key(name),
            name=str(name).strip(),
            category=self.unknown_feature_category,
            price=self.unknown_feature_price,
        ), False

    # -- platforms / design / integrations ---------------------------------

    def platform_price(self, name: str) -> Optional[int]:
        return self.platforms.get(normalize_key(name))

    def find_design_level(self, name: str) -> Optional[str]:
        key = normalize_key(name)
        key = self.design_aliases.get(key, key)
        return key if key in self.design_multipliers else None

    def resolve_design_level(self, name: str) -> str:
        level = self.find_design_level(name)
        if level is None:
            logger.warning("Unknown design level %r — using 'standard'", name)
            return "standard"
        return level

    def integration_cost(self, name: str) -> int:
        return self.integration_overrides.get(normalize_key(name), self.integration_price)

    # -- complexity / timeline ---------------------------------------------

    def complexity_for(self, score: int) -> ComplexityBand:
        band = self.complexity_levels[0]
        for candidate in self.complexity_levels:
            if score >= candidate.min_score:
                band = candidate
        return band

    def find_timeline(self, name: str) -> Optional[TimelineEntry]:
        return self.timelines.get(normalize_key(name))

    def resolve_timeline(self, name: str) -> TimelineEntry:
        entry = self.find_timeline(name)
        if entry is None:
            logger.warning("Unknown timeline %r — using 'standard'", name)
            return self.timelines["standard"]
        return entry

    # -- budgets --------------------------------------------------------------

    def find_budget(self, name: str) -> Optional[BudgetRange]:
        key = normalize_key(name)
        key = self.budget_aliases.get(key, key)
        return self.budget_ranges.get(key)

    def resolve_budget(self, name: Optional[str]) -> BudgetRange:
        entry = self.find_budget(name or "discuss")
        if entry is None:
            logger.warning("Unknown budget range %r — using 'discuss'", name)
            return self.budget_ranges["discuss"]
        return entry

    def alternative_for(self, feature_key: str) -> Optional[FeatureAlternative]:
        return self.feature_alternatives.get(feature_key)


# ---------------------------------------------------------------------------
# Building & loading
# ---------------------------------------------------------------------------

def default_tables() -> dict[str, Any]:
    """A deep copy of the built-in tables, in the same shape a YAML overlay uses."""
    return copy.deepcopy({
        "version": DEFAULT_VERSION,
        "project_types": PROJECT_TYPES,
        "project_type_aliases": PROJECT_TYPE_ALIASES,
        "features": FEATURES,
        "feature_aliases": FEATURE_ALIASES,
        "unknown_feature_price": UNKNOWN_FEATURE_PRICE,
        "unknown_feature_category": UNKNOWN_FEATURE_CATEGORY,
        "platforms": PLATFORMS,
        "default_platform_price": DEFAULT_PLATFORM_PRICE,
        "design_base_cost": DESIGN_BASE_COST,
        "design_multipliers": DESIGN_MULTIPLIERS,
        "design_aliases": DESIGN_ALIASES,
        "integration_price": INTEGRATION_PRICE,
        "integration_overrides": INTEGRATION_OVERRIDES,
        "complexity_levels": COMPLEXITY_LEVELS,
        "timelines": TIMELINES,
        "budget_ranges": BUDGET_RANGES,
        "budget_aliases": BUDGET_ALIASES,
        "feature_alternatives": FEATURE_ALTERNATIVES,
    })


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(dict(mapping))


def build_catalog(tables: dict[str, Any]) -> PricingCatalog:
    """
    Build a PricingCatalog from dollar-denominated tables.

    Raises:
        CatalogError: If a table entry is missing fields or inconsistent
    """
    try:
        project_types = {
            normalize_key(key): ProjectTypeEntry(
                key=normalize_key(key),
                label=row["label"],
                base_price=dollars(row["base_price"]),
                market=MarketRange(*(dollars(v) for v in row["market"])),
                base_weeks=int(row["base_weeks"]),
            )
            for key, row in tables["project_types"].items()
        }
        features = {
            normalize_key(key): FeatureEntry(
                key=normalize_key(key),
                name=row["name"],
                category=row["category"],
                price=dollars(row["price"]),
            )
            for key, row in tables["features"].items()
        }
        complexity = tuple(sorted(
            (ComplexityBand(
                level=band["level"],
                min_score=int(band["min_score"]),
                multiplier=float(band["multiplier"]),
                description=band["description"],
            ) for band in tables["complexity_levels"]),
            key=lambda b: b.min_score,
        ))
        timelines = {
            normalize_key(key): TimelineEntry(
                key=normalize_key(key),
                rush=bool(row["rush"]),
                multiplier=float(row["multiplier"]),
                duration_factor=float(row["duration_factor"]),
                description=row["description"],
            )
            for key, row in tables["timelines"].items()
        }
        budgets = {
            normalize_key(key): BudgetRange(
                name=normalize_key(key),
                min=dollars(row["min"]),
                max=dollars(row["max"]) if row.get("max") is not None else None,
                average=dollars(row["average"]),
            )
            for key, row in tables["budget_ranges"].items()
        }
        alternatives = {
            normalize_key(key): FeatureAlternative(
                feature=normalize_key(key),
                alternative=row["alternative"],
                cost_savings=dollars(row["cost_savings"]),
            )
            for key, row in tables["feature_alternatives"].items()
        }
        catalog = PricingCatalog(
            version=str(tables["version"]),
            project_types=_frozen(project_types),
            project_type_aliases=_frozen({normalize_key(k): normalize_key(v) for k, v in tables["project_type_aliases"].items()}),
            features=_frozen(features),
            feature_aliases=_frozen({normalize_key(k): normalize_key(v) for k, v in tables["feature_aliases"].items()}),
            unknown_feature_price=dollars(tables["unknown_feature_price"]),
            unknown_feature_category=tables["unknown_feature_category"],
            platforms=_frozen({normalize_key(k): dollars(v) for k, v in tables["platforms"].items()}),
            default_platform_price=dollars(tables["default_platform_price"]),
            design_base_cost=dollars(tables["design_base_cost"]),
            design_multipliers=_frozen({normalize_key(k): float(v) for k, v in tables["design_multipliers"].items()}),
            design_aliases=_frozen({normalize_key(k): normalize_key(v) for k, v in tables["design_aliases"].items()}),
            integration_price=dollars(tables["integration_price"]),
            integration_overrides=_frozen({normalize_key(k): dollars(v) for k, v in tables["integration_overrides"].items()}),
            complexity_levels=complexity,
            timelines=_frozen(timelines),
            budget_ranges=_frozen(budgets),
            budget_aliases=_frozen({normalize_key(k): normalize_key(v) for k, v in tables["budget_aliases"].items()}),
            feature_alternatives=_frozen(alternatives),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise CatalogError(f"Invalid pricing catalog: {e!r}") from e

    _validate(catalog)
    return catalog


def _validate(catalog: PricingCatalog) -> None:
    for required in ("other",):
        if required not in catalog.project_types:
            raise CatalogError(f"Catalog must define project type {required!r}")
    if "standard" not in catalog.timelines:
        raise CatalogError("Catalog must define the 'standard' timeline")
    if "standard" not in catalog.design_multipliers:
        raise CatalogError("Catalog must define the 'standard' design level")
    if "discuss" not in catalog.budget_ranges:
        raise CatalogError("Catalog must define the 'discuss' budget range")
    if not catalog.complexity_levels or catalog.complexity_levels[0].min_score != 0:
        raise CatalogError("Complexity levels must start at score 0")
    for entry in catalog.timelines.values():
        if entry.rush and entry.multiplier <= 1.0:
            raise CatalogError(f"Rush timeline {entry.key!r} needs a multiplier above 1.0")
        if not entry.rush and entry.multiplier != 1.0:
            raise CatalogError(f"Non-rush timeline {entry.key!r} must use multiplier 1.0")
    for budget in catalog.budget_ranges.values():
        if budget.max is not None and budget.max < budget.min:
            raise CatalogError(f"Budget range {budget.name!r} has max below min")


def load_catalog(path: Union[str, Path]) -> PricingCatalog:
    """
    Load a YAML overlay on top of the built-in tables.

    Each top-level key replaces or extends the matching table; mapping tables
    are merged entry by entry, scalars and lists are replaced.

    Raises:
        CatalogError: If the file is unreadable or does not describe a valid catalog
    """
    path = Path(path)
    try:
        with open(path) as f:
            overlay = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise CatalogError(f"Cannot read catalog file {path}: {e}") from e

    if not isinstance(overlay, dict):
        raise CatalogError(f"Catalog file {path} must contain a mapping at the top level")

    tables = default_tables()
    unknown = set(overlay) - set(tables)
    if unknown:
        raise CatalogError(f"Unknown catalog sections in {path}: {sorted(unknown)}")

    for section, value in overlay.items():
        if isinstance(tables[section], dict) and isinstance(value, dict):
            tables[section].update(value)
        else:
            tables[section] = value

    catalog = build_catalog(tables)
    logger.info("Loaded pricing catalog %s from %s", catalog.version, path)
    return catalog


@lru_cache(maxsize=1)
def get_default_catalog() -> PricingCatalog:
    """The process-wide catalog: built-in tables, overlaid by QUOTE_CATALOG_PATH when set."""
    if CATALOG_PATH:
        return load_catalog(CATALOG_PATH)
    return build_catalog(default_tables())
