"""
models.py — Assessment & Pricing Records

Shared records for the quote engine: the client's assessment answers, the
pricing breakdown derived from them, budget ranges, and the money helpers
every stage uses.

All money values are integer minor units (cents). A PricingBreakdown is
always recomputed from the answers and never edited by hand, so its records
are frozen.

Usage:
    from quote_engine.models import AssessmentAnswers
    answers = AssessmentAnswers.from_dict(request_json)
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, replace
from fractions import Fraction
from typing import Any, Optional, Union

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PRICING_SCHEMA_VERSION = 1

# Legacy placeholder strings that mean "no answer given"
_EMPTY_SENTINELS = {"", "n/a", "na", "none", "-"}


# ---------------------------------------------------------------------------
# Money helpers
# ---------------------------------------------------------------------------

def round_half_up(value: Union[int, float, Fraction, Any]) -> int:
    """Round to the nearest integer; exact halves go toward positive infinity."""
    return math.floor(Fraction(value) + Fraction(1, 2))


def dollars(amount: Union[int, float]) -> int:
    """Convert a whole-dollar catalog amount into cents."""
    return round_half_up(Fraction(str(amount)) * 100)


def format_money(cents: int) -> str:
    """Format cents as a dollar string: 825000 → "$8,250", 825050 → "$8,250.50"."""
    sign = "-" if cents < 0 else ""
    whole, rem = divmod(abs(cents), 100)
    if rem:
        return f"{sign}${whole:,}.{rem:02d}"
    return f"{sign}${whole:,}"


# ---------------------------------------------------------------------------
# Assessment answers
# ---------------------------------------------------------------------------

def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in _EMPTY_SENTINELS:
        return None
    return text


def _clean_list(value: Any) -> list[str]:
    """Normalize a string or list answer into an ordered list without duplicates."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    items: list[str] = []
    for raw in value:
        text = _clean_text(raw)
        if text and text not in items:
            items.append(text)
    return items


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass
class AssessmentAnswers:
    """A client's submitted project requirements."""
    project_name: str
    project_type: str
    project_description: Optional[str] = None
    target_audience: Optional[str] = None
    main_goals: list[str] = field(default_factory=list)
    platform: list[str] = field(default_factory=list)            # e.g. ["web", "ios"]
    must_have_features: list[str] = field(default_factory=list)  # ordered, as entered
    nice_to_have_features: list[str] = field(default_factory=list)
    preferred_timeline: str = "standard"
    budget: str = "discuss"                                      # budget range key
    design_level: str = "standard"
    integrations: list[str] = field(default_factory=list)
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    id: Optional[int] = None
    version: int = 1

    @classmethod
    def from_dict(cls, data: dict) -> "AssessmentAnswers":
        """Build answers from a submitted form or stored record (camelCase or snake_case)."""
        assessment_id = _pick(data, "id")
        return cls(
            project_name=_clean_text(_pick(data, "projectName", "project_name")) or "Untitled Project",
            project_type=_clean_text(_pick(data, "projectType", "project_type")) or "other",
            project_description=_clean_text(_pick(data, "projectDescription", "project_description")),
            target_audience=_clean_text(_pick(data, "targetAudience", "target_audience")),
            main_goals=_clean_list(_pick(data, "mainGoals", "main_goals")),
            platform=_clean_list(_pick(data, "platform", "platforms")),
            must_have_features=_clean_list(_pick(data, "mustHaveFeatures", "must_have_features")),
            nice_to_have_features=_clean_list(_pick(data, "niceToHaveFeatures", "nice_to_have_features")),
            preferred_timeline=_clean_text(_pick(data, "preferredTimeline", "preferred_timeline")) or "standard",
            budget=_clean_text(_pick(data, "budget", "budgetRange", "budget_range")) or "discuss",
            design_level=_clean_text(_pick(data, "designLevel", "design_level", "designStyle")) or "standard",
            integrations=_clean_list(_pick(data, "integrations")),
            client_name=_clean_text(_pick(data, "clientName", "client_name", "name")),
            client_email=_clean_text(_pick(data, "clientEmail", "client_email", "email")),
            id=int(assessment_id) if assessment_id is not None else None,
            version=int(_pick(data, "version", default=1)),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    def with_features(self, must_have_features: list[str]) -> "AssessmentAnswers":
        """Return the next version of these answers with a replaced must-have list."""
        return replace(
            self,
            must_have_features=_clean_list(must_have_features),
            version=self.version + 1,
        )


# ---------------------------------------------------------------------------
# Budget & market ranges
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BudgetRange:
    name: str
    min: int
    max: Optional[int]      # None = unbounded ("10k+", "discuss")
    average: int

    @property
    def unbounded(self) -> bool:
        return self.max is None

    @property
    def has_amount(self) -> bool:
        """False for selections with no stated amount, such as "discuss"."""
        return self.average > 0


@dataclass(frozen=True)
class MarketRange:
    min: int
    max: int
    average: int


# ---------------------------------------------------------------------------
# Pricing breakdown
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FeatureLine:
    key: str                # catalog key, or normalized name when unresolved
    requested: str          # the feature name exactly as the client entered it
    name: str
    category: str
    price: int
    resolved: bool = True   # False when the name was not found in the catalog
    requested_as: tuple[str, ...] = ()   # every spelling that mapped to this line, input order

    @property
    def spellings(self) -> tuple[str, ...]:
        return self.requested_as or (self.requested,)


@dataclass(frozen=True)
class PlatformCost:
    platforms: tuple[str, ...]
    price: int


@dataclass(frozen=True)
class DesignCost:
    level: str
    multiplier: float
    price: int


@dataclass(frozen=True)
class IntegrationCost:
    names: tuple[str, ...]
    count: int
    price: int


@dataclass(frozen=True)
class Complexity:
    level: str
    multiplier: float
    description: str
    score: int              # features + integrations + platforms


@dataclass(frozen=True)
class StandardTimeline:
    key: str
    description: str
    multiplier: float = 1.0
    rush: bool = field(default=False, init=False)

    def __post_init__(self):
        if self.multiplier != 1.0:
            raise ValueError(f"standard timeline multiplier must be 1.0, got {self.multiplier}")


@dataclass(frozen=True)
class RushTimeline:
    key: str
    description: str
    multiplier: float
    rush: bool = field(default=True, init=False)

    def __post_init__(self):
        if self.multiplier <= 1.0:
            raise ValueError(f"rush timeline multiplier must exceed 1.0, got {self.multiplier}")


TimelineCost = Union[StandardTimeline, RushTimeline]


@dataclass(frozen=True)
class PricingBreakdown:
    project_type: str
    base_price: int
    features: tuple[FeatureLine, ...]
    platform: PlatformCost
    design: DesignCost
    integrations: IntegrationCost
    complexity: Complexity
    timeline: TimelineCost
    subtotal: int           # before multipliers
    final_total: int
    estimated_range: MarketRange
    catalog_version: str
    schema_version: int = PRICING_SCHEMA_VERSION
    warnings: tuple[str, ...] = ()

    @property
    def feature_total(self) -> int:
        return sum(f.price for f in self.features)

    @property
    def scope_count(self) -> int:
        """Features, platforms and integrations counted together."""
        return len(self.features) + len(self.platform.platforms) + self.integrations.count

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timeline"]["kind"] = "rush" if self.timeline.rush else "standard"
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PricingBreakdown":
        """Rebuild a stored breakdown produced by to_dict()."""
        timeline_data = dict(data["timeline"])
        kind = timeline_data.pop("kind", None)
        is_rush = timeline_data.pop("rush", kind == "rush")
        timeline_cls = RushTimeline if is_rush else StandardTimeline
        platform = data["platform"]
        integrations = data["integrations"]
        return cls(
            project_type=data["project_type"],
            base_price=data["base_price"],
            features=tuple(
                FeatureLine(**{**f, "requested_as": tuple(f.get("requested_as", ()))})
                for f in data["features"]
            ),
            platform=PlatformCost(platforms=tuple(platform["platforms"]), price=platform["price"]),
            design=DesignCost(**data["design"]),
            integrations=IntegrationCost(
                names=tuple(integrations["names"]),
                count=integrations["count"],
                price=integrations["price"],
            ),
            complexity=Complexity(**data["complexity"]),
            timeline=timeline_cls(**timeline_data),
            subtotal=data["subtotal"],
            final_total=data["final_total"],
            estimated_range=MarketRange(**data["estimated_range"]),
            catalog_version=data["catalog_version"],
            schema_version=data.get("schema_version", PRICING_SCHEMA_VERSION),
            warnings=tuple(data.get("warnings", ())),
        )
