"""
budget_comparator.py — Budget vs. Assessment Gap Analysis

Compares a PricingBreakdown against the budget range the client selected:
alignment status, which must-have features fit the budget, cost-category
deltas, value-density metrics, and a prioritized list of action items.

Alignment bands (percentage difference from the budget average):
    below -10%          under-budget
    -10% .. +10%        aligned            (both ends inclusive)
    +10% .. +40%        over-budget
    above +40%          significantly-over

Budgets with no stated amount ("discuss") classify as aligned at 0%, and
unbounded ranges ("10k+") never act as a divisor.

Usage:
    from quote_engine.budget_comparator import BudgetComparator
    comparison = BudgetComparator().compare(breakdown, "5-10k")
"""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from fractions import Fraction
from typing import Optional

from quote_engine.catalog import PricingCatalog, get_default_catalog, normalize_key
from quote_engine.models import (
    BudgetRange,
    FeatureLine,
    PricingBreakdown,
    dollars,
    format_money,
    round_half_up,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enums & Constants
# ---------------------------------------------------------------------------

class AlignmentStatus(str, Enum):
    ALIGNED            = "aligned"
    UNDER_BUDGET       = "under-budget"
    OVER_BUDGET        = "over-budget"
    SIGNIFICANTLY_OVER = "significantly-over"


class Priority(str, Enum):
    HIGH   = "high"
    MEDIUM = "medium"
    LOW    = "low"


class ActionType(str, Enum):
    PHASE_PROJECT     = "phase-project"
    REDUCE_SCOPE      = "reduce-scope"
    OPTIMIZE_FEATURES = "optimize-features"
    DEFER_FEATURES    = "defer-features"
    INCREASE_BUDGET   = "increase-budget"
    ENHANCE_SCOPE     = "enhance-scope"
    MAINTENANCE_PLAN  = "maintenance-plan"


ALIGNED_BAND_PCT = 10          # |Δ%| <= this is aligned
SIGNIFICANTLY_OVER_PCT = 40    # Δ% above this is significantly over
INCREASE_BUDGET_PCT = 50       # Δ% above this suggests raising the budget

PRIORITY_ORDER = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}

# Surplus tiers (budget average minus total) that unlock suggested extras
RECOMMENDED_FEATURES: list[tuple[int, list[str]]] = [
    (dollars(2_000), ["Advanced analytics dashboard", "Mobile app version", "API documentation"]),
    (dollars(1_000), ["Enhanced security features", "Performance optimization"]),
]

NATIVE_APPS_ALTERNATIVE = {
    "feature": "Native iOS + Android Apps",
    "alternative": "Progressive Web App (PWA)",
    "cost_savings": dollars(15_000),
}

TEMPLATE_SOLUTION_MAX = dollars(10_000)   # bounded budgets below this get the template tip

# Value bands: (exclusive lower bound, label), checked top-down
QUALITY_BANDS: list[tuple[int, str]] = [
    (dollars(50_000), "Premium"),
    (dollars(20_000), "High"),
    (dollars(8_000),  "Standard"),
]
SCOPE_BANDS: list[tuple[int, str]] = [   # inclusive lower bounds on scope count
    (12, "Enterprise"),
    (8,  "Large"),
    (5,  "Medium"),
    (3,  "Small-Medium"),
]


# ---------------------------------------------------------------------------
# Data Models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AssessmentNeeds:
    estimated_min: int
    estimated_max: int
    average: int
    calculated_total: int


@dataclass(frozen=True)
class Alignment:
    status: AlignmentStatus
    percentage_difference: int   # rounded half-up; classification uses the exact value
    message: str
    recommendation: str


@dataclass(frozen=True)
class BudgetAlternative:
    feature: str
    alternative: str
    cost_savings: int


@dataclass(frozen=True)
class FeatureComparison:
    included_in_budget: tuple[str, ...]
    missing_from_budget: tuple[str, ...]
    recommended_features: tuple[str, ...]
    budget_friendly_alternatives: tuple[BudgetAlternative, ...]

    @property
    def total_savings(self) -> int:
        return sum(a.cost_savings for a in self.budget_friendly_alternatives)


@dataclass(frozen=True)
class CategoryAllocation:
    base_price: int
    features: int
    platform: int
    design: int
    integrations: int
    complexity: int
    timeline: int

    def total(self) -> int:
        return sum(asdict(self).values())


@dataclass(frozen=True)
class CostBreakdown:
    assessment_allocation: CategoryAllocation
    budget_allocation: CategoryAllocation
    differences: CategoryAllocation


@dataclass(frozen=True)
class ValueMetrics:
    features_per_dollar: float   # scope items per $1,000
    quality_level: str
    scope_level: str


@dataclass(frozen=True)
class ValueAnalysis:
    budget_value: ValueMetrics
    assessment_value: ValueMetrics
    recommendations: tuple[str, ...]


@dataclass(frozen=True)
class ActionItem:
    type: ActionType
    priority: Priority
    title: str
    description: str
    impact: str


@dataclass(frozen=True)
class BudgetComparison:
    budget_range: BudgetRange
    assessment_needs: AssessmentNeeds
    alignment: Alignment
    feature_comparison: FeatureComparison
    cost_breakdown: CostBreakdown
    value_analysis: ValueAnalysis
    action_items: tuple[ActionItem, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Budget Comparator
# ---------------------------------------------------------------------------

class BudgetComparator:
    """
    Gap analysis between a computed quote and the client's budget range.

    Feature partition is greedy: features sorted by (price, input position)
    ascending are accepted while their running sum stays within the budget
    average minus the base price. Unbounded budgets accept every feature.
    """

    def __init__(self, catalog: Optional[PricingCatalog] = None):
        self.catalog = catalog or get_default_catalog()

    def compare(self, pricing: PricingBreakdown, budget_key: Optional[str]) -> BudgetComparison:
        budget = self.catalog.resolve_budget(budget_key)
        total = pricing.final_total

        # Step 1-2: Percentage difference and alignment
        alignment = self._calculate_alignment(budget, total)
        over = alignment.status in (AlignmentStatus.OVER_BUDGET, AlignmentStatus.SIGNIFICANTLY_OVER)

        # Step 3-4: Feature partition and alternatives
        features = self._compare_features(pricing, budget, over)

        # Step 5: Cost categories
        costs = self._compare_costs(pricing, budget)

        # Step 6: Value analysis
        value = self._analyze_value(pricing, budget, features, alignment)

        # Step 7: Action items
        actions = self._generate_action_items(alignment, features)

        comparison = BudgetComparison(
            budget_range=budget,
            assessment_needs=AssessmentNeeds(
                estimated_min=pricing.estimated_range.min,
                estimated_max=pricing.estimated_range.max,
                average=pricing.estimated_range.average,
                calculated_total=total,
            ),
            alignment=alignment,
            feature_comparison=features,
            cost_breakdown=costs,
            value_analysis=value,
            action_items=actions,
        )

        logger.info(
            "Budget comparison: budget=%s, total=%s, status=%s (%+d%%), missing=%d, actions=%d",
            budget.name,
            format_money(total),
            alignment.status.value,
            alignment.percentage_difference,
            len(features.missing_from_budget),
            len(actions),
        )
        return comparison

    # ------------------------------------------------------------------
    # Private: Alignment
    # ------------------------------------------------------------------

    @staticmethod
    def exact_percentage(total: int, budget: BudgetRange) -> Fraction:
        """Exact percentage difference from the budget average; 0 when no amount is stated."""
        if not budget.has_amount:
            return Fraction(0)
        return Fraction(total - budget.average) * 100 / budget.average

    @staticmethod
    def classify(pct: Fraction) -> AlignmentStatus:
        if pct < -ALIGNED_BAND_PCT:
            return AlignmentStatus.UNDER_BUDGET
        if pct <= ALIGNED_BAND_PCT:
            return AlignmentStatus.ALIGNED
        if pct <= SIGNIFICANTLY_OVER_PCT:
            return AlignmentStatus.OVER_BUDGET
        return AlignmentStatus.SIGNIFICANTLY_OVER

    def _calculate_alignment(self, budget: BudgetRange, total: int) -> Alignment:
        if not budget.has_amount:
            return Alignment(
                status=AlignmentStatus.ALIGNED,
                percentage_difference=0,
                message=(
                    f"No budget amount was selected. The estimated cost is {format_money(total)}; "
                    "we'll review scope and budget together."
                ),
                recommendation="Share a target budget so we can tailor the scope to it.",
            )

        pct = self.exact_percentage(total, budget)
        status = self.classify(pct)
        cost = format_money(total)
        target = format_money(budget.average)
        gap = format_money(abs(total - budget.average))

        if status == AlignmentStatus.ALIGNED:
            message = (
                f"Your budget aligns well with your project needs. The estimated cost ({cost}) "
                f"is within {ALIGNED_BAND_PCT}% of your budget target ({target})."
            )
            recommendation = (
                "Your budget is well-aligned. You can proceed with confidence that your project "
                "scope matches your financial expectations."
            )
        elif status == AlignmentStatus.UNDER_BUDGET:
            message = (
                f"Great news! Your project needs ({cost}) are below your budget target ({target}). "
                f"You could save up to {gap} or invest in additional features."
            )
            recommendation = (
                "Consider adding premium features, enhanced design, or additional integrations "
                "to maximize value within your budget."
            )
        elif status == AlignmentStatus.OVER_BUDGET:
            message = (
                f"Your project needs ({cost}) exceed your budget target ({target}) "
                f"by approximately {gap}."
            )
            recommendation = (
                "Consider phasing the project, reducing scope, or increasing your budget "
                "to align with your requirements."
            )
        else:
            message = (
                f"Your project needs ({cost}) significantly exceed your budget target ({target}) "
                f"by approximately {gap}."
            )
            recommendation = (
                "We strongly recommend phasing the project into multiple stages or substantially "
                "reducing the project scope. Increasing the budget is the other way to keep every feature."
            )

        return Alignment(
            status=status,
            percentage_difference=round_half_up(pct),
            message=message,
            recommendation=recommendation,
        )

    # ------------------------------------------------------------------
    # Private: Features
    # ------------------------------------------------------------------

    @staticmethod
    def partition_features(
        features: tuple[FeatureLine, ...],
        budget: BudgetRange,
        base_price: int,
    ) -> tuple[list[FeatureLine], list[FeatureLine]]:
        """
        Greedy split into (included, missing), each in input order.

        Features are considered cheapest first; ties keep input order. The
        comparison lists every spelling of a line, grouped under its first one.
        """
        if budget.unbounded:
            return list(features), []

        headroom = budget.average - base_price
        order = sorted(range(len(features)), key=lambda i: (features[i].price, i))
        accepted: set[int] = set()
        running = 0
        for i in order:
            if running + features[i].price > headroom:
                break
            running += features[i].price
            accepted.add(i)

        included = [f for i, f in enumerate(features) if i in accepted]
        missing = [f for i, f in enumerate(features) if i not in accepted]
        return included, missing

    def _compare_features(
        self,
        pricing: PricingBreakdown,
        budget: BudgetRange,
        over: bool,
    ) -> FeatureComparison:
        included, missing = self.partition_features(pricing.features, budget, pricing.base_price)

        recommended: list[str] = []
        if budget.has_amount and not over and budget.average > pricing.final_total:
            surplus = budget.average - pricing.final_total
            for threshold, names in RECOMMENDED_FEATURES:
                if surplus > threshold:
                    recommended.extend(names)

        alternatives: list[BudgetAlternative] = []
        for line in missing:
            alt = self.catalog.alternative_for(line.key)
            if alt is not None:
                alternatives.append(BudgetAlternative(
                    feature=line.requested,
                    alternative=alt.alternative,
                    cost_savings=alt.cost_savings,
                ))
        platforms = {normalize_key(p) for p in pricing.platform.platforms}
        if over and {"ios", "android"} <= platforms:
            alternatives.append(BudgetAlternative(**NATIVE_APPS_ALTERNATIVE))

        return FeatureComparison(
            included_in_budget=tuple(name for f in included for name in f.spellings),
            missing_from_budget=tuple(name for f in missing for name in f.spellings),
            recommended_features=tuple(recommended),
            budget_friendly_alternatives=tuple(alternatives),
        )

    # ------------------------------------------------------------------
    # Private: Costs & Value
    # ------------------------------------------------------------------

    @staticmethod
    def _compare_costs(pricing: PricingBreakdown, budget: BudgetRange) -> CostBreakdown:
        complexity = round_half_up(Fraction(pricing.subtotal) * (Fraction(str(pricing.complexity.multiplier)) - 1))
        assessment = CategoryAllocation(
            base_price=pricing.base_price,
            features=pricing.feature_total,
            platform=pricing.platform.price,
            design=pricing.design.price,
            integrations=pricing.integrations.price,
            complexity=complexity,
            # remainder, so the categories sum to the final total
            timeline=pricing.final_total - pricing.subtotal - complexity,
        )

        scale = Fraction(1)
        if not budget.unbounded and pricing.final_total > budget.max:
            scale = Fraction(budget.max, pricing.final_total)

        assessment_values = asdict(assessment)
        budget_alloc = CategoryAllocation(**{
            key: round_half_up(value * scale) for key, value in assessment_values.items()
        })
        budget_values = asdict(budget_alloc)
        differences = CategoryAllocation(**{
            key: assessment_values[key] - budget_values[key] for key in assessment_values
        })
        return CostBreakdown(
            assessment_allocation=assessment,
            budget_allocation=budget_alloc,
            differences=differences,
        )

    @staticmethod
    def _features_per_thousand(count: int, cost: int) -> float:
        if cost <= 0:
            return 0.0
        # cost is in cents: count / (cost / 100 / 1000), to 2 places
        return round_half_up(Fraction(count * 100_000 * 100, cost)) / 100

    @staticmethod
    def _quality_level(cost: int) -> str:
        for threshold, label in QUALITY_BANDS:
            if cost > threshold:
                return label
        return "Basic"

    @staticmethod
    def _scope_level(count: int) -> str:
        for threshold, label in SCOPE_BANDS:
            if count >= threshold:
                return label
        return "Small"

    def _analyze_value(
        self,
        pricing: PricingBreakdown,
        budget: BudgetRange,
        features: FeatureComparison,
        alignment: Alignment,
    ) -> ValueAnalysis:
        other_scope = len(pricing.platform.platforms) + pricing.integrations.count
        budget_count = len(features.included_in_budget) + other_scope
        assessment_count = pricing.scope_count

        recommendations: list[str] = []
        if alignment.status in (AlignmentStatus.OVER_BUDGET, AlignmentStatus.SIGNIFICANTLY_OVER):
            recommendations.append("Consider phasing the project to fit your budget while maintaining quality")
            recommendations.append("Prioritize core features and defer nice-to-have features to later phases")
            if not budget.unbounded and budget.max < TEMPLATE_SOLUTION_MAX:
                recommendations.append("Explore template-based solutions to reduce custom development costs")
        elif alignment.status == AlignmentStatus.UNDER_BUDGET:
            recommendations.append("Your budget allows for premium features and enhanced quality")
            recommendations.append("Consider investing in advanced integrations or mobile app development")
            recommendations.append("You could add professional design services or extended support")
        else:
            recommendations.append("Your budget and project scope are well-aligned")
            recommendations.append("Consider adding a maintenance and support plan")

        return ValueAnalysis(
            budget_value=ValueMetrics(
                features_per_dollar=self._features_per_thousand(budget_count, budget.average),
                quality_level=self._quality_level(budget.average),
                scope_level=self._scope_level(budget_count),
            ),
            assessment_value=ValueMetrics(
                features_per_dollar=self._features_per_thousand(assessment_count, pricing.final_total),
                quality_level=self._quality_level(pricing.final_total),
                scope_level=self._scope_level(assessment_count),
            ),
            recommendations=tuple(recommendations),
        )

    # ------------------------------------------------------------------
    # Private: Action Items
    # ------------------------------------------------------------------

    def _generate_action_items(
        self,
        alignment: Alignment,
        features: FeatureComparison,
    ) -> tuple[ActionItem, ...]:
        """Each rule fires at most once; output is priority-descending, rule order within a priority."""
        status = alignment.status
        over = status in (AlignmentStatus.OVER_BUDGET, AlignmentStatus.SIGNIFICANTLY_OVER)
        items: list[ActionItem] = []

        if over:
            items.append(ActionItem(
                type=ActionType.PHASE_PROJECT,
                priority=Priority.HIGH,
                title="Phase the Project",
                description="Break your project into multiple phases to fit your budget while maintaining quality.",
                impact="Could reduce initial cost by 40-60% while delivering core functionality first.",
            ))
            items.append(ActionItem(
                type=ActionType.REDUCE_SCOPE,
                priority=Priority.HIGH if status == AlignmentStatus.SIGNIFICANTLY_OVER else Priority.MEDIUM,
                title="Reduce Project Scope",
                description="Prioritize must-have features and defer nice-to-have features to future updates.",
                impact="Could reduce cost by 20-30% by focusing on core functionality.",
            ))

        if features.budget_friendly_alternatives:
            items.append(ActionItem(
                type=ActionType.OPTIMIZE_FEATURES,
                priority=Priority.HIGH,
                title="Use Budget-Friendly Alternatives",
                description="Replace expensive features with cost-effective alternatives that still meet your needs.",
                impact=f"Could save {format_money(features.total_savings)} while maintaining core functionality.",
            ))

        if features.missing_from_budget:
            deferred = ", ".join(features.missing_from_budget)
            items.append(ActionItem(
                type=ActionType.DEFER_FEATURES,
                priority=Priority.MEDIUM,
                title="Defer Features to a Later Phase",
                description=f"These features don't fit the current budget: {deferred}.",
                impact="Keeps the first release within budget; deferred features can follow in phase two.",
            ))

        if alignment.percentage_difference > INCREASE_BUDGET_PCT:
            items.append(ActionItem(
                type=ActionType.INCREASE_BUDGET,
                priority=Priority.MEDIUM,
                title="Consider Increasing Budget",
                description=(
                    "Your project needs significantly exceed your budget. "
                    "Consider increasing your budget to match your requirements."
                ),
                impact="Would allow you to include all desired features and maintain high quality standards.",
            ))

        if status == AlignmentStatus.UNDER_BUDGET:
            suggestion = features.recommended_features[0] if features.recommended_features else "premium features"
            items.append(ActionItem(
                type=ActionType.ENHANCE_SCOPE,
                priority=Priority.MEDIUM,
                title="Enhance Project Scope",
                description=f"Consider adding {suggestion}. Your budget allows for additional features.",
                impact="You could add premium features, enhanced design, or extended support within your budget.",
            ))

        if status == AlignmentStatus.ALIGNED:
            items.append(ActionItem(
                type=ActionType.MAINTENANCE_PLAN,
                priority=Priority.LOW,
                title="Plan for Maintenance",
                description="Add a maintenance and support plan to keep the project healthy after launch.",
                impact="Protects your investment with updates, monitoring and security patches.",
            ))

        return tuple(sorted(items, key=lambda item: PRIORITY_ORDER[item.priority]))


# ---------------------------------------------------------------------------
# Module-level convenience functions
# ---------------------------------------------------------------------------

def compare_to_budget(
    pricing: PricingBreakdown,
    budget_key: Optional[str],
    catalog: Optional[PricingCatalog] = None,
) -> BudgetComparison:
    """Compare a pricing breakdown to a named budget range."""
    return BudgetComparator(catalog=catalog).compare(pricing, budget_key)
