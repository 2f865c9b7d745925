#!/usr/bin/env python3
"""
pricing_calculator.py — Assessment Pricing Engine

Turns a client's assessment answers into an itemized PricingBreakdown: base
price by project type, must-have features, platforms, design level and
integrations, scaled by complexity and timeline multipliers. Also splits a
final total into payment milestones.

Every number comes from the PricingCatalog. Nothing here does I/O, reads the
clock, or raises for well-formed answers; names the catalog does not know are
priced by fallback rules and recorded as warnings on the breakdown.

Usage:
    from quote_engine.pricing_calculator import PricingCalculator
    calc = PricingCalculator()
    breakdown = calc.calculate(answers)
"""

import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import Optional

from dotenv import load_dotenv

from quote_engine.catalog import PricingCatalog, get_default_catalog, normalize_key
from quote_engine.models import (
    AssessmentAnswers,
    Complexity,
    DesignCost,
    FeatureLine,
    IntegrationCost,
    PlatformCost,
    PricingBreakdown,
    RushTimeline,
    StandardTimeline,
    TimelineCost,
    format_money,
    round_half_up,
)

load_dotenv()

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Payment schedule templates (whole percentages of the final total, tied to the
# proposal phase that triggers each payment)
PAYMENT_SCHEDULES: dict[str, list[dict]] = {
    "standard_4_payment": [
        {"milestone": "Project Kickoff",       "pct": 30, "phase": "Discovery & Planning", "due": "start"},
        {"milestone": "Design Approval",       "pct": 30, "phase": "Design & Prototyping", "due": "end"},
        {"milestone": "Development Milestone", "pct": 30, "phase": "Development",          "due": "end"},
        {"milestone": "Final Delivery",        "pct": 10, "phase": "Launch & Deployment",  "due": "end"},
    ],
    "small_project_3_payment": [
        {"milestone": "Project Kickoff",       "pct": 30, "phase": "Discovery & Planning", "due": "start"},
        {"milestone": "Development Milestone", "pct": 40, "phase": "Development",          "due": "end"},
        {"milestone": "Final Delivery",        "pct": 30, "phase": "Launch & Deployment",  "due": "end"},
    ],
}

DEFAULT_PAYMENT_SCHEDULE = "standard_4_payment"


# ---------------------------------------------------------------------------
# Data Models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PaymentInstallment:
    milestone: str
    percentage: int
    amount: int              # cents; the last installment absorbs rounding
    phase: str               # proposal phase the payment is tied to
    due: str = "end"         # "start" or "end" of that phase


# ---------------------------------------------------------------------------
# Pricing Calculator
# ---------------------------------------------------------------------------

class PricingCalculator:
    """
    Assessment pricing engine.

    Rules:
    - Features keep the client's input order, de-duplicated by catalog key;
      every spelling that mapped to a line is kept on it
    - Unknown features stay on the quote as custom lines at the catalog's
      unknown-feature price, with a warning
    - Complexity and timeline multipliers apply to the whole subtotal
    - The final total is rounded half-up to the cent
    - The estimated range is the market band for the project type, never
      derived from the total
    """

    def __init__(
        self,
        catalog: Optional[PricingCatalog] = None,
        payment_schedule_key: str = DEFAULT_PAYMENT_SCHEDULE,
    ):
        self.catalog = catalog or get_default_catalog()
        if payment_schedule_key not in PAYMENT_SCHEDULES:
            raise ValueError(f"Unknown payment schedule: {payment_schedule_key}")
        self.payment_schedule_key = payment_schedule_key
        logger.debug(
            "PricingCalculator initialized: catalog=%s, schedule=%s",
            self.catalog.version, payment_schedule_key,
        )

    def calculate(self, answers: AssessmentAnswers) -> PricingBreakdown:
        """
        Calculate complete project pricing.

        Args:
            answers: Submitted assessment answers

        Returns:
            PricingBreakdown with every line item, multiplier and total
        """
        warnings: list[str] = []

        # Step 1: Base price by project type
        project = self.catalog.find_project_type(answers.project_type)
        if project is None:
            warnings.append(f"Unknown project type '{answers.project_type}' priced as 'other'")
            project = self.catalog.resolve_project_type(answers.project_type)

        # Step 2: Must-have features, input order
        features = self._process_features(answers.must_have_features, warnings)

        # Step 3: Platforms
        platform = self._process_platforms(answers.platform, warnings)

        # Step 4: Design
        design = self._process_design(answers.design_level, warnings)

        # Step 5: Integrations
        integrations = self._process_integrations(answers.integrations)

        # Step 6: Complexity from scope signals
        score = len(features) + integrations.count + len(platform.platforms)
        band = self.catalog.complexity_for(score)
        complexity = Complexity(
            level=band.level,
            multiplier=band.multiplier,
            description=band.description,
            score=score,
        )

        # Step 7: Timeline
        timeline = self._process_timeline(answers.preferred_timeline, warnings)

        # Step 8: Totals
        subtotal = (
            project.base_price
            + sum(f.price for f in features)
            + platform.price
            + design.price
            + integrations.price
        )
        final_total = self.apply_multipliers(subtotal, complexity.multiplier, timeline.multiplier)

        breakdown = PricingBreakdown(
            project_type=project.key,
            base_price=project.base_price,
            features=tuple(features),
            platform=platform,
            design=design,
            integrations=integrations,
            complexity=complexity,
            timeline=timeline,
            subtotal=subtotal,
            final_total=final_total,
            # Step 9: Market reference band
            estimated_range=project.market,
            catalog_version=self.catalog.version,
            warnings=tuple(warnings),
        )

        logger.info(
            "Pricing calculated: type=%s, features=%d, complexity=%s, timeline=%s, total=%s",
            project.key,
            len(features),
            complexity.level,
            timeline.key,
            format_money(final_total),
        )
        return breakdown

    @staticmethod
    def apply_multipliers(subtotal: int, complexity_multiplier: float, timeline_multiplier: float) -> int:
        """subtotal × complexity × timeline, rounded half-up to the cent."""
        exact = (
            Fraction(subtotal)
            * Fraction(str(complexity_multiplier))
            * Fraction(str(timeline_multiplier))
        )
        return round_half_up(exact)

    # ------------------------------------------------------------------
    # Private: Line Items
    # ------------------------------------------------------------------

    def _process_features(self, names: list[str], warnings: list[str]) -> list[FeatureLine]:
        # canonical key → every spelling that resolved to it, first-seen order
        spellings: dict[str, list[str]] = {}
        for requested in names:
            key = self.catalog.feature_key(requested)
            spellings.setdefault(key, [])
            if requested not in spellings[key]:
                spellings[key].append(requested)

        lines: list[FeatureLine] = []
        for requested_as in spellings.values():
            requested = requested_as[0]
            entry, resolved = self.catalog.resolve_feature(requested)
            if not resolved:
                warnings.append(
                    f"Feature '{requested}' is not in the catalog; "
                    f"quoted as custom work at {format_money(entry.price)}"
                )
            lines.append(FeatureLine(
                key=entry.key,
                requested=requested,
                name=entry.name,
                category=entry.category,
                price=entry.price,
                resolved=resolved,
                requested_as=tuple(requested_as),
            ))

        return lines

    def _process_platforms(self, names: list[str], warnings: list[str]) -> PlatformCost:
        platforms: list[str] = []
        total = 0
        for name in names:
            key = normalize_key(name)
            if not key or key in platforms:
                continue
            platforms.append(key)
            price = self.catalog.platform_price(key)
            if price is None:
                price = self.catalog.default_platform_price
                warnings.append(f"Platform '{name}' not in catalog; priced at {format_money(price)}")
                logger.warning("Unknown platform %r — using default platform price", name)
            total += price
        return PlatformCost(platforms=tuple(platforms), price=total)

    def _process_design(self, level_name: str, warnings: list[str]) -> DesignCost:
        level = self.catalog.find_design_level(level_name)
        if level is None:
            warnings.append(f"Unknown design level '{level_name}' priced as 'standard'")
            level = self.catalog.resolve_design_level(level_name)
        multiplier = self.catalog.design_multipliers[level]
        price = round_half_up(Fraction(self.catalog.design_base_cost) * Fraction(str(multiplier)))
        return DesignCost(level=level, multiplier=multiplier, price=price)

    def _process_integrations(self, names: list[str]) -> IntegrationCost:
        unique: list[str] = []
        seen: set[str] = set()
        for name in names:
            key = normalize_key(name)
            if key and key not in seen:
                seen.add(key)
                unique.append(name)
        price = sum(self.catalog.integration_cost(name) for name in unique)
        return IntegrationCost(names=tuple(unique), count=len(unique), price=price)

    def _process_timeline(self, name: str, warnings: list[str]) -> TimelineCost:
        entry = self.catalog.find_timeline(name)
        if entry is None:
            warnings.append(f"Unknown timeline '{name}' priced as 'standard'")
            entry = self.catalog.resolve_timeline(name)
        if entry.rush:
            return RushTimeline(key=entry.key, description=entry.description, multiplier=entry.multiplier)
        return StandardTimeline(key=entry.key, description=entry.description)

    # ------------------------------------------------------------------
    # Public: Payment
    # ------------------------------------------------------------------

    def payment_schedule(self, final_total: int) -> list[PaymentInstallment]:
        """
        Split a final total across the configured milestones.

        Every installment but the last is rounded down; the last takes the
        remainder, so the amounts always sum to final_total exactly.
        """
        template = PAYMENT_SCHEDULES[self.payment_schedule_key]
        schedule: list[PaymentInstallment] = []
        allocated = 0

        for i, payment in enumerate(template):
            if i == len(template) - 1:
                amount = final_total - allocated
            else:
                amount = final_total * payment["pct"] // 100
            allocated += amount
            schedule.append(PaymentInstallment(
                milestone=payment["milestone"],
                percentage=payment["pct"],
                amount=amount,
                phase=payment["phase"],
                due=payment["due"],
            ))

        return schedule


# ---------------------------------------------------------------------------
# Module-level convenience functions
# ---------------------------------------------------------------------------

def compute_pricing(
    answers: AssessmentAnswers,
    catalog: Optional[PricingCatalog] = None,
) -> PricingBreakdown:
    """Price an assessment against the given (or default) catalog."""
    return PricingCalculator(catalog=catalog).calculate(answers)


# ---------------------------------------------------------------------------
# CLI / Demo
# ---------------------------------------------------------------------------

def _demo() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    answers = AssessmentAnswers(
        project_name="Client Portal",
        project_type="webapp",
        platform=["web"],
        must_have_features=["user-auth", "payments"],
        design_level="standard",
        preferred_timeline="standard",
        budget="5-10k",
    )
    calc = PricingCalculator()
    breakdown = calc.calculate(answers)

    print(f"Base price:  {format_money(breakdown.base_price)}")
    for line in breakdown.features:
        print(f"  {line.name:<30} {format_money(line.price):>12}")
    print(f"Design:      {format_money(breakdown.design.price)}")
    print(f"Complexity:  {breakdown.complexity.level} ×{breakdown.complexity.multiplier}")
    print(f"TOTAL:       {format_money(breakdown.final_total)}")

    print("\nPayment Schedule:")
    for p in calc.payment_schedule(breakdown.final_total):
        print(f"  {p.milestone:<25} {p.percentage:>3}%  {format_money(p.amount):>12}")


if __name__ == "__main__":
    _demo()
