#!/usr/bin/env python3
"""
proposal_assembler.py — Client Proposal Assembly

Builds a structured ProposalDocument from assessment answers and their
PricingBreakdown: project overview, scope of work, phased timeline, pricing
with payment schedule, deliverables, expectations and next steps.

The document is plain data. Optional answers that were never given stay None
here and are left out by the renderers; nothing in this module writes "N/A".

Usage:
    from quote_engine.proposal_assembler import ProposalAssembler
    assembler = ProposalAssembler()
    proposal = assembler.assemble(answers, breakdown, issued_on=date.today())
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from enum import Enum
from fractions import Fraction
from typing import Any, Optional

from dotenv import load_dotenv

from quote_engine.catalog import PricingCatalog, get_default_catalog
from quote_engine.models import (
    AssessmentAnswers,
    PricingBreakdown,
    dollars,
    format_money,
)
from quote_engine.pricing_calculator import PricingCalculator

load_dotenv()

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

START_DELAY_DAYS = 7                 # work begins one week after the proposal date
LOW_BUDGET_CAP = dollars(5_000)      # budgets capped at or below this get phased options
MVP_SHARE_PCT = 60

# Canonical phase sequence; fractions of total duration sum to 1
PHASE_PLAN: list[dict] = [
    {"phase": "Discovery & Planning", "fraction": "0.10", "deliverables": [
        "Project requirements document",
        "Technical architecture plan",
        "Project timeline and milestones",
    ]},
    {"phase": "Design & Prototyping", "fraction": "0.20", "deliverables": [
        "Wireframes and user flows",
        "Design mockups",
        "Clickable prototype for review",
    ]},
    {"phase": "Development", "fraction": "0.45", "deliverables": [
        "Core functionality development",
        "Integration setup",
        "Weekly progress builds",
    ]},
    {"phase": "Testing & QA", "fraction": "0.15", "deliverables": [
        "Comprehensive testing",
        "Bug fixes and refinements",
        "Performance optimization",
    ]},
    {"phase": "Launch & Deployment", "fraction": "0.10", "deliverables": [
        "Production deployment",
        "Documentation delivery",
        "Training and knowledge transfer",
    ]},
]

# Extra phase deliverables by project type
TYPE_PHASE_DELIVERABLES: dict[str, dict[str, list[str]]] = {
    "website": {
        "Launch & Deployment": ["SEO setup and sitemap submission"],
    },
    "webapp": {
        "Development": ["User account and role management"],
    },
    "ecommerce": {
        "Development": ["Product catalog and checkout flow"],
        "Testing & QA": ["Payment flow testing in sandbox and live modes"],
    },
    "mobile": {
        "Design & Prototyping": ["Platform-specific interface guidelines review"],
        "Launch & Deployment": ["App Store and Google Play submission"],
    },
    "custom": {
        "Discovery & Planning": ["System integration map"],
        "Testing & QA": ["Load and security testing"],
    },
}

TECHNICAL_REQUIREMENTS: dict[str, list[str]] = {
    "website": [
        "Responsive design (mobile, tablet, desktop)",
        "Search engine optimization fundamentals",
        "SSL certificate and secure hosting",
    ],
    "webapp": [
        "Responsive design (mobile, tablet, desktop)",
        "Secure user authentication and session handling",
        "Relational database with automated backups",
        "Role-based access control",
    ],
    "ecommerce": [
        "Responsive design (mobile, tablet, desktop)",
        "PCI-compliant payment handling",
        "Product and inventory data model",
        "Order confirmation emails",
    ],
    "mobile": [
        "Native-quality performance on supported devices",
        "Offline-tolerant data sync",
        "Push notification support",
        "App store compliance",
    ],
    "custom": [
        "Scalable service architecture",
        "Automated test suite and CI pipeline",
        "Audit logging",
        "Documented API contracts",
    ],
    "other": [
        "Responsive design (mobile, tablet, desktop)",
        "Security best practices",
    ],
}

STANDARD_DELIVERABLES: list[str] = [
    "Fully functional application/website",
    "Source code and documentation",
    "Deployment to production environment",
    "User documentation and guides",
]

TYPE_DELIVERABLES: dict[str, list[str]] = {
    "ecommerce": ["Payment gateway configuration"],
    "mobile": ["Published iOS and/or Android builds"],
    "custom": ["Architecture and operations runbook"],
}

DESIGN_DELIVERABLES: dict[str, list[str]] = {
    "basic": ["Template-based visual design"],
    "standard": ["Custom design system", "Design assets and style guide"],
    "premium": [
        "Custom design system",
        "Design assets and style guide",
        "Brand identity refinement",
        "Interactive prototypes and motion design",
    ],
}

SUPPORT_DAYS: dict[str, int] = {"basic": 30, "standard": 30, "premium": 60}

CLIENT_RESPONSIBILITIES: list[str] = [
    "Provide timely feedback on designs and development milestones",
    "Supply all necessary content, images, and brand assets",
    "Respond to questions and requests within 2 business days",
    "Participate in scheduled review meetings",
    "Approve milestones before proceeding to next phase",
    "Provide access to necessary third-party services and accounts",
]

TYPE_CLIENT_RESPONSIBILITIES: dict[str, list[str]] = {
    "ecommerce": ["Provide product data and a merchant account for payment processing"],
    "mobile": ["Provide Apple Developer and Google Play Console accounts"],
}

OUR_COMMITMENTS: list[str] = [
    "Deliver high-quality code following industry best practices",
    "Meet agreed-upon milestones and deadlines",
    "Provide regular progress updates and communication",
    "Ensure responsive design across all devices",
    "Implement security best practices",
    "Provide comprehensive documentation",
]

DESIGN_COMMITMENTS: dict[str, list[str]] = {
    "premium": ["Run a brand discovery workshop before design begins"],
}

COMMUNICATION = (
    "We will communicate primarily via email with scheduled video calls for major milestones. "
    "Response time: within 24 hours on business days."
)

NEXT_STEPS: list[str] = [
    "Review this proposal and discuss any questions or concerns",
    "Confirm project scope and timeline",
    "Sign the project agreement",
    "Provide initial payment to begin project kickoff",
    "Schedule kickoff meeting to discuss project details",
]

DOMAIN_SERVICES = {
    "included": False,
    "message": (
        "We offer domain registration and ownership services. "
        "Secure your brand's online identity with a professional domain name."
    ),
    "pricing": (
        "Domain pricing varies by extension (.com, .net, .org, etc.). "
        "Contact us for a quote on your preferred domain name."
    ),
}

MVP_HIGHLIGHTS = ["Core functionality only", "Essential features", "Basic design", "Launch-ready foundation"]
ENHANCEMENT_HIGHLIGHTS = ["Additional features", "Design refinements", "Performance optimization", "Advanced integrations"]


# ---------------------------------------------------------------------------
# Data Models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProjectOverview:
    project_name: str
    project_type: str
    project_type_label: str
    description: Optional[str] = None
    target_audience: Optional[str] = None
    main_goals: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScopeOfWork:
    features: tuple[str, ...]
    platforms: tuple[str, ...]
    integrations: tuple[str, ...]
    technical_requirements: tuple[str, ...]


@dataclass(frozen=True)
class TimelinePhase:
    phase: str
    weeks: int
    start_date: date
    end_date: date
    deliverables: tuple[str, ...]

    @property
    def duration(self) -> str:
        return f"{self.weeks} week" if self.weeks == 1 else f"{self.weeks} weeks"


@dataclass(frozen=True)
class ProposalTimeline:
    total_weeks: int
    start_date: date
    phases: tuple[TimelinePhase, ...]

    @property
    def total_duration(self) -> str:
        months = math.ceil(self.total_weeks / 4)
        unit = "week" if self.total_weeks == 1 else "weeks"
        return f"{self.total_weeks} {unit} (approximately {months} month{'s' if months != 1 else ''})"


@dataclass(frozen=True)
class PaymentMilestone:
    milestone: str
    percentage: int
    amount: int
    due_date: date
    due_description: str


@dataclass(frozen=True)
class ProposalPricing:
    breakdown: PricingBreakdown
    payment_schedule: tuple[PaymentMilestone, ...]

    @property
    def final_total(self) -> int:
        return self.breakdown.final_total


@dataclass(frozen=True)
class Expectations:
    client_responsibilities: tuple[str, ...]
    our_commitments: tuple[str, ...]
    communication: str


@dataclass(frozen=True)
class DomainServices:
    included: bool
    message: str
    pricing: str


@dataclass(frozen=True)
class PhasedOption:
    name: str
    amount: int
    highlights: tuple[str, ...]


@dataclass(frozen=True)
class ProposalDocument:
    title: str
    date: date
    project_overview: ProjectOverview
    scope_of_work: ScopeOfWork
    timeline: ProposalTimeline
    pricing: ProposalPricing
    deliverables: tuple[str, ...]
    expectations: Expectations
    next_steps: tuple[str, ...]
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    domain_services: Optional[DomainServices] = None
    special_notes: Optional[str] = None
    phased_options: tuple[PhasedOption, ...] = field(default_factory=tuple)
    assessment_id: Optional[int] = None
    assessment_version: int = 1

    def to_dict(self) -> dict:
        """JSON-ready dict: dates as ISO strings, enums as values."""
        data = asdict(self)
        data["pricing"]["breakdown"] = self.pricing.breakdown.to_dict()
        data["timeline"]["total_duration"] = self.timeline.total_duration
        return _jsonable(data)


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value


# ---------------------------------------------------------------------------
# Proposal Assembler
# ---------------------------------------------------------------------------

class ProposalAssembler:
    """
    Assembles a client-facing proposal from answers and a priced breakdown.

    Workflow:
        1. Copy overview fields verbatim
        2. Build scope of work with technical requirements for the project type
        3. Split total duration into the canonical phases
        4. Attach the breakdown and a payment schedule tied to the phases
        5. Fill deliverables and expectations by project type and design level
        6. Pass special notes through unchanged
    """

    def __init__(self, catalog: Optional[PricingCatalog] = None):
        self.catalog = catalog or get_default_catalog()
        self.calculator = PricingCalculator(catalog=self.catalog)

    def assemble(
        self,
        answers: AssessmentAnswers,
        pricing: PricingBreakdown,
        special_notes: Optional[str] = None,
        issued_on: Optional[date] = None,
    ) -> ProposalDocument:
        """
        Assemble a proposal.

        Args:
            answers: The assessment the breakdown was computed from
            pricing: PricingBreakdown from PricingCalculator.calculate()
            special_notes: Optional free text, included verbatim
            issued_on: Proposal date (defaults to today); start date is one week later

        Returns:
            ProposalDocument
        """
        issued_on = issued_on or date.today()
        project_type = pricing.project_type
        design_level = pricing.design.level
        budget = self.catalog.resolve_budget(answers.budget)
        low_budget = not budget.unbounded and budget.max <= LOW_BUDGET_CAP

        # Step 1: Overview
        project = self.catalog.resolve_project_type(project_type)
        overview = ProjectOverview(
            project_name=answers.project_name,
            project_type=answers.project_type,
            project_type_label=project.label,
            description=answers.project_description,
            target_audience=answers.target_audience,
            main_goals=tuple(answers.main_goals),
        )

        # Step 2: Scope of work
        scope = ScopeOfWork(
            features=tuple(answers.must_have_features),
            platforms=tuple(answers.platform),
            integrations=tuple(answers.integrations),
            technical_requirements=tuple(TECHNICAL_REQUIREMENTS.get(project_type, TECHNICAL_REQUIREMENTS["other"])),
        )

        # Step 3: Timeline
        timeline = self._build_timeline(pricing, issued_on + timedelta(days=START_DELAY_DAYS))

        # Step 4: Pricing + payment schedule
        proposal_pricing = ProposalPricing(
            breakdown=pricing,
            payment_schedule=self._build_payment_schedule(pricing.final_total, timeline),
        )

        # Step 5: Deliverables & expectations
        deliverables = self._build_deliverables(project_type, design_level, pricing)
        expectations = self._build_expectations(project_type, design_level)

        next_steps = list(NEXT_STEPS)
        phased_options: tuple[PhasedOption, ...] = ()
        if low_budget:
            next_steps.insert(0, "Consider the realistic scope options provided for your budget")
            next_steps.append("Discuss phased approach if needed to fit budget constraints")
            phased_options = self._build_phased_options(pricing.final_total)

        proposal = ProposalDocument(
            title=f"Professional Proposal: {answers.project_name}",
            date=issued_on,
            client_name=answers.client_name,
            client_email=answers.client_email,
            project_overview=overview,
            scope_of_work=scope,
            timeline=timeline,
            pricing=proposal_pricing,
            deliverables=tuple(deliverables),
            expectations=expectations,
            next_steps=tuple(next_steps),
            domain_services=DomainServices(**DOMAIN_SERVICES),
            # Step 6: Special notes, unmodified
            special_notes=special_notes,
            phased_options=phased_options,
            assessment_id=answers.id,
            assessment_version=answers.version,
        )

        logger.info(
            "Proposal assembled for %r: %d weeks, %d payments, total=%s, low_budget=%s",
            answers.project_name,
            timeline.total_weeks,
            len(proposal_pricing.payment_schedule),
            format_money(pricing.final_total),
            low_budget,
        )
        return proposal

    # -----------------------------------------------------------------------
    # Private helpers
    # -----------------------------------------------------------------------

    def total_weeks(self, pricing: PricingBreakdown) -> int:
        """ceil(base weeks for the project type × duration factor for the timeline)."""
        base_weeks = self.catalog.resolve_project_type(pricing.project_type).base_weeks
        factor = self.catalog.resolve_timeline(pricing.timeline.key).duration_factor
        return max(1, math.ceil(Fraction(base_weeks) * Fraction(str(factor))))

    def _build_timeline(self, pricing: PricingBreakdown, start: date) -> ProposalTimeline:
        total = self.total_weeks(pricing)
        extras = TYPE_PHASE_DELIVERABLES.get(pricing.project_type, {})

        phases: list[TimelinePhase] = []
        cursor = start
        for plan in PHASE_PLAN:
            weeks = max(1, math.ceil(total * Fraction(plan["fraction"])))
            end = cursor + timedelta(weeks=weeks)
            phases.append(TimelinePhase(
                phase=plan["phase"],
                weeks=weeks,
                start_date=cursor,
                end_date=end,
                deliverables=tuple(plan["deliverables"] + extras.get(plan["phase"], [])),
            ))
            cursor = end

        return ProposalTimeline(total_weeks=total, start_date=start, phases=tuple(phases))

    def _build_payment_schedule(self, total: int, timeline: ProposalTimeline) -> tuple[PaymentMilestone, ...]:
        by_phase = {p.phase: p for p in timeline.phases}
        milestones: list[PaymentMilestone] = []
        for installment in self.calculator.payment_schedule(total):
            phase = by_phase[installment.phase]
            if installment.due == "start":
                due_date = phase.start_date
                description = "Upon contract signing"
            else:
                due_date = phase.end_date
                description = f"Upon completion of {installment.phase}"
            milestones.append(PaymentMilestone(
                milestone=installment.milestone,
                percentage=installment.percentage,
                amount=installment.amount,
                due_date=due_date,
                due_description=description,
            ))
        return tuple(milestones)

    @staticmethod
    def _build_deliverables(project_type: str, design_level: str, pricing: PricingBreakdown) -> list[str]:
        deliverables = list(STANDARD_DELIVERABLES)
        deliverables.extend(TYPE_DELIVERABLES.get(project_type, []))
        if any(f.key == "admin-panel" for f in pricing.features):
            deliverables.append("Admin panel")
        if any(f.category == "Content" for f in pricing.features):
            deliverables.append("Content management system setup")
        deliverables.extend(DESIGN_DELIVERABLES.get(design_level, []))
        deliverables.append(f"Post-launch support ({SUPPORT_DAYS.get(design_level, 30)} days)")
        return deliverables

    @staticmethod
    def _build_expectations(project_type: str, design_level: str) -> Expectations:
        support_days = SUPPORT_DAYS.get(design_level, 30)
        return Expectations(
            client_responsibilities=tuple(
                CLIENT_RESPONSIBILITIES + TYPE_CLIENT_RESPONSIBILITIES.get(project_type, [])
            ),
            our_commitments=tuple(
                OUR_COMMITMENTS
                + DESIGN_COMMITMENTS.get(design_level, [])
                + [f"Offer {support_days} days of post-launch support"]
            ),
            communication=COMMUNICATION,
        )

    @staticmethod
    def _build_phased_options(total: int) -> tuple[PhasedOption, ...]:
        mvp = total * MVP_SHARE_PCT // 100
        return (
            PhasedOption(name="Phase 1: MVP (Minimum Viable Product)", amount=mvp, highlights=tuple(MVP_HIGHLIGHTS)),
            PhasedOption(name="Phase 2: Enhancements", amount=total - mvp, highlights=tuple(ENHANCEMENT_HIGHLIGHTS)),
        )


# ---------------------------------------------------------------------------
# Module-level convenience functions
# ---------------------------------------------------------------------------

def assemble_proposal(
    answers: AssessmentAnswers,
    pricing: PricingBreakdown,
    special_notes: Optional[str] = None,
    catalog: Optional[PricingCatalog] = None,
    issued_on: Optional[date] = None,
) -> ProposalDocument:
    """Assemble a proposal for priced answers."""
    return ProposalAssembler(catalog=catalog).assemble(
        answers, pricing, special_notes=special_notes, issued_on=issued_on,
    )


# ---------------------------------------------------------------------------
# CLI / Demo
# ---------------------------------------------------------------------------

def _demo_run():
    """Quick smoke-test: assemble a sample web app proposal."""
    logging.basicConfig(level=logging.DEBUG)
    from quote_engine.pricing_calculator import compute_pricing

    answers = AssessmentAnswers(
        project_name="Client Portal",
        project_type="webapp",
        project_description="Self-service portal for invoices and support tickets",
        main_goals=["Reduce support email volume", "Let clients pay invoices online"],
        platform=["web"],
        must_have_features=["user-auth", "payments", "admin-panel"],
        budget="10-25k",
        client_name="Jordan Lee",
        client_email="jordan@example.com",
    )
    pricing = compute_pricing(answers)
    proposal = assemble_proposal(answers, pricing, issued_on=date(2025, 1, 6))

    print("\n" + "=" * 60)
    print(proposal.title)
    print(f"Duration: {proposal.timeline.total_duration}")
    for phase in proposal.timeline.phases:
        print(f"  {phase.phase:<25} {phase.duration:>9}  {phase.start_date} → {phase.end_date}")
    print(f"Total: {format_money(proposal.pricing.final_total)}")
    for p in proposal.pricing.payment_schedule:
        print(f"  {p.milestone:<25} {format_money(p.amount):>12}  due {p.due_date}")


if __name__ == "__main__":
    _demo_run()
