"""
service.py — Assessment Workflow

Wires the pure pipeline (pricing → comparison → proposal → rendering) to an
AssessmentStore and an optional SuggestionGenerator.

Pricing is always recomputed from the stored answers and saved as a full
replacement. Comparisons and proposals are never stored; they are cached in
memory keyed by (assessment id, answers version), so a feature update is a
cache miss by construction. Each cache holds at most cache_size entries, and
a feature update drops the entries built from older versions.

Usage:
    service = AssessmentService(SQLiteAssessmentStore())
    breakdown = service.update_features(42, ["user-auth", "payments"])
    text = await service.export(42, "txt")
"""

import json
import logging
from collections import OrderedDict
from datetime import date
from typing import Any, Callable, Optional

from quote_engine.budget_comparator import BudgetComparator, BudgetComparison
from quote_engine.catalog import PricingCatalog, get_default_catalog
from quote_engine.collaborators import AssessmentStore, SuggestionGenerator
from quote_engine.errors import QuoteEngineError, UnsupportedExportFormat
from quote_engine.models import AssessmentAnswers, PricingBreakdown
from quote_engine.pricing_calculator import PricingCalculator
from quote_engine.proposal_assembler import ProposalAssembler, ProposalDocument
from quote_engine.renderers import render_proposal_print_html, render_proposal_text

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("txt", "html", "json")

CACHE_SIZE = 256   # entries per cache; least recently used is dropped first


class AssessmentService:
    """Load, price, compare and export stored assessments."""

    def __init__(
        self,
        store: AssessmentStore,
        suggestions: Optional[SuggestionGenerator] = None,
        catalog: Optional[PricingCatalog] = None,
        cache_size: int = CACHE_SIZE,
    ):
        self.store = store
        self.suggestions = suggestions
        self.catalog = catalog or get_default_catalog()
        self.calculator = PricingCalculator(catalog=self.catalog)
        self.comparator = BudgetComparator(catalog=self.catalog)
        self.assembler = ProposalAssembler(catalog=self.catalog)
        self.cache_size = cache_size
        # keys start with (assessment id, answers version)
        self._comparisons: OrderedDict[tuple, BudgetComparison] = OrderedDict()
        self._proposals: OrderedDict[tuple, ProposalDocument] = OrderedDict()

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _cached(self, cache: OrderedDict, key: tuple, build: Callable[[], Any]) -> Any:
        if key in cache:
            cache.move_to_end(key)
            return cache[key]
        value = build()
        cache[key] = value
        while len(cache) > self.cache_size:
            cache.popitem(last=False)
        return value

    def _evict_stale(self, assessment_id: int, current_version: int) -> None:
        """Drop cached artifacts built from older versions of an assessment."""
        for cache in (self._comparisons, self._proposals):
            stale = [k for k in cache if k[0] == assessment_id and k[1] != current_version]
            for key in stale:
                del cache[key]

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def _answers(self, assessment_id: int) -> AssessmentAnswers:
        return self.store.load_assessment(assessment_id).answers

    def price(self, assessment_id: int) -> PricingBreakdown:
        """Recompute pricing from the stored answers and persist it."""
        answers = self._answers(assessment_id)
        breakdown = self.calculator.calculate(answers)
        self.store.save_assessment(assessment_id, {"pricing": breakdown})
        return breakdown

    def update_features(self, assessment_id: int, must_have_features: list[str]) -> PricingBreakdown:
        """
        Replace the must-have features, bump the answers version, and
        recompute pricing from scratch. Answers and pricing are saved together.
        """
        answers = self._answers(assessment_id).with_features(must_have_features)
        breakdown = self.calculator.calculate(answers)
        self.store.save_assessment(assessment_id, {"answers": answers, "pricing": breakdown})
        self._evict_stale(assessment_id, answers.version)
        logger.info(
            "Assessment %d updated to version %d: %d feature(s), total %d",
            assessment_id, answers.version, len(breakdown.features), breakdown.final_total,
        )
        return breakdown

    # ------------------------------------------------------------------
    # Derived artifacts
    # ------------------------------------------------------------------

    def compare(self, assessment_id: int) -> BudgetComparison:
        answers = self._answers(assessment_id)
        return self._cached(
            self._comparisons,
            (assessment_id, answers.version),
            lambda: self.comparator.compare(self.calculator.calculate(answers), answers.budget),
        )

    def proposal(
        self,
        assessment_id: int,
        special_notes: Optional[str] = None,
        issued_on: Optional[date] = None,
    ) -> ProposalDocument:
        return self._proposal_for(assessment_id, self._answers(assessment_id), special_notes, issued_on)

    def _proposal_for(
        self,
        assessment_id: int,
        answers: AssessmentAnswers,
        special_notes: Optional[str],
        issued_on: Optional[date],
    ) -> ProposalDocument:
        issued_on = issued_on or date.today()
        return self._cached(
            self._proposals,
            (assessment_id, answers.version, special_notes, issued_on),
            lambda: self.assembler.assemble(
                answers,
                self.calculator.calculate(answers),
                special_notes=special_notes,
                issued_on=issued_on,
            ),
        )

    async def _suggestions_for(self, answers: AssessmentAnswers) -> Optional[str]:
        if self.suggestions is None:
            return None
        try:
            return await self.suggestions.generate_suggestions(answers)
        except QuoteEngineError as e:
            logger.error("Suggestions unavailable for %r, exporting without them: %s", answers.project_name, e)
            return None

    async def export(
        self,
        assessment_id: int,
        fmt: str = "txt",
        special_notes: Optional[str] = None,
        issued_on: Optional[date] = None,
    ) -> str:
        """
        Render a proposal for download.

        Raises:
            UnsupportedExportFormat: If fmt is not txt, html or json
            AssessmentNotFound: If the store has no such assessment
        """
        fmt = fmt.lower()
        if fmt not in EXPORT_FORMATS:
            raise UnsupportedExportFormat(f"Unsupported export format: {fmt}")

        answers = self._answers(assessment_id)
        proposal = self._proposal_for(assessment_id, answers, special_notes, issued_on)
        suggestions = await self._suggestions_for(answers)

        if fmt == "txt":
            return render_proposal_text(proposal, suggestions=suggestions)
        if fmt == "html":
            return render_proposal_print_html(proposal, suggestions=suggestions)
        data = proposal.to_dict()
        if suggestions:
            data["suggestions"] = suggestions
        return json.dumps(data, indent=2)
