"""
quote_engine — assessment pricing, budget comparison and proposal generation.

    breakdown = compute_pricing(answers)
    comparison = compare_to_budget(breakdown, answers.budget)
    proposal = assemble_proposal(answers, breakdown)
    text = render_proposal_text(proposal)
"""

from quote_engine.budget_comparator import BudgetComparison, compare_to_budget
from quote_engine.catalog import PricingCatalog, get_default_catalog, load_catalog
from quote_engine.errors import QuoteEngineError
from quote_engine.models import AssessmentAnswers, PricingBreakdown
from quote_engine.pricing_calculator import compute_pricing
from quote_engine.proposal_assembler import ProposalDocument, assemble_proposal
from quote_engine.renderers import render_proposal_print_html, render_proposal_text

__version__ = "0.1.0"

__all__ = [
    "AssessmentAnswers",
    "BudgetComparison",
    "PricingBreakdown",
    "PricingCatalog",
    "ProposalDocument",
    "QuoteEngineError",
    "assemble_proposal",
    "compare_to_budget",
    "compute_pricing",
    "get_default_catalog",
    "load_catalog",
    "render_proposal_print_html",
    "render_proposal_text",
]
