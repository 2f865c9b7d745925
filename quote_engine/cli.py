#!/usr/bin/env python3
"""
cli.py — quote-engine command line

Price, compare or write a proposal for an assessment answers JSON file.

Usage:
    quote-engine price answers.json [--format json]
    quote-engine compare answers.json --budget 5-10k
    quote-engine proposal answers.json --format html --notes "Includes hosting setup" > proposal.html
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import replace
from datetime import date
from typing import Optional

from dotenv import load_dotenv

from quote_engine.budget_comparator import compare_to_budget
from quote_engine.catalog import get_default_catalog, load_catalog
from quote_engine.collaborators import TemplateSuggestionGenerator
from quote_engine.errors import QuoteEngineError
from quote_engine.models import AssessmentAnswers
from quote_engine.pricing_calculator import compute_pricing
from quote_engine.proposal_assembler import assemble_proposal
from quote_engine.renderers import (
    render_comparison_text,
    render_pricing_text,
    render_proposal_print_html,
    render_proposal_text,
)

load_dotenv()

LOG_LEVEL = os.getenv("QUOTE_LOG_LEVEL", "WARNING")


def _read_answers(path: str) -> AssessmentAnswers:
    if path == "-":
        data = json.load(sys.stdin)
    else:
        with open(path) as f:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("answers file must contain a JSON object")
    return AssessmentAnswers.from_dict(data)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quote-engine", description="Assessment pricing and proposal generator")
    parser.add_argument("--catalog", help="YAML pricing catalog overlay (default: QUOTE_CATALOG_PATH or built-in)")
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Logging level (default: %(default)s)")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("price", "Show the pricing breakdown"),
        ("compare", "Compare pricing to the selected budget"),
        ("proposal", "Render a client proposal"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("answers", help="Assessment answers JSON file ('-' for stdin)")
        cmd.add_argument("--format", choices=("txt", "html", "json"), default="txt")
        if name in ("compare", "proposal"):
            cmd.add_argument("--budget", help="Budget range key, overriding the answers' budget")
        if name == "proposal":
            cmd.add_argument("--notes", help="Special notes included verbatim")
            cmd.add_argument("--date", type=date.fromisoformat, help="Proposal date, YYYY-MM-DD (default: today)")
            cmd.add_argument("--suggestions", action="store_true", help="Append template project suggestions")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        catalog = load_catalog(args.catalog) if args.catalog else get_default_catalog()
        answers = _read_answers(args.answers)
        if getattr(args, "budget", None):
            answers = replace(answers, budget=args.budget)
        pricing = compute_pricing(answers, catalog=catalog)

        if args.command == "price":
            if args.format == "json":
                print(json.dumps(pricing.to_dict(), indent=2))
            else:
                print(render_pricing_text(pricing))

        elif args.command == "compare":
            comparison = compare_to_budget(pricing, answers.budget, catalog=catalog)
            if args.format == "json":
                print(json.dumps(comparison.to_dict(), indent=2, default=str))
            else:
                print(render_comparison_text(comparison))

        else:
            proposal = assemble_proposal(
                answers, pricing, special_notes=args.notes, catalog=catalog, issued_on=args.date,
            )
            suggestions = None
            if args.suggestions:
                suggestions = asyncio.run(TemplateSuggestionGenerator(catalog).generate_suggestions(answers))
            if args.format == "json":
                data = proposal.to_dict()
                if suggestions:
                    data["suggestions"] = suggestions
                print(json.dumps(data, indent=2))
            elif args.format == "html":
                sys.stdout.write(render_proposal_print_html(proposal, suggestions=suggestions))
            else:
                sys.stdout.write(render_proposal_text(proposal, suggestions=suggestions))

    except (QuoteEngineError, OSError, ValueError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
