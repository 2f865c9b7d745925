"""
renderers.py — Proposal & Admin Text Rendering

Deterministic renderings of structured quote data:
    render_proposal_text        plain-text proposal for download
    render_proposal_print_html  print-ready HTML (inline styles only) for PDF export
    render_pricing_text         admin view of a PricingBreakdown
    render_comparison_text      admin view of a BudgetComparison

Empty collections and absent optional fields are skipped entirely in the
proposal renderings. The admin views are the only place "N/A" is shown.
"""

import html
import os
from datetime import date
from typing import Optional

from dotenv import load_dotenv

from quote_engine.budget_comparator import BudgetComparison
from quote_engine.models import PricingBreakdown, format_money
from quote_engine.proposal_assembler import ProposalDocument

load_dotenv()

COMPANY_NAME = os.getenv("COMPANY_NAME", "")
COMPANY_EMAIL = os.getenv("COMPANY_EMAIL", "")
COMPANY_PHONE = os.getenv("COMPANY_PHONE", "")

WIDTH = 80
HEAVY_RULE = "=" * WIDTH
LIGHT_RULE = "-" * WIDTH
NA = "N/A"


def format_date(value: date) -> str:
    """January 6, 2025"""
    months = (
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    )
    return f"{months[value.month - 1]} {value.day}, {value.year}"


def _footer_lines() -> list[str]:
    lines = ["Thank you for considering this proposal."]
    if COMPANY_NAME:
        lines.append(COMPANY_NAME)
    if COMPANY_EMAIL:
        lines.append(f"Email: {COMPANY_EMAIL}")
    if COMPANY_PHONE:
        lines.append(f"Phone: {COMPANY_PHONE}")
    return lines


# ---------------------------------------------------------------------------
# Plain text
# ---------------------------------------------------------------------------

def _section(lines: list[str], title: str) -> None:
    lines.extend(["", LIGHT_RULE, title.upper(), LIGHT_RULE])


def _numbered(lines: list[str], heading: str, items, indent: str = "  ") -> None:
    """Heading plus a numbered list; nothing at all when items is empty."""
    if not items:
        return
    lines.append("")
    lines.append(f"{heading}:")
    for i, item in enumerate(items, 1):
        lines.append(f"{indent}{i}. {item}")


def _money_row(label: str, cents: int) -> str:
    return f"  {label:<50} {format_money(cents):>15}"


def render_proposal_text(proposal: ProposalDocument, suggestions: Optional[str] = None) -> str:
    lines: list[str] = [HEAVY_RULE, proposal.title.upper(), HEAVY_RULE]

    if proposal.client_name:
        lines.append(f"Prepared for: {proposal.client_name}")
    if proposal.client_email:
        lines.append(f"Email: {proposal.client_email}")
    lines.append(f"Date: {format_date(proposal.date)}")

    # Overview
    overview = proposal.project_overview
    _section(lines, "Project Overview")
    lines.append(f"Project Name: {overview.project_name}")
    lines.append(f"Project Type: {overview.project_type_label}")
    if overview.description:
        lines.append(f"Description: {overview.description}")
    if overview.target_audience:
        lines.append(f"Target Audience: {overview.target_audience}")
    _numbered(lines, "Main Goals", overview.main_goals)

    # Scope
    scope = proposal.scope_of_work
    _section(lines, "Scope of Work")
    _numbered(lines, "Features", scope.features)
    _numbered(lines, "Platforms", scope.platforms)
    _numbered(lines, "Integrations", scope.integrations)
    _numbered(lines, "Technical Requirements", scope.technical_requirements)

    # Timeline
    timeline = proposal.timeline
    _section(lines, "Project Timeline")
    lines.append(f"Total Duration: {timeline.total_duration}")
    lines.append(f"Estimated Start Date: {format_date(timeline.start_date)}")
    for i, phase in enumerate(timeline.phases, 1):
        lines.append("")
        lines.append(f"{i}. {phase.phase} ({phase.duration})")
        for deliverable in phase.deliverables:
            lines.append(f"   - {deliverable}")

    # Pricing
    breakdown = proposal.pricing.breakdown
    _section(lines, "Investment")
    lines.append(_money_row("Base Price", breakdown.base_price))
    for feature in breakdown.features:
        lines.append(_money_row(f"{feature.name} ({feature.category})", feature.price))
    if breakdown.platform.price:
        lines.append(_money_row(f"Platforms ({', '.join(breakdown.platform.platforms)})", breakdown.platform.price))
    lines.append(_money_row(f"Design ({breakdown.design.level.title()})", breakdown.design.price))
    if breakdown.integrations.count:
        lines.append(_money_row(f"Integrations ({breakdown.integrations.count})", breakdown.integrations.price))
    lines.append("  " + "-" * 66)
    lines.append(_money_row("Subtotal", breakdown.subtotal))
    lines.append(f"  Complexity: {breakdown.complexity.level} (x{breakdown.complexity.multiplier})")
    if breakdown.timeline.rush:
        lines.append(f"  Timeline: {breakdown.timeline.description} (x{breakdown.timeline.multiplier})")
    lines.append(_money_row("TOTAL PROJECT INVESTMENT", breakdown.final_total))

    if proposal.pricing.payment_schedule:
        lines.append("")
        lines.append("Payment Schedule:")
        for i, payment in enumerate(proposal.pricing.payment_schedule, 1):
            lines.append(
                f"  {i}. {payment.milestone} ({payment.percentage}%): {format_money(payment.amount)}"
                f" - {payment.due_description} ({format_date(payment.due_date)})"
            )

    if proposal.phased_options:
        _section(lines, "Options for Your Budget")
        for option in proposal.phased_options:
            lines.append("")
            lines.append(f"{option.name} - {format_money(option.amount)}")
            for highlight in option.highlights:
                lines.append(f"  * {highlight}")

    # Deliverables & expectations
    if proposal.deliverables:
        _section(lines, "Deliverables")
        for i, item in enumerate(proposal.deliverables, 1):
            lines.append(f"  {i}. {item}")

    expectations = proposal.expectations
    _section(lines, "Expectations")
    _numbered(lines, "Client Responsibilities", expectations.client_responsibilities)
    _numbered(lines, "Our Commitments", expectations.our_commitments)
    if expectations.communication:
        lines.append("")
        lines.append(f"Communication: {expectations.communication}")

    if proposal.domain_services:
        _section(lines, "Domain Services")
        lines.append(proposal.domain_services.message)
        lines.append(proposal.domain_services.pricing)

    if proposal.special_notes:
        _section(lines, "Special Notes")
        lines.append(proposal.special_notes)

    if suggestions:
        _section(lines, "Project Suggestions")
        lines.append(suggestions)

    if proposal.next_steps:
        _section(lines, "Next Steps")
        for i, step in enumerate(proposal.next_steps, 1):
            lines.append(f"  {i}. {step}")

    lines.extend(["", HEAVY_RULE])
    lines.extend(_footer_lines())
    lines.append(HEAVY_RULE)
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Print HTML
# ---------------------------------------------------------------------------

_BODY_STYLE = "font-family: Georgia, 'Times New Roman', serif; color: #222; max-width: 800px; margin: 0 auto; padding: 40px; line-height: 1.5;"
_H1_STYLE = "font-size: 26px; border-bottom: 3px solid #222; padding-bottom: 8px; margin-bottom: 4px;"
_H2_STYLE = "font-size: 18px; border-bottom: 1px solid #999; padding-bottom: 4px; margin-top: 32px; page-break-after: avoid;"
_H3_STYLE = "font-size: 15px; margin: 16px 0 4px 0;"
_META_STYLE = "color: #555; margin: 2px 0;"
_TABLE_STYLE = "width: 100%; border-collapse: collapse; margin: 8px 0;"
_TD_STYLE = "padding: 4px 8px; border-bottom: 1px solid #eee;"
_TD_RIGHT_STYLE = "padding: 4px 8px; border-bottom: 1px solid #eee; text-align: right; white-space: nowrap;"
_TOTAL_STYLE = "padding: 8px; font-weight: bold; border-top: 2px solid #222; text-align: right;"
_NOTE_STYLE = "background: #f6f6f6; border-left: 4px solid #999; padding: 12px; white-space: pre-wrap;"
_FOOTER_STYLE = "margin-top: 48px; padding-top: 12px; border-top: 1px solid #999; color: #555; font-size: 13px;"


def _e(value) -> str:
    return html.escape(str(value), quote=True)


def _html_list(parts: list[str], heading: Optional[str], items, ordered: bool = False) -> None:
    if not items:
        return
    if heading:
        parts.append(f'<h3 style="{_H3_STYLE}">{_e(heading)}</h3>')
    tag = "ol" if ordered else "ul"
    parts.append(f"<{tag}>")
    parts.extend(f"<li>{_e(item)}</li>" for item in items)
    parts.append(f"</{tag}>")


def _html_row(label: str, cents: int) -> str:
    return f'<tr><td style="{_TD_STYLE}">{_e(label)}</td><td style="{_TD_RIGHT_STYLE}">{_e(format_money(cents))}</td></tr>'


def render_proposal_print_html(proposal: ProposalDocument, suggestions: Optional[str] = None) -> str:
    h2 = f'<h2 style="{_H2_STYLE}">'
    parts: list[str] = [
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '<meta charset="utf-8">',
        f"<title>{_e(proposal.title)}</title>",
        "</head>",
        f'<body style="{_BODY_STYLE}">',
        f'<h1 style="{_H1_STYLE}">{_e(proposal.title)}</h1>',
    ]
    if proposal.client_name:
        parts.append(f'<p style="{_META_STYLE}">Prepared for: {_e(proposal.client_name)}</p>')
    if proposal.client_email:
        parts.append(f'<p style="{_META_STYLE}">Email: {_e(proposal.client_email)}</p>')
    parts.append(f'<p style="{_META_STYLE}">Date: {_e(format_date(proposal.date))}</p>')

    overview = proposal.project_overview
    parts.append(f"{h2}Project Overview</h2>")
    parts.append(f"<p><strong>Project Name:</strong> {_e(overview.project_name)}</p>")
    parts.append(f"<p><strong>Project Type:</strong> {_e(overview.project_type_label)}</p>")
    if overview.description:
        parts.append(f"<p><strong>Description:</strong> {_e(overview.description)}</p>")
    if overview.target_audience:
        parts.append(f"<p><strong>Target Audience:</strong> {_e(overview.target_audience)}</p>")
    _html_list(parts, "Main Goals", overview.main_goals, ordered=True)

    scope = proposal.scope_of_work
    parts.append(f"{h2}Scope of Work</h2>")
    _html_list(parts, "Features", scope.features)
    _html_list(parts, "Platforms", scope.platforms)
    _html_list(parts, "Integrations", scope.integrations)
    _html_list(parts, "Technical Requirements", scope.technical_requirements)

    timeline = proposal.timeline
    parts.append(f"{h2}Project Timeline</h2>")
    parts.append(f"<p><strong>Total Duration:</strong> {_e(timeline.total_duration)}</p>")
    parts.append(f"<p><strong>Estimated Start Date:</strong> {_e(format_date(timeline.start_date))}</p>")
    for phase in timeline.phases:
        _html_list(parts, f"{phase.phase} ({phase.duration})", phase.deliverables)

    breakdown = proposal.pricing.breakdown
    parts.append(f"{h2}Investment</h2>")
    parts.append(f'<table style="{_TABLE_STYLE}">')
    parts.append(_html_row("Base Price", breakdown.base_price))
    for feature in breakdown.features:
        parts.append(_html_row(f"{feature.name} ({feature.category})", feature.price))
    if breakdown.platform.price:
        parts.append(_html_row(f"Platforms ({', '.join(breakdown.platform.platforms)})", breakdown.platform.price))
    parts.append(_html_row(f"Design ({breakdown.design.level.title()})", breakdown.design.price))
    if breakdown.integrations.count:
        parts.append(_html_row(f"Integrations ({breakdown.integrations.count})", breakdown.integrations.price))
    parts.append(_html_row("Subtotal", breakdown.subtotal))
    parts.append(
        f'<tr><td style="{_TD_STYLE}">Complexity: {_e(breakdown.complexity.level)}</td>'
        f'<td style="{_TD_RIGHT_STYLE}">x{_e(breakdown.complexity.multiplier)}</td></tr>'
    )
    if breakdown.timeline.rush:
        parts.append(
            f'<tr><td style="{_TD_STYLE}">Timeline: {_e(breakdown.timeline.description)}</td>'
            f'<td style="{_TD_RIGHT_STYLE}">x{_e(breakdown.timeline.multiplier)}</td></tr>'
        )
    parts.append(
        f'<tr><td style="{_TOTAL_STYLE} text-align: left;">Total Project Investment</td>'
        f'<td style="{_TOTAL_STYLE}">{_e(format_money(breakdown.final_total))}</td></tr>'
    )
    parts.append("</table>")

    if proposal.pricing.payment_schedule:
        parts.append(f'<h3 style="{_H3_STYLE}">Payment Schedule</h3>')
        parts.append(f'<table style="{_TABLE_STYLE}">')
        for payment in proposal.pricing.payment_schedule:
            parts.append(
                f'<tr><td style="{_TD_STYLE}">{_e(payment.milestone)} ({payment.percentage}%)</td>'
                f'<td style="{_TD_STYLE}">{_e(payment.due_description)}, {_e(format_date(payment.due_date))}</td>'
                f'<td style="{_TD_RIGHT_STYLE}">{_e(format_money(payment.amount))}</td></tr>'
            )
        parts.append("</table>")

    if proposal.phased_options:
        parts.append(f"{h2}Options for Your Budget</h2>")
        for option in proposal.phased_options:
            _html_list(parts, f"{option.name} - {format_money(option.amount)}", option.highlights)

    if proposal.deliverables:
        parts.append(f"{h2}Deliverables</h2>")
        _html_list(parts, None, proposal.deliverables)

    expectations = proposal.expectations
    parts.append(f"{h2}Expectations</h2>")
    _html_list(parts, "Client Responsibilities", expectations.client_responsibilities)
    _html_list(parts, "Our Commitments", expectations.our_commitments)
    if expectations.communication:
        parts.append(f"<p><strong>Communication:</strong> {_e(expectations.communication)}</p>")

    if proposal.domain_services:
        parts.append(f"{h2}Domain Services</h2>")
        parts.append(f"<p>{_e(proposal.domain_services.message)}</p>")
        parts.append(f"<p>{_e(proposal.domain_services.pricing)}</p>")

    if proposal.special_notes:
        parts.append(f"{h2}Special Notes</h2>")
        parts.append(f'<div style="{_NOTE_STYLE}">{_e(proposal.special_notes)}</div>')

    if suggestions:
        parts.append(f"{h2}Project Suggestions</h2>")
        parts.append(f'<div style="{_NOTE_STYLE}">{_e(suggestions)}</div>')

    if proposal.next_steps:
        parts.append(f"{h2}Next Steps</h2>")
        _html_list(parts, None, proposal.next_steps, ordered=True)

    parts.append(f'<div style="{_FOOTER_STYLE}">')
    parts.extend(f"<p style=\"margin: 2px 0;\">{_e(line)}</p>" for line in _footer_lines())
    parts.append("</div>")
    parts.extend(["</body>", "</html>"])
    return "\n".join(parts) + "\n"


# ---------------------------------------------------------------------------
# Admin views
# ---------------------------------------------------------------------------

def render_pricing_text(breakdown: PricingBreakdown) -> str:
    """Admin pricing summary; absent values show as N/A."""
    lines = ["PRICING BREAKDOWN", "=" * 50]
    lines.append(f"  Project Type:     {breakdown.project_type}")
    lines.append(f"  Catalog Version:  {breakdown.catalog_version}")
    lines.append(f"  Base Price:       {format_money(breakdown.base_price)}")

    lines.append("\nFeatures:")
    if breakdown.features:
        for f in breakdown.features:
            flag = "" if f.resolved else "  (custom)"
            lines.append(f"  {f.name:<32} {f.category:<12} {format_money(f.price):>12}{flag}")
    else:
        lines.append(f"  {NA}")

    platforms = ", ".join(breakdown.platform.platforms) or NA
    integrations = ", ".join(breakdown.integrations.names) or NA
    lines.append("")
    lines.append(f"  Platforms:        {platforms} ({format_money(breakdown.platform.price)})")
    lines.append(f"  Design:           {breakdown.design.level} x{breakdown.design.multiplier} ({format_money(breakdown.design.price)})")
    lines.append(f"  Integrations:     {integrations} ({format_money(breakdown.integrations.price)})")
    lines.append(f"  Complexity:       {breakdown.complexity.level} x{breakdown.complexity.multiplier} (score {breakdown.complexity.score})")
    rush = f"rush x{breakdown.timeline.multiplier}" if breakdown.timeline.rush else "standard"
    lines.append(f"  Timeline:         {breakdown.timeline.description} ({rush})")
    lines.append("-" * 50)
    lines.append(f"  Subtotal:         {format_money(breakdown.subtotal)}")
    lines.append(f"  FINAL TOTAL:      {format_money(breakdown.final_total)}")
    market = breakdown.estimated_range
    lines.append(
        f"  Market Range:     {format_money(market.min)} - {format_money(market.max)}"
        f" (avg {format_money(market.average)})"
    )

    if breakdown.warnings:
        lines.append("\nWarnings:")
        for w in breakdown.warnings:
            lines.append(f"  ! {w}")

    return "\n".join(lines)


def render_comparison_text(comparison: BudgetComparison) -> str:
    """Admin budget comparison summary; absent values show as N/A."""
    budget = comparison.budget_range
    alignment = comparison.alignment
    features = comparison.feature_comparison

    lines = ["BUDGET COMPARISON", "=" * 50]
    budget_max = format_money(budget.max) if budget.max is not None else NA
    budget_avg = format_money(budget.average) if budget.has_amount else NA
    lines.append(f"  Selected Budget:  {budget.name} ({format_money(budget.min)} - {budget_max}, avg {budget_avg})")
    lines.append(f"  Calculated Total: {format_money(comparison.assessment_needs.calculated_total)}")
    lines.append(f"  Status:           {alignment.status.value.upper()} ({alignment.percentage_difference:+d}%)")
    lines.append(f"  {alignment.message}")

    lines.append("\nIncluded in Budget:")
    lines.extend(f"  + {name}" for name in features.included_in_budget or [NA])
    lines.append("\nMissing from Budget:")
    lines.extend(f"  - {name}" for name in features.missing_from_budget or [NA])

    if features.budget_friendly_alternatives:
        lines.append("\nAlternatives:")
        for alt in features.budget_friendly_alternatives:
            lines.append(f"  {alt.feature} -> {alt.alternative} (save {format_money(alt.cost_savings)})")

    value = comparison.value_analysis
    lines.append("\nValue Analysis:")
    lines.append(
        f"  Budget:     {value.budget_value.features_per_dollar:.2f} items/$1k, "
        f"{value.budget_value.quality_level}, {value.budget_value.scope_level}"
    )
    lines.append(
        f"  Assessment: {value.assessment_value.features_per_dollar:.2f} items/$1k, "
        f"{value.assessment_value.quality_level}, {value.assessment_value.scope_level}"
    )

    lines.append("\nAction Items:")
    if comparison.action_items:
        for item in comparison.action_items:
            lines.append(f"  [{item.priority.value.upper()}] {item.title}: {item.description}")
    else:
        lines.append(f"  {NA}")

    return "\n".join(lines)
