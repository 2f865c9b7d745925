"""
errors.py — Quote Engine Exceptions

The pricing, comparison and proposal computations never raise for well-formed
answers. These exceptions belong to the edges: loading a catalog file, reading
stored assessments, and calling the suggestions service.
"""


class QuoteEngineError(Exception):
    """Base class for quote engine errors."""


class CatalogError(QuoteEngineError):
    """Pricing catalog file is unreadable or describes an invalid catalog."""


class AssessmentNotFound(QuoteEngineError):
    """No stored assessment exists for the requested ID."""


class SuggestionServiceUnavailable(QuoteEngineError):
    """The suggestions service failed or was unreachable after all retries."""


class UnsupportedExportFormat(QuoteEngineError):
    """Export format is not one of txt, html or json."""
