"""Generative backends, prompts and response parsing."""

from .parsing import MalformedSuggestions, ParsedSuggestions, parse_suggestions
from .prompts import SuggestionInput, SummaryInput

__all__ = [
    "SummaryInput",
    "SuggestionInput",
    "ParsedSuggestions",
    "MalformedSuggestions",
    "parse_suggestions",
]
