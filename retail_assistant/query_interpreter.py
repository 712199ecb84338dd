"""
Query interpretation.

Turns raw shopping text into structured retrieval filters. Every extraction
is an ordered table of independent matchers (pattern, extractor) evaluated in
priority order; the first matcher that yields a value wins.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, List, NamedTuple, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict

from retail_assistant.models import RetrievalFilters


class Matcher(NamedTuple):
    """A compiled pattern and the function that turns its match into a value."""
    pattern: "re.Pattern[str]"
    extract: Callable[["re.Match[str]"], Optional[Any]]


def first_match(matchers: Sequence[Matcher], text: str) -> Optional[Any]:
    """Return the value of the first matcher that matches and extracts."""
    for matcher in matchers:
        match = matcher.pattern.search(text)
        if match is None:
            continue
        value = matcher.extract(match)
        if value is not None:
            return value
    return None


# =============================================================================
# Static tables
# =============================================================================

CATEGORIES: Tuple[str, ...] = (
    "Apparel",
    "Footwear",
    "Electronics",
    "Accessories",
    "Home & Living",
    "Sports & Outdoors",
)

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "up", "about", "into", "through", "during",
    "show", "me", "find", "get", "need", "want", "looking", "buy", "purchase",
    "i", "you", "he", "she", "it", "we", "they", "my", "your", "his", "her",
    "is", "are", "was", "were", "be", "been", "have", "has", "had", "do", "does",
    # budget phrasing carries no product meaning
    "under", "below", "less", "than", "max", "maximum",
})

_AMOUNT = r"[£$€]?(\d+(?:\.\d{2})?)"
MIN_KEYWORD_LENGTH = 3


def _parse_amount(match: "re.Match[str]") -> Optional[Decimal]:
    try:
        return Decimal(match.group(1))
    except (InvalidOperation, IndexError):
        return None


def _category_matcher(category: str) -> Matcher:
    return Matcher(
        re.compile(re.escape(category), re.IGNORECASE),
        lambda _match: category,
    )


CATEGORY_MATCHERS: Tuple[Matcher, ...] = tuple(_category_matcher(c) for c in CATEGORIES)

BUDGET_MATCHERS: Tuple[Matcher, ...] = tuple(
    Matcher(re.compile(pattern, re.IGNORECASE), _parse_amount)
    for pattern in (
        rf"under\s*{_AMOUNT}",
        rf"less\s+than\s*{_AMOUNT}",
        rf"below\s*{_AMOUNT}",
        rf"maximum\s*{_AMOUNT}",
        rf"max\s*{_AMOUNT}",
        r"[£$€](\d+(?:\.\d{2})?)\s*or\s*less",
    )
)

# Price floors are only used for the search index filter.
MIN_PRICE_MATCHERS: Tuple[Matcher, ...] = tuple(
    Matcher(re.compile(pattern, re.IGNORECASE), _parse_amount)
    for pattern in (
        rf"over\s*{_AMOUNT}",
        rf"above\s*{_AMOUNT}",
        rf"more\s+than\s*{_AMOUNT}",
    )
)

_TOKEN_SPLIT = re.compile(r"\W+")


# =============================================================================
# Extraction
# =============================================================================

def extract_category(text: str) -> Optional[str]:
    """Return the first known category mentioned in the text."""
    return first_match(CATEGORY_MATCHERS, text)


def extract_budget(text: str) -> Optional[Decimal]:
    """Return the budget ceiling from phrases like 'under $30' or '£30 or less'."""
    return first_match(BUDGET_MATCHERS, text)


def extract_min_price(text: str) -> Optional[Decimal]:
    """Return a price floor from phrases like 'over 100' or 'more than £20'."""
    return first_match(MIN_PRICE_MATCHERS, text)


def extract_keywords(text: str) -> Tuple[str, ...]:
    """
    Split text into lower-cased search terms.

    Tokens of two characters or fewer and stop words are dropped; duplicates
    are removed case-insensitively keeping first-seen order.
    """
    seen = set()
    keywords: List[str] = []
    for token in _TOKEN_SPLIT.split(text):
        term = token.lower()
        if len(term) < MIN_KEYWORD_LENGTH or term in STOP_WORDS or term in seen:
            continue
        seen.add(term)
        keywords.append(term)
    return tuple(keywords)


def interpret(text: str) -> RetrievalFilters:
    """
    Derive retrieval filters from raw user text.

    Args:
        text: User message (validated upstream, at most 500 characters)

    Returns:
        RetrievalFilters with any filter that could not be extracted omitted
    """
    return RetrievalFilters(
        category=extract_category(text),
        max_price=extract_budget(text),
        keywords=extract_keywords(text),
    )


# =============================================================================
# Search index filter
# =============================================================================

class FilterClause(BaseModel):
    """One comparison of the search filter grammar."""
    model_config = ConfigDict(frozen=True)

    field: str
    op: str  # "eq", "lt" or "gt"
    value: Union[str, Decimal]

    def render(self) -> str:
        if isinstance(self.value, Decimal):
            return f"{self.field} {self.op} {_format_number(self.value)}"
        escaped = self.value.replace("'", "''")
        return f"{self.field} {self.op} '{escaped}'"


class SearchFilter(BaseModel):
    """Conjunction of filter clauses for the hybrid search index."""
    model_config = ConfigDict(frozen=True)

    clauses: Tuple[FilterClause, ...] = ()

    def render(self) -> Optional[str]:
        """Render as `field eq 'value' and field lt N`, or None when empty."""
        if not self.clauses:
            return None
        return " and ".join(clause.render() for clause in self.clauses)

    def __bool__(self) -> bool:
        return bool(self.clauses)


def _format_number(value: Decimal) -> str:
    return format(value.normalize(), "f")


def build_search_filter(text: str) -> SearchFilter:
    """
    Build the structured filter for the semantic search path.

    Uses the same category and budget heuristics as `interpret`, plus price
    floors ("over", "above", "more than").
    """
    if not text or not text.strip():
        return SearchFilter()

    clauses: List[FilterClause] = []
    category = extract_category(text)
    if category is not None:
        clauses.append(FilterClause(field="category", op="eq", value=category))

    ceiling = extract_budget(text)
    if ceiling is not None:
        clauses.append(FilterClause(field="price", op="lt", value=ceiling))

    floor = extract_min_price(text)
    if floor is not None:
        clauses.append(FilterClause(field="price", op="gt", value=floor))

    return SearchFilter(clauses=tuple(clauses))
