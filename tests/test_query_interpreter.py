"""
Tests for query interpretation: category, budget and keyword extraction,
and the search index filter built from the same heuristics.
"""

import re
from decimal import Decimal

import pytest

from retail_assistant.query_interpreter import (
    FilterClause,
    Matcher,
    build_search_filter,
    extract_budget,
    extract_category,
    extract_keywords,
    extract_min_price,
    first_match,
    interpret,
)


# =============================================================================
# Budget Extraction
# =============================================================================

class TestBudgetExtraction:
    """Budget ceilings from free-text phrasings."""

    @pytest.mark.parametrize("text", [
        "under $30",
        "below 30",
        "max 30.00",
        "something less than £30 please",
        "maximum 30",
        "shoes $30 or less",
        "UNDER €30",
    ])
    def test_budget_phrasings(self, text):
        assert extract_budget(text) == Decimal("30.00")

    @pytest.mark.parametrize("text", [
        "under budget",
        "cheap headphones",
        "max quality",
        "",
    ])
    def test_no_number_means_no_budget(self, text):
        assert extract_budget(text) is None

    def test_fractional_amount(self):
        assert extract_budget("under $19.99") == Decimal("19.99")

    def test_first_matching_pattern_wins(self):
        # "under" is checked before "below"
        assert extract_budget("below 50 but ideally under 20") == Decimal("20")

    def test_price_floor_is_not_a_budget(self):
        assert extract_budget("over 100") is None
        assert extract_min_price("over 100") == Decimal("100")
        assert extract_min_price("more than £25.50") == Decimal("25.50")


# =============================================================================
# Category Extraction
# =============================================================================

class TestCategoryExtraction:

    def test_case_insensitive_match(self):
        assert extract_category("any ELECTRONICS on sale?") == "Electronics"

    def test_multi_word_category(self):
        assert extract_category("gifts for home & living") == "Home & Living"

    def test_first_listed_category_wins(self):
        assert extract_category("footwear or apparel") == "Apparel"

    def test_no_category(self):
        assert extract_category("show me laptops") is None


# =============================================================================
# Keyword Extraction
# =============================================================================

class TestKeywordExtraction:

    def test_drops_short_tokens_and_stop_words(self):
        assert extract_keywords("show me a red scarf for my mum") == ("red", "scarf", "mum")

    def test_deduplicates_case_insensitively_in_first_seen_order(self):
        assert extract_keywords("Laptop bag, LAPTOP stand, laptop") == ("laptop", "bag", "stand")

    def test_budget_words_are_not_keywords(self):
        assert extract_keywords("laptops under $500") == ("laptops", "500")

    def test_only_stop_words(self):
        assert extract_keywords("I want to buy it") == ()


# =============================================================================
# Filters
# =============================================================================

class TestInterpret:

    def test_full_query(self):
        filters = interpret("Electronics headphones under $150")
        assert filters.category == "Electronics"
        assert filters.max_price == Decimal("150")
        assert "headphones" in filters.keywords

    def test_nothing_extracted(self):
        filters = interpret("hi")
        assert filters.is_empty

    def test_first_match_skips_matchers_that_extract_nothing(self):
        matchers = [
            Matcher(re.compile("a"), lambda _m: None),
            Matcher(re.compile("a"), lambda _m: "second"),
        ]
        assert first_match(matchers, "a") == "second"


class TestSearchFilter:
    """Filter expressions for the hybrid search index."""

    def test_category_and_ceiling(self):
        search_filter = build_search_filter("electronics under $200")
        assert search_filter.render() == "category eq 'Electronics' and price lt 200"

    def test_floor(self):
        assert build_search_filter("anything above 25.50").render() == "price gt 25.5"

    def test_empty_query_has_no_filter(self):
        search_filter = build_search_filter("   ")
        assert not search_filter
        assert search_filter.render() is None

    def test_quotes_are_escaped(self):
        clause = FilterClause(field="category", op="eq", value="Kids' Toys")
        assert clause.render() == "category eq 'Kids'' Toys'"
