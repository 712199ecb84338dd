"""
Catalog retrieval.

Both retrieval paths are ordered chains of strategies. The orchestrator asks
each strategy in turn and stops at the first non-empty result:

- chat retrieval: filtered catalog query -> 5 cheapest active items
- semantic search: hybrid vector + filter query -> lexical search
"""

import asyncio
from typing import List, Optional, Protocol, Sequence

from retail_assistant.database import CatalogDatabase
from retail_assistant.logger import get_logger
from retail_assistant.models import CatalogItem, RetrievalFilters
from retail_assistant.query_interpreter import build_search_filter
from retail_assistant.search_index import EmbeddingClient, ProductSearchIndex

logger = get_logger("retrieval")

MAX_RESULTS = 10
FALLBACK_RESULTS = 5


# =============================================================================
# Chat retrieval (catalog database)
# =============================================================================

class CatalogStrategy(Protocol):
    name: str

    async def retrieve(self, filters: RetrievalFilters) -> List[CatalogItem]:
        ...


class FilteredCatalogStrategy:
    """Active items matching category, budget and any keyword."""
    name = "filtered"

    def __init__(self, database: CatalogDatabase, limit: int = MAX_RESULTS):
        self.database = database
        self.limit = limit

    async def retrieve(self, filters: RetrievalFilters) -> List[CatalogItem]:
        return await asyncio.to_thread(
            self.database.query_active,
            category=filters.category,
            max_price=filters.max_price,
            keywords=filters.keywords,
            limit=self.limit
        )


class CheapestItemsStrategy:
    """The cheapest active items, ignoring every filter."""
    name = "cheapest"

    def __init__(self, database: CatalogDatabase, limit: int = FALLBACK_RESULTS):
        self.database = database
        self.limit = limit

    async def retrieve(self, filters: RetrievalFilters) -> List[CatalogItem]:
        return await asyncio.to_thread(self.database.cheapest_active, self.limit)


class CatalogRetriever:
    """
    Finds the products to put in front of the model for one chat turn.

    Never returns more than `max_results` items. When the filtered query finds
    nothing, the cheapest active items are used so the prompt is never built
    over an empty catalog while active items exist.
    """

    def __init__(
        self,
        database: CatalogDatabase,
        strategies: Optional[Sequence[CatalogStrategy]] = None,
        max_results: int = MAX_RESULTS
    ):
        self.database = database
        self.strategies = list(strategies) if strategies is not None else [
            FilteredCatalogStrategy(database, limit=max_results),
            CheapestItemsStrategy(database),
        ]
        self.max_results = max_results

    async def retrieve(self, filters: RetrievalFilters) -> List[CatalogItem]:
        """
        Run the strategy chain for the given filters.

        Args:
            filters: Filters extracted from the user message

        Returns:
            Up to `max_results` active catalog items
        """
        if filters.category:
            logger.info("Filtering by category: %s", filters.category)
        if filters.max_price is not None:
            logger.info("Filtering by max budget: %s", filters.max_price)
        if filters.keywords:
            logger.info("Filtering by keywords: %s", ", ".join(filters.keywords))

        for strategy in self.strategies:
            items = await strategy.retrieve(filters)
            if items:
                logger.info("Found %d relevant products (%s)", len(items), strategy.name)
                return items[:self.max_results]
            logger.info("Strategy %s found no products", strategy.name)

        return []


# =============================================================================
# Semantic search (external index)
# =============================================================================

class SearchStrategy(Protocol):
    name: str

    async def search(self, query: str, top: int) -> List[CatalogItem]:
        ...


class HybridSearchStrategy:
    """Embedding similarity constrained by the category/price filter."""
    name = "hybrid"

    def __init__(self, embeddings: EmbeddingClient, index: ProductSearchIndex):
        self.embeddings = embeddings
        self.index = index

    async def search(self, query: str, top: int) -> List[CatalogItem]:
        vector = await self.embeddings.embed(query)
        search_filter = build_search_filter(query)
        logger.info("Query: '%s' | Generated filter: '%s'", query, search_filter.render() or "none")
        return await self.index.hybrid_search(query, vector, search_filter, top=top)


class LexicalSearchStrategy:
    """Keyword match against the indexed documents."""
    name = "lexical"

    def __init__(self, index: ProductSearchIndex):
        self.index = index

    async def search(self, query: str, top: int) -> List[CatalogItem]:
        return await self.index.lexical_search(query, top=top)


class SemanticSearcher:
    """
    Standalone product search over the external index.

    Failures of one tier are logged and the next tier is tried; callers only
    ever see a (possibly empty) result list.
    """

    def __init__(
        self,
        embeddings: Optional[EmbeddingClient] = None,
        index: Optional[ProductSearchIndex] = None,
        strategies: Optional[Sequence[SearchStrategy]] = None,
        top: int = MAX_RESULTS
    ):
        if strategies is None:
            if embeddings is None or index is None:
                raise ValueError("embeddings and index are required when no strategies are given")
            strategies = [
                HybridSearchStrategy(embeddings, index),
                LexicalSearchStrategy(index),
            ]
        self.strategies = list(strategies)
        self.top = top

    async def search(self, query: str) -> List[CatalogItem]:
        """
        Search the index for products matching free text.

        Args:
            query: Natural-language query

        Returns:
            Up to `top` products; empty only when every tier finds nothing
        """
        for strategy in self.strategies:
            try:
                items = await strategy.search(query, self.top)
            except Exception as e:
                logger.warning("%s search failed for query %r: %s", strategy.name, query, e, exc_info=True)
                continue
            if items:
                return items[:self.top]
            logger.info("%s search returned no results for query %r", strategy.name, query)

        return []
