"""
Product search index.

Generates embeddings through the OpenAI embeddings API and stores catalog
items in a ChromaDB collection for hybrid (vector + structured filter) and
lexical retrieval.

Usage:
    python -m retail_assistant.search_index --force --test-search "headphones under 100"
"""

import asyncio
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import chromadb
from chromadb.config import Settings as ChromaSettings
import openai

from retail_assistant.config import Settings, get_settings
from retail_assistant.database import CatalogDatabase
from retail_assistant.logger import get_logger
from retail_assistant.models import CatalogItem
from retail_assistant.query_interpreter import SearchFilter, extract_keywords

logger = get_logger("search_index")

_CHROMA_OPERATORS = {"eq": "$eq", "lt": "$lt", "gt": "$gt"}

# Vector candidates drawn per requested result before keyword re-ranking
HYBRID_CANDIDATE_FACTOR = 3


class EmbeddingClient:
    """
    Text embeddings through an OpenAI-compatible endpoint.

    Blank input maps to a zero vector of the configured dimension without
    calling the remote service.
    """

    def __init__(
        self,
        client: Optional[openai.AsyncOpenAI] = None,
        model: Optional[str] = None,
        dimensions: Optional[int] = None,
        settings: Optional[Settings] = None
    ):
        settings = settings or get_settings()
        self.model = model or settings.embedding_model
        self.dimensions = dimensions or settings.embedding_dimensions

        if client is None:
            if not settings.openai_api_key:
                raise ValueError("OPENAI_API_KEY environment variable is required")
            client = openai.AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.embedding_timeout,
                max_retries=settings.chat_max_retries
            )
        self.client = client

    def zero_vector(self) -> List[float]:
        return [0.0] * self.dimensions

    async def embed(self, text: str) -> List[float]:
        """
        Generate the embedding for one text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector
        """
        if not text or not text.strip():
            return self.zero_vector()

        response = await self.client.embeddings.create(model=self.model, input=text)
        return list(response.data[0].embedding)

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Generate embeddings for several texts in one request.

        Blank entries get zero vectors and are not sent.
        """
        vectors: List[Optional[List[float]]] = [None] * len(texts)
        pending = [(i, text) for i, text in enumerate(texts) if text and text.strip()]

        if pending:
            response = await self.client.embeddings.create(
                model=self.model,
                input=[text for _, text in pending]
            )
            for (i, _), item in zip(pending, response.data):
                vectors[i] = list(item.embedding)

        return [vector if vector is not None else self.zero_vector() for vector in vectors]


def searchable_text(item: CatalogItem) -> str:
    """Text that represents an item for embedding and keyword search."""
    return f"{item.name} {item.description or ''} {item.category}".strip()


def filter_to_where(search_filter: Optional[SearchFilter]) -> Optional[Dict[str, Any]]:
    """Translate filter clauses into a ChromaDB `where` expression."""
    if not search_filter:
        return None

    conditions = []
    for clause in search_filter.clauses:
        value = float(clause.value) if isinstance(clause.value, Decimal) else clause.value
        conditions.append({clause.field: {_CHROMA_OPERATORS[clause.op]: value}})

    if len(conditions) == 1:
        return conditions[0]
    return {"$and": conditions}


def _keywords_to_where_document(keywords: Sequence[str]) -> Optional[Dict[str, Any]]:
    conditions = [{"$contains": keyword} for keyword in keywords]
    if not conditions:
        return None
    if len(conditions) == 1:
        return conditions[0]
    return {"$or": conditions}


def _keyword_score(document: Optional[str], keywords: Sequence[str]) -> int:
    text = (document or "").lower()
    return sum(1 for keyword in keywords if keyword in text)


class ProductSearchIndex:
    """
    ChromaDB-backed search index for catalog items.

    Documents are stored lower-cased so that lexical matching is
    case-insensitive; vectors are supplied by the caller.
    """

    def __init__(
        self,
        persist_directory: Optional[str] = None,
        collection_name: Optional[str] = None,
        chroma_client: Optional[Any] = None,
        timeout: Optional[float] = None,
        settings: Optional[Settings] = None
    ):
        """
        Initialize the search index.

        Args:
            persist_directory: Path to store the vector database
            collection_name: Name of the products collection
            chroma_client: Pre-built ChromaDB client (tests use an in-memory one)
            timeout: Deadline in seconds for one search call
        """
        settings = settings or get_settings()
        self.collection_name = collection_name or settings.search_collection
        self.timeout = timeout or settings.search_timeout

        if chroma_client is None:
            chroma_client = chromadb.PersistentClient(
                path=persist_directory or settings.vector_store_path,
                settings=ChromaSettings(anonymized_telemetry=False)
            )
        self.chroma_client = chroma_client
        self.collection = None

    def ensure_index(self):
        """Get or create the products collection."""
        if self.collection is None:
            self.collection = self.chroma_client.get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine"}
            )
            logger.info("Search index %s is ready", self.collection_name)
        return self.collection

    def index_products(self, items: Sequence[CatalogItem], embeddings: Sequence[List[float]]) -> int:
        """
        Upsert items with their precomputed embeddings.

        Args:
            items: Catalog items
            embeddings: One vector per item, same order

        Returns:
            Number of items indexed
        """
        if not items:
            logger.info("No products to index")
            return 0

        collection = self.ensure_index()
        collection.upsert(
            ids=[str(item.id) for item in items],
            documents=[searchable_text(item).lower() for item in items],
            embeddings=[list(vector) for vector in embeddings],
            metadatas=[self._item_to_metadata(item) for item in items]
        )
        logger.info("Indexed %d products in %s", len(items), self.collection_name)
        return len(items)

    async def hybrid_search(
        self,
        query: str,
        vector: List[float],
        search_filter: Optional[SearchFilter] = None,
        top: int = 10
    ) -> List[CatalogItem]:
        """
        Vector similarity restricted by the structured filter, re-ranked by
        how many query keywords each candidate document contains.

        A wider candidate pool than `top` is drawn from the vector query so
        that a strong keyword match slightly further away in vector space can
        still make the cut. Ties keep vector order.
        """
        collection = self.ensure_index()
        available = await self._run(collection.count)
        if available == 0:
            return []

        results = await self._run(
            collection.query,
            query_embeddings=[vector],
            n_results=min(top * HYBRID_CANDIDATE_FACTOR, available),
            where=filter_to_where(search_filter),
            include=["metadatas", "documents", "distances"]
        )

        metadatas = (results.get("metadatas") or [[]])[0] or []
        documents = (results.get("documents") or [[]])[0] or []
        keywords = extract_keywords(query or "")

        ranked = sorted(
            range(len(metadatas)),
            key=lambda i: -_keyword_score(documents[i] if i < len(documents) else "", keywords)
        )
        return [self._metadata_to_item(metadatas[i]) for i in ranked[:top]]

    async def lexical_search(self, query: str, top: int = 10) -> List[CatalogItem]:
        """Substring match of the query keywords against indexed documents."""
        where_document = _keywords_to_where_document(extract_keywords(query or ""))
        kwargs: Dict[str, Any] = {"limit": top, "include": ["metadatas"]}
        if where_document is not None:
            kwargs["where_document"] = where_document

        results = await self._run(self.ensure_index().get, **kwargs)
        metadatas = results.get("metadatas") or []
        return [self._metadata_to_item(metadata) for metadata in metadatas]

    def get_product_count(self) -> int:
        """Get the number of products in the index."""
        return self.ensure_index().count()

    def clear_index(self):
        """Remove all products from the index."""
        self.ensure_index()
        self.chroma_client.delete_collection(self.collection_name)
        self.collection = None
        self.ensure_index()

    async def _run(self, func, **kwargs) -> Any:
        """Run a blocking ChromaDB call in a worker thread under the search deadline."""
        return await asyncio.wait_for(asyncio.to_thread(func, **kwargs), timeout=self.timeout)

    @staticmethod
    def _item_to_metadata(item: CatalogItem) -> Dict[str, Any]:
        return {
            "product_id": item.id,
            "sku": item.sku,
            "name": item.name,
            "description": item.description or "",
            "category": item.category,
            "price": float(item.price),
            "currency": item.currency,
        }

    @staticmethod
    def _metadata_to_item(metadata: Dict[str, Any]) -> CatalogItem:
        return CatalogItem(
            id=int(metadata["product_id"]),
            sku=metadata["sku"],
            name=metadata["name"],
            description=metadata.get("description") or None,
            category=metadata.get("category", ""),
            price=Decimal(str(metadata["price"])),
            currency=metadata.get("currency", "GBP"),
            active=True
        )


async def index_catalog(
    database: CatalogDatabase,
    embeddings: EmbeddingClient,
    index: ProductSearchIndex,
    batch_size: int = 20
) -> int:
    """
    Embed every active catalog item and upsert it into the search index.

    Returns:
        Number of items indexed
    """
    items = database.get_all_active()
    total = 0
    for start in range(0, len(items), batch_size):
        batch = items[start:start + batch_size]
        vectors = await embeddings.embed_batch([searchable_text(item) for item in batch])
        total += index.index_products(batch, vectors)
        logger.info("Processed %d/%d products", min(start + batch_size, len(items)), len(items))
    return total


async def _main(args) -> None:
    from retail_assistant.retrieval import SemanticSearcher

    database = CatalogDatabase(args.catalog)
    embedding_client = EmbeddingClient()
    search_index = ProductSearchIndex(persist_directory=args.vector_store)

    if args.force:
        print("Clearing existing index...")
        search_index.clear_index()

    count = await index_catalog(database, embedding_client, search_index)
    print(f"\nIndexed {count} products ({search_index.get_product_count()} in index)")

    if args.test_search:
        print(f"\nTesting search with query: '{args.test_search}'")
        searcher = SemanticSearcher(embedding_client, search_index)
        results = await searcher.search(args.test_search)

        for i, item in enumerate(results, 1):
            print(f"\n--- Result {i} ---")
            print(f"Product: [{item.sku}] {item.name}")
            print(f"Price: {item.currency} {item.price:.2f}")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Build the product search index from the catalog")
    parser.add_argument(
        "--catalog",
        type=str,
        default=None,
        help="Path to the catalog SQLite database"
    )
    parser.add_argument(
        "--vector-store",
        type=str,
        default=None,
        help="Path for vector store persistence"
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Clear the index before rebuilding it"
    )
    parser.add_argument(
        "--test-search",
        type=str,
        help="Test search query after indexing"
    )

    args = parser.parse_args()

    print("=" * 50)
    print("Building Product Search Index")
    print("=" * 50)

    asyncio.run(_main(args))
