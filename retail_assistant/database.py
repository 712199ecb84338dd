"""
Catalog database module.

Read-side access to the product catalog: predicate queries over active items
(category equality, price ceiling, keyword containment), ordering by price and
result limits. Uses SQLite with parameterized queries.
"""

import sqlite3
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from retail_assistant.config import get_settings
from retail_assistant.logger import get_logger
from retail_assistant.models import CatalogItem

logger = get_logger("database")


class CatalogDatabase:
    """
    Manages SQLite connections and read queries for the product catalog.

    Uses parameterized queries to prevent SQL injection and context managers
    for proper resource handling. Each call opens its own connection, so one
    instance can be shared by concurrent requests running in worker threads.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize the catalog database with optional custom path.

        Args:
            db_path: Path to SQLite database file. Uses the configured path if not provided.
        """
        self.db_path = Path(db_path or get_settings().catalog_db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_schema()

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _initialize_schema(self):
        """Create the products table if it doesn't exist."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS products (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    sku TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    description TEXT,
                    price REAL NOT NULL CHECK(price >= 0),
                    currency TEXT NOT NULL DEFAULT 'GBP',
                    category TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_products_active_price
                ON products(is_active, price)
            """)

    def add_items(self, items: Iterable[CatalogItem]) -> List[int]:
        """
        Insert catalog items, letting SQLite assign ids.

        Args:
            items: Items to insert (their id field is ignored)

        Returns:
            The assigned ids in insertion order

        Raises:
            sqlite3.IntegrityError: If a SKU already exists
        """
        ids = []
        with self._get_connection() as conn:
            cursor = conn.cursor()
            for item in items:
                cursor.execute("""
                    INSERT INTO products (
                        sku, name, description, price, currency, category, is_active
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    item.sku,
                    item.name,
                    item.description,
                    float(item.price),
                    item.currency,
                    item.category,
                    1 if item.active else 0
                ))
                ids.append(cursor.lastrowid)
        return ids

    def query_active(
        self,
        category: Optional[str] = None,
        max_price: Optional[Decimal] = None,
        keywords: Sequence[str] = (),
        limit: int = 10
    ) -> List[CatalogItem]:
        """
        Query active items matching every supplied predicate.

        Category is compared for (case-insensitive) equality, price against an
        inclusive ceiling, and an item matches the keywords when its name or
        description contains any one of them.

        Args:
            category: Exact category, or None for any
            max_price: Inclusive price ceiling, or None for any
            keywords: Terms of which at least one must appear
            limit: Maximum number of rows

        Returns:
            Matching items in catalog order
        """
        clauses = ["is_active = 1"]
        params: list = []

        if category:
            clauses.append("category = ? COLLATE NOCASE")
            params.append(category)

        if max_price is not None:
            clauses.append("price <= ?")
            params.append(float(max_price))

        if keywords:
            keyword_clauses = []
            for keyword in keywords:
                keyword_clauses.append("(name LIKE ? ESCAPE '\\' OR description LIKE ? ESCAPE '\\')")
                pattern = f"%{_escape_like(keyword)}%"
                params.extend([pattern, pattern])
            clauses.append("(" + " OR ".join(keyword_clauses) + ")")

        sql = f"SELECT * FROM products WHERE {' AND '.join(clauses)} ORDER BY id LIMIT ?"
        params.append(limit)
        logger.debug("Catalog query: %s %s", sql, params)

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            return [self._row_to_item(row) for row in cursor.fetchall()]

    def cheapest_active(self, limit: int = 5) -> List[CatalogItem]:
        """Return the cheapest active items, ignoring all other filters."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM products WHERE is_active = 1 ORDER BY price ASC, id ASC LIMIT ?
            """, (limit,))
            return [self._row_to_item(row) for row in cursor.fetchall()]

    def get_all_active(self) -> List[CatalogItem]:
        """Return every active item (used to build the search index)."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM products WHERE is_active = 1 ORDER BY id")
            return [self._row_to_item(row) for row in cursor.fetchall()]

    def get_item_count(self) -> int:
        """Get total number of active items in the catalog."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM products WHERE is_active = 1")
            return cursor.fetchone()[0]

    def _row_to_item(self, row: sqlite3.Row) -> CatalogItem:
        """Convert a database row to a CatalogItem."""
        return CatalogItem(
            id=row['id'],
            sku=row['sku'],
            name=row['name'],
            description=row['description'],
            price=Decimal(str(row['price'])),
            currency=row['currency'],
            category=row['category'] or "",
            active=bool(row['is_active'])
        )


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def get_database() -> CatalogDatabase:
    """Get the catalog database at the configured path."""
    return CatalogDatabase()
