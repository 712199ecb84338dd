"""
Recommendation extraction.

Finds SKU markers in the model reply and turns each distinct one that refers
to a product from the prompt into a Recommendation.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from retail_assistant.logger import get_logger
from retail_assistant.models import CatalogItem, Recommendation
from retail_assistant.prompts import SKU_MARKER_PATTERN

logger = get_logger("recommendations")

REASON_WINDOW = 100

DEFAULT_IMAGE_URL = "https://images.unsplash.com/photo-1505740420928-5e560c06d30e?w=400"

# (category substrings, image) checked in order; the first hit wins.
CATEGORY_IMAGES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("laptop", "computer"), "https://images.unsplash.com/photo-1496181133206-80ce9b88a853?w=400"),
    (("phone", "smartphone"), "https://images.unsplash.com/photo-1511707171634-5f897ff02aa9?w=400"),
    (("tablet",), "https://images.unsplash.com/photo-1561154464-82e9adf32764?w=400"),
    (("camera",), "https://images.unsplash.com/photo-1526170375885-4d8ecf77b99f?w=400"),
    (("headphone", "audio"), "https://images.unsplash.com/photo-1505740420928-5e560c06d30e?w=400"),
    (("watch", "smartwatch"), "https://images.unsplash.com/photo-1523275335684-37898b6baf30?w=400"),
    (("tv", "television", "monitor"), "https://images.unsplash.com/photo-1593359677879-a4bb92f829d1?w=400"),
    (("speaker",), "https://images.unsplash.com/photo-1608043152269-423dbba4e7e1?w=400"),
    (("gaming", "console"), "https://images.unsplash.com/photo-1486401899868-0e435ed85128?w=400"),
)


def image_url_for_category(category: Optional[str]) -> str:
    """Pick an illustrative image for a product category."""
    category_lower = (category or "").lower()
    for needles, url in CATEGORY_IMAGES:
        if any(needle in category_lower for needle in needles):
            return url
    return DEFAULT_IMAGE_URL


def reason_window(reply: str, start: int, end: int, window: int = REASON_WINDOW) -> str:
    """
    Text from `window` characters before `start` to `window` after `end`, trimmed.

    The window is symmetric around the whole marker, so a marker near the
    start of the reply still gets a full `window` of text after it. This is
    not a fixed-length slice beginning `window` characters before the marker.
    """
    return reply[max(0, start - window):min(len(reply), end + window)].strip()


class RecommendationExtractor:
    """
    Extracts product recommendations from an assistant reply.

    Markers that do not match a product from the prompt are dropped and
    logged as possible hallucinations. The extractor holds no per-call
    state, so one instance can serve concurrent turns.
    """

    def __init__(self, window: int = REASON_WINDOW):
        self.window = window

    def extract(self, reply: str, products: Sequence[CatalogItem]) -> Optional[List[Recommendation]]:
        """
        Parse recommendations from the reply.

        Args:
            reply: Assistant reply text
            products: The catalog items that were given to the model

        Returns:
            None when the reply contains no SKU marker at all; otherwise the
            matched recommendations in first-mention order (possibly empty)
        """
        matches = list(SKU_MARKER_PATTERN.finditer(reply or ""))
        if not matches:
            return None

        by_sku: Dict[str, CatalogItem] = {}
        for product in products:
            by_sku.setdefault(product.sku.lower(), product)

        recommendations: List[Recommendation] = []
        processed = set()
        unmatched = 0

        for match in matches:
            sku = match.group(1).strip()
            key = sku.lower()
            if key in processed:
                continue
            processed.add(key)

            product = by_sku.get(key)
            if product is None:
                unmatched += 1
                logger.warning("Model cited unknown SKU %s; dropping it", sku)
                continue

            recommendations.append(Recommendation(
                product_id=product.id,
                sku=product.sku,
                name=product.name,
                price=product.price,
                currency=product.currency,
                category=product.category,
                reason=reason_window(reply, match.start(), match.end(), self.window),
                image_url=image_url_for_category(product.category)
            ))

        logger.info("Parsed %d product recommendations, dropped %d unknown", len(recommendations), unmatched)
        return recommendations
