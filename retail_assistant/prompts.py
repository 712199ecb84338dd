"""
System prompt construction.

The prompt lists the retrieved products and requires the model to cite every
recommended product as a SKU marker. The marker syntax below is the only
contract between this module and the recommendation extractor.
"""

import re
from typing import Dict, List, Sequence

from retail_assistant.models import CatalogItem

# Marker the model must emit for every recommended product: [SKU-<value>]
SKU_MARKER_TEMPLATE = "[SKU-{sku}]"
SKU_MARKER_PATTERN = re.compile(r"\[SKU-([^\]]+)\]")

MIN_RECOMMENDATIONS = 2
MAX_RECOMMENDATIONS = 4

CURRENCY_SYMBOLS: Dict[str, str] = {
    "GBP": "£",
    "USD": "$",
    "EUR": "€",
}


def format_sku_marker(sku: str) -> str:
    """Render a SKU the way the model is asked to cite it."""
    return SKU_MARKER_TEMPLATE.format(sku=sku)


def format_price(item: CatalogItem) -> str:
    """Price with a currency symbol prefix and two decimals (e.g. £29.99)."""
    symbol = CURRENCY_SYMBOLS.get(item.currency.upper(), item.currency)
    return f"{symbol}{item.price:.2f}"


def format_catalog_line(item: CatalogItem) -> List[str]:
    """One product line, plus a description line when there is one."""
    lines = [f"- {format_sku_marker(item.sku)} {item.name} - {format_price(item)} ({item.category})"]
    if item.description:
        lines.append(f"  Description: {item.description}")
    return lines


PERSONA = (
    "You are a helpful retail sales assistant for an online store. Your ONLY role "
    "is to help customers find and purchase products from our catalog."
)

STRICT_RULES = """STRICT RULES:
1. ONLY discuss products available in our catalog
2. ONLY answer questions related to shopping, products, pricing, and purchasing
3. If asked about topics unrelated to our products (weather, politics, general knowledge, etc.), politely redirect to product assistance
4. Example redirect: 'I'm here to help you find the perfect products from our store. What type of product are you looking for today?'"""

RESPONSE_GUIDELINES = f"""Response Guidelines:
- Be conversational, friendly, and helpful
- Stay focused on helping customers find products
- Ask clarifying questions about product preferences if needed
- Recommend {MIN_RECOMMENDATIONS}-{MAX_RECOMMENDATIONS} products maximum per response
- IMPORTANT: When recommending a product, you MUST include its SKU in this exact format: {format_sku_marker('XXXX')}
- Example: 'I recommend the {format_sku_marker('LAP001')} Dell XPS Laptop because it fits your budget.'
- Consider any budget constraints mentioned by the customer
- Explain why you're recommending specific products
- If no suitable products are available, politely explain and suggest alternatives

CRITICAL: Always wrap product SKUs in square brackets like {format_sku_marker('XXXX')} to help the system identify recommendations."""


def build_system_prompt(products: Sequence[CatalogItem], user_message: str) -> str:
    """
    Build the system instruction for one chat turn.

    The output depends only on its inputs, so the same products always yield
    the same prompt.

    Args:
        products: Catalog items retrieved for this turn
        user_message: Raw user text (the catalog block already reflects it)

    Returns:
        System prompt string
    """
    lines: List[str] = [PERSONA, "", STRICT_RULES, "", "Available Products:"]

    for product in products:
        lines.extend(format_catalog_line(product))

    lines.extend(["", RESPONSE_GUIDELINES])
    return "\n".join(lines) + "\n"
