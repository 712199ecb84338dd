"""
Pydantic models for the Retail Assistant.

Defines the catalog, conversation, recommendation and checkout schemas with
field constraints and validators that normalize values at the boundary.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator


MAX_MESSAGE_LENGTH = 500
MAX_TURN_CONTENT_LENGTH = 2000

TWO_PLACES = Decimal("0.01")


class Role(str, Enum):
    """Enumeration for chat message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class CatalogItem(BaseModel):
    """
    Read-only view of a catalog product.

    Attributes:
        id: Catalog primary key
        sku: Unique stock-keeping unit
        name: Product name
        price: Unit price, two decimal places
        currency: ISO currency code (e.g. GBP)
        category: Product category
        description: Optional long description
        active: Whether the product is currently sold
    """
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Catalog product identifier")
    sku: str = Field(..., min_length=1, description="Unique SKU")
    name: str = Field(..., min_length=1, description="Product name")
    price: Decimal = Field(..., ge=0, description="Unit price")
    currency: str = Field(default="GBP", min_length=1, description="Currency code")
    category: str = Field(default="", description="Product category")
    description: Optional[str] = Field(None, description="Product description")
    active: bool = Field(default=True, description="Active in catalog")

    @field_validator('price')
    @classmethod
    def validate_price(cls, v: Decimal) -> Decimal:
        """Ensure price has exactly 2 decimal places."""
        return v.quantize(TWO_PLACES)


class ChatTurn(BaseModel):
    """
    One immutable entry of a session's conversation history.
    """
    model_config = ConfigDict(frozen=True)

    session_id: str = Field(..., min_length=1, description="Owning session")
    role: Role = Field(..., description="Message role")
    content: str = Field(..., description="Message content")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Creation timestamp")

    @field_validator('content')
    @classmethod
    def bound_content(cls, v: str) -> str:
        """Clip content to the stored maximum length."""
        return v[:MAX_TURN_CONTENT_LENGTH]


class RetrievalFilters(BaseModel):
    """
    Structured filters derived from one user message. Not persisted.
    """
    model_config = ConfigDict(frozen=True)

    category: Optional[str] = Field(None, description="Exact category to match")
    max_price: Optional[Decimal] = Field(None, ge=0, description="Budget ceiling")
    keywords: Tuple[str, ...] = Field(default=(), description="Normalized keyword terms")

    @property
    def is_empty(self) -> bool:
        return self.category is None and self.max_price is None and not self.keywords


class Recommendation(BaseModel):
    """
    A product the assistant recommended in its reply.

    Attributes:
        product_id: Catalog identifier of the product
        sku: SKU as stored in the catalog
        name: Product name
        price: Unit price
        currency: Currency code
        category: Product category
        reason: Reply text surrounding the SKU marker
        image_url: Illustrative image for the category
    """
    product_id: int
    sku: str
    name: str
    price: Decimal
    currency: str
    category: str = ""
    reason: str = ""
    image_url: str = ""


class ChatRequest(BaseModel):
    """
    Inbound chat turn.
    """
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH, description="User message")
    session_id: str = Field(default="", description="Conversation session identifier")
    customer_id: str = Field(default="guest", description="Customer identifier")

    @field_validator('message')
    @classmethod
    def validate_message(cls, v: str) -> str:
        """Reject messages that contain only whitespace."""
        if not v.strip():
            raise ValueError('Message cannot be empty')
        return v


class ChatResponse(BaseModel):
    """
    Reply to a chat turn.
    """
    message: str = Field(..., description="Assistant reply text")
    recommendations: Optional[List[Recommendation]] = Field(None, description="Products recommended in the reply")
    session_id: str = Field(..., description="Session identifier for conversation tracking")


class CheckoutRequest(BaseModel):
    """
    Checkout intent forwarded to the order service.
    """
    customer_id: str = Field(..., min_length=1, description="Customer identifier")
    payment_token: str = Field(..., min_length=1, description="Opaque payment token")


class CheckoutResult(BaseModel):
    """
    Order created by the checkout service.

    customer_id always carries the caller-supplied value; the upstream
    response does not echo it back reliably.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["success"] = "success"
    order_id: int = Field(..., description="Upstream order identifier")
    status: str = Field(..., description="Upstream order status")
    total: Decimal = Field(..., description="Order total")
    customer_id: str = Field(..., description="Customer who checked out")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Order creation timestamp")
