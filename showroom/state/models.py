"""Domain models for recommendation threads and the matching pipeline."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field
import uuid


def generate_id() -> str:
    """Generate a unique ID."""
    return str(uuid.uuid4())


class AssistantType(str, Enum):
    """Assistant variant that answers a thread."""

    INTERIOR_DESIGN = "interior_design"
    STYLE_ACCESS = "style_access"


class MessageRole(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"


class ThreadStatus(str, Enum):
    """Lifecycle state of a recommendation thread."""

    NEW = "new"
    ACTIVE = "active"
    INACTIVE = "inactive"


class Message(BaseModel):
    """A message in a recommendation thread."""

    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class RecommendationThread(BaseModel):
    """A persisted conversation between a user and the assistant."""

    id: str = Field(default_factory=generate_id)
    user_id: str
    type: AssistantType = AssistantType.INTERIOR_DESIGN
    project_name: str = ""
    image_url: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    messages: list[Message] = Field(default_factory=list)
    summary: Optional[str] = None
    last_response: str = ""
    is_active: bool = True
    # Set once the thread has been written to or read from the store
    persisted: bool = Field(default=False, exclude=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def status(self) -> ThreadStatus:
        if not self.is_active:
            return ThreadStatus.INACTIVE
        if not self.persisted and not self.messages and not self.summary:
            return ThreadStatus.NEW
        return ThreadStatus.ACTIVE

    @property
    def entry_count(self) -> int:
        """Stored history entries: the summary (if any) plus kept messages."""
        return len(self.messages) + (1 if self.summary else 0)


class Budget(BaseModel):
    """Price range mentioned by the user."""

    min: Optional[float] = None
    max: Optional[float] = None


class RequirementSet(BaseModel):
    """Structured filter derived from a free-text user message."""

    category: Optional[str] = None
    brand: Optional[str] = None
    room_type: Optional[str] = None
    budget: Optional[Budget] = None
    preferences: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.category or self.brand or self.room_type or self.budget or self.preferences)


class ProductVariation(BaseModel):
    """A selectable product option group (e.g. color, size)."""

    type: str
    options: list[str] = Field(default_factory=list)


class ProductCandidate(BaseModel):
    """Catalog product projected into the fields used for ranking and display."""

    id: str
    name: str
    description: str = ""
    price: float = 0
    selling_price: Optional[float] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    series_name: Optional[str] = None
    images: list[str] = Field(default_factory=list)
    variations: list[ProductVariation] = Field(default_factory=list)

    def prompt_view(self) -> dict:
        """Compact dict embedded in model prompts and tool outputs."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "sellingPrice": self.selling_price if self.selling_price is not None else self.price,
            "brand": self.brand or "Unknown",
            "category": self.category or "Uncategorized",
            "seriesName": self.series_name,
            "images": self.images,
            "variations": [v.model_dump() for v in self.variations],
        }


class PriceRange(BaseModel):
    min: float
    max: float


class RecommendationSummary(BaseModel):
    """High-level stats over the returned products."""

    category: str = "General"
    room_type: str = "Not specified"
    product_count: int = 0
    price_range: Optional[PriceRange] = None


class RecommendationResult(BaseModel):
    """Output of one pipeline run."""

    answer: str
    products: list[ProductCandidate] = Field(default_factory=list)
    summary: RecommendationSummary = Field(default_factory=RecommendationSummary)
    requirements: RequirementSet = Field(default_factory=RequirementSet)
