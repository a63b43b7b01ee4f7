"""State model exports."""

from showroom.state.models import (
    AssistantType,
    MessageRole,
    ThreadStatus,
    Message,
    RecommendationThread,
    Budget,
    RequirementSet,
    ProductVariation,
    ProductCandidate,
    PriceRange,
    RecommendationSummary,
    RecommendationResult,
)

__all__ = [
    "AssistantType",
    "MessageRole",
    "ThreadStatus",
    "Message",
    "RecommendationThread",
    "Budget",
    "RequirementSet",
    "ProductVariation",
    "ProductCandidate",
    "PriceRange",
    "RecommendationSummary",
    "RecommendationResult",
]
