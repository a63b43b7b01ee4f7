"""Recommendation pipeline stages."""

from showroom.agents.conversation import ConversationManager
from showroom.agents.orchestrator import (
    RecommendationPipeline,
    RecommendationService,
    get_recommendation_service,
    set_recommendation_service,
)
from showroom.agents.product_matching import ProductMatcher
from showroom.agents.recommendation import RecommendationGenerator
from showroom.agents.requirements import RequirementExtractor

__all__ = [
    "ConversationManager",
    "ProductMatcher",
    "RecommendationGenerator",
    "RecommendationPipeline",
    "RecommendationService",
    "RequirementExtractor",
    "get_recommendation_service",
    "set_recommendation_service",
]
