"""Product matching: requirements + raw message -> ranked candidates.

This module provides:
1. Meaningful-word extraction from user messages
2. A set of independent catalog search strategies run concurrently
3. Deduplication by product id and a stable, pure scoring function
"""

import asyncio
import re
import time
from typing import Awaitable, Callable, Optional

import structlog

from showroom.agents.requirements import detect_room_types
from showroom.db.repository.products import ProductCatalog
from showroom.logging import log_search
from showroom.state.models import ProductCandidate, RequirementSet

logger = structlog.get_logger()


# ============================================================================
# Keyword Extraction
# ============================================================================

STOP_WORDS = frozenset({
    "the", "and", "for", "with", "that", "this", "what", "which", "want", "need",
    "looking", "like", "would", "could", "should", "can", "you", "your", "are",
    "was", "were", "have", "has", "had", "not", "but", "from", "into", "about",
    "some", "any", "all", "our", "out", "get", "got", "please", "recommend",
    "recommendation", "recommendations", "suggest", "best", "good", "new", "there",
    "their", "them", "they", "its", "also", "just", "very", "more", "most", "will",
    "how", "who", "why", "when", "where", "show", "find", "help", "thanks", "thank",
    "something", "options", "option", "mine",
})


def meaningful_words(message: str) -> list[str]:
    """Lowercased words of a message with stop-words and words of <=2 chars removed.

    Args:
        message: Raw user text

    Returns:
        Unique words in order of first appearance
    """
    words = re.findall(r"[a-z0-9]+", message.lower())
    result: list[str] = []
    for word in words:
        if len(word) > 2 and word not in STOP_WORDS and word not in result:
            result.append(word)
    return result


# ============================================================================
# Scoring
# ============================================================================

ROOM_TYPE_WEIGHT = 3
CATEGORY_WEIGHT = 2
IMAGE_WEIGHT = 1


def score_candidate(candidate: ProductCandidate, requirements: RequirementSet) -> int:
    """Score a candidate against requirements.

    +3 when the room type appears in the name, description or category,
    +2 when the candidate's category matches the requested category,
    +1 when the candidate has at least one image.
    """
    score = 0

    if requirements.room_type:
        haystack = " ".join(
            part for part in (candidate.name, candidate.description, candidate.category) if part
        ).lower()
        if requirements.room_type.lower() in haystack:
            score += ROOM_TYPE_WEIGHT

    if requirements.category and candidate.category:
        wanted = requirements.category.lower()
        actual = candidate.category.lower()
        if wanted in actual or actual in wanted:
            score += CATEGORY_WEIGHT

    if candidate.images:
        score += IMAGE_WEIGHT

    return score


def deduplicate_candidates(candidates: list[ProductCandidate]) -> list[ProductCandidate]:
    """Keep one entry per product id.

    A later duplicate replaces the earlier value but keeps the position of the
    first arrival.
    """
    unique: dict[str, ProductCandidate] = {}
    for candidate in candidates:
        unique[candidate.id] = candidate
    return list(unique.values())


def rank_candidates(
    candidates: list[ProductCandidate],
    requirements: RequirementSet,
    limit: int = 8,
) -> list[ProductCandidate]:
    """Sort by descending score; equal scores keep arrival order."""
    ranked = sorted(candidates, key=lambda c: score_candidate(c, requirements), reverse=True)
    return ranked[:limit]


# ============================================================================
# Matcher
# ============================================================================

SearchCall = Callable[[], Awaitable[list[ProductCandidate]]]


class ProductMatcher:
    """Runs every applicable search strategy and ranks the union."""

    def __init__(self, catalog: ProductCatalog, search_limit: int = 10, max_results: int = 8):
        self.catalog = catalog
        self.search_limit = search_limit
        self.max_results = max_results

    def plan_searches(
        self, requirements: RequirementSet, user_message: str
    ) -> list[tuple[str, str, SearchCall]]:
        """Build (strategy, query, call) triples for every strategy with input."""
        catalog = self.catalog
        limit = self.search_limit
        searches: list[tuple[str, str, SearchCall]] = []

        words = meaningful_words(user_message)
        if words:
            searches.append((
                "message_keywords", " ".join(words),
                lambda: catalog.search_products(keywords=words, limit=limit),
            ))

        if requirements.category:
            category = requirements.category
            searches.append((
                "category", category,
                lambda: catalog.products_by_category(category, limit=limit),
            ))

        if requirements.brand:
            brand = requirements.brand
            searches.append((
                "brand", brand,
                lambda: catalog.products_by_brand(brand, limit=limit),
            ))

        combined = [
            term for term in (requirements.room_type, requirements.category, *requirements.preferences)
            if term
        ]
        if combined:
            searches.append((
                "combined_keywords", " ".join(combined),
                lambda: catalog.search_products(keywords=combined, limit=limit),
            ))

        if requirements.room_type:
            room_type = requirements.room_type
            searches.append((
                "room_type", room_type,
                lambda: catalog.search_products(keyword=room_type, limit=limit),
            ))

        for room in detect_room_types(user_message):
            searches.append((
                "message_room", room,
                lambda room=room: catalog.search_products(keyword=room, limit=limit),
            ))

        return searches

    async def _guarded(self, strategy: str, query: str, call: SearchCall) -> list[ProductCandidate]:
        """Run one search; any exception becomes an empty result."""
        start = time.perf_counter()
        try:
            results = await call()
        except Exception as e:
            log_search(strategy, query, 0, (time.perf_counter() - start) * 1000, error=str(e))
            return []

        log_search(strategy, query, len(results), (time.perf_counter() - start) * 1000)
        return results

    async def match(
        self, requirements: RequirementSet, user_message: str, limit: Optional[int] = None
    ) -> list[ProductCandidate]:
        """Find, deduplicate and rank candidates for a request.

        Args:
            requirements: Extracted requirement set
            user_message: Raw user text
            limit: Override for the number of ranked results

        Returns:
            At most `limit` candidates, best first
        """
        searches = self.plan_searches(requirements, user_message)
        if not searches:
            return []

        batches = await asyncio.gather(
            *(self._guarded(strategy, query, call) for strategy, query, call in searches)
        )

        pooled = [candidate for batch in batches for candidate in batch]
        unique = deduplicate_candidates(pooled)
        ranked = rank_candidates(unique, requirements, limit or self.max_results)

        logger.info(
            "products_matched",
            strategies=[strategy for strategy, _, _ in searches],
            pooled=len(pooled),
            unique=len(unique),
            returned=len(ranked),
        )
        return ranked
