"""Recommendation pipeline and thread lifecycle.

`RecommendationPipeline` runs the four stages of one turn in order:
extract requirements, match products, generate the answer, finalize.
`RecommendationService` wraps a pipeline run in the thread lifecycle:
load or create, append, summarize, answer, save.
"""

from typing import Any, Optional

import structlog
from openai import AsyncOpenAI

from showroom.agents.conversation import ConversationManager
from showroom.agents.product_matching import ProductMatcher
from showroom.agents.recommendation import RecommendationGenerator
from showroom.agents.requirements import RequirementExtractor
from showroom.config.settings import settings
from showroom.db.repository.products import ProductCatalog
from showroom.db.repository.threads import ThreadRepository
from showroom.db.session import get_db_session
from showroom.errors import NotFoundError, ValidationError
from showroom.logging import EventCategory, LogTimer
from showroom.state.models import (
    AssistantType,
    Message,
    MessageRole,
    PriceRange,
    ProductCandidate,
    RecommendationResult,
    RecommendationSummary,
    RecommendationThread,
    RequirementSet,
)
from showroom.tools.image_fetcher import ImageFetcher
from showroom.tools.link_filters import LinkSanitizer

logger = structlog.get_logger()

SUMMARY_PRODUCT_COUNT = 5


def summarize_products(
    products: list[ProductCandidate], requirements: RequirementSet
) -> RecommendationSummary:
    """High-level stats over the top products."""
    top = products[:SUMMARY_PRODUCT_COUNT]
    prices = [p.price for p in top]
    return RecommendationSummary(
        category=requirements.category or "General",
        room_type=requirements.room_type or "Not specified",
        product_count=len(top),
        price_range=PriceRange(min=min(prices), max=max(prices)) if prices else None,
    )


class RecommendationPipeline:
    """One recommendation turn: analyze -> search -> generate -> finalize."""

    def __init__(
        self,
        extractor: RequirementExtractor,
        matcher: ProductMatcher,
        generator: RecommendationGenerator,
        sanitizer: Optional[LinkSanitizer] = None,
    ):
        self.extractor = extractor
        self.matcher = matcher
        self.generator = generator
        self.sanitizer = sanitizer or LinkSanitizer()

    def finalize(
        self,
        answer: str,
        products: list[ProductCandidate],
        requirements: RequirementSet,
        variant: AssistantType,
    ) -> RecommendationResult:
        if variant == AssistantType.INTERIOR_DESIGN:
            answer = self.sanitizer.sanitize(answer)
        return RecommendationResult(
            answer=answer,
            products=products,
            summary=summarize_products(products, requirements),
            requirements=requirements,
        )

    async def run(
        self,
        user_message: str,
        prior_summary: Optional[str] = None,
        image_url: Optional[str] = None,
        history: Optional[list[Message]] = None,
        variant: AssistantType = AssistantType.INTERIOR_DESIGN,
    ) -> RecommendationResult:
        """Run one turn.

        Args:
            user_message: Raw user text
            prior_summary: Summary of turns older than `history`
            image_url: Optional room image
            history: Recent turns, excluding the current message
            variant: Assistant variant

        Returns:
            RecommendationResult with a non-empty answer
        """
        with LogTimer("recommendation_pipeline", EventCategory.RECOMMENDATION, variant=variant.value):
            requirements = await self.extractor.extract(user_message, prior_summary)
            products = await self.matcher.match(requirements, user_message)
            answer = await self.generator.generate(
                user_message,
                requirements,
                products,
                prior_summary=prior_summary,
                image_url=image_url,
                history=history,
                variant=variant,
            )
            return self.finalize(answer, products, requirements, variant)


class RecommendationService:
    """Thread lifecycle around pipeline runs, plus thread management."""

    def __init__(self, pipeline: RecommendationPipeline, conversation: ConversationManager):
        self.pipeline = pipeline
        self.conversation = conversation

    async def create_or_continue(
        self,
        user_id: str,
        message: str,
        variant: AssistantType = AssistantType.INTERIOR_DESIGN,
        recommendation_id: Optional[str] = None,
        project_name: Optional[str] = None,
        image_url: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> tuple[RecommendationThread, RecommendationResult]:
        """Answer a message in a new or existing thread.

        The thread is saved once, after the answer is generated; a failed
        save leaves the stored thread as it was.

        Raises:
            ValidationError: Empty message
            NotFoundError: Unknown, deleted or foreign thread id
        """
        if not message or not message.strip():
            raise ValidationError("Message is required")

        if recommendation_id:
            async with get_db_session() as session:
                thread = await ThreadRepository(session).get_for_user(recommendation_id, user_id)
            if thread is None:
                raise NotFoundError("Recommendation not found or access denied")
        else:
            thread = RecommendationThread(
                user_id=user_id,
                type=variant,
                project_name=project_name or "",
                image_url=image_url or "",
            )

        thread = self.conversation.append_turn(thread, MessageRole.USER, message)
        thread = await self.conversation.maybe_summarize(thread)

        result = await self.pipeline.run(
            message,
            prior_summary=thread.summary,
            image_url=image_url,
            history=thread.messages[:-1],
            variant=thread.type,
        )

        thread = self.conversation.append_turn(thread, MessageRole.ASSISTANT, result.answer)
        updates: dict[str, Any] = {"last_response": result.answer}
        if project_name and not thread.project_name:
            updates["project_name"] = project_name
        if image_url and not thread.image_url:
            updates["image_url"] = image_url
        if metadata:
            updates["metadata"] = {**thread.metadata, **metadata}

        async with get_db_session() as session:
            thread = await ThreadRepository(session).save(thread.model_copy(update=updates))

        logger.info(
            "recommendation_turn_saved",
            thread_id=thread.id,
            user_id=user_id,
            entries=thread.entry_count,
            products=len(result.products),
        )
        return thread, result

    async def get(self, thread_id: str, user_id: str) -> RecommendationThread:
        async with get_db_session() as session:
            thread = await ThreadRepository(session).get_for_user(thread_id, user_id)
        if thread is None:
            raise NotFoundError("Recommendation not found")
        return thread

    async def list_for_user(self, user_id: str, **filters) -> tuple[list[RecommendationThread], int]:
        async with get_db_session() as session:
            return await ThreadRepository(session).list_for_user(user_id, **filters)

    async def search(
        self, user_id: str, keyword: str, thread_type: Optional[str] = None
    ) -> list[RecommendationThread]:
        if not keyword or not keyword.strip():
            raise ValidationError("Search keyword is required")
        async with get_db_session() as session:
            return await ThreadRepository(session).search(user_id, keyword.strip(), thread_type)

    async def update(
        self,
        thread_id: str,
        user_id: str,
        project_name: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        image_url: Optional[str] = None,
    ) -> RecommendationThread:
        async with get_db_session() as session:
            thread = await ThreadRepository(session).update(
                thread_id, user_id, project_name=project_name, metadata=metadata, image_url=image_url
            )
        if thread is None:
            raise NotFoundError("Recommendation not found")
        return thread

    async def clear(self, thread_id: str, user_id: str) -> RecommendationThread:
        async with get_db_session() as session:
            thread = await ThreadRepository(session).clear(thread_id, user_id)
        if thread is None:
            raise NotFoundError("Recommendation not found")
        return thread

    async def delete(self, thread_id: str, user_id: str) -> None:
        async with get_db_session() as session:
            deleted = await ThreadRepository(session).soft_delete(thread_id, user_id)
        if not deleted:
            raise NotFoundError("Recommendation not found")


def build_recommendation_service(client: Optional[AsyncOpenAI] = None) -> RecommendationService:
    """Wire a service from settings."""
    client = client or AsyncOpenAI(api_key=settings.openai_api_key or None)
    catalog = ProductCatalog(default_limit=settings.search_limit)

    pipeline = RecommendationPipeline(
        extractor=RequirementExtractor(client, model=settings.openai_fast_model),
        matcher=ProductMatcher(
            catalog,
            search_limit=settings.search_limit,
            max_results=settings.max_recommended_products,
        ),
        generator=RecommendationGenerator(
            client,
            catalog,
            image_fetcher=ImageFetcher(timeout=settings.image_fetch_timeout_seconds),
            model=settings.openai_model,
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
            max_prompt_products=settings.max_prompt_products,
        ),
    )
    conversation = ConversationManager(
        client,
        model=settings.openai_fast_model,
        threshold=settings.summarize_threshold,
        keep_recent=settings.summarize_keep_recent,
    )
    return RecommendationService(pipeline, conversation)


# Global instance
_service: Optional[RecommendationService] = None


def get_recommendation_service() -> RecommendationService:
    """Get or create the global recommendation service."""
    global _service
    if _service is None:
        _service = build_recommendation_service()
    return _service


def set_recommendation_service(service: Optional[RecommendationService]) -> None:
    """Replace the global service (tests inject fakes here)."""
    global _service
    _service = service
