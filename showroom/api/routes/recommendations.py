"""FastAPI routes for recommendation threads."""

import math
from datetime import datetime
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from showroom.agents.orchestrator import get_recommendation_service
from showroom.api.auth import get_current_user_id
from showroom.errors import ShowroomError, ValidationError
from showroom.logging import log_error
from showroom.state.models import (
    AssistantType,
    ProductCandidate,
    ProductVariation,
    RecommendationResult,
    RecommendationThread,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# Request models
# ============================================================================


class CreateRecommendationRequest(CamelModel):
    """Start a thread or continue one when recommendationId is given."""

    message: Optional[str] = None
    type: str = AssistantType.INTERIOR_DESIGN.value
    project_name: Optional[str] = None
    image_url: Optional[str] = None
    recommendation_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class UpdateRecommendationRequest(CamelModel):
    project_name: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    image_url: Optional[str] = None


# ============================================================================
# Response models
# ============================================================================


class MessageView(CamelModel):
    role: str
    content: str
    timestamp: datetime


class ProductView(CamelModel):
    id: str
    name: str
    description: str
    price: float
    selling_price: Optional[float] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    series_name: Optional[str] = None
    images: list[str] = []
    variations: list[ProductVariation] = []

    @classmethod
    def from_candidate(cls, candidate: ProductCandidate) -> "ProductView":
        return cls(**candidate.model_dump())


class PriceRangeView(CamelModel):
    min: float
    max: float


class SummaryView(CamelModel):
    category: str
    room_type: str
    product_count: int
    price_range: Optional[PriceRangeView] = None


class ThreadView(CamelModel):
    id: str
    type: str
    status: str
    project_name: str
    image_url: str
    metadata: dict[str, Any]
    recommendations: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
    summarized_context: Optional[str] = None
    conversation_history: Optional[list[MessageView]] = None

    @classmethod
    def from_thread(cls, thread: RecommendationThread, include_history: bool = True) -> "ThreadView":
        view = cls(
            id=thread.id,
            type=thread.type.value,
            status=thread.status.value,
            project_name=thread.project_name,
            image_url=thread.image_url,
            metadata=thread.metadata,
            recommendations=thread.last_response,
            is_active=thread.is_active,
            created_at=thread.created_at,
            updated_at=thread.updated_at,
        )
        if include_history:
            view.summarized_context = thread.summary
            view.conversation_history = [
                MessageView(role=m.role.value, content=m.content, timestamp=m.timestamp)
                for m in thread.messages
            ]
        return view


class CreateRecommendationData(CamelModel):
    recommendation_id: str
    response: str
    conversation_history: list[MessageView]
    project_name: str
    recommended_products: Optional[list[ProductView]] = None
    summary: Optional[SummaryView] = None

    @classmethod
    def build(cls, thread: RecommendationThread, result: RecommendationResult) -> "CreateRecommendationData":
        return cls(
            recommendation_id=thread.id,
            response=result.answer,
            conversation_history=[
                MessageView(role=m.role.value, content=m.content, timestamp=m.timestamp)
                for m in thread.messages
            ],
            project_name=thread.project_name,
            recommended_products=[ProductView.from_candidate(p) for p in result.products] or None,
            summary=SummaryView(**result.summary.model_dump()),
        )


def to_http_exception(error: ShowroomError) -> HTTPException:
    if error.status_code >= 500:
        log_error(type(error).__name__, error.message)
    return HTTPException(status_code=error.status_code, detail=error.message)


def parse_assistant_type(value: Optional[str]) -> Optional[AssistantType]:
    if not value:
        return None
    try:
        return AssistantType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in AssistantType)
        raise ValidationError(f"Invalid type '{value}'. Expected one of: {allowed}")


# ============================================================================
# Routes
# ============================================================================


@router.post("/create")
async def create_recommendation(
    request: CreateRecommendationRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Answer a message in a new or existing recommendation thread."""
    service = get_recommendation_service()
    try:
        variant = parse_assistant_type(request.type) or AssistantType.INTERIOR_DESIGN
        thread, result = await service.create_or_continue(
            user_id,
            request.message or "",
            variant=variant,
            recommendation_id=request.recommendation_id,
            project_name=request.project_name,
            image_url=request.image_url,
            metadata=request.metadata,
        )
    except ShowroomError as e:
        raise to_http_exception(e) from e

    return {
        "success": True,
        "message": "Recommendation generated successfully",
        "data": CreateRecommendationData.build(thread, result).to_json(),
    }


@router.get("/user")
async def list_user_recommendations(
    user_id: str = Depends(get_current_user_id),
    page: int = Query(1),
    limit: int = Query(20),
    type: Optional[str] = Query(None),
    project_name: Optional[str] = Query(None, alias="projectName"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
):
    """List the caller's threads with pagination."""
    service = get_recommendation_service()
    page = max(1, page)
    limit = min(50, max(1, limit))
    try:
        parse_assistant_type(type)
        threads, total = await service.list_for_user(
            user_id,
            page=page,
            limit=limit,
            thread_type=type,
            project_name=project_name,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except ShowroomError as e:
        raise to_http_exception(e) from e

    total_pages = math.ceil(total / limit)
    return {
        "success": True,
        "message": "Recommendations retrieved successfully",
        "data": [ThreadView.from_thread(t, include_history=False).to_json() for t in threads],
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalCount": total,
            "limit": limit,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
    }


@router.get("/search")
async def search_recommendations(
    keyword: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
):
    """Search the caller's threads by project name, answer or conversation text."""
    service = get_recommendation_service()
    try:
        parse_assistant_type(type)
        threads = await service.search(user_id, keyword or "", type)
    except ShowroomError as e:
        raise to_http_exception(e) from e

    return {
        "success": True,
        "message": "Search results retrieved successfully",
        "data": [ThreadView.from_thread(t, include_history=False).to_json() for t in threads],
        "count": len(threads),
    }


@router.get("/{recommendation_id}")
async def get_recommendation(
    recommendation_id: str,
    user_id: str = Depends(get_current_user_id),
):
    """Get one thread with its full stored history."""
    service = get_recommendation_service()
    try:
        thread = await service.get(recommendation_id, user_id)
    except ShowroomError as e:
        raise to_http_exception(e) from e

    return {
        "success": True,
        "message": "Recommendation retrieved successfully",
        "data": ThreadView.from_thread(thread).to_json(),
    }


@router.put("/{recommendation_id}")
async def update_recommendation(
    recommendation_id: str,
    request: UpdateRecommendationRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Update project name, metadata or image url."""
    service = get_recommendation_service()
    try:
        thread = await service.update(
            recommendation_id,
            user_id,
            project_name=request.project_name,
            metadata=request.metadata,
            image_url=request.image_url,
        )
    except ShowroomError as e:
        raise to_http_exception(e) from e

    return {
        "success": True,
        "message": "Recommendation updated successfully",
        "data": ThreadView.from_thread(thread).to_json(),
    }


@router.delete("/{recommendation_id}")
async def delete_recommendation(
    recommendation_id: str,
    user_id: str = Depends(get_current_user_id),
):
    """Soft delete a thread."""
    service = get_recommendation_service()
    try:
        await service.delete(recommendation_id, user_id)
    except ShowroomError as e:
        raise to_http_exception(e) from e

    return {"success": True, "message": "Recommendation deleted successfully"}


@router.post("/{recommendation_id}/clear")
async def clear_recommendation(
    recommendation_id: str,
    user_id: str = Depends(get_current_user_id),
):
    """Reset a thread's conversation, summary and last answer."""
    service = get_recommendation_service()
    try:
        thread = await service.clear(recommendation_id, user_id)
    except ShowroomError as e:
        raise to_http_exception(e) from e

    return {
        "success": True,
        "message": "Conversation history cleared successfully",
        "data": ThreadView.from_thread(thread).to_json(),
    }
