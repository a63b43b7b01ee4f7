"""Recommendation thread repository for database operations."""

import json
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.db.base import LIKE_ESCAPE, contains_pattern
from showroom.db.models import ThreadModel
from showroom.errors import NotFoundError
from showroom.state.models import AssistantType, Message, RecommendationThread

logger = structlog.get_logger()

# Columns the list endpoint may sort by
SORTABLE_FIELDS = {
    "createdAt": ThreadModel.created_at,
    "updatedAt": ThreadModel.updated_at,
    "projectName": ThreadModel.project_name,
    "type": ThreadModel.type,
}

MAX_PAGE_SIZE = 50
SEARCH_LIMIT = 20


def to_domain(model: ThreadModel) -> RecommendationThread:
    """Convert an ORM row into a RecommendationThread."""
    return RecommendationThread(
        id=model.id,
        user_id=model.user_id,
        type=AssistantType(model.type),
        project_name=model.project_name or "",
        image_url=model.image_url or "",
        metadata=json.loads(model.metadata_json or "{}"),
        messages=[Message(**m) for m in json.loads(model.conversation_json or "[]")],
        summary=model.summary,
        last_response=model.last_response or "",
        is_active=model.is_active,
        persisted=True,
        created_at=model.created_at or datetime.utcnow(),
        updated_at=model.updated_at or datetime.utcnow(),
    )


def _dump_messages(thread: RecommendationThread) -> str:
    return json.dumps(
        [m.model_dump(mode="json") for m in thread.messages],
        ensure_ascii=False,
    )


def _message_text(thread: RecommendationThread) -> str:
    return "\n".join(m.content for m in thread.messages)


class ThreadRepository:
    """CRUD operations for recommendation threads.

    Every read is scoped to the owning user and to active threads, so a
    soft-deleted thread or another user's thread looks exactly like a
    missing one.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_model(self, thread_id: str, user_id: str) -> Optional[ThreadModel]:
        stmt = select(ThreadModel).where(
            ThreadModel.id == thread_id,
            ThreadModel.user_id == user_id,
            ThreadModel.is_active.is_(True),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_user(self, thread_id: str, user_id: str) -> Optional[RecommendationThread]:
        """Get an active thread owned by the user.

        Args:
            thread_id: Thread primary key
            user_id: Caller identity

        Returns:
            RecommendationThread or None
        """
        model = await self._get_model(thread_id, user_id)
        return to_domain(model) if model else None

    async def save(self, thread: RecommendationThread) -> RecommendationThread:
        """Insert or fully overwrite a thread in the current unit of work.

        The conversation is written as one column, so a save either stores the
        whole new history or nothing. A stored thread's active flag is only
        changed by `soft_delete`.

        Raises:
            NotFoundError: The stored thread was deleted in the meantime
        """
        now = datetime.utcnow()
        model = await self.session.get(ThreadModel, thread.id)

        if model is None:
            model = ThreadModel(
                id=thread.id,
                user_id=thread.user_id,
                is_active=thread.is_active,
                created_at=thread.created_at,
            )
            self.session.add(model)
        elif not model.is_active:
            logger.warning("thread_save_rejected", thread_id=thread.id, reason="inactive")
            raise NotFoundError("Recommendation not found or access denied")

        model.type = thread.type.value
        model.project_name = thread.project_name
        model.image_url = thread.image_url
        model.metadata_json = json.dumps(thread.metadata, ensure_ascii=False)
        model.conversation_json = _dump_messages(thread)
        model.conversation_text = _message_text(thread)
        model.summary = thread.summary
        model.last_response = thread.last_response
        model.updated_at = now

        await self.session.flush()
        logger.info(
            "thread_saved",
            thread_id=thread.id,
            messages=len(thread.messages),
            summarized=thread.summary is not None,
        )
        return thread.model_copy(update={"updated_at": now, "persisted": True})

    async def list_for_user(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        thread_type: Optional[str] = None,
        project_name: Optional[str] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> tuple[list[RecommendationThread], int]:
        """List a user's active threads with pagination.

        Returns:
            (threads on the requested page, total matching count)
        """
        page = max(1, page)
        limit = min(MAX_PAGE_SIZE, max(1, limit))

        conditions = [ThreadModel.user_id == user_id, ThreadModel.is_active.is_(True)]
        if thread_type:
            conditions.append(ThreadModel.type == thread_type)
        if project_name:
            conditions.append(ThreadModel.project_name.ilike(contains_pattern(project_name), escape=LIKE_ESCAPE))

        column = SORTABLE_FIELDS.get(sort_by, ThreadModel.created_at)
        order = column.asc() if sort_order == "asc" else column.desc()

        stmt = (
            select(ThreadModel)
            .where(*conditions)
            .order_by(order)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(ThreadModel).where(*conditions)

        models = (await self.session.execute(stmt)).scalars().all()
        total = (await self.session.execute(count_stmt)).scalar_one()
        return [to_domain(m) for m in models], total

    async def search(
        self,
        user_id: str,
        keyword: str,
        thread_type: Optional[str] = None,
    ) -> list[RecommendationThread]:
        """Search a user's active threads by project name, last answer or message text."""
        pattern = contains_pattern(keyword)
        conditions = [
            ThreadModel.user_id == user_id,
            ThreadModel.is_active.is_(True),
            or_(
                ThreadModel.project_name.ilike(pattern, escape=LIKE_ESCAPE),
                ThreadModel.last_response.ilike(pattern, escape=LIKE_ESCAPE),
                ThreadModel.conversation_text.ilike(pattern, escape=LIKE_ESCAPE),
            ),
        ]
        if thread_type:
            conditions.append(ThreadModel.type == thread_type)

        stmt = (
            select(ThreadModel)
            .where(*conditions)
            .order_by(ThreadModel.updated_at.desc())
            .limit(SEARCH_LIMIT)
        )
        models = (await self.session.execute(stmt)).scalars().all()
        return [to_domain(m) for m in models]

    async def update(
        self,
        thread_id: str,
        user_id: str,
        project_name: Optional[str] = None,
        metadata: Optional[dict] = None,
        image_url: Optional[str] = None,
    ) -> Optional[RecommendationThread]:
        """Update thread details. Metadata is replaced, not merged."""
        model = await self._get_model(thread_id, user_id)
        if model is None:
            return None

        if project_name is not None:
            model.project_name = project_name
        if image_url is not None:
            model.image_url = image_url
        if metadata:
            model.metadata_json = json.dumps(metadata, ensure_ascii=False)
        model.updated_at = datetime.utcnow()

        await self.session.flush()
        return to_domain(model)

    async def clear(self, thread_id: str, user_id: str) -> Optional[RecommendationThread]:
        """Reset a thread's conversation, summary and last answer."""
        model = await self._get_model(thread_id, user_id)
        if model is None:
            return None

        model.conversation_json = "[]"
        model.conversation_text = ""
        model.summary = None
        model.last_response = ""
        model.updated_at = datetime.utcnow()

        await self.session.flush()
        logger.info("thread_cleared", thread_id=thread_id)
        return to_domain(model)

    async def soft_delete(self, thread_id: str, user_id: str) -> bool:
        """Flip a thread to inactive. Returns False if the user owns no such thread.

        Deleting an already inactive thread succeeds again.
        """
        stmt = select(ThreadModel).where(
            ThreadModel.id == thread_id,
            ThreadModel.user_id == user_id,
        )
        model = (await self.session.execute(stmt)).scalar_one_or_none()
        if model is None:
            return False

        model.is_active = False
        model.updated_at = datetime.utcnow()

        await self.session.flush()
        logger.info("thread_deactivated", thread_id=thread_id)
        return True
