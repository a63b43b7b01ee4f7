"""Tests for ThreadRepository and the database session."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import text

from showroom.db.repository.threads import ThreadRepository
from showroom.db.session import get_db_session
from showroom.errors import NotFoundError, PersistenceError
from showroom.state.models import (
    AssistantType,
    Message,
    MessageRole,
    RecommendationThread,
    ThreadStatus,
)


def make_thread(user_id: str = "user-1", **kwargs) -> RecommendationThread:
    return RecommendationThread(
        user_id=user_id,
        messages=[
            Message(role=MessageRole.USER, content="Need flooring for a sunroom"),
            Message(role=MessageRole.ASSISTANT, content="Consider porcelain tile."),
        ],
        last_response="Consider porcelain tile.",
        **kwargs,
    )


async def save(*threads: RecommendationThread) -> None:
    async with get_db_session() as session:
        repo = ThreadRepository(session)
        for thread in threads:
            await repo.save(thread)


class TestSaveAndGet:
    """Tests for persisting and loading threads."""

    @pytest.mark.asyncio
    async def test_round_trip(self):
        thread = make_thread(project_name="Sunroom", metadata={"sqft": 180}, summary="Earlier chat")
        await save(thread)

        async with get_db_session() as session:
            loaded = await ThreadRepository(session).get_for_user(thread.id, "user-1")

        assert loaded.project_name == "Sunroom"
        assert loaded.metadata == {"sqft": 180}
        assert loaded.summary == "Earlier chat"
        assert [m.content for m in loaded.messages] == [m.content for m in thread.messages]
        assert loaded.messages[0].role == MessageRole.USER
        assert loaded.entry_count == 3

    @pytest.mark.asyncio
    async def test_save_overwrites_history(self):
        thread = make_thread()
        await save(thread)
        compacted = thread.model_copy(update={
            "summary": "User wants tile for a sunroom.",
            "messages": thread.messages[-1:],
        })
        await save(compacted)

        async with get_db_session() as session:
            loaded = await ThreadRepository(session).get_for_user(thread.id, "user-1")

        assert loaded.summary == "User wants tile for a sunroom."
        assert len(loaded.messages) == 1

    @pytest.mark.asyncio
    async def test_other_users_thread_is_invisible(self):
        thread = make_thread()
        await save(thread)

        async with get_db_session() as session:
            assert await ThreadRepository(session).get_for_user(thread.id, "intruder") is None

    @pytest.mark.asyncio
    async def test_failed_unit_of_work_rolls_back(self):
        thread = make_thread()

        with pytest.raises(PersistenceError):
            async with get_db_session() as session:
                await ThreadRepository(session).save(thread)
                await session.execute(text("SELECT * FROM missing_table"))

        async with get_db_session() as session:
            assert await ThreadRepository(session).get_for_user(thread.id, "user-1") is None


class TestListAndSearch:
    """Tests for listing and searching a user's threads."""

    @pytest.mark.asyncio
    async def test_pagination_and_sort(self):
        base = datetime(2024, 1, 1)
        threads = [
            make_thread(project_name=f"Project {i}", created_at=base + timedelta(days=i))
            for i in range(5)
        ]
        await save(*threads, make_thread(user_id="user-2"))

        async with get_db_session() as session:
            repo = ThreadRepository(session)
            first_page, total = await repo.list_for_user("user-1", page=1, limit=2)
            last_page, _ = await repo.list_for_user("user-1", page=3, limit=2)
            oldest_first, _ = await repo.list_for_user("user-1", sort_by="createdAt", sort_order="asc")

        assert total == 5
        assert [t.project_name for t in first_page] == ["Project 4", "Project 3"]
        assert [t.project_name for t in last_page] == ["Project 0"]
        assert oldest_first[0].project_name == "Project 0"

    @pytest.mark.asyncio
    async def test_filters(self):
        await save(
            make_thread(project_name="Kitchen Remodel"),
            make_thread(project_name="Bath Tile", type=AssistantType.STYLE_ACCESS),
        )

        async with get_db_session() as session:
            repo = ThreadRepository(session)
            by_type, _ = await repo.list_for_user("user-1", thread_type="style_access")
            by_name, _ = await repo.list_for_user("user-1", project_name="kitchen")

        assert [t.project_name for t in by_type] == ["Bath Tile"]
        assert [t.project_name for t in by_name] == ["Kitchen Remodel"]

    @pytest.mark.asyncio
    async def test_page_size_capped(self):
        async with get_db_session() as session:
            threads, total = await ThreadRepository(session).list_for_user("user-1", limit=500)

        assert threads == []
        assert total == 0

    @pytest.mark.asyncio
    async def test_search_matches_conversation_text(self):
        await save(make_thread(project_name="Sunroom"), make_thread(project_name="Garage"))

        async with get_db_session() as session:
            repo = ThreadRepository(session)
            by_name = await repo.search("user-1", "garage")
            by_text = await repo.search("user-1", "porcelain")
            other_user = await repo.search("user-2", "porcelain")

        assert [t.project_name for t in by_name] == ["Garage"]
        assert len(by_text) == 2
        assert other_user == []


class TestUpdateClearDelete:
    """Tests for update, clear and soft delete."""

    @pytest.mark.asyncio
    async def test_update(self):
        thread = make_thread(metadata={"sqft": 180})
        await save(thread)

        async with get_db_session() as session:
            updated = await ThreadRepository(session).update(
                thread.id, "user-1", project_name="Sunroom v2", metadata={"budget": 3000}
            )

        assert updated.project_name == "Sunroom v2"
        assert updated.metadata == {"budget": 3000}

    @pytest.mark.asyncio
    async def test_clear(self):
        thread = make_thread(summary="Old summary")
        await save(thread)

        async with get_db_session() as session:
            cleared = await ThreadRepository(session).clear(thread.id, "user-1")

        assert cleared.messages == []
        assert cleared.summary is None
        assert cleared.last_response == ""

    @pytest.mark.asyncio
    async def test_soft_delete_hides_thread(self):
        thread = make_thread()
        await save(thread)

        async with get_db_session() as session:
            repo = ThreadRepository(session)
            assert await repo.soft_delete(thread.id, "user-1") is True

        async with get_db_session() as session:
            repo = ThreadRepository(session)
            assert await repo.get_for_user(thread.id, "user-1") is None
            assert await repo.search("user-1", "porcelain") == []
            assert (await repo.list_for_user("user-1"))[1] == 0
            assert await repo.update(thread.id, "user-1", project_name="x") is None
            assert await repo.clear(thread.id, "user-1") is None
            assert await repo.soft_delete(thread.id, "user-1") is True

    @pytest.mark.asyncio
    async def test_soft_delete_requires_owner(self):
        thread = make_thread()
        await save(thread)

        async with get_db_session() as session:
            assert await ThreadRepository(session).soft_delete(thread.id, "intruder") is False


class TestSearchMatchesMessageText:
    """Search looks at message contents, never at the storage layout."""

    @pytest.mark.asyncio
    async def test_storage_keys_do_not_match(self):
        thread = RecommendationThread(
            user_id="user-1",
            messages=[Message(role=MessageRole.USER, content="vinyl please")],
        )
        await save(thread)

        async with get_db_session() as session:
            repo = ThreadRepository(session)
            hits = {
                keyword: len(await repo.search("user-1", keyword))
                for keyword in ("content", "timestamp", "role", "user", "_", "%", "vinyl", "hardwood")
            }

        assert hits == {
            "content": 0, "timestamp": 0, "role": 0, "user": 0,
            "_": 0, "%": 0, "vinyl": 1, "hardwood": 0,
        }

    @pytest.mark.asyncio
    async def test_wildcards_match_literally(self):
        await save(
            make_thread(project_name="Bath_2 tiles"),
            make_thread(project_name="Bath 20 tiles"),
        )

        async with get_db_session() as session:
            repo = ThreadRepository(session)
            by_search = await repo.search("user-1", "bath_2")
            by_filter, _ = await repo.list_for_user("user-1", project_name="_2")

        assert [t.project_name for t in by_search] == ["Bath_2 tiles"]
        assert [t.project_name for t in by_filter] == ["Bath_2 tiles"]

    @pytest.mark.asyncio
    async def test_cleared_thread_no_longer_matches(self):
        thread = make_thread()
        await save(thread)

        async with get_db_session() as session:
            await ThreadRepository(session).clear(thread.id, "user-1")

        async with get_db_session() as session:
            assert await ThreadRepository(session).search("user-1", "sunroom") == []


class TestThreadState:
    """Tests for status transitions through the store."""

    @pytest.mark.asyncio
    async def test_save_does_not_reactivate_deleted_thread(self):
        thread = make_thread()
        await save(thread)

        async with get_db_session() as session:
            loaded = await ThreadRepository(session).get_for_user(thread.id, "user-1")
        async with get_db_session() as session:
            await ThreadRepository(session).soft_delete(thread.id, "user-1")

        with pytest.raises(NotFoundError):
            await save(loaded.model_copy(update={"last_response": "late answer"}))

        async with get_db_session() as session:
            repo = ThreadRepository(session)
            assert await repo.get_for_user(thread.id, "user-1") is None
            assert (await repo.list_for_user("user-1"))[1] == 0

    @pytest.mark.asyncio
    async def test_cleared_thread_stays_active(self):
        thread = make_thread()
        await save(thread)

        async with get_db_session() as session:
            cleared = await ThreadRepository(session).clear(thread.id, "user-1")
        async with get_db_session() as session:
            reloaded = await ThreadRepository(session).get_for_user(thread.id, "user-1")

        assert cleared.status == ThreadStatus.ACTIVE
        assert reloaded.status == ThreadStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_unsaved_empty_thread_is_new(self):
        thread = RecommendationThread(user_id="user-1")

        async with get_db_session() as session:
            saved_copy = await ThreadRepository(session).save(thread)

        assert thread.status == ThreadStatus.NEW
        assert saved_copy.status == ThreadStatus.ACTIVE


class TestDatabaseUrl:
    """Tests for resolving the async database URL."""

    def test_postgres_urls_use_asyncpg(self, monkeypatch):
        from showroom.config.settings import settings
        from showroom.db.base import get_database_url

        monkeypatch.setattr(settings, "database_url", "postgres://u:p@db/showroom")
        assert get_database_url() == "postgresql+asyncpg://u:p@db/showroom"

        monkeypatch.setattr(settings, "database_url", "postgresql://u:p@db/showroom")
        assert get_database_url() == "postgresql+asyncpg://u:p@db/showroom"

    def test_sqlite_fallback(self, tmp_path):
        from showroom.db.base import get_database_url

        assert get_database_url(tmp_path / "x.db") == f"sqlite+aiosqlite:///{tmp_path / 'x.db'}"
