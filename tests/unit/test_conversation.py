"""Tests for conversation history and summarization."""

import pytest

from showroom.agents.conversation import ConversationManager
from showroom.state.models import Message, MessageRole, RecommendationThread, ThreadStatus


def thread_with(count: int, summary: str = None) -> RecommendationThread:
    roles = [MessageRole.USER, MessageRole.ASSISTANT]
    return RecommendationThread(
        user_id="user-1",
        summary=summary,
        messages=[Message(role=roles[i % 2], content=f"message {i}") for i in range(count)],
    )


class TestAppendTurn:
    """Tests for ConversationManager.append_turn."""

    def test_returns_new_thread(self, fake_openai):
        manager = ConversationManager(fake_openai())
        thread = RecommendationThread(user_id="user-1")

        updated = manager.append_turn(thread, MessageRole.USER, "Hello")

        assert thread.messages == []
        assert [m.content for m in updated.messages] == ["Hello"]
        assert updated.id == thread.id

    def test_first_message_activates_thread(self, fake_openai):
        manager = ConversationManager(fake_openai())
        thread = RecommendationThread(user_id="user-1")

        assert thread.status == ThreadStatus.NEW
        assert manager.append_turn(thread, MessageRole.USER, "Hi").status == ThreadStatus.ACTIVE


class TestMaybeSummarize:
    """Tests for ConversationManager.maybe_summarize."""

    @pytest.mark.asyncio
    async def test_at_threshold_is_untouched(self, fake_openai):
        client = fake_openai()
        manager = ConversationManager(client)
        thread = thread_with(10)

        result = await manager.maybe_summarize(thread)

        assert result is thread
        client.chat.completions.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_twelve_messages_become_summary_plus_five(self, fake_openai, make_completion):
        client = fake_openai(make_completion("User is redoing a kitchen with vinyl."))
        manager = ConversationManager(client)

        result = await manager.maybe_summarize(thread_with(12))

        assert result.summary == "User is redoing a kitchen with vinyl."
        assert [m.content for m in result.messages] == [f"message {i}" for i in range(7, 12)]
        assert result.entry_count == 6

        prompt = client.chat.completions.create.await_args.kwargs["messages"][1]["content"]
        assert "message 6" in prompt
        assert "message 7" not in prompt

    @pytest.mark.asyncio
    async def test_idempotent_once_compacted(self, fake_openai, make_completion):
        client = fake_openai(make_completion("Summary."))
        manager = ConversationManager(client)

        once = await manager.maybe_summarize(thread_with(12))
        twice = await manager.maybe_summarize(once)

        assert twice == once
        assert client.chat.completions.create.await_count == 1

    @pytest.mark.asyncio
    async def test_previous_summary_is_folded_in(self, fake_openai, make_completion):
        client = fake_openai(make_completion("Updated summary."))
        manager = ConversationManager(client)

        result = await manager.maybe_summarize(thread_with(11, summary="Earlier: basement project."))

        prompt = client.chat.completions.create.await_args.kwargs["messages"][1]["content"]
        assert "Earlier: basement project." in prompt
        assert result.summary == "Updated summary."

    @pytest.mark.asyncio
    async def test_failure_keeps_history(self, fake_openai):
        manager = ConversationManager(fake_openai(RuntimeError("timeout")))
        thread = thread_with(12)

        result = await manager.maybe_summarize(thread)

        assert result == thread
        assert len(result.messages) == 12
        assert result.summary is None

    @pytest.mark.asyncio
    async def test_empty_summary_keeps_history(self, fake_openai, make_completion):
        manager = ConversationManager(fake_openai(make_completion("")))
        thread = thread_with(12)

        assert await manager.maybe_summarize(thread) == thread
