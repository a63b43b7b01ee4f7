"""Conversation history management with rolling summarization."""

import time
from typing import Optional

import structlog
from openai import AsyncOpenAI

from showroom.agents.prompts import SUMMARY_PROMPT, SUMMARY_SYSTEM_PROMPT
from showroom.logging import log_llm_call
from showroom.state.models import Message, MessageRole, RecommendationThread

logger = structlog.get_logger()


def format_transcript(messages: list[Message]) -> str:
    return "\n\n".join(f"{m.role.value}: {m.content}" for m in messages)


class ConversationManager:
    """Appends turns and keeps the stored history bounded.

    Once a thread holds more than `threshold` messages, everything except the
    last `keep_recent` messages is folded into a single summary.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        threshold: int = 10,
        keep_recent: int = 5,
    ):
        self.client = client
        self.model = model
        self.threshold = threshold
        self.keep_recent = keep_recent

    def append_turn(self, thread: RecommendationThread, role: MessageRole, text: str) -> RecommendationThread:
        """Return a copy of the thread with one more message."""
        return thread.model_copy(
            update={"messages": [*thread.messages, Message(role=role, content=text)]}
        )

    async def summarize(self, messages: list[Message], previous: Optional[str] = None) -> Optional[str]:
        """Summarize messages, folding in an earlier summary. Returns None on failure."""
        prompt = SUMMARY_PROMPT.format(
            previous=f"\nEarlier summary:\n{previous}\n" if previous else "",
            conversation=format_transcript(messages),
        )

        start = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.3,
                max_tokens=500,
            )
        except Exception as e:
            log_llm_call("summarization", self.model, (time.perf_counter() - start) * 1000,
                         degraded=True, error=str(e))
            return None

        log_llm_call("summarization", self.model, (time.perf_counter() - start) * 1000)
        summary = (response.choices[0].message.content or "").strip()
        return summary or None

    async def maybe_summarize(self, thread: RecommendationThread) -> RecommendationThread:
        """Compact the history when it is over the threshold.

        Returns the thread unchanged when it is at or under the threshold, or
        when summarization fails.
        """
        if len(thread.messages) <= self.threshold:
            return thread

        older = thread.messages[: -self.keep_recent]
        recent = thread.messages[-self.keep_recent:]

        summary = await self.summarize(older, previous=thread.summary)
        if summary is None:
            logger.warning("summarization_skipped", thread_id=thread.id, messages=len(thread.messages))
            return thread

        logger.info(
            "conversation_summarized",
            thread_id=thread.id,
            folded=len(older),
            kept=len(recent),
        )
        return thread.model_copy(update={"summary": summary, "messages": list(recent)})
