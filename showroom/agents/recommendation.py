"""Recommendation generation: requirements + candidates (+ image) -> markdown answer.

The model may request catalog searches once. Tool results are fed back and
a final answer is produced without tools, so a request costs at most two
generation calls (three when an image has to be dropped and retried).
"""

import json
import time
from typing import Any, Optional

import structlog
from openai import APIStatusError, AsyncOpenAI

from showroom.agents.prompts import (
    FALLBACK_ANSWER,
    GENERATION_PROMPT,
    IMAGE_UNAVAILABLE_NOTE,
    NO_PRODUCTS_NOTE,
    REMINDERS,
    SYSTEM_PROMPTS,
)
from showroom.db.repository.products import ProductCatalog
from showroom.errors import UpstreamDegraded
from showroom.logging import log_llm_call
from showroom.state.models import AssistantType, Message, ProductCandidate, RequirementSet
from showroom.tools.catalog_tools import CATALOG_TOOLS, execute_catalog_tool
from showroom.tools.image_fetcher import ImageFetcher

logger = structlog.get_logger()


def _is_image_error(error: Exception) -> bool:
    return isinstance(error, APIStatusError) and "image" in str(error).lower()


def format_budget(requirements: RequirementSet) -> str:
    budget = requirements.budget
    if budget is None or (budget.min is None and budget.max is None):
        return "Not specified"
    if budget.min is not None and budget.max is not None:
        return f"${budget.min:g} - ${budget.max:g}"
    if budget.max is not None:
        return f"up to ${budget.max:g}"
    return f"from ${budget.min:g}"


class RecommendationGenerator:
    """Produces the assistant's answer for one turn. Never raises, never empty."""

    def __init__(
        self,
        client: AsyncOpenAI,
        catalog: ProductCatalog,
        image_fetcher: Optional[ImageFetcher] = None,
        model: str = "gpt-4o",
        temperature: float = 0.7,
        max_tokens: int = 2500,
        max_prompt_products: int = 15,
    ):
        self.client = client
        self.catalog = catalog
        self.image_fetcher = image_fetcher or ImageFetcher()
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_prompt_products = max_prompt_products

    # ------------------------------------------------------------------
    # Prompt assembly
    # ------------------------------------------------------------------

    def build_prompt(
        self,
        user_message: str,
        requirements: RequirementSet,
        candidates: list[ProductCandidate],
        prior_summary: Optional[str] = None,
    ) -> str:
        if candidates:
            listed = [c.prompt_view() for c in candidates[: self.max_prompt_products]]
            products = "\n## Available Products from Catalog:\n" + json.dumps(listed, indent=2, ensure_ascii=False)
        else:
            products = NO_PRODUCTS_NOTE

        return GENERATION_PROMPT.format(
            category=requirements.category or "Not specified",
            brand=requirements.brand or "Not specified",
            room_type=requirements.room_type or "Not specified",
            budget=format_budget(requirements),
            preferences=", ".join(requirements.preferences) or "None specified",
            context=f"\nConversation Context: {prior_summary}\n" if prior_summary else "",
            message=user_message,
            products=products,
        )

    def build_messages(
        self,
        variant: AssistantType,
        prompt: str,
        history: Optional[list[Message]] = None,
        image: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Assemble the chat messages for one generation call.

        Args:
            variant: Assistant variant selecting the system prompt
            prompt: Generation prompt for the current turn
            history: Earlier turns kept verbatim
            image: Resolved image URL or data URL to attach
        """
        messages: list[dict[str, Any]] = [{"role": "system", "content": SYSTEM_PROMPTS[variant]}]
        for message in history or []:
            messages.append({"role": message.role.value, "content": message.content})
        messages.append({"role": "system", "content": REMINDERS[variant]})

        if image:
            messages.append({
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": image}},
                ],
            })
        else:
            messages.append({"role": "user", "content": prompt})
        return messages

    # ------------------------------------------------------------------
    # Model calls
    # ------------------------------------------------------------------

    async def _complete(self, messages: list[dict[str, Any]], purpose: str, with_tools: bool):
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if with_tools:
            kwargs["tools"] = CATALOG_TOOLS
            kwargs["tool_choice"] = "auto"

        start = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(**kwargs)
        except Exception as e:
            log_llm_call(purpose, self.model, (time.perf_counter() - start) * 1000,
                         degraded=True, error=str(e))
            raise UpstreamDegraded(str(e), image_related=_is_image_error(e)) from e

        log_llm_call(purpose, self.model, (time.perf_counter() - start) * 1000)
        return response.choices[0].message

    async def _answer(self, messages: list[dict[str, Any]]) -> str:
        """One generation call plus at most one tool round."""
        reply = await self._complete(messages, "generation", with_tools=True)
        if not reply.tool_calls:
            return reply.content or ""

        messages = messages + [{
            "role": "assistant",
            "content": reply.content or "",
            "tool_calls": [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.function.name, "arguments": call.function.arguments},
                }
                for call in reply.tool_calls
            ],
        }]
        for call in reply.tool_calls:
            output = await execute_catalog_tool(self.catalog, call.function.name, call.function.arguments)
            messages.append({"role": "tool", "tool_call_id": call.id, "content": output})

        final = await self._complete(messages, "tool_followup", with_tools=False)
        return final.content or ""

    async def generate(
        self,
        user_message: str,
        requirements: RequirementSet,
        candidates: list[ProductCandidate],
        prior_summary: Optional[str] = None,
        image_url: Optional[str] = None,
        history: Optional[list[Message]] = None,
        variant: AssistantType = AssistantType.INTERIOR_DESIGN,
    ) -> str:
        """Generate the markdown answer for the current turn.

        Args:
            user_message: Raw user text
            requirements: Extracted requirements
            candidates: Ranked catalog candidates
            prior_summary: Summary of earlier turns
            image_url: Room image supplied by the user
            history: Recent turns, oldest first, excluding the current message
            variant: Assistant variant

        Returns:
            Non-empty markdown answer (generic advice when the model is unavailable)
        """
        prompt = self.build_prompt(user_message, requirements, candidates, prior_summary)
        text_prompt = prompt + IMAGE_UNAVAILABLE_NOTE if image_url else prompt

        image = await self.image_fetcher.resolve(image_url) if image_url else None
        messages = self.build_messages(variant, prompt if image else text_prompt, history, image)

        answer = ""
        try:
            answer = await self._answer(messages)
        except UpstreamDegraded as e:
            if image and e.image_related:
                logger.warning("generation_image_rejected", error=e.message)
                try:
                    answer = await self._answer(self.build_messages(variant, text_prompt, history))
                except UpstreamDegraded as retry_error:
                    logger.error("generation_failed", error=retry_error.message, retried=True)
            else:
                logger.error("generation_failed", error=e.message, retried=False)

        if not answer.strip():
            logger.warning("generation_fallback", variant=variant.value)
            return FALLBACK_ANSWER

        logger.info(
            "recommendation_generated",
            variant=variant.value,
            candidates=len(candidates),
            with_image=bool(image),
            length=len(answer),
        )
        return answer
