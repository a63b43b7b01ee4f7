"""Requirement extraction: free-text user message -> RequirementSet.

One language model call produces a JSON object; the parser tolerates prose
and fenced code blocks around it. The room type is backed by a literal
vocabulary scan of the raw message because the model often drops it.
"""

import json
import re
import time
from typing import Any, Optional

import structlog
from openai import AsyncOpenAI

from showroom.agents.prompts import EXTRACTION_PROMPT
from showroom.logging import log_llm_call
from showroom.state.models import Budget, RequirementSet

logger = structlog.get_logger()

# Room types recognised in raw user text, in precedence order
ROOM_TYPES = (
    "bedroom",
    "kitchen",
    "living room",
    "bathroom",
    "dining room",
    "office",
    "basement",
    "attic",
    "hallway",
    "entryway",
)

FENCED_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)

# Model placeholders that mean "not specified"
_EMPTY_VALUES = {"", "null", "none", "n/a", "not specified", "unknown"}


def detect_room_types(text: str) -> list[str]:
    """Return every vocabulary room type that appears literally in the text."""
    lowered = text.lower()
    return [room for room in ROOM_TYPES if room in lowered]


def detect_room_type(text: str) -> Optional[str]:
    """Return the first vocabulary room type found in the text, if any."""
    found = detect_room_types(text)
    return found[0] if found else None


def _first_object_span(text: str) -> Optional[str]:
    """Find the first balanced top-level {...} span, skipping braces inside strings."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def extract_json_object(text: str) -> Optional[dict]:
    """Pull a JSON object out of a model reply.

    Looks for a fenced code block first, then the first top-level {...} span,
    and finally treats the whole reply as JSON.

    Returns:
        The parsed object, or None when nothing parses to a dict
    """
    if not text:
        return None

    fenced = FENCED_BLOCK_PATTERN.search(text)
    if fenced:
        candidate = fenced.group(1).strip()
    else:
        candidate = _first_object_span(text) or text.strip()

    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None

    return parsed if isinstance(parsed, dict) else None


def _clean_str(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return None if value.lower() in _EMPTY_VALUES else value


def _clean_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        digits = re.sub(r"[^\d.]", "", value)
        try:
            return float(digits) if digits else None
        except ValueError:
            return None
    return None


def _clean_budget(value: Any) -> Optional[Budget]:
    if isinstance(value, dict):
        budget = Budget(min=_clean_number(value.get("min")), max=_clean_number(value.get("max")))
        return budget if (budget.min is not None or budget.max is not None) else None
    amount = _clean_number(value)
    return Budget(max=amount) if amount is not None else None


def _clean_preferences(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [p for p in (_clean_str(item) for item in value) if p]


def parse_requirements(data: dict) -> RequirementSet:
    """Normalize the model's JSON object into a RequirementSet."""
    room_type = _clean_str(data.get("roomType") or data.get("room_type"))
    return RequirementSet(
        category=_clean_str(data.get("category")),
        brand=_clean_str(data.get("brand")),
        room_type=room_type.lower() if room_type else None,
        budget=_clean_budget(data.get("budget")),
        preferences=_clean_preferences(data.get("preferences")),
    )


class RequirementExtractor:
    """Turns a user message into a RequirementSet. Never raises."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o-mini", temperature: float = 0.3):
        self.client = client
        self.model = model
        self.temperature = temperature

    async def _ask_model(self, user_message: str, prior_summary: Optional[str]) -> str:
        context = f"Context: {prior_summary}\n" if prior_summary else ""
        prompt = EXTRACTION_PROMPT.format(message=user_message, context=context)

        start = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=300,
            )
        except Exception as e:
            log_llm_call("extraction", self.model, (time.perf_counter() - start) * 1000,
                         degraded=True, error=str(e))
            raise

        log_llm_call("extraction", self.model, (time.perf_counter() - start) * 1000)
        return response.choices[0].message.content or ""

    async def extract(self, user_message: str, prior_summary: Optional[str] = None) -> RequirementSet:
        """Extract requirements from the latest user message.

        Args:
            user_message: Raw user text
            prior_summary: Summary of earlier turns, used as context

        Returns:
            RequirementSet (all-empty when the model fails or replies garbage)
        """
        requirements = RequirementSet()

        try:
            reply = await self._ask_model(user_message, prior_summary)
            data = extract_json_object(reply)
            if data is None:
                logger.warning("requirements_unparseable", reply=reply[:200])
            else:
                requirements = parse_requirements(data)
        except Exception as e:
            logger.warning("requirements_extraction_failed", error=str(e))

        if not requirements.room_type:
            scanned = detect_room_type(user_message)
            if scanned:
                requirements.room_type = scanned

        logger.info(
            "requirements_extracted",
            category=requirements.category,
            brand=requirements.brand,
            room_type=requirements.room_type,
            preferences=requirements.preferences,
        )
        return requirements
