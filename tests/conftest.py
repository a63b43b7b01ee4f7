"""Pytest configuration and fixtures."""

import asyncio
import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest


@pytest.fixture(autouse=True)
def init_test_database(tmp_path: Path):
    """Point the engine at a fresh SQLite file and create all tables."""
    from showroom.db.base import Base, get_engine, reset_engine
    from showroom.db import models  # noqa: F401 - Import to register models
    from showroom.config import settings as settings_module

    reset_engine()

    # Ensure we use SQLite for tests (not PostgreSQL)
    original_database_url = settings_module.settings.database_url
    settings_module.settings.database_url = None

    test_db_path = tmp_path / "test.db"
    original_database_path = settings_module.settings.database_path
    settings_module.settings.database_path = test_db_path

    async def init():
        engine = get_engine(test_db_path)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init())
    yield

    reset_engine()
    settings_module.settings.database_url = original_database_url
    settings_module.settings.database_path = original_database_path


@pytest.fixture(autouse=True)
def reset_recommendation_service():
    """Drop any service a test injected into the global slot."""
    from showroom.agents import orchestrator

    yield
    orchestrator.set_recommendation_service(None)


@pytest.fixture
def sample_products() -> list[dict]:
    """Small flooring catalog."""
    return [
        {
            "id": "p-hardwood",
            "name": "Classic Oak Hardwood",
            "description": "Solid oak hardwood flooring with a matte finish",
            "price": 6.49,
            "brand": "Bruce",
            "category": "hardwood",
            "series_name": "Heritage",
            "images": [],
        },
        {
            "id": "p-vinyl",
            "name": "Kitchen-Ready Vinyl Plank",
            "description": "Waterproof luxury vinyl plank flooring",
            "price": 3.29,
            "brand": "Lifeproof",
            "category": "vinyl",
            "series_name": "Everyday",
            "images": ["https://cdn.example.org/vinyl.jpg"],
            "variations": [{"type": "color", "options": ["Oak", "Grey"]}],
        },
    ]


@pytest.fixture
def seed_catalog(sample_products) -> Callable[..., int]:
    """Insert products into the test database (sync tests only)."""
    from showroom.db.repository.products import ProductCatalog

    def _seed(products: Optional[list[dict]] = None) -> int:
        return asyncio.run(ProductCatalog().add_products(products or sample_products))

    return _seed


# ============================================================================
# Fake OpenAI client
# ============================================================================


@pytest.fixture
def make_completion() -> Callable[..., Any]:
    """Build an object shaped like a chat completion response."""

    def _make(content: Optional[str] = None, tool_calls: Optional[list] = None):
        message = SimpleNamespace(content=content, tool_calls=tool_calls)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    return _make


@pytest.fixture
def make_tool_call() -> Callable[..., Any]:
    """Build an object shaped like a function tool call."""

    def _make(call_id: str, name: str, arguments: dict):
        return SimpleNamespace(
            id=call_id,
            type="function",
            function=SimpleNamespace(name=name, arguments=json.dumps(arguments)),
        )

    return _make


@pytest.fixture
def fake_openai() -> Callable[..., MagicMock]:
    """Build a client whose chat.completions.create returns the given responses in order.

    Exceptions in the sequence are raised instead of returned.
    """

    def _make(*responses):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=list(responses))
        return client

    return _make


@pytest.fixture
def image_rejected_error() -> openai.BadRequestError:
    """The error the provider raises when it cannot download an image."""
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(400, request=request)
    return openai.BadRequestError(
        "Error while downloading image: the server returned 403",
        response=response,
        body=None,
    )


@pytest.fixture
def forbidden_transport() -> httpx.MockTransport:
    """Image host that answers every request with 403."""
    return httpx.MockTransport(lambda request: httpx.Response(403, text="Access Denied"))
