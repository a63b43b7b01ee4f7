"""Tests for product matching: keywords, scoring, dedupe and the matcher."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from showroom.agents.product_matching import (
    ProductMatcher,
    deduplicate_candidates,
    meaningful_words,
    rank_candidates,
    score_candidate,
)
from showroom.db.repository.products import ProductCatalog
from showroom.state.models import ProductCandidate, RequirementSet


def candidate(id: str, name: str = "", category: str = None, images: list = None, **kwargs):
    return ProductCandidate(id=id, name=name or id, category=category, images=images or [], **kwargs)


def mock_catalog(**results) -> MagicMock:
    """Catalog whose search methods return fixed lists (or raise)."""
    catalog = MagicMock(spec=ProductCatalog)
    catalog.search_products = AsyncMock(return_value=results.get("search", []))
    catalog.products_by_category = AsyncMock(return_value=results.get("category", []))
    catalog.products_by_brand = AsyncMock(return_value=results.get("brand", []))
    return catalog


class TestMeaningfulWords:
    """Tests for keyword extraction from raw messages."""

    def test_drops_stop_words_and_short_words(self):
        assert meaningful_words("I want vinyl flooring for my kitchen") == ["vinyl", "flooring", "kitchen"]

    def test_splits_punctuation_and_dedupes(self):
        assert meaningful_words("Grey-oak, grey OAK planks!") == ["grey", "oak", "planks"]

    def test_empty(self):
        assert meaningful_words("I want it") == []


class TestScoring:
    """Tests for the scoring function."""

    def test_room_type_category_and_image(self):
        requirements = RequirementSet(category="vinyl", room_type="kitchen")
        product = candidate("1", "Kitchen-Ready Vinyl Plank", category="vinyl", images=["a.jpg"])

        assert score_candidate(product, requirements) == 6

    def test_room_type_in_description(self):
        requirements = RequirementSet(room_type="bathroom")
        product = candidate("1", "Marble Tile", description="Perfect for any bathroom")

        assert score_candidate(product, requirements) == 3

    def test_category_match_is_case_insensitive_substring(self):
        requirements = RequirementSet(category="Luxury Vinyl")
        product = candidate("1", category="vinyl")

        assert score_candidate(product, requirements) == 2

    def test_no_signals(self):
        assert score_candidate(candidate("1", category="tile"), RequirementSet()) == 0

    def test_pure_function(self):
        requirements = RequirementSet(category="tile", room_type="kitchen")
        product = candidate("1", "Kitchen Tile", category="tile")

        assert score_candidate(product, requirements) == score_candidate(product, requirements)


class TestDeduplicateAndRank:
    """Tests for dedupe-by-id and stable ranking."""

    def test_last_writer_wins_at_first_position(self):
        first = candidate("a", "Old name")
        other = candidate("b")
        replacement = candidate("a", "New name")

        unique = deduplicate_candidates([first, other, replacement])

        assert [c.id for c in unique] == ["a", "b"]
        assert unique[0].name == "New name"

    def test_ties_keep_arrival_order(self):
        requirements = RequirementSet(category="tile")
        products = [candidate(str(i), category="tile") for i in range(5)]

        ranked = rank_candidates(products, requirements)

        assert [c.id for c in ranked] == ["0", "1", "2", "3", "4"]

    def test_higher_scores_first_then_arrival(self):
        requirements = RequirementSet(category="vinyl")
        products = [
            candidate("plain"),
            candidate("vinyl-1", category="vinyl"),
            candidate("image", images=["x.jpg"]),
            candidate("vinyl-2", category="vinyl"),
        ]

        ranked = rank_candidates(products, requirements)

        assert [c.id for c in ranked] == ["vinyl-1", "vinyl-2", "image", "plain"]

    def test_capped(self):
        products = [candidate(str(i)) for i in range(20)]
        assert len(rank_candidates(products, RequirementSet())) == 8
        assert len(rank_candidates(products, RequirementSet(), limit=3)) == 3


class TestProductMatcher:
    """Tests for ProductMatcher.match with a mocked catalog."""

    @pytest.mark.asyncio
    async def test_runs_strategies_for_available_inputs(self):
        catalog = mock_catalog()
        matcher = ProductMatcher(catalog)
        requirements = RequirementSet(category="vinyl", brand="Shaw", room_type="kitchen", preferences=["waterproof"])

        await matcher.match(requirements, "vinyl for the kitchen and bathroom")

        catalog.products_by_category.assert_awaited_once_with("vinyl", limit=10)
        catalog.products_by_brand.assert_awaited_once_with("Shaw", limit=10)
        keyword_calls = [call.kwargs for call in catalog.search_products.await_args_list]
        assert {"keywords": ["vinyl", "kitchen", "bathroom"], "limit": 10} in keyword_calls
        assert {"keywords": ["kitchen", "vinyl", "waterproof"], "limit": 10} in keyword_calls
        assert {"keyword": "kitchen", "limit": 10} in keyword_calls
        assert {"keyword": "bathroom", "limit": 10} in keyword_calls

    @pytest.mark.asyncio
    async def test_failing_strategy_contributes_nothing(self):
        catalog = mock_catalog(category=[candidate("tile-1", category="tile")])
        catalog.search_products = AsyncMock(side_effect=RuntimeError("db down"))
        matcher = ProductMatcher(catalog)

        results = await matcher.match(RequirementSet(category="tile"), "tile please")

        assert [c.id for c in results] == ["tile-1"]

    @pytest.mark.asyncio
    async def test_duplicates_across_strategies_collapse(self):
        shared = candidate("p1", category="vinyl")
        catalog = mock_catalog(search=[shared], category=[shared, candidate("p2", category="vinyl")])
        matcher = ProductMatcher(catalog)

        results = await matcher.match(RequirementSet(category="vinyl"), "vinyl floors")

        assert sorted(c.id for c in results) == ["p1", "p2"]

    @pytest.mark.asyncio
    async def test_nothing_to_search(self):
        catalog = mock_catalog()
        matcher = ProductMatcher(catalog)

        assert await matcher.match(RequirementSet(), "hi") == []
        catalog.search_products.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_all_strategies_empty(self):
        matcher = ProductMatcher(mock_catalog())

        assert await matcher.match(RequirementSet(category="carpet"), "carpet for stairs") == []


class TestProductMatcherWithCatalog:
    """End-to-end matching against a seeded SQLite catalog."""

    @pytest.mark.asyncio
    async def test_vinyl_kitchen_product_ranks_first(self, sample_products):
        catalog = ProductCatalog()
        await catalog.add_products(sample_products)
        matcher = ProductMatcher(catalog)
        requirements = RequirementSet(category="vinyl", room_type="kitchen")

        results = await matcher.match(requirements, "I want vinyl flooring for my kitchen")

        assert results[0].id == "p-vinyl"
        assert {c.id for c in results} == {"p-vinyl", "p-hardwood"}
