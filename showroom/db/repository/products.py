"""Product catalog search over the products table.

The catalog is read-only from the recommendation pipeline's point of view.
Each call opens its own session so the matcher can run several searches
concurrently.
"""

import json
from typing import Optional

import structlog
from sqlalchemy import Select, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from showroom.db.base import LIKE_ESCAPE, contains_pattern, get_async_session_factory
from showroom.db.models import ProductModel
from showroom.state.models import ProductCandidate, ProductVariation

logger = structlog.get_logger()

# Canonical flooring categories and the words that imply them
CATEGORY_SYNONYMS = {
    "vinyl": ["vinyl", "lvp", "luxury vinyl", "luxury vinyl plank"],
    "laminate": ["laminate", "laminate flooring"],
    "hardwood": ["hardwood", "wood", "engineered wood"],
    "tile": ["tile", "ceramic", "porcelain", "stone tile"],
    "carpet": ["carpet", "rug"],
}

KEYWORD_FIELDS = (
    ProductModel.name,
    ProductModel.description,
    ProductModel.brand,
    ProductModel.category,
    ProductModel.series_name,
)


def canonical_category(keyword: str) -> Optional[str]:
    """Map a category keyword onto a canonical category, if it implies one."""
    lowered = keyword.lower()
    for category, synonyms in CATEGORY_SYNONYMS.items():
        if any(synonym in lowered for synonym in synonyms):
            return category
    return None


def _contains(column, text: str):
    return column.ilike(contains_pattern(text), escape=LIKE_ESCAPE)


def to_candidate(model: ProductModel) -> ProductCandidate:
    """Project a product row into a ProductCandidate."""
    return ProductCandidate(
        id=model.id,
        name=model.name,
        description=model.description or "",
        price=model.price or 0,
        selling_price=model.selling_price if model.selling_price is not None else model.price,
        brand=model.brand,
        category=model.category,
        series_name=model.series_name,
        images=json.loads(model.images_json or "[]"),
        variations=[ProductVariation(**v) for v in json.loads(model.variations_json or "[]")],
    )


class ProductCatalog:
    """Keyword, category, brand and price-range filtering over the catalog."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        default_limit: int = 10,
    ):
        self._session_factory = session_factory
        self.default_limit = default_limit

    def _factory(self) -> AsyncSession:
        factory = self._session_factory or get_async_session_factory()
        return factory()

    async def _run(self, stmt: Select, limit: Optional[int]) -> list[ProductCandidate]:
        stmt = stmt.order_by(ProductModel.created_at.desc()).limit(limit or self.default_limit)
        async with self._factory() as session:
            models = (await session.execute(stmt)).scalars().all()
        return [to_candidate(m) for m in models]

    async def search_products(
        self,
        keyword: Optional[str] = None,
        keywords: Optional[list[str]] = None,
        category: Optional[str] = None,
        brand: Optional[str] = None,
        series_name: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> list[ProductCandidate]:
        """Search active products.

        Args:
            keyword: Substring matched against name, description, brand,
                category and series name
            keywords: Words of which any one may match those fields
            category: Category substring filter
            brand: Brand substring filter
            series_name: Series substring filter
            min_price: Inclusive lower price bound
            max_price: Inclusive upper price bound
            limit: Maximum number of results

        Returns:
            Newest matching products first
        """
        stmt = select(ProductModel).where(ProductModel.is_active.is_(True))

        if keyword:
            stmt = stmt.where(or_(*(_contains(field, keyword) for field in KEYWORD_FIELDS)))
        if keywords:
            stmt = stmt.where(or_(*(
                _contains(field, word) for word in keywords for field in KEYWORD_FIELDS
            )))
        if category:
            stmt = stmt.where(_contains(ProductModel.category, category))
        if brand:
            stmt = stmt.where(_contains(ProductModel.brand, brand))
        if series_name:
            stmt = stmt.where(_contains(ProductModel.series_name, series_name))
        if min_price is not None:
            stmt = stmt.where(ProductModel.price >= min_price)
        if max_price is not None:
            stmt = stmt.where(ProductModel.price <= max_price)

        return await self._run(stmt, limit)

    async def products_by_category(
        self, category_keyword: str, limit: Optional[int] = None
    ) -> list[ProductCandidate]:
        """Get products for a category keyword (e.g. "lvp", "ceramic", "vinyl")."""
        conditions = [
            _contains(ProductModel.category, category_keyword),
            _contains(ProductModel.name, category_keyword),
            _contains(ProductModel.description, category_keyword),
        ]
        matched = canonical_category(category_keyword)
        if matched:
            conditions.append(_contains(ProductModel.category, matched))

        stmt = select(ProductModel).where(ProductModel.is_active.is_(True), or_(*conditions))
        return await self._run(stmt, limit)

    async def products_by_brand(
        self, brand: str, limit: Optional[int] = None
    ) -> list[ProductCandidate]:
        """Get products from a brand."""
        stmt = select(ProductModel).where(
            ProductModel.is_active.is_(True),
            _contains(ProductModel.brand, brand),
        )
        return await self._run(stmt, limit)

    async def add_products(self, products: list[dict]) -> int:
        """Insert catalog products (used by the seeding script and tests).

        Args:
            products: Dicts with id, name, description, price, brand,
                category, series_name, images, variations

        Returns:
            Number of products inserted
        """
        async with self._factory() as session:
            for product in products:
                session.add(ProductModel(
                    id=str(product["id"]),
                    name=product["name"],
                    description=product.get("description", ""),
                    price=float(product.get("price", 0)),
                    selling_price=product.get("selling_price"),
                    brand=product.get("brand"),
                    category=product.get("category"),
                    series_name=product.get("series_name"),
                    images_json=json.dumps(product.get("images", [])),
                    variations_json=json.dumps(product.get("variations", [])),
                    is_active=product.get("is_active", True),
                ))
            await session.commit()

        logger.info("catalog_products_added", count=len(products))
        return len(products)
