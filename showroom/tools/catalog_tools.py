"""Catalog search tools offered to the model during answer generation."""

import json
from typing import Any

import structlog

from showroom.db.repository.products import ProductCatalog

logger = structlog.get_logger()


CATALOG_TOOLS: list[dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "search_products_from_database",
            "description": (
                "Search flooring products in the catalog. Use when the user asks for specific "
                "products, mentions product types (vinyl, laminate, hardwood, tile), brands, "
                "categories or price ranges. Returns full product details including images, "
                "prices and variations."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "keyword": {"type": "string", "description": "Search keyword for name, description or general search"},
                    "category": {"type": "string", "description": "Product category: vinyl, laminate, hardwood, tile, carpet"},
                    "brand": {"type": "string", "description": "Brand name (e.g. Shaw, Mohawk, Pergo, Lifeproof)"},
                    "seriesName": {"type": "string", "description": "Product series or collection name"},
                    "minPrice": {"type": "number", "description": "Minimum price"},
                    "maxPrice": {"type": "number", "description": "Maximum price"},
                    "limit": {"type": "number", "description": "Maximum number of products (default 10)"},
                },
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_products_by_category",
            "description": "Get products for a flooring category such as lvp, vinyl, laminate, ceramic or hardwood.",
            "parameters": {
                "type": "object",
                "properties": {
                    "category": {"type": "string", "description": "Category keyword"},
                    "limit": {"type": "number", "description": "Maximum number of products (default 10)"},
                },
                "required": ["category"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_products_by_brand",
            "description": "Get products from a specific brand.",
            "parameters": {
                "type": "object",
                "properties": {
                    "brand": {"type": "string", "description": "Brand name"},
                    "limit": {"type": "number", "description": "Maximum number of products (default 10)"},
                },
                "required": ["brand"],
            },
        },
    },
]


def _limit(args: dict) -> int:
    try:
        return max(1, min(int(args.get("limit") or 10), 25))
    except (TypeError, ValueError):
        return 10


async def execute_catalog_tool(catalog: ProductCatalog, name: str, arguments: str) -> str:
    """Run one tool call against the catalog.

    Args:
        catalog: Product catalog
        name: Tool name chosen by the model
        arguments: JSON-encoded arguments from the model

    Returns:
        JSON string for the tool message; failures are reported in the
        payload rather than raised
    """
    try:
        args = json.loads(arguments or "{}")
        if not isinstance(args, dict):
            raise ValueError("tool arguments must be an object")
    except ValueError as e:
        return json.dumps({"success": False, "error": f"Invalid arguments: {e}", "products": []})

    try:
        if name == "search_products_from_database":
            products = await catalog.search_products(
                keyword=args.get("keyword"),
                category=args.get("category"),
                brand=args.get("brand"),
                series_name=args.get("seriesName"),
                min_price=args.get("minPrice"),
                max_price=args.get("maxPrice"),
                limit=_limit(args),
            )
        elif name == "get_products_by_category":
            products = await catalog.products_by_category(args.get("category") or "", limit=_limit(args))
        elif name == "get_products_by_brand":
            products = await catalog.products_by_brand(args.get("brand") or "", limit=_limit(args))
        else:
            return json.dumps({"success": False, "error": f"Unknown tool: {name}", "products": []})
    except Exception as e:
        logger.warning("catalog_tool_failed", tool=name, error=str(e))
        return json.dumps({"success": False, "error": "Error searching products", "products": []})

    logger.info("catalog_tool_called", tool=name, arguments=args, results=len(products))
    if not products:
        return json.dumps({
            "success": True,
            "message": "No products found matching the criteria.",
            "products": [],
        })
    return json.dumps({
        "success": True,
        "count": len(products),
        "products": [p.prompt_view() for p in products],
    }, ensure_ascii=False)
