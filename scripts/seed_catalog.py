"""Script to load catalog products from a JSON file into the database.

Usage:
    python scripts/seed_catalog.py products.json

The file holds a list of objects with id, name, description, price,
selling_price, brand, category, series_name, images and variations.
"""

import asyncio
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

from showroom.db.base import init_db
from showroom.db.repository.products import ProductCatalog


def load_products(path: Path) -> list[dict]:
    """Read and sanity-check the product list."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("products", [])

    products = [p for p in data if p.get("id") and p.get("name")]
    skipped = len(data) - len(products)
    if skipped:
        print(f"Skipping {skipped} products without id or name")
    return products


async def seed(path: Path) -> int:
    await init_db()
    products = load_products(path)
    if not products:
        print("No products to insert")
        return 0
    return await ProductCatalog().add_products(products)


def main():
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)

    load_dotenv()
    count = asyncio.run(seed(Path(sys.argv[1])))
    print(f"Inserted {count} products")


if __name__ == "__main__":
    main()
