#!/usr/bin/env python3
"""Seed product categories script.

Creates the database tables and a default set of categories for local
development. Existing categories are left alone.

Usage:
    python scripts/seed_categories.py
    python scripts/seed_categories.py --names Books Toys
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.catalog import models  # noqa: F401  registers catalog tables
from app.catalog.categories import CategoryService
from app.domain.exceptions import ConflictError
from app.infrastructure.database import Base, async_session_factory, engine

DEFAULT_CATEGORIES = {
    "Electronics": "Electronic devices and gadgets",
    "Clothing": "Apparel and accessories",
    "Home & Kitchen": "Furniture, cookware and home goods",
    "Books": "Printed and digital books",
    "Sports": "Sporting goods and outdoor equipment",
}


async def create_tables() -> None:
    """Create database tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_categories(categories: dict[str, str | None]) -> tuple[int, int]:
    """Create the given categories.

    Args:
        categories: Name to description.

    Returns:
        Tuple of (created, skipped).
    """
    created = skipped = 0
    async with async_session_factory() as session:
        service = CategoryService(session)
        for name, description in categories.items():
            try:
                await service.create(name, description)
                created += 1
            except ConflictError:
                skipped += 1
        await session.commit()
    return created, skipped


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Seed product categories",
    )
    parser.add_argument(
        "--names",
        nargs="+",
        help="Category names to create instead of the default set",
    )

    args = parser.parse_args()

    categories: dict[str, str | None] = (
        {name: None for name in args.names} if args.names else dict(DEFAULT_CATEGORIES)
    )

    print("=" * 60)
    print("Inventory Category Seeder")
    print("=" * 60)

    print("Creating database tables...")
    await create_tables()
    print("Tables ready.")
    print()

    created, skipped = await seed_categories(categories)

    print(f"  ✓ Created: {created} categories")
    print(f"  ✓ Skipped: {skipped} existing")
    print()
    print("=" * 60)
    print("Seeding complete!")
    print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
