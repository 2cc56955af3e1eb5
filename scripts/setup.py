#!/usr/bin/env python3
"""Setup script for the marketplace API."""

import asyncio
import logging
import sys
from decimal import Decimal
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from marketplace.core.database import async_session_factory, close_db
from marketplace.models import Brokerage, Category, CategoryType, Equipment, PriceType

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def setup_database():
    """Bring the database schema up to the latest migration."""
    logger.info("Running database migrations...")

    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))
    command.upgrade(alembic_cfg, "head")

    logger.info("Database migrations completed")


async def create_sample_data():
    """Create a small catalog to browse and book against."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        existing = await db.scalar(select(func.count()).select_from(Category))
        if existing:
            logger.info("Sample data already exists, skipping...")
            return

        try:
            earthmoving = Category(
                name="Earthmoving",
                description="Excavators, loaders and dozers",
                type=CategoryType.EQUIPMENT.value,
            )
            real_estate = Category(
                name="Real Estate",
                description="Property sales, leasing and valuation",
                type=CategoryType.BROKERAGE.value,
            )
            db.add_all([earthmoving, real_estate])
            await db.flush()

            db.add_all([
                Equipment(
                    title="20 Ton Excavator",
                    description="Crawler excavator with operator cab and quick coupler",
                    price=Decimal("450.00"),
                    price_type=PriceType.DAILY.value,
                    features=["Quick coupler", "GPS tracking"],
                    location="Lagos",
                    condition="Excellent",
                    category_id=earthmoving.id,
                ),
                Equipment(
                    title="Wheel Loader",
                    description="3 cubic metre bucket wheel loader",
                    price=Decimal("2200.00"),
                    price_type=PriceType.WEEKLY.value,
                    location="Abuja",
                    condition="Good",
                    category_id=earthmoving.id,
                ),
                Brokerage(
                    title="Commercial Property Valuation",
                    description="On-site valuation by a certified surveyor",
                    price=Decimal("150.00"),
                    price_type=PriceType.HOURLY.value,
                    location="Lagos",
                    category_id=real_estate.id,
                ),
                Brokerage(
                    title="Lease Negotiation Package",
                    description="End-to-end negotiation of a commercial lease",
                    price=Decimal("1500.00"),
                    price_type=PriceType.FIXED.value,
                    category_id=real_estate.id,
                ),
            ])

            await db.commit()
            logger.info("Sample data created successfully!")

        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to create sample data: {e}")
            raise


async def main():
    """Main setup function."""
    logger.info("Starting marketplace API setup...")

    # Alembic drives its own event loop for the async engine
    await asyncio.to_thread(setup_database)

    await create_sample_data()
    await close_db()

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn marketplace.main:app --reload")


if __name__ == "__main__":
    asyncio.run(main())
