import asyncio
import logging
import sys
import os

# Ensure we can import from the 'app' directory
sys.path.append(os.getcwd())

from app.core.database import SessionLocal, init_models
from app.services.seeder import seed_database

logger = logging.getLogger("seed")


async def main():
    logger.info("🌱 Starting demo data seeding...")
    await init_models()

    async with SessionLocal() as db:
        try:
            if await seed_database(db):
                logger.info("🎉 Seeding complete!")
            else:
                logger.info("Nothing to do, vessels already present.")
        except Exception as e:
            logger.error(f"❌ Error during seeding: {e}", exc_info=True)
            await db.rollback()
            raise


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(main())
