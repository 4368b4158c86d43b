import asyncio
import logging
import os
import sys

# Add project root to python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import text

from app.database import close_db, engine, init_db
from app.logging_config import configure_logging

logger = logging.getLogger("scripts.init_db")


async def main():
    if engine is None:
        logger.error("DATABASE_URL is not set")
        return

    await init_db()

    async with engine.begin() as conn:
        result = await conn.execute(text(
            "SELECT table_name FROM information_schema.tables WHERE table_schema = 'public'"
        ))
        tables = sorted(row[0] for row in result.fetchall())
        logger.info(f"Found tables: {tables}")

    await close_db()


if __name__ == "__main__":
    configure_logging()
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(main())
