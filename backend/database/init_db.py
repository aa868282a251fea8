import asyncio
import logging
from dotenv import load_dotenv
from backend.database.db import NeonDatabase
from backend.database.models import Base, Conversation, ChatMessage, HandoffRequest  # noqa: F401  registers tables

load_dotenv()
logger = logging.getLogger("database")


async def init_db():
    engine = NeonDatabase.init()
    async with engine.begin() as conn:
        logger.info("Creating tables...")
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Created tables: %s", list(Base.metadata.tables.keys()))
    await NeonDatabase.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(init_db())
