"""Script to create the cache, ring and layer preference tables."""
import asyncio
from app.db.database import engine, init_db


async def create_tables():
    """Create all tables in the configured database."""
    await init_db(engine)
    await engine.dispose()
    print("Tables created successfully!")

if __name__ == "__main__":
    asyncio.run(create_tables())
