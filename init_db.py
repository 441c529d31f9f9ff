#!/usr/bin/env python3
"""Create the OmniBiz tables directly from the models (development databases)."""

import asyncio

from database import Base, engine, get_db_url
import models  # noqa: F401


async def init_db():
    print(f"Initializing database tables on {get_db_url()}...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("[OK] Database tables created!")

if __name__ == "__main__":
    asyncio.run(init_db())
