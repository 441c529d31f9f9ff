import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import logging

from auth import auth_router
from cache_service import TTLCache
from config import settings
from database import Base, SessionLocal, engine
from routers.messages import router as messages_router
from routers.realtime import realtime_router
from routers.wallet import router as wallet_router
from ws_manager import manager
import models  # noqa: F401  registers tables on Base.metadata

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)


async def create_db_and_tables():
    """Creates all database tables defined in models.py."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("Database tables ready")


app = FastAPI(title="OmniBiz API")
# Wallet summaries, invalidated on every wallet mutation
app.state.summary_cache = TTLCache(settings.WALLET_SUMMARY_CACHE_TTL_SECONDS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    log.info("Initializing application...")
    await create_db_and_tables()


@app.on_event("shutdown")
async def shutdown_event():
    app.state.summary_cache.clear()
    await engine.dispose()


@app.get("/health")
async def health():
    """Liveness plus a database round trip."""
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        log.error(f"Health check database failure: {e}")
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "websocket_connections": manager.connection_count(),
    }


app.include_router(auth_router, prefix="/auth")
app.include_router(wallet_router)  # Prefix defined in router as /api/v1/wallet
app.include_router(messages_router)  # Prefix defined in router as /api/v1/messages
# Realtime WebSocket router
app.include_router(realtime_router)


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)
