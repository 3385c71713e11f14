"""Case Simulator - FastAPI app entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.config import get_settings
from app.core.errors import SimulationError, simulation_error_handler
from app.core.logging import configure_logging
from app.db.base import Base
from app.db.session import engine, AsyncSessionLocal
from app.routers import api, auth
from app.services.seeding import seed_demo_content

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # dev convenience; alembic owns the schema in production
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if settings.seed_demo_content:
        async with AsyncSessionLocal() as db:
            await seed_demo_content(db)

    logger.info("%s started", settings.app_name)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Case simulations: prerequisite gate, staged decisions, completion debriefs",
    lifespan=lifespan,
)

app.add_exception_handler(SimulationError, simulation_error_handler)

app.include_router(auth.router)
app.include_router(api.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
