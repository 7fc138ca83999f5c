from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from .config import Settings, get_settings
from .middleware.error_handler import register_error_handlers
from .routes.system import router as system_router
from .services.storage_service import get_stores
from .submissions.router import router as submissions_router
from .submissions.schemas import Challenge, SeedData, User
from .submissions.store import load_seed
from .utils.log_config import setup_logging

logger = logging.getLogger(__name__)

# Loaded into the in-memory backend when no seed file is configured, so the
# endpoints have something to work against out of the box.
SAMPLE_SEED = SeedData(
    challenges=[Challenge(id=1, name="Hello, challenge", description="Sample challenge")],
    users=[User(id="sample-user", name="Sample User", api_key="sample-api-key")],
)


def load_seed_data(settings: Settings) -> Optional[SeedData]:
    """Return the seed for the in-memory backend; AWS tables are provisioned externally."""
    if settings.storage_backend != "memory":
        if settings.seed_data_file:
            logger.warning(
                f"SEED_DATA_FILE is ignored with the {settings.storage_backend} storage backend"
            )
        return None
    if settings.seed_data_file:
        raw = json.loads(Path(settings.seed_data_file).read_text(encoding="utf-8"))
        return SeedData.model_validate(raw)
    return SAMPLE_SEED


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    seed = load_seed_data(settings)
    if seed is not None:
        stores = get_stores()
        await load_seed(stores.challenges, stores.users, seed)
    yield


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title="Challenge Submissions Service",
        version="1.0.0",
        lifespan=lifespan,
    )
    register_error_handlers(app)
    app.include_router(system_router)
    app.include_router(submissions_router)
    logger.info(f"Application created with {settings.storage_backend} storage backend")
    return app


app = create_app()
