from __future__ import annotations  # FastAPI server exposing interview session control

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import router, shutdown_engine
from config.settings import settings
from observability import configure_logging
from storage.migrate import migrate


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:  # Prepare schema, drain background saves on exit
    configure_logging()
    migrate(settings.DB_PATH)
    logger.info("Interview API ready db=%s", settings.DB_PATH)
    yield
    shutdown_engine()


app = FastAPI(title="Interview Session API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"]
)
app.include_router(router)


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}
