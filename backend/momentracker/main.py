from contextlib import asynccontextmanager

from fastapi import FastAPI
import uvicorn
from fastapi.middleware.cors import CORSMiddleware

from momentracker.api.errors import install_api_error_handlers
from momentracker.api.v1.router import api_router
from momentracker.application.container import shutdown_live_price_stream_hub
from momentracker.core.config import settings
from momentracker.core.logging import configure_logging
from momentracker.infrastructure.db.init_db import init_db


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(settings.log_level)
    init_db()
    yield
    await shutdown_live_price_stream_hub()


def create_app() -> FastAPI:
    application = FastAPI(title="MomenTracker API", version="0.1.0", lifespan=lifespan)
    install_api_error_handlers(application)

    application.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(api_router, prefix="/api/v1")

    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run("momentracker.main:app", host="0.0.0.0", port=8000, reload=True)
