"""
FastAPI application for AI Media Studio
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import config
from .db.engine import init_db
from .exceptions import (
    StudioError,
    general_exception_handler,
    http_exception_handler,
    studio_exception_handler,
    validation_exception_handler,
)
from .logging_config import RequestIDMiddleware, setup_logging
from .middleware.request_size_limit import RequestSizeLimitMiddleware
from .admin_routes import router as admin_router
from .api_key_routes import router as api_key_router
from .auth_routes import router as auth_router, usage_router
from .generation_routes import router as generation_router
from .history_routes import router as history_router
from .payment_routes import router as payment_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.ENV, config.LOG_LEVEL)
    logger.info(f"Starting AI Media Studio {config.BUILD_VERSION} (env={config.ENV})")
    init_db()
    yield
    logger.info("Shutting down AI Media Studio")


app = FastAPI(title="AI Media Studio API", version=__version__, lifespan=lifespan)

app.add_middleware(
    RequestSizeLimitMiddleware,
    max_upload_bytes=config.MAX_UPLOAD_BYTES,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# Added last so it runs first and every log line carries the request ID
app.add_middleware(RequestIDMiddleware)

app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StudioError, studio_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

app.include_router(auth_router)
app.include_router(usage_router)
app.include_router(generation_router)
app.include_router(history_router)
app.include_router(payment_router)
app.include_router(api_key_router)
app.include_router(admin_router)

if config.STORAGE_PROVIDER == "local":
    storage_path = Path(config.STORAGE_PATH)
    storage_path.mkdir(parents=True, exist_ok=True)
    app.mount("/storage", StaticFiles(directory=str(storage_path)), name="storage")


@app.get("/")
async def root():
    return {"message": "AI Media Studio API", "status": "running", "version": __version__}


@app.get("/health")
async def health():
    """Health check endpoint for load balancers and monitoring"""
    return {"status": "healthy", "service": "media-studio", "build": config.BUILD_VERSION}


def main():
    import uvicorn
    uvicorn.run("media_studio.api_server:app", host="0.0.0.0", port=config.PORT)


if __name__ == "__main__":
    main()
