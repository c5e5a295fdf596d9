import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tourledger.api.envelope import failure
from tourledger.api.router import api_router
from tourledger.core.config import get_settings
from tourledger.core.db import check_database_connection, init_database
from tourledger.core.logging import configure_logging

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    logger.info("[LIFESPAN] Starting application initialization...")
    if await check_database_connection():
        await init_database()
    else:
        logger.error("[LIFESPAN] Database unreachable, tables not created")
    logger.info("[LIFESPAN] Application startup complete - ready to accept requests")
    yield
    logger.info("[LIFESPAN] Shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.project_name,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.backend_cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
        body = failure("VALIDATION_ERROR", message)
        return JSONResponse(status_code=422, content=body.model_dump(mode="json"))

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
