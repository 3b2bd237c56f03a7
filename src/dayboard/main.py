import logging
import time

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from dayboard.api.api_v1.api import api_router
from dayboard.core.config import settings
from dayboard.core.error_handlers import (
    dayboard_exception_handler,
    general_exception_handler,
    request_validation_exception_handler,
    sqlalchemy_exception_handler,
    validation_exception_handler,
)
from dayboard.core.events import lifespan
from dayboard.core.exceptions import DayboardError
from dayboard.db.session import AsyncSessionLocal
from dayboard.utils.dates import utcnow

logger = logging.getLogger(__name__)

DEV_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:3001",
]


def _mask_authorization(value: str) -> str:
    # Show only the scheme and the first characters of the token
    return value[:16] + "..." if len(value) > 16 else value


def create_app() -> FastAPI:
    """Create FastAPI application."""
    app = FastAPI(
        lifespan=lifespan,
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
    )

    # Health check endpoint
    @app.get("/healthz")
    async def health_check():
        """Health check endpoint for container orchestration."""
        try:
            async with AsyncSessionLocal() as session:
                await session.execute(text("SELECT 1"))
            return {
                "status": "healthy",
                "timestamp": utcnow().isoformat(),
                "service": settings.PROJECT_NAME,
            }
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            raise HTTPException(status_code=503, detail="Service unhealthy")

    @app.middleware("http")
    async def log_request_middleware(request: Request, call_next):
        start_time = time.time()
        auth_header = request.headers.get("authorization")
        logger.info(
            f"{request.method} {request.url.path} "
            f"auth={_mask_authorization(auth_header) if auth_header else '-'}"
        )

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({process_time:.4f}s)")
        return response

    # Add exception handlers
    app.add_exception_handler(DayboardError, dayboard_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    if settings.ENV == "development":
        logger.info("Development mode: Allowing all CORS origins")
        cors_origins = ["*"]
    else:
        cors_origins = settings.BACKEND_CORS_ORIGINS.copy()
        for origin in DEV_ORIGINS:
            if origin not in cors_origins and settings.ENV != "production":
                cors_origins.append(origin)
    logger.info("Final CORS Origins: %s", cors_origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,  # Cache preflight requests for 10 minutes
    )

    # Include the routers
    app.include_router(api_router, prefix=settings.API_V1_STR)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="localhost", port=settings.SERVER_PORT)
