"""
Main FastAPI application for Scavenger Backend.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from scavenger_backend.api import api_router
from scavenger_backend.api.player import CORS_HEADERS
from scavenger_backend.api.utils import decode_admin_token
from scavenger_backend.config import get_settings
from scavenger_backend.database import close_db, init_db
from scavenger_backend.errors import HuntError
from scavenger_backend.websocket import (
    LocationFeed,
    Subscriber,
    get_location_feed,
    serve_subscriber,
    set_location_feed,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Creates tables and the live location feed.
    """
    logger.info("Initializing database...")
    await init_db()

    set_location_feed(LocationFeed())

    logger.info("Scavenger Backend started successfully!")

    yield

    logger.info("Shutting down...")
    set_location_feed(None)
    await close_db()
    logger.info("Scavenger Backend stopped.")


app = FastAPI(
    title="Scavenger Backend",
    description="Location-gated scavenger hunt: player API and operator console",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

app.include_router(api_router, prefix="/api")


# Every error leaves as {"error": message, ...}
@app.exception_handler(HuntError)
async def hunt_error_handler(request: Request, exc: HuntError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Request schema failures are plain 400s."""
    error = exc.errors()[0]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Invalid data",
            "field": ".".join(str(part) for part in error["loc"][1:]),
            "reason": error["msg"],
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    """Handle database constraint violations (duplicate keys, etc.)."""
    logger.warning(f"Integrity error on {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"error": "Conflicts with existing data"},
        headers=CORS_HEADERS,
    )


@app.exception_handler(OperationalError)
async def operational_error_handler(request: Request, exc: OperationalError):
    """Handle database connection/operational errors."""
    logger.error(f"Database operational error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Server error"},
        headers=CORS_HEADERS,
    )


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
    """Handle general SQLAlchemy errors without leaking internals."""
    logger.exception(f"Database error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Server error"},
        headers=CORS_HEADERS,
    )


# Runs in ServerErrorMiddleware, outside CORSMiddleware
@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Server error"},
        headers=CORS_HEADERS,
    )


@app.websocket("/ws/locations")
async def location_feed_endpoint(websocket: WebSocket):
    """
    Live location feed for operators.
    Requires an admin token in the ``token`` query parameter.
    """
    settings = get_settings()
    token = websocket.query_params.get("token")
    claims = None
    if token is not None:
        claims = decode_admin_token(token, settings.secret_key, settings.algorithm)

    if claims is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    feed = get_location_feed()
    if feed is None:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    await websocket.accept()
    await serve_subscriber(feed, Subscriber(username=claims["sub"], websocket=websocket))


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    feed = get_location_feed()

    return {
        "status": "healthy",
        "feed_subscribers": feed.subscriber_count if feed else 0,
    }


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "scavenger_backend.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
    )
