"""
Restaurants & Users Service - FastAPI Application

Endpoints:
- /restaurants/... - Restaurant CRUD, search, pictures
- /users/...       - User CRUD and email verification
- GET /health      - Health check
- GET /            - API info

LOGGING:
- Every request logged with: method, path, query params, status, duration
- Logging failures do not crash the app
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from restaurant_service import restaurants, users
from restaurant_service.config import config
from restaurant_service.database import Database
from restaurant_service.errors import APIError
from restaurant_service.logs import safe_log, setup_logging


setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    safe_log("Starting Restaurants & Users Service", logger=logger)
    try:
        await Database.connect()
        count = await Database.count_restaurants()
        safe_log(f"Database ready with {count} restaurants", logger=logger)
    except Exception as e:
        safe_log(f"Database connection failed: {e}", level="error", logger=logger)
        raise

    yield

    safe_log("Shutting down", logger=logger)
    await Database.disconnect()


# =============================================================================
# FASTAPI APPLICATION
# =============================================================================

app = FastAPI(
    title="Restaurants & Users Service",
    description="Restaurant and user documents with picture attachments",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, query params, status and duration of every request."""
    start = time.perf_counter()
    response = await call_next(request)
    safe_log(
        "Request completed",
        logger=logger,
        method=request.method,
        path=request.url.path,
        query_params=dict(request.query_params),
        status=response.status_code,
        duration_ms=round((time.perf_counter() - start) * 1000, 2),
    )
    return response


app.include_router(restaurants.router)
app.include_router(users.router)


# =============================================================================
# SERVICE ENDPOINTS
# =============================================================================

@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint for container orchestration."""
    try:
        restaurant_count = await Database.count_restaurants()
        user_count = await Database.count_users()
        return {
            "status": "healthy",
            "database": "connected",
            "restaurant_count": restaurant_count,
            "user_count": user_count,
        }
    except Exception as e:
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(e)
            }
        )


@app.get("/")
async def root() -> dict:
    """API information."""
    return {
        "service": "Restaurants & Users API",
        "version": "1.0.0",
        "endpoints": {
            "GET /restaurants": "List restaurants (page, limit)",
            "GET /restaurants/search": "Search by name, cuisine or address",
            "GET /restaurants/{id}": "Get a restaurant",
            "GET /restaurants/owner/{ownerId}": "Get an owner's restaurant",
            "POST /restaurants": "Create a restaurant (requires ownerId)",
            "PATCH /restaurants/{id}": "Update a restaurant (requires ownerId)",
            "DELETE /restaurants/{id}?ownerId=...": "Delete a restaurant",
            "POST /restaurants/{id}/picture": "Upload a picture (multipart field 'picture')",
            "GET /restaurants/{id}/picture": "Download the picture",
            "POST /users": "Create a user",
            "GET /users": "List users (optional page, limit)",
            "GET /users/uid/{uid}": "Get a user",
            "PATCH /users/uid/{uid}": "Update a user",
            "PATCH /users/uid/{uid}/verify-email": "Set email verification status",
            "DELETE /users/uid/{uid}": "Delete a user",
            "GET /health": "Health check",
        },
    }


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(app, host=config.HOST, port=config.PORT, log_config=None)


if __name__ == "__main__":
    run()
