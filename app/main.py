from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import structlog
import time
import uvicorn

from app.core.config import settings
from app.core.errors import WarehouseError, error_response_body
from app.core.warehouse import create_warehouse
from app.api import analytics
from app.middleware.security_headers import security_headers_middleware

# Configure structured logging
structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
    ]
)

logger = structlog.get_logger()

ENDPOINTS = {
    "health": "/api/analytics/health",
    "mom": "/api/analytics/mom?months=6",
    "churn": "/api/analytics/churn?months=6",
    "events": "/api/analytics/events?days=30",
    "dau": "/api/analytics/dau?days=30",
    "cohorts": "/api/analytics/cohorts?months=3",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle events"""
    app.state.warehouse = None
    app.state.warehouse_error = None
    try:
        app.state.warehouse = create_warehouse(settings)
    except Exception as e:
        # Routes report this as a credential error on every request
        app.state.warehouse_error = str(e)
        logger.error("warehouse_init_failed", error=str(e))

    logger.info(
        "application_startup",
        app_name=settings.app_name,
        environment=settings.environment,
        port=settings.port,
        bigquery_project=settings.bigquery_project_id or "Not configured",
        bigquery_dataset=settings.bigquery_dataset_id or "Not configured",
        endpoints=list(ENDPOINTS.values())
    )
    yield
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.middleware("http")(security_headers_middleware)


# Middleware for logging requests
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    duration = time.time() - start_time
    logger.info(
        "request_completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(duration * 1000, 2)
    )

    return response


def _request_path(request: Request) -> str:
    if request.url.query:
        return f"{request.url.path}?{request.url.query}"
    return request.url.path


@app.exception_handler(WarehouseError)
async def warehouse_error_handler(request: Request, exc: WarehouseError):
    """Classify warehouse failures into 401/403/404/500 envelopes"""
    status_code, body = error_response_body(exc, include_stack=settings.is_development)
    logger.error("request_failed", path=request.url.path, status_code=status_code, error=str(exc))
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # Express-style routing: a path without a handler for this method is a miss
    if exc.status_code in (404, 405):
        return JSONResponse(
            status_code=404,
            content={"success": False, "error": "Route not found", "path": _request_path(request)}
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    status_code, body = error_response_body(exc, include_stack=settings.is_development)
    logger.exception("request_failed", path=request.url.path, status_code=status_code, error=str(exc))
    return JSONResponse(status_code=status_code, content=body)


# Include routers
app.include_router(analytics.router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Berry Analytics Backend API",
        "version": settings.app_version,
        "endpoints": ENDPOINTS
    }


if __name__ == "__main__":
    uvicorn.run("app.main:app", host=settings.host, port=settings.port)
