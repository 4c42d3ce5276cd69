"""FastAPI application entry point."""
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from library_api.api import api_router
from library_api.config import settings
from library_api.core.exceptions import AppException, ValidationError
from library_api.core.logging import get_logger, setup_logging
from library_api.core.responses import error_response, success_response
from library_api.database import close_db, init_db
from library_api.schemas.common import ErrorResponse

setup_logging(settings.log_level)
logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    # Startup
    await init_db()
    logger.info(f"{settings.app_name} v{settings.app_version} started")
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Books, borrowers and the loans between them",
    version=settings.app_version,
    lifespan=lifespan,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log each request with its status and timing."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)"
    )
    return response


# Exception handlers
@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Handle application exceptions."""
    errors = None
    if isinstance(exc, ValidationError) and exc.field:
        errors = [{"field": exc.field, "message": exc.message}]
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.message, errors),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle malformed ids and request bodies."""
    errors = exc.errors()
    if any(error["loc"][0] == "path" for error in errors):
        return JSONResponse(status_code=400, content=error_response("Invalid ID format"))

    details = [
        {
            "field": ".".join(str(part) for part in error["loc"][1:]) or str(error["loc"][0]),
            "message": error["msg"],
        }
        for error in errors
    ]
    return JSONResponse(
        status_code=400,
        content=error_response("Validation failed", details),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    if exc.status_code == 404:
        message = f"Route {request.url.path} not found"
    else:
        message = str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=error_response(message))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")

    if settings.debug:
        return JSONResponse(
            status_code=500,
            content=error_response(str(exc), type=type(exc).__name__),
        )

    return JSONResponse(
        status_code=500,
        content=error_response("Internal Server Error"),
    )


# Include API router
app.include_router(api_router)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return success_response(
        "OK",
        {"status": "healthy", "app": settings.app_name, "version": settings.app_version},
    )


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint."""
    body = success_response("Library Management System API is running!")
    body.update(
        version=settings.app_version,
        endpoints={
            "books": "/api/books",
            "users": "/api/users",
            "assignments": "/api/assignments",
        },
    )
    return body


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "library_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
