"""
Main FastAPI application
Gamified LMS backend: XP ledger, attendance streaks and timed quizzes
"""
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import time

from lms.config import settings
from lms.database import init_db
from lms.exceptions import LMSError
from lms.api import admin, gamification, quizzes
from lms.services.quiz_engine import quiz_sessions
from lms.utils.cache import cache_service
from lms.utils.rate_limiter import rate_limiter

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Backend for a gamified extracurricular LMS: XP, levels, attendance streaks and timed quizzes",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Rate limiting middleware
@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    """Apply rate limiting to all API requests"""

    if request.url.path in ["/health", "/docs", "/redoc", "/openapi.json"]:
        return await call_next(request)

    try:
        rate_limiter.check_rate_limit(request)
    except HTTPException as e:
        return JSONResponse(
            status_code=e.status_code,
            content=e.detail
        )

    return await call_next(request)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing"""

    start_time = time.perf_counter()
    response = await call_next(request)
    duration = time.perf_counter() - start_time

    user_id = request.headers.get("x-user-id", "-")
    logger.info(
        f"{request.method} {request.url.path} user={user_id} "
        f"-> {response.status_code} in {duration * 1000:.1f}ms"
    )

    return response


# Domain errors: not found, validation, closed attendance, bad transitions, retryable writes
@app.exception_handler(LMSError)
async def lms_exception_handler(request: Request, exc: LMSError):
    """Format expected domain failures consistently"""

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error,
            "message": exc.message,
            "retryable": exc.status_code == 503,
        }
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors gracefully"""

    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "Something went wrong. Please retry or go back home.",
            "detail": str(exc) if settings.DEBUG else None
        }
    )


# Identity and role failures raised by the dependencies in lms.api.deps
_HTTP_ERRORS = {401: "not_authenticated", 403: "forbidden"}


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Same envelope as the domain errors"""

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": _HTTP_ERRORS.get(exc.status_code, "http_error"),
            "message": exc.detail,
            "retryable": False,
        }
    )


@app.get("/health")
async def health_check():
    """Liveness plus the state of the optional pieces"""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "cache": "redis" if cache_service.redis_client else "disabled",
        "live_quiz_sessions": len(quiz_sessions),
    }


# Include routers
app.include_router(gamification.router)
app.include_router(quizzes.router)
app.include_router(admin.router)


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize database on startup"""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise

    logger.info("Application startup complete")


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Stop live quiz countdowns on shutdown"""
    logger.info(f"Shutting down application, closing {len(quiz_sessions)} quiz sessions")
    quiz_sessions.close_all()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "lms.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
