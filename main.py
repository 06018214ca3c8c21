import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from app.core.config import settings
from app.core.database import init_db
from app.core.exceptions import (
    HiringAutomationError,
    NotFoundError,
    PreconditionFailedError,
    DecisionConflictError,
    InvalidStageTransitionError,
    MissingContactDetailError,
    AIServiceError,
    DeliveryFailedError,
)
from app.core.logging_config import setup_logging
from app.api.endpoints import candidates, cron, decisions, health, outreach, questionnaire, telegram_webhook, test_tasks

setup_logging(log_level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    NotFoundError: 404,
    PreconditionFailedError: 400,
    MissingContactDetailError: 400,
    DecisionConflictError: 409,
    InvalidStageTransitionError: 409,
    AIServiceError: 502,
    DeliveryFailedError: 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    logger.info("Starting up Hiring Automation API...")
    settings.validate_required_secrets()
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized successfully")

    yield

    # Shutdown
    logger.info("Shutting down Hiring Automation API...")


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Hiring pipeline automation: scheduled outreach, test tasks and manager decisions",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HiringAutomationError)
async def hiring_automation_error_handler(request: Request, exc: HiringAutomationError):
    """Translate domain errors into `{"detail": {"error": <code>, "message": ...}}`."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 400)
    logger.warning(f"{request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": {"error": exc.code, "message": exc.message}}
    )


# Include routers
app.include_router(health.router, prefix=settings.API_V1_STR)
app.include_router(cron.router, prefix=settings.API_V1_STR)
app.include_router(outreach.router, prefix=settings.API_V1_STR)
app.include_router(decisions.router, prefix=settings.API_V1_STR)
app.include_router(candidates.router, prefix=settings.API_V1_STR)
app.include_router(test_tasks.router, prefix=settings.API_V1_STR)
app.include_router(questionnaire.router, prefix=settings.API_V1_STR)
app.include_router(telegram_webhook.router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    """Root endpoint - API health check"""
    return {
        "message": "Hiring Automation API",
        "version": "1.0.0",
        "status": "healthy"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
