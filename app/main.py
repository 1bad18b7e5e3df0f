from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from structlog import get_logger
from app.config import settings
from app.errors import ApiError, api_error_handler, http_error_handler, validation_error_handler
from app.routers import content
from app.routers import dossier
from app.routers import health
from app.routers import pdf
from app.services.ai_content import content_generator

logger = get_logger()

app = FastAPI(title="Real-Estate Dossier Service", version=settings.APP_VERSION)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.ALLOWED_ORIGIN],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    max_age=86400,
)
app.add_exception_handler(ApiError, api_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)

scheduler = AsyncIOScheduler()

async def sweep_content_store():
    content_generator.sweep()

@app.on_event("startup")
async def startup_event():
    # the stores otherwise only shrink when written to
    scheduler.add_job(sweep_content_store, "interval", minutes=settings.SWEEP_INTERVAL_MINUTES)
    scheduler.start()
    logger.info("Service started", environment=settings.ENVIRONMENT, ai_enabled=content_generator.enabled)

@app.on_event("shutdown")
async def shutdown_event():
    if scheduler.running:
        scheduler.shutdown()

app.include_router(dossier.router)
app.include_router(pdf.router)
app.include_router(content.router)
app.include_router(health.router)

@app.get("/health")
async def root_health():
    return "ok"
