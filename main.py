import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from prometheus_client import make_asgi_app

from core.config import settings
from core.exceptions import ScraperException
from core.logging import configure_logging
from services.categories.allow_list import CategoryAllowList, CategorySync
from services.pipeline.orchestrator import PipelineOrchestrator
from services.pipeline.runner import PipelineRunner
from services.scraper.http_client import HttpClient
from services.sources.config_loader import list_available_sources

# Prometheus metrics endpoint
metrics_app = make_asgi_app()


# ------------------------------------------------------------------
# Application lifecycle
# ------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    logger.info("Initializing application...")

    http = HttpClient(settings)
    allow_list = CategoryAllowList()
    category_sync = CategorySync(
        allow_list, http, settings.categories_url, interval_hours=settings.CATEGORY_SYNC_HOURS
    )

    def make_orchestrator() -> PipelineOrchestrator:
        return PipelineOrchestrator(http, allow_list, settings)

    runner = PipelineRunner(
        make_orchestrator,
        interval_minutes=settings.scrape_interval_minutes if settings.ENABLE_SCHEDULE else None,
    )

    app.state.http = http
    app.state.allow_list = allow_list
    app.state.runner = runner

    category_sync.start()
    runner.start_schedule()
    try:
        yield
    finally:
        logger.info("Shutting down application...")
        await runner.shutdown()
        await category_sync.stop()
        await http.aclose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Environmental news ingestion pipeline",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


@app.middleware("http")
async def add_timing_header(request: Request, call_next):
    start_time = time.perf_counter()
    response = await call_next(request)
    process_time = time.perf_counter() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


@app.exception_handler(ScraperException)
async def scraper_exception_handler(request: Request, exc: ScraperException):
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "An unexpected error occurred",
                "status": 500,
            }
        },
    )


app.mount("/metrics", metrics_app)


@app.get("/health")
async def health_check(request: Request):
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "running": request.app.state.runner.running,
    }


@app.get("/")
async def root():
    return {
        "name": settings.PROJECT_NAME,
        "version": "1.0.0",
        "description": "Environmental news ingestion pipeline",
        "docs_url": "/docs",
        "health_check": "/health",
        "sources": list_available_sources(),
    }


@app.post("/api/v1/refresh", status_code=status.HTTP_202_ACCEPTED)
async def refresh(request: Request):
    """Start a pipeline run in the background (409 while one is active)."""
    request.app.state.runner.trigger()
    logger.info("Manual pipeline run triggered")
    return {"status": "started"}


@app.get("/api/v1/runs/last")
async def last_run(request: Request):
    runner = request.app.state.runner
    metrics = runner.last_metrics
    return {
        "running": runner.running,
        "error": runner.last_error,
        "metrics": metrics.model_dump(mode="json") if metrics else None,
    }


@app.get("/api/v1/categories")
async def categories(request: Request):
    return request.app.state.allow_list.snapshot().to_dict()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=settings.WORKERS,
        log_level=settings.LOG_LEVEL.lower(),
    )
