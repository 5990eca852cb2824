import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from webscan.features.health.routes.health import router as health_router
from webscan.features.scan.routes.scan import router as scan_router
from webscan.features.scan.services.scan.runtime import ScanRuntime
from webscan.platform.config import settings
from webscan.platform.exceptions import add_exception_handlers

# Configure logging to show INFO level messages (DEBUG when settings.DEBUG)
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    runtime = ScanRuntime(settings)
    await runtime.start()
    app.state.result_cache = runtime.cache
    app.state.scan_service = runtime.scan_service
    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
    try:
        yield
    finally:
        await runtime.close()


app = FastAPI(
    title=settings.APP_NAME,
    description="Performance and accessibility scans for a single URL",
    version="1.0.0",
    lifespan=lifespan,
)


# Root endpoint for basic info
@app.get("/", tags=["Info"])
def root():
    return {
        "app_name": settings.APP_NAME,
        "description": "Lighthouse-backed performance and accessibility scanner.",
        "version": "1.0.0",
        "docs_url": "/docs",
    }


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)

app.include_router(health_router)
app.include_router(scan_router)
