from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from datetime import datetime
import logging

# Load environment variables as early as possible
load_dotenv()

from .core.config import settings
from .middleware import LoggingMiddleware, ErrorHandlingMiddleware, RequestSizeLimitMiddleware
from .exceptions import UIRefineError, http_exception_handler, uirefine_exception_handler, create_success_response
from .routers import analysis_router
from .application.services.analysis_service import AnalysisService
from .infrastructure.ai.gemini_provider import GeminiProvider
from .infrastructure.storage.local_storage import FileKeyValueStorage
from .infrastructure.storage.memory_storage import InMemoryKeyValueStorage
from .infrastructure.persistence.local.repositories.analysis_repository_local import LocalAnalysisRepository

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


def build_storage(storage_dir: str):
    """An empty storage dir keeps records in memory for the life of the process."""
    if not storage_dir:
        logger.warning("STORAGE_DIR is empty; analyses will not survive a restart")
        return InMemoryKeyValueStorage()
    return FileKeyValueStorage(storage_dir)


def build_analysis_service() -> AnalysisService:
    repo = LocalAnalysisRepository(build_storage(settings.STORAGE_DIR), key=settings.STORAGE_KEY)
    return AnalysisService(
        analysis_repo=repo,
        ai_provider=GeminiProvider(),
        default_code_language=settings.DEFAULT_CODE_LANGUAGE,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Starting {settings.APP_NAME}...")
    service = build_analysis_service()
    if not service.ai_provider.configured():
        logger.error(
            "CRITICAL: GEMINI_API_KEY is not set. Please configure it in your .env file "
            "(e.g., GEMINI_API_KEY=YOUR_KEY_HERE) and restart the service."
        )
    service.recover_interrupted()
    logger.info(f"Loaded {len(service.list_records())} analyses from {settings.STORAGE_DIR or 'memory'}")
    app.state.analysis_service = service
    yield
    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")

# Initialize FastAPI
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    docs_url=("/docs" if settings.DOCS_ENABLED else None),
    redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
    openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None)
)

# Add custom exception handlers
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(UIRefineError, uirefine_exception_handler)

# Add middleware
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)

# The review page runs in the browser on another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(analysis_router.router)


# API key status, shown as a persistent banner by the page
@app.get("/status")
def api_key_status(service: AnalysisService = Depends(analysis_router.get_analysis_service)):
    return create_success_response(service.key_status().model_dump())


# Health check endpoint
@app.get("/health")
def health_check(service: AnalysisService = Depends(analysis_router.get_analysis_service)):
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.utcnow().isoformat(),
        "gemini": {
            "configured": service.ai_provider.configured(),
            "model": settings.GEMINI_MODEL,
        },
        "analyses": len(service.list_records()),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "uirefine.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower()
    )
