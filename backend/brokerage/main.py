import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from brokerage.core.config import settings
from brokerage.core.exceptions import CommissionEngineError, ValidationError
from brokerage.api import agent_tiers as agent_tiers_api
from brokerage.api import transactions as transactions_api

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def init_database():
    """Create tables on startup. Schema changes go through alembic."""
    from brokerage.core.database import engine, Base
    import brokerage.models  # noqa: F401  register all tables

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_database()
    yield


# Disable API docs in production
docs_url = "/docs" if settings.ENVIRONMENT != "production" else None
redoc_url = "/redoc" if settings.ENVIRONMENT != "production" else None

app = FastAPI(
    title=settings.APP_NAME,
    description="Brokerage back office - transaction approval and commission API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url,
)


@app.exception_handler(CommissionEngineError)
async def commission_engine_exception_handler(request, exc: CommissionEngineError):
    if exc.data_integrity:
        # Recruiter graph or tier config is broken; needs an admin, not a retry
        logger.error(f"Data integrity error on {request.method} {request.url.path}: {exc.message}")
    content = {
        "detail": exc.message,
        "error_type": exc.error_type,
        "data_integrity": exc.data_integrity,
    }
    if isinstance(exc, ValidationError):
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)


# Global exception handler - always return JSON (never plain text)
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


# CORS: configured frontend + local dev
allowed_origins = [
    "http://localhost:3000",
    "http://frontend:3000",
]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in allowed_origins:
    allowed_origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "brokerage-api", "version": "1.0.0"}


@app.get("/")
def root():
    return {"message": settings.APP_NAME, "version": "1.0.0", "docs": docs_url}


# Include routers
app.include_router(transactions_api.router)
app.include_router(agent_tiers_api.router)
