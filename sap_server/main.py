"""
SAP Server — Main Application
Sustainable AI Protocol backend: tracks the estimated energy and CO2 of
AI prompts, sells impact stamps through Stripe, and proxies tracked
completions to OpenRouter.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from sap_server.core.config import settings
from sap_server.core.database import build_engine, build_sessionmaker, init_models
from sap_server.api.routes import billing, generate, tracking, users, webhooks
from sap_server.services.aggregate import AggregateStore
from sap_server.services.repository import StatsRepository
from sap_server.utils.carbon import format_impact

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Stripe: {'ON' if settings.STRIPE_SECRET_KEY else 'OFF'}")
    logger.info(f"OpenRouter: {'ON' if settings.OPENROUTER_API_KEY else 'OFF'}")

    engine = build_engine(settings.DATABASE_URL)
    repository = StatsRepository(build_sessionmaker(engine))
    store = AggregateStore(repository)

    # Create tables; an unreachable database leaves the ticker in-memory only.
    try:
        await init_models(engine)
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database unavailable, continuing with in-memory stats: {e}")

    snapshot = await store.load()
    app.state.repository = repository
    app.state.aggregate_store = store

    totals = format_impact(snapshot.total_energy, snapshot.total_co2)
    logger.info(f"Global ticker: {snapshot.total_prompts} prompts tracked")
    logger.info(f"Energy: {totals['energy']}")
    logger.info(f"CO2: {totals['co2']}")

    yield

    await engine.dispose()
    logger.info(f"Shutting down {settings.APP_NAME}")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Sustainable AI Protocol API. Tracks the estimated energy and CO2 "
            "of AI prompts in a global ticker, derives user stamp and credit "
            "status from Stripe payments, and proxies tracked completions."
        ),
        version=settings.APP_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # ── CORS ─────────────────────────────────────────────────────────────────
    origins = settings.cors_origin_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Errors ───────────────────────────────────────────────────────────────
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info(f"Rejected request to {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=422,
            content={"error": "Invalid request"},
        )

    # ── Routes ───────────────────────────────────────────────────────────────
    app.include_router(tracking.router, prefix="/api", tags=["Impact Tracking"])
    app.include_router(generate.router, prefix="/api", tags=["AI Generation"])
    app.include_router(users.router, prefix="/api/user", tags=["Users"])
    app.include_router(billing.router, prefix="/api", tags=["Billing"])
    app.include_router(webhooks.router, tags=["Webhooks"])

    # ── Health Check ─────────────────────────────────────────────────────────
    @app.get("/api/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "stripe": bool(settings.STRIPE_SECRET_KEY),
            "openrouter": bool(settings.OPENROUTER_API_KEY),
        }

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/api/docs",
            "url": settings.BRAND_URL,
        }

    return app


app = create_app()


def run():
    """Start the API server."""
    import uvicorn

    uvicorn.run("sap_server.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)


if __name__ == "__main__":
    run()
