from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from loguru import logger
from typing import Optional

from arcpp.analysis.summary import ProteinSummaryBuilder
from arcpp.core.config import settings
from arcpp.core.exceptions import CacheUnavailableError
from arcpp.core.logging_conf import setup_logging
from arcpp.db.repository import ProteinRepository, SqlAlchemyProteinRepository
from arcpp.db.session import check_connection, create_engine, create_session_factory
from arcpp.services.cache import KeyValueStore, TieredSummaryCache, create_key_value_store
from arcpp.services.listing import ListingOrchestrator
from arcpp.services.proteins import ProteinService
from arcpp.services.species_stats import SpeciesStatsService
from arcpp.api.v1 import routes_proteins, routes_species, routes_health

def create_app(repository: Optional[ProteinRepository] = None, store: Optional[KeyValueStore] = None) -> FastAPI:
    """Build the API; ``repository`` and ``store`` replace the configured backends when given"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info(f"Starting {settings.PROJECT_NAME}...")
        engine = None
        repo = repository
        if repo is None:
            engine = create_engine()
            # no degraded mode without the authoritative store
            await check_connection(engine)
            repo = SqlAlchemyProteinRepository(create_session_factory(engine))
            logger.info("Database connection established")

        kv_store = store if store is not None else create_key_value_store()
        try:
            await kv_store.ping()
            logger.info("Cache store ready")
        except CacheUnavailableError as e:
            logger.warning(f"Cache store unreachable, serving from database: {e}")

        summary_cache = TieredSummaryCache(kv_store)
        builder = ProteinSummaryBuilder(repo)
        app.state.repository = repo
        app.state.summary_cache = summary_cache
        app.state.protein_service = ProteinService(repo, summary_cache, builder)
        app.state.listing = ListingOrchestrator(repo, summary_cache, builder)
        app.state.species_stats = SpeciesStatsService(repo)
        yield
        # Shutdown
        logger.info("Shutting down...")
        if store is None:
            await kv_store.close()
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title="ArcPP Proteomics Browser API",
        description="Protein coverage, modification annotations and cached protein listings",
        version=settings.VERSION,
        lifespan=lifespan
    )

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_HOSTS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(routes_proteins.router, prefix="/api", tags=["Proteins"])
    app.include_router(routes_species.router, prefix="/api", tags=["Species"])
    app.include_router(routes_health.router, prefix="/api", tags=["Health"])

    @app.get("/healthz")
    async def health_check():
        return {"status": "healthy", "version": settings.VERSION}

    @app.get("/readyz")
    async def readiness_check():
        # Check database connectivity, Redis, etc.
        try:
            await app.state.repository.ping()
        except Exception as e:
            logger.error(f"Readiness check failed: {e}")
            return {"status": "not ready", "error": str(e)}
        try:
            cache_ready = await app.state.summary_cache.store.ping()
        except CacheUnavailableError:
            cache_ready = False
        return {"status": "ready", "cache": "connected" if cache_ready else "unavailable"}

    return app

setup_logging()

app = create_app()
