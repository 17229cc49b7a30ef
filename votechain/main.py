# main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from votechain.chain import BlockAppender
from votechain.config import CORS_ORIGINS, LOG_LEVEL, MONGO_DB, MONGO_URI
from votechain.database.connection import create_client, get_database
from votechain.exceptions import (
    ChainIntegrityError,
    PartialIngestion,
    StoreError,
    ValidationError,
    VoteChainError,
)
from votechain.metrics import METRICS_CONTENT_TYPE, get_metrics_text, metrics
from votechain.pipeline import VotePipeline
from votechain.results import ResultsAggregator
from votechain.routes.chain_routes import router as chain_router
from votechain.routes.vote_routes import vote_router
from votechain.storage_mongo import MongoChainStore
from votechain.verification import ChainVerifier

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

# status code per error kind; lookups walk the exception's MRO
ERROR_STATUS = {
    ValidationError: 400,
    PartialIngestion: 500,
    ChainIntegrityError: 500,
    StoreError: 503,
}


def register_error_handlers(app: FastAPI) -> None:
    async def handle_votechain_error(request: Request, exc: VoteChainError):
        status_code = next((ERROR_STATUS[cls] for cls in type(exc).__mro__ if cls in ERROR_STATUS), 500)
        kind = type(exc).__name__
        metrics.errors.labels(kind=kind).inc()
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {kind}: {exc}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc}")
        return JSONResponse(status_code=status_code, content={"detail": str(exc), "error": kind})

    app.add_exception_handler(VoteChainError, handle_votechain_error)


def create_app(database=None) -> FastAPI:
    """
    Build the API. Without `database` the app connects to MONGO_URI on startup;
    tests pass an in-memory database instead.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = None
        db = database
        if db is None:
            client = create_client(MONGO_URI)
            db = get_database(client, MONGO_DB)

        store = MongoChainStore.from_database(db)
        await store.ensure_indexes()

        appender = BlockAppender(store)
        appender.start()

        app.state.store = store
        app.state.pipeline = VotePipeline(store, appender)
        app.state.results = ResultsAggregator(store)
        app.state.verifier = ChainVerifier(store)
        logger.info(f"VoteChain ready (database: {MONGO_DB if database is None else 'injected'})")

        try:
            yield
        finally:
            await appender.stop()
            if client is not None:
                client.close()
                logger.info("MongoDB connection closed")

    app = FastAPI(title="VoteChain - Hash-Chained Vote Ledger API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(vote_router)
    app.include_router(chain_router)

    @app.get("/metrics", tags=["Monitoring"])
    async def prometheus_metrics():
        return Response(content=get_metrics_text(), media_type=METRICS_CONTENT_TYPE)

    @app.get("/health", tags=["Monitoring"])
    async def health_check():
        return {"status": "healthy", "database": "MongoDB"}

    @app.get("/", tags=["Root"])
    def read_root():
        return {"message": "Welcome to the VoteChain API"}

    return app


app = create_app()
