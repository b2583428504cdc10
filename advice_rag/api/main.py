"""
FastAPI application for the advice RAG service.

Startup loads the corpus, builds (or loads) the vector index and opens the
message store once; every request then reads the same immutable index.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, Depends, Query
from fastapi.middleware.cors import CORSMiddleware

from .chat import router as chat_router, get_services
from .schemas import BrowseResponse, HealthResponse
from ..core import config
from ..core.config import VERSION, debug_enabled
from ..core.corpus import CorpusRepository
from ..core.db import health_check
from ..core.errors import ConfigurationError
from ..core.messages import MessageStore
from ..generation.llm import ILanguageModel
from ..generation.pipeline import GenerationPipeline
from ..util.logging import logger
from ..vector.embeddings import IEmbeddingProvider
from ..vector.index import VectorIndex
from ..vector.search import SemanticSearchEngine
from ..vector.selection import QualitySelector


@dataclass
class AppServices:
    """Long-lived objects shared by all requests."""
    corpus: CorpusRepository
    index: VectorIndex
    provider: IEmbeddingProvider
    language_model: ILanguageModel
    store: MessageStore
    pipeline: GenerationPipeline


def build_services(corpus: CorpusRepository, provider: IEmbeddingProvider,
                   language_model: ILanguageModel, store: MessageStore,
                   index: Optional[VectorIndex] = None) -> AppServices:
    """Wire the pipeline from its parts, building the index when none is given."""
    if index is None:
        index = VectorIndex.build(corpus, provider)
    pipeline = GenerationPipeline(
        search_engine=SemanticSearchEngine(index, provider),
        selector=QualitySelector(),
        language_model=language_model,
        store=store,
    )
    return AppServices(
        corpus=corpus,
        index=index,
        provider=provider,
        language_model=language_model,
        store=store,
        pipeline=pipeline,
    )


def load_services() -> AppServices:
    """
    Build services from configuration.

    Raises:
        ConfigurationError: on invalid settings or missing credentials
        IndexBuildError: if the index can be neither loaded nor computed
    """
    issues = config.validate_config()
    if issues:
        raise ConfigurationError("Invalid configuration: " + "; ".join(issues))

    config.ensure_data_directories()
    provider = config.get_embedding_provider()
    language_model = config.get_language_model()
    corpus = CorpusRepository.from_csv(config.CORPUS_PATH)
    store = MessageStore()
    return build_services(corpus, provider, language_model, store)


def create_app(services: Optional[AppServices] = None) -> FastAPI:
    """Create the application. Pass `services` to skip configuration-driven startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services is None:
            app.state.services = await asyncio.to_thread(load_services)
        else:
            app.state.services = services
        logger.log_operation("app.startup", "success", {
            "entries": len(app.state.services.corpus),
            "embedding_model": app.state.services.provider.model_id,
            "language_model": app.state.services.language_model.model_name,
        })
        yield
        logger.log_operation("app.shutdown", "success")

    app = FastAPI(
        title="Advice RAG API",
        version=VERSION,
        description="Retrieval-augmented advice chat over a curated corpus",
        docs_url="/docs" if debug_enabled() else None,
        redoc_url="/redoc" if debug_enabled() else None,
        lifespan=lifespan,
    )

    # Add CORS middleware to allow frontend connections
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5000", "http://127.0.0.1:5000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat_router)

    @app.get("/health", response_model=HealthResponse)
    def health_check_endpoint(services=Depends(get_services)):
        """Check system health."""
        db_health = health_check(services.store.db_path)
        return HealthResponse(
            status="healthy" if db_health else "unhealthy",
            version=VERSION,
            db_health=db_health,
            corpus_size=len(services.corpus),
            embedding_model=services.provider.model_id,
            language_model=services.language_model.model_name,
        )

    @app.get("/api/advice/search", response_model=BrowseResponse)
    def browse_advice(q: str = "", category: str = "", subCategory: str = "",
                      page: int = Query(1, ge=1), services=Depends(get_services)):
        """Keyword browse over the corpus, 1-based pages."""
        result = services.corpus.browse(q=q, category=category, sub_category=subCategory, page=page)
        return BrowseResponse(**result.to_dict())

    return app


app = create_app()
