"""FastAPI entrypoint for the Feedback Flow purchase query engine."""
from __future__ import annotations

import logging
import sys
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, load_settings
from .http.routes import Services, request_validation_failure, router
from .repository import FeedbackFlowDB, InMemoryDB
from .repository.duckdb_store import open_store
from .search import FuzzyMatcher, SearchService
from .statistics import StatisticsEngine
from .status import PurchaseStatusAggregator
from .telemetry import events

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    package_logger = logging.getLogger("feedback_flow")
    package_logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    package_logger.handlers.clear()  # avoid duplicate logs if reloading
    package_logger.addHandler(handler)
    package_logger.propagate = False  # don't let Uvicorn re-handle it


def build_services(settings: Settings, db: FeedbackFlowDB) -> Services:
    return Services(
        settings=settings,
        status=PurchaseStatusAggregator(db),
        statistics=StatisticsEngine(db, statistics_limit=settings.statistics_limit),
        search=SearchService(
            db,
            matcher=FuzzyMatcher(threshold=settings.search_threshold),
            fields=settings.search_fields,
            max_limit=settings.search_max_limit,
        ),
    )


def create_app(settings: Optional[Settings] = None, db: Optional[FeedbackFlowDB] = None) -> FastAPI:
    """Wire storage and engine components into a FastAPI application."""

    settings = settings or load_settings()
    configure_logging(settings.log_level)
    if db is None:
        db = open_store(settings.db_path) or InMemoryDB()
        logger.info("Using %s storage", type(db).__name__)

    app = FastAPI(title="Feedback Flow")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.services = build_services(settings, db)
    app.add_exception_handler(RequestValidationError, request_validation_failure)
    app.include_router(router)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "recentErrors": events.error_counts()}

    return app


app = create_app()
