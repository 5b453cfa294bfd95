"""FastAPI backend - scored deals, lag signals, alpha ledger, feed status and news."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
import structlog
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from skewmarket.api.schemas import (
    AlphaResponse,
    CategoriesResponse,
    DealItem,
    DealsResponse,
    FeedStatus,
    FeedsStatusResponse,
    HealthResponse,
    LagItem,
    LagResponse,
    NewsResponse,
)
from skewmarket.config import Settings, get_settings
from skewmarket.deals.orchestrator import DealsOrchestrator
from skewmarket.exceptions import ConfigError, UpstreamError
from skewmarket.news.feed import NewsFeed

log = structlog.get_logger(__name__)


def _error_json(code: str, message: str, status_code: int = 404) -> JSONResponse:
    """Return consistent error JSON: { detail, code }."""
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "code": code},
    )


def create_app(
    orchestrator: DealsOrchestrator | None = None,
    news: NewsFeed | None = None,
    *,
    settings: Settings | None = None,
    run_background: bool = False,
) -> FastAPI:
    """Build the app around an orchestrator. With run_background the lifespan runs its poll loop and feeds."""
    settings = settings or (orchestrator.settings if orchestrator is not None else Settings())
    orch = orchestrator or DealsOrchestrator(settings)
    news_client: httpx.AsyncClient | None = None
    if news is None:
        news_client = httpx.AsyncClient(timeout=settings.gamma_timeout_sec, follow_redirects=True)
        news = NewsFeed(news_client, settings.news_base_url, settings.news_min_refetch_sec)
    news_feed = news

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop = asyncio.Event()
        task = None
        if run_background:
            task = asyncio.create_task(orch.run(stop_event=stop))
            log.info("api_background_started")
        yield
        if task is not None:
            stop.set()
            await task
        await orch.aclose()
        if news_client is not None:
            await news_client.aclose()

    app = FastAPI(title="SkewMarket API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.state.orchestrator = orch
    app.state.news = news_feed

    @app.exception_handler(UpstreamError)
    async def upstream_error(request: Request, exc: UpstreamError) -> JSONResponse:
        return _error_json("upstream_error", str(exc), 502)

    @app.exception_handler(ConfigError)
    async def config_error(request: Request, exc: ConfigError) -> JSONResponse:
        return _error_json("invalid_option", str(exc), 400)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/deals", response_model=DealsResponse)
    async def deals(
        filter_name: str = Query("verified", alias="filter", description="all, verified, mispricing, hot, highvolume, ending"),
        category: str | None = None,
        q: str | None = Query(None, description="Case-insensitive title search"),
        live: bool = Query(True, description="Overlay live odds from the CLOB feed"),
        limit: int = Query(100, ge=1, le=500),
    ) -> DealsResponse:
        items = orch.view(filter_name, category=category, search=q, live=live)
        return DealsResponse(
            deals=[DealItem.from_scored(s) for s in items[:limit]],
            total=len(items),
            last_update=orch.last_update,
            last_error=orch.last_error,
        )

    @app.get("/deals/categories", response_model=CategoriesResponse)
    async def deals_categories() -> CategoriesResponse:
        return CategoriesResponse(categories=orch.categories())

    @app.get("/lag", response_model=LagResponse)
    async def lag() -> LagResponse:
        return LagResponse(
            opportunities=[LagItem.from_opportunity(o) for o in orch.lag_opportunities()],
            spot_prices=dict(orch.spot_feed.prices),
        )

    @app.get("/alpha", response_model=AlphaResponse)
    async def alpha() -> AlphaResponse:
        return AlphaResponse(entries=orch.ledger.entries, stats=orch.ledger.stats())

    @app.get("/feeds/status", response_model=FeedsStatusResponse)
    async def feeds_status() -> FeedsStatusResponse:
        return FeedsStatusResponse(**orch.status())

    @app.post("/feeds/{name}/restart", response_model=FeedStatus)
    async def feeds_restart(name: str) -> FeedStatus:
        return FeedStatus(**orch.restart_feed(name))

    @app.get("/news", response_model=NewsResponse)
    async def news_list(category: str | None = None, refresh: bool = False) -> NewsResponse:
        articles = await news_feed.fetch(category, [s.event for s in orch.events], force=refresh)
        return NewsResponse(category=category or "General", articles=articles)

    return app


def run_api(
    host: str = "127.0.0.1",
    port: int = 8000,
    profile: str | None = None,
    config_dir: Path | None = None,
    with_feeds: bool = True,
    settings: Settings | None = None,
) -> None:
    import uvicorn

    settings = settings or get_settings(profile, config_dir)
    app = create_app(settings=settings, run_background=with_feeds)
    log.info("api_starting", host=host, port=port, with_feeds=with_feeds)
    uvicorn.run(app, host=host, port=port, log_level=settings.logging_level.lower())
