"""Entry point for the asset aggregator.

Wires all components together, runs the periodic jobs and serves the
HTTP/WebSocket API from a single asyncio event loop via uvicorn's
programmatic API and FastAPI's lifespan context manager.

Component wiring order (in build_components), reversed on shutdown:
1. AppSettings (configuration)
2. Logging setup
3. KeyValueStore (Redis or in-memory) and CacheService
4. One httpx.AsyncClient per provider
5. Provider adapters (DexScreener, Jupiter, GeckoTerminal; merge precedence order)
6. AggregationOrchestrator
7. PubSubChannel and ChangeDetector
8. Scheduler (fetch, detect, cache_cleanup jobs)
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
import uvicorn
from fastapi import FastAPI

from aggregator.api.routes.ws import TOKEN_UPDATES_GROUP, SubscriptionHub
from aggregator.cache.service import CacheService
from aggregator.cache.store import InMemoryStore, KeyValueStore, RedisStore
from aggregator.config import AppSettings
from aggregator.logging import get_logger, setup_logging
from aggregator.orchestrator import AggregationOrchestrator
from aggregator.providers.base import ProviderAdapter
from aggregator.providers.dexscreener import DexScreenerProvider
from aggregator.providers.geckoterminal import GeckoTerminalProvider
from aggregator.providers.jupiter import JupiterProvider
from aggregator.providers.retry import RetryPolicy
from aggregator.realtime.detector import ChangeDetector
from aggregator.realtime.pubsub import PubSubChannel
from aggregator.scheduler import Scheduler


@dataclass
class Components:
    """Explicitly constructed runtime dependencies."""

    settings: AppSettings
    store: KeyValueStore
    cache: CacheService
    http_clients: list[httpx.AsyncClient]
    providers: list[ProviderAdapter]
    orchestrator: AggregationOrchestrator
    channel: PubSubChannel
    detector: ChangeDetector
    scheduler: Scheduler

    async def close(self) -> None:
        """Release resources in reverse construction order."""
        await self.scheduler.stop()
        for client in self.http_clients:
            await client.aclose()
        await self.store.close()


def _http_client(base_url: str, settings: AppSettings, timeout: float | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout or settings.providers.timeout_seconds,
        headers={"User-Agent": settings.providers.user_agent, "Accept": "application/json"},
    )


def build_components(settings: AppSettings) -> Components:
    """Build the full dependency graph from settings. Starts nothing."""
    logger = get_logger("aggregator.main")
    provider_settings = settings.providers

    # 3. Cache
    if settings.cache.backend == "redis":
        store: KeyValueStore = RedisStore.from_url(settings.cache.redis_url)
    else:
        store = InMemoryStore()
    cache = CacheService(store, prefix=settings.cache.prefix, default_ttl=settings.cache.ttl)

    # 4-5. HTTP clients and adapters
    retry_policy = RetryPolicy(
        max_retries=provider_settings.max_retries,
        initial_delay=provider_settings.retry_initial_delay,
        max_delay=provider_settings.retry_max_delay,
        backoff_factor=provider_settings.retry_backoff_factor,
    )
    dex_client = _http_client(provider_settings.dexscreener_base_url, settings)
    gecko_client = _http_client(provider_settings.geckoterminal_base_url, settings)
    jupiter_client = _http_client(
        provider_settings.jupiter_base_url, settings, provider_settings.jupiter_timeout_seconds
    )
    providers: list[ProviderAdapter] = [
        DexScreenerProvider(
            dex_client,
            provider_settings.dexscreener_rate_limit,
            retry_policy,
            provider_settings.sol_usd_price,
        ),
        JupiterProvider(
            jupiter_client,
            provider_settings.jupiter_rate_limit,
            retry_policy,
            provider_settings.sol_usd_price,
            provider_settings.jupiter_timeout_seconds,
        ),
        GeckoTerminalProvider(
            gecko_client,
            provider_settings.geckoterminal_rate_limit,
            retry_policy,
            provider_settings.sol_usd_price,
        ),
    ]

    # 6. Orchestrator
    orchestrator = AggregationOrchestrator(providers, cache, settings.cache)

    # 7. Real-time
    channel = PubSubChannel()
    detector = ChangeDetector(orchestrator, channel, settings.detector)

    # 8. Scheduler
    scheduler = Scheduler(shutdown_timeout=settings.scheduler.shutdown_timeout)
    scheduler.add("fetch", settings.scheduler.fetch_interval, orchestrator.aggregate)
    scheduler.add("detect", settings.detector.interval, detector.tick)
    scheduler.add(
        "cache_cleanup",
        settings.scheduler.cleanup_interval,
        cache.cleanup,
        run_immediately=False,
    )

    logger.info(
        "components_built",
        cache_backend=settings.cache.backend,
        providers=[p.name for p in providers],
    )

    return Components(
        settings=settings,
        store=store,
        cache=cache,
        http_clients=[dex_client, jupiter_client, gecko_client],
        providers=providers,
        orchestrator=orchestrator,
        channel=channel,
        detector=detector,
        scheduler=scheduler,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start background jobs on startup; stop them and close clients on shutdown."""
    logger = get_logger("aggregator.main")
    components: Components = app.state.components
    hub: SubscriptionHub = app.state.hub

    app.state.orchestrator = components.orchestrator
    unsubscribe = components.channel.subscribe(
        components.settings.detector.topic, hub.group_publisher(TOKEN_UPDATES_GROUP)
    )
    components.scheduler.start()

    logger.info("lifespan_started", jobs=components.scheduler.task_names)

    yield

    unsubscribe()
    await components.close()
    logger.info("aggregator_stopped")


async def run() -> None:
    """Run the aggregator.

    With the API enabled (API_ENABLED=true, the default) uvicorn serves the
    app and the lifespan owns component startup/shutdown. Otherwise only
    the scheduled jobs run until SIGINT/SIGTERM.
    """
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("aggregator.main")

    # 3-8. Build all components
    components = build_components(settings)

    if settings.api.enabled:
        from aggregator.api.app import create_app

        app = create_app(lifespan=lifespan, settings=settings.api)
        app.state.components = components

        logger.info("starting_with_api", host=settings.api.host, port=settings.api.port)

        config = uvicorn.Config(
            app,
            host=settings.api.host,
            port=settings.api.port,
            log_level="warning",
        )
        server = uvicorn.Server(config)
        await server.serve()
        return

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    logger.info("starting_without_api", jobs=components.scheduler.task_names)
    components.scheduler.start()
    try:
        await stop_event.wait()
    finally:
        await components.close()
        logger.info("aggregator_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
