"""Main entry point for the fetchgate application.

Sets up the Typer CLI application, performs dependency injection
(Composition Root) and defines the CLI commands: ``serve`` runs the HTTP
gateway, ``fetch`` resolves a single key, ``show-config`` prints settings.
"""

import asyncio
import dataclasses
import logging
from typing import Annotated, Any, Coroutine, Dict, Optional, TypeVar

import typer
import uvicorn

# --- Core Layer ---
from fetchgate.core.services.fetch_orchestrator import FetchOrchestrator

# --- Domain Layer ---
from fetchgate.domain.events.fetch_events import EventSink, log_event
from fetchgate.domain.models.common import UpstreamTemplate, parse_resource_key
from fetchgate.domain.models.errors import ConfigurationError, EmptyResourceKeyError
from fetchgate.domain.models.fetch import FetchFailure

# --- Infrastructure Layer ---
from fetchgate.infrastructure.cache.caching_service import ExpiringCache
from fetchgate.infrastructure.cli.display import ConsoleDisplay
from fetchgate.infrastructure.config.settings import GatewaySettings, get_gateway_settings
from fetchgate.infrastructure.fetchers.browser_fetcher import PlaywrightFetchStrategy
from fetchgate.infrastructure.fetchers.http_fetcher import HttpxFetchStrategy
from fetchgate.infrastructure.monitoring.logger_setup import setup_logging
from fetchgate.infrastructure.resilience.admission_gate import AdmissionGate
from fetchgate.infrastructure.resilience.api_retry import RetryingFetcher, RetryPolicy
from fetchgate.infrastructure.resilience.fallback import FallbackEscalator
from fetchgate.infrastructure.web.app import create_app

logger = logging.getLogger(__name__)

T = TypeVar("T")

# --- Dependency Injection Container (Manual) ---

def create_dependencies(settings: GatewaySettings, event_sink: EventSink = log_event) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the gateway.

    This acts as the Composition Root: the cache and the admission gate are
    built once here and shared by every request.
    """
    logger.info("Initializing gateway dependencies...")
    dependencies: Dict[str, Any] = {}

    dependencies['cache'] = ExpiringCache(
        default_ttl=settings.cache_ttl,
        max_items=settings.cache_max_items,
    )
    dependencies['gate'] = AdmissionGate(max_concurrent=settings.max_concurrent)

    dependencies['primary_strategy'] = HttpxFetchStrategy(
        user_agent=settings.user_agent,
        timeout=settings.request_timeout,
    )
    strategies = [dependencies['primary_strategy']]

    dependencies['fallback_strategy'] = None
    if settings.fallback_enabled:
        dependencies['fallback_strategy'] = PlaywrightFetchStrategy(user_agent=settings.user_agent)
        strategies.append(dependencies['fallback_strategy'])
        logger.info("Playwright fallback strategy enabled.")

    dependencies['retry_policy'] = RetryPolicy(
        max_retries=settings.max_retries,
        backoff_base=settings.backoff_base,
        timeout=settings.request_timeout,
        backoff_max=settings.backoff_max,
    )
    dependencies['escalator'] = FallbackEscalator(
        primary=RetryingFetcher(dependencies['primary_strategy'], event_sink=event_sink),
        secondary=dependencies['fallback_strategy'],
        event_sink=event_sink,
    )
    dependencies['orchestrator'] = FetchOrchestrator(
        cache=dependencies['cache'],
        gate=dependencies['gate'],
        escalator=dependencies['escalator'],
        upstream=UpstreamTemplate(settings.upstream_url_template),
        retry_policy=dependencies['retry_policy'],
        cache_ttl=settings.cache_ttl,
        fallback_enabled=settings.fallback_enabled,
        event_sink=event_sink,
        strategies=strategies,
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies

# --- Typer App Definition ---
app = typer.Typer(
    name="fetchgate",
    help="fetchgate: resilient fetch-and-serve gateway with caching, admission control, retries and browser fallback.",
    add_completion=False,
)

# --- Helpers ---

def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Runs an async command body from a sync Typer command."""
    return asyncio.run(coro)

def _load_settings(ui: ConsoleDisplay) -> GatewaySettings:
    try:
        settings = get_gateway_settings()
    except ConfigurationError as e:
        ui.display_error(f"Invalid configuration: {e}")
        raise typer.Exit(code=1)
    setup_logging(log_level=settings.log_level, log_format=settings.log_format, log_file=settings.log_file)
    return settings

# --- CLI Commands ---

@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address (defaults to HOST).")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port (defaults to PORT).")] = None,
):
    """Run the HTTP gateway."""
    ui = ConsoleDisplay()
    settings = _load_settings(ui)
    settings = dataclasses.replace(settings, host=host or settings.host, port=port or settings.port)

    dependencies = create_dependencies(settings)
    web_app = create_app(
        dependencies['orchestrator'],
        cache=dependencies['cache'],
        sweep_interval=settings.cache_check_period,
    )
    ui.display_info(f"fetchgate listening on {settings.host}:{settings.port}")
    logger.info(f"PLAYWRIGHT_FALLBACK={settings.fallback_enabled}")
    uvicorn.run(web_app, host=settings.host, port=settings.port, log_config=None)

@app.command()
def fetch(
    roll: Annotated[str, typer.Argument(help="Resource key to resolve (e.g. a roll number).")],
    fallback: Annotated[
        Optional[bool],
        typer.Option("--fallback/--no-fallback", help="Override PLAYWRIGHT_FALLBACK for this call."),
    ] = None,
):
    """Resolve a single key once and print the result."""
    ui = ConsoleDisplay()
    try:
        key = parse_resource_key(roll)
    except EmptyResourceKeyError:
        ui.display_error("roll argument must not be empty")
        raise typer.Exit(code=1)

    settings = _load_settings(ui)
    if fallback is not None:
        settings = dataclasses.replace(settings, fallback_enabled=fallback)
    orchestrator: FetchOrchestrator = create_dependencies(settings)['orchestrator']

    async def _resolve_once():
        try:
            return await orchestrator.resolve(key)
        finally:
            await orchestrator.close()

    result = run_async(_resolve_once())
    ui.display_resolution(key, result)
    if isinstance(result, FetchFailure):
        raise typer.Exit(code=1)

@app.command(name="show-config")
def show_config_command():
    """Print the effective configuration."""
    ui = ConsoleDisplay()
    try:
        settings = get_gateway_settings()
    except ConfigurationError as e:
        ui.display_error(f"Invalid configuration: {e}")
        raise typer.Exit(code=1)
    ui.display_settings(settings.as_dict())

# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()

if __name__ == "__main__":
    cli_entry_point()
