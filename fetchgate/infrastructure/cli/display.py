import logging
from typing import Any, Mapping, Optional

from rich.box import HEAVY, ROUNDED
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from fetchgate.domain.interfaces.user_interface import UserInterface
from fetchgate.domain.models.common import ResourceKey
from fetchgate.domain.models.fetch import FetchFailure, ResolveResult

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_CHARS = 2000

class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_resolution(self, key: ResourceKey, result: ResolveResult, **kwargs: Any) -> None:
        """Shows a resolved payload (truncated) or the failure reason.

        Args:
            key: The key that was resolved.
            result: Resolution or FetchFailure.
            **kwargs: ``preview_chars`` limits how much of the body is printed.
        """
        if isinstance(result, FetchFailure):
            self.display_error(f"{key}: {result.reason} ({result.kind.value}, {result.attempts} attempt(s))")
            return

        preview_chars = kwargs.get("preview_chars", DEFAULT_PREVIEW_CHARS)
        payload = result.payload
        body = payload.text
        if len(body) > preview_chars:
            body = body[:preview_chars] + f"\n... ({len(payload.body)} bytes total)"

        source = "cache" if result.from_cache else ("fallback" if payload.served_by_fallback else "upstream")
        logger.debug(f"display_resolution: key={key}, source={source}, bytes={len(payload.body)}")
        panel = Panel(
            Text(body),
            title=f"[bold cyan]{escape(key)}[/bold cyan] [dim]·[/dim] [green]{source}[/green]",
            border_style="cyan",
            box=ROUNDED,
            padding=(0, 1),
        )
        self.console.print(panel)

    def display_settings(self, settings: Mapping[str, Any]) -> None:
        table = Table(show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("Setting", style="bold")
        table.add_column("Value")
        for name, value in settings.items():
            table.add_row(name, "-" if value is None else str(value))
        self.console.print(table)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
        """
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self.console.print(Text(info_message, style="cyan"))
