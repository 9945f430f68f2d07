import pytest
from unittest.mock import MagicMock

from rich.panel import Panel
from rich.table import Table

from fetchgate.domain.models.common import ResourceKey
from fetchgate.domain.models.errors import ErrorKind
from fetchgate.domain.models.fetch import FetchedPayload, FetchFailure, Resolution
from fetchgate.infrastructure.cli.display import ConsoleDisplay

KEY = ResourceKey("KTE20CS001")

@pytest.fixture
def mock_console():
    """Fixture to create a mock rich Console object."""
    return MagicMock()

@pytest.fixture
def console_display(mock_console: MagicMock):
    """Fixture to create a ConsoleDisplay instance with a mocked console."""
    return ConsoleDisplay(console=mock_console)

def printed(mock_console: MagicMock):
    mock_console.print.assert_called_once()
    args, _ = mock_console.print.call_args
    return args[0]

def test_display_resolution_prints_payload_panel(console_display, mock_console):
    """A fresh upstream payload is shown in a panel titled with key and source."""
    result = Resolution(payload=FetchedPayload(body=b"<html>hi</html>", headers={}), from_cache=False)
    console_display.display_resolution(KEY, result)

    panel = printed(mock_console)
    assert isinstance(panel, Panel)
    assert "KTE20CS001" in panel.title
    assert "upstream" in panel.title
    assert panel.renderable.plain == "<html>hi</html>"

@pytest.mark.parametrize("from_cache, fallback, source", [
    (True, False, "cache"),
    (True, True, "cache"),
    (False, True, "fallback"),
])
def test_display_resolution_names_the_source(console_display, mock_console, from_cache, fallback, source):
    payload = FetchedPayload(body=b"x", headers={}, served_by_fallback=fallback)
    console_display.display_resolution(KEY, Resolution(payload=payload, from_cache=from_cache))
    assert source in printed(mock_console).title

def test_display_resolution_truncates_long_bodies(console_display, mock_console):
    payload = FetchedPayload(body=b"a" * 50, headers={})
    console_display.display_resolution(KEY, Resolution(payload=payload, from_cache=False), preview_chars=10)

    text = printed(mock_console).renderable.plain
    assert text.startswith("a" * 10 + "\n")
    assert "(50 bytes total)" in text

def test_display_resolution_failure_shows_error(console_display, mock_console):
    """Failures are routed to the error panel with kind and attempt count."""
    failure = FetchFailure(kind=ErrorKind.TRANSIENT_UPSTREAM, reason="Request failed with status code 503", attempts=6)
    console_display.display_resolution(KEY, failure)

    panel = printed(mock_console)
    assert "Error" in panel.title
    message = panel.renderable.plain
    assert "Request failed with status code 503" in message
    assert "transient_upstream" in message
    assert "6 attempt(s)" in message

def test_display_settings_renders_table(console_display, mock_console):
    console_display.display_settings({"port": 3000, "log_file": None})
    table = printed(mock_console)
    assert isinstance(table, Table)
    assert table.row_count == 2

def test_display_error(console_display, mock_console):
    """Test that display_error prints a red bordered panel."""
    console_display.display_error("Something went wrong")
    panel = printed(mock_console)
    assert panel.border_style == "red"
    assert panel.renderable.plain == "Something went wrong"

def test_display_info(console_display, mock_console):
    console_display.display_info("Process completed")
    assert printed(mock_console).plain == "Process completed"
