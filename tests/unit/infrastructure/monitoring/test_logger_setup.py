import logging

import pytest

from fetchgate.infrastructure.monitoring.logger_setup import resolve_level, setup_logging

@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)

@pytest.mark.parametrize("value, expected", [
    ("debug", logging.DEBUG),
    ("WARNING", logging.WARNING),
    (logging.ERROR, logging.ERROR),
    ("nonsense", logging.INFO),
])
def test_resolve_level(value, expected):
    assert resolve_level(value) == expected

def test_setup_logging_writes_to_file(restore_root_logger, tmp_path):
    log_file = tmp_path / "fetchgate.log"

    setup_logging(log_level="DEBUG", log_format="%(levelname)s:%(message)s", log_file=str(log_file))
    logging.getLogger("fetchgate.test").debug("cache swept")

    assert restore_root_logger.level == logging.DEBUG
    assert len(restore_root_logger.handlers) == 2
    for handler in restore_root_logger.handlers:
        handler.flush()
    assert "DEBUG:cache swept" in log_file.read_text()

def test_noisy_client_loggers_are_held_at_warning(restore_root_logger):
    setup_logging(log_level="DEBUG")
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING
