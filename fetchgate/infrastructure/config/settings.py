"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a YAML
configuration file (~/.fetchgate/config.yaml). ``get_gateway_settings``
turns the raw values into a validated ``GatewaySettings`` object.
"""

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from fetchgate.domain.models.errors import ConfigurationError

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".fetchgate"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULT_UPSTREAM_URL_TEMPLATE = "https://ktu.edu.in/results?roll={key}"
DEFAULT_USER_AGENT = "fetchgate/1.0 (+contact@yourdomain.com)"
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}  # For testing purposes
_loaded = False

def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values defined in ``get_gateway_settings``

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update({str(k).lower(): v for k, v in yaml_config.items()})
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug(".env file not found at or above current directory.")

    # 3. Environment Variables (Highest priority) are handled in get_config
    _loaded = True

def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (key upper-cased)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper()
    if env_key in os.environ:
        value = os.environ[env_key]
        # Try to convert common types
        if value.lower() == 'true':
            return True
        elif value.lower() == 'false':
            return False
        try:
            if '.' in value:
                return float(value)
            else:
                return int(value)
        except (ValueError, TypeError):
            return value

    if key in _config:
        return _config[key]

    return default

def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    try:
        cwd = Path.cwd()
        for path in [cwd] + list(cwd.parents):
            env_path = path / ENV_FILE_NAME
            if env_path.is_file():
                return env_path
    except OSError as e:
        logger.warning(f"Error searching for .env file: {e}")
    return None

# --- Typed settings ---

@dataclass(frozen=True)
class GatewaySettings:
    """Effective gateway configuration. Durations are in seconds."""
    host: str
    port: int
    max_concurrent: int
    request_timeout: float
    max_retries: int
    backoff_base: float
    backoff_max: Optional[float]
    cache_ttl: float
    cache_check_period: float
    cache_max_items: Optional[int]
    fallback_enabled: bool
    upstream_url_template: str
    user_agent: str
    log_level: str
    log_file: Optional[str]
    log_format: str

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

def _as_int(key: str, default: int, minimum: int) -> int:
    raw = get_config(key, default)
    if isinstance(raw, float) and not raw.is_integer():
        raise ConfigurationError(f"{key.upper()} must be a whole number, got {raw!r}")
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key.upper()} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigurationError(f"{key.upper()} must be >= {minimum}, got {value}")
    return value

def _as_bool(key: str, default: bool) -> bool:
    raw = get_config(key, default)
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return bool(raw)
    if isinstance(raw, str) and raw.strip().lower() in {"1", "true", "yes", "on"}:
        return True
    if isinstance(raw, str) and raw.strip().lower() in {"0", "false", "no", "off", ""}:
        return False
    raise ConfigurationError(f"{key.upper()} must be a boolean, got {raw!r}")

def get_gateway_settings() -> GatewaySettings:
    """Reads and validates every gateway option.

    Millisecond options (REQUEST_TIMEOUT, BACKOFF_BASE, BACKOFF_MAX) are
    converted to seconds.

    Raises:
        ConfigurationError: If any value is malformed or out of range.
    """
    load_configuration()

    request_timeout_ms = _as_int('request_timeout', 8000, minimum=1)
    backoff_base_ms = _as_int('backoff_base', 300, minimum=0)
    backoff_max_ms = _as_int('backoff_max', 0, minimum=0)
    cache_max_items = _as_int('cache_max_items', 0, minimum=0)

    template = str(get_config('upstream_url_template', DEFAULT_UPSTREAM_URL_TEMPLATE))
    if '{key}' not in template:
        raise ConfigurationError("UPSTREAM_URL_TEMPLATE must contain a '{key}' placeholder")

    log_file = get_config('log_file')

    return GatewaySettings(
        host=str(get_config('host', '0.0.0.0')),
        port=_as_int('port', 3000, minimum=1),
        max_concurrent=_as_int('max_concurrent', 4, minimum=1),
        request_timeout=request_timeout_ms / 1000.0,
        max_retries=_as_int('max_retries', 5, minimum=0),
        backoff_base=backoff_base_ms / 1000.0,
        backoff_max=(backoff_max_ms / 1000.0) if backoff_max_ms else None,
        cache_ttl=float(_as_int('cache_ttl', 300, minimum=1)),
        cache_check_period=float(_as_int('cache_check_period', 60, minimum=0)),
        cache_max_items=cache_max_items or None,
        fallback_enabled=_as_bool('playwright_fallback', False),
        upstream_url_template=template,
        user_agent=str(get_config('user_agent', DEFAULT_USER_AGENT)),
        log_level=str(get_config('log_level', 'INFO')).upper(),
        log_file=str(log_file) if log_file else None,
        log_format=str(get_config('log_format', DEFAULT_LOG_FORMAT)),
    )

# --- Testing helpers ---

def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")

def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
