"""Runtime configuration for wp-post-sync.

Reads WordPress connection and cache settings from CLI args, environment
variables, .env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    WP_BASE_URL: WordPress REST base URL, e.g. https://example.com/wp-json/wp/v2 (required)
    WP_BEARER_TOKEN: Bearer token for authenticated requests (required)
    WP_CACHE_PATH: Local cache root (optional, default: ./wp-cache)
    WP_SYNC_LIMIT: Posts fetched per status per pass (optional, default: 20)
    WP_TIMEOUT: Read timeout in seconds (optional, default: 30)
    WP_INSECURE: Skip SSL verification (optional, default: false)
    WP_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = "wp-cache"
DEFAULT_SYNC_LIMIT = 20
DEFAULT_TIMEOUT = 30.0


class MissingConfigError(ValueError):
    """A required setting was not supplied by any configuration source."""


@dataclass
class Config:
    base_url: str
    bearer_token: str
    cache_path: str = DEFAULT_CACHE_PATH
    sync_limit: int = DEFAULT_SYNC_LIMIT
    timeout: float = DEFAULT_TIMEOUT
    insecure: bool = False
    debug: bool = False


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the URL is malformed, the token is empty, or a
            numeric setting is out of range.
    """
    config.base_url = config.base_url.strip()

    if not config.base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid WordPress URL '{config.base_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.base_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid WordPress URL '{config.base_url}': URL must include a hostname"
        )

    config.base_url = config.base_url.rstrip("/")

    if not config.bearer_token.strip():
        raise ValueError(
            "WordPress bearer token cannot be empty. Set WP_BEARER_TOKEN environment variable."
        )

    if not config.cache_path.strip():
        raise ValueError("Cache path cannot be empty.")

    if not (1 <= config.sync_limit <= 100):
        raise ValueError(
            f"Invalid sync limit {config.sync_limit}: must be between 1 and 100"
        )

    if config.timeout <= 0:
        raise ValueError(
            f"Invalid timeout {config.timeout}: must be positive"
        )

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _resolve_number(
    name: str,
    env_key: str,
    cli_value: float | None,
    fallbacks: dict,
    default: float,
    cast: type,
):
    """Resolve a numeric setting: CLI > env > YAML > default."""
    if cli_value is not None:
        return cast(cli_value)
    raw = os.getenv(env_key)
    if raw is not None:
        try:
            return cast(raw)
        except ValueError:
            raise ValueError(
                f"Invalid {env_key} '{raw}': must be a number"
            ) from None
    if fallbacks.get(name) is not None:
        return cast(fallbacks[name])
    return default


def load_config(
    url: str | None = None,
    token: str | None = None,
    cache_path: str | None = None,
    sync_limit: int | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        url: Override WordPress REST base URL.
        token: Override bearer token.
        cache_path: Override cache root directory.
        sync_limit: Override posts fetched per status per pass.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict of values from the YAML config file,
            as produced by ``config_schema.to_fallbacks()``.

    Returns:
        Validated Config instance.

    Raises:
        MissingConfigError: If the URL or token is missing after checking
            all sources.
        ValueError: If any value fails validation.
    """
    fb = yaml_fallbacks or {}

    base_url = url or os.getenv("WP_BASE_URL") or fb.get("base_url")
    if not base_url:
        raise MissingConfigError(
            "WordPress URL not found. Set WP_BASE_URL environment variable, "
            "pass --url CLI argument, or add 'base_url' to config.yml."
        )

    bearer_token = (
        token or os.getenv("WP_BEARER_TOKEN") or fb.get("bearer_token")
    )
    if not bearer_token:
        raise MissingConfigError(
            "WordPress bearer token not found. Set WP_BEARER_TOKEN environment "
            "variable, pass --token CLI argument, or add 'bearer_token' to config.yml."
        )

    final_cache_path = (
        cache_path
        or os.getenv("WP_CACHE_PATH")
        or fb.get("cache_path")
        or DEFAULT_CACHE_PATH
    )

    if insecure:
        final_insecure = True
    else:
        env_insecure = _get_bool_env("WP_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("WP_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    config = Config(
        base_url=base_url.strip(),
        bearer_token=bearer_token.strip(),
        cache_path=final_cache_path,
        sync_limit=_resolve_number(
            "sync_limit",
            "WP_SYNC_LIMIT",
            sync_limit,
            fb,
            DEFAULT_SYNC_LIMIT,
            int,
        ),
        timeout=_resolve_number(
            "timeout", "WP_TIMEOUT", None, fb, DEFAULT_TIMEOUT, float
        ),
        insecure=final_insecure,
        debug=final_debug,
    )

    validate_config(config)

    return config
