"""Jira connection configuration.

Reads Jira connection settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    JIRA_URL: Jira site URL (required)
    JIRA_EMAIL: Account email for basic auth (required)
    JIRA_API_TOKEN: API token for basic auth (required)
    JIRA_INSECURE: Skip SSL verification (optional, default: false)
    JIRA_CONNECT_TIMEOUT: Connect timeout in seconds (optional, default: 10)
    JIRA_READ_TIMEOUT: Read timeout in seconds (optional, default: 60)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


@dataclass
class Config:
    jira_url: str
    email: str
    api_token: str
    insecure: bool = False
    debug: bool = False
    connect_timeout: float = 10.0
    read_timeout: float = 60.0


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If URL format is invalid, credentials are empty, or a
            timeout is not positive.
    """
    config.jira_url = config.jira_url.strip()

    if not config.jira_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid Jira URL '{config.jira_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.jira_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid Jira URL '{config.jira_url}': URL must include a hostname"
        )

    config.jira_url = config.jira_url.removesuffix("/")

    if not config.email.strip():
        raise ValueError(
            "Jira email cannot be empty. Set JIRA_EMAIL environment variable."
        )

    if not config.api_token.strip():
        raise ValueError(
            "Jira API token cannot be empty. Set JIRA_API_TOKEN environment variable."
        )

    if config.connect_timeout <= 0 or config.read_timeout <= 0:
        raise ValueError("Jira timeouts must be positive numbers of seconds")

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


def _get_timeout(key: str, fallback: float | None, default: float) -> float:
    raw = os.getenv(key)
    if raw is not None:
        try:
            return float(raw)
        except ValueError:
            raise ValueError(
                f"Invalid {key} '{raw}': must be a number of seconds"
            ) from None
    if fallback is not None:
        return float(fallback)
    return default


def load_config(
    url: str | None = None,
    email: str | None = None,
    api_token: str | None = None,
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
        url: Override Jira URL.
        email: Override account email.
        api_token: Override API token.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict of values from the YAML config ``jira``
            section.  Used when CLI arg and env var are both unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If URL, email, or API token is missing after checking
            all sources.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > error ---

    jira_url = url or os.getenv("JIRA_URL") or fb.get("url")
    if not jira_url:
        raise ValueError(
            "Jira URL not found. Set JIRA_URL environment variable, "
            "pass --url CLI argument, or add 'url' to config.yml."
        )

    jira_email = email or os.getenv("JIRA_EMAIL") or fb.get("email")
    if not jira_email:
        raise ValueError(
            "Jira email not found. Set JIRA_EMAIL environment variable, "
            "pass --email CLI argument, or add 'email' to config.yml."
        )

    token = api_token or os.getenv("JIRA_API_TOKEN") or fb.get("api_token")
    if not token:
        raise ValueError(
            "Jira API token not found. Set JIRA_API_TOKEN environment variable "
            "or add 'api_token' to config.yml."
        )

    # --- Boolean fields: CLI > env > YAML > default ---

    if insecure:
        final_insecure = True
    else:
        env_insecure = _get_bool_env("JIRA_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("JIRA_DEBUG")
        final_debug = bool(env_debug) if env_debug is not None else False

    # --- Numeric fields: env > YAML > default ---

    config = Config(
        jira_url=jira_url.strip(),
        email=jira_email.strip(),
        api_token=token.strip(),
        insecure=final_insecure,
        debug=final_debug,
        connect_timeout=_get_timeout(
            "JIRA_CONNECT_TIMEOUT", fb.get("connect_timeout"), 10.0
        ),
        read_timeout=_get_timeout(
            "JIRA_READ_TIMEOUT", fb.get("read_timeout"), 60.0
        ),
    )

    validate_config(config)

    return config
