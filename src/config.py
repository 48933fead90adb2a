"""Environment-driven configuration for the workout mail monitor."""

import os
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Mapping, Optional

if TYPE_CHECKING:
    from src.mail.models import MessageFilter

DEFAULT_SENDER_DOMAIN = "mywellness.com"
DEFAULT_INTERVAL_MINUTES = 5
DEFAULT_MAX_RESULTS = 50
DEFAULT_IMAP_HOST = "outlook.office365.com"
DEFAULT_IMAP_PORT = 993
DEFAULT_IMAP_MAILBOX = "INBOX"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


class ConfigurationError(Exception):
    """Base exception for configuration problems."""

    pass


class ConfigurationMissingError(ConfigurationError):
    """Raised when a required configuration value is absent."""

    pass


class ConfigurationInvalidError(ConfigurationError):
    """Raised when a configuration value cannot be interpreted."""

    pass


class ProviderType(str, Enum):
    """Supported mail backends."""

    GMAIL = "gmail"
    IMAP = "imap"


class RunMode(str, Enum):
    """Cadence used to drive the monitor."""

    SCHEDULED = "scheduled"
    CONTINUOUS = "continuous"
    ONCE = "once"


# Older deployments configured the IMAP backend as "outlook"
_PROVIDER_ALIASES = {"outlook": ProviderType.IMAP}


@dataclass(frozen=True)
class AuthConfig:
    """Credentials for the IMAP backend.

    The refresh token is used as the IMAP login password (an app
    password), not exchanged for an OAuth access token.
    """

    client_id: str
    client_secret: str
    refresh_token: str


@dataclass(frozen=True)
class ProviderConfig:
    """Immutable settings for a single mail provider instance."""

    provider: ProviderType
    email: str
    domain: str = DEFAULT_SENDER_DOMAIN
    auth: Optional[AuthConfig] = None
    require_attachments: bool = False
    unread_only: bool = False
    max_results: int = DEFAULT_MAX_RESULTS
    imap_host: str = DEFAULT_IMAP_HOST
    imap_port: int = DEFAULT_IMAP_PORT
    imap_mailbox: str = DEFAULT_IMAP_MAILBOX

    def to_filter(self) -> "MessageFilter":
        """Build the message filter the monitor passes to each fetch."""
        # src.mail imports this module, so resolve the model lazily
        from src.mail.models import MessageFilter

        return MessageFilter(
            from_domain=self.domain,
            has_attachments=self.require_attachments,
            unread_only=self.unread_only,
        )


@dataclass(frozen=True)
class AppConfig:
    """Top-level settings for one process invocation."""

    provider: ProviderConfig
    interval_minutes: int = DEFAULT_INTERVAL_MINUTES
    mode: RunMode = RunMode.SCHEDULED


def parse_provider(value: Optional[str]) -> ProviderType:
    """Map an EMAIL_PROVIDER value to a ProviderType."""
    if not value:
        raise ConfigurationMissingError(
            "EMAIL_PROVIDER must be set to either 'gmail' or 'imap'"
        )
    key = value.strip().lower()
    if key in _PROVIDER_ALIASES:
        return _PROVIDER_ALIASES[key]
    try:
        return ProviderType(key)
    except ValueError:
        raise ConfigurationInvalidError(
            f"EMAIL_PROVIDER must be either 'gmail' or 'imap', got {value!r}"
        ) from None


def parse_mode(value: Optional[str]) -> RunMode:
    """Map a run mode name to a RunMode. Empty means scheduled."""
    if not value:
        return RunMode.SCHEDULED
    try:
        return RunMode(value.strip().lower())
    except ValueError:
        raise ConfigurationInvalidError(
            f"Invalid mode {value!r}. Use: scheduled, continuous, or once"
        ) from None


def _parse_bool(name: str, value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationInvalidError(f"{name} must be a boolean, got {value!r}")


def _parse_positive_int(name: str, value: Optional[str], default: int) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise ConfigurationInvalidError(f"{name} must be an integer, got {value!r}") from None
    if parsed < 1:
        raise ConfigurationInvalidError(f"{name} must be at least 1, got {parsed}")
    return parsed


def _load_imap_auth(env: Mapping[str, str]) -> AuthConfig:
    client_id = env.get("IMAP_CLIENT_ID", "")
    client_secret = env.get("IMAP_CLIENT_SECRET", "")
    refresh_token = env.get("IMAP_REFRESH_TOKEN", "")

    missing = [
        name
        for name, value in (
            ("IMAP_CLIENT_ID", client_id),
            ("IMAP_CLIENT_SECRET", client_secret),
            ("IMAP_REFRESH_TOKEN", refresh_token),
        )
        if not value
    ]
    if missing:
        raise ConfigurationMissingError(
            f"Missing required IMAP configuration: {', '.join(missing)}. "
            "Check your environment variables."
        )

    return AuthConfig(
        client_id=client_id,
        client_secret=client_secret,
        refresh_token=refresh_token,
    )


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    mode: Optional[str] = None,
    interval_minutes: Optional[int] = None,
) -> AppConfig:
    """Build the application configuration from environment variables.

    Args:
        environ: Mapping to read from. Defaults to os.environ.
        mode: Run mode override (e.g. from the command line).
            Takes precedence over MONITOR_MODE.
        interval_minutes: Poll interval override. Takes precedence
            over MONITOR_INTERVAL_MINUTES.

    Returns:
        Fully validated AppConfig

    Raises:
        ConfigurationMissingError: If a required value is absent
        ConfigurationInvalidError: If a value cannot be parsed
    """
    env = os.environ if environ is None else environ

    provider = parse_provider(env.get("EMAIL_PROVIDER"))

    email = env.get("EMAIL_ADDRESS", "").strip()
    if not email:
        raise ConfigurationMissingError("EMAIL_ADDRESS is required in environment variables.")

    auth = _load_imap_auth(env) if provider is ProviderType.IMAP else None

    provider_config = ProviderConfig(
        provider=provider,
        email=email,
        domain=env.get("SENDER_DOMAIN") or DEFAULT_SENDER_DOMAIN,
        auth=auth,
        require_attachments=_parse_bool(
            "REQUIRE_ATTACHMENTS", env.get("REQUIRE_ATTACHMENTS"), False
        ),
        unread_only=_parse_bool("UNREAD_ONLY", env.get("UNREAD_ONLY"), False),
        max_results=_parse_positive_int("MAX_RESULTS", env.get("MAX_RESULTS"), DEFAULT_MAX_RESULTS),
        imap_host=env.get("IMAP_HOST") or DEFAULT_IMAP_HOST,
        imap_port=_parse_positive_int("IMAP_PORT", env.get("IMAP_PORT"), DEFAULT_IMAP_PORT),
        imap_mailbox=env.get("IMAP_MAILBOX") or DEFAULT_IMAP_MAILBOX,
    )

    if interval_minutes is not None:
        interval = _parse_positive_int("--interval", str(interval_minutes), DEFAULT_INTERVAL_MINUTES)
    else:
        interval = _parse_positive_int(
            "MONITOR_INTERVAL_MINUTES",
            env.get("MONITOR_INTERVAL_MINUTES"),
            DEFAULT_INTERVAL_MINUTES,
        )

    return AppConfig(
        provider=provider_config,
        interval_minutes=interval,
        mode=parse_mode(mode if mode is not None else env.get("MONITOR_MODE")),
    )
