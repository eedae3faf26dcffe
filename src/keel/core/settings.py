"""Process settings: read once from the environment, validated, then frozen.

``load_settings()`` is the only way production code obtains a ``Settings``.
It reads the raw strings through a pydantic-settings source (process
environment first, then an optional ``.env`` file), parses every value,
and raises :class:`~keel.core.errors.ConfigError` naming the offending
variable on the first failure.  There is no partial or degraded startup.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    A service that starts with a half-understood configuration fails later,
    at a worse time, with a worse message.  Parse everything up front.

Features:
    - **Settings:** frozen dataclass, shared read-only for the process lifetime
    - **CorsPolicy:** Disabled | AllowAny | AllowList(origins), mutually exclusive
    - **RateLimitPolicy:** sustained rps, burst, trust-proxy flag; absent = disabled
    - **Cross-field rule:** production always logs JSON

Environment:
    ==========================  ===============  =====================================
    variable                    default          accepted values
    ==========================  ===============  =====================================
    HTTP_HOST                   127.0.0.1        IPv4 / IPv6 address
    HTTP_PORT                   3000             0..65535
    APP_ENV                     development      prod | production | anything else
    LOG_FORMAT                  pretty           json | anything else
    LOG_LEVEL                   info             debug | info | warning | error | critical
    APP_CORS_ORIGINS            (empty)          "" | "*" | "https://a,https://b"
    APP_RATELIMIT_RPS           (unset)          integer > 0
    APP_RATELIMIT_BURST         20               integer > 0
    APP_RATELIMIT_TRUST_PROXY   false            true/1/yes | false/0/no
    ==========================  ===============  =====================================

Tags:
    settings, configuration, pydantic-settings, environment, keel, fail-fast

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

from keel.core.errors import ConfigError

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
DEFAULT_BURST = 20

_U16_MAX = 0xFFFF
_U32_MAX = 0xFFFF_FFFF
_UNSIGNED = re.compile(r"\+?[0-9]+")
# Visible ASCII plus space and tab: what an HTTP header value may carry.
_HEADER_SAFE = re.compile(r"[\t\x20-\x7e]+")

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


# ── Typed settings ───────────────────────────────────────────────────────


class AppEnv(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class LogFormat(str, Enum):
    PRETTY = "pretty"
    JSON = "json"


class CorsMode(str, Enum):
    DISABLED = "disabled"
    ANY = "any"
    ALLOW_LIST = "allow_list"


@dataclass(frozen=True, slots=True)
class CorsPolicy:
    """CORS policy.  Build with :meth:`disabled`, :meth:`allow_any` or :meth:`allow_list`.

    An allowlist is a non-empty ordered tuple of distinct origins and never
    contains the wildcard; ``ANY`` and ``DISABLED`` carry no origins.
    """

    mode: CorsMode = CorsMode.DISABLED
    origins: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.mode is not CorsMode.ALLOW_LIST:
            if self.origins:
                raise ValueError(f"{self.mode.value} CORS policy takes no origins")
            return
        if not self.origins:
            raise ValueError("CORS allowlist must not be empty")
        if "*" in self.origins:
            raise ValueError("CORS allowlist cannot include '*'")
        if len(set(self.origins)) != len(self.origins):
            raise ValueError("CORS allowlist entries must be distinct")

    @classmethod
    def disabled(cls) -> CorsPolicy:
        return cls(CorsMode.DISABLED)

    @classmethod
    def allow_any(cls) -> CorsPolicy:
        return cls(CorsMode.ANY)

    @classmethod
    def allow_list(cls, origins: Iterable[str]) -> CorsPolicy:
        """Allowlist policy; repeated origins are collapsed, first occurrence wins."""
        return cls(CorsMode.ALLOW_LIST, tuple(dict.fromkeys(origins)))

    @property
    def enabled(self) -> bool:
        return self.mode is not CorsMode.DISABLED

    def allows(self, origin: str) -> bool:
        """True if a response to *origin* may carry an allow-origin header."""
        if self.mode is CorsMode.ANY:
            return True
        if self.mode is CorsMode.ALLOW_LIST:
            return origin in self.origins
        return False


@dataclass(frozen=True, slots=True)
class RateLimitPolicy:
    """Per-client token bucket parameters.

    Attributes:
        rps: Sustained rate, tokens added per second.
        burst: Bucket capacity.
        trust_proxy: Identify callers by the forwarded-client-IP header
            instead of the transport peer address.
    """

    rps: int
    burst: int = DEFAULT_BURST
    trust_proxy: bool = False

    def __post_init__(self) -> None:
        if self.rps <= 0:
            raise ValueError("rps must be greater than zero")
        if self.burst <= 0:
            raise ValueError("burst must be greater than zero")


@dataclass(frozen=True, slots=True)
class Settings:
    """Immutable process settings.

    Production forces JSON logging no matter which ``log_format`` was
    requested; the rule holds however the instance is built.
    """

    host: ipaddress.IPv4Address | ipaddress.IPv6Address = ipaddress.IPv4Address(DEFAULT_HOST)
    port: int = DEFAULT_PORT
    environment: AppEnv = AppEnv.DEVELOPMENT
    log_format: LogFormat = LogFormat.PRETTY
    log_level: str = "info"
    cors: CorsPolicy = field(default_factory=CorsPolicy.disabled)
    rate_limit: RateLimitPolicy | None = None

    def __post_init__(self) -> None:
        if self.environment is AppEnv.PRODUCTION and self.log_format is not LogFormat.JSON:
            object.__setattr__(self, "log_format", LogFormat.JSON)

    @property
    def is_production(self) -> bool:
        return self.environment is AppEnv.PRODUCTION

    @property
    def socket_address(self) -> str:
        """``host:port``, with IPv6 hosts bracketed."""
        if self.host.version == 6:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view for display."""
        return {
            "host": str(self.host),
            "port": self.port,
            "environment": self.environment.value,
            "log_format": self.log_format.value,
            "log_level": self.log_level,
            "cors": {"mode": self.cors.mode.value, "origins": list(self.cors.origins)},
            "rate_limit": (
                None
                if self.rate_limit is None
                else {
                    "rps": self.rate_limit.rps,
                    "burst": self.rate_limit.burst,
                    "trust_proxy": self.rate_limit.trust_proxy,
                }
            ),
        }


# ── Raw environment source ───────────────────────────────────────────────


class EnvironmentSource(BaseSettings):
    """Raw, unparsed setting strings.

    Every field is an optional string so reading never fails; parsing and
    validation happen in :func:`load_settings` where errors can name the
    variable.  Field names match the variable names case-insensitively.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    http_host: str | None = None
    http_port: str | None = None
    app_env: str | None = None
    log_format: str | None = None
    log_level: str | None = None
    app_cors_origins: str | None = None
    app_ratelimit_rps: str | None = None
    app_ratelimit_burst: str | None = None
    app_ratelimit_trust_proxy: str | None = None


# ── Loader ───────────────────────────────────────────────────────────────


def load_settings(env_file: str | Path | None = ".env") -> Settings:
    """Read, validate and normalise settings.

    Args:
        env_file: Optional dotenv file consulted after the process
            environment.  ``None`` reads the process environment only.

    Raises:
        ConfigError: on the first invalid value, naming the variable.
    """
    raw = EnvironmentSource(_env_file=env_file)

    host = parse_host("HTTP_HOST", _or_default(raw.http_host, DEFAULT_HOST))
    port = parse_unsigned("HTTP_PORT", _or_default(raw.http_port, str(DEFAULT_PORT)), maximum=_U16_MAX)
    environment = parse_environment(_or_default(raw.app_env, AppEnv.DEVELOPMENT.value))
    log_format = parse_log_format(_or_default(raw.log_format, LogFormat.PRETTY.value))
    log_level = parse_log_level("LOG_LEVEL", _or_default(raw.log_level, "info"))
    cors = parse_cors_origins("APP_CORS_ORIGINS", raw.app_cors_origins or "")

    rate_limit = None
    if raw.app_ratelimit_rps is not None:
        rps = parse_unsigned("APP_RATELIMIT_RPS", raw.app_ratelimit_rps, maximum=_U32_MAX, nonzero=True)
        burst = DEFAULT_BURST
        if raw.app_ratelimit_burst is not None:
            burst = parse_unsigned(
                "APP_RATELIMIT_BURST", raw.app_ratelimit_burst, maximum=_U32_MAX, nonzero=True
            )
        trust_proxy = False
        if raw.app_ratelimit_trust_proxy is not None:
            trust_proxy = parse_bool("APP_RATELIMIT_TRUST_PROXY", raw.app_ratelimit_trust_proxy)
        rate_limit = RateLimitPolicy(rps=rps, burst=burst, trust_proxy=trust_proxy)

    # Settings.__post_init__ applies the production => json rule.
    return Settings(
        host=host,
        port=port,
        environment=environment,
        log_format=log_format,
        log_level=log_level,
        cors=cors,
        rate_limit=rate_limit,
    )


def _or_default(value: str | None, default: str) -> str:
    return default if value is None else value


# ── Field parsers ────────────────────────────────────────────────────────


def parse_host(key: str, value: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    try:
        return ipaddress.ip_address(value)
    except ValueError as exc:
        raise ConfigError(key, f"is invalid: {exc}") from exc


def parse_unsigned(key: str, value: str, *, maximum: int, nonzero: bool = False) -> int:
    """Parse a decimal unsigned integer: ASCII digits, optional leading ``+``."""
    if not _UNSIGNED.fullmatch(value):
        raise ConfigError(key, f"is invalid: {value!r} is not an unsigned integer")
    number = int(value)
    if number > maximum:
        raise ConfigError(key, f"is invalid: {value!r} is out of range (max {maximum})")
    if nonzero and number == 0:
        raise ConfigError(key, "must be greater than zero")
    return number


def parse_environment(value: str) -> AppEnv:
    if value.lower() in ("prod", "production"):
        return AppEnv.PRODUCTION
    return AppEnv.DEVELOPMENT


def parse_log_format(value: str) -> LogFormat:
    if value.lower() == "json":
        return LogFormat.JSON
    return LogFormat.PRETTY


def parse_log_level(key: str, value: str) -> str:
    level = value.strip().lower()
    if level not in LOG_LEVELS:
        raise ConfigError(key, f"must be one of {', '.join(LOG_LEVELS)}")
    return level


def parse_bool(key: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in ("true", "1", "yes"):
        return True
    if normalized in ("false", "0", "no"):
        return False
    raise ConfigError(key, "must be a boolean value")


def parse_cors_origins(key: str, value: str) -> CorsPolicy:
    raw = value.strip()
    if not raw:
        return CorsPolicy.disabled()
    if raw == "*":
        return CorsPolicy.allow_any()

    origins: list[str] = []
    for origin in (item.strip() for item in raw.split(",")):
        if not origin:
            continue
        if origin == "*":
            raise ConfigError(key, "cannot include '*' when using an allowlist")
        if not _HEADER_SAFE.fullmatch(origin):
            raise ConfigError(key, f"entry is invalid: {origin!r} is not a valid header value")
        origins.append(origin)

    # A list made only of separators ("," or " , ") falls back to disabled.
    if not origins:
        return CorsPolicy.disabled()
    return CorsPolicy.allow_list(origins)


__all__ = [
    "AppEnv",
    "CorsMode",
    "CorsPolicy",
    "EnvironmentSource",
    "LogFormat",
    "RateLimitPolicy",
    "Settings",
    "load_settings",
    "parse_bool",
    "parse_cors_origins",
    "parse_host",
    "parse_unsigned",
]
