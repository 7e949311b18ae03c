"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

Runtime configuration for the SiYuan MCP server, resolved from environment variables.
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from .cache import (
    DEFAULT_CLEANUP_INTERVAL,
    DEFAULT_MAX_ENTRIES,
    DEFAULT_MAX_MEMORY_MB,
    DEFAULT_TTL,
    CacheConfig,
)

DEFAULT_API_URL = "http://127.0.0.1:6806"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
DEFAULT_SESSION_TIMEOUT = 30 * 60.0
DEFAULT_SESSION_SWEEP_INTERVAL = 5 * 60.0
DEFAULT_SSE_PING_INTERVAL = 30.0
DEFAULT_REQUEST_TIMEOUT = 30.0

TRANSPORTS = ("http", "stdio")


def _parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _parse_number(env: Mapping[str, str], name: str, default: float, cast=float):
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


def _parse_list(value: Optional[str], default: List[str]) -> List[str]:
    if value is None:
        return list(default)
    items = [item.strip() for item in value.split(",")]
    return [item for item in items if item] or list(default)


@dataclass
class Settings:
    """Resolved server settings."""

    api_url: str = DEFAULT_API_URL
    api_token: str = ""
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    transport: str = "http"
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    enable_cache: bool = True
    cache_max_entries: int = DEFAULT_MAX_ENTRIES
    cache_default_ttl: float = DEFAULT_TTL
    cache_max_memory_mb: float = DEFAULT_MAX_MEMORY_MB
    cache_cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL

    session_timeout: float = DEFAULT_SESSION_TIMEOUT
    session_sweep_interval: float = DEFAULT_SESSION_SWEEP_INTERVAL
    sse_ping_interval: float = DEFAULT_SSE_PING_INTERVAL
    auth_token: Optional[str] = None
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    json_response: bool = False
    debug: bool = False

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from SIYUAN_* environment variables."""
        env = os.environ if env is None else env

        transport = env.get("SIYUAN_MCP_TRANSPORT", "http").strip().lower()
        if transport not in TRANSPORTS:
            raise ValueError(f"SIYUAN_MCP_TRANSPORT must be one of {', '.join(TRANSPORTS)}, got {transport!r}")

        return cls(
            api_url=env.get("SIYUAN_API_URL", DEFAULT_API_URL).rstrip("/"),
            api_token=env.get("SIYUAN_API_TOKEN", ""),
            host=env.get("SIYUAN_MCP_HOST", DEFAULT_HOST),
            port=_parse_number(env, "SIYUAN_MCP_PORT", DEFAULT_PORT, int),
            transport=transport,
            request_timeout=_parse_number(env, "SIYUAN_MCP_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            enable_cache=_parse_bool(env.get("SIYUAN_MCP_ENABLE_CACHE"), True),
            cache_max_entries=_parse_number(env, "SIYUAN_MCP_CACHE_MAX_ENTRIES", DEFAULT_MAX_ENTRIES, int),
            cache_default_ttl=_parse_number(env, "SIYUAN_MCP_CACHE_TTL", DEFAULT_TTL),
            cache_max_memory_mb=_parse_number(env, "SIYUAN_MCP_CACHE_MAX_MEMORY_MB", DEFAULT_MAX_MEMORY_MB),
            cache_cleanup_interval=_parse_number(env, "SIYUAN_MCP_CACHE_CLEANUP_INTERVAL", DEFAULT_CLEANUP_INTERVAL),
            session_timeout=_parse_number(env, "SIYUAN_MCP_SESSION_TIMEOUT", DEFAULT_SESSION_TIMEOUT),
            session_sweep_interval=_parse_number(
                env, "SIYUAN_MCP_SESSION_SWEEP_INTERVAL", DEFAULT_SESSION_SWEEP_INTERVAL
            ),
            sse_ping_interval=_parse_number(env, "SIYUAN_MCP_SSE_PING_INTERVAL", DEFAULT_SSE_PING_INTERVAL),
            auth_token=env.get("SIYUAN_MCP_AUTH_TOKEN") or None,
            allowed_origins=_parse_list(env.get("SIYUAN_MCP_ALLOWED_ORIGINS"), ["*"]),
            json_response=_parse_bool(env.get("SIYUAN_MCP_JSON_RESPONSE"), False),
            debug=env.get("SIYUAN_MCP_DEBUG") == "1",
        )

    def cache_config(self) -> CacheConfig:
        """Cache limits; a disabled cache stores nothing."""
        return CacheConfig(
            max_entries=self.cache_max_entries if self.enable_cache else 0,
            default_ttl=self.cache_default_ttl,
            max_memory_mb=self.cache_max_memory_mb,
            cleanup_interval=self.cache_cleanup_interval,
        )


def configure_logging(debug: bool = False) -> None:
    """Send log records to stderr; stdout is reserved for the stdio transport."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        stream=sys.stderr,
    )
