from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_str(name: str, default: str | None = None) -> str | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_ports(name: str, default: tuple[int, ...]) -> tuple[int, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    ports: list[int] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ports.append(int(part))
        except ValueError:
            return default
    return tuple(ports) or default


@dataclass(frozen=True)
class Settings:
    """Process configuration, read from the environment when constructed.

    Nothing here is re-read per call: build one Settings at startup and hand
    it to the Reconciler.
    """

    # Control plane
    region: str = field(default_factory=lambda: _env_str("POOLSYNC_REGION", "GB3"))
    base_url: str = field(default_factory=lambda: _env_str("CLC_BASE_URL", "https://api.ctl.io"))
    username: str | None = field(default_factory=lambda: _env_str("CLC_USERNAME") or _env_str("CLC_USER"))
    password: str | None = field(default_factory=lambda: _env_str("CLC_PASSWORD"))
    account_alias: str | None = field(default_factory=lambda: _env_str("CLC_ALIAS"))
    request_timeout_s: float = field(default_factory=lambda: _env_float("POOLSYNC_REQUEST_TIMEOUT_S", 30.0))
    user_agent: str = field(default_factory=lambda: _env_str("POOLSYNC_USER_AGENT", "Registrator/Clc-Provider"))

    # Registration rules
    allowed_ports: tuple[int, ...] = field(default_factory=lambda: _env_ports("POOLSYNC_ALLOWED_PORTS", (80, 443)))
    opt_in_attribute: str = field(default_factory=lambda: _env_str("POOLSYNC_OPT_IN_ATTRIBUTE", "clc"))

    # Waiting for a new load balancer to become visible
    create_wait_timeout_s: float = field(default_factory=lambda: _env_float("POOLSYNC_CREATE_WAIT_TIMEOUT_S", 10.0))
    create_poll_initial_s: float = field(default_factory=lambda: _env_float("POOLSYNC_CREATE_POLL_INITIAL_S", 0.25))
    create_poll_max_s: float = field(default_factory=lambda: _env_float("POOLSYNC_CREATE_POLL_MAX_S", 2.0))

    # Directory traversal bounds
    directory_max_depth: int = field(default_factory=lambda: _env_int("POOLSYNC_DIRECTORY_MAX_DEPTH", 32))
    directory_max_groups: int = field(default_factory=lambda: _env_int("POOLSYNC_DIRECTORY_MAX_GROUPS", 1000))

    # Hold an in-process lock per (region, service) for the whole up/down path.
    serialize_per_key: bool = field(default_factory=lambda: _env_bool("POOLSYNC_SERIALIZE", True))

    # Logging
    debug: bool = field(default_factory=lambda: _env_bool("CLC_REG_DEBUG", False))
    log_level: str = field(default_factory=lambda: (_env_str("LOG_LEVEL", "INFO") or "INFO").upper())

    def credentials_summary(self) -> dict[str, bool]:
        """Which credentials are set, without their values."""
        return {
            "username": bool(self.username),
            "password": bool(self.password),
            "account_alias": bool(self.account_alias),
        }


settings = Settings()
