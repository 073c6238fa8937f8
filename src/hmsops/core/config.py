"""Environment-driven settings for metastore clients."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

from hmsops.core.auth import AuthMode, AuthProvider, DelegatedAuth, NoAuth, TokenAuth
from hmsops.core.endpoint import DEFAULT_TIMEOUT_SECONDS
from hmsops.core.errors import ConfigError

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

URI_ENV = "HMSOPS_URI"
TIMEOUT_ENV = "HMSOPS_TIMEOUT"
HEADERS_ENV = "HMSOPS_HEADERS"
AUTH_ENV = "HMSOPS_AUTH"
TOKEN_ENV = "HMSOPS_TOKEN"
PRINCIPAL_ENV = "HMSOPS_PRINCIPAL"
FRAMED_ENV = "HMSOPS_FRAMED"


def parse_duration(value: str | float | int) -> float:
    """
    Parse a duration into seconds.

    Numbers are seconds; strings may carry a unit: ms, s, m or h
    (e.g. "20s", "500ms", "1.5m").
    """
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        match = _DURATION_RE.match(value or "")
        if not match:
            raise ConfigError(f"Invalid duration '{value}' (expected e.g. 20s or 500ms).")
        seconds = float(match.group(1)) * _UNIT_SECONDS[match.group(2) or "s"]
    if seconds <= 0:
        raise ConfigError(f"Duration must be positive, got '{value}'.")
    return seconds


def parse_bool(value: str) -> bool:
    raw = value.strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off", ""}:
        return False
    raise ConfigError(f"Invalid boolean '{value}'.")


@dataclass(frozen=True)
class Settings:
    """Client settings resolved from the environment and CLI options."""

    uri: str | None = None
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    headers: str | None = None
    auth: AuthMode = AuthMode.NONE
    token: str | None = None
    principal: str | None = None
    framed: bool = False

    def auth_provider(self) -> AuthProvider:
        """Build the provider for the selected auth mode."""
        if self.auth is AuthMode.TOKEN:
            if not self.token:
                raise ConfigError(f"Token authentication needs a token (set {TOKEN_ENV}).")
            return TokenAuth(self.token)
        if self.auth is AuthMode.DELEGATED:
            if not self.principal:
                raise ConfigError(
                    f"Delegated authentication needs a principal (set {PRINCIPAL_ENV})."
                )
            return DelegatedAuth(self.principal)
        return NoAuth()

    def __repr__(self) -> str:
        return (
            f"Settings(uri={self.uri!r}, timeout={self.timeout!r}, "
            f"auth={self.auth.value!r}, framed={self.framed!r})"
        )


def parse_auth_mode(value: str) -> AuthMode:
    try:
        return AuthMode(value.strip().lower())
    except ValueError as exc:
        choices = ", ".join(m.value for m in AuthMode)
        raise ConfigError(f"Unknown auth mode '{value}' (expected one of {choices}).") from exc


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    """Read `HMSOPS_*` variables into Settings."""
    env = os.environ if environ is None else environ
    raw_timeout = env.get(TIMEOUT_ENV)
    return Settings(
        uri=env.get(URI_ENV) or None,
        timeout=parse_duration(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT_SECONDS,
        headers=env.get(HEADERS_ENV) or None,
        auth=parse_auth_mode(env.get(AUTH_ENV, AuthMode.NONE.value)),
        token=env.get(TOKEN_ENV) or None,
        principal=env.get(PRINCIPAL_ENV) or None,
        framed=parse_bool(env.get(FRAMED_ENV, "")),
    )
