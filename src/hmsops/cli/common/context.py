"""Application context management for the CLI."""

from __future__ import annotations

from dataclasses import dataclass, replace

from hmsops.cli.common.exits import die
from hmsops.core.auth import AuthMode, token_from_databricks_profile
from hmsops.core.client import MetastoreClient
from hmsops.core.config import (
    Settings,
    load_settings,
    parse_auth_mode,
    parse_duration,
)
from hmsops.core.endpoint import TransportConfig
from hmsops.core.errors import ConfigError, MetastoreError
from hmsops.core.factory import create_client


@dataclass
class HmsAppContext:
    """Application context holding the resolved settings and metastore client."""

    settings: Settings
    client: MetastoreClient


def resolve_settings(
    *,
    uri: str | None = None,
    timeout: str | None = None,
    headers: str | None = None,
    auth: str | None = None,
    token: str | None = None,
    principal: str | None = None,
    profile: str | None = None,
    framed: bool = False,
) -> Settings:
    """
    Merge CLI options over `HMSOPS_*` environment settings.

    A Databricks profile supplies the token and switches to token auth
    unless another mode was chosen explicitly.
    """
    settings = load_settings()
    changes: dict[str, object] = {}
    if uri:
        changes["uri"] = uri
    if timeout:
        changes["timeout"] = parse_duration(timeout)
    if headers is not None:
        changes["headers"] = headers
    if auth:
        changes["auth"] = parse_auth_mode(auth)
    if token:
        changes["token"] = token
    if principal:
        changes["principal"] = principal
    if framed:
        changes["framed"] = True
    if profile:
        changes["token"] = token_from_databricks_profile(profile)
        changes.setdefault("auth", AuthMode.TOKEN)
    return replace(settings, **changes)


def build_hms_context(settings: Settings) -> HmsAppContext:
    """Build and return the application context with a connected client.

    Args:
        settings: Resolved client settings.

    Returns:
        HmsAppContext: Context with a client ready for calls.
    """
    if not settings.uri:
        die("Missing metastore URI. Use --uri or set HMSOPS_URI.", code=2)
    try:
        client = create_client(
            settings.uri,
            config=TransportConfig.uniform(settings.timeout, framed=settings.framed),
            auth=settings.auth_provider(),
            headers=settings.headers,
        )
    except ConfigError as exc:
        die(str(exc), code=2)
    except MetastoreError as exc:
        die(str(exc), code=1)
    return HmsAppContext(settings=settings, client=client)
