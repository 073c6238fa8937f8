"""Common CLI options for the CLI."""

import typer

UriOpt = typer.Option(
    None,
    "--uri",
    "-u",
    help="Metastore URI: thrift://host:9083, http(s)://host:port/path (env HMSOPS_URI)",
)

TimeoutOpt = typer.Option(
    None,
    "--timeout",
    "-t",
    help="Connect/read timeout, e.g. 20s or 500ms (env HMSOPS_TIMEOUT)",
)

HeadersOpt = typer.Option(
    None,
    "--headers",
    help="Extra HTTP headers as 'name:value, name:value' (env HMSOPS_HEADERS)",
)

AuthOpt = typer.Option(
    None,
    "--auth",
    help="Authentication mode: none, token or delegated (env HMSOPS_AUTH)",
)

TokenOpt = typer.Option(
    None,
    "--token",
    help="Bearer token for token auth (env HMSOPS_TOKEN)",
)

PrincipalOpt = typer.Option(
    None,
    "--principal",
    help="Principal to act as for delegated auth (env HMSOPS_PRINCIPAL)",
)

ProfileOpt = typer.Option(
    None,
    "--profile",
    "-p",
    help="Databricks CLI profile (from ~/.databrickscfg) providing the token",
)

FramedOpt = typer.Option(
    False,
    "--framed",
    help="Use the framed Thrift transport on sockets (env HMSOPS_FRAMED)",
)

VerboseOpt = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Log connection and call details",
)

YesOpt = typer.Option(False, "--yes", help="Skip confirmation prompt")
