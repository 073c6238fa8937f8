from __future__ import annotations

import re

import typer

from hmsops.cli.common.context import HmsAppContext, build_hms_context, resolve_settings
from hmsops.cli.common.exits import die, exit_from_exc, warn_exit
from hmsops.cli.common.options import (
    AuthOpt,
    FramedOpt,
    HeadersOpt,
    PrincipalOpt,
    ProfileOpt,
    TimeoutOpt,
    TokenOpt,
    UriOpt,
    VerboseOpt,
    YesOpt,
)
from hmsops.cli.common.output import configure_logging, out
from hmsops.core.errors import (
    AlreadyExistsError,
    ConfigError,
    MetastoreError,
    NotFoundError,
)
from hmsops.core.models import Database, PrincipalType

hms_app = typer.Typer(
    help="Hive metastore operations.",
    no_args_is_help=False,
    invoke_without_command=True,
)


@hms_app.callback()
def _init(
    ctx: typer.Context,
    uri: str | None = UriOpt,
    timeout: str | None = TimeoutOpt,
    headers: str | None = HeadersOpt,
    auth: str | None = AuthOpt,
    token: str | None = TokenOpt,
    principal: str | None = PrincipalOpt,
    profile: str | None = ProfileOpt,
    framed: bool = FramedOpt,
    verbose: bool = VerboseOpt,
):
    """Connect to the metastore."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)

    configure_logging(verbose)
    try:
        settings = resolve_settings(
            uri=uri,
            timeout=timeout,
            headers=headers,
            auth=auth,
            token=token,
            principal=principal,
            profile=profile,
            framed=framed,
        )
    except ConfigError as exc:
        exit_from_exc(exc, message=str(exc), code=2)
    except MetastoreError as exc:
        exit_from_exc(exc, message=str(exc), code=1)

    appctx = build_hms_context(settings)
    ctx.call_on_close(appctx.client.close)
    ctx.obj = appctx


def _compile_regex_or_exit(pattern: str | None, *, option_name: str) -> re.Pattern | None:
    """Compile a regex pattern and convert invalid syntax into CLI input errors."""
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        out.error(f"Invalid regex for {option_name}: {exc}")
        raise typer.Exit(2) from exc


def _parse_params_or_exit(params: list[str]) -> dict[str, str]:
    """Turn repeated `key=value` options into a mapping."""
    parsed: dict[str, str] = {}
    for item in params:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            die(f"Invalid --param '{item}': expected key=value.", code=2)
        parsed[key.strip()] = value.strip()
    return parsed


@hms_app.command("databases-list")
def databases_list(
    ctx: typer.Context,
    name: str | None = typer.Option(None, "--name", help="Regex filter for database names"),
):
    """List metastore databases."""
    appctx: HmsAppContext = ctx.obj
    name_rx = _compile_regex_or_exit(name, option_name="--name")

    try:
        with out.status("Loading databases..."):
            names = appctx.client.list_databases()
    except MetastoreError as exc:
        exit_from_exc(exc, message=f"Could not list databases: {exc}", code=1)

    if name_rx:
        names = [n for n in names if name_rx.search(n)]

    if not names:
        warn_exit("No databases found.")

    out.info(f"Databases: {len(names)}")
    out.names_table(names, column="Database", title="Databases")


@hms_app.command("database-get")
def database_get(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Database name"),
):
    """Show one database."""
    appctx: HmsAppContext = ctx.obj
    try:
        db = appctx.client.get_database(name)
    except NotFoundError as exc:
        exit_from_exc(exc, message=f"Database '{name}' does not exist.", code=1)
    except MetastoreError as exc:
        exit_from_exc(exc, message=f"Could not load database '{name}': {exc}", code=1)

    out.database_details(db)


@hms_app.command("database-create")
def database_create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Database name"),
    description: str | None = typer.Option(None, "--description", help="Comment"),
    location: str | None = typer.Option(None, "--location", help="Storage location URI"),
    owner: str | None = typer.Option(None, "--owner", help="Owning user"),
    param: list[str] = typer.Option(
        [],
        "--param",
        help="Database parameter (key=value). This is reusable.",
        show_default=False,
    ),
):
    """Create a database."""
    appctx: HmsAppContext = ctx.obj
    db = Database(
        name=name,
        description=description,
        location_uri=location,
        parameters=_parse_params_or_exit(param),
        owner_name=owner,
        owner_type=PrincipalType.USER if owner else None,
    )
    try:
        appctx.client.create_database(db)
    except AlreadyExistsError as exc:
        exit_from_exc(exc, message=f"Database '{name}' already exists.", code=1)
    except MetastoreError as exc:
        exit_from_exc(exc, message=f"Could not create database '{name}': {exc}", code=1)

    out.success(f"Created database '{name}'.")


@hms_app.command("database-drop")
def database_drop(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Database name"),
    cascade: bool = typer.Option(False, "--cascade", help="Also drop contained tables"),
    delete_data: bool = typer.Option(
        False, "--delete-data", help="Delete the data at the database location"
    ),
    yes: bool = YesOpt,
):
    """Drop a database."""
    appctx: HmsAppContext = ctx.obj
    if not yes:
        what = f"database '{name}'" + (" and all its tables" if cascade else "")
        if not out.confirm(f"Drop {what}?", default=False):
            warn_exit("Aborted.")

    try:
        appctx.client.drop_database(name, delete_data=delete_data, cascade=cascade)
    except NotFoundError as exc:
        exit_from_exc(exc, message=f"Database '{name}' does not exist.", code=1)
    except MetastoreError as exc:
        exit_from_exc(exc, message=f"Could not drop database '{name}': {exc}", code=1)

    out.success(f"Dropped database '{name}'.")


@hms_app.command("tables-list")
def tables_list(
    ctx: typer.Context,
    database: str = typer.Argument(..., help="Database name"),
    name: str | None = typer.Option(None, "--name", help="Regex filter for table names"),
):
    """List the tables of a database."""
    appctx: HmsAppContext = ctx.obj
    name_rx = _compile_regex_or_exit(name, option_name="--name")

    try:
        with out.status("Loading tables..."):
            tables = appctx.client.list_tables(database)
    except NotFoundError as exc:
        exit_from_exc(exc, message=f"Database '{database}' does not exist.", code=1)
    except MetastoreError as exc:
        exit_from_exc(exc, message=f"Could not list tables of '{database}': {exc}", code=1)

    if name_rx:
        tables = [t for t in tables if name_rx.search(t)]

    if not tables:
        warn_exit("No tables found.")

    out.info(f"Database: {database} | Tables: {len(tables)}")
    out.names_table(tables, column="Table", title="Tables")
