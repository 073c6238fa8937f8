"""CLI application for Hive metastore tooling."""

import typer

from hmsops.cli.commands.metastore import hms_app

app = typer.Typer(
    help="hmsops - Hive metastore client tooling",
    no_args_is_help=True,
)

app.add_typer(hms_app, name="hms")


if __name__ == "__main__":
    app()
