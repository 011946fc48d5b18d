"""MindStack CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from mindstack.cli.ask import ask_cmd
from mindstack.cli.init import init_cmd
from mindstack.cli.serve import serve_cmd
from mindstack.cli.status import status_cmd
from mindstack.cli.users import project_app, user_app


def _installed_version() -> str:
    try:
        return importlib.metadata.version("mindstack")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"mindstack {_installed_version()}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Route all ``logging`` output through a single RichHandler."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)


app = typer.Typer(
    name="mindstack",
    help=(
        "MindStack — capture once, retrieve instantly.\n\n"
        "  mindstack serve   Run the capture + chat API.\n"
        "  mindstack ask     Query a project's knowledge base from the terminal."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)."),
    ] = "INFO",
) -> None:
    """MindStack — capture once, retrieve instantly."""
    configure_logging(log_level)


app.command("init")(init_cmd)
app.command("serve")(serve_cmd)
app.command("ask")(ask_cmd)
app.command("status")(status_cmd)
app.add_typer(user_app, name="user")
app.add_typer(project_app, name="project")


@app.command("version")
def version_cmd() -> None:
    """Show the installed MindStack version."""
    typer.echo(f"mindstack {_installed_version()}")


if __name__ == "__main__":
    app()
