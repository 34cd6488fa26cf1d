"""Main Typer application — imports and registers all CLI commands.

Entry point: ``groundskeeper`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from groundskeeper.cli.commands._common import err_console
from groundskeeper.cli.commands.auto import auto_cmd
from groundskeeper.cli.commands.pull import pull_cmd
from groundskeeper.cli.commands.push import push_cmd
from groundskeeper.config import settings

app = typer.Typer(
    name="groundskeeper",
    help="Groundskeeper: verify build artifacts against published snapshots.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="auto", help="Pull or push depending on the Travis build type.")(auto_cmd)
app.command(name="pull", help="Pull and verify the artifact files against S3.")(pull_cmd)
app.command(name="push", help="Push the artifact files to S3.")(push_cmd)


def configure_logging(level: str) -> None:
    """Route log records to stderr through Rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    for noisy in ("botocore", "boto3", "s3transfer", "urllib3", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None, "--log-level", help="Logging level (defaults to GROUNDSKEEPER_LOG_LEVEL)."
    ),
) -> None:
    """Groundskeeper: verify build artifacts against published snapshots."""
    configure_logging(log_level or settings.log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
