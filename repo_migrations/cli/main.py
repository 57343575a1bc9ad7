"""Main CLI entry point."""

import logging

import typer
from dotenv import load_dotenv
from rich.console import Console

from .dump import dump, info, services

# Load environment variables from .env file
load_dotenv()

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

app = typer.Typer(
    name="repo-migrate",
    help="Download repositories from remote git services for migration",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        force=True,
    )


app.command(name="dump", context_settings={"help_option_names": ["-h", "--help"]})(dump)
app.command(name="info", context_settings={"help_option_names": ["-h", "--help"]})(info)
app.command(
    name="services", context_settings={"help_option_names": ["-h", "--help"]}
)(services)


@app.command(context_settings={"help_option_names": ["-h", "--help"]})
def version() -> None:
    """Show version information."""
    from repo_migrations import __version__

    console.print(f"Repo Migrations v{__version__}")


if __name__ == "__main__":
    app()
