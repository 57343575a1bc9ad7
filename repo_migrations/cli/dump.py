"""CLI commands for dumping and inspecting remote repositories."""

import typer
from rich.console import Console
from rich.table import Table

# Importing the service packages registers their downloader factories
from .. import azure_devops, github  # noqa: F401
from ..migration.downloader import new_downloader, registered_services
from ..migration.errors import AuthFailureError, ConfigError, MigrationError
from ..migration.options import GitServiceType, MigrateOptions
from ..storage.dumper import ENTITY_KINDS, RepositoryDumper

console = Console()


def _build_options(
    clone_addr: str,
    service: GitServiceType,
    token: str | None,
    username: str | None,
    password: str | None,
    per_page: int | None,
    skip_reactions: bool,
) -> MigrateOptions:
    try:
        return MigrateOptions.from_env(
            clone_addr,
            service,
            auth_token=token,
            auth_username=username,
            auth_password=password,
            max_per_page=per_page,
            skip_reactions=skip_reactions,
        )
    except ValueError as e:
        console.print(f"❌ Invalid options: {e}")
        raise typer.Exit(1)


def dump(
    clone_addr: str = typer.Argument(..., help="Clone address of the source repository"),
    service: GitServiceType = typer.Option(
        GitServiceType.GITHUB, "--service", "-s", help="Remote service type"
    ),
    token: str | None = typer.Option(
        None, "--token", help="Access token (defaults to MIGRATION_AUTH_TOKEN env var)"
    ),
    username: str | None = typer.Option(None, "--username", help="Basic auth user name"),
    password: str | None = typer.Option(None, "--password", help="Basic auth password"),
    per_page: int | None = typer.Option(
        None, "--per-page", help="Page size, at most 100"
    ),
    only: list[str] | None = typer.Option(
        None,
        "--only",
        help="Entity kinds to dump (can be used multiple times); all if omitted",
    ),
    skip_reactions: bool = typer.Option(
        False, "--skip-reactions", help="Do not fetch reactions"
    ),
    output: str = typer.Option(
        "data/migrations", "--output", "-o", help="Base output directory"
    ),
) -> None:
    """Dump a remote repository to JSON files.

    Examples:
        repo-migrate dump https://github.com/go-gitea/test_repo
        repo-migrate dump https://dev.azure.com/go-gitea/test_repo -s azuredevops \\
            --only issues --only comments
    """
    if only:
        unknown = sorted(set(only) - set(ENTITY_KINDS))
        if unknown:
            console.print(f"❌ Unknown entity kinds: {', '.join(unknown)}")
            raise typer.Exit(1)

    options = _build_options(
        clone_addr, service, token, username, password, per_page, skip_reactions
    )
    kinds = options.entity_kinds()
    if only:
        kinds &= set(only)
    console.print(f"🔍 Dumping {clone_addr} from {service.value}")

    try:
        with new_downloader(options) as downloader:
            dumper = RepositoryDumper(
                downloader, base_path=output, per_page=options.max_per_page
            )
            result = dumper.dump(kinds)
    except AuthFailureError as e:
        console.print(f"❌ Authentication failed: {e}")
        raise typer.Exit(1)
    except ConfigError as e:
        console.print(f"❌ Configuration error: {e}")
        raise typer.Exit(1)
    except MigrationError as e:
        console.print(f"❌ Error: {e}")
        raise typer.Exit(1)

    results_table = Table(title="Dump Results")
    results_table.add_column("Kind", style="cyan")
    results_table.add_column("Records", justify="right", style="green")
    results_table.add_column("Status", style="yellow")

    for kind, count in result.counts.items():
        results_table.add_row(kind, str(count), "saved")
    for kind in result.skipped:
        results_table.add_row(kind, "-", "unsupported")
    for kind, message in result.errors.items():
        results_table.add_row(kind, "-", f"failed: {message}")

    console.print(results_table)
    console.print(f"📁 Output location: {result.output_dir}")

    if result.cancelled:
        console.print("⚠️ Dump cancelled before completion")
        raise typer.Exit(1)
    if result.errors:
        console.print(f"⚠️ {len(result.errors)} entity kinds failed")
        raise typer.Exit(1)
    console.print("✨ Dump complete!")


def info(
    clone_addr: str = typer.Argument(..., help="Clone address of the source repository"),
    service: GitServiceType = typer.Option(
        GitServiceType.GITHUB, "--service", "-s", help="Remote service type"
    ),
    token: str | None = typer.Option(
        None, "--token", help="Access token (defaults to MIGRATION_AUTH_TOKEN env var)"
    ),
    username: str | None = typer.Option(None, "--username", help="Basic auth user name"),
    password: str | None = typer.Option(None, "--password", help="Basic auth password"),
) -> None:
    """Show repository metadata and topics."""
    options = _build_options(clone_addr, service, token, username, password, None, True)

    try:
        with new_downloader(options) as downloader:
            repo = downloader.get_repo_info()
            topics = downloader.get_topics()
    except MigrationError as e:
        console.print(f"❌ Error: {e}")
        raise typer.Exit(1)

    info_table = Table(title=f"{repo.owner}/{repo.name}")
    info_table.add_column("Field", style="cyan")
    info_table.add_column("Value", style="green")

    info_table.add_row("Description", repo.description or "-")
    info_table.add_row("Private", "yes" if repo.is_private else "no")
    info_table.add_row("Web URL", repo.original_url)
    info_table.add_row("Clone URL", repo.clone_url)
    info_table.add_row("Default Branch", repo.default_branch or "-")
    info_table.add_row("Topics", ", ".join(topics) if topics else "-")

    console.print(info_table)


def services() -> None:
    """List the services downloaders can be created for."""
    for service in registered_services():
        console.print(service.value)
