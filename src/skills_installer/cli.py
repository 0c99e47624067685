"""install-skills command line entry point."""

import asyncio
import logging
from pathlib import Path

import typer
from rapidfuzz import fuzz, process
from rich.markup import escape

from skills_installer import __version__
from skills_installer.config import settings
from skills_installer.core.catalog import CatalogClient
from skills_installer.core.git import GitDriver
from skills_installer.errors import GitUnavailableError, InstallerError, UserCancelled
from skills_installer.models import TargetOutcome
from skills_installer.tools.install import InstallWorkflow
from skills_installer.ui import TerminalPrompter, console, err_console, show_banner, show_error

logger = logging.getLogger("skills-installer.cli")

COMMANDS = ["install"]

app = typer.Typer(
    name="install-skills",
    help="Install AI agent skills and subagents into the current project.",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def configure_logging() -> None:
    handler_args = {}
    if settings.log_file is not None:
        handler_args["filename"] = str(settings.log_file)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        **handler_args,
    )


def suggest_command(command: str) -> str | None:
    """Closest known command, if the typo is near enough."""
    match = process.extractOne(command, COMMANDS, scorer=fuzz.ratio, score_cutoff=60)
    return match[0] if match else None


def version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


async def run_install(cwd: Path) -> list[TargetOutcome]:
    driver = GitDriver(settings)
    async with CatalogClient(settings=settings) as catalog:
        workflow = InstallWorkflow(catalog, TerminalPrompter(), cwd, driver, settings)
        return await workflow.run()


@app.command()
def main_command(
    ctx: typer.Context,
    command: str | None = typer.Argument(None, help="Command to run (default: install)."),
    version: bool = typer.Option(
        False, "--version", "-v", help="Show the version and exit.",
        callback=version_callback, is_eager=True,
    ),
) -> None:
    """Interactively install or manage skills and subagents via git sparse checkout."""
    if command is not None and command not in COMMANDS:
        err_console.print(f"[red]Unknown command: {escape(command)}[/red]")
        suggestion = suggest_command(command)
        if suggestion:
            typer.echo(f"Did you mean '{suggestion}'?", err=True)
        typer.echo(ctx.get_usage(), err=True)
        raise typer.Exit(code=1)

    configure_logging()
    show_banner()

    try:
        if not GitDriver(settings).is_available():
            raise GitUnavailableError(
                f"git executable '{settings.git_executable}' not found. Please install git and try again."
            )
        outcomes = asyncio.run(run_install(Path.cwd()))
    except (UserCancelled, KeyboardInterrupt):
        console.print("\n👋 Installation cancelled.")
        raise typer.Exit(code=0)
    except InstallerError as e:
        logger.error("Install failed: %s", e)
        show_error(str(e))
        raise typer.Exit(code=1)

    logger.info("Finished with %d target(s)", len(outcomes))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
