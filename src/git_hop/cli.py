"""Typer-based CLI interface for git-hop."""

import logging
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import load_config
from .exceptions import GitHopError
from .models import Context, ContextType, SuggestionOptions, WorktreeInfo
from .service import ContextService, build_service

app = typer.Typer(
    name="hop",
    help="Jump between git projects and their worktrees",
    no_args_is_help=True,
    add_completion=True,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"git-hop version {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Send git_hop log records to stderr through rich."""
    logger = logging.getLogger("git_hop")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    logger.addHandler(RichHandler(console=err_console, show_time=False, show_path=False))
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def fail(error: GitHopError) -> NoReturn:
    """Print an error with its suggestions and exit with status 1."""
    err_console.print(f"[bold red]Error:[/bold red] {escape(str(error))}", soft_wrap=True)
    for suggestion in getattr(error, "suggestions", []):
        err_console.print(f"  [dim]-[/dim] {escape(suggestion)}", soft_wrap=True)
    raise typer.Exit(code=1)


def _service_from_completion(ctx: typer.Context) -> ContextService:
    # The app callback does not run during shell completion
    if isinstance(ctx.obj, ContextService):
        return ctx.obj
    params = ctx.find_root().params
    config = load_config(
        overrides={
            "projects_dir": params.get("projects_dir"),
            "worktrees_dir": params.get("worktrees_dir"),
        }
    )
    return build_service(config)


def complete_targets(ctx: typer.Context, incomplete: str) -> list[tuple[str, str]]:
    """Autocomplete function for navigation targets."""
    try:
        service = _service_from_completion(ctx)
        return [(s.text, s.description) for s in service.get_completion_suggestions(incomplete)]
    except Exception:
        return []


def complete_projects(ctx: typer.Context, incomplete: str) -> list[str]:
    """Autocomplete function for project names."""
    try:
        service = _service_from_completion(ctx)
        outside = Context(type=ContextType.OUTSIDE_GIT, path=service.config.projects_dir)
        return [s.text for s in service.get_completion_suggestions(incomplete, outside)]
    except Exception:
        return []


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Show debug logging on stderr",
    ),
    projects_dir: Path | None = typer.Option(
        None,
        "--projects-dir",
        help="Directory holding main checkouts (default: ~/Projects)",
        resolve_path=True,
    ),
    worktrees_dir: Path | None = typer.Option(
        None,
        "--worktrees-dir",
        help="Directory holding worktrees as <project>/<branch> (default: ~/Worktrees)",
        resolve_path=True,
    ),
) -> None:
    """Jump between git projects and their worktrees."""
    configure_logging(verbose)
    try:
        config = load_config(
            overrides={"projects_dir": projects_dir, "worktrees_dir": worktrees_dir}
        )
    except GitHopError as e:
        fail(e)
    ctx.obj = build_service(config)


@app.command()
def cd(
    ctx: typer.Context,
    target: str = typer.Argument(
        ...,
        help="'main', a branch, a project, or 'project/branch'",
        autocompletion=complete_targets,
    ),
    print_only: bool = typer.Option(
        False,
        "--print",
        "-p",
        help="Print only the resolved path (for shell wrappers)",
    ),
) -> None:
    """
    Resolve a navigation target from the current directory.

    Inside a project or worktree, 'main' is the project root and a bare name
    is a worktree of the same project. Outside git, a bare name is a project.

    Example:
        cd "$(hop cd feature-x --print)"
        cd "$(hop cd main -p)"
        cd "$(hop cd other-project/main -p)"
    """
    service: ContextService = ctx.obj
    try:
        path = service.resolve_path(target)
    except GitHopError as e:
        fail(e)

    if print_only:
        typer.echo(str(path))
        return

    target_text = escape(target)
    console.print(f"[bold green]*[/bold green] {target_text} -> [cyan]{escape(str(path))}[/cyan]")
    console.print(f'[dim]Run: cd "$(hop cd {target_text} --print)"[/dim]')


@app.command()
def context(
    ctx: typer.Context,
    path: Path | None = typer.Argument(
        None,
        help="Directory to inspect (default: current directory)",
    ),
) -> None:
    """
    Show how a directory is classified.

    Example:
        hop context
        hop context ~/Worktrees/myapp/feature-x
    """
    service: ContextService = ctx.obj
    try:
        detected = (
            service.detect_context_from_path(path)
            if path is not None
            else service.get_current_context()
        )
    except GitHopError as e:
        fail(e)

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Type", detected.type.value)
    table.add_row("Path", escape(str(detected.path)))
    if detected.project_name:
        table.add_row("Project", escape(detected.project_name))
    if detected.branch_name:
        table.add_row("Branch", escape(detected.branch_name))
    table.add_row("Details", escape(detected.explanation))
    console.print(table)


@app.command()
def complete(
    ctx: typer.Context,
    partial: str = typer.Argument("", help="Prefix typed so far"),
    existing_only: bool = typer.Option(
        False,
        "--existing-only",
        help="Only suggest worktrees that already exist on disk",
    ),
) -> None:
    """
    Print completion candidates, one 'text<TAB>description' per line.

    Example:
        hop complete feat
        hop complete --existing-only
    """
    service: ContextService = ctx.obj
    options = SuggestionOptions(existing_only=existing_only)
    for suggestion in service.get_completion_suggestions(partial, options=options):
        typer.echo(f"{suggestion.text}\t{suggestion.description}")


def _worktree_status(worktree: WorktreeInfo) -> str:
    flags = []
    if worktree.is_bare:
        flags.append("bare")
    if worktree.is_detached:
        flags.append("detached")
    if worktree.is_locked:
        flags.append("locked")
    if worktree.is_prunable:
        flags.append("prunable")
    if not worktree.path.exists():
        flags.append("missing")
    return ", ".join(flags) or "ok"


@app.command(name="list")
def list_cmd(
    ctx: typer.Context,
    project: str | None = typer.Argument(
        None,
        help="Project whose worktrees to list (default: current project)",
        autocompletion=complete_projects,
    ),
) -> None:
    """
    List projects, or the worktrees of a project.

    Outside git with no argument, lists the projects directory.

    Example:
        hop list
        hop list myapp
    """
    service: ContextService = ctx.obj
    try:
        if project is None:
            current = service.get_current_context()
            if current.is_in_git_context and current.project_name:
                project = current.project_name

        if project is None:
            projects = service.list_projects()
            if not projects:
                projects_dir = escape(str(service.config.projects_dir))
                console.print(f"[yellow]No projects found in {projects_dir}[/yellow]")
                return
            table = Table(title="Projects")
            table.add_column("Project", style="bold cyan")
            table.add_column("Path")
            for git_dir in projects:
                table.add_row(escape(git_dir.name), escape(str(git_dir.path)))
            console.print(table)
            return

        worktrees = service.list_worktrees(project)
    except GitHopError as e:
        fail(e)

    table = Table(title=f"Worktrees of {escape(project)}")
    table.add_column("Branch", style="bold cyan")
    table.add_column("Path")
    table.add_column("Commit")
    table.add_column("Status")
    for worktree in worktrees:
        table.add_row(
            escape(worktree.branch or "(detached)"),
            escape(str(worktree.path)),
            worktree.commit[:8],
            _worktree_status(worktree),
        )
    console.print(table)


if __name__ == "__main__":
    app()
