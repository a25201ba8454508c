"""Command-line interface for Interactive Reviewer."""

import difflib
import logging
import sys
from pathlib import Path

import click
import uvicorn
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from interactive_reviewer import __version__
from interactive_reviewer.ai.client import AIClient
from interactive_reviewer.config import Config, load_config, validate_config
from interactive_reviewer.diff import TieBreak, build_line_map, resolve
from interactive_reviewer.fixes.applicator import ApplicatorConfig, FixApplicator
from interactive_reviewer.github.auth import GitHubAppAuth, load_private_key
from interactive_reviewer.github.client import GitHubClient
from interactive_reviewer.github.webhook import create_webhook_app
from interactive_reviewer.models.findings import Finding, FixSuggestion
from interactive_reviewer.orchestrator.actions import ActionStateMachine
from interactive_reviewer.orchestrator.dispatcher import ReviewDispatcher
from interactive_reviewer.orchestrator.pipeline import ReviewPipeline

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def build_dispatcher(config: Config) -> ReviewDispatcher:
    """Wire the GitHub and AI clients into a dispatcher."""
    app_auth = None
    if config.github.uses_app:
        app_auth = GitHubAppAuth(config.github.app_id, load_private_key(config.github))
    github = GitHubClient(
        token=config.github.token,
        base_url=config.github.base_url,
        app_auth=app_auth,
        review=config.review,
    )
    ai = AIClient(config.ai)
    actions = ActionStateMachine(github, ai, config)
    pipeline = ReviewPipeline(github, ai, actions)
    return ReviewDispatcher(config, pipeline, actions)


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def cli(verbose: bool) -> None:
    """Interactive Reviewer - AI code review driven by check run buttons."""
    setup_logging(verbose)


@cli.group("config")
def config_group() -> None:
    """Configuration commands."""
    pass


@config_group.command("validate")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def config_validate(config_path: str | None) -> None:
    """Validate configuration file."""
    try:
        config = load_config(Path(config_path) if config_path else None)
        errors = validate_config(config)

        if errors:
            console.print("[red]Configuration is invalid:[/red]")
            for error in errors:
                console.print(f"  • {error}")
            sys.exit(1)
        else:
            console.print("[green]✓ Configuration is valid[/green]")
    except (OSError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        sys.exit(1)


@config_group.command("show")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def config_show(config_path: str | None) -> None:
    """Show current configuration (secrets are masked)."""
    config = load_config(Path(config_path) if config_path else None)

    console.print("\n[bold]Current Configuration[/bold]\n")

    table = Table(title="Settings")
    table.add_column("Section")
    table.add_column("Setting")
    table.add_column("Value")

    auth = "GitHub App" if config.github.uses_app else ("token" if config.github.token else "none")
    table.add_row("github", "auth", auth)
    table.add_row("github", "webhook_secret", "set" if config.github.webhook_secret else "not set")
    table.add_row("ai", "base_url", config.ai.base_url)
    table.add_row("ai", "model", config.ai.model)
    table.add_row("ai", "api_key", "set" if config.ai.api_key else "not set")
    table.add_row("review", "trigger_actions", ", ".join(config.review.trigger_actions))
    table.add_row("review", "max_files", str(config.review.max_files))
    table.add_row("review", "fallback_branches", ", ".join(config.review.fallback_branches))
    table.add_row("placement", "search_radius", str(config.placement.search_radius))
    table.add_row("placement", "prefer_after", str(config.placement.prefer_after))
    table.add_row("fixes", "heuristic_window", str(config.fixes.heuristic_window))
    table.add_row(
        "dispatcher", "max_concurrent_reviews", str(config.dispatcher.max_concurrent_reviews)
    )
    table.add_row("dispatcher", "stale_after_seconds", str(config.dispatcher.stale_after_seconds))
    table.add_row("dispatcher", "session_ttl_seconds", str(config.dispatcher.session_ttl_seconds))

    console.print(table)


@cli.command("commentable")
@click.argument("patch_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--line", "target_line", type=int, help="Resolve this new-file line")
@click.option("--radius", default=10, show_default=True, help="Search radius in lines")
@click.option("--prefer-before", is_flag=True, help="Break ties toward the earlier line")
def commentable(patch_file: str, target_line: int | None, radius: int, prefer_before: bool) -> None:
    """Show which lines of a single-file patch can carry review comments."""
    line_map = build_line_map(Path(patch_file).read_text())
    if line_map.is_empty:
        console.print("[yellow]No commentable lines (empty or malformed patch)[/yellow]")
    else:
        table = Table(title="Hunks")
        table.add_column("Old")
        table.add_column("New")
        table.add_column("Commentable lines")
        for hunk in line_map.hunks:
            added = [
                str(line.new_line)
                for line in hunk.lines
                if line.new_line in line_map.commentable_lines
            ]
            table.add_row(
                f"{hunk.old_start},{hunk.old_count}",
                f"{hunk.new_start},{hunk.new_count}",
                ", ".join(added) or "-",
            )
        console.print(table)

    if target_line is not None:
        tie_break = TieBreak.BEFORE if prefer_before else TieBreak.AFTER
        resolved = resolve(line_map, target_line, radius=radius, tie_break=tie_break)
        if resolved is None:
            console.print(f"Line {target_line}: [red]cannot place comment[/red]")
            sys.exit(1)
        elif resolved == target_line:
            console.print(f"Line {target_line}: [green]commentable[/green]")
        else:
            console.print(f"Line {target_line}: [yellow]moved to {resolved}[/yellow]")


@cli.command("apply-fix")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--line", "line", type=int, required=True, help="1-based line of the finding")
@click.option("--current", "current_code", default="", help="Code the fix replaces")
@click.option("--fix", "suggested_fix", required=True, help="Replacement code")
@click.option("--issue", default="", help="Issue text (used by heuristics and annotations)")
@click.option("--write", is_flag=True, help="Write the result back to FILE")
def apply_fix(
    file: str, line: int, current_code: str, suggested_fix: str, issue: str, write: bool
) -> None:
    """Run the fix cascade on a local file and show the resulting diff."""
    path = Path(file)
    content = path.read_text()
    finding = Finding(file=path.name, line=line, issue=issue)
    suggestion = FixSuggestion(current_code=current_code, suggested_fix=suggested_fix)

    applied = FixApplicator(ApplicatorConfig()).apply(content, finding, suggestion)
    if applied is None:
        console.print("[red]No strategy could apply the fix[/red]")
        sys.exit(1)

    console.print(f"Applied with [bold]{applied.strategy}[/bold] strategy\n")
    diff = difflib.unified_diff(
        content.splitlines(keepends=True),
        applied.content.splitlines(keepends=True),
        fromfile=f"a/{path.name}",
        tofile=f"b/{path.name}",
    )
    console.print("".join(diff), highlight=False, markup=False)

    if write:
        path.write_text(applied.content)
        console.print(f"[green]Wrote {path}[/green]")


@cli.command("serve")
@click.option("--port", type=int, help="Port to listen on (default: server.port)")
@click.option("--host", help="Host to bind to (default: server.host)")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def serve(port: int | None, host: str | None, config_path: str | None) -> None:
    """Start the webhook server."""
    config = load_config(Path(config_path) if config_path else None)
    errors = validate_config(config)
    if errors:
        for error in errors:
            console.print(f"[red]Config error:[/red] {error}")
        sys.exit(1)

    try:
        dispatcher = build_dispatcher(config)
    except ValueError as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(1)

    app = create_webhook_app(dispatcher, config.github.webhook_secret)

    host = host or config.server.host
    port = port or config.server.port
    console.print(f"🚀 Starting webhook server on {host}:{port}")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    cli()
