"""CLI commands for Skin Passport."""

import sys
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cli.config import load_config_model
from cli.logging_config import setup_logging
from cli.utils import build_orchestrator, get_profile_store, get_session_store
from conversation.errors import TurnError

console = Console()

QUIT_WORDS = {"quit", "exit", ":q"}


def _load_config(ctx: click.Context):
    return ctx.obj["config"]


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Config file")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None):
    """Skin Passport - conversational skin profile interview."""
    try:
        config = load_config_model(config_path)
    except ValueError as e:
        console.print(f"[red]Config error:[/] {escape(str(e))}")
        sys.exit(1)
    level = "DEBUG" if verbose else config.logging.level
    setup_logging(json_mode=config.logging.json_mode, level=level, log_file=config.paths.log_file)
    ctx.obj = {"config": config}


def _render_suggestions(suggestions: list[str]):
    for i, s in enumerate(suggestions, 1):
        console.print(f"  [dim]{i}.[/] [cyan]{escape(s)}[/]")


def _resolve_answer(raw: str, suggestions: list[str]) -> str:
    """A bare number picks the matching suggestion."""
    stripped = raw.strip()
    if stripped.isdigit() and 1 <= int(stripped) <= len(suggestions):
        return suggestions[int(stripped) - 1]
    return stripped


def _render_profile(profile, profile_id: str | None = None):
    lines = [
        f"[bold]Skin type:[/] {profile.skin_type}",
        f"[bold]Sensitivity:[/] {profile.sensitivity_level}",
        f"[bold]Oil:[/] {profile.oil_production} | [bold]Hydration:[/] {profile.hydration_level}",
    ]
    if profile.skin_concerns:
        lines.append(f"[bold]Concerns:[/] {escape(', '.join(profile.skin_concerns))}")
    if profile.current_routine.morning:
        lines.append(f"[bold]AM:[/] {escape(', '.join(profile.current_routine.morning))}")
    if profile.current_routine.evening:
        lines.append(f"[bold]PM:[/] {escape(', '.join(profile.current_routine.evening))}")
    lines.append("")
    lines.append(escape(profile.profile_summary))
    title = f"Skin profile {profile_id}" if profile_id else "Skin profile"
    console.print(Panel("\n".join(lines), title=title, border_style="green"))

    if profile.key_recommendations:
        console.print("\n[bold]Recommendations[/]")
        for rec in profile.key_recommendations:
            console.print(f"  - {escape(rec)}")

    scores = profile.confidence_scores
    console.print(
        f"\n[dim]Confidence: overall {scores.overall:.0%} | skin type {scores.skin_type:.0%} | "
        f"concerns {scores.concerns:.0%} | routine {scores.routine:.0%}[/]"
    )


@cli.command()
@click.option("--owner", default=None, help="Owner id to attach the session to")
@click.option("--lat", type=float, default=None, help="Latitude for environment context")
@click.option("--lon", type=float, default=None, help="Longitude for environment context")
@click.option("--timezone", "tz", default=None, help="IANA timezone, e.g. Europe/London")
@click.pass_context
def interview(ctx, owner, lat, lon, tz):
    """Run the onboarding interview in the terminal."""
    config = _load_config(ctx)
    orchestrator = build_orchestrator(config)

    geolocation = None
    if lat is not None and lon is not None:
        geolocation = {"latitude": lat, "longitude": lon}

    try:
        started = orchestrator.start(
            owner_id=owner, geolocation=geolocation, timezone=tz, user_agent="skinpassport-cli"
        )
    except TurnError as e:
        console.print(f"[red]{escape(e.user_message)}[/]")
        sys.exit(1)

    console.print(f"[dim]Session {started.session_token}[/]")
    if started.environment_collected:
        console.print("[dim]Local climate context collected.[/]")
    console.print(f"\n[green]{started.greeting}[/]\n")
    console.print("[dim]Type 'quit' to stop. Enter a number to pick a suggestion.[/]\n")

    suggestions: list[str] = []
    while True:
        raw = console.input("[bold]> [/]")
        if raw.strip().lower() in QUIT_WORDS:
            console.print(f"[yellow]Paused. Resume token: {started.session_token}[/]")
            return
        answer = _resolve_answer(raw, suggestions)
        if not answer:
            continue

        with console.status("Thinking..."):
            try:
                turn = orchestrator.message(started.session_token, answer)
            except TurnError as e:
                console.print(f"[red]{escape(e.user_message)}[/]")
                if e.should_restart:
                    return
                continue

        console.print(f"\n[green]{escape(turn.message)}[/]")
        console.print(f"[dim]{turn.estimated_completion:.0%} complete[/]")
        if turn.is_done:
            if turn.profile is not None:
                _render_profile(turn.profile, turn.profile_id)
            else:
                console.print("[yellow]Interview finished but the profile could not be built.[/]")
            return
        suggestions = turn.suggestions
        _render_suggestions(suggestions)
        console.print()


@cli.command()
@click.option("--host", default="127.0.0.1")
@click.option("--port", default=8000, type=int)
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host, port, reload):
    """Run the web API."""
    import uvicorn

    uvicorn.run("web.app:app", host=host, port=port, reload=reload)


@cli.group()
def profile():
    """Inspect synthesized profiles."""
    pass


@profile.command("show")
@click.argument("profile_id")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.option("--brief", is_flag=True, help="Print a one-line summary")
@click.pass_context
def profile_show(ctx, profile_id, as_json, brief):
    """Show a stored profile."""
    stored = get_profile_store(_load_config(ctx)).get(profile_id)
    if stored is None:
        console.print(f"[yellow]No profile with id {profile_id}[/]")
        sys.exit(1)
    if as_json:
        click.echo(stored.profile.model_dump_json(indent=2))
        return
    if brief:
        click.echo(f"{stored.id}  {stored.profile.summary()}")
        return
    _render_profile(stored.profile, stored.id)


@profile.command("latest")
@click.argument("owner_id")
@click.pass_context
def profile_latest(ctx, owner_id):
    """Show the most recent profile for an owner."""
    stored = get_profile_store(_load_config(ctx)).latest_for_owner(owner_id)
    if stored is None:
        console.print(f"[yellow]No profiles for {owner_id}[/]")
        sys.exit(1)
    _render_profile(stored.profile, stored.id)


@cli.group()
def session():
    """Inspect interview sessions."""
    pass


@session.command("show")
@click.argument("token")
@click.pass_context
def session_show(ctx, token):
    """Show a session and its transcript."""
    s = get_session_store(_load_config(ctx)).peek(token)
    if s is None:
        console.print(f"[yellow]No session {token}[/]")
        sys.exit(1)

    console.print(
        f"[cyan bold]{s.token}[/] ({s.status}) phase {s.current_phase} "
        f"({s.estimated_completion:.0%})"
    )
    console.print(f"[dim]Expires {s.expires_at:%Y-%m-%d %H:%M} UTC[/]")
    table = Table(show_header=True)
    table.add_column("Role", style="dim")
    table.add_column("Message")
    for m in s.messages:
        table.add_row(str(m.role), escape(m.content))
    console.print(table)


@session.command("list")
@click.argument("owner_id")
@click.option("-n", "--limit", default=10, type=int)
@click.pass_context
def session_list(ctx, owner_id, limit):
    """List recent sessions for an owner."""
    sessions = get_session_store(_load_config(ctx)).list_for_owner(owner_id, limit=limit)
    if not sessions:
        console.print(f"[yellow]No sessions for {owner_id}[/]")
        return
    table = Table(show_header=True)
    table.add_column("Token")
    table.add_column("Status")
    table.add_column("Messages", justify="right")
    table.add_column("Started")
    for s in sessions:
        started = f"{s.created_at:%Y-%m-%d %H:%M}"
        table.add_row(s.token, str(s.status), str(s.message_count), started)
    console.print(table)


@session.command("abandon")
@click.argument("token")
@click.pass_context
def session_abandon(ctx, token):
    """Mark an active session abandoned."""
    get_session_store(_load_config(ctx)).abandon(token)
    console.print(f"[green]Abandoned {token}[/]")


@cli.command("config")
@click.pass_context
def show_config(ctx):
    """Print the effective configuration (API key masked)."""
    data = _load_config(ctx).model_dump(mode="json")
    if data.get("llm", {}).get("api_key"):
        data["llm"]["api_key"] = "***"
    click.echo(yaml.safe_dump(data, sort_keys=False))


if __name__ == "__main__":
    cli()
