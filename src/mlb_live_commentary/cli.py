"""Command-line interface for the MLB live commentary service."""

import asyncio
import logging
import sys
from datetime import date
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .commentary import StaticCommentator
from .config import ServiceConfig, load_config
from .errors import LiveFeedError
from .models import GameEvent, GameEventWithStatus, LiveStatus, StreamFrame
from .service import GameService

app = typer.Typer(
    name="mlb-live",
    help="MLB live game commentary - live feed, status and prediction replays",
    add_completion=False,
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def _build_service(config_path: Optional[str], no_llm: bool, **overrides) -> GameService:
    """Load config (YAML file or environment) and build the service."""
    try:
        config = load_config(config_path) if config_path else ServiceConfig.from_env()
        overrides = {k: v for k, v in overrides.items() if v is not None}
        if overrides:
            config = ServiceConfig(**{**config.model_dump(), **overrides})
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)

    commentator = StaticCommentator() if no_llm else None
    return GameService(config, commentator=commentator)


@app.command()
def live(
    game_pk: Optional[int] = typer.Option(None, "--game-pk", "-g", help="Game to follow (default from config)"),
    max_events: int = typer.Option(0, "--max-events", help="Stop after N events (0 = run until interrupted)"),
    poll_interval: Optional[float] = typer.Option(None, "--poll-interval", help="Seconds between polls"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to service config YAML"),
    no_llm: bool = typer.Option(False, "--no-llm", help="Use play descriptions instead of generated commentary"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Follow a game's live feed and print enriched events."""
    _setup_logging(verbose)
    service = _build_service(config, no_llm, poll_interval_seconds=poll_interval)
    target = game_pk or service.config.default_game_pk

    console.print(f"[bold green]Following live feed:[/bold green] game {target}")
    console.print(f"Poll interval: [cyan]{service.config.poll_interval_seconds}s[/cyan]")

    try:
        ok = asyncio.run(_follow_live(service, target, max_events))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return

    if not ok:
        raise typer.Exit(1)


async def _follow_live(service: GameService, game_pk: int, max_events: int) -> bool:
    received = 0
    try:
        async with service.subscribe_live_feed(game_pk) as feed:
            async for frame in feed:
                if frame.event == "error":
                    _display_error(frame)
                    return False

                _display_event(frame.data)
                received += 1
                if max_events and received >= max_events:
                    break
    finally:
        await service.close()

    console.print(f"\n[green]✓ Received {received} events[/green]")
    return True


@app.command()
def replay(
    game_pk: int = typer.Argument(..., help="Completed game to replay"),
    user: str = typer.Option(..., "--user", "-u", help="User id the replay is for"),
    prediction: Optional[str] = typer.Option(None, "--prediction", "-p", help="Prediction submitted when asked"),
    cadence: Optional[float] = typer.Option(None, "--cadence", help="Seconds between plays"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Seconds to wait for a prediction"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to service config YAML"),
    no_llm: bool = typer.Option(False, "--no-llm", help="Use play descriptions instead of generated commentary"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Replay a completed game, gated on a prediction."""
    _setup_logging(verbose)
    service = _build_service(
        config,
        no_llm,
        replay_cadence_seconds=cadence,
        prediction_timeout_seconds=timeout,
    )

    console.print(f"[bold green]Replaying game:[/bold green] {game_pk} for user [cyan]{user}[/cyan]")

    try:
        ok = asyncio.run(_run_replay(service, user, game_pk, prediction))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return

    if not ok:
        raise typer.Exit(1)


async def _run_replay(service: GameService, user: str, game_pk: int, prediction: Optional[str]) -> bool:
    try:
        async with service.replay(user, game_pk) as stream:
            async for frame in stream:
                if frame.event == "request_prediction":
                    console.print(f"[yellow]{frame.data}[/yellow]")
                    if prediction:
                        saved = await service.submit_prediction(user, game_pk, prediction)
                        console.print(f"  Prediction submitted: [cyan]{saved.prediction}[/cyan]")
                    else:
                        console.print(
                            f"  No --prediction given, continuing after "
                            f"{service.config.prediction_timeout_seconds}s"
                        )
                elif frame.event == "metadata":
                    data = frame.data
                    console.print(
                        Panel(
                            f"{data.get('awayTeam')} @ {data.get('homeTeam')}\n"
                            f"Date: {data.get('gameDate')}\n"
                            f"Prediction: {data.get('userPrediction') or '-'}",
                            title="Game",
                        )
                    )
                elif frame.event == "play":
                    _display_play(frame.data)
                elif frame.event == "complete":
                    console.print(f"\n[green]✓ {frame.data}[/green]")
                elif frame.event == "error":
                    _display_error(frame)
                    return False
    finally:
        await service.close()
    return True


@app.command()
def status(
    game_pk: int = typer.Argument(..., help="Game primary key"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to service config YAML"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Show the current live status of a game."""
    _setup_logging(verbose)
    service = _build_service(config, no_llm=True)

    try:
        live_status = asyncio.run(service.current_live_status(game_pk))
    except LiveFeedError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    _display_status(live_status)


@app.command()
def schedule(
    start: Optional[str] = typer.Option(None, "--start", help="Start date (YYYY-MM-DD, default today)"),
    end: Optional[str] = typer.Option(None, "--end", help="End date (YYYY-MM-DD, default start)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to service config YAML"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """List scheduled games between two dates."""
    _setup_logging(verbose)

    try:
        start_date = date.fromisoformat(start) if start else date.today()
        end_date = date.fromisoformat(end) if end else start_date
    except ValueError as e:
        console.print(f"[red]Invalid date: {e}[/red]")
        raise typer.Exit(1)

    service = _build_service(config, no_llm=True)

    try:
        games = asyncio.run(service.get_schedule(start_date, end_date))
    except LiveFeedError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not games:
        console.print("[yellow]No games scheduled[/yellow]")
        return
    _display_schedule(games)


def _display_event(event: GameEvent) -> None:
    half = "Top" if event.is_top_inning else "Bottom"
    console.print(
        f"[bold]{half} {event.inning}[/bold] "
        f"[dim]{event.timestamp or ''}[/dim]  "
        f"{event.away_team} {event.away_score} - {event.home_score} {event.home_team}"
    )
    if event.batter_name or event.pitcher_name:
        console.print(f"  At bat: {event.batter_name} vs {event.pitcher_name}")
    console.print(f"  [cyan]{event.result or event.type}[/cyan]: {event.description}")


def _display_play(payload: GameEventWithStatus) -> None:
    status = payload.status
    console.print(
        f"\n[bold]{status.inning}[/bold]  "
        f"{status.away_team.name} {status.away_team.score} - "
        f"{status.home_team.score} {status.home_team.name}  "
        f"[dim]P: {status.current_pitcher} ({status.pitch_count} pitches)[/dim]"
    )
    console.print(f"  {payload.event.description}")
    if payload.user_prediction:
        console.print(f"  [dim]Your prediction: {payload.user_prediction.prediction}[/dim]")


def _display_status(live_status: LiveStatus) -> None:
    table = Table(title=f"{live_status.type} - {live_status.inning}")
    table.add_column("Team", style="magenta")
    table.add_column("Record", style="dim")
    table.add_column("Score", style="cyan", justify="right")

    for team in (live_status.away_team, live_status.home_team):
        table.add_row(team.name or "?", team.record, str(team.score))

    console.print(table)
    console.print(f"Pitcher: [yellow]{live_status.current_pitcher}[/yellow] ({live_status.pitch_count} pitches)")


def _display_schedule(games: list) -> None:
    """Display schedule games in a table."""
    table = Table(title="Schedule")
    table.add_column("Game PK", style="cyan", justify="right")
    table.add_column("Status", style="green")
    table.add_column("Away", style="magenta")
    table.add_column("Home", style="yellow")
    table.add_column("Time", style="dim")

    for game in games:
        table.add_row(
            str(game.game_pk),
            game.detailed_state or "",
            game.away_team or "",
            game.home_team or "",
            game.game_datetime.strftime("%H:%M") if game.game_datetime else "TBD",
        )

    console.print(table)


def _display_error(frame: StreamFrame) -> None:
    console.print(f"[red]Stream ended with error: {frame.data}[/red]")
    console.print("[dim]Resubscribe to recover[/dim]")


@app.command()
def version():
    """Show version information."""
    from . import __version__

    console.print(f"[bold]MLB Live Commentary[/bold] version: [green]{__version__}[/green]")


if __name__ == "__main__":
    app()
