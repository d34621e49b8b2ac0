"""Main entry point for the dashboard navigator.

Usage:
    python main.py                          # Interactive dashboard
    python main.py "Golden Gate Park"       # Route to a destination and exit
    python main.py serve                    # Run the route-modification endpoint
"""

import asyncio
import logging
import sys

import httpx
import uvicorn
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from dashnav.api import create_app
from dashnav.config import settings
from dashnav.display import render_notice, render_session
from dashnav.errors import TranscriptionError
from dashnav.models import NavigationState, Place
from dashnav.pipeline import NavigationOrchestrator, RouteComparator, build_intent_parser
from dashnav.tools import FixedPositionSource, LocationTracker, MapboxRoutingProvider
from dashnav.tools.intent_client import RemoteIntentParser
from dashnav.tools.voice import transcribe_audio


console = Console()

QUIT_WORDS = ["quit", "exit", "q"]


def build_orchestrator(client: httpx.AsyncClient) -> NavigationOrchestrator:
    """Wire the orchestrator with explicitly constructed clients."""
    routing = MapboxRoutingProvider(
        client,
        token=settings.mapbox_token,
        base_url=settings.mapbox_base_url,
        timeout=settings.http_timeout,
    )

    if settings.intent_api_url:
        parser = RemoteIntentParser(client, settings.intent_api_url, timeout=settings.http_timeout)
    else:
        parser = build_intent_parser(settings, http_client=client)

    location = LocationTracker(
        FixedPositionSource(settings.current_location),
        poll_interval=settings.location_poll_interval,
    )

    return NavigationOrchestrator(
        routing,
        parser,
        comparator=RouteComparator(settings.distance_threshold, settings.duration_threshold),
        location=location,
        default_origin=settings.default_origin,
        on_notice=lambda notice: console.print(render_notice(notice)),
    )


async def ask(prompt: str, **kwargs) -> str:
    # Prompt blocks, so run it off the loop to keep location updates flowing
    return await asyncio.to_thread(Prompt.ask, prompt, **kwargs)


async def choose_destination(orchestrator: NavigationOrchestrator, query: str) -> Place | None:
    """Search for places and let the user pick one."""
    with console.status("Searching..."):
        places = await orchestrator.search_destinations(query)

    if not places:
        console.print("[yellow]No places found. Try a different search.[/yellow]")
        return None

    table = Table(show_header=False, box=None)
    for index, place in enumerate(places, start=1):
        table.add_row(f"[bold]{index}[/bold]", place.name, f"[dim]{place.address or ''}[/dim]")
    console.print(table)

    choice = await ask(
        "Destination",
        choices=[str(i) for i in range(1, len(places) + 1)],
        default="1",
    )
    return places[int(choice) - 1]


async def handle_navigating(
    orchestrator: NavigationOrchestrator,
    client: httpx.AsyncClient,
    user_input: str,
) -> None:
    if user_input.lower() == "reset":
        orchestrator.reset()
        return

    if user_input.lower().startswith("voice "):
        audio_path = user_input[len("voice "):].strip()
        try:
            with console.status("Transcribing..."):
                user_input = await transcribe_audio(client, audio_path, base_url=settings.transcribe_url)
        except TranscriptionError as e:
            console.print(f"[red]{e}[/red]")
            return
        console.print(f"[bold green]You said:[/bold green] {user_input}")

    with console.status("Finding alternatives..."):
        await orchestrator.request_modification(user_input)


async def handle_comparing(orchestrator: NavigationOrchestrator, user_input: str) -> None:
    if user_input.lower() in ("keep", "k", ""):
        orchestrator.confirm_route(None)
        return

    try:
        index = int(user_input)
        orchestrator.select_candidate(index)
    except (ValueError, IndexError):
        console.print("[yellow]Pick one of the listed route numbers, or 'keep'.[/yellow]")
        return
    orchestrator.confirm_route(index)


async def dashboard_loop():
    """Run the interactive dashboard."""

    missing = settings.validate_required()
    if missing:
        console.print(Panel(
            f"[red]Missing required configuration:[/red]\n" +
            "\n".join(f"  • {m}" for m in missing) +
            "\n\n[dim]Copy .env.example to .env and fill in your API keys.[/dim]",
            title="Configuration Error",
            border_style="red",
        ))
        sys.exit(1)

    console.print(Panel(
        "Pick a destination, then ask for changes in plain words:\n\n"
        "  • 'Make it more scenic'\n"
        "  • 'Avoid tolls'\n"
        "  • 'Find the fastest route'\n\n"
        "[dim]'voice <file>' sends a recording instead, 'reset' starts over, 'quit' exits.[/dim]",
        title="Journey Assist",
        border_style="blue",
    ))

    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        orchestrator = build_orchestrator(client)

        try:
            while True:
                session = orchestrator.session
                console.print()
                console.print(render_session(session))

                if session.state is NavigationState.IDLE:
                    user_input = await ask("[bold green]Where to?[/bold green]")
                elif session.state is NavigationState.COMPARING_ROUTES:
                    user_input = await ask("[bold green]Route number or 'keep'[/bold green]", default="keep")
                else:
                    user_input = await ask("[bold green]Ask to modify route[/bold green]")

                if user_input.lower() in QUIT_WORDS:
                    console.print("\n[dim]Goodbye! Drive safe.[/dim]\n")
                    break

                if session.state is NavigationState.IDLE:
                    if not user_input.strip():
                        continue
                    place = await choose_destination(orchestrator, user_input)
                    if place is not None:
                        with console.status("Calculating route..."):
                            await orchestrator.select_destination(place)
                elif session.state is NavigationState.NAVIGATING:
                    await handle_navigating(orchestrator, client, user_input)
                elif session.state is NavigationState.COMPARING_ROUTES:
                    await handle_comparing(orchestrator, user_input)

        finally:
            orchestrator.close()


async def single_query(query: str):
    """Route to the best match for a destination query and print the result."""
    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        orchestrator = build_orchestrator(client)
        try:
            places = await orchestrator.search_destinations(query)
            if not places:
                console.print(f"[red]Could not find: {query}[/red]")
                return

            with console.status(f"Calculating route to {places[0].name}..."):
                session = await orchestrator.select_destination(places[0])
            console.print(render_session(session))
        finally:
            orchestrator.close()


def serve():
    """Run the route-modification endpoint."""
    app = create_app(build_intent_parser(settings))
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


def main():
    """Main entry point."""
    load_dotenv()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    if len(sys.argv) > 1 and sys.argv[1] == "serve":
        serve()
        return

    try:
        if len(sys.argv) > 1:
            # Single destination mode
            query = " ".join(sys.argv[1:])
            asyncio.run(single_query(query))
        else:
            # Interactive dashboard mode
            asyncio.run(dashboard_loop())
    except KeyboardInterrupt:
        # Ctrl-C surfaces here, not inside the prompt thread
        console.print("\n\n[dim]Session interrupted. Goodbye![/dim]\n")


if __name__ == "__main__":
    main()
