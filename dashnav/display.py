"""Render session snapshots for the terminal.

Everything here is a pure function of a NavigationSession (plus the clock for
ETAs). Nothing in this module changes navigation state.
"""

import re
from datetime import datetime, timedelta
from typing import Optional

from rich.console import RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from dashnav.models import NavigationSession, NavigationState, Notice, NoticeLevel, Route
from dashnav.utils.geo import find_current_step


METERS_PER_MILE = 1609.344
FEET_PER_MILE = 5280

NOTICE_STYLES = {
    NoticeLevel.INFO: "blue",
    NoticeLevel.WARNING: "yellow",
    NoticeLevel.ERROR: "red",
}


def format_distance(meters: float) -> str:
    """Miles with one decimal, or feet below a tenth of a mile."""
    miles = meters / METERS_PER_MILE
    if miles < 0.1:
        return f"{round(miles * FEET_PER_MILE)} ft"
    return f"{miles:.1f} mi"


def format_duration(seconds: float) -> str:
    minutes = round(seconds / 60)
    if minutes < 60:
        return f"{minutes} min"
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins}m" if mins else f"{hours}h"


def format_eta(duration_seconds: float, now: Optional[datetime] = None) -> str:
    arrival = (now or datetime.now()) + timedelta(seconds=duration_seconds)
    return arrival.strftime("%I:%M %p").lstrip("0")


def format_step_instruction(instruction: str) -> str:
    """Strip the provider's leading verbs so the street name stands out."""
    if not instruction:
        return "Continue straight"
    return re.sub(r"^(Head|Continue|Turn) ", "", instruction).strip()


def describe_route(route: Route, reference: Route) -> str:
    """Short comparison of a candidate against the current route."""
    if route is reference:
        return "Current route"

    parts = []
    delta_distance = route.distance - reference.distance
    delta_duration = route.duration - reference.duration

    if delta_distance:
        parts.append(f"{'+' if delta_distance > 0 else '-'}{format_distance(abs(delta_distance))}")
    if delta_duration:
        parts.append(f"{'+' if delta_duration > 0 else '-'}{format_duration(abs(delta_duration))}")
    return ", ".join(parts) or "Same distance and time"


def navigation_summary(session: NavigationSession, now: Optional[datetime] = None) -> str:
    """Markdown block with the next turn, ETA, distance and destination."""
    route = session.active_route
    if route is None:
        return "Calculating route..."

    step, distance_to_step = find_current_step(route, session.current_location)
    if step is None:
        next_turn = "Calculating route..."
        next_distance = ""
    else:
        next_turn = format_step_instruction(step.instruction)
        # Close to a maneuver, show the length of the upcoming step instead
        next_distance = format_distance(step.distance if distance_to_step < 50 else distance_to_step)

    lines = [
        f"### Next turn: {next_turn}",
    ]
    if next_distance:
        lines.append(f"In {next_distance}")
    lines += [
        "",
        f"**ETA:** {format_eta(route.duration, now)}",
        f"**Distance:** {format_distance(route.distance)}",
    ]
    if session.destination:
        lines.append(f"**Destination:** {session.destination.name}")
    if session.explanation:
        lines += ["", f"_{session.explanation}_"]

    return "\n".join(lines)


def comparison_table(session: NavigationSession) -> Table:
    """Table of route options; the current route is always option 0."""
    table = Table(title="Route Options", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Route")
    table.add_column("Distance", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("")

    reference = session.candidate_routes[0] if session.candidate_routes else None
    for index, route in enumerate(session.candidate_routes):
        marker = "✓" if index == session.selected_candidate_index else ""
        table.add_row(
            str(index),
            describe_route(route, reference),
            format_distance(route.distance),
            format_duration(route.duration),
            marker,
        )
    return table


def render_session(session: NavigationSession, now: Optional[datetime] = None) -> RenderableType:
    """Project the whole session into one renderable."""
    if session.state is NavigationState.IDLE:
        return Panel("Where are you heading?", title="Journey Assist", border_style="blue")

    if session.state is NavigationState.SEARCHING:
        return Panel("Calculating route...", border_style="dim")

    if session.state is NavigationState.COMPARING_ROUTES:
        found = len(session.candidate_routes) - 1
        return Panel(
            comparison_table(session),
            title=f"{found} alternative{'s' if found != 1 else ''} found",
            border_style="magenta",
        )

    return Panel(Markdown(navigation_summary(session, now)), title="Navigating", border_style="green")


def render_notice(notice: Notice) -> Panel:
    style = NOTICE_STYLES[notice.level]
    title = "Notice" if notice.level is NoticeLevel.INFO else notice.level.value.title()
    return Panel(notice.message, title=title, border_style=style)
