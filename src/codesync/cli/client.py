"""Client CLI commands for codesync.

Adds a ``collab`` command group to the Litestar CLI for joining a live room
from a terminal and following its events.
"""

from __future__ import annotations

import asyncio
from typing import Any

import rich_click as click
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from codesync.client.agent import ClientSyncAgent
from codesync.client.buffer import TextBuffer
from codesync.client.channel import ChannelState, ReconnectingChannel
from codesync.core.settings import ClientSettings
from codesync.realtime.messages import EventType

console = Console()


@click.group(name="collab", help="Join and follow collaborative editing rooms.")
def collab_group() -> None:
    """Join and follow collaborative editing rooms."""


@collab_group.command(name="watch", help="Join a room and print its events until interrupted.")
@click.argument("room_id")
@click.option("--url", "-u", default=None, help="Hub WebSocket URL (default: $CODESYNC_URL)")
@click.option("--user-id", default="cli-watcher", help="User id to join as")
@click.option("--user-name", default="CLI Watcher", help="Display name to join as")
@click.option("--show-code", is_flag=True, default=False, help="Print the full buffer on every code update")
def watch_room(room_id: str, url: str | None, user_id: str, user_name: str, show_code: bool) -> None:
    """Join a room and print its events until interrupted."""
    settings = ClientSettings.from_env()
    try:
        asyncio.run(_watch(room_id, url or settings.url, user_id, user_name, settings, show_code=show_code))
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped watching[/yellow]")


async def _watch(
    room_id: str,
    url: str,
    user_id: str,
    user_name: str,
    settings: ClientSettings,
    *,
    show_code: bool,
) -> None:
    channel = ReconnectingChannel(url, settings)
    buffer = TextBuffer()

    def on_run(code: str, language: str, requested_by: str) -> None:
        console.print(f"[magenta]run requested[/magenta] by {requested_by} ({language}, {len(code)} chars)")

    def on_language(language: str) -> None:
        console.print(f"[blue]language[/blue] switched to {language}")

    agent = ClientSyncAgent(
        channel,
        buffer,
        user_id,
        user_name,
        debounce=settings.debounce_seconds,
        on_run=on_run,
        on_language=on_language,
    )

    def on_room_users(data: dict[str, Any]) -> None:
        table = Table(title=f"Room {room_id}")
        table.add_column("Connection", style="dim")
        table.add_column("User ID", style="cyan")
        table.add_column("Name", style="green")
        for participant in data.get("participants", []):
            table.add_row(participant.get("connectionId"), participant.get("userId"), participant.get("userName"))
        console.print(table)

    def on_user_joined(data: dict[str, Any]) -> None:
        console.print(f"[green]+ {data.get('userName')}[/green] ({data.get('userId')}) joined")

    def on_user_left(data: dict[str, Any]) -> None:
        console.print(f"[red]- {data.get('userName')}[/red] ({data.get('userId')}) left")

    def on_code_update(data: dict[str, Any]) -> None:
        code = data.get("code", "")
        console.print(f"[cyan]code[/cyan] updated by {data.get('userId')} ({len(code)} chars)")
        if show_code:
            console.print(Syntax(code, data.get("language") or "text", line_numbers=True))

    def on_error(data: dict[str, Any]) -> None:
        console.print(f"[red]error[/red] {data.get('code')}: {data.get('message')}")

    channel.on(EventType.ROOM_USERS.value, on_room_users)
    channel.on(EventType.USER_JOINED.value, on_user_joined)
    channel.on(EventType.USER_LEFT.value, on_user_left)
    channel.on(EventType.CODE_UPDATE.value, on_code_update)
    channel.on(EventType.ERROR.value, on_error)

    def on_state(state: ChannelState) -> None:
        console.print(f"[dim]channel {state.value}[/dim]")
        if state is ChannelState.CONNECTED:
            if agent.needs_rejoin:
                agent.rejoin()
            else:
                agent.join(room_id)

    channel.add_state_listener(on_state)

    task = channel.start()
    try:
        await task
    finally:
        agent.close()
        await channel.close()

    if channel.state is ChannelState.FAILED:
        console.print(f"[red]Could not reach {url} after {settings.reconnection_attempts} attempts[/red]")
