"""
conductor CLI - run the server or talk to the agents from a terminal.

Commands:
    conductor serve                      Start the HTTP API (uvicorn)
    conductor chat "message" --mode duo  Run one chat turn and print the stream
    conductor prefs                      List stored preferences
    conductor prefs --delete KEY         Delete one preference
"""

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .agents.prompts import display_name
from .agents.registry import AgentRegistry
from .config import load_config
from .memory.models import ChatMode
from .memory.store import SQLiteStore
from .orchestration.conductor import ChatTurn, Orchestrator
from .streaming.channel import EventChannel
from .streaming.events import EventType

app = typer.Typer(help="Multi-agent review chat with live streaming")
console = Console()

AGENT_STYLES = {"claude": "magenta", "gpt": "green", "gemini": "blue"}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# =============================================================================
# SERVE
# =============================================================================


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Port"),
):
    """Start the HTTP API."""
    import uvicorn

    console.print(f"\n[bold blue]conductor serve[/bold blue] on http://{host}:{port}\n")
    uvicorn.run("conductor.api.gateway:create_app", factory=True, host=host, port=port)


# =============================================================================
# CHAT
# =============================================================================


async def _run_chat(turn: ChatTurn) -> bool:
    config = load_config()
    store = SQLiteStore(config.db_path)
    orchestrator = Orchestrator(store, AgentRegistry(config), config)
    channel = EventChannel(heartbeat_interval=config.heartbeat_interval)

    task = asyncio.create_task(orchestrator.run(turn, channel))
    ok = True
    async for event in channel.events():
        if event.type == EventType.CONVERSATION_ID:
            console.print(f"[dim]conversation {event.payload['id']}[/dim]")
        elif event.type == EventType.TYPING:
            sender = event.payload["sender"]
            console.print(f"[dim]{display_name(sender)} is typing...[/dim]")
        elif event.type == EventType.MESSAGE:
            sender = event.payload["sender"]
            console.print(Panel(
                event.payload["content"],
                title=display_name(sender),
                border_style=AGENT_STYLES.get(sender, "white"),
            ))
        elif event.type == EventType.DONE:
            meta = event.payload.get("metadata") or {}
            tokens = (meta.get("tokens") or {}).get("total", 0)
            console.print(
                f"[bold green]done[/bold green] "
                f"[dim]{meta.get('action')} | {tokens} tokens | "
                f"{len(meta.get('auto_saved', []))} auto-saved | "
                f"{meta.get('duration_seconds')}s[/dim]"
            )
        elif event.type == EventType.ERROR:
            console.print(f"[bold red]Error:[/bold red] {event.payload['error']}")
            ok = False
    await task
    return ok


@app.command()
def chat(
    message: str = typer.Argument(..., help="Your message"),
    mode: str = typer.Option(ChatMode.TEAM, help="solo, duo or team"),
    conversation: str = typer.Option(None, "--conversation", "-c", help="Continue a conversation"),
    project: str = typer.Option(None, help="Project id"),
    editor_file: Path = typer.Option(None, help="File to send as editor content"),
):
    """Run one chat turn and print the agents' replies."""
    if mode not in ChatMode.ALL:
        console.print(f"[bold red]Error:[/bold red] mode must be one of: {', '.join(ChatMode.ALL)}")
        raise typer.Exit(2)

    editor_content = None
    if editor_file is not None:
        try:
            editor_content = editor_file.read_text(encoding="utf-8")
        except OSError as e:
            console.print(f"[bold red]Error:[/bold red] cannot read {editor_file}: {e}")
            raise typer.Exit(1)

    turn = ChatTurn(
        message=message,
        mode=mode,
        conversation_id=conversation,
        project_id=project,
        editor_content=editor_content,
    )
    if not asyncio.run(_run_chat(turn)):
        raise typer.Exit(1)


# =============================================================================
# PREFS
# =============================================================================


@app.command()
def prefs(
    delete: str = typer.Option(None, "--delete", help="Delete the preference with this key"),
):
    """List (or delete) stored preferences."""
    store = SQLiteStore(load_config().db_path)

    if delete:
        existing = asyncio.run(store.get_preferences())
        if not any(p.key == delete for p in existing):
            console.print(f"[yellow]No preference with key '{delete}'[/yellow]")
            raise typer.Exit(1)
        asyncio.run(store.delete_preference(delete))
        console.print(f"[green]Deleted[/green] {delete}")
        return

    preferences = asyncio.run(store.get_preferences())
    if not preferences:
        console.print("[dim]No preferences saved yet.[/dim]")
        return

    table = Table(title="Preferences")
    table.add_column("Category", style="bold")
    table.add_column("Key")
    table.add_column("Value")
    table.add_column("Updated", style="dim")
    for p in preferences:
        table.add_row(p.category, p.key, p.value, p.updated_at[:19])
    console.print(table)


if __name__ == "__main__":
    app()
