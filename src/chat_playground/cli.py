"""CLI interface for Chat Playground with streaming output."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import click
from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from chat_playground.config import PlaygroundConfig, load_config
from chat_playground.core.playground import Playground
from chat_playground.llm.client import CompletionClient
from chat_playground.render.formatter import ContentFormatter
from chat_playground.storage import (
    ConversationStore,
    RemoteConversationStore,
    SQLiteConversationStore,
)
from chat_playground.types import EventType, PlaygroundEvent, SegmentKind

console = Console()


class StreamingDisplay:
    """Renders playground events to the terminal in real time."""

    def __init__(self, con: Console, formatter: ContentFormatter, html: bool = False):
        self.con = con
        self.formatter = formatter
        self.html = html
        self._shown = 0

    def handle(self, event: PlaygroundEvent):
        if event.type == EventType.RENDER_FRAGMENT:
            content = event.data["content"]
            if not event.data["final"]:
                if self._shown == 0:
                    self.con.print()
                self.con.print(content[self._shown:], end="", highlight=False, markup=False)
                self._shown = len(content)
                return
            self._finish(content, event.data["html"])

        elif event.type == EventType.NOTIFICATION:
            style = "red" if event.data.get("level") == "error" else "green"
            self.con.print(f"[{style}]{event.data['message']}[/{style}]")

    def _finish(self, content: str, html: str):
        if self._shown:
            self.con.print("\n")
        self._shown = 0
        if self.html:
            self.con.print(html, markup=False, highlight=False)
            return
        label = self.formatter.primary.summary_label
        for segment in self.formatter.split(content).segments:
            if segment.kind is SegmentKind.REASONING:
                self.con.print(Panel(segment.text.strip(), title=label,
                                     border_style="dim", style="dim", expand=False))
            else:
                self.con.print(Markdown(segment.text))


def build_store(config: PlaygroundConfig, client: CompletionClient) -> ConversationStore:
    if config.store.backend == "sqlite":
        return SQLiteConversationStore(config.store.db_path)
    return RemoteConversationStore(client.http, config.server.conversations_path)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------

def _print_conversations(pg: Playground):
    table = Table(show_header=True, header_style="bold")
    table.add_column("")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Model")
    table.add_column("Last message", style="dim")
    for conv in pg.conversations:
        marker = "*" if conv.id == pg.context.active_id else ""
        preview = conv.preview(pg.config.chat.preview_length).replace("\n", " ")
        table.add_row(marker, conv.id[:8], conv.title, conv.model, preview)
    console.print(table)


async def handle_command(cmd: str, pg: Playground) -> bool | str:
    """Run a slash command.  Returns ``"quit"``, True if handled, else False."""
    parts = cmd.strip().split(maxsplit=1)
    command = parts[0].lower()
    arg = parts[1].strip() if len(parts) > 1 else ""
    active = pg.active

    if command in ("/quit", "/exit", "/q"):
        return "quit"

    if command == "/new":
        conv = await pg.new_conversation()
        console.print(f"[green]New conversation {conv.id[:8]}[/green]")
        return True

    if command == "/list":
        _print_conversations(pg)
        return True

    if command == "/switch":
        matches = [c for c in pg.conversations if c.id.startswith(arg)] if arg else []
        if len(matches) != 1:
            console.print(f"[red]No unique conversation matches '{arg}'[/red]")
            return True
        conv = pg.select(matches[0].id)
        console.print(f"[green]Switched to: {conv.title}[/green]")
        for msg in conv.messages:
            label = "you" if msg.role.value == "user" else "assistant"
            console.print(f"[bold]{label}[/bold]")
            console.print(Markdown(msg.content))
        return True

    if command == "/rename" and active:
        if await pg.rename(active.id, arg):
            console.print(f"[green]Renamed to: {arg}[/green]")
        else:
            console.print("[red]Usage: /rename <title>[/red]")
        return True

    if command == "/delete" and active:
        await pg.delete(active.id)
        console.print(f"[green]Deleted. Active: {pg.active.title}[/green]")
        return True

    if command == "/clear" and active:
        await pg.clear(active.id)
        console.print("[green]Conversation cleared[/green]")
        return True

    if command == "/model":
        if arg:
            await pg.set_model(arg)
        console.print(f"[dim]Model: {pg.active.model}[/dim]")
        return True

    if command == "/stream":
        if arg in ("on", "off"):
            await pg.set_stream(arg == "on")
        console.print(f"[dim]Streaming: {'on' if pg.active.stream_enabled else 'off'}[/dim]")
        return True

    if command == "/effort":
        await pg.set_reasoning_effort(arg)
        console.print(f"[dim]Reasoning effort: {arg or '(default)'}[/dim]")
        return True

    if command == "/help":
        console.print("""[bold]Commands:[/bold]
  /new             - Start a new conversation
  /list            - List conversations
  /switch <id>     - Switch conversation (id prefix)
  /rename <title>  - Rename the active conversation
  /delete          - Delete the active conversation
  /clear           - Remove all messages from the active conversation
  /model <name>    - Show or set the model
  /stream on|off   - Toggle streamed responses
  /effort <value>  - Set reasoning effort (empty to unset)
  /quit            - Exit
        """)
        return True

    return False


async def _repl(pg: Playground):
    history_path = Path(os.path.expanduser("~/.chat_playground/history"))
    history_path.parent.mkdir(parents=True, exist_ok=True)
    session = PromptSession(history=FileHistory(str(history_path)))

    while True:
        try:
            user_input = (await session.prompt_async(HTML("<ansigreen><b>❯ </b></ansigreen>"))).strip()
        except (EOFError, KeyboardInterrupt):
            console.print("\n[dim]Goodbye![/dim]")
            return
        if not user_input:
            continue

        if user_input.startswith("/"):
            result = await handle_command(user_input, pg)
            if result == "quit":
                console.print("[dim]Goodbye![/dim]")
                return
            if result:
                continue

        await pg.send(user_input)
        console.print()


async def _run(config: PlaygroundConfig, html: bool):
    client = CompletionClient(config.server)
    store = build_store(config, client)
    pg = Playground(config, client, store)
    display = StreamingDisplay(console, pg.formatter, html=html)
    pg.bus.subscribe("*", display.handle)
    try:
        conv = await pg.load()
        console.print(f"[dim]Conversation: {conv.title} ({conv.model})[/dim]")
        console.print("[dim]Type /help for commands[/dim]\n")
        await _repl(pg)
    finally:
        pg.bus.unsubscribe("*", display.handle)
        await store.close()
        await client.close()


@click.command()
@click.option("--config", "-c", "config_path", default=None,
              help="Path to chat_playground.yaml (auto-detected from CWD or ~/.chat_playground/)")
@click.option("--model", "-m", default=None, help="Model for new conversations")
@click.option("--no-stream", is_flag=True, help="Request buffered responses")
@click.option("--html", "html_output", is_flag=True, help="Print rendered HTML fragments")
@click.option("--render", "render_file", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Render a message file to HTML and exit")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
def main(config_path: str | None, model: str | None, no_stream: bool,
         html_output: bool, render_file: str | None, verbose: bool):
    """Chat Playground - chat with OpenAI-compatible completion servers."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    try:
        config, config_file = load_config(config_path)
    except FileNotFoundError as e:
        raise click.ClickException(str(e))

    if render_file:
        formatter = ContentFormatter.from_config(config.render)
        click.echo(formatter.format(Path(render_file).read_text(encoding="utf-8")))
        return

    if model:
        config.chat.model = model
    if no_stream:
        config.chat.stream = False

    if config_file:
        console.print(f"[dim]Config: {config_file}[/dim]")
    else:
        console.print("[dim]Config: defaults (no chat_playground.yaml found)[/dim]")
    console.print(f"[dim]Server: {config.server.base_url}[/dim]")

    asyncio.run(_run(config, html_output))


if __name__ == "__main__":
    main()
