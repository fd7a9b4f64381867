"""CLI: liveagent chat"""

import asyncio
import json
import threading
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from liveagent.bus import Subscription
from liveagent.errors import LiveAgentError
from liveagent.models.events import Envelope, EventTag
from liveagent.models.requests import ChasitorInit
from liveagent.session import ChatSession
from liveagent.transport.http import USER_AGENT

console = Console()


def _get_config(**overrides):
    from liveagent.cli.main import _get_config
    return _get_config(**overrides)


def _run(coro):
    from liveagent.cli.main import _run
    return _run(coro)


def _read_line() -> Optional[str]:
    try:
        return click.prompt("You", prompt_suffix=": ", default="", show_default=False)
    except click.Abort:
        return None


def _prompt() -> "asyncio.Future[Optional[str]]":
    """Read one line on a daemon thread so a pending prompt never holds up exit."""
    loop = asyncio.get_running_loop()
    future: asyncio.Future[Optional[str]] = loop.create_future()

    def deliver(line: Optional[str]) -> None:
        if not future.done():
            future.set_result(line)

    def read() -> None:
        line = _read_line()
        try:
            loop.call_soon_threadsafe(deliver, line)
        except RuntimeError:
            return  # the chat loop has already exited

    threading.Thread(target=read, name="liveagent-prompt", daemon=True).start()
    return future


def _render(event: Envelope) -> Optional[str]:
    try:
        data = event.payload()
    except ValidationError:
        return f"[dim]{event.type.value}: {escape(json.dumps(event.message))}[/dim]"
    if event.type is EventTag.CHAT_MESSAGE:
        return f"[green]{data.name or 'Agent'}:[/green] {data.text}"
    if event.type is EventTag.CHASITOR_CHAT_MESSAGE:
        return f"[dim]{data.name or 'You'}: {data.text}[/dim]"
    if event.type is EventTag.CHAT_REQUEST_SUCCESS:
        position = data.queue_position
        return f"[dim]Waiting for an agent{f' (queue position {position})' if position else ''}...[/dim]"
    if event.type is EventTag.QUEUE_UPDATE:
        return f"[dim]Queue position: {data.position}[/dim]"
    if event.type is EventTag.CHAT_ESTABLISHED:
        return f"[cyan]{data.name} joined the chat.[/cyan]"
    if event.type is EventTag.CHAT_TRANSFERRED:
        return f"[cyan]Transferred to {data.name}.[/cyan]"
    if event.type is EventTag.CHAT_REQUEST_FAIL:
        return f"[red]Chat request failed: {data.reason}[/red]"
    if event.type is EventTag.AGENT_DISCONNECT:
        return "[yellow]Agent disconnected.[/yellow]"
    if event.type is EventTag.AGENT_TYPING:
        return "[dim]Agent is typing...[/dim]"
    if event.type is EventTag.CHAT_ENDED:
        return "[yellow]Chat ended by agent.[/yellow]"
    if event.type is EventTag.CHAT_END:
        return "[yellow]Chat ended.[/yellow]"
    return None


async def _print_events(events: Subscription, json_output: bool) -> None:
    async for event in events:
        if isinstance(event, LiveAgentError):
            if json_output:
                click.echo(json.dumps({"type": "Error", "code": event.code, "message": str(event)}))
            else:
                console.print(f"[red]{event.code}:[/red] {event}")
            continue
        if json_output:
            click.echo(json.dumps({"type": event.type.value, "message": event.message}))
            continue
        line = _render(event)
        if line:
            console.print(line)


@click.command("chat")
@click.option("-n", "--name", "visitor_name", prompt="Your name")
@click.option("--language", default="en-US", show_default=True)
@click.option("--json-output", "--json", is_flag=True, help="Print raw events as JSON lines")
def chat_cmd(visitor_name: str, language: str, json_output: bool):
    """Interactive chat with a Live Agent (type /quit to leave)."""

    async def _chat():
        session = ChatSession(
            _get_config(auto_resync=True),
            ChasitorInit(visitor_name=visitor_name, language=language, user_agent=USER_AGENT),
        )
        printer = asyncio.create_task(_print_events(session.all(), json_output))
        with console.status("Requesting chat..."):
            started = await session.start()
        if not started:
            await session.close()
            await printer
            raise SystemExit(1)

        closed = asyncio.ensure_future(session.wait_closed())
        try:
            while True:
                read = _prompt()
                done, _ = await asyncio.wait({read, closed}, return_when=asyncio.FIRST_COMPLETED)
                if closed in done:
                    break
                text = read.result()
                if text is None or text.strip().lower() in ("/quit", "/exit"):
                    break
                if not text.strip():
                    continue
                try:
                    await session.api.chat_message(text)
                except LiveAgentError:
                    continue  # already printed from the error stream
        finally:
            if not session.bus.closed:
                try:
                    await session.end()
                except LiveAgentError:
                    pass  # already printed from the error stream
            await session.close()
            await printer

    _run(_chat())
