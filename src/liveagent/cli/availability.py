"""CLI: liveagent availability"""

import json
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from liveagent.api import LiveAgentAPI
from liveagent.errors import LiveAgentError
from liveagent.models.messages import AvailabilityData

console = Console()


def _get_config(**overrides):
    from liveagent.cli.main import _get_config
    return _get_config(**overrides)


def _run(coro):
    from liveagent.cli.main import _run
    return _run(coro)


@click.command("availability")
@click.option("-b", "--button", "buttons", multiple=True, help="Button ID (repeatable)")
@click.option("--json-output", "--json", is_flag=True)
def availability_cmd(buttons: tuple[str, ...], json_output: bool):
    """Check whether chat buttons can take new chats."""

    async def _check() -> Optional[AvailabilityData]:
        api = LiveAgentAPI(_get_config())
        try:
            envelope = await api.availability(list(buttons) or None)
        except LiveAgentError as e:
            console.print(f"[red]{e.code}:[/red] {e}")
            return None
        finally:
            await api.close()
        return envelope.payload()  # type: ignore[return-value]

    data = _run(_check())
    if data is None:
        raise SystemExit(1)
    if json_output:
        click.echo(json.dumps(data.model_dump(by_alias=True), indent=2))
        return
    table = Table(title="Availability")
    table.add_column("Button", style="bold")
    table.add_column("Status")
    for result in data.results:
        status = "[green]online[/green]" if result.is_available else "[yellow]offline[/yellow]"
        table.add_row(result.id, status)
    console.print(table)
