"""
Live Agent CLI: `liveagent` command.

Commands:
  liveagent configure        Save deployment settings
  liveagent availability     Is the chat button online?
  liveagent chat             Interactive chat with an agent
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

try:
    import click
    from rich.console import Console
except ImportError:
    raise SystemExit("CLI requires extras: pip install liveagent-sdk[cli]")

from pydantic import ValidationError

from liveagent.config import Config

console = Console()
CONFIG_FILE = Path.home() / ".liveagent" / "config.json"


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))


def _get_config(**overrides: Any) -> Config:
    """Saved config file, overridden by LIVEAGENT_* variables, overridden by options."""
    saved = {k: v for k, v in _load_config().items() if v}
    overrides = {k: v for k, v in overrides.items() if v is not None}
    try:
        return Config.from_env(defaults=saved, **overrides)
    except ValidationError as e:
        console.print(f"[red]Incomplete configuration:[/red] {e.error_count()} problem(s).")
        console.print("[dim]Run `liveagent configure` or set LIVEAGENT_* environment variables.[/dim]")
        raise SystemExit(1)


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Log protocol activity")
def main(verbose: bool):
    """Live Agent CLI: chat with a Live Agent deployment from the terminal."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")


@main.command("configure")
@click.option("--host", prompt=True)
@click.option("--organization-id", prompt=True)
@click.option("--deployment-id", prompt=True)
@click.option("--button-id", prompt=True)
@click.option("--version", "version", default="42", show_default=True)
def configure(host: str, organization_id: str, deployment_id: str, button_id: str, version: str):
    """Save deployment settings to ~/.liveagent/config.json."""
    cfg = {
        "host": host,
        "organization_id": organization_id,
        "deployment_id": deployment_id,
        "button_id": button_id,
        "version": version,
    }
    try:
        Config(**cfg)
    except ValidationError as e:
        console.print(f"[red]Invalid settings:[/red] {e}")
        raise SystemExit(1)
    _save_config(cfg)
    console.print(f"[green]Saved to {CONFIG_FILE}[/green]")


# Register subcommands from separate modules
from liveagent.cli.availability import availability_cmd
from liveagent.cli.chat import chat_cmd

main.add_command(availability_cmd)
main.add_command(chat_cmd)


if __name__ == "__main__":
    main()
