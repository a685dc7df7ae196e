#!/usr/bin/env python3
"""rmshot - take reMarkable screenshots from the command line.

Usage:
    # Capture into the vault and append an embed to a note
    python -m rmshot capture --vault ~/notes --note ~/notes/today.md

    # Replace a placeholder instead of appending
    python -m rmshot capture --vault ~/notes --note today.md --placeholder "%%shot%%"

    # Show or change settings
    python -m rmshot settings
    python -m rmshot settings --set ip=192.168.1.20 --set dir=sketches

    # Act as a tool host: list tools, call one, or type a user command
    python -m rmshot tools
    python -m rmshot tool insertRemarkableScreenshot --arg document_path=today.md
    python -m rmshot command remarkable insert today.md %%shot%%
"""

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from rmshot.plugins import PluginRegistry
from rmshot.plugins.base import parse_command_args
from rmshot.plugins.remarkable import (
    CaptureError,
    ConfigValidationError,
    NonZeroExit,
)
from rmshot.plugins.remarkable.embed import EMBED_STYLES

PLUGIN_NAME = "remarkable"

logger = logging.getLogger(__name__)


def _plugin_options() -> argparse.ArgumentParser:
    """Options shared by every subcommand that may take a screenshot."""
    options = argparse.ArgumentParser(add_help=False)
    options.add_argument(
        "--vault",
        default=".",
        help="Vault root directory (default: current directory)",
    )
    options.add_argument(
        "--style",
        choices=EMBED_STYLES,
        default="wikilink",
        help="Embed syntax (default: wikilink)",
    )
    options.add_argument("--ip", help="Device address, overrides settings")
    options.add_argument("--dir", help="Target directory, overrides settings")
    options.add_argument(
        "--executable",
        help="Capture tool to run (default: resnap-rs)",
    )
    return options


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rmshot",
        description="Take reMarkable screenshots with resnap-rs and embed them in notes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  rmshot capture --vault ~/notes
  rmshot capture --vault ~/notes --note ~/notes/today.md
  rmshot settings --set ip=10.11.99.1
  rmshot tools
        """,
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to .env file (default: .env)",
    )
    parser.add_argument(
        "--settings",
        metavar="PATH",
        help="Settings file (default: ./.rmshot.json or ~/.config/rmshot/settings.json)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging",
    )

    plugin_options = _plugin_options()
    subparsers = parser.add_subparsers(dest="command", required=True)

    capture_parser = subparsers.add_parser(
        "capture", parents=[plugin_options], help="Take a screenshot"
    )
    capture_parser.add_argument(
        "--note",
        metavar="FILE",
        help="Markdown document to embed the screenshot in",
    )
    capture_parser.add_argument(
        "--placeholder",
        metavar="TEXT",
        help="Text in the document to replace with the embed",
    )

    settings_parser = subparsers.add_parser("settings", help="Show or change settings")
    settings_parser.add_argument(
        "--set",
        dest="assignments",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Change a setting (device_address/ip, target_directory/dir)",
    )

    subparsers.add_parser(
        "tools", parents=[plugin_options], help="List the tools and commands plugins provide"
    )

    tool_parser = subparsers.add_parser(
        "tool", parents=[plugin_options], help="Call a tool and print its JSON result"
    )
    tool_parser.add_argument("tool_name", metavar="NAME", help="Tool to call")
    tool_parser.add_argument(
        "--arg",
        dest="tool_args",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Tool argument (repeatable)",
    )

    command_parser = subparsers.add_parser(
        "command", parents=[plugin_options], help="Run a user command, e.g. 'remarkable capture'"
    )
    command_parser.add_argument("line", nargs="+", help="Command name followed by its arguments")

    return parser


def _parse_assignment(assignment: str) -> Optional[List[str]]:
    key, sep, value = assignment.partition("=")
    if not sep or not key:
        return None
    return [key, value]


def _run_user_command(registry: PluginRegistry, line: str) -> Optional[str]:
    """Parse a raw command line the way a chat or palette host would.

    Returns None when no enabled plugin declares the command.
    """
    name, _, raw_args = line.strip().partition(" ")
    command = registry.get_enabled_user_commands().get(name)
    if command is None:
        return None
    return registry.execute_user_command(name, parse_command_args(command, raw_args))


def _run_capture(args: argparse.Namespace, registry: PluginRegistry, console: Console) -> int:
    plugin = registry.get_plugin(PLUGIN_NAME)
    try:
        if args.note:
            result, embed = plugin.insert_screenshot(args.note, args.placeholder)
        else:
            result = plugin.take_screenshot()
            embed = None
    except NonZeroExit as exc:
        console.print(f"[red]Screenshot failed:[/red] capture tool exited with code {exc.code}")
        if exc.stderr:
            console.print(escape(exc.stderr.rstrip("\n")), style="dim")
        return 1
    except CaptureError as exc:
        console.print(f"[red]Screenshot failed:[/red] {escape(str(exc))}")
        return 1
    except OSError as exc:
        console.print(f"[red]Failed to update {escape(args.note)}:[/red] {escape(str(exc))}")
        return 1

    console.print(f"[green]Took screenshot[/green] {escape(result.absolute_path)}")
    if embed:
        console.print(f"Inserted {escape(embed)} into {escape(args.note)}")
    else:
        console.print(f"Reference: {escape(result.relative_reference)}")
    return 0


def _run_settings(args: argparse.Namespace, registry: PluginRegistry, console: Console) -> int:
    for assignment in args.assignments:
        parsed = _parse_assignment(assignment)
        if parsed is None:
            console.print(f"[red]Expected KEY=VALUE, got '{escape(assignment)}'[/red]")
            return 2
        key, value = parsed
        console.print(escape(_run_user_command(registry, f"{PLUGIN_NAME} set {key} {value}")))

    console.print(escape(_run_user_command(registry, f"{PLUGIN_NAME} settings")))
    return 0


def _run_tools(args: argparse.Namespace, registry: PluginRegistry, console: Console) -> int:
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("Tool", style="bold")
    table.add_column("Category")
    table.add_column("Description")
    for schema in registry.get_enabled_schemas():
        table.add_row(schema.name, schema.category or "", schema.description)
    console.print(table)

    for command in registry.get_enabled_user_commands().values():
        params = " ".join(f"<{p.name}>" for p in command.parameters or [])
        console.print(f"[bold]{escape(command.name)}[/bold] {escape(params)}  {escape(command.description)}")
    return 0


def _run_tool(args: argparse.Namespace, registry: PluginRegistry, console: Console) -> int:
    tool_args: Dict[str, Any] = {}
    for assignment in args.tool_args:
        parsed = _parse_assignment(assignment)
        if parsed is None:
            console.print(f"[red]Expected KEY=VALUE, got '{escape(assignment)}'[/red]")
            return 2
        tool_args[parsed[0]] = parsed[1]

    executor = registry.get_enabled_executors().get(args.tool_name)
    if executor is None:
        console.print(f"[red]Unknown tool '{escape(args.tool_name)}'[/red]")
        return 2

    result = executor(tool_args)
    if isinstance(result, str):
        console.print(escape(result))
        return 0
    console.print_json(data=result)
    return 1 if isinstance(result, dict) and "error" in result else 0


def _run_command(args: argparse.Namespace, registry: PluginRegistry, console: Console) -> int:
    line = " ".join(args.line)
    output = _run_user_command(registry, line)
    if output is None:
        console.print(f"[red]Unknown command '{escape(args.line[0])}'[/red]")
        return 2
    console.print(escape(output))
    return 0


RUNNERS = {
    "capture": _run_capture,
    "settings": _run_settings,
    "tools": _run_tools,
    "tool": _run_tool,
    "command": _run_command,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    # Before settings are loaded: REMARKABLE_IP may come from .env
    load_dotenv(args.env_file)

    console = Console()

    plugin_config = {"settings_path": args.settings}
    if hasattr(args, "vault"):
        plugin_config.update({
            "vault_path": args.vault,
            "embed_style": args.style,
            "executable": args.executable,
            "device_address": args.ip,
            "target_directory": args.dir,
        })

    registry = PluginRegistry()
    registry.discover()
    try:
        registry.enable(PLUGIN_NAME, config=plugin_config)
    except ConfigValidationError as exc:
        console.print(f"[red]Invalid settings:[/red] {escape(str(exc))}")
        return 2

    try:
        return RUNNERS[args.command](args, registry, console)
    finally:
        registry.disable_all()


if __name__ == "__main__":
    sys.exit(main())
