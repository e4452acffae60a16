#!/usr/bin/env python3
"""
AppForge CLI - Main Entry Point

Usage:
    appforge build response.md                  # Scaffold from a saved AI response
    appforge build response.md --dry-run        # Show files and commands only
    appforge plan --config project.json         # Print the scaffolding commands
    appforge generate "create a todo app"       # Prompt an AI provider, then build
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from appforge import __version__
from appforge.core.config import settings
from appforge.modules.execution.connection import ConnectionManager
from appforge.modules.execution.local_fallback import LocalMaterializer
from appforge.modules.extraction.config_parser import config_parser
from appforge.modules.extraction.response_splitter import response_splitter
from appforge.modules.generation.collaborators import get_collaborator
from appforge.modules.orchestrator.session_orchestrator import SessionOrchestrator
from appforge.modules.planning.command_planner import command_planner
from appforge.schemas.session import GenerationResult, MaterializationResult, MaterializationStatus, ScaffoldSession


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI"""
    parser = argparse.ArgumentParser(
        prog="appforge",
        description="AppForge - turn AI-generated project text into a scaffolded project",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  appforge build response.md                         Scaffold through the terminal server
  appforge build response.md --endpoint ws://h:3001  Use a different terminal server
  appforge build - --dry-run < response.md           Preview files and commands
  appforge plan --config '{"type": "fullstack"}'     Print the command plan
  appforge generate "a kanban board with auth"       Generate with Anthropic and build

When the terminal server cannot be reached the project is packaged as
<output-dir>/<name>.zip instead.
        """
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    build_parser = subparsers.add_parser("build", help="Scaffold a project from an AI response file")
    build_parser.add_argument("response_file", help="File holding the AI response ('-' for stdin)")
    _add_materialize_arguments(build_parser)

    plan_parser = subparsers.add_parser("plan", help="Print scaffolding commands for a configuration")
    plan_parser.add_argument(
        "--config", "-c",
        default="{}",
        help="Project configuration as a JSON string or path to a JSON file"
    )

    generate_parser = subparsers.add_parser("generate", help="Generate a project from a prompt")
    generate_parser.add_argument("prompt", help="What to build")
    generate_parser.add_argument(
        "--provider",
        choices=["anthropic", "gemini"],
        default="anthropic",
        help="AI provider (default: anthropic)"
    )
    generate_parser.add_argument("--save", help="Also write the raw AI response to this file")
    _add_materialize_arguments(generate_parser)

    return parser


def _add_materialize_arguments(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument(
        "--endpoint", "-e",
        default=settings.TERMINAL_WS_URL,
        help=f"Terminal server websocket URL (default: {settings.TERMINAL_WS_URL})"
    )
    subparser.add_argument(
        "--output-dir", "-o",
        default=settings.ARCHIVE_OUTPUT_DIR,
        help=f"Directory for the fallback archive (default: {settings.ARCHIVE_OUTPUT_DIR})"
    )
    subparser.add_argument("--name", "-n", help="Override the project name")
    subparser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show organized files and commands without executing anything"
    )


def _read_text(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _load_config_argument(value: str):
    path = Path(value)
    raw = path.read_text(encoding="utf-8") if path.is_file() else value
    return config_parser.resolve_config(json.loads(raw))


def _build_orchestrator(args) -> SessionOrchestrator:
    return SessionOrchestrator(
        manager=ConnectionManager(url=args.endpoint),
        materializer=LocalMaterializer(output_dir=args.output_dir),
    )


def print_session(console: Console, session: ScaffoldSession, commands) -> None:
    config = session.config
    console.print(Panel(
        f"[bold]{config.name}[/bold]  {config.type} / {config.language}\n"
        f"session: {session.session_id}",
        title="Project",
        border_style="cyan"
    ))

    files = Table(title="Organized files", show_lines=False)
    files.add_column("Path", style="green")
    files.add_column("Size", justify="right")
    for path in sorted(session.files):
        files.add_row(path, f"{len(session.files[path])} chars")
    console.print(files)

    print_plan(console, commands)


def print_plan(console: Console, commands) -> None:
    table = Table(title="Scaffolding commands")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Command", style="cyan")
    for index, command in enumerate(commands, 1):
        table.add_row(str(index), command)
    console.print(table)


def print_result(console: Console, result: MaterializationResult) -> None:
    if result.status == MaterializationStatus.LIVE:
        console.print(f"\n[green]✓ Project '{result.project_name}' scaffolded on the terminal server[/green]")
    elif result.status == MaterializationStatus.ARCHIVED:
        console.print("\n[yellow]Terminal server unavailable, project packaged instead[/yellow]")
        console.print(f"[green]✓ Download:[/green] {result.archive_path}")
    else:
        message = (result.error or {}).get("message", "unknown error")
        console.print(f"\n[red]✗ Failed to create project '{result.project_name}': {message}[/red]")


async def run_materialize(console: Console, args, response: GenerationResult) -> int:
    orchestrator = _build_orchestrator(args)
    session = orchestrator.prepare(response, name=args.name)

    if args.dry_run:
        print_session(console, session, orchestrator.plan(session.config))
        return 0

    with console.status(f"Creating project '{session.project_name}'..."):
        result = await orchestrator.materialize(session)
    print_result(console, result)
    return 0 if result.success else 1


async def run_generate(console: Console, args) -> int:
    collaborator = get_collaborator(args.provider)
    with console.status(f"Generating with {args.provider}..."):
        response = await collaborator.generate(args.prompt)

    if response.error:
        console.print(f"[red]✗ Generation failed: {response.error}[/red]")
        return 1

    if args.save:
        parts = [response.text or "", response.code or ""]
        Path(args.save).write_text("\n\n".join(p for p in parts if p), encoding="utf-8")
        console.print(f"[dim]Response saved to {args.save}[/dim]")

    if response.text:
        console.print(Panel(response.text, title="Overview", border_style="blue"))
    return await run_materialize(console, args, response)


def main(argv: Optional[list] = None) -> int:
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)
    console = Console()

    if args.command == "build":
        try:
            text = _read_text(args.response_file)
        except OSError as e:
            console.print(f"[red]✗ Cannot read {args.response_file}: {e}[/red]")
            return 1
        return asyncio.run(run_materialize(console, args, response_splitter.split(text)))

    if args.command == "plan":
        try:
            config = _load_config_argument(args.config)
        except (OSError, json.JSONDecodeError) as e:
            console.print(f"[red]✗ Invalid configuration: {e}[/red]")
            return 1
        print_plan(console, command_planner.plan(config))
        return 0

    if args.command == "generate":
        return asyncio.run(run_generate(console, args))

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
