"""Command-line interface for langloader."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from langloader.config import LoaderConfig
from langloader.core import LanguagePluginHost
from langloader.errors import LanguagePluginError
from langloader.reporting import ConsoleProgressReporter, RecordingStatusSink, Status

console = Console()


def _build_host(ctx: click.Context, **kwargs: Any) -> LanguagePluginHost:
    config = LoaderConfig.from_env()
    if ctx.obj.get("definitions"):
        config.definitions_file = Path(ctx.obj["definitions"])
    if ctx.obj.get("timeout"):
        config.timeout = ctx.obj["timeout"]
    return LanguagePluginHost.from_config(
        config,
        reporter=ConsoleProgressReporter(),
        **kwargs,
    )


@click.group()
@click.option("--definitions", "-d", type=click.Path(), help="Language definitions JSON file")
@click.option("--timeout", type=float, help="HTTP timeout in seconds")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx: click.Context, definitions: str | None, timeout: float | None, verbose: bool) -> None:
    """langloader - load language plugins and run code with them."""
    ctx.ensure_object(dict)
    ctx.obj["definitions"] = definitions
    ctx.obj["timeout"] = timeout
    ctx.obj["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


@cli.command(name="list")
@click.pass_context
def list_languages(ctx: click.Context) -> None:
    """List known language definitions."""
    host = _build_host(ctx)
    definitions = host.registry.definitions

    if not definitions:
        console.print("[yellow]No language definitions configured.[/yellow]")
        return

    table = Table(title="Language Plugins")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Module", style="green")
    table.add_column("Evaluator", style="blue")
    table.add_column("State", style="yellow")

    for language_id, definition in sorted(definitions.items()):
        if definition.async_evaluator:
            evaluator = f"{definition.async_evaluator} (async)"
        else:
            evaluator = definition.evaluator or "[red]none[/red]"
        table.add_row(
            language_id,
            definition.display_name,
            definition.module or "",
            evaluator,
            host.registry.state(language_id).describe(),
        )

    console.print(table)


@cli.command()
@click.argument("definition")
@click.pass_context
def load(ctx: click.Context, definition: str) -> None:
    """Load a plugin from DEFINITION (JSON text or a path to a JSON file)."""
    if definition.lstrip().startswith("{"):
        plugin_text = definition
    else:
        plugin_text = Path(definition).read_text()

    sink = RecordingStatusSink()
    host = _build_host(ctx, status_sink=sink)

    async def _load() -> None:
        async with host:
            await host.evaluate_language_plugin(plugin_text, "cli")

    asyncio.run(_load())

    status = sink.for_request("cli")[-1]
    if status is Status.SUCCESS:
        console.print(f"[green]✓ {status.value}[/green]")
    else:
        console.print(f"[red]✗ {status.value}[/red]")
        sys.exit(1)


@cli.command()
@click.argument("language")
@click.argument("code")
@click.pass_context
def run(ctx: click.Context, language: str, code: str) -> None:
    """Run CODE with LANGUAGE, loading its plugin if needed."""
    host = _build_host(ctx)

    def _on_message(message: Any) -> None:
        console.print(f"[dim]{escape(str(message))}[/dim]")

    async def _run() -> Any:
        async with host:
            return await host.run_code(language, code, _on_message)

    try:
        result = asyncio.run(_run())
    except LanguagePluginError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)
    except Exception as e:
        console.print(Panel(escape(f"{type(e).__name__}: {e}"), title="Evaluation failed", border_style="red"))
        sys.exit(1)

    console.print(Panel(escape(str(result)), title=escape(language), border_style="green"))


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
