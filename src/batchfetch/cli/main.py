import asyncio
import json
import logging
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from batchfetch.backends.jsonrpc import DEFAULT_METHOD, JsonRpcBackend
from batchfetch.config import DEFAULT_MAXIMUM_BATCH_SIZE, DEFAULT_TIME_WINDOW_MS
from batchfetch.engine import Coalescer
from batchfetch.enums import WindowMode
from batchfetch.utils.logging import setup_logging

app = typer.Typer(no_args_is_help=True)


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("-v", "--verbose", help="Show debug logs from the coalescing engine"),
    ] = False,
):
    """Coalesce single-key lookups into batched backend calls."""
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING)


def summarize(value: Any, width: int = 60) -> str:
    if value is None:
        return "[dim]null[/dim]"
    text = json.dumps(value, default=str)
    return escape(text if len(text) <= width else f"{text[: width - 3]}...")


async def fetch_all(backend: JsonRpcBackend, keys: list[str], coalescer: Coalescer) -> list[Any]:
    async with coalescer:
        futures = [coalescer.submit(backend, key) for key in keys]
        return await asyncio.gather(*futures, return_exceptions=True)


@app.command(name="fetch")
def fetch_keys(
    endpoint: Annotated[str, typer.Argument(help="JSON-RPC endpoint URL")],
    keys: Annotated[list[str], typer.Argument(help="Keys to look up")],
    time_window: Annotated[
        int,
        typer.Option("--time-window", min=1, help="Window duration in milliseconds"),
    ] = DEFAULT_TIME_WINDOW_MS,
    max_batch_size: Annotated[
        int,
        typer.Option("--max-batch-size", min=1, help="Maximum unique keys per backend call"),
    ] = DEFAULT_MAXIMUM_BATCH_SIZE,
    window_mode: Annotated[
        WindowMode,
        typer.Option("--window-mode", help="How windows close"),
    ] = WindowMode.DEBOUNCE,
    method: Annotated[str, typer.Option(help="JSON-RPC method name")] = DEFAULT_METHOD,
):
    """Fetch KEYS from ENDPOINT through a single coalescing engine"""
    backend = JsonRpcBackend(endpoint, method=method)
    coalescer = Coalescer()
    coalescer.set_config(
        time_window=time_window,
        maximum_batch_size=max_batch_size,
        window_mode=window_mode,
    )
    results = asyncio.run(fetch_all(backend=backend, keys=keys, coalescer=coalescer))

    table = Table("Key", "Result", title=f"{len(keys)} lookup(s) via {endpoint}")
    failed = 0
    for key, result in zip(keys, results):
        if isinstance(result, BaseException):
            failed += 1
            message = escape(f"{type(result).__name__}: {result}")
            table.add_row(escape(key), f"[red]{message}[/red]")
        else:
            table.add_row(escape(key), summarize(result))
    console = Console()
    console.print(table)
    if failed:
        typer.echo(f"{failed} lookup(s) failed")
        raise typer.Exit(1)
