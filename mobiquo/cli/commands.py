"""CLI commands for mobiquo.

Every command reads its settings from ``TAPATALK_*`` environment variables,
opens one client, runs one operation and prints the result.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeVar

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from mobiquo import __version__
from mobiquo.config import Settings, load_settings
from mobiquo.tapatalk import TapatalkClient
from mobiquo.utils.exceptions import ConfigError, LoginError, MobiquoError, sanitize_error_message
from mobiquo.utils.logging_utils import configure_logging
from mobiquo.xmlrpc.types import ParamType

app = typer.Typer(
    name="mobiquo",
    help="mobiquo - Tapatalk forum client",
    no_args_is_help=True,
)

console = Console()
T = TypeVar("T")


def version_callback(value: bool):
    if value:
        console.print(f"mobiquo v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", callback=version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show mobiquo runtime logs"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Debug logs, including every XML-RPC call"),
    log_file: Path = typer.Option(None, "--log-file", help="Also write logs to this rotating file"),
):
    """mobiquo - Tapatalk forum client."""
    if debug:
        configure_logging("DEBUG", log_file=log_file)
    elif verbose or log_file:
        configure_logging("INFO", log_file=log_file)
    else:
        logger.disable("mobiquo")


# ============================================================================
# Helpers
# ============================================================================


def _load_settings() -> Settings:
    try:
        return load_settings()
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e.message}")
        raise typer.Exit(1)


async def _try_login(client: TapatalkClient) -> None:
    """Log in when credentials are configured. Failure leaves the session anonymous."""
    if not client.has_credentials():
        return
    try:
        await client.login()
    except LoginError as e:
        console.print(f"[yellow]Login failed, continuing anonymously:[/yellow] {e.message}")


def _run(
    work: Callable[[TapatalkClient], Awaitable[T]],
    *,
    settings: Settings | None = None,
    login: bool = True,
) -> T:
    settings = settings or _load_settings()

    async def _main() -> T:
        async with TapatalkClient.from_settings(settings) as client:
            if login:
                await _try_login(client)
            return await work(client)

    try:
        return asyncio.run(_main())
    except MobiquoError as e:
        console.print(f"[red]Error:[/red] {sanitize_error_message(e.message)}")
        raise typer.Exit(1)


def _print_json(data: Any) -> None:
    console.print_json(data=data, default=str)


def _require_writes(settings: Settings) -> None:
    if settings.read_only:
        console.print("[red]Write operations are disabled.[/red] Set [cyan]TAPATALK_READ_ONLY=false[/cyan] to enable them.")
        raise typer.Exit(1)


def _flatten_forums(forums: list[Any], depth: int = 0) -> list[tuple[int, dict[str, Any]]]:
    rows: list[tuple[int, dict[str, Any]]] = []
    for forum in forums:
        if not isinstance(forum, dict):
            continue
        rows.append((depth, forum))
        children = forum.get("child")
        if isinstance(children, list):
            rows.extend(_flatten_forums(children, depth + 1))
    return rows


# ============================================================================
# Commands
# ============================================================================


@app.command()
def probe():
    """Check connectivity (get_config) and credentials (login)."""

    async def _probe(client: TapatalkClient) -> bool:
        try:
            config = await client.get_config()
        except MobiquoError as e:
            console.print(f"[red]✗[/red] get_config failed: {sanitize_error_message(e.message)}")
            return False
        if not isinstance(config, dict):
            config = {}
        version = config.get("version") or "unknown"
        api_level = config.get("api_level") or "?"
        console.print(f"[green]✓[/green] Forum reachable (plugin {version}, API level {api_level})")
        if config.get("is_open") is False:
            console.print("[yellow]Forum reports is_open=false; it may be closed to API clients[/yellow]")

        if not client.has_credentials():
            console.print("[dim]No credentials configured; anonymous access only[/dim]")
            return True
        try:
            result = await client.login()
        except LoginError as e:
            console.print(f"[red]✗[/red] {e.message}")
            return False
        console.print(f"[green]✓[/green] Logged in as {result.username or result.login_name or '(unknown)'}")
        return True

    if not _run(_probe, login=False):
        raise typer.Exit(1)


@app.command()
def forums(
    forum_id: str = typer.Option(None, "--forum-id", "-f", help="Only this forum's subtree"),
    descriptions: bool = typer.Option(False, "--descriptions", help="Include forum descriptions"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result"),
):
    """List the forum tree."""
    result = _run(lambda client: client.get_forum(descriptions, forum_id))
    if as_json:
        _print_json(result)
        return
    table = Table(title="Forums")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Sub-only")
    if descriptions:
        table.add_column("Description")
    for depth, forum in _flatten_forums(result):
        row = [
            str(forum.get("forum_id", "")),
            "  " * depth + str(forum.get("forum_name", "")),
            "yes" if forum.get("sub_only") else "",
        ]
        if descriptions:
            row.append(str(forum.get("description", "")))
        table.add_row(*row)
    console.print(table)


@app.command()
def topics(
    forum_id: str = typer.Argument(..., help="Forum ID"),
    start: int = typer.Option(0, "--start", help="First topic index"),
    last: int = typer.Option(19, "--last", help="Last topic index (inclusive)"),
    mode: str = typer.Option(None, "--mode", help="TOP for sticky, ANN for announcements"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result"),
):
    """List topics in a forum."""
    result = _run(lambda client: client.get_topics(forum_id, start, last, mode))
    if as_json or not isinstance(result, dict):
        _print_json(result)
        return
    table = Table(title=str(result.get("forum_name") or f"Forum {forum_id}"))
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Author")
    table.add_column("Replies", justify="right")
    for topic in result.get("topics") or []:
        if not isinstance(topic, dict):
            continue
        table.add_row(
            str(topic.get("topic_id", "")),
            str(topic.get("topic_title", "")),
            str(topic.get("topic_author_name", "")),
            str(topic.get("reply_number", "")),
        )
    console.print(table)
    total = result.get("total_topic_num")
    if total is not None:
        console.print(f"[dim]{total} topics in total[/dim]")


@app.command()
def thread(
    topic_id: str = typer.Argument(..., help="Topic ID"),
    start: int = typer.Option(0, "--start", help="First post index"),
    last: int = typer.Option(19, "--last", help="Last post index (inclusive)"),
    unread: bool = typer.Option(False, "--unread", help="Jump to the first unread post"),
    html: bool = typer.Option(True, "--html/--no-html", help="Ask the server for HTML post bodies"),
):
    """Show posts in a topic."""
    if unread:
        result = _run(lambda client: client.get_thread_by_unread(topic_id))
    else:
        result = _run(lambda client: client.get_thread(topic_id, start, last, html))
    _print_json(result)


@app.command()
def search(
    query: str = typer.Argument(..., help="Search keywords"),
    posts: bool = typer.Option(False, "--posts", help="Search posts instead of topics"),
    start: int = typer.Option(0, "--start", help="First result index"),
    last: int = typer.Option(19, "--last", help="Last result index (inclusive)"),
    search_id: str = typer.Option(None, "--search-id", help="Page through a previous search"),
):
    """Search topics or posts."""
    if posts:
        result = _run(lambda client: client.search_posts(query, start, last, search_id))
    else:
        result = _run(lambda client: client.search_topics(query, start, last, search_id))
    _print_json(result)


@app.command()
def call(
    method: str = typer.Argument(..., help="Remote method name, e.g. get_board_stat"),
    params: str = typer.Argument("[]", help="Positional parameters as a JSON array"),
    types: str = typer.Option(None, "--types", "-t", help="Comma-separated wire types (string,int,boolean,base64,auto)"),
):
    """Invoke a raw XML-RPC method."""
    try:
        values = json.loads(params)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"params is not valid JSON: {e.msg}")
    if not isinstance(values, list):
        raise typer.BadParameter("params must be a JSON array")

    declared: list[ParamType] | None = None
    if types:
        try:
            declared = [ParamType(t.strip().lower()) for t in types.split(",") if t.strip()]
        except ValueError as e:
            raise typer.BadParameter(str(e))

    result = _run(lambda client: client.call(method, values, declared))
    _print_json(result)


@app.command()
def post(
    forum_id: str = typer.Argument(..., help="Forum ID"),
    subject: str = typer.Argument(..., help="Topic subject"),
    body: str = typer.Argument(..., help="Topic body (BBCode)"),
):
    """Create a new topic."""
    settings = _load_settings()
    _require_writes(settings)

    async def _post(client: TapatalkClient) -> Any:
        await client.login()
        return await client.new_topic(forum_id, subject, body)

    _print_json(_run(_post, settings=settings, login=False))


@app.command()
def reply(
    forum_id: str = typer.Argument(..., help="Forum ID"),
    topic_id: str = typer.Argument(..., help="Topic ID"),
    body: str = typer.Argument(..., help="Reply body (BBCode)"),
    subject: str = typer.Option("", "--subject", help="Reply subject"),
):
    """Reply to a topic."""
    settings = _load_settings()
    _require_writes(settings)

    async def _reply(client: TapatalkClient) -> Any:
        await client.login()
        return await client.reply_post(forum_id, topic_id, subject, body)

    _print_json(_run(_reply, settings=settings, login=False))


if __name__ == "__main__":
    app()
