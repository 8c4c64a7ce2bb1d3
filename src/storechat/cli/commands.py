"""Implementations of the CLI commands."""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from storechat.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config, save_config
from storechat.config.schema import StoreChatConfig
from storechat.memory.database import create_db_engine, init_db
from storechat.memory.schema import FLAG_FIELDS

console = Console()

PREVIEW_LENGTH = 80


def _load(config_path: str | None) -> StoreChatConfig:
    try:
        return load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        raise typer.Exit(code=1) from e


def _engine(config: StoreChatConfig):
    try:
        engine = create_db_engine(config.database)
    except ConfigError as e:
        console.print(f"[red]Database configuration error: {e}[/red]")
        raise typer.Exit(code=1) from e
    init_db(engine)
    return engine


def init_command(
    config_path: str | None = None, force: bool = False, database_url: str | None = None
) -> None:
    """Write a default config file, refusing to overwrite unless forced."""
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists at {path}[/yellow]")
        console.print("Use [bold]--force[/bold] to overwrite.")
        return

    config = StoreChatConfig()
    if database_url:
        config.database.url = database_url
    written = save_config(config, path)
    console.print(f"[green]✓[/green] Wrote config to {written}")


def initdb_command(config_path: str | None = None) -> None:
    config = _load(config_path)
    _engine(config)
    console.print("[green]✓[/green] Database tables are ready")


def serve_command(
    config_path: str | None = None, host: str | None = None, port: int | None = None
) -> None:
    """Run the API server in the foreground."""
    import uvicorn

    from storechat.server.app import create_app

    config = _load(config_path)
    logging.basicConfig(
        level=config.logging.level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        app = create_app(config)
    except ConfigError as e:
        console.print(f"[red]Failed to start server: {e}[/red]")
        raise typer.Exit(code=1) from e

    host = host or config.server.host
    port = port or config.server.port
    console.print(f"[green]Starting storechat on {host}:{port}[/green]")
    uvicorn.run(app, host=host, port=port, log_level=config.logging.level.lower())


def threads_command(
    config_path: str | None = None, user_id: str | None = None, include_archived: bool = False
) -> None:
    from storechat.memory.threads import ThreadStore

    config = _load(config_path)
    records = ThreadStore(_engine(config)).list_threads(
        user_id=user_id, include_archived=include_archived
    )
    if not records:
        console.print("[dim]No threads yet[/dim]")
        return

    table = Table(title="Threads")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Bookmarked")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost (USD)", justify="right")
    table.add_column("Updated")
    for record in records:
        usage = record.token_usage
        table.add_row(
            record.id,
            record.title,
            "★" if record.bookmarked else "",
            str(usage.total_tokens),
            f"{usage.total_cost:.4f}",
            record.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


def _preview(content: str) -> str:
    content = " ".join(str(content or "").split())
    if len(content) > PREVIEW_LENGTH:
        return content[: PREVIEW_LENGTH - 1] + "…"
    return content


def history_command(thread_id: str, config_path: str | None = None) -> None:
    from storechat.memory.checkpointer import AnnotatedConversationStore

    config = _load(config_path)
    store = AnnotatedConversationStore.from_engine(_engine(config))
    messages = store.get_with_metadata({"configurable": {"thread_id": thread_id}})
    if not messages:
        console.print(f"[dim]No messages for thread {thread_id}[/dim]")
        return

    table = Table(title=f"Thread {thread_id}")
    table.add_column("#", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Content")
    table.add_column("Flags")
    for index, message in enumerate(messages):
        data = message.get("data") or {}
        content = data.get("content") or ""
        if data.get("tool_calls"):
            names = ", ".join(tc.get("name", "") for tc in data["tool_calls"])
            content = f"{content} [tools: {names}]".strip()
        flags = [name.removeprefix("is_") for name in FLAG_FIELDS if message.get(name)]
        table.add_row(str(index), message.get("type", ""), _preview(content), ", ".join(flags))
    console.print(table)
