"""Main CLI application using Typer."""

import typer
from rich.console import Console

from storechat import __version__

app = typer.Typer(
    name="storechat",
    help="storechat - conversational analytics agent for WooCommerce stores",
    no_args_is_help=True,
)

console = Console()

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to config file (default: ~/.storechat/storechat.yaml)",
)


@app.command()
def version():
    """Show storechat version."""
    console.print(f"storechat version {__version__}")


@app.command()
def init(
    config_path: str = ConfigOption,
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing config"),
    database_url: str = typer.Option(None, "--database-url", help="SQLAlchemy database URL"),
):
    """Write a default configuration file."""
    from storechat.cli.commands import init_command

    init_command(config_path=config_path, force=force, database_url=database_url)


@app.command()
def initdb(config_path: str = ConfigOption):
    """Create the database tables."""
    from storechat.cli.commands import initdb_command

    initdb_command(config_path=config_path)


@app.command()
def serve(
    config_path: str = ConfigOption,
    host: str = typer.Option(None, "--host", help="Bind address (overrides config)"),
    port: int = typer.Option(None, "--port", "-p", help="Port (overrides config)"),
):
    """Start the API server."""
    from storechat.cli.commands import serve_command

    serve_command(config_path=config_path, host=host, port=port)


@app.command()
def threads(
    config_path: str = ConfigOption,
    user_id: str = typer.Option(None, "--user", "-u", help="Only threads owned by this user"),
    archived: bool = typer.Option(False, "--archived", "-a", help="Include archived threads"),
):
    """List conversation threads."""
    from storechat.cli.commands import threads_command

    threads_command(config_path=config_path, user_id=user_id, include_archived=archived)


@app.command()
def history(
    thread_id: str = typer.Argument(..., help="Thread id"),
    config_path: str = ConfigOption,
):
    """Show the messages of a thread with their flags."""
    from storechat.cli.commands import history_command

    history_command(thread_id=thread_id, config_path=config_path)


if __name__ == "__main__":
    app()
