"""Main CLI application using Typer."""

import typer
from rich.console import Console

from ravenmind import __version__

app = typer.Typer(
    name="ravenmind",
    help="ravenmind - Discord agent bot with tools, memory and GPU coordination",
    no_args_is_help=True,
)

console = Console()

CONFIG_OPTION_HELP = "Path to config file (default: ~/.ravenmind/ravenmind.yaml)"


@app.command()
def version():
    """Show ravenmind version."""
    console.print(f"ravenmind version {__version__}")


@app.command()
def init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing config"),
    model: str = typer.Option(None, "--model", "-m", help="Chat model name"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Write a default configuration file."""
    from ravenmind.cli.init_cmd import init_command

    init_command(force=force, model=model, config_path=config_path)


@app.command()
def start(
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
    log_level: str = typer.Option("INFO", "--log-level", "-l", help="Log level"),
):
    """Run the Discord bot."""
    from ravenmind.cli.bot_cmd import start_command

    start_command(config_path=config_path, log_level=log_level)


@app.command()
def status(
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Show backend health, GPU memory and loaded models."""
    from ravenmind.cli.status_cmd import status_command

    status_command(config_path=config_path)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
