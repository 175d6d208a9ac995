"""beebot CLI: command line interface."""

import sys

import click
from rich.console import Console
from rich.markup import escape

from beebot import __version__

from .errors import StartupError

console = Console()


@click.command()
@click.argument("config_path", type=click.Path(dir_okay=False))
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__, prog_name="beebot")
def cli(config_path, debug):
    """Post numeric Matrix messages to a Beeminder goal.

    CONFIG_PATH is a .toml or .json file with the Beeminder and Matrix settings.
    """
    from .config import load_settings
    from .main import configure_logging, main as run_bot

    settings = load_settings(config_path)
    configure_logging(settings.log_file, debug=debug)
    console.print(f"[bold blue]Starting beebot for goal {escape(settings.beeminder_goal)}...[/bold blue]")
    run_bot(settings)


def main():
    """CLI entry point."""
    try:
        cli(standalone_mode=False)
    except click.UsageError as e:
        if e.ctx:
            click.echo(e.ctx.command.get_usage(e.ctx), err=True)
        click.echo(f"Error: {e.format_message()}", err=True)
        sys.exit(2)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.exceptions.Exit as e:
        sys.exit(e.code)
    except (click.Abort, KeyboardInterrupt):
        console.print("[dim]Stopped.[/dim]")
        sys.exit(0)
    except StartupError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)


if __name__ == "__main__":
    main()
