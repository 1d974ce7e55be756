"""CLI command definitions for afx."""

import click

from afx import __version__
from afx.commands.check import check
from afx.commands.completion import completion
from afx.commands.init import init
from afx.commands.install import install
from afx.commands.show import show
from afx.commands.state import state
from afx.commands.uninstall import uninstall
from afx.commands.update import update


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug output for troubleshooting")
@click.version_option(__version__, prog_name="afx")
@click.pass_context
def cli(ctx, debug):
    """Package manager for shell plugins and command-line tools."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


# Register all commands
cli.add_command(install)
cli.add_command(update)
cli.add_command(check)
cli.add_command(uninstall)
cli.add_command(show)
cli.add_command(init)
cli.add_command(state)
cli.add_command(completion)

# Add alias for uninstall
cli.add_command(uninstall, name="remove")

__all__ = ["cli"]


if __name__ == "__main__":
    cli()
