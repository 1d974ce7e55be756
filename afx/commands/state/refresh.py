"""State refresh command implementation."""

import click

from afx.errors import AfxError
from afx.commands.utils import fail, load_meta


@click.command(name="refresh")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Discard the state file and record every configured package",
)
@click.pass_context
def state_refresh(ctx, force: bool):
    """Rewrite stale records in the state file.

    Without --force nothing happens while packages are waiting to be
    installed, updated or uninstalled.
    """
    try:
        meta = load_meta(ctx)
        if force:
            meta.state.new()
            click.echo("State file recreated")
            return
        if meta.state.refresh():
            click.echo("State file refreshed")
        else:
            click.echo("Some packages need operations; run install, update or uninstall first")
    except AfxError as e:
        fail(str(e))
