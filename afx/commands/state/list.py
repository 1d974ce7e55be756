"""State list command implementation."""

import click

from afx.errors import AfxError
from afx.commands.utils import fail, load_meta


@click.command(name="list")
@click.pass_context
def state_list(ctx):
    """List the IDs recorded in the state file."""
    try:
        meta = load_meta(ctx)
        ids = meta.state.list()
    except AfxError as e:
        fail(str(e))
    for resource_id in ids:
        click.echo(resource_id)
