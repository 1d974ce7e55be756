"""Uninstall command implementation."""

import asyncio
import logging

import click

from afx.errors import AfxError
from afx.executor import Executor
from afx.packages import Orphan
from afx.state import names
from afx.commands.utils import confirm, fail, load_meta

_logging = logging.getLogger(__name__)


@click.command()
@click.option("--yes", "-y", is_flag=True, help="Uninstall without asking for confirmation")
@click.pass_context
def uninstall(ctx, yes: bool):
    """Uninstall packages that were removed from the config."""
    try:
        run_uninstall(ctx, yes)
    except AfxError as e:
        fail(str(e))


def run_uninstall(ctx, yes: bool):
    meta = load_meta(ctx)
    resources = meta.state.deletions
    if not resources:
        click.echo("No packages to uninstall")
        return

    if not confirm("uninstalled", names(resources), yes):
        click.echo("Cancelled")
        return

    orphans = [Orphan(record=resource) for resource in resources]
    _logging.debug(f"uninstall: {len(orphans)} packages")
    err = asyncio.run(Executor(state=meta.state, env=meta.env).run(orphans, "uninstall"))
    if err is not None:
        fail(str(err))
