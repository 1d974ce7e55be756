"""Update command implementation."""

import asyncio
import logging

import click

from afx.errors import AfxError
from afx.executor import Executor
from afx.state import names
from afx.commands.utils import ask_secrets, confirm, fail, filter_by_names, load_meta, packages_for

_logging = logging.getLogger(__name__)


@click.command()
@click.argument("names", nargs=-1)
@click.option("--yes", "-y", is_flag=True, help="Update without asking for confirmation")
@click.pass_context
def update(ctx, names: tuple[str, ...], yes: bool):
    """Reinstall packages whose configured release version changed."""
    try:
        run_update(ctx, names, yes)
    except AfxError as e:
        fail(str(e))


def run_update(ctx, selected: tuple[str, ...], yes: bool):
    meta = load_meta(ctx)
    resources = filter_by_names(meta.state.changes, selected)
    if not resources:
        click.echo("No packages to update")
        return

    if not confirm("updated", names(resources), yes):
        click.echo("Cancelled")
        return

    packages = packages_for(meta, resources)
    ask_secrets(meta, packages, rebuild=True)

    _logging.debug(f"update: {len(packages)} packages")
    err = asyncio.run(Executor(state=meta.state, env=meta.env).run(packages, "update"))
    if err is not None:
        fail(str(err))
