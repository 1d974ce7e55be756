"""Install command implementation."""

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
@click.option("--yes", "-y", is_flag=True, help="Install without asking for confirmation")
@click.pass_context
def install(ctx, names: tuple[str, ...], yes: bool):
    """Install packages that are new or whose files went missing."""
    try:
        run_install(ctx, names, yes)
    except AfxError as e:
        fail(str(e))


def run_install(ctx, selected: tuple[str, ...], yes: bool):
    meta = load_meta(ctx)
    # readditions are installed again rather than updated
    resources = filter_by_names(meta.state.additions + meta.state.readditions, selected)
    if not resources:
        click.echo("No packages to install")
        return

    if not confirm("installed", names(resources), yes):
        click.echo("Cancelled")
        return

    packages = packages_for(meta, resources)
    ask_secrets(meta, packages)

    _logging.debug(f"install: {len(packages)} packages")
    err = asyncio.run(Executor(state=meta.state, env=meta.env).run(packages, "install"))
    if err is not None:
        fail(str(err))
