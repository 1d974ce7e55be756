"""Check command implementation."""

import asyncio

import click

from afx.errors import AfxError
from afx.executor import Executor
from afx.commands.utils import fail, filter_by_names, load_meta, packages_for


@click.command()
@click.argument("names", nargs=-1)
@click.pass_context
def check(ctx, names: tuple[str, ...]):
    """Check installed packages for newer releases."""
    try:
        run_check(ctx, names)
    except AfxError as e:
        fail(str(e))


def run_check(ctx, selected: tuple[str, ...]):
    meta = load_meta(ctx)
    resources = filter_by_names(meta.state.no_changes, selected)
    if not resources:
        click.echo("No packages to check")
        return

    packages = packages_for(meta, resources)
    err = asyncio.run(Executor(state=meta.state, env=meta.env).run(packages, "check"))
    if err is not None:
        fail(str(err))
