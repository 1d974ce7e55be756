"""Init command implementation."""

import logging

import click

from afx.errors import AfxError
from afx.commands.utils import fail, load_meta

_logging = logging.getLogger(__name__)


@click.command()
@click.pass_context
def init(ctx):
    """Print shell code that loads every installed package.

    Use it from a shell rc file: source <(afx init)
    """
    try:
        meta = load_meta(ctx)
    except AfxError as e:
        fail(str(e))

    for pkg in meta.packages:
        if not pkg.installed():
            click.echo(f'## package "{pkg.name}" is not installed')
            _logging.warning(f"{pkg.name}: not installed, skipped in init")
            continue
        try:
            click.echo(pkg.init(), nl=False)
        except AfxError as e:
            _logging.error(f"{pkg.name}: failed to init: {e}")
