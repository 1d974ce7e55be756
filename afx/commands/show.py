"""Show command implementation."""

import click

from afx.errors import AfxError, format_suggestion
from afx.paths import config_root
from afx.commands.utils import fail, load_meta


def package_status(meta, pkg) -> str:
    state = meta.state
    if pkg.id in {r.id for r in state.additions + state.readditions}:
        return "not installed"
    if pkg.id in {r.id for r in state.changes}:
        return "needs update"
    return "installed"


@click.command()
@click.pass_context
def show(ctx):
    """Show configured packages and their status."""
    try:
        meta = load_meta(ctx)
    except AfxError as e:
        fail(str(e))

    if not meta.packages:
        click.echo(format_suggestion("no packages configured", f"add a YAML file under {config_root()}"), err=True)
        return

    rows = [("NAME", "TYPE", "STATUS")]
    rows.extend((pkg.name, pkg.type, package_status(meta, pkg)) for pkg in meta.packages)
    widths = [max(len(row[i]) for row in rows) for i in range(2)]
    for name, kind, status in rows:
        click.echo(f"{name:<{widths[0]}}  {kind:<{widths[1]}}  {status}")
