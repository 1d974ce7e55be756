"""Completion command implementation."""

import click
from click.shell_completion import get_completion_class


@click.command()
@click.argument("shell", type=click.Choice(["bash", "zsh", "fish"]))
@click.pass_context
def completion(ctx, shell: str):
    """Print the completion script for SHELL.

    \b
    bash: source <(afx completion bash)
    zsh:  source <(afx completion zsh)
    fish: afx completion fish | source
    """
    root = ctx.find_root()
    comp_cls = get_completion_class(shell)
    comp = comp_cls(root.command, {}, "afx", "_AFX_COMPLETE")
    click.echo(comp.source())
