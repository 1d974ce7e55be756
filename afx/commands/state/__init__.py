"""State management commands."""

import click

from afx.commands.state.list import state_list
from afx.commands.state.refresh import state_refresh


@click.group()
def state():
    """Inspect or rebuild the state file."""
    pass


state.add_command(state_list, name="list")
state.add_command(state_refresh, name="refresh")
