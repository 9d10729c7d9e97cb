"""Command groups for azrestore CLI."""

from azrestore.commands.config import config_group
from azrestore.commands.periodic import periodic_group
from azrestore.commands.restore import restore_command
from azrestore.commands.restore_points import list_command

__all__ = ["config_group", "list_command", "periodic_group", "restore_command"]
