"""Supervise a program and run cleanup commands through the shutdown coordinator."""

from .command.run import RunCommand
from .commands import create_run_commands
from .errors import CleanupCommandError, ProgramNotFoundError

__all__ = ['CleanupCommandError', 'ProgramNotFoundError', 'RunCommand', 'create_run_commands']
