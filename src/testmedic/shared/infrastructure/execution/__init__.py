"""Subprocess execution."""

from testmedic.shared.infrastructure.execution.command_executor import CommandExecutor, CommandResult

__all__ = ["CommandExecutor", "CommandResult"]
