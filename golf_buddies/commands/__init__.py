"""Terminal front end: one sub-command per app screen."""

from .register import build_parser, register_commands, run_command

__all__ = ["build_parser", "register_commands", "run_command"]
