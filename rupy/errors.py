"""Exceptions raised on the host side of the Rupy bridge."""

from typing import Optional


class RupyError(Exception):
    """Base class for Rupy errors."""


class InterpreterNotFound(RupyError):
    """The configured ``python_exe`` could not be resolved to an executable."""

    def __init__(self, executable: str):
        super().__init__(f"Python executable not found: {executable}")
        self.executable = executable


class BridgeError(RupyError):
    """
    The child interpreter reported an error, exited, or broke the protocol.

    ``remote_traceback`` holds the formatted traceback from the child when
    the failure happened inside a command.
    """

    def __init__(self, message: str, remote_traceback: Optional[str] = None):
        super().__init__(message)
        self.remote_traceback = remote_traceback
