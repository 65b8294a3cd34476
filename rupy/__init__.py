"""
Rupy

Drive a separate Python interpreter from a host program. Options select
the interpreter, a session keeps it running and reloads it when the
options change.
"""

from .errors import BridgeError, InterpreterNotFound, RupyError
from .options import RELOAD_KEYS, RupyOptions
from .session import RupySession

__all__ = [
    "BridgeError",
    "InterpreterNotFound",
    "RELOAD_KEYS",
    "RupyError",
    "RupyOptions",
    "RupySession",
]
__version__ = "1.0.0"
