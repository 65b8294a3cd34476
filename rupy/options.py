"""
Rupy Options

Holds the options that select which Python interpreter a session drives.

Usage:
    opts = RupyOptions()
    opts.configure(python_exe="python3.11")

    def tweak(o):
        o.python_lib = "/usr/lib/libpython3.11.so"

    opts.configure(mutator=tweak)
    opts.needs_reload  # True: the interpreter must be loaded again
"""

import logging
from types import SimpleNamespace
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

# Options whose change invalidates an already loaded interpreter.
RELOAD_KEYS = frozenset({"python_exe", "python_lib"})

KNOWN_KEYS = RELOAD_KEYS


class RupyOptions:
    """
    Mutable option map owned by a single bridge session.

    Recognized options:
        python_exe: The python executable to run. Anything on PATH as well
            as a local or relative path.
        python_lib: Full path to the python shared library to load.

    Any other key is accepted and kept as-is.
    """

    def __init__(self, **initial: Any):
        self._options: Dict[str, Any] = {}
        self._reload = False
        if initial:
            self.configure(initial)

    def configure(
        self,
        overrides: Optional[Mapping[str, Any]] = None,
        mutator: Optional[Callable[[SimpleNamespace], Any]] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """
        Set options and return a copy of the resulting map.

        Args:
            overrides: Mapping merged on top of the current options
            mutator: Called with an attribute view of the current options;
                whatever the view holds afterwards replaces the map. Options
                with non-string keys are not on the view and are kept as-is
            **kwargs: Merged after ``overrides``

        Returns:
            A copy of the new options
        """
        old_values = {k: self._options.get(k) for k in RELOAD_KEYS}

        if mutator is not None:
            # Non-string keys cannot be attributes; they bypass the view.
            hidden = {k: v for k, v in self._options.items() if not isinstance(k, str)}
            view = SimpleNamespace(
                **{k: v for k, v in self._options.items() if isinstance(k, str)}
            )
            mutator(view)
            self._options = dict(vars(view))
            self._options.update(hidden)

        for source in (overrides or {}, kwargs):
            for key, value in source.items():
                if key not in KNOWN_KEYS:
                    logger.debug("Accepting unrecognized option %r", key)
                self._options[key] = value

        changed = [k for k in RELOAD_KEYS if self._options.get(k) != old_values[k]]
        if changed:
            logger.debug("Reload required, changed: %s", ", ".join(sorted(changed)))
            self._reload = True

        return self.options()

    def options(self) -> Dict[str, Any]:
        """Return a copy of the current options."""
        return dict(self._options)

    def clear(self) -> None:
        """Reset the options map."""
        if any(k in RELOAD_KEYS for k in self._options):
            self._reload = True
        self._options.clear()

    def get(self, key: str, default: Any = None) -> Any:
        return self._options.get(key, default)

    @property
    def python_exe(self) -> Optional[str]:
        return self._options.get("python_exe")

    @property
    def python_lib(self) -> Optional[str]:
        return self._options.get("python_lib")

    @property
    def needs_reload(self) -> bool:
        """True when a reload-sensitive option changed since the last load."""
        return self._reload

    def acknowledge_reload(self) -> None:
        """Mark the current options as loaded."""
        self._reload = False

    def __repr__(self) -> str:
        return f"RupyOptions({self._options!r}, needs_reload={self._reload})"
