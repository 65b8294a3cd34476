"""
Rupy Bridge Runtime

Runs inside the interpreter selected by a session's options and answers
commands from the host over IPC.
Uses JSON-over-stdin/stdout with null-byte framing for reliable message boundaries.

Usage:
    python -m rupy.bridge_runtime
"""

import asyncio
import importlib
import json
import logging
import os
import sys
import sysconfig
import traceback
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class PythonBridge:
    """
    Base class for the child side of the bridge.

    Subclass this and implement command methods. The run() method
    handles the IPC loop automatically.
    """

    def __init__(self):
        self.state: Dict[str, Any] = {}
        self._running = False

    def ready(self) -> Dict[str, Any]:
        """
        Health check sent to the host once the loop starts.

        Override this if you need custom initialization checks.
        """
        return {"status": "ready", "python_version": sys.version}

    def shutdown(self) -> Dict[str, Any]:
        """Stop the loop after the current command."""
        self._running = False
        return {"status": "shutdown"}

    def handle_command(self, cmd_json: str) -> Optional[str]:
        """
        Handle an incoming command from the host.

        Args:
            cmd_json: JSON string containing cmd, id, and params

        Returns:
            JSON response string (or None to suppress response)
        """
        try:
            cmd = json.loads(cmd_json)
            cmd_name = cmd.get("cmd", "")
            params = cmd.get("params") or {}
            request_id = cmd.get("id", 0)

            method = None
            if cmd_name and not cmd_name.startswith("_"):
                method = getattr(self, cmd_name, None)

            if method is None:
                response = {
                    "id": request_id,
                    "status": "error",
                    "error": f"Unknown command: {cmd_name}",
                }
            elif not callable(method):
                response = {
                    "id": request_id,
                    "status": "error",
                    "error": f"Command is not callable: {cmd_name}",
                }
            else:
                try:
                    result = method(**params)

                    if asyncio.iscoroutine(result):
                        result = asyncio.run(result)

                    response = {
                        "id": request_id,
                        "status": "success",
                        "result": result,
                    }
                except Exception as e:
                    logger.debug("Command %s failed", cmd_name, exc_info=True)
                    response = {
                        "id": request_id,
                        "status": "error",
                        "error": f"{type(e).__name__}: {e}",
                        "traceback": traceback.format_exc(),
                    }

            return json.dumps(response, default=repr)

        except json.JSONDecodeError as e:
            return json.dumps({
                "id": 0,
                "status": "error",
                "error": f"Invalid JSON: {e}",
            })
        except Exception as e:
            return json.dumps({
                "id": 0,
                "status": "error",
                "error": f"Handler error: {e}",
                "traceback": traceback.format_exc(),
            })

    def send_response(self, response_json: str) -> None:
        """Write a response to the host, null-byte terminated."""
        sys.stdout.buffer.write(response_json.encode() + b"\0")
        sys.stdout.buffer.flush()

    def send_event(self, event_type: str, data: Any) -> None:
        """
        Send an unsolicited event notification to the host.

        Args:
            event_type: Type of event (e.g., "log", "status_update")
            data: Event payload data
        """
        response = {
            "cmd": event_type,
            "status": "event",
            "result": data,
        }
        self.send_response(json.dumps(response, default=repr))

    def run(self) -> None:
        """
        Start the IPC loop. This blocks until stdin is closed or
        shutdown is requested.
        """
        self._running = True

        ready_response = self.handle_command(json.dumps({"cmd": "ready", "id": 0}))
        if ready_response:
            self.send_response(ready_response)

        for line in sys.stdin:
            if not self._running:
                break

            line = line.strip()
            if not line:
                continue

            response = self.handle_command(line)
            if response:
                self.send_response(response)


class RupyBackend(PythonBridge):
    """Commands the host session relies on."""

    def ready(self) -> Dict[str, Any]:
        info = super().ready()
        info.update({
            "version_info": list(sys.version_info[:3]),
            "executable": sys.executable,
            "prefix": sys.prefix,
            "libdir": sysconfig.get_config_var("LIBDIR"),
            "ldlibrary": sysconfig.get_config_var("LDLIBRARY"),
            "python_lib": os.environ.get("RUPY_PYTHON_LIB"),
            "site_enabled": not sys.flags.no_site,
        })
        return info

    def append_path(self, path: str) -> List[str]:
        """Append ``path`` to sys.path unless already present."""
        if path not in sys.path:
            sys.path.append(path)
        return list(sys.path)

    def import_module(self, name: str) -> Dict[str, Any]:
        """Import a module and describe it."""
        module = importlib.import_module(name)
        self.state[name] = module
        return {
            "name": module.__name__,
            "file": getattr(module, "__file__", None),
            "attributes": sorted(a for a in dir(module) if not a.startswith("_")),
        }


def log_level(value: Optional[str]) -> int:
    """Map a level name such as ``"debug"`` to its number, WARNING if unknown."""
    level = logging.getLevelName((value or "WARNING").strip().upper())
    return level if isinstance(level, int) else logging.WARNING


def main() -> None:
    raw_level = os.environ.get("RUPY_LOG_LEVEL", "WARNING")
    logging.basicConfig(
        stream=sys.stderr,
        level=log_level(raw_level),
        format="[rupy-child] %(levelname)s %(name)s: %(message)s",
    )
    if not isinstance(logging.getLevelName(raw_level.strip().upper()), int):
        logger.warning("Unknown RUPY_LOG_LEVEL %r, using WARNING", raw_level)
    RupyBackend().run()


if __name__ == "__main__":
    main()
