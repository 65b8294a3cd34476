"""
Rupy Session

Host side of the bridge. A session owns its options and keeps one child
interpreter running, restarting it when those options require a reload.

Usage:
    with RupySession() as session:
        session.options.configure(python_exe="python3.12")
        session.start()  # reloads with the new interpreter
        session.import_module("json")
"""

import json
import logging
import os
import shutil
import subprocess
import sys
from typing import Any, Dict, List, Optional

from .errors import BridgeError, InterpreterNotFound
from .options import RupyOptions

logger = logging.getLogger(__name__)

NO_SITE_ENV = "RUPY_NO_SITE"

_PACKAGE_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def _library_path_var() -> str:
    if sys.platform == "darwin":
        return "DYLD_LIBRARY_PATH"
    if sys.platform.startswith("win"):
        return "PATH"
    return "LD_LIBRARY_PATH"


def resolve_executable(python_exe: Optional[str]) -> str:
    """
    Resolve the configured executable to an absolute path.

    None selects the interpreter running the host. Values containing a path
    separator are taken relative to the working directory, bare names are
    looked up on PATH.
    """
    if not python_exe:
        return sys.executable

    if os.sep in python_exe or (os.altsep and os.altsep in python_exe):
        path = os.path.abspath(os.path.expanduser(python_exe))
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path
        raise InterpreterNotFound(python_exe)

    found = shutil.which(python_exe)
    if found is None:
        raise InterpreterNotFound(python_exe)
    return found


class RupySession:
    """
    A child interpreter selected by ``options``.

    Args:
        options: Options to own; a fresh store when omitted
        no_site: Start the child with ``-S``; defaults to the RUPY_NO_SITE flag
        timeout: Seconds to wait for the child to exit on stop
    """

    def __init__(
        self,
        options: Optional[RupyOptions] = None,
        *,
        no_site: Optional[bool] = None,
        timeout: float = 10.0,
    ):
        self.options = options if options is not None else RupyOptions()
        self.no_site = _env_flag(NO_SITE_ENV) if no_site is None else no_site
        self.timeout = timeout
        self.info: Dict[str, Any] = {}
        self._proc: Optional[subprocess.Popen] = None
        self._next_id = 1

    @property
    def running(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self.running else None

    def start(self) -> Dict[str, Any]:
        """Start the interpreter, or reload it if the options changed."""
        if self.running:
            if not self.options.needs_reload:
                return self.info
            logger.info("Options changed, reloading interpreter")
            self.stop()
        elif self._proc is not None:
            self._reap()

        executable = resolve_executable(self.options.python_exe)
        argv = [executable]
        if self.no_site:
            argv.append("-S")
        argv += ["-u", "-m", "rupy.bridge_runtime"]

        logger.debug("Starting interpreter: %s", " ".join(argv))
        try:
            self._proc = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                env=self._child_env(),
            )
        except OSError as e:
            raise BridgeError(f"Failed to start interpreter {executable}: {e}") from e
        self._next_id = 1

        try:
            self.info = self._unwrap(self._read_message())
        except BridgeError:
            self._kill()
            raise

        self.options.acknowledge_reload()
        logger.info(
            "Interpreter ready: %s (%s)",
            self.info.get("executable"),
            ".".join(str(v) for v in self.info.get("version_info", [])),
        )
        return self.info

    def stop(self) -> None:
        """Shut the interpreter down. Does nothing if it is not running."""
        if self._proc is None:
            return

        if self.running:
            try:
                self.call("shutdown")
            except BridgeError as e:
                logger.warning("Shutdown request failed: %s", e)

        self._reap()

    def restart(self) -> Dict[str, Any]:
        self.stop()
        return self.start()

    def call(self, cmd: str, **params: Any) -> Any:
        """
        Run a command in the child and return its result.

        Blocks until the child answers; ``timeout`` only bounds stop(). A
        child that never responds hangs the caller.

        Raises:
            BridgeError: The session is not running, the child failed the
                command or the connection broke
        """
        if not self.running:
            raise BridgeError("Session is not running")

        request_id = self._next_id
        self._next_id += 1
        payload = json.dumps({"cmd": cmd, "id": request_id, "params": params})

        try:
            self._proc.stdin.write(payload.encode() + b"\n")
            self._proc.stdin.flush()
        except OSError as e:
            raise BridgeError(f"Failed to send {cmd!r}: {e}") from e

        while True:
            message = self._read_message()
            if message.get("status") == "event":
                logger.debug("Event %s: %r", message.get("cmd"), message.get("result"))
                continue
            if message.get("id") != request_id:
                raise BridgeError(
                    f"Response id {message.get('id')} does not match request {request_id}"
                )
            return self._unwrap(message)

    def import_module(self, name: str) -> Dict[str, Any]:
        return self.call("import_module", name=name)

    def append_path(self, path: str) -> List[str]:
        return self.call("append_path", path=path)

    def __enter__(self) -> "RupySession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _child_env(self) -> Dict[str, str]:
        env = dict(os.environ)
        pythonpath = env.get("PYTHONPATH")
        env["PYTHONPATH"] = (
            _PACKAGE_ROOT + os.pathsep + pythonpath if pythonpath else _PACKAGE_ROOT
        )

        python_lib = self.options.python_lib
        if python_lib:
            env["RUPY_PYTHON_LIB"] = python_lib
            lib_dir = os.path.dirname(os.path.abspath(python_lib))
            var = _library_path_var()
            env[var] = lib_dir + os.pathsep + env[var] if env.get(var) else lib_dir
        return env

    def _read_message(self) -> Dict[str, Any]:
        buf = bytearray()
        while True:
            byte = self._proc.stdout.read(1)
            if not byte:
                code = self._proc.poll()
                raise BridgeError(f"Interpreter exited unexpectedly (code {code})")
            if byte == b"\0":
                break
            buf += byte

        try:
            return json.loads(buf.decode())
        except ValueError as e:
            raise BridgeError(f"Malformed message from interpreter: {e}") from e

    @staticmethod
    def _unwrap(message: Dict[str, Any]) -> Any:
        if message.get("status") == "error":
            raise BridgeError(message.get("error", "Unknown error"), message.get("traceback"))
        return message.get("result")

    def _reap(self) -> None:
        proc, self._proc = self._proc, None
        if proc.stdin and not proc.stdin.closed:
            try:
                proc.stdin.close()
            except OSError as e:
                logger.debug("Closing interpreter stdin failed: %s", e)
        try:
            proc.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Interpreter did not exit, killing pid %s", proc.pid)
            proc.kill()
            proc.wait()
        if proc.stdout:
            proc.stdout.close()

    def _kill(self) -> None:
        if self._proc is not None and self._proc.poll() is None:
            self._proc.kill()
        self._reap()
