"""Script runner: resolves module scripts safely and runs them under a hard timeout."""

import logging
import os
import re
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import psutil

from scriptgate.core.config import settings
from scriptgate.core.exceptions import (
    ExecutionError,
    ExecutionTimeoutError,
    ScriptNotFoundError,
    UnsafeScriptNameError,
)

logger = logging.getLogger("scriptgate.executor")

_UNSAFE_SCRIPT_CHARS = re.compile(r"[^A-Za-z0-9_.-]")
_REAP_TIMEOUT_S = 5


@dataclass
class ScriptOutput:
    """Captured output of a script that exited with status 0."""

    stdout: str
    stderr: str
    elapsed_ms: int


def build_args(params: Mapping[str, Any]) -> List[str]:
    """Convert a validated parameter mapping to long-form command-line flags.

    ``True`` becomes a bare ``--name``, ``False`` and ``None`` are omitted,
    lists produce one ``--name=item`` per element, scalars ``--name=value``.
    Flag order follows the mapping's insertion order.
    """
    args: List[str] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            if value:
                args.append(f"--{key}")
        elif isinstance(value, (list, tuple)):
            for item in value:
                args.append(f"--{key}={item}")
        else:
            args.append(f"--{key}={value}")
    return args


class ScriptRunner:
    """Runs scripts from a single configured directory as child processes.

    Scripts are spawned directly (never through a shell) with a minimal
    environment. A script that outlives its timeout is killed together with
    every process it started.
    """

    def __init__(
        self,
        scripts_dir: Optional[str] = None,
        default_timeout_ms: Optional[int] = None,
        env_passthrough: Optional[Sequence[str]] = None,
    ):
        self.scripts_dir = Path(scripts_dir or settings.SCRIPTS_DIR).resolve()
        self.default_timeout_ms = default_timeout_ms or settings.MAX_SCRIPT_RUNTIME_MS
        self.env_passthrough = list(
            settings.SCRIPT_ENV_PASSTHROUGH if env_passthrough is None else env_passthrough
        )

    def resolve(self, script_name: str) -> Path:
        """Map a script name to a file inside the scripts directory.

        Raises:
            UnsafeScriptNameError: the name contains anything outside ``[A-Za-z0-9_.-]``.
            ScriptNotFoundError: no such file in the scripts directory.
        """
        if not isinstance(script_name, str) or not script_name:
            raise UnsafeScriptNameError("Script name is empty")

        if _UNSAFE_SCRIPT_CHARS.sub("", script_name) != script_name or script_name in (".", ".."):
            logger.warning("Rejected unsafe script name: %r", script_name)
            raise UnsafeScriptNameError(f"Invalid script name: {script_name}")

        path = (self.scripts_dir / script_name).resolve()
        if path.parent != self.scripts_dir or not path.is_file():
            logger.warning("Script not found: %s", path)
            raise ScriptNotFoundError(f"Script not found: {script_name}")
        return path

    def build_env(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Inherited allow-listed variables with caller metadata layered on top."""
        env = {key: os.environ[key] for key in self.env_passthrough if key in os.environ}
        if extra:
            env.update({key: str(value) for key, value in extra.items()})
        return env

    def run(
        self,
        script_name: str,
        args: Sequence[str],
        timeout_ms: Optional[int] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> ScriptOutput:
        """Run a script and wait for it, bounded by ``timeout_ms``.

        Raises:
            UnsafeScriptNameError, ScriptNotFoundError: before anything is spawned.
            ExecutionTimeoutError: the process tree was killed at the deadline.
            ExecutionError: spawn failure or non-zero exit status.
        """
        path = self.resolve(script_name)
        timeout_ms = timeout_ms or self.default_timeout_ms
        child_env = self.build_env(
            {"SCRIPT_TIMEOUT_MS": str(timeout_ms), **(dict(env) if env else {})}
        )

        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                [str(path), *args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=str(self.scripts_dir),
                env=child_env,
                shell=False,
                start_new_session=(os.name == "posix"),
            )
        except (OSError, ValueError) as e:  # ValueError: argv or env not encodable
            elapsed_ms = _elapsed_ms(start)
            logger.error("Failed to spawn %s: %s", path.name, e)
            raise ExecutionError(
                f"Failed to start script {script_name}: {getattr(e, 'strerror', None) or e}",
                elapsed_ms=elapsed_ms,
            )

        try:
            stdout, stderr = proc.communicate(timeout=timeout_ms / 1000.0)
        except subprocess.TimeoutExpired:
            _kill_tree(proc)
            stdout, stderr = _collect(proc)
            elapsed_ms = _elapsed_ms(start)
            logger.warning(
                "Script %s timed out after %sms (killed pid %s)", path.name, timeout_ms, proc.pid
            )
            raise ExecutionTimeoutError(
                f"Script execution timed out after {timeout_ms}ms",
                stderr=_decode(stderr) or None,
                elapsed_ms=elapsed_ms,
            )

        elapsed_ms = _elapsed_ms(start)
        if proc.returncode != 0:
            raise ExecutionError(
                f"Script exited with status {proc.returncode}",
                stderr=_decode(stderr) or None,
                elapsed_ms=elapsed_ms,
                returncode=proc.returncode,
            )

        return ScriptOutput(stdout=_decode(stdout), stderr=_decode(stderr), elapsed_ms=elapsed_ms)


def _kill_tree(proc: subprocess.Popen) -> None:
    """Kill a child and all of its descendants."""
    # Snapshot descendants first; once the parent dies they are reparented.
    try:
        descendants = psutil.Process(proc.pid).children(recursive=True)
    except psutil.NoSuchProcess:
        descendants = []

    if os.name == "posix":
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            pass
    proc.kill()

    for child in descendants:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass
    psutil.wait_procs(descendants, timeout=_REAP_TIMEOUT_S)


def _collect(proc: subprocess.Popen):
    try:
        return proc.communicate(timeout=_REAP_TIMEOUT_S)
    except subprocess.TimeoutExpired:
        # a descendant outside the process group still holds the pipes
        for stream in (proc.stdout, proc.stderr):
            if stream:
                stream.close()
        proc.wait()
        return b"", b""


def _elapsed_ms(start: float) -> int:
    return max(1, int(round((time.monotonic() - start) * 1000)))


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")
