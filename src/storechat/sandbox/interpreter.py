"""Restricted interpreter for model-authored analysis code.

Code is evaluated by asteval, which walks the parsed AST itself instead
of compiling it for the host interpreter. Each run happens in its own
child process (:mod:`storechat.sandbox.worker`) so that a long builtin
call cannot hold up the server's event loop; the parent kills the child
once the wall-clock timeout passes.

Parent and child exchange one JSON object per line. The parent opens
with the request::

    {"code": ..., "timeout": ..., "helpers": [names], "values": {...}}

and the child answers with any number of ``{"log": level, "line": ...}``
and ``{"call": name, "args": [...], "kwargs": {...}}`` messages before a
final ``{"result": {...}}``. Each ``call`` is run in the parent (this is
how ``fetch`` reaches the store client) and answered with ``{"value": ...}``
or ``{"error": ...}``.
"""

import asyncio
import inspect
import json
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any

from storechat.sandbox.helpers import sandbox_logger

logger = logging.getLogger(__name__)

WORKER_MODULE = "storechat.sandbox.worker"

# Fetched store data travels through the pipe as a single line.
STREAM_LIMIT = 256 * 1024 * 1024


def timeout_message(timeout: float) -> str:
    return f"Execution timed out after {timeout:g} seconds"


@dataclass
class SandboxResult:
    """Outcome of one run."""

    success: bool
    result: Any = None
    error: str | None = None
    stack: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "result": self.result}
        return {"success": False, "error": self.error, "stack": self.stack}


class Sandbox:
    """Run code against a fixed helper allowlist with a hard timeout.

    Failures, including timeouts, come back as a :class:`SandboxResult`;
    nothing raised by user code escapes :meth:`run`.
    """

    def __init__(self, helpers: dict[str, Any] | None = None, timeout: float = 50.0):
        """Initialize the sandbox.

        Args:
            helpers: Extra names added to the default allowlist. Callables
                (sync or async) run in this process when the code calls
                them; other values are passed to the child as JSON.
            timeout: Wall-clock limit in seconds, child start-up included
        """
        self.helpers = {k: v for k, v in (helpers or {}).items() if callable(v)}
        self.values = {k: v for k, v in (helpers or {}).items() if not callable(v)}
        self.timeout = timeout

    @property
    def timeout_message(self) -> str:
        return timeout_message(self.timeout)

    async def run(self, code: str) -> SandboxResult:
        """Evaluate ``code``.

        The value of the last expression is the result; if that is None,
        a variable named ``result`` is used instead.
        """
        proc = await asyncio.create_subprocess_exec(
            sys.executable,
            "-u",
            "-m",
            WORKER_MODULE,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=self._child_env(),
            limit=STREAM_LIMIT,
        )
        stderr = asyncio.create_task(proc.stderr.read())

        try:
            return await asyncio.wait_for(self._converse(proc, code, stderr), timeout=self.timeout)
        except TimeoutError:
            logger.warning("Sandbox run exceeded %ss, killing pid %s", self.timeout, proc.pid)
            return SandboxResult(success=False, error=self.timeout_message)
        finally:
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
            await proc.wait()
            if not stderr.done():
                stderr.cancel()

    @staticmethod
    def _child_env() -> dict[str, str]:
        # The child must import storechat from wherever this process found it.
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(p for p in sys.path if p)
        env["PYTHONIOENCODING"] = "utf-8"
        return env

    async def _converse(
        self, proc: asyncio.subprocess.Process, code: str, stderr: "asyncio.Task[bytes]"
    ) -> SandboxResult:
        await self._send(
            proc,
            {
                "code": code,
                "timeout": self.timeout,
                "helpers": sorted(self.helpers),
                "values": self.values,
            },
        )

        while line := await proc.stdout.readline():
            message = json.loads(line)
            if "log" in message:
                sandbox_logger.log(message["log"], "%s", message["line"])
            elif "call" in message:
                await self._send(proc, await self._call_helper(message))
            elif "result" in message:
                return SandboxResult(**message["result"])

        await proc.wait()
        detail = (await stderr).decode(errors="replace").strip()
        logger.error("Sandbox process exited with code %s: %s", proc.returncode, detail)
        return SandboxResult(
            success=False,
            error=f"Sandbox process exited with code {proc.returncode}",
            stack=detail or None,
        )

    async def _call_helper(self, message: dict[str, Any]) -> dict[str, Any]:
        name = message["call"]
        try:
            value = self.helpers[name](*message.get("args", []), **message.get("kwargs", {}))
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            logger.warning("Sandbox helper %s failed: %s", name, e)
            return {"error": f"{type(e).__name__}: {e}"}
        return {"value": value}

    @staticmethod
    async def _send(proc: asyncio.subprocess.Process, message: dict[str, Any]) -> None:
        try:
            proc.stdin.write(json.dumps(message, default=str).encode() + b"\n")
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # The child is gone; the read loop reports its exit status.
            logger.debug("Sandbox process closed its input")
