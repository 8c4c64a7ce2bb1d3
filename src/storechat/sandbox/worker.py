"""Child-process side of a sandbox run.

Started by :class:`storechat.sandbox.interpreter.Sandbox` as
``python -m storechat.sandbox.worker``. Reads one request from stdin,
evaluates it with asteval and writes the outcome back; see the
interpreter module for the message format.
"""

import json
import logging
import os
import sys
import time
from typing import Any, TextIO

from asteval import Interpreter

from storechat.sandbox.helpers import ConsoleWriter, default_helpers, sandbox_logger
from storechat.sandbox.interpreter import SandboxResult, timeout_message

REMOVED_SYMBOLS = ("open",)


class SandboxTimeout(Exception):
    """Raised inside the interpreter once the deadline has passed."""


class DeadlineInterpreter(Interpreter):
    """asteval interpreter that stops evaluating once past its deadline."""

    def __init__(self, deadline: float, **kwargs: Any):
        self.deadline = deadline
        self.timed_out = False
        super().__init__(**kwargs)
        for name in REMOVED_SYMBOLS:
            self.symtable.pop(name, None)

    def run(self, node: Any, *args: Any, **kwargs: Any) -> Any:
        if time.monotonic() > self.deadline:
            self.timed_out = True
            raise SandboxTimeout()
        return super().run(node, *args, **kwargs)


class Channel:
    """Line-delimited JSON over a pair of text streams."""

    def __init__(self, reader: TextIO, writer: TextIO):
        self.reader = reader
        self.writer = writer

    def send(self, message: dict[str, Any]) -> None:
        self.writer.write(json.dumps(message, default=str) + "\n")
        self.writer.flush()

    def receive(self) -> dict[str, Any]:
        line = self.reader.readline()
        if not line:
            raise EOFError("parent closed the sandbox channel")
        return json.loads(line)


class ChannelHandler(logging.Handler):
    """Forwards sandbox console output to the parent's logger."""

    def __init__(self, channel: Channel):
        super().__init__()
        self.channel = channel

    def emit(self, record: logging.LogRecord) -> None:
        self.channel.send({"log": record.levelno, "line": record.getMessage()})


def remote_helper(channel: Channel, name: str):
    """A stand-in that runs helper ``name`` in the parent process."""

    def call(*args: Any, **kwargs: Any) -> Any:
        channel.send({"call": name, "args": list(args), "kwargs": kwargs})
        reply = channel.receive()
        if "error" in reply:
            raise RuntimeError(reply["error"])
        return reply.get("value")

    call.__name__ = name
    return call


def evaluate(code: str, symbols: dict[str, Any], timeout: float) -> SandboxResult:
    """Run ``code`` with ``symbols`` and turn the outcome into a result."""
    deadline = time.monotonic() + timeout
    writer = ConsoleWriter(logging.INFO)
    err_writer = ConsoleWriter(logging.ERROR)
    interp = DeadlineInterpreter(
        deadline,
        user_symbols=symbols,
        writer=writer,
        err_writer=err_writer,
        use_numpy=False,
    )

    value = interp.eval(code, show_errors=False)
    writer.flush()
    err_writer.flush()

    if interp.timed_out:
        return SandboxResult(success=False, error=timeout_message(timeout))

    if interp.error:
        holder = interp.error[0]
        exc_name, detail = holder.get_error()
        return SandboxResult(success=False, error=f"{exc_name}: {holder.msg}", stack=detail)

    if value is None:
        value = interp.symtable.get("result")
    return SandboxResult(success=True, result=value)


def main() -> None:
    # Keep the protocol on a private copy of stdout; stray writes go to stderr.
    channel = Channel(sys.stdin, os.fdopen(os.dup(1), "w", encoding="utf-8"))
    os.dup2(2, 1)
    sys.stdout = sys.stderr

    sandbox_logger.addHandler(ChannelHandler(channel))
    sandbox_logger.setLevel(logging.DEBUG)
    sandbox_logger.propagate = False

    request = channel.receive()
    symbols = {**default_helpers(), **request.get("values", {})}
    for name in request.get("helpers", []):
        symbols[name] = remote_helper(channel, name)

    outcome = evaluate(request["code"], symbols, request["timeout"])
    channel.send({"result": outcome.to_dict()})


if __name__ == "__main__":
    main()
