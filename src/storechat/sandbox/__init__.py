"""Sandboxed execution of model-authored analysis code."""

from storechat.sandbox.interpreter import Sandbox, SandboxResult

__all__ = ["Sandbox", "SandboxResult"]
