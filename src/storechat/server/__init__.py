"""HTTP API for storechat."""

from storechat.server.app import create_app

__all__ = ["create_app"]
