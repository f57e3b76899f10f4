"""MediaBridge command-line interface."""

from mediabridge.cli.app import app

__all__ = ["app"]
