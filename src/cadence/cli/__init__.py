"""cadence CLI (``cadence`` console script)."""

from cadence.cli.app import app

__all__ = ["app"]
