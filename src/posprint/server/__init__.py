"""HTTP boundary for POSPRINT."""

from posprint.server.app import create_app

__all__ = ["create_app"]
