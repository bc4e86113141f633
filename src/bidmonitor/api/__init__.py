"""HTTP surface of the fetch relay."""

from .main import create_app

__all__ = ["create_app"]
