"""API module."""

from .app import SAMPLES, create_fastapi_app

__all__ = ["SAMPLES", "create_fastapi_app"]
