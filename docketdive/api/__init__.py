"""FastAPI application for the DocketDive chat service."""

from .main import create_app

__all__ = ["create_app"]
