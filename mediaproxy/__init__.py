"""Distribution package exposing the media proxy application factory."""

from __future__ import annotations

from app.main import create_app

__all__ = ["create_app"]
