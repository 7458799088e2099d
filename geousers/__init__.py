"""Users API that enriches each user with location data from their ZIP code."""

from __future__ import annotations

from typing import Any

from .config import Settings, load_settings

__version__ = "1.0.0"


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the users API application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Settings",
    "__version__",
    "create_app",
    "load_settings",
]
