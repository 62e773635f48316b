"""FastAPI route modules.

Exports all route modules for inclusion in the main application.
"""

from src.api.routes import namespace, sessions

__all__ = [
    "sessions",
    "namespace",
]
