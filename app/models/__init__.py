"""Lightweight models package initialiser.

- Exposes the shared SQLAlchemy `Base`.
- Lazily exposes the studio and notification models via module-level attribute access so
  importing `app.core.database` (which pulls `Base`) doesn't eagerly import every model.
- Alembic and the test harness import `app.models.registry` to populate metadata.
"""

from app.models.base import Base

__all__ = ["Base"]


def __getattr__(name: str):
    """
    Lazily load aggregated model attributes to avoid circular imports during
    early DB setup (e.g., when app.core.database imports Base).
    """
    import importlib

    _registry = importlib.import_module("app.models.registry")

    if hasattr(_registry, name):
        return getattr(_registry, name)
    raise AttributeError(f"module 'app.models' has no attribute {name!r}")


def __dir__():
    import importlib

    _registry = importlib.import_module("app.models.registry")

    return sorted(set(list(globals().keys()) + list(_registry.__all__)))
