"""Infrastructure layer — database schema, engine, and the Store repository.

This layer depends on stdlib and third-party libs (SQLAlchemy).
Snapshot loaders build :mod:`teamhub.domain.models` values from rows;
it must never import from services, commands, or output.
"""
