"""Plugin system — pluggy hook specs, discovery, and post-commit event dispatch."""

from teamhub.plugins.hookspecs import hookimpl

__all__ = ["hookimpl"]
