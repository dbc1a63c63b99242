"""Domain layer — entity snapshots, membership rules, and authorization.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, commands, or config.
"""
