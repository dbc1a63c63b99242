"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, ``teamhub.toml`` only contains
overrides. Team capacity is a domain constant, not a setting.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class StoreConfig(BaseModel):
    """[store] section."""

    model_config = {"frozen": True}

    name: str = "teamhub"


class ChatConfig(BaseModel):
    """[chat] section."""

    model_config = {"frozen": True}

    history_limit: int = Field(default=50, ge=1)
    system_sender: str = "SYSTEM"


class NotificationsConfig(BaseModel):
    """[notifications] section."""

    model_config = {"frozen": True}

    recent_limit: int = Field(default=10, ge=1)
    due_soon_hours: float = Field(default=24, gt=0)
    page_size: int = Field(default=20, ge=1)


class TasksConfig(BaseModel):
    """[tasks] section."""

    model_config = {"frozen": True}

    page_size: int = Field(default=20, ge=1)
