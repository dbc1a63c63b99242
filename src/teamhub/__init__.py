"""teamhub — team, project and task collaboration core."""

__version__ = "0.1.0"
