"""Configuration — TOML sections, settings resolution, and logging setup."""
