"""Configuration loading."""

from speckit_studio.infrastructure.config.toml_loader import load_config

__all__ = ["load_config"]
