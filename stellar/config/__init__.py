"""Configuration module - exports Settings, EngineConfig and load_config."""

from stellar.config.engine_config import EngineConfig
from stellar.config.loader import load_config
from stellar.config.settings import Settings

__all__ = ["EngineConfig", "Settings", "load_config"]
