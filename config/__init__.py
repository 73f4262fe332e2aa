"""Configuration module for IndexLens.

Centralized configuration management using pydantic-settings: every listing
selector, timing bound and API parameter can be overridden from the environment.
"""

from config.settings import GlobalConfig, get_config

__all__ = ["GlobalConfig", "get_config"]
