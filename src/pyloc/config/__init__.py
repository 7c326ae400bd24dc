"""Configuration loading and validation for pyloc."""

from .manager import ConfigManager
from .schema import PylocConfig, validate_locale_tag

__all__ = ["ConfigManager", "PylocConfig", "validate_locale_tag"]
