"""
Config module - Application configuration and settings.
"""

from cqroute.config.settings import Settings, get_settings, read_env_file

__all__ = [
    "Settings",
    "get_settings",
    "read_env_file"
]
