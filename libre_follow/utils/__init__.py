"""
Utilities package for LibreFollow
Contains logging setup, configuration loading and common decorators
"""

from .config_loader import ConfigError, ConfigLoader, FollowSettings
from .decorators import exception_handler, timing
from .logger import setup_logger

__all__ = [
    'ConfigError',
    'ConfigLoader',
    'FollowSettings',
    'exception_handler',
    'timing',
    'setup_logger'
]
