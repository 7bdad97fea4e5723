"""
Configuration package for the field attendance engine.

Contains environment settings and logging configuration.
"""

from fieldclock.config.settings import Settings, get_settings, settings
from fieldclock.config.logging import get_logger, setup_logging

__all__ = ['Settings', 'get_settings', 'settings', 'get_logger', 'setup_logging']
