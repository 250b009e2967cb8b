# src/pgdbm/core/__init__.py

"""Configuration, logging and exceptions shared by all pgdbm components."""

from .config import ConfigManager, ConnectionConfig, LoggingConfig, ManagerConfig, load_config
from .exceptions import DatabaseManagerError
from .logger import initialize_logging

__all__ = [
    'ConfigManager',
    'ConnectionConfig',
    'LoggingConfig',
    'ManagerConfig',
    'load_config',
    'DatabaseManagerError',
    'initialize_logging',
]
