"""Startup modules: configuration bootstrap and ordered initialization"""

from .configuration import ensure_configuration
from .manager import StartupManager

__all__ = ['ensure_configuration', 'StartupManager']
