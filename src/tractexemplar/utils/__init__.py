"""
Utilities Module

Logging configuration shared by all TractExemplar components.
"""

from .logger import TractExemplarLogger, configure_logging, get_logger

__all__ = [
    'TractExemplarLogger',
    'configure_logging',
    'get_logger'
]
