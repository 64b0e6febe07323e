# adaptive_crawler/__init__.py
"""
AdaptiveCrawler package initializer.
Defines package version and exposes CLI.
"""
__version__ = "0.1.0"

from .cli import cli  # экспорт для pytest и entry point
