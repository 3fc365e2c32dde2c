"""Monitoring and logging package."""

from .logger import ScrapingLogger, setup_logging

__all__ = ["setup_logging", "ScrapingLogger"]
