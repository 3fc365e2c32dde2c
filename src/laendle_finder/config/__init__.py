"""Configuration package."""

from .settings import ETLSettings, ScraperSettings, Settings, default_jobs, load_cookie, settings

__all__ = ["ETLSettings", "ScraperSettings", "Settings", "default_jobs", "load_cookie", "settings"]
