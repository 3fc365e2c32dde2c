"""Collects Vorarlberg real-estate transactions and listings into a CSV dataset."""

__version__ = "0.1.0"
