"""Weblitho backend: generation proxies, validation, credits and project versions."""

__version__ = "0.1.0"
