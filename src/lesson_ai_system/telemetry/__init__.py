"""Logging and metrics."""

from .logger import SecretRedactor, setup_logging

__all__ = ["SecretRedactor", "setup_logging"]
