"""Configuration — engine options and logging setup."""

from formstate.config.logging import configure_logging
from formstate.config.models import StateOptions

__all__ = ["StateOptions", "configure_logging"]
