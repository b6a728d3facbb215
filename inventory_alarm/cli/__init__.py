"""Command-line interface (``python -m inventory_alarm.cli``)."""

from .__main__ import main

__all__ = ["main"]
