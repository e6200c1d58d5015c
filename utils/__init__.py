"""
Utility modules for the RUNE deal pipeline.
"""

from .formatting import format_currency, format_percent, format_ratio, format_years
from .config import Config

__all__ = ["format_currency", "format_percent", "format_ratio", "format_years", "Config"]
