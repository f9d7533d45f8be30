"""Analysis tools."""

from .api import register_analysis_tools

__all__ = ["register_analysis_tools"]
