"""Interactive installer for AI agent skills and subagents via git sparse checkout."""

__version__ = "1.0.0"
