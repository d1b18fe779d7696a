"""
Utility functions and helpers for modfeed.

- **logger.py**: Centralized logging configuration with colored console output,
  rotating file handlers, and per-session log aggregation.
- **format_utils.py**: Markdown escaping, embed truncation and portal timestamp
  parsing.
"""
