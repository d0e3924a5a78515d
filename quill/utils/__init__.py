"""
Shared utilities for QUILL.

Common functionality used across contexts:
- Tier 1 logger setup (loguru)
- Tier 2 compile event log (JSON Lines)
- Timestamps
"""

from quill.utils.timestamp import now, now_exact

__all__ = ["now", "now_exact"]
