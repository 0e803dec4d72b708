# sparkly/auth/__init__.py
"""
Authentication modules for Sparkly.

This package contains:
- current_session.py: claims of the verified caller (read-only, no I/O)
"""
from sparkly.auth.current_session import CurrentSession

__all__ = ["CurrentSession"]
