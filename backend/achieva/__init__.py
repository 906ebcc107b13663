"""Achieva backend package.

The FastAPI app lives at achieva.main:app.
"""

__all__ = []
