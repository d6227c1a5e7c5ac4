from __future__ import annotations

from .session import ScoreClient

__all__ = ["ScoreClient"]
