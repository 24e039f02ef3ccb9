"""Explicit dependency container passed to the client and webhook app."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pobo_sync.config import Settings


@dataclass(frozen=True)
class AppContext:
    """Settings plus the logger operations should write to.

    Built once at startup; tests build their own instead of touching
    process-wide state.
    """

    settings: Settings
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("pobo_sync"))

    def child_logger(self, name: str) -> logging.Logger:
        return self.logger.getChild(name)
