"""Conversation storage backends."""
from __future__ import annotations

import logging

from config.settings import Settings

from .base import ConversationStore, apply_list_options
from .memory import MemoryConversationStore
from .sqlite import SqliteConversationStore


logger = logging.getLogger(__name__)


def build_store(cfg: Settings) -> ConversationStore:
    """Pick the storage backend configured in ``cfg``."""

    if cfg.STORE_BACKEND == "sqlite":
        logger.info("Using SQLite store backend at %s", cfg.DB_PATH)
        return SqliteConversationStore(cfg.DB_PATH)
    logger.info("Using in-memory store backend (set STORE_BACKEND=sqlite for persistence)")
    return MemoryConversationStore()


__all__ = [
    "ConversationStore",
    "MemoryConversationStore",
    "SqliteConversationStore",
    "apply_list_options",
    "build_store",
]
