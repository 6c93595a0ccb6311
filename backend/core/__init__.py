"""Core utilities for configuration, logging, and document storage."""

from .config import AppSettings, load_settings
from .firebase_client_manager import FirebaseClientManager
from .logging_config import get_logger, setup_logging
from .memory_store import InMemoryDocumentStore

__all__ = [
    "AppSettings",
    "load_settings",
    "FirebaseClientManager",
    "InMemoryDocumentStore",
    "get_logger",
    "setup_logging",
]
