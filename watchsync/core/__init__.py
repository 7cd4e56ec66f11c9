from watchsync.core.config import settings, Settings
from watchsync.core.logging import configure_logging

__all__ = ["settings", "Settings", "configure_logging"]
