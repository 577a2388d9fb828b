from .janitor import CacheJanitor
from .shutdown import ShutdownSentinel

__all__ = ["CacheJanitor", "ShutdownSentinel"]
