"""
Thread-safe rate-limited logging.

Keeps a noisy reconnecting channel from flooding the log with the same
error while still reporting it once per interval.
"""
import logging
import threading
from typing import Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

_LOG_CACHE_SIZE = 100

# One cache per interval so differing intervals don't share expiry
_caches = {}
_caches_lock = threading.RLock()


def _cache_for(interval: int) -> TTLCache:
    cache = _caches.get(interval)
    if cache is None:
        cache = _caches[interval] = TTLCache(maxsize=_LOG_CACHE_SIZE, ttl=interval)
    return cache


def rate_limited_log(
    message: str,
    level: str = "warning",
    interval: int = 60,
    logger_instance: Optional[logging.Logger] = None
) -> bool:
    """
    Log a message at most once per ``interval`` seconds.

    Args:
        message: Message to log
        level: Log level (debug, info, warning, error, critical)
        interval: Minimum interval between identical messages in seconds
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        True if the message was emitted
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.warning)
    key = f"{level}:{message}"

    with _caches_lock:
        cache = _cache_for(interval)
        if key in cache:
            return False
        cache[key] = True
    log_method(message)
    return True


def reset_rate_limits() -> None:
    """Forget previously logged messages."""
    with _caches_lock:
        _caches.clear()
