"""
Session persistence.
"""
import json
import logging
from typing import Optional

from pydantic import ValidationError

from ..exceptions import Stage, StorageError
from ..models import SessionRecord
from .store import (
    DEFAULT_KEYRING_SERVICE, FileSessionStore, KeyringSessionStore, MemorySessionStore,
    SessionStore, default_session_store
)

logger = logging.getLogger(__name__)

DEFAULT_SESSION_KEY = "walletSession"


def load_session(store: SessionStore, key: str = DEFAULT_SESSION_KEY) -> Optional[SessionRecord]:
    """
    Read the saved session record.

    Returns:
        The record, or None if nothing is stored

    Raises:
        StorageError: If the store fails or the record is unreadable
    """
    raw = store.get(key)
    if raw is None:
        return None
    try:
        return SessionRecord.model_validate_json(raw)
    except ValidationError as e:
        raise StorageError(f"Stored session under '{key}' is invalid: {e}", stage=Stage.LOAD_SESSION) from e


def save_session(store: SessionStore, record: SessionRecord, key: str = DEFAULT_SESSION_KEY) -> None:
    """
    Overwrite the saved session record.

    Raises:
        StorageError: If the store fails
    """
    store.set(key, json.dumps(record.model_dump()))
    logger.debug(f"Saved session for {record.actor}@{record.permission} under '{key}'")


__all__ = [
    'DEFAULT_KEYRING_SERVICE',
    'DEFAULT_SESSION_KEY',
    'FileSessionStore',
    'KeyringSessionStore',
    'MemorySessionStore',
    'SessionStore',
    'default_session_store',
    'load_session',
    'save_session',
]
