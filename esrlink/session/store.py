"""
String stores for the persisted link session.
"""
import json
import os
import stat
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol

import appdirs
import keyring
import portalocker
from keyring.errors import KeyringError

from ..exceptions import Stage, StorageError

logger = logging.getLogger(__name__)

DEFAULT_KEYRING_SERVICE = "esrlink"
LOCK_TIMEOUT = 10


class SessionStore(Protocol):
    """Protocol for scoped get/set string stores"""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class MemorySessionStore:
    """In-process store for tests and embedding"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value


class KeyringSessionStore:
    """
    Store backed by the OS keyring.

    Args:
        service_name: Keyring service the entries are stored under
    """

    def __init__(self, service_name: str = DEFAULT_KEYRING_SERVICE):
        self.service_name = service_name

    def get(self, key: str) -> Optional[str]:
        try:
            return keyring.get_password(self.service_name, key)
        except KeyringError as e:
            raise StorageError(f"Failed to read '{key}' from keyring: {e}", stage=Stage.LOAD_SESSION) from e

    def set(self, key: str, value: str) -> None:
        try:
            keyring.set_password(self.service_name, key, value)
        except KeyringError as e:
            raise StorageError(f"Failed to write '{key}' to keyring: {e}") from e


class FileSessionStore:
    """
    Process-safe JSON file store.

    The directory is created with 0700 and the file with 0600 permissions
    on POSIX systems. Defaults to ``sessions.json`` in the user data dir.
    """

    def __init__(self, path: Optional[str] = None):
        if path:
            self.path = Path(path)
        else:
            self.path = Path(appdirs.user_data_dir("esrlink")) / "sessions.json"
        self._ensure_dir()

    def _ensure_dir(self) -> None:
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            if os.name == 'posix':
                os.chmod(directory, stat.S_IRWXU)  # 0700
        except OSError as e:
            raise StorageError(f"Cannot create session directory {directory}: {e}") from e

    @property
    def lock_path(self) -> str:
        return str(self.path) + '.lock'

    def _read(self, strict: bool = True) -> Dict[str, str]:
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as e:
            if strict:
                raise StorageError(f"Session file {self.path} is corrupt: {e}", stage=Stage.LOAD_SESSION) from e
            logger.warning(f"Session file {self.path} is corrupt, overwriting its contents")
            return {}
        if not isinstance(data, dict):
            if strict:
                raise StorageError(f"Session file {self.path} does not hold an object", stage=Stage.LOAD_SESSION)
            return {}
        return data

    def get(self, key: str) -> Optional[str]:
        try:
            with portalocker.Lock(self.lock_path, timeout=LOCK_TIMEOUT):
                return self._read().get(key)
        except (OSError, portalocker.LockException) as e:
            raise StorageError(f"Failed to read session file {self.path}: {e}", stage=Stage.LOAD_SESSION) from e

    def set(self, key: str, value: str) -> None:
        try:
            with portalocker.Lock(self.lock_path, timeout=LOCK_TIMEOUT):
                data = self._read(strict=False)
                data[key] = value
                fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, stat.S_IRUSR | stat.S_IWUSR)
                with os.fdopen(fd, 'w') as f:
                    json.dump(data, f, indent=2)
                if os.name == 'posix':
                    os.chmod(self.path, stat.S_IRUSR | stat.S_IWUSR)  # 0600
        except (OSError, portalocker.LockException) as e:
            raise StorageError(f"Failed to write session file {self.path}: {e}") from e


def default_session_store(settings) -> SessionStore:
    """
    Pick a store for the given settings.

    A configured ``session_path`` selects the file store, otherwise the
    OS keyring is used.
    """
    if settings.session_path:
        return FileSessionStore(settings.session_path)
    return KeyringSessionStore(settings.keyring_service)
