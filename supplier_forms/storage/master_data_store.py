"""Per-user key/value document stores for master data."""
import hashlib
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from supplier_forms.config import StoreConfig, config
from supplier_forms.domain.exceptions import ConfigurationError, PersistenceError

logger = logging.getLogger(__name__)


class MasterDataStore(ABC):
    """Document store holding one master data mapping per user."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[Dict[str, str]]:
        """Return the user's mapping, or ``None`` if nothing was saved yet."""

    @abstractmethod
    def put(self, user_id: str, data: Dict[str, str]) -> None:
        """Replace the user's mapping. Raises ``PersistenceError``."""


class InMemoryMasterDataStore(MasterDataStore):
    """Process-local store; contents are lost on restart."""

    def __init__(self):
        self._documents: Dict[str, Dict[str, str]] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Optional[Dict[str, str]]:
        with self._lock:
            document = self._documents.get(user_id)
            return dict(document) if document is not None else None

    def put(self, user_id: str, data: Dict[str, str]) -> None:
        if not user_id:
            raise PersistenceError(PersistenceError.PERMISSION, "User is not authenticated.")
        with self._lock:
            self._documents[user_id] = dict(data)
        logger.info("Saved %d master data entries for user %s", len(data), user_id)


class JsonFileMasterDataStore(MasterDataStore):
    """Stores each user's mapping as a JSON document in a directory."""

    def __init__(self, directory: Optional[str]):
        self.directory = Path(directory) if directory else None

    def _path(self, user_id: str) -> Path:
        if self.directory is None:
            raise PersistenceError(
                PersistenceError.UNCONFIGURED, "MASTER_DATA_DIR is not set for the file store."
            )
        digest = hashlib.sha256(user_id.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    def get(self, user_id: str) -> Optional[Dict[str, str]]:
        path = self._path(user_id)
        try:
            with open(path, encoding="utf-8") as handle:
                document = json.load(handle)
        except FileNotFoundError:
            return None
        except PermissionError as e:
            raise PersistenceError(PersistenceError.PERMISSION, str(e)) from e
        except (OSError, ValueError) as e:
            raise PersistenceError(PersistenceError.CONNECTIVITY, str(e)) from e
        return {str(key): str(value) for key, value in document.get("masterData", {}).items()}

    def put(self, user_id: str, data: Dict[str, str]) -> None:
        if not user_id:
            raise PersistenceError(PersistenceError.PERMISSION, "User is not authenticated.")
        path = self._path(user_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump({"userId": user_id, "masterData": data}, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except PermissionError as e:
            raise PersistenceError(PersistenceError.PERMISSION, str(e)) from e
        except OSError as e:
            raise PersistenceError(PersistenceError.CONNECTIVITY, str(e)) from e
        logger.info("Saved %d master data entries for user %s", len(data), user_id)


def create_store(store_config: Optional[StoreConfig] = None) -> MasterDataStore:
    """Build the store selected by ``MASTER_DATA_STORE``."""
    store_config = store_config or config.store
    if store_config.backend == "memory":
        return InMemoryMasterDataStore()
    if store_config.backend == "file":
        return JsonFileMasterDataStore(store_config.directory)
    raise ConfigurationError(f"Unknown MASTER_DATA_STORE backend: {store_config.backend!r}")
