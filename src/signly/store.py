"""Keyed storage for Signly documents, creator indexes and audit trails.

Everything is kept in a flat key-value substrate. Each repository owns a
key prefix so the three record kinds can share one backend:

    doc:<document-id>   → Document (JSON)
    cre:<account>       → ordered list of document ids (JSON)
    aud:<document-id>   → list of AuditEntry (JSON)

Two backends ship: an in-memory one for tests and embedding, and a
filesystem one that keeps one JSON file per key under ``~/.signly/``.
Both support ``transaction()`` so a document write, its index update and
its audit entry land together or not at all.

Filesystem layout::

    ~/.signly/
    ├── doc/        # one file per document
    ├── cre/        # one file per creator account
    └── aud/        # one file per document audit trail
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from pydantic import TypeAdapter

from .models import AuditEntry, Document

logger = logging.getLogger("signly.store")

DEFAULT_SIGNLY_DIR = Path.home() / ".signly"

_audit_adapter = TypeAdapter(list[AuditEntry])


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------

class KeyValueBackend(ABC):
    """String-to-string storage with all-or-nothing transactions."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Value for ``key`` or None."""

    @abstractmethod
    def put(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns False if it was absent."""

    def contains(self, key: str) -> bool:
        return self.get(key) is not None

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]:
        """Sorted keys starting with ``prefix``, including uncommitted writes."""

    @abstractmethod
    def transaction(self) -> Iterator[None]:
        """Context manager: writes inside the block apply together.

        An exception raised inside the block discards every write made
        in it. Nested blocks join the outermost transaction.
        """


class MemoryBackend(KeyValueBackend):
    """Dict-backed storage. Rolls back from a journal of prior values."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.RLock()
        self._journal: Optional[dict[str, Optional[str]]] = None

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._remember(key)
            self._data[key] = value

    def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._data:
                return False
            self._remember(key)
            del self._data[key]
            return True

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))

    def _remember(self, key: str) -> None:
        if self._journal is not None and key not in self._journal:
            self._journal[key] = self._data.get(key)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._journal is not None:
                yield
                return

            self._journal = {}
            try:
                yield
            except BaseException:
                for key, previous in self._journal.items():
                    if previous is None:
                        self._data.pop(key, None)
                    else:
                        self._data[key] = previous
                raise
            finally:
                self._journal = None


class FileBackend(KeyValueBackend):
    """One JSON file per key, grouped in a directory per key prefix.

    Writes inside a transaction are staged in memory and flushed when the
    block exits cleanly. Each file is replaced atomically via a temporary
    file and ``os.replace``.

    Args:
        base_dir: Root directory for all signly data.
    """

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self.base = Path(base_dir) if base_dir else DEFAULT_SIGNLY_DIR
        self.base.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._staged: Optional[dict[str, Optional[str]]] = None

    def _path(self, key: str) -> Path:
        namespace, sep, name = key.partition(":")
        if not sep:
            namespace, name = "_", key
        # Hex keeps ids with "/" or "+" and mixed case safe as file names.
        return self.base / namespace / f"{name.encode('utf-8').hex()}.json"

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            if self._staged is not None and key in self._staged:
                return self._staged[key]
            path = self._path(key)
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8")

    def put(self, key: str, value: str) -> None:
        with self._lock:
            if self._staged is not None:
                self._staged[key] = value
            else:
                self._write(key, value)

    def delete(self, key: str) -> bool:
        with self._lock:
            existed = self.get(key) is not None
            if self._staged is not None:
                self._staged[key] = None
            else:
                self._unlink(key)
            return existed

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            found = set()
            for directory in self.base.iterdir():
                if not directory.is_dir():
                    continue
                for path in directory.glob("*.json"):
                    name = bytes.fromhex(path.stem).decode("utf-8")
                    found.add(name if directory.name == "_" else f"{directory.name}:{name}")
            for key, value in (self._staged or {}).items():
                if value is None:
                    found.discard(key)
                else:
                    found.add(key)
            return sorted(k for k in found if k.startswith(prefix))

    def _write(self, key: str, value: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _unlink(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._staged is not None:
                yield
                return

            self._staged = {}
            try:
                yield
                staged, self._staged = self._staged, None
                for key, value in staged.items():
                    if value is None:
                        self._unlink(key)
                    else:
                        self._write(key, value)
            finally:
                self._staged = None


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------

class DocumentRepository:
    """Documents keyed by id.

    Args:
        backend: Shared key-value backend.
        prefix: Key namespace for document records.
    """

    PREFIX = "doc:"

    def __init__(self, backend: KeyValueBackend, prefix: str = PREFIX) -> None:
        self.backend = backend
        self.prefix = prefix

    def _key(self, document_id: str) -> str:
        return f"{self.prefix}{document_id}"

    def get(self, document_id: str) -> Optional[Document]:
        """Load a document, or None if it doesn't exist."""
        raw = self.backend.get(self._key(document_id))
        if raw is None:
            return None
        return Document.model_validate_json(raw)

    def contains(self, document_id: str) -> bool:
        return self.backend.contains(self._key(document_id))

    def save(self, document: Document) -> None:
        self.backend.put(self._key(document.document_id), document.model_dump_json())
        logger.debug("Saved document %s", document.document_id)

    def delete(self, document_id: str) -> bool:
        return self.backend.delete(self._key(document_id))


class CreatorIndex:
    """Ordered list of document ids per creator account."""

    PREFIX = "cre:"

    def __init__(self, backend: KeyValueBackend, prefix: str = PREFIX) -> None:
        self.backend = backend
        self.prefix = prefix

    def _key(self, creator: str) -> str:
        return f"{self.prefix}{creator}"

    def get(self, creator: str) -> Optional[list[str]]:
        """Ids registered by ``creator``, or None if there's no entry."""
        raw = self.backend.get(self._key(creator))
        if raw is None:
            return None
        return list(json.loads(raw))

    def contains(self, creator: str) -> bool:
        return self.backend.contains(self._key(creator))

    def owns(self, creator: str, document_id: str) -> bool:
        ids = self.get(creator)
        return ids is not None and document_id in ids

    def add_id(self, creator: str, document_id: str) -> list[str]:
        """Append ``document_id`` to the creator's list, creating the entry."""
        ids = self.get(creator) or []
        ids.append(document_id)
        self.backend.put(self._key(creator), json.dumps(ids))
        return ids

    def remove_id(self, creator: str, document_id: str) -> bool:
        """Splice ``document_id`` out, keeping the order of the rest.

        The entry itself stays, possibly empty.

        Returns:
            True if the id was present.
        """
        ids = self.get(creator)
        if ids is None or document_id not in ids:
            return False
        ids.remove(document_id)
        self.backend.put(self._key(creator), json.dumps(ids))
        return True


class AuditLog:
    """Append-only audit trail per document."""

    PREFIX = "aud:"

    def __init__(self, backend: KeyValueBackend, prefix: str = PREFIX) -> None:
        self.backend = backend
        self.prefix = prefix

    def _key(self, document_id: str) -> str:
        return f"{self.prefix}{document_id}"

    def append(self, entry: AuditEntry) -> None:
        """Add an entry to the document's trail."""
        entries = self.get_trail(entry.document_id)
        entries.append(entry)
        self.backend.put(
            self._key(entry.document_id),
            _audit_adapter.dump_json(entries).decode("utf-8"),
        )

    def get_trail(self, document_id: str) -> list[AuditEntry]:
        """Chronological list of entries; empty if none were recorded."""
        raw = self.backend.get(self._key(document_id))
        if raw is None:
            return []
        return sorted(_audit_adapter.validate_json(raw), key=lambda e: e.timestamp)
