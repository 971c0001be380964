"""Key-value persistence for session state.

The session layer only ever talks to a ``KeyValueStore``: string keys,
string values, ``get``/``set``/``delete``/``clear``. Two implementations:

  - ``MemoryStore``: a dict, for tests and throwaway clients.
  - ``JsonFileStore``: a single JSON file that outlives the process.

The session file uses a metadata envelope::

    {"meta": {"source": "biocaching", "updated_at": "..."},
     "data": {"email": "...", "token": "...", "language": "eng"}}

Other writers may keep unrelated keys in the same store; nothing here
assumes exclusive ownership of the file.

``SnapshotStore`` keeps fetched observation lists on disk for the flows,
in the same envelope plus a ``valid_until`` expiry.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal persistence port consumed by ``SessionStore``."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryStore:
    """In-process store backed by a dict."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class JsonFileStore:
    """Durable store persisted as a metadata-enveloped JSON file.

    Every mutation rewrites the whole file; reads go to disk so that two
    clients sharing a file see each other's writes.
    """

    def __init__(self, path: Path, source: str = "biocaching") -> None:
        self.path = path.expanduser()
        self.source = source

    def get(self, key: str) -> str | None:
        value = self._read().get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = str(value)
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)

    def clear(self) -> None:
        self._write({})

    def read_raw(self) -> dict[str, Any] | None:
        """Read the full envelope (meta + data), or None if the file is missing."""
        if not self.path.exists():
            return None
        with self.path.open() as f:
            result: dict[str, Any] = json.load(f)
        return result

    def _read(self) -> dict[str, Any]:
        """The ``data`` payload; a damaged or foreign-format file reads as empty."""
        try:
            envelope = self.read_raw()
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Ignoring unreadable session file %s", self.path)
            return {}
        if envelope is None:
            return {}
        data = envelope.get("data", {}) if isinstance(envelope, dict) else None
        if not isinstance(data, dict):
            logger.warning("Ignoring session file %s with unexpected layout", self.path)
            return {}
        return data

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        envelope = {
            "meta": {
                "source": self.source,
                "updated_at": datetime.now(UTC).isoformat(),
            },
            "data": data,
        }
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w") as f:
            json.dump(envelope, f, indent=2)
        tmp.replace(self.path)


class SnapshotStore:
    """Observation snapshots on disk, with freshness metadata.

    Each snapshot is a JSON envelope; ``valid_until`` lets the fetch flow
    skip queries whose last result is still fresh.
    """

    def __init__(self, base_dir: Path) -> None:
        self.base = base_dir

    def read(self, path: Path) -> Any | None:
        """Return the ``data`` payload, or None if the snapshot doesn't exist."""
        full = self.base / path
        if not full.exists():
            return None
        with full.open() as f:
            envelope: dict[str, Any] = json.load(f)
        return envelope.get("data")

    def write(
        self,
        path: Path,
        data: Any,
        source: str,
        valid_until: datetime | None = None,
        **params: Any,
    ) -> Path:
        """Write ``data`` under ``path`` (relative to base) and return the full path."""
        full = self.base / path
        full.parent.mkdir(parents=True, exist_ok=True)

        meta: dict[str, Any] = {
            "source": source,
            "fetched_at": datetime.now(UTC).isoformat(),
        }
        if valid_until is not None:
            meta["valid_until"] = valid_until.isoformat()
        if params:
            meta.update(params)

        with full.open("w") as f:
            json.dump({"meta": meta, "data": data}, f, indent=2)
        return full

    def is_fresh(self, path: Path) -> bool:
        """True if the snapshot exists and its ``valid_until`` is in the future."""
        full = self.base / path
        if not full.exists():
            return False
        with full.open() as f:
            meta: dict[str, Any] = json.load(f).get("meta", {})
        valid_until = meta.get("valid_until")
        if valid_until is None:
            return False
        expiry = datetime.fromisoformat(valid_until)
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=UTC)
        return datetime.now(UTC) < expiry
