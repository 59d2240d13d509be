"""
Session marker persistence.

The marker is a small JSON file recording who is signed in on this
machine. It holds the public identity only, never the secret.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ecclesia.core.types import utc_now_iso

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionMarker:
    identity: str
    display_name: str
    established_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "identity": self.identity,
            "displayName": self.display_name,
            "establishedAt": self.established_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Optional[SessionMarker]:
        identity = data.get("identity")
        if not isinstance(identity, str) or not identity:
            return None
        return cls(
            identity=identity,
            display_name=str(data.get("displayName") or ""),
            established_at=str(data.get("establishedAt") or ""),
        )


def atomic_write_text(path: Path, data: str) -> None:
    """Atomically write *data* into *path*."""
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)
    with tmp_path.open("w", encoding="utf-8") as handle:
        handle.write(data)
        handle.flush()
        os.fsync(handle.fileno())
    tmp_path.replace(path)


class SessionMarkerStore:
    """Reads and writes the marker file at ``path``."""

    __slots__ = ("_path",)

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[SessionMarker]:
        """Current marker; a missing or unreadable file means no session."""
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(
                "Ignoring unreadable session marker",
                extra={"path": str(self._path), "error": str(e)},
            )
            return None
        if not isinstance(data, dict):
            return None
        return SessionMarker.from_dict(data)

    def save(self, marker: SessionMarker) -> None:
        payload = json.dumps(marker.to_dict(), ensure_ascii=False, indent=2, sort_keys=True)
        atomic_write_text(self._path, payload)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
