"""
Persistent JSON-based identity store for the MineChat client.

Remembers which identity this client was given for each server:

    servers.json
    {
      "servers": [
        {"address": "mc.example.com:25575", "uuid": "..."}
      ]
    }

All writes are atomic to prevent corruption.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from shared.errors import ConfigError
from shared.log import get_logger

logger = get_logger(__name__)


@dataclass
class ServerEntry:
    address: str
    identity: str

    def to_dict(self) -> Dict[str, str]:
        return {"address": self.address, "uuid": self.identity}


class IdentityStore:
    """Ordered list of server address to identity entries backed by a JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()
        self.entries: List[ServerEntry] = self._load()

    def lookup(self, address: str) -> Optional[str]:
        """Identity on record for ``address``; the last entry wins on duplicates"""
        for entry in reversed(self.entries):
            if entry.address == address:
                return entry.identity
        return None

    def upsert(self, address: str, identity: str) -> None:
        """Replace every entry for ``address`` with one new entry and save"""
        entries = [e for e in self.entries if e.address != address]
        entries.append(ServerEntry(address=address, identity=identity))
        self._save(entries)
        self.entries = entries
        logger.info(f"Stored identity for {address}", extra={"server": address})

    def _load(self) -> List[ServerEntry]:
        if not self.path.exists():
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Failed to read {self.path}: {e}")

        return self._parse(data)

    def _parse(self, data: Any) -> List[ServerEntry]:
        if not isinstance(data, dict) or not isinstance(data.get("servers"), list):
            raise ConfigError(f"{self.path}: expected an object with a 'servers' list")

        entries = []
        for raw in data["servers"]:
            if not isinstance(raw, dict):
                raise ConfigError(f"{self.path}: server entries must be objects")
            address, identity = raw.get("address"), raw.get("uuid")
            if not isinstance(address, str) or not isinstance(identity, str):
                raise ConfigError(f"{self.path}: server entries need string 'address' and 'uuid'")
            entries.append(ServerEntry(address=address, identity=identity))

        logger.debug(f"Loaded {len(entries)} server entries from {self.path.name}")
        return entries

    def _save(self, entries: List[ServerEntry]) -> None:
        """
        Atomically write the store.

        Uses temp file + rename so a crash never leaves a half-written file.
        """
        data = {"servers": [e.to_dict() for e in entries]}

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f"{self.path.stem}_",
                suffix=".json.tmp",
                dir=self.path.parent
            )
        except OSError as e:
            raise ConfigError(f"Failed to write {self.path}: {e}")

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                json.dump(data, tmp, indent=2)
                tmp.flush()
                os.fsync(tmp.fileno())

            # Atomic rename
            os.replace(tmp_path, self.path)
            logger.debug(f"Saved {self.path.name}")

        except OSError as e:
            logger.error(f"Failed to write {self.path}: {e}")
            # Clean up temp file on error
            if os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass
            raise ConfigError(f"Failed to write {self.path}: {e}")
