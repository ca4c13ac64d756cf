"""
Write-once deployment record: artifact name -> resolved on-ledger address.

One record is created per orchestrator run and threaded through each step.
Entries are appended in pipeline order and never replaced.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from .errors import RecordConflictError

SOURCE_DEPLOYED = "deployed"
SOURCE_EXISTING = "existing"
SOURCE_CONFIGURED = "configured"


@dataclass(frozen=True)
class RecordEntry:
    name: str
    address: str
    source: str


class DeploymentRecord:
    """Append-only name -> address mapping for one run."""

    def __init__(self) -> None:
        self._entries: Dict[str, RecordEntry] = {}

    def set(self, name: str, address: str, source: str = SOURCE_DEPLOYED) -> RecordEntry:
        if not address:
            raise ValueError(f"Refusing to record empty address for {name}")
        existing = self._entries.get(name)
        if existing is not None:
            raise RecordConflictError(
                f"{name} already recorded at {existing.address} ({existing.source}); "
                f"refusing to set {address}"
            )
        entry = RecordEntry(name=name, address=address, source=source)
        self._entries[name] = entry
        return entry

    def seed(self, name: str, address: str) -> RecordEntry:
        """Record an externally provided address (e.g. a pre-existing entry point)."""
        return self.set(name, address, source=SOURCE_CONFIGURED)

    def get(self, name: str) -> Optional[str]:
        entry = self._entries.get(name)
        return entry.address if entry is not None else None

    def entry(self, name: str) -> Optional[RecordEntry]:
        return self._entries.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> List[RecordEntry]:
        return list(self._entries.values())

    def as_dict(self, include_configured: bool = False) -> Dict[str, str]:
        """Plain mapping for output. Configured (non-deployed) entries are excluded by default."""
        return {
            e.name: e.address
            for e in self._entries.values()
            if include_configured or e.source != SOURCE_CONFIGURED
        }
