"""Statistics for the event ingestor.

Extracted from ingestor.py for modularity.
"""

from __future__ import annotations

from collections import Counter


class IngestorStats:
    """Estadísticas del ingestor de eventos."""

    def __init__(self):
        self.received = 0
        self.applied = 0
        self.unchanged = 0
        self.rejected: Counter[str] = Counter()
        self.last_event_at: float = 0

    @property
    def rejected_total(self) -> int:
        return sum(self.rejected.values())

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} applied={self.applied} "
            f"unchanged={self.unchanged} rejected={self.rejected_total}"
        )

    def to_dict(self) -> dict:
        """Convert stats to dictionary."""
        return {
            "received": self.received,
            "applied": self.applied,
            "unchanged": self.unchanged,
            "rejected": self.rejected_total,
            "rejected_by_code": dict(self.rejected),
            "last_event_at": self.last_event_at,
        }
