"""
Data models for raw records, field selectors and reading statistics.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

RawRecord = List[str]


@dataclass(frozen=True)
class ByIndex:
    """Select the field at a fixed position."""
    index: int

    def __str__(self) -> str:
        return f"index {self.index}"


@dataclass(frozen=True)
class ByIndexRange:
    """Select a contiguous span of fields; ``end=None`` runs to the end of each record."""
    start: int
    end: Optional[int] = None

    @property
    def unbounded(self) -> bool:
        return self.end is None

    def resolve_end(self, record_length: int) -> int:
        """Inclusive end index for a record of the given length."""
        if self.end is None:
            return record_length - 1
        return self.end

    def __str__(self) -> str:
        end = "*" if self.end is None else self.end
        return f"index range {self.start}..{end}"


@dataclass(frozen=True)
class ByName:
    """Select a field by header name.

    ``names`` are tried in order; ``name_index`` picks the k-th column carrying
    the matched name. ``fallback_index`` is used when the input has no header.
    """
    names: Tuple[str, ...]
    name_index: int = 0
    fallback_index: Optional[int] = None

    def __str__(self) -> str:
        label = "/".join(self.names)
        if self.name_index:
            return f"name '{label}'[{self.name_index}]"
        return f"name '{label}'"


@dataclass
class ReadStats:
    """Reading statistics."""
    total_records: int = 0
    bound_records: int = 0
    failed_records: int = 0
    skipped_records: int = 0  # Blank records skipped by configuration
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None

    @property
    def duration(self) -> float:
        """Get reading duration in seconds."""
        end = self.end_time or time.time()
        return end - self.start_time

    @property
    def records_per_second(self) -> float:
        """Get processing throughput."""
        duration = self.duration
        return self.bound_records / duration if duration > 0 else 0
