"""
Data model for the LLM File Sorter.

Everything here is created once per run and thrown away at the end of it.
Only the MovePlan aggregates across batches.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


# Closed set of category labels, in display order
TAXONOMY = ("Documents", "Images", "Music", "Video", "Code", "Archives", "Other")

# Label used whenever the model gives nothing usable
FALLBACK_CATEGORY = "Other"


@dataclass(frozen=True)
class FileEntry:
    """A file found by the scanner. `name` is kept exactly as the OS returned it."""
    path: Path
    name: str
    ext: str

    @classmethod
    def from_path(cls, path: Path) -> "FileEntry":
        return cls(path=path, name=path.name, ext=path.suffix.lower())


@dataclass(frozen=True)
class Batch:
    """An ordered group of files classified together in one request."""
    batch_id: str
    entries: tuple[FileEntry, ...]

    @property
    def filenames(self) -> list[str]:
        return [e.name for e in self.entries]

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class ClassificationRequest:
    batch_id: str
    prompt: str
    model: str
    api_url: str


class BatchState(Enum):
    """Lifecycle of one batch's inference call."""
    PENDING = "pending"
    SENT = "sent"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class InferenceOutcome:
    """What the InferenceClient hands to the reconciler."""
    batch_id: str
    state: BatchState
    text: str | None = None
    attempts: int = 0
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.state is not BatchState.SUCCEEDED or self.text is None


class ParseOutcome(Enum):
    """How a raw response was turned into records."""
    STRICT = "strict"
    REPAIRED = "repaired"
    FAILED = "failed"


@dataclass(frozen=True)
class ClassificationRecord:
    filename: str
    category: str


@dataclass
class ClassificationResult:
    """
    Per-batch filename -> category mapping.

    `assignments` covers every file of the batch. `fallback` lists the
    filenames that defaulted to the fallback label, `unmatched` the names
    the model returned that are not part of the batch.
    """
    batch_id: str
    assignments: dict[str, str]
    outcome: ParseOutcome
    fallback: list[str] = field(default_factory=list)
    unmatched: list[str] = field(default_factory=list)

    @property
    def records(self) -> list[ClassificationRecord]:
        return [ClassificationRecord(name, cat) for name, cat in self.assignments.items()]


class MovePlan:
    """
    Global FileEntry -> category mapping for a run.

    Append-only while batches are processed; safe to add to from several
    threads. Each file may be added once.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._assignments: dict[FileEntry, str] = {}

    def add(self, entry: FileEntry, category: str) -> None:
        with self._lock:
            if entry in self._assignments:
                raise ValueError(f"File already planned: {entry.name}")
            self._assignments[entry] = category

    def add_result(self, batch: Batch, result: ClassificationResult) -> None:
        """
        Merge one batch's result.

        Raises:
            ValueError: If the result does not cover the batch, or a file was already merged.
        """
        missing = [e.name for e in batch.entries if e.name not in result.assignments]
        if missing:
            raise ValueError(f"{batch.batch_id}: result is missing {len(missing)} file(s)")
        with self._lock:
            duplicates = [e.name for e in batch.entries if e in self._assignments]
            if duplicates:
                raise ValueError(f"{batch.batch_id}: files already planned: {duplicates[:3]}")
            for entry in batch.entries:
                self._assignments[entry] = result.assignments[entry.name]

    def category_for(self, entry: FileEntry) -> str:
        return self._assignments[entry]

    def items(self) -> list[tuple[FileEntry, str]]:
        with self._lock:
            return list(self._assignments.items())

    def categories(self) -> list[str]:
        """Distinct categories used, in first-seen order."""
        seen: dict[str, None] = {}
        for _, category in self.items():
            seen.setdefault(category, None)
        return list(seen)

    def counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for _, category in self.items():
            counts[category] = counts.get(category, 0) + 1
        return counts

    def __len__(self) -> int:
        return len(self._assignments)

    def __contains__(self, entry: object) -> bool:
        return entry in self._assignments
