"""
Diagnostics
===========

Per-file warnings (automatic corrections already applied) and errors
(file rejected). Analysis code appends to a caller-owned sink; the sink
never prints or persists anything itself.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, List


class DiagnosticKind(str, Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    """A single warning or error about one file"""
    kind: DiagnosticKind
    file: str
    message: str

    @classmethod
    def warning(cls, file: str, message: str) -> "Diagnostic":
        return cls(DiagnosticKind.WARNING, file, message)

    @classmethod
    def error(cls, file: str, message: str) -> "Diagnostic":
        return cls(DiagnosticKind.ERROR, file, message)

    @property
    def is_error(self) -> bool:
        return self.kind is DiagnosticKind.ERROR

    def __str__(self) -> str:
        return f"{self.file}: {self.message}"

    def to_dict(self) -> Dict:
        return {
            "kind": self.kind.value,
            "file": self.file,
            "message": self.message,
        }


class DiagnosticsSink:
    """
    Append-only diagnostics collection.

    Appends are guarded by a lock so threads may share one sink. Process
    workers each fill a private sink and the parent merges the records with
    ``extend``.
    """

    def __init__(self, records: Iterable[Diagnostic] = ()):
        self._lock = threading.Lock()
        self._records: List[Diagnostic] = list(records)

    def append(self, diagnostic: Diagnostic):
        with self._lock:
            self._records.append(diagnostic)

    def warn(self, file: str, message: str):
        self.append(Diagnostic.warning(file, message))

    def error(self, file: str, message: str):
        self.append(Diagnostic.error(file, message))

    def extend(self, diagnostics: Iterable[Diagnostic]):
        diagnostics = list(diagnostics)
        with self._lock:
            self._records.extend(diagnostics)

    @property
    def records(self) -> List[Diagnostic]:
        with self._lock:
            return list(self._records)

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.records if not d.is_error]

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.records if d.is_error]

    def for_file(self, file: str) -> List[Diagnostic]:
        return [d for d in self.records if d.file == file]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.records)

    # Locks cannot be pickled; workers ship their sinks back to the parent
    def __getstate__(self):
        return {"records": self.records}

    def __setstate__(self, state):
        self._lock = threading.Lock()
        self._records = list(state["records"])
