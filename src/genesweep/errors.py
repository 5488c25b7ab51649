from __future__ import annotations
from pathlib import Path


class GenesweepError(RuntimeError):
    """Base class for every error raised by genesweep."""


class AlignmentOpenError(GenesweepError):
    def __init__(self, path: str | Path, cause: Exception):
        self.path = str(path)
        self.cause = cause
        super().__init__(f"Could not open alignments: {path}: {cause}")


class AlignmentDecodeError(GenesweepError):
    """A record could not be decoded (anything other than a clean end of file)."""

    def __init__(self, path: str | Path, record_no: int, reason: str):
        self.path = str(path)
        self.record_no = record_no
        self.reason = reason
        super().__init__(f"{path}: record {record_no:,}: {reason}")


class UnsortedAlignmentError(GenesweepError):
    """Positions went backwards inside one reference run."""

    def __init__(self, reference: str, previous: int, current: int):
        self.reference = reference
        self.previous = previous
        self.current = current
        super().__init__(
            f"Alignments are not position-sorted on {reference!r}: "
            f"{current} after {previous}. Sort with: samtools sort -o sorted.bam input.bam"
        )


class AnnotationError(GenesweepError):
    def __init__(self, path: str | Path, cause: Exception):
        self.path = str(path)
        self.cause = cause
        super().__init__(f"Could not read annotation: {path}: {cause}")
