from __future__ import annotations
from dataclasses import dataclass

from .genesweepClasses import AlignmentRecord

# Match/mismatch and soft clips; any indel, skip, hard clip or pad fails the read
ALLOWED_CIGAR_OPS = frozenset("M=XS")


@dataclass(frozen=True)
class QualityFilter:
    min_mapq: int = 30
    min_length: int = 60

    def passes(self, record: AlignmentRecord) -> bool:
        """Return False if the read fails the quality check."""
        if record.is_unmapped:
            return False
        if record.mapq < self.min_mapq or record.span < self.min_length:
            return False
        return all(c.op in ALLOWED_CIGAR_OPS for c in record.cigar)

    __call__ = passes
