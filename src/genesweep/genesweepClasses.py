from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple, Union

# Ops that consume reference bases
REF_CONSUMING = frozenset("MDN=X")

# BAM stores ops as integer codes indexing this string
CIGAR_CODES = "MIDNSHP=X"


class CigarOp(NamedTuple):
    op: str
    length: int


def parse_cigar(cigar: str) -> Tuple[CigarOp, ...]:
    """Parse a CIGAR string such as '5S90M' into ops. '*' means no CIGAR."""
    if not cigar or cigar == "*":
        return ()
    ops: List[CigarOp] = []
    num = ""
    for ch in cigar:
        if ch.isdigit():
            num += ch
            continue
        if ch not in CIGAR_CODES or not num:
            raise ValueError(f"invalid CIGAR {cigar!r}")
        ops.append(CigarOp(ch, int(num)))
        num = ""
    if num:
        raise ValueError(f"invalid CIGAR {cigar!r}: trailing length")
    return tuple(ops)


def reference_span(cigar: Sequence[CigarOp]) -> int:
    return sum(c.length for c in cigar if c.op in REF_CONSUMING)


# Same trimmed-down idea as the old AlignmentData: keep only what the sweep needs
@dataclass(frozen=True)
class AlignmentRecord:
    """One decoded alignment. ``pos`` is 0-based, ``span`` counts reference bases."""
    __slots__ = ("name", "reference", "pos", "span", "mapq", "cigar", "flag")
    name: str
    reference: Optional[str]
    pos: int
    span: int
    mapq: int
    cigar: Tuple[CigarOp, ...]
    flag: int

    @property
    def end(self) -> int:
        return self.pos + self.span

    @property
    def is_unmapped(self) -> bool:
        return bool(self.flag & 0x4) or self.reference is None

    @property
    def strand(self) -> int:
        return -1 if self.flag & 0x10 else 1


@dataclass
class AlignmentHeader:
    # Insertion order follows the @SQ lines / BAM reference list
    references: Dict[str, int] = field(default_factory=dict)

    def length_of(self, name: str) -> int:
        return self.references.get(name, 0)


@dataclass(frozen=True)
class GeneInterval:
    id: str
    start: int  # 0-based inclusive
    end: int    # 0-based exclusive
    strand: int
    reference: str


@dataclass
class ReadBundle:
    """Records collected for one gene interval or one reference run."""
    id: str
    reference: str
    start: int
    end: int
    strand: int
    records: Union[List[AlignmentRecord], Tuple[AlignmentRecord, ...]] = field(default_factory=list)

    @classmethod
    def for_interval(cls, gene: GeneInterval) -> "ReadBundle":
        return cls(id=gene.id, reference=gene.reference, start=gene.start, end=gene.end, strand=gene.strand)

    def freeze(self) -> "ReadBundle":
        self.records = tuple(self.records)
        return self


@dataclass
class AssignmentStats:
    total: int = 0
    filtered: int = 0
    skipped: int = 0      # passed the filter but reference has no annotation
    assigned: int = 0     # records placed in at least one bundle
    assignments: int = 0  # record/gene pairs, overlapping genes count twice
    bundles: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "filtered": self.filtered,
            "skipped": self.skipped,
            "assigned": self.assigned,
            "assignments": self.assignments,
            "bundles": self.bundles,
        }
