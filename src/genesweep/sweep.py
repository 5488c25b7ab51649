from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from .errors import UnsortedAlignmentError
from .genesweepClasses import (
    AlignmentHeader,
    AlignmentRecord,
    AssignmentStats,
    GeneInterval,
    ReadBundle,
)
from .gfftools import CdsFeature


def gene_intervals(reference: str, features: Sequence[CdsFeature]) -> List[GeneInterval]:
    """GFF rows (1-based, inclusive) to half-open 0-based intervals, order kept."""
    return [
        GeneInterval(
            id=f.id,
            start=f.start - 1,
            end=f.end,
            strand=-1 if f.strand == "-" else 1,
            reference=reference,
        )
        for f in features
    ]


class GeneWindow:
    """
    Bundles of the active reference that may still receive reads.

    Bundles are kept in one list for the whole reference; ``head`` marks the
    first one that is still open, so evicting never copies the list.
    """

    __slots__ = ("reference", "_bundles", "_head")

    def __init__(self, reference: str, genes: Iterable[GeneInterval]):
        self.reference = reference
        self._bundles: List[Optional[ReadBundle]] = [ReadBundle.for_interval(g) for g in genes]
        self._head = 0

    @classmethod
    def from_features(cls, reference: str, features: Sequence[CdsFeature]) -> "GeneWindow":
        return cls(reference, gene_intervals(reference, features))

    def __len__(self) -> int:
        return len(self._bundles) - self._head

    def open_bundles(self) -> List[ReadBundle]:
        return self._bundles[self._head:]

    def evict(self, n: int) -> List[ReadBundle]:
        """Close the first ``n`` open bundles and return the ones holding reads."""
        stop = min(self._head + n, len(self._bundles))
        out: List[ReadBundle] = []
        for i in range(self._head, stop):
            bundle = self._bundles[i]
            self._bundles[i] = None  # release the reads
            if bundle.records:
                out.append(bundle.freeze())
        self._head = stop
        return out

    def drain(self) -> List[ReadBundle]:
        return self.evict(len(self))


class SlidingAssigner:
    """
    Merge a position-sorted record stream with per-reference gene lists.

    ``feed`` returns the bundles that became complete with that record;
    ``finish`` returns whatever is left once input is exhausted. Records must
    already have passed the quality filter.

    Only closed genes at the front of the window are flushed, so a closed gene
    sitting behind a longer, still-open gene is flushed when that gene closes.
    """

    def __init__(
        self,
        annotation: Dict[str, Sequence[CdsFeature]],
        stats: Optional[AssignmentStats] = None,
        on_missing=None,
    ):
        self.annotation = annotation
        self.stats = stats if stats is not None else AssignmentStats()
        self.window: Optional[GeneWindow] = None
        self.current: Optional[str] = None
        self.skipping = False
        self._last_pos = -1
        self._on_missing = on_missing

    def _switch_reference(self, reference: str) -> List[ReadBundle]:
        flushed = self.window.drain() if self.window is not None else []
        self.current = reference
        self._last_pos = -1
        features = self.annotation.get(reference)
        if features is None:
            self.window = None
            self.skipping = True
            if self._on_missing is not None:
                self._on_missing(reference)
        else:
            self.window = GeneWindow.from_features(reference, features)
            self.skipping = False
        return flushed

    def feed(self, record: AlignmentRecord) -> List[ReadBundle]:
        out: List[ReadBundle] = []
        if record.reference != self.current:
            out = self._switch_reference(record.reference)

        if record.pos < self._last_pos:
            raise UnsortedAlignmentError(record.reference, self._last_pos, record.pos)
        self._last_pos = record.pos

        if self.skipping:
            self.stats.skipped += 1
            self.stats.bundles += len(out)
            return out

        bundles = self.window.open_bundles()
        closed = 0
        hits = 0
        for i, gene in enumerate(bundles):
            if max(record.pos, gene.start) < min(record.end, gene.end):
                gene.records.append(record)
                hits += 1
            elif record.pos >= gene.end:
                # Later reads start even further right. Only a closed run at
                # the front is evicted, so flushes stay in start order.
                if i == closed:
                    closed += 1
            else:
                # record.end <= gene.start: every later gene starts after it too
                break

        if hits:
            self.stats.assigned += 1
            self.stats.assignments += hits
        out.extend(self.window.evict(closed))
        self.stats.bundles += len(out)
        return out

    def finish(self) -> List[ReadBundle]:
        out = self.window.drain() if self.window is not None else []
        self.window = None
        self.stats.bundles += len(out)
        return out


class PangenomeGrouper:
    """Bundle contiguous runs of records on the same reference sequence."""

    def __init__(self, header: Optional[AlignmentHeader] = None, stats: Optional[AssignmentStats] = None):
        self.header = header if header is not None else AlignmentHeader()
        self.stats = stats if stats is not None else AssignmentStats()
        self.bundle: Optional[ReadBundle] = None

    def _flush(self) -> List[ReadBundle]:
        bundle, self.bundle = self.bundle, None
        if bundle is None or not bundle.records:
            return []
        self.stats.bundles += 1
        return [bundle.freeze()]

    def feed(self, record: AlignmentRecord) -> List[ReadBundle]:
        out: List[ReadBundle] = []
        if self.bundle is None or record.reference != self.bundle.reference:
            out = self._flush()
            self.bundle = ReadBundle(
                id=record.reference,
                reference=record.reference,
                start=0,
                end=self.header.length_of(record.reference),
                strand=0,
            )
        self.bundle.records.append(record)
        self.stats.assigned += 1
        self.stats.assignments += 1
        return out

    def finish(self) -> List[ReadBundle]:
        return self._flush()
