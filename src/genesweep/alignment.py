from __future__ import annotations

from pathlib import Path
from typing import Iterator, List, Tuple
import bamnostic as bn
import pysam

from .errors import AlignmentDecodeError, AlignmentOpenError
from .genesweepClasses import (
    CIGAR_CODES,
    AlignmentHeader,
    AlignmentRecord,
    CigarOp,
    parse_cigar,
    reference_span,
)


def _is_bam(path: str | Path) -> bool:
    return str(path).lower().endswith(".bam")


def _segment_cigar(aln) -> Tuple[CigarOp, ...]:
    # pysam cigartuples, then the string form, then bamnostic's cigar list
    tuples = getattr(aln, "cigartuples", None)
    if tuples is None:
        cigarstring = getattr(aln, "cigarstring", None)
        if cigarstring:
            return parse_cigar(cigarstring)
        tuples = getattr(aln, "cigar", None)
    if isinstance(tuples, str):
        return parse_cigar(tuples)
    ops: List[CigarOp] = []
    for op, length in tuples or ():
        if isinstance(op, int):
            op = CIGAR_CODES[op]
        ops.append(CigarOp(op, int(length)))
    return tuple(ops)


def _segment_read_name(aln) -> str:
    for attr in ("query_name", "qname", "read_name"):
        v = getattr(aln, attr, None)
        if v:
            return v
    return ""


def _record_from_segment(aln) -> AlignmentRecord:
    """Works on pysam and bamnostic segments alike."""
    ref = getattr(aln, "reference_name", None)
    if ref in ("", "*"):
        ref = None
    cigar = _segment_cigar(aln)
    mapq = getattr(aln, "mapping_quality", None)
    if mapq is None:
        mapq = getattr(aln, "mapq", 0)
    pos = getattr(aln, "reference_start", None)
    if pos is None:
        pos = getattr(aln, "pos", 0)  # bamnostic uses 0-based pos
    return AlignmentRecord(
        name=_segment_read_name(aln),
        reference=ref,
        pos=max(pos or 0, 0),  # -1 when unplaced
        span=reference_span(cigar),
        mapq=int(mapq or 0),
        cigar=cigar,
        flag=int(getattr(aln, "flag", 0) or 0),
    )


class AlignmentSource:
    """
    Header plus a forward-only stream of AlignmentRecords.

    Subclasses only open the file handle; everything downstream sees
    ``header`` and iteration, whatever the encoding.
    """

    def __init__(self, path: str | Path):
        self.path = str(path)
        self.header = AlignmentHeader()
        self.records_read = 0
        self.closed = False
        try:
            self._handle = self._open()
        except Exception as e:
            raise AlignmentOpenError(path, e) from e

        try:
            refs = list(getattr(self._handle, "references", []) or [])
            lengths = list(getattr(self._handle, "lengths", []) or [])
        except Exception as e:
            self.close()
            raise AlignmentOpenError(path, e) from e
        lengths += [0] * (len(refs) - len(lengths))
        self.header = AlignmentHeader(references=dict(zip(refs, lengths)))

    def _open(self):
        raise NotImplementedError

    def _fail(self, reason: Exception) -> AlignmentDecodeError:
        self.close()
        return AlignmentDecodeError(self.path, self.records_read, str(reason))

    def __iter__(self) -> Iterator[AlignmentRecord]:
        it = iter(self._handle)
        while True:
            try:
                aln = next(it)
            except StopIteration:
                return
            except Exception as e:
                self.records_read += 1
                raise self._fail(e) from e
            self.records_read += 1
            try:
                rec = _record_from_segment(aln)
            except (ValueError, IndexError, TypeError) as e:
                raise self._fail(e) from e
            yield rec

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._handle.close()

    def __enter__(self) -> "AlignmentSource":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class BamSource(AlignmentSource):
    def _open(self):
        return bn.AlignmentFile(self.path, "rb")


class SamSource(AlignmentSource):
    """Text SAM, plain or compressed; htslib sniffs the compression from content."""

    def _open(self):
        # Headerless SAM is allowed; unknown references come back unmapped
        return pysam.AlignmentFile(self.path, "r", check_sq=False)


def open_alignments(path: str | Path) -> AlignmentSource:
    """Open a BAM (by suffix) or SAM file. Raises AlignmentOpenError."""
    if _is_bam(path):
        return BamSource(path)
    return SamSource(path)
