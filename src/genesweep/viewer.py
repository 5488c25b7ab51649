from __future__ import annotations

from .alignment import open_alignments
from .errors import GenesweepError
from .quality import QualityFilter


def _cigar_str(rec) -> str:
    return "".join(f"{c.length}{c.op}" for c in rec.cigar) or "*"


def view_alignment_head(
    paths: list[str],
    n: int = 10,
    min_mapq: int = 30,
    min_length: int = 60,
    header: bool = False,
) -> int:
    """
    Print the first N records of each BAM/SAM file with the quality filter's verdict.

    Output is TSV: read_name, locus, MAPQ, CIGAR, PASS|FAIL
    """
    qfilter = QualityFilter(min_mapq=min_mapq, min_length=min_length)
    for path in paths:
        try:
            source = open_alignments(path)
        except GenesweepError as e:
            print(f"[ERROR] {e}")
            return 1

        print(f"== {path} ==")
        with source:
            if header:
                for name, length in source.header.references.items():
                    print(f"@SQ\t{name}\t{length}")

            printed = 0
            try:
                for rec in source:
                    strand = "-" if rec.strand < 0 else "+"
                    verdict = "PASS" if qfilter.passes(rec) else "FAIL"
                    # 1-based inclusive locus, like samtools
                    print(
                        f"{rec.name}\t{rec.reference or '*'}:{rec.pos + 1}-{rec.end}({strand})"
                        f"\tMAPQ={rec.mapq}\t{_cigar_str(rec)}\t{verdict}"
                    )
                    printed += 1
                    if printed >= n:
                        break
            except GenesweepError as e:
                print(f"[ERROR] {e}")
                return 1

            if printed == 0:
                print("[info] No records found.")

    return 0
