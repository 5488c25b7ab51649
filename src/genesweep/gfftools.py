from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import gzip
import logging
from typing import Dict, List, Optional, TextIO

from .errors import AnnotationError


@dataclass
class CdsFeature:
    seqname: str
    feature: str
    start: int  # 1-based inclusive (from GFF)
    end: int    # 1-based inclusive
    strand: str
    id: str


def _open_text_auto(path: str | Path, mode: str = "rt") -> TextIO:
    p = Path(path)
    if p.suffix.lower() == ".gz":
        return gzip.open(p, mode, encoding="utf-8", errors="replace")
    return open(p, mode, encoding="utf-8", errors="replace")


def _parse_attrs(attr_field: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for kv in attr_field.strip().split(";"):
        if not kv:
            continue
        if "=" in kv:
            k, v = kv.split("=", 1)
            out[k.strip()] = v
    return out


def load_cds_gff(
    gff_path: str | Path,
    feature: str = "CDS",
    logger: Optional[logging.Logger] = None,
) -> Dict[str, List[CdsFeature]]:
    """
    Load the rows of one feature type from a GFF3 file (.gff3 or .gff3.gz),
    grouped per sequence name and sorted by start.
    """
    by_seq: Dict[str, List[CdsFeature]] = {}
    try:
        fh = _open_text_auto(gff_path)
    except OSError as e:
        raise AnnotationError(gff_path, e) from e

    with fh:
        for line in fh:
            # Embedded FASTA ends the annotation section
            if line.startswith("##FASTA"):
                break
            if not line.strip() or line.startswith("#"):
                continue
            cols = line.rstrip("\n").split("\t")
            if len(cols) < 9:
                continue
            seqname, _src, ftype, start_s, end_s, _score, strand, _phase, attrs = cols[:9]
            if ftype != feature:
                continue
            try:
                start = int(start_s); end = int(end_s)
            except ValueError:
                continue

            A = _parse_attrs(attrs)
            fid = A.get("ID") or A.get("Name") or f"{seqname}:{start}-{end}"
            by_seq.setdefault(seqname, []).append(
                CdsFeature(seqname=seqname, feature=ftype, start=start, end=end, strand=strand, id=fid)
            )

    # The sweep relies on ascending starts and never sorts on its own
    for features in by_seq.values():
        features.sort(key=lambda f: f.start)

    if logger:
        n = sum(len(v) for v in by_seq.values())
        logger.info(f"GFF loaded: {n} {feature} features on {len(by_seq)} sequences")
        if logger.isEnabledFor(logging.DEBUG):
            for seq in sorted(by_seq):
                logger.debug(f"  GFF seq={seq!r}: {len(by_seq[seq])} features")

    return by_seq
