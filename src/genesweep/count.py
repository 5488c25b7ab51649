from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple
import glob
import logging
import os
import traceback

from .genesweepClasses import AssignmentStats
from .gfftools import load_cds_gff
from .pipeline import AssignConfig, _get_memory_usage, assign_genes_file, group_pangenome_file


def _make_logger(level: str) -> logging.Logger:
    lvl = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger("genesweep")
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
    logger.setLevel(lvl)
    return logger


def _expand_alignment_patterns(paths: List[str], logger: logging.Logger) -> List[str]:
    seen = set()
    out: List[str] = []
    for pat in paths:
        matches = glob.glob(pat) if any(ch in pat for ch in "*?[]") else (
            [pat] if os.path.exists(pat) else []
        )
        for m in sorted(matches):
            if m not in seen:
                seen.add(m)
                out.append(m)
        if not matches:
            logger.warning(f"No alignment files matched: {pat}")
    return out


def _sample_name(path: str) -> str:
    name = Path(path).name
    for suffix in (".gz", ".bam", ".sam"):
        if name.lower().endswith(suffix):
            name = name[: -len(suffix)]
    return name


def _count_one(
    path: str,
    annotation,
    config: AssignConfig,
    mode: str,
    logger: logging.Logger,
) -> Tuple[Dict[str, int], AssignmentStats]:
    """Read counts per bundle id for one alignment file."""
    if mode == "genes":
        run = assign_genes_file(path, annotation, config, logger=logger)
    else:
        run = group_pangenome_file(path, config, logger=logger)

    counts: Dict[str, int] = {}
    with run:
        for bundle in run:
            # Non-contiguous runs of one reference arrive as separate bundles
            counts[bundle.id] = counts.get(bundle.id, 0) + len(bundle.records)
    return counts, run.stats


def count_matrix(
    alignment_paths: List[str],
    out_path: str | Path,
    *,
    gff_path: str | Path | None = None,
    mode: str = "genes",      # genes | pangenome
    metric: str = "reads",    # reads | cpm
    min_mapq: int = 30,
    min_length: int = 60,
    feature_type: str = "CDS",
    progress: bool = False,
    progress_every: int = 10000,
    log_level: str = "INFO",
) -> int:
    """
    Build a matrix with rows = genes (or reference sequences), columns = samples.
    CPM is relative to the reads that passed the quality filter.
    """
    logger = _make_logger(log_level)

    if mode not in ("genes", "pangenome"):
        logger.error("--mode must be one of: genes, pangenome")
        return 2
    if metric not in ("reads", "cpm"):
        logger.error("--metric must be one of: reads, cpm")
        return 2

    annotation = None
    if mode == "genes":
        if gff_path is None:
            logger.error("--gff is required in genes mode")
            return 2
        try:
            annotation = load_cds_gff(gff_path, feature=feature_type, logger=logger)
        except Exception as e:
            logger.error(str(e))
            return 1

    aln_list = _expand_alignment_patterns(alignment_paths, logger)
    if not aln_list:
        logger.error("No alignment files found.")
        return 1

    config = AssignConfig(
        min_mapq=min_mapq,
        min_length=min_length,
        show_progress=progress,
        progress_every=progress_every,
        feature_type=feature_type,
    )
    logger.info(
        f"{len(aln_list)} alignment file(s) to process; mode={mode}, "
        f"min_mapq={min_mapq}, min_length={min_length}"
    )
    sample_names = [_sample_name(a) for a in aln_list]

    per_sample_counts: List[Dict[str, int]] = []
    per_sample_passed: List[int] = []
    for i, a in enumerate(aln_list, 1):
        logger.info(f"Processing {i}/{len(aln_list)}: {a}")
        try:
            counts, stats = _count_one(a, annotation, config, mode, logger)
        except Exception as e:
            logger.error(f"{a}: {e}")
            logger.debug("Traceback:\n" + traceback.format_exc())
            return 1
        per_sample_counts.append(counts)
        per_sample_passed.append(stats.total - stats.filtered)
        logger.debug(
            f"{a}: total={stats.total}, filtered={stats.filtered}, skipped={stats.skipped}, "
            f"assigned={stats.assigned}, assignments={stats.assignments}, bundles={stats.bundles}"
        )
        logger.info(f"Current memory: {_get_memory_usage():.1f} MB")

    features = sorted({f for counts in per_sample_counts for f in counts})
    if not features:
        logger.warning(
            "No reads were assigned. Common causes: contig name mismatch (chr1 vs 1), "
            "unsorted input, or too-strict --min-mapq/--min-length."
        )

    outp = Path(out_path)
    outp.parent.mkdir(parents=True, exist_ok=True)
    with open(outp, "w", encoding="utf-8") as fh:
        fh.write("feature\t" + "\t".join(sample_names) + "\n")
        for feat in features:
            vals: List[str] = []
            for s_idx, counts in enumerate(per_sample_counts):
                cnt = counts.get(feat, 0)
                if metric == "cpm":
                    passed = per_sample_passed[s_idx] or 1
                    vals.append(f"{1_000_000 * cnt / passed:.2f}")
                else:
                    vals.append(str(cnt))
            fh.write(feat + "\t" + "\t".join(vals) + "\n")

    logger.info(f"Wrote matrix to {outp} with {len(features)} features and {len(sample_names)} samples")
    return 0
