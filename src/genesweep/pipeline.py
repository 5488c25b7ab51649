from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Union
import logging
import os
import threading
import psutil

from .alignment import AlignmentSource, open_alignments
from .genesweepClasses import AlignmentHeader, AlignmentRecord, AssignmentStats, ReadBundle
from .gfftools import CdsFeature
from .quality import QualityFilter
from .sweep import PangenomeGrouper, SlidingAssigner

Engine = Union[SlidingAssigner, PangenomeGrouper]


@dataclass
class AssignConfig:
    min_mapq: int = 30
    min_length: int = 60
    show_progress: bool = False
    progress_every: int = 10000
    feature_type: str = "CDS"

    def quality_filter(self) -> QualityFilter:
        return QualityFilter(min_mapq=self.min_mapq, min_length=self.min_length)


def _get_memory_usage() -> float:
    process = psutil.Process(os.getpid())
    return process.memory_info().rss / 1024 / 1024  # Current memory usage in MB


def _filter(
    records: Iterable[AlignmentRecord],
    qfilter: QualityFilter,
    stats: AssignmentStats,
    cancel: threading.Event,
    config: AssignConfig,
    logger: Optional[logging.Logger],
    engine: Engine,
) -> Iterator[AlignmentRecord]:
    report = bool(logger and config.show_progress and config.progress_every > 0)
    for rec in records:
        if cancel.is_set():
            return
        stats.total += 1
        if report and stats.total % config.progress_every == 0:
            window = getattr(engine, "window", None)
            logger.info(
                f"Processed {stats.total:,} reads... "
                f"(Memory: {_get_memory_usage():.1f} MB, open genes: {len(window) if window else 0})"
            )
        if not qfilter.passes(rec):
            stats.filtered += 1
            continue
        yield rec


def _assign(records: Iterable[AlignmentRecord], engine: Engine, cancel: threading.Event) -> Iterator[ReadBundle]:
    for rec in records:
        yield from engine.feed(rec)
        if cancel.is_set():
            return
    if not cancel.is_set():
        yield from engine.finish()


def assign_genes(
    records: Iterable[AlignmentRecord],
    annotation: Dict[str, Sequence[CdsFeature]],
    config: Optional[AssignConfig] = None,
    *,
    stats: Optional[AssignmentStats] = None,
    cancel: Optional[threading.Event] = None,
    logger: Optional[logging.Logger] = None,
) -> Iterator[ReadBundle]:
    """Filter ``records`` and yield one completed bundle per gene that got reads."""
    config = config or AssignConfig()
    stats = stats if stats is not None else AssignmentStats()
    cancel = cancel or threading.Event()

    def missing(reference: str) -> None:
        if logger:
            logger.info(f"No {config.feature_type} annotation for {reference!r}; skipping its reads")

    engine = SlidingAssigner(annotation, stats=stats, on_missing=missing)
    filtered = _filter(records, config.quality_filter(), stats, cancel, config, logger, engine)
    return _assign(filtered, engine, cancel)


def group_pangenome(
    records: Iterable[AlignmentRecord],
    header: Optional[AlignmentHeader] = None,
    config: Optional[AssignConfig] = None,
    *,
    stats: Optional[AssignmentStats] = None,
    cancel: Optional[threading.Event] = None,
    logger: Optional[logging.Logger] = None,
) -> Iterator[ReadBundle]:
    """Filter ``records`` and yield one bundle per contiguous reference run."""
    config = config or AssignConfig()
    stats = stats if stats is not None else AssignmentStats()
    cancel = cancel or threading.Event()
    engine = PangenomeGrouper(header, stats=stats)
    filtered = _filter(records, config.quality_filter(), stats, cancel, config, logger, engine)
    return _assign(filtered, engine, cancel)


class AssignmentRun:
    """
    A started pipeline over one alignment file.

    The header is available right away; bundles are produced lazily while
    iterating. ``stats`` is complete once iteration ends. ``cancel()`` stops the
    stages at the next record without the end-of-stream flush.
    """

    def __init__(
        self,
        source: AlignmentSource,
        stats: AssignmentStats,
        cancel: threading.Event,
        bundles: Iterator[ReadBundle],
        logger: Optional[logging.Logger] = None,
    ):
        self.source = source
        self.header = source.header
        self.stats = stats
        self._cancel = cancel
        self._bundles = bundles
        self._logger = logger
        self._closed = False
        self._gen = self._run()

    def _run(self) -> Iterator[ReadBundle]:
        try:
            yield from self._bundles
        finally:
            self._release()

    def __iter__(self) -> Iterator[ReadBundle]:
        return self._gen

    def __next__(self) -> ReadBundle:
        return next(self._gen)

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _release(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.source.close()
        if self._logger:
            s = self.stats
            self._logger.info(
                f"Done {self.source.path}: total={s.total}, filtered={s.filtered}, "
                f"skipped={s.skipped}, assigned={s.assigned}, bundles={s.bundles}"
                + (" (cancelled)" if self.cancelled else "")
            )

    def close(self) -> None:
        # Runs the generator's finally if it was started
        self._gen.close()
        self._release()

    def __enter__(self) -> "AssignmentRun":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _log_contig_overlap(header: AlignmentHeader, annotation: Dict[str, Sequence[CdsFeature]], logger) -> None:
    gff_contigs = set(annotation.keys())
    bam_contigs = set(header.references)
    only_gff = sorted(gff_contigs - bam_contigs)
    only_bam = sorted(bam_contigs - gff_contigs)
    logger.debug(f"Alignment references: {list(header.references)[:10]}")
    logger.debug(f"Contigs in GFF not in alignments (first 20): {only_gff[:20]}")
    logger.debug(f"Contigs in alignments not in GFF (first 20): {only_bam[:20]}")


def assign_genes_file(
    path: str | Path,
    annotation: Dict[str, Sequence[CdsFeature]],
    config: Optional[AssignConfig] = None,
    *,
    cancel: Optional[threading.Event] = None,
    logger: Optional[logging.Logger] = None,
) -> AssignmentRun:
    """Open a position-sorted BAM/SAM and assign its reads to annotated genes."""
    source = open_alignments(path)
    if logger:
        logger.info(f"Assigning reads to genes in {path}")
        if logger.isEnabledFor(logging.DEBUG):
            _log_contig_overlap(source.header, annotation, logger)
    stats = AssignmentStats()
    cancel = cancel or threading.Event()
    bundles = assign_genes(source, annotation, config, stats=stats, cancel=cancel, logger=logger)
    return AssignmentRun(source, stats, cancel, bundles, logger=logger)


def group_pangenome_file(
    path: str | Path,
    config: Optional[AssignConfig] = None,
    *,
    cancel: Optional[threading.Event] = None,
    logger: Optional[logging.Logger] = None,
) -> AssignmentRun:
    """Open a BAM/SAM mapped against a concatenated reference and bundle per sequence."""
    source = open_alignments(path)
    if logger:
        logger.info(f"Grouping reads per reference sequence in {path}")
    stats = AssignmentStats()
    cancel = cancel or threading.Event()
    bundles = group_pangenome(source, source.header, config, stats=stats, cancel=cancel, logger=logger)
    return AssignmentRun(source, stats, cancel, bundles, logger=logger)


def collect(run: AssignmentRun) -> List[ReadBundle]:
    with run:
        return list(run)
