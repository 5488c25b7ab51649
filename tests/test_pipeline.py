import logging
import threading

import pytest

from genesweep.errors import AlignmentDecodeError
from genesweep.genesweepClasses import AssignmentStats
from genesweep.gfftools import load_cds_gff
from genesweep.pipeline import (
    AssignConfig,
    assign_genes,
    assign_genes_file,
    collect,
    group_pangenome,
    group_pangenome_file,
)


def _summary(bundles):
    return [(b.id, [r.name for r in b.records]) for b in bundles]


def test_assign_genes_file_end_to_end(sam_file, gff_file):
    annotation = load_cds_gff(gff_file)
    run = assign_genes_file(sam_file, annotation)
    assert run.header.references == {"chr1": 1000, "chr2": 500, "chr3": 300}

    bundles = collect(run)
    # r3 fails MAPQ, r4 has an insertion, r5 is on an unannotated contig
    assert _summary(bundles) == [
        ("geneA", ["r1"]),
        ("geneB", ["r1", "r2"]),
        ("geneC", ["r6"]),
    ]
    assert bundles[1].strand == -1
    assert (bundles[0].start, bundles[0].end) == (100, 200)
    assert run.stats.as_dict() == {
        "total": 6,
        "filtered": 2,
        "skipped": 1,
        "assigned": 3,
        "assignments": 4,
        "bundles": 3,
    }


def test_group_pangenome_file(sam_file):
    bundles = collect(group_pangenome_file(sam_file))
    assert _summary(bundles) == [("chr1", ["r1", "r2"]), ("chr3", ["r5"]), ("chr2", ["r6"])]
    assert [b.end for b in bundles] == [1000, 300, 500]


def test_config_thresholds_apply(sam_file, gff_file):
    annotation = load_cds_gff(gff_file)
    run = assign_genes_file(sam_file, annotation, AssignConfig(min_mapq=0))
    bundles = collect(run)
    # r3 now passes; r4 still fails on its CIGAR
    assert _summary(bundles)[1] == ("geneB", ["r1", "r2", "r3"])
    assert run.stats.filtered == 1


def test_cancel_stops_without_final_flush(rec, cds):
    annotation = {"chr1": [cds("chr1", 101, 200, "g1"), cds("chr1", 201, 300, "g2"), cds("chr1", 301, 400, "g3")]}
    reads = [rec(pos=150, name="a"), rec(pos=250, name="b"), rec(pos=350, name="c")]
    cancel = threading.Event()
    stats = AssignmentStats()
    it = assign_genes(reads, annotation, stats=stats, cancel=cancel)

    first = next(it)
    assert first.id == "g1"
    cancel.set()
    assert list(it) == []
    assert stats.bundles == 1


def test_cancel_before_start(rec):
    cancel = threading.Event()
    cancel.set()
    assert list(group_pangenome([rec(), rec()], cancel=cancel)) == []


def test_run_cancel_closes_source(sam_file):
    run = group_pangenome_file(sam_file)
    with run:
        first = next(run)
        run.cancel()
        rest = list(run)
    assert first.id == "chr1"
    assert rest == []
    assert run.cancelled
    assert run.source.closed


def test_decode_error_propagates_and_closes(tmp_path, gff_file):
    p = tmp_path / "bad.sam"
    p.write_text(
        "@SQ\tSN:chr1\tLN:1000\n"
        "r1\t0\tchr1\t151\t60\t60M\t*\t0\t0\t*\t*\n"
        "r2\t0\tchr1\t161\t60\t6OM\t*\t0\t0\t*\t*\n"
    )
    run = assign_genes_file(p, load_cds_gff(gff_file))
    with pytest.raises(AlignmentDecodeError):
        collect(run)
    assert run.source.closed


def test_progress_is_logged(rec, caplog):
    logger = logging.getLogger("genesweep.test")
    caplog.set_level(logging.INFO, logger="genesweep.test")
    config = AssignConfig(show_progress=True, progress_every=2)
    list(group_pangenome([rec(pos=i) for i in range(5)], config=config, logger=logger))
    assert caplog.text.count("Processed") == 2
    assert "Processed 2 reads" in caplog.text


def test_missing_annotation_logged_once(rec, caplog):
    logger = logging.getLogger("genesweep.test")
    caplog.set_level(logging.INFO, logger="genesweep.test")
    reads = [rec("chrZ", pos=1), rec("chrZ", pos=2)]
    stats = AssignmentStats()
    assert list(assign_genes(reads, {}, stats=stats, logger=logger)) == []
    assert caplog.text.count("chrZ") == 1
    assert stats.skipped == 2
