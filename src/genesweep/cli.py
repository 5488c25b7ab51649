import argparse

from .viewer import view_alignment_head
from .count import count_matrix


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Sanity check the first records (and quality verdicts) of alignment files
    if args.cmd in ["view", "head"]:
        return view_alignment_head(
            args.alignments,
            n=args.num,
            min_mapq=args.min_mapq,
            min_length=args.min_length,
            header=args.header,
        )

    # Per-gene or per-sequence read counts
    elif args.cmd == "count":
        return count_matrix(
            alignment_paths=args.alignments,
            out_path=args.out,
            gff_path=args.gff,
            mode=args.mode,
            metric=args.metric,
            min_mapq=args.min_mapq,
            min_length=args.min_length,
            feature_type=args.feature,
            progress=args.progress,
            progress_every=args.progress_every,
            log_level=args.log_level,
        )
    else:
        parser.error("Unknown command")

    return 2


def _add_quality_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--min-mapq",
        type=int,
        default=30,
        help="Reads with a lower mapping quality are filtered out (default 30)."
    )
    p.add_argument(
        "--min-length",
        type=int,
        default=60,
        help="Reads aligned over fewer reference bases are filtered out (default 60)."
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="genesweep",
        description="Stream position-sorted BAM/SAM reads into per-gene or per-sequence bundles."
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    t = sub.add_parser(
        "view",
        aliases=["head"],
        help="Print first N records from each BAM/SAM file with their quality verdict."
    )
    t.add_argument(
        "alignments",
        nargs="+",
        help="One or more BAM or SAM files."
    )
    t.add_argument(
        "-n", "--num",
        type=int,
        default=10,
        help="Number of records per file."
    )
    t.add_argument(
        "--header",
        action="store_true",
        help="Also print the reference dictionary."
    )
    _add_quality_args(t)

    c = sub.add_parser(
        "count",
        help="Count reads per CDS gene (or per reference sequence) across one or more sorted BAM/SAM files."
    )
    c.add_argument(
        "alignments",
        nargs="+",
        help="One or more BAM/SAM files or glob patterns (e.g., sample*.bam). Must be position-sorted."
    )
    c.add_argument(
        "--gff",
        default=None,
        help="GFF3 annotation (.gff3 or .gff3.gz). Required with --mode genes."
    )
    c.add_argument(
        "--out",
        required=True,
        help="Output TSV matrix path."
    )
    c.add_argument(
        "--mode",
        choices=["genes", "pangenome"],
        default="genes",
        help="'genes' bundles reads per annotated feature; 'pangenome' bundles reads per reference sequence."
    )
    c.add_argument(
        "--metric",
        choices=["reads", "cpm"],
        default="reads",
        help="Report raw read counts or counts per million filtered reads."
    )
    c.add_argument(
        "--feature",
        default="CDS",
        help="GFF feature type (column 3) to use as genes (default CDS)."
    )
    _add_quality_args(c)
    c.add_argument(
        "--progress",
        action="store_true",
        help="Log a progress line every --progress-every reads."
    )
    c.add_argument(
        "--progress-every",
        type=int,
        default=10000,
        help="Reads between progress lines (default 10000)."
    )
    c.add_argument(
        "--log-level",
        default="INFO",
        choices=["ERROR", "WARNING", "INFO", "DEBUG"],
        help="Logging verbosity (default: INFO)."
    )
    return p

if __name__ == "__main__":
    raise SystemExit(main())
