from genesweep import cli


def _read_matrix(path):
    lines = path.read_text().splitlines()
    return lines[0], [line.split("\t") for line in lines[1:]]


def test_count_genes(tmp_path, sam_file, gff_file):
    out = tmp_path / "results" / "counts.tsv"
    argv = [
        "count", str(sam_file),
        "--gff", str(gff_file),
        "--out", str(out),
    ]

    # Call main() directly, so that the argparse will parse this list
    assert cli.main(argv) == 0

    header, rows = _read_matrix(out)
    assert header == "feature\tsample"
    assert rows == [["geneA", "1"], ["geneB", "2"], ["geneC", "1"]]


def test_count_pangenome_cpm(tmp_path, sam_file):
    out = tmp_path / "pan.tsv"
    argv = ["count", str(sam_file), "--mode", "pangenome", "--metric", "cpm", "--out", str(out)]
    assert cli.main(argv) == 0

    _, rows = _read_matrix(out)
    # 4 reads pass the filter
    assert rows == [["chr1", "500000.00"], ["chr2", "250000.00"], ["chr3", "250000.00"]]


def test_count_two_samples_by_glob(tmp_path, sam_file, gff_file):
    (tmp_path / "other.sam").write_text(sam_file.read_text())
    out = tmp_path / "m.tsv"
    argv = ["count", str(tmp_path / "*.sam"), "--gff", str(gff_file), "--out", str(out)]
    assert cli.main(argv) == 0

    header, rows = _read_matrix(out)
    assert header == "feature\tother\tsample"
    assert rows[1] == ["geneB", "2", "2"]


def test_genes_mode_needs_gff(tmp_path, sam_file):
    argv = ["count", str(sam_file), "--out", str(tmp_path / "x.tsv")]
    assert cli.main(argv) == 2


def test_no_alignment_files(tmp_path, gff_file):
    argv = ["count", str(tmp_path / "none*.bam"), "--gff", str(gff_file), "--out", str(tmp_path / "x.tsv")]
    assert cli.main(argv) == 1


def test_decode_error_returns_1(tmp_path, gff_file):
    bad = tmp_path / "bad.sam"
    bad.write_text("r1\t0\tchr1\tx\t60\t60M\t*\t0\t0\t*\t*\n")
    argv = ["count", str(bad), "--gff", str(gff_file), "--out", str(tmp_path / "x.tsv")]
    assert cli.main(argv) == 1
