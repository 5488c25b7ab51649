import pytest

from genesweep.genesweepClasses import AlignmentRecord, CigarOp
from genesweep.gfftools import CdsFeature


def make_record(reference="chr1", pos=0, span=60, mapq=60, cigar=None, flag=0, name="r"):
    if cigar is None:
        cigar = (CigarOp("M", span),)
    return AlignmentRecord(
        name=name, reference=reference, pos=pos, span=span, mapq=mapq, cigar=tuple(cigar), flag=flag
    )


def make_cds(seqname, start, end, fid, strand="+"):
    # start/end as written in the GFF: 1-based inclusive
    return CdsFeature(seqname=seqname, feature="CDS", start=start, end=end, strand=strand, id=fid)


@pytest.fixture
def rec():
    return make_record


@pytest.fixture
def cds():
    return make_cds


SAM_TEXT = (
    "@HD\tVN:1.6\tSO:coordinate\n"
    "@SQ\tSN:chr1\tLN:1000\n"
    "@SQ\tSN:chr2\tLN:500\n"
    "@SQ\tSN:chr3\tLN:300\n"
    "r1\t0\tchr1\t151\t60\t60M\t*\t0\t0\t*\t*\n"
    "r2\t16\tchr1\t221\t60\t60M\t*\t0\t0\t*\t*\n"
    "r3\t0\tchr1\t231\t10\t60M\t*\t0\t0\t*\t*\n"
    "r4\t0\tchr1\t231\t60\t30M2I30M\t*\t0\t0\t*\t*\n"
    "r5\t0\tchr3\t11\t60\t60M\t*\t0\t0\t*\t*\n"
    "r6\t0\tchr2\t61\t60\t5S60M\t*\t0\t0\t*\t*\n"
)

GFF_TEXT = (
    "##gff-version 3\n"
    "chr1\ttest\tCDS\t201\t300\t.\t-\t0\tID=geneB\n"
    "chr1\ttest\tCDS\t101\t200\t.\t+\t0\tID=geneA\n"
    "chr1\ttest\tgene\t101\t300\t.\t+\t.\tID=locus1\n"
    "chr2\ttest\tCDS\t51\t150\t.\t+\t0\tID=geneC\n"
)


@pytest.fixture
def sam_file(tmp_path):
    p = tmp_path / "sample.sam"
    p.write_text(SAM_TEXT)
    return p


@pytest.fixture
def gff_file(tmp_path):
    p = tmp_path / "genes.gff3"
    p.write_text(GFF_TEXT)
    return p
