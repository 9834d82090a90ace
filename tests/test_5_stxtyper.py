#!/usr/bin/env python3

"""
Unit tests for stx_tools/stxtyper.py
"""

# Standard imports
import argparse
import random
from unittest.mock import patch

# Third-party imports
import pytest

# Local imports
from stx_tools.exceptions import ConfigurationError
from stx_tools.methods import create_config
from stx_tools.report import (
    render_report,
    report_rows
)
from stx_tools.stxtyper import (
    cli,
    StxTyper,
    type_alignments
)
from .test_0_alignment import alignment_line
from .test_2_classify import (
    stx2_a_sequence,
    stx2_b_sequence
)

STX1_OPERON = [
    alignment_line(family='stxA1a', accession='A.1', target_start=101,
                   target_end=250),
    alignment_line(family='stxB1a', accession='B.1', target_start=261,
                   target_end=400),
]

# Subunit B on the negative strand, close to the end of its contig
LONE_B = alignment_line(contig='contig2', family='stxB1a', accession='B.2',
                        target_start=9950, target_end=9801)

# Subunit A contained within the first A hit of the operon, with missing
# reference at its start
CONTAINED_A = alignment_line(family='stxA1a', accession='A.2',
                             target_start=131, target_end=250, ref_start=11,
                             ref_seq='M' * 40 + '*')


def rows_of(lines, name=''):
    config = create_config(name=name)
    return report_rows(
        operons=type_alignments(lines=lines, config=config),
        config=config
    )[1:]


def test_complete_operon():
    """
    Test that subunits of the same type separated by a short intergenic
    region form a complete operon
    """
    assert rows_of(STX1_OPERON) == [[
        'contig1', 'stx1a', 'COMPLETE', '100.00', '101', '400', '+', 'A.1',
        '100.00', '100.00', 'B.1', '100.00', '100.00'
    ]]


def test_adjacent_subunit_operon():
    """
    Test that subunits with no intergenic region are reported as an operon
    """
    assert rows_of([
        alignment_line(family='stxA1a', accession='A.1', target_start=101,
                       target_end=250),
        alignment_line(family='stxB1a', accession='B.1', target_start=251,
                       target_end=400),
    ]) == [[
        'contig1', 'stx1a', 'COMPLETE', '100.00', '101', '400', '+', 'A.1',
        '100.00', '100.00', 'B.1', '100.00', '100.00'
    ]]


def test_named_report():
    rows = rows_of(STX1_OPERON, name='sample')
    assert rows[0][:3] == ['sample', 'contig1', 'stx1a']


def test_low_identity_operon():
    """
    Test that an operon below the class identity is only assembled by the
    weak pass, and is reported as novel
    """
    rows = rows_of([
        alignment_line(family='stxA1a', accession='A.1', target_start=101,
                       target_end=400, ref_seq='M' * 100 + '*',
                       target_seq='M' * 95 + 'L' * 5 + '*'),
        alignment_line(family='stxB1a', accession='B.1', target_start=411,
                       target_end=560),
    ])
    assert len(rows) == 1
    assert rows[0][1:4] == ['stx1a', 'COMPLETE_NOVEL', '96.71']
    assert rows[0][10] == 'B.1'


def test_lone_subunit_at_contig_end():
    """
    Test that a subunit without a partner, close to the contig end where the
    partner would be, is reported on its own
    """
    assert rows_of([LONE_B]) == [[
        'contig2', 'stx1a', 'PARTIAL_CONTIG_END', '', '9801', '9950', '-',
        '', '', '', 'B.2', '100.00', '100.00'
    ]]


def test_lone_complete_subunit():
    rows = rows_of([
        alignment_line(family='stxB1a', accession='B.1', target_start=5001,
                       target_end=5150)
    ])
    assert rows[0][1:3] == ['stx1a', 'COMPLETE_SUBUNIT']


def test_contained_hit_suppressed():
    """
    Test that an A hit contained in a better A hit does not produce a call
    """
    rows = rows_of(STX1_OPERON + [CONTAINED_A])
    assert len(rows) == 1
    assert rows[0][7] == 'A.1'


def test_stx2a_operon():
    """
    Test the sub-typing of an stx2 operon
    """
    rows = rows_of([
        alignment_line(family='stxA2c', accession='A2.1', target_start=1001,
                       target_end=1960, ref_seq=stx2_a_sequence('F', 'K')),
        alignment_line(family='stxB2c', accession='B2.1', target_start=1971,
                       target_end=2240, ref_seq=stx2_b_sequence('D')),
    ])
    assert len(rows) == 1
    assert rows[0][1:3] == ['stx2a', 'COMPLETE']


def test_frameshift_operon():
    """
    Test that a subunit split into two reading frames is merged, and the
    operon is reported as frameshifted with its class only
    """
    rows = rows_of([
        alignment_line(family='stxA1a', accession='A.1', target_start=101,
                       target_end=250, ref_len=101, ref_seq='M' * 50),
        alignment_line(family='stxA1a', accession='A.1', target_start=255,
                       target_end=407, ref_start=51, ref_seq='M' * 50 + '*'),
        alignment_line(family='stxB1a', accession='B.1', target_start=418,
                       target_end=557),
    ])
    assert rows == [[
        'contig1', 'stx1', 'FRAMESHIFT', '100.00', '101', '557', '+', 'A.1',
        '100.00', '100.00', 'B.1', '100.00', '100.00'
    ]]


def test_all_hits_reported():
    """
    Test that every hit is either part of a call or suppressed
    """
    config = create_config()
    operons = type_alignments(
        lines=STX1_OPERON + [CONTAINED_A, LONE_B, ''],
        config=config
    )
    assert len(operons) == 2
    assert operons[0].arena.unreported() == []


def test_input_order_independent():
    """
    Test that the report does not depend on the order of the alignments
    """
    lines = STX1_OPERON + [CONTAINED_A, LONE_B]
    config = create_config()
    expected = render_report(
        operons=type_alignments(lines=lines, config=config),
        config=config
    )
    shuffler = random.Random(42)
    for _ in range(5):
        shuffled = list(lines)
        shuffler.shuffle(shuffled)
        assert render_report(
            operons=type_alignments(lines=shuffled, config=config),
            config=config
        ) == expected


def test_empty_alignments():
    config = create_config()
    assert type_alignments(lines=[], config=config) == []
    assert render_report(operons=[], config=config) == \
        '\t'.join(report_rows(operons=[], config=config)[0]) + '\n'


def test_stx_typer_requires_input():
    with pytest.raises(ConfigurationError):
        StxTyper()


def test_stx_typer_missing_blast_output(tmp_path):
    with pytest.raises(ConfigurationError):
        StxTyper(blast_output=str(tmp_path / 'missing.tsv'))


def test_stx_typer_missing_database(tmp_path):
    genome = tmp_path / 'genome.fasta'
    genome.write_text('>contig1\nATGC\n', encoding='utf-8')
    with pytest.raises(ConfigurationError):
        StxTyper(
            nucleotide=str(genome),
            database=str(tmp_path / 'stx.prot')
        )


def test_stx_typer_tab_name(tmp_path):
    blast_output = tmp_path / 'blast.tsv'
    blast_output.write_text('', encoding='utf-8')
    with pytest.raises(ConfigurationError):
        StxTyper(blast_output=str(blast_output), name='a\tb')


def test_stx_typer_report(tmp_path):
    """
    Test that precomputed alignments are typed and written to the report file
    """
    blast_output = tmp_path / 'blast.tsv'
    blast_output.write_text('\n'.join(STX1_OPERON) + '\n', encoding='utf-8')
    report = tmp_path / 'reports' / 'stxtyper.tsv'
    stx_typer = StxTyper(
        blast_output=str(blast_output),
        output=str(report),
        name='sample'
    )
    stx_typer.main()
    lines = report.read_text(encoding='utf-8').splitlines()
    assert len(lines) == 2
    assert lines[0].startswith('name\ttarget_contig\tstx_type')
    assert lines[1].startswith('sample\tcontig1\tstx1a\tCOMPLETE\t')


def cli_arguments(**kwargs) -> argparse.Namespace:
    """
    Command line arguments with the defaults of the parser
    """
    arguments = dict(
        nucleotide='',
        blast_output='',
        database='stx.prot',
        output='',
        name='',
        blast_bin='',
        threads=1,
        verbose_report=False,
        verbosity='warning'
    )
    arguments.update(kwargs)
    return argparse.Namespace(**arguments)


@patch('argparse.ArgumentParser.parse_args')
def test_cli(mock_args, tmp_path):
    """
    Test the command line interface with precomputed alignments
    """
    blast_output = tmp_path / 'blast.tsv'
    blast_output.write_text('\n'.join(STX1_OPERON) + '\n', encoding='utf-8')
    report = tmp_path / 'stxtyper.tsv'
    mock_args.return_value = cli_arguments(
        blast_output=str(blast_output),
        output=str(report),
        verbose_report=True
    )
    cli()
    lines = report.read_text(encoding='utf-8').splitlines()
    assert lines[1].split('\t')[1:3] == ['stx1a', 'COMPLETE']


@patch('argparse.ArgumentParser.parse_args')
def test_cli_missing_input(mock_args, tmp_path):
    """
    Test that a missing alignment file stops the run
    """
    mock_args.return_value = cli_arguments(
        blast_output=str(tmp_path / 'missing.tsv')
    )
    # Expect SystemExit due to the missing file
    with pytest.raises(SystemExit):
        cli()


@patch('argparse.ArgumentParser.parse_args')
def test_cli_malformed_alignment(mock_args, tmp_path):
    """
    Test that a malformed alignment line stops the run without a report
    """
    blast_output = tmp_path / 'blast.tsv'
    blast_output.write_text('contig1\tACC1.1|stxA1a\t101\n', encoding='utf-8')
    report = tmp_path / 'stxtyper.tsv'
    mock_args.return_value = cli_arguments(
        blast_output=str(blast_output),
        output=str(report)
    )
    with pytest.raises(SystemExit):
        cli()
    assert not report.exists()


def test_stx_typer_binary_blast_output(tmp_path):
    """
    Test that alignments that are not UTF-8 text raise a ConfigurationError
    """
    blast_output = tmp_path / 'blast.tsv'
    blast_output.write_bytes(b'\xff\xfe\x00\x81\x9f')
    stx_typer = StxTyper(blast_output=str(blast_output))
    with pytest.raises(ConfigurationError):
        stx_typer.alignments()


@patch('argparse.ArgumentParser.parse_args')
def test_cli_binary_blast_output(mock_args, tmp_path):
    """
    Test that an unreadable alignment file stops the run without a report
    """
    blast_output = tmp_path / 'blast.tsv'
    blast_output.write_bytes(b'\xff\xfe\x00\x81\x9f')
    report = tmp_path / 'stxtyper.tsv'
    mock_args.return_value = cli_arguments(
        blast_output=str(blast_output),
        output=str(report)
    )
    # Expect SystemExit due to the undecodable file
    with pytest.raises(SystemExit):
        cli()
    assert not report.exists()
