#!/usr/bin/env python3

"""
Unit tests for stx_tools/report.py and the run configuration
"""

# Standard imports
import io

# Third-party imports
import pytest

# Local imports
from stx_tools.alignment import HitArena
from stx_tools.exceptions import ConfigurationError
from stx_tools.methods import (
    CLASS_IDENTITY,
    create_config
)
from stx_tools.operons import Operon
from stx_tools.report import (
    FIELDNAMES,
    header,
    operon_row,
    report_rows,
    write_report
)
from .test_0_alignment import alignment_line


def single_operons(*lines: str):
    arena = HitArena.from_lines(lines=list(lines))
    operons = []
    for index in range(len(arena)):
        arena.mark_reported(index)
        operons.append(Operon(arena, index))
    return operons


def test_create_config():
    """
    Test the default configuration
    """
    config = create_config()
    assert config.name == ''
    assert not config.verbose
    assert config.class_identity['1a'] == 0.983
    assert config.class_identity['2'] == 0.98
    assert config.class_identity['2k'] == 0.985
    assert config.class_identity is CLASS_IDENTITY


def test_create_config_tab_name():
    """
    Test that a run label containing a tab is rejected
    """
    with pytest.raises(ConfigurationError):
        create_config(name='sample\t1')


def test_identity_table_read_only():
    """
    Test that the identity thresholds cannot be modified
    """
    with pytest.raises(TypeError):
        CLASS_IDENTITY['1a'] = 0.5


def test_header():
    """
    Test that the name column is only present when a label is supplied
    """
    assert header(config=create_config()) == FIELDNAMES
    assert header(config=create_config(name='sample')) == \
        ['name'] + FIELDNAMES


def test_single_a_row():
    """
    Test that a single A subunit leaves the B columns empty
    """
    operon = single_operons(
        alignment_line(family='stxA1a', accession='A.1', target_start=1001,
                       target_end=1150)
    )[0]
    row = operon_row(operon=operon, config=create_config(name='sample'))
    assert row == [
        'sample', 'contig1', 'stx1a', 'COMPLETE_SUBUNIT', '', '1001', '1150',
        '+', 'A.1', '100.00', '100.00', '', '', ''
    ]


def test_single_b_row():
    """
    Test that a single B subunit leaves the A columns empty
    """
    operon = single_operons(
        alignment_line(family='stxB2e', accession='B.1', target_start=1150,
                       target_end=1001, ref_start=2, ref_len=51,
                       ref_seq='M' * 50)
    )[0]
    row = operon_row(operon=operon, config=create_config())
    assert row == [
        'contig1', 'stx2e', 'PARTIAL', '', '1001', '1150', '-', '', '', '',
        'B.1', '100.00', '98.04'
    ]


def test_report_order():
    """
    Test that calls are sorted by contig, position, and then positive strand
    first
    """
    operons = single_operons(
        alignment_line(contig='contig2', accession='C.1', target_start=1001,
                       target_end=1150),
        alignment_line(contig='contig1', accession='MINUS.1',
                       target_start=1150, target_end=1001),
        alignment_line(contig='contig1', accession='PLUS.1',
                       target_start=1001, target_end=1150),
        alignment_line(contig='contig1', accession='FIRST.1',
                       target_start=501, target_end=650),
    )
    rows = report_rows(operons=operons, config=create_config())
    assert rows[0] == FIELDNAMES
    assert [row[7] or row[10] for row in rows[1:]] == \
        ['FIRST.1', 'PLUS.1', 'MINUS.1', 'C.1']


def test_write_report():
    """
    Test that the report is tab-delimited with a header line
    """
    operons = single_operons(
        alignment_line(family='stxA1a', accession='A.1', target_start=1001,
                       target_end=1150)
    )
    report = io.StringIO()
    write_report(operons=operons, config=create_config(), report=report)
    lines = report.getvalue().splitlines()
    assert len(lines) == 2
    assert lines[0].split('\t') == FIELDNAMES
    assert len(lines[1].split('\t')) == len(FIELDNAMES)
