#!/usr/bin/env python3

"""
Order the final stx calls and render them as tab-delimited report rows
"""

# Standard imports
import logging
from typing import (
    List,
    TextIO
)

# Local imports
from stx_tools.alignment import AlignmentHit
from stx_tools.classify import classify_operon
from stx_tools.methods import TyperConfig
from stx_tools.operons import Operon

FIELDNAMES = [
    'target_contig',
    'stx_type',
    'operon',
    'identity',
    'target_start',
    'target_stop',
    'target_strand',
    'A_reference',
    'A_identity',
    'A_coverage',
    'B_reference',
    'B_identity',
    'B_coverage'
]


def report_key(operon: Operon):
    return (
        operon.al1.target_name,
        operon.al1.target_start,
        operon.al1.target_end,
        # Positive strand first
        not operon.al1.target_strand,
        operon.al1.ref_accession,
        operon.has_al2,
        operon.ref_accession2
    )


def percent(fraction: float) -> str:
    return f'{fraction * 100.0:.2f}'


def strand_symbol(hit: AlignmentHit) -> str:
    return '+' if hit.target_strand else '-'


def subunit_columns(hit: AlignmentHit) -> List[str]:
    """
    Reference, identity, and coverage columns of one subunit
    """
    return [
        hit.ref_accession,
        percent(hit.identity),
        percent(hit.rel_coverage)
    ]


def header(*, config: TyperConfig) -> List[str]:
    if config.name:
        return ['name'] + FIELDNAMES
    return list(FIELDNAMES)


def operon_row(
        *,  # Enforce keyword arguments
        operon: Operon,
        config: TyperConfig) -> List[str]:
    """
    Render a single call as report columns
    :param operon: Operon object, paired or single
    :param config: TyperConfig of the run
    :return: List of the column values
    """
    stx_type, status = classify_operon(
        operon=operon,
        class_identity=config.class_identity,
        verbose=config.verbose
    )
    al1 = operon.al1
    row = [config.name] if config.name else []
    if operon.has_al2:
        # Coordinates are approximate for frameshifted hits
        row.extend([
            al1.target_name,
            stx_type,
            status,
            percent(operon.identity),
            str(al1.target_start + 1),
            str(operon.al2.target_end),
            strand_symbol(al1)
        ])
        row.extend(subunit_columns(operon.hit_a))
        row.extend(subunit_columns(operon.hit_b))
        return row
    row.extend([
        al1.target_name,
        stx_type,
        status,
        '',
        str(al1.target_start + 1),
        str(al1.target_end),
        strand_symbol(al1)
    ])
    # The columns of the missing subunit are left empty
    empty = ['', '', '']
    if al1.subunit == 'A':
        row.extend(subunit_columns(al1) + empty)
    else:
        row.extend(empty + subunit_columns(al1))
    return row


def report_rows(
        *,  # Enforce keyword arguments
        operons: List[Operon],
        config: TyperConfig) -> List[List[str]]:
    """
    Sort the final calls and render them, header first
    :param operons: List of the good operons and single-subunit calls
    :param config: TyperConfig of the run
    :return: List of rows
    """
    rows = [header(config=config)]
    for operon in sorted(operons, key=report_key):
        rows.append(operon_row(operon=operon, config=config))
    return rows


def render_report(
        *,  # Enforce keyword arguments
        operons: List[Operon],
        config: TyperConfig) -> str:
    """
    Render the complete tab-delimited report
    :param operons: List of the good operons and single-subunit calls
    :param config: TyperConfig of the run
    :return: String of the report
    """
    rows = report_rows(operons=operons, config=config)
    logging.info('Reported %s stx calls', len(rows) - 1)
    return ''.join('\t'.join(row) + '\n' for row in rows)


def write_report(
        *,  # Enforce keyword arguments
        operons: List[Operon],
        config: TyperConfig,
        report: TextIO):
    """
    Write the tab-delimited report. The report is rendered completely before
    anything is written
    :param operons: List of the good operons and single-subunit calls
    :param config: TyperConfig of the run
    :param report: Open text handle to write to
    """
    report.write(render_report(operons=operons, config=config))
