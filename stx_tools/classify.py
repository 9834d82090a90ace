#!/usr/bin/env python3

"""
Assign the final stx type and the structural status of operon and
single-subunit calls
"""

# Standard imports
from typing import (
    Mapping,
    Tuple
)

# Local imports
from stx_tools.alignment import AlignmentHit
from stx_tools.methods import (
    A_FRAME_LENGTH,
    B_FRAME_LENGTH,
    CLASS_IDENTITY,
    STX_PREFIX
)
from stx_tools.operons import Operon

COMPLETE = 'COMPLETE'
COMPLETE_NOVEL = 'COMPLETE_NOVEL'
COMPLETE_SUBUNIT = 'COMPLETE_SUBUNIT'
EXTENDED = 'EXTENDED'
FRAMESHIFT = 'FRAMESHIFT'
INTERNAL_STOP = 'INTERNAL_STOP'
PARTIAL = 'PARTIAL'
PARTIAL_CONTIG_END = 'PARTIAL_CONTIG_END'

# 0-based reference columns inspected to resolve stx2 sub-types
A_COLUMN_1 = 312
A_COLUMN_2 = 318
B_COLUMN = 34


def class_2_subtype(
        *,  # Enforce keyword arguments
        a_residue_1: str,
        a_residue_2: str,
        b_residue: str) -> str:
    """
    Resolve an stx2a/2c/2d operon from the residues at A-frame columns 313
    and 319 and B-frame column 35
    :return: String of the sub-type, or an empty string if the residues do
    not match any sub-type
    """
    if a_residue_1 in 'FS' and a_residue_2 in 'KE' and b_residue == 'D':
        return '2a'
    if a_residue_1 == 'F' and a_residue_2 in 'KE' and b_residue == 'N':
        return '2c'
    if a_residue_1 == 'S' and a_residue_2 == 'E' and b_residue == 'N':
        return '2d'
    return ''


def operon_stx_type(
        *,  # Enforce keyword arguments
        operon: Operon,
        verbose: bool = False) -> str:
    """
    Determine the stx type of an operon
    :param operon: Operon object
    :param verbose: Boolean of whether an unresolved stx2 operon reports the
    inspected residues
    :return: String of the stx type without the stx prefix. Empty if the
    subunits do not share a super-class
    """
    al1, al2 = operon.al1, operon.al2
    # A single hit keeps its own type
    if not operon.has_al2:
        return al1.stx_type
    # Subunits of different classes only share their super-class, if any
    if al1.stx_class != al2.stx_class:
        if al1.stx_super_class == al2.stx_super_class:
            return al1.stx_super_class
        return ''
    if al1.stx_class != '2':
        return al1.stx_type
    # Project both subunits onto their reference frames, and extract the
    # residues that distinguish the stx2 sub-types
    a_frame = operon.hit_a.ref_map(A_FRAME_LENGTH)
    b_frame = operon.hit_b.ref_map(B_FRAME_LENGTH)
    residues = (a_frame[A_COLUMN_1], a_frame[A_COLUMN_2], b_frame[B_COLUMN])
    subtype = class_2_subtype(
        a_residue_1=residues[0],
        a_residue_2=residues[1],
        b_residue=residues[2]
    )
    if subtype:
        return subtype
    # Unresolved stx2 operon
    if verbose:
        return '2 ' + ''.join(residues)
    return '2'


def partial(*, operon: Operon) -> bool:
    """
    Either subunit does not cover its reference, unless it is extended
    """
    return any(
        hit.rel_coverage < 1.0 and not hit.extended()
        for hit in (operon.hit_a, operon.hit_b)
    )


def operon_status(
        *,  # Enforce keyword arguments
        operon: Operon,
        stx_type: str,
        class_identity: Mapping[str, float] = CLASS_IDENTITY) -> str:
    """
    Structural status of a two-subunit operon
    :param operon: Operon object with both hits
    :param stx_type: String of the resolved stx type of the operon
    :param class_identity: Dictionary of stx class: minimum identity
    :return: String of the status
    """
    hits = (operon.hit_a, operon.hit_b)
    # Structural defects, in decreasing order of priority
    if any(hit.frameshift for hit in hits):
        return FRAMESHIFT
    if any(hit.stop_codon for hit in hits):
        return INTERNAL_STOP
    if any(hit.truncated() for hit in hits):
        return PARTIAL_CONTIG_END
    if partial(operon=operon):
        return PARTIAL
    if any(hit.extended() for hit in hits):
        return EXTENDED
    # Complete, but novel unless a resolved type reaches the class identity
    novel = (
        operon.al1.stx_class != operon.al2.stx_class
        or operon.identity < class_identity[operon.al1.stx_class]
        or len(stx_type) <= 1
    )
    if novel:
        return COMPLETE_NOVEL
    return COMPLETE


def hit_status(*, hit: AlignmentHit) -> str:
    """
    Structural status of a subunit reported without its partner
    """
    if hit.frameshift:
        return FRAMESHIFT
    if hit.stop_codon:
        return INTERNAL_STOP
    if hit.truncated() or hit.other_truncated():
        return PARTIAL_CONTIG_END
    if hit.rel_coverage == 1.0:
        return COMPLETE_SUBUNIT
    if hit.extended():
        return EXTENDED
    return PARTIAL


def classify_operon(
        *,  # Enforce keyword arguments
        operon: Operon,
        class_identity: Mapping[str, float] = CLASS_IDENTITY,
        verbose: bool = False) -> Tuple[str, str]:
    """
    Determine the reported stx type and the status of a call
    :param operon: Operon object, paired or single
    :param class_identity: Dictionary of stx class: minimum identity
    :param verbose: Boolean of whether to use the detailed rendering
    :return: Tuple of the stx type with its prefix e.g. stx2a, and the status
    """
    # Single hits report their own type, with the subunit when verbose
    if not operon.has_al2:
        hit = operon.al1
        subunit = hit.subunit if verbose else ''
        return STX_PREFIX + subunit + hit.stx_type, hit_status(hit=hit)
    stx_type = operon_stx_type(
        operon=operon,
        verbose=verbose
    )
    status = operon_status(
        operon=operon,
        stx_type=stx_type,
        class_identity=class_identity
    )
    # Only the class is reported for incomplete operons
    if status not in (COMPLETE, COMPLETE_NOVEL) and len(stx_type) >= 2:
        stx_type = stx_type[0]
    return STX_PREFIX + stx_type, status
