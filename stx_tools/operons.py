#!/usr/bin/env python3

"""
Assemble stx operons from the alignment hits of a genome: merge frameshifted
fragments, suppress redundant hits, pair A and B subunits, and resolve
overlapping calls
"""

# Standard imports
import logging
from typing import (
    List,
    Mapping,
    Optional
)

# Local imports
from stx_tools.alignment import (
    AlignmentHit,
    HitArena
)
from stx_tools.exceptions import InvariantError
from stx_tools.methods import (
    CLASS_IDENTITY,
    FRAMESHIFT_GAP,
    INTERGENIC_MAX,
    SLACK
)


class Operon:
    """
    A call on one contig and strand: two hits with al1 upstream of al2 on the
    contig, or a single hit. The hits remain owned by the arena
    """

    def __init__(
            self,
            arena: HitArena,
            index1: int,
            index2: Optional[int] = None):
        self.arena = arena
        self.index1 = index1
        self.index2 = index2

    @property
    def al1(self) -> AlignmentHit:
        return self.arena[self.index1]

    @property
    def al2(self) -> Optional[AlignmentHit]:
        if self.index2 is None:
            return None
        return self.arena[self.index2]

    @property
    def has_al2(self) -> bool:
        return self.index2 is not None

    @property
    def hit_a(self) -> AlignmentHit:
        """
        The subunit A hit. On the negative strand A is downstream on the
        contig
        """
        return self.al1 if self.al1.target_strand else self.al2

    @property
    def hit_b(self) -> AlignmentHit:
        return self.al2 if self.al1.target_strand else self.al1

    @property
    def ref_accession2(self) -> str:
        if self.has_al2:
            return self.al2.ref_accession
        return ''

    @property
    def target_start(self) -> int:
        return self.al1.target_start

    @property
    def target_end(self) -> int:
        if self.has_al2:
            return self.al2.target_end
        return self.al1.target_end

    @property
    def identity(self) -> float:
        if not self.has_al2:
            return self.al1.identity
        return (self.al1.nident + self.al2.nident) / \
            (self.al1.length + self.al2.length)

    def inside_eq(self, other) -> bool:
        """
        This operon lies within other, allowing for slack on each side
        """
        return (
            self.al1.target_strand == other.al1.target_strand
            and self.target_start + SLACK >= other.target_start
            and self.target_end <= other.target_end + SLACK
        )

    def qc(
            self,
            class_identity: Mapping[str, float] = CLASS_IDENTITY):
        """
        Verify the consistency of the operon and its hits
        :param class_identity: Dictionary of stx class: minimum identity
        """
        al1 = self.al1
        al1.qc(class_identity=class_identity)
        failed = []
        if not self.arena.is_reported(self.index1):
            failed.append('al1 is reported')
        if self.has_al2:
            al2 = self.al2
            al2.qc(class_identity=class_identity)
            if al1.target_name != al2.target_name:
                failed.append('same contig')
            if al1.target_strand != al2.target_strand:
                failed.append('same strand')
            # Adjacent subunits are allowed
            if al1.target_end > al2.target_start:
                failed.append('al1 ends at or before al2 starts')
            if al1.subunit == al2.subunit:
                failed.append('subunits differ')
            if not self.arena.is_reported(self.index2):
                failed.append('al2 is reported')
        if failed:
            raise InvariantError(
                f'Operon {self} failed consistency checks: '
                f'{", ".join(failed)}',
                details={'failed': failed}
            )

    def __repr__(self):
        if self.has_al2:
            return f'Operon({self.al1!r}, {self.al2!r}, ' \
                f'identity={self.identity:.4f})'
        return f'Operon({self.al1!r})'


def frameshift_key(hit: AlignmentHit):
    return (
        hit.target_name,
        hit.target_strand,
        hit.ref_accession,
        hit.target_start,
        hit.target_end
    )


def same_type_key(hit: AlignmentHit):
    return (
        hit.target_name,
        hit.target_strand,
        hit.stx_class,
        hit.subunit,
        hit.target_start,
        hit.diff,
        hit.ref_accession
    )


def hit_key(hit: AlignmentHit):
    """
    Same as same_type_key, but without the stx class
    """
    return (
        hit.target_name,
        hit.target_strand,
        hit.subunit,
        hit.target_start,
        hit.diff,
        hit.ref_accession
    )


def singleton_key(hit: AlignmentHit):
    return (
        hit.target_name,
        hit.target_strand,
        -hit.abs_coverage,
        hit.diff,
        hit.target_start,
        hit.ref_accession
    )


def operon_key(operon: Operon):
    return (
        operon.al1.target_name,
        operon.al1.target_strand,
        -operon.identity,
        operon.has_al2,
        operon.al1.ref_accession,
        operon.ref_accession2
    )


def merge_frameshifts(
        *,  # Enforce keyword arguments
        arena: HitArena,
        class_identity: Mapping[str, float] = CLASS_IDENTITY):
    """
    Merge consecutive hits of the same reference that are in different
    reading frames into the downstream hit. Multiple frameshifts are possible
    :param arena: HitArena of all the hits of the run
    :param class_identity: Dictionary of stx class: minimum identity
    """
    logging.debug('Finding frame shifts')
    # Sort the hits so that fragments of one reference are consecutive
    indices = sorted(arena.unreported(), key=lambda i: frameshift_key(arena[i]))
    prev_index = None
    for index in indices:
        hit = arena[index]
        if prev_index is not None:
            prev = arena[prev_index]
            # Close fragments of the same reference in different frames
            if (
                    hit.target_name == prev.target_name
                    and hit.target_strand == prev.target_strand
                    and hit.ref_accession == prev.ref_accession
                    and hit.target_start > prev.target_start
                    and hit.target_start - prev.target_end < FRAMESHIFT_GAP
                    and hit.frame != prev.frame):
                # Absorb the upstream fragment, which is then suppressed
                hit.merge(prev)
                hit.qc(class_identity=class_identity)
                arena.mark_reported(prev_index)
                logging.debug('Merged frameshifted %s into %s', prev, hit)
        prev_index = index


def filter_redundant_hits(
        *,  # Enforce keyword arguments
        arena: HitArena) -> List[int]:
    """
    Suppress hits that are inside, and no better than, an overlapping hit of
    the same contig, strand, stx class, and subunit
    :param arena: HitArena of all the hits of the run
    :return: List of the indices of the good hits, sorted by same_type_key
    """
    indices = sorted(arena.unreported(), key=lambda i: same_type_key(arena[i]))
    # Initialise the list of good hits, and the start of the window
    good = []
    start = 0
    for i, index in enumerate(indices):
        hit = arena[index]
        # Advance the window past hits that can no longer overlap this one
        while start < i:
            first = arena[indices[start]]
            if (
                    first.target_name == hit.target_name
                    and first.target_strand == hit.target_strand
                    and first.stx_class == hit.stx_class
                    and first.subunit == hit.subunit
                    and first.target_end > hit.target_start):
                break
            start += 1
        # Check whether an overlapping hit of the window is at least as good
        suppress = False
        for prev_index in indices[start:i]:
            prev = arena[prev_index]
            if hit.inside_eq(prev) and hit.diff >= prev.diff:
                suppress = True
                break
        if suppress:
            arena.mark_reported(index)
            logging.debug('Suppressed redundant %s', hit)
            continue
        logging.debug('Good hit %s', hit)
        good.append(index)
    logging.info('Good stx alignments: %s', len(good))
    return good


def good_hits_to_operons(
        *,  # Enforce keyword arguments
        arena: HitArena,
        good: List[int],
        operons: List[Operon],
        same_type: bool,
        strong: bool,
        class_identity: Mapping[str, float] = CLASS_IDENTITY):
    """
    One pass of operon assembly: pair each unreported B hit with an unreported
    A hit close enough upstream of it, then suppress the hits covered by the
    operons found so far
    :param arena: HitArena of all the hits of the run
    :param good: List of good hit indices sorted by same_type_key if
    same_type, otherwise by hit_key
    :param operons: List of operons to be extended with the new operons
    :param same_type: Boolean of whether A and B must share the stx class
    :param strong: Boolean of whether the operon identity must reach the
    minimum identity of both classes. A weak pass doubles the allowed
    intergenic distance
    :param class_identity: Dictionary of stx class: minimum identity
    """
    if same_type and not strong:
        raise InvariantError('A same type operon pass must be strong')
    # The weak pass allows twice the intergenic distance
    intergenic_max = INTERGENIC_MAX * (1 if strong else 2)
    # Initialise the count of new operons, and the start of the window
    found = 0
    start = 0
    # Iterate through the good hits, looking for B subunits to pair
    for i, index_b in enumerate(good):
        # Skip hits already in an operon, or suppressed
        if arena.is_reported(index_b):
            continue
        hit_b = arena[index_b]
        if hit_b.subunit != 'B':
            continue
        # Move the start of the window to the first hit of the same group
        while start < i:
            first = arena[good[start]]
            if (
                    first.target_name == hit_b.target_name
                    and first.target_strand == hit_b.target_strand
                    and (not same_type or first.stx_class == hit_b.stx_class)):
                break
            start += 1
        # Iterate through the candidate A subunits of the window
        for index_a in good[start:i]:
            if arena.is_reported(index_a):
                continue
            hit_a = arena[index_a]
            # All the A hits of the group precede its B hits
            if hit_a.subunit == hit_b.subunit:
                break
            # al1 is upstream of al2 on the contig
            index1, index2 = index_a, index_b
            if not hit_a.target_strand:
                index1, index2 = index_b, index_a
            al1, al2 = arena[index1], arena[index2]
            # The subunits must not overlap, and must be close enough
            if not (
                    al1.target_end <= al2.target_start
                    and al2.target_start - al1.target_end <= intergenic_max):
                continue
            # Create the candidate operon
            operon = Operon(arena, index1, index2)
            # Strong operons must reach the identity of both classes
            if strong and not (
                    operon.identity >= class_identity[al1.stx_class]
                    and operon.identity >= class_identity[al2.stx_class]):
                logging.debug(
                    'Rejected operon below identity threshold %s', operon
                )
                continue
            # Accept the operon, and mark both of its hits as reported
            arena.mark_reported(index1)
            arena.mark_reported(index2)
            operons.append(operon)
            found += 1
            logging.debug('Operon %s', operon)
            # The B hit is consumed
            break
    logging.debug('Operons found in pass: %s', found)

    # Suppress the good hits covered by an operon
    for index in good:
        if arena.is_reported(index):
            continue
        hit = arena[index]
        # Iterate through all the operons found so far, including those of
        # previous passes
        for operon in operons:
            # Allow for SLACK on either side of the operon
            if (
                    hit.target_name == operon.al1.target_name
                    and hit.target_start + SLACK >= operon.al1.target_start
                    and hit.target_end <= operon.al2.target_end + SLACK
                    and hit.target_strand == operon.al1.target_strand):
                arena.mark_reported(index)
                logging.debug('Hit %s is covered by %s', hit, operon)
                break


def assemble_operons(
        *,  # Enforce keyword arguments
        arena: HitArena,
        good: List[int],
        class_identity: Mapping[str, float] = CLASS_IDENTITY) -> List[Operon]:
    """
    Run the three operon assembly passes in decreasing order of strictness:
    same stx class and strong, any class and strong, any class and weak
    :param arena: HitArena of all the hits of the run
    :param good: List of good hit indices sorted by same_type_key
    :param class_identity: Dictionary of stx class: minimum identity
    :return: List of all the assembled operons
    """
    operons = []
    logging.debug('Same type operons')
    good_hits_to_operons(
        arena=arena,
        good=good,
        operons=operons,
        same_type=True,
        strong=True,
        class_identity=class_identity
    )
    good = sorted(good, key=lambda i: hit_key(arena[i]))
    logging.debug('Strong operons')
    good_hits_to_operons(
        arena=arena,
        good=good,
        operons=operons,
        same_type=False,
        strong=True,
        class_identity=class_identity
    )
    logging.debug('Weak operons')
    good_hits_to_operons(
        arena=arena,
        good=good,
        operons=operons,
        same_type=False,
        strong=False,
        class_identity=class_identity
    )
    logging.info('Operons: %s', len(operons))
    return operons


def resolve_operons(
        *,  # Enforce keyword arguments
        operons: List[Operon],
        class_identity: Mapping[str, float] = CLASS_IDENTITY) -> List[Operon]:
    """
    Drop the operons that are covered by a better or equal operon
    :param operons: List of assembled operons
    :param class_identity: Dictionary of stx class: minimum identity
    :return: List of the good operons
    """
    good_operons = []
    # Iterate through the operons, best identity first
    for operon in sorted(operons, key=operon_key):
        operon.qc(class_identity=class_identity)
        found = False
        # Check whether an accepted operon already covers this one
        for good_operon in good_operons:
            if (
                    operon.al1.target_name == good_operon.al1.target_name
                    and operon.inside_eq(good_operon)
                    and good_operon.identity >= operon.identity):
                found = True
                break
        if found:
            logging.debug('Operon %s is redundant', operon)
            continue
        good_operons.append(operon)
    return good_operons


def singleton_operons(
        *,  # Enforce keyword arguments
        arena: HitArena,
        good: List[int]) -> List[Operon]:
    """
    Report the good hits that are not part of any operon on their own. A
    reported hit suppresses the hits it covers if they are of the same stx
    class digit or no better
    :param arena: HitArena of all the hits of the run
    :param good: List of good hit indices
    :return: List of single-hit operons
    """
    # Sort the remaining good hits, longest reference coverage first
    indices = sorted(
        (index for index in good if not arena.is_reported(index)),
        key=lambda i: singleton_key(arena[i])
    )
    singletons = []
    for i, index1 in enumerate(indices):
        # Skip hits covered by a previous single hit
        if arena.is_reported(index1):
            continue
        al1 = arena[index1]
        # Report the hit on its own
        arena.mark_reported(index1)
        singletons.append(Operon(arena, index1))
        # Iterate through the following hits of the same contig and strand
        for index2 in indices[i + 1:]:
            al2 = arena[index2]
            if not (
                    al2.target_name == al1.target_name
                    and al2.target_strand == al1.target_strand):
                break
            # Suppress covered hits of the same digit, or no better
            if (
                    not arena.is_reported(index2)
                    and al2.inside_eq(al1)
                    and (al2.stx_type[0] == al1.stx_type[0]
                         or al2.diff >= al1.diff)):
                arena.mark_reported(index2)
                logging.debug('Hit %s is covered by %s', al2, al1)
    return singletons
