#!/usr/bin/env python3

"""
Alignments between a genome and the stx reference proteins, and the arena
that owns them for the duration of a run
"""

# Standard imports
import logging
from typing import (
    Iterable,
    List,
    Mapping
)

# Local imports
from stx_tools.exceptions import (
    InvariantError,
    MalformedDatabase,
    MalformedRecord
)
from stx_tools.methods import (
    CLASS_2_TYPES,
    CLASS_IDENTITY,
    END_DELTA,
    MISSED_MAX,
    STX_PREFIX
)

# Number of whitespace-separated fields in an alignment line
FIELD_COUNT = 10


class AlignmentHit:
    """
    One alignment between a genomic region and a reference subunit protein.
    Positions are 0-based and half-open, with target_start < target_end
    regardless of the strand. Lengths are in amino acids
    """

    def __init__(
            self,
            *,  # Enforce keyword arguments
            target_name: str,
            target_start: int,
            target_end: int,
            target_strand: bool,
            target_len: int,
            ref_accession: str,
            ref_start: int,
            ref_end: int,
            ref_len: int,
            target_seq: str,
            ref_seq: str,
            subunit: str,
            stx_type: str):
        # Target
        self.target_name = target_name
        self.target_start = target_start
        self.target_end = target_end
        # False <=> negative
        self.target_strand = target_strand
        self.target_len = target_len
        self.target_seq = target_seq

        # Reference. The whole sequence ends with '*'
        self.ref_accession = ref_accession
        self.ref_start = ref_start
        self.ref_end = ref_end
        self.ref_len = ref_len
        self.ref_seq = ref_seq

        # Function of ref_accession
        self.subunit = subunit
        self.stx_type = stx_type
        self.stx_class = fold_stx_type(stx_type=stx_type)
        self.stx_super_class = self.stx_class[0]

        # Count the identical residues of the alignment
        self.length = len(target_seq)
        self.nident = sum(
            1 for target_aa, ref_aa in zip(target_seq, ref_seq)
            if target_aa == ref_aa
        )
        # A stop codon at the very end of the alignment is expected
        stop_codon_pos = target_seq.find('*')
        self.stop_codon = \
            stop_codon_pos != -1 and stop_codon_pos + 1 < len(target_seq)
        self.frameshift = False

    @classmethod
    def from_line(
            cls,
            *,  # Enforce keyword arguments
            line: str,
            class_identity: Mapping[str, float] = CLASS_IDENTITY):
        """
        Create a hit from one line of tabular alignment output with the
        fields: target_id subject_id target_start target_end target_len
        ref_start ref_end ref_len target_seq ref_seq
        :param line: String of the alignment line
        :param class_identity: Dictionary of stx class: minimum identity.
        Used to reject classes that are not in the database
        :return: AlignmentHit object
        """
        # Split the line into its fields
        fields = line.split()
        if len(fields) != FIELD_COUNT:
            raise MalformedRecord(
                f'Expected {FIELD_COUNT} fields in alignment line, found '
                f'{len(fields)}:\n{line}',
                details={'line': line}
            )
        target_name, subject_id = fields[0], fields[1]
        # Extract the aligned sequences, and the integer coordinates
        target_seq, ref_seq = fields[8], fields[9]
        try:
            target_start, target_end, target_len, \
                ref_start, ref_end, ref_len = \
                (int(field) for field in fields[2:8])
        except ValueError as exc:
            raise MalformedRecord(
                f'Non-integer coordinate in alignment line:\n{line}',
                details={'line': line}
            ) from exc

        # Decode the reference accession, subunit, and stx type
        ref_accession, subunit, stx_type = decode_subject_id(
            subject_id=subject_id,
            line=line
        )
        if fold_stx_type(stx_type=stx_type) not in class_identity:
            raise MalformedDatabase(
                f'Unknown stx class for type {stx_type}: {subject_id}\n{line}',
                details={'line': line}
            )

        # Structural checks
        if not target_seq or len(target_seq) != len(ref_seq):
            raise MalformedRecord(
                'Aligned sequences are empty or differ in length:\n'
                f'{line}',
                details={'line': line}
            )
        if ref_start >= ref_end:
            raise MalformedRecord(
                f'Reference start must precede reference end:\n{line}',
                details={'line': line}
            )
        if target_start == target_end:
            raise MalformedRecord(
                f'Target start equals target end:\n{line}',
                details={'line': line}
            )
        if ref_len <= 0 or target_len <= 0:
            raise MalformedRecord(
                f'Non-positive sequence length:\n{line}',
                details={'line': line}
            )

        # Normalise the strand so that start < end
        target_strand = target_start < target_end
        if not target_strand:
            target_start, target_end = target_end, target_start

        # Convert 1-based coordinates to 0-based, half-open
        if ref_start < 1 or target_start < 1:
            raise MalformedRecord(
                f'Coordinates must be 1-based:\n{line}',
                details={'line': line}
            )
        return cls(
            target_name=target_name,
            target_start=target_start - 1,
            target_end=target_end,
            target_strand=target_strand,
            target_len=target_len,
            ref_accession=ref_accession,
            ref_start=ref_start - 1,
            ref_end=ref_end,
            ref_len=ref_len,
            target_seq=target_seq,
            ref_seq=ref_seq,
            subunit=subunit,
            stx_type=stx_type
        )

    def qc(
            self,
            class_identity: Mapping[str, float] = CLASS_IDENTITY):
        """
        Verify the internal consistency of the hit
        :param class_identity: Dictionary of stx class: minimum identity
        """
        checks = [
            (self.length > 0, 'length > 0'),
            (self.nident > 0, 'nident > 0'),
            (self.nident <= self.length, 'nident <= length'),
            (self.target_start < self.target_end,
             'target_start < target_end'),
            (self.target_end <= self.target_len, 'target_end <= target_len'),
            (self.ref_start < self.ref_end, 'ref_start < ref_end'),
            (self.ref_end <= self.ref_len, 'ref_end <= ref_len'),
            (bool(self.target_name), 'target name is set'),
            (self.stx_class in class_identity, 'stx class is known'),
            (self.stx_type.startswith(self.stx_class),
             'stx type starts with stx class'),
            (self.subunit in ('A', 'B'), 'subunit is A or B'),
            (bool(self.ref_accession), 'reference accession is set'),
            (len(self.target_seq) == len(self.ref_seq),
             'aligned sequences have equal length'),
            (len(self.stx_type) == 2, 'stx type has two characters'),
        ]
        if not self.frameshift:
            checks.extend([
                (self.nident <= self.abs_coverage,
                 'nident <= reference coverage'),
                (self.abs_coverage <= self.length,
                 'reference coverage <= length'),
                (self.length == len(self.target_seq),
                 'length equals alignment length'),
            ])
        failed = [description for passed, description in checks if not passed]
        if failed:
            raise InvariantError(
                f'Alignment {self} failed consistency checks: '
                f'{", ".join(failed)}',
                details={'failed': failed}
            )

    def merge(self, prev):
        """
        Absorb the preceding fragment of a frameshifted gene. Length and
        identity are accumulated approximately
        :param prev: AlignmentHit upstream of this one on the same reference
        """
        if not (
                self.target_name == prev.target_name
                and self.ref_accession == prev.ref_accession
                and self.target_strand == prev.target_strand
                and self.target_len == prev.target_len
                and self.ref_len == prev.ref_len
                and self.target_start > prev.target_start):
            raise InvariantError(
                f'Cannot merge {prev} into {self}'
            )
        self.target_start = prev.target_start
        if self.target_strand:
            self.ref_start = prev.ref_start
        else:
            self.ref_end = prev.ref_end
        self.length += prev.length
        self.nident += prev.nident
        if prev.stop_codon:
            self.stop_codon = True
        self.frameshift = True

    @property
    def frame(self) -> int:
        """
        Reading frame of the hit on the contig (1, 2, or 3)
        """
        return self.target_start % 3 + 1

    @property
    def identity(self) -> float:
        return self.nident / self.length

    @property
    def abs_coverage(self) -> int:
        return self.ref_end - self.ref_start

    @property
    def rel_coverage(self) -> float:
        return self.abs_coverage / self.ref_len

    @property
    def diff(self) -> int:
        """
        Unaligned reference on both sides plus mismatches. Lower is better
        """
        return self.ref_start + (self.ref_len - self.ref_end) + \
            (self.length - self.nident)

    def truncated(self) -> bool:
        """
        The hit touches a contig end while the reference is not fully
        consumed on that side
        """
        # Reference missing at the 5' and 3' ends of the gene
        missing_start = self.ref_start > 0
        missing_end = self.ref_end + 1 < self.ref_len
        left_missing = missing_start if self.target_strand else missing_end
        right_missing = missing_end if self.target_strand else missing_start
        return (
            (self.target_start <= END_DELTA and left_missing)
            or (self.target_len - self.target_end <= END_DELTA
                and right_missing)
        )

    def other_truncated(self) -> bool:
        """
        The hit is close to the contig end where its missing partner subunit
        would be expected
        """
        return (
            (self.target_strand == (self.subunit == 'B')
             and self.target_start <= MISSED_MAX)
            or (self.target_strand == (self.subunit == 'A')
                and self.target_len - self.target_end <= MISSED_MAX)
        )

    def extended(self) -> bool:
        """
        The alignment covers the reference up to, but not including, its
        terminal stop
        """
        return self.ref_start == 0 and self.ref_end + 1 == self.ref_len

    def inside_eq(self, other) -> bool:
        """
        The target range of this hit lies within the target range of other
        """
        return self.target_start >= other.target_start \
            and self.target_end <= other.target_end

    def ref_map(self, length: int) -> str:
        """
        Project the aligned target residues onto the reference frame
        :param length: Integer of the length of the reference frame
        :return: String of target residues at each reference position, with
        '-' where the reference is not aligned
        """
        if self.ref_len > length:
            raise InvariantError(
                f'Reference {self.ref_accession} of length {self.ref_len} '
                f'does not fit a reference frame of length {length}'
            )
        # Remove the target residues aligned to reference gaps
        aligned = ''.join(
            target_aa for target_aa, ref_aa in
            zip(self.target_seq, self.ref_seq) if ref_aa != '-'
        )
        # Pad the unaligned start of the reference
        projection = '-' * self.ref_start + aligned
        # Fragments of merged hits may not fill the span exactly
        projection = projection[:self.ref_end].ljust(self.ref_end, '-')
        return projection + '-' * (length - self.ref_end)

    def __repr__(self):
        strand = '+' if self.target_strand else '-'
        return (
            f'AlignmentHit({self.target_name}:{self.target_start + 1}-'
            f'{self.target_end}{strand} {self.ref_accession} '
            f'stx{self.subunit}{self.stx_type})'
        )


class HitArena:
    """
    Owns every hit of a run, with the reported state of each hit held in a
    parallel array. Stages refer to hits by index. A hit is reported once
    it has been merged away, suppressed, or consumed by a call, and is
    never un-reported
    """

    def __init__(self, hits: Iterable[AlignmentHit] = ()):
        self.hits: List[AlignmentHit] = list(hits)
        self.reported: List[bool] = [False] * len(self.hits)

    @classmethod
    def from_lines(
            cls,
            *,  # Enforce keyword arguments
            lines: Iterable[str],
            class_identity: Mapping[str, float] = CLASS_IDENTITY):
        """
        Parse all the alignment lines of a run
        :param lines: Iterable of tabular alignment lines
        :param class_identity: Dictionary of stx class: minimum identity
        :return: HitArena populated with one hit per non-blank line
        """
        hits = []
        for line in lines:
            # Skip blank lines
            if not line.strip():
                continue
            hit = AlignmentHit.from_line(
                line=line,
                class_identity=class_identity
            )
            # Verify the consistency of the parsed hit
            hit.qc(class_identity=class_identity)
            hits.append(hit)
        logging.info('Found %s stx alignments', len(hits))
        return cls(hits)

    def __len__(self):
        return len(self.hits)

    def __getitem__(self, index: int) -> AlignmentHit:
        return self.hits[index]

    def mark_reported(self, index: int):
        self.reported[index] = True

    def is_reported(self, index: int) -> bool:
        return self.reported[index]

    def unreported(self) -> List[int]:
        """
        Indices of all the hits that have not yet been reported
        """
        return [
            index for index, reported in enumerate(self.reported)
            if not reported
        ]


def decode_subject_id(
        *,  # Enforce keyword arguments
        subject_id: str,
        line: str = ''):
    """
    Split the reference accession and the stx family code from a subject
    identifier e.g. WAQ85143.1|stxA2a
    :param subject_id: String of the database identifier of the reference
    :param line: String of the alignment line for error messages
    :return: reference accession, subunit, stx type
    """
    if '|' not in subject_id:
        raise MalformedDatabase(
            f'Bad StxTyper database\nNo family code in {subject_id}\n{line}',
            details={'subject_id': subject_id}
        )
    # The family code follows the last separator, and the accession precedes it
    prefix, family_code = subject_id.rsplit('|', 1)
    ref_accession = prefix.rsplit('|', 1)[-1]
    if len(family_code) != 6 or not family_code.startswith(STX_PREFIX):
        raise MalformedDatabase(
            f'Bad StxTyper database\nInvalid family code {family_code}\n'
            f'{line}',
            details={'subject_id': subject_id}
        )
    # e.g. stxA2a: subunit A, type 2a
    subunit = family_code[3]
    if subunit not in ('A', 'B'):
        raise MalformedDatabase(
            f'Bad StxTyper database\nInvalid subunit {subunit} in '
            f'{family_code}\n{line}',
            details={'subject_id': subject_id}
        )
    if not ref_accession:
        raise MalformedDatabase(
            f'Bad StxTyper database\nNo reference accession in '
            f'{subject_id}\n{line}',
            details={'subject_id': subject_id}
        )
    return ref_accession, subunit, family_code[4:]


def fold_stx_type(*, stx_type: str) -> str:
    """
    Fold an stx type into its class e.g. 2a, 2c, 2d -> 2
    :param stx_type: Two-character stx type
    :return: String of the stx class
    """
    if stx_type in CLASS_2_TYPES:
        return '2'
    return stx_type
