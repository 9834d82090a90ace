#!/usr/bin/env python3

"""
Prepare a genome assembly and search it with tblastn for the stx reference
proteins
"""

# Standard imports
import gzip
import logging
import os
import shutil
import subprocess
from typing import (
    List,
    Optional,
    Tuple
)

# Third party inputs
from Bio import SeqIO

# Local imports
from stx_tools.exceptions import ExternalToolError

# Columns of the tabular output. The genome is the BLAST database, so the
# subject fields describe the contig
OUTFMT = '6 sseqid qseqid sstart send slen qstart qend qlen sseq qseq'

# Bacterial genetic code
GENETIC_CODE = 11


def prepare_genome(
        *,  # Enforce keyword arguments
        nucleotide: str,
        work_dir: str) -> Tuple[str, int, int, int]:
    """
    Decompress (if necessary) and validate the genome FASTA file
    :param nucleotide: Path to the genome FASTA file. May be gzipped
    :param work_dir: Directory into which the flat FASTA file is written
    :return: Path to the flat FASTA file, number of sequences, maximum
    sequence length, total sequence length
    """
    if not os.path.isfile(nucleotide):
        raise ExternalToolError(
            f'Could not locate supplied nucleotide file: {nucleotide}'
        )
    if nucleotide.endswith('.gz'):
        handle = gzip.open(nucleotide, 'rt', encoding='utf-8')
    else:
        handle = open(nucleotide, 'r', encoding='utf-8')
    try:
        with handle:
            records = list(SeqIO.parse(handle, 'fasta'))
    except (OSError, UnicodeDecodeError, ValueError) as exc:
        raise ExternalToolError(
            f'Could not read nucleotide file {nucleotide}: {exc}'
        ) from exc
    if not records:
        raise ExternalToolError(
            f'No FASTA sequences found in {nucleotide}'
        )
    # Check for empty and duplicate sequences
    errors = []
    identifiers = set()
    for record in records:
        if not len(record.seq):
            errors.append(f'Empty sequence: {record.id}')
        if record.id in identifiers:
            errors.append(f'Duplicate sequence identifier: {record.id}')
        identifiers.add(record.id)
    if errors:
        raise ExternalToolError(
            f'Invalid nucleotide file {nucleotide}:\n' + '\n'.join(errors)
        )
    dna_flat = os.path.join(work_dir, 'dna_flat.fasta')
    with open(dna_flat, 'w', encoding='utf-8') as flat:
        SeqIO.write(records, flat, 'fasta')
    lengths = [len(record.seq) for record in records]
    logging.debug(
        'Genome %s: %s sequences, max. length %s, total length %s',
        nucleotide, len(lengths), max(lengths), sum(lengths)
    )
    return dna_flat, len(lengths), max(lengths), sum(lengths)


def find_program(
        *,  # Enforce keyword arguments
        program: str,
        blast_bin: Optional[str] = None) -> str:
    """
    Locate a BLAST executable in blast_bin, or on the PATH
    :param program: Name of the executable
    :param blast_bin: Optional directory containing the BLAST executables
    :return: Path to the executable
    """
    path = shutil.which(program, path=blast_bin) if blast_bin \
        else shutil.which(program)
    if path is None:
        location = blast_bin if blast_bin else 'the PATH'
        raise ExternalToolError(
            f'Could not find {program} in {location}'
        )
    return path


def _run_command(command: List[str]):
    """
    Run an external command, and raise on failure
    :param command: List of the command and its arguments
    """
    logging.debug('Running %s', ' '.join(command))
    try:
        subprocess.run(
            command,
            check=True,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True
        )
    except subprocess.CalledProcessError as exc:
        logging.error('Error running %s: %s', command[0], exc.stderr)
        raise ExternalToolError(
            f'{os.path.basename(command[0])} failed with exit status '
            f'{exc.returncode}',
            details={'command': command, 'stderr': exc.stderr}
        ) from exc


def run_tblastn(
        *,  # Enforce keyword arguments
        dna_flat: str,
        database: str,
        work_dir: str,
        blast_bin: Optional[str] = None,
        threads: int = 1) -> List[str]:
    """
    Search the genome for the stx reference proteins
    :param dna_flat: Path to the validated genome FASTA file
    :param database: Path to the stx reference protein FASTA file
    :param work_dir: Directory for the BLAST database and outputs
    :param blast_bin: Optional directory containing the BLAST executables
    :param threads: Number of threads for tblastn
    :return: List of the tabular alignment lines
    """
    if not os.path.isfile(database):
        raise ExternalToolError(
            f'Could not locate stx protein database: {database}'
        )
    makeblastdb = find_program(program='makeblastdb', blast_bin=blast_bin)
    tblastn = find_program(program='tblastn', blast_bin=blast_bin)

    # Create a nucleotide BLAST database of the genome
    db_path = os.path.join(work_dir, 'db')
    _run_command([
        makeblastdb,
        '-in', dna_flat,
        '-dbtype', 'nucl',
        '-out', db_path,
        '-logfile', os.path.join(work_dir, 'db.log')
    ])

    blast_output = os.path.join(work_dir, 'blast')
    logging.info('Running tblastn of %s against %s', database, dna_flat)
    _run_command([
        tblastn,
        '-query', database,
        '-db', db_path,
        '-comp_based_stats', '0',
        '-evalue', '1e-10',
        '-seg', 'no',
        '-max_target_seqs', '10000',
        '-word_size', '5',
        '-db_gencode', str(GENETIC_CODE),
        '-num_threads', str(threads),
        '-outfmt', OUTFMT,
        '-out', blast_output
    ])
    with open(blast_output, 'r', encoding='utf-8') as blast_report:
        return blast_report.read().splitlines()
