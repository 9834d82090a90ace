#!/usr/bin/env python3

"""
Determine the stx type(s) of a genome from tblastn alignments against the stx
reference proteins, and write a tab-delimited report
"""

# Standard imports
from argparse import (
    ArgumentParser,
    RawTextHelpFormatter
)
import logging
import multiprocessing
import os
import sys
import tempfile
import time
from typing import (
    Iterable,
    List
)

# Local imports
from stx_tools.alignment import HitArena
from stx_tools.blast import (
    prepare_genome,
    run_tblastn
)
from stx_tools.exceptions import (
    ConfigurationError,
    StxTyperError
)
from stx_tools.methods import (
    create_config,
    error_print,
    pathfinder,
    setup_logging,
    TyperConfig
)
from stx_tools.operons import (
    Operon,
    assemble_operons,
    filter_redundant_hits,
    merge_frameshifts,
    resolve_operons,
    singleton_operons
)
from stx_tools.report import (
    operon_row,
    render_report,
    write_report
)
from stx_tools.version import __version__


def type_alignments(
        *,  # Enforce keyword arguments
        lines: Iterable[str],
        config: TyperConfig) -> List[Operon]:
    """
    Interpret the alignments of one genome: parse, merge frameshifts, filter
    redundant hits, assemble operons, resolve overlapping operons, and report
    the remaining hits on their own
    :param lines: Iterable of tabular alignment lines
    :param config: TyperConfig of the run
    :return: List of the final calls
    """
    arena = HitArena.from_lines(
        lines=lines,
        class_identity=config.class_identity
    )
    merge_frameshifts(
        arena=arena,
        class_identity=config.class_identity
    )
    good = filter_redundant_hits(arena=arena)
    operons = assemble_operons(
        arena=arena,
        good=good,
        class_identity=config.class_identity
    )
    good_operons = resolve_operons(
        operons=operons,
        class_identity=config.class_identity
    )
    good_operons.extend(
        singleton_operons(
            arena=arena,
            good=good
        )
    )
    # Detailed rendering of the calls for the log
    if logging.getLogger().isEnabledFor(logging.DEBUG):
        debug_config = config._replace(name='', verbose=True)
        for operon in good_operons:
            logging.debug(
                'Call: %s',
                '\t'.join(operon_row(operon=operon, config=debug_config))
            )
    return good_operons


class StxTyper:
    """
    Run stx typing on a single genome
    """

    def main(self):
        """
        Run the appropriate methods in the correct order
        """
        lines = self.alignments()
        operons = type_alignments(
            lines=lines,
            config=self.config
        )
        if self.output:
            # Render before opening, so that a failure leaves no report
            report_text = render_report(
                operons=operons,
                config=self.config
            )
            with open(self.output, 'w', encoding='utf-8') as report:
                report.write(report_text)
            logging.info('Report written to %s', self.output)
        else:
            write_report(
                operons=operons,
                config=self.config,
                report=sys.stdout
            )

    def alignments(self) -> List[str]:
        """
        Read the precomputed alignments, or run tblastn against the genome
        :return: List of the tabular alignment lines
        """
        if self.blast_output:
            logging.info('Reading alignments from %s', self.blast_output)
            try:
                with open(self.blast_output, 'r', encoding='utf-8') as blast:
                    return blast.read().splitlines()
            # Unreadable files and non-text content
            except (OSError, UnicodeDecodeError) as exc:
                raise ConfigurationError(
                    f'Could not read BLAST output {self.blast_output}: {exc}',
                    details={'blast_output': self.blast_output}
                ) from exc
        with tempfile.TemporaryDirectory() as work_dir:
            dna_flat, _, _, _ = prepare_genome(
                nucleotide=self.nucleotide,
                work_dir=work_dir
            )
            return run_tblastn(
                dna_flat=dna_flat,
                database=self.database,
                work_dir=work_dir,
                blast_bin=self.blast_bin,
                threads=self.threads
            )

    def __init__(
            self,
            *,  # Enforce keyword arguments
            nucleotide: str = '',
            blast_output: str = '',
            database: str = '',
            output: str = '',
            name: str = '',
            blast_bin: str = '',
            threads: int = 1,
            verbose: bool = False):
        """
        Constructs all the necessary attributes for the StxTyper object.

        :param nucleotide: Path to the genome FASTA file (can be gzipped)
        :param blast_output: Path to precomputed tabular alignments. Used
        instead of running tblastn
        :param database: Path to the stx reference protein FASTA file
        :param output: Path to the report file. Report to stdout if empty
        :param name: Text to be added as the first column of all rows
        :param blast_bin: Directory containing the BLAST executables
        :param threads: Number of threads for tblastn
        :param verbose: Boolean of whether to use the detailed rendering
        """
        errors = []
        if not nucleotide and not blast_output:
            errors.append(
                'Either a nucleotide file or a BLAST output file must be '
                'supplied'
            )
        self.nucleotide = pathfinder(path=nucleotide) if nucleotide else ''
        self.blast_output = \
            pathfinder(path=blast_output) if blast_output else ''
        self.database = pathfinder(path=database) if database else ''
        if self.blast_output and not os.path.isfile(self.blast_output):
            errors.append(
                f'Could not locate supplied BLAST output: {self.blast_output}'
            )
        if not self.blast_output:
            if self.nucleotide and not os.path.isfile(self.nucleotide):
                errors.append(
                    f'Could not locate supplied nucleotide file: '
                    f'{self.nucleotide}'
                )
            if not self.database or not os.path.isfile(self.database):
                errors.append(
                    f'Could not locate supplied stx database: '
                    f'{self.database}'
                )
        self.output = pathfinder(path=output) if output else ''
        if self.output:
            report_path = os.path.dirname(self.output)
            try:
                os.makedirs(report_path, exist_ok=True)
            except OSError:
                errors.append(f'Error creating report folder: {report_path}')
        if errors:
            raise ConfigurationError(
                '\n'.join(errors),
                details={'errors': errors}
            )
        # Fall back to the BLAST_BIN environment variable
        self.blast_bin = blast_bin or os.environ.get('BLAST_BIN', '')
        self.threads = threads
        self.config = create_config(
            name=name,
            verbose=verbose
        )


def cli():
    """
    Parse the command line arguments, and run stx typing
    """
    parser = ArgumentParser(
        description='Determine stx type(s) of a genome, print .tsv-file',
        formatter_class=RawTextHelpFormatter
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )
    parser.add_argument(
        '-n', '--nucleotide',
        metavar='NUC_FASTA',
        default='',
        help='Input nucleotide FASTA file (can be gzipped)'
    )
    parser.add_argument(
        '--blast_output',
        metavar='BLAST_OUTPUT',
        default='',
        help='Tabular tblastn output with the columns\n'
        'sseqid qseqid sstart send slen qstart qend qlen sseq qseq\n'
        'to use instead of running tblastn'
    )
    parser.add_argument(
        '-d', '--database',
        metavar='STX_PROT',
        default=os.path.join(os.getcwd(), 'stx.prot'),
        help='stx reference protein FASTA file. If not provided, stx.prot '
        'in the current working directory will be used'
    )
    parser.add_argument(
        '--name',
        metavar='NAME',
        default='',
        help='Text to be added as the first column "name" to all rows of the '
        'report, for example it can be an assembly name'
    )
    parser.add_argument(
        '-o', '--output',
        metavar='OUTPUT_FILE',
        default='',
        help='Write output to OUTPUT_FILE instead of STDOUT'
    )
    parser.add_argument(
        '--blast_bin',
        metavar='BLAST_DIR',
        default='',
        help='Directory for BLAST. Default: $BLAST_BIN'
    )
    parser.add_argument(
        '-t', '--threads',
        metavar='THREADS',
        type=int,
        default=max(multiprocessing.cpu_count() - 1, 1),
        help='Number of threads for tblastn. Default is the number of CPUs '
        'minus one'
    )
    parser.add_argument(
        '--verbose_report',
        action='store_true',
        help='Report subunit letters of single subunits, and the residues '
        'inspected for unresolved stx2 operons'
    )
    parser.add_argument(
        '-v', '--verbosity',
        choices=['debug', 'info', 'warning', 'error', 'critical'],
        metavar='verbosity',
        default='info',
        help='Set the logging level. Options are debug, info, warning, error, '
        'and critical. Default is info.'
    )
    arguments = parser.parse_args()

    # Set up logging
    setup_logging(arguments=arguments)
    logging.info('Version: %s', __version__)

    start_time = time.time()
    try:
        stx_typer = StxTyper(
            nucleotide=arguments.nucleotide,
            blast_output=arguments.blast_output,
            database=arguments.database,
            output=arguments.output,
            name=arguments.name,
            blast_bin=arguments.blast_bin,
            threads=arguments.threads,
            verbose=arguments.verbose_report
        )
        stx_typer.main()
    except StxTyperError as exc:
        error_print(errors=[exc.message])

    elapsed = time.time() - start_time
    logging.info('Pipeline completed in %.2f seconds.', elapsed)


if __name__ == '__main__':
    cli()
