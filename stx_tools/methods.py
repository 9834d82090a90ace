#!/usr/bin/env python3

"""
Collection of shared methods, constants, and configuration for stx typing
"""

# Standard imports
import logging
import os
from types import MappingProxyType
from typing import (
    Mapping,
    NamedTuple
)

# Third party inputs
import coloredlogs

# Local imports
from stx_tools.exceptions import ConfigurationError

# Max. intergenic region in the reference set + 2
INTERGENIC_MAX = 36
# Tolerance used when testing whether one call covers another
SLACK = 30
# Max. distance between two frameshifted fragments of the same gene
FRAMESHIFT_GAP = 10
# Distance from a contig end within which a hit is considered truncated
END_DELTA = 3
# Min. length of a protein domain
MIN_DOMAIN_LENGTH = 20
# Window in which a missing partner subunit may have fallen off the contig
MISSED_MAX = INTERGENIC_MAX + 3 * MIN_DOMAIN_LENGTH
# Lengths of the reference frames used for class 2 disambiguation
A_FRAME_LENGTH = 320
B_FRAME_LENGTH = 90

STX_PREFIX = 'stx'

# Minimum operon identity for each stx class
CLASS_IDENTITY = MappingProxyType({
    '1a': 0.983,
    '1c': 0.983,
    '1d': 0.983,
    '1e': 0.983,
    '2': 0.98,
    '2b': 0.98,
    '2e': 0.98,
    '2f': 0.98,
    '2g': 0.98,
    '2h': 0.98,
    '2i': 0.98,
    '2j': 0.98,
    '2k': 0.985,
    '2l': 0.985,
    '2m': 0.98,
    '2n': 0.98,
    '2o': 0.98,
})

# stx2 types that share class "2"
CLASS_2_TYPES = ('2a', '2c', '2d')


class TyperConfig(NamedTuple):
    """
    Run-wide, read-only configuration passed explicitly to every stage
    """

    class_identity: Mapping[str, float] = CLASS_IDENTITY
    name: str = ''
    verbose: bool = False


def create_config(
        *,  # Enforce keyword arguments
        name: str = '',
        verbose: bool = False) -> TyperConfig:
    """
    Validate the run label and create the run configuration
    :param name: Text to be added as the first column of all report rows
    :param verbose: Boolean of whether rows use the detailed rendering
    :return: TyperConfig object
    """
    # The label becomes a column of a tab-delimited report
    if '\t' in name:
        raise ConfigurationError(
            'NAME cannot contain a tab character',
            details={'name': name}
        )
    return TyperConfig(
        class_identity=CLASS_IDENTITY,
        name=name,
        verbose=verbose
    )


def setup_logging(arguments):
    """
    Set the custom colour scheme and message format to used by coloredlogs
    :param arguments: type parsed ArgumentParser object
    """
    # Set up a dictionary of the default colour scheme, and font styles
    coloredlogs.DEFAULT_LEVEL_STYLES = {
        'debug': {
            'bold': True, 'color': 'green'},
        'info': {
            'bold': True, 'color': 'blue'},
        'warning': {
            'bold': True, 'color': 'yellow'},
        'error': {
            'bold': True, 'color': 'red'},
        'critical': {
            'bold': True, 'background': 'red'}

    }
    # Change the default log format to be the time prepended to the
    # appropriately formatted message string
    coloredlogs.DEFAULT_LOG_FORMAT = '%(asctime)s %(message)s'
    # Set the logging level
    coloredlogs.install(level=arguments.verbosity.upper())


def error_print(
        errors: list):
    """
    Log grammatically correct error messages and exit
    :param errors: List of errors with supplied arguments
    """
    # Create variables to allow for grammatically correct error messages
    error_string = '\n'.join(errors)
    was_were = 'was' if len(errors) == 1 else 'were'
    correct = 'error' if len(errors) == 1 else 'errors'
    logging.error(
        'There %s %s %s when attempting to run your command: \n%s', was_were,
        len(errors), correct, error_string
    )
    raise SystemExit


def pathfinder(path: str):
    """
    Create absolute path user-supplied path. Allows for tilde expansion from
    :param path: String of path supplied by user. Could be relative, tilde
    expansion, or absolute
    :return: out_path: String of absolute path provided by user.
    """
    # Determine if the path requires path expansion
    if path.startswith('~'):
        # Create the absolute path of the tilde expanded path
        out_path = os.path.abspath(os.path.expanduser(os.path.join(path)))
    else:
        # Create the absolute path from the path
        out_path = os.path.abspath(os.path.join(path))
    return out_path
