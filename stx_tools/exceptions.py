#!/usr/bin/env python3

"""
Exception hierarchy for stx typing. All custom exceptions inherit from
StxTyperError
"""

# Standard imports
from typing import (
    Any,
    Dict,
    Optional
)


class StxTyperError(Exception):
    """
    Base exception for all stx typing errors
    """

    def __init__(
            self,
            message: str,
            details: Optional[Dict[str, Any]] = None):
        """
        :param message: Error message
        :param details: Optional dictionary with context e.g. the offending
        alignment line
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)


class MalformedDatabase(StxTyperError):
    """
    The subject identifier of an alignment does not decode to a valid stx
    family code
    """


class MalformedRecord(StxTyperError):
    """
    A tabular alignment line violates the structural requirements
    """


class InvariantError(StxTyperError):
    """
    A consistency check on a hit or an operon failed
    """


class ConfigurationError(StxTyperError):
    """
    Invalid run configuration e.g. a bad run label or missing input files
    """


class ExternalToolError(StxTyperError):
    """
    makeblastdb/tblastn failed, or the genome could not be prepared for them
    """
