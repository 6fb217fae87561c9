"""
CodeShift - Errors
==================

Exceptions raised by the pipeline and account services.
Routes translate these into HTTP responses; the orchestrator folds
pipeline errors into a failed ExecutionResult.
"""

from typing import Optional


class CodeShiftError(Exception):
    """Base class for all application errors."""


# ==========================================================================
# Pipeline
# ==========================================================================

class ScanError(CodeShiftError):
    """A directory or file under the scan root could not be read."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class OracleError(CodeShiftError):
    """The edit oracle could not be reached or returned no reply."""


class OracleParseError(OracleError):
    """The oracle reply held no usable edit plan."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


# ==========================================================================
# Accounts
# ==========================================================================

class AccountExistsError(CodeShiftError):
    """Username or email is already registered."""


class InvalidCredentialsError(CodeShiftError):
    """Username/password pair did not match."""
