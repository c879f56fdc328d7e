"""
Error taxonomy for fatal input problems.

Findings that do not abort an operation are reported as Diagnostics instead
(see diagnostics.py).
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    READ_FAILURE = "read_failure"
    MALFORMED_RECORD = "malformed_record"
    OUT_OF_RANGE = "out_of_range"
    WRITE_FAILURE = "write_failure"


class WordkeeperError(Exception):
    """Base error carrying a kind and structured context."""

    kind: ErrorKind = ErrorKind.MALFORMED_RECORD

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class ReadFailureError(WordkeeperError):
    kind = ErrorKind.READ_FAILURE


class MalformedRecordError(WordkeeperError):
    kind = ErrorKind.MALFORMED_RECORD


class OutOfRangeError(WordkeeperError):
    kind = ErrorKind.OUT_OF_RANGE


class WriteFailureError(WordkeeperError):
    kind = ErrorKind.WRITE_FAILURE
