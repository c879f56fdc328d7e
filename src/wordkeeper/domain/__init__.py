# Domain Package
from .diagnostics import Diagnostic, Severity, ValidationResult
from .errors import (
    ErrorKind,
    MalformedRecordError,
    OutOfRangeError,
    ReadFailureError,
    WordkeeperError,
    WriteFailureError,
)
from .models import (
    Direction,
    ExpressionState,
    LearnedStatus,
    NotebookHistory,
    QuizKind,
    ReviewRecord,
    SceneHistory,
    VocabularyEntry,
)

__all__ = [
    "Diagnostic",
    "Severity",
    "ValidationResult",
    "ErrorKind",
    "WordkeeperError",
    "ReadFailureError",
    "MalformedRecordError",
    "OutOfRangeError",
    "WriteFailureError",
    "Direction",
    "ExpressionState",
    "LearnedStatus",
    "NotebookHistory",
    "QuizKind",
    "ReviewRecord",
    "SceneHistory",
    "VocabularyEntry",
]
