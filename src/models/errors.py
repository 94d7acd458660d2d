"""
Error codes and the typed tokenizer error

Every structural problem found while tokenizing a Hypernote body is raised
as a single TokenizerError carrying the source line and column where the
problem starts, plus one of a fixed set of error codes.
"""

from enum import Enum
from typing import Dict, Union


class ErrorCode(str, Enum):
    """
    Closed set of structural error codes

    Values are the code strings themselves so that ``err.code == "MISMATCHED_TAG"``
    and JSON serialization both work without conversion.
    """
    UNMATCHED_CLOSING_TAG = "UNMATCHED_CLOSING_TAG"
    MISMATCHED_TAG = "MISMATCHED_TAG"
    UNCLOSED_TAG = "UNCLOSED_TAG"
    EMPTY_ELEMENT_NAME = "EMPTY_ELEMENT_NAME"
    INVALID_ELEMENT_NAME = "INVALID_ELEMENT_NAME"
    INVALID_ATTRIBUTE_NAME = "INVALID_ATTRIBUTE_NAME"
    UNQUOTED_ATTRIBUTE = "UNQUOTED_ATTRIBUTE"
    EMPTY_CONDITION = "EMPTY_CONDITION"
    INVALID_CONDITION = "INVALID_CONDITION"
    INVALID_LOOP_SOURCE = "INVALID_LOOP_SOURCE"
    MISSING_LOOP_VARIABLE = "MISSING_LOOP_VARIABLE"
    INVALID_LOOP_VARIABLE = "INVALID_LOOP_VARIABLE"
    MISSING_FORM_EVENT = "MISSING_FORM_EVENT"
    INVALID_FORM_EVENT = "INVALID_FORM_EVENT"
    INVALID_EVENT_NAME = "INVALID_EVENT_NAME"
    EMPTY_VARIABLE = "EMPTY_VARIABLE"
    UNBALANCED_BRACES = "UNBALANCED_BRACES"
    UNCLOSED_QUOTE = "UNCLOSED_QUOTE"
    UNCLOSED_ELEMENT = "UNCLOSED_ELEMENT"


class TokenizerError(Exception):
    """
    Raised when strict tokenization finds a structural problem

    Attributes:
        message: Human-readable description (without position suffix)
        line: 1-based source line where the problem starts
        column: 1-based source column where the problem starts
        code: ErrorCode identifying the rule that failed

    Example:
        >>> err = TokenizerError("Unclosed tag [div]", 2, 1, ErrorCode.UNCLOSED_TAG)
        >>> str(err)
        'Unclosed tag [div] at line 2, column 1'
    """

    def __init__(self, message: str, line: int, column: int, code: ErrorCode) -> None:
        self.message = message
        self.line = line
        self.column = column
        self.code = ErrorCode(code)
        super().__init__(f"{message} at line {line}, column {column}")

    def as_dict(self) -> Dict[str, Union[str, int]]:
        """Plain mapping of the error, suitable for JSON output"""
        return {
            "message": self.message,
            "line": self.line,
            "column": self.column,
            "code": self.code.value,
        }
