"""
Models package for hypernote

Contains data structures and type definitions for the compilation pipeline.
"""

from .state import ProgramState, pipeline
from .tokens import Token, TokenType, TagKind, TagEntry, Decoration
from .errors import ErrorCode, TokenizerError
from .document import Document, Element, Operation, document_validate

__all__ = [
    "ProgramState",
    "pipeline",
    "Token",
    "TokenType",
    "TagKind",
    "TagEntry",
    "Decoration",
    "ErrorCode",
    "TokenizerError",
    "Document",
    "Element",
    "Operation",
    "document_validate",
]
