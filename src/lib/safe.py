"""
Safe compiler for live editing

Editors compile on every keystroke, so the input is often momentarily
broken. SafeCompiler never raises: a failed compile returns the last
document that compiled successfully (marked stale), or a small error
document when nothing has compiled yet.

Each SafeCompiler keeps its own last-good document; independent editors
should use independent instances.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from loguru import logger
from pydantic import ValidationError

from ..config.settings import AppSettings, appsettings
from ..models.document import document_validate
from ..models.errors import TokenizerError
from .compiler import Compiler
from .log import LOG


@dataclass
class SafeCompileResult:
    """
    Outcome of a safe compile

    Attributes:
        success: The input itself compiled
        data: Document to display (fresh, last valid, or error fallback)
        error: message/phase/code/line/column when success is False
        isStale: data is a cached earlier document
    """
    success: bool
    data: Dict[str, Any]
    error: Optional[Dict[str, Any]] = field(default=None)
    isStale: bool = field(default=False)


def error_describe(error: Exception) -> Dict[str, Any]:
    """Map an exception onto message/phase (+ position for tokenizer errors)"""
    if isinstance(error, TokenizerError):
        described: Dict[str, Any] = {'phase': 'tokenization'}
        described.update(error.as_dict())
        return described
    if isinstance(error, ValidationError):
        return {'message': str(error), 'phase': 'validation'}
    return {'message': str(error) or 'Compilation failed', 'phase': 'unknown'}


class SafeCompiler:
    """
    Compiler wrapper that falls back to the last valid document

    Example:
        >>> safe = SafeCompiler()
        >>> safe.compile("# Title").success
        True
        >>> result = safe.compile("[div")
        >>> result.success, result.isStale, result.data["elements"][0]["type"]
        (False, True, 'h1')
    """

    def __init__(self, strict: bool = True, settings: Optional[AppSettings] = None) -> None:
        self.strict = strict
        self.settings = settings or appsettings
        self.last_valid: Optional[Dict[str, Any]] = None

    def compile(self, text: str, returnLastValid: bool = True) -> SafeCompileResult:
        """
        Compile without raising

        Args:
            text: Full document text
            returnLastValid: On failure, return the cached last valid document
        """
        try:
            document = self.document_compile(text)
        except (TokenizerError, ValidationError, ValueError, TypeError, KeyError, RecursionError) as e:
            error = error_describe(e)
            LOG(f"Safe compile failed in {error['phase']}: {error['message']}", level=2)
            if returnLastValid and self.last_valid is not None:
                return SafeCompileResult(success=False, data=self.last_valid, error=error, isStale=True)
            return SafeCompileResult(success=False, data=self.fallback_make(error['message']), error=error)

        self.last_valid = document
        return SafeCompileResult(success=True, data=document)

    def document_compile(self, text: str) -> Dict[str, Any]:
        """Compile, raising schema errors instead of substituting a fallback"""
        settings = self.settings.model_copy(update={'validate_output': False})
        document = Compiler(text, strict=self.strict, settings=settings).compile()
        if self.settings.validate_output:
            document_validate(document)
        return document

    def fallback_make(self, message: str) -> Dict[str, Any]:
        """Red error box shown when nothing has compiled yet"""
        logger.warning(f"No valid document to fall back on: {message}")
        return {
            'version': self.settings.document_version,
            'elements': [
                {
                    'type': 'div',
                    'style': {
                        'padding': '1rem',
                        'backgroundColor': 'rgb(254,202,202)',
                        'borderRadius': '0.25rem',
                        'borderWidth': '1px',
                        'borderColor': 'rgb(239,68,68)',
                    },
                    'elements': [
                        {
                            'type': 'p',
                            'content': ['⚠️ Syntax Error'],
                            'style': {
                                'fontWeight': 700,
                                'color': 'rgb(127,29,29)',
                                'marginBottom': '0.5rem',
                            },
                        },
                        {
                            'type': 'p',
                            'content': [message],
                            'style': {
                                'fontSize': '0.875rem',
                                'color': 'rgb(153,27,27)',
                            },
                        },
                    ],
                }
            ],
        }

    def lastValid_get(self) -> Optional[Dict[str, Any]]:
        return self.last_valid

    def lastValid_set(self, document: Dict[str, Any]) -> None:
        """Seed the fallback, e.g. with a document loaded from disk"""
        self.last_valid = document

    def lastValid_clear(self) -> None:
        self.last_valid = None
