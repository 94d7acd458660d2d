"""
hypernote - Hypernote Markdown compiler

Compiles bracket-tagged Markdown with a YAML header into JSON documents
describing data-bound Nostr UIs.
"""

__version__ = "1.1.0"

from .lib import Compiler, SafeCompiler, compile_hypernote, tokenize, LOG, state_connectToLogger
from .models import TokenizerError, ErrorCode

__all__ = [
    "Compiler",
    "SafeCompiler",
    "compile_hypernote",
    "tokenize",
    "TokenizerError",
    "ErrorCode",
    "LOG",
    "state_connectToLogger",
    "__version__",
]
