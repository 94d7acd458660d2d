"""
hypernote compiler library

Tokenizer, parser, frontmatter and pipe compilation for Hypernote Markdown.
"""

from .tokenizer import Tokenizer, tokenize
from .parser import Parser, tokens_parse
from .frontmatter import frontmatter_extract
from .pipes import pipe_compile, pipes_process
from .styles import classes_toStyle
from .compiler import Compiler, compile_hypernote
from .safe import SafeCompiler, SafeCompileResult
from .log import LOG, state_connectToLogger

__all__ = [
    "Tokenizer",
    "tokenize",
    "Parser",
    "tokens_parse",
    "frontmatter_extract",
    "pipe_compile",
    "pipes_process",
    "classes_toStyle",
    "Compiler",
    "compile_hypernote",
    "SafeCompiler",
    "SafeCompileResult",
    "LOG",
    "state_connectToLogger",
]
