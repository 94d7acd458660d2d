"""
Centralized logging using Loguru with context-aware verbosity.

This module provides a LOG() function that respects the verbosity of the
currently connected state (normally the CLI's ProgramState) without
passing that state through the compiler.

Features:
- Context-aware trace output tied to the connected state's verbosity
- Colored, timestamped formatting on stderr
- Thread-safe using contextvars
- Works throughout lib modules without passing state

Trace output from LOG() is silent until a state is connected. Soft
failures (unknown pipe operations, unparseable frontmatter, ...) go
straight to logger.warning / logger.error and are always shown.

Usage:
    from .log import LOG, state_connectToLogger

    # At start of pipeline function:
    state_connectToLogger(state)

    # Anywhere in that context:
    LOG("Compiling feed.md", level=1)
    LOG("Tokenized 812 characters into 97 tokens", level=3)
"""

from loguru import logger
from typing import Any, Optional
from contextvars import ContextVar
import sys

# Context variable to hold the current verbosity-bearing state
_program_state: ContextVar[Optional[Any]] = ContextVar('program_state', default=None)

logger_format = (
    "<green>{time:HH:mm:ss}</green> │ "
    "<level>{level: <7}</level> │ "
    "<cyan>{module: <12}</cyan> @ "
    "<cyan>{line: <4}</cyan> ║ "
    "<level>{message}</level>"
)

logger.remove()  # Remove default handler
logger.add(sys.stderr, format=logger_format, level="DEBUG")


def state_connectToLogger(state: Any) -> None:
    """
    Connect a verbosity-bearing state to the logging context.

    Args:
        state: Any object with a ``verbosity`` attribute (e.g. ProgramState)

    Example:
        def sources_compile(inputstate: ProgramState) -> ProgramState:
            state = inputstate.copy()
            state_connectToLogger(state)
            LOG("Compiling sources...", level=1)
    """
    _program_state.set(state)


def LOG(message: str, level: int = 1, **kwargs: Any) -> None:
    """
    Log message if current state's verbosity allows.

    Args:
        message: Log message to display
        level: Minimum verbosity level required (1=normal, 2=verbose, 3=trace)
        **kwargs: Additional loguru metadata

    Verbosity levels:
        1 = Normal output (default)
        2 = Verbose (-v)
        3 = Trace (-vv or higher): tokenizer and parser internals
    """
    state = _program_state.get()

    if state and hasattr(state, 'verbosity') and state.verbosity >= level:
        logger.opt(depth=1).debug(message, **kwargs)
