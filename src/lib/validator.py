"""
Structural validation for strict tokenization

Provides:
- SourcePosition: offset -> (line, column) mapping for diagnostics
- ValidationState: LIFO tag-balance tracker
- Pure syntax validators for element names, attributes, conditions,
  loops, form events, variable references and quoting

Every failure raises TokenizerError with the position of the offending
construct. Nothing here is consulted in lenient mode.

Example:
    >>> state = ValidationState()
    >>> state.tag_push("DIV_START", "div", 1, 1)
    >>> state.tag_pop("span", 2, 1)
    Traceback (most recent call last):
    ...
    TokenizerError: Mismatched closing tag [/span] - expected [/div] ...
"""

import bisect
import re
from typing import List, Optional, Tuple

from ..models.errors import ErrorCode, TokenizerError
from ..models.tokens import SELF_CLOSING_TAGS, TagEntry


ELEMENT_NAME_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9_-]*$')
ATTRIBUTE_NAME_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9_-]*$')
LOOP_VARIABLE_PATTERN = re.compile(r'^[a-zA-Z_$][a-zA-Z0-9_$]*$')
EVENT_NAME_PATTERN = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*$')


class SourcePosition:
    """
    Maps character offsets in a body to 1-based (line, column) pairs

    Line start offsets are computed once; lookups bisect them. Offsets
    past the end map to the start of the last line.
    """

    def __init__(self, content: str) -> None:
        self.lines: List[str] = content.split('\n')
        self.starts: List[int] = []
        current = 0
        for line in self.lines:
            self.starts.append(current)
            current += len(line) + 1
        self.end = current

    def position_get(self, offset: int) -> Tuple[int, int]:
        """
        Return (line, column) for a character offset

        Example:
            >>> SourcePosition("ab\\ncd").position_get(3)
            (2, 1)
        """
        if offset >= self.end:
            return len(self.lines), 1
        index = max(bisect.bisect_right(self.starts, offset) - 1, 0)
        return index + 1, offset - self.starts[index] + 1


class ValidationState:
    """
    Stack-based tag balance tracker

    Opening container tags are pushed with their source position; closing
    tags must name the innermost open tag. At end of input the stack must
    be empty, otherwise the oldest still-open tag is reported.
    """

    def __init__(self) -> None:
        self.tag_stack: List[TagEntry] = []

    def tag_push(self, type: str, name: str, line: int, column: int) -> None:
        """Push an opening tag (self-closing names are ignored)"""
        if name in SELF_CLOSING_TAGS:
            return
        self.tag_stack.append(TagEntry(type=type, name=name, line=line, column=column))

    def tag_pop(self, name: str, line: int, column: int) -> TagEntry:
        """
        Pop the innermost open tag, which must be called ``name``

        Raises:
            TokenizerError: UNMATCHED_CLOSING_TAG on an empty stack,
                            MISMATCHED_TAG when the names differ
        """
        if not self.tag_stack:
            raise TokenizerError(
                f"Unexpected closing tag [/{name}] with no matching opening tag",
                line, column, ErrorCode.UNMATCHED_CLOSING_TAG
            )

        last = self.tag_stack[-1]
        if last.name != name:
            raise TokenizerError(
                f"Mismatched closing tag [/{name}] - expected [/{last.name}] "
                f"(opened at line {last.line}, column {last.column})",
                line, column, ErrorCode.MISMATCHED_TAG
            )

        return self.tag_stack.pop()

    def unclosedTags_check(self) -> None:
        """
        Fail if any tag is still open, citing the first one opened

        Raises:
            TokenizerError: UNCLOSED_TAG at the oldest open tag's position
        """
        if self.tag_stack:
            unclosed = self.tag_stack[0]
            raise TokenizerError(
                f"Unclosed tag [{unclosed.name}]",
                unclosed.line, unclosed.column, ErrorCode.UNCLOSED_TAG
            )


def elementName_validate(name: str, line: int, column: int) -> None:
    """Element names start with a letter and hold letters, digits, '-' and '_'"""
    if not name or not name.strip():
        raise TokenizerError('Empty element name', line, column, ErrorCode.EMPTY_ELEMENT_NAME)

    if '\n' in name or '\r' in name:
        shown = name.replace('\n', '\\n').replace('\r', '\\r')
        raise TokenizerError(
            f"Invalid element name [{shown}] - contains newline",
            line, column, ErrorCode.INVALID_ELEMENT_NAME
        )

    if not ELEMENT_NAME_PATTERN.match(name):
        raise TokenizerError(
            f"Invalid element name [{name}] - must start with a letter and contain "
            f"only letters, numbers, hyphens, and underscores",
            line, column, ErrorCode.INVALID_ELEMENT_NAME
        )


def attribute_validate(
    name: str, value: Optional[str], quoted: bool, line: int, column: int
) -> None:
    """Attribute names must be identifiers; any value must be double-quoted"""
    if not ATTRIBUTE_NAME_PATTERN.match(name):
        raise TokenizerError(
            f'Invalid attribute name "{name}"', line, column, ErrorCode.INVALID_ATTRIBUTE_NAME
        )

    if value is not None and not quoted:
        raise TokenizerError(
            f'Attribute value for "{name}" must be quoted',
            line, column, ErrorCode.UNQUOTED_ATTRIBUTE
        )


def ifCondition_validate(condition: str, line: int, column: int) -> None:
    """Conditions must be non-empty and not a bare empty bracket pair"""
    trimmed = (condition or '').strip()
    if not trimmed:
        raise TokenizerError(
            'Empty condition in [if] statement', line, column, ErrorCode.EMPTY_CONDITION
        )

    if trimmed in ('{}', '[]', '()'):
        raise TokenizerError(
            f'Invalid condition "{trimmed}" in [if] statement',
            line, column, ErrorCode.INVALID_CONDITION
        )


def eachLoop_validate(source: str, variable: str, line: int, column: int) -> None:
    """Loop sources are $-references; loop variables are identifiers"""
    if not source or not source.startswith('$'):
        raise TokenizerError(
            f'Invalid loop source "{source}" - must be a query reference starting with $',
            line, column, ErrorCode.INVALID_LOOP_SOURCE
        )

    if not variable or not variable.strip():
        raise TokenizerError('Missing loop variable name', line, column, ErrorCode.MISSING_LOOP_VARIABLE)

    bare = variable[1:] if variable.startswith('$') else variable
    if not LOOP_VARIABLE_PATTERN.match(bare):
        raise TokenizerError(
            f'Invalid loop variable name "{variable}"',
            line, column, ErrorCode.INVALID_LOOP_VARIABLE
        )


def formEvent_validate(event: str, line: int, column: int) -> None:
    """Form events are @-references to a valid identifier"""
    if not event or not event.strip():
        raise TokenizerError(
            'Form requires an event reference', line, column, ErrorCode.MISSING_FORM_EVENT
        )

    if not event.startswith('@'):
        raise TokenizerError(
            f'Invalid form event "{event}" - must start with @',
            line, column, ErrorCode.INVALID_FORM_EVENT
        )

    if not EVENT_NAME_PATTERN.match(event[1:]):
        raise TokenizerError(
            f'Invalid event name "{event}"', line, column, ErrorCode.INVALID_EVENT_NAME
        )


def variableReference_validate(variable: str, line: int, column: int) -> None:
    """
    Check a raw ``{...}`` reference for emptiness and brace balance

    Args:
        variable: Reference text including its surrounding braces
    """
    inner = variable[1:-1].strip() if variable.endswith('}') else variable[1:].strip()
    if not inner:
        raise TokenizerError('Empty variable reference {}', line, column, ErrorCode.EMPTY_VARIABLE)

    depth = 0
    for char in variable:
        if char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
        if depth < 0:
            break

    if depth != 0:
        raise TokenizerError(
            f'Unbalanced braces in variable reference "{variable}"',
            line, column, ErrorCode.UNBALANCED_BRACES
        )


def unclosedQuotes_check(content: str, offset: int, position: SourcePosition) -> None:
    """
    Fail if a double quote in ``content`` is never closed

    Args:
        content: Text run to scan (e.g. the inside of a bracket tag)
        offset: Offset of ``content[0]`` in the full body
        position: SourcePosition of the full body

    Raises:
        TokenizerError: UNCLOSED_QUOTE at the opening quote
    """
    quote_start = -1
    for index, char in enumerate(content):
        if char == '"' and (index == 0 or content[index - 1] != '\\'):
            quote_start = offset + index if quote_start == -1 else -1

    if quote_start != -1:
        line, column = position.position_get(quote_start)
        raise TokenizerError('Unclosed quote in attribute', line, column, ErrorCode.UNCLOSED_QUOTE)
