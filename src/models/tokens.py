"""
Token stream and tag-stack data models

Defines the closed set of token types produced by the Tokenizer, the
closed set of bracket-tag kinds the tokenizer dispatches on, and the small
records shared between the tokenizer, the validator and the parser.
"""

from enum import Enum, auto
from dataclasses import dataclass, field
from typing import Dict, Optional, Set, Tuple


class TokenType(Enum):
    """Types of tokens in a Hypernote body"""
    TEXT = auto()
    HEADING = auto()
    FORM_START = auto()
    FORM_END = auto()
    DIV_START = auto()
    DIV_END = auto()
    BUTTON_START = auto()
    BUTTON_END = auto()
    SPAN_START = auto()
    SPAN_END = auto()
    EACH_START = auto()
    EACH_END = auto()
    IF_START = auto()
    IF_END = auto()
    ELEMENT_START = auto()
    ELEMENT_END = auto()
    ID_MARKER = auto()
    STYLE_MARKER = auto()
    IMAGE = auto()
    NEWLINE = auto()
    VARIABLE_REFERENCE = auto()
    BOLD = auto()
    ITALIC = auto()
    COMPONENT = auto()
    EOF = auto()


class TagKind(Enum):
    """
    Known bracket-tag kinds

    Each container kind owns a start/end token pair; JSON and LEAF are
    leaves and never need a closing tag. Any name not listed here is a
    generic LEAF.
    """
    FORM = "form"
    DIV = "div"
    BUTTON = "button"
    SPAN = "span"
    EACH = "each"
    IF = "if"
    JSON = "json"
    LEAF = ""

    @classmethod
    def name_resolve(cls, name: str) -> "TagKind":
        """Map an element name onto its tag kind (LEAF for anything unknown)"""
        for kind in cls:
            if kind is not cls.LEAF and kind.value == name:
                return kind
        return cls.LEAF

    @property
    def is_container(self) -> bool:
        return self in CONTAINER_TOKENS

    @property
    def tokens(self) -> Tuple[TokenType, TokenType]:
        """(start, end) token types; leaves map to ELEMENT_START/ELEMENT_END"""
        return CONTAINER_TOKENS.get(self, (TokenType.ELEMENT_START, TokenType.ELEMENT_END))


CONTAINER_TOKENS: Dict[TagKind, Tuple[TokenType, TokenType]] = {
    TagKind.FORM: (TokenType.FORM_START, TokenType.FORM_END),
    TagKind.DIV: (TokenType.DIV_START, TokenType.DIV_END),
    TagKind.BUTTON: (TokenType.BUTTON_START, TokenType.BUTTON_END),
    TagKind.SPAN: (TokenType.SPAN_START, TokenType.SPAN_END),
    TagKind.EACH: (TokenType.EACH_START, TokenType.EACH_END),
    TagKind.IF: (TokenType.IF_START, TokenType.IF_END),
}

# Leaf names that never take a closing tag
SELF_CLOSING_TAGS: Set[str] = {'img', 'br', 'hr', 'input', 'meta', 'link'}

# Prefixes (after the opening brace) that mark a variable reference
VARIABLE_PREFIXES: Tuple[str, ...] = ('$', 'user.', 'time.', 'target.', 'form.')


@dataclass(frozen=True)
class Token:
    """
    A single token of a Hypernote body

    Attributes:
        type: Token type
        value: Raw value (heading text, element name, variable reference
               with braces, marker payload, ...)
        level: Heading level (1-6), HEADING only
        attributes: Parsed tag attributes for tag/image/component tokens
        element_id: Identifier carried by ID_MARKER tokens

    Example:
        For "[form @post_hello]":
        Token(type=TokenType.FORM_START, value="form",
              attributes={"event": "@post_hello"})
    """
    type: TokenType
    value: str
    level: Optional[int] = None
    attributes: Optional[Dict[str, str]] = None
    element_id: Optional[str] = None


@dataclass
class TagEntry:
    """
    Open-tag record kept on the validation stack

    Attributes:
        type: Token type that opened the tag (e.g. "DIV_START")
        name: Element name as written (e.g. "div")
        line: 1-based line of the opening '['
        column: 1-based column of the opening '['
    """
    type: str
    name: str
    line: int
    column: int


@dataclass
class Decoration:
    """
    Pending id / style class waiting for the next block element

    Set by ID_MARKER and STYLE_MARKER tokens; consumed (and cleared) by the
    first element the parser emits afterwards.
    """
    element_id: Optional[str] = field(default=None)
    style: Optional[str] = field(default=None)

    def is_empty(self) -> bool:
        return self.element_id is None and self.style is None

    def clear(self) -> None:
        self.element_id = None
        self.style = None
