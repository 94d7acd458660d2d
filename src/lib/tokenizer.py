"""
Tokenizer for Hypernote Markdown bodies

Turns the body text (frontmatter already removed) into a flat, ordered
stream of Tokens in a single forward pass.

At each cursor position the scanners below are tried in order; the first
one that recognises the input consumes it and emits a token:

    newline      "\\n"
    heading      "# ..." to end of line (indentation only before it)
    id marker    "{#name}"
    style marker '{class="..."}'
    variable     "{$...}", "{user....}", "{time....}", "{target....}", "{form....}"
    image        "![alt](src)"
    bracket tag  "[/name]", "[#alias argument]", "[name ...]"
    bold         "**text**"
    italic       "*text*"

Anything else starts a plain text run that extends to the next special
character. The ordering matters: "{" is shared by id markers, style
markers and variable references, and falls back to text when none match.

In strict mode every bracket tag is validated and tracked on a
ValidationState tag stack; the first violation aborts tokenization with a
TokenizerError. Lenient mode never raises: malformed constructs degrade
to text and unbalanced tags are left for the parser to tolerate.

Example:
    >>> tokens = Tokenizer("# Hi\\n[div]ok[/div]", strict=True).tokenize()
    >>> [t.type.name for t in tokens]
    ['HEADING', 'NEWLINE', 'DIV_START', 'TEXT', 'DIV_END', 'EOF']
"""

import re
from typing import Callable, Dict, List, Optional, Tuple

from ..models.errors import ErrorCode, TokenizerError
from ..models.tokens import Token, TokenType, TagKind, VARIABLE_PREFIXES
from .validator import (
    SourcePosition,
    ValidationState,
    attribute_validate,
    eachLoop_validate,
    elementName_validate,
    formEvent_validate,
    ifCondition_validate,
    unclosedQuotes_check,
    variableReference_validate,
)
from .log import LOG


STYLE_MARKER_PATTERN = re.compile(r'\{class="([^"\n]*)"\}')
IMAGE_PATTERN = re.compile(r'!\[([^\]\n]*)\]\(([^)\n]*)\)')
ELEMENT_NAME_SCAN = re.compile(r'[^ \t@"]*')

# Characters that end a plain text run
TEXT_STOPS = '\n[{*'


class Tokenizer:
    """
    Single-pass scanner over a Hypernote body

    Every lookahead goes through char_find() and braceClose_find(), which
    remember what they have already scanned, so a body is tokenized in
    linear time however many brackets or braces are left unterminated.

    Attributes:
        content: Body text (CRLF line endings normalised to LF)
        strict: Enforce structural validation
        position: Cursor offset into content
        tokens: Tokens emitted so far
        text_parts: Pending plain text, joined into one TEXT token on flush
        source_position: Offset -> line/column mapper for diagnostics
        validation: Tag stack (strict mode only)
    """

    def __init__(self, content: str, strict: bool = False) -> None:
        self.content = content.replace('\r\n', '\n')
        self.strict = strict
        self.position = 0
        self.tokens: List[Token] = []
        self.text_parts: List[str] = []
        self.find_cache: Dict[str, Tuple[int, int]] = {}
        self.brace_closes: Dict[int, int] = {}
        self.brace_scanned = 0
        self.source_position = SourcePosition(self.content)
        self.validation: Optional[ValidationState] = ValidationState() if strict else None

        # Scanners in precedence order; each returns True if it consumed input
        self.scanners: Tuple[Callable[[], bool], ...] = (
            self.newline_scan,
            self.heading_scan,
            self.idMarker_scan,
            self.styleMarker_scan,
            self.variable_scan,
            self.image_scan,
            self.tag_scan,
            self.bold_scan,
            self.italic_scan,
        )

    def tokenize(self) -> List[Token]:
        """
        Scan the whole body and return the token stream

        Returns:
            Tokens in source order, always terminated by an EOF token

        Raises:
            TokenizerError: Strict mode only, on the first structural problem
        """
        self.position = 0
        self.tokens = []
        self.text_parts = []
        self.find_cache = {}
        self.brace_closes = {}
        self.brace_scanned = 0
        if self.validation is not None:
            self.validation = ValidationState()

        while self.position < len(self.content):
            if not any(scan() for scan in self.scanners):
                self.text_scan()

        if self.validation is not None:
            self.validation.unclosedTags_check()

        self.token_push(Token(type=TokenType.EOF, value=''))
        LOG(f"Tokenized {len(self.content)} characters into {len(self.tokens)} tokens", level=3)
        return self.tokens

    def location(self, offset: int) -> Tuple[int, int]:
        """(line, column) of an offset in the body"""
        return self.source_position.position_get(offset)

    def error(self, message: str, offset: int, code: ErrorCode) -> TokenizerError:
        """Build a TokenizerError positioned at ``offset``"""
        line, column = self.location(offset)
        return TokenizerError(message, line, column, code)

    def token_push(self, token: Token) -> None:
        self.text_flush()
        self.tokens.append(token)

    def text_push(self, text: str) -> None:
        """Buffer text; consecutive runs become a single TEXT token"""
        if text:
            self.text_parts.append(text)

    def text_flush(self) -> None:
        if self.text_parts:
            self.tokens.append(Token(type=TokenType.TEXT, value=''.join(self.text_parts)))
            self.text_parts = []

    def char_peek(self, ahead: int = 0) -> str:
        index = self.position + ahead
        return self.content[index] if index < len(self.content) else ''

    def char_find(self, char: str, start: int) -> int:
        """
        Offset of the next ``char`` at or after ``start`` (-1 if none)

        The last answer per character is kept: a query landing between the
        previous start and the previous hit is answered without rescanning.
        """
        cached = self.find_cache.get(char)
        if cached is not None:
            since, found = cached
            if since <= start and (found == -1 or start <= found):
                return found
        found = self.content.find(char, start)
        self.find_cache[char] = (start, found)
        return found

    def lineStart_is(self) -> bool:
        """Only spaces or tabs precede the cursor on its line"""
        index = self.position - 1
        while index >= 0 and self.content[index] in ' \t':
            index -= 1
        return index < 0 or self.content[index] == '\n'

    def lineEnd_find(self, start: int) -> int:
        end = self.char_find('\n', start)
        return len(self.content) if end == -1 else end

    def braceClose_find(self, start: int) -> int:
        """
        Offset of the '}' balancing the '{' at ``start`` on the same line

        Braces are matched for the rest of the line in one pass the first
        time it is needed.

        Returns:
            Offset of the closing brace, or -1 if it is not closed on its line
        """
        if start >= self.brace_scanned:
            opened: List[int] = []
            end = self.lineEnd_find(start)
            for index in range(start, end):
                char = self.content[index]
                if char == '{':
                    opened.append(index)
                elif char == '}' and opened:
                    self.brace_closes[opened.pop()] = index
            self.brace_scanned = end
        return self.brace_closes.get(start, -1)

    # ------------------------------------------------------------------
    # Scanners
    # ------------------------------------------------------------------

    def newline_scan(self) -> bool:
        if self.char_peek() != '\n':
            return False
        self.token_push(Token(type=TokenType.NEWLINE, value='\n'))
        self.position += 1
        return True

    def heading_scan(self) -> bool:
        """'#' x 1-6 after optional indentation, then a space (or end of line), then text"""
        if self.char_peek() != '#' or not self.lineStart_is():
            return False

        level = 0
        while self.char_peek(level) == '#':
            level += 1
        if level > 6 or self.char_peek(level) not in (' ', '\t', '\n', ''):
            return False

        end = self.lineEnd_find(self.position + level)
        text = self.content[self.position + level:end].strip()
        self.token_push(Token(type=TokenType.HEADING, value=text, level=level))
        self.position = end
        return True

    def idMarker_scan(self) -> bool:
        """'{#identifier}' - applies to the next element"""
        if not self.content.startswith('{#', self.position):
            return False

        close = self.char_find('}', self.position + 2)
        if close == -1 or close > self.lineEnd_find(self.position):
            if self.strict:
                raise self.error('Unterminated id marker', self.position, ErrorCode.UNBALANCED_BRACES)
            return False

        element_id = self.content[self.position + 2:close].strip()
        if not element_id:
            if self.strict:
                raise self.error('Empty id in {#} marker', self.position, ErrorCode.EMPTY_ELEMENT_NAME)
            LOG("Dropping empty {#} marker", level=2)
        else:
            self.token_push(Token(type=TokenType.ID_MARKER, value=element_id, element_id=element_id))
        self.position = close + 1
        return True

    def styleMarker_scan(self) -> bool:
        """'{class="..."}' - applies to the next element"""
        if not self.content.startswith('{class=', self.position):
            return False

        match = STYLE_MARKER_PATTERN.match(self.content, self.position)
        if not match:
            if self.strict:
                value_start = self.position + len('{class=')
                if self.char_peek(len('{class=')) != '"':
                    raise self.error(
                        'Style marker class must be quoted', value_start, ErrorCode.UNQUOTED_ATTRIBUTE
                    )
                segment = self.content[self.position:self.lineEnd_find(self.position)]
                unclosedQuotes_check(segment, self.position, self.source_position)
                raise self.error('Malformed style marker', self.position, ErrorCode.UNBALANCED_BRACES)
            return False

        self.token_push(Token(type=TokenType.STYLE_MARKER, value=match.group(1)))
        self.position = match.end()
        return True

    def variable_scan(self) -> bool:
        """
        '{$name...}' or '{user.|time.|target.|form. ...}'

        The token value keeps its braces. Nested braces are balanced; a
        reference never spans lines.
        """
        if self.char_peek() != '{':
            return False
        if not self.content.startswith(VARIABLE_PREFIXES, self.position + 1):
            return False

        close = self.braceClose_find(self.position)
        if close == -1:
            if self.strict:
                raw = self.content[self.position:self.lineEnd_find(self.position)]
                line, column = self.location(self.position)
                variableReference_validate(raw, line, column)
            return False

        raw = self.content[self.position:close + 1]
        if self.strict:
            line, column = self.location(self.position)
            variableReference_validate(raw, line, column)

        self.token_push(Token(type=TokenType.VARIABLE_REFERENCE, value=raw))
        self.position = close + 1
        return True

    def image_scan(self) -> bool:
        """'![alt](src)'"""
        if not self.content.startswith('![', self.position):
            return False

        match = IMAGE_PATTERN.match(self.content, self.position)
        if not match:
            return False

        alt, src = match.group(1), match.group(2).strip()
        self.token_push(Token(type=TokenType.IMAGE, value=src, attributes={'src': src, 'alt': alt}))
        self.position = match.end()
        return True

    def bold_scan(self) -> bool:
        """'**text**' closed on the same line"""
        if not self.content.startswith('**', self.position):
            return False

        close = self.content.find('**', self.position + 2)
        if close == -1 or close == self.position + 2 or close > self.lineEnd_find(self.position):
            return False

        self.token_push(Token(type=TokenType.BOLD, value=self.content[self.position + 2:close]))
        self.position = close + 2
        return True

    def italic_scan(self) -> bool:
        """'*text*' closed on the same line, never touching another '*'"""
        if self.char_peek() != '*' or self.char_peek(1) == '*':
            return False
        if self.position > 0 and self.content[self.position - 1] == '*':
            return False

        close = self.char_find('*', self.position + 1)
        if close == -1 or close == self.position + 1 or close > self.lineEnd_find(self.position):
            return False
        if self.content.startswith('**', close):
            return False

        self.token_push(Token(type=TokenType.ITALIC, value=self.content[self.position + 1:close]))
        self.position = close + 1
        return True

    def text_scan(self) -> None:
        """Plain text up to the next special character (always consumes one)"""
        start = self.position
        index = start + 1
        # Indentation may still lead to a heading
        leading = self.content[start] in ' \t' and self.lineStart_is()
        while index < len(self.content):
            char = self.content[index]
            if leading:
                if char == '#':
                    break
                leading = char in ' \t'
            if char in TEXT_STOPS:
                break
            if char == '!' and self.content.startswith('[', index + 1):
                break
            index += 1

        self.text_push(self.content[start:index])
        self.position = index

    # ------------------------------------------------------------------
    # Bracket tags
    # ------------------------------------------------------------------

    def tagEnd_find(self, start: int) -> int:
        """
        Offset of the ']' closing the tag that opens at ``start``

        Brackets inside double quotes do not count. If quoting never
        balances, the first ']' at all is used so the quote error can be
        reported; -1 when there is no ']' left.
        """
        index = start + 1
        while True:
            bracket = self.char_find(']', index)
            if bracket == -1:
                return -1
            quote = self.char_find('"', index)
            if quote == -1 or bracket < quote:
                return bracket
            close = self.char_find('"', quote + 1)
            if close == -1:
                return self.char_find(']', start + 1)
            index = close + 1

    def tag_scan(self) -> bool:
        if self.char_peek() != '[':
            return False

        start = self.position
        end = self.tagEnd_find(start)
        if end == -1:
            if self.strict:
                raise self.error('Missing closing bracket for element', start, ErrorCode.UNCLOSED_ELEMENT)
            return False

        inner = self.content[start + 1:end]
        line, column = self.location(start)
        if self.strict:
            unclosedQuotes_check(inner, start + 1, self.source_position)

        if inner.startswith('/'):
            self.closingTag_emit(inner[1:].strip(), line, column)
        elif inner.startswith('#'):
            self.component_emit(inner[1:], line, column)
        else:
            self.openingTag_emit(inner, start + 1, line, column)

        self.position = end + 1
        return True

    def closingTag_emit(self, name: str, line: int, column: int) -> None:
        if self.validation is not None:
            elementName_validate(name, line, column)
            self.validation.tag_pop(name, line, column)

        _, end_type = TagKind.name_resolve(name).tokens
        self.token_push(Token(type=end_type, value=name))

    def component_emit(self, body: str, line: int, column: int) -> None:
        """'[#alias argument]' - reference to an imported component"""
        parts = body.strip().split(None, 1)
        alias = parts[0] if parts else ''
        argument = parts[1].strip() if len(parts) > 1 else ''
        if self.strict:
            elementName_validate(alias, line, column)

        self.token_push(Token(
            type=TokenType.COMPONENT,
            value=f"#{alias}",
            attributes={'alias': f"#{alias}", 'argument': argument},
        ))

    def openingTag_emit(self, inner: str, offset: int, line: int, column: int) -> None:
        """
        Opening tag: dispatch on the tag kind for its attribute grammar

        Args:
            inner: Text between the brackets
            offset: Body offset of ``inner[0]``
            line: Line of the opening '['
            column: Column of the opening '['
        """
        match = ELEMENT_NAME_SCAN.match(inner)
        name = match.group(0) if match else ''
        rest = inner[len(name):]
        if self.strict:
            elementName_validate(name, line, column)

        kind = TagKind.name_resolve(name)
        rest_offset = offset + len(name)
        if kind is TagKind.FORM:
            attributes = self.formAttributes_parse(rest, rest_offset, line, column)
        elif kind is TagKind.EACH:
            attributes = self.eachAttributes_parse(rest, line, column)
        elif kind is TagKind.IF:
            attributes = self.ifAttributes_parse(rest, line, column)
        elif kind is TagKind.JSON:
            attributes = self.jsonAttributes_parse(rest, line, column)
        else:
            attributes = self.attributes_parse(rest, rest_offset)

        start_type, _ = kind.tokens
        if self.validation is not None and kind.is_container:
            self.validation.tag_push(start_type.name, name, line, column)

        self.token_push(Token(type=start_type, value=name, attributes=attributes))

    def attributes_parse(self, text: str, offset: int) -> Dict[str, str]:
        """
        Parse ``name="value"`` pairs, bare names and one bare quoted literal

        A bare quoted literal ([button "Go"]) is stored under "content".
        Bare names are stored with an empty value.
        """
        attributes: Dict[str, str] = {}
        index = 0
        while index < len(text):
            char = text[index]
            if char.isspace():
                index += 1
                continue

            if char == '"':
                close = text.find('"', index + 1)
                close = len(text) if close == -1 else close
                attributes['content'] = text[index + 1:close]
                index = close + 1
                continue

            start = index
            while index < len(text) and not text[index].isspace() and text[index] != '=':
                index += 1
            name = text[start:index]

            value: Optional[str] = None
            quoted = False
            if index < len(text) and text[index] == '=':
                index += 1
                if index < len(text) and text[index] == '"':
                    close = text.find('"', index + 1)
                    close = len(text) if close == -1 else close
                    value = text[index + 1:close]
                    quoted = True
                    index = close + 1
                else:
                    value_start = index
                    while index < len(text) and not text[index].isspace():
                        index += 1
                    value = text[value_start:index]

            if self.strict:
                attr_line, attr_column = self.location(offset + start)
                attribute_validate(name, value, quoted, attr_line, attr_column)
            if name:
                attributes[name] = value if value is not None else ''

        return attributes

    def formAttributes_parse(self, rest: str, offset: int, line: int, column: int) -> Dict[str, str]:
        """'[form @event attr="v" ...]' - the event comes first"""
        stripped = rest.lstrip()
        event = ''
        remainder = rest
        if stripped.startswith('@'):
            event = stripped.split(None, 1)[0]
            consumed = len(rest) - len(stripped) + len(event)
            remainder = rest[consumed:]
            offset += consumed

        if self.strict:
            formEvent_validate(event, line, column)

        attributes = self.attributes_parse(remainder, offset)
        attributes['event'] = event
        return attributes

    def eachAttributes_parse(self, rest: str, line: int, column: int) -> Dict[str, str]:
        """'[each $source as $variable]'"""
        source, separator, variable = f" {rest.strip()} ".partition(' as ')
        source = source.strip()
        variable = variable.strip() if separator else ''
        if self.strict:
            eachLoop_validate(source, variable, line, column)
        return {'source': source, 'variable': variable}

    def ifAttributes_parse(self, rest: str, line: int, column: int) -> Dict[str, str]:
        """'[if condition]'"""
        condition = rest.strip()
        if self.strict:
            ifCondition_validate(condition, line, column)
        return {'condition': condition}

    def jsonAttributes_parse(self, rest: str, line: int, column: int) -> Dict[str, str]:
        """'[json $variable.path]'"""
        variable = rest.strip()
        if self.strict and not variable:
            raise TokenizerError('Empty variable in [json] element', line, column, ErrorCode.EMPTY_VARIABLE)
        return {'variable': variable}


def tokenize(content: str, strict: bool = False) -> List[Token]:
    """
    Tokenize a Hypernote body

    Args:
        content: Body text without frontmatter
        strict: Raise TokenizerError on the first structural problem

    Returns:
        Token list terminated by EOF
    """
    return Tokenizer(content, strict=strict).tokenize()
