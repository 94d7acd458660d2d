"""
Container parser for Hypernote token streams

Builds the nested element tree from the flat token stream produced by the
Tokenizer.

The parser is a single loop over the tokens with an explicit stack of
open containers, so nesting depth is bounded only by memory:
1. parse(): reads tokens and routes end tags to the open containers
2. token_handle(): inline content, decorations and block elements
3. container_open() / frame_close(): push and pop container frames

Key features:
- Paragraph buffering: inline tokens accumulate; one newline becomes a
  space, two consecutive newlines end the paragraph
- Block tokens (headings, containers, images, leaves, components) flush
  the enclosing paragraph first
- Pending decorations: {#id} and {class="..."} apply to the next block
  element only, then clear
- Lenient recovery: containers left open at EOF are closed silently, and
  an end tag belonging to an outer container closes the inner ones

Example:
    >>> from .tokenizer import tokenize
    >>> Parser(tokenize("a\\nb\\n\\nc")).parse()
    [{'type': 'p', 'content': ['a', ' ', 'b']}, {'type': 'p', 'content': ['c']}]
"""

from collections import Counter
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from ..models.tokens import Decoration, Token, TokenType
from .log import LOG


Element = Dict[str, Any]
InlineItem = Union[str, Element]

EOF_TOKEN = Token(type=TokenType.EOF, value='')

# Container start token -> (end token, output element type)
CONTAINERS: Dict[TokenType, Tuple[TokenType, Optional[str]]] = {
    TokenType.FORM_START: (TokenType.FORM_END, 'form'),
    TokenType.DIV_START: (TokenType.DIV_END, None),
    TokenType.BUTTON_START: (TokenType.BUTTON_END, None),
    TokenType.SPAN_START: (TokenType.SPAN_END, None),
    TokenType.EACH_START: (TokenType.EACH_END, 'loop'),
    TokenType.IF_START: (TokenType.IF_END, 'if'),
}

END_TYPES: Set[TokenType] = {end for end, _ in CONTAINERS.values()} | {TokenType.ELEMENT_END}


class Paragraph:
    """
    Inline content buffer for one nesting level

    Attributes:
        items: Accumulated strings and inline elements
        after_newline: The last token seen at this level was a NEWLINE
        has_content: Some item is more than whitespace
    """

    def __init__(self) -> None:
        self.items: List[InlineItem] = []
        self.after_newline = False
        self.has_content = False

    def text_add(self, text: str) -> None:
        # Indentation after a line break is not content
        if self.after_newline:
            text = text.lstrip()
            if not text:
                return
        self.items.append(text)
        self.after_newline = False
        if text.strip():
            self.has_content = True

    def inline_add(self, item: InlineItem) -> None:
        self.items.append(item)
        self.after_newline = False
        self.has_content = True

    def newline_add(self) -> bool:
        """
        Register a NEWLINE

        Returns:
            True when this is the second consecutive newline, i.e. the
            paragraph should be flushed
        """
        if self.after_newline:
            self.after_newline = False
            return True

        if self.items:
            last = self.items[-1]
            if not (isinstance(last, str) and last.endswith(' ')):
                self.items.append(' ')
        self.after_newline = True
        return False

    def flush(self) -> Optional[Element]:
        """Return the buffered paragraph (None if blank) and reset"""
        items = self.items
        has_content = self.has_content
        self.items = []
        self.after_newline = False
        self.has_content = False

        if not has_content:
            return None
        while isinstance(items[-1], str) and not items[-1].strip():
            items.pop()
        return {'type': 'p', 'content': items}


class Frame:
    """
    One open container (or the document root)

    Attributes:
        element: The container element, None for the root
        elements: Children collected so far
        paragraph: Inline buffer at this level
        end_type: Token that closes the container, None for the root
        literal: Quoted literal from the start tag, emitted as the first child
    """

    def __init__(
        self,
        element: Optional[Element] = None,
        end_type: Optional[TokenType] = None,
        literal: Optional[str] = None,
    ) -> None:
        self.element = element
        self.elements: List[Element] = []
        self.paragraph = Paragraph()
        self.end_type = end_type
        self.literal = literal


class Parser:
    """
    Stack-based parser from tokens to element dicts

    Attributes:
        tokens: Token stream (EOF-terminated)
        position: Cursor into tokens
        decoration: Pending id / style class for the next block element
        frames: Open containers, innermost last; frames[0] is the root
        open_ends: How many open containers wait for each end token type
    """

    def __init__(self, tokens: List[Token]) -> None:
        self.tokens = tokens
        self.position = 0
        self.decoration = Decoration()
        self.frames: List[Frame] = []
        self.open_ends: Counter = Counter()

    def parse(self) -> List[Element]:
        """
        Parse the whole token stream

        Returns:
            Top-level elements in document order
        """
        self.position = 0
        self.decoration.clear()
        self.open_ends = Counter()
        root = Frame()
        self.frames = [root]

        while True:
            token = self.token_peek()
            if token.type is TokenType.EOF:
                break
            frame = self.frames[-1]

            if frame.element is not None and token.type is frame.end_type:
                self.position += 1
                self.frame_close()
                continue

            if token.type in END_TYPES:
                if self.open_ends[token.type]:
                    # Belongs to an enclosing container: close this one
                    self.frame_close()
                    continue
                LOG(f"Skipping stray closing tag [/{token.value}]", level=2)
                self.position += 1
                continue

            self.token_handle(token, frame)

        while len(self.frames) > 1:
            self.frame_close()
        self.paragraph_flush(root.paragraph, root.elements)

        LOG(f"Parsed {len(root.elements)} top-level elements", level=3)
        return root.elements

    def token_peek(self) -> Token:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return EOF_TOKEN

    def token_handle(self, token: Token, frame: Frame) -> None:
        kind = token.type
        paragraph = frame.paragraph
        elements = frame.elements

        if kind is TokenType.NEWLINE:
            if paragraph.newline_add():
                self.paragraph_flush(paragraph, elements)
            self.position += 1
            return

        if kind is TokenType.TEXT:
            paragraph.text_add(token.value)
            self.position += 1
            return

        if kind is TokenType.VARIABLE_REFERENCE:
            paragraph.inline_add(token.value)
            self.position += 1
            return

        if kind is TokenType.BOLD or kind is TokenType.ITALIC:
            tag = 'strong' if kind is TokenType.BOLD else 'em'
            paragraph.inline_add({'type': tag, 'content': [token.value]})
            self.position += 1
            return

        if kind is TokenType.ID_MARKER or kind is TokenType.STYLE_MARKER:
            # A marker never decorates the paragraph written before it
            if paragraph.has_content:
                self.paragraph_flush(paragraph, elements)
            if kind is TokenType.ID_MARKER:
                self.decoration.element_id = token.element_id
            else:
                self.decoration.style = token.value
            self.position += 1
            return

        # Everything below is block level
        self.paragraph_flush(paragraph, elements)
        self.position += 1

        if kind in CONTAINERS:
            self.container_open(token, frame)
            return

        element: Optional[Element] = None
        if kind is TokenType.HEADING:
            element = {'type': f"h{token.level}", 'content': [token.value]}
        elif kind is TokenType.IMAGE:
            element = {'type': 'img', 'attributes': dict(token.attributes or {})}
        elif kind is TokenType.COMPONENT:
            attributes = token.attributes or {}
            element = {
                'type': 'component',
                'alias': attributes.get('alias', token.value),
                'argument': attributes.get('argument', ''),
            }
        elif kind is TokenType.ELEMENT_START:
            element = self.leaf_build(token)

        if element is None:
            LOG(f"Ignoring token {kind.name}", level=3)
            return
        elements.append(self.decoration_apply(element))

    def container_open(self, token: Token, parent: Frame) -> None:
        """
        Build a container element and push a frame for its children

        The pending decoration belongs to the container itself, so it is
        applied before any child is parsed. The element takes its place
        among the parent's children now; its own children are attached
        when the frame closes.
        """
        end_type, container_type = CONTAINERS[token.type]
        container_type = container_type or token.value
        attributes = dict(token.attributes or {})
        literal = attributes.pop('content', None)

        element: Element = {'type': container_type}
        if container_type == 'form':
            element['event'] = attributes.pop('event', '')
        elif container_type == 'loop':
            element['source'] = attributes.pop('source', '')
            element['variable'] = attributes.pop('variable', '')
            attributes = {}
        elif container_type == 'if':
            element['condition'] = attributes.pop('condition', '')
            attributes = {}

        if attributes:
            element['attributes'] = attributes
        self.decoration_apply(element)

        parent.elements.append(element)
        self.frames.append(Frame(element, end_type, literal))
        self.open_ends[end_type] += 1

    def frame_close(self) -> None:
        """Pop the innermost container and attach its children"""
        frame = self.frames.pop()
        self.paragraph_flush(frame.paragraph, frame.elements)

        children = frame.elements
        if frame.literal:
            children.insert(0, {'type': 'p', 'content': [frame.literal]})
        frame.element['elements'] = children

        if not self.decoration.is_empty():
            LOG(f"Discarding decoration left unused inside [{frame.element['type']}]", level=2)
            self.decoration.clear()

        self.open_ends[frame.end_type] -= 1

    def leaf_build(self, token: Token) -> Element:
        """[json $var], [input ...], [name attr="v" "literal"]"""
        attributes = dict(token.attributes or {})
        if token.value == 'json':
            return {'type': 'json', 'attributes': {'variable': attributes.get('variable', '')}}

        literal = attributes.pop('content', None)
        element: Element = {'type': token.value}
        if literal is not None:
            element['content'] = [literal]
        if attributes:
            element['attributes'] = attributes
        return element

    def decoration_apply(self, element: Element) -> Element:
        """Attach and clear the pending id / style class"""
        if self.decoration.element_id is not None:
            element['elementId'] = self.decoration.element_id
        if self.decoration.style is not None:
            element.setdefault('attributes', {})['class'] = self.decoration.style
        self.decoration.clear()
        return element

    def paragraph_flush(self, paragraph: Paragraph, elements: List[Element]) -> None:
        flushed = paragraph.flush()
        if flushed is not None:
            elements.append(self.decoration_apply(flushed))


def tokens_parse(tokens: List[Token]) -> List[Element]:
    """Parse a token stream into elements"""
    return Parser(tokens).parse()
