"""
Frontmatter extraction

Splits the leading ``---`` YAML block off a Hypernote document and maps its
keys onto top-level document fields:

    @name          -> events["@name"]
    $name          -> queries["$name"]
    #name          -> queries["#name"] (component queries)
    style          -> style (utility classes converted to a style object)
    kind, type, title, description, name, imports -> copied as-is

Query values given as a bare ``naddr1...`` string are expanded into the
single-event filter they address; component (``#``) queries additionally
get a ``first`` pipe step. Unrecognised keys are ignored.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import yaml
from loguru import logger

from .log import LOG
from .naddr import naddr_toQuery
from .styles import classes_toStyle


FRONTMATTER_PATTERN = re.compile(r'^---\n(.*?)\n---', re.DOTALL)

COPIED_KEYS = ('kind', 'type', 'title', 'description', 'name', 'imports')


@dataclass
class Frontmatter:
    """
    Document fields recovered from a frontmatter block

    Attributes:
        fields: Top-level document fields (events, queries, style, kind, ...)
        body: Document text after the frontmatter block
    """
    fields: Dict[str, Any] = field(default_factory=dict)
    body: str = ""


def frontmatter_split(text: str) -> Tuple[Optional[str], str]:
    """
    Separate the raw YAML block from the body

    Returns:
        (yaml text or None, body). With a block present the body is the
        remainder, stripped; otherwise it is the text unchanged.
    """
    text = text.replace('\r\n', '\n')
    match = FRONTMATTER_PATTERN.match(text)
    if not match:
        return None, text
    return match.group(1), text[match.end():].strip()


def query_expand(value: Any, component: bool) -> Any:
    """Expand a bare naddr string into its query; other values pass through"""
    if not (isinstance(value, str) and value.startswith('naddr')):
        return value

    query = naddr_toQuery(value, first=component)
    if query is None:
        logger.warning(f"Could not decode naddr '{value[:24]}...', keeping it as-is")
        return value
    LOG(f"Expanded naddr into query for kind {query['kinds'][0]}", level=2)
    return query


def fields_map(metadata: Dict[Any, Any]) -> Dict[str, Any]:
    """
    Classify frontmatter keys into document fields

    Example:
        >>> fields_map({"@post": {"kind": 1}, "$feed": {"kinds": [1]}, "title": "Hi"})
        {'events': {'@post': {'kind': 1}}, 'queries': {'$feed': {'kinds': [1]}}, 'title': 'Hi'}
    """
    fields: Dict[str, Any] = {}
    for key, value in metadata.items():
        if not isinstance(key, str):
            LOG(f"Ignoring non-string frontmatter key {key!r}", level=2)
            continue

        if key.startswith('@'):
            fields.setdefault('events', {})[key] = value
        elif key.startswith('$'):
            fields.setdefault('queries', {})[key] = query_expand(value, component=False)
        elif key.startswith('#'):
            fields.setdefault('queries', {})[key] = query_expand(value, component=True)
        elif key == 'style':
            if not isinstance(value, str):
                logger.warning(
                    f"Root style must be a string of classes, got {type(value).__name__}"
                )
                continue
            style = classes_toStyle(value)
            if style:
                fields['style'] = style
            else:
                logger.warning(f'Failed to convert root style "{value}"')
        elif key in COPIED_KEYS:
            fields[key] = value
        else:
            LOG(f"Ignoring unknown frontmatter key '{key}'", level=3)
    return fields


def frontmatter_extract(text: str) -> Frontmatter:
    """
    Extract document fields and the body from a Hypernote document

    A block that fails to parse, or does not hold a mapping, contributes
    no fields but is still removed from the body.

    Args:
        text: Full document text

    Returns:
        Frontmatter with mapped fields and the remaining body
    """
    block, body = frontmatter_split(text)
    if block is None:
        return Frontmatter(fields={}, body=body)

    try:
        metadata: Any = yaml.safe_load(block)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML frontmatter: {e}")
        return Frontmatter(fields={}, body=body)

    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        logger.warning(f"Frontmatter must be a mapping, got {type(metadata).__name__}")
        return Frontmatter(fields={}, body=body)

    LOG(f"Frontmatter keys: {', '.join(str(key) for key in metadata)}", level=3)
    return Frontmatter(fields=fields_map(metadata), body=body)
