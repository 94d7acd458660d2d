"""
Pipe compiler

Normalises the pipelines attached to queries and events into explicit
``{"op": name, ...params}`` steps. Two input forms are accepted:

Compact (one YAML line per step):

    - first                 -> {"op": "first"}
    - get: content          -> {"op": "get", "field": "content"}
    - limit: 10             -> {"op": "limit", "count": 10}
    - save: value           -> {"op": "save", "as": "value"}
    - map: [...]            -> {"op": "map", "pipe": [...compiled...]}

Legacy (``operation`` objects, detected from the first step):

    - {operation: extract, expression: .content, as: body}
      -> {"op": "get", "field": "content"}, {"op": "save", "as": "body"}

Steps that already carry ``op`` pass through untouched, so compiling a
compiled pipe returns it unchanged. Unknown operations are warned about and
kept in a best-effort shape; they never fail the compile.
"""

import copy
import re
from typing import Any, Dict, List, Optional

from loguru import logger

from .log import LOG


Step = Dict[str, Any]

# Compact operations whose scalar value becomes a single named parameter
PARAMETER_NAMES: Dict[str, str] = {
    'save': 'as',
    'get': 'field',
    'pluck': 'field',
    'groupBy': 'field',
    'limit': 'count',
    'take': 'count',
    'drop': 'count',
    'default': 'value',
    'add': 'value',
    'multiply': 'value',
    'defaults': 'value',
    'split': 'separator',
    'join': 'separator',
    'merge': 'with',
    'pick': 'fields',
    'omit': 'fields',
    'where': 'expression',
}

# Compact operations that spread a mapping value, or else name the scalar
SPREAD_OR_NAMED: Dict[str, str] = {
    'sort': 'by',
    'filter': 'field',
    'filterTag': 'tag',
    'pluckTag': 'tag',
    'whereIndex': 'index',
    'pluckIndex': 'index',
}

# Legacy operations that translate one-to-one, with the parameters they keep
LEGACY_DIRECT: Dict[str, tuple] = {
    'reverse': (),
    'flatten': ('depth',),
    'unique': ('by',),
    'sort': ('by', 'order'),
}

FIELD_EXPRESSION = re.compile(r'^\.([A-Za-z_][A-Za-z0-9_]*)$')
TAG_SELECT_EXPRESSION = re.compile(
    r'^\.tags\[\]\s*\|\s*select\(\s*\.\[0\]\s*==\s*"([^"]*)"\s*\)\s*\|\s*\.\[(\d+)\]$'
)


def pipe_isLegacy(pipe: List[Any]) -> bool:
    """A pipe is legacy when its first step is an ``operation`` object"""
    return bool(pipe) and isinstance(pipe[0], dict) and 'operation' in pipe[0] and 'op' not in pipe[0]


def step_compile(step: Any) -> Any:
    """
    Compile one compact step

    Args:
        step: Operation name, single-key mapping, or an ``op`` mapping

    Returns:
        Explicit step (or the input unchanged when it cannot be read)
    """
    if isinstance(step, str):
        return {'op': step}
    if not isinstance(step, dict):
        logger.warning(f"Unreadable pipe step {step!r}, passing through")
        return step
    if 'op' in step:
        return step
    if len(step) != 1:
        logger.warning(f"Multi-key object in pipe: {step!r}")
        return step

    op, value = next(iter(step.items()))

    if op in PARAMETER_NAMES:
        return {'op': op, PARAMETER_NAMES[op]: value}

    if op in SPREAD_OR_NAMED:
        if isinstance(value, dict):
            return {'op': op, **value}
        return {'op': op, SPREAD_OR_NAMED[op]: value}

    if op == 'replace':
        if isinstance(value, dict):
            return {'op': op, **value}
        logger.warning(f"replace expects a mapping with from/to, got {value!r}")
        return {'op': op, 'value': value}

    if op == 'map':
        if isinstance(value, list):
            return {'op': op, 'pipe': compactPipe_compile(value)}
        return {'op': op, 'pipe': value}

    if op == 'construct':
        return construct_compile(value)

    logger.warning(f"Unknown pipe operation: {op}")
    return {'op': op, 'value': value}


def construct_compile(value: Any) -> Step:
    """``construct`` holds one sub-pipe per output field"""
    if not isinstance(value, dict):
        logger.warning(f"construct expects a mapping of field pipes, got {value!r}")
        return {'op': 'construct', 'value': value}

    fields = value.get('fields', value)
    if not isinstance(fields, dict):
        fields = value
    return {
        'op': 'construct',
        'fields': {
            name: pipe_compile(sub_pipe) if isinstance(sub_pipe, list) else sub_pipe
            for name, sub_pipe in fields.items()
        },
    }


def compactPipe_compile(pipe: List[Any]) -> List[Any]:
    """Compile every step of a compact pipe"""
    return [step_compile(step) for step in pipe]


def extractExpression_translate(expression: Any) -> List[Step]:
    """
    Best-effort translation of a legacy extract expression

    Only ``.field`` and the tag-select idiom
    ``.tags[] | select(.[0] == "x") | .[n]`` translate faithfully. Anything
    else becomes ``get content``; that fallback is lossy and reported.
    """
    text = expression.strip() if isinstance(expression, str) else ''

    match = FIELD_EXPRESSION.match(text)
    if match:
        return [{'op': 'get', 'field': match.group(1)}]

    match = TAG_SELECT_EXPRESSION.match(text)
    if match:
        return [{'op': 'pluckTag', 'tag': match.group(1), 'index': int(match.group(2))}]

    logger.warning(f"Cannot translate extract expression {expression!r}; falling back to get content")
    return [{'op': 'get', 'field': 'content'}]


def legacyStep_compile(step: Any) -> List[Any]:
    """Translate one legacy ``operation`` step into zero or more explicit steps"""
    if not isinstance(step, dict) or 'operation' not in step:
        return [step_compile(step)]

    rest = {key: value for key, value in step.items() if key != 'operation'}
    name = step['operation']
    if not isinstance(name, str):
        logger.warning(f"Unreadable legacy pipe operation {name!r}, passing through")
        return [step]

    if name == 'extract':
        steps = extractExpression_translate(rest.get('expression'))
        if rest.get('as'):
            steps.append({'op': 'save', 'as': rest['as']})
        return steps

    if name in LEGACY_DIRECT:
        compiled: Step = {'op': name}
        for param in LEGACY_DIRECT[name]:
            if rest.get(param) is not None:
                compiled[param] = rest[param]
        return [compiled]

    if name == 'map':
        return [{'op': 'map', 'pipe': extractExpression_translate(rest.get('expression'))}]

    if name == 'filter':
        return [{'op': 'where', 'expression': rest.get('expression', '')}]

    logger.warning(f"Unknown legacy pipe operation: {name}")
    return [{'op': name, **rest}]


def legacyPipe_compile(pipe: List[Any]) -> List[Any]:
    compiled: List[Any] = []
    for step in pipe:
        compiled.extend(legacyStep_compile(step))
    return compiled


def pipe_compile(pipe: Any) -> Any:
    """
    Compile a pipe in either form

    Args:
        pipe: Raw pipe value from frontmatter

    Returns:
        List of explicit steps; non-list values are returned unchanged

    Example:
        >>> pipe_compile(["first", {"get": "content"}, "json", {"save": "value"}])
        [{'op': 'first'}, {'op': 'get', 'field': 'content'}, {'op': 'json'}, {'op': 'save', 'as': 'value'}]
    """
    if not isinstance(pipe, list):
        return pipe
    if pipe_isLegacy(pipe):
        LOG("Compiling legacy operation pipe", level=2)
        return legacyPipe_compile(pipe)
    return compactPipe_compile(pipe)


def pipes_process(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Compile the ``pipe`` of every query and event in a document

    Returns:
        A new document; the input is not modified (only the queries and
        events sections are copied, elements are shared)
    """
    result = dict(document)
    for section in ('queries', 'events'):
        entries: Optional[Dict[str, Any]] = result.get(section)
        if not isinstance(entries, dict):
            continue
        entries = copy.deepcopy(entries)
        result[section] = entries
        for name, entry in entries.items():
            if isinstance(entry, dict) and 'pipe' in entry:
                entry['pipe'] = pipe_compile(entry['pipe'])
                LOG(f"Compiled pipe for {name}", level=3)
    return result
