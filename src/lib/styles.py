"""
Utility-class to style-object conversion

Converts Tailwind-style class strings ("p-4 bg-blue-500 rounded-lg") into
camelCase style mappings ({"padding": "1rem", ...}) that renderers can apply
directly. Only a fixed subset of utilities is understood; anything else is
ignored.

The colour, spacing and type scales live in assets/palette.yaml and are
loaded once. Conversions are memoized per class string.
"""

import copy
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger

from .log import LOG


PALETTE_PATH = Path(__file__).parent.parent / "assets" / "palette.yaml"

Style = Dict[str, Any]

TEXT_ALIGN = {'left', 'center', 'right', 'justify'}
JUSTIFY = {
    'start': 'flex-start', 'end': 'flex-end', 'center': 'center',
    'between': 'space-between', 'around': 'space-around', 'evenly': 'space-evenly',
}
ITEMS = {
    'start': 'flex-start', 'end': 'flex-end', 'center': 'center',
    'baseline': 'baseline', 'stretch': 'stretch',
}
SELF = {
    'auto': 'auto', 'start': 'flex-start', 'end': 'flex-end',
    'center': 'center', 'stretch': 'stretch',
}
OVERFLOW = {'auto', 'hidden', 'visible', 'scroll'}
POSITIONS = {'absolute', 'relative', 'fixed', 'sticky'}

# Spacing utilities -> style properties they set
SPACING_PROPERTIES = {
    'p': ('padding',),
    'pt': ('paddingTop',),
    'pr': ('paddingRight',),
    'pb': ('paddingBottom',),
    'pl': ('paddingLeft',),
    'px': ('paddingLeft', 'paddingRight'),
    'py': ('paddingTop', 'paddingBottom'),
    'm': ('margin',),
    'mt': ('marginTop',),
    'mr': ('marginRight',),
    'mb': ('marginBottom',),
    'ml': ('marginLeft',),
    'mx': ('marginLeft', 'marginRight'),
    'my': ('marginTop', 'marginBottom'),
    'gap': ('gap',),
}


class PaletteError(Exception):
    """Raised when the style palette cannot be loaded"""
    pass


@lru_cache(maxsize=1)
def palette_load(path: Path = PALETTE_PATH) -> Dict[str, Any]:
    """
    Load and normalise palette.yaml

    Mapping keys are turned into strings so that YAML integers (colour
    shades, spacing steps) can be looked up with class-name fragments.

    Raises:
        PaletteError: If the file is missing or not valid YAML
    """
    try:
        with open(path, 'r') as f:
            raw: Any = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise PaletteError(f"Failed to parse {path.name}: {e}")
    except OSError as e:
        raise PaletteError(f"Failed to load {path.name}: {e}")

    def keys_stringify(node: Any) -> Any:
        if isinstance(node, dict):
            return {str(key): keys_stringify(value) for key, value in node.items()}
        return node

    return keys_stringify(raw)


def color_parse(parts: list) -> Optional[str]:
    """
    Resolve a colour from class fragments

    ["text", "white"] -> white; ["bg", "blue", "500"] -> blue shade 500.
    """
    colors = palette_load()['colors']
    if len(parts) == 2:
        color = colors.get(parts[1])
        return color if isinstance(color, str) else None
    if len(parts) == 3:
        shades = colors.get(parts[1])
        if isinstance(shades, dict):
            return shades.get(parts[2])
    return None


def size_parse(value: str) -> Optional[str]:
    if value == 'full':
        return '100%'
    if value == 'auto':
        return 'auto'
    return palette_load()['spacing'].get(value)


def class_apply(style: Style, cls: str) -> None:
    """Merge the properties of a single utility class into ``style``"""
    palette = palette_load()
    parts = cls.split('-')
    prefix = parts[0]
    arg = parts[1] if len(parts) > 1 else ''

    if prefix == 'flex':
        if len(parts) == 1:
            style['display'] = 'flex'
        elif arg in ('row', 'col'):
            direction = 'row' if arg == 'row' else 'column'
            reverse = len(parts) > 2 and parts[2] == 'reverse'
            style['flexDirection'] = f"{direction}-reverse" if reverse else direction
    elif prefix == 'hidden':
        style['display'] = 'none'
    elif prefix in ('block', 'inline') and len(parts) == 1:
        style['display'] = prefix
    elif prefix in ('w', 'h') and arg:
        value = size_parse(arg)
        if value is not None:
            style['width' if prefix == 'w' else 'height'] = value
    elif prefix in SPACING_PROPERTIES and arg:
        value = palette['spacing'].get(arg)
        if value is not None:
            for prop in SPACING_PROPERTIES[prefix]:
                style[prop] = value
    elif prefix == 'text':
        if arg in TEXT_ALIGN:
            style['textAlign'] = arg
        elif arg in palette['font_sizes']:
            style['fontSize'] = palette['font_sizes'][arg]
        else:
            color = color_parse(parts)
            if color:
                style['color'] = color
    elif prefix == 'bg':
        color = color_parse(parts)
        if color:
            style['backgroundColor'] = color
    elif prefix == 'border':
        widths = palette['border_widths']
        if len(parts) == 1 or arg in widths:
            style['borderWidth'] = widths['' if len(parts) == 1 else arg]
        else:
            color = color_parse(parts)
            if color:
                style['borderColor'] = color
    elif prefix == 'rounded':
        radius = palette['border_radius'].get(arg)
        if radius is not None:
            style['borderRadius'] = radius
    elif prefix == 'font':
        weight = palette['font_weights'].get(arg)
        if weight is not None:
            style['fontWeight'] = weight
    elif prefix == 'justify' and arg in JUSTIFY:
        style['justifyContent'] = JUSTIFY[arg]
    elif prefix == 'items' and arg in ITEMS:
        style['alignItems'] = ITEMS[arg]
    elif prefix == 'self' and arg in SELF:
        style['alignSelf'] = SELF[arg]
    elif prefix == 'overflow' and arg in OVERFLOW:
        style['overflow'] = arg
    elif prefix in POSITIONS:
        style['position'] = prefix
    elif prefix == 'opacity' and arg.isdigit():
        style['opacity'] = int(arg) / 100
    elif prefix == 'z' and arg.isdigit():
        style['zIndex'] = int(arg)


@lru_cache(maxsize=512)
def classes_convert(classes: str) -> Optional[Style]:
    style: Style = {}
    for cls in classes.split():
        class_apply(style, cls)
    return style or None


def classes_toStyle(classes: str) -> Optional[Style]:
    """
    Convert a utility class string into a style mapping

    Args:
        classes: Whitespace-separated class names

    Returns:
        New style dict, or None when no class converts

    Example:
        >>> classes_toStyle("p-4 text-center font-bold")
        {'padding': '1rem', 'textAlign': 'center', 'fontWeight': 700}
    """
    if not classes or not classes.strip():
        return None
    style = classes_convert(classes.strip())
    if style is None:
        LOG(f'No styles generated for "{classes}"', level=3)
        return None
    # Callers own the result; the cached copy stays untouched
    return copy.deepcopy(style)


def elementStyle_convert(element: Dict[str, Any]) -> Dict[str, Any]:
    """Copy one element, turning ``attributes.class`` into ``style``"""
    result = dict(element)
    attributes = result.get('attributes')
    if isinstance(attributes, dict) and 'class' in attributes:
        attributes = dict(attributes)
        classes = attributes.pop('class')
        style = classes_toStyle(classes) if isinstance(classes, str) else None
        if style:
            result['style'] = style
        elif classes:
            logger.warning(f'No styles generated for class "{classes}" on <{result.get("type")}>')
        if attributes:
            result['attributes'] = attributes
        else:
            del result['attributes']
    return result


def elementStyles_apply(element: Any) -> Any:
    """
    Replace ``attributes.class`` with a ``style`` object throughout a tree

    Returns a new element; the class is removed whether or not it
    converted, and an emptied ``attributes`` mapping is dropped. The tree
    is walked with an explicit stack, so depth is not limited.
    """
    if not isinstance(element, dict):
        return element

    root = elementStyle_convert(element)
    pending = [root]
    while pending:
        current = pending.pop()
        for key in ('elements', 'content'):
            children = current.get(key)
            if not isinstance(children, list):
                continue
            converted = [elementStyle_convert(child) if isinstance(child, dict) else child for child in children]
            current[key] = converted
            pending.extend(child for child in converted if isinstance(child, dict))
    return root
