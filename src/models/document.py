"""
Output document schema

pydantic models describing the document the compiler produces. The
compiler works with plain dicts; these models are an optional check run
over the assembled result (see ``appsettings.validate_output``).
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


CONTAINER_TYPES = {'div', 'span', 'button', 'form', 'loop', 'if'}
REQUIRED_FIELDS = {
    'form': ('event',),
    'loop': ('source', 'variable'),
    'if': ('condition',),
    'component': ('alias',),
}


class Operation(BaseModel):
    """A single pipe step: ``op`` plus operation-specific parameters"""

    model_config = ConfigDict(extra="allow")

    op: str = Field(min_length=1)


class Element(BaseModel):
    """
    One node of the element tree

    A single permissive model covers every element kind; per-kind
    requirements (a form's event, a loop's source and variable, ...) are
    enforced in ``kind_check``.
    """

    model_config = ConfigDict(extra="forbid")

    type: str = Field(min_length=1)
    elementId: Optional[str] = None
    content: Optional[List[Union[str, "Element"]]] = None
    elements: Optional[List["Element"]] = None
    attributes: Optional[Dict[str, str]] = None
    style: Optional[Dict[str, Any]] = None
    event: Optional[str] = None
    source: Optional[str] = None
    variable: Optional[str] = None
    condition: Optional[str] = None
    alias: Optional[str] = None
    argument: Optional[str] = None

    @model_validator(mode="after")
    def kind_check(self) -> "Element":
        for name in REQUIRED_FIELDS.get(self.type, ()):
            if getattr(self, name) is None:
                raise ValueError(f"<{self.type}> element requires '{name}'")

        if self.type in CONTAINER_TYPES and self.type != 'div' and self.elements is None:
            raise ValueError(f"<{self.type}> element requires 'elements'")

        if self.type == 'json' and not (self.attributes or {}).get('variable'):
            raise ValueError("<json> element requires attributes.variable")
        return self


class Entry(BaseModel):
    """Query or event definition; only its ``pipe`` is constrained"""

    model_config = ConfigDict(extra="allow")

    pipe: Optional[List[Operation]] = None


class Document(BaseModel):
    """Compiled Hypernote document"""

    model_config = ConfigDict(extra="forbid")

    version: str
    elements: List[Element]
    events: Optional[Dict[str, Union[Entry, str]]] = None
    queries: Optional[Dict[str, Union[Entry, str]]] = None
    style: Optional[Dict[str, Any]] = None
    imports: Optional[Dict[str, Any]] = None
    kind: Optional[int] = None
    type: Optional[str] = None
    name: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None

    @field_validator("events")
    @classmethod
    def events_check(cls, v: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        for key in v or {}:
            if not key.startswith('@'):
                raise ValueError(f"Event names must start with '@', got '{key}'")
        return v

    @field_validator("queries")
    @classmethod
    def queries_check(cls, v: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        for key in v or {}:
            if not key.startswith(('$', '#')):
                raise ValueError(f"Query names must start with '$' or '#', got '{key}'")
        return v


def document_validate(document: Dict[str, Any]) -> Document:
    """
    Check a compiled document against the schema

    Raises:
        pydantic.ValidationError: On the first set of schema violations
    """
    return Document.model_validate(document)


Element.model_rebuild()
