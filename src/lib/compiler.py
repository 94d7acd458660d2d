"""
Document assembler

Runs the compilation stages over one Hypernote source text and assembles
the output document:

    text -> frontmatter_extract -> (fields, body)
         -> Tokenizer -> tokens -> Parser -> elements
         -> style conversion -> pipe compilation -> [schema check]

Everything is in memory; one call turns one string into one document dict
or raises one TokenizerError.
"""

import json
from typing import Any, Dict, List, Optional

from loguru import logger
from pydantic import ValidationError

from ..config.settings import AppSettings, appsettings
from ..models.document import document_validate
from ..models.errors import TokenizerError
from .frontmatter import frontmatter_extract
from .log import LOG
from .parser import Parser
from .pipes import pipes_process
from .styles import elementStyles_apply
from .tokenizer import Tokenizer


class Compiler:
    """
    Compiles Hypernote Markdown into a document dict

    Responsibilities:
    - Split frontmatter from body and map its fields
    - Tokenize (strict or lenient) and parse the body into elements
    - Convert class attributes to style objects
    - Compile query/event pipes to explicit operations
    - Optionally check the result against the output schema
    """

    def __init__(
        self,
        source: str,
        strict: Optional[bool] = None,
        settings: Optional[AppSettings] = None,
    ) -> None:
        """
        Initialize compiler

        Args:
            source: Full document text (frontmatter + body)
            strict: Structural validation; None uses settings.strict_mode
            settings: Configuration (defaults to the appsettings singleton)
        """
        self.source = source
        self.settings = settings or appsettings
        self.strict = self.settings.strict_mode if strict is None else strict

    def compile(self) -> Dict[str, Any]:
        """
        Compile the source text

        Returns:
            Document dict: version, frontmatter fields, elements

        Raises:
            TokenizerError: Strict mode, on the first structural problem
        """
        LOG(f"Compiling {len(self.source)} characters (strict={self.strict})", level=2)

        frontmatter = frontmatter_extract(self.source)
        document: Dict[str, Any] = {'version': self.settings.document_version}
        document.update(frontmatter.fields)

        document['elements'] = self.elements_build(frontmatter.body)
        document = pipes_process(document)

        if self.settings.validate_output:
            return self.output_validate(document)
        return document

    def elements_build(self, body: str) -> List[Dict[str, Any]]:
        """Tokenize and parse the body, then convert element styles"""
        try:
            tokens = Tokenizer(body, strict=self.strict).tokenize()
        except TokenizerError as e:
            logger.error(f"[Hypernote Validation Error] {e}")
            raise

        elements = Parser(tokens).parse()
        if self.settings.convert_styles:
            elements = [elementStyles_apply(element) for element in elements]
        return elements

    def output_validate(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """
        Return the document if it passes the schema, else a fallback

        The fallback is itself a valid document showing the schema issues.
        """
        try:
            document_validate(document)
        except ValidationError as e:
            issues = e.errors(include_url=False)
            logger.error(f"Hypernote validation failed with {len(issues)} issue(s)")
            for issue in issues:
                LOG(f"  {'.'.join(str(part) for part in issue['loc'])}: {issue['msg']}", level=1)
            return self.fallback_make(issues)

        LOG("Document passed schema validation", level=2)
        return document

    def fallback_make(self, issues: List[Any]) -> Dict[str, Any]:
        return {
            'version': self.settings.document_version,
            'elements': [
                {
                    'type': 'div',
                    'content': [
                        'Validation Error:',
                        {
                            'type': 'pre',
                            'content': [json.dumps(issues, indent=2, default=str)],
                        },
                    ],
                }
            ],
        }


def compile_hypernote(text: str, strict: bool = True) -> Dict[str, Any]:
    """
    Compile Hypernote Markdown to a document dict

    Args:
        text: Full document text
        strict: Raise TokenizerError on structural problems

    Example:
        >>> compile_hypernote("# Hi")["elements"]
        [{'type': 'h1', 'content': ['Hi']}]
    """
    return Compiler(text, strict=strict).compile()
