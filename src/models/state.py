"""
Program state model and pipeline helper

Defines ProgramState dataclass for the functional pipeline pattern and
the pipeline() helper for composing transformation stages.
"""

import dataclasses
from functools import reduce
from pathlib import Path
from argparse import Namespace
from typing import Any, Optional, Type, TypeVar, List, Dict, Callable
from dataclasses import dataclass, field


PS = TypeVar("PS", bound="ProgramState")


@dataclass
class ProgramState:
    """
    Central state container for the CLI pipeline (state bus pattern).

    This dataclass carries all program state through the functional pipeline,
    with each stage adding new fields as the run progresses.

    Pipeline stages and their state additions:
        - Initial: inputdir, outputdir, verbosity, pattern, lenient, validate
        - env_check: sourceFiles, envOK
        - sources_compile: compileResults
        - results_report: (no additions, terminal stage)

    Attributes:
        inputdir: Directory containing Hypernote source files
        outputdir: Directory receiving compiled JSON documents
        verbosity: Logging verbosity level (1-3)
        pattern: Glob selecting source files (None: settings.input_pattern)
        lenient: Compile without structural validation
        validate: Check compiled documents against the output schema
        envOK: Environment validation passed
        sourceFiles: Source files found by env_check, sorted
        compileResults: One record per source file: input, output, status, error
    """

    # CLI arguments
    inputdir: Optional[Path] = field(default=None)
    outputdir: Optional[Path] = field(default=None)
    verbosity: int = field(default=1)
    pattern: Optional[str] = field(default=None)
    lenient: bool = field(default=False)
    validate: bool = field(default=False)

    # Pipeline state
    envOK: bool = field(default=False)
    sourceFiles: List[Path] = field(default_factory=list)
    compileResults: Optional[List[Dict[str, Any]]] = field(default=None)

    @classmethod
    def state_createFromNamespace(
        cls: Type["ProgramState"], options: Namespace, inputdir: Path, outputdir: Path
    ) -> "ProgramState":
        """
        Create ProgramState from argparse Namespace and directory paths.

        Args:
            options: Parsed CLI arguments (pattern, lenient, etc.)
            inputdir: Directory containing source files
            outputdir: Directory for compiled output

        Returns:
            ProgramState instance with all CLI options as attributes
        """
        valid_fields = {f.name for f in dataclasses.fields(cls)}
        filtered_options = {k: v for k, v in vars(options).items() if k in valid_fields}
        return cls(**{**filtered_options, "inputdir": inputdir, "outputdir": outputdir})

    def copy(self: PS) -> PS:
        """
        Creates a shallow copy of the ProgramState instance.

        Returns:
            A new ProgramState instance.
        """
        return type(self)(**self.__dict__)

    def failures_count(self) -> int:
        return sum(1 for result in self.compileResults or [] if not result['status'])


def pipeline(
    initial_state: ProgramState, *stages: Callable[[ProgramState], ProgramState]
) -> ProgramState:
    """
    Execute a functional pipeline of state transformations.

    Each stage is a function (ProgramState) -> ProgramState that receives
    the output of the previous stage and returns a new state.

    Example:
        final_state = pipeline(initial_state, env_check, sources_compile, results_report)

    This is equivalent to:
        results_report(sources_compile(env_check(initial_state)))
    """
    return reduce(lambda state, stage: stage(state), stages, initial_state)
