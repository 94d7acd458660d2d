#!/usr/bin/env python3
"""
hypernote - Hypernote Markdown compiler

Compiles Hypernote Markdown documents (a YAML header of events, queries and
styles followed by a bracket-tagged Markdown body) into JSON documents for
Nostr UI renderers.

As with other ChRIS-style tools, the CLI maps an input directory onto an
output directory: every matching source file becomes one JSON document.

Usage:
    hypernote inputdir/ outputdir/

Examples:
    # Compile every *.md in the current directory
    hypernote . out/

    # Tolerate unbalanced tags (e.g. drafts), check output against the schema
    hypernote drafts/ out/ --lenient --validate

    # Trace tokenizer and parser activity
    hypernote . out/ -vv
"""

import json
import sys
from pathlib import Path
from argparse import ArgumentParser, Namespace, ArgumentDefaultsHelpFormatter

from chris_plugin import chris_plugin
from . import __version__
from .config import appsettings
from .lib import Compiler, LOG, state_connectToLogger
from .models import ProgramState, TokenizerError, pipeline


# Define CLI arguments
parser = ArgumentParser(
    description="hypernote - compile Hypernote Markdown into JSON documents",
    formatter_class=ArgumentDefaultsHelpFormatter,
)

parser.add_argument(
    "--pattern",
    default=None,
    type=str,
    help=f"Glob selecting source files in inputdir (default: {appsettings.input_pattern})",
)

parser.add_argument(
    "--lenient",
    action="store_true",
    default=False,
    help="Skip structural validation and compile best-effort trees",
)

parser.add_argument(
    "--validate",
    action="store_true",
    default=False,
    help="Check each compiled document against the output schema",
)

parser.add_argument(
    "-v",
    "--verbosity",
    action="count",
    default=1,
    help="Increase output verbosity (can be repeated: -v, -vv)",
)

parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")


def env_check(inputstate: ProgramState) -> ProgramState:
    """
    Validate the input directory and collect the source files.

    Args:
        inputstate: Initial program state with CLI options

    Returns:
        ProgramState with added fields:
            - sourceFiles: Sorted source files matching the pattern
            - envOK: True if environment is valid

    Exits:
        1 if the input directory is missing or holds no matching files
    """
    state = inputstate.copy()
    LOG("Checking environment...", level=2)

    if state.inputdir is None or not state.inputdir.is_dir():
        print(f"Error: Input directory not found: {state.inputdir}", file=sys.stderr)
        state.envOK = False
        sys.exit(1)

    pattern = state.pattern or appsettings.input_pattern
    state.sourceFiles = sorted(path for path in state.inputdir.glob(pattern) if path.is_file())
    if not state.sourceFiles:
        print(f"Error: No files matching '{pattern}' in {state.inputdir}", file=sys.stderr)
        state.envOK = False
        sys.exit(1)
    LOG(f"Found {len(state.sourceFiles)} source file(s) matching '{pattern}'", level=2)

    state.outputdir.mkdir(parents=True, exist_ok=True)
    LOG(f"Output directory: {state.outputdir}", level=2)

    state.envOK = True
    return state


def source_compile(source_file: Path, state: ProgramState) -> dict:
    """
    Compile one source file and write its JSON document.

    Returns:
        Result record: input, output, status, and error on failure
    """
    output_file = state.outputdir / appsettings.outputName_make(source_file.name)
    result = {'input': str(source_file), 'output': str(output_file), 'status': False}

    try:
        source = source_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        result['error'] = {'message': f"Error reading input file: {e}"}
        return result

    settings = appsettings.model_copy(update={'validate_output': state.validate or appsettings.validate_output})
    try:
        document = Compiler(source, strict=not state.lenient, settings=settings).compile()
    except TokenizerError as e:
        result['error'] = e.as_dict()
        return result

    indent = appsettings.json_indent or None
    output_file.write_text(json.dumps(document, indent=indent, ensure_ascii=False) + "\n", encoding="utf-8")
    LOG(f"Wrote {output_file}", level=2)
    result['status'] = True
    return result


def sources_compile(inputstate: ProgramState) -> ProgramState:
    """
    Compile every collected source file into outputdir.

    A failing file is recorded and the remaining files are still compiled.

    Args:
        inputstate: Program state with sourceFiles populated

    Returns:
        ProgramState with added field:
            - compileResults: One result record per source file
    """
    state = inputstate.copy()
    LOG("Compiling sources...", level=1)

    state.compileResults = []
    for source_file in state.sourceFiles:
        LOG(f"Compiling {source_file.name}", level=2)
        state.compileResults.append(source_compile(source_file, state))
    return state


def results_report(inputstate: ProgramState) -> ProgramState:
    """
    Report per-file results; errors go to stderr.

    Returns:
        ProgramState unchanged (terminal pipeline stage)

    Exits:
        1 if any file failed to compile
    """
    state: ProgramState = inputstate.copy()
    if state.compileResults is None:
        print("Error: Compilation did not run", file=sys.stderr)
        sys.exit(1)

    for result in state.compileResults:
        if result['status']:
            LOG(f"  ✓ {result['input']} -> {result['output']}", level=1)
        else:
            print(f"Compile error in {result['input']}: {result['error']['message']}", file=sys.stderr)
            if 'line' in result['error']:
                print(
                    f"  at line {result['error']['line']}, column {result['error']['column']}"
                    f" [{result['error']['code']}]",
                    file=sys.stderr,
                )

    failures = state.failures_count()
    LOG(f"\n{len(state.compileResults) - failures} compiled, {failures} failed", level=1)
    if failures:
        sys.exit(1)
    return state


@chris_plugin(
    parser=parser,
    title="hypernote - Hypernote Markdown compiler",
    category="Utility",
    min_memory_limit="100Mi",
    min_cpu_limit="500m",
)
def main(options: Namespace, inputdir: Path, outputdir: Path):
    """
    Main entry point - compile Hypernote sources in inputdir to JSON in outputdir.

    Orchestrates the pipeline:
        1. env_check: Validate inputdir and collect source files
        2. sources_compile: Compile each file and write its JSON document
        3. results_report: Report results, exit 1 on any failure

    Args:
        options: CLI arguments from argparse
            - pattern: Optional[str] - Source glob
            - lenient: bool - Disable structural validation
            - validate: bool - Run the output schema check
            - verbosity: int - Logging verbosity level (1-3)
        inputdir: Directory containing Hypernote sources
        outputdir: Directory where JSON documents will be written

    Note:
        This function is wrapped by @chris_plugin which handles CLI
        argument parsing and invokes this function with parsed values.
    """

    state: ProgramState = ProgramState.state_createFromNamespace(
        options=options, inputdir=inputdir, outputdir=outputdir
    )
    state.verbosity = appsettings.verbosity_resolve(state.verbosity)

    # Connect state to logger for entire pipeline
    state_connectToLogger(state)

    pipeline(state, env_check, sources_compile, results_report)


if __name__ == "__main__":
    main()  # type: ignore  # @chris_plugin decorator transforms signature
