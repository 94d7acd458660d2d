"""
End-to-end compilation tests

Tests the full pipeline: Hypernote source → frontmatter + Tokenizer → Parser
→ styles/pipes → document dict, and the CLI stages that map an input
directory of sources onto JSON documents.
"""

import json
import tempfile
import time
from pathlib import Path

import pytest

from hypernote import compile_hypernote
from hypernote.__main__ import env_check, results_report, sources_compile
from hypernote.lib.log import state_connectToLogger
from hypernote.lib.safe import SafeCompiler
from hypernote.models import ProgramState, TokenizerError, pipeline
from hypernote.models.errors import ErrorCode


FEED_APP = """---
title: Feed
$my_feed:
  kinds: [1]
  limit: 20
  pipe:
    - first
    - get: content
"@post_hello":
  kind: 1
  content: "Hello!"
style: "bg-gray-50 p-4"
---

# Hello There

{class="flex flex-col gap-4"}
[form @post_hello]
  [input name="message" placeholder="Say hi"]
  [button "Post"][/button]
[/form]

{#feed}
[each $my_feed as $note]
  {$note.content}
[/each]
"""


@pytest.fixture(autouse=True)
def quiet_logger():
    state_connectToLogger(ProgramState(verbosity=0))


class TestDocumentCompilation:
    """compile_hypernote() on complete documents"""

    def test_feed_app(self):
        """Frontmatter, styles, decorations and pipes in one document"""
        document = compile_hypernote(FEED_APP)

        assert document["version"] == "1.1.0"
        assert document["title"] == "Feed"
        assert document["style"] == {"backgroundColor": "rgb(249,250,251)", "padding": "1rem"}
        assert document["events"] == {"@post_hello": {"kind": 1, "content": "Hello!"}}
        assert document["queries"]["$my_feed"]["pipe"] == [
            {"op": "first"},
            {"op": "get", "field": "content"},
        ]

        heading, form, loop = document["elements"]
        assert heading == {"type": "h1", "content": ["Hello There"]}
        assert form == {
            "type": "form",
            "event": "@post_hello",
            "style": {"display": "flex", "flexDirection": "column", "gap": "1rem"},
            "elements": [
                {"type": "input", "attributes": {"name": "message", "placeholder": "Say hi"}},
                {"type": "button", "elements": [{"type": "p", "content": ["Post"]}]},
            ],
        }
        assert loop == {
            "type": "loop",
            "elementId": "feed",
            "source": "$my_feed",
            "variable": "$note",
            "elements": [{"type": "p", "content": ["{$note.content}"]}],
        }

    def test_body_only(self):
        """Documents without frontmatter hold only version and elements"""
        assert compile_hypernote("Hello {$name}!") == {
            "version": "1.1.0",
            "elements": [{"type": "p", "content": ["Hello ", "{$name}", "!"]}],
        }

    def test_strict_unclosed_form(self):
        """Strict mode reports the first unclosed container"""
        source = '# Hello There\n\n[form @post_hello]\n  [button "Say Hello"]'
        with pytest.raises(TokenizerError) as excinfo:
            compile_hypernote(source)
        assert excinfo.value.code == ErrorCode.UNCLOSED_TAG
        assert (excinfo.value.line, excinfo.value.column) == (3, 1)

    def test_lenient_unclosed_form(self):
        """Lenient mode closes containers at end of input"""
        source = '# Hello There\n\n[form @post_hello]\n  [button "Say Hello"]'
        document = compile_hypernote(source, strict=False)
        assert document["elements"][1]["elements"] == [
            {"type": "button", "elements": [{"type": "p", "content": ["Say Hello"]}]}
        ]

    def test_frontmatter_line_numbers(self):
        """Error positions are relative to the body"""
        with pytest.raises(TokenizerError) as excinfo:
            compile_hypernote("---\ntitle: x\n---\n[div]\n[/span]")
        assert excinfo.value.code == ErrorCode.MISMATCHED_TAG
        assert excinfo.value.line == 2

    def test_json_serializable(self):
        """Compiled documents serialize to JSON"""
        assert json.loads(json.dumps(compile_hypernote(FEED_APP))) == compile_hypernote(FEED_APP)

    def test_legacy_pipe_with_unreadable_operation(self, warnings_capture):
        """A list-valued legacy operation does not stop compilation"""
        document = compile_hypernote("---\n$q:\n  kinds: [1]\n  pipe:\n    - operation: [extract]\n---\n# Hi")
        assert document["queries"]["$q"]["pipe"] == [{"operation": ["extract"]}]
        assert any("Unreadable legacy pipe operation" in message for message in warnings_capture)


class TestAdversarialInput:
    """Deep nesting and unterminated constructs stay cheap and never crash"""

    DEPTH = 1000
    SECONDS = 10

    def nested(self):
        return "[div]\n" * self.DEPTH + "x\n" + "[/div]\n" * self.DEPTH

    def chain_depth(self, element):
        depth = 0
        while element.get("elements"):
            depth += 1
            element = element["elements"][0]
        return depth

    def timed_compile(self, source, strict):
        started = time.perf_counter()
        document = compile_hypernote(source, strict=strict)
        assert time.perf_counter() - started < self.SECONDS
        return document

    @pytest.mark.parametrize("strict", [True, False])
    def test_deep_nesting(self, strict):
        """A thousand nested containers compile in both modes"""
        document = compile_hypernote(self.nested(), strict=strict)
        assert self.chain_depth(document["elements"][0]) == self.DEPTH

    def test_deep_nesting_with_styles(self):
        """Class conversion walks deep trees too"""
        source = '{class="p-4"}\n' + self.nested()
        document = compile_hypernote(source)
        assert document["elements"][0]["style"] == {"padding": "1rem"}
        assert self.chain_depth(document["elements"][0]) == self.DEPTH

    def test_safe_compiler_deep_nesting(self):
        """SafeCompiler succeeds on deep input"""
        result = SafeCompiler().compile(self.nested())
        assert result.success
        assert self.chain_depth(result.data["elements"][0]) == self.DEPTH

    @pytest.mark.parametrize("source", [
        "[" * 50000,
        "{$a" * 50000,
        "{#a" * 50000,
        '[a "' * 50000,
        "*a" * 50000,
    ])
    def test_unterminated_runs_lenient(self, source):
        """Unterminated brackets, braces and quotes tokenize in linear time"""
        document = self.timed_compile(source, strict=False)
        assert document["elements"][0]["type"] == "p"

    def test_many_tags_strict(self):
        """Thousands of balanced tags validate in linear time"""
        document = self.timed_compile("[div][/div]\n" * 20000, strict=True)
        assert len(document["elements"]) == 20000


class TestCliPipeline:
    """env_check → sources_compile → results_report"""

    def write_sources(self, directory: Path, sources: dict) -> None:
        for name, text in sources.items():
            (directory / name).write_text(text, encoding="utf-8")

    def test_compile_directory(self):
        """Every source becomes a JSON document in outputdir"""
        with tempfile.TemporaryDirectory() as tmpdir:
            inputdir = Path(tmpdir) / "in"
            inputdir.mkdir()
            self.write_sources(inputdir, {"feed.md": FEED_APP, "hello.md": "# Hi", "notes.txt": "x"})

            state = ProgramState(inputdir=inputdir, outputdir=Path(tmpdir) / "out", verbosity=0)
            final = pipeline(state, env_check, sources_compile, results_report)

            assert [path.name for path in final.sourceFiles] == ["feed.md", "hello.md"]
            assert final.failures_count() == 0
            written = json.loads((Path(tmpdir) / "out" / "hello.json").read_text())
            assert written == {"version": "1.1.0", "elements": [{"type": "h1", "content": ["Hi"]}]}
            assert (Path(tmpdir) / "out" / "feed.json").exists()
            assert not (Path(tmpdir) / "out" / "notes.json").exists()

    def test_failure_recorded_and_reported(self):
        """A broken file is recorded, others still compile, and the run exits 1"""
        with tempfile.TemporaryDirectory() as tmpdir:
            inputdir = Path(tmpdir)
            self.write_sources(inputdir, {"a.md": "[div", "b.md": "# Fine"})

            state = ProgramState(inputdir=inputdir, outputdir=inputdir / "out", verbosity=0)
            compiled = pipeline(state, env_check, sources_compile)

            failed, passed = compiled.compileResults
            assert failed["status"] is False
            assert failed["error"]["code"] == "UNCLOSED_ELEMENT"
            assert passed["status"] is True

            with pytest.raises(SystemExit) as excinfo:
                results_report(compiled)
            assert excinfo.value.code == 1

    def test_lenient_option(self):
        """--lenient compiles unbalanced sources"""
        with tempfile.TemporaryDirectory() as tmpdir:
            inputdir = Path(tmpdir)
            self.write_sources(inputdir, {"draft.md": "[div]\nunclosed"})

            state = ProgramState(inputdir=inputdir, outputdir=inputdir / "out", verbosity=0, lenient=True)
            final = pipeline(state, env_check, sources_compile, results_report)
            assert final.failures_count() == 0

    def test_pattern_option(self):
        """--pattern selects other sources"""
        with tempfile.TemporaryDirectory() as tmpdir:
            inputdir = Path(tmpdir)
            self.write_sources(inputdir, {"page.hn": "# Page", "skip.md": "[div"})

            state = ProgramState(inputdir=inputdir, outputdir=inputdir / "out", verbosity=0, pattern="*.hn")
            final = pipeline(state, env_check, sources_compile, results_report)
            assert [path.name for path in final.sourceFiles] == ["page.hn"]

    def test_no_sources_exits(self):
        """An input directory with no matching files is an error"""
        with tempfile.TemporaryDirectory() as tmpdir:
            state = ProgramState(inputdir=Path(tmpdir), outputdir=Path(tmpdir) / "out", verbosity=0)
            with pytest.raises(SystemExit):
                env_check(state)

    def test_missing_inputdir_exits(self):
        """A missing input directory is an error"""
        with tempfile.TemporaryDirectory() as tmpdir:
            state = ProgramState(inputdir=Path(tmpdir) / "nope", outputdir=Path(tmpdir) / "out")
            with pytest.raises(SystemExit):
                env_check(state)
