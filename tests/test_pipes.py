"""
Pipe compiler tests - compact form, legacy form and document processing
"""

from hypernote.lib.pipes import pipe_compile, pipe_isLegacy, pipes_process


class TestCompactPipes:
    """Compact YAML steps"""

    def test_basic_pipe(self):
        """Names and single-key mappings become explicit steps"""
        assert pipe_compile(["first", {"get": "content"}, "json", {"save": "value"}]) == [
            {"op": "first"},
            {"op": "get", "field": "content"},
            {"op": "json"},
            {"op": "save", "as": "value"},
        ]

    def test_named_parameters(self):
        """Each operation names its scalar parameter"""
        assert pipe_compile([{"limit": 10}, {"pluck": "id"}, {"default": 0}, {"join": ","}]) == [
            {"op": "limit", "count": 10},
            {"op": "pluck", "field": "id"},
            {"op": "default", "value": 0},
            {"op": "join", "separator": ","},
        ]

    def test_sort_spread_or_named(self):
        """sort spreads a mapping, or takes a scalar as 'by'"""
        assert pipe_compile([{"sort": {"by": "created_at", "order": "desc"}}]) == [
            {"op": "sort", "by": "created_at", "order": "desc"}
        ]
        assert pipe_compile([{"sort": "created_at"}]) == [{"op": "sort", "by": "created_at"}]

    def test_replace_spread(self):
        """replace takes its from/to mapping"""
        assert pipe_compile([{"replace": {"from": "a", "to": "b"}}]) == [
            {"op": "replace", "from": "a", "to": "b"}
        ]

    def test_nested_map(self):
        """map sub-pipes are compiled recursively"""
        assert pipe_compile([{"map": ["first", {"get": "pubkey"}]}]) == [
            {"op": "map", "pipe": [{"op": "first"}, {"op": "get", "field": "pubkey"}]}
        ]

    def test_construct(self):
        """construct compiles one pipe per field"""
        compiled = pipe_compile([{"construct": {"fields": {"name": [{"get": "name"}]}}}])
        assert compiled == [
            {"op": "construct", "fields": {"name": [{"op": "get", "field": "name"}]}}
        ]

    def test_explicit_passthrough(self):
        """Steps with 'op' are left alone"""
        step = {"op": "filter", "field": "kind", "eq": 1}
        assert pipe_compile([step]) == [step]

    def test_idempotent(self):
        """Compiling a compiled pipe changes nothing"""
        compiled = pipe_compile(["first", {"map": [{"get": "id"}]}, {"limit": 3}])
        assert pipe_compile(compiled) == compiled

    def test_unknown_operation(self, warnings_capture):
        """Unknown operations keep their value and warn"""
        assert pipe_compile([{"frobnicate": 3}]) == [{"op": "frobnicate", "value": 3}]
        assert any("frobnicate" in message for message in warnings_capture)

    def test_multi_key_object(self, warnings_capture):
        """Objects with several keys pass through with a warning"""
        step = {"get": "a", "limit": 2}
        assert pipe_compile([step]) == [step]
        assert warnings_capture

    def test_non_list(self):
        """A non-list pipe is returned unchanged"""
        assert pipe_compile("first") == "first"


class TestLegacyPipes:
    """operation-style steps"""

    def test_detection(self):
        """Legacy is decided from the first step"""
        assert pipe_isLegacy([{"operation": "reverse"}])
        assert not pipe_isLegacy(["first"])
        assert not pipe_isLegacy([])

    def test_extract_with_save(self):
        """extract .field as x -> get + save"""
        pipe = [{"operation": "extract", "expression": ".content", "as": "body"}, {"operation": "reverse"}]
        assert pipe_compile(pipe) == [
            {"op": "get", "field": "content"},
            {"op": "save", "as": "body"},
            {"op": "reverse"},
        ]

    def test_extract_tag_select(self):
        """The tag-select idiom becomes pluckTag"""
        expression = '.tags[] | select(.[0] == "title") | .[1]'
        assert pipe_compile([{"operation": "extract", "expression": expression}]) == [
            {"op": "pluckTag", "tag": "title", "index": 1}
        ]

    def test_extract_fallback(self, warnings_capture):
        """Untranslatable expressions fall back to get content"""
        assert pipe_compile([{"operation": "extract", "expression": "map(.content)"}]) == [
            {"op": "get", "field": "content"}
        ]
        assert warnings_capture

    def test_direct_operations(self):
        """flatten/unique/sort keep their own parameters"""
        pipe = [
            {"operation": "flatten", "depth": 1},
            {"operation": "unique", "by": "id"},
            {"operation": "sort", "by": "created_at", "order": "asc"},
        ]
        assert pipe_compile(pipe) == [
            {"op": "flatten", "depth": 1},
            {"op": "unique", "by": "id"},
            {"op": "sort", "by": "created_at", "order": "asc"},
        ]

    def test_map_and_filter(self):
        """map translates its expression; filter becomes where"""
        pipe = [
            {"operation": "map", "expression": ".pubkey"},
            {"operation": "filter", "expression": ".kind == 1"},
        ]
        assert pipe_compile(pipe) == [
            {"op": "map", "pipe": [{"op": "get", "field": "pubkey"}]},
            {"op": "where", "expression": ".kind == 1"},
        ]

    def test_unknown_legacy(self, warnings_capture):
        """Unknown legacy operations keep their parameters"""
        assert pipe_compile([{"operation": "zip", "with": "$other"}]) == [
            {"op": "zip", "with": "$other"}
        ]
        assert any("zip" in message for message in warnings_capture)

    def test_unreadable_operation_name(self, warnings_capture):
        """A non-string operation is passed through with a warning"""
        step = {"operation": ["extract"], "expression": ".content"}
        assert pipe_compile([step]) == [step]
        assert any("Unreadable legacy pipe operation" in message for message in warnings_capture)


class TestPipesProcess:
    """Document-level pipe compilation"""

    def test_queries_and_events(self):
        """Every entry with a pipe is compiled"""
        document = {
            "queries": {"$feed": {"kinds": [1], "pipe": ["first"]}, "$raw": {"kinds": [0]}},
            "events": {"@post": {"kind": 1, "pipe": [{"limit": 1}]}},
        }
        result = pipes_process(document)
        assert result["queries"]["$feed"]["pipe"] == [{"op": "first"}]
        assert "pipe" not in result["queries"]["$raw"]
        assert result["events"]["@post"]["pipe"] == [{"op": "limit", "count": 1}]

    def test_input_untouched(self):
        """The source document is not modified"""
        document = {"queries": {"$feed": {"pipe": ["first"]}}}
        pipes_process(document)
        assert document == {"queries": {"$feed": {"pipe": ["first"]}}}

    def test_string_entries_skipped(self):
        """Unexpanded naddr strings are left alone"""
        document = {"queries": {"$q": "naddr1invalid"}}
        assert pipes_process(document) == document
